from pathlib import Path

import sys

# Allow running tests without installing the package.
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import pytest
from dirbridge.core.query import ConnectionResponse, Endpoint, QueryRequest, QueryResponse
from dirbridge.core.runtime.settings import Settings


@pytest.fixture()
def settings():
    return Settings(
        plugin_paths=[],
        plugin_strict=True,
        log_level="INFO",
        pool_workers=2,
    )


@pytest.fixture()
def endpoint():
    def _make(host="dc1.corp.example", **kw):
        kw.setdefault("user_account_name", "svc@corp.example")
        kw.setdefault("password", "pw")
        return Endpoint(host=host, **kw)
    return _make


class FakeEngine:
    """Records every call; pages are served from `pages[host]` in order."""

    protocol = "ldap"
    driver = "fake"

    def __init__(self, *, response=None, pages=None, fail=None):
        self.calls = []
        self.response = response if response is not None else QueryResponse()
        self.pages = {k: list(v) for k, v in (pages or {}).items()}
        self.fail = fail
        self.closed = False

    def execute(self, request):
        self.calls.append(("execute", request))
        if self.fail is not None:
            raise self.fail
        if isinstance(request, QueryRequest):
            return self.response
        return None

    def execute_page(self, request, endpoint, cookie):
        self.calls.append(("execute_page", endpoint.host, cookie))
        if self.fail is not None:
            raise self.fail
        return self.pages[endpoint.host].pop(0)

    def test_connection(self, endpoint):
        self.calls.append(("test_connection", endpoint.host))
        return ConnectionResponse(host=endpoint.host, port=endpoint.port, success=True)

    def close(self):
        self.closed = True


@pytest.fixture()
def fake_engine():
    return FakeEngine()
