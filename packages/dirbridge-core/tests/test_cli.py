from __future__ import annotations

import json
import textwrap
from pathlib import Path

import pytest

from dirbridge.core.cli import _parse_where, main
from dirbridge.core.exception import SpecError
from dirbridge.core.query import ConnectionResponse, EntityResponse, Operator, QueryResponse
from dirbridge.core.registry.drivers import REGISTRY, register_driver

SEEN = {}


@register_driver("ldap", "cli-fake")
class CliFakeEngine:
    def __init__(self, init):
        self.protocol = init.protocol
        self.driver = init.driver

    def execute(self, request):
        SEEN["filter"] = request.search_sentence_text
        SEEN["fields"] = list(request.requested_fields)
        return QueryResponse(entities=[
            EntityResponse(dn="CN=jdoe,DC=corp", attributes={"cn": ["jdoe"]}, endpoint_host=request.endpoints[0].host)
        ])

    def execute_page(self, request, endpoint, cookie):
        rows = [EntityResponse(dn=f"CN={endpoint.host},DC=corp")]
        return QueryResponse(entities=rows, page_cookie=None, endpoint_host=endpoint.host)

    def test_connection(self, endpoint):
        ok = endpoint.host != "down.corp"
        return ConnectionResponse(host=endpoint.host, port=endpoint.port, success=ok,
                                  error_kind=None if ok else "connection", message=None if ok else "refused")

    def close(self):
        return None


@pytest.fixture(autouse=True)
def _cli_env(monkeypatch, tmp_path: Path):
    p = tmp_path / "profiles.yaml"
    p.write_text(textwrap.dedent(
        """
        corp:
          host: dc1.corp
          user: svc
          password_env: CORP_PW
        down:
          host: down.corp
          user: svc
          password: x
        """
    ).strip() + "\n", encoding="utf-8")
    monkeypatch.setenv("CORP_PW", "pw")
    monkeypatch.setenv("DIRBRIDGE_PROFILES_FILE", str(p))
    monkeypatch.setenv("DIRBRIDGE_DRIVER", "ldap:cli-fake")
    SEEN.clear()
    yield p


def teardown_module(module):
    REGISTRY._items.pop(("ldap", "cli-fake"), None)


def test_profiles_lists_names_without_passwords(capsys):
    assert main(["profiles", "--json"]) == 0
    out = capsys.readouterr().out
    rows = json.loads(out)
    assert [r["name"] for r in rows] == ["corp", "down"]
    assert all("password" not in r for r in rows)


def test_test_connection_exit_code(capsys):
    assert main(["test-connection", "--profile", "corp"]) == 0
    assert "OK: corp" in capsys.readouterr().out

    assert main(["test-connection", "--profile", "corp", "--profile", "down", "--json"]) == 2
    rows = json.loads(capsys.readouterr().out)
    assert [r["success"] for r in rows] == [True, False]


def test_query_prints_entities(capsys):
    rc = main(["query", "--profile", "corp", "--object-type", "USER", "--field", "cn",
               "--where", "sAMAccountName=jdoe", "--json"])
    assert rc == 0
    line = json.loads(capsys.readouterr().out.strip())
    assert line["dn"] == "CN=jdoe,DC=corp"
    assert SEEN["fields"] == ["cn"]
    assert SEEN["filter"] == "(&(&(objectCategory=person)(objectClass=user))(sAMAccountName=jdoe))"


def test_paged_query_walks_every_profile(capsys):
    rc = main(["query", "--profile", "corp", "--profile", "down", "--page-size", "10"])
    assert rc == 0
    captured = capsys.readouterr()
    assert "CN=dc1.corp,DC=corp" in captured.out
    assert "CN=down.corp,DC=corp" in captured.out
    assert "2 entries" in captured.err


def test_unknown_profile_is_reported(capsys):
    assert main(["query", "--profile", "nope"]) == 2
    assert "Unknown profile" in capsys.readouterr().err


def test_invalid_request_is_reported(capsys):
    assert main(["query", "--profile", "corp", "--size-limit", "5", "--page-size", "10"]) == 2
    assert "InvalidConfigurationError" in capsys.readouterr().err


def test_drivers_lists_active_engine(capsys):
    assert main(["drivers"]) == 0
    assert "ldap:cli-fake (active)" in capsys.readouterr().out


def test_parse_where_forms():
    assert _parse_where("cn=*").operator is Operator.EXISTS
    assert _parse_where("cn~=do").operator is Operator.CONTAINS
    assert _parse_where("cn=x").value == "x"
    with pytest.raises(SpecError):
        _parse_where("nonsense")
