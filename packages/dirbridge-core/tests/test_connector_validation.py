from __future__ import annotations

import pytest

from conftest import FakeEngine
from dirbridge.core.connector import Connector
from dirbridge.core.exception import AuthenticationError, InvalidConfigurationError, InvalidConnectionError
from dirbridge.core.query import (
    AddRequest,
    ChangeRequest,
    ConnectionResponse,
    Endpoint,
    QueryRequest,
    RemoveRequest,
)


class CountingDirector:
    builds = 0

    def build(self, request):
        CountingDirector.builds += 1
        raise AssertionError("director must not be reached")

    def get(self):
        raise AssertionError("director must not be reached")


@pytest.fixture()
def counting_director():
    CountingDirector.builds = 0
    return CountingDirector


def test_page_chunk_larger_than_size_limit_rejected_before_translation(endpoint, settings, counting_director):
    engine = FakeEngine()
    q = QueryRequest(endpoints=[endpoint()], size_limit=10, page_chunk_size=50)
    c = Connector(q, engine=engine, director_factory=counting_director, settings=settings)

    with pytest.raises(InvalidConfigurationError):
        c.execute()

    assert counting_director.builds == 0
    assert engine.calls == []


def test_empty_endpoints_rejected(settings, counting_director):
    c = Connector(QueryRequest(endpoints=[]), engine=FakeEngine(), director_factory=counting_director, settings=settings)
    with pytest.raises(InvalidConfigurationError, match="Endpoints are required"):
        c.execute()


def test_negative_page_chunk_rejected(endpoint, settings):
    c = Connector(QueryRequest(endpoints=[endpoint()], page_chunk_size=-1), engine=FakeEngine(), settings=settings)
    with pytest.raises(InvalidConfigurationError):
        c.execute()


def test_invalid_endpoint_rejected(settings):
    bad = Endpoint(host="dc1", user_account_name=None, password="pw")
    c = Connector(QueryRequest(endpoints=[bad]), engine=FakeEngine(), settings=settings)
    with pytest.raises(InvalidConfigurationError, match="dc1"):
        c.execute()


def test_ssl_override_propagates_to_every_endpoint(endpoint, settings):
    a = endpoint("dc1", ignore_ssl_validations=False)
    b = endpoint("dc2")
    q = QueryRequest(endpoints=[a, b], ignore_ssl_validations=True)

    Connector(q, engine=FakeEngine(), settings=settings).execute()

    assert a.ignore_ssl_validations is True
    assert b.ignore_ssl_validations is True


def test_unset_ssl_override_leaves_endpoints_alone(endpoint, settings):
    a = endpoint("dc1", ignore_ssl_validations=False)
    b = endpoint("dc2")
    Connector(QueryRequest(endpoints=[a, b]), engine=FakeEngine(), settings=settings).execute()

    assert a.ignore_ssl_validations is False
    assert b.ignore_ssl_validations is None


@pytest.mark.parametrize(
    "request_obj, method",
    [
        (ChangeRequest(dn="CN=a,DC=corp").replace("description", "x"), "execute_change_request"),
        (RemoveRequest(dn="CN=a,DC=corp"), "execute_remove_request"),
        (AddRequest(fields={"cn": "a"}, base_dn="DC=corp"), "execute_add_request"),
    ],
)
def test_single_endpoint_requests_require_an_endpoint(request_obj, method, settings, counting_director):
    engine = FakeEngine()
    c = Connector(request_obj, engine=engine, director_factory=counting_director, settings=settings)
    with pytest.raises(InvalidConfigurationError, match="Endpoint is required"):
        getattr(c, method)()
    assert counting_director.builds == 0
    assert engine.calls == []


def test_single_endpoint_ssl_override_and_validity(settings):
    ep = Endpoint(host="dc1", user_account_name="svc", password="pw", ignore_ssl_validations=False)
    req = RemoveRequest(endpoint=ep, dn="CN=a,DC=corp", ignore_ssl_validations=True)
    Connector(req, engine=FakeEngine(), settings=settings).execute_remove_request()
    assert ep.ignore_ssl_validations is True

    bad = AddRequest(endpoint=Endpoint(host="", user_account_name="svc", password="pw"), fields={"cn": "a"},
                     base_dn="DC=corp")
    with pytest.raises(InvalidConfigurationError):
        Connector(bad, engine=FakeEngine(), settings=settings).execute_add_request()


def test_get_cursor_requires_paging(endpoint, settings):
    c = Connector(QueryRequest(endpoints=[endpoint()]), engine=FakeEngine(), settings=settings)
    with pytest.raises(InvalidConfigurationError):
        c.get_cursor()


def test_get_cursor_rejects_multiple_search_paths(endpoint, settings):
    q = QueryRequest(endpoints=[endpoint()], page_chunk_size=10, search_paths=["OU=a,DC=corp", "OU=b,DC=corp"])
    with pytest.raises(InvalidConfigurationError):
        Connector(q, engine=FakeEngine(), settings=settings).get_cursor()


def test_get_cursor_keeps_endpoint_order(endpoint, settings):
    eps = [endpoint("dc1"), endpoint("dc2"), endpoint("dc3")]
    cur = Connector(QueryRequest(endpoints=eps, page_chunk_size=10), engine=FakeEngine(), settings=settings).get_cursor()
    assert cur.endpoints == eps


def test_test_connection_probes_first_query_endpoint_only(endpoint, settings):
    engine = FakeEngine()
    q = QueryRequest(endpoints=[endpoint("dc1"), endpoint("dc2")])
    res = Connector(q, engine=engine, settings=settings).test_connection()

    assert res.success
    assert engine.calls == [("test_connection", "dc1")]


def test_test_connection_uses_single_endpoint_for_non_query(endpoint, settings):
    engine = FakeEngine()
    c = Connector(ChangeRequest(endpoint=endpoint("dc9"), dn="CN=a,DC=corp"), engine=engine, settings=settings)
    c.test_connection()
    assert engine.calls == [("test_connection", "dc9")]


def test_test_connection_validates_first(settings):
    engine = FakeEngine()
    c = Connector(QueryRequest(endpoints=[]), engine=engine, settings=settings)
    with pytest.raises(InvalidConfigurationError):
        c.test_connection()
    assert engine.calls == []


def test_test_connection_returns_failed_response_for_unreachable_endpoint(endpoint, settings):
    class Down(FakeEngine):
        def test_connection(self, ep):
            return ConnectionResponse(host=ep.host, port=ep.port, success=False, error_kind="connection",
                                      message="connection refused")

    res = Connector(QueryRequest(endpoints=[endpoint()]), engine=Down(), settings=settings).test_connection()
    assert not res.success
    assert res.error_kind == "connection"


def test_test_connection_propagates_authentication_errors(endpoint, settings):
    class Denied(FakeEngine):
        def test_connection(self, ep):
            raise AuthenticationError("invalid credentials")

    with pytest.raises(AuthenticationError):
        Connector(QueryRequest(endpoints=[endpoint()]), engine=Denied(), settings=settings).test_connection()


def test_test_connections_probes_all_endpoints_in_order(endpoint, settings):
    engine = FakeEngine()
    q = QueryRequest(endpoints=[endpoint("dc1"), endpoint("dc2"), endpoint("dc3")])
    results = Connector(q, engine=engine, settings=settings).test_connections()
    assert [r.host for r in results] == ["dc1", "dc2", "dc3"]


def test_engine_errors_propagate_unchanged(endpoint, settings):
    err = InvalidConnectionError("dc1:389 unreachable")
    c = Connector(QueryRequest(endpoints=[endpoint()]), engine=FakeEngine(fail=err), settings=settings)
    with pytest.raises(InvalidConnectionError) as ei:
        c.execute()
    assert ei.value is err
