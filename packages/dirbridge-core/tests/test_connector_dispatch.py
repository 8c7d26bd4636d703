from __future__ import annotations

import pytest

from conftest import FakeEngine
from dirbridge.core.connector import Connector
from dirbridge.core.exception import RequestTypeMismatchError
from dirbridge.core.query import (
    AddRequest,
    ChangeRequest,
    QueryRequest,
    RemoveRequest,
    RequestType,
)


def _requests(endpoint):
    return {
        RequestType.QUERY: QueryRequest(endpoints=[endpoint()]),
        RequestType.CHANGE: ChangeRequest(endpoint=endpoint(), dn="CN=a,DC=corp").replace("description", "x"),
        RequestType.REMOVE: RemoveRequest(endpoint=endpoint(), dn="CN=a,DC=corp"),
        RequestType.ADD: AddRequest(endpoint=endpoint(), fields={"cn": "a"}, base_dn="DC=corp"),
    }


_METHODS = {
    RequestType.QUERY: "execute",
    RequestType.CHANGE: "execute_change_request",
    RequestType.REMOVE: "execute_remove_request",
    RequestType.ADD: "execute_add_request",
}


@pytest.mark.parametrize("bound", list(RequestType))
@pytest.mark.parametrize("called", list(RequestType))
def test_execute_methods_require_matching_request_type(bound, called, endpoint, settings):
    if bound is called:
        return
    engine = FakeEngine()
    c = Connector(_requests(endpoint)[bound], engine=engine, settings=settings)

    with pytest.raises(RequestTypeMismatchError) as ei:
        getattr(c, _METHODS[called])()

    assert ei.value.bound == bound.value
    assert ei.value.expected == called.value
    assert engine.calls == []


@pytest.mark.parametrize("rtype", list(RequestType))
def test_matching_execute_method_dispatches_to_engine(rtype, endpoint, settings):
    engine = FakeEngine()
    request = _requests(endpoint)[rtype]
    c = Connector(request, engine=engine, settings=settings)

    getattr(c, _METHODS[rtype])()

    assert engine.calls == [("execute", request)]


def test_binding_reports_request_type(endpoint, settings):
    reqs = _requests(endpoint)
    c = Connector(reqs[RequestType.QUERY], engine=FakeEngine(), settings=settings)
    assert c.get_request_type() is RequestType.QUERY

    c.set_request(reqs[RequestType.REMOVE])
    assert c.get_request_type() is RequestType.REMOVE
    assert c.request is reqs[RequestType.REMOVE]


def test_rebinding_does_not_close_previous_request(endpoint, settings):
    reqs = _requests(endpoint)
    first = reqs[RequestType.QUERY]
    closed = []
    first.attach_session("k", object(), closer=lambda s: closed.append(s))

    c = Connector(first, engine=FakeEngine(), settings=settings)
    c.set_request(reqs[RequestType.ADD])

    assert closed == []
    assert not first.closed


def test_binding_unknown_variant_is_type_error(settings):
    with pytest.raises(TypeError):
        Connector(object(), engine=FakeEngine(), settings=settings)


def test_get_cursor_is_absent_for_non_query_types(endpoint, settings):
    reqs = _requests(endpoint)
    for rtype in (RequestType.CHANGE, RequestType.REMOVE, RequestType.ADD):
        c = Connector(reqs[rtype], engine=FakeEngine(), settings=settings)
        assert c.get_cursor() is None


def test_close_twice_releases_sessions_once(endpoint, settings):
    q = QueryRequest(endpoints=[endpoint()])
    released = []
    q.attach_session("ldap:svc@dc1:389", "conn", closer=released.append)
    c = Connector(q, engine=FakeEngine(), settings=settings)

    c.close()
    assert q.closed
    assert q.session("ldap:svc@dc1:389") is None

    c.close()

    assert released == ["conn"]
    assert q.closed
    assert q.session("ldap:svc@dc1:389") is None
    assert c.request is q


def test_close_without_execute_is_noop(endpoint, settings):
    c = Connector(RemoveRequest(endpoint=endpoint(), dn="CN=a,DC=corp"), engine=FakeEngine(), settings=settings)
    c.close()
    assert c.request.closed


def test_context_manager_closes_request(endpoint, settings):
    q = QueryRequest(endpoints=[endpoint()])
    released = []
    q.attach_session("k", "conn", closer=released.append)
    with Connector(q, engine=FakeEngine(), settings=settings):
        pass
    assert released == ["conn"]


def test_close_continues_when_a_session_closer_fails(endpoint, settings):
    q = QueryRequest(endpoints=[endpoint()])
    released = []

    def boom(_):
        raise OSError("socket already gone")

    q.attach_session("a", "a", closer=boom)
    q.attach_session("b", "b", closer=released.append)

    Connector(q, engine=FakeEngine(), settings=settings).close()

    assert released == ["b"]
    assert q.session("a") is None
