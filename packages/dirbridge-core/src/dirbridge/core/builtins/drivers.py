from __future__ import annotations

import logging
import ssl
import time
from typing import Any, Callable, Dict, List, Optional

import ldap3
from ldap3.core import exceptions as lex

from dirbridge.core.drivers.base import DriverInit
from dirbridge.core.exception import (
    AuthenticationError,
    DirectoryError,
    InvalidConnectionError,
    ProtocolError,
    UnknownError,
)
from dirbridge.core.observability import dur_ms
from dirbridge.core.query import (
    AddRequest,
    ChangeRequest,
    ConnectionResponse,
    Endpoint,
    EntityResponse,
    ModificationOperation,
    QueryRequest,
    QueryResponse,
    RemoveRequest,
)
from dirbridge.core.registry.drivers import register_driver

log = logging.getLogger("dirbridge.core.builtin.drivers")

# Simple Paged Results control (RFC 2696).
PAGED_RESULTS_OID = "1.2.840.113556.1.4.319"

_SEARCH_OK = {0, 3, 4}  # success, timeLimitExceeded, sizeLimitExceeded
_AUTH_CODES = {7, 8, 48, 49}
_CONNECTION_CODES = {51, 52}
_PROTOCOL_CODES = {1, 2, 12, 53}

_AUTH_EXC = (
    lex.LDAPBindError,
    lex.LDAPInvalidCredentialsResult,
    lex.LDAPStrongerAuthRequiredResult,
    lex.LDAPInappropriateAuthenticationResult,
    lex.LDAPAuthMethodNotSupportedResult,
)
_CONNECTION_EXC = (
    lex.LDAPCommunicationError,
    lex.LDAPSocketOpenError,
    lex.LDAPSessionTerminatedByServerError,
    lex.LDAPServerPoolExhaustedError,
    lex.LDAPBusyResult,
    lex.LDAPUnavailableResult,
    lex.LDAPStartTLSError,
)
_PROTOCOL_EXC = (
    lex.LDAPUnwillingToPerformResult,
    lex.LDAPProtocolErrorResult,
    lex.LDAPUnavailableCriticalExtensionResult,
    lex.LDAPOperationsErrorResult,
    lex.LDAPControlError,
)

_MODIFY_OPS = {
    ModificationOperation.ADD: ldap3.MODIFY_ADD,
    ModificationOperation.REPLACE: ldap3.MODIFY_REPLACE,
    ModificationOperation.REMOVE: ldap3.MODIFY_DELETE,
}


def map_ldap_error(exc: BaseException, *, endpoint: Endpoint, operation: str) -> DirectoryError:
    """Classify an ldap3 failure into the connector error taxonomy."""
    if isinstance(exc, DirectoryError):
        return exc
    msg = f"{operation} on {endpoint.address} failed: {exc}"
    if isinstance(exc, _AUTH_EXC):
        return AuthenticationError(msg)
    if isinstance(exc, _CONNECTION_EXC):
        return InvalidConnectionError(msg)
    if isinstance(exc, _PROTOCOL_EXC):
        return ProtocolError(msg)
    return UnknownError(msg)


def error_for_result(result: Dict[str, Any] | None, *, endpoint: Endpoint, operation: str) -> DirectoryError:
    result = result or {}
    code = result.get("result")
    desc = result.get("description") or "unknown"
    detail = result.get("message") or ""
    msg = f"{operation} on {endpoint.address} failed: result={code} ({desc}) {detail}".rstrip()
    if code in _AUTH_CODES:
        return AuthenticationError(msg)
    if code in _CONNECTION_CODES:
        return InvalidConnectionError(msg)
    if code in _PROTOCOL_CODES:
        return ProtocolError(msg)
    return UnknownError(msg)


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _unbind(conn: Any) -> None:
    conn.unbind()


class _Base:
    """Small concrete base for built-in engines (keeps init consistent)."""

    def __init__(self, init: DriverInit):
        self.protocol = init.protocol
        self.driver = init.driver
        self.settings = init.settings
        self.options = init.options or {}

    def close(self) -> None:
        return None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.close()
        except Exception:
            log.warning("non-critical engine operation failed; continuing", exc_info=True)


@register_driver("ldap", "ldap3")
class Ldap3Engine(_Base):
    """
    LDAP execution engine backed by ldap3.

    MUST-HAVE:
      - one bound connection per endpoint per request, parked on the request
      - primary/secondary failover via ServerPool
      - simple paged results for cursors
      - ldap3 failures classified into the connector error taxonomy
    """

    def _pool_cycles(self) -> int:
        return max(1, int(self.options.get("pool_cycles", 1)))

    def _connect_timeout(self) -> float:
        return float(self.options.get("connect_timeout", getattr(self.settings, "connect_timeout", 10)))

    def _receive_timeout(self) -> float:
        return float(self.options.get("receive_timeout", getattr(self.settings, "receive_timeout", 30)))

    def _server(self, endpoint: Endpoint):
        tls = None
        if endpoint.secured:
            validate = ssl.CERT_NONE if endpoint.ignore_ssl_validations else ssl.CERT_REQUIRED
            tls = ldap3.Tls(validate=validate)

        def _one(host: str, port: int):
            return ldap3.Server(
                host,
                port=port,
                use_ssl=endpoint.secured,
                tls=tls,
                get_info=ldap3.DSA,
                connect_timeout=self._connect_timeout(),
            )

        primary = _one(endpoint.host, endpoint.port)
        if not endpoint.secondary_host:
            return primary
        secondary = _one(endpoint.secondary_host, endpoint.secondary_port or endpoint.port)
        # Bounded cycles: the pool raises LDAPServerPoolExhaustedError once every server failed.
        return ldap3.ServerPool([primary, secondary], ldap3.FIRST, active=self._pool_cycles(), exhaust=False)

    def bind(self, endpoint: Endpoint):
        try:
            return ldap3.Connection(
                self._server(endpoint),
                user=endpoint.user_account_name,
                password=endpoint.password,
                auto_bind=True,
                raise_exceptions=False,
                receive_timeout=self._receive_timeout(),
            )
        except Exception as e:
            raise map_ldap_error(e, endpoint=endpoint, operation="bind") from e

    def _session(self, request: Any, endpoint: Endpoint):
        key = f"{self.protocol}:{endpoint.user_account_name}@{endpoint.address}"
        conn = request.session(key)
        if conn is None:
            conn = self.bind(endpoint)
            request.attach_session(key, conn, closer=_unbind)
            log.debug("bound session %s", key)
        return conn

    def _run(self, endpoint: Endpoint, operation: str, call: Callable[[], Any]) -> None:
        try:
            call()
        except Exception as e:
            raise map_ldap_error(e, endpoint=endpoint, operation=operation) from e

    def _check(self, conn: Any, endpoint: Endpoint, operation: str, ok_codes) -> None:
        result = conn.result or {}
        if result.get("result") not in ok_codes:
            raise error_for_result(result, endpoint=endpoint, operation=operation)

    # ------------------------------------------------------------------
    # search
    # ------------------------------------------------------------------

    def search_bases(self, request: QueryRequest, endpoint: Endpoint, conn: Any) -> List[str]:
        if request.search_paths:
            return list(request.search_paths)
        if endpoint.base_dn:
            return [endpoint.base_dn]
        info = getattr(conn.server, "info", None)
        other = getattr(info, "other", None) or {}
        contexts = _as_list(other.get("defaultNamingContext")) or _as_list(other.get("namingContexts"))
        if contexts:
            return [str(contexts[0])]
        raise ProtocolError(
            f"No search base for {endpoint.address}: set search_paths, endpoint.base_dn, "
            "or allow the server to publish defaultNamingContext"
        )

    def _search(self, conn: Any, request: QueryRequest, endpoint: Endpoint, base: str, *,
                paged: bool = False, cookie: Any = None) -> List[EntityResponse]:
        kwargs: Dict[str, Any] = dict(
            search_base=base,
            search_filter=request.search_sentence_text or "(objectClass=*)",
            search_scope=ldap3.SUBTREE,
            attributes=request.requested_fields or [ldap3.ALL_ATTRIBUTES],
            size_limit=request.size_limit,
            time_limit=request.time_limit,
        )
        if paged:
            kwargs["paged_size"] = request.page_chunk_size
            kwargs["paged_cookie"] = cookie
        self._run(endpoint, "search", lambda: conn.search(**kwargs))
        self._check(conn, endpoint, "search", _SEARCH_OK)

        entities: List[EntityResponse] = []
        for item in conn.response or []:
            if item.get("type") != "searchResEntry":
                continue
            attrs = {k: _as_list(v) for k, v in (item.get("attributes") or {}).items()}
            entities.append(EntityResponse(dn=item.get("dn"), attributes=attrs, endpoint_host=endpoint.host))
        return entities

    def _query(self, request: QueryRequest) -> QueryResponse:
        response = QueryResponse()
        failures: List[DirectoryError] = []
        for endpoint in request.endpoints:
            try:
                conn = self._session(request, endpoint)
                for base in self.search_bases(request, endpoint, conn):
                    response.entities.extend(self._search(conn, request, endpoint, base))
            except DirectoryError as e:
                failures.append(e)
                response.errors[endpoint.address] = str(e)
                log.warning("query failed on %s; continuing with remaining endpoints", endpoint.address, exc_info=True)
        if failures and len(failures) == len(request.endpoints):
            raise failures[0]
        return response

    def execute_page(self, request: QueryRequest, endpoint: Endpoint, cookie: Any) -> QueryResponse:
        conn = self._session(request, endpoint)
        base = self.search_bases(request, endpoint, conn)[0]
        entities = self._search(conn, request, endpoint, base, paged=True, cookie=cookie)
        controls = (conn.result or {}).get("controls") or {}
        next_cookie = ((controls.get(PAGED_RESULTS_OID) or {}).get("value") or {}).get("cookie")
        return QueryResponse(entities=entities, page_cookie=next_cookie or None, endpoint_host=endpoint.host)

    # ------------------------------------------------------------------
    # modifications
    # ------------------------------------------------------------------

    def _modify(self, request: ChangeRequest) -> None:
        changes: Dict[str, list] = {}
        for d in request.modification_details_list:
            changes.setdefault(str(d.field), []).append((_MODIFY_OPS[d.operation], _as_list(d.value)))
        endpoint = request.endpoint
        conn = self._session(request, endpoint)
        dn = request.translated_dn or request.dn
        self._run(endpoint, "modify", lambda: conn.modify(dn, changes))
        self._check(conn, endpoint, "modify", {0})

    def _delete(self, request: RemoveRequest) -> None:
        endpoint = request.endpoint
        conn = self._session(request, endpoint)
        dn = request.translated_dn or request.dn
        self._run(endpoint, "delete", lambda: conn.delete(dn))
        self._check(conn, endpoint, "delete", {0})

    def _add(self, request: AddRequest) -> None:
        endpoint = request.endpoint
        conn = self._session(request, endpoint)
        dn = request.translated_dn or request.dn
        self._run(endpoint, "add", lambda: conn.add(dn, attributes=dict(request.translated_fields)))
        self._check(conn, endpoint, "add", {0})

    def execute(self, request: Any) -> Optional[QueryResponse]:
        if isinstance(request, QueryRequest):
            return self._query(request)
        if isinstance(request, ChangeRequest):
            return self._modify(request)
        if isinstance(request, RemoveRequest):
            return self._delete(request)
        if isinstance(request, AddRequest):
            return self._add(request)
        raise ProtocolError(f"ldap3 engine cannot execute {type(request).__name__}")

    def test_connection(self, endpoint: Endpoint) -> ConnectionResponse:
        t0 = time.perf_counter()
        try:
            conn = self.bind(endpoint)
        except InvalidConnectionError as e:
            return ConnectionResponse(
                host=endpoint.host,
                port=endpoint.port,
                success=False,
                error_kind="connection",
                message=str(e),
                duration_ms=dur_ms(t0, time.perf_counter()),
            )
        try:
            conn.unbind()
        except Exception:
            log.warning("unbind after connection test failed; continuing", exc_info=True)
        return ConnectionResponse(
            host=endpoint.host,
            port=endpoint.port,
            success=True,
            duration_ms=dur_ms(t0, time.perf_counter()),
        )
