from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from dirbridge.core.query import ConnectionResponse, Endpoint, QueryRequest, QueryResponse


@runtime_checkable
class ExecutionEngine(Protocol):
    """
    Public execution-engine contract.

    An engine performs the actual protocol exchange for a request the connector has
    already validated and translated. It owns connectivity, timeouts and any retry
    policy; the connector above it does none of that.

    Engines should:
      - raise AuthenticationError / InvalidConnectionError / ProtocolError / UnknownError
        (dirbridge.core.exception) and nothing else for remote failures
      - park per-request server sessions on the request (attach_session) so that
        request.close() releases them
      - report an unreachable endpoint from test_connection() as a failed
        ConnectionResponse instead of raising

    A non-paged query over several endpoints is best effort: a failing endpoint
    (AuthenticationError included) is recorded in QueryResponse.errors and the
    remaining endpoints are still queried. The first error is raised only when every
    endpoint failed, so callers that need all-or-nothing must check `errors`.
    execute_page() works on one endpoint and always raises.
    """

    protocol: str
    driver: str

    def execute(self, request: Any) -> Optional[QueryResponse]: ...

    def execute_page(self, request: QueryRequest, endpoint: Endpoint, cookie: Any) -> QueryResponse: ...

    def test_connection(self, endpoint: Endpoint) -> ConnectionResponse: ...

    def close(self) -> None: ...


@dataclass
class DriverInit:
    protocol: str
    driver: str
    settings: Any
    options: Dict[str, Any]
