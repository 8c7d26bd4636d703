from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from dirbridge.core.concurrency import run_thread_pool
from dirbridge.core.cursor import Cursor
from dirbridge.core.drivers.base import ExecutionEngine
from dirbridge.core.exception import InvalidConfigurationError, RequestTypeMismatchError
from dirbridge.core.language.criteria import Criteria
from dirbridge.core.language.director import RequestBridgeDirector
from dirbridge.core.observability import RequestObserver, load_metrics_sink, log_event
from dirbridge.core.query import (
    AddRequest,
    ChangeRequest,
    ConnectionResponse,
    Endpoint,
    QueryRequest,
    QueryResponse,
    RemoveRequest,
    Request,
    RequestType,
    request_type_of,
)
from dirbridge.core.registry.drivers import create_engine
from dirbridge.core.runtime.settings import Settings, load_settings

log = logging.getLogger("dirbridge.core.connector")


@dataclass(frozen=True)
class _Binding:
    request_type: RequestType
    request: Request


class Connector:
    """Facade for query/change/remove/add operations against a directory.

    A connector is bound to exactly one request at a time; the bound request's type
    decides which execute method is legal:

        with Connector(QueryRequest(endpoints=[ep], search_sentence=s)) as c:
            response = c.execute()

    Every execute call validates the request, translates it into protocol criteria
    through a fresh director, copies the translated fields back onto the request and
    hands it to the execution engine. Nothing is retried here; engine errors
    propagate unchanged.

    Not thread-safe: serialize access or use one connector per concurrent operation.
    """

    def __init__(
        self,
        request: Request,
        *,
        engine: ExecutionEngine | None = None,
        director_factory: Callable[[], Any] | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or load_settings()
        self._engine = engine
        self._director_factory = director_factory or RequestBridgeDirector
        self._observer = RequestObserver(settings=self.settings, logger=log, metrics=load_metrics_sink(self.settings))
        self._binding: Optional[_Binding] = None
        self.set_request(request)

    # ------------------------------------------------------------------
    # binding
    # ------------------------------------------------------------------

    def set_request(self, request: Request) -> None:
        """Bind a request variant, replacing any previous binding (the old one is not closed)."""
        self._binding = _Binding(request_type_of(request), request)

    def get_request_type(self) -> RequestType:
        return self._binding.request_type

    @property
    def request_type(self) -> RequestType:
        return self._binding.request_type

    @property
    def request(self) -> Request:
        return self._binding.request

    @property
    def engine(self) -> ExecutionEngine:
        if self._engine is None:
            self._engine = create_engine(self.settings)
        return self._engine

    def _require(self, expected: RequestType, method: str) -> Request:
        binding = self._binding
        if binding.request_type is not expected:
            raise RequestTypeMismatchError(method=method, bound=binding.request_type.value, expected=expected.value)
        return binding.request

    # ------------------------------------------------------------------
    # validation + translation
    # ------------------------------------------------------------------

    def _validate_query(self, query: QueryRequest) -> None:
        if not query.endpoints:
            raise InvalidConfigurationError("Endpoints are required")
        if query.page_chunk_size < 0:
            raise InvalidConfigurationError("page_chunk_size must not be negative")
        if query.size_limit < query.page_chunk_size:
            raise InvalidConfigurationError("size_limit must be greater than or equal to page_chunk_size")

        if query.ignore_ssl_validations is not None:
            for endpoint in query.endpoints:
                endpoint.ignore_ssl_validations = query.ignore_ssl_validations

        invalid = [ep for ep in query.endpoints if not ep.is_valid()]
        if invalid:
            raise InvalidConfigurationError(
                f"Critical endpoint info missing for {len(invalid)} endpoint(s): {[ep.host for ep in invalid]}"
            )

    def _validate_single(self, request: ChangeRequest | RemoveRequest | AddRequest) -> None:
        endpoint = request.endpoint
        if endpoint is None:
            raise InvalidConfigurationError("Endpoint is required")
        if request.ignore_ssl_validations is not None:
            endpoint.ignore_ssl_validations = request.ignore_ssl_validations
        if not endpoint.is_valid():
            raise InvalidConfigurationError(f"Critical endpoint info missing for {endpoint.host}")

    def _validate(self, binding: _Binding) -> None:
        if binding.request_type is RequestType.QUERY:
            self._validate_query(binding.request)
        else:
            self._validate_single(binding.request)

    def _translate(self, request: Request) -> Criteria:
        director = self._director_factory()
        director.build(request)
        criteria = director.get()
        log.debug("criteria for %s request: %s", request_type_of(request).value, criteria)
        return criteria

    @contextmanager
    def _observe(self, operation: str):
        rtype = self._binding.request_type.value
        t0 = self._observer.start(request_type=rtype, operation=operation)
        try:
            yield
        except Exception as e:
            self._observer.end(t0, request_type=rtype, operation=operation, status="FAILED", error=type(e).__name__)
            raise
        self._observer.end(t0, request_type=rtype, operation=operation, status="SUCCESS")

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------

    def execute(self) -> QueryResponse:
        """Run the bound query request and return its response."""
        query: QueryRequest = self._require(RequestType.QUERY, "execute")
        with self._observe("execute"):
            self._validate_query(query)
            criteria = self._translate(query)
            query.requested_fields = list(criteria.requested_fields)
            query.search_sentence_text = criteria.search_filter
            return self.engine.execute(query)

    def execute_page(self, endpoint: Endpoint, cookie: Any = None) -> QueryResponse:
        """Fetch one page of the bound paged query from one endpoint (used by Cursor)."""
        query: QueryRequest = self._require(RequestType.QUERY, "execute_page")
        with self._observe("execute_page"):
            self._validate_query(query)
            if not query.is_paged:
                raise InvalidConfigurationError("page_chunk_size is not configured, paging can't be handled")
            criteria = self._translate(query)
            query.requested_fields = list(criteria.requested_fields)
            query.search_sentence_text = criteria.search_filter
            return self.engine.execute_page(query, endpoint, cookie)

    def execute_change_request(self) -> None:
        change: ChangeRequest = self._require(RequestType.CHANGE, "execute_change_request")
        with self._observe("execute_change_request"):
            self._validate_single(change)
            criteria = self._translate(change)
            change.translated_dn = criteria.translated_dn
            change.modification_details_list = list(criteria.modification_details_list)
            self.engine.execute(change)

    def execute_remove_request(self) -> None:
        remove: RemoveRequest = self._require(RequestType.REMOVE, "execute_remove_request")
        with self._observe("execute_remove_request"):
            self._validate_single(remove)
            criteria = self._translate(remove)
            remove.translated_dn = criteria.translated_dn
            self.engine.execute(remove)

    def execute_add_request(self) -> None:
        add: AddRequest = self._require(RequestType.ADD, "execute_add_request")
        with self._observe("execute_add_request"):
            self._validate_single(add)
            criteria = self._translate(add)
            add.translated_fields = dict(criteria.fields)
            add.translated_dn = criteria.translated_dn
            self.engine.execute(add)

    def get_cursor(self) -> Optional[Cursor]:
        """Cursor over the pages of the bound query; None when a non-query request is bound."""
        binding = self._binding
        if binding.request_type is not RequestType.QUERY:
            return None
        query: QueryRequest = binding.request
        if not query.is_paged:
            raise InvalidConfigurationError("page_chunk_size is not configured, paging can't be handled")
        if len(query.search_paths) > 1:
            raise InvalidConfigurationError("Paged queries support a single search path")
        return Cursor(self, query, query.endpoints)

    def test_connection(self) -> ConnectionResponse:
        """Probe connectivity: the first endpoint of a query, or the single endpoint otherwise."""
        binding = self._binding
        self._validate(binding)
        if binding.request_type is RequestType.QUERY:
            endpoint = binding.request.endpoints[0]
        else:
            endpoint = binding.request.endpoint
        response = self.engine.test_connection(endpoint)
        log_event(log, settings=self.settings, level=logging.INFO, event="connection_test",
                  host=response.host, port=response.port, success=response.success,
                  duration_ms=response.duration_ms)
        return response

    def test_connections(self) -> List[ConnectionResponse]:
        """Probe every endpoint of the bound request concurrently (input order kept)."""
        binding = self._binding
        self._validate(binding)
        if binding.request_type is RequestType.QUERY:
            endpoints = list(binding.request.endpoints)
        else:
            endpoints = [binding.request.endpoint]
        return run_thread_pool(endpoints, self.engine.test_connection, workers=self.settings.pool_workers)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release the bound request's sessions. Idempotent."""
        binding = self._binding
        if binding is None:
            return
        binding.request.close()

    def __enter__(self) -> "Connector":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
