from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, List, Optional

from dirbridge.core.exception import InvalidConfigurationError
from dirbridge.core.query import Endpoint, QueryRequest, QueryResponse, RequestType

if TYPE_CHECKING:
    from dirbridge.core.connector import Connector

log = logging.getLogger("dirbridge.core.cursor")


class Cursor:
    """Forward-only iterator over the pages of a paged query.

    Walks the endpoints captured at creation time in order; for each one it keeps
    asking the connector for the next page until the engine stops returning a page
    cookie, a page comes back short, or the query's size_limit is reached.

        with Connector(query) as c:
            for page in c.get_cursor():
                ...

    A consumed cursor stays exhausted; call Connector.get_cursor() again to restart.
    The cursor borrows the connector, it never closes it.
    """

    def __init__(self, connector: "Connector", query: QueryRequest, endpoints: Iterable[Endpoint]):
        self._connector = connector
        self._query = query
        self._endpoints = tuple(endpoints)
        self._index = 0
        self._cookie: Any = None
        self._fetched = 0
        self._exhausted = not self._endpoints

    @property
    def endpoints(self) -> List[Endpoint]:
        return list(self._endpoints)

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def __iter__(self) -> "Cursor":
        return self

    def __next__(self) -> QueryResponse:
        if self._connector.get_request_type() is not RequestType.QUERY:
            raise InvalidConfigurationError(
                "Cursor no longer matches its connector: the connector is now bound to a "
                f"{self._connector.get_request_type().value} request"
            )
        if self._connector.request is not self._query:
            raise InvalidConfigurationError(
                "Cursor no longer matches its connector: the connector is now bound to another query"
            )
        if self._exhausted:
            raise StopIteration

        endpoint = self._endpoints[self._index]
        page = self._connector.execute_page(endpoint, self._cookie)

        query = self._query
        rows = len(page.entities)
        self._fetched += rows
        done = (
            not page.page_cookie
            or rows < query.page_chunk_size
            or (query.size_limit > 0 and self._fetched >= query.size_limit)
        )
        if done:
            log.debug("endpoint %s exhausted after %d row(s)", endpoint.address, self._fetched)
            self._advance()
        else:
            self._cookie = page.page_cookie
        return page

    def _advance(self) -> None:
        self._index += 1
        self._cookie = None
        self._fetched = 0
        self._exhausted = self._index >= len(self._endpoints)

    def next_page(self) -> Optional[QueryResponse]:
        """Like next(cursor), but returns None instead of raising StopIteration."""
        return next(self, None)
