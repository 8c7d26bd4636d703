"""Protocol-agnostic request/response model.

Requests describe *what* the caller wants done against a directory. Translation
(`dirbridge.core.language`) fills the protocol-facing attributes
(`requested_fields`, `search_sentence_text`, `translated_dn`, ...) right before
an execution engine sees the request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

log = logging.getLogger("dirbridge.core.query")


class RequestType(str, Enum):
    QUERY = "QUERY"
    CHANGE = "CHANGE"
    REMOVE = "REMOVE"
    ADD = "ADD"


class DirectoryType(str, Enum):
    MS_ACTIVE_DIRECTORY = "MS_ACTIVE_DIRECTORY"
    OPEN_LDAP = "OPEN_LDAP"


class ObjectType(str, Enum):
    USER = "USER"
    GROUP = "GROUP"
    COMPUTER = "COMPUTER"
    OU = "OU"
    ANY = "ANY"


class FieldType(str, Enum):
    """Directory-neutral field names. Mapped to attributes per DirectoryType."""

    COMMON_NAME = "common_name"
    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"
    DISPLAY_NAME = "display_name"
    EMAIL = "email"
    LOGON_NAME = "logon_name"
    USER_PRINCIPAL_NAME = "user_principal_name"
    DISTINGUISHED_NAME = "distinguished_name"
    OBJECT_CLASS = "object_class"
    OBJECT_GUID = "object_guid"
    OBJECT_SID = "object_sid"
    MEMBER = "member"
    MEMBER_OF = "member_of"
    DESCRIPTION = "description"
    PHONE = "phone"
    DEPARTMENT = "department"
    TITLE = "title"
    MANAGER = "manager"
    PASSWORD = "password"
    ACCOUNT_CONTROL = "account_control"
    WHEN_CREATED = "when_created"
    WHEN_CHANGED = "when_changed"


# A field is either a neutral FieldType or a raw attribute name.
FieldRef = Union[FieldType, str]


class Operator(str, Enum):
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"
    CONTAINS = "CONTAINS"
    GREATER_OR_EQUAL = "GREATER_OR_EQUAL"
    LESS_OR_EQUAL = "LESS_OR_EQUAL"
    EXISTS = "EXISTS"


class Conjunction(str, Enum):
    AND = "AND"
    OR = "OR"


class ModificationOperation(str, Enum):
    ADD = "ADD"
    REPLACE = "REPLACE"
    REMOVE = "REMOVE"


@dataclass
class Endpoint:
    host: Optional[str] = None
    port: Optional[int] = None
    user_account_name: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    secured: bool = False
    # Tri-state: None means "not configured", requests may override it.
    ignore_ssl_validations: Optional[bool] = None
    secondary_host: Optional[str] = None
    secondary_port: Optional[int] = None
    base_dn: Optional[str] = None

    def __post_init__(self) -> None:
        if self.port is None:
            self.port = 636 if self.secured else 389

    def is_valid(self) -> bool:
        """All critical connection fields are present."""
        return (
            bool(self.host and self.host.strip())
            and self.port is not None
            and bool(self.user_account_name and self.user_account_name.strip())
            and self.password is not None
        )

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class Criterion:
    field: FieldRef
    value: Any = None
    operator: Operator = Operator.EQUALS


@dataclass
class Sentence:
    criteria: List[Union[Criterion, "Sentence"]] = field(default_factory=list)
    conjunction: Conjunction = Conjunction.AND

    def add(self, item: Union[Criterion, "Sentence"]) -> "Sentence":
        self.criteria.append(item)
        return self


@dataclass
class ModificationDetails:
    field: FieldRef
    value: Any = None
    operation: ModificationOperation = ModificationOperation.REPLACE


class _SessionHolder:
    """Sessions an execution engine parks on a request between calls.

    Engines keep bound connections here so successive pages of one query reuse the
    same server session. `close()` releases them; it is idempotent.
    """

    def _session_map(self) -> Dict[str, tuple]:
        sessions = self.__dict__.get("_sessions")
        if sessions is None:
            sessions = {}
            self.__dict__["_sessions"] = sessions
        return sessions

    def attach_session(self, key: str, session: Any, closer: Optional[Callable[[Any], None]] = None) -> None:
        self._session_map()[key] = (session, closer)
        self.__dict__["_closed"] = False

    def session(self, key: str) -> Any:
        item = self._session_map().get(key)
        return item[0] if item else None

    @property
    def closed(self) -> bool:
        return bool(self.__dict__.get("_closed", False))

    def close(self) -> None:
        sessions = self._session_map()
        for key, (session, closer) in list(sessions.items()):
            try:
                if closer is not None:
                    closer(session)
                elif hasattr(session, "close"):
                    session.close()
            except Exception:
                log.warning("session close failed for %s; continuing", key, exc_info=True)
        sessions.clear()
        self.__dict__["_closed"] = True


@dataclass(eq=False)
class QueryRequest(_SessionHolder):
    endpoints: List[Endpoint] = field(default_factory=list)
    directory_type: DirectoryType = DirectoryType.MS_ACTIVE_DIRECTORY
    object_type: ObjectType = ObjectType.ANY
    fields: List[FieldRef] = field(default_factory=list)
    search_sentence: Optional[Sentence] = None
    search_paths: List[str] = field(default_factory=list)
    size_limit: int = 1000
    time_limit: int = 0
    page_chunk_size: int = 0
    ignore_ssl_validations: Optional[bool] = None

    # Filled in by translation.
    requested_fields: List[str] = field(default_factory=list)
    search_sentence_text: Optional[str] = None

    @property
    def is_paged(self) -> bool:
        return self.page_chunk_size > 0

    def add_endpoint(self, endpoint: Endpoint) -> "QueryRequest":
        self.endpoints.append(endpoint)
        return self

    def add_field(self, ref: FieldRef) -> "QueryRequest":
        self.fields.append(ref)
        return self


@dataclass(eq=False)
class ChangeRequest(_SessionHolder):
    endpoint: Optional[Endpoint] = None
    dn: Optional[str] = None
    directory_type: DirectoryType = DirectoryType.MS_ACTIVE_DIRECTORY
    modifications: List[ModificationDetails] = field(default_factory=list)
    ignore_ssl_validations: Optional[bool] = None

    # Filled in by translation.
    translated_dn: Optional[str] = None
    modification_details_list: List[ModificationDetails] = field(default_factory=list)

    def add(self, ref: FieldRef, value: Any) -> "ChangeRequest":
        self.modifications.append(ModificationDetails(ref, value, ModificationOperation.ADD))
        return self

    def replace(self, ref: FieldRef, value: Any) -> "ChangeRequest":
        self.modifications.append(ModificationDetails(ref, value, ModificationOperation.REPLACE))
        return self

    def remove(self, ref: FieldRef, value: Any = None) -> "ChangeRequest":
        self.modifications.append(ModificationDetails(ref, value, ModificationOperation.REMOVE))
        return self


@dataclass(eq=False)
class RemoveRequest(_SessionHolder):
    endpoint: Optional[Endpoint] = None
    dn: Optional[str] = None
    directory_type: DirectoryType = DirectoryType.MS_ACTIVE_DIRECTORY
    ignore_ssl_validations: Optional[bool] = None

    # Filled in by translation.
    translated_dn: Optional[str] = None


@dataclass(eq=False)
class AddRequest(_SessionHolder):
    endpoint: Optional[Endpoint] = None
    fields: Dict[FieldRef, Any] = field(default_factory=dict)
    dn: Optional[str] = None
    base_dn: Optional[str] = None
    object_type: ObjectType = ObjectType.ANY
    directory_type: DirectoryType = DirectoryType.MS_ACTIVE_DIRECTORY
    ignore_ssl_validations: Optional[bool] = None

    # Filled in by translation.
    translated_dn: Optional[str] = None
    translated_fields: Dict[str, Any] = field(default_factory=dict)


Request = Union[QueryRequest, ChangeRequest, RemoveRequest, AddRequest]

_REQUEST_TYPES = {
    QueryRequest: RequestType.QUERY,
    ChangeRequest: RequestType.CHANGE,
    RemoveRequest: RequestType.REMOVE,
    AddRequest: RequestType.ADD,
}


def request_type_of(request: Any) -> RequestType:
    for cls, rtype in _REQUEST_TYPES.items():
        if isinstance(request, cls):
            return rtype
    raise TypeError(f"Unsupported request variant: {type(request).__name__}")


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


@dataclass
class EntityResponse:
    dn: str
    attributes: Dict[str, List[Any]] = field(default_factory=dict)
    endpoint_host: Optional[str] = None

    def get(self, name: str, default: Any = None) -> Any:
        """First value of an attribute (case-insensitive lookup)."""
        for key, values in self.attributes.items():
            if key.lower() == name.lower():
                return values[0] if values else default
        return default


@dataclass
class QueryResponse:
    entities: List[EntityResponse] = field(default_factory=list)
    # endpoint address -> error message, for endpoints that failed while others answered
    errors: Dict[str, str] = field(default_factory=dict)
    # Opaque continuation token from the engine; None when the result set is exhausted.
    page_cookie: Any = None
    endpoint_host: Optional[str] = None

    @property
    def has_more_pages(self) -> bool:
        return bool(self.page_cookie)

    def __len__(self) -> int:
        return len(self.entities)

    def __iter__(self):
        return iter(self.entities)


@dataclass
class ConnectionResponse:
    host: Optional[str]
    port: Optional[int]
    success: bool
    error_kind: Optional[str] = None
    message: Optional[str] = None
    duration_ms: int = 0

    def as_dict(self) -> dict:
        return {
            "host": self.host,
            "port": self.port,
            "success": self.success,
            "error_kind": self.error_kind,
            "message": self.message,
            "duration_ms": self.duration_ms,
        }
