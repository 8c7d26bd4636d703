"""Request -> criteria translation.

`translate()` is the pure translation function. `RequestBridgeDirector` wraps it in
the two-step build()/get() contract the connector drives; the connector creates a
fresh director per execute call, so nothing carries across calls.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ldap3.core.exceptions import LDAPInvalidDnError
from ldap3.utils.dn import escape_rdn, safe_dn

from dirbridge.core.exception import CriteriaBuildError
from dirbridge.core.language.criteria import AddCriteria, ChangeCriteria, Criteria, RemoveCriteria, SearchCriteria
from dirbridge.core.language.filters import combine_and, render_sentence
from dirbridge.core.language.vocabulary import attribute_name, object_class_clause, object_classes
from dirbridge.core.query import (
    AddRequest,
    ChangeRequest,
    DirectoryType,
    ModificationDetails,
    ModificationOperation,
    ObjectType,
    QueryRequest,
    RemoveRequest,
)

log = logging.getLogger("dirbridge.core.language.director")

_MATCH_ALL = "(objectClass=*)"


def _normalize_dn(dn: Optional[str]) -> str:
    if dn is None or not str(dn).strip():
        raise CriteriaBuildError("A distinguished name is required")
    try:
        return safe_dn(str(dn).strip())
    except LDAPInvalidDnError as e:
        raise CriteriaBuildError(f"Malformed distinguished name: {dn!r}") from e


def _encode_value(attr: str, value: Any, directory_type: DirectoryType) -> Any:
    # AD only accepts unicodePwd as the UTF-16-LE encoding of the quoted password.
    if directory_type is DirectoryType.MS_ACTIVE_DIRECTORY and attr == "unicodePwd" and isinstance(value, str):
        return f'"{value}"'.encode("utf-16-le")
    return value


def _translate_query(request: QueryRequest) -> SearchCriteria:
    dt = request.directory_type
    requested: List[str] = []
    for ref in request.fields:
        name = attribute_name(ref, dt)
        if name not in requested:
            requested.append(name)

    sentence = render_sentence(request.search_sentence, dt) if request.search_sentence is not None else None
    search_filter = combine_and(object_class_clause(request.object_type, dt), sentence) or _MATCH_ALL
    return SearchCriteria(requested_fields=requested or ["*"], search_filter=search_filter)


def _translate_change(request: ChangeRequest) -> ChangeCriteria:
    if not request.modifications:
        raise CriteriaBuildError("Change request has no modifications")
    dt = request.directory_type
    details: List[ModificationDetails] = []
    for mod in request.modifications:
        attr = attribute_name(mod.field, dt)
        if mod.operation is not ModificationOperation.REMOVE and mod.value is None:
            raise CriteriaBuildError(f"{mod.operation.value} on {attr} requires a value")
        details.append(ModificationDetails(attr, _encode_value(attr, mod.value, dt), mod.operation))
    return ChangeCriteria(translated_dn=_normalize_dn(request.dn), modification_details_list=details)


def _translate_remove(request: RemoveRequest) -> RemoveCriteria:
    return RemoveCriteria(translated_dn=_normalize_dn(request.dn))


def _rdn_for(object_type: ObjectType, fields: Dict[str, Any]) -> tuple[str, Any]:
    rdn_attr = "ou" if object_type is ObjectType.OU else "cn"
    for key, value in fields.items():
        if key.lower() == rdn_attr:
            if isinstance(value, (list, tuple)):
                value = value[0] if value else None
            return rdn_attr.upper(), value
    return rdn_attr.upper(), None


def _translate_add(request: AddRequest) -> AddCriteria:
    dt = request.directory_type
    fields: Dict[str, Any] = {}
    for ref, value in request.fields.items():
        attr = attribute_name(ref, dt)
        fields[attr] = _encode_value(attr, value, dt)

    if not any(k.lower() == "objectclass" for k in fields):
        classes = object_classes(request.object_type, dt)
        if classes:
            fields["objectClass"] = classes

    if request.dn:
        dn = _normalize_dn(request.dn)
    else:
        rdn_attr, rdn_value = _rdn_for(request.object_type, fields)
        if rdn_value is None or not request.base_dn:
            raise CriteriaBuildError(
                f"Add request needs either dn or both {rdn_attr.lower()} and base_dn"
            )
        dn = _normalize_dn(f"{rdn_attr}={escape_rdn(str(rdn_value))},{request.base_dn}")
    return AddCriteria(translated_dn=dn, fields=fields)


_TRANSLATORS = {
    QueryRequest: _translate_query,
    ChangeRequest: _translate_change,
    RemoveRequest: _translate_remove,
    AddRequest: _translate_add,
}


def translate(request: Any) -> Criteria:
    """Translate a request variant into its matching criteria variant."""
    fn = _TRANSLATORS.get(type(request))
    if fn is None:
        for cls, candidate in _TRANSLATORS.items():
            if isinstance(request, cls):
                fn = candidate
                break
    if fn is None:
        raise CriteriaBuildError(f"No translation for request variant: {type(request).__name__}")
    return fn(request)


class RequestBridgeDirector:
    """Two-step translator: build(request) then get()."""

    def __init__(self) -> None:
        self._criteria: Optional[Criteria] = None

    def build(self, request: Any) -> None:
        self._criteria = translate(request)
        log.debug("translated %s -> %s", type(request).__name__, type(self._criteria).__name__)

    def get(self) -> Criteria:
        if self._criteria is None:
            raise CriteriaBuildError("build() must be called before get()")
        return self._criteria

