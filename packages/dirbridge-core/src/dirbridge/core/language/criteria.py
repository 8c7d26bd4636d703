from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from dirbridge.core.query import ModificationDetails


@dataclass(frozen=True)
class SearchCriteria:
    requested_fields: List[str]
    search_filter: str


@dataclass(frozen=True)
class ChangeCriteria:
    translated_dn: str
    modification_details_list: List[ModificationDetails] = field(default_factory=list)


@dataclass(frozen=True)
class RemoveCriteria:
    translated_dn: str


@dataclass(frozen=True)
class AddCriteria:
    translated_dn: str
    fields: Dict[str, Any] = field(default_factory=dict)


Criteria = Union[SearchCriteria, ChangeCriteria, RemoveCriteria, AddCriteria]
