"""Request -> criteria translation for LDAP directories."""

from __future__ import annotations

from dirbridge.core.language.criteria import AddCriteria, ChangeCriteria, Criteria, RemoveCriteria, SearchCriteria
from dirbridge.core.language.director import RequestBridgeDirector, translate

__all__ = [
    "AddCriteria",
    "ChangeCriteria",
    "Criteria",
    "RemoveCriteria",
    "SearchCriteria",
    "RequestBridgeDirector",
    "translate",
]
