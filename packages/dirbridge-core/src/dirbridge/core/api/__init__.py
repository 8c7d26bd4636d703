"""Public, stable API surface for dirbridge.

If you're writing driver plugins or integrating dirbridge into your own codebase,
import from **`dirbridge.core.api`**.

Everything outside this package is considered internal and may change without
notice, even in minor releases.
"""

from __future__ import annotations

# Facade + paging
from dirbridge.core.connector import Connector
from dirbridge.core.cursor import Cursor
# Driver contracts + registry
from dirbridge.core.drivers.base import DriverInit, ExecutionEngine
from dirbridge.core.registry.drivers import create_engine, get_driver, list_drivers, register_driver
# Exceptions
from dirbridge.core.exception import (
    AuthenticationError,
    CriteriaBuildError,
    DirectoryError,
    InvalidConfigurationError,
    InvalidConnectionError,
    ProtocolError,
    RequestTypeMismatchError,
    SpecError,
    UnknownError,
)
# Translation
from dirbridge.core.language import RequestBridgeDirector, translate
# Profiles
from dirbridge.core.profiles import Profile, load_profiles
# Request/response model
from dirbridge.core.query import (
    AddRequest,
    ChangeRequest,
    Conjunction,
    ConnectionResponse,
    Criterion,
    DirectoryType,
    Endpoint,
    EntityResponse,
    FieldType,
    ModificationDetails,
    ModificationOperation,
    ObjectType,
    Operator,
    QueryRequest,
    QueryResponse,
    RemoveRequest,
    RequestType,
    Sentence,
)
# Settings
from dirbridge.core.runtime.settings import Settings, load_settings

__all__ = [
    # facade
    "Connector",
    "Cursor",
    # model
    "RequestType",
    "DirectoryType",
    "ObjectType",
    "FieldType",
    "Operator",
    "Conjunction",
    "Criterion",
    "Sentence",
    "ModificationOperation",
    "ModificationDetails",
    "Endpoint",
    "QueryRequest",
    "ChangeRequest",
    "RemoveRequest",
    "AddRequest",
    "EntityResponse",
    "QueryResponse",
    "ConnectionResponse",
    # translation
    "RequestBridgeDirector",
    "translate",
    # drivers
    "ExecutionEngine",
    "DriverInit",
    "register_driver",
    "get_driver",
    "list_drivers",
    "create_engine",
    # profiles + settings
    "Profile",
    "load_profiles",
    "Settings",
    "load_settings",
    # exceptions
    "DirectoryError",
    "RequestTypeMismatchError",
    "InvalidConfigurationError",
    "CriteriaBuildError",
    "AuthenticationError",
    "InvalidConnectionError",
    "ProtocolError",
    "UnknownError",
    "SpecError",
]
