"""dirbridge core package.

Public entrypoints:
- dirbridge.core.api: stable API surface for integrations/driver plugins
- dirbridge.core.connector.Connector: the query/change/remove/add facade

Internal modules may change without notice.
"""

from __future__ import annotations

# Strict architecture enforcement (default ON; set DIRBRIDGE_STRICT_ARCH=0 to disable).
from dirbridge.core._architecture_guard import assert_architecture as _assert_architecture

_assert_architecture()

# Ensure built-in drivers are registered on import.
from dirbridge.core.builtins import drivers as _drivers  # noqa: F401

from dirbridge.core.connector import Connector

__all__ = ["Connector"]
