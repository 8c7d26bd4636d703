from __future__ import annotations

from dirbridge.core.drivers.base import DriverInit, ExecutionEngine

__all__ = ["DriverInit", "ExecutionEngine"]
