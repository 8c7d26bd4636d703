from __future__ import annotations

from typing import Any, Dict, Tuple, Type

from dirbridge.core.drivers.base import DriverInit, ExecutionEngine
from dirbridge.core.plugins import load_all_plugins


class DriverRegistry:
    """
    Registry + factory for execution engines.

    Supports decorator registration:
        @registry.register("ldap", "ldap3")
        class Ldap3Engine: ...

    And factory instantiation:
        engine = registry.create(protocol="ldap", driver="ldap3", settings=settings)
    """

    def __init__(self) -> None:
        self._items: Dict[Tuple[str, str], Type] = {}

    def register(self, protocol: str, driver: str):
        def deco(cls):
            self._items[(protocol, driver)] = cls
            return cls
        return deco

    def get(self, protocol: str, driver: str):
        key = (protocol, driver)
        if key not in self._items:
            avail = sorted([f"{p}:{d}" for (p, d) in self._items.keys()])
            raise KeyError(f"Unknown driver: {protocol}:{driver}. Loaded: {avail}")
        return self._items[key]

    def list(self) -> list[str]:
        return sorted([f"{p}:{d}" for (p, d) in self._items.keys()])

    def create(self, *, protocol: str, driver: str, settings: Any, options: dict | None = None) -> ExecutionEngine:
        Cls = self.get(protocol, driver)
        return Cls(DriverInit(protocol=protocol, driver=driver, settings=settings, options=options or {}))


# Singleton registry used by core + plugins
REGISTRY = DriverRegistry()


def register_driver(protocol: str, driver: str):
    return REGISTRY.register(protocol, driver)


def get_driver(protocol: str, driver: str):
    return REGISTRY.get(protocol, driver)


def list_drivers() -> list[str]:
    return REGISTRY.list()


def parse_driver_key(key: str) -> Tuple[str, str]:
    protocol, sep, driver = (key or "").partition(":")
    if not sep or not protocol.strip() or not driver.strip():
        raise ValueError(f"Driver must look like '<protocol>:<driver>', got {key!r}")
    return protocol.strip(), driver.strip()


def create_engine(settings: Any, *, options: dict | None = None) -> ExecutionEngine:
    """Instantiate the engine named by settings.driver (plugins are loaded first)."""
    load_all_plugins(settings=settings)
    protocol, driver = parse_driver_key(settings.driver)
    return REGISTRY.create(protocol=protocol, driver=driver, settings=settings, options=options)
