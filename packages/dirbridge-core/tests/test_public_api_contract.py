from __future__ import annotations

import inspect

import pytest

import dirbridge.core.api as api
from dirbridge.core.registry.drivers import get_driver, list_drivers


@pytest.mark.contract
def test_public_api___all___is_frozen():
    """Contract test: keep `dirbridge.core.api.__all__` stable.

    If you *intentionally* change the public API, update this test.
    """
    expected = [
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
    assert api.__all__ == expected
    for name in expected:
        assert hasattr(api, name), name


@pytest.mark.contract
def test_connector_public_methods_are_stable():
    names = {n for n, _ in inspect.getmembers(api.Connector) if not n.startswith("_")}
    assert {
        "set_request",
        "get_request_type",
        "execute",
        "execute_page",
        "execute_change_request",
        "execute_remove_request",
        "execute_add_request",
        "get_cursor",
        "test_connection",
        "test_connections",
        "close",
    } <= names


@pytest.mark.contract
def test_registered_engines_implement_engine_contract():
    """Lock the duck-typed engine surface plugin authors must provide."""
    failures = []
    for key in list_drivers():
        protocol, driver = key.split(":", 1)
        cls = get_driver(protocol, driver)
        for method, params in {
            "execute": ["self", "request"],
            "execute_page": ["self", "request", "endpoint", "cookie"],
            "test_connection": ["self", "endpoint"],
            "close": ["self"],
        }.items():
            fn = getattr(cls, method, None)
            if fn is None:
                failures.append(f"{key} missing {method}")
                continue
            got = list(inspect.signature(fn).parameters)
            if got != params:
                failures.append(f"{key}.{method} params {got} != {params}")
    assert failures == []
    assert "ldap:ldap3" in list_drivers()


@pytest.mark.contract
def test_error_taxonomy_shares_a_base():
    for name in ("RequestTypeMismatchError", "InvalidConfigurationError", "CriteriaBuildError",
                 "AuthenticationError", "InvalidConnectionError", "ProtocolError", "UnknownError"):
        assert issubclass(getattr(api, name), api.DirectoryError)
