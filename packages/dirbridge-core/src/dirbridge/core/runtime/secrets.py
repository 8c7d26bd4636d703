"""Secrets hook for endpoint profiles.

A hook keeps directory passwords out of profiles.yaml. It is a plain Python module,
named by DIRBRIDGE_SECRETS_MODULE (importable name) or DIRBRIDGE_SECRETS_PATH (file),
exposing:

    def decode(value: str) -> str: ...          # required
    def expand_env(env: dict) -> dict: ...      # optional, returns a new dict

Profiles are resolved against an env snapshot; os.environ is never mutated.
"""

from __future__ import annotations

import importlib
import importlib.util
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Callable, Dict, Optional

_ALLOWED = ("decode", "expand_env")


@dataclass
class SecretsProvider:
    decode: Callable[[str], str]
    expand_env: Optional[Callable[[Dict[str, str]], Dict[str, str]]] = None


def _public_callables(module: ModuleType) -> list:
    return sorted(
        name for name, obj in vars(module).items()
        if not name.startswith("_") and callable(obj) and getattr(obj, "__module__", None) == module.__name__
    )


def _provider_from(module: ModuleType, *, origin: str) -> SecretsProvider:
    names = _public_callables(module)
    unexpected = [n for n in names if n not in _ALLOWED]
    if unexpected:
        raise TypeError(
            f"Secrets hook {origin} defines unsupported public callables: {unexpected}. "
            f"Only {list(_ALLOWED)} may be public; prefix helpers with '_'."
        )
    if "decode" not in names:
        raise TypeError(f"Secrets hook {origin} must define decode(value: str) -> str")
    return SecretsProvider(decode=module.decode, expand_env=getattr(module, "expand_env", None))


def _load_file(path: str) -> ModuleType:
    file = Path(path).expanduser().resolve()
    if not file.is_file():
        raise FileNotFoundError(f"Secrets hook file not found: {file}")
    spec = importlib.util.spec_from_file_location(f"dirbridge_secrets_{file.stem}", file)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot import secrets hook from {file}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def load_secrets_provider(*, secrets_module: str | None, secrets_path: str | None) -> SecretsProvider | None:
    """Module wins over path; None when neither is configured."""
    if secrets_module:
        return _provider_from(importlib.import_module(secrets_module), origin=f"module:{secrets_module}")
    if secrets_path:
        return _provider_from(_load_file(secrets_path), origin=f"path:{secrets_path}")
    return None
