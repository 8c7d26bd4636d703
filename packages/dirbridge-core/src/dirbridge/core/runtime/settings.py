"""Process-level settings for the connector runtime.

Sources, lowest precedence first:
  1. static defaults below
  2. DIRBRIDGE_* variables from an env snapshot
  3. DIRBRIDGE_SETTINGS_MODULE: a module exposing SETTINGS: dict
  4. explicit overrides passed to load_settings()
"""

from __future__ import annotations

import os
from importlib import import_module
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


def _csv(raw: str) -> List[str]:
    return [p.strip() for p in raw.split(",") if p.strip()]


def _flag(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    log_level: str = "INFO"
    # "text": `event key=value ...` lines; "json": one JSON object per line.
    log_format: str = "text"
    metrics_module: Optional[str] = None

    # Execution engine, "<protocol>:<driver>" from the driver registry.
    driver: str = "ldap:ldap3"
    connect_timeout: float = 10.0
    receive_timeout: float = 30.0
    pool_workers: int = Field(default=8, ge=1)

    # Default profiles.yaml for the CLI
    profiles_file: Optional[str] = None

    plugin_paths: List[str] = Field(default_factory=list)
    plugin_strict: bool = True

    secrets_module: Optional[str] = None
    secrets_path: Optional[str] = None

    @classmethod
    def from_env(cls, env: Dict[str, str], overrides: dict | None = None) -> "Settings":
        """Read DIRBRIDGE_* keys from an explicit env snapshot (never os.environ)."""
        data: Dict[str, object] = {}
        for name, (key, parse) in _ENV_KEYS.items():
            raw = env.get(key)
            if not raw:
                continue
            data[name] = parse(raw)
        data.update(overrides or {})
        return cls(**data)


_ENV_KEYS: Dict[str, Tuple[str, Callable[[str], object]]] = {
    "log_level": ("DIRBRIDGE_LOG_LEVEL", str),
    "log_format": ("DIRBRIDGE_LOG_FORMAT", str),
    "metrics_module": ("DIRBRIDGE_METRICS_MODULE", str),
    "driver": ("DIRBRIDGE_DRIVER", str),
    "connect_timeout": ("DIRBRIDGE_CONNECT_TIMEOUT", float),
    "receive_timeout": ("DIRBRIDGE_RECEIVE_TIMEOUT", float),
    "pool_workers": ("DIRBRIDGE_POOL_WORKERS", int),
    "profiles_file": ("DIRBRIDGE_PROFILES_FILE", str),
    "plugin_paths": ("DIRBRIDGE_PLUGIN_PATHS", _csv),
    "plugin_strict": ("DIRBRIDGE_PLUGIN_STRICT", _flag),
    "secrets_module": ("DIRBRIDGE_SECRETS_MODULE", str),
    "secrets_path": ("DIRBRIDGE_SECRETS_PATH", str),
}


def load_settings(overrides: dict | None = None, *, env: Dict[str, str] | None = None) -> Settings:
    snapshot = {k: str(v) for k, v in os.environ.items()} if env is None else env
    settings = Settings.from_env(snapshot)

    module_name = snapshot.get("DIRBRIDGE_SETTINGS_MODULE")
    if module_name:
        extra = getattr(import_module(module_name), "SETTINGS", {})
        if not isinstance(extra, dict):
            raise TypeError(f"{module_name}.SETTINGS must be a dict, got {type(extra).__name__}")
        settings = settings.model_copy(update=extra)
    if overrides:
        settings = settings.model_copy(update=overrides)
    return settings
