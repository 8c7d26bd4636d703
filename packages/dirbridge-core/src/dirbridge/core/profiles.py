"""Endpoint profiles: named connection targets loaded from YAML.

profiles.yaml:

    corp_ad:
      host: dc1.corp.example
      user: svc-reader@corp.example
      password_env: CORP_AD_PASSWORD
      secured: true
      secondary_host: dc2.corp.example
      base_dn: DC=corp,DC=example

Passwords may be inline, read from the env snapshot (password_env), and routed
through the secrets hook (decode: {password: true}).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

import yaml
from pydantic import ValidationError

from dirbridge.core.exception import SpecError
from dirbridge.core.query import DirectoryType, Endpoint
from dirbridge.core.runtime.secrets import SecretsProvider, load_secrets_provider
from dirbridge.core.runtime.settings import Settings
from dirbridge.core.spec import EndpointSpec, ProfilesFileSpec

log = logging.getLogger("dirbridge.core.profiles")


@dataclass
class Profile:
    name: str
    endpoint: Endpoint
    directory_type: DirectoryType


def _format_validation_error(path: str, e: ValidationError) -> str:
    lines = [f"Invalid profiles file: {path}"]
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        lines.append(f"- {loc}: {err.get('msg')}")
    return "\n".join(lines)


def parse_profiles(data: object, *, source: str = "<memory>") -> Dict[str, EndpointSpec]:
    if data is None:
        data = {}
    try:
        return ProfilesFileSpec.model_validate(data).root
    except ValidationError as e:
        raise SpecError(_format_validation_error(source, e)) from e


def _resolve_endpoint(name: str, spec: EndpointSpec, *, env: Dict[str, str], secrets: SecretsProvider | None) -> Endpoint:
    if spec.password_env:
        if spec.password_env not in env:
            raise SpecError(f"profile {name}: env var {spec.password_env} is not set")
        password = env[spec.password_env]
    else:
        password = spec.password

    user = spec.user
    if spec.decode.password or spec.decode.user:
        if secrets is None:
            raise SpecError(f"profile {name}: decode requested but no secrets hook is configured")
        if spec.decode.password and password is not None:
            password = secrets.decode(password)
        if spec.decode.user:
            user = secrets.decode(user)

    return Endpoint(
        host=spec.host,
        port=spec.port,
        user_account_name=user,
        password=password,
        secured=spec.secured,
        ignore_ssl_validations=spec.ignore_ssl_validations,
        secondary_host=spec.secondary_host,
        secondary_port=spec.secondary_port,
        base_dn=spec.base_dn,
    )


def load_profiles(path: str | Path, *, settings: Settings | None = None, env: Dict[str, str] | None = None) -> Dict[str, Profile]:
    """Load and resolve every profile in a YAML file."""
    p = Path(path).expanduser()
    if not p.exists():
        raise FileNotFoundError(f"Profiles file not found: {p}")
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise SpecError(f"Invalid YAML in profiles file {p}: {e}") from e

    specs = parse_profiles(raw, source=str(p))
    env2 = {k: str(v) for k, v in os.environ.items()} if env is None else env
    settings = settings or Settings()
    secrets = load_secrets_provider(secrets_module=settings.secrets_module, secrets_path=settings.secrets_path)
    if secrets is not None and secrets.expand_env is not None:
        env2 = secrets.expand_env(dict(env2))

    out: Dict[str, Profile] = {}
    for name, spec in specs.items():
        out[name] = Profile(
            name=name,
            endpoint=_resolve_endpoint(name, spec, env=env2, secrets=secrets),
            directory_type=DirectoryType(spec.directory_type),
        )
    log.debug("loaded %d profile(s) from %s", len(out), p)
    return out
