from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, Field, RootModel, model_validator
from pydantic.config import ConfigDict

# ---------------------------------------------------------------------------
# Endpoint profiles
# ---------------------------------------------------------------------------


class EndpointDecodeSpec(BaseModel):
    """Which endpoint values go through the secrets hook's decode()."""

    model_config = ConfigDict(extra="forbid")

    password: bool = False
    user: bool = False


class EndpointSpec(BaseModel):
    """One named connection target in a profiles file.

    Notes:
      - password and password_env are mutually exclusive; password_env names a key
        in the env snapshot, not a value.
      - port defaults to 636 when secured, 389 otherwise.
    """

    model_config = ConfigDict(extra="forbid")

    host: str
    port: Optional[int] = Field(default=None, gt=0, lt=65536)
    user: str
    password: Optional[str] = None
    password_env: Optional[str] = None
    secured: bool = False
    ignore_ssl_validations: Optional[bool] = None
    secondary_host: Optional[str] = None
    secondary_port: Optional[int] = Field(default=None, gt=0, lt=65536)
    base_dn: Optional[str] = None
    directory_type: str = "MS_ACTIVE_DIRECTORY"
    decode: EndpointDecodeSpec = Field(default_factory=EndpointDecodeSpec)

    @model_validator(mode="after")
    def _one_password_source(self) -> "EndpointSpec":
        if self.password is not None and self.password_env:
            raise ValueError("set either password or password_env, not both")
        if self.password is None and not self.password_env:
            raise ValueError("one of password or password_env is required")
        if self.directory_type not in {"MS_ACTIVE_DIRECTORY", "OPEN_LDAP"}:
            raise ValueError(f"unsupported directory_type: {self.directory_type}")
        return self


class ProfilesFileSpec(RootModel[Dict[str, EndpointSpec]]):
    """profiles.yaml root schema: mapping name -> EndpointSpec."""
