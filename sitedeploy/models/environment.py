"""Environment descriptor and credential models."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from sitedeploy.models.policy import CachePolicy

BackendKind = Literal["s3", "local", "memory"]


class DeployCredentials(BaseModel):
    """Scoped credentials handed to store and CDN clients at construction.

    Typically the temporary credentials a CI run obtained by federating its
    identity.  All fields empty means "let the SDK's default provider chain
    decide", which is the case for local and in-memory backends.
    """

    model_config = ConfigDict(frozen=True)

    access_key_id: str = ""
    secret_access_key: SecretStr = SecretStr("")
    session_token: SecretStr = SecretStr("")
    region: str = ""

    @property
    def is_explicit(self) -> bool:
        return bool(self.access_key_id)


class EnvironmentDescriptor(BaseModel):
    """A named deploy target, e.g. "production".

    Resolves to a store location, a CDN distribution and a CachePolicy.
    Loaded from ``[environments.<name>]`` tables in ``sitedeploy.toml``.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    backend: BackendKind = "s3"
    bucket: str = ""
    prefix: str = ""
    root: Path | None = None  # origin directory for the "local" backend
    region: str = ""
    distribution_id: str = ""  # empty -> no CDN in front of the store
    cdn_path_prefix: str = ""  # URL prefix the site is served under by the CDN
    cache_policy: CachePolicy = Field(default_factory=CachePolicy)

    @property
    def has_cdn(self) -> bool:
        return bool(self.distribution_id)

    @property
    def location(self) -> str:
        if self.backend == "s3":
            return f"s3://{self.bucket}/{self.prefix}".rstrip("/")
        if self.backend == "local":
            return str(self.root)
        return f"memory://{self.name}"
