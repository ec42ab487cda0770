"""Client configuration.

``ClientConfig`` is the one immutable configuration value a client is built
from; it is safe to share across threads. ``ClientConfigBuilder`` assembles
it with chained calls. ``load_config`` reads a YAML settings file with
environment variable overrides.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional, Tuple

import yaml
from pydantic import BaseModel, Field

from .auth import Credential, credential_from_env
from .constants import BASIC_TRANSFER, CONFIG_FILE, DEFAULT_TIMEOUT, USER_AGENT
from .endpoint import derive_lfs_url
from .errors import InvalidUrlError


@dataclass(frozen=True)
class ClientConfig:
    """Everything an ``LfsClient`` needs to talk to one LFS endpoint."""

    endpoint: str
    credential: Optional[Credential] = None
    ref_name: Optional[str] = None
    transfers: Tuple[str, ...] = (BASIC_TRANSFER,)
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = USER_AGENT

    def __post_init__(self):
        if not self.endpoint:
            raise InvalidUrlError("empty LFS endpoint")
        if not self.endpoint.endswith("/"):
            object.__setattr__(self, "endpoint", self.endpoint + "/")

    @classmethod
    def builder(cls, endpoint: str) -> "ClientConfigBuilder":
        """Start a builder from an explicit LFS endpoint URL."""
        return ClientConfigBuilder(endpoint)

    @classmethod
    def from_remote(cls, remote_url: str) -> "ClientConfigBuilder":
        """Start a builder from a Git remote URL (HTTPS or SSH)."""
        return ClientConfigBuilder(derive_lfs_url(remote_url))


class ClientConfigBuilder:
    """Chained construction of a ``ClientConfig``.

    Example:
        >>> config = (ClientConfig.from_remote("git@github.com:o/r.git")
        ...           .with_token("ghp_...")
        ...           .with_ref("refs/heads/main")
        ...           .build())
    """

    def __init__(self, endpoint: str):
        self._config = ClientConfig(endpoint=endpoint)

    def with_endpoint(self, endpoint: str) -> "ClientConfigBuilder":
        self._config = replace(self._config, endpoint=endpoint)
        return self

    def with_token(self, token: str) -> "ClientConfigBuilder":
        self._config = replace(self._config, credential=Credential.bearer(token))
        return self

    def with_basic_auth(self, username: str, password: str) -> "ClientConfigBuilder":
        self._config = replace(self._config, credential=Credential.basic(username, password))
        return self

    def with_credential(self, credential: Optional[Credential]) -> "ClientConfigBuilder":
        self._config = replace(self._config, credential=credential)
        return self

    def with_ref(self, ref_name: Optional[str]) -> "ClientConfigBuilder":
        self._config = replace(self._config, ref_name=ref_name or None)
        return self

    def with_transfers(self, *transfers: str) -> "ClientConfigBuilder":
        """Transfer adapters advertised in batch requests, in preference order."""
        if not transfers:
            raise ValueError("at least one transfer adapter is required")
        self._config = replace(self._config, transfers=tuple(transfers))
        return self

    def with_timeout(self, timeout: float) -> "ClientConfigBuilder":
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self._config = replace(self._config, timeout=float(timeout))
        return self

    def with_user_agent(self, user_agent: str) -> "ClientConfigBuilder":
        self._config = replace(self._config, user_agent=user_agent)
        return self

    def build(self) -> ClientConfig:
        return self._config


class Settings(BaseModel):
    """Settings loaded from ``.lfs-client.yaml`` and the environment."""
    remote: Optional[str] = None
    endpoint: Optional[str] = None
    ref: Optional[str] = None
    timeout: float = Field(DEFAULT_TIMEOUT, gt=0)
    cache_dir: Optional[Path] = None

    def client_config(
        self,
        credential: Optional[Credential] = None,
        remote: Optional[str] = None,
    ) -> ClientConfig:
        """Build the client configuration these settings describe.

        Args:
            credential: Explicit credential; defaults to ``credential_from_env()``
            remote: Remote URL overriding the configured one

        Raises:
            InvalidUrlError: If neither an endpoint nor a remote is known
        """
        if remote:
            builder = ClientConfig.from_remote(remote)
        elif self.endpoint:
            builder = ClientConfig.builder(self.endpoint)
        elif self.remote:
            builder = ClientConfig.from_remote(self.remote)
        else:
            raise InvalidUrlError(
                "no LFS remote configured; pass --remote or set LFS_CLIENT_REMOTE"
            )
        return (
            builder
            .with_credential(credential if credential is not None else credential_from_env())
            .with_ref(self.ref)
            .with_timeout(self.timeout)
            .build()
        )


_ENV_KEYS = {
    "remote": "LFS_CLIENT_REMOTE",
    "endpoint": "LFS_CLIENT_ENDPOINT",
    "ref": "LFS_CLIENT_REF",
    "timeout": "LFS_CLIENT_TIMEOUT",
    "cache_dir": "LFS_CLIENT_CACHE_DIR",
}


def load_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from a YAML file, then apply environment overrides.

    A missing file yields defaults. Environment variables win over the file.

    Raises:
        ValueError: If the file is not a YAML mapping or a value is invalid
    """
    cfg_path = Path(path) if path else Path.cwd() / CONFIG_FILE
    env = os.environ if environ is None else environ

    data = {}
    if cfg_path.exists():
        data = yaml.safe_load(cfg_path.read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{cfg_path} must contain a mapping, got {type(data).__name__}")

    for key, var in _ENV_KEYS.items():
        value = env.get(var)
        if value:
            data[key] = value

    return Settings.model_validate(data)


__all__ = ["ClientConfig", "ClientConfigBuilder", "Settings", "load_config"]
