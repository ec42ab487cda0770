"""Credentials for LFS batch negotiation.

Credentials are attached only to batch calls. Transfer calls carry whatever
headers the negotiated action supplies, which may include their own
authorization.
"""

import os
from typing import Mapping, Optional

import requests
from pydantic import BaseModel, model_validator
from requests.auth import AuthBase, HTTPBasicAuth


class BearerAuth(AuthBase):
    """Attach ``Authorization: Bearer <token>`` to a request."""

    def __init__(self, token: str):
        self.token = token

    def __call__(self, r: requests.PreparedRequest) -> requests.PreparedRequest:
        r.headers["Authorization"] = f"Bearer {self.token}"
        return r

    def __eq__(self, other):
        return isinstance(other, BearerAuth) and other.token == self.token

    def __repr__(self) -> str:
        return "BearerAuth(token=***)"


class Credential(BaseModel):
    """Either a bearer token or a username/password pair."""
    token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _validate(self):
        if self.token and (self.username or self.password):
            raise ValueError("use either a token or username/password, not both")
        if not self.token and not (self.username and self.password is not None):
            raise ValueError("credential needs a token or a username and password")
        return self

    @classmethod
    def bearer(cls, token: str) -> "Credential":
        return cls(token=token)

    @classmethod
    def basic(cls, username: str, password: str) -> "Credential":
        return cls(username=username, password=password)

    def to_requests_auth(self) -> AuthBase:
        if self.token:
            return BearerAuth(self.token)
        return HTTPBasicAuth(self.username, self.password)

    def __repr__(self) -> str:
        kind = "bearer" if self.token else f"basic user={self.username!r}"
        return f"Credential({kind})"


def credential_from_env(environ: Optional[Mapping[str, str]] = None) -> Optional[Credential]:
    """Read credentials from the environment.

    ``LFS_TOKEN`` wins over ``LFS_USERNAME``/``LFS_PASSWORD``. Returns None
    for anonymous access.
    """
    env = os.environ if environ is None else environ
    token = env.get("LFS_TOKEN", "")
    if token:
        return Credential.bearer(token)

    username = env.get("LFS_USERNAME", "")
    password = env.get("LFS_PASSWORD", "")
    if username and password:
        return Credential.basic(username, password)
    return None


__all__ = ["BearerAuth", "Credential", "credential_from_env"]
