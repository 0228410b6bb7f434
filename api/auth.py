"""Bearer-token guard for write routes.

Reads stay open: they only expose what is already public on-chain. Anything
that spends gas or hits the node on demand needs the token.
"""

from __future__ import annotations

import secrets

from fastapi import Depends, Header

from api.deps import get_config
from api.errors import TaskchainAPIError
from taskchain.core.config import Config


def _unauthorized(code: str, message: str) -> TaskchainAPIError:
    return TaskchainAPIError(code=f"auth.{code}", message=message, status=401)


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise _unauthorized("missing_token", "Missing bearer token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("invalid_header", "Invalid authorization header")
    return token.strip()


def require_bearer_token(
    authorization: str | None = Header(default=None, alias="Authorization"),
    config: Config = Depends(get_config),
) -> None:
    """An empty ``api.auth_token`` disables the check (the app refuses to start that way unless told to)."""

    expected = str(config.api.auth_token or "")
    if not expected:
        return

    token = _bearer_token(authorization)
    if not secrets.compare_digest(token.encode(), expected.encode()):
        raise _unauthorized("invalid_token", "Invalid bearer token")


AuthDep = Depends(require_bearer_token)
