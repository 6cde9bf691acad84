"""Bearer token gate applied to every protected route."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .logging import setup_logger
from .security import TokenError, TokenService

LOG = setup_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Identity resolved by the gate for the current request."""

    user_id: int


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def require_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> AuthContext:
    """Resolve the caller's identity or stop the request with 401.

    Missing headers, non-bearer schemes, bad signatures and expired tokens
    all produce the same response.
    """

    if credentials is None or not credentials.credentials:
        raise _unauthorized()
    try:
        claims = tokens.verify(credentials.credentials)
    except TokenError as exc:
        LOG.info("Rejected bearer token on %s %s: %s", request.method, request.url.path, exc)
        raise _unauthorized() from exc

    request.state.user_id = claims.user_id
    return AuthContext(user_id=claims.user_id)


__all__ = ["AuthContext", "bearer_scheme", "get_token_service", "require_user"]
