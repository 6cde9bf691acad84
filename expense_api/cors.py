"""Cross-origin policy for browser clients."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .logging import setup_logger

LOG = setup_logger(__name__)

ALLOWED_METHODS = ["GET", "POST", "PUT", "DELETE"]


@dataclass(frozen=True)
class OriginPolicy:
    """Decide which request origins may call the API.

    Requests without an ``Origin`` header (curl, server-to-server calls) are
    always allowed. Browser origins must either appear in ``allowed_origins``
    or end with one of ``trusted_suffixes``.
    """

    allowed_origins: frozenset[str]
    trusted_suffixes: tuple[str, ...]

    @classmethod
    def build(cls, allowed_origins: Iterable[str], trusted_suffixes: Iterable[str]) -> OriginPolicy:
        return cls(frozenset(allowed_origins), tuple(trusted_suffixes))

    def allows(self, origin: Optional[str]) -> bool:
        if not origin:
            return True
        if origin in self.allowed_origins:
            return True
        return any(origin.endswith(suffix) for suffix in self.trusted_suffixes)

    def rejection_message(self, origin: str) -> str:
        return f"Origin {origin} is not allowed by the server's CORS policy."


class OriginPolicyMiddleware(BaseHTTPMiddleware):
    """Reject requests whose origin the policy does not allow."""

    def __init__(self, app, policy: OriginPolicy) -> None:
        super().__init__(app)
        self.policy = policy

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin")
        if not self.policy.allows(origin):
            LOG.warning("Blocked request from origin %s", origin)
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={"detail": self.policy.rejection_message(origin)},
            )
        return await call_next(request)


def install_cors(app: FastAPI, policy: OriginPolicy) -> None:
    """Add CORS headers for allowed origins and block the rest.

    ``CORSMiddleware`` answers preflights and decorates responses; it accepts
    any origin here because the outer :class:`OriginPolicyMiddleware` has
    already filtered them.
    """

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=".*",
        allow_credentials=True,
        allow_methods=ALLOWED_METHODS,
        allow_headers=["*"],
    )
    app.add_middleware(OriginPolicyMiddleware, policy=policy)


__all__ = ["ALLOWED_METHODS", "OriginPolicy", "OriginPolicyMiddleware", "install_cors"]
