"""Process configuration for the expense API.

Settings are read once from the environment when the application starts.
The signing secret has no default: a deployment without ``JWT_SECRET`` must
fail at startup rather than issue tokens signed with a guessable key.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Final

DEFAULT_DATABASE_URL: Final[str] = "sqlite:///expenses.db"
DEFAULT_HOST: Final[str] = "0.0.0.0"
DEFAULT_PORT: Final[int] = 5000
DEFAULT_TOKEN_TTL_HOURS: Final[int] = 24
DEFAULT_ALLOWED_ORIGINS: Final[tuple[str, ...]] = (
    "https://mern-endterm.vercel.app",
    "https://mern-endterm-czx9.vercel.app",
    "https://mern-endterm2.onrender.com",
    "http://localhost:3000",
)
DEFAULT_TRUSTED_SUFFIXES: Final[tuple[str, ...]] = (".vercel.app", ".onrender.com")


class ConfigurationError(RuntimeError):
    """Raised when the environment does not describe a usable deployment."""


def _split_csv(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _parse_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    """Runtime configuration of the expense API.

    Attributes:
      jwt_secret: Key used to sign and verify bearer tokens.
      database_url: SQLAlchemy connection string of the persistence layer.
      host: Address the HTTP server binds to.
      port: Port the HTTP server listens on.
      token_ttl: Lifetime of issued tokens.
      allowed_origins: Exact origins accepted by the cross-origin policy.
      trusted_origin_suffixes: Deployment domains whose subdomains are accepted.
    """

    jwt_secret: str = field(repr=False)
    database_url: str = DEFAULT_DATABASE_URL
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    token_ttl: timedelta = timedelta(hours=DEFAULT_TOKEN_TTL_HOURS)
    allowed_origins: tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    trusted_origin_suffixes: tuple[str, ...] = DEFAULT_TRUSTED_SUFFIXES

    def __post_init__(self) -> None:
        if not self.jwt_secret:
            raise ConfigurationError("JWT_SECRET must be set to a non-empty value")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"PORT must be between 1 and 65535, got {self.port}")
        if self.token_ttl <= timedelta(0):
            raise ConfigurationError("TOKEN_TTL_HOURS must be positive")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build :class:`Settings` from ``environ`` (defaults to ``os.environ``)."""

        env = os.environ if environ is None else environ
        secret = (env.get("JWT_SECRET") or "").strip()
        if not secret:
            raise ConfigurationError("JWT_SECRET must be set to a non-empty value")
        return cls(
            jwt_secret=secret,
            database_url=env.get("DATABASE_URL") or DEFAULT_DATABASE_URL,
            host=env.get("HOST") or DEFAULT_HOST,
            port=_parse_int(env, "PORT", DEFAULT_PORT),
            token_ttl=timedelta(hours=_parse_int(env, "TOKEN_TTL_HOURS", DEFAULT_TOKEN_TTL_HOURS)),
            allowed_origins=_split_csv(env.get("ALLOWED_ORIGINS"), DEFAULT_ALLOWED_ORIGINS),
            trusted_origin_suffixes=_split_csv(
                env.get("TRUSTED_ORIGIN_SUFFIXES"), DEFAULT_TRUSTED_SUFFIXES
            ),
        )


__all__ = ["ConfigurationError", "Settings"]
