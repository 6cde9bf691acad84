"""Secret hashing and bearer token helpers.

Secrets are stored as salted PBKDF2-HMAC-SHA256 digests and compared in
constant time. Tokens are stateless HS256 JWTs: a token is valid when its
signature matches the configured key and its ``exp`` claim lies in the
future, with no server-side lookup.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from functools import cache
from datetime import UTC, datetime, timedelta
from typing import Final

from jose import ExpiredSignatureError, JWTError, jwt

HASH_ALGORITHM: Final[str] = "pbkdf2_sha256"
HASH_ITERATIONS = 260_000
SALT_BYTES: Final[int] = 16
TOKEN_ALGORITHM: Final[str] = "HS256"


def hash_secret(secret: str, *, iterations: int | None = None, salt: bytes | None = None) -> str:
    """Return the encoded one-way hash of ``secret``.

    The result has the form ``pbkdf2_sha256$<iterations>$<salt>$<digest>``
    with hex-encoded salt and digest.
    """

    iterations = iterations or HASH_ITERATIONS
    salt = salt if salt is not None else secrets.token_bytes(SALT_BYTES)
    digest = hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt, iterations)
    return f"{HASH_ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_secret(secret: str, encoded: str) -> bool:
    """Check ``secret`` against a hash produced by :func:`hash_secret`."""

    try:
        algorithm, raw_iterations, salt_hex, digest_hex = encoded.split("$")
        iterations = int(raw_iterations)
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
    except ValueError:
        return False
    if algorithm != HASH_ALGORITHM:
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt, iterations)
    return hmac.compare_digest(candidate, expected)


@cache
def _dummy_hash(iterations: int) -> str:
    return hash_secret(secrets.token_urlsafe(16), iterations=iterations)


def dummy_secret_hash() -> str:
    """Hash compared against when a login names an unknown user.

    Built with the current iteration count so both login failure paths cost
    one hash computation of the same size.
    """

    return _dummy_hash(HASH_ITERATIONS)


class TokenError(Exception):
    """Base class for bearer token verification failures."""


class InvalidTokenError(TokenError):
    """Raised when a token is malformed, tampered with or signed by another key."""


class ExpiredTokenError(TokenError):
    """Raised when a well-signed token is past its expiry time."""


@dataclass(frozen=True)
class TokenClaims:
    """Identity resolved from a verified token."""

    user_id: int
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """Issue and verify signed, time-bound identity tokens."""

    def __init__(self, secret: str, ttl: timedelta, algorithm: str = TOKEN_ALGORITHM) -> None:
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self.ttl = ttl
        self.algorithm = algorithm

    def __repr__(self) -> str:
        return f"TokenService(ttl={self.ttl!r}, algorithm={self.algorithm!r})"

    def issue(self, user_id: int, now: datetime | None = None) -> str:
        issued_at = now or datetime.now(tz=UTC)
        claims = {
            "sub": str(user_id),
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.ttl).timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Check signature and expiry of ``token`` and return its claims.

        Raises:
          ExpiredTokenError: If the token is well signed but expired.
          InvalidTokenError: For every other verification failure.
        """

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require_exp": True, "require_sub": True},
            )
        except ExpiredSignatureError as exc:
            raise ExpiredTokenError("Token has expired") from exc
        except JWTError as exc:
            raise InvalidTokenError("Token is invalid") from exc

        try:
            user_id = int(payload["sub"])
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=UTC)
            issued_at = datetime.fromtimestamp(int(payload.get("iat", payload["exp"])), tz=UTC)
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidTokenError("Token claims are malformed") from exc
        return TokenClaims(user_id=user_id, issued_at=issued_at, expires_at=expires_at)


__all__ = [
    "ExpiredTokenError",
    "InvalidTokenError",
    "TokenClaims",
    "TokenError",
    "TokenService",
    "dummy_secret_hash",
    "hash_secret",
    "verify_secret",
]
