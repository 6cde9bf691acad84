from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from jose import jwt

from expense_api import security
from expense_api.security import (
    ExpiredTokenError,
    InvalidTokenError,
    TokenError,
    TokenService,
    dummy_secret_hash,
    hash_secret,
    verify_secret,
)

SECRET = "unit-test-secret"


@pytest.fixture()
def tokens() -> TokenService:
    return TokenService(SECRET, timedelta(hours=1))


def test_hash_secret_is_salted():
    first = hash_secret("pw1")
    second = hash_secret("pw1")
    assert first != second
    assert verify_secret("pw1", first)
    assert verify_secret("pw1", second)


def test_verify_secret_rejects_malformed_hashes():
    assert not verify_secret("pw1", "")
    assert not verify_secret("pw1", "plain-text")
    assert not verify_secret("pw1", "md5$1$00$00")


def test_issue_and_verify_round_trip(tokens):
    now = datetime.now(tz=UTC)
    claims = tokens.verify(tokens.issue(42, now=now))
    assert claims.user_id == 42
    assert claims.expires_at - claims.issued_at == timedelta(hours=1)


def test_expired_token_is_rejected_even_if_well_signed(tokens):
    token = tokens.issue(42, now=datetime.now(tz=UTC) - timedelta(hours=2))
    with pytest.raises(ExpiredTokenError):
        tokens.verify(token)


def test_token_signed_with_other_secret_is_invalid(tokens):
    token = TokenService("someone-else", timedelta(hours=1)).issue(42)
    with pytest.raises(InvalidTokenError):
        tokens.verify(token)


def test_tampered_token_is_invalid(tokens):
    header, payload, signature = tokens.issue(42).split(".")
    forged = jwt.encode({"sub": "1", "exp": 4102444800}, "guess", algorithm="HS256").split(".")[1]
    with pytest.raises(InvalidTokenError):
        tokens.verify(".".join([header, forged, signature]))


@pytest.mark.parametrize(
    "claims",
    [
        {"sub": "not-a-number", "exp": 4102444800},
        {"exp": 4102444800},
        {"sub": "42"},
    ],
)
def test_malformed_claims_are_invalid(tokens, claims):
    token = jwt.encode(claims, SECRET, algorithm="HS256")
    with pytest.raises(InvalidTokenError):
        tokens.verify(token)


def test_errors_share_a_base_class():
    assert issubclass(ExpiredTokenError, TokenError)
    assert issubclass(InvalidTokenError, TokenError)


def test_empty_signing_secret_is_refused():
    with pytest.raises(ValueError):
        TokenService("", timedelta(hours=1))


def test_repr_does_not_leak_secret(tokens):
    assert SECRET not in repr(tokens)


def test_dummy_hash_follows_current_iteration_count(monkeypatch):
    monkeypatch.setattr(security, "HASH_ITERATIONS", 1_234)
    dummy = dummy_secret_hash()
    assert dummy.split("$")[1] == "1234"
    assert dummy_secret_hash() == dummy
    assert not verify_secret("anything", dummy)
