"""Pydantic schemas for serialising expense API data."""
from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


def coerce_amount(value: Any) -> float:
    """Coerce ``value`` to a finite float.

    Numeric strings such as ``"3.50"`` are accepted; booleans, blanks and
    anything that does not parse to a finite number are rejected.

    Raises:
      ValueError: If ``value`` is not a usable amount.
    """

    if value is None or isinstance(value, bool):
        raise ValueError("Amount must be a number")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError("Amount must be a number")
    try:
        amount = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("Amount must be a number") from exc
    except OverflowError as exc:
        raise ValueError("Amount must be a finite number") from exc
    if not math.isfinite(amount):
        raise ValueError("Amount must be a finite number")
    return amount


class Credentials(BaseModel):
    """Identifier and secret submitted to register or log in."""

    identifier: str = Field(
        ...,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("identifier", "username", "email"),
    )
    secret: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("secret", "password"),
    )

    @field_validator("identifier")
    @classmethod
    def _strip_identifier(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Identifier must be a non-empty string")
        return value


class UserRead(ORMModel):
    id: int
    identifier: str


class TokenRead(BaseModel):
    token: str
    token_type: str = "bearer"


class ExpenseCreate(BaseModel):
    description: str = Field(..., max_length=255)
    amount: float

    @field_validator("description", mode="before")
    @classmethod
    def _require_description(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Description must be a non-empty string")
        return value.strip()

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> float:
        return coerce_amount(value)


class ExpenseRead(ORMModel):
    id: int
    user_id: int
    description: str
    amount: float
    date: datetime

    @field_serializer("date")
    def _serialize_date(self, value: datetime) -> str:
        # SQLite hands back naive datetimes; stored values are always UTC.
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.isoformat()
