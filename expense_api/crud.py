"""Persistence helpers for users and their expenses.

None of these functions authorize anything: callers pass the ``user_id``
resolved by the auth gate and every expense query is filtered by it.
"""
from __future__ import annotations

from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .schemas import coerce_amount
from .security import hash_secret


class EntityConflictError(RuntimeError):
    """Raised when a unique constraint is violated."""


class EntityValidationError(ValueError):
    """Raised when input is missing or malformed."""


def get_user_by_identifier(session: Session, identifier: str) -> Optional[models.User]:
    stmt = select(models.User).where(models.User.identifier == identifier)
    return session.scalars(stmt).first()


def create_user(session: Session, identifier: str, secret: str) -> models.User:
    identifier = (identifier or "").strip()
    if not identifier:
        raise EntityValidationError("Identifier is required.")
    if not secret:
        raise EntityValidationError("Secret is required.")
    if get_user_by_identifier(session, identifier) is not None:
        raise EntityConflictError("Identifier is already registered.")

    user = models.User(identifier=identifier, secret_hash=hash_secret(secret))
    session.add(user)
    try:
        session.flush()
    except IntegrityError as exc:  # pragma: no cover - concurrent registration race
        raise EntityConflictError("Identifier is already registered.") from exc
    session.refresh(user)
    return user


def list_expenses_for_user(session: Session, user_id: int) -> List[models.Expense]:
    stmt = (
        select(models.Expense)
        .where(models.Expense.user_id == user_id)
        .order_by(models.Expense.date.desc(), models.Expense.id.desc())
    )
    return list(session.scalars(stmt))


def create_expense(session: Session, user_id: int, description: Any, amount: Any) -> models.Expense:
    """Persist an expense owned by ``user_id``.

    Raises:
      EntityValidationError: If ``description`` is blank or ``amount`` is not
        a finite number. Nothing is written in that case.
    """

    if not isinstance(description, str) or not description.strip():
        raise EntityValidationError("Description and amount are required.")
    try:
        value = coerce_amount(amount)
    except ValueError as exc:
        raise EntityValidationError(str(exc)) from exc

    expense = models.Expense(user_id=user_id, description=description.strip(), amount=value)
    session.add(expense)
    session.flush()
    session.refresh(expense)
    return expense
