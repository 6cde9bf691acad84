from __future__ import annotations

import pytest

try:
    from hypothesis import HealthCheck, given, settings
    from hypothesis import strategies as st
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    pytest.skip("Requires the hypothesis library", allow_module_level=True)

from sqlalchemy.pool import StaticPool

from expense_api import crud
from expense_api.database import Database

_entries = st.lists(
    st.tuples(
        st.sampled_from(["alice", "bob"]),
        st.text(min_size=1, max_size=20).filter(lambda text: text.strip()),
        st.floats(min_value=-1e6, max_value=1e6, allow_nan=False, allow_infinity=False),
    ),
    max_size=15,
)


@settings(max_examples=30, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(entries=_entries)
def test_users_never_see_each_others_expenses(entries) -> None:
    database = Database("sqlite://", poolclass=StaticPool)
    database.init()
    try:
        with database.session() as session:
            users = {name: crud.create_user(session, name, "pw") for name in ("alice", "bob")}
            created = {name: set() for name in users}
            for owner, description, amount in entries:
                expense = crud.create_expense(session, users[owner].id, description, amount)
                created[owner].add(expense.id)

            for name, user in users.items():
                listed = crud.list_expenses_for_user(session, user.id)
                assert {expense.id for expense in listed} == created[name]
                assert all(expense.user_id == user.id for expense in listed)
                dates = [expense.date for expense in listed]
                assert dates == sorted(dates, reverse=True)
    finally:
        database.dispose()
