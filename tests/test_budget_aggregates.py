from datetime import date

import pytest
from sqlalchemy import create_engine, func, select, update
from sqlalchemy.orm import Session

from aggregates import BudgetAggregator
from database import Base
from errors import ConsistencyError, NotFoundError, ValidationError
from models import Budget, Expense, ExpenseCategory
from schemas import BudgetIn, BudgetUpdate, ExpenseIn, ExpenseUpdate
from services import BudgetService, ExpenseService


def _engine():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return engine


def _budget(
    session: Session, amount_cents: int, title: str = "Groceries", user_id: int = 1
):
    return BudgetService(session, user_id).create(
        BudgetIn(title=title, amount_cents=amount_cents, category=ExpenseCategory.food)
    )


def _expense_in(amount_cents: int, budget_id=None, name: str = "Market") -> ExpenseIn:
    return ExpenseIn(
        name=name,
        amount_cents=amount_cents,
        date=date(2025, 3, 2),
        category=ExpenseCategory.food,
        budget_id=budget_id,
    )


def _totals(session: Session, budget_id: int) -> tuple[int, int]:
    budget = session.get(Budget, budget_id, populate_existing=True)
    return budget.spent_cents, budget.remaining_cents


def _active_sum(session: Session, budget_id: int) -> int:
    return session.execute(
        select(func.coalesce(func.sum(Expense.amount_cents), 0)).where(
            Expense.budget_id == budget_id, Expense.is_active.is_(True)
        )
    ).scalar_one()


def test_create_edit_delete_round_trip() -> None:
    with Session(_engine()) as session:
        budget = _budget(session, 100_000)
        expenses = ExpenseService(session, 1)

        expense = expenses.create(_expense_in(15_000, budget.id))
        assert _totals(session, budget.id) == (15_000, 85_000)

        expenses.update(expense.id, ExpenseUpdate(amount_cents=20_000))
        assert _totals(session, budget.id) == (20_000, 80_000)

        expenses.soft_delete(expense.id)
        assert _totals(session, budget.id) == (0, 100_000)


def test_reassignment_moves_amount_between_budgets() -> None:
    with Session(_engine()) as session:
        first = _budget(session, 50_000, "First")
        second = _budget(session, 50_000, "Second")
        expenses = ExpenseService(session, 1)
        moved = expenses.create(_expense_in(10_000, first.id, "Moved"))
        stays = expenses.create(_expense_in(4_000, first.id, "Stays"))

        expenses.update(moved.id, ExpenseUpdate(budget_id=second.id))

        assert _totals(session, first.id) == (4_000, 46_000)
        assert _totals(session, second.id) == (10_000, 40_000)
        untouched = expenses.get(stays.id)
        assert untouched.budget_id == first.id
        assert untouched.amount_cents == 4_000


def test_reassignment_with_amount_change_settles_on_new_budget() -> None:
    with Session(_engine()) as session:
        first = _budget(session, 50_000, "First")
        second = _budget(session, 50_000, "Second")
        expenses = ExpenseService(session, 1)
        expense = expenses.create(_expense_in(10_000, first.id))

        expenses.update(
            expense.id, ExpenseUpdate(budget_id=second.id, amount_cents=7_500)
        )

        assert _totals(session, first.id) == (0, 50_000)
        assert _totals(session, second.id) == (7_500, 42_500)


def test_backfilling_budget_credits_full_amount() -> None:
    with Session(_engine()) as session:
        budget = _budget(session, 30_000)
        expenses = ExpenseService(session, 1)
        expense = expenses.create(_expense_in(6_000))
        assert _totals(session, budget.id) == (0, 30_000)

        updated = expenses.update(
            expense.id, ExpenseUpdate(budget_id=budget.id, amount_cents=9_000)
        )

        assert updated.budget_id == budget.id
        assert _totals(session, budget.id) == (9_000, 21_000)


def test_explicit_null_detaches_and_omitted_key_keeps_budget() -> None:
    with Session(_engine()) as session:
        budget = _budget(session, 30_000)
        expenses = ExpenseService(session, 1)
        expense = expenses.create(_expense_in(6_000, budget.id))

        kept = expenses.update(expense.id, ExpenseUpdate(name="Renamed"))
        assert kept.budget_id == budget.id
        assert _totals(session, budget.id) == (6_000, 24_000)

        detached = expenses.update(
            expense.id, ExpenseUpdate.model_validate({"budget_id": None})
        )
        assert detached.budget_id is None
        assert _totals(session, budget.id) == (0, 30_000)


def test_expense_without_budget_touches_nothing() -> None:
    with Session(_engine()) as session:
        budget = _budget(session, 10_000)
        ExpenseService(session, 1).create(_expense_in(2_500))
        assert _totals(session, budget.id) == (0, 10_000)


def test_invalid_budget_rolls_back_the_expense() -> None:
    with Session(_engine()) as session:
        foreign = _budget(session, 10_000, user_id=2)
        expenses = ExpenseService(session, 1)

        with pytest.raises(ValidationError) as missing:
            expenses.create(_expense_in(1_000, 999))
        assert missing.value.field == "budget_id"

        with pytest.raises(ValidationError):
            expenses.create(_expense_in(1_000, foreign.id))

        count = session.execute(select(func.count(Expense.id))).scalar_one()
        assert count == 0
        assert _totals(session, foreign.id) == (0, 10_000)


def test_inactive_budget_refuses_new_spend_but_accepts_reversals() -> None:
    with Session(_engine()) as session:
        budget = _budget(session, 10_000)
        expenses = ExpenseService(session, 1)
        expense = expenses.create(_expense_in(4_000, budget.id))
        BudgetService(session, 1).soft_delete(budget.id)

        with pytest.raises(ValidationError):
            expenses.create(_expense_in(1_000, budget.id))
        with pytest.raises(ValidationError):
            expenses.update(expense.id, ExpenseUpdate(amount_cents=5_000))

        expenses.update(expense.id, ExpenseUpdate(amount_cents=3_000))
        assert _totals(session, budget.id) == (3_000, 7_000)

        expenses.soft_delete(expense.id)
        assert _totals(session, budget.id) == (0, 10_000)


def test_failed_reassignment_leaves_source_untouched() -> None:
    with Session(_engine()) as session:
        budget = _budget(session, 10_000)
        expenses = ExpenseService(session, 1)
        expense = expenses.create(_expense_in(4_000, budget.id))

        with pytest.raises(ValidationError):
            expenses.update(expense.id, ExpenseUpdate(budget_id=12345))

        assert _totals(session, budget.id) == (4_000, 6_000)
        assert expenses.get(expense.id).budget_id == budget.id


def test_vanished_budget_aborts_the_write(monkeypatch) -> None:
    monkeypatch.setattr(
        BudgetAggregator,
        "_resolve_budget",
        lambda self, budget_id, *, crediting: None,
    )
    with Session(_engine()) as session:
        with pytest.raises(ConsistencyError):
            ExpenseService(session, 1).create(_expense_in(1_000, 404))

        count = session.execute(select(func.count(Expense.id))).scalar_one()
        assert count == 0


def test_over_budget_is_not_clamped() -> None:
    with Session(_engine()) as session:
        budget = _budget(session, 1_000)
        ExpenseService(session, 1).create(_expense_in(2_500, budget.id))
        assert _totals(session, budget.id) == (2_500, -1_500)


def test_budget_amount_change_recomputes_remaining() -> None:
    with Session(_engine()) as session:
        budget = _budget(session, 10_000)
        ExpenseService(session, 1).create(_expense_in(4_000, budget.id))

        updated = BudgetService(session, 1).update(
            budget.id, BudgetUpdate(amount_cents=6_000, title="Food")
        )

        assert updated.title == "Food"
        assert updated.amount_cents == 6_000
        assert _totals(session, budget.id) == (4_000, 2_000)


def test_mixed_operations_conserve_spent() -> None:
    with Session(_engine()) as session:
        first = _budget(session, 100_000, "First")
        second = _budget(session, 100_000, "Second")
        expenses = ExpenseService(session, 1)

        a = expenses.create(_expense_in(1_000, first.id, "a"))
        b = expenses.create(_expense_in(2_000, first.id, "b"))
        c = expenses.create(_expense_in(3_000, second.id, "c"))
        d = expenses.create(_expense_in(4_000, None, "d"))

        expenses.update(a.id, ExpenseUpdate(amount_cents=1_500))
        expenses.update(b.id, ExpenseUpdate(budget_id=second.id, amount_cents=2_200))
        expenses.update(c.id, ExpenseUpdate.model_validate({"budget_id": None}))
        expenses.update(d.id, ExpenseUpdate(budget_id=first.id))
        expenses.soft_delete(a.id)

        for budget_id in (first.id, second.id):
            spent, remaining = _totals(session, budget_id)
            assert spent == _active_sum(session, budget_id)
            assert remaining == 100_000 - spent
        assert _totals(session, first.id) == (4_000, 96_000)
        assert _totals(session, second.id) == (2_200, 97_800)


def test_bulk_create_is_all_or_nothing() -> None:
    with Session(_engine()) as session:
        budget = _budget(session, 10_000)
        expenses = ExpenseService(session, 1)

        created = expenses.bulk_create(
            [_expense_in(1_000, budget.id, "one"), _expense_in(2_000, budget.id, "two")]
        )
        assert len(created) == 2
        assert _totals(session, budget.id) == (3_000, 7_000)

        with pytest.raises(ValidationError):
            expenses.bulk_create(
                [_expense_in(500, budget.id, "three"), _expense_in(500, 999, "bad")]
            )
        assert _totals(session, budget.id) == (3_000, 7_000)
        count = session.execute(select(func.count(Expense.id))).scalar_one()
        assert count == 2


def test_reconcile_repairs_drift() -> None:
    with Session(_engine()) as session:
        budget = _budget(session, 10_000)
        clean = _budget(session, 5_000, "Clean")
        ExpenseService(session, 1).create(_expense_in(2_000, budget.id))
        session.execute(
            update(Budget).where(Budget.id == budget.id).values(spent_cents=9_999)
        )
        session.commit()

        drifted = BudgetService(session, 1).reconcile()

        assert drifted == [budget.id]
        assert _totals(session, budget.id) == (2_000, 8_000)
        assert _totals(session, clean.id) == (0, 5_000)


def test_other_users_expense_is_not_found() -> None:
    with Session(_engine()) as session:
        expense = ExpenseService(session, 2).create(_expense_in(1_000))
        with pytest.raises(NotFoundError):
            ExpenseService(session, 1).get(expense.id)
        with pytest.raises(NotFoundError):
            ExpenseService(session, 1).soft_delete(expense.id)


def test_concurrent_creates_against_one_budget_both_land(tmp_path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'budgets.db'}")
    Base.metadata.create_all(engine)
    with Session(engine) as setup:
        budget_id = _budget(setup, 1_000).id

    with Session(engine) as first, Session(engine) as second:
        stale = second.get(Budget, budget_id)
        assert stale.spent_cents == 0

        ExpenseService(first, 1).create(_expense_in(100, budget_id, "first"))
        ExpenseService(second, 1).create(_expense_in(50, budget_id, "second"))

    with Session(engine) as check:
        assert _totals(check, budget_id) == (150, 850)
        assert _active_sum(check, budget_id) == 150
