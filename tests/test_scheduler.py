from contextlib import contextmanager
from datetime import date

from sqlalchemy import create_engine, update
from sqlalchemy.orm import Session

import scheduler
from database import Base
from models import Budget, ExpenseCategory
from schemas import BudgetIn, ExpenseIn
from services import BudgetService, ExpenseService


def _engine():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return engine


def test_reconcile_job_repairs_every_user(monkeypatch) -> None:
    engine = _engine()
    with Session(engine) as session:
        ids = []
        for user_id in (1, 2):
            budget = BudgetService(session, user_id).create(
                BudgetIn(title="Food", amount_cents=5_000, category=ExpenseCategory.food)
            )
            ExpenseService(session, user_id).create(
                ExpenseIn(
                    name="Market",
                    amount_cents=1_000,
                    date=date(2025, 3, 2),
                    budget_id=budget.id,
                )
            )
            ids.append(budget.id)
        session.execute(update(Budget).values(spent_cents=0, remaining_cents=5_000))
        session.commit()

    @contextmanager
    def fake_scope():
        with Session(engine) as session:
            yield session
            session.commit()

    monkeypatch.setattr(scheduler, "session_scope", fake_scope)
    manager = scheduler.SchedulerManager()

    assert manager.reconcile("reconcile_daily") == 2
    assert manager.reconcile("reconcile_hourly_safety") == 0

    with Session(engine) as session:
        for budget_id in ids:
            budget = session.get(Budget, budget_id)
            assert (budget.spent_cents, budget.remaining_cents) == (1_000, 4_000)


def test_disabled_scheduler_registers_nothing(monkeypatch) -> None:
    manager = scheduler.SchedulerManager()
    manager.enabled = False
    calls = []
    monkeypatch.setattr(manager, "reconcile", calls.append)

    manager.start()

    assert calls == []
    assert manager.scheduler.get_jobs() == []
    assert not manager.scheduler.running
    assert set(manager._triggers()) == set(scheduler.RECONCILE_JOBS)
