"""Budget spent/remaining maintenance.

BudgetAggregator is the only writer of Budget.spent_cents and
Budget.remaining_cents. Every adjustment is one SQL UPDATE that adds the
delta in the database and recomputes remaining from the same row, so two
concurrent writers against one budget cannot lose an update.

Callers run these methods inside the same unit of work as the expense write
they belong to; any exception raised here must abort that unit of work.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from errors import ConsistencyError, ValidationError
from models import Budget, Expense

logger = logging.getLogger(__name__)


class BudgetAggregator:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _resolve_budget(self, budget_id: int, *, crediting: bool) -> Budget:
        budget = self.session.get(Budget, budget_id)
        if budget is None or budget.user_id != self.user_id:
            raise ValidationError("Invalid budget ID", field="budget_id")
        # Reversals may still target a soft-deleted budget so its history stays
        # balanced; new spend may not.
        if crediting and not budget.is_active:
            raise ValidationError("Invalid budget ID", field="budget_id")
        return budget

    def _apply_delta(self, budget_id: int, delta: int) -> Budget:
        new_spent = Budget.spent_cents + delta
        result = self.session.execute(
            update(Budget)
            .where(Budget.id == budget_id, Budget.user_id == self.user_id)
            .values(
                spent_cents=new_spent,
                remaining_cents=Budget.amount_cents - new_spent,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConsistencyError(f"Budget {budget_id} disappeared during adjustment")
        logger.info(f"budget_adjusted: id={budget_id} delta={delta}")
        return self.session.get(Budget, budget_id, populate_existing=True)

    def _credit(self, budget_id: int, amount: int) -> Budget:
        self._resolve_budget(budget_id, crediting=True)
        return self._apply_delta(budget_id, amount)

    def _debit(self, budget_id: int, amount: int) -> Budget:
        self._resolve_budget(budget_id, crediting=False)
        return self._apply_delta(budget_id, -amount)

    def validate_budget_ref(self, budget_id: Optional[int]) -> None:
        """Fail early, before any expense row is written, on an unusable budget."""
        if budget_id is None:
            return
        self._resolve_budget(budget_id, crediting=True)

    def apply_expense_create(self, expense: Expense) -> Optional[Budget]:
        if expense.budget_id is None:
            return None
        return self._credit(expense.budget_id, expense.amount_cents)

    def apply_expense_amount_change(
        self, old_amount: int, new_amount: int, budget_id: Optional[int]
    ) -> None:
        if budget_id is None or old_amount == new_amount:
            return
        delta = new_amount - old_amount
        self._resolve_budget(budget_id, crediting=delta > 0)
        self._apply_delta(budget_id, delta)

    def apply_expense_budget_reassignment(
        self,
        old_budget_id: Optional[int],
        new_budget_id: Optional[int],
        amount: int,
    ) -> None:
        if old_budget_id is None and new_budget_id is None:
            return
        if old_budget_id is None and new_budget_id is not None:
            self._credit(new_budget_id, amount)
            return
        if old_budget_id is not None and new_budget_id is None:
            self._debit(old_budget_id, amount)
            return
        if old_budget_id == new_budget_id:
            return
        # Validate the destination before touching the source.
        self._resolve_budget(new_budget_id, crediting=True)
        self._debit(old_budget_id, amount)
        self._apply_delta(new_budget_id, amount)

    def apply_expense_delete(self, expense: Expense) -> None:
        if expense.budget_id is None:
            return
        self._debit(expense.budget_id, expense.amount_cents)

    def apply_budget_amount_change(self, budget_id: int, amount_cents: int) -> Budget:
        result = self.session.execute(
            update(Budget)
            .where(Budget.id == budget_id, Budget.user_id == self.user_id)
            .values(
                amount_cents=amount_cents,
                remaining_cents=amount_cents - Budget.spent_cents,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConsistencyError(f"Budget {budget_id} disappeared during update")
        return self.session.get(Budget, budget_id, populate_existing=True)

    def reconcile(self) -> list[int]:
        """Reset every budget of this user to the sum of its active expenses.

        Returns the ids of budgets whose stored spent value had drifted.
        """
        actual = (
            select(func.coalesce(func.sum(Expense.amount_cents), 0))
            .where(
                Expense.budget_id == Budget.id,
                Expense.user_id == self.user_id,
                Expense.is_active.is_(True),
            )
            .correlate(Budget)
            .scalar_subquery()
        )
        drifted = self.session.execute(
            select(Budget.id, Budget.spent_cents, actual.label("actual")).where(
                Budget.user_id == self.user_id,
                Budget.spent_cents != actual,
            )
        ).all()
        for row in drifted:
            logger.warning(
                f"reconcile: drift budget_id={row.id} stored={row.spent_cents} "
                f"actual={row.actual}"
            )

        self.session.execute(
            update(Budget)
            .where(Budget.user_id == self.user_id)
            .values(spent_cents=actual, remaining_cents=Budget.amount_cents - actual)
            .execution_options(synchronize_session=False)
        )
        self.session.expire_all()
        return [row.id for row in drifted]
