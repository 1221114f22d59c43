from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Optional

from sqlalchemy import distinct, func, or_, select
from sqlalchemy.orm import Session, joinedload

from aggregates import BudgetAggregator
from database import unit_of_work
from errors import NotFoundError, ValidationError
from insights import budget_notifications, generate_insights
from models import (
    Budget,
    Expense,
    ExpenseAnalytics,
    ExpenseCategory,
    Income,
    SavingsBudget,
    SavingsExpense,
    Subscription,
    SubscriptionCategory,
)
from periods import (
    Period,
    add_months,
    local_today,
    month_end,
    month_period,
    month_start,
    resolve_overview_period,
    year_period,
)
from rollups import (
    analytics_category_breakdown,
    analytics_monthly_breakdown,
    analytics_overview,
    budget_overview,
    category_breakdown,
    category_sums,
    category_year_trends,
    monthly_breakdown,
    monthly_recurring_cost,
    percent_change,
    savings_summary,
    totals,
    trend,
    utilization,
    yearly_trends,
)
from schemas import (
    BudgetIn,
    BudgetUpdate,
    ExpenseAnalyticsIn,
    ExpenseIn,
    ExpenseUpdate,
    IncomeIn,
    IncomeUpdate,
    SavingsBudgetIn,
    SavingsExpenseIn,
    SavingsExpenseUpdate,
    SubscriptionIn,
    SubscriptionUpdate,
)

logger = logging.getLogger(__name__)

DASHBOARD_TREND_MONTHS = 6
RECENT_ITEMS = 5

EXPENSE_SORT_COLUMNS = {
    "date": Expense.date,
    "amount": Expense.amount_cents,
    "amount_cents": Expense.amount_cents,
    "name": Expense.name,
    "category": Expense.category,
    "created_at": Expense.created_at,
}
SUBSCRIPTION_SORT_COLUMNS = {
    "created_at": Subscription.created_at,
    "name": Subscription.name,
    "total_spend": Subscription.total_spend_cents,
    "total_spend_cents": Subscription.total_spend_cents,
    "next_payment_date": Subscription.next_payment_date,
}


@dataclass
class Page:
    items: list[Any]
    total: int
    page: int
    limit: int

    def pagination(self) -> dict[str, int]:
        return {
            "current_page": self.page,
            "total_pages": math.ceil(self.total / self.limit) if self.limit else 0,
            "total_items": self.total,
            "items_per_page": self.limit,
        }


@dataclass
class ExpenseFilters:
    category: Optional[ExpenseCategory] = None
    search: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget_id: Optional[int] = None
    sort_by: str = "date"
    sort_order: str = "desc"


@dataclass
class SubscriptionFilters:
    category: Optional[SubscriptionCategory] = None
    search: Optional[str] = None
    recurring: Optional[bool] = None
    sort_by: str = "created_at"
    sort_order: str = "desc"


def _paginate(session: Session, stmt, page: int, limit: int, *options) -> Page:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive", field="page")
    total = session.execute(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ).scalar_one()
    page_stmt = stmt.options(*options).offset((page - 1) * limit).limit(limit)
    items = session.scalars(page_stmt).unique().all()
    return Page(items=list(items), total=int(total or 0), page=page, limit=limit)


def _ordered(stmt, columns: dict[str, Any], sort_by: str, sort_order: str, tiebreak):
    column = columns.get(sort_by)
    if column is None:
        raise ValidationError(f"Cannot sort by {sort_by}", field="sort_by")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sort_order must be asc or desc", field="sort_order")
    if sort_order == "desc":
        return stmt.order_by(column.desc(), tiebreak.desc())
    return stmt.order_by(column.asc(), tiebreak.asc())


def _like(value: str) -> str:
    return f"%{value.strip().lower()}%"


class BudgetService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _active(self):
        return select(Budget).where(
            Budget.user_id == self.user_id, Budget.is_active.is_(True)
        )

    def all_active(self) -> list[Budget]:
        return list(self.session.scalars(self._active().order_by(Budget.id)).all())

    def recently_updated(self, limit: int) -> list[Budget]:
        stmt = self._active().order_by(Budget.updated_at.desc(), Budget.id.desc())
        return list(self.session.scalars(stmt.limit(limit)).all())

    def get(self, budget_id: int) -> Budget:
        budget = self.session.scalar(self._active().where(Budget.id == budget_id))
        if not budget:
            raise NotFoundError("Budget not found")
        return budget

    def list(
        self,
        page: int = 1,
        limit: int = 10,
        category: Optional[ExpenseCategory] = None,
        search: Optional[str] = None,
    ) -> Page:
        stmt = self._active().order_by(Budget.created_at.desc(), Budget.id.desc())
        if category:
            stmt = stmt.where(Budget.category == category)
        if search:
            stmt = stmt.where(func.lower(Budget.title).like(_like(search)))
        return _paginate(self.session, stmt, page, limit)

    def create(self, data: BudgetIn) -> Budget:
        with unit_of_work(self.session):
            budget = Budget(
                user_id=self.user_id,
                title=data.title.strip(),
                amount_cents=data.amount_cents,
                spent_cents=0,
                remaining_cents=data.amount_cents,
                category=data.category,
                icon=data.icon,
                color=data.color,
            )
            self.session.add(budget)
            self.session.flush()
        logger.info(f"budget_created: id={budget.id} amount={budget.amount_cents}")
        return budget

    def update(self, budget_id: int, data: BudgetUpdate) -> Budget:
        budget = self.get(budget_id)
        with unit_of_work(self.session):
            if data.title is not None:
                budget.title = data.title.strip()
            if data.category is not None:
                budget.category = data.category
            if data.icon is not None:
                budget.icon = data.icon
            if data.color is not None:
                budget.color = data.color
            self.session.flush()
            amount = data.amount_cents
            if amount is not None and amount != budget.amount_cents:
                aggregator = BudgetAggregator(self.session, self.user_id)
                budget = aggregator.apply_budget_amount_change(budget.id, amount)
        return budget

    def soft_delete(self, budget_id: int) -> None:
        budget = self.get(budget_id)
        with unit_of_work(self.session):
            budget.is_active = False
        logger.info(f"budget_deleted: id={budget_id}")

    def summary(self) -> dict[str, object]:
        budgets = self.all_active()
        overview = budget_overview(budgets)
        breakdown = category_sums(
            budgets, ("amount_cents", "spent_cents", "remaining_cents")
        )
        return {
            "overview": overview,
            "category_breakdown": {
                category: {
                    "total_budget": bucket["amount_cents"],
                    "total_spent": bucket["spent_cents"],
                    "total_remaining": bucket["remaining_cents"],
                    "count": bucket["count"],
                }
                for category, bucket in breakdown.items()
            },
        }

    def reconcile(self) -> list[int]:
        with unit_of_work(self.session):
            drifted = BudgetAggregator(self.session, self.user_id).reconcile()
        logger.info(f"reconcile_done: user_id={self.user_id} drifted={len(drifted)}")
        return drifted


class ExpenseService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _active(self):
        return select(Expense).where(
            Expense.user_id == self.user_id, Expense.is_active.is_(True)
        )

    def _loaded(self):
        return self._active().options(joinedload(Expense.budget))

    def between(self, start: date, end: date) -> list[Expense]:
        stmt = (
            self._loaded()
            .where(Expense.date.between(start, end))
            .order_by(Expense.date.asc(), Expense.id.asc())
        )
        return list(self.session.scalars(stmt).unique().all())

    def recent(self, limit: int = 10) -> list[Expense]:
        stmt = self._loaded().order_by(Expense.date.desc(), Expense.id.desc()).limit(
            limit
        )
        return list(self.session.scalars(stmt).unique().all())

    def get(self, expense_id: int) -> Expense:
        expense = self.session.scalar(self._loaded().where(Expense.id == expense_id))
        if not expense:
            raise NotFoundError("Expense not found")
        return expense

    def list(
        self, filters: ExpenseFilters, page: int = 1, limit: int = 10
    ) -> Page:
        stmt = _ordered(
            self._active(),
            EXPENSE_SORT_COLUMNS,
            filters.sort_by,
            filters.sort_order,
            Expense.id,
        )
        if filters.category:
            stmt = stmt.where(Expense.category == filters.category)
        if filters.budget_id is not None:
            stmt = stmt.where(Expense.budget_id == filters.budget_id)
        if filters.start_date:
            stmt = stmt.where(Expense.date >= filters.start_date)
        if filters.end_date:
            stmt = stmt.where(Expense.date <= filters.end_date)
        if filters.search:
            like = _like(filters.search)
            stmt = stmt.where(
                or_(
                    func.lower(Expense.name).like(like),
                    func.lower(func.coalesce(Expense.description, "")).like(like),
                )
            )
        return _paginate(
            self.session, stmt, page, limit, joinedload(Expense.budget)
        )

    def _add(self, aggregator: BudgetAggregator, data: ExpenseIn) -> Expense:
        aggregator.validate_budget_ref(data.budget_id)
        expense = Expense(
            user_id=self.user_id,
            name=data.name.strip(),
            amount_cents=data.amount_cents,
            date=data.date or local_today(),
            category=data.category,
            receipt=data.receipt,
            description=data.description,
            budget_id=data.budget_id,
        )
        self.session.add(expense)
        self.session.flush()
        aggregator.apply_expense_create(expense)
        return expense

    def create(self, data: ExpenseIn) -> Expense:
        with unit_of_work(self.session):
            expense = self._add(BudgetAggregator(self.session, self.user_id), data)
        logger.info(f"expense_created: id={expense.id} budget_id={expense.budget_id}")
        self.session.refresh(expense)
        return expense

    def bulk_create(self, items: list[ExpenseIn]) -> list[Expense]:
        if not items:
            raise ValidationError("At least one expense is required", field="expenses")
        with unit_of_work(self.session):
            aggregator = BudgetAggregator(self.session, self.user_id)
            created = [self._add(aggregator, data) for data in items]
        logger.info(f"expense_bulk_created: count={len(created)}")
        for expense in created:
            self.session.refresh(expense)
        return created

    def update(self, expense_id: int, data: ExpenseUpdate) -> Expense:
        expense = self.get(expense_id)
        fields = data.model_fields_set
        old_amount = expense.amount_cents
        old_budget_id = expense.budget_id
        new_amount = old_amount if data.amount_cents is None else data.amount_cents
        new_budget_id = data.budget_id if "budget_id" in fields else old_budget_id

        with unit_of_work(self.session):
            aggregator = BudgetAggregator(self.session, self.user_id)
            if new_budget_id != old_budget_id:
                # Move the old amount, then settle any amount edit on the new budget.
                aggregator.apply_expense_budget_reassignment(
                    old_budget_id, new_budget_id, old_amount
                )
                if new_budget_id is not None:
                    aggregator.apply_expense_amount_change(
                        old_amount, new_amount, new_budget_id
                    )
            else:
                aggregator.apply_expense_amount_change(
                    old_amount, new_amount, old_budget_id
                )

            if data.name is not None:
                expense.name = data.name.strip()
            if data.date is not None:
                expense.date = data.date
            if data.category is not None:
                expense.category = data.category
            if data.receipt is not None:
                expense.receipt = data.receipt
            if "description" in fields:
                expense.description = data.description
            expense.amount_cents = new_amount
            expense.budget_id = new_budget_id
            self.session.flush()

        logger.info(
            f"expense_updated: id={expense.id} "
            f"budget_id={old_budget_id}->{new_budget_id} "
            f"amount={old_amount}->{new_amount}"
        )
        self.session.refresh(expense)
        return expense

    def soft_delete(self, expense_id: int) -> None:
        expense = self.get(expense_id)
        with unit_of_work(self.session):
            BudgetAggregator(self.session, self.user_id).apply_expense_delete(expense)
            expense.is_active = False
        logger.info(f"expense_deleted: id={expense_id} budget_id={expense.budget_id}")

    def summary(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> dict[str, object]:
        stmt = self._active()
        if start_date:
            stmt = stmt.where(Expense.date >= start_date)
        if end_date:
            stmt = stmt.where(Expense.date <= end_date)
        expenses = list(self.session.scalars(stmt).unique().all())
        overall = totals(expenses)
        return {
            "overview": {
                "total_spent": overall["total"],
                "expense_count": overall["count"],
            },
            "category_breakdown": category_breakdown(expenses),
            "monthly_breakdown": monthly_breakdown(expenses, local_today().year),
        }


class SubscriptionService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _active(self):
        return select(Subscription).where(
            Subscription.user_id == self.user_id, Subscription.is_active.is_(True)
        )

    def all_active(self) -> list[Subscription]:
        stmt = self._active().order_by(Subscription.id)
        return list(self.session.scalars(stmt).all())

    def recent(self, limit: int) -> list[Subscription]:
        stmt = self._active().order_by(
            Subscription.created_at.desc(), Subscription.id.desc()
        )
        return list(self.session.scalars(stmt.limit(limit)).all())

    def get(self, subscription_id: int) -> Subscription:
        sub = self.session.scalar(
            self._active().where(Subscription.id == subscription_id)
        )
        if not sub:
            raise NotFoundError("Subscription not found")
        return sub

    def list(
        self, filters: SubscriptionFilters, page: int = 1, limit: int = 10
    ) -> Page:
        stmt = _ordered(
            self._active(),
            SUBSCRIPTION_SORT_COLUMNS,
            filters.sort_by,
            filters.sort_order,
            Subscription.id,
        )
        if filters.category:
            stmt = stmt.where(Subscription.category == filters.category)
        if filters.recurring is not None:
            stmt = stmt.where(Subscription.recurring.is_(filters.recurring))
        if filters.search:
            like = _like(filters.search)
            stmt = stmt.where(
                or_(
                    func.lower(Subscription.name).like(like),
                    func.lower(Subscription.plan).like(like),
                )
            )
        return _paginate(self.session, stmt, page, limit)

    def create(self, data: SubscriptionIn) -> Subscription:
        with unit_of_work(self.session):
            sub = Subscription(user_id=self.user_id, **data.model_dump())
            sub.name = sub.name.strip()
            self.session.add(sub)
            self.session.flush()
        logger.info(f"subscription_created: id={sub.id}")
        return sub

    def update(self, subscription_id: int, data: SubscriptionUpdate) -> Subscription:
        sub = self.get(subscription_id)
        with unit_of_work(self.session):
            for name, value in data.model_dump(exclude_unset=True).items():
                if value is None and name != "next_payment_date":
                    continue
                setattr(sub, name, value)
            self.session.flush()
        return sub

    def soft_delete(self, subscription_id: int) -> None:
        sub = self.get(subscription_id)
        with unit_of_work(self.session):
            sub.is_active = False
        logger.info(f"subscription_deleted: id={subscription_id}")

    def summary(self) -> dict[str, object]:
        subs = self.all_active()
        overall = totals(subs, "total_spend_cents")
        breakdown = category_breakdown(subs, "total_spend_cents")
        return {
            "overview": {
                "total_spend": overall["total"],
                "subscription_count": overall["count"],
                "recurring_count": sum(1 for s in subs if s.recurring),
                "monthly_recurring_cost": monthly_recurring_cost(subs),
            },
            "category_breakdown": {
                category: {"total_spend": bucket["total"], "count": bucket["count"]}
                for category, bucket in breakdown.items()
            },
        }


class SavingsService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def incomes(self) -> list[Income]:
        stmt = (
            select(Income)
            .where(Income.user_id == self.user_id)
            .order_by(Income.created_at.desc(), Income.id.desc())
        )
        return list(self.session.scalars(stmt).all())

    def _income(self, income_id: int) -> Income:
        income = self.session.get(Income, income_id)
        if not income or income.user_id != self.user_id:
            raise NotFoundError("Income not found")
        return income

    def create_income(self, data: IncomeIn) -> Income:
        with unit_of_work(self.session):
            income = Income(user_id=self.user_id, **data.model_dump())
            self.session.add(income)
            self.session.flush()
        return income

    def update_income(self, income_id: int, data: IncomeUpdate) -> Income:
        income = self._income(income_id)
        with unit_of_work(self.session):
            for name, value in data.model_dump(exclude_unset=True).items():
                if value is not None:
                    setattr(income, name, value)
            self.session.flush()
        return income

    def delete_income(self, income_id: int) -> None:
        income = self._income(income_id)
        with unit_of_work(self.session):
            self.session.delete(income)

    def expenses(self) -> list[SavingsExpense]:
        stmt = (
            select(SavingsExpense)
            .where(SavingsExpense.user_id == self.user_id)
            .order_by(SavingsExpense.created_at.desc(), SavingsExpense.id.desc())
        )
        return list(self.session.scalars(stmt).all())

    def _expense(self, expense_id: int) -> SavingsExpense:
        expense = self.session.get(SavingsExpense, expense_id)
        if not expense or expense.user_id != self.user_id:
            raise NotFoundError("Savings expense not found")
        return expense

    def create_expense(self, data: SavingsExpenseIn) -> SavingsExpense:
        with unit_of_work(self.session):
            expense = SavingsExpense(
                user_id=self.user_id,
                category=data.category,
                per_month_cents=data.per_month_cents,
                per_year_cents=data.per_month_cents * 12,
            )
            self.session.add(expense)
            self.session.flush()
        return expense

    def update_expense(
        self, expense_id: int, data: SavingsExpenseUpdate
    ) -> SavingsExpense:
        expense = self._expense(expense_id)
        with unit_of_work(self.session):
            if data.category is not None:
                expense.category = data.category
            if data.per_month_cents is not None:
                expense.per_month_cents = data.per_month_cents
            expense.per_year_cents = expense.per_month_cents * 12
            self.session.flush()
        return expense

    def delete_expense(self, expense_id: int) -> None:
        expense = self._expense(expense_id)
        with unit_of_work(self.session):
            self.session.delete(expense)

    def budget(self) -> Optional[SavingsBudget]:
        return self.session.scalar(
            select(SavingsBudget).where(SavingsBudget.user_id == self.user_id)
        )

    def upsert_budget(self, data: SavingsBudgetIn) -> SavingsBudget:
        existing = self.budget()
        with unit_of_work(self.session):
            if existing:
                existing.monthly_budget_cents = data.monthly_budget_cents
                budget = existing
            else:
                budget = SavingsBudget(
                    user_id=self.user_id,
                    monthly_budget_cents=data.monthly_budget_cents,
                )
                self.session.add(budget)
            self.session.flush()
        return budget

    def summary(self) -> dict[str, int]:
        budget = self.budget()
        return savings_summary(
            self.incomes(),
            self.expenses(),
            budget.monthly_budget_cents if budget else 0,
        )


class AnalyticsService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _rows(self):
        return select(ExpenseAnalytics).where(ExpenseAnalytics.user_id == self.user_id)

    def upsert(self, data: ExpenseAnalyticsIn) -> tuple[ExpenseAnalytics, bool]:
        existing = self.session.scalar(
            self._rows().where(
                ExpenseAnalytics.category == data.category,
                ExpenseAnalytics.month == data.month,
                ExpenseAnalytics.year == data.year,
            )
        )
        with unit_of_work(self.session):
            if existing:
                existing.actual_cents = data.actual_cents
                existing.budget_cents = data.budget_cents
                existing.last_year_cents = data.last_year_cents
                existing.description = data.description
                row = existing
            else:
                row = ExpenseAnalytics(user_id=self.user_id, **data.model_dump())
                self.session.add(row)
            self.session.flush()
        return row, existing is None

    def list(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
        category: Optional[ExpenseCategory] = None,
    ) -> list[ExpenseAnalytics]:
        stmt = self._rows().order_by(
            ExpenseAnalytics.year.desc(),
            ExpenseAnalytics.month.desc(),
            ExpenseAnalytics.id.asc(),
        )
        if year is not None:
            stmt = stmt.where(ExpenseAnalytics.year == year)
        if month is not None:
            stmt = stmt.where(ExpenseAnalytics.month == month)
        if category:
            stmt = stmt.where(ExpenseAnalytics.category == category)
        return list(self.session.scalars(stmt).all())

    def summary(self, year: Optional[int] = None) -> dict[str, object]:
        year = year or local_today().year
        rows = self.list(year=year)
        return {
            "year": year,
            "overview": analytics_overview(rows),
            "category_breakdown": analytics_category_breakdown(rows),
            "monthly_breakdown": analytics_monthly_breakdown(rows),
        }

    def trends(self, years: int = 3) -> dict[str, object]:
        if years < 1:
            raise ValidationError("years must be at least 1", field="years")
        current_year = local_today().year
        start_year = current_year - years + 1
        stmt = (
            self._rows()
            .where(ExpenseAnalytics.year >= start_year)
            .order_by(ExpenseAnalytics.year.asc(), ExpenseAnalytics.month.asc())
        )
        rows = list(self.session.scalars(stmt).all())
        return {
            "yearly_trends": yearly_trends(rows, start_year, current_year),
            "category_trends": category_year_trends(rows),
            "period": {
                "start_year": start_year,
                "current_year": current_year,
                "years": years,
            },
        }

    def insights(self) -> dict[str, object]:
        today = local_today()
        this_month = month_period(today.year, today.month)
        analytics = self.list(year=today.year)
        expenses = ExpenseService(self.session, self.user_id).between(
            this_month.start, this_month.end
        )
        budgets = BudgetService(self.session, self.user_id).all_active()
        insights = generate_insights(budgets, expenses, analytics)
        overview = budget_overview(budgets)
        return {
            "insights": [insight.as_dict() for insight in insights],
            "summary": {
                "total_budget": overview["total_budget"],
                "total_spent": overview["total_spent"],
                "budget_utilization": overview["budget_utilization"],
                "insights_count": len(insights),
            },
        }


class DashboardService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id
        self.budgets = BudgetService(session, user_id)
        self.expenses = ExpenseService(session, user_id)
        self.subscriptions = SubscriptionService(session, user_id)
        self.savings = SavingsService(session, user_id)

    def overview(
        self, period: Optional[str] = None, *, today: Optional[date] = None
    ) -> dict[str, object]:
        today = today or local_today()
        window: Period = resolve_overview_period(period, today=today)
        trend_start = add_months(month_start(today), -(DASHBOARD_TREND_MONTHS - 1))

        budgets = self.budgets.all_active()
        expenses = self.expenses.between(window.start, window.end)
        trend_expenses = self.expenses.between(trend_start, month_end(today))
        subscriptions = self.subscriptions.all_active()
        savings = self.savings.summary()

        budget_totals = budget_overview(budgets)
        expense_totals = totals(expenses)
        subscription_totals = totals(subscriptions, "total_spend_cents")

        recent_expenses = sorted(
            expenses, key=lambda e: (e.date, e.id), reverse=True
        )[:RECENT_ITEMS]
        recent_budgets = sorted(
            budgets, key=lambda b: (b.created_at, b.id), reverse=True
        )[:RECENT_ITEMS]

        return {
            "period": {
                "type": window.slug,
                "start_date": window.start,
                "end_date": window.end,
            },
            "overview": {
                **budget_totals,
                "total_expenses": expense_totals["total"],
                "expense_count": expense_totals["count"],
                "total_subscription_spend": subscription_totals["total"],
                "subscription_count": subscription_totals["count"],
                "recurring_subscriptions": sum(1 for s in subscriptions if s.recurring),
                "total_income": savings["total_income"],
                "total_monthly_expenses": savings["total_monthly_expenses"],
                "total_yearly_expenses": savings["total_yearly_expenses"],
                "monthly_budget": savings["monthly_budget"],
                "monthly_savings": savings["monthly_savings"],
                "yearly_savings": savings["yearly_savings"],
            },
            "breakdowns": {
                "category_expenses": {
                    category: bucket["total"]
                    for category, bucket in category_breakdown(expenses).items()
                },
                "monthly_trends": [
                    {
                        "month": bucket["label"],
                        "amount": bucket["total"],
                        "count": bucket["count"],
                    }
                    for bucket in trend(trend_expenses, DASHBOARD_TREND_MONTHS, today)
                ],
            },
            "recent": {
                "expenses": [
                    {
                        "id": e.id,
                        "name": e.name,
                        "amount_cents": e.amount_cents,
                        "category": e.category.value,
                        "date": e.date,
                    }
                    for e in recent_expenses
                ],
                "budgets": [
                    {
                        "id": b.id,
                        "title": b.title,
                        "amount_cents": b.amount_cents,
                        "spent_cents": b.spent_cents,
                        "remaining_cents": b.amount_cents - b.spent_cents,
                        "category": b.category.value,
                        "icon": b.icon,
                        "color": b.color,
                    }
                    for b in recent_budgets
                ],
            },
        }

    def quick_stats(self, *, today: Optional[date] = None) -> dict[str, object]:
        today = today or local_today()
        this_month = month_period(today.year, today.month)
        last_month_start = add_months(this_month.start, -1)
        last_month = month_period(last_month_start.year, last_month_start.month)
        this_year = year_period(today.year)

        # One read covers all three windows; January reaches back into last year.
        window = self.expenses.between(
            min(last_month.start, this_year.start), this_year.end
        )
        monthly = totals(e for e in window if this_month.contains(e.date))
        previous = totals(e for e in window if last_month.contains(e.date))
        yearly = totals(e for e in window if this_year.contains(e.date))
        budgets = budget_overview(self.budgets.all_active())
        subscriptions = self.subscriptions.all_active()

        return {
            "current_month": {
                "spending": monthly["total"],
                "change": percent_change(monthly["total"], previous["total"]),
            },
            "current_year": {"spending": yearly["total"]},
            "budget": {
                "total": budgets["total_budget"],
                "spent": budgets["total_spent"],
                "remaining": budgets["total_remaining"],
                "count": budgets["budget_count"],
                "utilization": utilization(
                    budgets["total_spent"], budgets["total_budget"]
                ),
            },
            "subscriptions": {"count": len(subscriptions)},
        }

    def activity_feed(self, limit: int = 20) -> dict[str, object]:
        if limit < 1:
            raise ValidationError("limit must be positive", field="limit")
        half = max(limit // 2, 1)
        activities: list[dict[str, object]] = []
        for e in self.expenses.recent(limit):
            activities.append(
                {
                    "type": "expense",
                    "id": e.id,
                    "title": e.name,
                    "amount_cents": e.amount_cents,
                    "category": e.category.value,
                    "date": datetime.combine(e.date, time.min),
                    "budget": e.budget.title if e.budget is not None else None,
                    "action": "added",
                }
            )
        for b in self.budgets.recently_updated(half):
            activities.append(
                {
                    "type": "budget",
                    "id": b.id,
                    "title": b.title,
                    "amount_cents": b.amount_cents,
                    "category": b.category.value,
                    "date": b.updated_at,
                    "action": "updated",
                }
            )
        for s in self.subscriptions.recent(half):
            activities.append(
                {
                    "type": "subscription",
                    "id": s.id,
                    "title": s.name,
                    "amount_cents": s.total_spend_cents,
                    "category": s.category.value,
                    "date": s.created_at,
                    "action": "added",
                }
            )
        activities.sort(key=lambda a: a["date"], reverse=True)
        activities = activities[:limit]
        return {"activities": activities, "total": len(activities)}

    def notifications(self, *, today: Optional[date] = None) -> dict[str, object]:
        today = today or local_today()
        this_month = month_period(today.year, today.month)
        notes = budget_notifications(
            self.budgets.all_active(),
            self.expenses.between(this_month.start, this_month.end),
        )
        return {
            "notifications": [note.as_dict() for note in notes],
            "count": len(notes),
            "unread_count": len(notes),
        }


def reconcile_all_budgets(session: Session) -> int:
    """Reconcile every user that owns budgets; returns the number of drifted rows."""
    user_ids = session.scalars(select(distinct(Budget.user_id))).all()
    drifted = 0
    for user_id in user_ids:
        drifted += len(BudgetService(session, user_id).reconcile())
    return drifted
