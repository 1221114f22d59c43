from datetime import date

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from models import ExpenseCategory, SubscriptionCategory
from schemas import BudgetIn, ExpenseIn, IncomeIn, SubscriptionIn
from services import (
    BudgetService,
    DashboardService,
    ExpenseService,
    SavingsService,
    SubscriptionService,
)

TODAY = date(2025, 6, 15)


def _engine():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return engine


def _seed(session: Session) -> int:
    budget = BudgetService(session, 1).create(
        BudgetIn(title="Living", amount_cents=100_000, category=ExpenseCategory.home)
    )
    expenses = ExpenseService(session, 1)
    for name, amount, day, category in [
        ("Rent share", 20_000, date(2025, 6, 10), ExpenseCategory.home),
        ("Train", 5_000, date(2025, 5, 20), ExpenseCategory.transport),
        ("Books", 1_000, date(2025, 1, 5), ExpenseCategory.education),
        ("Old", 7_000, date(2024, 12, 31), ExpenseCategory.other),
    ]:
        expenses.create(
            ExpenseIn(
                name=name,
                amount_cents=amount,
                date=day,
                category=category,
                budget_id=budget.id if name == "Rent share" else None,
            )
        )
    SubscriptionService(session, 1).create(
        SubscriptionIn(
            name="Music",
            plan="Solo 10/month",
            total_spend_cents=12_000,
            duration="1 year",
            recurring=True,
            category=SubscriptionCategory.music,
        )
    )
    SavingsService(session, 1).create_income(IncomeIn(amount_cents=250_000))
    return budget.id


def test_overview_for_month() -> None:
    with Session(_engine()) as session:
        _seed(session)
        data = DashboardService(session, 1).overview("month", today=TODAY)

        assert data["period"] == {
            "type": "month",
            "start_date": date(2025, 6, 1),
            "end_date": TODAY,
        }
        overview = data["overview"]
        assert overview["total_budget"] == 100_000
        assert overview["total_spent"] == 20_000
        assert overview["budget_utilization"] == 20
        assert overview["total_expenses"] == 20_000
        assert overview["expense_count"] == 1
        assert overview["recurring_subscriptions"] == 1
        assert overview["total_income"] == 250_000
        assert data["breakdowns"]["category_expenses"] == {"Home": 20_000}

        trend = data["breakdowns"]["monthly_trends"]
        assert [t["month"] for t in trend] == [
            "Jan 2025",
            "Feb 2025",
            "Mar 2025",
            "Apr 2025",
            "May 2025",
            "Jun 2025",
        ]
        assert [t["amount"] for t in trend] == [1_000, 0, 0, 0, 5_000, 20_000]

        assert [e["name"] for e in data["recent"]["expenses"]] == ["Rent share"]
        assert data["recent"]["budgets"][0]["remaining_cents"] == 80_000


def test_overview_for_year_counts_the_whole_year() -> None:
    with Session(_engine()) as session:
        _seed(session)
        data = DashboardService(session, 1).overview("year", today=TODAY)

        assert data["overview"]["total_expenses"] == 26_000
        assert data["overview"]["expense_count"] == 3
        assert data["breakdowns"]["category_expenses"] == {
            "Home": 20_000,
            "Transport": 5_000,
            "Education": 1_000,
        }
        assert [e["name"] for e in data["recent"]["expenses"]] == [
            "Rent share",
            "Train",
            "Books",
        ]


def test_quick_stats_month_over_month() -> None:
    with Session(_engine()) as session:
        _seed(session)
        stats = DashboardService(session, 1).quick_stats(today=TODAY)

        assert stats["current_month"] == {"spending": 20_000, "change": 300}
        assert stats["current_year"] == {"spending": 26_000}
        assert stats["budget"] == {
            "total": 100_000,
            "spent": 20_000,
            "remaining": 80_000,
            "count": 1,
            "utilization": 20,
        }
        assert stats["subscriptions"] == {"count": 1}


def test_quick_stats_in_january_compares_with_december() -> None:
    with Session(_engine()) as session:
        _seed(session)
        stats = DashboardService(session, 1).quick_stats(today=date(2025, 1, 20))

        assert stats["current_month"] == {"spending": 1_000, "change": -86}
        assert stats["current_year"] == {"spending": 26_000}


def test_quick_stats_without_previous_month() -> None:
    with Session(_engine()) as session:
        stats = DashboardService(session, 1).quick_stats(today=TODAY)
        assert stats["current_month"] == {"spending": 0, "change": 0}


def test_activity_feed_merges_and_limits() -> None:
    with Session(_engine()) as session:
        _seed(session)
        feed = DashboardService(session, 1).activity_feed(limit=3)

        assert feed["total"] == 3
        activities = feed["activities"]
        assert {a["type"] for a in activities[:2]} == {"budget", "subscription"}
        assert activities[2]["title"] == "Rent share"
        assert activities[2]["budget"] == "Living"


def test_notifications_flag_nearly_spent_budget() -> None:
    with Session(_engine()) as session:
        budget_id = _seed(session)
        ExpenseService(session, 1).create(
            ExpenseIn(
                name="Repairs",
                amount_cents=72_000,
                date=date(2025, 6, 12),
                category=ExpenseCategory.home,
                budget_id=budget_id,
            )
        )
        result = DashboardService(session, 1).notifications(today=TODAY)

        assert result["count"] == 1
        assert result["unread_count"] == 1
        note = result["notifications"][0]
        assert note["type"] == "warning"
        assert note["title"] == "Budget Alert"
        assert note["data"] == {"budget_id": budget_id, "utilization": 92}


def test_dashboard_is_scoped_to_user() -> None:
    with Session(_engine()) as session:
        _seed(session)
        data = DashboardService(session, 2).overview("year", today=TODAY)
        assert data["overview"]["budget_count"] == 0
        assert data["overview"]["total_expenses"] == 0
        assert all(t["amount"] == 0 for t in data["breakdowns"]["monthly_trends"])
