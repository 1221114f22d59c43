from datetime import date, datetime

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
    ratio_pct,
    round_half_up,
    savings_summary,
    totals,
    trend,
    utilization,
    variance,
    year_over_year_change,
    yearly_trends,
)


def _expense(amount: int, day: date, category: str = "Food") -> dict:
    return {"amount_cents": amount, "date": day, "category": category}


def _analytics(
    category: str, month: int, year: int, budget: int, actual: int, last_year: int = 0
) -> dict:
    return {
        "category": category,
        "month": month,
        "year": year,
        "budget_cents": budget,
        "actual_cents": actual,
        "last_year_cents": last_year,
    }


def test_variance_with_zero_budget() -> None:
    assert variance(0, 50) == {"variance": -50, "variance_pct": 0}
    assert variance(200, 150) == {"variance": 50, "variance_pct": 25}


def test_zero_divisors_yield_zero() -> None:
    assert utilization(500, 0) == 0
    assert percent_change(300, 0) == 0
    assert year_over_year_change(300, 0) == 0
    assert ratio_pct(1, 0) == 0


def test_rounding_is_half_up() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2
    assert round_half_up(-2.5) == -2
    assert round_half_up(-2.51) == -3
    assert ratio_pct(1, 8) == 13
    assert utilization(1, 3) == 33


def test_trend_with_only_current_month_data() -> None:
    today = date(2025, 6, 15)
    buckets = trend([_expense(1_200, date(2025, 6, 3))], 6, today)

    assert [b["label"] for b in buckets] == [
        "Jan 2025",
        "Feb 2025",
        "Mar 2025",
        "Apr 2025",
        "May 2025",
        "Jun 2025",
    ]
    assert [b["total"] for b in buckets] == [0, 0, 0, 0, 0, 1_200]
    assert buckets[-1]["count"] == 1
    assert buckets[0]["start"] == date(2025, 1, 1)
    assert buckets[1]["end"] == date(2025, 2, 28)


def test_trend_crosses_year_boundary_and_ignores_outside_items() -> None:
    today = date(2025, 2, 10)
    items = [
        _expense(100, date(2024, 12, 31)),
        _expense(200, date(2025, 1, 1)),
        _expense(999, date(2024, 11, 30)),
    ]
    buckets = trend(items, 3, today)
    assert [b["label"] for b in buckets] == ["Dec 2024", "Jan 2025", "Feb 2025"]
    assert [b["total"] for b in buckets] == [100, 200, 0]


def test_trend_accepts_datetimes() -> None:
    buckets = trend([_expense(50, datetime(2025, 6, 30, 23, 59))], 1, date(2025, 6, 1))
    assert buckets[0]["total"] == 50


def test_monthly_breakdown_is_dense() -> None:
    items = [
        _expense(100, date(2025, 3, 1)),
        _expense(250, date(2025, 3, 31)),
        _expense(75, date(2024, 3, 15)),
    ]
    months = monthly_breakdown(items, 2025)

    assert sorted(months) == list(range(1, 13))
    assert months[3] == {"total": 350, "count": 2}
    assert months[1] == {"total": 0, "count": 0}


def test_category_breakdown_is_sparse() -> None:
    items = [
        _expense(100, date(2025, 1, 1), "Food"),
        _expense(50, date(2025, 1, 2), "Transport"),
        _expense(25, date(2025, 1, 3), "Food"),
    ]
    breakdown = category_breakdown(items)

    assert breakdown == {
        "Food": {"total": 125, "count": 2},
        "Transport": {"total": 50, "count": 1},
    }
    assert "Home" not in breakdown
    assert category_breakdown([]) == {}
    assert totals(items) == {"total": 175, "count": 3}


def test_category_sums_tracks_several_fields() -> None:
    budgets = [
        {"category": "Food", "amount_cents": 1_000, "spent_cents": 400},
        {"category": "Food", "amount_cents": 500, "spent_cents": 100},
    ]
    assert category_sums(budgets, ("amount_cents", "spent_cents")) == {
        "Food": {"amount_cents": 1_500, "spent_cents": 500, "count": 2}
    }


def test_budget_overview_totals() -> None:
    budgets = [
        {"amount_cents": 1_000, "spent_cents": 250},
        {"amount_cents": 3_000, "spent_cents": 1_750},
    ]
    assert budget_overview(budgets) == {
        "total_budget": 4_000,
        "total_spent": 2_000,
        "total_remaining": 2_000,
        "budget_count": 2,
        "budget_utilization": 50,
    }
    assert budget_overview([])["budget_utilization"] == 0


def test_analytics_rollups() -> None:
    rows = [
        _analytics("Food", 1, 2025, 1_000, 1_200, 900),
        _analytics("Food", 2, 2025, 1_000, 800, 1_000),
        _analytics("Home", 2, 2025, 0, 300),
    ]

    by_category = analytics_category_breakdown(rows)
    assert by_category["Food"] == {
        "total_budget": 2_000,
        "total_actual": 2_000,
        "total_last_year": 1_900,
        "variance": 0,
        "variance_pct": 0,
    }
    assert by_category["Home"]["variance"] == -300
    assert by_category["Home"]["variance_pct"] == 0

    months = analytics_monthly_breakdown(rows)
    assert sorted(months) == list(range(1, 13))
    assert months[2] == {"budget": 1_000, "actual": 1_100, "last_year": 1_000, "variance": -100}
    assert months[12] == {"budget": 0, "actual": 0, "last_year": 0, "variance": 0}

    overview = analytics_overview(rows)
    assert overview["total_variance"] == -300
    assert overview["variance_pct"] == -15


def test_yearly_trends_are_dense_and_category_trends_sparse() -> None:
    rows = [
        _analytics("Food", 1, 2023, 100, 80),
        _analytics("Food", 5, 2025, 200, 250, 80),
        _analytics("Other", 1, 2019, 999, 999),
    ]
    yearly = yearly_trends(rows, 2023, 2025)

    assert sorted(yearly) == [2023, 2024, 2025]
    assert yearly[2023]["total_variance"] == 20
    assert yearly[2024] == {
        "total_budget": 0,
        "total_actual": 0,
        "total_variance": 0,
        "total_last_year": 0,
    }
    assert yearly[2025]["total_last_year"] == 80

    by_category = category_year_trends(rows[:2])
    assert sorted(by_category["Food"]) == [2023, 2025]


def test_monthly_recurring_cost_reads_plan_strings_as_cents() -> None:
    subscriptions = [
        {"plan": "Premium 300/month", "recurring": True},
        {"plan": "Basic 9.99/month", "recurring": True},
        {"plan": "Lifetime", "recurring": True},
        {"plan": "Family 500/month", "recurring": False},
    ]
    assert monthly_recurring_cost(subscriptions) == 30_999


def test_savings_summary() -> None:
    incomes = [{"amount_cents": 300_000}, {"amount_cents": 50_000}]
    savings = [
        {"per_month_cents": 100_000, "per_year_cents": 1_200_000},
        {"per_month_cents": 20_000, "per_year_cents": 240_000},
    ]
    assert savings_summary(incomes, savings, 150_000) == {
        "total_income": 350_000,
        "total_monthly_expenses": 120_000,
        "total_yearly_expenses": 1_440_000,
        "monthly_budget": 150_000,
        "monthly_savings": 230_000,
        "yearly_savings": 2_760_000,
    }


def test_percent_change() -> None:
    assert percent_change(1_500, 1_000) == 50
    assert percent_change(500, 1_000) == -50
    assert year_over_year_change(1_100, 1_000) == 10


def test_negative_halves_round_toward_positive_infinity() -> None:
    assert variance(1_000, 1_025) == {"variance": -25, "variance_pct": -2}
    assert percent_change(975, 1_000) == -2
    assert year_over_year_change(1_015, 1_000) == 2
    assert utilization(1, 200) == 1
