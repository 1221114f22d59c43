"""Pure rollups over already-fetched snapshots.

Every function here takes collections that are already narrowed to the
requesting user's active rows and returns plain dicts and lists. Category
groupings are sparse (absent categories have no key); month and trend
groupings are dense and zero-filled.

Items may be ORM objects or mappings; fields are looked up by name.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from typing import Any

from periods import add_months, month_end, month_start


_MONTHLY_PLAN_RE = re.compile(r"(\d+(?:\.\d+)?)/month")


def field_value(item: Any, field: str) -> Any:
    if isinstance(item, Mapping):
        return item[field]
    return getattr(item, field)


def category_key(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def round_half_up(value: float) -> int:
    """Round halves toward positive infinity, so -2.5 becomes -2."""
    shifted = Decimal(str(value)) + Decimal("0.5")
    return int(shifted.to_integral_value(rounding=ROUND_FLOOR))


def ratio_pct(numerator: float, denominator: float) -> int:
    """numerator / denominator as a rounded percentage; 0 when denominator is 0."""
    if denominator == 0:
        return 0
    return round_half_up(numerator / denominator * 100)


def totals(items: Iterable[Any], amount_field: str = "amount_cents") -> dict[str, int]:
    total = 0
    count = 0
    for item in items:
        total += field_value(item, amount_field)
        count += 1
    return {"total": total, "count": count}


def category_breakdown(
    items: Iterable[Any],
    amount_field: str = "amount_cents",
    *,
    category_field: str = "category",
) -> dict[str, dict[str, int]]:
    out: dict[str, dict[str, int]] = {}
    for item in items:
        key = category_key(field_value(item, category_field))
        bucket = out.setdefault(key, {"total": 0, "count": 0})
        bucket["total"] += field_value(item, amount_field)
        bucket["count"] += 1
    return out


def category_sums(
    items: Iterable[Any],
    fields: Sequence[str],
    *,
    category_field: str = "category",
) -> dict[str, dict[str, int]]:
    out: dict[str, dict[str, int]] = {}
    for item in items:
        key = category_key(field_value(item, category_field))
        bucket = out.get(key)
        if bucket is None:
            bucket = {name: 0 for name in fields}
            bucket["count"] = 0
            out[key] = bucket
        for name in fields:
            bucket[name] += field_value(item, name)
        bucket["count"] += 1
    return out


def monthly_breakdown(
    items: Iterable[Any],
    year: int,
    amount_field: str = "amount_cents",
    *,
    date_field: str = "date",
) -> dict[int, dict[str, int]]:
    out: dict[int, dict[str, int]] = {
        month: {"total": 0, "count": 0} for month in range(1, 13)
    }
    for item in items:
        day = _as_date(field_value(item, date_field))
        if day.year != year:
            continue
        bucket = out[day.month]
        bucket["total"] += field_value(item, amount_field)
        bucket["count"] += 1
    return out


def trend(
    items: Iterable[Any],
    window_months: int,
    today: date,
    amount_field: str = "amount_cents",
    *,
    date_field: str = "date",
) -> list[dict[str, Any]]:
    """Dense per-month buckets for the window ending at today's month, oldest first."""
    if window_months <= 0:
        return []
    current = month_start(today)
    buckets: list[dict[str, Any]] = []
    for offset in range(window_months - 1, -1, -1):
        start = add_months(current, -offset)
        buckets.append(
            {
                "label": start.strftime("%b %Y"),
                "start": start,
                "end": month_end(start),
                "total": 0,
                "count": 0,
            }
        )
    index = {(b["start"].year, b["start"].month): b for b in buckets}
    for item in items:
        day = _as_date(field_value(item, date_field))
        bucket = index.get((day.year, day.month))
        if bucket is None:
            continue
        bucket["total"] += field_value(item, amount_field)
        bucket["count"] += 1
    return buckets


def variance(budget: int, actual: int) -> dict[str, int]:
    diff = budget - actual
    return {"variance": diff, "variance_pct": ratio_pct(diff, budget)}


def utilization(spent: int, amount: int) -> int:
    return ratio_pct(spent, amount)


def percent_change(current: int, previous: int) -> int:
    return ratio_pct(current - previous, previous)


def year_over_year_change(actual: int, last_year: int) -> int:
    return ratio_pct(actual - last_year, last_year)


def analytics_category_breakdown(rows: Iterable[Any]) -> dict[str, dict[str, int]]:
    out: dict[str, dict[str, int]] = {}
    for row in rows:
        key = category_key(field_value(row, "category"))
        bucket = out.setdefault(
            key, {"total_budget": 0, "total_actual": 0, "total_last_year": 0}
        )
        bucket["total_budget"] += field_value(row, "budget_cents")
        bucket["total_actual"] += field_value(row, "actual_cents")
        bucket["total_last_year"] += field_value(row, "last_year_cents")
    for bucket in out.values():
        bucket.update(variance(bucket["total_budget"], bucket["total_actual"]))
    return out


def analytics_monthly_breakdown(rows: Iterable[Any]) -> dict[int, dict[str, int]]:
    out: dict[int, dict[str, int]] = {
        month: {"budget": 0, "actual": 0, "last_year": 0, "variance": 0}
        for month in range(1, 13)
    }
    for row in rows:
        bucket = out[field_value(row, "month")]
        bucket["budget"] += field_value(row, "budget_cents")
        bucket["actual"] += field_value(row, "actual_cents")
        bucket["last_year"] += field_value(row, "last_year_cents")
    for bucket in out.values():
        bucket["variance"] = bucket["budget"] - bucket["actual"]
    return out


def analytics_overview(rows: Sequence[Any]) -> dict[str, int]:
    total_budget = sum(field_value(r, "budget_cents") for r in rows)
    total_actual = sum(field_value(r, "actual_cents") for r in rows)
    total_last_year = sum(field_value(r, "last_year_cents") for r in rows)
    result = variance(total_budget, total_actual)
    return {
        "total_budget": total_budget,
        "total_actual": total_actual,
        "total_variance": result["variance"],
        "total_last_year": total_last_year,
        "variance_pct": result["variance_pct"],
    }


def yearly_trends(
    rows: Iterable[Any], start_year: int, end_year: int
) -> dict[int, dict[str, int]]:
    out: dict[int, dict[str, int]] = {
        year: {
            "total_budget": 0,
            "total_actual": 0,
            "total_variance": 0,
            "total_last_year": 0,
        }
        for year in range(start_year, end_year + 1)
    }
    for row in rows:
        bucket = out.get(field_value(row, "year"))
        if bucket is None:
            continue
        budget = field_value(row, "budget_cents")
        actual = field_value(row, "actual_cents")
        bucket["total_budget"] += budget
        bucket["total_actual"] += actual
        bucket["total_variance"] += budget - actual
        bucket["total_last_year"] += field_value(row, "last_year_cents")
    return out


def category_year_trends(rows: Iterable[Any]) -> dict[str, dict[int, dict[str, int]]]:
    out: dict[str, dict[int, dict[str, int]]] = {}
    for row in rows:
        per_year = out.setdefault(category_key(field_value(row, "category")), {})
        bucket = per_year.setdefault(
            field_value(row, "year"), {"budget": 0, "actual": 0, "last_year": 0}
        )
        bucket["budget"] += field_value(row, "budget_cents")
        bucket["actual"] += field_value(row, "actual_cents")
        bucket["last_year"] += field_value(row, "last_year_cents")
    return out


def budget_overview(budgets: Sequence[Any]) -> dict[str, int]:
    total_budget = sum(field_value(b, "amount_cents") for b in budgets)
    total_spent = sum(field_value(b, "spent_cents") for b in budgets)
    return {
        "total_budget": total_budget,
        "total_spent": total_spent,
        "total_remaining": total_budget - total_spent,
        "budget_count": len(budgets),
        "budget_utilization": utilization(total_spent, total_budget),
    }


def monthly_recurring_cost(subscriptions: Iterable[Any]) -> int:
    """Sum of the `<n>/month` figure in each recurring plan, in cents."""
    total = 0
    for sub in subscriptions:
        if not field_value(sub, "recurring"):
            continue
        match = _MONTHLY_PLAN_RE.search(field_value(sub, "plan") or "")
        if match:
            total += int(Decimal(match.group(1)) * 100)
    return total


def savings_summary(
    incomes: Sequence[Any],
    savings_expenses: Sequence[Any],
    monthly_budget_cents: int,
) -> dict[str, int]:
    total_income = sum(field_value(i, "amount_cents") for i in incomes)
    monthly_expenses = sum(field_value(e, "per_month_cents") for e in savings_expenses)
    yearly_expenses = sum(field_value(e, "per_year_cents") for e in savings_expenses)
    return {
        "total_income": total_income,
        "total_monthly_expenses": monthly_expenses,
        "total_yearly_expenses": yearly_expenses,
        "monthly_budget": monthly_budget_cents,
        "monthly_savings": total_income - monthly_expenses,
        "yearly_savings": total_income * 12 - yearly_expenses,
    }
