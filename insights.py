from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from rollups import category_breakdown, category_key, field_value, round_half_up


SEVERITY_RANK = {"alert": 3, "warning": 2, "info": 1}

BUDGET_WARNING_PCT = 90
BUDGET_NOTICE_PCT = 80
HIGH_EXPENSE_FACTOR = 2
VARIANCE_THRESHOLD_PCT = 20
CONCENTRATION_PCT = 40
OVERALL_UTILIZATION_PCT = 80


@dataclass(frozen=True)
class Insight:
    severity: str  # "alert" | "warning" | "info"
    title: str
    message: str
    category: str
    data: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "type": self.severity,
            "title": self.title,
            "message": self.message,
            "category": self.category,
            "data": dict(self.data),
        }


def _pct(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator * 100


def _budget_utilization(budgets: Sequence[Any]) -> list[Insight]:
    out: list[Insight] = []
    for budget in budgets:
        used = _pct(
            field_value(budget, "spent_cents"), field_value(budget, "amount_cents")
        )
        title = field_value(budget, "title")
        data = {
            "budget_id": field_value(budget, "id"),
            "utilization": round_half_up(used),
        }
        category = category_key(field_value(budget, "category"))
        if used >= BUDGET_WARNING_PCT:
            out.append(
                Insight(
                    "warning",
                    "Budget Alert",
                    f"{title} is {used:.1f}% used. Consider reducing expenses.",
                    category,
                    data,
                )
            )
        elif used >= BUDGET_NOTICE_PCT:
            out.append(
                Insight(
                    "info",
                    "Budget Notice",
                    f"{title} is {used:.1f}% used.",
                    category,
                    data,
                )
            )
    return out


def _high_expenses(expenses: Sequence[Any]) -> list[Insight]:
    amounts_by_category: dict[str, list[int]] = {}
    for expense in expenses:
        key = category_key(field_value(expense, "category"))
        amounts_by_category.setdefault(key, []).append(
            field_value(expense, "amount_cents")
        )

    out: list[Insight] = []
    for category, amounts in amounts_by_category.items():
        mean = sum(amounts) / len(amounts)
        peak = max(amounts)
        if peak > mean * HIGH_EXPENSE_FACTOR:
            out.append(
                Insight(
                    "info",
                    "High Expense Notice",
                    f"You have an unusually high expense in {category} this month.",
                    category,
                    {"max_amount": peak, "avg_amount": round_half_up(mean)},
                )
            )
    return out


def _analytics_variance(analytics: Sequence[Any]) -> list[Insight]:
    out: list[Insight] = []
    for row in analytics:
        budget = field_value(row, "budget_cents")
        if budget == 0:
            continue
        category = category_key(field_value(row, "category"))
        pct = (budget - field_value(row, "actual_cents")) / budget * 100
        if pct > VARIANCE_THRESHOLD_PCT:
            out.append(
                Insight(
                    "warning",
                    "Under Budget",
                    f"You're spending {abs(pct):.1f}% less than budgeted in "
                    f"{category}. Consider reallocating funds.",
                    category,
                    {"variance_pct": round_half_up(pct)},
                )
            )
        elif pct < -VARIANCE_THRESHOLD_PCT:
            out.append(
                Insight(
                    "alert",
                    "Over Budget",
                    f"You're spending {abs(pct):.1f}% more than budgeted in "
                    f"{category}. Review your spending.",
                    category,
                    {"variance_pct": round_half_up(pct)},
                )
            )
    return out


def _concentration(expenses: Sequence[Any]) -> list[Insight]:
    by_category = category_breakdown(expenses)
    total = sum(bucket["total"] for bucket in by_category.values())
    if total == 0:
        return []
    out: list[Insight] = []
    for category, bucket in by_category.items():
        share = bucket["total"] / total * 100
        if share > CONCENTRATION_PCT:
            out.append(
                Insight(
                    "info",
                    "Spending Concentration",
                    f"{category} accounts for {share:.1f}% of your spending. "
                    "Consider diversifying your expenses.",
                    category,
                    {"share_pct": round_half_up(share)},
                )
            )
    return out


def _overall_utilization(budgets: Sequence[Any]) -> list[Insight]:
    total_amount = sum(field_value(b, "amount_cents") for b in budgets)
    total_spent = sum(field_value(b, "spent_cents") for b in budgets)
    used = _pct(total_spent, total_amount)
    if used <= OVERALL_UTILIZATION_PCT:
        return []
    return [
        Insight(
            "warning",
            "Overall Budget",
            f"You've used {used:.1f}% of your total budget. "
            "Monitor your spending closely.",
            "Overall",
            {"utilization": round_half_up(used)},
        )
    ]


def sort_by_severity(insights: Sequence[Insight]) -> list[Insight]:
    # sorted() is stable, so equal severities keep rule order
    return sorted(
        insights, key=lambda i: SEVERITY_RANK.get(i.severity, 0), reverse=True
    )


def generate_insights(
    budgets: Sequence[Any],
    expenses_this_month: Sequence[Any],
    analytics_this_year: Sequence[Any],
) -> list[Insight]:
    insights: list[Insight] = []
    insights.extend(_budget_utilization(budgets))
    insights.extend(_high_expenses(expenses_this_month))
    insights.extend(_analytics_variance(analytics_this_year))
    insights.extend(_concentration(expenses_this_month))
    insights.extend(_overall_utilization(budgets))
    return sort_by_severity(insights)


def budget_notifications(
    budgets: Sequence[Any], expenses_this_month: Sequence[Any]
) -> list[Insight]:
    """Dashboard subset: per-budget utilization and unusually high expenses."""
    insights = _budget_utilization(budgets) + _high_expenses(expenses_this_month)
    return sort_by_severity(insights)
