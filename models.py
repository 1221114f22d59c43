from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class ExpenseCategory(str, Enum):
    shopping = "Shopping"
    food = "Food"
    transport = "Transport"
    entertainment = "Entertainment"
    healthcare = "Healthcare"
    education = "Education"
    home = "Home"
    other = "Other"


class SubscriptionCategory(str, Enum):
    streaming = "Streaming"
    software = "Software"
    gym = "Gym"
    music = "Music"
    news = "News"
    other = "Other"


class IncomeType(str, Enum):
    salary = "Salary"
    part_time = "Part Time"
    commissions = "Commissions"
    freelance = "Freelance"
    investment = "Investment"
    other = "Other"


class IncomeFrequency(str, Enum):
    weekly = "Weekly"
    bi_weekly = "Bi-weekly"
    monthly = "Monthly"
    yearly = "Yearly"


class SavingsCategory(str, Enum):
    rent = "Rent"
    electricity = "Electricity"
    appliances = "Appliances"
    food = "Food"
    transport = "Transport"
    healthcare = "Healthcare"
    entertainment = "Entertainment"
    other = "Other"


def _value_enum(enum_cls: type[Enum], name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda cls: [member.value for member in cls],
    )


EXPENSE_CATEGORY_ENUM = _value_enum(ExpenseCategory, "expensecategory")
SUBSCRIPTION_CATEGORY_ENUM = _value_enum(SubscriptionCategory, "subscriptioncategory")
INCOME_TYPE_ENUM = _value_enum(IncomeType, "incometype")
INCOME_FREQUENCY_ENUM = _value_enum(IncomeFrequency, "incomefrequency")
SAVINGS_CATEGORY_ENUM = _value_enum(SavingsCategory, "savingscategory")


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    # Written only by aggregates.BudgetAggregator.
    spent_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    remaining_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    category: Mapped[ExpenseCategory] = mapped_column(
        EXPENSE_CATEGORY_ENUM, nullable=False, default=ExpenseCategory.other
    )
    icon: Mapped[str] = mapped_column(String(16), nullable=False, default="💰")
    color: Mapped[str] = mapped_column(String(32), nullable=False, default="blue")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    expenses: Mapped[list["Expense"]] = relationship(
        "Expense", back_populates="budget"
    )

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_budget_amount_positive"),
        Index("ix_budgets_user_active", "user_id", "is_active"),
    )


class Expense(Base, TimestampMixin):
    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    category: Mapped[ExpenseCategory] = mapped_column(
        EXPENSE_CATEGORY_ENUM, nullable=False, default=ExpenseCategory.other
    )
    receipt: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    budget_id: Mapped[Optional[int]] = mapped_column(ForeignKey("budgets.id"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    budget: Mapped[Optional["Budget"]] = relationship(
        "Budget", back_populates="expenses"
    )

    __table_args__ = (
        Index("ix_expenses_user_date", "user_id", "date"),
        Index("ix_expenses_user_category", "user_id", "category"),
        Index("ix_expenses_user_budget", "user_id", "budget_id"),
        CheckConstraint("amount_cents >= 0", name="ck_expenses_amount_positive"),
    )


class Subscription(Base, TimestampMixin):
    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    plan: Mapped[str] = mapped_column(String(50), nullable=False)
    total_spend_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    duration: Mapped[str] = mapped_column(String(50), nullable=False)
    recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    category: Mapped[SubscriptionCategory] = mapped_column(
        SUBSCRIPTION_CATEGORY_ENUM, nullable=False, default=SubscriptionCategory.other
    )
    color: Mapped[str] = mapped_column(String(32), nullable=False, default="blue")
    next_payment_date: Mapped[Optional[date]] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "total_spend_cents >= 0", name="ck_subscriptions_spend_positive"
        ),
        Index("ix_subscriptions_user_active", "user_id", "is_active"),
    )


class Income(Base, TimestampMixin):
    __tablename__ = "incomes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[IncomeType] = mapped_column(
        INCOME_TYPE_ENUM, nullable=False, default=IncomeType.salary
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    frequency: Mapped[IncomeFrequency] = mapped_column(
        INCOME_FREQUENCY_ENUM, nullable=False, default=IncomeFrequency.monthly
    )

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_incomes_amount_positive"),
        Index("ix_incomes_user", "user_id"),
    )


class SavingsExpense(Base, TimestampMixin):
    __tablename__ = "savings_expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[SavingsCategory] = mapped_column(
        SAVINGS_CATEGORY_ENUM, nullable=False, default=SavingsCategory.other
    )
    per_month_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    # Always per_month_cents * 12; rewritten by SavingsService on every write.
    per_year_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "per_month_cents >= 0", name="ck_savings_expenses_amount_positive"
        ),
        Index("ix_savings_expenses_user", "user_id"),
    )


class SavingsBudget(Base, TimestampMixin):
    __tablename__ = "savings_budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    monthly_budget_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_savings_budget_user"),
        CheckConstraint(
            "monthly_budget_cents >= 0", name="ck_savings_budget_amount_positive"
        ),
    )


class ExpenseAnalytics(Base, TimestampMixin):
    __tablename__ = "expense_analytics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[ExpenseCategory] = mapped_column(
        EXPENSE_CATEGORY_ENUM, nullable=False
    )
    actual_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    budget_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    last_year_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[Optional[str]] = mapped_column(Text)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "category",
            "month",
            "year",
            name="uq_expense_analytics_user_category_month",
        ),
        Index("ix_expense_analytics_user_year_month", "user_id", "year", "month"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_expense_analytics_month"),
        CheckConstraint("year >= 2020", name="ck_expense_analytics_year"),
        CheckConstraint(
            "actual_cents >= 0 AND budget_cents >= 0 AND last_year_cents >= 0",
            name="ck_expense_analytics_amounts_positive",
        ),
    )
