import datetime as dt
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from models import (
    ExpenseCategory,
    IncomeFrequency,
    IncomeType,
    SavingsCategory,
    SubscriptionCategory,
)
from rollups import utilization, variance, year_over_year_change


class BudgetIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, max_length=100)
    amount_cents: int = Field(..., ge=0)
    category: ExpenseCategory = ExpenseCategory.other
    icon: str = Field(default="💰", max_length=16)
    color: str = Field(default="blue", max_length=32)


class BudgetUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount_cents: Optional[int] = Field(default=None, ge=0)
    category: Optional[ExpenseCategory] = None
    icon: Optional[str] = Field(default=None, max_length=16)
    color: Optional[str] = Field(default=None, max_length=32)


class ExpenseIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    amount_cents: int = Field(..., ge=0)
    date: Optional[dt.date] = None
    category: ExpenseCategory = ExpenseCategory.other
    receipt: bool = False
    description: Optional[str] = Field(default=None, max_length=500)
    budget_id: Optional[int] = None


class ExpenseUpdate(BaseModel):
    """Partial update. An explicit ``"budget_id": null`` detaches the budget;
    leaving the key out keeps the current one."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    amount_cents: Optional[int] = Field(default=None, ge=0)
    date: Optional[dt.date] = None
    category: Optional[ExpenseCategory] = None
    receipt: Optional[bool] = None
    description: Optional[str] = Field(default=None, max_length=500)
    budget_id: Optional[int] = None


class ExpenseBulkIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    expenses: list[ExpenseIn] = Field(..., min_length=1)


class SubscriptionIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    plan: str = Field(..., min_length=1, max_length=50)
    total_spend_cents: int = Field(..., ge=0)
    duration: str = Field(..., min_length=1, max_length=50)
    recurring: bool = False
    category: SubscriptionCategory = SubscriptionCategory.other
    color: str = Field(default="blue", max_length=32)
    next_payment_date: Optional[date] = None


class SubscriptionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    plan: Optional[str] = Field(default=None, min_length=1, max_length=50)
    total_spend_cents: Optional[int] = Field(default=None, ge=0)
    duration: Optional[str] = Field(default=None, min_length=1, max_length=50)
    recurring: Optional[bool] = None
    category: Optional[SubscriptionCategory] = None
    color: Optional[str] = Field(default=None, max_length=32)
    next_payment_date: Optional[date] = None


class IncomeIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: IncomeType = IncomeType.salary
    amount_cents: int = Field(..., ge=0)
    frequency: IncomeFrequency = IncomeFrequency.monthly


class IncomeUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Optional[IncomeType] = None
    amount_cents: Optional[int] = Field(default=None, ge=0)
    frequency: Optional[IncomeFrequency] = None


class SavingsExpenseIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: SavingsCategory = SavingsCategory.other
    per_month_cents: int = Field(..., ge=0)


class SavingsExpenseUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: Optional[SavingsCategory] = None
    per_month_cents: Optional[int] = Field(default=None, ge=0)


class SavingsBudgetIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    monthly_budget_cents: int = Field(..., ge=0)


class ExpenseAnalyticsIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: ExpenseCategory
    actual_cents: int = Field(..., ge=0)
    budget_cents: int = Field(..., ge=0)
    last_year_cents: int = Field(default=0, ge=0)
    description: Optional[str] = Field(default=None, max_length=500)
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2020)


class BudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    amount_cents: int
    spent_cents: int
    category: ExpenseCategory
    icon: str
    color: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def remaining_cents(self) -> int:
        return self.amount_cents - self.spent_cents

    @computed_field
    @property
    def utilization(self) -> int:
        return utilization(self.spent_cents, self.amount_cents)


class BudgetRefOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    category: ExpenseCategory


class ExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    amount_cents: int
    date: dt.date
    category: ExpenseCategory
    receipt: bool
    description: Optional[str]
    budget_id: Optional[int]
    budget: Optional[BudgetRefOut] = None
    created_at: datetime
    updated_at: datetime


class SubscriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    plan: str
    total_spend_cents: int
    duration: str
    recurring: bool
    category: SubscriptionCategory
    color: str
    next_payment_date: Optional[date]
    created_at: datetime
    updated_at: datetime


class IncomeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: IncomeType
    amount_cents: int
    frequency: IncomeFrequency
    created_at: datetime


class SavingsExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: SavingsCategory
    per_month_cents: int
    per_year_cents: int
    created_at: datetime


class SavingsBudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    monthly_budget_cents: int
    updated_at: datetime


class ExpenseAnalyticsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: ExpenseCategory
    actual_cents: int
    budget_cents: int
    last_year_cents: int
    description: Optional[str]
    month: int
    year: int

    @computed_field
    @property
    def variance(self) -> int:
        return variance(self.budget_cents, self.actual_cents)["variance"]

    @computed_field
    @property
    def variance_pct(self) -> int:
        return variance(self.budget_cents, self.actual_cents)["variance_pct"]

    @computed_field
    @property
    def year_over_year_change(self) -> int:
        return year_over_year_change(self.actual_cents, self.last_year_cents)
