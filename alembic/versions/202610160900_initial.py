"""initial schema

Revision ID: 202610160900
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610160900"
down_revision = None
branch_labels = None
depends_on = None

EXPENSE_CATEGORIES = (
    "Shopping",
    "Food",
    "Transport",
    "Entertainment",
    "Healthcare",
    "Education",
    "Home",
    "Other",
)


def upgrade():
    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("spent_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("remaining_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "category",
            sa.Enum(*EXPENSE_CATEGORIES, name="expensecategory"),
            nullable=False,
        ),
        sa.Column("icon", sa.String(length=16), nullable=False),
        sa.Column("color", sa.String(length=32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents >= 0", name="ck_budget_amount_positive"),
    )
    op.create_index("ix_budgets_user_active", "budgets", ["user_id", "is_active"])

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "category",
            sa.Enum(*EXPENSE_CATEGORIES, name="expensecategory"),
            nullable=False,
        ),
        sa.Column("receipt", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("description", sa.Text()),
        sa.Column("budget_id", sa.Integer(), sa.ForeignKey("budgets.id")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents >= 0", name="ck_expenses_amount_positive"),
    )
    op.create_index("ix_expenses_user_date", "expenses", ["user_id", "date"])
    op.create_index("ix_expenses_user_category", "expenses", ["user_id", "category"])
    op.create_index("ix_expenses_user_budget", "expenses", ["user_id", "budget_id"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("plan", sa.String(length=50), nullable=False),
        sa.Column("total_spend_cents", sa.Integer(), nullable=False),
        sa.Column("duration", sa.String(length=50), nullable=False),
        sa.Column("recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "category",
            sa.Enum(
                "Streaming",
                "Software",
                "Gym",
                "Music",
                "News",
                "Other",
                name="subscriptioncategory",
            ),
            nullable=False,
        ),
        sa.Column("color", sa.String(length=32), nullable=False),
        sa.Column("next_payment_date", sa.Date()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "total_spend_cents >= 0", name="ck_subscriptions_spend_positive"
        ),
    )
    op.create_index(
        "ix_subscriptions_user_active", "subscriptions", ["user_id", "is_active"]
    )

    op.create_table(
        "incomes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "type",
            sa.Enum(
                "Salary",
                "Part Time",
                "Commissions",
                "Freelance",
                "Investment",
                "Other",
                name="incometype",
            ),
            nullable=False,
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "frequency",
            sa.Enum(
                "Weekly", "Bi-weekly", "Monthly", "Yearly", name="incomefrequency"
            ),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents >= 0", name="ck_incomes_amount_positive"),
    )
    op.create_index("ix_incomes_user", "incomes", ["user_id"])

    op.create_table(
        "savings_expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "category",
            sa.Enum(
                "Rent",
                "Electricity",
                "Appliances",
                "Food",
                "Transport",
                "Healthcare",
                "Entertainment",
                "Other",
                name="savingscategory",
            ),
            nullable=False,
        ),
        sa.Column("per_month_cents", sa.Integer(), nullable=False),
        sa.Column("per_year_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "per_month_cents >= 0", name="ck_savings_expenses_amount_positive"
        ),
    )
    op.create_index("ix_savings_expenses_user", "savings_expenses", ["user_id"])

    op.create_table(
        "savings_budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("monthly_budget_cents", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", name="uq_savings_budget_user"),
        sa.CheckConstraint(
            "monthly_budget_cents >= 0", name="ck_savings_budget_amount_positive"
        ),
    )

    op.create_table(
        "expense_analytics",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "category",
            sa.Enum(*EXPENSE_CATEGORIES, name="expensecategory"),
            nullable=False,
        ),
        sa.Column("actual_cents", sa.Integer(), nullable=False),
        sa.Column("budget_cents", sa.Integer(), nullable=False),
        sa.Column("last_year_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("description", sa.Text()),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "user_id",
            "category",
            "month",
            "year",
            name="uq_expense_analytics_user_category_month",
        ),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_expense_analytics_month"),
        sa.CheckConstraint("year >= 2020", name="ck_expense_analytics_year"),
        sa.CheckConstraint(
            "actual_cents >= 0 AND budget_cents >= 0 AND last_year_cents >= 0",
            name="ck_expense_analytics_amounts_positive",
        ),
    )
    op.create_index(
        "ix_expense_analytics_user_year_month",
        "expense_analytics",
        ["user_id", "year", "month"],
    )


def downgrade():
    op.drop_index(
        "ix_expense_analytics_user_year_month", table_name="expense_analytics"
    )
    op.drop_table("expense_analytics")
    op.drop_table("savings_budgets")
    op.drop_index("ix_savings_expenses_user", table_name="savings_expenses")
    op.drop_table("savings_expenses")
    op.drop_index("ix_incomes_user", table_name="incomes")
    op.drop_table("incomes")
    op.drop_index("ix_subscriptions_user_active", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("ix_expenses_user_budget", table_name="expenses")
    op.drop_index("ix_expenses_user_category", table_name="expenses")
    op.drop_index("ix_expenses_user_date", table_name="expenses")
    op.drop_table("expenses")
    op.drop_index("ix_budgets_user_active", table_name="budgets")
    op.drop_table("budgets")
