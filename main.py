import logging
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth import read_user_token
from config import get_settings
from database import SessionLocal
from errors import ConsistencyError, NotFoundError, StorageError, ValidationError
from models import ExpenseCategory, SubscriptionCategory
from scheduler import SchedulerManager
from schemas import (
    BudgetIn,
    BudgetOut,
    BudgetUpdate,
    ExpenseAnalyticsIn,
    ExpenseAnalyticsOut,
    ExpenseBulkIn,
    ExpenseIn,
    ExpenseOut,
    ExpenseUpdate,
    IncomeIn,
    IncomeOut,
    IncomeUpdate,
    SavingsBudgetIn,
    SavingsBudgetOut,
    SavingsExpenseIn,
    SavingsExpenseOut,
    SavingsExpenseUpdate,
    SubscriptionIn,
    SubscriptionOut,
    SubscriptionUpdate,
)
from services import (
    AnalyticsService,
    BudgetService,
    DashboardService,
    ExpenseFilters,
    ExpenseService,
    Page,
    SavingsService,
    SubscriptionFilters,
    SubscriptionService,
)

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Budget-Mate API")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(authorization: Optional[str] = Header(default=None)) -> int:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    user_id = read_user_token(authorization[len("Bearer ") :].strip())
    if user_id is None:
        raise HTTPException(status_code=401, detail="Not authorized, token failed")
    return user_id


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def envelope(data=None, message: Optional[str] = None, **extra) -> dict:
    body = {"success": True, "message": message, "data": data, "errors": None}
    body.update(extra)
    return body


def _error(status_code: int, message: str, errors=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "data": None, "errors": errors},
    )


def _page(page: Page, schema) -> dict:
    return envelope(
        [schema.model_validate(item).model_dump(mode="json") for item in page.items],
        pagination=page.pagination(),
    )


@app.exception_handler(ValidationError)
def validation_error_handler(request: Request, exc: ValidationError):
    return _error(400, exc.message, exc.to_errors())


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in jsonable_encoder(exc.errors()):
        loc = [
            str(part) for part in err.get("loc", []) if part not in ("body", "query")
        ]
        errors.append({"msg": err.get("msg", "Invalid value"), "field": ".".join(loc)})
    return _error(400, "Validation failed", errors)


@app.exception_handler(NotFoundError)
def not_found_handler(request: Request, exc: NotFoundError):
    return _error(404, str(exc))


@app.exception_handler(ConsistencyError)
def consistency_handler(request: Request, exc: ConsistencyError):
    logger.warning(f"consistency_error: path={request.url.path} detail={exc}")
    return _error(409, str(exc))


@app.exception_handler(StorageError)
def storage_handler(request: Request, exc: StorageError):
    logger.exception(f"storage_error: path={request.url.path}", exc_info=exc)
    return _error(500, "Server error")


@app.exception_handler(StarletteHTTPException)
def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.get("/api/health")
def api_health():
    return {"status": "OK", "message": "Budget-Mate API is running"}


# Budgets


@app.post("/api/budgets", status_code=201)
def create_budget(
    data: BudgetIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    budget = BudgetService(db, user_id).create(data)
    return envelope(
        BudgetOut.model_validate(budget).model_dump(mode="json"),
        "Budget created successfully",
    )


@app.get("/api/budgets")
def list_budgets(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    category: Optional[ExpenseCategory] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    result = BudgetService(db, user_id).list(
        page=page,
        limit=limit or settings.default_page_size,
        category=category,
        search=search,
    )
    return _page(result, BudgetOut)


@app.get("/api/budgets/summary/overview")
def budget_summary(
    db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)
):
    return envelope(BudgetService(db, user_id).summary())


@app.get("/api/budgets/{budget_id}")
def get_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    budget = BudgetService(db, user_id).get(budget_id)
    return envelope(BudgetOut.model_validate(budget).model_dump(mode="json"))


@app.put("/api/budgets/{budget_id}")
def update_budget(
    budget_id: int,
    data: BudgetUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    budget = BudgetService(db, user_id).update(budget_id, data)
    return envelope(
        BudgetOut.model_validate(budget).model_dump(mode="json"),
        "Budget updated successfully",
    )


@app.delete("/api/budgets/{budget_id}")
def delete_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    BudgetService(db, user_id).soft_delete(budget_id)
    return envelope(message="Budget deleted successfully")


# Expenses


@app.post("/api/expenses", status_code=201)
def create_expense(
    data: ExpenseIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    expense = ExpenseService(db, user_id).create(data)
    return envelope(
        ExpenseOut.model_validate(expense).model_dump(mode="json"),
        "Expense created successfully",
    )


@app.post("/api/expenses/bulk", status_code=201)
def bulk_create_expenses(
    data: ExpenseBulkIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    created = ExpenseService(db, user_id).bulk_create(data.expenses)
    return envelope(
        [ExpenseOut.model_validate(e).model_dump(mode="json") for e in created],
        f"{len(created)} expenses created successfully",
    )


@app.get("/api/expenses")
def list_expenses(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    category: Optional[ExpenseCategory] = None,
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    budget_id: Optional[int] = None,
    sort_by: str = "date",
    sort_order: str = "desc",
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    filters = ExpenseFilters(
        category=category,
        search=search,
        start_date=start_date,
        end_date=end_date,
        budget_id=budget_id,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    result = ExpenseService(db, user_id).list(
        filters, page=page, limit=limit or settings.default_page_size
    )
    return _page(result, ExpenseOut)


@app.get("/api/expenses/summary/overview")
def expense_summary(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return envelope(ExpenseService(db, user_id).summary(start_date, end_date))


@app.get("/api/expenses/{expense_id}")
def get_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    expense = ExpenseService(db, user_id).get(expense_id)
    return envelope(ExpenseOut.model_validate(expense).model_dump(mode="json"))


@app.put("/api/expenses/{expense_id}")
def update_expense(
    expense_id: int,
    data: ExpenseUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    expense = ExpenseService(db, user_id).update(expense_id, data)
    return envelope(
        ExpenseOut.model_validate(expense).model_dump(mode="json"),
        "Expense updated successfully",
    )


@app.delete("/api/expenses/{expense_id}")
def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    ExpenseService(db, user_id).soft_delete(expense_id)
    return envelope(message="Expense deleted successfully")


# Subscriptions


@app.post("/api/subscriptions", status_code=201)
def create_subscription(
    data: SubscriptionIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    sub = SubscriptionService(db, user_id).create(data)
    return envelope(
        SubscriptionOut.model_validate(sub).model_dump(mode="json"),
        "Subscription created successfully",
    )


@app.get("/api/subscriptions")
def list_subscriptions(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    category: Optional[SubscriptionCategory] = None,
    search: Optional[str] = None,
    recurring: Optional[bool] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    filters = SubscriptionFilters(
        category=category,
        search=search,
        recurring=recurring,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    result = SubscriptionService(db, user_id).list(
        filters, page=page, limit=limit or settings.default_page_size
    )
    return _page(result, SubscriptionOut)


@app.get("/api/subscriptions/summary/overview")
def subscription_summary(
    db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)
):
    return envelope(SubscriptionService(db, user_id).summary())


@app.get("/api/subscriptions/{subscription_id}")
def get_subscription(
    subscription_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    sub = SubscriptionService(db, user_id).get(subscription_id)
    return envelope(SubscriptionOut.model_validate(sub).model_dump(mode="json"))


@app.put("/api/subscriptions/{subscription_id}")
def update_subscription(
    subscription_id: int,
    data: SubscriptionUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    sub = SubscriptionService(db, user_id).update(subscription_id, data)
    return envelope(
        SubscriptionOut.model_validate(sub).model_dump(mode="json"),
        "Subscription updated successfully",
    )


@app.delete("/api/subscriptions/{subscription_id}")
def delete_subscription(
    subscription_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    SubscriptionService(db, user_id).soft_delete(subscription_id)
    return envelope(message="Subscription deleted successfully")


# Savings


@app.post("/api/savings/income", status_code=201)
def create_income(
    data: IncomeIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    income = SavingsService(db, user_id).create_income(data)
    return envelope(
        IncomeOut.model_validate(income).model_dump(mode="json"),
        "Income added successfully",
    )


@app.get("/api/savings/income")
def list_incomes(
    db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)
):
    incomes = SavingsService(db, user_id).incomes()
    return envelope(
        [IncomeOut.model_validate(i).model_dump(mode="json") for i in incomes]
    )


@app.put("/api/savings/income/{income_id}")
def update_income(
    income_id: int,
    data: IncomeUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    income = SavingsService(db, user_id).update_income(income_id, data)
    return envelope(
        IncomeOut.model_validate(income).model_dump(mode="json"),
        "Income updated successfully",
    )


@app.delete("/api/savings/income/{income_id}")
def delete_income(
    income_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    SavingsService(db, user_id).delete_income(income_id)
    return envelope(message="Income deleted successfully")


@app.post("/api/savings/expenses", status_code=201)
def create_savings_expense(
    data: SavingsExpenseIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    expense = SavingsService(db, user_id).create_expense(data)
    return envelope(
        SavingsExpenseOut.model_validate(expense).model_dump(mode="json"),
        "Savings expense added successfully",
    )


@app.get("/api/savings/expenses")
def list_savings_expenses(
    db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)
):
    expenses = SavingsService(db, user_id).expenses()
    return envelope(
        [SavingsExpenseOut.model_validate(e).model_dump(mode="json") for e in expenses]
    )


@app.put("/api/savings/expenses/{expense_id}")
def update_savings_expense(
    expense_id: int,
    data: SavingsExpenseUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    expense = SavingsService(db, user_id).update_expense(expense_id, data)
    return envelope(
        SavingsExpenseOut.model_validate(expense).model_dump(mode="json"),
        "Savings expense updated successfully",
    )


@app.delete("/api/savings/expenses/{expense_id}")
def delete_savings_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    SavingsService(db, user_id).delete_expense(expense_id)
    return envelope(message="Savings expense deleted successfully")


@app.post("/api/savings/budget")
def upsert_savings_budget(
    data: SavingsBudgetIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    budget = SavingsService(db, user_id).upsert_budget(data)
    return envelope(
        SavingsBudgetOut.model_validate(budget).model_dump(mode="json"),
        "Savings budget saved successfully",
    )


@app.get("/api/savings/budget")
def get_savings_budget(
    db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)
):
    budget = SavingsService(db, user_id).budget()
    if budget is None:
        return envelope(None)
    return envelope(SavingsBudgetOut.model_validate(budget).model_dump(mode="json"))


@app.get("/api/savings/summary")
def savings_summary(
    db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)
):
    return envelope(SavingsService(db, user_id).summary())


# Analytics


@app.post("/api/analytics")
def upsert_analytics(
    data: ExpenseAnalyticsIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    row, created = AnalyticsService(db, user_id).upsert(data)
    message = "Analytics created" if created else "Analytics updated"
    body = envelope(
        ExpenseAnalyticsOut.model_validate(row).model_dump(mode="json"),
        f"{message} successfully",
    )
    return JSONResponse(status_code=201 if created else 200, content=body)


@app.get("/api/analytics")
def list_analytics(
    year: Optional[int] = Query(None, ge=2020),
    month: Optional[int] = Query(None, ge=1, le=12),
    category: Optional[ExpenseCategory] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    rows = AnalyticsService(db, user_id).list(year=year, month=month, category=category)
    return envelope(
        [ExpenseAnalyticsOut.model_validate(r).model_dump(mode="json") for r in rows]
    )


@app.get("/api/analytics/summary")
def analytics_summary(
    year: Optional[int] = Query(None, ge=2020),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return envelope(AnalyticsService(db, user_id).summary(year))


@app.get("/api/analytics/trends")
def analytics_trends(
    years: int = Query(3, ge=1, le=20),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return envelope(AnalyticsService(db, user_id).trends(years))


@app.get("/api/analytics/insights")
def analytics_insights(
    db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)
):
    return envelope(AnalyticsService(db, user_id).insights())


# Dashboard


@app.get("/api/dashboard/overview")
def dashboard_overview(
    period: str = "month",
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return envelope(jsonable_encoder(DashboardService(db, user_id).overview(period)))


@app.get("/api/dashboard/quick-stats")
def dashboard_quick_stats(
    db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)
):
    return envelope(DashboardService(db, user_id).quick_stats())


@app.get("/api/dashboard/activity-feed")
def dashboard_activity_feed(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    feed = DashboardService(db, user_id).activity_feed(limit)
    return envelope(jsonable_encoder(feed))


@app.get("/api/dashboard/notifications")
def dashboard_notifications(
    db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)
):
    return envelope(DashboardService(db, user_id).notifications())


# Admin


@app.post("/api/admin/reconcile-budgets")
def reconcile_budgets(
    db: Session = Depends(get_db), user_id: int = Depends(get_current_user_id)
):
    drifted = BudgetService(db, user_id).reconcile()
    return envelope(
        {"corrected_budget_ids": drifted, "corrected": len(drifted)},
        "Budgets reconciled",
    )


def main() -> None:
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
