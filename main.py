import logging
from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from config import get_settings
from database import SessionLocal
from errors import (
    LedgerError,
    NotFoundError,
    OrphanedPlanError,
    ReferentialIntegrityError,
    StoreError,
    Unauthenticated,
    ValidationError,
)
from identity import TokenIdentity
from installments import installment_end_date, remaining_amount
from models import (
    Account,
    Alert,
    Category,
    CategoryKind,
    Goal,
    InstallmentPlan,
    RecurringRule,
    Transaction,
)
from periods import local_today, month_period, resolve_period
from projections import daily_balance
from schemas import (
    AccountIn,
    AccountUpdate,
    AlertIn,
    CategoryIn,
    GoalIn,
    GoalProgressIn,
    InstallmentPlanIn,
    RecurringRuleIn,
    ToggleIn,
    TransactionIn,
    TransactionUpdate,
)
from services import (
    AlertService,
    GoalService,
    Ledger,
    RecurringRuleService,
    days_until_deadline,
    goal_progress,
)
from store import RecordStore


logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Ledger")


def get_store() -> RecordStore:
    return RecordStore(SessionLocal)


def get_ledger(
    store: RecordStore = Depends(get_store),
    authorization: Optional[str] = Header(default=None),
) -> Ledger:
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    return Ledger(store, TokenIdentity(token))


@app.exception_handler(LedgerError)
def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    if isinstance(exc, Unauthenticated):
        status = 401
    elif isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, ValidationError):
        status = 400
    elif isinstance(exc, ReferentialIntegrityError):
        status = 409
    elif isinstance(exc, OrphanedPlanError):
        logger.error(f"orphaned_plan: plan_id={exc.plan_id} path={request.url.path}")
        return JSONResponse(
            status_code=500, content={"detail": str(exc), "plan_id": exc.plan_id}
        )
    elif isinstance(exc, StoreError):
        status = 503
    else:
        status = 500
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def account_out(account: Account, balance: Optional[int] = None) -> dict:
    data = {
        "id": account.id,
        "name": account.name,
        "kind": account.kind.value,
        "initial_balance_cents": account.initial_balance_cents,
        "accrues": account.accrues,
        "color": account.color,
        "icon": account.icon,
    }
    if balance is not None:
        data["balance_cents"] = balance
    return data


def category_out(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "kind": category.kind.value,
        "icon": category.icon,
        "color": category.color,
    }


def transaction_out(txn: Transaction) -> dict:
    return {
        "id": txn.id,
        "account_id": txn.account_id,
        "category_id": txn.category_id,
        "amount_cents": txn.amount_cents,
        "kind": txn.kind.value,
        "description": txn.description,
        "date": txn.date.isoformat(),
        "installment_plan_id": txn.installment_plan_id,
        "installment_number": txn.installment_number,
        "recurring_rule_id": txn.recurring_rule_id,
    }


def plan_out(plan: InstallmentPlan) -> dict:
    return {
        "id": plan.id,
        "description": plan.description,
        "total_amount_cents": plan.total_amount_cents,
        "installment_amount_cents": plan.installment_amount_cents,
        "installment_count": plan.installment_count,
        "paid_count": plan.paid_count,
        "category_id": plan.category_id,
        "account_id": plan.account_id,
        "start_date": plan.start_date.isoformat(),
        "end_date": installment_end_date(plan).isoformat(),
        "remaining_cents": remaining_amount(plan),
    }


def rule_out(rule: RecurringRule) -> dict:
    return {
        "id": rule.id,
        "account_id": rule.account_id,
        "category_id": rule.category_id,
        "description": rule.description,
        "amount_cents": rule.amount_cents,
        "kind": rule.kind.value,
        "day_of_month": rule.day_of_month,
        "active": rule.active,
    }


def alert_out(alert: Alert) -> dict:
    return {
        "id": alert.id,
        "category_id": alert.category_id,
        "limit_amount_cents": alert.limit_amount_cents,
        "period": alert.period.value,
        "active": alert.active,
    }


def goal_out(goal: Goal) -> dict:
    return {
        "id": goal.id,
        "name": goal.name,
        "target_amount_cents": goal.target_amount_cents,
        "current_amount_cents": goal.current_amount_cents,
        "deadline": goal.deadline.isoformat() if goal.deadline else None,
        "progress": goal_progress(goal),
        "days_left": days_until_deadline(goal),
        "color": goal.color,
        "icon": goal.icon,
    }


def period_from_request(request: Request):
    try:
        return resolve_period(
            request.query_params.get("period"),
            request.query_params.get("start"),
            request.query_params.get("end"),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.post("/api/session/start")
def api_session_start(ledger: Ledger = Depends(get_ledger)):
    result = ledger.on_session_start()
    return {
        "recurring": {
            "created": result.recurring.created,
            "skipped": result.recurring.skipped,
            "failed": [asdict(f) for f in result.recurring.failed],
        },
        "paid_counts": {
            "updated": result.paid_counts.updated,
            "unchanged": result.paid_counts.unchanged,
            "failed": [asdict(f) for f in result.paid_counts.failed],
        },
    }


@app.get("/api/accounts")
def api_accounts(ledger: Ledger = Depends(get_ledger)):
    balances = ledger.account_balances()
    return [account_out(a, balances.get(a.id, 0)) for a in ledger.accounts.list()]


@app.post("/api/accounts", status_code=201)
def api_create_account(data: AccountIn, ledger: Ledger = Depends(get_ledger)):
    return account_out(ledger.accounts.create(data))


@app.patch("/api/accounts/{account_id}")
def api_update_account(
    account_id: int, data: AccountUpdate, ledger: Ledger = Depends(get_ledger)
):
    return account_out(ledger.accounts.update(account_id, data))


@app.delete("/api/accounts/{account_id}", status_code=204)
def api_delete_account(account_id: int, ledger: Ledger = Depends(get_ledger)):
    ledger.accounts.delete(account_id)


@app.get("/api/balance")
def api_balance(ledger: Ledger = Depends(get_ledger)):
    summary = ledger.monthly_summary()
    return {
        "total_balance_cents": ledger.total_balance(),
        "monthly_income_cents": summary.income_cents,
        "monthly_expense_cents": summary.expense_cents,
        "monthly_net_cents": summary.net_cents,
    }


@app.get("/api/categories")
def api_categories(
    kind: Optional[CategoryKind] = None, ledger: Ledger = Depends(get_ledger)
):
    return [category_out(c) for c in ledger.categories.list(kind=kind)]


@app.post("/api/categories", status_code=201)
def api_create_category(data: CategoryIn, ledger: Ledger = Depends(get_ledger)):
    return category_out(ledger.categories.create(data))


@app.delete("/api/categories/{category_id}", status_code=204)
def api_delete_category(category_id: int, ledger: Ledger = Depends(get_ledger)):
    ledger.categories.delete(category_id)


@app.get("/api/transactions")
def api_transactions(request: Request, ledger: Ledger = Depends(get_ledger)):
    period = period_from_request(request)
    return [transaction_out(t) for t in ledger.transactions.list(period=period)]


@app.post("/api/transactions", status_code=201)
def api_create_transaction(data: TransactionIn, ledger: Ledger = Depends(get_ledger)):
    return transaction_out(ledger.transactions.create(data))


@app.patch("/api/transactions/{transaction_id}")
def api_update_transaction(
    transaction_id: int, data: TransactionUpdate, ledger: Ledger = Depends(get_ledger)
):
    return transaction_out(ledger.transactions.update(transaction_id, data))


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def api_delete_transaction(transaction_id: int, ledger: Ledger = Depends(get_ledger)):
    ledger.transactions.delete(transaction_id)


@app.get("/api/installments")
def api_installments(active: bool = False, ledger: Ledger = Depends(get_ledger)):
    return [plan_out(p) for p in ledger.planner.list(active_only=active)]


@app.post("/api/installments", status_code=201)
def api_create_installment(
    data: InstallmentPlanIn, ledger: Ledger = Depends(get_ledger)
):
    return plan_out(ledger.create_installment_plan(data))


@app.post("/api/installments/{plan_id}/cancel")
def api_cancel_installment(plan_id: int, ledger: Ledger = Depends(get_ledger)):
    return {"deleted": ledger.cancel_installment_plan(plan_id)}


@app.post("/api/installments/sync")
def api_sync_installments(ledger: Ledger = Depends(get_ledger)):
    result = ledger.sync_paid_counts()
    return {
        "updated": result.updated,
        "unchanged": result.unchanged,
        "failed": [asdict(f) for f in result.failed],
    }


@app.get("/api/recurring")
def api_recurring(ledger: Ledger = Depends(get_ledger)):
    rules = RecurringRuleService(ledger.store, ledger.identity)
    return [rule_out(r) for r in rules.list()]


@app.post("/api/recurring", status_code=201)
def api_create_recurring(data: RecurringRuleIn, ledger: Ledger = Depends(get_ledger)):
    rules = RecurringRuleService(ledger.store, ledger.identity)
    return rule_out(rules.create(data))


@app.post("/api/recurring/{rule_id}/toggle")
def api_toggle_recurring(
    rule_id: int, data: ToggleIn, ledger: Ledger = Depends(get_ledger)
):
    rules = RecurringRuleService(ledger.store, ledger.identity)
    return rule_out(rules.toggle(rule_id, data.active))


@app.delete("/api/recurring/{rule_id}", status_code=204)
def api_delete_recurring(rule_id: int, ledger: Ledger = Depends(get_ledger)):
    RecurringRuleService(ledger.store, ledger.identity).delete(rule_id)


@app.post("/api/recurring/process")
def api_process_recurring(ledger: Ledger = Depends(get_ledger)):
    result = ledger.process_recurring()
    return {
        "created": result.created,
        "skipped": result.skipped,
        "failed": [asdict(f) for f in result.failed],
    }


@app.get("/api/alerts")
def api_alerts(ledger: Ledger = Depends(get_ledger)):
    return [alert_out(a) for a in AlertService(ledger.store, ledger.identity).list()]


@app.get("/api/alerts/triggered")
def api_triggered_alerts(ledger: Ledger = Depends(get_ledger)):
    return [
        {
            "alert": alert_out(item.alert),
            "spent_cents": item.spent_cents,
            "percentage": item.percentage,
            "over_limit": item.over_limit,
        }
        for item in ledger.triggered_alerts()
    ]


@app.post("/api/alerts", status_code=201)
def api_create_alert(data: AlertIn, ledger: Ledger = Depends(get_ledger)):
    return alert_out(AlertService(ledger.store, ledger.identity).create(data))


@app.post("/api/alerts/{alert_id}/toggle")
def api_toggle_alert(
    alert_id: int, data: ToggleIn, ledger: Ledger = Depends(get_ledger)
):
    alerts = AlertService(ledger.store, ledger.identity)
    return alert_out(alerts.toggle(alert_id, data.active))


@app.delete("/api/alerts/{alert_id}", status_code=204)
def api_delete_alert(alert_id: int, ledger: Ledger = Depends(get_ledger)):
    AlertService(ledger.store, ledger.identity).delete(alert_id)


@app.get("/api/goals")
def api_goals(ledger: Ledger = Depends(get_ledger)):
    return [goal_out(g) for g in GoalService(ledger.store, ledger.identity).list()]


@app.post("/api/goals", status_code=201)
def api_create_goal(data: GoalIn, ledger: Ledger = Depends(get_ledger)):
    return goal_out(GoalService(ledger.store, ledger.identity).create(data))


@app.post("/api/goals/{goal_id}/progress")
def api_goal_progress(
    goal_id: int, data: GoalProgressIn, ledger: Ledger = Depends(get_ledger)
):
    goals = GoalService(ledger.store, ledger.identity)
    return goal_out(goals.set_progress(goal_id, data.current_amount_cents))


@app.delete("/api/goals/{goal_id}", status_code=204)
def api_delete_goal(goal_id: int, ledger: Ledger = Depends(get_ledger)):
    GoalService(ledger.store, ledger.identity).delete(goal_id)


@app.get("/api/reports/categories")
def api_category_report(request: Request, ledger: Ledger = Depends(get_ledger)):
    period = period_from_request(request)
    return [asdict(entry) for entry in ledger.group_by_category(period)]


@app.get("/api/reports/daily")
def api_daily_report(
    month: Optional[date] = None, ledger: Ledger = Depends(get_ledger)
):
    month = month or local_today()
    txns = ledger.transactions.list(period=month_period(month))
    return [
        {
            "date": point.day.isoformat(),
            "income_cents": point.income_cents,
            "expense_cents": point.expense_cents,
            "balance_cents": point.balance_cents,
        }
        for point in daily_balance(txns, month)
    ]


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
