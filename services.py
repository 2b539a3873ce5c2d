from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from errors import (
    CategoryInUseError,
    DuplicateRowError,
    NotFoundError,
    ReferentialIntegrityError,
    ValidationError,
)
from identity import Identity
from installments import (
    InstallmentPlanner,
    PaidCountReconciler,
    ReconciliationResult,
)
from models import (
    Account,
    Alert,
    Category,
    CategoryKind,
    Goal,
    InstallmentPlan,
    RecurringRule,
    Transaction,
    TransactionKind,
)
from periods import Period, local_today, month_period, week_period
from projections import (
    CategoryTotal,
    Summary,
    TriggeredAlert,
    account_balance,
    account_balances,
    group_by_category,
    summarize,
    triggered_alerts,
)
from recurrence import MaterializationResult, RecurringMaterializer
from schemas import (
    AccountIn,
    AccountUpdate,
    AlertIn,
    CategoryIn,
    GoalIn,
    InstallmentPlanIn,
    RecurringRuleIn,
    TransactionIn,
    TransactionUpdate,
)
from store import RecordStore


logger = logging.getLogger(__name__)


def _check_kind(category: Category, kind: TransactionKind) -> None:
    if kind == TransactionKind.transfer:
        return
    if category.kind.value != kind.value:
        raise ValidationError("Category kind mismatch")


def _reject_nulls(fields: dict, nullable: tuple[str, ...] = ()) -> None:
    missing = sorted(k for k, v in fields.items() if v is None and k not in nullable)
    if missing:
        raise ValidationError(f"Fields cannot be null: {', '.join(missing)}")


class _OwnedService:
    def __init__(self, store: RecordStore, identity: Identity) -> None:
        self.store = store
        self.identity = identity

    @property
    def user_id(self) -> int:
        return self.identity.current_user_id()

    def _owned(self, model, row_id: int, label: str):
        row = self.store.select_one(
            model, model.id == row_id, model.user_id == self.user_id
        )
        if not row:
            raise NotFoundError(f"{label} not found")
        return row


class AccountService(_OwnedService):
    def list(self) -> list[Account]:
        return self.store.select(
            Account,
            Account.user_id == self.user_id,
            order_by=(Account.created_at, Account.id),
        )

    def get(self, account_id: int) -> Account:
        return self._owned(Account, account_id, "Account")

    def create(self, data: AccountIn) -> Account:
        return self.store.insert(Account(user_id=self.user_id, **data.model_dump()))

    def update(self, account_id: int, data: AccountUpdate) -> Account:
        self.get(account_id)
        fields = data.model_dump(exclude_unset=True)
        _reject_nulls(fields, nullable=("color", "icon"))
        if fields:
            self.store.update(Account, account_id, **fields)
        return self.get(account_id)

    def delete(self, account_id: int) -> None:
        # Transactions, rules, plans and alerts of the account go with it.
        self.get(account_id)
        self.store.delete(Account, Account.id == account_id)
        logger.info(f"account_deleted: account_id={account_id}")


class CategoryService(_OwnedService):
    def list(self, kind: Optional[CategoryKind] = None) -> list[Category]:
        criteria = [Category.user_id == self.user_id]
        if kind is not None:
            criteria.append(Category.kind == kind)
        return self.store.select(Category, *criteria, order_by=(Category.name,))

    def get(self, category_id: int) -> Category:
        return self._owned(Category, category_id, "Category")

    def create(self, data: CategoryIn) -> Category:
        category = Category(
            user_id=self.user_id,
            name=data.name.strip(),
            kind=data.kind,
            icon=data.icon,
            color=data.color,
        )
        try:
            return self.store.insert(category)
        except DuplicateRowError as exc:
            raise ValidationError("Category already exists") from exc

    def delete(self, category_id: int) -> None:
        self.get(category_id)
        try:
            self.store.delete(Category, Category.id == category_id)
        except ReferentialIntegrityError as exc:
            raise CategoryInUseError(category_id) from exc


class TransactionService(_OwnedService):
    def _check_refs(self, account_id: int, category_id: int, kind: TransactionKind):
        self._owned(Account, account_id, "Account")
        category = self._owned(Category, category_id, "Category")
        _check_kind(category, kind)

    def create(self, data: TransactionIn) -> Transaction:
        self._check_refs(data.account_id, data.category_id, data.kind)
        return self.store.insert(
            Transaction(
                user_id=self.user_id,
                account_id=data.account_id,
                category_id=data.category_id,
                amount_cents=data.amount_cents,
                kind=data.kind,
                description=data.description.strip(),
                date=data.date,
            )
        )

    def get(self, transaction_id: int) -> Transaction:
        return self._owned(Transaction, transaction_id, "Transaction")

    def update(self, transaction_id: int, data: TransactionUpdate) -> Transaction:
        txn = self.get(transaction_id)
        fields = data.model_dump(exclude_unset=True)
        _reject_nulls(fields)
        if not fields:
            return txn
        self._check_refs(
            fields.get("account_id", txn.account_id),
            fields.get("category_id", txn.category_id),
            txn.kind,
        )
        self.store.update(Transaction, txn.id, **fields)
        return self.get(transaction_id)

    def delete(self, transaction_id: int) -> None:
        self.get(transaction_id)
        self.store.delete(Transaction, Transaction.id == transaction_id)

    def list(
        self,
        period: Optional[Period] = None,
        account_id: Optional[int] = None,
    ) -> list[Transaction]:
        criteria = [Transaction.user_id == self.user_id]
        if period is not None:
            criteria.append(Transaction.date.between(period.start, period.end))
        if account_id is not None:
            criteria.append(Transaction.account_id == account_id)
        return self.store.select(
            Transaction,
            *criteria,
            order_by=(Transaction.date.desc(), Transaction.id.desc()),
        )


class RecurringRuleService(_OwnedService):
    def list(self) -> list[RecurringRule]:
        return self.store.select(
            RecurringRule,
            RecurringRule.user_id == self.user_id,
            order_by=(RecurringRule.day_of_month, RecurringRule.id),
        )

    def get(self, rule_id: int) -> RecurringRule:
        return self._owned(RecurringRule, rule_id, "Rule")

    def create(self, data: RecurringRuleIn) -> RecurringRule:
        self._owned(Account, data.account_id, "Account")
        category = self._owned(Category, data.category_id, "Category")
        _check_kind(category, TransactionKind(data.kind.value))
        return self.store.insert(
            RecurringRule(user_id=self.user_id, **data.model_dump())
        )

    def toggle(self, rule_id: int, active: bool) -> RecurringRule:
        self.get(rule_id)
        self.store.update(RecurringRule, rule_id, active=active)
        return self.get(rule_id)

    def delete(self, rule_id: int) -> None:
        # Posted transactions stay; their rule link is cleared by the store.
        self.get(rule_id)
        self.store.delete(RecurringRule, RecurringRule.id == rule_id)


class AlertService(_OwnedService):
    def list(self) -> list[Alert]:
        return self.store.select(
            Alert,
            Alert.user_id == self.user_id,
            order_by=(Alert.created_at.desc(), Alert.id.desc()),
        )

    def create(self, data: AlertIn) -> Alert:
        category = self._owned(Category, data.category_id, "Category")
        if category.kind != CategoryKind.expense:
            raise ValidationError("Alerts can only watch expense categories")
        return self.store.insert(Alert(user_id=self.user_id, **data.model_dump()))

    def toggle(self, alert_id: int, active: bool) -> Alert:
        self._owned(Alert, alert_id, "Alert")
        self.store.update(Alert, alert_id, active=active)
        return self._owned(Alert, alert_id, "Alert")

    def delete(self, alert_id: int) -> None:
        self._owned(Alert, alert_id, "Alert")
        self.store.delete(Alert, Alert.id == alert_id)


def goal_progress(goal: Goal) -> float:
    if goal.target_amount_cents <= 0:
        return 0.0
    return min(goal.current_amount_cents / goal.target_amount_cents * 100, 100.0)


def days_until_deadline(goal: Goal, today: Optional[date] = None) -> Optional[int]:
    if goal.deadline is None:
        return None
    today = today or local_today()
    return (goal.deadline - today).days


class GoalService(_OwnedService):
    def list(self) -> list[Goal]:
        return self.store.select(
            Goal,
            Goal.user_id == self.user_id,
            order_by=(Goal.created_at.desc(), Goal.id.desc()),
        )

    def create(self, data: GoalIn) -> Goal:
        return self.store.insert(Goal(user_id=self.user_id, **data.model_dump()))

    def set_progress(self, goal_id: int, current_amount_cents: int) -> Goal:
        self._owned(Goal, goal_id, "Goal")
        self.store.update(Goal, goal_id, current_amount_cents=current_amount_cents)
        return self._owned(Goal, goal_id, "Goal")

    def delete(self, goal_id: int) -> None:
        self._owned(Goal, goal_id, "Goal")
        self.store.delete(Goal, Goal.id == goal_id)


@dataclass(frozen=True)
class SessionStartResult:
    recurring: MaterializationResult
    paid_counts: ReconciliationResult


class Ledger:
    """Entry point for callers: the engine's mutations plus fresh projections.

    Nothing is cached; every projection reloads what it needs from the store.
    """

    def __init__(self, store: RecordStore, identity: Identity) -> None:
        self.store = store
        self.identity = identity
        self.planner = InstallmentPlanner(store, identity)
        self.materializer = RecurringMaterializer(store, identity)
        self.reconciler = PaidCountReconciler(store, identity)
        self.accounts = AccountService(store, identity)
        self.categories = CategoryService(store, identity)
        self.transactions = TransactionService(store, identity)

    def create_installment_plan(self, data: InstallmentPlanIn) -> InstallmentPlan:
        return self.planner.create(data)

    def cancel_installment_plan(
        self, plan_id: int, today: Optional[date] = None
    ) -> int:
        return self.planner.cancel(plan_id, today=today)

    def process_recurring(self, as_of: Optional[date] = None) -> MaterializationResult:
        return self.materializer.process(as_of=as_of)

    def sync_paid_counts(self, today: Optional[date] = None) -> ReconciliationResult:
        return self.reconciler.sync(today=today)

    def on_session_start(self, today: Optional[date] = None) -> SessionStartResult:
        today = today or local_today()
        recurring = self.process_recurring(as_of=today)
        paid_counts = self.sync_paid_counts(today=today)
        return SessionStartResult(recurring=recurring, paid_counts=paid_counts)

    def account_balance(self, account_id: int, today: Optional[date] = None) -> int:
        account = self.accounts.get(account_id)
        period = None if account.accrues else month_period(today)
        txns = self.transactions.list(period=period, account_id=account.id)
        return account_balance(account, txns, today=today)

    def account_balances(self, today: Optional[date] = None) -> dict[int, int]:
        return account_balances(
            self.accounts.list(), self.transactions.list(), today=today
        )

    def total_balance(self, today: Optional[date] = None) -> int:
        return sum(self.account_balances(today=today).values())

    def monthly_summary(self, today: Optional[date] = None) -> Summary:
        period = month_period(today)
        return summarize(self.transactions.list(period=period))

    def triggered_alerts(self, today: Optional[date] = None) -> list[TriggeredAlert]:
        month = month_period(today)
        week = week_period(today)
        window = Period(
            "alerts", min(month.start, week.start), max(month.end, week.end)
        )
        alerts = AlertService(self.store, self.identity).list()
        return triggered_alerts(alerts, self.transactions.list(period=window), today)

    def group_by_category(self, period: Optional[Period] = None) -> list[CategoryTotal]:
        period = period or month_period()
        return group_by_category(
            self.transactions.list(period=period),
            self.categories.list(kind=CategoryKind.expense),
        )
