import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from errors import (
    InvalidStateError,
    NotFoundError,
    OrphanedPlanError,
    StoreError,
    UnitFailure,
    ValidationError,
)
from identity import Identity
from models import (
    Account,
    Category,
    CategoryKind,
    InstallmentPlan,
    Transaction,
    TransactionKind,
)
from periods import add_months, local_today
from schemas import InstallmentPlanIn
from store import RecordStore


logger = logging.getLogger(__name__)


def parcel_label(description: str, number: int, count: int) -> str:
    return f"{description} ({number}/{count})"


def remaining_amount(plan: InstallmentPlan) -> int:
    return (plan.installment_count - plan.paid_count) * plan.installment_amount_cents


def installment_end_date(plan: InstallmentPlan) -> date:
    # start_date is the due date of the first unpaid parcel.
    return add_months(plan.start_date, plan.installment_count - plan.already_paid - 1)


def is_active(plan: InstallmentPlan) -> bool:
    return plan.paid_count < plan.installment_count


def build_parcels(plan: InstallmentPlan, already_paid: int) -> list[Transaction]:
    """Transactions for every parcel not yet paid.

    ``plan.start_date`` is the due date of parcel ``already_paid + 1``.
    """
    remaining = plan.installment_count - already_paid
    parcels = []
    for index in range(remaining):
        number = already_paid + index + 1
        parcels.append(
            Transaction(
                user_id=plan.user_id,
                account_id=plan.account_id,
                category_id=plan.category_id,
                amount_cents=plan.installment_amount_cents,
                kind=TransactionKind.expense,
                description=parcel_label(
                    plan.description, number, plan.installment_count
                ),
                date=add_months(plan.start_date, index),
                installment_plan_id=plan.id,
                installment_number=number,
            )
        )
    return parcels


class InstallmentPlanner:
    def __init__(self, store: RecordStore, identity: Identity) -> None:
        self.store = store
        self.identity = identity

    def _check_references(self, user_id: int, data: InstallmentPlanIn) -> None:
        category = self.store.select_one(
            Category, Category.id == data.category_id, Category.user_id == user_id
        )
        if not category:
            raise NotFoundError("Category not found")
        if category.kind != CategoryKind.expense:
            raise ValidationError("Installment plans need an expense category")
        account = self.store.select_one(
            Account, Account.id == data.account_id, Account.user_id == user_id
        )
        if not account:
            raise NotFoundError("Account not found")

    def create(self, data: InstallmentPlanIn) -> InstallmentPlan:
        user_id = self.identity.current_user_id()
        remaining = data.installment_count - data.already_paid
        if remaining <= 0:
            raise InvalidStateError("All installments are already paid")
        self._check_references(user_id, data)

        plan = self.store.insert(
            InstallmentPlan(
                user_id=user_id,
                description=data.description,
                total_amount_cents=data.total_amount_cents,
                installment_amount_cents=data.installment_amount_cents,
                installment_count=data.installment_count,
                already_paid=data.already_paid,
                paid_count=data.already_paid,
                category_id=data.category_id,
                account_id=data.account_id,
                start_date=data.start_date,
            )
        )

        parcels = build_parcels(plan, data.already_paid)
        try:
            self.store.insert_batch(parcels)
        except StoreError as exc:
            logger.error(
                f"installment_parcels_failed: plan_id={plan.id} error={exc}; "
                "deleting plan"
            )
            self._compensate(plan, exc)
            raise

        logger.info(
            f"installment_plan_created: plan_id={plan.id} parcels={len(parcels)} "
            f"first={parcels[0].date.isoformat()} last={parcels[-1].date.isoformat()}"
        )
        return plan

    def _compensate(self, plan: InstallmentPlan, cause: StoreError) -> None:
        try:
            self.store.delete(InstallmentPlan, InstallmentPlan.id == plan.id)
        except StoreError as exc:
            logger.critical(
                f"installment_plan_orphaned: plan_id={plan.id} cause={cause} "
                f"compensation_error={exc}"
            )
            raise OrphanedPlanError(plan.id, cause, exc) from exc

    def get(self, plan_id: int) -> InstallmentPlan:
        user_id = self.identity.current_user_id()
        plan = self.store.select_one(
            InstallmentPlan,
            InstallmentPlan.id == plan_id,
            InstallmentPlan.user_id == user_id,
        )
        if not plan:
            raise NotFoundError("Installment plan not found")
        return plan

    def cancel(self, plan_id: int, today: Optional[date] = None) -> int:
        """Delete the plan's parcels dated after ``today``.

        Parcels on or before today stay as history; the plan row and its
        ``paid_count`` are left alone until the next reconciliation.
        """
        plan = self.get(plan_id)
        today = today or local_today()
        deleted = self.store.delete(
            Transaction,
            Transaction.installment_plan_id == plan.id,
            Transaction.user_id == plan.user_id,
            Transaction.date > today,
        )
        logger.info(f"installment_plan_cancelled: plan_id={plan.id} deleted={deleted}")
        return deleted

    def list(self, active_only: bool = False) -> list[InstallmentPlan]:
        user_id = self.identity.current_user_id()
        plans = self.store.select(
            InstallmentPlan,
            InstallmentPlan.user_id == user_id,
            order_by=(InstallmentPlan.created_at.desc(), InstallmentPlan.id.desc()),
        )
        if active_only:
            return [p for p in plans if is_active(p)]
        return plans


@dataclass
class ReconciliationResult:
    updated: list[int] = field(default_factory=list)
    unchanged: list[int] = field(default_factory=list)
    failed: list[UnitFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class PaidCountReconciler:
    def __init__(self, store: RecordStore, identity: Identity) -> None:
        self.store = store
        self.identity = identity

    def sync(self, today: Optional[date] = None) -> ReconciliationResult:
        user_id = self.identity.current_user_id()
        today = today or local_today()
        plans = self.store.select(
            InstallmentPlan,
            InstallmentPlan.user_id == user_id,
            order_by=(InstallmentPlan.id,),
        )
        result = ReconciliationResult()
        for plan in plans:
            try:
                changed = self._sync_plan(plan, today)
            except Exception as exc:
                logger.exception(f"paid_count_sync_failed: plan_id={plan.id}")
                result.failed.append(UnitFailure(plan.id, str(exc)))
                continue
            if changed:
                result.updated.append(plan.id)
            else:
                result.unchanged.append(plan.id)

        logger.info(
            f"paid_count_sync: user_id={user_id} today={today.isoformat()} "
            f"updated={len(result.updated)} unchanged={len(result.unchanged)} "
            f"failed={len(result.failed)}"
        )
        return result

    def _sync_plan(self, plan: InstallmentPlan, today: date) -> bool:
        due = self.store.count(
            Transaction,
            Transaction.installment_plan_id == plan.id,
            Transaction.date <= today,
        )
        # Parcels imported as already paid have no transactions behind them.
        paid = min(plan.already_paid + due, plan.installment_count)
        if paid == plan.paid_count:
            return False
        self.store.update(InstallmentPlan, plan.id, paid_count=paid)
        plan.paid_count = paid
        return True
