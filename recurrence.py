import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from errors import DuplicateRowError, UnitFailure
from identity import Identity
from models import RecurringRule, Transaction, TransactionKind
from periods import days_in_month, local_today
from store import RecordStore


logger = logging.getLogger(__name__)


def due_date(rule: RecurringRule, as_of: date) -> Optional[date]:
    """Date this rule posts on in ``as_of``'s month, or None if not due yet."""
    target_day = min(rule.day_of_month, days_in_month(as_of.year, as_of.month))
    if target_day > as_of.day:
        return None
    return date(as_of.year, as_of.month, target_day)


@dataclass
class MaterializationResult:
    created: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[UnitFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class RecurringMaterializer:
    def __init__(self, store: RecordStore, identity: Identity) -> None:
        self.store = store
        self.identity = identity

    def process(self, as_of: Optional[date] = None) -> MaterializationResult:
        user_id = self.identity.current_user_id()
        as_of = as_of or local_today()
        rules = self.store.select(
            RecurringRule,
            RecurringRule.user_id == user_id,
            RecurringRule.active.is_(True),
            order_by=(RecurringRule.day_of_month, RecurringRule.id),
        )
        result = MaterializationResult()
        for rule in rules:
            try:
                posted = self._materialize(rule, as_of)
            except Exception as exc:
                logger.exception(f"recurring_rule_failed: rule_id={rule.id}")
                result.failed.append(UnitFailure(rule.id, str(exc)))
                continue
            if posted:
                result.created.append(rule.id)
            else:
                result.skipped.append(rule.id)

        logger.info(
            f"recurring_pass: user_id={user_id} as_of={as_of.isoformat()} "
            f"created={len(result.created)} skipped={len(result.skipped)} "
            f"failed={len(result.failed)}"
        )
        return result

    def _materialize(self, rule: RecurringRule, as_of: date) -> bool:
        target_date = due_date(rule, as_of)
        if target_date is None:
            return False

        existing = self.store.count(
            Transaction,
            Transaction.user_id == rule.user_id,
            Transaction.recurring_rule_id == rule.id,
            Transaction.date == target_date,
        )
        if existing:
            return False

        txn = Transaction(
            user_id=rule.user_id,
            account_id=rule.account_id,
            category_id=rule.category_id,
            amount_cents=rule.amount_cents,
            kind=TransactionKind(rule.kind.value),
            description=rule.description,
            date=target_date,
            recurring_rule_id=rule.id,
        )
        try:
            self.store.insert(txn)
        except DuplicateRowError:
            # Another session posted the same (rule, date) between our check and insert.
            logger.info(
                f"recurring_rule_race: rule_id={rule.id} date={target_date.isoformat()}"
            )
            return False
        return True
