"""Pure projections over an already loaded transaction set.

Nothing here touches the store. Callers load accounts, alerts and transactions
once and recompute these after every mutation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Sequence

from models import (
    Account,
    Alert,
    AlertPeriod,
    Category,
    Transaction,
    TransactionKind,
)
from periods import Period, days_in_month, month_period, week_period

ALERT_WARNING_PERCENT = 80
ALERT_LIMIT_PERCENT = 100

FALLBACK_CATEGORY_NAME = "Other"
FALLBACK_CATEGORY_COLOR = "#6b7280"
FALLBACK_CATEGORY_ICON = "📦"


def percent_half_up(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    value = Decimal(part) * Decimal(100) / Decimal(whole)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def signed_amount(txn: Transaction) -> int:
    # Transfers never move the net; they only shuffle money between accounts.
    if txn.kind == TransactionKind.income:
        return txn.amount_cents
    if txn.kind == TransactionKind.expense:
        return -txn.amount_cents
    if txn.kind == TransactionKind.transfer:
        return 0
    raise ValueError(f"Unknown transaction kind: {txn.kind}")


def account_balance(
    account: Account,
    transactions: Iterable[Transaction],
    today: Optional[date] = None,
) -> int:
    own = (t for t in transactions if t.account_id == account.id)
    if account.accrues:
        return account.initial_balance_cents + sum(signed_amount(t) for t in own)

    period = month_period(today)
    return sum(signed_amount(t) for t in own if period.contains(t.date))


def account_balances(
    accounts: Sequence[Account],
    transactions: Iterable[Transaction],
    today: Optional[date] = None,
) -> dict[int, int]:
    period = month_period(today)
    all_time: dict[int, int] = {}
    this_month: dict[int, int] = {}
    for txn in transactions:
        delta = signed_amount(txn)
        all_time[txn.account_id] = all_time.get(txn.account_id, 0) + delta
        if period.contains(txn.date):
            this_month[txn.account_id] = this_month.get(txn.account_id, 0) + delta

    balances: dict[int, int] = {}
    for account in accounts:
        if account.accrues:
            balances[account.id] = account.initial_balance_cents + all_time.get(
                account.id, 0
            )
        else:
            balances[account.id] = this_month.get(account.id, 0)
    return balances


def total_balance(
    accounts: Sequence[Account],
    transactions: Iterable[Transaction],
    today: Optional[date] = None,
) -> int:
    return sum(account_balances(accounts, transactions, today).values())


@dataclass(frozen=True)
class Summary:
    income_cents: int
    expense_cents: int

    @property
    def net_cents(self) -> int:
        return self.income_cents - self.expense_cents


def summarize(
    transactions: Iterable[Transaction], period: Optional[Period] = None
) -> Summary:
    income = 0
    expense = 0
    for txn in transactions:
        if period is not None and not period.contains(txn.date):
            continue
        if txn.kind == TransactionKind.income:
            income += txn.amount_cents
        elif txn.kind == TransactionKind.expense:
            expense += txn.amount_cents
    return Summary(income_cents=income, expense_cents=expense)


@dataclass(frozen=True)
class DailyPoint:
    day: date
    income_cents: int
    expense_cents: int
    balance_cents: int


def daily_balance(transactions: Iterable[Transaction], month: date) -> list[DailyPoint]:
    """One point per day of ``month`` with the running income minus expense."""
    length = days_in_month(month.year, month.month)
    income = [0] * length
    expense = [0] * length
    for txn in transactions:
        if (txn.date.year, txn.date.month) != (month.year, month.month):
            continue
        index = txn.date.day - 1
        if txn.kind == TransactionKind.income:
            income[index] += txn.amount_cents
        elif txn.kind == TransactionKind.expense:
            expense[index] += txn.amount_cents

    points: list[DailyPoint] = []
    running = 0
    for index in range(length):
        running += income[index] - expense[index]
        points.append(
            DailyPoint(
                day=date(month.year, month.month, index + 1),
                income_cents=income[index],
                expense_cents=expense[index],
                balance_cents=running,
            )
        )
    return points


@dataclass(frozen=True)
class TriggeredAlert:
    alert: Alert
    spent_cents: int
    percentage: int
    over_limit: bool


def alert_window(alert: Alert, today: Optional[date] = None) -> Period:
    if alert.period == AlertPeriod.weekly:
        return week_period(today)
    return month_period(today)


def triggered_alerts(
    alerts: Iterable[Alert],
    transactions: Sequence[Transaction],
    today: Optional[date] = None,
) -> list[TriggeredAlert]:
    result: list[TriggeredAlert] = []
    for alert in alerts:
        if not alert.active:
            continue
        window = alert_window(alert, today)
        spent = sum(
            t.amount_cents
            for t in transactions
            if t.kind == TransactionKind.expense
            and t.category_id == alert.category_id
            and window.contains(t.date)
        )
        percentage = percent_half_up(spent, alert.limit_amount_cents)
        if percentage < ALERT_WARNING_PERCENT:
            continue
        result.append(
            TriggeredAlert(
                alert=alert,
                spent_cents=spent,
                percentage=percentage,
                over_limit=percentage >= ALERT_LIMIT_PERCENT,
            )
        )
    result.sort(key=lambda item: (not item.over_limit, -item.percentage))
    return result


@dataclass(frozen=True)
class CategoryTotal:
    category_id: int
    name: str
    color: str
    icon: str
    amount_cents: int
    percentage: int


def group_by_category(
    transactions: Iterable[Transaction],
    categories: Optional[Iterable[Category]] = None,
) -> list[CategoryTotal]:
    lookup = {c.id: c for c in categories or ()}
    totals: dict[int, int] = {}
    for txn in transactions:
        if txn.kind != TransactionKind.expense:
            continue
        totals[txn.category_id] = totals.get(txn.category_id, 0) + txn.amount_cents

    grand_total = sum(totals.values())
    entries = []
    for category_id, amount in totals.items():
        category = lookup.get(category_id)
        entries.append(
            CategoryTotal(
                category_id=category_id,
                name=category.name if category else FALLBACK_CATEGORY_NAME,
                color=(category and category.color) or FALLBACK_CATEGORY_COLOR,
                icon=(category and category.icon) or FALLBACK_CATEGORY_ICON,
                amount_cents=amount,
                percentage=percent_half_up(amount, grand_total),
            )
        )
    entries.sort(key=lambda entry: entry.amount_cents, reverse=True)
    return entries
