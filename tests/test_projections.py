from datetime import date

from models import (
    Account,
    Alert,
    AlertPeriod,
    Category,
    CategoryKind,
    Transaction,
    TransactionKind,
)
from projections import (
    account_balance,
    account_balances,
    daily_balance,
    group_by_category,
    percent_half_up,
    summarize,
    total_balance,
    triggered_alerts,
)

MAY_20 = date(2024, 5, 20)


def txn(kind, amount, day, account_id=1, category_id=1) -> Transaction:
    return Transaction(
        user_id=1,
        account_id=account_id,
        category_id=category_id,
        amount_cents=amount,
        kind=TransactionKind(kind),
        description="",
        date=day,
    )


def may_transactions() -> list[Transaction]:
    return [
        txn("income", 200_000, date(2024, 5, 5)),
        txn("expense", 30_000, date(2024, 5, 12)),
        txn("expense", 5_000, date(2024, 4, 28)),
    ]


def test_non_accruing_account_only_counts_current_month():
    allowance = Account(id=1, initial_balance_cents=50_000, accrues=False)

    balance = account_balance(allowance, may_transactions(), today=MAY_20)

    assert balance == 170_000


def test_accruing_account_counts_everything_plus_initial_balance():
    savings = Account(id=1, initial_balance_cents=50_000, accrues=True)

    balance = account_balance(savings, may_transactions(), today=MAY_20)

    assert balance == 50_000 + 200_000 - 30_000 - 5_000


def test_transfers_do_not_move_the_balance():
    savings = Account(id=1, initial_balance_cents=0, accrues=True)
    txns = [txn("income", 10_000, MAY_20), txn("transfer", 7_000, MAY_20)]

    assert account_balance(savings, txns, today=MAY_20) == 10_000


def test_transactions_of_other_accounts_are_ignored():
    checking = Account(id=1, initial_balance_cents=0, accrues=True)
    txns = [txn("income", 10_000, MAY_20), txn("income", 99_000, MAY_20, account_id=2)]

    assert account_balance(checking, txns, today=MAY_20) == 10_000


def test_total_balance_sums_both_policies():
    savings = Account(id=1, initial_balance_cents=100_000, accrues=True)
    allowance = Account(id=2, initial_balance_cents=50_000, accrues=False)
    txns = may_transactions() + [
        txn("income", 60_000, date(2024, 5, 1), account_id=2),
        txn("income", 60_000, date(2024, 4, 1), account_id=2),
    ]

    balances = account_balances([savings, allowance], txns, today=MAY_20)

    assert balances == {1: 265_000, 2: 60_000}
    assert total_balance([savings, allowance], txns, today=MAY_20) == 325_000


def test_summary_ignores_transfers():
    summary = summarize(
        [
            txn("income", 10_000, MAY_20),
            txn("expense", 4_000, MAY_20),
            txn("transfer", 3_000, MAY_20),
        ]
    )

    assert summary.income_cents == 10_000
    assert summary.expense_cents == 4_000
    assert summary.net_cents == 6_000


def test_daily_balance_runs_through_the_month():
    points = daily_balance(
        [
            txn("income", 10_000, date(2024, 2, 2)),
            txn("expense", 2_500, date(2024, 2, 3)),
            txn("expense", 1_000, date(2024, 3, 1)),
        ],
        date(2024, 2, 1),
    )

    assert len(points) == 29
    assert points[0].balance_cents == 0
    assert points[1].income_cents == 10_000
    assert points[2].expense_cents == 2_500
    assert points[-1].balance_cents == 7_500


def _alert(alert_id=1, category_id=1, limit=50_000, **kwargs) -> Alert:
    return Alert(
        id=alert_id,
        user_id=1,
        category_id=category_id,
        limit_amount_cents=limit,
        period=kwargs.get("period", AlertPeriod.monthly),
        active=kwargs.get("active", True),
    )


def test_alert_close_to_limit_is_triggered_but_not_over():
    result = triggered_alerts([_alert()], [txn("expense", 45_000, MAY_20)], MAY_20)

    assert len(result) == 1
    assert result[0].spent_cents == 45_000
    assert result[0].percentage == 90
    assert result[0].over_limit is False


def test_alert_over_limit_is_flagged():
    result = triggered_alerts([_alert()], [txn("expense", 52_000, MAY_20)], MAY_20)

    assert result[0].percentage == 104
    assert result[0].over_limit is True


def test_alert_below_eighty_percent_is_quiet():
    result = triggered_alerts([_alert()], [txn("expense", 39_000, MAY_20)], MAY_20)

    assert result == []


def test_alert_percentage_rounds_half_up():
    assert percent_half_up(39_750, 50_000) == 80
    result = triggered_alerts([_alert()], [txn("expense", 39_750, MAY_20)], MAY_20)

    assert [r.percentage for r in result] == [80]


def test_alert_ignores_income_other_categories_and_other_months():
    txns = [
        txn("income", 90_000, MAY_20),
        txn("expense", 90_000, MAY_20, category_id=2),
        txn("expense", 90_000, date(2024, 4, 30)),
    ]

    assert triggered_alerts([_alert()], txns, MAY_20) == []


def test_inactive_alerts_are_skipped():
    txns = [txn("expense", 90_000, MAY_20)]

    assert triggered_alerts([_alert(active=False)], txns, MAY_20) == []


def test_weekly_alert_only_counts_the_current_week():
    weekly = _alert(period=AlertPeriod.weekly, limit=10_000)
    txns = [
        txn("expense", 9_000, date(2024, 5, 20)),
        txn("expense", 9_000, date(2024, 5, 19)),
    ]

    result = triggered_alerts([weekly], txns, date(2024, 5, 22))

    assert [(r.spent_cents, r.percentage) for r in result] == [(9_000, 90)]


def test_over_limit_alerts_sort_first_then_by_percentage():
    alerts = [
        _alert(alert_id=1, category_id=1, limit=10_000),
        _alert(alert_id=2, category_id=2, limit=10_000),
        _alert(alert_id=3, category_id=3, limit=10_000),
        _alert(alert_id=4, category_id=4, limit=10_000),
    ]
    txns = [
        txn("expense", 9_900, MAY_20, category_id=1),
        txn("expense", 10_500, MAY_20, category_id=2),
        txn("expense", 8_500, MAY_20, category_id=3),
        txn("expense", 15_000, MAY_20, category_id=4),
    ]

    result = triggered_alerts(alerts, txns, MAY_20)

    assert [r.alert.id for r in result] == [4, 2, 1, 3]
    assert [r.over_limit for r in result] == [True, True, False, False]


def test_group_by_category_sums_expenses_and_sorts_descending():
    categories = [
        Category(id=1, name="Food", kind=CategoryKind.expense, color="#ef4444"),
        Category(id=2, name="Transport", kind=CategoryKind.expense, icon="🚌"),
    ]
    txns = [
        txn("expense", 1_000, MAY_20, category_id=2),
        txn("expense", 2_000, MAY_20, category_id=1),
        txn("expense", 1_000, MAY_20, category_id=1),
        txn("income", 50_000, MAY_20, category_id=3),
        txn("expense", 1_000, MAY_20, category_id=9),
    ]

    entries = group_by_category(txns, categories)

    assert [(e.category_id, e.amount_cents, e.percentage) for e in entries] == [
        (1, 3_000, 60),
        (2, 1_000, 20),
        (9, 1_000, 20),
    ]
    assert entries[0].name == "Food"
    assert entries[0].color == "#ef4444"
    assert entries[1].icon == "🚌"
    assert entries[2].name == "Other"
    assert entries[2].color == "#6b7280"


def test_group_by_category_without_expenses_is_empty():
    assert group_by_category([txn("income", 1_000, MAY_20)]) == []
