"""initial ledger schema

Revision ID: 202410190900
Revises:
Create Date: 2024-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202410190900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column(
            "kind",
            sa.Enum("checking", "savings", "investment", "wallet", name="accountkind"),
            nullable=False,
        ),
        sa.Column(
            "initial_balance_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("accrues", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("color", sa.String(length=7)),
        sa.Column("icon", sa.String(length=16)),
        *_timestamps(),
    )
    op.create_index("ix_accounts_user", "accounts", ["user_id"])

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("icon", sa.String(length=16)),
        sa.Column("color", sa.String(length=7)),
        sa.Column(
            "kind", sa.Enum("income", "expense", name="categorykind"), nullable=False
        ),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id", "kind", "name", name="uq_category_user_kind_name"
        ),
    )

    op.create_table(
        "installment_plans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=200), nullable=False),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False),
        sa.Column("installment_amount_cents", sa.Integer(), nullable=False),
        sa.Column("installment_count", sa.Integer(), nullable=False),
        sa.Column("already_paid", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("paid_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("installment_count >= 1", name="ck_plan_count_positive"),
        sa.CheckConstraint(
            "paid_count >= 0 AND paid_count <= installment_count",
            name="ck_plan_paid_count_range",
        ),
        sa.CheckConstraint(
            "already_paid >= 0 AND already_paid < installment_count",
            name="ck_plan_already_paid_range",
        ),
        sa.CheckConstraint(
            "installment_amount_cents > 0", name="ck_plan_installment_positive"
        ),
    )
    op.create_index("ix_installment_plans_user", "installment_plans", ["user_id"])

    op.create_table(
        "recurring_rules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("description", sa.String(length=200), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "kind", sa.Enum("income", "expense", name="categorykind"), nullable=False
        ),
        sa.Column("day_of_month", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint(
            "day_of_month >= 1 AND day_of_month <= 31", name="ck_rule_day_range"
        ),
        sa.CheckConstraint("amount_cents > 0", name="ck_rule_amount_positive"),
    )
    op.create_index(
        "ix_recurring_rules_user_active", "recurring_rules", ["user_id", "active"]
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "kind",
            sa.Enum("income", "expense", "transfer", name="transactionkind"),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "installment_plan_id",
            sa.Integer(),
            sa.ForeignKey("installment_plans.id", ondelete="CASCADE"),
        ),
        sa.Column("installment_number", sa.Integer()),
        sa.Column(
            "recurring_rule_id",
            sa.Integer(),
            sa.ForeignKey("recurring_rules.id", ondelete="SET NULL"),
        ),
        *_timestamps(),
        sa.UniqueConstraint(
            "user_id", "recurring_rule_id", "date", name="uq_txn_recurring_rule_date"
        ),
        sa.CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    op.create_index(
        "ix_transactions_user_account_date",
        "transactions",
        ["user_id", "account_id", "date"],
    )
    op.create_index(
        "ix_transactions_plan_date", "transactions", ["installment_plan_id", "date"]
    )

    op.create_table(
        "alerts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("limit_amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "period", sa.Enum("monthly", "weekly", name="alertperiod"), nullable=False
        ),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("limit_amount_cents > 0", name="ck_alert_limit_positive"),
    )
    op.create_index("ix_alerts_user_active", "alerts", ["user_id", "active"])

    op.create_table(
        "goals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("target_amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "current_amount_cents", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("deadline", sa.Date()),
        sa.Column("color", sa.String(length=7)),
        sa.Column("icon", sa.String(length=16)),
        *_timestamps(),
        sa.CheckConstraint(
            "current_amount_cents >= 0", name="ck_goal_current_positive"
        ),
    )


def downgrade():
    op.drop_table("goals")
    op.drop_index("ix_alerts_user_active", table_name="alerts")
    op.drop_table("alerts")
    op.drop_index("ix_transactions_plan_date", table_name="transactions")
    op.drop_index("ix_transactions_user_account_date", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_recurring_rules_user_active", table_name="recurring_rules")
    op.drop_table("recurring_rules")
    op.drop_index("ix_installment_plans_user", table_name="installment_plans")
    op.drop_table("installment_plans")
    op.drop_table("categories")
    op.drop_index("ix_accounts_user", table_name="accounts")
    op.drop_table("accounts")
