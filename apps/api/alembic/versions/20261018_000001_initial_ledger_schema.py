"""create initial ledger schema

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18 00:00:01.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261018_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "subscriptions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("organization_id", sa.String(), nullable=False),
        sa.Column("customer_id", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("livemode", sa.Boolean(), nullable=False),
        sa.Column("renews", sa.Boolean(), nullable=False),
        sa.Column("interval_unit", sa.String(), nullable=False),
        sa.Column("interval_count", sa.Integer(), nullable=False),
        sa.Column("current_billing_period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_billing_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_subscriptions_organization_id"), "subscriptions", ["organization_id"], unique=False)
    op.create_index(op.f("ix_subscriptions_customer_id"), "subscriptions", ["customer_id"], unique=False)
    op.create_index(
        op.f("ix_subscriptions_current_billing_period_end"),
        "subscriptions",
        ["current_billing_period_end"],
        unique=False,
    )

    op.create_table(
        "usage_meters",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("organization_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("livemode", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_usage_meters_organization_id"), "usage_meters", ["organization_id"], unique=False)

    op.create_table(
        "billing_periods",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("subscription_id", sa.String(), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("livemode", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_billing_periods_subscription_id"), "billing_periods", ["subscription_id"], unique=False)
    op.create_index(op.f("ix_billing_periods_end_date"), "billing_periods", ["end_date"], unique=False)

    op.create_table(
        "subscription_item_features",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("subscription_id", sa.String(), nullable=False),
        sa.Column("usage_meter_id", sa.String(), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("renewal_frequency", sa.String(), nullable=False),
        sa.Column("expired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.id"]),
        sa.ForeignKeyConstraint(["usage_meter_id"], ["usage_meters.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_subscription_item_features_subscription_id"),
        "subscription_item_features",
        ["subscription_id"],
        unique=False,
    )

    op.create_table(
        "ledger_accounts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("organization_id", sa.String(), nullable=False),
        sa.Column("subscription_id", sa.String(), nullable=False),
        sa.Column("usage_meter_id", sa.String(), nullable=True),
        sa.Column("livemode", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.id"]),
        sa.ForeignKeyConstraint(["usage_meter_id"], ["usage_meters.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("subscription_id", "usage_meter_id", name="uq_ledger_accounts_subscription_meter"),
    )
    op.create_index(op.f("ix_ledger_accounts_organization_id"), "ledger_accounts", ["organization_id"], unique=False)
    op.create_index(op.f("ix_ledger_accounts_subscription_id"), "ledger_accounts", ["subscription_id"], unique=False)

    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("organization_id", sa.String(), nullable=False),
        sa.Column("subscription_id", sa.String(), nullable=True),
        sa.Column("livemode", sa.Boolean(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("initiating_source_type", sa.String(), nullable=True),
        sa.Column("initiating_source_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_ledger_transactions_organization_id"),
        "ledger_transactions",
        ["organization_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_ledger_transactions_subscription_id"),
        "ledger_transactions",
        ["subscription_id"],
        unique=False,
    )
    op.create_index(op.f("ix_ledger_transactions_created_at"), "ledger_transactions", ["created_at"], unique=False)

    op.create_table(
        "usage_credits",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("organization_id", sa.String(), nullable=False),
        sa.Column("subscription_id", sa.String(), nullable=False),
        sa.Column("usage_meter_id", sa.String(), nullable=False),
        sa.Column("billing_period_id", sa.String(), nullable=True),
        sa.Column("credit_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("source_reference_type", sa.String(), nullable=False),
        sa.Column("issued_amount", sa.Integer(), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("livemode", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.id"]),
        sa.ForeignKeyConstraint(["usage_meter_id"], ["usage_meters.id"]),
        sa.ForeignKeyConstraint(["billing_period_id"], ["billing_periods.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_usage_credits_organization_id"), "usage_credits", ["organization_id"], unique=False)
    op.create_index(op.f("ix_usage_credits_subscription_id"), "usage_credits", ["subscription_id"], unique=False)
    op.create_index(op.f("ix_usage_credits_usage_meter_id"), "usage_credits", ["usage_meter_id"], unique=False)
    op.create_index(op.f("ix_usage_credits_expires_at"), "usage_credits", ["expires_at"], unique=False)

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("ledger_transaction_id", sa.String(), nullable=False),
        sa.Column("ledger_account_id", sa.String(), nullable=False),
        sa.Column("subscription_id", sa.String(), nullable=True),
        sa.Column("organization_id", sa.String(), nullable=False),
        sa.Column("usage_meter_id", sa.String(), nullable=True),
        sa.Column("billing_period_id", sa.String(), nullable=True),
        sa.Column("entry_type", sa.String(), nullable=False),
        sa.Column("direction", sa.String(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("entry_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("livemode", sa.Boolean(), nullable=False),
        sa.Column("discarded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("source_usage_credit_id", sa.String(), nullable=True),
        sa.Column("source_usage_event_id", sa.String(), nullable=True),
        sa.Column("source_credit_application_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["ledger_transaction_id"], ["ledger_transactions.id"]),
        sa.ForeignKeyConstraint(["ledger_account_id"], ["ledger_accounts.id"]),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscriptions.id"]),
        sa.ForeignKeyConstraint(["usage_meter_id"], ["usage_meters.id"]),
        sa.ForeignKeyConstraint(["billing_period_id"], ["billing_periods.id"]),
        sa.ForeignKeyConstraint(["source_usage_credit_id"], ["usage_credits.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_ledger_entries_ledger_transaction_id"),
        "ledger_entries",
        ["ledger_transaction_id"],
        unique=False,
    )
    op.create_index(op.f("ix_ledger_entries_ledger_account_id"), "ledger_entries", ["ledger_account_id"], unique=False)
    op.create_index(op.f("ix_ledger_entries_subscription_id"), "ledger_entries", ["subscription_id"], unique=False)
    op.create_index(op.f("ix_ledger_entries_organization_id"), "ledger_entries", ["organization_id"], unique=False)
    op.create_index(
        op.f("ix_ledger_entries_source_usage_credit_id"),
        "ledger_entries",
        ["source_usage_credit_id"],
        unique=False,
    )
    op.create_index(op.f("ix_ledger_entries_created_at"), "ledger_entries", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_ledger_entries_created_at"), table_name="ledger_entries")
    op.drop_index(op.f("ix_ledger_entries_source_usage_credit_id"), table_name="ledger_entries")
    op.drop_index(op.f("ix_ledger_entries_organization_id"), table_name="ledger_entries")
    op.drop_index(op.f("ix_ledger_entries_subscription_id"), table_name="ledger_entries")
    op.drop_index(op.f("ix_ledger_entries_ledger_account_id"), table_name="ledger_entries")
    op.drop_index(op.f("ix_ledger_entries_ledger_transaction_id"), table_name="ledger_entries")
    op.drop_table("ledger_entries")

    op.drop_index(op.f("ix_usage_credits_expires_at"), table_name="usage_credits")
    op.drop_index(op.f("ix_usage_credits_usage_meter_id"), table_name="usage_credits")
    op.drop_index(op.f("ix_usage_credits_subscription_id"), table_name="usage_credits")
    op.drop_index(op.f("ix_usage_credits_organization_id"), table_name="usage_credits")
    op.drop_table("usage_credits")

    op.drop_index(op.f("ix_ledger_transactions_created_at"), table_name="ledger_transactions")
    op.drop_index(op.f("ix_ledger_transactions_subscription_id"), table_name="ledger_transactions")
    op.drop_index(op.f("ix_ledger_transactions_organization_id"), table_name="ledger_transactions")
    op.drop_table("ledger_transactions")

    op.drop_index(op.f("ix_ledger_accounts_subscription_id"), table_name="ledger_accounts")
    op.drop_index(op.f("ix_ledger_accounts_organization_id"), table_name="ledger_accounts")
    op.drop_table("ledger_accounts")

    op.drop_index(op.f("ix_subscription_item_features_subscription_id"), table_name="subscription_item_features")
    op.drop_table("subscription_item_features")

    op.drop_index(op.f("ix_billing_periods_end_date"), table_name="billing_periods")
    op.drop_index(op.f("ix_billing_periods_subscription_id"), table_name="billing_periods")
    op.drop_table("billing_periods")

    op.drop_index(op.f("ix_usage_meters_organization_id"), table_name="usage_meters")
    op.drop_table("usage_meters")

    op.drop_index(op.f("ix_subscriptions_current_billing_period_end"), table_name="subscriptions")
    op.drop_index(op.f("ix_subscriptions_customer_id"), table_name="subscriptions")
    op.drop_index(op.f("ix_subscriptions_organization_id"), table_name="subscriptions")
    op.drop_table("subscriptions")
