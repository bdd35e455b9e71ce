"""initial wallet, order, booking and top-up tables

Revision ID: 5f2c1a9d7e10
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "5f2c1a9d7e10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "wallets",
        sa.Column("account_id", sa.String(length=64), primary_key=True),
        sa.Column("balance_paise", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="INR"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("order_number", sa.String(length=40), nullable=False, unique=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("order_type", sa.String(length=20), nullable=False, server_default="domestic"),
        sa.Column("partner", sa.String(length=40), nullable=False),
        sa.Column("service_type", sa.String(length=60)),
        sa.Column("pickup", sa.Text(), nullable=False),
        sa.Column("delivery", sa.Text(), nullable=False),
        sa.Column("package", sa.Text(), nullable=False),
        sa.Column("base_paise", sa.Integer(), nullable=False),
        sa.Column("surcharge_paise", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tax_paise", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_paise", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="INR"),
        sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(length=20), nullable=False, server_default="wallet"),
        sa.Column("payment_transaction_id", sa.String(length=36)),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("awb", sa.String(length=64)),
        sa.Column("tracking_url", sa.String(length=255)),
        sa.Column("partner_order_ref", sa.String(length=100)),
        sa.Column("meta", sa.Text()),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_orders_user_id", "orders", ["user_id"])
    op.create_index("ix_orders_partner", "orders", ["partner"])
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_awb", "orders", ["awb"])

    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("account_id", sa.String(length=64), sa.ForeignKey("wallets.account_id"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(length=10), nullable=False),
        sa.Column("amount_paise", sa.Integer(), nullable=False),
        sa.Column("balance_after_paise", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="INR"),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("orders.id")),
        sa.Column("awb", sa.String(length=64)),
        sa.Column("meta", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("account_id", "sequence", name="uq_wallet_transactions_sequence"),
    )
    op.create_index("ix_wallet_transactions_account_id", "wallet_transactions", ["account_id"])
    op.create_index("ix_wallet_transactions_order_id", "wallet_transactions", ["order_id"])

    op.create_table(
        "shipment_bookings",
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("orders.id"), primary_key=True),
        sa.Column("partner", sa.String(length=40), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="queued"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True)),
        sa.Column("booked_at", sa.DateTime(timezone=True)),
        sa.Column("last_error", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_shipment_bookings_status", "shipment_bookings", ["status"])

    op.create_table(
        "wallet_topup_orders",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("amount_paise", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="INR"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("payment_channel", sa.String(length=50)),
        sa.Column("reference_no", sa.String(length=100), nullable=False, unique=True),
        sa.Column("ledger_transaction_id", sa.String(length=36)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_wallet_topup_orders_account_id", "wallet_topup_orders", ["account_id"])


def downgrade() -> None:
    op.drop_index("ix_wallet_topup_orders_account_id", table_name="wallet_topup_orders")
    op.drop_table("wallet_topup_orders")
    op.drop_index("ix_shipment_bookings_status", table_name="shipment_bookings")
    op.drop_table("shipment_bookings")
    op.drop_index("ix_wallet_transactions_order_id", table_name="wallet_transactions")
    op.drop_index("ix_wallet_transactions_account_id", table_name="wallet_transactions")
    op.drop_table("wallet_transactions")
    op.drop_index("ix_orders_awb", table_name="orders")
    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_index("ix_orders_partner", table_name="orders")
    op.drop_index("ix_orders_user_id", table_name="orders")
    op.drop_table("orders")
    op.drop_table("wallets")
