"""Initial schema: catalog, inventory, bookings, wallet ledger, notifications.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Catalog items
    op.create_table(
        "catalog_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("item_type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("venue", sa.String(255), nullable=True),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_units", sa.Integer(), nullable=False),
        sa.Column("layout", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("unit_price >= 0", name="check_item_price_non_negative"),
        sa.CheckConstraint("total_units > 0", name="check_item_units_positive"),
        sa.CheckConstraint(
            "item_type IN ('movie', 'bus', 'train', 'flight', 'event', 'tour')",
            name="check_item_type",
        ),
    )
    op.create_index("ix_catalog_items_id", "catalog_items", ["id"])
    # Listings filter by type and sort by date
    op.create_index("ix_catalog_items_type_date", "catalog_items", ["item_type", "event_date"])

    # Per-seat inventory
    op.create_table(
        "inventory_units",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("item_type", sa.String(20), nullable=False),
        sa.Column(
            "item_id",
            sa.Integer(),
            sa.ForeignKey("catalog_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("unit_number", sa.String(20), nullable=False),
        sa.Column("row", sa.String(10), nullable=False),
        sa.Column("column", sa.Integer(), nullable=False),
        sa.Column("unit_kind", sa.String(20), nullable=False, server_default=sa.text("'regular'")),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'available'")),
        sa.Column("held_by", sa.Integer(), nullable=True),
        sa.Column("held_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sold_to", sa.Integer(), nullable=True),
        sa.Column("booking_ref", sa.String(64), nullable=True),
        *_timestamps(),
        # Every hold/sale UPDATE is keyed by this triple
        sa.UniqueConstraint("item_type", "item_id", "unit_number", name="uq_inventory_unit"),
        sa.CheckConstraint("price >= 0", name="check_unit_price_non_negative"),
        sa.CheckConstraint(
            "status IN ('available', 'held', 'sold', 'blocked', 'unavailable')",
            name="check_unit_status",
        ),
        sa.CheckConstraint(
            "status != 'held' OR (held_by IS NOT NULL AND held_until IS NOT NULL)",
            name="check_held_has_owner",
        ),
        sa.CheckConstraint("status != 'sold' OR booking_ref IS NOT NULL", name="check_sold_has_booking"),
    )
    op.create_index("ix_inventory_units_item_status", "inventory_units", ["item_type", "item_id", "status"])
    # The expiry sweep scans held units by held_until
    op.create_index("ix_inventory_units_held_until", "inventory_units", ["held_until"])

    # Aggregate capacity
    op.create_table(
        "capacity_counters",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "item_id",
            sa.Integer(),
            sa.ForeignKey("catalog_items.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("total_units", sa.Integer(), nullable=False),
        sa.Column("available_units", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("available_units >= 0", name="check_available_units_non_negative"),
        sa.CheckConstraint("total_units >= 0", name="check_total_units_non_negative"),
        sa.CheckConstraint("available_units <= total_units", name="check_available_lte_total"),
    )

    # Bookings
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_reference", sa.String(64), nullable=False, unique=True),
        sa.Column("booking_type", sa.String(20), nullable=False),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("catalog_items.id"), nullable=False),
        sa.Column("item_title", sa.String(255), nullable=False),
        sa.Column("venue_details", sa.String(255), nullable=True),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_refs", sa.JSON(), nullable=False),
        sa.Column("class_type", sa.String(50), nullable=True),
        sa.Column("special_requirements", sa.String(500), nullable=True),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("booking_fee", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("tax", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default=sa.text("'wallet'")),
        sa.Column("payment_status", sa.String(30), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("booking_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("gateway_order_id", sa.String(100), nullable=True),
        sa.Column("gateway_payment_id", sa.String(100), nullable=True),
        sa.Column("refund_amount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("cancellation_reason", sa.String(500), nullable=True),
        sa.Column("cancellation_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="check_booking_quantity_positive"),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        sa.CheckConstraint("refund_amount >= 0", name="check_booking_refund_non_negative"),
        sa.CheckConstraint(
            "booking_status IN ('pending', 'confirmed', 'cancelled', 'completed', 'no_show')",
            name="check_booking_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed', 'refunded', 'partially_refunded')",
            name="check_payment_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_created_by", "bookings", ["created_by"])
    op.create_index("ix_bookings_type_item", "bookings", ["booking_type", "item_id"])
    op.create_index("ix_bookings_status", "bookings", ["payment_status", "booking_status"])
    op.create_index("ix_bookings_event_date", "bookings", ["event_date"])

    # Wallet ledger
    op.create_table(
        "wallet_accounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("owner_id", sa.Integer(), nullable=False, unique=True),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'INR'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_transaction_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("balance >= 0", name="check_wallet_balance_non_negative"),
    )

    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("wallet_accounts.id"), nullable=False),
        sa.Column("transaction_type", sa.String(10), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("balance_after", sa.Numeric(12, 2), nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'completed'")),
        sa.Column("reference_id", sa.String(64), nullable=False, unique=True),
        # Idempotency key for gateway top-ups; NULLs never collide
        sa.Column("gateway_transaction_id", sa.String(100), nullable=True, unique=True),
        sa.Column("booking_ref", sa.String(64), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="check_wallet_tx_amount_positive"),
        sa.CheckConstraint("balance_after >= 0", name="check_wallet_tx_balance_non_negative"),
        sa.CheckConstraint(
            "transaction_type IN ('credit', 'debit', 'refund')",
            name="check_wallet_tx_type",
        ),
    )
    op.create_index("ix_wallet_transactions_account", "wallet_transactions", ["account_id", "id"])
    op.create_index("ix_wallet_transactions_booking_ref", "wallet_transactions", ["booking_ref"])

    # Notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.String(1000), nullable=False),
        sa.Column("kind", sa.String(30), nullable=False),
        sa.Column("booking_reference", sa.String(64), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )
    op.create_index("ix_notifications_user", "notifications", ["user_id", "is_read"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("wallet_transactions")
    op.drop_table("wallet_accounts")
    op.drop_table("bookings")
    op.drop_table("capacity_counters")
    op.drop_table("inventory_units")
    op.drop_table("catalog_items")
