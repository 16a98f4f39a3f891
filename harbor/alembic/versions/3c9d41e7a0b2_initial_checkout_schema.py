"""initial schema: users, listings, blocked dates, ledger, bookings, coupons

Revision ID: 3c9d41e7a0b2
Revises:
Create Date: 2026-10-16 09:30:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3c9d41e7a0b2"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _money(name: str, nullable: bool = False, **kwargs) -> sa.Column:
    return sa.Column(name, sa.Numeric(10, 2), nullable=nullable, **kwargs)


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("payout_email", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("email", name="uq_users_email"),
        mysql_engine="InnoDB",
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "listings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("host_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        _money("price_per_night"),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("max_guests", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="published"),
        *_timestamps(),
        mysql_engine="InnoDB",
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_listings_id", "listings", ["id"])
    op.create_index("ix_listings_host_id", "listings", ["host_id"])

    op.create_table(
        "blocked_dates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("listing_id", sa.Integer(), sa.ForeignKey("listings.id"), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.UniqueConstraint("listing_id", "day", name="uq_blocked_dates_listing_day"),
        mysql_engine="InnoDB",
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_blocked_dates_listing_id", "blocked_dates", ["listing_id"])

    # Append-only ledger; rows are never updated or deleted by the application
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("order_id", sa.String(length=64), nullable=False),
        sa.Column("listing_id", sa.Integer(), sa.ForeignKey("listings.id"), nullable=False),
        sa.Column("host_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("guest_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        _money("gross_amount"),
        _money("captured_amount"),
        sa.Column("currency", sa.String(length=3), nullable=False),
        _money("admin_fee"),
        _money("host_payout"),
        sa.Column("capture_id", sa.String(length=64), nullable=False),
        sa.Column("payout_destination", sa.String(length=255), nullable=False),
        sa.Column("payout_batch_id", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("payout_error", sa.String(length=1000), nullable=True),
        sa.Column("payout_warning", sa.String(length=1000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.UniqueConstraint("capture_id", name="uq_transactions_capture_id"),
        mysql_engine="InnoDB",
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_transactions_id", "transactions", ["id"])
    op.create_index("ix_transactions_order_id", "transactions", ["order_id"])
    op.create_index("ix_transactions_listing_id", "transactions", ["listing_id"])
    op.create_index("ix_transactions_host_id", "transactions", ["host_id"])
    op.create_index("ix_transactions_guest_id", "transactions", ["guest_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("listing_id", sa.Integer(), sa.ForeignKey("listings.id"), nullable=False),
        sa.Column("guest_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("host_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("number_of_guests", sa.Integer(), nullable=False, server_default="1"),
        _money("gross_amount"),
        _money("discount_amount", server_default="0"),
        _money("net_amount"),
        _money("admin_fee"),
        _money("host_payout"),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="paid"),
        sa.Column("coupon_code", sa.String(length=16), nullable=True),
        sa.Column("coupon_discount_percent", sa.Numeric(5, 2), nullable=True),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("transactions.id"), nullable=False),
        sa.Column("capture_id", sa.String(length=64), nullable=False),
        sa.Column("payment_reference", sa.String(length=64), nullable=False),
        *_timestamps(),
        mysql_engine="InnoDB",
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_listing_id", "bookings", ["listing_id"])
    op.create_index("ix_bookings_guest_id", "bookings", ["guest_id"])
    op.create_index("ix_bookings_host_id", "bookings", ["host_id"])
    op.create_index("ix_bookings_transaction_id", "bookings", ["transaction_id"])
    op.create_index("ix_bookings_listing_check_in", "bookings", ["listing_id", "check_in"])
    op.create_index("ix_bookings_listing_check_out", "bookings", ["listing_id", "check_out"])
    op.create_index("ix_bookings_status", "bookings", ["status"])

    op.create_table(
        "coupons",
        sa.Column("code", sa.String(length=16), primary_key=True, nullable=False),
        sa.Column("owner_guest_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=False),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("consumed_by_booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=True),
        mysql_engine="InnoDB",
        mysql_charset="utf8mb4",
    )
    op.create_index("ix_coupons_owner_guest_id", "coupons", ["owner_guest_id"])


def downgrade() -> None:
    op.drop_index("ix_coupons_owner_guest_id", table_name="coupons")
    op.drop_table("coupons")

    for name in (
        "ix_bookings_status",
        "ix_bookings_listing_check_out",
        "ix_bookings_listing_check_in",
        "ix_bookings_transaction_id",
        "ix_bookings_host_id",
        "ix_bookings_guest_id",
        "ix_bookings_listing_id",
        "ix_bookings_id",
    ):
        op.drop_index(name, table_name="bookings")
    op.drop_table("bookings")

    for name in (
        "ix_transactions_guest_id",
        "ix_transactions_host_id",
        "ix_transactions_listing_id",
        "ix_transactions_order_id",
        "ix_transactions_id",
    ):
        op.drop_index(name, table_name="transactions")
    op.drop_table("transactions")

    op.drop_index("ix_blocked_dates_listing_id", table_name="blocked_dates")
    op.drop_table("blocked_dates")

    op.drop_index("ix_listings_host_id", table_name="listings")
    op.drop_index("ix_listings_id", table_name="listings")
    op.drop_table("listings")

    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")
