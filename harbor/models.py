# SQLAlchemy ORM models for the checkout core (users, listings, bookings, coupons, ledger).
# Users, listings and blocked dates are owned by external CRUD layers and only read here.
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import declarative_mixin

from .db import Base
from .statuses import (
    BookingStatus,
    ListingStatus,
    PayoutStatus,
    StatusType,
    normalize_booking_status,
    normalize_listing_status,
    normalize_payout_status,
)


def money_column(**kwargs) -> Column:
    return Column(Numeric(10, 2, asdecimal=True), **kwargs)


@declarative_mixin
class TimestampMixin:
    """Common UTC-aware timestamps automatically managed by the database.

    - created_at: set on insert
    - updated_at: set on insert and updated on each modification
    """
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class User(Base, TimestampMixin):
    """Platform account. Hosts configure payout_email to receive payouts."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    role = Column(String(20), nullable=False, index=True)  # "guest", "host" or "admin"
    payout_email = Column(String(255), nullable=True)


class Listing(Base, TimestampMixin):
    """Stay listing. Availability is derived from bookings plus BlockedDate rows."""
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    host_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    price_per_night = money_column(nullable=False)
    discount_percent = Column(Numeric(5, 2, asdecimal=True), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    max_guests = Column(Integer, nullable=True)
    status = Column(
        StatusType(ListingStatus, normalize_listing_status),
        nullable=False,
        default=ListingStatus.PUBLISHED,
    )


class BlockedDate(Base):
    """A calendar night the host has taken off the market."""
    __tablename__ = "blocked_dates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    day = Column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("listing_id", "day", name="uq_blocked_dates_listing_day"),
    )


class Transaction(Base):
    """Ledger entry for one settlement attempt.

    Written once per successful capture whatever the payout outcome; never
    updated or deleted afterwards (see ledger.py).
    """
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(String(64), nullable=False, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    host_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    guest_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # gross_amount is the settled total (the booking's net); captured_amount is what the processor reported
    gross_amount = money_column(nullable=False)
    captured_amount = money_column(nullable=False)
    currency = Column(String(3), nullable=False)
    admin_fee = money_column(nullable=False)
    host_payout = money_column(nullable=False)
    capture_id = Column(String(64), nullable=False, unique=True)
    payout_destination = Column(String(255), nullable=False)
    payout_batch_id = Column(String(64), nullable=True)
    status = Column(StatusType(PayoutStatus, normalize_payout_status), nullable=False)
    payout_error = Column(String(1000), nullable=True)
    payout_warning = Column(String(1000), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Booking(Base, TimestampMixin):
    """Paid reservation for the half-open night range [check_in, check_out).

    This core only ever creates bookings in 'paid'; later transitions
    (accepted / declined / completed / cancelled / refunded) belong to other services.
    """
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    guest_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    host_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    number_of_guests = Column(Integer, nullable=False, default=1)
    gross_amount = money_column(nullable=False)
    discount_amount = money_column(nullable=False, default=0)
    net_amount = money_column(nullable=False)
    admin_fee = money_column(nullable=False)
    host_payout = money_column(nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(
        StatusType(BookingStatus, normalize_booking_status),
        nullable=False,
        default=BookingStatus.PAID,
    )
    coupon_code = Column(String(16), nullable=True)
    coupon_discount_percent = Column(Numeric(5, 2, asdecimal=True), nullable=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False, index=True)
    capture_id = Column(String(64), nullable=False)
    payment_reference = Column(String(64), nullable=False)

    # Availability checks scan a listing's bookings by date range
    __table_args__ = (
        Index("ix_bookings_listing_check_in", "listing_id", "check_in"),
        Index("ix_bookings_listing_check_out", "listing_id", "check_out"),
        Index("ix_bookings_status", "status"),
    )


class Coupon(Base):
    """Single-use, owner-scoped percentage discount issued after a completed booking."""
    __tablename__ = "coupons"

    code = Column(String(16), primary_key=True)
    owner_guest_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    discount_percent = Column(Numeric(5, 2, asdecimal=True), nullable=False)
    is_used = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    consumed_by_booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
