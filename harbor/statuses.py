# Closed status vocabularies for listings, bookings and ledger entries.
# Every spelling that reaches the store (legacy rows, processor payloads, client input)
# goes through exactly one normalize_* function; the ORM applies them via StatusType.
from __future__ import annotations

from enum import Enum
from typing import Optional, Type

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator


class ListingStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class BookingStatus(str, Enum):
    PAID = "paid"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PayoutStatus(str, Enum):
    SENT = "payout-sent"
    PENDING = "payout-pending"
    FAILED = "payout-failed"


# Bookings in these states no longer occupy their nights
NON_BLOCKING_BOOKING_STATUSES = frozenset(
    {BookingStatus.DECLINED, BookingStatus.CANCELLED, BookingStatus.REFUNDED}
)

_LISTING_ALIASES = {
    "published": ListingStatus.PUBLISHED,
    "active": ListingStatus.PUBLISHED,
    "approved": ListingStatus.PUBLISHED,
    "public": ListingStatus.PUBLISHED,
    "visible": ListingStatus.PUBLISHED,
    "available": ListingStatus.PUBLISHED,
    "open": ListingStatus.PUBLISHED,
    "true": ListingStatus.PUBLISHED,
    "draft": ListingStatus.DRAFT,
    "pending": ListingStatus.DRAFT,
    "rejected": ListingStatus.DRAFT,
    "false": ListingStatus.DRAFT,
}

_BOOKING_ALIASES = {
    "paid": BookingStatus.PAID,
    "accepted": BookingStatus.ACCEPTED,
    "confirmed": BookingStatus.ACCEPTED,
    "declined": BookingStatus.DECLINED,
    "rejected": BookingStatus.DECLINED,
    "completed": BookingStatus.COMPLETED,
    "cancelled": BookingStatus.CANCELLED,
    "canceled": BookingStatus.CANCELLED,
    "refunded": BookingStatus.REFUNDED,
}

# Keys are compared after lower-casing and dropping "_", "-" and spaces,
# so "payoutPending", "payout-pending" and "PAYOUT_PENDING" collapse together.
_PAYOUT_ALIASES = {
    "payoutsent": PayoutStatus.SENT,
    "sent": PayoutStatus.SENT,
    "success": PayoutStatus.SENT,
    "succeeded": PayoutStatus.SENT,
    "payoutpending": PayoutStatus.PENDING,
    "pending": PayoutStatus.PENDING,
    "new": PayoutStatus.PENDING,
    "processing": PayoutStatus.PENDING,
    "unclaimed": PayoutStatus.PENDING,
    "onhold": PayoutStatus.PENDING,
    "payoutfailed": PayoutStatus.FAILED,
    "failed": PayoutStatus.FAILED,
    "denied": PayoutStatus.FAILED,
    "blocked": PayoutStatus.FAILED,
    "returned": PayoutStatus.FAILED,
    "refunded": PayoutStatus.FAILED,
    "reversed": PayoutStatus.FAILED,
    "canceled": PayoutStatus.FAILED,
    "cancelled": PayoutStatus.FAILED,
}


def normalize_listing_status(raw) -> ListingStatus:
    """Missing or blank listing status means published, matching how hosts publish by default."""
    if isinstance(raw, ListingStatus):
        return raw
    if raw is None or raw is True:
        return ListingStatus.PUBLISHED
    if raw is False:
        return ListingStatus.DRAFT
    key = str(raw).strip().lower()
    if not key:
        return ListingStatus.PUBLISHED
    return _LISTING_ALIASES.get(key, ListingStatus.DRAFT)


def normalize_booking_status(raw) -> BookingStatus:
    if isinstance(raw, BookingStatus):
        return raw
    key = str(raw or "").strip().lower()
    try:
        return _BOOKING_ALIASES[key]
    except KeyError:
        raise ValueError(f"Unknown booking status: {raw!r}") from None


def normalize_payout_status(raw) -> PayoutStatus:
    """
    Map a payout status from the processor or a legacy row onto PayoutStatus.

    An accepted payout whose status we do not recognise is still in flight as far
    as we know, so unknown values land on PENDING rather than raising.
    """
    if isinstance(raw, PayoutStatus):
        return raw
    key = "".join(ch for ch in str(raw or "").lower() if ch not in "_- ")
    return _PAYOUT_ALIASES.get(key, PayoutStatus.PENDING)


class StatusType(TypeDecorator):
    """String column that stores an enum value and loads it back as the enum member."""

    impl = String(20)
    cache_ok = True

    def __init__(self, enum_cls: Type[Enum], normalizer, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.enum_cls = enum_cls
        self.normalizer = normalizer

    def process_bind_param(self, value, dialect) -> Optional[str]:
        if value is None:
            return None
        return self.normalizer(value).value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.normalizer(value)
