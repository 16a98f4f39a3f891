# Availability resolver: date conflicts between a requested stay and a listing's
# bookings and host-blocked nights. Stays are half-open [check_in, check_out):
# the checkout day is free for the next guest.
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Iterator, List, Literal, Optional, Set, Tuple

from sqlalchemy.orm import Session

from . import models
from .errors import InvalidRangeError
from .statuses import NON_BLOCKING_BOOKING_STATUSES

ConflictType = Literal["booked", "blocked"]


@dataclass(frozen=True)
class Conflict:
    type: ConflictType
    date: date


def validate_range(check_in: date, check_out: date) -> None:
    if check_out <= check_in:
        raise InvalidRangeError()


def iter_nights(check_in: date, check_out: date) -> Iterator[date]:
    night = check_in
    while night < check_out:
        yield night
        night += timedelta(days=1)


def find_conflict(
    check_in: date,
    check_out: date,
    booked_ranges: Iterable[Tuple[date, date]],
    blocked_dates: Iterable[date],
) -> Optional[Conflict]:
    """
    Return the first night of [check_in, check_out) that is unavailable, or None.

    booked_ranges must already be limited to bookings in a blocking status. When a
    night is both booked and blocked the booking is reported.
    """
    validate_range(check_in, check_out)

    booked: Set[date] = set()
    for start, end in booked_ranges:
        # Only the overlap with the request matters
        booked.update(iter_nights(max(start, check_in), min(end, check_out)))
    blocked = set(blocked_dates)

    for night in iter_nights(check_in, check_out):
        if night in booked:
            return Conflict("booked", night)
        if night in blocked:
            return Conflict("blocked", night)
    return None


def _blocking_bookings(db: Session, listing_id: int, start: date, end: date):
    """
    Bookings on the listing that overlap [start, end) and still occupy their nights.

    Overlap logic:
    NOT (existing.check_out <= start OR existing.check_in >= end)
    """
    return (
        db.query(models.Booking.check_in, models.Booking.check_out)
        .filter(
            models.Booking.listing_id == listing_id,
            models.Booking.status.notin_(list(NON_BLOCKING_BOOKING_STATUSES)),
            ~(
                (models.Booking.check_out <= start)
                | (models.Booking.check_in >= end)
            ),
        )
        .all()
    )


def _blocked_days(db: Session, listing_id: int, start: date, end: date) -> List[date]:
    rows = (
        db.query(models.BlockedDate.day)
        .filter(
            models.BlockedDate.listing_id == listing_id,
            models.BlockedDate.day >= start,
            models.BlockedDate.day < end,
        )
        .all()
    )
    return [row.day for row in rows]


def has_conflict(db: Session, listing_id: int, check_in: date, check_out: date) -> Optional[Conflict]:
    """Resolve a requested stay against the stored calendar of one listing."""
    validate_range(check_in, check_out)
    bookings = _blocking_bookings(db, listing_id, check_in, check_out)
    return find_conflict(
        check_in,
        check_out,
        [(row.check_in, row.check_out) for row in bookings],
        _blocked_days(db, listing_id, check_in, check_out),
    )


def unavailable_dates(db: Session, listing_id: int, start: date, end: date) -> Tuple[List[date], List[date]]:
    """Booked and blocked nights inside [start, end), each sorted, for calendar rendering."""
    validate_range(start, end)
    booked: Set[date] = set()
    for row in _blocking_bookings(db, listing_id, start, end):
        booked.update(iter_nights(max(row.check_in, start), min(row.check_out, end)))
    blocked = set(_blocked_days(db, listing_id, start, end)) - booked
    return sorted(booked), sorted(blocked)
