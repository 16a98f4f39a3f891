# Listing availability for the guest calendar. Public: no auth required.
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from .. import models, schemas
from ..availability import unavailable_dates
from ..errors import InvalidRangeError, ListingNotFoundError
from ..statuses import ListingStatus

router = APIRouter()

# Widest window a single calendar request may cover
MAX_WINDOW_DAYS = 366


@router.get("/listings/{listing_id}/unavailable_dates", response_model=schemas.UnavailableDatesResponse)
def get_unavailable_dates(
    listing_id: int,
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    db: Session = Depends(get_db),
) -> schemas.UnavailableDatesResponse:
    """
    Booked and host-blocked nights for a listing.

    Defaults to the next 90 days from today. Nights booked by a guest are listed
    under `booked` even when the host also blocked them.
    """
    listing = db.get(models.Listing, listing_id)
    if listing is None or listing.status != ListingStatus.PUBLISHED:
        raise ListingNotFoundError()

    start = start or date.today()
    end = end or start + timedelta(days=90)
    if (end - start).days > MAX_WINDOW_DAYS:
        raise InvalidRangeError(f"Window cannot exceed {MAX_WINDOW_DAYS} days", max_days=MAX_WINDOW_DAYS)

    booked, blocked = unavailable_dates(db, listing_id, start, end)
    return schemas.UnavailableDatesResponse(
        listing_id=listing_id,
        start=start,
        end=end,
        booked=booked,
        blocked=blocked,
    )
