# Read-only views of a caller's bookings and coupon wallet.
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from .. import models, schemas
from ..lifecycle import bookings_for_user, coupons_for_guest
from .auth import get_current_user, require_guest

router = APIRouter()


@router.get("/bookings/me", response_model=List[schemas.BookingRead])
def list_my_bookings(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
) -> List[models.Booking]:
    # Guests get their stays, hosts get stays on their listings
    return bookings_for_user(db, user, limit=limit, offset=offset)


@router.get("/coupons/me", response_model=List[schemas.CouponRead])
def list_my_coupons(
    db: Session = Depends(get_db),
    user: models.User = Depends(require_guest),
) -> List[models.Coupon]:
    return coupons_for_guest(db, user.id)
