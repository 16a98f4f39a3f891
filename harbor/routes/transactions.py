# Host payout history, read straight from the append-only ledger.
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from .. import ledger, models, schemas
from .auth import require_host

router = APIRouter()


@router.get("/transactions/me", response_model=List[schemas.TransactionRead])
def list_my_transactions(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user: models.User = Depends(require_host),
) -> List[models.Transaction]:
    return ledger.entries_for_host(db, user.id, limit=limit, offset=offset)
