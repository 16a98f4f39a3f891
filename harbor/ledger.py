# Transaction ledger: append-only audit trail of settlement attempts.
# One entry per successful capture, independent of payout outcome and of what
# later happens to the booking. Entries are inserted once and never changed.
from __future__ import annotations

import logging
from typing import List

from sqlalchemy import event
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger("harbor.ledger")


class LedgerImmutableError(RuntimeError):
    pass


@event.listens_for(models.Transaction, "before_update")
def _reject_update(_mapper, _connection, target: models.Transaction) -> None:
    raise LedgerImmutableError(f"Ledger entry {target.id} is append-only and cannot be updated")


@event.listens_for(models.Transaction, "before_delete")
def _reject_delete(_mapper, _connection, target: models.Transaction) -> None:
    raise LedgerImmutableError(f"Ledger entry {target.id} is append-only and cannot be deleted")


def record(db: Session, entry: models.Transaction) -> int:
    """Persist a new ledger entry and return its id. The entry is committed on its own."""
    if entry.id is not None:
        raise LedgerImmutableError("Ledger entries can only be recorded once")
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info(
        "Recorded transaction %s: capture=%s net=%s %s fee=%s payout=%s status=%s",
        entry.id,
        entry.capture_id,
        entry.gross_amount,
        entry.currency,
        entry.admin_fee,
        entry.host_payout,
        entry.status.value,
    )
    return entry.id


def entries_for_host(db: Session, host_id: int, limit: int = 20, offset: int = 0) -> List[models.Transaction]:
    return (
        db.query(models.Transaction)
        .filter(models.Transaction.host_id == host_id)
        .order_by(models.Transaction.created_at.desc(), models.Transaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
