# Transaction ledger: entries are written once and can never be changed or removed.
from __future__ import annotations

from decimal import Decimal

import pytest

from harbor import ledger, models
from harbor.ledger import LedgerImmutableError
from harbor.statuses import PayoutStatus

from conftest import make_listing, make_user


def _entry(listing, guest, capture_id="CAP-1", status=PayoutStatus.SENT) -> models.Transaction:
    return models.Transaction(
        order_id="ORDER-1",
        listing_id=listing.id,
        host_id=listing.host_id,
        guest_id=guest.id,
        gross_amount=Decimal("243.00"),
        captured_amount=Decimal("243.00"),
        currency="USD",
        admin_fee=Decimal("12.15"),
        host_payout=Decimal("230.85"),
        capture_id=capture_id,
        payout_destination="host@example.com",
        payout_batch_id="B1",
        status=status,
    )


@pytest.fixture()
def seeded(db):
    host = make_user(db, "host@example.com", role="host", payout_email="host@example.com")
    guest = make_user(db, "guest@example.com")
    return make_listing(db, host), guest


def test_record_returns_id_and_persists(db, seeded):
    listing, guest = seeded
    entry_id = ledger.record(db, _entry(listing, guest))
    assert entry_id is not None

    stored = db.get(models.Transaction, entry_id)
    assert stored.status is PayoutStatus.SENT
    assert stored.admin_fee + stored.host_payout == stored.gross_amount


def test_failed_payout_is_still_recorded(db, seeded):
    listing, guest = seeded
    entry = _entry(listing, guest, status=PayoutStatus.FAILED)
    entry.payout_error = "RECEIVER_UNREGISTERED"
    ledger.record(db, entry)
    assert db.get(models.Transaction, entry.id).status is PayoutStatus.FAILED


def test_update_rejected(db, seeded):
    listing, guest = seeded
    entry_id = ledger.record(db, _entry(listing, guest))

    stored = db.get(models.Transaction, entry_id)
    stored.status = PayoutStatus.FAILED
    with pytest.raises(LedgerImmutableError):
        db.commit()
    db.rollback()
    assert db.get(models.Transaction, entry_id).status is PayoutStatus.SENT


def test_delete_rejected(db, seeded):
    listing, guest = seeded
    entry_id = ledger.record(db, _entry(listing, guest))

    db.delete(db.get(models.Transaction, entry_id))
    with pytest.raises(LedgerImmutableError):
        db.commit()
    db.rollback()
    assert db.get(models.Transaction, entry_id) is not None


def test_record_twice_rejected(db, seeded):
    listing, guest = seeded
    entry = _entry(listing, guest)
    ledger.record(db, entry)
    with pytest.raises(LedgerImmutableError):
        ledger.record(db, entry)


def test_entries_for_host(db, seeded):
    listing, guest = seeded
    other_host = make_user(db, "other@example.com", role="host")
    other_listing = make_listing(db, other_host)
    ledger.record(db, _entry(listing, guest, capture_id="CAP-A"))
    ledger.record(db, _entry(listing, guest, capture_id="CAP-B"))
    ledger.record(db, _entry(other_listing, guest, capture_id="CAP-C"))

    captures = [e.capture_id for e in ledger.entries_for_host(db, listing.host_id)]
    assert sorted(captures) == ["CAP-A", "CAP-B"]
