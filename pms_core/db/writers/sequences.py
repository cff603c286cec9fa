"""Monotonic per-hotel counters for ledger numbering."""

from sqlalchemy.orm import Session

from pms_core.db.readers.folios import max_transaction_number
from pms_core.models.folios import LedgerSequence

TRANSACTION_SEQUENCE = "folio_transaction"


def next_transaction_number(session: Session, hotel_id: int) -> int:
    """
    Hand out the next transaction number for a hotel.

    The counter row is created on first use, starting above any number
    already in the ledger. Two operations racing for the same counter
    conflict on its version column and one of them is rejected.

    Args:
        session (Session): Active unit-of-work session.
        hotel_id (int): Hotel whose sequence advances.

    Returns:
        int: A number never returned before for this hotel.
    """
    counter = session.get(LedgerSequence, (hotel_id, TRANSACTION_SEQUENCE))
    if counter is None:
        counter = LedgerSequence(
            hotel_id=hotel_id,
            name=TRANSACTION_SEQUENCE,
            last_value=max_transaction_number(session, hotel_id),
        )
        session.add(counter)
    counter.last_value += 1
    session.flush()
    return counter.last_value
