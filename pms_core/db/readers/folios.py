from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pms_core.enums import FolioStatus, TransactionStatus, TransactionType
from pms_core.models.folios import Folio, FolioTransaction


def get_folio(session: Session, folio_id: int) -> Optional[Folio]:
    return session.get(Folio, folio_id)


def get_transaction(session: Session, transaction_id: int) -> Optional[FolioTransaction]:
    return session.get(FolioTransaction, transaction_id)


def list_reservation_folios(
    session: Session,
    reservation_id: int,
    statuses: Optional[Iterable[FolioStatus]] = None,
) -> list[Folio]:
    """
    Fetch the folios of a reservation, optionally filtered by status.

    Args:
        session (Session): Active unit-of-work session.
        reservation_id (int): Owning reservation.
        statuses (Optional[Iterable[FolioStatus]]): Keep only these statuses.

    Returns:
        list[Folio]: Matching folios ordered by id.
    """
    stmt = select(Folio).where(Folio.reservation_id == reservation_id).order_by(Folio.id)
    if statuses is not None:
        stmt = stmt.where(Folio.status.in_([s.value for s in statuses]))
    return list(session.scalars(stmt))


def list_room_charges(
    session: Session,
    folio_ids: Iterable[int],
    reservation_room_id: Optional[int] = None,
) -> list[FolioTransaction]:
    """
    Fetch the live nightly room-charge rows on the given folios.

    Args:
        session (Session): Active unit-of-work session.
        folio_ids (Iterable[int]): Folios to search.
        reservation_room_id (Optional[int]): Restrict to one room line.

    Returns:
        list[FolioTransaction]: Non-voided room postings ordered by id.
    """
    ids = list(folio_ids)
    if not ids:
        return []
    stmt = (
        select(FolioTransaction)
        .where(FolioTransaction.folio_id.in_(ids))
        .where(FolioTransaction.transaction_type == TransactionType.ROOM_POSTING.value)
        .where(FolioTransaction.status != TransactionStatus.VOIDED.value)
        .order_by(FolioTransaction.id)
    )
    if reservation_room_id is not None:
        stmt = stmt.where(FolioTransaction.reservation_room_id == reservation_room_id)
    return list(session.scalars(stmt))


def max_transaction_number(session: Session, hotel_id: int) -> int:
    """Highest transaction number recorded for a hotel, 0 when it has none."""
    current = session.scalar(
        select(func.max(FolioTransaction.transaction_number)).where(
            FolioTransaction.hotel_id == hotel_id
        )
    )
    return current or 0


def next_folio_sequence(session: Session, hotel_id: int) -> int:
    """Next folio sequence within a hotel, used to build folio numbers."""
    current = session.scalar(select(func.count(Folio.id)).where(Folio.hotel_id == hotel_id))
    return (current or 0) + 1
