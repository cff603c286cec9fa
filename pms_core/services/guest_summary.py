"""Derived per-guest reservation statistics."""

from datetime import date
from typing import Callable, Optional, Protocol

import structlog
from sqlalchemy.orm import Session

from pms_core.db.readers.reservations import get_reservation, list_guest_reservations
from pms_core.models.guests import Guest
from pms_core.models.reservations import Reservation

logger = structlog.get_logger(__name__)


class GuestSummaryRecomputer(Protocol):
    def recompute_from_reservation(self, reservation_id: int) -> None: ...


def effective_arrival(reservation: Reservation) -> Optional[date]:
    """Earliest actual check-in date when the guest arrived, the scheduled arrival otherwise."""
    actual = [line.actual_check_in for line in reservation.rooms if line.actual_check_in]
    if actual:
        return min(actual).date()
    return reservation.arrival_date


class GuestSummaryService:
    """
    Maintains a guest's first/last reservation and arrival dates.

    Runs after commit in its own session, so it always sees the committed
    state of the reservation that triggered it.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        if session_factory is None:
            from pms_core.db.engine import SessionLocal

            session_factory = SessionLocal
        self.session_factory = session_factory

    def recompute_from_reservation(self, reservation_id: int) -> None:
        """Refresh every guest on the reservation: the primary guest and each line's guest."""
        with self.session_factory() as session:
            reservation = get_reservation(session, reservation_id)
            if reservation is None:
                logger.warning("guest_summary_skipped", reservation_id=reservation_id)
                return

            guest_ids = {reservation.guest_id}
            guest_ids.update(line.guest_id for line in reservation.rooms if line.guest_id)
            for guest_id in sorted(guest_ids):
                self.recompute_guest(session, guest_id)
            session.commit()

    def recompute_guest(self, session: Session, guest_id: int) -> None:
        """
        Recompute one guest's summary inside the given session.

        Args:
            session (Session): Session to read and write through.
            guest_id (int): Guest to refresh.
        """
        guest = session.get(Guest, guest_id)
        if guest is None:
            logger.warning("guest_summary_skipped_missing_guest", guest_id=guest_id)
            return

        dated = []
        for reservation in list_guest_reservations(session, guest_id):
            arrival = effective_arrival(reservation)
            if arrival is not None:
                dated.append((arrival, reservation.id))
        if not dated:
            guest.first_reservation_id = None
            guest.last_reservation_id = None
            guest.first_arrival_date = None
            guest.last_arrival_date = None
            return

        dated.sort()
        guest.first_arrival_date, guest.first_reservation_id = dated[0]
        guest.last_arrival_date, guest.last_reservation_id = dated[-1]

        logger.debug("guest_summary_recomputed", guest_id=guest_id, reservations=len(dated))
