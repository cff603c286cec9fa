from datetime import date
from typing import Iterable, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from pms_core.enums import AssignmentStatus
from pms_core.models.reservations import Reservation, ReservationRoom
from pms_core.utils.datetime import stay_end

# Line statuses that hold a physical room
OCCUPYING_STATUSES = (AssignmentStatus.RESERVED.value, AssignmentStatus.CHECKED_IN.value)


def get_reservation(
    session: Session, reservation_id: int, for_update: bool = False
) -> Optional[Reservation]:
    """
    Fetch a reservation by primary key.

    Args:
        session (Session): Active unit-of-work session.
        reservation_id (int): Reservation ID.
        for_update (bool): Take a row lock where the backend supports it.

    Returns:
        Optional[Reservation]: The reservation or None if not found.
    """
    stmt = select(Reservation).where(Reservation.id == reservation_id)
    if for_update:
        stmt = stmt.with_for_update()
    return session.scalars(stmt).first()


def get_reservation_room(session: Session, reservation_room_id: int) -> Optional[ReservationRoom]:
    return session.get(ReservationRoom, reservation_room_id)


def find_conflicting_assignments(
    session: Session,
    room_id: int,
    check_in: date,
    check_out: date,
    exclude_ids: Iterable[int] = (),
) -> list[ReservationRoom]:
    """
    Find lines that occupy `room_id` at any point of the given stay.

    Ranges are half-open on the departure day, so a guest leaving on the day
    another arrives is not a conflict. Day-use stays count as one day.

    Args:
        session (Session): Active unit-of-work session.
        room_id (int): Physical room to check.
        check_in (date): First day of the requested stay.
        check_out (date): Departure day of the requested stay.
        exclude_ids (Iterable[int]): Lines to ignore (the ones being moved).

    Returns:
        list[ReservationRoom]: Conflicting lines, ordered by id.
    """
    end = stay_end(check_in, check_out)
    stmt = (
        select(ReservationRoom)
        .where(ReservationRoom.room_id == room_id)
        .where(ReservationRoom.status.in_(OCCUPYING_STATUSES))
        .where(ReservationRoom.check_in_date < end)
        .order_by(ReservationRoom.id)
        .with_for_update()
    )
    excluded = list(exclude_ids)
    if excluded:
        stmt = stmt.where(ReservationRoom.id.notin_(excluded))

    # The exclusive end of a day-use line depends on both dates, so the
    # lower bound is applied here rather than in SQL.
    return [
        line
        for line in session.scalars(stmt)
        if stay_end(line.check_in_date, line.check_out_date) > check_in
    ]


def list_guest_reservations(session: Session, guest_id: int) -> list[Reservation]:
    """Reservations where `guest_id` is the primary guest or a room line's guest."""
    on_line = select(ReservationRoom.reservation_id).where(ReservationRoom.guest_id == guest_id)
    stmt = (
        select(Reservation)
        .where(or_(Reservation.guest_id == guest_id, Reservation.id.in_(on_line)))
        .order_by(Reservation.id)
    )
    return list(session.scalars(stmt))
