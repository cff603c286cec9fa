"""Rules that derive a reservation's status from its room lines."""

from typing import Iterable

from pms_core.enums import AssignmentStatus, ReservationStatus
from pms_core.models.reservations import ReservationRoom
from pms_core.normalizers.statuses import normalize_status

_CANCELLED = {AssignmentStatus.CANCELLED, AssignmentStatus.VOIDED}
_NO_SHOW = _CANCELLED | {AssignmentStatus.NO_SHOW}
_DEPARTED = {AssignmentStatus.CHECKED_OUT, AssignmentStatus.MOVED_OUT}
_IN_HOUSE = _DEPARTED | {AssignmentStatus.CHECKED_IN}

# Reservation states from which each operation may start
CHECK_IN_ALLOWED = {ReservationStatus.CONFIRMED, ReservationStatus.PENDING}
CHECK_OUT_ALLOWED = {ReservationStatus.CHECKED_IN}
CANCEL_BLOCKED = {
    ReservationStatus.CANCELLED,
    ReservationStatus.CHECKED_IN,
    ReservationStatus.CHECKED_OUT,
    ReservationStatus.VOIDED,
    ReservationStatus.NO_SHOW,
}
NO_SHOW_ALLOWED = {
    ReservationStatus.CONFIRMED,
    ReservationStatus.CHECKED_IN,
    ReservationStatus.PENDING,
}
VOID_ALLOWED = {ReservationStatus.PENDING, ReservationStatus.CONFIRMED}
AMENDABLE = {ReservationStatus.PENDING, ReservationStatus.CONFIRMED, ReservationStatus.CHECKED_IN}
# Aggregates a reservation lands in once no line is left to stay
ENDED_WITHOUT_STAY = {
    ReservationStatus.VOIDED,
    ReservationStatus.CANCELLED,
    ReservationStatus.NO_SHOW,
}


def derive_reservation_status(
    current: ReservationStatus, lines: Iterable[ReservationRoom]
) -> ReservationStatus:
    """
    Compute the aggregate reservation status from its room lines.

    Origins of a split move are history and do not take part. A reservation
    with no lines keeps its current status.

    Args:
        current: Status stored on the reservation before the mutation
        lines: Every room line of the reservation

    Returns:
        ReservationStatus: The status the reservation must now carry
    """
    statuses = [
        normalize_status(line.status, AssignmentStatus)
        for line in lines
        if not line.is_split_origin
    ]
    if not statuses:
        return current

    if all(s == AssignmentStatus.VOIDED for s in statuses):
        return ReservationStatus.VOIDED
    if all(s in _CANCELLED for s in statuses):
        return ReservationStatus.CANCELLED
    if all(s in _NO_SHOW for s in statuses):
        return ReservationStatus.NO_SHOW

    staying = [s for s in statuses if s not in _NO_SHOW]
    if all(s in _DEPARTED for s in staying):
        return ReservationStatus.CHECKED_OUT
    if all(s in _IN_HOUSE for s in staying):
        return ReservationStatus.CHECKED_IN

    # Some lines are still reserved: partial check-in keeps the prior state
    if current == ReservationStatus.PENDING:
        return ReservationStatus.PENDING
    return ReservationStatus.CONFIRMED


def is_active_line(line: ReservationRoom) -> bool:
    """A line that still holds (or will hold) a room."""
    return not line.is_split_origin and normalize_status(line.status, AssignmentStatus) in (
        AssignmentStatus.RESERVED,
        AssignmentStatus.CHECKED_IN,
    )
