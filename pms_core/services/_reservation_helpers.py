"""
Shared steps for reservation operations: loading and validating the aggregate,
re-deriving its status, auditing, notifying and building snapshots.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Collection, Iterable, Optional

from pms_core.db.readers.reservations import (
    find_conflicting_assignments,
    get_reservation,
    get_reservation_room,
)
from pms_core.enums import AssignmentStatus, ReservationStatus
from pms_core.errors import InvalidStateError, NotFoundError, RoomUnavailableError
from pms_core.models.reservations import Reservation, ReservationRoom
from pms_core.models.rooms import Room
from pms_core.normalizers.statuses import normalize_status
from pms_core.schemas.reservations import ReservationSnapshot
from pms_core.services.effects import GuestSummaryEffect, NotificationEffect
from pms_core.services.status_rules import derive_reservation_status
from pms_core.services.unit_of_work import OperationContext


def load_reservation(ctx: OperationContext, reservation_id: int) -> Reservation:
    reservation = get_reservation(ctx.session, reservation_id, for_update=True)
    if reservation is None:
        raise NotFoundError("Reservation", reservation_id)
    return reservation


def load_line(ctx: OperationContext, reservation_room_id: int) -> ReservationRoom:
    line = get_reservation_room(ctx.session, reservation_room_id)
    if line is None:
        raise NotFoundError("ReservationRoom", reservation_room_id)
    return line


def load_room(ctx: OperationContext, room_id: int) -> Room:
    room = ctx.rooms.find_room(room_id)
    if room is None:
        raise NotFoundError("Room", room_id)
    return room


def reservation_status(reservation: Reservation) -> ReservationStatus:
    return normalize_status(reservation.status, ReservationStatus)


def line_status(line: ReservationRoom) -> AssignmentStatus:
    return normalize_status(line.status, AssignmentStatus)


def require_status(
    reservation: Reservation,
    allowed: Collection[ReservationStatus],
    operation: str,
) -> ReservationStatus:
    """
    Raise InvalidStateError unless the reservation is in one of `allowed`.

    Returns:
        ReservationStatus: The current (normalized) status
    """
    current = reservation_status(reservation)
    if current not in allowed:
        raise InvalidStateError(
            f"Cannot {operation} reservation {reservation.id} in status {current.value}",
            current_status=current.value,
            allowed_statuses=sorted(s.value for s in allowed),
            reservation_id=reservation.id,
        )
    return current


def select_lines(reservation: Reservation, line_ids: Iterable[int]) -> list[ReservationRoom]:
    """Resolve requested line ids against the reservation's own lines."""
    by_id = {line.id: line for line in reservation.rooms}
    selected = []
    for line_id in line_ids:
        line = by_id.get(line_id)
        if line is None:
            raise NotFoundError("ReservationRoom", line_id)
        selected.append(line)
    return selected


def require_line_status(
    lines: Iterable[ReservationRoom],
    allowed: Collection[AssignmentStatus],
    operation: str,
) -> None:
    for line in lines:
        current = line_status(line)
        if current not in allowed or line.is_split_origin:
            raise InvalidStateError(
                f"Cannot {operation} room line {line.id} in status {current.value}",
                current_status=current.value,
                allowed_statuses=sorted(s.value for s in allowed),
                reservation_room_id=line.id,
            )


def ensure_room_free(
    ctx: OperationContext,
    room_id: int,
    check_in: date,
    check_out: date,
    exclude_ids: Iterable[int] = (),
) -> None:
    conflicts = find_conflicting_assignments(
        ctx.session, room_id, check_in, check_out, exclude_ids=exclude_ids
    )
    if conflicts:
        raise RoomUnavailableError(room_id, [line.id for line in conflicts])


def apply_derived_status(ctx: OperationContext, reservation: Reservation) -> ReservationStatus:
    """Re-derive the aggregate status from the current lines and store it."""
    ctx.session.flush()
    ctx.session.expire(reservation, ["rooms"])
    status = derive_reservation_status(reservation_status(reservation), reservation.rooms)
    reservation.status = status.value
    reservation.last_modified_by = ctx.actor_id
    return status


def line_charges(line: ReservationRoom) -> None:
    """Recompute a line's charges from its per-night rate. Day-use bills one night."""
    billable = max(line.nights or 0, 1)
    rate = Decimal(str(line.room_rate or 0))
    tax = Decimal(str(line.tax_amount or 0))
    line.total_room_charges = rate * billable
    line.total_taxes_amount = tax * billable
    line.net_amount = line.total_room_charges + line.total_taxes_amount - Decimal(
        str(line.discount_amount or 0)
    )


def refresh_reservation_totals(reservation: Reservation) -> None:
    """Sum line amounts into the reservation, skipping released lines."""
    released = {AssignmentStatus.CANCELLED, AssignmentStatus.VOIDED}
    total = sum(
        (
            Decimal(str(line.net_amount or 0))
            for line in reservation.rooms
            if line_status(line) not in released
        ),
        Decimal("0"),
    )
    reservation.total_amount = total
    reservation.final_amount = total


def audit_reservation(
    ctx: OperationContext,
    reservation: Reservation,
    action: str,
    description: str,
    meta: Optional[dict[str, Any]] = None,
) -> None:
    """One audit entry for the reservation and one for its primary guest."""
    ctx.audit(
        action,
        "reservation",
        reservation.id,
        hotel_id=reservation.hotel_id,
        description=description,
        meta=meta,
    )
    ctx.audit(
        action,
        "guest",
        reservation.guest_id,
        hotel_id=reservation.hotel_id,
        description=description,
        meta={"reservation_id": reservation.id},
    )


def notification_context(reservation: Reservation, **extra: Any) -> dict[str, Any]:
    guest = reservation.guest
    rooms = [line.room.room_number for line in reservation.rooms if line.room is not None]
    context: dict[str, Any] = {
        "ReservationNumber": reservation.reservation_number,
        "GuestName": guest.full_name if guest is not None else "",
        "GuestEmail": guest.email if guest is not None else "",
        "ArrivalDate": reservation.arrival_date,
        "DepartureDate": reservation.departure_date,
        "Status": reservation.status,
        "RoomNumbers": rooms,
    }
    context.update(extra)
    return context


def emit_guest_effects(
    ctx: OperationContext,
    reservation: Reservation,
    template_code: Optional[str] = None,
    **extra: Any,
) -> None:
    """Queue the guest notification (if any) and the guest summary refresh."""
    if template_code is not None:
        ctx.emit(
            NotificationEffect(
                template_code=template_code,
                recipient_type="guest",
                recipient_id=reservation.guest_id,
                related_entity_type="reservation",
                related_entity_id=reservation.id,
                hotel_id=reservation.hotel_id,
                actor_id=ctx.actor_id,
                context=notification_context(reservation, **extra),
            )
        )
    ctx.emit(GuestSummaryEffect(reservation_id=reservation.id))


def snapshot(ctx: OperationContext, reservation: Reservation) -> ReservationSnapshot:
    """Flush and capture the reservation with its lines and folios."""
    ctx.session.flush()
    ctx.session.expire(reservation, ["rooms", "folios"])
    return ReservationSnapshot.model_validate(reservation)

