"""
Room assignment manager: assign, unassign, move and exchange rooms on
reservation lines, plus the stop-move flag.

A move before check-in (or on the check-in day) swaps the room in place. A
move of a stay already in house splits the line so each physical room keeps
its own nights and billing history.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import structlog

from pms_core.db.readers.folios import list_reservation_folios
from pms_core.enums import (
    AssignmentStatus,
    ExchangeMode,
    FolioStatus,
    HousekeepingStatus,
    RoomStatus,
)
from pms_core.errors import InvalidStateError, ValidationError
from pms_core.models.reservations import Reservation, ReservationRoom
from pms_core.models.rooms import Room
from pms_core.schemas.reservations import (
    AssignRoomRequest,
    ExchangeRoomRequest,
    MoveRoomRequest,
    ReservationSnapshot,
    StopMoveRequest,
    UnassignRoomRequest,
)
from pms_core.services import folio_ledger, notifications
from pms_core.services._reservation_helpers import (
    apply_derived_status,
    audit_reservation,
    emit_guest_effects,
    ensure_room_free,
    line_charges,
    line_status,
    load_line,
    load_room,
    require_line_status,
    require_status,
    snapshot,
)
from pms_core.services.status_rules import AMENDABLE
from pms_core.services.unit_of_work import OperationContext, UnitOfWork
from pms_core.utils.datetime import at_time, nights_between

logger = structlog.get_logger(__name__)

ACTIVE = {AssignmentStatus.RESERVED, AssignmentStatus.CHECKED_IN}
SERVICEABLE_HOUSEKEEPING = {HousekeepingStatus.CLEAN.value, HousekeepingStatus.INSPECTED.value}


def _live_folios(ctx: OperationContext, reservation: Reservation):
    return list_reservation_folios(
        ctx.session, reservation.id, statuses=(FolioStatus.OPEN, FolioStatus.CLOSED)
    )


def _room_number(room: Optional[Room]) -> str:
    return room.room_number if room is not None else "-"


def _load_amendable_line(ctx: OperationContext, reservation_room_id: int) -> ReservationRoom:
    line = load_line(ctx, reservation_room_id)
    require_status(line.reservation, AMENDABLE, "change rooms on")
    return line


# =============================================================================
# Assign / unassign
# =============================================================================


def assign_room(
    uow: UnitOfWork, request: AssignRoomRequest, now: Optional[datetime] = None
) -> ReservationSnapshot:
    """
    Bind a physical room to a reserved line.

    Raises:
        ValidationError: Room is of a different room type
        RoomUnavailableError: Room is held by another stay on those dates
    """
    with uow.operation("assign_room", actor_id=request.actor_id, now=now) as ctx:
        line = _load_amendable_line(ctx, request.reservation_room_id)
        reservation = line.reservation
        require_line_status([line], {AssignmentStatus.RESERVED}, "assign a room to")
        room = load_room(ctx, request.room_id)
        if room.room_type_id != line.room_type_id:
            raise ValidationError(
                f"Room {room.room_number} is not of room type {line.room_type_id}",
                {"room_id": room.id, "room_type_id": room.room_type_id},
            )
        ensure_room_free(
            ctx, room.id, line.check_in_date, line.check_out_date, exclude_ids=[line.id]
        )

        previous = line.room
        line.room = room
        line.last_modified_by = ctx.actor_id
        ctx.session.flush()
        folio_ledger.update_room_charge_descriptions(
            ctx.session, _live_folios(ctx, reservation), line
        )

        audit_reservation(
            ctx,
            reservation,
            "reservation.assign_room",
            f"Assigned room {room.room_number}",
            meta={
                "reservation_room_id": line.id,
                "room_id": room.id,
                "previous_room_id": previous.id if previous is not None else None,
            },
        )
        return snapshot(ctx, reservation)


def unassign_room(
    uow: UnitOfWork, request: UnassignRoomRequest, now: Optional[datetime] = None
) -> ReservationSnapshot:
    """
    Clear the room of a reserved line. Posted room charges keep their amounts
    but lose the room number from their descriptions.
    """
    with uow.operation("unassign_room", actor_id=request.actor_id, now=now) as ctx:
        line = _load_amendable_line(ctx, request.reservation_room_id)
        reservation = line.reservation
        require_line_status([line], {AssignmentStatus.RESERVED}, "unassign the room of")

        previous = line.room
        line.room = None
        line.last_modified_by = ctx.actor_id
        ctx.session.flush()
        stripped = folio_ledger.strip_room_number_from_charges(
            ctx.session, _live_folios(ctx, reservation), line.id
        )

        audit_reservation(
            ctx,
            reservation,
            "reservation.unassign_room",
            f"Unassigned room {_room_number(previous)}",
            meta={
                "reservation_room_id": line.id,
                "previous_room_id": previous.id if previous is not None else None,
                "descriptions_updated": stripped,
            },
        )
        return snapshot(ctx, reservation)


# =============================================================================
# Move
# =============================================================================


def move_room(
    uow: UnitOfWork, request: MoveRoomRequest, now: Optional[datetime] = None
) -> ReservationSnapshot:
    """
    Move a line to another room from `effective_date` on.

    Before check-in, or on the check-in day itself, the room is replaced in
    place. Once in house, the source line is closed at the effective date
    (checked out, split origin) and a new checked-in line (split destination)
    takes the remaining nights. Ledger entries from the effective date on
    follow the new line.

    Raises:
        ValidationError: Same room, or effective date outside the stay
        RoomUnavailableError: Destination room is taken for the moved nights
    """
    with uow.operation("move_room", actor_id=request.actor_id, now=now) as ctx:
        line = _load_amendable_line(ctx, request.reservation_room_id)
        reservation = line.reservation
        require_line_status([line], ACTIVE, "move")
        destination = load_room(ctx, request.to_room_id)
        if line.room_id == destination.id:
            raise ValidationError(
                "Line is already in that room", {"room_id": destination.id}
            )

        in_house = line_status(line) == AssignmentStatus.CHECKED_IN
        if not in_house or request.effective_date == line.check_in_date:
            moved = _move_in_place(ctx, line, destination, request.reason, in_house)
            split = False
        else:
            moved = _split_move(ctx, line, destination, request.effective_date, request.reason)
            split = True

        status = apply_derived_status(ctx, reservation)
        audit_reservation(
            ctx,
            reservation,
            "reservation.move_room",
            f"Moved to room {destination.room_number}: {request.reason}",
            meta={
                "reservation_room_id": line.id,
                "new_reservation_room_id": moved.id,
                "to_room_id": destination.id,
                "effective_date": request.effective_date,
                "split": split,
                "status": status.value,
            },
        )
        emit_guest_effects(
            ctx,
            reservation,
            notifications.ROOM_MOVED_GUEST,
            NewRoomNumber=destination.room_number,
            EffectiveDate=request.effective_date,
        )
        logger.info(
            "room_moved",
            reservation_id=reservation.id,
            reservation_room_id=line.id,
            to_room_id=destination.id,
            split=split,
        )
        return snapshot(ctx, reservation)


def _move_in_place(
    ctx: OperationContext,
    line: ReservationRoom,
    destination: Room,
    reason: str,
    in_house: bool,
) -> ReservationRoom:
    ensure_room_free(
        ctx, destination.id, line.check_in_date, line.check_out_date, exclude_ids=[line.id]
    )
    source = line.room
    line.room = destination
    line.room_change_reason = reason
    line.room_changed_at = ctx.now
    line.room_changed_by = ctx.actor_id
    line.last_modified_by = ctx.actor_id
    line.append_note(
        f"Room changed from {_room_number(source)} to {destination.room_number}: {reason}"
    )

    if in_house:
        if source is not None:
            ctx.rooms.save_room_status(source.id, RoomStatus.AVAILABLE, HousekeepingStatus.DIRTY)
        ctx.rooms.save_room_status(destination.id, RoomStatus.OCCUPIED)

    ctx.session.flush()
    folio_ledger.update_room_charge_descriptions(
        ctx.session, _live_folios(ctx, line.reservation), line
    )
    return line


def _split_move(
    ctx: OperationContext,
    line: ReservationRoom,
    destination: Room,
    effective_date: date,
    reason: str,
) -> ReservationRoom:
    if not (line.check_in_date < effective_date < line.check_out_date):
        raise ValidationError(
            "Effective date must fall strictly inside the stay",
            {
                "effective_date": effective_date.isoformat(),
                "check_in_date": line.check_in_date.isoformat(),
                "check_out_date": line.check_out_date.isoformat(),
            },
        )
    ensure_room_free(
        ctx, destination.id, effective_date, line.check_out_date, exclude_ids=[line.id]
    )

    source_room = line.room
    original_out = line.check_out_date
    # Discount is a stay total: each side keeps the share of its own nights
    total_discount = Decimal(str(line.discount_amount or 0))
    moved_discount = (
        total_discount
        * nights_between(effective_date, original_out)
        / max(line.nights or 0, 1)
    ).quantize(Decimal("0.01"))

    moved = ReservationRoom(
        reservation_id=line.reservation_id,
        room=destination,
        room_type_id=destination.room_type_id,
        guest_id=line.guest_id,
        status=AssignmentStatus.CHECKED_IN.value,
        check_in_date=effective_date,
        check_out_date=original_out,
        check_in_time=line.check_in_time,
        check_out_time=line.check_out_time,
        actual_check_in=at_time(effective_date, line.check_in_time),
        nights=nights_between(effective_date, original_out),
        room_rate=line.room_rate,
        tax_amount=line.tax_amount,
        discount_amount=moved_discount,
        adults=line.adults,
        children=line.children,
        is_owner=line.is_owner,
        stop_move=line.stop_move,
        is_split_destination=True,
        moved_from_id=line.id,
        room_change_reason=reason,
        room_changed_at=ctx.now,
        room_changed_by=ctx.actor_id,
        checked_in_by=ctx.actor_id,
        last_modified_by=ctx.actor_id,
        notes=f"Moved from room {_room_number(source_room)} on {effective_date.isoformat()}",
    )
    line_charges(moved)
    ctx.session.add(moved)

    line.status = AssignmentStatus.CHECKED_OUT.value
    line.is_split_origin = True
    line.check_out_date = effective_date
    line.actual_check_out = at_time(effective_date, line.check_out_time)
    line.checked_out_by = ctx.actor_id
    line.nights = nights_between(line.check_in_date, effective_date)
    line.discount_amount = total_discount - moved_discount
    line_charges(line)
    line.room_change_reason = reason
    line.room_changed_at = ctx.now
    line.room_changed_by = ctx.actor_id
    line.last_modified_by = ctx.actor_id
    line.append_note(
        f"Moved to room {destination.room_number} on {effective_date.isoformat()}: {reason}"
    )
    ctx.session.flush()

    folio_ledger.reassign_transactions_for_move(
        ctx.session, line.reservation, line, moved, effective_date
    )
    folio_ledger.update_room_charge_descriptions(
        ctx.session, _live_folios(ctx, line.reservation), moved
    )

    if source_room is not None:
        ctx.rooms.save_room_status(source_room.id, RoomStatus.AVAILABLE, HousekeepingStatus.DIRTY)
    ctx.rooms.save_room_status(destination.id, RoomStatus.OCCUPIED)
    return moved


# =============================================================================
# Exchange
# =============================================================================


def exchange_rooms(
    uow: UnitOfWork, request: ExchangeRoomRequest, now: Optional[datetime] = None
) -> ReservationSnapshot:
    """
    Swap rooms between two reservations, or upgrade/downgrade one line.

    `reservation_swap` exchanges the rooms of two lines belonging to different
    reservations in one transaction. `room_upgrade_downgrade` puts one line in
    a new room, which must be available and clean or inspected.

    Returns:
        ReservationSnapshot: The reservation owning `reservation_room_id`
    """
    with uow.operation(
        f"exchange_{request.mode.value}", actor_id=request.actor_id, now=now
    ) as ctx:
        line = _load_amendable_line(ctx, request.reservation_room_id)
        require_line_status([line], ACTIVE, "exchange the room of")

        if request.mode == ExchangeMode.RESERVATION_SWAP:
            _swap(ctx, line, request.other_reservation_room_id, request.reason)
        else:
            _upgrade_downgrade(ctx, line, request.to_room_id, request.reason)

        return snapshot(ctx, line.reservation)


def _swap(ctx: OperationContext, line: ReservationRoom, other_id: int, reason: str) -> None:
    other = _load_amendable_line(ctx, other_id)
    require_line_status([other], ACTIVE, "exchange the room of")
    if other.reservation_id == line.reservation_id:
        raise ValidationError(
            "Room swap needs lines from two different reservations",
            {"reservation_id": line.reservation_id},
        )
    if line.room is None or other.room is None:
        raise ValidationError(
            "Both lines need a room to swap",
            {"reservation_room_ids": [line.id, other.id]},
        )

    room_a, room_b = line.room, other.room
    both = [line.id, other.id]
    ensure_room_free(ctx, room_b.id, line.check_in_date, line.check_out_date, exclude_ids=both)
    ensure_room_free(ctx, room_a.id, other.check_in_date, other.check_out_date, exclude_ids=both)

    for target, room, previous in ((line, room_b, room_a), (other, room_a, room_b)):
        target.room = room
        target.room_type_id = room.room_type_id
        target.room_change_reason = reason
        target.room_changed_at = ctx.now
        target.room_changed_by = ctx.actor_id
        target.last_modified_by = ctx.actor_id
        target.append_note(
            f"Room swapped from {previous.room_number} to {room.room_number}: {reason}"
        )

    in_house = [line_status(item) == AssignmentStatus.CHECKED_IN for item in (line, other)]
    if in_house[0] != in_house[1]:
        for item, occupied in zip((line, other), in_house):
            ctx.rooms.save_room_status(
                item.room.id, RoomStatus.OCCUPIED if occupied else RoomStatus.AVAILABLE
            )

    ctx.session.flush()
    for item in (line, other):
        folio_ledger.update_room_charge_descriptions(
            ctx.session, _live_folios(ctx, item.reservation), item
        )
        apply_derived_status(ctx, item.reservation)
        audit_reservation(
            ctx,
            item.reservation,
            "reservation.exchange_room",
            f"Swapped room to {item.room.room_number}: {reason}",
            meta={
                "mode": ExchangeMode.RESERVATION_SWAP.value,
                "reservation_room_ids": both,
                "room_id": item.room.id,
            },
        )
        emit_guest_effects(
            ctx,
            item.reservation,
            notifications.ROOM_MOVED_GUEST,
            NewRoomNumber=item.room.room_number,
        )
    logger.info("rooms_swapped", reservation_room_ids=both)


def _upgrade_downgrade(
    ctx: OperationContext, line: ReservationRoom, room_id: int, reason: str
) -> None:
    destination = load_room(ctx, room_id)
    if line.room_id == destination.id:
        raise ValidationError("Line is already in that room", {"room_id": destination.id})
    if (
        destination.status != RoomStatus.AVAILABLE
        or destination.housekeeping_status not in SERVICEABLE_HOUSEKEEPING
    ):
        raise InvalidStateError(
            f"Room {destination.room_number} is not ready for a guest",
            current_status=destination.status,
            room_id=destination.id,
            housekeeping_status=destination.housekeeping_status,
        )
    ensure_room_free(
        ctx, destination.id, line.check_in_date, line.check_out_date, exclude_ids=[line.id]
    )

    previous = line.room
    line.room = destination
    line.room_type_id = destination.room_type_id
    line.room_change_reason = reason
    line.room_changed_at = ctx.now
    line.room_changed_by = ctx.actor_id
    line.last_modified_by = ctx.actor_id
    line.append_note(
        f"Room changed from {_room_number(previous)} to {destination.room_number}: {reason}"
    )
    if line_status(line) == AssignmentStatus.CHECKED_IN:
        if previous is not None:
            ctx.rooms.save_room_status(previous.id, RoomStatus.AVAILABLE, HousekeepingStatus.DIRTY)
        ctx.rooms.save_room_status(destination.id, RoomStatus.OCCUPIED)

    ctx.session.flush()
    reservation = line.reservation
    folio_ledger.update_room_charge_descriptions(
        ctx.session, _live_folios(ctx, reservation), line
    )
    status = apply_derived_status(ctx, reservation)
    audit_reservation(
        ctx,
        reservation,
        "reservation.exchange_room",
        f"Changed room to {destination.room_number}: {reason}",
        meta={
            "mode": ExchangeMode.ROOM_UPGRADE_DOWNGRADE.value,
            "reservation_room_id": line.id,
            "room_id": destination.id,
            "previous_room_id": previous.id if previous is not None else None,
            "status": status.value,
        },
    )
    emit_guest_effects(
        ctx, reservation, notifications.ROOM_MOVED_GUEST, NewRoomNumber=destination.room_number
    )


# =============================================================================
# Stop-move flag
# =============================================================================


def set_stop_move(
    uow: UnitOfWork, request: StopMoveRequest, now: Optional[datetime] = None
) -> ReservationSnapshot:
    """Set or clear the stop-move flag. Callers enforce it; moves here ignore it."""
    with uow.operation("set_stop_move", actor_id=request.actor_id, now=now) as ctx:
        line = load_line(ctx, request.reservation_room_id)
        line.stop_move = request.stop_move
        line.last_modified_by = ctx.actor_id
        audit_reservation(
            ctx,
            line.reservation,
            "reservation.stop_move",
            f"Stop-move {'set' if request.stop_move else 'cleared'} on room line {line.id}",
            meta={"reservation_room_id": line.id, "stop_move": request.stop_move},
        )
        return snapshot(ctx, line.reservation)
