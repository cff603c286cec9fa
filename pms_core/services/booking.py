"""Reservation creation and confirmation."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

import structlog

from pms_core.config import DEFAULT_CURRENCY
from pms_core.enums import AssignmentStatus, ReservationStatus
from pms_core.errors import NotFoundError, ValidationError
from pms_core.models.guests import Guest
from pms_core.models.reservations import Reservation, ReservationRoom
from pms_core.schemas.reservations import (
    ConfirmReservationRequest,
    CreateReservationRequest,
    ReservationSnapshot,
)
from pms_core.services import notifications
from pms_core.services._reservation_helpers import (
    audit_reservation,
    emit_guest_effects,
    ensure_room_free,
    line_charges,
    load_reservation,
    load_room,
    refresh_reservation_totals,
    require_status,
    snapshot,
)
from pms_core.services.effects import FolioCreationEffect
from pms_core.services.unit_of_work import OperationContext, UnitOfWork
from pms_core.utils.datetime import at_time, nights_between

logger = structlog.get_logger(__name__)


def create_reservation(
    uow: UnitOfWork, request: CreateReservationRequest, now: Optional[datetime] = None
) -> ReservationSnapshot:
    """
    Create a reservation with its room lines.

    Lines with a room are checked against existing stays before anything is
    written. A reservation created with `confirm=True` starts confirmed and
    gets its folios after commit; otherwise it starts pending.

    Raises:
        NotFoundError: Guest or a requested room missing
        ValidationError: Room of a different room type than its line
        RoomUnavailableError: A requested room is taken for the dates
    """
    with uow.operation("create_reservation", actor_id=request.actor_id, now=now) as ctx:
        if ctx.session.get(Guest, request.guest_id) is None:
            raise NotFoundError("Guest", request.guest_id)

        nights = nights_between(request.arrival_date, request.departure_date)
        room_ids = [line.room_id for line in request.rooms if line.room_id is not None]
        if len(room_ids) != len(set(room_ids)):
            raise ValidationError(
                "A room can only be booked once per reservation", {"room_ids": room_ids}
            )
        for line_request in request.rooms:
            if line_request.room_id is None:
                continue
            room = load_room(ctx, line_request.room_id)
            if room.room_type_id != line_request.room_type_id:
                raise ValidationError(
                    f"Room {room.room_number} is not of room type {line_request.room_type_id}",
                    {"room_id": room.id, "room_type_id": room.room_type_id},
                )
            ensure_room_free(ctx, room.id, request.arrival_date, request.departure_date)

        status = ReservationStatus.CONFIRMED if request.confirm else ReservationStatus.PENDING
        reservation = Reservation(
            hotel_id=request.hotel_id,
            guest_id=request.guest_id,
            status=status.value,
            arrival_date=request.arrival_date,
            departure_date=request.departure_date,
            check_in_datetime=at_time(request.arrival_date, request.check_in_time),
            check_out_datetime=at_time(request.departure_date, request.check_out_time),
            number_of_nights=nights,
            currency=request.currency or DEFAULT_CURRENCY,
            created_by=ctx.actor_id,
            last_modified_by=ctx.actor_id,
        )
        ctx.session.add(reservation)
        ctx.session.flush()
        reservation.reservation_number = f"R-{reservation.hotel_id}-{reservation.id:06d}"

        for index, line_request in enumerate(request.rooms):
            line = ReservationRoom(
                reservation=reservation,
                room_id=line_request.room_id,
                room_type_id=line_request.room_type_id,
                guest_id=request.guest_id,
                status=AssignmentStatus.RESERVED.value,
                check_in_date=request.arrival_date,
                check_out_date=request.departure_date,
                check_in_time=request.check_in_time,
                check_out_time=request.check_out_time,
                nights=nights,
                room_rate=line_request.room_rate,
                tax_amount=line_request.tax_amount,
                discount_amount=line_request.discount_amount,
                adults=line_request.adults,
                children=line_request.children,
                is_owner=index == 0,
                last_modified_by=ctx.actor_id,
            )
            line_charges(line)
            ctx.session.add(line)
        ctx.session.flush()
        refresh_reservation_totals(reservation)
        reservation.paid_amount = Decimal("0")
        reservation.remaining_amount = reservation.final_amount

        audit_reservation(
            ctx,
            reservation,
            "reservation.create",
            f"Created reservation {reservation.reservation_number}",
            meta={
                "status": status.value,
                "arrival_date": reservation.arrival_date,
                "departure_date": reservation.departure_date,
                "rooms": len(request.rooms),
                "total_amount": reservation.total_amount,
            },
        )
        if status == ReservationStatus.CONFIRMED:
            _emit_confirmation(ctx, reservation, notify=False)
        else:
            emit_guest_effects(ctx, reservation)

        logger.info(
            "reservation_created",
            reservation_id=reservation.id,
            reservation_number=reservation.reservation_number,
            status=status.value,
            rooms=len(request.rooms),
        )
        return snapshot(ctx, reservation)


def confirm_reservation(
    uow: UnitOfWork, request: ConfirmReservationRequest, now: Optional[datetime] = None
) -> ReservationSnapshot:
    """
    Confirm a pending reservation.

    Folios (one per line, with the nightly room charges) are created after
    commit; a failure there is logged and does not undo the confirmation.
    """
    with uow.operation("confirm_reservation", actor_id=request.actor_id, now=now) as ctx:
        reservation = load_reservation(ctx, request.reservation_id)
        require_status(reservation, {ReservationStatus.PENDING}, "confirm")

        reservation.status = ReservationStatus.CONFIRMED.value
        reservation.last_modified_by = ctx.actor_id
        audit_reservation(
            ctx,
            reservation,
            "reservation.confirm",
            f"Confirmed reservation {reservation.reservation_number}",
            meta={"previous_status": ReservationStatus.PENDING.value},
        )
        _emit_confirmation(ctx, reservation, notify=True)

        logger.info("reservation_confirmed", reservation_id=reservation.id)
        return snapshot(ctx, reservation)


def _emit_confirmation(ctx: OperationContext, reservation: Reservation, notify: bool) -> None:
    ctx.emit(FolioCreationEffect(reservation_id=reservation.id, actor_id=ctx.actor_id))
    emit_guest_effects(
        ctx, reservation, notifications.RESERVATION_CONFIRMED if notify else None
    )
