"""
Stay amendment: change dates and/or room type of some or all room lines.

Amendment re-applies each line's existing per-night rate to its new shape
(no re-pricing) and then rebuilds the ledger's room charges with
`retract_and_repost_room_charges`: the live nightly charges of the amended
reservation are deleted and posted again from scratch.
"""

from datetime import datetime
from typing import Optional

import structlog

from pms_core.db.readers.folios import list_reservation_folios
from pms_core.enums import AssignmentStatus, FolioStatus
from pms_core.errors import InvalidStateError, ValidationError
from pms_core.models.reservations import Reservation
from pms_core.schemas.reservations import AmendStayRequest, ReservationSnapshot
from pms_core.services import folio_ledger, notifications
from pms_core.services._reservation_helpers import (
    apply_derived_status,
    audit_reservation,
    emit_guest_effects,
    ensure_room_free,
    line_charges,
    line_status,
    load_reservation,
    refresh_reservation_totals,
    require_line_status,
    require_status,
    select_lines,
    snapshot,
)
from pms_core.services.status_rules import AMENDABLE, is_active_line
from pms_core.services.unit_of_work import OperationContext, UnitOfWork
from pms_core.utils.datetime import nights_between

logger = structlog.get_logger(__name__)


def retract_and_repost_room_charges(
    ctx: OperationContext, reservation: Reservation
) -> tuple[int, int]:
    """
    Delete the live room charges of every active line and post them again.

    Charges are reposted on the line's own open folio, or the reservation's
    main open folio. Lines with no open folio get nothing posted (their folio
    is created, and charged, on confirmation).

    Returns:
        tuple[int, int]: (rows deleted, rows posted)
    """
    open_folios = list_reservation_folios(
        ctx.session, reservation.id, statuses=(FolioStatus.OPEN,)
    )
    lines = [line for line in reservation.rooms if is_active_line(line)]

    deleted = 0
    for line in lines:
        deleted += folio_ledger.delete_room_charges(
            ctx.session, open_folios, reservation_room_id=line.id
        )

    bound = {folio.reservation_room_id: folio for folio in open_folios}
    main_folio = folio_ledger.primary_open_folio(ctx.session, reservation)
    posted = 0
    for line in lines:
        folio = bound.get(line.id) or main_folio
        if folio is None:
            continue
        charges = folio_ledger.post_room_charges(ctx.session, folio, line, ctx.now, ctx.actor_id)
        posted += len(charges)
    return deleted, posted


def amend_stay(
    uow: UnitOfWork, request: AmendStayRequest, now: Optional[datetime] = None
) -> ReservationSnapshot:
    """
    Amend arrival, departure and/or room type.

    Without a selection every active line is amended. Lines already in house
    may only have their departure changed. Reserved lines whose assigned room
    does not match a new room type lose the assignment.

    Raises:
        InvalidStateError: Reservation not amendable, or an in-house line asked
            to change arrival or room type
        ValidationError: Departure before arrival, or nothing to amend
        RoomUnavailableError: An assigned room is taken for the new dates
    """
    with uow.operation("amend_stay", actor_id=request.actor_id, now=now) as ctx:
        reservation = load_reservation(ctx, request.reservation_id)
        require_status(reservation, AMENDABLE, "amend")

        if request.reservation_room_ids is None:
            lines = [line for line in reservation.rooms if is_active_line(line)]
        else:
            lines = select_lines(reservation, request.reservation_room_ids)
        if not lines:
            raise ValidationError(
                "Reservation has no room to amend", {"reservation_id": reservation.id}
            )
        require_line_status(
            lines, {AssignmentStatus.RESERVED, AssignmentStatus.CHECKED_IN}, "amend"
        )

        # Validate every line before touching any of them
        plans = []
        for line in lines:
            in_house = line_status(line) == AssignmentStatus.CHECKED_IN
            new_in = request.new_arrival_date or line.check_in_date
            new_out = request.new_departure_date or line.check_out_date
            new_type = request.new_room_type_id or line.room_type_id

            if in_house and (new_in != line.check_in_date or new_type != line.room_type_id):
                raise InvalidStateError(
                    f"Room line {line.id} is checked in: only the departure can change",
                    current_status=AssignmentStatus.CHECKED_IN.value,
                    reservation_room_id=line.id,
                )
            if new_out < new_in:
                raise ValidationError(
                    "Departure must not be before arrival",
                    {
                        "reservation_room_id": line.id,
                        "arrival_date": new_in.isoformat(),
                        "departure_date": new_out.isoformat(),
                    },
                )
            if new_out == new_in and line.check_out_time and line.check_in_time:
                if line.check_out_time <= line.check_in_time:
                    raise ValidationError(
                        "Day-use stay must end after it starts",
                        {"reservation_room_id": line.id},
                    )

            keep_room = line.room is not None and (
                in_house or line.room.room_type_id == new_type
            )
            if keep_room:
                ensure_room_free(ctx, line.room_id, new_in, new_out, exclude_ids=[line.id])
            plans.append((line, new_in, new_out, new_type, keep_room))

        before = {
            line.id: (line.check_in_date.isoformat(), line.check_out_date.isoformat())
            for line in lines
        }
        for line, new_in, new_out, new_type, keep_room in plans:
            if not keep_room and line.room is not None:
                line.append_note(
                    f"Room {line.room.room_number} released: room type changed to {new_type}"
                )
                line.room = None
            line.check_in_date = new_in
            line.check_out_date = new_out
            line.room_type_id = new_type
            line.nights = nights_between(new_in, new_out)
            line_charges(line)
            line.last_modified_by = ctx.actor_id

        ctx.session.flush()
        active = [line for line in reservation.rooms if is_active_line(line)]
        if active:
            reservation.arrival_date = min(line.check_in_date for line in active)
            reservation.departure_date = max(line.check_out_date for line in active)
            reservation.number_of_nights = nights_between(
                reservation.arrival_date, reservation.departure_date
            )
        refresh_reservation_totals(reservation)

        deleted, posted = retract_and_repost_room_charges(ctx, reservation)
        folio_ledger.sync_reservation_amounts(ctx.session, reservation)
        status = apply_derived_status(ctx, reservation)

        audit_reservation(
            ctx,
            reservation,
            "reservation.amend_stay",
            f"Amended {len(lines)} room(s): {request.reason}",
            meta={
                "reservation_room_ids": [line.id for line in lines],
                "before": before,
                "arrival_date": reservation.arrival_date,
                "departure_date": reservation.departure_date,
                "room_type_id": request.new_room_type_id,
                "room_charges_deleted": deleted,
                "room_charges_posted": posted,
                "status": status.value,
            },
        )
        emit_guest_effects(ctx, reservation, notifications.STAY_AMENDED_GUEST)
        logger.info(
            "stay_amended",
            reservation_id=reservation.id,
            lines=len(lines),
            room_charges_deleted=deleted,
            room_charges_posted=posted,
        )
        return snapshot(ctx, reservation)
