"""
Reservation lifecycle: check-in, check-out, their same-day undos, cancel,
no-show and void.

Every operation validates before it mutates, runs in one unit of work and
re-derives the aggregate reservation status from the room lines after
mutating them. Partial operations (a subset of the lines) are first class:
the aggregate only moves once every remaining line has moved.
"""

from datetime import datetime
from typing import Optional

import structlog

from pms_core.db.readers.folios import list_reservation_folios
from pms_core.db.readers.reservations import find_conflicting_assignments
from pms_core.enums import (
    AssignmentStatus,
    FolioCloseReason,
    FolioStatus,
    HousekeepingStatus,
    ReservationStatus,
    RoomStatus,
    TransactionCategory,
    TransactionType,
)
from pms_core.errors import (
    InvalidStateError,
    MissingRoomError,
    OutstandingBalanceError,
    RoomUnavailableError,
    WindowExpiredError,
)
from pms_core.models.folios import Folio
from pms_core.models.reservations import Reservation, ReservationRoom
from pms_core.schemas.reservations import (
    CancelReservationRequest,
    CheckInRequest,
    CheckOutRequest,
    MarkNoShowRequest,
    ReservationSnapshot,
    UndoCheckInRequest,
    UndoCheckOutRequest,
    VoidReservationRequest,
)
from pms_core.services import folio_ledger, notifications
from pms_core.services._reservation_helpers import (
    apply_derived_status,
    audit_reservation,
    emit_guest_effects,
    line_status,
    load_reservation,
    load_room,
    refresh_reservation_totals,
    require_line_status,
    require_status,
    select_lines,
    snapshot,
)
from pms_core.services.balance import compute_balance
from pms_core.services.status_rules import (
    CANCEL_BLOCKED,
    CHECK_IN_ALLOWED,
    CHECK_OUT_ALLOWED,
    ENDED_WITHOUT_STAY,
    NO_SHOW_ALLOWED,
    VOID_ALLOWED,
)
from pms_core.services.unit_of_work import OperationContext, UnitOfWork
from pms_core.utils.datetime import at_time

logger = structlog.get_logger(__name__)


# =============================================================================
# Check-in / check-out
# =============================================================================


def check_in(
    uow: UnitOfWork, request: CheckInRequest, now: Optional[datetime] = None
) -> ReservationSnapshot:
    """
    Check in the selected room lines.

    Each line is stamped with its scheduled check-in time (arrival date plus
    the line's check-in time) unless `check_in_at` overrides it, and its room
    becomes occupied. The reservation only becomes `checked_in` once every
    live line is in house; until then it stays `confirmed`.

    Lines without a folio (a pending reservation checked in directly) get
    one with their nightly room charges, so the check-out balance gate sees
    the stay.

    Raises:
        NotFoundError: Reservation, line or room missing
        InvalidStateError: Reservation or a line is not in a check-in state
        MissingRoomError: A selected line has no room assigned
    """
    with uow.operation("check_in", actor_id=request.actor_id, now=now) as ctx:
        reservation = load_reservation(ctx, request.reservation_id)
        require_status(reservation, CHECK_IN_ALLOWED, "check in")
        lines = select_lines(reservation, request.reservation_room_ids)

        missing = [line.id for line in lines if line.room_id is None]
        if missing:
            raise MissingRoomError(missing)
        require_line_status(lines, {AssignmentStatus.RESERVED}, "check in")
        for line in lines:
            load_room(ctx, line.room_id)

        for line in lines:
            line.status = AssignmentStatus.CHECKED_IN.value
            line.actual_check_in = request.check_in_at or at_time(
                line.check_in_date, line.check_in_time
            )
            line.checked_in_by = ctx.actor_id
            line.last_modified_by = ctx.actor_id
            ctx.rooms.save_room_status(line.room_id, RoomStatus.OCCUPIED)

        # A pending reservation never went through confirmation's folio creation
        created, posted = folio_ledger.open_reservation_ledger(
            ctx.session, reservation, ctx.now, ctx.actor_id
        )

        status = apply_derived_status(ctx, reservation)
        audit_reservation(
            ctx,
            reservation,
            "reservation.check_in",
            f"Checked in {len(lines)} room(s)",
            meta={
                "reservation_room_ids": [line.id for line in lines],
                "status": status.value,
                "created_folio_ids": [folio.id for folio in created],
                "room_charges_posted": posted,
            },
        )
        emit_guest_effects(ctx, reservation, notifications.CHECKIN_COMPLETED_GUEST)

        logger.info(
            "check_in_completed",
            reservation_id=reservation.id,
            reservation_room_ids=[line.id for line in lines],
            status=status.value,
        )
        return snapshot(ctx, reservation)


def check_out(
    uow: UnitOfWork, request: CheckOutRequest, now: Optional[datetime] = None
) -> ReservationSnapshot:
    """
    Check out the selected room lines.

    Refused while the reservation's open folios carry a positive outstanding
    balance. A zero or credit balance is fine. Rooms become available and
    dirty. When the last line leaves, every open folio is closed.

    Raises:
        OutstandingBalanceError: Open folios still owe money
        InvalidStateError: Reservation not checked in, or a line not in house
    """
    with uow.operation("check_out", actor_id=request.actor_id, now=now) as ctx:
        reservation = load_reservation(ctx, request.reservation_id)
        require_status(reservation, CHECK_OUT_ALLOWED, "check out")
        lines = select_lines(reservation, request.reservation_room_ids)
        require_line_status(lines, {AssignmentStatus.CHECKED_IN}, "check out")

        open_folios = list_reservation_folios(
            ctx.session, reservation.id, statuses=(FolioStatus.OPEN,)
        )
        balance = compute_balance(open_folios)
        if balance.outstanding_balance > 0:
            raise OutstandingBalanceError(
                balance.outstanding_balance, [folio.id for folio in open_folios]
            )

        for line in lines:
            line.status = AssignmentStatus.CHECKED_OUT.value
            line.actual_check_out = at_time(line.check_out_date, line.check_out_time)
            line.checked_out_by = ctx.actor_id
            line.last_modified_by = ctx.actor_id
            if line.room_id is not None:
                ctx.rooms.save_room_status(
                    line.room_id, RoomStatus.AVAILABLE, HousekeepingStatus.DIRTY
                )

        status = apply_derived_status(ctx, reservation)
        closed: list[int] = []
        if status == ReservationStatus.CHECKED_OUT:
            for folio in open_folios:
                folio_ledger.close_folio(
                    folio, ctx.now, ctx.actor_id, reason=FolioCloseReason.CHECK_OUT
                )
                closed.append(folio.id)
            emit_guest_effects(ctx, reservation, notifications.CHECKOUT_COMPLETED_GUEST)
        else:
            emit_guest_effects(ctx, reservation)

        audit_reservation(
            ctx,
            reservation,
            "reservation.check_out",
            f"Checked out {len(lines)} room(s)",
            meta={
                "reservation_room_ids": [line.id for line in lines],
                "status": status.value,
                "closed_folio_ids": closed,
                "balance": balance.outstanding_balance,
            },
        )
        logger.info(
            "check_out_completed",
            reservation_id=reservation.id,
            reservation_room_ids=[line.id for line in lines],
            status=status.value,
        )
        return snapshot(ctx, reservation)


def _require_same_day(
    ctx: OperationContext,
    line: ReservationRoom,
    stamp: Optional[datetime],
    operation: str,
) -> None:
    if stamp is None or stamp.date() != ctx.now.date():
        raise WindowExpiredError(
            f"{operation} is only possible on the day it happened",
            {
                "reservation_room_id": line.id,
                "happened_on": stamp.date().isoformat() if stamp is not None else None,
                "today": ctx.now.date().isoformat(),
            },
        )


def undo_check_in(
    uow: UnitOfWork, request: UndoCheckInRequest, now: Optional[datetime] = None
) -> ReservationSnapshot:
    """
    Revert a same-day check-in: lines go back to reserved, rooms to available.

    Raises:
        WindowExpiredError: The check-in date is not today
    """
    with uow.operation("undo_check_in", actor_id=request.actor_id, now=now) as ctx:
        reservation = load_reservation(ctx, request.reservation_id)
        lines = select_lines(reservation, request.reservation_room_ids)
        require_line_status(lines, {AssignmentStatus.CHECKED_IN}, "undo check-in of")
        for line in lines:
            _require_same_day(ctx, line, line.actual_check_in, "Undo check-in")

        for line in lines:
            line.status = AssignmentStatus.RESERVED.value
            line.actual_check_in = None
            line.checked_in_by = None
            line.last_modified_by = ctx.actor_id
            if line.room_id is not None:
                ctx.rooms.save_room_status(line.room_id, RoomStatus.AVAILABLE)

        status = apply_derived_status(ctx, reservation)
        audit_reservation(
            ctx,
            reservation,
            "reservation.undo_check_in",
            f"Reverted check-in of {len(lines)} room(s)",
            meta={"reservation_room_ids": [line.id for line in lines], "status": status.value},
        )
        emit_guest_effects(ctx, reservation)
        return snapshot(ctx, reservation)


def undo_check_out(
    uow: UnitOfWork, request: UndoCheckOutRequest, now: Optional[datetime] = None
) -> ReservationSnapshot:
    """
    Revert a same-day check-out: lines go back in house, rooms to occupied,
    and the folios the full check-out closed are reopened. Folios closed for
    another reason (a cancelled line, a settlement) keep their closed state.

    Raises:
        WindowExpiredError: The check-out date is not today
        RoomUnavailableError: The room has been given to another in-house stay
    """
    with uow.operation("undo_check_out", actor_id=request.actor_id, now=now) as ctx:
        reservation = load_reservation(ctx, request.reservation_id)
        lines = select_lines(reservation, request.reservation_room_ids)
        require_line_status(lines, {AssignmentStatus.CHECKED_OUT}, "undo check-out of")
        for line in lines:
            _require_same_day(ctx, line, line.actual_check_out, "Undo check-out")
            if line.room_id is None:
                continue
            taken = [
                other.id
                for other in find_conflicting_assignments(
                    ctx.session,
                    line.room_id,
                    line.check_in_date,
                    line.check_out_date,
                    exclude_ids=[line.id],
                )
                if line_status(other) == AssignmentStatus.CHECKED_IN
            ]
            if taken:
                raise RoomUnavailableError(line.room_id, taken)

        was_checked_out = reservation.status == ReservationStatus.CHECKED_OUT

        for line in lines:
            line.status = AssignmentStatus.CHECKED_IN.value
            line.actual_check_out = None
            line.checked_out_by = None
            line.last_modified_by = ctx.actor_id
            if line.room_id is not None:
                ctx.rooms.save_room_status(line.room_id, RoomStatus.OCCUPIED)

        reopened: list[int] = []
        if was_checked_out:
            for folio in list_reservation_folios(
                ctx.session, reservation.id, statuses=(FolioStatus.CLOSED,)
            ):
                # Folios of cancelled lines or closed by hand stay closed
                if folio.close_reason != FolioCloseReason.CHECK_OUT:
                    continue
                folio_ledger.reopen_folio(folio, ctx.actor_id)
                reopened.append(folio.id)

        status = apply_derived_status(ctx, reservation)
        audit_reservation(
            ctx,
            reservation,
            "reservation.undo_check_out",
            f"Reverted check-out of {len(lines)} room(s)",
            meta={
                "reservation_room_ids": [line.id for line in lines],
                "status": status.value,
                "reopened_folio_ids": reopened,
            },
        )
        emit_guest_effects(ctx, reservation)
        return snapshot(ctx, reservation)


# =============================================================================
# Cancel / no-show / void
# =============================================================================


def _bound_open_folios(
    ctx: OperationContext, reservation: Reservation, lines: list[ReservationRoom]
) -> list[Folio]:
    line_ids = {line.id for line in lines}
    return [
        folio
        for folio in list_reservation_folios(
            ctx.session, reservation.id, statuses=(FolioStatus.OPEN,)
        )
        if folio.reservation_room_id in line_ids
    ]


def cancel_reservation(
    uow: UnitOfWork, request: CancelReservationRequest, now: Optional[datetime] = None
) -> ReservationSnapshot:
    """
    Cancel the selected room lines, releasing their rooms.

    Affected folios (all open folios on a full cancel, the cancelled lines'
    own folios on a partial one) have their live transactions cancelled, the
    cancellation fee posted when positive, and are then closed.

    The full-cancel status change is written inside the operation's
    transaction, not after its commit. The status, the line changes and the
    closed folios commit together or not at all, so no reader ever sees the
    reservation `cancelled` with its ledger still open, or the reverse; the
    observable result is the same as applying the status after commit.

    Raises:
        InvalidStateError: Reservation already cancelled, in house, departed,
            voided or no-show, or a line not reserved
    """
    with uow.operation("cancel", actor_id=request.actor_id, now=now) as ctx:
        reservation = load_reservation(ctx, request.reservation_id)
        current = require_status(
            reservation,
            set(ReservationStatus) - CANCEL_BLOCKED,
            "cancel",
        )
        lines = select_lines(reservation, request.reservation_room_ids)
        require_line_status(lines, {AssignmentStatus.RESERVED}, "cancel")

        for line in lines:
            line.status = AssignmentStatus.CANCELLED.value
            line.cancellation_reason = request.reason
            line.cancelled_at = ctx.now
            line.cancelled_by = ctx.actor_id
            line.last_modified_by = ctx.actor_id
            if line.room_id is not None:
                ctx.rooms.save_room_status(line.room_id, RoomStatus.AVAILABLE)

        status = apply_derived_status(ctx, reservation)
        full = status == ReservationStatus.CANCELLED

        if full:
            folios = list_reservation_folios(
                ctx.session, reservation.id, statuses=(FolioStatus.OPEN,)
            )
        else:
            folios = _bound_open_folios(ctx, reservation, lines)

        cancelled_transactions = 0
        for folio in folios:
            cancelled_transactions += folio_ledger.cancel_folio_transactions(
                folio, request.reason, ctx.now, ctx.actor_id
            )

        fee_folio = None
        if request.fee > 0:
            fee_folio = folios[0] if folios else folio_ledger.primary_open_folio(
                ctx.session, reservation
            )
            if fee_folio is None:
                fee_folio = folio_ledger.create_folio(
                    ctx.session, reservation, ctx.now, ctx.actor_id
                )
                folios.append(fee_folio)
            folio_ledger.post_transaction(
                ctx.session,
                fee_folio,
                TransactionType.CHARGE,
                TransactionCategory.CANCELLATION_FEE,
                request.fee,
                ctx.now,
                actor_id=ctx.actor_id,
                description=f"Cancellation fee: {request.reason}",
            )

        for folio in folios:
            folio_ledger.close_folio(
                folio, ctx.now, ctx.actor_id, reason=FolioCloseReason.CANCELLATION
            )

        if full:
            reservation.cancellation_reason = request.reason
            reservation.cancellation_fee = request.fee
            reservation.cancelled_at = ctx.now
            reservation.cancelled_by = ctx.actor_id

        refresh_reservation_totals(reservation)
        folio_ledger.sync_reservation_amounts(ctx.session, reservation)

        audit_reservation(
            ctx,
            reservation,
            "reservation.cancel",
            f"Cancelled {len(lines)} room(s): {request.reason}",
            meta={
                "reservation_room_ids": [line.id for line in lines],
                "previous_status": current.value,
                "status": status.value,
                "fee": request.fee,
                "closed_folio_ids": [folio.id for folio in folios],
                "cancelled_transactions": cancelled_transactions,
            },
        )
        emit_guest_effects(
            ctx,
            reservation,
            notifications.RESERVATION_CANCELLED if full else None,
            CancellationReason=request.reason,
            CancellationFee=request.fee,
        )
        logger.info(
            "reservation_cancelled",
            reservation_id=reservation.id,
            full=full,
            fee=str(request.fee),
        )
        return snapshot(ctx, reservation)


def mark_no_show(
    uow: UnitOfWork, request: MarkNoShowRequest, now: Optional[datetime] = None
) -> ReservationSnapshot:
    """
    Mark the selected room lines as no-show.

    Only possible from the arrival date onward. A no-show fee is posted per
    affected room on that room's folio (or the reservation's main folio).
    Every other live transaction on the touched folios is then reversed and
    the folios are voided.

    Raises:
        InvalidStateError: Before arrival, wrong reservation status, or a
            line that is not reserved
    """
    with uow.operation("mark_no_show", actor_id=request.actor_id, now=now) as ctx:
        reservation = load_reservation(ctx, request.reservation_id)
        if ctx.now.date() < reservation.arrival_date:
            raise InvalidStateError(
                "Cannot mark a no-show before the arrival date",
                arrival_date=reservation.arrival_date.isoformat(),
                today=ctx.now.date().isoformat(),
                reservation_id=reservation.id,
            )
        require_status(reservation, NO_SHOW_ALLOWED, "mark no-show for")
        lines = select_lines(reservation, request.reservation_room_ids)
        require_line_status(lines, {AssignmentStatus.RESERVED}, "mark no-show for")

        bound = {
            folio.reservation_room_id: folio
            for folio in _bound_open_folios(ctx, reservation, lines)
        }
        main_folio = folio_ledger.primary_open_folio(ctx.session, reservation)

        touched: dict[int, Folio] = {}
        fee_ids: set[int] = set()
        for line in lines:
            line.status = AssignmentStatus.NO_SHOW.value
            line.no_show_reason = request.reason
            line.no_show_at = ctx.now
            line.no_show_by = ctx.actor_id
            line.last_modified_by = ctx.actor_id
            if line.room_id is not None:
                ctx.rooms.save_room_status(line.room_id, RoomStatus.AVAILABLE)

            folio = bound.get(line.id) or main_folio
            if folio is None and request.fee > 0:
                folio = main_folio = folio_ledger.create_folio(
                    ctx.session, reservation, ctx.now, ctx.actor_id
                )
            if folio is None:
                continue
            touched[folio.id] = folio

            if request.fee > 0:
                fee = folio_ledger.post_transaction(
                    ctx.session,
                    folio,
                    TransactionType.CHARGE,
                    TransactionCategory.NO_SHOW_FEE,
                    request.fee,
                    ctx.now,
                    actor_id=ctx.actor_id,
                    description=f"No-show fee: {request.reason}",
                    reservation_room_id=line.id,
                )
                fee_ids.add(fee.id)

        for folio in touched.values():
            folio_ledger.void_folio(
                ctx.session,
                folio,
                request.reason,
                ctx.now,
                ctx.actor_id,
                keep_transaction_ids=fee_ids,
            )

        status = apply_derived_status(ctx, reservation)
        if status == ReservationStatus.NO_SHOW:
            reservation.no_show_reason = request.reason
            reservation.no_show_fee = request.fee * len(lines)
            reservation.no_show_at = ctx.now
            reservation.no_show_by = ctx.actor_id

        folio_ledger.sync_reservation_amounts(ctx.session, reservation)
        audit_reservation(
            ctx,
            reservation,
            "reservation.no_show",
            f"Marked {len(lines)} room(s) as no-show: {request.reason}",
            meta={
                "reservation_room_ids": [line.id for line in lines],
                "status": status.value,
                "fee_per_room": request.fee,
                "voided_folio_ids": sorted(touched),
            },
        )
        emit_guest_effects(
            ctx,
            reservation,
            notifications.RESERVATION_NO_SHOW if status == ReservationStatus.NO_SHOW else None,
        )
        logger.info(
            "reservation_no_show",
            reservation_id=reservation.id,
            status=status.value,
            fee_transactions=len(fee_ids),
        )
        return snapshot(ctx, reservation)


def void_reservation(
    uow: UnitOfWork, request: VoidReservationRequest, now: Optional[datetime] = None
) -> ReservationSnapshot:
    """
    Void the selected room lines.

    A partial void leaves folios alone. Once no line is left to stay (every
    line voided, or the rest cancelled or no-show earlier) the void metadata
    is stamped on the reservation and each of its open and closed folios is
    voided; folios that are already voided are skipped. The aggregate is
    whatever the lines derive to, so voiding the last room after a partial
    cancel leaves the reservation `cancelled`.

    Raises:
        InvalidStateError: Reservation not pending/confirmed, or a line not reserved
    """
    with uow.operation("void", actor_id=request.actor_id, now=now) as ctx:
        reservation = load_reservation(ctx, request.reservation_id)
        require_status(reservation, VOID_ALLOWED, "void")
        lines = select_lines(reservation, request.reservation_room_ids)
        require_line_status(lines, {AssignmentStatus.RESERVED}, "void")

        for line in lines:
            line.status = AssignmentStatus.VOIDED.value
            line.void_reason = request.reason
            line.voided_at = ctx.now
            line.voided_by = ctx.actor_id
            line.last_modified_by = ctx.actor_id
            if line.room_id is not None:
                ctx.rooms.save_room_status(line.room_id, RoomStatus.AVAILABLE)

        status = apply_derived_status(ctx, reservation)
        # Earlier cancels or no-shows may leave the aggregate short of `voided`
        ended = status in ENDED_WITHOUT_STAY
        voided_folios: list[int] = []
        if ended:
            reservation.void_reason = request.reason
            reservation.voided_at = ctx.now
            reservation.voided_by = ctx.actor_id
            for folio in list_reservation_folios(ctx.session, reservation.id):
                if folio_ledger.void_folio(
                    ctx.session, folio, request.reason, ctx.now, ctx.actor_id
                ):
                    voided_folios.append(folio.id)

        refresh_reservation_totals(reservation)
        folio_ledger.sync_reservation_amounts(ctx.session, reservation)
        audit_reservation(
            ctx,
            reservation,
            "reservation.void",
            f"Voided {len(lines)} room(s): {request.reason}",
            meta={
                "reservation_room_ids": [line.id for line in lines],
                "status": status.value,
                "voided_folio_ids": voided_folios,
            },
        )
        emit_guest_effects(
            ctx,
            reservation,
            notifications.RESERVATION_VOIDED if ended else None,
        )
        logger.info(
            "reservation_voided",
            reservation_id=reservation.id,
            full=ended,
            status=status.value,
            voided_folio_ids=voided_folios,
        )
        return snapshot(ctx, reservation)
