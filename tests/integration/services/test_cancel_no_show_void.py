"""
Integration tests for cancellation, no-show and void.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from pms_core.enums import (
    AssignmentStatus,
    FolioStatus,
    ReservationStatus,
    RoomStatus,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
)
from pms_core.errors import InvalidStateError
from pms_core.models.folios import Folio
from pms_core.models.reservations import Reservation
from pms_core.models.rooms import Room
from pms_core.schemas.reservations import (
    CancelReservationRequest,
    MarkNoShowRequest,
    VoidReservationRequest,
)
from pms_core.services import folio_ledger, notifications
from pms_core.services.folios import get_reservation_balance
from pms_core.services.lifecycle import cancel_reservation, mark_no_show, void_reservation
from tests.factories import ACTOR_ID, ARRIVAL_NOW


@pytest.fixture
def booked(seed):
    """A confirmed two-room reservation with one folio per room, room charges posted."""
    guest_id = seed.guest()
    room_a = seed.room("101")
    room_b = seed.room("102")
    reservation_id, lines = seed.reservation(guest_id, [{"room_id": room_a}, {"room_id": room_b}])
    folios = []
    for line_id in lines:
        folio_id = seed.folio(reservation_id, line_id)
        seed.room_charges(folio_id, line_id)
        folios.append(folio_id)
    return reservation_id, lines, (room_a, room_b), folios


def cancel(uow, reservation_id, line_ids, fee="0", reason="Guest request"):
    return cancel_reservation(
        uow,
        CancelReservationRequest(
            reservation_id=reservation_id,
            reservation_room_ids=line_ids,
            reason=reason,
            fee=Decimal(fee),
            actor_id=ACTOR_ID,
        ),
        now=ARRIVAL_NOW,
    )


def void(uow, reservation_id, line_ids, reason="Duplicate booking"):
    return void_reservation(
        uow,
        VoidReservationRequest(
            reservation_id=reservation_id,
            reservation_room_ids=line_ids,
            reason=reason,
            actor_id=ACTOR_ID,
        ),
        now=ARRIVAL_NOW,
    )


# =============================================================================
# Cancel
# =============================================================================


@pytest.mark.integration
def test_full_cancel_closes_folios_and_posts_fee(uow, fetch, transactions, notifier, booked):
    """Test that cancelling every room cancels the ledger, charges the fee and closes folios."""
    reservation_id, lines, rooms, (folio_a, folio_b) = booked

    result = cancel(uow, reservation_id, lines, fee="25")

    assert result.status == ReservationStatus.CANCELLED
    assert {room.status for room in result.rooms} == {AssignmentStatus.CANCELLED}
    assert {folio.status for folio in result.folios} == {FolioStatus.CLOSED}

    reservation = fetch(Reservation, reservation_id)
    assert reservation.cancellation_reason == "Guest request"
    assert reservation.cancellation_fee == Decimal("25.00")
    assert reservation.cancelled_by == ACTOR_ID

    room_charges = [t for t in transactions(folio_a) if t.category == TransactionCategory.ROOM]
    assert len(room_charges) == 3
    assert {t.status for t in room_charges} == {TransactionStatus.CANCELLED}
    fee = [t for t in transactions(folio_a) if t.category == TransactionCategory.CANCELLATION_FEE]
    assert [t.amount for t in fee] == [Decimal("25.00")]

    balance = get_reservation_balance(uow, reservation_id, open_only=False)
    assert balance.outstanding_balance == Decimal("25.00")
    assert all(fetch(Room, room_id).status == RoomStatus.AVAILABLE for room_id in rooms)
    assert notifications.RESERVATION_CANCELLED in notifier.template_codes


@pytest.mark.integration
def test_partial_cancel_touches_only_cancelled_rooms(uow, fetch, transactions, notifier, booked):
    """Test that cancelling one of two rooms keeps the reservation and the other folio live."""
    reservation_id, (line_a, line_b), _, (folio_a, folio_b) = booked

    result = cancel(uow, reservation_id, [line_a])

    assert result.status == ReservationStatus.CONFIRMED
    assert fetch(Folio, folio_a).status == FolioStatus.CLOSED
    assert fetch(Folio, folio_b).status == FolioStatus.OPEN
    assert {t.status for t in transactions(folio_b)} == {TransactionStatus.POSTED}
    assert fetch(Reservation, reservation_id).cancelled_at is None
    assert result.total_amount == Decimal("300.00")
    assert notifications.RESERVATION_CANCELLED not in notifier.template_codes


@pytest.mark.integration
def test_cancelling_remaining_room_completes_cancellation(uow, booked):
    reservation_id, (line_a, line_b), _, _ = booked

    cancel(uow, reservation_id, [line_a])
    result = cancel(uow, reservation_id, [line_b])

    assert result.status == ReservationStatus.CANCELLED
    assert {folio.status for folio in result.folios} == {FolioStatus.CLOSED}


@pytest.mark.integration
def test_cancel_fee_without_folio_opens_one(uow, seed):
    guest_id = seed.guest()
    reservation_id, (line_id,) = seed.reservation(guest_id, [{"room_id": None}])

    result = cancel(uow, reservation_id, [line_id], fee="40")

    assert len(result.folios) == 1
    assert result.folios[0].status == FolioStatus.CLOSED
    assert result.folios[0].balance == Decimal("40.00")


@pytest.mark.integration
def test_cancel_refused_once_checked_in(uow, seed):
    """Test that an in-house reservation cannot be cancelled and nothing changes."""
    guest_id = seed.guest()
    room_id = seed.room("301", status=RoomStatus.OCCUPIED)
    reservation_id, (line_id,) = seed.reservation(
        guest_id,
        [{"room_id": room_id, "status": AssignmentStatus.CHECKED_IN}],
        status=ReservationStatus.CHECKED_IN,
    )

    with pytest.raises(InvalidStateError) as exc_info:
        cancel(uow, reservation_id, [line_id])

    assert exc_info.value.details["current_status"] == "checked_in"


# =============================================================================
# No-show
# =============================================================================


@pytest.mark.integration
def test_no_show_posts_fee_reverses_ledger_and_voids_folio(
    uow, seed, fetch, transactions, notifier
):
    """Test the no-show of a folio holding a 50 charge and a 20 payment."""
    guest_id = seed.guest()
    room_id = seed.room("401")
    reservation_id, (line_id,) = seed.reservation(guest_id, [{"room_id": room_id}])
    folio_id = seed.folio(reservation_id, line_id)
    charge_id = seed.post(folio_id, TransactionType.CHARGE, "50")
    payment_id = seed.post(folio_id, TransactionType.PAYMENT, "-20", TransactionCategory.PAYMENT)

    result = mark_no_show(
        uow,
        MarkNoShowRequest(
            reservation_id=reservation_id,
            reservation_room_ids=[line_id],
            reason="Did not arrive",
            fee=Decimal("30"),
            actor_id=ACTOR_ID,
        ),
        now=datetime(2026, 3, 10, 23, 30),
    )

    assert result.status == ReservationStatus.NO_SHOW
    assert result.rooms[0].status == AssignmentStatus.NO_SHOW

    rows = {t.id: t for t in transactions(folio_id)}
    assert rows[charge_id].status == TransactionStatus.VOIDED
    assert rows[payment_id].status == TransactionStatus.VOIDED
    reversals = {
        t.original_transaction_id: t.amount
        for t in rows.values()
        if t.transaction_type == TransactionType.VOID
    }
    assert reversals == {charge_id: Decimal("-50.00"), payment_id: Decimal("20.00")}
    fees = [t for t in rows.values() if t.category == TransactionCategory.NO_SHOW_FEE]
    assert len(fees) == 1
    assert fees[0].status == TransactionStatus.POSTED
    assert fees[0].amount == Decimal("30.00")

    folio = fetch(Folio, folio_id)
    assert folio.status == FolioStatus.VOIDED
    assert folio.balance == Decimal("30.00")
    assert fetch(Reservation, reservation_id).no_show_fee == Decimal("30.00")
    assert notifications.RESERVATION_NO_SHOW in notifier.template_codes


@pytest.mark.integration
def test_partial_no_show_keeps_reservation_confirmed(uow, fetch, booked):
    """Test that a no-show for one room voids only that room's folio."""
    reservation_id, (line_a, line_b), _, (folio_a, folio_b) = booked

    result = mark_no_show(
        uow,
        MarkNoShowRequest(
            reservation_id=reservation_id,
            reservation_room_ids=[line_b],
            reason="Second room never claimed",
            actor_id=ACTOR_ID,
        ),
        now=ARRIVAL_NOW,
    )

    assert result.status == ReservationStatus.CONFIRMED
    assert fetch(Folio, folio_a).status == FolioStatus.OPEN
    assert fetch(Folio, folio_b).status == FolioStatus.VOIDED


@pytest.mark.integration
def test_no_show_before_arrival_date_is_refused(uow, fetch, booked):
    reservation_id, lines, _, _ = booked

    with pytest.raises(InvalidStateError):
        mark_no_show(
            uow,
            MarkNoShowRequest(
                reservation_id=reservation_id,
                reservation_room_ids=lines,
                reason="Too early",
                actor_id=ACTOR_ID,
            ),
            now=datetime(2026, 3, 9, 23, 59),
        )

    assert fetch(Reservation, reservation_id).status == ReservationStatus.CONFIRMED


# =============================================================================
# Void
# =============================================================================


@pytest.mark.integration
def test_partial_void_leaves_folios_open(uow, fetch, booked):
    reservation_id, (line_a, line_b), _, folios = booked

    result = void(uow, reservation_id, [line_a])

    assert result.status == ReservationStatus.CONFIRMED
    assert all(fetch(Folio, folio_id).status == FolioStatus.OPEN for folio_id in folios)


@pytest.mark.integration
def test_partial_void_covering_last_room_escalates(uow, fetch, transactions, notifier, booked):
    """Test that voiding the last live room voids the reservation and every folio."""
    reservation_id, (line_a, line_b), _, folios = booked

    void(uow, reservation_id, [line_a])
    result = void(uow, reservation_id, [line_b])

    assert result.status == ReservationStatus.VOIDED
    assert fetch(Reservation, reservation_id).void_reason == "Duplicate booking"
    for folio_id in folios:
        assert fetch(Folio, folio_id).status == FolioStatus.VOIDED
        assert fetch(Folio, folio_id).balance == Decimal("0.00")
        rows = transactions(folio_id)
        room_charges = [t for t in rows if t.category == TransactionCategory.ROOM]
        assert {t.status for t in room_charges} == {TransactionStatus.VOIDED}
    assert notifier.template_codes.count(notifications.RESERVATION_VOIDED) == 1


@pytest.mark.integration
def test_void_after_partial_cancel_ends_the_ledger(uow, fetch, transactions, notifier, booked):
    """Test that voiding the last live room after a cancel leaves no folio open."""
    reservation_id, (line_a, line_b), _, (folio_a, folio_b) = booked

    cancel(uow, reservation_id, [line_a])
    result = void(uow, reservation_id, [line_b])

    assert result.status == ReservationStatus.CANCELLED
    reservation = fetch(Reservation, reservation_id)
    assert reservation.void_reason == "Duplicate booking"
    assert reservation.voided_by == ACTOR_ID
    assert {folio.status for folio in result.folios} == {FolioStatus.VOIDED}
    assert fetch(Folio, folio_b).balance == Decimal("0.00")
    room_charges = [t for t in transactions(folio_b) if t.category == TransactionCategory.ROOM]
    assert {t.status for t in room_charges} == {TransactionStatus.VOIDED}
    assert notifier.template_codes.count(notifications.RESERVATION_VOIDED) == 1


@pytest.mark.integration
def test_full_void_skips_already_voided_folios(uow, seed, session_factory, fetch, transactions):
    """Test that a folio voided earlier is neither reversed twice nor restamped."""
    guest_id = seed.guest()
    reservation_id, (line_id,) = seed.reservation(guest_id, [{"room_id": None}])
    folio_id = seed.folio(reservation_id, line_id)
    seed.post(folio_id, TransactionType.CHARGE, "80")
    earlier = datetime(2026, 3, 1, 9, 0)
    with session_factory() as session:
        folio_ledger.void_folio(session, session.get(Folio, folio_id), "Rebooked", earlier)
        session.commit()
    rows_before = len(transactions(folio_id))

    result = void(uow, reservation_id, [line_id])

    assert result.status == ReservationStatus.VOIDED
    assert len(transactions(folio_id)) == rows_before
    folio = fetch(Folio, folio_id)
    assert folio.voided_at == earlier
    assert folio.void_reason == "Rebooked"


@pytest.mark.integration
def test_void_refused_after_check_in(uow, seed):
    guest_id = seed.guest()
    room_id = seed.room("501", status=RoomStatus.OCCUPIED)
    reservation_id, (line_id,) = seed.reservation(
        guest_id,
        [{"room_id": room_id, "status": AssignmentStatus.CHECKED_IN}],
        status=ReservationStatus.CHECKED_IN,
    )

    with pytest.raises(InvalidStateError):
        void(uow, reservation_id, [line_id])
