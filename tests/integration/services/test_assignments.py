"""
Integration tests for room assignment, moves, exchanges and the stop-move flag.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from pms_core.enums import (
    AssignmentStatus,
    ExchangeMode,
    HousekeepingStatus,
    ReservationStatus,
    RoomStatus,
)
from pms_core.errors import InvalidStateError, RoomUnavailableError, ValidationError
from pms_core.models.folios import Folio
from pms_core.models.reservations import ReservationRoom
from pms_core.models.rooms import Room
from pms_core.schemas.reservations import (
    AssignRoomRequest,
    ExchangeRoomRequest,
    MoveRoomRequest,
    StopMoveRequest,
    UnassignRoomRequest,
)
from pms_core.services import notifications
from pms_core.services.assignments import (
    assign_room,
    exchange_rooms,
    move_room,
    set_stop_move,
    unassign_room,
)
from tests.factories import ACTOR_ID, ARRIVAL, ARRIVAL_NOW, DEPARTURE

MID_STAY = date(2026, 3, 11)
MID_STAY_NOW = datetime(2026, 3, 11, 10, 0)


def move(uow, line_id, to_room_id, effective_date, now=ARRIVAL_NOW):
    return move_room(
        uow,
        MoveRoomRequest(
            reservation_room_id=line_id,
            to_room_id=to_room_id,
            effective_date=effective_date,
            reason="Noisy neighbours",
            actor_id=ACTOR_ID,
        ),
        now=now,
    )


def descriptions(transactions, folio_id):
    return [t.description for t in transactions(folio_id)]


@pytest.fixture
def reserved_line(seed):
    """A confirmed one-room reservation in room 101 with its nightly charges posted."""
    guest_id = seed.guest()
    room_101 = seed.room("101")
    room_102 = seed.room("102")
    reservation_id, (line_id,) = seed.reservation(guest_id, [{"room_id": room_101}])
    folio_id = seed.folio(reservation_id, line_id)
    seed.room_charges(folio_id, line_id)
    return reservation_id, line_id, folio_id, room_101, room_102


@pytest.fixture
def in_house_line(seed):
    guest_id = seed.guest()
    room_101 = seed.room("101", status=RoomStatus.OCCUPIED)
    room_102 = seed.room("102")
    reservation_id, (line_id,) = seed.reservation(
        guest_id,
        [
            {
                "room_id": room_101,
                "status": AssignmentStatus.CHECKED_IN,
                "actual_check_in": ARRIVAL_NOW,
            }
        ],
        status=ReservationStatus.CHECKED_IN,
    )
    folio_id = seed.folio(reservation_id, line_id)
    seed.room_charges(folio_id, line_id)
    return reservation_id, line_id, folio_id, room_101, room_102


# =============================================================================
# Assign / unassign
# =============================================================================


@pytest.mark.integration
def test_assign_room_to_unassigned_line(uow, seed):
    guest_id = seed.guest()
    room_id = seed.room("301")
    reservation_id, (line_id,) = seed.reservation(guest_id, [{"room_id": None}])

    result = assign_room(
        uow, AssignRoomRequest(reservation_room_id=line_id, room_id=room_id, actor_id=ACTOR_ID)
    )

    assert result.rooms[0].room_id == room_id


@pytest.mark.integration
def test_assign_room_rejects_other_room_type(uow, seed, fetch):
    guest_id = seed.guest()
    suite = seed.room("901", room_type_id=3)
    _, (line_id,) = seed.reservation(guest_id, [{"room_id": None, "room_type_id": 1}])

    with pytest.raises(ValidationError):
        assign_room(
            uow, AssignRoomRequest(reservation_room_id=line_id, room_id=suite, actor_id=ACTOR_ID)
        )

    assert fetch(ReservationRoom, line_id).room_id is None


@pytest.mark.integration
def test_assign_room_rejects_overlapping_stay(uow, seed, reserved_line):
    """Test that a room held by another stay on overlapping dates is refused."""
    _, holder_line, _, room_101, _ = reserved_line
    guest_id = seed.guest("Grace", "Hopper")
    _, (line_id,) = seed.reservation(
        guest_id, [{"room_id": None}], arrival=MID_STAY, departure=date(2026, 3, 15)
    )

    with pytest.raises(RoomUnavailableError) as exc_info:
        assign_room(
            uow, AssignRoomRequest(reservation_room_id=line_id, room_id=room_101, actor_id=ACTOR_ID)
        )

    assert exc_info.value.details["conflicting_reservation_room_ids"] == [holder_line]


@pytest.mark.integration
def test_assign_room_allows_back_to_back_stays(uow, seed, reserved_line):
    """Test that arriving on another guest's departure day is not a conflict."""
    _, _, _, room_101, _ = reserved_line
    guest_id = seed.guest("Grace", "Hopper")
    _, (line_id,) = seed.reservation(
        guest_id, [{"room_id": None}], arrival=DEPARTURE, departure=date(2026, 3, 15)
    )

    result = assign_room(
        uow, AssignRoomRequest(reservation_room_id=line_id, room_id=room_101, actor_id=ACTOR_ID)
    )

    assert result.rooms[0].room_id == room_101


@pytest.mark.integration
def test_unassign_room_strips_room_number_from_charges(uow, transactions, reserved_line):
    _, line_id, folio_id, _, _ = reserved_line
    assert descriptions(transactions, folio_id)[0] == "Room 101 - Night 1"

    result = unassign_room(uow, UnassignRoomRequest(reservation_room_id=line_id, actor_id=ACTOR_ID))

    assert result.rooms[0].room_id is None
    assert descriptions(transactions, folio_id) == [
        "Room - Night 1",
        "Room - Night 2",
        "Room - Night 3",
    ]


# =============================================================================
# Move
# =============================================================================


@pytest.mark.integration
def test_move_before_check_in_changes_room_in_place(uow, fetch, transactions, reserved_line):
    """Test that a move before check-in never creates a second line."""
    reservation_id, line_id, folio_id, room_101, room_102 = reserved_line

    result = move(uow, line_id, room_102, ARRIVAL)

    assert [room.id for room in result.rooms] == [line_id]
    assert result.rooms[0].room_id == room_102
    assert result.status == ReservationStatus.CONFIRMED
    assert descriptions(transactions, folio_id)[0] == "Room 102 - Night 1"
    assert fetch(Room, room_101).status == RoomStatus.AVAILABLE
    assert fetch(Room, room_102).status == RoomStatus.AVAILABLE


@pytest.mark.integration
def test_move_on_check_in_day_stays_in_place(uow, fetch, in_house_line):
    """Test that moving an in-house guest on the arrival day swaps rooms without a split."""
    _, line_id, _, room_101, room_102 = in_house_line

    result = move(uow, line_id, room_102, ARRIVAL)

    assert len(result.rooms) == 1
    assert fetch(Room, room_101).status == RoomStatus.AVAILABLE
    assert fetch(Room, room_101).housekeeping_status == HousekeepingStatus.DIRTY
    assert fetch(Room, room_102).status == RoomStatus.OCCUPIED


@pytest.mark.integration
def test_move_after_check_in_splits_line(uow, fetch, transactions, notifier, in_house_line):
    """Test that a mid-stay move closes exactly one line and creates exactly one."""
    reservation_id, line_id, folio_id, room_101, room_102 = in_house_line

    result = move(uow, line_id, room_102, MID_STAY, now=MID_STAY_NOW)

    assert result.status == ReservationStatus.CHECKED_IN
    assert len(result.rooms) == 2
    origin, destination = result.rooms
    assert origin.id == line_id
    assert origin.status == AssignmentStatus.CHECKED_OUT
    assert origin.is_split_origin
    assert origin.check_out_date == MID_STAY
    assert origin.nights == 1
    assert destination.status == AssignmentStatus.CHECKED_IN
    assert destination.is_split_destination
    assert destination.moved_from_id == line_id
    assert destination.room_id == room_102
    assert (destination.check_in_date, destination.check_out_date) == (MID_STAY, DEPARTURE)
    assert destination.nights == 2

    rows = transactions(folio_id)
    assert [t.reservation_room_id for t in rows] == [line_id, destination.id, destination.id]
    assert [t.description for t in rows] == [
        "Room 101 - Night 1",
        "Room 102 - Night 2",
        "Room 102 - Night 3",
    ]
    assert fetch(Folio, folio_id).reservation_room_id == destination.id
    assert fetch(Room, room_101).housekeeping_status == HousekeepingStatus.DIRTY
    assert fetch(Room, room_102).status == RoomStatus.OCCUPIED
    assert notifications.ROOM_MOVED_GUEST in notifier.template_codes


@pytest.mark.integration
def test_split_move_shares_discount_by_nights(uow, seed):
    """Test that a stay discount follows the nights on each side of the move."""
    guest_id = seed.guest()
    room_101 = seed.room("101", status=RoomStatus.OCCUPIED)
    room_102 = seed.room("102")
    reservation_id, (line_id,) = seed.reservation(
        guest_id,
        [
            {
                "room_id": room_101,
                "status": AssignmentStatus.CHECKED_IN,
                "actual_check_in": ARRIVAL_NOW,
                "discount_amount": "30",
            }
        ],
        status=ReservationStatus.CHECKED_IN,
    )

    result = move(uow, line_id, room_102, MID_STAY, now=MID_STAY_NOW)

    origin, destination = result.rooms
    assert (origin.discount_amount, origin.net_amount) == (Decimal("10.00"), Decimal("90.00"))
    assert destination.discount_amount == Decimal("20.00")
    assert destination.net_amount == Decimal("180.00")
    assert result.total_amount == Decimal("270.00")


@pytest.mark.integration
def test_split_move_rejects_effective_date_outside_stay(uow, fetch, in_house_line):
    _, line_id, _, _, room_102 = in_house_line

    with pytest.raises(ValidationError):
        move(uow, line_id, room_102, DEPARTURE)

    assert fetch(ReservationRoom, line_id).status == AssignmentStatus.CHECKED_IN


@pytest.mark.integration
def test_move_rejects_occupied_destination(uow, seed, fetch, reserved_line):
    _, line_id, _, room_101, room_102 = reserved_line
    guest_id = seed.guest("Grace", "Hopper")
    seed.reservation(guest_id, [{"room_id": room_102}])

    with pytest.raises(RoomUnavailableError):
        move(uow, line_id, room_102, ARRIVAL)

    assert fetch(ReservationRoom, line_id).room_id == room_101


# =============================================================================
# Exchange
# =============================================================================


@pytest.mark.integration
def test_reservation_swap_exchanges_rooms(uow, seed, fetch, notifier, reserved_line):
    reservation_id, line_id, _, room_101, room_102 = reserved_line
    guest_id = seed.guest("Grace", "Hopper")
    _, (other_line,) = seed.reservation(guest_id, [{"room_id": room_102}])

    result = exchange_rooms(
        uow,
        ExchangeRoomRequest(
            mode=ExchangeMode.RESERVATION_SWAP,
            reservation_room_id=line_id,
            other_reservation_room_id=other_line,
            reason="Families want adjoining rooms",
            actor_id=ACTOR_ID,
        ),
    )

    assert result.id == reservation_id
    assert result.rooms[0].room_id == room_102
    assert fetch(ReservationRoom, other_line).room_id == room_101
    assert notifier.template_codes.count(notifications.ROOM_MOVED_GUEST) == 2


@pytest.mark.integration
def test_reservation_swap_needs_two_reservations(uow, seed):
    guest_id = seed.guest()
    room_a = seed.room("101")
    room_b = seed.room("102")
    _, (line_a, line_b) = seed.reservation(guest_id, [{"room_id": room_a}, {"room_id": room_b}])

    with pytest.raises(ValidationError):
        exchange_rooms(
            uow,
            ExchangeRoomRequest(
                mode=ExchangeMode.RESERVATION_SWAP,
                reservation_room_id=line_a,
                other_reservation_room_id=line_b,
                reason="x",
                actor_id=ACTOR_ID,
            ),
        )


@pytest.mark.integration
def test_upgrade_moves_line_to_new_room_type(uow, seed, fetch, in_house_line):
    """Test that an in-house upgrade updates the room type and both room statuses."""
    _, line_id, _, room_101, _ = in_house_line
    suite = seed.room("901", room_type_id=3, housekeeping_status=HousekeepingStatus.INSPECTED)

    result = exchange_rooms(
        uow,
        ExchangeRoomRequest(
            mode=ExchangeMode.ROOM_UPGRADE_DOWNGRADE,
            reservation_room_id=line_id,
            to_room_id=suite,
            reason="Loyalty upgrade",
            actor_id=ACTOR_ID,
        ),
        now=ARRIVAL_NOW,
    )

    assert result.rooms[0].room_id == suite
    assert result.rooms[0].room_type_id == 3
    assert fetch(Room, suite).status == RoomStatus.OCCUPIED
    assert fetch(Room, room_101).status == RoomStatus.AVAILABLE


@pytest.mark.integration
@pytest.mark.parametrize(
    "status, housekeeping",
    [
        (RoomStatus.AVAILABLE, HousekeepingStatus.DIRTY),
        (RoomStatus.MAINTENANCE, HousekeepingStatus.CLEAN),
    ],
)
def test_upgrade_requires_ready_room(uow, seed, fetch, reserved_line, status, housekeeping):
    _, line_id, _, room_101, _ = reserved_line
    target = seed.room("902", status=status, housekeeping_status=housekeeping)

    with pytest.raises(InvalidStateError):
        exchange_rooms(
            uow,
            ExchangeRoomRequest(
                mode=ExchangeMode.ROOM_UPGRADE_DOWNGRADE,
                reservation_room_id=line_id,
                to_room_id=target,
                reason="Downgrade",
                actor_id=ACTOR_ID,
            ),
        )

    assert fetch(ReservationRoom, line_id).room_id == room_101


# =============================================================================
# Stop-move
# =============================================================================


@pytest.mark.integration
def test_stop_move_flag_is_stored(uow, reserved_line):
    _, line_id, _, _, _ = reserved_line

    result = set_stop_move(
        uow, StopMoveRequest(reservation_room_id=line_id, stop_move=True, actor_id=ACTOR_ID)
    )

    assert result.rooms[0].stop_move is True
