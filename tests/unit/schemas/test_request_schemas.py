"""
Unit tests for operation request validation.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from pms_core.enums import ExchangeMode, TransactionCategory, TransactionType
from pms_core.errors import ValidationError
from pms_core.schemas.base import parse_request
from pms_core.schemas.folios import PostTransactionRequest, TransferChargesRequest
from pms_core.schemas.reservations import (
    AmendStayRequest,
    CheckInRequest,
    CreateReservationRequest,
    ExchangeRoomRequest,
    MarkNoShowRequest,
)


def error_messages(exc: ValidationError) -> str:
    return " ".join(err["msg"] for err in exc.details["errors"])


@pytest.mark.unit
def test_unknown_field_is_rejected() -> None:
    """Test that a misspelt key fails validation instead of being ignored."""
    with pytest.raises(ValidationError) as exc_info:
        parse_request(
            CheckInRequest,
            {"reservation_id": 1, "reservation_room_ids": [2], "actor_id": 3, "checkin_at": "x"},
        )

    assert exc_info.value.kind == "validation"
    assert exc_info.value.details["errors"][0]["loc"] == ["checkin_at"]


@pytest.mark.unit
def test_empty_selection_is_rejected() -> None:
    """Test that an operation must target at least one room line."""
    with pytest.raises(ValidationError) as exc_info:
        parse_request(
            CheckInRequest, {"reservation_id": 1, "reservation_room_ids": [], "actor_id": 3}
        )

    assert "at least one room" in error_messages(exc_info.value)


@pytest.mark.unit
def test_duplicate_selection_is_rejected() -> None:
    """Test that repeated room line ids are rejected."""
    with pytest.raises(ValidationError) as exc_info:
        parse_request(
            MarkNoShowRequest,
            {"reservation_id": 1, "reservation_room_ids": [4, 4], "reason": "x", "actor_id": 3},
        )

    assert "duplicates" in error_messages(exc_info.value)


@pytest.mark.unit
def test_negative_fee_is_rejected() -> None:
    """Test that fees cannot be negative."""
    with pytest.raises(ValidationError):
        parse_request(
            MarkNoShowRequest,
            {
                "reservation_id": 1,
                "reservation_room_ids": [4],
                "reason": "did not arrive",
                "fee": "-1",
                "actor_id": 3,
            },
        )


@pytest.mark.unit
def test_requests_are_frozen() -> None:
    """Test that validated requests cannot be mutated."""
    request = parse_request(
        CheckInRequest, {"reservation_id": 1, "reservation_room_ids": [2], "actor_id": 3}
    )

    with pytest.raises(Exception):
        request.reservation_id = 9  # type: ignore[misc]


@pytest.mark.unit
def test_post_transaction_normalizes_type_and_category() -> None:
    """Test that loose spellings of enum values are accepted."""
    request = parse_request(
        PostTransactionRequest,
        {
            "folio_id": 1,
            "transaction_type": "Room-Posting",
            "category": "FOOD_BEVERAGE",
            "amount": "12.50",
            "actor_id": 3,
        },
    )

    assert request.transaction_type == TransactionType.ROOM_POSTING
    assert request.category == TransactionCategory.FOOD_BEVERAGE
    assert request.amount == Decimal("12.50")


@pytest.mark.unit
def test_transfer_between_same_folio_is_rejected() -> None:
    with pytest.raises(ValidationError):
        parse_request(
            TransferChargesRequest,
            {
                "from_folio_id": 5,
                "to_folio_id": 5,
                "amount": "10",
                "description": "split bill",
                "actor_id": 3,
            },
        )


@pytest.mark.unit
def test_amend_stay_requires_a_change() -> None:
    """Test that an amendment with no new dates or room type is rejected."""
    with pytest.raises(ValidationError) as exc_info:
        parse_request(AmendStayRequest, {"reservation_id": 1, "reason": "x", "actor_id": 3})

    assert "nothing to amend" in error_messages(exc_info.value)


@pytest.mark.unit
def test_amend_stay_rejects_inverted_dates() -> None:
    with pytest.raises(ValidationError):
        parse_request(
            AmendStayRequest,
            {
                "reservation_id": 1,
                "new_arrival_date": "2026-03-12",
                "new_departure_date": "2026-03-10",
                "reason": "x",
                "actor_id": 3,
            },
        )


@pytest.mark.unit
def test_create_reservation_rejects_departure_before_arrival() -> None:
    with pytest.raises(ValidationError):
        parse_request(
            CreateReservationRequest,
            {
                "hotel_id": 1,
                "guest_id": 2,
                "arrival_date": "2026-03-12",
                "departure_date": "2026-03-10",
                "actor_id": 3,
            },
        )


@pytest.mark.unit
def test_create_reservation_accepts_day_use() -> None:
    """Test that a same-day stay with check-out after check-in is valid."""
    request = parse_request(
        CreateReservationRequest,
        {
            "hotel_id": 1,
            "guest_id": 2,
            "arrival_date": "2026-03-10",
            "departure_date": "2026-03-10",
            "check_in_time": "09:00",
            "check_out_time": "17:00",
            "rooms": [{"room_type_id": 1, "room_rate": "80"}],
            "actor_id": 3,
        },
    )

    assert request.arrival_date == date(2026, 3, 10)
    assert request.rooms[0].tax_amount == Decimal("0")


@pytest.mark.unit
@pytest.mark.parametrize(
    "payload",
    [
        {"mode": "reservation_swap", "reservation_room_id": 1},
        {"mode": "reservation_swap", "reservation_room_id": 1, "other_reservation_room_id": 1},
        {"mode": "room_upgrade_downgrade", "reservation_room_id": 1},
    ],
)
def test_exchange_requires_mode_specific_fields(payload: dict) -> None:
    """Test that each exchange mode demands its own target."""
    with pytest.raises(ValidationError):
        parse_request(ExchangeRoomRequest, {**payload, "reason": "x", "actor_id": 3})


@pytest.mark.unit
def test_exchange_swap_is_valid_with_other_line() -> None:
    request = parse_request(
        ExchangeRoomRequest,
        {
            "mode": "reservation_swap",
            "reservation_room_id": 1,
            "other_reservation_room_id": 2,
            "reason": "family request",
            "actor_id": 3,
        },
    )

    assert request.mode == ExchangeMode.RESERVATION_SWAP
