from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator, model_validator

from pms_core.enums import AssignmentStatus, ExchangeMode, ReservationStatus
from pms_core.normalizers.statuses import normalize_status
from pms_core.schemas.base import RequestModel, SnapshotModel
from pms_core.schemas.folios import FolioSnapshot


class RoomSelectionRequest(RequestModel):
    """Base for operations that target a subset of a reservation's room lines."""

    reservation_id: int = Field(..., gt=0)
    reservation_room_ids: list[int]
    actor_id: int

    @field_validator("reservation_room_ids")
    @classmethod
    def check_selection(cls, ids: list[int]) -> list[int]:
        if not ids:
            raise ValueError("at least one room must be selected")
        if len(set(ids)) != len(ids):
            raise ValueError("room selection contains duplicates")
        return ids


# =============================================================================
# Booking
# =============================================================================


class RoomLineRequest(RequestModel):
    """One requested room-stay. Rates are already computed upstream."""

    room_type_id: int = Field(..., gt=0)
    room_id: Optional[int] = None
    room_rate: Decimal = Field(..., ge=0, description="Per-night rate")
    tax_amount: Decimal = Field(Decimal("0"), ge=0, description="Per-night tax")
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    adults: int = Field(1, ge=1)
    children: int = Field(0, ge=0)


class CreateReservationRequest(RequestModel):
    hotel_id: int = Field(..., gt=0)
    guest_id: int = Field(..., gt=0)
    arrival_date: date
    departure_date: date
    check_in_time: time = time(14, 0)
    check_out_time: time = time(12, 0)
    rooms: list[RoomLineRequest] = []
    confirm: bool = False
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    actor_id: int

    @model_validator(mode="after")
    def check_dates(self) -> "CreateReservationRequest":
        if self.departure_date < self.arrival_date:
            raise ValueError("departure_date must not be before arrival_date")
        if self.departure_date == self.arrival_date and self.check_out_time <= self.check_in_time:
            raise ValueError("day-use check_out_time must be after check_in_time")
        return self


class ConfirmReservationRequest(RequestModel):
    reservation_id: int = Field(..., gt=0)
    actor_id: int


# =============================================================================
# Lifecycle
# =============================================================================


class CheckInRequest(RoomSelectionRequest):
    check_in_at: Optional[datetime] = Field(
        None, description="Overrides the scheduled check-in time"
    )


class CheckOutRequest(RoomSelectionRequest):
    pass


class UndoCheckInRequest(RoomSelectionRequest):
    pass


class UndoCheckOutRequest(RoomSelectionRequest):
    pass


class CancelReservationRequest(RoomSelectionRequest):
    reason: str = Field(..., min_length=1)
    fee: Decimal = Field(Decimal("0"), ge=0)


class MarkNoShowRequest(RoomSelectionRequest):
    reason: str = Field(..., min_length=1)
    fee: Decimal = Field(Decimal("0"), ge=0, description="Fee posted per affected room")


class VoidReservationRequest(RoomSelectionRequest):
    reason: str = Field(..., min_length=1)


class AmendStayRequest(RequestModel):
    """
    Schema for a stay amendment. With no `reservation_room_ids` every active
    line of the reservation is amended.
    """

    reservation_id: int = Field(..., gt=0)
    reservation_room_ids: Optional[list[int]] = None
    new_arrival_date: Optional[date] = None
    new_departure_date: Optional[date] = None
    new_room_type_id: Optional[int] = Field(None, gt=0)
    reason: str = Field(..., min_length=1)
    actor_id: int

    @field_validator("reservation_room_ids")
    @classmethod
    def check_selection(cls, ids: Optional[list[int]]) -> Optional[list[int]]:
        if ids is None:
            return ids
        return RoomSelectionRequest.check_selection(ids)

    @model_validator(mode="after")
    def check_has_change(self) -> "AmendStayRequest":
        if (
            self.new_arrival_date is None
            and self.new_departure_date is None
            and self.new_room_type_id is None
        ):
            raise ValueError("nothing to amend")
        if (
            self.new_arrival_date is not None
            and self.new_departure_date is not None
            and self.new_departure_date < self.new_arrival_date
        ):
            raise ValueError("new_departure_date must not be before new_arrival_date")
        return self


# =============================================================================
# Room assignment
# =============================================================================


class AssignRoomRequest(RequestModel):
    reservation_room_id: int = Field(..., gt=0)
    room_id: int = Field(..., gt=0)
    actor_id: int


class UnassignRoomRequest(RequestModel):
    reservation_room_id: int = Field(..., gt=0)
    actor_id: int


class MoveRoomRequest(RequestModel):
    reservation_room_id: int = Field(..., gt=0)
    to_room_id: int = Field(..., gt=0)
    effective_date: date
    reason: str = Field(..., min_length=1)
    actor_id: int


class ExchangeRoomRequest(RequestModel):
    mode: ExchangeMode
    reservation_room_id: int = Field(..., gt=0)
    other_reservation_room_id: Optional[int] = Field(None, gt=0)
    to_room_id: Optional[int] = Field(None, gt=0)
    reason: str = Field(..., min_length=1)
    actor_id: int

    @model_validator(mode="after")
    def check_mode_fields(self) -> "ExchangeRoomRequest":
        if self.mode == ExchangeMode.RESERVATION_SWAP:
            if self.other_reservation_room_id is None:
                raise ValueError("reservation_swap requires other_reservation_room_id")
            if self.other_reservation_room_id == self.reservation_room_id:
                raise ValueError("cannot swap a room line with itself")
        elif self.to_room_id is None:
            raise ValueError("room_upgrade_downgrade requires to_room_id")
        return self


class StopMoveRequest(RequestModel):
    reservation_room_id: int = Field(..., gt=0)
    stop_move: bool
    actor_id: int


# =============================================================================
# Snapshots
# =============================================================================


class AssignmentSnapshot(SnapshotModel):
    id: int
    reservation_id: int
    room_id: Optional[int]
    room_type_id: int
    status: AssignmentStatus
    check_in_date: date
    check_out_date: date
    actual_check_in: Optional[datetime]
    actual_check_out: Optional[datetime]
    nights: int
    room_rate: Decimal
    total_room_charges: Decimal
    total_taxes_amount: Decimal
    discount_amount: Decimal
    net_amount: Decimal
    is_owner: bool
    stop_move: bool
    is_split_origin: bool
    is_split_destination: bool
    moved_from_id: Optional[int]

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, value: object) -> AssignmentStatus:
        return normalize_status(value, AssignmentStatus)


class ReservationSnapshot(SnapshotModel):
    """Reservation state as committed by an operation."""

    id: int
    hotel_id: int
    guest_id: int
    status: ReservationStatus
    arrival_date: date
    departure_date: date
    number_of_nights: int
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    rooms: list[AssignmentSnapshot] = []
    folios: list[FolioSnapshot] = []

    @field_validator("status", mode="before")
    @classmethod
    def coerce_status(cls, value: object) -> ReservationStatus:
        return normalize_status(value, ReservationStatus)
