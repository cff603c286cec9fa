"""SQLAlchemy models for reservations and their room lines."""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from pms_core.config import DEFAULT_CURRENCY
from pms_core.enums import AssignmentStatus, ReservationStatus
from pms_core.models.base import Base

Money = Numeric(12, 2)


class Reservation(Base):
    """
    ORM model for the aggregate booking.

    `status` is never set directly by operations: it is re-derived from the
    statuses of `rooms` after every mutation. Terminal states are soft; rows
    are never deleted. `version` guards against concurrent writers.
    """

    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True)
    hotel_id = Column(Integer, nullable=False, index=True)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=False, index=True)
    reservation_number = Column(String(32), nullable=True, unique=True)
    status = Column(String(20), nullable=False, default=ReservationStatus.PENDING.value)

    arrival_date = Column(Date, nullable=False)
    departure_date = Column(Date, nullable=False)
    check_in_datetime = Column(DateTime, nullable=True)
    check_out_datetime = Column(DateTime, nullable=True)
    number_of_nights = Column(Integer, nullable=False, default=0)

    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    total_amount = Column(Money, nullable=False, default=0)
    final_amount = Column(Money, nullable=False, default=0)
    paid_amount = Column(Money, nullable=False, default=0)
    remaining_amount = Column(Money, nullable=False, default=0)

    cancellation_reason = Column(Text, nullable=True)
    cancellation_fee = Column(Money, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(Integer, nullable=True)
    no_show_reason = Column(Text, nullable=True)
    no_show_fee = Column(Money, nullable=True)
    no_show_at = Column(DateTime, nullable=True)
    no_show_by = Column(Integer, nullable=True)
    void_reason = Column(Text, nullable=True)
    voided_at = Column(DateTime, nullable=True)
    voided_by = Column(Integer, nullable=True)

    created_by = Column(Integer, nullable=True)
    last_modified_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
    version = Column(Integer, nullable=False, default=1)

    guest = relationship("Guest")
    rooms = relationship(
        "ReservationRoom",
        back_populates="reservation",
        order_by="ReservationRoom.id",
    )
    folios = relationship("Folio", back_populates="reservation", order_by="Folio.id")

    __mapper_args__ = {"version_id_col": version}


class ReservationRoom(Base):
    """
    ORM model for one room-stay line within a reservation.

    `room_id` is nullable: a line can be booked against a room type and get a
    physical room later. A room move after check-in never rewrites `room_id`
    on a checked-in line; it closes the line (`is_split_origin`) and opens a
    new one (`is_split_destination`, `moved_from_id`) to keep the history.
    """

    __tablename__ = "reservation_rooms"

    id = Column(Integer, primary_key=True)
    reservation_id = Column(
        Integer, ForeignKey("reservations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True, index=True)
    room_type_id = Column(Integer, nullable=False)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=True)
    status = Column(String(20), nullable=False, default=AssignmentStatus.RESERVED.value)

    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=False)
    check_in_time = Column(Time, nullable=True)
    check_out_time = Column(Time, nullable=True)
    actual_check_in = Column(DateTime, nullable=True)
    actual_check_out = Column(DateTime, nullable=True)
    nights = Column(Integer, nullable=False, default=0)

    room_rate = Column(Money, nullable=False, default=0)  # per night
    tax_amount = Column(Money, nullable=False, default=0)  # per night
    total_room_charges = Column(Money, nullable=False, default=0)
    total_taxes_amount = Column(Money, nullable=False, default=0)
    discount_amount = Column(Money, nullable=False, default=0)
    net_amount = Column(Money, nullable=False, default=0)

    adults = Column(Integer, nullable=False, default=1)
    children = Column(Integer, nullable=False, default=0)
    is_owner = Column(Boolean, nullable=False, default=False)
    stop_move = Column(Boolean, nullable=False, default=False)
    is_split_origin = Column(Boolean, nullable=False, default=False)
    is_split_destination = Column(Boolean, nullable=False, default=False)
    moved_from_id = Column(Integer, ForeignKey("reservation_rooms.id"), nullable=True)

    room_change_reason = Column(Text, nullable=True)
    room_changed_at = Column(DateTime, nullable=True)
    room_changed_by = Column(Integer, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(Integer, nullable=True)
    no_show_reason = Column(Text, nullable=True)
    no_show_at = Column(DateTime, nullable=True)
    no_show_by = Column(Integer, nullable=True)
    void_reason = Column(Text, nullable=True)
    voided_at = Column(DateTime, nullable=True)
    voided_by = Column(Integer, nullable=True)
    checked_in_by = Column(Integer, nullable=True)
    checked_out_by = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    last_modified_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    reservation = relationship("Reservation", back_populates="rooms")
    room = relationship("Room")

    def append_note(self, note: str) -> None:
        self.notes = f"{self.notes}\n{note}" if self.notes else note
