"""SQLAlchemy model for physical rooms."""

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from pms_core.enums import HousekeepingStatus, RoomStatus
from pms_core.models.base import Base


class Room(Base):
    """
    ORM model for a physical room.

    Owned by the room registry; reservation operations only flip `status` and
    `housekeeping_status` as side effects of check-in, check-out and releases.
    """

    __tablename__ = "rooms"
    __table_args__ = (UniqueConstraint("hotel_id", "room_number"),)

    id = Column(Integer, primary_key=True)
    hotel_id = Column(Integer, nullable=False, index=True)
    room_number = Column(String(20), nullable=False)
    room_type_id = Column(Integer, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=RoomStatus.AVAILABLE.value)
    housekeeping_status = Column(
        String(20), nullable=False, default=HousekeepingStatus.CLEAN.value
    )
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
