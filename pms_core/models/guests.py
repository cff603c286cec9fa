"""SQLAlchemy model for guests and their derived reservation summary."""

from sqlalchemy import Column, Date, DateTime, Integer, String
from sqlalchemy.sql import func

from pms_core.models.base import Base


class Guest(Base):
    """
    ORM model for hotel guests.

    The first/last reservation and arrival columns are derived data, refreshed
    after commit by the guest summary service whenever a reservation changes.
    """

    __tablename__ = "guests"

    id = Column(Integer, primary_key=True)
    hotel_id = Column(Integer, nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    first_reservation_id = Column(Integer, nullable=True)
    last_reservation_id = Column(Integer, nullable=True)
    first_arrival_date = Column(Date, nullable=True)
    last_arrival_date = Column(Date, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)
