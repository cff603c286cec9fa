"""SQLAlchemy model for audit trail entries."""

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from pms_core.models.base import Base


class AuditLog(Base):
    """
    One audit entry per affected entity per operation.

    Written inside the same transaction as the mutation it describes, so a
    rolled-back operation leaves no audit trail behind.
    """

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    actor_id = Column(Integer, nullable=True)
    action = Column(String(64), nullable=False, index=True)
    entity_type = Column(String(64), nullable=False)
    entity_id = Column(Integer, nullable=False, index=True)
    hotel_id = Column(Integer, nullable=True, index=True)
    description = Column(Text, nullable=True)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
