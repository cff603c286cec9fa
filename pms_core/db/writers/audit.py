from typing import Any, Optional, Protocol

from sqlalchemy.orm import Session

from pms_core.models.audit import AuditLog


class AuditLogger(Protocol):
    def log(
        self,
        actor_id: Optional[int],
        action: str,
        entity_type: str,
        entity_id: int,
        hotel_id: Optional[int] = None,
        description: Optional[str] = None,
        meta: Optional[dict[str, Any]] = None,
    ) -> None: ...


class SqlAuditLogger:
    """Writes audit entries into the operation's own transaction."""

    def __init__(self, session: Session):
        self.session = session

    def log(
        self,
        actor_id: Optional[int],
        action: str,
        entity_type: str,
        entity_id: int,
        hotel_id: Optional[int] = None,
        description: Optional[str] = None,
        meta: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Add one audit entry to the session.

        Args:
            actor_id (Optional[int]): User performing the operation.
            action (str): Operation name, e.g. "reservation.check_in".
            entity_type (str): "reservation", "guest", "folio", ...
            entity_id (int): ID of the affected entity.
            hotel_id (Optional[int]): Owning hotel.
            description (Optional[str]): Human-readable summary.
            meta (Optional[dict[str, Any]]): JSON-serializable context.
        """
        self.session.add(
            AuditLog(
                actor_id=actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                hotel_id=hotel_id,
                description=description,
                meta=meta,
            )
        )
