"""
Atomic unit of work for reservation and folio operations.

Each public operation runs inside exactly one `UnitOfWork.operation(...)`
block: one session, one transaction. Audit entries are written inside that
transaction. Side effects are collected on the context as plain data and
handed to the effect dispatcher only after a successful commit.

Example:
    >>> uow = UnitOfWork()
    >>> with uow.operation("check_in", actor_id=7) as ctx:
    ...     reservation = ctx.session.get(Reservation, 42)
    ...     ...
    ...     ctx.audit("reservation.check_in", "reservation", 42, hotel_id=1)
    ...     ctx.emit(GuestSummaryEffect(reservation_id=42))
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterator, Optional

import structlog
from pydantic_core import to_jsonable_python
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

import pms_core.models.registry  # noqa: F401
from pms_core.db.writers.audit import AuditLogger, SqlAuditLogger
from pms_core.db.writers.rooms import RoomRegistry, SqlRoomRegistry
from pms_core.errors import ConcurrencyError, PmsError
from pms_core.logging_config import operation_log_context
from pms_core.metrics import operation_duration, operations_total
from pms_core.services.effects import Effect, EffectDispatcher
from pms_core.utils.datetime import resolve_now

logger = structlog.get_logger(__name__)


@dataclass
class OperationContext:
    """Everything an operation needs while its transaction is open."""

    name: str
    session: Session
    now: datetime
    actor_id: Optional[int]
    rooms: RoomRegistry
    audit_logger: AuditLogger
    effects: list[Effect] = field(default_factory=list)

    def audit(
        self,
        action: str,
        entity_type: str,
        entity_id: int,
        hotel_id: Optional[int] = None,
        description: Optional[str] = None,
        meta: Optional[dict[str, Any]] = None,
    ) -> None:
        self.audit_logger.log(
            actor_id=self.actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            hotel_id=hotel_id,
            description=description,
            meta=to_jsonable_python(meta) if meta is not None else None,
        )

    def emit(self, effect: Effect) -> None:
        self.effects.append(effect)


class UnitOfWork:
    """
    Factory for transactional operation scopes.

    Args:
        session_factory: Callable returning a new Session
        dispatcher: Runs collected effects after commit; None disables effects
        room_registry_factory: Builds the room registry for a session
        audit_logger_factory: Builds the audit logger for a session
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], Session]] = None,
        dispatcher: Optional[EffectDispatcher] = None,
        room_registry_factory: Callable[[Session], RoomRegistry] = SqlRoomRegistry,
        audit_logger_factory: Callable[[Session], AuditLogger] = SqlAuditLogger,
    ):
        if session_factory is None:
            from pms_core.db.engine import SessionLocal

            session_factory = SessionLocal
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.room_registry_factory = room_registry_factory
        self.audit_logger_factory = audit_logger_factory

    @contextmanager
    def operation(
        self,
        name: str,
        actor_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Iterator[OperationContext]:
        """
        Open a transaction, yield the context, then commit or roll back.

        Args:
            name: Operation name used for logs, metrics and audit actions
            actor_id: User performing the operation
            now: Hotel-local "current time"; the hotel clock when None

        Raises:
            PmsError: Re-raised unchanged after rollback
            ConcurrencyError: When the store reports a stale row or lock conflict
        """
        started = time.perf_counter()
        session = self.session_factory()
        ctx = OperationContext(
            name=name,
            session=session,
            now=resolve_now(now),
            actor_id=actor_id,
            rooms=self.room_registry_factory(session),
            audit_logger=self.audit_logger_factory(session),
        )

        with operation_log_context(name, actor_id):
            try:
                yield ctx
                session.commit()
            except PmsError as e:
                session.rollback()
                self._finish(name, "rejected", started)
                logger.info("operation_rolled_back", error_kind=e.kind, error=e.message)
                raise
            except (StaleDataError, OperationalError) as e:
                session.rollback()
                self._finish(name, "rejected", started)
                logger.warning("operation_conflict", error=str(e))
                raise ConcurrencyError(
                    f"{name} conflicted with a concurrent change, retry the operation",
                    {"operation": name},
                ) from e
            except Exception:
                session.rollback()
                self._finish(name, "failed", started)
                logger.exception("operation_failed")
                raise
            finally:
                session.close()

            duration = self._finish(name, "committed", started)
            logger.info(
                "operation_committed",
                duration_ms=round(duration * 1000, 2),
                effects=len(ctx.effects),
            )

            if self.dispatcher is not None and ctx.effects:
                self.dispatcher.dispatch(ctx.effects)

    @staticmethod
    def _finish(name: str, outcome: str, started: float) -> float:
        duration = time.perf_counter() - started
        operations_total.labels(operation=name, outcome=outcome).inc()
        operation_duration.labels(operation=name).observe(duration)
        return duration
