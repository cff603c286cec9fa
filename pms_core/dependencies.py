"""
FastAPI dependency providers.

Routes embedding the reservation services get their unit of work through
`get_unit_of_work`, which tests override with `app.dependency_overrides`.
"""

from __future__ import annotations

from typing import Generator

from sqlalchemy.engine import Engine

from pms_core.db.engine import SessionLocal, engine
from pms_core.services.effects import EffectDispatcher
from pms_core.services.guest_summary import GuestSummaryService
from pms_core.services.notifications import build_notification_dispatcher
from pms_core.services.unit_of_work import UnitOfWork


def build_unit_of_work() -> UnitOfWork:
    """
    Wire a UnitOfWork with the default collaborators: SQL room registry and
    audit logger, webhook (or logging) notifications and the guest summary
    service, all on the configured database.
    """
    dispatcher = EffectDispatcher(
        session_factory=SessionLocal,
        notifier=build_notification_dispatcher(),
        guest_summary=GuestSummaryService(SessionLocal),
    )
    return UnitOfWork(session_factory=SessionLocal, dispatcher=dispatcher)


def get_db_engine() -> Generator[Engine, None, None]:
    """Provide the SQLAlchemy engine singleton."""
    yield engine


def get_unit_of_work() -> Generator[UnitOfWork, None, None]:
    """
    Provide a UnitOfWork for reservation and folio operations.

    Example:
        >>> @router.post("/reservations/{reservation_id}/check-in")
        >>> def check_in_route(
        ...     reservation_id: int,
        ...     body: dict,
        ...     uow: UnitOfWork = Depends(get_unit_of_work),
        ... ):
        ...     request = parse_request(CheckInRequest, {**body, "reservation_id": reservation_id})
        ...     return lifecycle.check_in(uow, request)
    """
    yield build_unit_of_work()
