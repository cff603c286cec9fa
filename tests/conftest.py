"""
Shared fixtures: a fresh SQLite database per test, a recording notifier and
a `seed` helper that writes hotel fixtures outside any unit of work.
"""

from __future__ import annotations

import os

# Config requires DATABASE_URL at import time; tests build their own engines
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from typing import Any, Generator  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from pms_core.db.engine import build_engine  # noqa: E402
from pms_core.models.folios import FolioTransaction  # noqa: E402
from pms_core.models.registry import Base  # noqa: E402
from pms_core.services.effects import EffectDispatcher  # noqa: E402
from pms_core.services.guest_summary import GuestSummaryService  # noqa: E402
from pms_core.services.unit_of_work import UnitOfWork  # noqa: E402
from tests.factories import RecordingNotifier, Seeder  # noqa: E402


@pytest.fixture
def db_engine(tmp_path: Any) -> Generator[Engine, None, None]:
    """A throwaway SQLite database file with every table created."""
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'pms.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def dispatcher(
    session_factory: sessionmaker[Session], notifier: RecordingNotifier
) -> EffectDispatcher:
    return EffectDispatcher(
        session_factory=session_factory,
        notifier=notifier,
        guest_summary=GuestSummaryService(session_factory),
    )


@pytest.fixture
def uow(session_factory: sessionmaker[Session], dispatcher: EffectDispatcher) -> UnitOfWork:
    return UnitOfWork(session_factory=session_factory, dispatcher=dispatcher)


@pytest.fixture
def seed(session_factory: sessionmaker[Session]) -> Seeder:
    return Seeder(session_factory)


@pytest.fixture
def fetch(session_factory: sessionmaker[Session]):
    """Load one row by primary key in a short-lived session."""

    def _fetch(model: type, pk: int) -> Any:
        with session_factory() as session:
            return session.get(model, pk)

    return _fetch


@pytest.fixture
def transactions(session_factory: sessionmaker[Session]):
    """List a folio's transactions, ordered by id."""

    def _transactions(folio_id: int) -> list[FolioTransaction]:
        with session_factory() as session:
            stmt = (
                select(FolioTransaction)
                .where(FolioTransaction.folio_id == folio_id)
                .order_by(FolioTransaction.id)
            )
            return list(session.scalars(stmt))

    return _transactions
