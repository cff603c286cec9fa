"""
SQLAlchemy engine singleton and session factory.

PostgreSQL gets a production connection pool; SQLite (used by the test suite
and local tooling) gets a plain engine because it does not accept pool sizing
arguments.
"""

from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from pms_core.config import DATABASE_URL


def build_engine(url: str, **overrides: Any) -> Engine:
    """
    Create an engine with pooling suited to the target database.

    Args:
        url: SQLAlchemy database URL
        **overrides: Extra keyword arguments passed to create_engine

    Returns:
        Engine: Configured SQLAlchemy engine
    """
    options: dict[str, Any] = {"future": True, "echo": False}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=10,  # Number of connections to maintain in the pool
            max_overflow=20,  # Additional connections when pool is exhausted
            pool_pre_ping=True,  # Detect stale connections before use
            pool_recycle=3600,  # Recycle connections after 1 hour
        )
    options.update(overrides)
    return create_engine(url, **options)


engine: Engine = build_engine(DATABASE_URL)

# Snapshots are built after commit, so loaded attributes must survive it
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def check_engine_health(target: Engine | None = None) -> bool:
    """
    Check if the database engine is healthy and connections are working.

    Used by the /ready endpoint to verify database connectivity before
    allowing traffic to the service.

    Returns:
        bool: True if database is reachable and healthy, False otherwise
    """
    try:
        with (target or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
