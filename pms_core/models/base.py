from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Column types are kept portable (no dialect-specific types) so the same
    schema runs on PostgreSQL in production and SQLite in tests.
    """

    pass
