from logging.config import fileConfig
from typing import Any

from sqlalchemy import engine_from_config, pool

from alembic import context  # type: ignore[attr-defined]
from pms_core.config import DATABASE_URL
from pms_core.models.registry import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Importing the registry puts every table on Base.metadata
target_metadata = Base.metadata
config.set_main_option("sqlalchemy.url", DATABASE_URL)


def _configure(is_sqlite: bool, **options: Any) -> None:
    # SQLite cannot ALTER most constraints in place; batch mode rebuilds tables
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=is_sqlite,
        **options,
    )


def run_migrations_offline() -> None:
    """Emit the migration SQL for DATABASE_URL without connecting."""
    url = config.get_main_option("sqlalchemy.url")
    _configure(
        url.startswith("sqlite"),
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a live connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        _configure(connection.dialect.name == "sqlite", connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
