"""Alembic environment for the sublease schema.

The database URL comes from ``sqlalchemy.url`` when a caller sets it (tests,
``-x`` overrides); otherwise it is derived from ``Settings().db_path`` so
migrations hit the same file the app and CLI use. Batch mode is on because
SQLite cannot ALTER constraints in place.
"""

from __future__ import annotations

from logging.config import fileConfig

from alembic import context

from sublease.config import Settings
from sublease.db.orm import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def _database_path() -> str:
    url = config.get_main_option("sqlalchemy.url")
    if url:
        # sqlite:///relative/path or sqlite:////absolute/path
        return url.replace("sqlite:///", "", 1)
    settings = Settings()
    settings.ensure_data_dir()
    return str(settings.db_path)


def run_migrations_offline() -> None:
    """Emit SQL to stdout without connecting."""
    context.configure(
        url=f"sqlite:///{_database_path()}",
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Migrate through the app's engine factory (WAL, foreign keys on)."""
    from sublease.db.engine import create_db_engine

    engine = create_db_engine(_database_path())
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=True,
        )
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
