"""SQLite engine construction.

Webhook handling and sync routes run on worker threads, so an in-memory
database is pinned to one shared connection; file databases get WAL and a
busy timeout so concurrent deliveries queue instead of failing.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from sqlalchemy import Engine

MEMORY = ":memory:"
BUSY_TIMEOUT_MS = 30_000

# Rentals must point at a real listing and renter
_PRAGMAS = (
    "PRAGMA foreign_keys=ON",
    f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}",
)


def create_db_engine(db_path: str | Path, echo: bool = False) -> Engine:
    path_str = str(db_path)

    if path_str == MEMORY:
        engine = create_engine(
            "sqlite://",
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        pragmas = _PRAGMAS
    else:
        Path(path_str).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            f"sqlite:///{path_str}",
            echo=echo,
            connect_args={"timeout": BUSY_TIMEOUT_MS / 1000},
        )
        pragmas = ("PRAGMA journal_mode=WAL", *_PRAGMAS)

    @event.listens_for(engine, "connect")
    def _apply_pragmas(dbapi_conn: object, _connection_record: object) -> None:
        cursor = dbapi_conn.cursor()  # type: ignore[attr-defined]
        for pragma in pragmas:
            cursor.execute(pragma)
        cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)
