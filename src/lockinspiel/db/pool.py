# src/lockinspiel/db/pool.py
"""Connection pooling for the embedded timesheet store.

A :class:`Database` owns a SQLAlchemy engine over one SQLite file. It may be
shared freely between threads; each thread checks out its own
:class:`PooledDatabase`, which returns its connection to the pool when the
``with`` block exits (or when it is closed).
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path
from types import TracebackType
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.pool import QueuePool

from lockinspiel.core.settings import Settings, settings
from lockinspiel.db.errors import DataDirectoryError, EngineError, PoolError
from lockinspiel.db.migrations import MIGRATIONS, Migration, migrate
from lockinspiel.repositories.timesheet_repo import TimesheetRepository

logger = logging.getLogger(__name__)

APP_NAME = "Lockinspiel"
DB_FILENAME = "db.sqlite3"
CHECKOUT_TIMEOUT_SECONDS = 30.0


def user_data_dir() -> Path:
    """Return the per-user data directory for the platform."""
    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA") or Path.home() / "AppData" / "Roaming"
        return Path(base) / APP_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME
    base = os.environ.get("XDG_DATA_HOME") or Path.home() / ".local" / "share"
    return Path(base) / APP_NAME


def _enable_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class PooledDatabase(TimesheetRepository):
    """A checked-out connection exposing the timesheet store operations."""

    def __enter__(self) -> PooledDatabase:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self.connection.closed

    def close(self) -> None:
        """Return the connection to the pool. Safe to call more than once."""
        self.connection.close()


class Database:
    """Pool of connections to one storage file, migrated on open."""

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        pool_size: int = 5,
        echo: bool = False,
        migrations: Sequence[Migration] = MIGRATIONS,
    ) -> None:
        self.path = Path(path)
        self.engine: Engine = create_engine(
            f"sqlite:///{self.path}",
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=0,
            pool_timeout=CHECKOUT_TIMEOUT_SECONDS,
            connect_args={"check_same_thread": False},
            echo=echo,
        )
        event.listen(self.engine, "connect", _enable_foreign_keys)

        try:
            with self.engine.connect() as connection:
                self.applied_migrations = migrate(connection, migrations)
        except SQLAlchemyError as exc:
            self.engine.dispose()
            raise EngineError(f"Failed to open database {self.path}: {exc}") from exc
        except Exception:
            self.engine.dispose()
            raise

        if self.applied_migrations:
            logger.info(
                "Database %s migrated to version %d", self.path, self.applied_migrations[-1]
            )

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> Database:
        """Open the configured storage file, defaulting to the user data directory."""
        config = config or settings
        path = config.database_path
        if path is None:
            directory = user_data_dir()
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise DataDirectoryError(f"Unable to create data directory {directory}") from exc
            path = directory / DB_FILENAME
        return cls(path, pool_size=config.db_pool_size, echo=config.sql_debug)

    def get(self) -> PooledDatabase:
        """Check out a connection, blocking until one is available."""
        return PooledDatabase(self._checkout())

    def _checkout(self) -> Connection:
        try:
            return self.engine.connect()
        except PoolTimeoutError as exc:
            raise PoolError(f"Timed out waiting for a connection to {self.path}") from exc
        except SQLAlchemyError as exc:
            raise PoolError(f"Failed to connect to {self.path}: {exc}") from exc

    def dispose(self) -> None:
        """Close every pooled connection."""
        self.engine.dispose()
