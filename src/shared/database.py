"""Database engine lifecycle for the checkout tables.

The engine is owned by a ``Database`` instance that is created, initialized
and disposed explicitly by whoever composes the application. There is no
module-level engine.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

import structlog
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine

from shared.tables import metadata

logger = structlog.get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Database:
    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = url
        self.echo = echo
        self._engine: Engine | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not initialized; call init() first")
        return self._engine

    def init(self) -> "Database":
        if self._engine is not None:
            return self

        connect_args = {}
        if self.url.startswith("sqlite"):
            # Concurrent writers queue on SQLite's database lock instead of failing fast
            connect_args = {"check_same_thread": False, "timeout": 30}

        self._engine = create_engine(
            self.url,
            echo=self.echo,
            future=True,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
        logger.info("Database engine created", dialect=self._engine.dialect.name)
        return self

    def create_schema(self) -> None:
        metadata.create_all(self.engine)
        logger.info("Database schema created", tables=sorted(metadata.tables))

    def drop_schema(self) -> None:
        metadata.drop_all(self.engine)
        logger.info("Database schema dropped", tables=sorted(metadata.tables))

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            logger.info("Database engine disposed")

    @contextmanager
    def transaction(self, conn: Connection | None = None) -> Iterator[Connection]:
        """Yield a connection inside a transaction.

        When ``conn`` is given the caller already owns the transaction and it
        is reused as-is; otherwise a new one is opened and committed on exit.
        """
        if conn is not None:
            yield conn
            return
        with self.engine.begin() as new_conn:
            yield new_conn

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        with self.engine.connect() as conn:
            yield conn
