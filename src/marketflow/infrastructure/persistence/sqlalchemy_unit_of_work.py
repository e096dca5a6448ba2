"""SQLAlchemy-backed unit of work.

One session per ``with`` block; every repository shares it, so a
handler's reads and writes form a single database transaction.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from marketflow.domain.repository.unit_of_work import UnitOfWork
from marketflow.infrastructure.persistence.sqlalchemy_models import Base
from marketflow.infrastructure.persistence.sqlalchemy_repositories import (
    SqlAlchemyInventoryRepository,
    SqlAlchemyOrderRepository,
    SqlAlchemyProductRepository,
    SqlAlchemyProxyOrderRepository,
    SqlAlchemyStoreRepository,
    translate_errors,
)

logger = logging.getLogger(__name__)


def build_engine(
    database_url: str, echo: bool = False, lock_timeout: float | None = None
) -> Engine:
    """Create an engine; SQLite connections get foreign keys switched on.

    *lock_timeout* is how many seconds a SQLite connection waits on another
    writer before failing with "database is locked"; None keeps the
    driver default.
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every session sees an empty database.
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    elif lock_timeout is not None and database_url.startswith("sqlite"):
        engine = create_engine(
            database_url, echo=echo, connect_args={"timeout": lock_timeout}
        )
    else:
        engine = create_engine(database_url, echo=echo)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_schema(engine: Engine) -> None:
    Base.metadata.create_all(engine)


class SqlAlchemyUnitOfWork(UnitOfWork):

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory
        self._session: Session | None = None

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        self._session = self._session_factory()
        self.stores = SqlAlchemyStoreRepository(self._session)
        self.products = SqlAlchemyProductRepository(self._session)
        self.inventory = SqlAlchemyInventoryRepository(self._session)
        self.orders = SqlAlchemyOrderRepository(self._session)
        self.proxy_orders = SqlAlchemyProxyOrderRepository(self._session)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            logger.debug("Rolling back after %s: %s", exc_type.__name__, exc)
        try:
            super().__exit__(exc_type, exc, tb)
        finally:
            if self._session is not None:
                self._session.close()
                self._session = None

    def commit(self) -> None:
        with translate_errors():
            self._session.commit()

    def rollback(self) -> None:
        if self._session is not None:
            self._session.rollback()
