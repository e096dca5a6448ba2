"""Composition root: wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import Engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from marketflow.application.ports import PaymentGateway
from marketflow.infrastructure.config import Settings, get_settings
from marketflow.infrastructure.payment.simulated_gateway import SimulatedPaymentGateway
from marketflow.infrastructure.persistence.sqlalchemy_unit_of_work import (
    SqlAlchemyUnitOfWork,
    build_engine,
    create_schema,
)

_engine: Engine | None = None


def settings() -> Settings:
    return get_settings()


def engine() -> Engine:
    """Create the engine on first use and make sure the schema exists."""
    global _engine
    if _engine is None:
        cfg = settings()
        url = make_url(cfg.database_url)
        if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        _engine = build_engine(
            cfg.database_url,
            echo=cfg.database_echo,
            lock_timeout=cfg.database_lock_timeout_seconds,
        )
        create_schema(_engine)
    return _engine


def reset_engine() -> None:
    """Dispose of the cached engine (tests switch databases between runs)."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


def unit_of_work() -> SqlAlchemyUnitOfWork:
    return SqlAlchemyUnitOfWork(sessionmaker(bind=engine()))


def payment_gateway() -> PaymentGateway:
    return SimulatedPaymentGateway(settings().declined_payment_methods)
