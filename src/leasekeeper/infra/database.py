"""Engine, schema and unit-of-work plumbing for the payment store."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator, NamedTuple

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlmodel import Session, SQLModel, create_engine

from ..config import BaseConfig
from ..errors import StoreUnavailable
from ..logging_config import get_logger

logger = get_logger(__name__)

SessionFactory = Callable[[], ContextManager[Session]]


class PaymentStore(NamedTuple):
    engine: Engine
    session_factory: SessionFactory


def _enable_sqlite_constraints(dbapi_connection, _connection_record) -> None:
    # Payouts and approval requests reference payment_schedule rows.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(config: BaseConfig) -> Engine:
    """Engine for ``config.DATABASE_URL``; SQLite connections enforce foreign keys."""
    engine = create_engine(config.DATABASE_URL, **config.sqlalchemy_engine_options())
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_constraints)
    return engine


def init_database(engine: Engine) -> None:
    """Create the schedule, approval, payout, maintenance and settings tables."""
    from .. import models  # noqa: F401  registers the table classes

    SQLModel.metadata.create_all(engine)
    logger.info(
        "Payment store ready",
        extra={"tables": sorted(SQLModel.metadata.tables), "dialect": engine.dialect.name},
    )


def create_session_factory(engine: Engine) -> SessionFactory:
    """One session per unit of work: committed on exit, rolled back on error.

    Loaded rows stay readable after commit so repositories can convert them
    to domain objects outside the transaction.
    """

    @contextmanager
    def unit_of_work() -> Iterator[Session]:
        session = Session(engine, expire_on_commit=False)
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return unit_of_work


@contextmanager
def store_errors() -> Iterator[None]:
    """Raise ``StoreUnavailable`` for locked databases and dropped connections."""
    try:
        yield
    except DBAPIError as exc:
        if not (isinstance(exc, OperationalError) or exc.connection_invalidated):
            raise
        reason = str(exc.orig or exc)
        logger.warning("Store unavailable", extra={"error": reason})
        raise StoreUnavailable(reason) from exc


def bootstrap_database(config: BaseConfig | None = None) -> PaymentStore:
    """Build the engine, create missing tables and return the store handles."""
    engine = create_db_engine(config or BaseConfig())
    init_database(engine)
    return PaymentStore(engine, create_session_factory(engine))
