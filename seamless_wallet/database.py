import logging
from contextlib import contextmanager
from typing import Callable, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from seamless_wallet.config.settings import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_db_engine(database_url: str, echo: bool = False, lock_timeout_ms: int = None) -> Engine:
    """
    Builds an engine for the wallet database.

    SQLite has no row locks, so every transaction is opened with
    BEGIN IMMEDIATE: writers queue on the database write lock for at most
    the busy timeout. On PostgreSQL the account row lock is taken with
    SELECT ... FOR UPDATE (see services.balance).
    """
    if lock_timeout_ms is None:
        lock_timeout_ms = settings.SEAMLESS_LOCK_TIMEOUT_MS

    if not database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    engine = create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": lock_timeout_ms / 1000},
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        # pysqlite emits its own BEGIN lazily; take over transaction control
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = create_db_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_session_factory() -> Callable[[], Session]:
    """FastAPI dependency: the factory the wallet engine opens units of work with."""
    return SessionLocal


@contextmanager
def transaction_scope(session_factory: Callable[[], Session]) -> Iterator[Session]:
    """
    One unit of work: begin, run, commit on success, roll back on any
    failure, always close.
    """
    db = session_factory()
    try:
        yield db
        db.commit()
        logger.debug("Transaction committed successfully")
    except Exception:
        db.rollback()
        logger.debug("Transaction rolled back")
        raise
    finally:
        db.close()
