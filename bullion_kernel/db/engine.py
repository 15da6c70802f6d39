"""
Module: bullion_kernel.db.engine
Responsibility: The process-wide SQLAlchemy engine and session factory, and
    the ``session_scope`` transaction wrapper every posting attempt runs in.
Architecture position: Kernel > DB.  Imports models only inside
    create_tables/drop_tables, so that every table is registered first.

PostgreSQL is the production backend.  It runs at READ COMMITTED, and the
services take explicit ``SELECT ... FOR UPDATE`` locks on party accounts,
cash accounts, voucher masters and sequence counters.  SQLite serves tests
and local runs; an in-memory database is shared through StaticPool so that
every session sees the same tables.
"""

import atexit
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from bullion_kernel.logging_config import configure_logging, get_logger
from bullion_kernel.settings import DatabaseSettings, get_settings

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "No database engine: call init_engine_from_settings() or init_engine_from_url()"


def _engine_options(database_url: str, pool_size: int, max_overflow: int) -> dict:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        options: dict = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        return options
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 1800,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
) -> Engine:
    """
    (Re)create the module engine and session factory for ``database_url``.

    Sessions do not expire on commit, so DTOs built after a
    ``session_scope`` exits can still read the committed attributes.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = create_engine(
        database_url, echo=echo, **_engine_options(database_url, pool_size, max_overflow)
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def init_engine_from_settings(settings: DatabaseSettings | None = None) -> Engine:
    """Initialize from the ``database`` settings section."""
    database = settings or get_settings().database
    return init_engine_from_url(
        database.url,
        echo=database.echo,
        pool_size=database.pool_size,
        max_overflow=database.max_overflow,
    )


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """The factory TransactionOrchestrator opens one session per attempt from."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope(
    session_factory: sessionmaker[Session] | None = None,
) -> Iterator[Session]:
    """
    Run a block in one transaction.

    Commits when the block completes; on any exception rolls back, logs a
    warning and re-raises.  The session is always closed.
    """
    session = (session_factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from bullion_kernel.db.base import Base

    # Register every table, including sequence_counters
    import bullion_kernel.models  # noqa: F401
    import bullion_kernel.services.sequence_service  # noqa: F401

    return Base.metadata


def create_tables() -> None:
    _metadata().create_all(get_engine())


def drop_tables() -> None:
    """Drop every kernel table.  Tests only."""
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


def is_postgres() -> bool:
    return _engine is not None and _engine.dialect.name == "postgresql"


atexit.register(reset_engine)
