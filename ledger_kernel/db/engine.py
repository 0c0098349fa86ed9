"""
Module: ledger_kernel.db.engine
Responsibility: Builds engines for the ledger database and holds the
    process-wide engine and session factory used by scripts and single
    process installs.  Tests and services may build their own engine with
    ``create_engine_from_url`` and never touch the module state.
Architecture position: Kernel > DB.  MUST NOT import from services/ or outer
    layers, except that create_tables/drop_tables import the ORM registry
    so Base.metadata holds every table.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED; invoice writers serialize on
      SELECT ... FOR UPDATE of the invoice row.
    - SQLite opens every transaction with BEGIN IMMEDIATE, so the first
      writer holds the database write lock until it commits.  That gives
      the same per-invoice serialization, coarser, and lets SAVEPOINT work
      under pysqlite.

Failure modes:
    - RuntimeError from get_engine/get_session/get_session_factory before
      init_engine_from_url().
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _sqlite_engine(database_url: str, echo: bool, busy_timeout: float) -> Engine:
    engine = create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": busy_timeout},
    )

    @event.listens_for(engine, "connect")
    def _manual_transactions(dbapi_connection, connection_record):
        # pysqlite would otherwise defer BEGIN until the first write
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def create_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    sqlite_busy_timeout: float = 30.0,
) -> Engine:
    """Engine for ``database_url``; module state is left alone."""
    if database_url.startswith("sqlite"):
        return _sqlite_engine(database_url, echo, sqlite_busy_timeout)
    return create_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(database_url: str, echo: bool = False, **kwargs) -> Engine:
    """Install the process-wide engine, disposing of any previous one."""
    global _engine, _session_factory

    reset_engine()
    _engine = create_engine_from_url(database_url, echo=echo, **kwargs)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name})
    return _engine


def init_engine_from_settings(settings, echo: bool = False) -> Engine:
    """``init_engine_from_url`` with ``settings.database_url`` (a LedgerSettings)."""
    return init_engine_from_url(settings.database_url, echo=echo)


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """The process-wide factory; pass it to ``unit_of_work()``."""
    if _session_factory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _session_factory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Session that commits on clean exit and rolls back on error.

    For ledger mutations prefer ``unit_of_work()``, which also translates
    stale writes into OptimisticLockError.
    """
    with get_session() as session:
        try:
            with session.begin():
                yield session
        except Exception:
            logger.warning("transaction_rolled_back", exc_info=True)
            raise


def create_tables(engine: Engine | None = None) -> None:
    """Create every ledger table that does not exist yet."""
    from ledger_kernel.db.base import Base
    from ledger_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """Drop every ledger table.  Tests and local resets only."""
    from ledger_kernel.db.base import Base
    from ledger_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose of the process-wide engine and forget its session factory."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
