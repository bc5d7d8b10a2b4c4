"""
Process-wide engine and session factory.

PostgreSQL is what the kernel is built for: READ COMMITTED plus explicit
``SELECT ... FOR UPDATE`` on the work order, the ledger row and the audit
counter.  SQLite works for local runs and the default test suite; it has no
row locks and serializes writers on the file instead.

Nothing here may import services, selectors or domain code.  The model
package is imported lazily by create_tables() so every table is registered
on Base.metadata first.
"""

import atexit
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from workshop_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_factory: sessionmaker[Session] | None = None

_NOT_READY = "Engine not initialized. Call init_engine_from_url() first."


def _sqlite_engine(url: str, echo: bool) -> Engine:
    engine = create_engine(url, echo=echo)

    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, _record):
        # autocommit mode on the driver; SQLAlchemy issues BEGIN below
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Build the engine for ``database_url`` and a session factory bound to it.

    The pool settings only apply to server databases.  Calling this again
    swaps in a new engine; the old one is left to reset_engine() or exit.
    """
    global _engine, _factory

    backend = make_url(database_url).get_backend_name()
    if backend == "sqlite":
        engine = _sqlite_engine(database_url, echo)
        pool_info = {}
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )
        pool_info = {"pool_size": pool_size, "max_overflow": max_overflow}

    _engine = engine
    _factory = sessionmaker(bind=engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": backend, "echo": echo, **pool_info})
    return engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_READY)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """The factory itself, for code that opens one session per thread or
    per retry attempt (see services.retry.run_in_transaction)."""
    if _factory is None:
        raise RuntimeError(_NOT_READY)
    return _factory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    One transaction: commit if the block finishes, roll back if it raises.

        with session_scope() as session:
            WorkOrderService(session).approve(work_order_id, actor_id)
    """
    session = get_session()
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from workshop_kernel.db.base import Base
    import workshop_kernel.models  # noqa: F401

    return Base.metadata


def create_tables() -> None:
    """Create every model table and switch on the immutability listeners."""
    from workshop_kernel.db.immutability import register_immutability_listeners

    metadata = _metadata()
    engine = get_engine()
    metadata.create_all(engine)
    register_immutability_listeners()
    logger.info("tables_created", extra={"table_count": len(metadata.tables)})


def drop_tables() -> None:
    """Drop every model table.  Tests and throwaway databases only."""
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    global _engine, _factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _factory = None


atexit.register(lambda: _engine.dispose() if _engine is not None else None)


def is_postgres() -> bool:
    return _engine is not None and _engine.dialect.name == "postgresql"
