"""
Module: workflow_kernel.db.engine
Responsibility: Process-wide engine and session factory, plus a
    commit-or-rollback ``session_scope`` for callers outside the
    orchestrator.
Architecture position: Kernel > DB.  Imports only logging_config at module
    level; create_tables/drop_tables import the models lazily so every
    table is registered on Base.metadata first.

Invariants enforced:
    - PostgreSQL connections run at READ COMMITTED; the orchestrator takes
      row locks explicitly where it needs serialization.
    - On SQLite, SQLAlchemy emits BEGIN itself (pysqlite's implicit
      transactions are switched off) so ``begin_nested`` savepoints work.
    - ``sqlite:///:memory:`` shares one connection across the process.

Failure modes:
    - RuntimeError from get_engine/get_session/get_session_factory before
      init_engine_from_url().
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from workflow_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."


def _sqlite_engine(url: URL, echo: bool) -> Engine:
    options: dict = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    engine = create_engine(url, echo=echo, **options)

    @event.listens_for(engine, "connect")
    def _manual_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

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
    Create the process-wide engine and session factory.

    Pool arguments apply to server databases only.  Calling this again
    replaces the engine without disposing the old one; use reset_engine()
    first when that matters.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    backend = url.get_backend_name()

    if backend == "sqlite":
        _engine = _sqlite_engine(url, echo)
    else:
        _engine = create_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": backend,
            "pool_size": None if backend == "sqlite" else pool_size,
            "echo": echo,
        },
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers that open one session per thread."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Yield a fresh session; commit when the block exits normally.

    Any exception rolls the session back and is re-raised.  The session is
    always closed.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_scope_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from workflow_kernel.db.base import Base
    import workflow_kernel.models  # noqa: F401  (registers every table)

    return Base.metadata


def create_tables() -> None:
    metadata = _metadata()
    metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(metadata.sorted_tables)})


def drop_tables() -> None:
    """Drop every workflow table.  Test and admin use only."""
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose pooled connections and forget the engine and session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


def is_postgres() -> bool:
    return _engine is not None and _engine.dialect.name == "postgresql"


atexit.register(reset_engine)
