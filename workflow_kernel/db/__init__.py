"""Database plumbing: declarative base, engine and session management."""

from workflow_kernel.db.base import Base, TZDateTime, UUIDString
from workflow_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "TZDateTime",
    "UUIDString",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "is_postgres",
    "reset_engine",
    "session_scope",
]
