"""Database layer - engine, base classes, and money rounding."""

from billing_kernel.db.base import UUID, Base, TrackedBase, UTCDateTime, UUIDString
from billing_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from billing_kernel.db.types import round_money

__all__ = [
    "init_engine_from_url",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "reset_engine",
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "UUID",
    "round_money",
]
