"""Database layer - engine, base classes, and immutability."""

from attendance_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from attendance_kernel.db.engine import (
    atomic,
    create_tables,
    get_engine,
    get_session,
    session_scope,
)
from attendance_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)

__all__ = [
    "atomic",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "register_immutability_listeners",
    "unregister_immutability_listeners",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
