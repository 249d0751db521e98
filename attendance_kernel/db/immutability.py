"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications through Python/SQLAlchemy code
    - Fires BEFORE the SQL is sent to the database

Layer 2: db/sql/*.sql (PostgreSQL triggers)
    - Catches raw SQL, bulk UPDATE statements, direct psql access

Both layers enforce the same rules:

Entity            | When Immutable                  | Frozen
------------------|---------------------------------|-----------------------------------
AuditEntry        | ALWAYS (from creation)          | every column, no delete
AttendanceRecord  | While is_finalized stays true   | clock data, date, staff, review;
                  |                                 | no delete

A finalized record leaves the frozen state only through unlock_period,
which clears is_finalized in the same transaction.

Usage:
    register_immutability_listeners()    # once at startup
    unregister_immutability_listeners()  # tests only
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from attendance_kernel.exceptions import ImmutabilityViolationError
from attendance_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

FROZEN_RECORD_FIELDS = frozenset({
    "clock_in",
    "clock_out",
    "total_hours",
    "work_date",
    "staff_id",
    "employee_id",
    "transaction_id",
    "review_status",
})


def _block(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_audit_entry_immutability(mapper, connection, target):
    """Audit entries are always immutable."""
    _block(
        "AuditEntry",
        target.id,
        "UPDATE",
        "Audit entries are immutable and cannot be modified",
    )


def _check_audit_entry_delete(mapper, connection, target):
    _block(
        "AuditEntry",
        target.id,
        "DELETE",
        "Audit entries are immutable and cannot be deleted",
    )


def _record_stays_finalized(target) -> bool:
    """
    True when the record was finalized before this flush and still is.

    A record whose is_finalized flag is being cleared (unlock) is allowed
    through; so is the False -> True transition itself.
    """
    history = get_history(target, "is_finalized")
    if history.deleted:
        return bool(history.deleted[0]) and bool(target.is_finalized)
    if history.added:
        return False
    return bool(target.is_finalized)


def _check_attendance_record_immutability(mapper, connection, target):
    if not _record_stays_finalized(target):
        return

    insp = inspect(target)
    for key in FROZEN_RECORD_FIELDS:
        if insp.attrs[key].history.has_changes():
            _block(
                "AttendanceRecord",
                target.id,
                "UPDATE",
                f"Cannot modify field '{key}' on a finalized attendance record",
                field=key,
            )


def _check_attendance_record_delete(mapper, connection, target):
    if target.is_finalized:
        _block(
            "AttendanceRecord",
            target.id,
            "DELETE",
            "Finalized attendance records cannot be deleted",
        )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call after all models are imported but before any database operations.
    Idempotent.
    """
    from attendance_kernel.models.attendance_record import AttendanceRecord
    from attendance_kernel.models.audit_entry import AuditEntry

    for target, event_name, fn in _listeners(AuditEntry, AttendanceRecord):
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def _listeners(audit_entry_cls, attendance_record_cls):
    return (
        (audit_entry_cls, "before_update", _check_audit_entry_immutability),
        (audit_entry_cls, "before_delete", _check_audit_entry_delete),
        (attendance_record_cls, "before_update", _check_attendance_record_immutability),
        (attendance_record_cls, "before_delete", _check_attendance_record_delete),
    )


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    from attendance_kernel.models.attendance_record import AttendanceRecord
    from attendance_kernel.models.audit_entry import AuditEntry

    for target, event_name, fn in _listeners(AuditEntry, AttendanceRecord):
        _safe_remove_listener(target, event_name, fn)
