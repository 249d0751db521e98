"""
Typed Exception Hierarchy for the Attendance Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the kernel (UI actions, scheduled import jobs, API handlers) must be
able to tell "already imported" apart from "needs employee setup" apart from
"period is locked" without parsing message strings.

Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example - RIGHT way:
    try:
        ingestion.create_record(record_input, actor_id)
    except MappingError as e:
        report_unmapped(e.employee_id)
    except DuplicateError as e:
        count_skipped(e.transaction_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AttendanceKernelError (base)
    |
    +-- IngestionError
    |   +-- ValidationError
    |   +-- MappingError
    |   +-- DuplicateError
    |
    +-- PeriodError
    |   +-- OverlapError
    |   +-- StateConflictError
    |   +-- FinalizationBlockedError
    |   +-- IneligiblePeriodError
    |
    +-- PayrollError
    |   +-- RateConfigurationError
    |
    +-- NotFoundError
    |
    +-- AuthorizationError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Ingestion       | VALIDATION_ERROR            | Malformed record input or punch
                | EMPLOYEE_MAPPING_ERROR      | Unknown or inactive employee id
                | DUPLICATE_RECORD            | (staff, date, transaction) exists
----------------|-----------------------------|-----------------------------------------
Period          | PERIOD_OVERLAP              | Date range intersects another period
                | STATE_CONFLICT              | Operation invalid for period status
                | FINALIZATION_BLOCKED        | Period has unresolved records
                | INELIGIBLE_PERIOD           | Payroll on a non-finalized period
----------------|-----------------------------|-----------------------------------------
Payroll         | RATE_NOT_CONFIGURED         | No pay rate resolvable for employee
----------------|-----------------------------|-----------------------------------------
Lookup          | NOT_FOUND                   | Entity id does not exist
----------------|-----------------------------|-----------------------------------------
Authority       | AUTHORIZATION_DENIED        | Operator role may not perform action
----------------|-----------------------------|-----------------------------------------
Audit           | AUDIT_CHAIN_BROKEN          | Hash chain validation failed
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying audit entry / finalized record

===============================================================================
HANDLING PATTERNS
===============================================================================

Lifecycle operations (create/finalize/unlock/lock, payroll calculation) catch
these at their boundary and return a result object with ``success=False``,
the messages, and ``error_code``.  Ingestion raises them from
``create_record`` and collects them per input in ``create_records_batch``.

===============================================================================
"""


class AttendanceKernelError(Exception):
    """
    Base exception for all attendance kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ATTENDANCE_KERNEL_ERROR"


# Ingestion-related exceptions


class IngestionError(AttendanceKernelError):
    """Base exception for attendance ingestion errors."""

    code: str = "INGESTION_ERROR"


class ValidationError(IngestionError):
    """Record input or terminal punch is malformed."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class MappingError(IngestionError):
    """External employee id does not resolve to an active staff member."""

    code: str = "EMPLOYEE_MAPPING_ERROR"

    def __init__(self, employee_id: str, reason: str):
        self.employee_id = employee_id
        self.reason = reason
        super().__init__(reason)


class DuplicateError(IngestionError):
    """An attendance record with the same natural key already exists."""

    code: str = "DUPLICATE_RECORD"

    def __init__(self, staff_id: str, work_date: str, transaction_id: str):
        self.staff_id = staff_id
        self.work_date = work_date
        self.transaction_id = transaction_id
        super().__init__(
            "Attendance record already exists for this staff member, date, "
            f"and transaction ID ({transaction_id})"
        )


# Period-related exceptions


class PeriodError(AttendanceKernelError):
    """Base exception for attendance period errors."""

    code: str = "PERIOD_ERROR"


class OverlapError(PeriodError):
    """New period date range intersects an existing period."""

    code: str = "PERIOD_OVERLAP"

    def __init__(
        self,
        existing_period_id: str,
        overlap_start: str,
        overlap_end: str,
    ):
        self.existing_period_id = existing_period_id
        self.overlap_start = overlap_start
        self.overlap_end = overlap_end
        super().__init__("Period overlaps with existing period")


class StateConflictError(PeriodError):
    """Operation attempted against an entity in the wrong status."""

    code: str = "STATE_CONFLICT"

    def __init__(self, message: str, current_status: str | None = None):
        self.current_status = current_status
        super().__init__(message)


class FinalizationBlockedError(PeriodError):
    """Records in the period have conflicts, pending approvals or missing data."""

    code: str = "FINALIZATION_BLOCKED"

    def __init__(self, messages: tuple[str, ...]):
        self.messages = messages
        super().__init__("; ".join(messages))


class IneligiblePeriodError(PeriodError):
    """Payroll attempted on a period that is not FINALIZED or LOCKED."""

    code: str = "INELIGIBLE_PERIOD"

    def __init__(self, period_id: str, status: str):
        self.period_id = period_id
        self.status = status
        super().__init__(
            f"Payroll can only be calculated for finalized periods "
            f"(period {period_id} is {status})"
        )


# Payroll-related exceptions


class PayrollError(AttendanceKernelError):
    """Base exception for payroll calculation errors."""

    code: str = "PAYROLL_ERROR"


class RateConfigurationError(PayrollError):
    """No standard rate can be resolved for an employee."""

    code: str = "RATE_NOT_CONFIGURED"

    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__(f"No pay rate configured for employee {employee_id}")


# Lookup


class NotFoundError(AttendanceKernelError):
    """Entity with the given id does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str, message: str | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(message or f"{entity_type} not found: {entity_id}")


# Authority


class AuthorizationError(AttendanceKernelError):
    """Operator role is not permitted to perform the action."""

    code: str = "AUTHORIZATION_DENIED"

    def __init__(self, role: str, action: str, reason: str):
        self.role = role
        self.action = action
        self.reason = reason
        super().__init__(reason)


# Audit-related exceptions


class AuditError(AttendanceKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_entry_id: str, expected_hash: str, actual_hash: str):
        self.audit_entry_id = audit_entry_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_entry_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Immutability-related exceptions


class ImmutabilityError(AttendanceKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Audit entries are immutable from creation; attendance records are
    immutable while their finalized flag is set.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
