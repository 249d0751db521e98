"""ORM models for the attendance kernel."""

from attendance_kernel.models.attendance_period import (
    VALID_TRANSITIONS,
    AttendancePeriod,
    PeriodStatus,
)
from attendance_kernel.models.attendance_record import AttendanceRecord, ReviewStatus
from attendance_kernel.models.audit_entry import AuditAction, AuditEntry
from attendance_kernel.models.payroll import PayrollPeriod, PayrollRecord, PayrollStatus
from attendance_kernel.models.sequence import SequenceCounter
from attendance_kernel.models.staff import Staff

__all__ = [
    "AttendancePeriod",
    "AttendanceRecord",
    "AuditAction",
    "AuditEntry",
    "PayrollPeriod",
    "PayrollRecord",
    "PayrollStatus",
    "PeriodStatus",
    "ReviewStatus",
    "SequenceCounter",
    "VALID_TRANSITIONS",
    "Staff",
]
