"""
Kernel services -- the imperative shell around the pure domain.

Lifecycle and payroll services own their transactions through
``attendance_kernel.db.atomic``; helpers (sequence, audit) only flush.
"""

from attendance_kernel.services.auditor_service import (
    AuditTrace,
    AuditTraceEntry,
    AuditTrailService,
)
from attendance_kernel.services.base import BaseService
from attendance_kernel.services.ingestion_service import AttendanceIngestionService
from attendance_kernel.services.payroll_service import PayrollCalculatorService
from attendance_kernel.services.period_service import PeriodLifecycleService
from attendance_kernel.services.record_service import AttendanceRecordService, Resolution
from attendance_kernel.services.sequence_service import SequenceService

__all__ = [
    "AttendanceIngestionService",
    "AttendanceRecordService",
    "AuditTrace",
    "AuditTraceEntry",
    "AuditTrailService",
    "BaseService",
    "PayrollCalculatorService",
    "PeriodLifecycleService",
    "Resolution",
    "SequenceService",
]
