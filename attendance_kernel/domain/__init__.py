"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time comes from an injected Clock.
"""

from attendance_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from attendance_kernel.domain.dtos import (
    AttendanceFetchResult,
    AttendancePeriodInfo,
    AttendanceRecordInfo,
    AttendanceRecordInput,
    BatchCreateResult,
    CalculationVerification,
    EditabilityResult,
    EmployeePayrollError,
    FetchError,
    FetchErrorType,
    FetchSummary,
    FinalizationIssue,
    FinalizationIssueType,
    PayrollCalculationResult,
    PayrollPeriodInfo,
    PayrollRecordInfo,
    PeriodOperationResult,
    PeriodValidationResult,
    RecordFailure,
    StaffInfo,
)
from attendance_kernel.domain.payroll import EmployeeRate, PayrollRules, PayrollRunConfig
from attendance_kernel.domain.punches import PunchState, TerminalPunch, group_punches
from attendance_kernel.domain.validation import (
    ValidationIssue,
    validate_punch,
    validate_record_input,
)

__all__ = [
    "AttendanceFetchResult",
    "AttendancePeriodInfo",
    "AttendanceRecordInfo",
    "AttendanceRecordInput",
    "BatchCreateResult",
    "CalculationVerification",
    "Clock",
    "DeterministicClock",
    "EditabilityResult",
    "EmployeePayrollError",
    "EmployeeRate",
    "FetchError",
    "FetchErrorType",
    "FetchSummary",
    "FinalizationIssue",
    "FinalizationIssueType",
    "PayrollCalculationResult",
    "PayrollPeriodInfo",
    "PayrollRecordInfo",
    "PayrollRules",
    "PayrollRunConfig",
    "PeriodOperationResult",
    "PeriodValidationResult",
    "PunchState",
    "RecordFailure",
    "StaffInfo",
    "SystemClock",
    "TerminalPunch",
    "ValidationIssue",
    "group_punches",
    "validate_punch",
    "validate_record_input",
]
