"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the kernel boundary:
    record inputs, record/period/payroll snapshots, and the result objects
    returned by ingestion, lifecycle and payroll operations.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  from_model() class methods exist as boundary
    converters but are only invoked from the service layer.

Invariants enforced:
    - Every DTO is a frozen dataclass; collections are tuples.
    - Services return DTOs, never ORM entities.
    - to_dict() yields JSON-safe primitives (UUID/date/Decimal as strings)
      for API layers.

Failure modes:
    - ValueError on AttendanceRecordInput with neither employee_id nor staff_id.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from attendance_kernel.models.attendance_period import (
        AttendancePeriod as AttendancePeriodModel,
    )
    from attendance_kernel.models.attendance_record import (
        AttendanceRecord as AttendanceRecordModel,
    )
    from attendance_kernel.models.payroll import (
        PayrollPeriod as PayrollPeriodModel,
    )
    from attendance_kernel.models.payroll import (
        PayrollRecord as PayrollRecordModel,
    )
    from attendance_kernel.models.staff import Staff as StaffModel


def _to_primitive(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_to_primitive(v) for v in value]
    if isinstance(value, dict):
        return {k: _to_primitive(v) for k, v in value.items()}
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


class _Serializable:
    """Mixin giving frozen dataclasses a JSON-safe to_dict()."""

    def to_dict(self) -> dict[str, Any]:
        return {f.name: _to_primitive(getattr(self, f.name)) for f in fields(self)}


# ---------------------------------------------------------------------------
# Staff / attendance records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StaffInfo(_Serializable):
    id: UUID
    employee_id: str
    name: str
    department: str | None
    is_active: bool

    @classmethod
    def from_model(cls, model: StaffModel) -> StaffInfo:
        return cls(
            id=model.id,
            employee_id=model.employee_id,
            name=model.name,
            department=model.department,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class AttendanceRecordInput(_Serializable):
    """
    Input to AttendanceIngestionService.create_record.

    Contract:
        The staff member is identified either by the terminal's external
        ``employee_id`` or directly by ``staff_id``.  ``work_date`` and
        ``transaction_id`` form the natural key together with the staff.
    """

    work_date: date
    transaction_id: str
    employee_id: str | None = None
    staff_id: UUID | None = None
    clock_in: datetime | None = None
    clock_out: datetime | None = None

    def __post_init__(self) -> None:
        if self.employee_id is None and self.staff_id is None:
            raise ValueError("AttendanceRecordInput requires employee_id or staff_id")


@dataclass(frozen=True)
class AttendanceRecordInfo(_Serializable):
    """Immutable snapshot of one attendance record."""

    id: UUID
    staff_id: UUID
    employee_id: str
    work_date: date
    transaction_id: str
    clock_in: datetime | None
    clock_out: datetime | None
    total_hours: Decimal | None
    fetched_at: datetime
    fetched_by_id: UUID
    is_finalized: bool
    period_id: UUID | None
    review_status: str

    @classmethod
    def from_model(cls, model: AttendanceRecordModel) -> AttendanceRecordInfo:
        return cls(
            id=model.id,
            staff_id=model.staff_id,
            employee_id=model.employee_id,
            work_date=model.work_date,
            transaction_id=model.transaction_id,
            clock_in=model.clock_in,
            clock_out=model.clock_out,
            total_hours=model.total_hours,
            fetched_at=model.fetched_at,
            fetched_by_id=model.fetched_by_id,
            is_finalized=model.is_finalized,
            period_id=model.period_id,
            review_status=str(getattr(model.review_status, "value", model.review_status)),
        )


@dataclass(frozen=True)
class RecordFailure(_Serializable):
    """One input that could not be created, with the reason and error code."""

    input: AttendanceRecordInput
    reason: str
    error_type: str


@dataclass(frozen=True)
class BatchCreateResult(_Serializable):
    """Partial-success outcome of create_records_batch."""

    created: tuple[AttendanceRecordInfo, ...] = field(default_factory=tuple)
    errors: tuple[RecordFailure, ...] = field(default_factory=tuple)

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def error_count(self) -> int:
        return len(self.errors)


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AttendancePeriodInfo(_Serializable):
    """Immutable snapshot of an attendance period."""

    id: UUID
    start_date: date
    end_date: date
    status: str
    finalized_by_id: UUID | None = None
    finalized_at: datetime | None = None
    unlock_reason: str | None = None
    unlocked_by_id: UUID | None = None
    unlocked_at: datetime | None = None
    locked_at: datetime | None = None

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date

    @classmethod
    def from_model(cls, model: AttendancePeriodModel) -> AttendancePeriodInfo:
        return cls(
            id=model.id,
            start_date=model.start_date,
            end_date=model.end_date,
            status=str(getattr(model.status, "value", model.status)),
            finalized_by_id=model.finalized_by_id,
            finalized_at=model.finalized_at,
            unlock_reason=model.unlock_reason,
            unlocked_by_id=model.unlocked_by_id,
            unlocked_at=model.unlocked_at,
            locked_at=model.locked_at,
        )


@dataclass(frozen=True)
class EditabilityResult(_Serializable):
    can_edit: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.can_edit


class FinalizationIssueType(str, Enum):
    """Independent reasons a period cannot be finalized."""

    UNRESOLVED_CONFLICTS = "unresolved_conflicts"
    PENDING_APPROVALS = "pending_approvals"
    MISSING_DATA = "missing_data"


_ISSUE_MESSAGES = {
    FinalizationIssueType.UNRESOLVED_CONFLICTS: "records have unresolved conflicts",
    FinalizationIssueType.PENDING_APPROVALS: "records have pending approvals",
    FinalizationIssueType.MISSING_DATA: "records have missing clock data",
}


@dataclass(frozen=True)
class FinalizationIssue(_Serializable):
    type: FinalizationIssueType
    count: int

    @property
    def message(self) -> str:
        return f"{self.count} {_ISSUE_MESSAGES[self.type]}"


@dataclass(frozen=True)
class PeriodValidationResult(_Serializable):
    """
    Outcome of validate_period_for_finalization.

    Guarantees:
        - can_finalize is True only when issues is empty.
        - Each issue type appears at most once, only with a nonzero count.
    """

    can_finalize: bool
    issues: tuple[FinalizationIssue, ...] = field(default_factory=tuple)

    @property
    def messages(self) -> tuple[str, ...]:
        return tuple(issue.message for issue in self.issues)


@dataclass(frozen=True)
class PeriodOperationResult(_Serializable):
    """
    Outcome of a lifecycle operation (create/finalize/unlock/lock).

    Guarantees:
        - success=False implies errors is non-empty and error_code is set.
        - period is the post-operation snapshot on success, or the unchanged
          period (when one was found) on failure.
    """

    success: bool
    period: AttendancePeriodInfo | None = None
    affected_record_count: int = 0
    errors: tuple[str, ...] = field(default_factory=tuple)
    error_code: str | None = None

    @classmethod
    def ok(
        cls,
        period: AttendancePeriodInfo,
        affected_record_count: int = 0,
    ) -> PeriodOperationResult:
        return cls(
            success=True,
            period=period,
            affected_record_count=affected_record_count,
        )

    @classmethod
    def failed(
        cls,
        error_code: str,
        *errors: str,
        period: AttendancePeriodInfo | None = None,
    ) -> PeriodOperationResult:
        return cls(
            success=False,
            period=period,
            errors=tuple(errors),
            error_code=error_code,
        )


# ---------------------------------------------------------------------------
# Payroll
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PayrollRecordInfo(_Serializable):
    """One employee's computed pay for a payroll period."""

    id: UUID
    payroll_period_id: UUID
    staff_id: UUID
    employee_id: str
    standard_hours: Decimal
    overtime_hours: Decimal
    standard_rate: Decimal
    overtime_rate: Decimal
    gross_pay: Decimal
    calculation_hash: str

    @property
    def total_hours(self) -> Decimal:
        return self.standard_hours + self.overtime_hours

    @classmethod
    def from_model(cls, model: PayrollRecordModel) -> PayrollRecordInfo:
        return cls(
            id=model.id,
            payroll_period_id=model.payroll_period_id,
            staff_id=model.staff_id,
            employee_id=model.employee_id,
            standard_hours=model.standard_hours,
            overtime_hours=model.overtime_hours,
            standard_rate=model.standard_rate,
            overtime_rate=model.overtime_rate,
            gross_pay=model.gross_pay,
            calculation_hash=model.calculation_hash,
        )


@dataclass(frozen=True)
class PayrollPeriodInfo(_Serializable):
    id: UUID
    attendance_period_id: UUID
    start_date: date
    end_date: date
    status: str
    calculated_by_id: UUID | None
    calculated_at: datetime | None
    total_standard_hours: Decimal
    total_overtime_hours: Decimal
    total_amount: Decimal

    @classmethod
    def from_model(cls, model: PayrollPeriodModel) -> PayrollPeriodInfo:
        return cls(
            id=model.id,
            attendance_period_id=model.attendance_period_id,
            start_date=model.start_date,
            end_date=model.end_date,
            status=str(getattr(model.status, "value", model.status)),
            calculated_by_id=model.calculated_by_id,
            calculated_at=model.calculated_at,
            total_standard_hours=model.total_standard_hours,
            total_overtime_hours=model.total_overtime_hours,
            total_amount=model.total_amount,
        )


@dataclass(frozen=True)
class EmployeePayrollError(_Serializable):
    """Per-employee failure that did not abort the rest of the run."""

    employee_id: str
    message: str
    code: str


@dataclass(frozen=True)
class PayrollCalculationResult(_Serializable):
    success: bool
    payroll_period: PayrollPeriodInfo | None = None
    records: tuple[PayrollRecordInfo, ...] = field(default_factory=tuple)
    employee_errors: tuple[EmployeePayrollError, ...] = field(default_factory=tuple)
    errors: tuple[str, ...] = field(default_factory=tuple)
    error_code: str | None = None

    @classmethod
    def failed(cls, error_code: str, *errors: str) -> PayrollCalculationResult:
        return cls(success=False, errors=tuple(errors), error_code=error_code)


@dataclass(frozen=True)
class CalculationVerification(_Serializable):
    """Replay check of a stored payroll record."""

    payroll_record_id: UUID
    is_valid: bool
    stored_hash: str
    computed_hash: str
    mismatches: tuple[str, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Terminal fetch
# ---------------------------------------------------------------------------


class FetchErrorType(str, Enum):
    TERMINAL_COMMUNICATION = "terminal_communication"
    EMPLOYEE_MAPPING = "employee_mapping"
    VALIDATION = "validation"
    DUPLICATE = "duplicate"
    DATABASE = "database"


@dataclass(frozen=True)
class FetchError(_Serializable):
    type: FetchErrorType
    message: str
    employee_id: str | None = None
    transaction_id: str | None = None


@dataclass(frozen=True)
class FetchSummary(_Serializable):
    start_date: date
    end_date: date
    fetched_at: datetime
    fetched_by_id: UUID


@dataclass(frozen=True)
class AttendanceFetchResult(_Serializable):
    """
    Tally of one terminal fetch.

    Guarantees:
        - total_records_processed counts raw punches inside the window.
        - records_skipped counts duplicates only.
        - records_with_errors counts every other failed record or punch;
          mapping and validation failures also have their own counters.
    """

    total_records_processed: int
    records_created: int
    records_skipped: int
    records_with_errors: int
    employee_mapping_errors: int
    validation_errors: int
    records: tuple[AttendanceRecordInfo, ...]
    errors: tuple[FetchError, ...]
    summary: FetchSummary

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
