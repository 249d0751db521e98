"""
Validation -- pure checks on terminal punches and record inputs.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  "Now" is passed in
    by the caller from its injected Clock.

Failure modes:
    - Returns a tuple of ValidationIssue; an empty tuple means valid.
      Nothing here raises; the ingestion service converts issues into
      ValidationError.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from attendance_kernel.domain.dtos import AttendanceRecordInput
from attendance_kernel.domain.punches import PunchState, TerminalPunch

EMPLOYEE_ID_MAX_LENGTH = 50
EMPLOYEE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+$")
TRANSACTION_ID_MAX_LENGTH = 100
MAX_FUTURE_SKEW = timedelta(days=1)
DEFAULT_MAX_PUNCH_AGE_DAYS = 365


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


def validate_employee_id(employee_id: object) -> ValidationIssue | None:
    if not isinstance(employee_id, str) or not employee_id.strip():
        return ValidationIssue("employee_id", "Employee ID is required")
    if len(employee_id) > EMPLOYEE_ID_MAX_LENGTH:
        return ValidationIssue(
            "employee_id",
            f"Employee ID exceeds {EMPLOYEE_ID_MAX_LENGTH} characters",
        )
    if not EMPLOYEE_ID_PATTERN.match(employee_id):
        return ValidationIssue("employee_id", "Employee ID contains invalid characters")
    return None


def _as_aware(value: datetime, reference: datetime) -> datetime:
    # Naive device timestamps are taken to be in the clock's zone
    if value.tzinfo is None and reference.tzinfo is not None:
        return value.replace(tzinfo=reference.tzinfo)
    return value


def validate_clock_times(
    clock_in: object,
    clock_out: object,
) -> tuple[ValidationIssue, ...]:
    """Each time is a datetime or None; when both are set, both are naive or both aware."""
    issues: list[ValidationIssue] = []
    for name, value in (("clock_in", clock_in), ("clock_out", clock_out)):
        if value is not None and not isinstance(value, datetime):
            issues.append(ValidationIssue(name, f"Expected a datetime, got {type(value).__name__}"))
    if (
        not issues
        and clock_in is not None
        and clock_out is not None
        and (clock_in.tzinfo is None) != (clock_out.tzinfo is None)
    ):
        issues.append(
            ValidationIssue("clock_out", "Clock-in and clock-out mix naive and timezone-aware times")
        )
    return tuple(issues)


def normalize_punch(punch: TerminalPunch, now: datetime) -> TerminalPunch:
    """The punch with a naive timestamp placed in ``now``'s zone; others unchanged."""
    timestamp = _as_aware(punch.timestamp, now)
    if timestamp is punch.timestamp:
        return punch
    return replace(punch, timestamp=timestamp)


def validate_punch(
    punch: TerminalPunch,
    now: datetime,
    max_age_days: int = DEFAULT_MAX_PUNCH_AGE_DAYS,
) -> tuple[ValidationIssue, ...]:
    """Check one raw punch against device and time-window rules."""
    issues: list[ValidationIssue] = []

    employee_issue = validate_employee_id(punch.external_employee_id)
    if employee_issue is not None:
        issues.append(employee_issue)

    valid_states = {s.value for s in PunchState}
    if isinstance(punch.state, bool) or punch.state not in valid_states:
        issues.append(ValidationIssue("state", f"Unknown punch state: {punch.state!r}"))

    if (
        not isinstance(punch.verification_type, int)
        or isinstance(punch.verification_type, bool)
        or punch.verification_type < 0
    ):
        issues.append(
            ValidationIssue(
                "verification_type",
                f"Invalid verification type: {punch.verification_type!r}",
            )
        )

    if not isinstance(punch.timestamp, datetime):
        issues.append(ValidationIssue("timestamp", "Timestamp is required"))
    else:
        timestamp = _as_aware(punch.timestamp, now)
        if timestamp < now - timedelta(days=max_age_days):
            issues.append(
                ValidationIssue(
                    "timestamp",
                    f"Timestamp is older than {max_age_days} days",
                )
            )
        elif timestamp > now + MAX_FUTURE_SKEW:
            issues.append(ValidationIssue("timestamp", "Timestamp is in the future"))

    return tuple(issues)


def validate_record_input(record_input: AttendanceRecordInput) -> tuple[ValidationIssue, ...]:
    """Structural checks on a record input before any database access."""
    issues: list[ValidationIssue] = []

    if record_input.staff_id is None:
        employee_issue = validate_employee_id(record_input.employee_id)
        if employee_issue is not None:
            issues.append(employee_issue)

    if record_input.work_date is None:
        issues.append(ValidationIssue("work_date", "Date is required"))

    transaction_id = record_input.transaction_id
    if not isinstance(transaction_id, str) or not transaction_id.strip():
        issues.append(ValidationIssue("transaction_id", "Transaction ID is required"))
    elif len(transaction_id) > TRANSACTION_ID_MAX_LENGTH:
        issues.append(
            ValidationIssue(
                "transaction_id",
                f"Transaction ID exceeds {TRANSACTION_ID_MAX_LENGTH} characters",
            )
        )

    issues.extend(validate_clock_times(record_input.clock_in, record_input.clock_out))

    # A clock-out before clock-in is accepted and yields zero hours.
    return tuple(issues)
