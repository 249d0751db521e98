"""
Punches -- raw terminal events and their reduction to daily records.

Responsibility:
    Defines the TerminalPunch input shape and the pure grouping algorithm
    that turns a stream of punches into one AttendanceRecordInput per
    (employee, calendar day).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Clock-in is the earliest CHECK_IN punch of the day; clock-out is the
      latest CHECK_OUT punch.  Break and overtime states never set either.
    - The synthesized transaction id depends only on (employee, day, punch
      count), so fetching the same window twice yields the same ids.
    - Output order is deterministic: by employee id, then day.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from enum import IntEnum

from attendance_kernel.domain.dtos import AttendanceRecordInput


class PunchState(IntEnum):
    """Device-reported punch state codes."""

    CHECK_IN = 0
    CHECK_OUT = 1
    BREAK_OUT = 2
    BREAK_IN = 3
    OVERTIME_IN = 4
    OVERTIME_OUT = 5


@dataclass(frozen=True)
class TerminalPunch:
    """One check-in or check-out event reported by a biometric terminal."""

    external_employee_id: str
    timestamp: datetime
    state: int
    verification_type: int
    device_uid: int | None = None

    @property
    def work_date(self) -> date:
        return self.timestamp.date()


def make_transaction_id(employee_id: str, day: date, punch_count: int) -> str:
    return f"{employee_id}_{day.isoformat()}_{punch_count}"


def group_punches(punches: Iterable[TerminalPunch]) -> list[AttendanceRecordInput]:
    """
    Reduce punches to one record input per employee and calendar day.

    A day with punches but no CHECK_IN (or no CHECK_OUT) yields a record
    with that timestamp missing; it surfaces later as missing data.
    Timestamps must be comparable: callers pass punches through
    ``validation.normalize_punch`` first.
    """
    buckets: dict[tuple[str, date], list[TerminalPunch]] = defaultdict(list)
    for punch in punches:
        buckets[(punch.external_employee_id, punch.work_date)].append(punch)

    inputs: list[AttendanceRecordInput] = []
    for (employee_id, day) in sorted(buckets):
        day_punches = buckets[(employee_id, day)]
        check_ins = [p.timestamp for p in day_punches if p.state == PunchState.CHECK_IN]
        check_outs = [p.timestamp for p in day_punches if p.state == PunchState.CHECK_OUT]
        inputs.append(
            AttendanceRecordInput(
                work_date=day,
                transaction_id=make_transaction_id(employee_id, day, len(day_punches)),
                employee_id=employee_id,
                clock_in=min(check_ins) if check_ins else None,
                clock_out=max(check_outs) if check_outs else None,
            )
        )
    return inputs
