"""
Overtime Engine (``attendance_engines.overtime``).

Responsibility
--------------
Split per-day worked hours into standard hours and overtime hours under a
daily threshold followed by a weekly threshold.

Architecture position
---------------------
**Engines layer** -- pure functional core.  ZERO I/O, ZERO database,
ZERO clock reads.  May only import from ``attendance_kernel.domain.values``.

Rules
-----
1. Daily: hours above ``daily_threshold`` on a day are daily overtime.
2. Weekly: the remaining standard hours accumulate in date order within a
   calendar week beginning on ``week_start``.  The part of a day's standard
   hours that carries the running total past ``weekly_threshold`` becomes
   weekly overtime.
3. An hour is counted once: ``standard + daily_ot + weekly_ot == total``
   for every day.

Either threshold may be None to disable that rule.

Failure modes
-------------
* Raises ``ValueError`` for negative hours or a non-positive threshold.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from attendance_engines.tracer import traced_engine
from attendance_kernel.domain.values import ZERO, round_hours

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class DaySplit:
    work_date: date
    total_hours: Decimal
    standard_hours: Decimal
    daily_overtime: Decimal
    weekly_overtime: Decimal

    @property
    def overtime_hours(self) -> Decimal:
        return self.daily_overtime + self.weekly_overtime

    def to_dict(self) -> dict[str, str]:
        return {
            "work_date": self.work_date.isoformat(),
            "total_hours": str(self.total_hours),
            "standard_hours": str(self.standard_hours),
            "daily_overtime": str(self.daily_overtime),
            "weekly_overtime": str(self.weekly_overtime),
        }


@dataclass(frozen=True)
class OvertimeSplit:
    days: tuple[DaySplit, ...]
    standard_hours: Decimal
    overtime_hours: Decimal

    @property
    def total_hours(self) -> Decimal:
        return self.standard_hours + self.overtime_hours


def week_start_index(week_start: str) -> int:
    """Map a weekday name to ``date.weekday()`` numbering (Monday == 0)."""
    try:
        return WEEKDAYS.index(week_start.lower())
    except ValueError:
        raise ValueError(f"Unknown week_start: {week_start!r}") from None


def week_of(day: date, week_start: int) -> date:
    """First day of the calendar week containing ``day``."""
    return day - timedelta(days=(day.weekday() - week_start) % 7)


def _check_threshold(name: str, value: Decimal | None) -> None:
    if value is not None and value <= ZERO:
        raise ValueError(f"{name} must be positive, got {value}")


def _summary(split: OvertimeSplit) -> dict[str, Any]:
    return {
        "day_count": len(split.days),
        "standard_hours": split.standard_hours,
        "overtime_hours": split.overtime_hours,
    }


@traced_engine(
    "overtime",
    "1.0",
    fingerprint_fields=("days", "daily_threshold", "weekly_threshold", "week_start"),
    summarize=_summary,
)
def split_overtime(
    *,
    days: Mapping[date, Decimal],
    daily_threshold: Decimal | None,
    weekly_threshold: Decimal | None,
    week_start: str = "monday",
) -> OvertimeSplit:
    """Apply the daily then weekly overtime rules to ``days``."""
    _check_threshold("daily_threshold", daily_threshold)
    _check_threshold("weekly_threshold", weekly_threshold)
    start_index = week_start_index(week_start)

    running: dict[date, Decimal] = {}
    splits: list[DaySplit] = []

    for day in sorted(days):
        total = round_hours(days[day])
        if total < ZERO:
            raise ValueError(f"Negative hours on {day}: {total}")

        daily_ot = ZERO
        if daily_threshold is not None and total > daily_threshold:
            daily_ot = total - daily_threshold
        standard = total - daily_ot

        weekly_ot = ZERO
        if weekly_threshold is not None:
            week = week_of(day, start_index)
            before = running.get(week, ZERO)
            after = before + standard
            running[week] = after
            weekly_ot = max(ZERO, after - weekly_threshold) - max(ZERO, before - weekly_threshold)
            standard -= weekly_ot

        splits.append(
            DaySplit(
                work_date=day,
                total_hours=total,
                standard_hours=round_hours(standard),
                daily_overtime=round_hours(daily_ot),
                weekly_overtime=round_hours(weekly_ot),
            )
        )

    return OvertimeSplit(
        days=tuple(splits),
        standard_hours=round_hours(sum((s.standard_hours for s in splits), ZERO)),
        overtime_hours=round_hours(sum((s.overtime_hours for s in splits), ZERO)),
    )
