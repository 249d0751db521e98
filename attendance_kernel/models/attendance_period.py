"""
Module: attendance_kernel.models.attendance_period
Responsibility: ORM persistence for attendance periods -- inclusive date
    windows that group attendance records for finalization and payroll.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - start_date <= end_date (CHECK constraint + service validation).
    - No two periods overlap (enforced by PeriodLifecycleService under lock).
    - Status moves PENDING -> FINALIZED -> LOCKED; the only backward edge is
      FINALIZED -> PENDING via unlock, which stores a non-empty reason.

Failure modes:
    - IntegrityError on CHECK violation.
    - OverlapError / StateConflictError raised by the lifecycle service.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from attendance_kernel.db.base import TrackedBase, UUIDString


class PeriodStatus(str, Enum):
    """Attendance period lifecycle status."""

    PENDING = "pending"  # Records editable
    FINALIZED = "finalized"  # Records frozen, awaiting payroll approval
    LOCKED = "locked"  # Consumed by approved payroll


# FINALIZED -> PENDING (unlock) is the only backward edge; LOCKED is terminal.
VALID_TRANSITIONS: dict[PeriodStatus, frozenset[PeriodStatus]] = {
    PeriodStatus.PENDING: frozenset({PeriodStatus.FINALIZED}),
    PeriodStatus.FINALIZED: frozenset({PeriodStatus.PENDING, PeriodStatus.LOCKED}),
    PeriodStatus.LOCKED: frozenset(),
}


class AttendancePeriod(TrackedBase):
    """An inclusive accounting window over attendance records."""

    __tablename__ = "attendance_periods"

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_attendance_period_range"),
        Index("idx_attendance_period_dates", "start_date", "end_date"),
        Index("idx_attendance_period_status", "status"),
    )

    start_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    end_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    status: Mapped[PeriodStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PeriodStatus.PENDING,
    )

    finalized_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    finalized_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Set only on the FINALIZED -> PENDING transition
    unlock_reason: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    unlocked_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    unlocked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    locked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<AttendancePeriod {self.start_date}..{self.end_date} ({self.status})>"

    @property
    def is_pending(self) -> bool:
        return self.status == PeriodStatus.PENDING

    @property
    def is_frozen(self) -> bool:
        """Records in this period may not be edited."""
        return self.status in (PeriodStatus.FINALIZED, PeriodStatus.LOCKED)

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    @property
    def status_enum(self) -> PeriodStatus:
        return PeriodStatus(self.status)

    def can_transition_to(self, target: PeriodStatus) -> bool:
        return target in VALID_TRANSITIONS.get(self.status_enum, frozenset())

    def validate_transition(self, target: PeriodStatus) -> None:
        """Raise ValueError if ``status -> target`` is not in VALID_TRANSITIONS."""
        if not self.can_transition_to(target):
            allowed = VALID_TRANSITIONS.get(self.status_enum, frozenset())
            raise ValueError(
                f"Invalid transition: {self.status_enum.value} -> {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )
