"""
Module: attendance_kernel.models.attendance_record
Responsibility: ORM persistence for one biometric observation of one employee
    on one calendar day.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Natural key (staff_id, work_date, transaction_id) is unique, so
      re-ingesting the same terminal log never creates a duplicate.
    - total_hours = max(0, clock_out - clock_in) in hours, or NULL when
      either timestamp is absent (computed by the ingestion service).
    - Clock data is frozen while is_finalized is set (ORM listener +
      PostgreSQL trigger).

Failure modes:
    - IntegrityError on natural-key collision (mapped to DuplicateError).
    - ImmutabilityViolationError when editing a finalized record.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from attendance_kernel.db.base import TrackedBase, UUIDString


class ReviewStatus(str, Enum):
    """Outstanding-work marker on an attendance record.

    CONFLICT counts as an unresolved conflict, PENDING_APPROVAL as a pending
    approval.  DISCARDED records stay for audit but are excluded from payroll.
    """

    CLEAR = "clear"
    PENDING_APPROVAL = "pending_approval"
    CONFLICT = "conflict"
    DISCARDED = "discarded"


class AttendanceRecord(TrackedBase):
    """One employee, one day, one terminal transaction."""

    __tablename__ = "attendance_records"

    __table_args__ = (
        UniqueConstraint(
            "staff_id",
            "work_date",
            "transaction_id",
            name="uq_attendance_record_natural_key",
        ),
        Index("idx_attendance_work_date", "work_date"),
        Index("idx_attendance_period", "period_id"),
        Index("idx_attendance_employee", "employee_id"),
        Index("idx_attendance_fetched_at", "fetched_at"),
    )

    staff_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("staff.id"),
        nullable=False,
    )

    # External terminal id, denormalized for reporting and export
    employee_id: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    work_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    clock_in: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    clock_out: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    total_hours: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 4),
        nullable=True,
    )

    # Source transaction id, e.g. "E1042_2024-01-15_4"
    transaction_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    fetched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    fetched_by_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    is_finalized: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    period_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("attendance_periods.id"),
        nullable=True,
    )

    review_status: Mapped[ReviewStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ReviewStatus.CLEAR,
    )

    reviewed_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    review_notes: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<AttendanceRecord {self.employee_id} {self.work_date} "
            f"({self.transaction_id})>"
        )

    @property
    def has_missing_data(self) -> bool:
        """Neither clock-in nor clock-out was captured."""
        return self.clock_in is None and self.clock_out is None
