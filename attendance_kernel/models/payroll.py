"""
Module: attendance_kernel.models.payroll
Responsibility: ORM persistence for payroll derived from finalized attendance:
    one PayrollPeriod per AttendancePeriod, one PayrollRecord per employee.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - attendance_period_id is unique on payroll_periods.
    - (payroll_period_id, staff_id) is unique on payroll_records.
    - gross_pay = standard_hours * standard_rate + overtime_hours * overtime_rate,
      quantized to cents; calculation_hash = SHA-256 of calculation_data.
    - An APPROVED payroll period is never recalculated.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    JSON,
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


class PayrollStatus(str, Enum):
    """Payroll period lifecycle.  APPROVED is owned by the approval workflow."""

    PENDING = "pending"
    CALCULATING = "calculating"
    CALCULATED = "calculated"
    APPROVED = "approved"


class PayrollPeriod(TrackedBase):
    """Payroll run over one attendance period."""

    __tablename__ = "payroll_periods"

    __table_args__ = (
        Index("idx_payroll_period_status", "status"),
    )

    attendance_period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("attendance_periods.id"),
        nullable=False,
        unique=True,
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[PayrollStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PayrollStatus.PENDING,
    )

    calculated_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    calculated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    total_standard_hours: Mapped[Decimal] = mapped_column(
        Numeric(14, 4),
        nullable=False,
        default=Decimal("0"),
    )

    total_overtime_hours: Mapped[Decimal] = mapped_column(
        Numeric(14, 4),
        nullable=False,
        default=Decimal("0"),
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
        default=Decimal("0"),
    )

    def __repr__(self) -> str:
        return f"<PayrollPeriod {self.start_date}..{self.end_date} ({self.status})>"


class PayrollRecord(TrackedBase):
    """Per-employee payroll line with its full calculation input."""

    __tablename__ = "payroll_records"

    __table_args__ = (
        UniqueConstraint(
            "payroll_period_id",
            "staff_id",
            name="uq_payroll_record_employee",
        ),
        Index("idx_payroll_record_period", "payroll_period_id"),
    )

    payroll_period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_periods.id"),
        nullable=False,
    )

    staff_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("staff.id"),
        nullable=False,
    )

    employee_id: Mapped[str] = mapped_column(String(50), nullable=False)

    standard_hours: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)

    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)

    standard_rate: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    overtime_rate: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    gross_pay: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    # Record ids, per-day breakdown, thresholds and rates used
    calculation_data: Mapped[dict] = mapped_column(JSON, nullable=False)

    calculation_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<PayrollRecord {self.employee_id} gross={self.gross_pay}>"
