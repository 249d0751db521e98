"""
Module: attendance_kernel.selectors.payroll_selector
Responsibility: Read-only payroll summaries and the flat rows handed to the
    external export collaborator.
Architecture position: Kernel > Selectors.

Failure modes:
    - payroll_summary returns None for an unknown payroll period.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import func, select

from attendance_kernel.domain.values import ZERO, round_hours, round_money
from attendance_kernel.models.payroll import PayrollPeriod, PayrollRecord
from attendance_kernel.models.staff import Staff
from attendance_kernel.selectors.base import BaseSelector

_PERCENT = Decimal("0.01")


@dataclass(frozen=True)
class PayrollSummary:
    payroll_period_id: UUID
    status: str
    employee_count: int
    total_standard_hours: Decimal
    total_overtime_hours: Decimal
    total_amount: Decimal
    average_hours_per_employee: Decimal
    overtime_percentage: Decimal

    @property
    def total_hours(self) -> Decimal:
        return self.total_standard_hours + self.total_overtime_hours


@dataclass(frozen=True)
class PayrollExportRow:
    employee_id: str
    name: str
    department: str | None
    standard_hours: Decimal
    overtime_hours: Decimal
    standard_rate: Decimal
    overtime_rate: Decimal
    gross_pay: Decimal


def _dec(value) -> Decimal:
    return ZERO if value is None else Decimal(str(value))


class PayrollSelector(BaseSelector[PayrollRecord]):

    def payroll_summary(self, payroll_period_id: UUID) -> PayrollSummary | None:
        payroll = self.session.get(PayrollPeriod, payroll_period_id)
        if payroll is None:
            return None

        count, standard, overtime, amount = self.session.execute(
            select(
                func.count(PayrollRecord.id),
                func.sum(PayrollRecord.standard_hours),
                func.sum(PayrollRecord.overtime_hours),
                func.sum(PayrollRecord.gross_pay),
            ).where(PayrollRecord.payroll_period_id == payroll_period_id)
        ).one()

        standard = round_hours(_dec(standard))
        overtime = round_hours(_dec(overtime))
        total_hours = standard + overtime
        average = round_hours(total_hours / count) if count else ZERO
        overtime_pct = (
            (overtime * 100 / total_hours).quantize(_PERCENT, rounding=ROUND_HALF_UP)
            if total_hours > ZERO
            else ZERO
        )

        return PayrollSummary(
            payroll_period_id=payroll.id,
            status=str(getattr(payroll.status, "value", payroll.status)),
            employee_count=count,
            total_standard_hours=standard,
            total_overtime_hours=overtime,
            total_amount=round_money(_dec(amount)),
            average_hours_per_employee=average,
            overtime_percentage=overtime_pct,
        )

    def records_for_export(self, payroll_period_id: UUID) -> list[PayrollExportRow]:
        rows = self.session.execute(
            select(PayrollRecord, Staff.name, Staff.department)
            .join(Staff, Staff.id == PayrollRecord.staff_id)
            .where(PayrollRecord.payroll_period_id == payroll_period_id)
            .order_by(PayrollRecord.employee_id)
        ).all()
        return [
            PayrollExportRow(
                employee_id=record.employee_id,
                name=name,
                department=department,
                standard_hours=record.standard_hours,
                overtime_hours=record.overtime_hours,
                standard_rate=record.standard_rate,
                overtime_rate=record.overtime_rate,
                gross_pay=round_money(record.gross_pay),
            )
            for record, name, department in rows
        ]
