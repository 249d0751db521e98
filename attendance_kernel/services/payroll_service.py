"""
PayrollCalculatorService -- payroll from finalized attendance.

Responsibility:
    Reads a FINALIZED or LOCKED attendance period's records and writes one
    PayrollRecord per employee with standard/overtime hours, rates, gross
    pay and the full calculation input for replay.

Architecture position:
    Kernel > Services -- imperative shell around the pure overtime engine
    (``attendance_engines.overtime``).

Invariants enforced:
    - Only FINALIZED or LOCKED periods are eligible.
    - An APPROVED payroll period is never recalculated.
    - DISCARDED records are excluded; null total_hours count as zero;
      several records on one day are summed.
    - gross_pay = standard_hours * standard_rate + overtime_hours *
      overtime_rate, quantized to cents (ROUND_HALF_UP).
    - calculation_hash = SHA-256 of the canonical calculation_data, so
      verify_calculation can replay and compare.
    - The whole run is one ``atomic()`` block: PENDING/CALCULATING ->
      CALCULATED with records, totals and audit entry, or nothing.

Failure modes:
    calculate_payroll returns PayrollCalculationResult(success=False)
    for NOT_FOUND, INELIGIBLE_PERIOD, STATE_CONFLICT and STORAGE_ERROR.
    A missing rate for one employee is collected in employee_errors and
    the others still calculate.
"""

from collections import defaultdict
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from attendance_engines.overtime import OvertimeSplit, split_overtime
from attendance_kernel.db.engine import atomic
from attendance_kernel.domain.clock import Clock
from attendance_kernel.domain.dtos import (
    CalculationVerification,
    EmployeePayrollError,
    PayrollCalculationResult,
    PayrollPeriodInfo,
    PayrollRecordInfo,
)
from attendance_kernel.domain.payroll import PayrollRunConfig
from attendance_kernel.domain.values import ZERO, round_hours, round_money
from attendance_kernel.exceptions import (
    AttendanceKernelError,
    IneligiblePeriodError,
    NotFoundError,
    RateConfigurationError,
    StateConflictError,
)
from attendance_kernel.logging_config import LogContext, get_logger
from attendance_kernel.models.attendance_period import AttendancePeriod, PeriodStatus
from attendance_kernel.models.attendance_record import AttendanceRecord, ReviewStatus
from attendance_kernel.models.payroll import PayrollPeriod, PayrollRecord, PayrollStatus
from attendance_kernel.services.auditor_service import AuditTrailService
from attendance_kernel.services.base import BaseService
from attendance_kernel.utils.hashing import hash_calculation, to_json_safe

logger = get_logger("services.payroll")

STORAGE_ERROR = "STORAGE_ERROR"
ELIGIBLE_STATUSES = frozenset({PeriodStatus.FINALIZED, PeriodStatus.LOCKED})


def _build_calculation_data(
    employee_id: str,
    staff_id: UUID,
    records: Iterable[AttendanceRecord],
    split: OvertimeSplit,
    run_config: PayrollRunConfig,
    standard_rate: Decimal,
    overtime_rate: Decimal,
    gross_pay: Decimal,
) -> dict[str, Any]:
    return to_json_safe({
        "employee_id": employee_id,
        "staff_id": staff_id,
        "attendance_record_ids": sorted(str(r.id) for r in records),
        "daily_breakdown": [day.to_dict() for day in split.days],
        "rules": run_config.rules.to_dict(),
        "rates": {
            "standard_rate": str(standard_rate),
            "overtime_rate": str(overtime_rate),
        },
        "totals": {
            "standard_hours": str(split.standard_hours),
            "overtime_hours": str(split.overtime_hours),
            "gross_pay": str(gross_pay),
        },
    })


def _optional_decimal(value: str | None) -> Decimal | None:
    return None if value is None else Decimal(value)


class PayrollCalculatorService(BaseService[PayrollRecord]):
    """
    Calculates payroll for one attendance period per call.

    Contract:
        calculate_payroll never raises for business or storage failures.
        verify_calculation raises NotFoundError for an unknown record.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditTrailService | None = None,
    ):
        super().__init__(session, clock)
        self._auditor = auditor or AuditTrailService(session, self.clock)

    def calculate_payroll(
        self,
        attendance_period_id: UUID,
        actor_id: UUID,
        run_config: PayrollRunConfig,
        employee_ids: Iterable[str] | None = None,
    ) -> PayrollCalculationResult:
        """
        Calculate (or recalculate) payroll for a finalized period.

        When ``employee_ids`` is given only those employees' records are
        replaced; totals always cover every record of the payroll period.
        """
        scope = sorted(set(employee_ids)) if employee_ids is not None else None

        with LogContext.bind(period_id=str(attendance_period_id)):
            try:
                return self._calculate(attendance_period_id, actor_id, run_config, scope)
            except AttendanceKernelError as exc:
                logger.warning(
                    "payroll_calculation_rejected",
                    extra={"error_code": exc.code, "reason": str(exc)},
                )
                return PayrollCalculationResult.failed(exc.code, str(exc))
            except SQLAlchemyError:
                logger.error("payroll_calculation_failed", exc_info=True)
                return PayrollCalculationResult.failed(
                    STORAGE_ERROR, "Storage error during payroll calculation"
                )

    def _calculate(
        self,
        attendance_period_id: UUID,
        actor_id: UUID,
        run_config: PayrollRunConfig,
        scope: list[str] | None,
    ) -> PayrollCalculationResult:
        with atomic(self.session):
            period = self.session.execute(
                select(AttendancePeriod)
                .where(AttendancePeriod.id == attendance_period_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if period is None:
                raise NotFoundError(
                    "AttendancePeriod", str(attendance_period_id), "Period not found"
                )
            if period.status_enum not in ELIGIBLE_STATUSES:
                raise IneligiblePeriodError(str(period.id), period.status_enum.value)

            payroll, before_status = self._begin_run(period, actor_id, scope)

            records_by_staff = self._records_by_staff(period, scope)
            created: list[PayrollRecord] = []
            employee_errors: list[EmployeePayrollError] = []

            for staff_id, records in records_by_staff:
                employee_id = records[0].employee_id
                try:
                    created.append(
                        self._calculate_employee(
                            payroll, staff_id, employee_id, records, run_config, actor_id
                        )
                    )
                except RateConfigurationError as exc:
                    logger.warning(
                        "payroll_employee_skipped",
                        extra={"employee_id": employee_id, "error_code": exc.code},
                    )
                    employee_errors.append(
                        EmployeePayrollError(employee_id, str(exc), exc.code)
                    )
            self.session.flush()

            self._finish_run(payroll, actor_id)
            self._auditor.record_payroll_calculated(
                payroll.id,
                period.id,
                actor_id,
                len(created),
                payroll.total_amount,
                before_status,
            )

        logger.info(
            "payroll_calculated",
            extra={
                "payroll_period_id": str(payroll.id),
                "employee_count": len(created),
                "employee_errors": len(employee_errors),
                "total_amount": payroll.total_amount,
            },
        )
        return PayrollCalculationResult(
            success=True,
            payroll_period=PayrollPeriodInfo.from_model(payroll),
            records=tuple(PayrollRecordInfo.from_model(r) for r in created),
            employee_errors=tuple(employee_errors),
        )

    def _begin_run(
        self,
        period: AttendancePeriod,
        actor_id: UUID,
        scope: list[str] | None,
    ) -> tuple[PayrollPeriod, str | None]:
        """Upsert the payroll period into CALCULATING and clear replaced records."""
        payroll = self.session.execute(
            select(PayrollPeriod)
            .where(PayrollPeriod.attendance_period_id == period.id)
            .with_for_update()
        ).scalar_one_or_none()

        if payroll is None:
            payroll = PayrollPeriod(
                attendance_period_id=period.id,
                start_date=period.start_date,
                end_date=period.end_date,
                status=PayrollStatus.CALCULATING,
                total_standard_hours=ZERO,
                total_overtime_hours=ZERO,
                total_amount=ZERO,
                created_by_id=actor_id,
            )
            self.session.add(payroll)
            self.session.flush()
            return payroll, None

        before_status = PayrollStatus(payroll.status)
        if before_status is PayrollStatus.APPROVED:
            raise StateConflictError(
                "Payroll for this period is approved and cannot be recalculated",
                current_status=before_status.value,
            )

        stmt = delete(PayrollRecord).where(PayrollRecord.payroll_period_id == payroll.id)
        if scope is not None:
            stmt = stmt.where(PayrollRecord.employee_id.in_(scope))
        self.session.execute(stmt.execution_options(synchronize_session="fetch"))

        payroll.status = PayrollStatus.CALCULATING
        payroll.updated_by_id = actor_id
        self.session.flush()
        return payroll, before_status.value

    def _records_by_staff(
        self,
        period: AttendancePeriod,
        scope: list[str] | None,
    ) -> list[tuple[UUID, list[AttendanceRecord]]]:
        stmt = (
            select(AttendanceRecord)
            .where(
                AttendanceRecord.period_id == period.id,
                AttendanceRecord.review_status != ReviewStatus.DISCARDED,
            )
            .order_by(AttendanceRecord.employee_id, AttendanceRecord.work_date)
        )
        if scope is not None:
            stmt = stmt.where(AttendanceRecord.employee_id.in_(scope))

        grouped: dict[UUID, list[AttendanceRecord]] = defaultdict(list)
        for record in self.session.execute(stmt).scalars():
            grouped[record.staff_id].append(record)
        return sorted(grouped.items(), key=lambda item: item[1][0].employee_id)

    def _calculate_employee(
        self,
        payroll: PayrollPeriod,
        staff_id: UUID,
        employee_id: str,
        records: list[AttendanceRecord],
        run_config: PayrollRunConfig,
        actor_id: UUID,
    ) -> PayrollRecord:
        standard_rate, overtime_rate = run_config.resolve_rate(employee_id)

        hours_by_day: dict[date, Decimal] = defaultdict(lambda: ZERO)
        for record in records:
            hours_by_day[record.work_date] += record.total_hours or ZERO

        rules = run_config.rules
        split = split_overtime(
            days=dict(hours_by_day),
            daily_threshold=rules.daily_threshold,
            weekly_threshold=rules.weekly_threshold,
            week_start=rules.week_start,
        )
        gross_pay = round_money(
            split.standard_hours * standard_rate + split.overtime_hours * overtime_rate
        )

        calculation_data = _build_calculation_data(
            employee_id,
            staff_id,
            records,
            split,
            run_config,
            standard_rate,
            overtime_rate,
            gross_pay,
        )
        payroll_record = PayrollRecord(
            payroll_period_id=payroll.id,
            staff_id=staff_id,
            employee_id=employee_id,
            standard_hours=split.standard_hours,
            overtime_hours=split.overtime_hours,
            standard_rate=standard_rate,
            overtime_rate=overtime_rate,
            gross_pay=gross_pay,
            calculation_data=calculation_data,
            calculation_hash=hash_calculation(calculation_data),
            created_by_id=actor_id,
        )
        self.session.add(payroll_record)

        logger.debug(
            "payroll_employee_calculated",
            extra={
                "employee_id": employee_id,
                "standard_hours": split.standard_hours,
                "overtime_hours": split.overtime_hours,
                "gross_pay": gross_pay,
            },
        )
        return payroll_record

    def _finish_run(self, payroll: PayrollPeriod, actor_id: UUID) -> None:
        standard, overtime, amount = self.session.execute(
            select(
                func.coalesce(func.sum(PayrollRecord.standard_hours), 0),
                func.coalesce(func.sum(PayrollRecord.overtime_hours), 0),
                func.coalesce(func.sum(PayrollRecord.gross_pay), 0),
            ).where(PayrollRecord.payroll_period_id == payroll.id)
        ).one()

        payroll.total_standard_hours = round_hours(Decimal(str(standard)))
        payroll.total_overtime_hours = round_hours(Decimal(str(overtime)))
        payroll.total_amount = round_money(Decimal(str(amount)))
        payroll.status = PayrollStatus.CALCULATED
        payroll.calculated_by_id = actor_id
        payroll.calculated_at = self.clock.now()
        payroll.updated_by_id = actor_id
        self.session.flush()

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    def verify_calculation(self, payroll_record_id: UUID) -> CalculationVerification:
        """
        Recompute a stored payroll record from its calculation_data.

        Checks the hash, replays the overtime split from the stored daily
        totals and rules, and compares hours and gross pay with the stored
        columns.
        """
        record = self.session.get(PayrollRecord, payroll_record_id)
        if record is None:
            raise NotFoundError("PayrollRecord", str(payroll_record_id))

        data = record.calculation_data
        computed_hash = hash_calculation(data)
        mismatches: list[str] = []
        if computed_hash != record.calculation_hash:
            mismatches.append("calculation_hash")

        rules = data["rules"]
        split = split_overtime(
            days={
                date.fromisoformat(day["work_date"]): Decimal(day["total_hours"])
                for day in data["daily_breakdown"]
            },
            daily_threshold=_optional_decimal(rules["daily_threshold"]),
            weekly_threshold=_optional_decimal(rules["weekly_threshold"]),
            week_start=rules["week_start"],
        )
        standard_rate = Decimal(data["rates"]["standard_rate"])
        overtime_rate = Decimal(data["rates"]["overtime_rate"])
        gross_pay = round_money(
            split.standard_hours * standard_rate + split.overtime_hours * overtime_rate
        )

        if split.standard_hours != record.standard_hours:
            mismatches.append("standard_hours")
        if split.overtime_hours != record.overtime_hours:
            mismatches.append("overtime_hours")
        if gross_pay != record.gross_pay:
            mismatches.append("gross_pay")

        if mismatches:
            logger.warning(
                "payroll_verification_failed",
                extra={"payroll_record_id": str(record.id), "mismatches": mismatches},
            )
        return CalculationVerification(
            payroll_record_id=record.id,
            is_valid=not mismatches,
            stored_hash=record.calculation_hash,
            computed_hash=computed_hash,
            mismatches=tuple(mismatches),
        )
