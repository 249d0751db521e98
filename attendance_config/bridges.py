"""
Config -> Kernel bridges.

Functions that convert KernelSettings into kernel inputs.  They live
here because attendance_kernel must never import attendance_config.

Usage:
    settings = get_active_settings()
    engine = init_engine_from_settings(settings)
    run_config = build_run_config(settings)
"""

from __future__ import annotations

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from attendance_config.schema import KernelSettings, RateDef
from attendance_kernel.db.engine import init_engine_from_url
from attendance_kernel.domain.clock import Clock
from attendance_kernel.domain.payroll import EmployeeRate, PayrollRules, PayrollRunConfig
from attendance_kernel.services.ingestion_service import AttendanceIngestionService


def _employee_rate(rate: RateDef) -> EmployeeRate:
    return EmployeeRate(standard_rate=rate.standard_rate, overtime_rate=rate.overtime_rate)


def build_payroll_rules(settings: KernelSettings) -> PayrollRules:
    payroll = settings.payroll
    return PayrollRules(
        daily_threshold=payroll.daily_threshold,
        weekly_threshold=payroll.weekly_threshold,
        overtime_multiplier=payroll.overtime_multiplier,
        week_start=payroll.week_start,
    )


def build_run_config(settings: KernelSettings) -> PayrollRunConfig:
    """PayrollRunConfig with the configured thresholds and rate table."""
    payroll = settings.payroll
    return PayrollRunConfig(
        rules=build_payroll_rules(settings),
        default_rate=None if payroll.default_rate is None else _employee_rate(payroll.default_rate),
        employee_rates={
            employee_id: _employee_rate(rate) for employee_id, rate in payroll.employee_rates
        },
    )


def init_engine_from_settings(settings: KernelSettings) -> Engine:
    db = settings.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )


def build_ingestion_service(
    session: Session,
    settings: KernelSettings,
    clock: Clock | None = None,
) -> AttendanceIngestionService:
    return AttendanceIngestionService(
        session,
        clock,
        batch_size=settings.ingestion.batch_size,
        max_punch_age_days=settings.ingestion.max_punch_age_days,
    )
