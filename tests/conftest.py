"""
Pytest fixtures for the attendance kernel test suite.

Provides:
- Database sessions isolated per test by an outer transaction that is
  rolled back at teardown
- Service fixtures wired to one DeterministicClock
- Staff and attendance record factories
- Captured structured logs

Environment Variables:
- DATABASE_URL: SQLAlchemy URL.  Defaults to in-memory SQLite; point it at
  PostgreSQL to run the trigger and concurrency suites.
"""

import json
import logging
import os
import threading
from collections.abc import Generator
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy import text
from sqlalchemy.orm import Session

from attendance_kernel.db.base import Base
from attendance_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from attendance_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from attendance_kernel.domain.clock import DeterministicClock
from attendance_kernel.domain.payroll import EmployeeRate, PayrollRules, PayrollRunConfig
from attendance_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from attendance_kernel.models.attendance_period import AttendancePeriod, PeriodStatus
from attendance_kernel.models.attendance_record import AttendanceRecord, ReviewStatus
from attendance_kernel.models.staff import Staff
from attendance_kernel.services.auditor_service import AuditTrailService
from attendance_kernel.services.ingestion_service import AttendanceIngestionService
from attendance_kernel.services.payroll_service import PayrollCalculatorService
from attendance_kernel.services.period_service import PeriodLifecycleService
from attendance_kernel.services.record_service import AttendanceRecordService

DEFAULT_DATABASE_URL = "sqlite:///:memory:"

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

# Punches and records are dated in January/February 2024; "now" sits after them
TEST_NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=UTC)


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture attendance_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, period_service):
            period_service.finalize_period(...)
            logs = captured_logs()
            assert any(r["message"] == "period_finalized" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("attendance_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Session-scoped DB infrastructure (engine + tables once per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    eng = init_engine_from_url(
        get_database_url(),
        echo=False,
        pool_size=30,
        max_overflow=20,
        pool_timeout=10,
    )
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session; listeners stay registered throughout."""
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()
    drop_tables()


def _truncate_all_tables(engine) -> None:
    """Remove committed rows left by tests that use real commits."""
    table_names = [t.name for t in reversed(Base.metadata.sorted_tables)]
    with engine.connect() as conn:
        if engine.dialect.name == "postgresql":
            conn.execute(text("TRUNCATE " + ", ".join(table_names) + " CASCADE"))
        else:
            for name in table_names:
                conn.execute(text(f"DELETE FROM {name}"))
        conn.commit()


@pytest.fixture
def is_postgres(db_engine) -> bool:
    return db_engine.dialect.name == "postgresql"


@pytest.fixture
def requires_postgres(is_postgres):
    if not is_postgres:
        pytest.skip("requires PostgreSQL (set DATABASE_URL)")


# =============================================================================
# Per-test session with automatic rollback
# =============================================================================


@pytest.fixture
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction on a dedicated connection.
    Service-level commits release savepoints; teardown rolls back the outer
    transaction, undoing everything the test wrote.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


@pytest.fixture
def pg_session_factory(requires_postgres, db_engine, db_tables):
    """Session factory for threads that need real commits; rows are truncated on teardown."""
    factory = get_session_factory()
    created: list[Session] = []
    lock = threading.Lock()

    def tracked_factory() -> Session:
        with lock:
            s = factory()
            created.append(s)
            return s

    yield tracked_factory

    for s in created:
        s.close()
    _truncate_all_tables(db_engine)


# =============================================================================
# Clock, actor, services
# =============================================================================


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(TEST_NOW)


@pytest.fixture
def auditor(session, clock) -> AuditTrailService:
    return AuditTrailService(session, clock)


@pytest.fixture
def ingestion_service(session, clock) -> AttendanceIngestionService:
    return AttendanceIngestionService(session, clock, batch_size=3)


@pytest.fixture
def period_service(session, clock, auditor) -> PeriodLifecycleService:
    return PeriodLifecycleService(session, clock, auditor)


@pytest.fixture
def record_service(session, clock, auditor) -> AttendanceRecordService:
    return AttendanceRecordService(session, clock, auditor)


@pytest.fixture
def payroll_service(session, clock, auditor) -> PayrollCalculatorService:
    return PayrollCalculatorService(session, clock, auditor)


@pytest.fixture
def run_config() -> PayrollRunConfig:
    """$20/h standard, overtime at 1.5x, 8h daily and 40h weekly thresholds."""
    return PayrollRunConfig(
        rules=PayrollRules(),
        default_rate=EmployeeRate(standard_rate=Decimal("20")),
    )


# =============================================================================
# Data factories
# =============================================================================


@pytest.fixture
def create_staff(session, test_actor_id):
    """Create a Staff row: ``create_staff("E100", department="Kitchen")``."""

    def _create(
        employee_id: str,
        name: str | None = None,
        department: str | None = "Operations",
        is_active: bool = True,
    ) -> Staff:
        staff = Staff(
            employee_id=employee_id,
            name=name or f"Staff {employee_id}",
            department=department,
            is_active=is_active,
            created_by_id=test_actor_id,
        )
        session.add(staff)
        session.flush()
        return staff

    return _create


def shift(day: date, hours: Decimal | str | int, start_hour: int = 9) -> tuple[datetime, datetime]:
    """Clock-in/clock-out pair for a shift of ``hours`` starting at ``start_hour`` UTC."""
    clock_in = datetime.combine(day, time(start_hour), tzinfo=UTC)
    return clock_in, clock_in + timedelta(hours=float(Decimal(str(hours))))


@pytest.fixture
def create_record(session, clock, test_actor_id):
    """
    Insert an AttendanceRecord directly, bypassing ingestion.

    ``hours=None`` produces a record with neither clock-in nor clock-out.
    """
    counter = iter(range(1, 1_000_000))

    def _create(
        staff: Staff,
        work_date: date,
        hours: Decimal | str | int | None = 8,
        review_status: ReviewStatus = ReviewStatus.CLEAR,
        period: AttendancePeriod | None = None,
        transaction_id: str | None = None,
    ) -> AttendanceRecord:
        if hours is None:
            clock_in = clock_out = None
            total = None
        else:
            clock_in, clock_out = shift(work_date, hours)
            total = Decimal(str(hours))
        record = AttendanceRecord(
            staff_id=staff.id,
            employee_id=staff.employee_id,
            work_date=work_date,
            clock_in=clock_in,
            clock_out=clock_out,
            total_hours=total,
            transaction_id=transaction_id or f"{staff.employee_id}_{work_date.isoformat()}_{next(counter)}",
            fetched_at=clock.now(),
            fetched_by_id=test_actor_id,
            is_finalized=False,
            period_id=period.id if period is not None else None,
            review_status=review_status,
            created_by_id=test_actor_id,
        )
        session.add(record)
        session.flush()
        return record

    return _create


@pytest.fixture
def finalized_period(period_service, test_actor_id):
    """Create and finalize a period; returns its AttendancePeriodInfo."""

    def _create(start_date: date, end_date: date):
        created = period_service.create_period(start_date, end_date, test_actor_id)
        assert created.success, created.errors
        finalized = period_service.finalize_period(created.period.id, test_actor_id)
        assert finalized.success, finalized.errors
        assert finalized.period.status == PeriodStatus.FINALIZED.value
        return finalized.period

    return _create
