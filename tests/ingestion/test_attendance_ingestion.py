"""
Attendance ingestion tests.

Verifies:
- Record creation resolves staff and computes hours
- Natural-key deduplication makes re-ingestion idempotent
- Unknown or inactive staff are mapping errors, not crashes
- Records cannot land in a finalized period
- A second transaction on the same day is flagged as a conflict
- Batch failures are isolated per record, including unusable clock times
- Naive device timestamps are read in the clock's zone before grouping
"""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from attendance_kernel.domain.dtos import AttendanceRecordInput, FetchErrorType
from attendance_kernel.domain.punches import PunchState, TerminalPunch
from attendance_kernel.exceptions import (
    DuplicateError,
    MappingError,
    StateConflictError,
    ValidationError,
)
from attendance_kernel.models.attendance_record import AttendanceRecord, ReviewStatus

DAY = date(2024, 1, 15)


def _input(employee_id="E100", day=DAY, tx=None, hours=8):
    clock_in = datetime(day.year, day.month, day.day, 9, 0, tzinfo=UTC)
    return AttendanceRecordInput(
        work_date=day,
        transaction_id=tx or f"{employee_id}_{day.isoformat()}_2",
        employee_id=employee_id,
        clock_in=clock_in,
        clock_out=clock_in + timedelta(hours=hours),
    )


def _day_punches(employee_id: str, day: date, hours: int = 8) -> list[TerminalPunch]:
    start = datetime(day.year, day.month, day.day, 9, 0, tzinfo=UTC)
    return [
        TerminalPunch(employee_id, start, PunchState.CHECK_IN, 1),
        TerminalPunch(employee_id, start + timedelta(hours=hours), PunchState.CHECK_OUT, 1),
    ]


def _record_count(session) -> int:
    return session.execute(select(func.count(AttendanceRecord.id))).scalar_one()


class TestCreateRecord:

    def test_creates_record_with_hours(self, ingestion_service, create_staff, test_actor_id, clock):
        staff = create_staff("E100")

        info = ingestion_service.create_record(_input(hours=9), test_actor_id)

        assert info.staff_id == staff.id
        assert info.employee_id == "E100"
        assert info.total_hours == Decimal("9")
        assert info.review_status == ReviewStatus.CLEAR.value
        assert info.fetched_by_id == test_actor_id
        assert info.fetched_at == clock.now()
        assert not info.is_finalized

    def test_duplicate_natural_key_rejected(self, ingestion_service, create_staff, test_actor_id):
        create_staff("E100")
        ingestion_service.create_record(_input(), test_actor_id)

        with pytest.raises(DuplicateError) as exc_info:
            ingestion_service.create_record(_input(), test_actor_id)

        assert exc_info.value.code == "DUPLICATE_RECORD"

    def test_unknown_employee_is_mapping_error(self, ingestion_service, test_actor_id):
        with pytest.raises(MappingError, match="No staff member mapped to employee ID E999"):
            ingestion_service.create_record(_input("E999"), test_actor_id)

    def test_inactive_staff_is_mapping_error(self, ingestion_service, create_staff, test_actor_id):
        create_staff("E100", is_active=False)

        with pytest.raises(MappingError, match="inactive"):
            ingestion_service.create_record(_input(), test_actor_id)

    def test_invalid_input_raises_validation_error(self, ingestion_service, test_actor_id):
        with pytest.raises(ValidationError) as exc_info:
            ingestion_service.create_record(_input("bad id!"), test_actor_id)

        assert exc_info.value.code == "VALIDATION_ERROR"

    @pytest.mark.parametrize(
        "clock_in",
        [datetime(2024, 1, 15, 9, 0), "2024-01-15T09:00:00"],
        ids=["naive", "string"],
    )
    def test_unusable_clock_in_is_validation_error(
        self, ingestion_service, create_staff, test_actor_id, clock_in
    ):
        create_staff("E100")
        bad = AttendanceRecordInput(
            work_date=DAY,
            transaction_id="E100_2024-01-15_2",
            employee_id="E100",
            clock_in=clock_in,
            clock_out=datetime(2024, 1, 15, 17, 0, tzinfo=UTC),
        )

        with pytest.raises(ValidationError):
            ingestion_service.create_record(bad, test_actor_id)

    def test_second_transaction_same_day_is_conflict(
        self, ingestion_service, create_staff, test_actor_id
    ):
        create_staff("E100")
        first = ingestion_service.create_record(_input(tx="E100_2024-01-15_2"), test_actor_id)
        second = ingestion_service.create_record(_input(tx="E100_2024-01-15_4"), test_actor_id)

        assert first.review_status == ReviewStatus.CLEAR.value
        assert second.review_status == ReviewStatus.CONFLICT.value

    def test_record_attached_to_pending_period(
        self, ingestion_service, period_service, create_staff, test_actor_id
    ):
        create_staff("E100")
        period = period_service.create_period(date(2024, 1, 1), date(2024, 1, 31), test_actor_id).period

        info = ingestion_service.create_record(_input(), test_actor_id)

        assert info.period_id == period.id

    def test_finalized_period_rejects_new_records(
        self, ingestion_service, create_staff, finalized_period, test_actor_id
    ):
        create_staff("E100")
        finalized_period(date(2024, 1, 1), date(2024, 1, 31))

        with pytest.raises(StateConflictError, match="finalized period"):
            ingestion_service.create_record(_input(), test_actor_id)


class TestBatch:

    def test_failures_do_not_abort_batch(
        self, ingestion_service, create_staff, session, test_actor_id
    ):
        create_staff("E100")
        inputs = [
            _input(day=DAY),
            _input("E999", day=DAY),
            _input(day=DAY + timedelta(days=1)),
            _input(day=DAY),
            _input(day=DAY + timedelta(days=2)),
        ]

        result = ingestion_service.create_records_batch(inputs, test_actor_id)

        assert result.created_count == 3
        assert result.error_count == 2
        assert sorted(e.error_type for e in result.errors) == [
            "DUPLICATE_RECORD",
            "EMPLOYEE_MAPPING_ERROR",
        ]
        assert _record_count(session) == 3

    def test_mixed_timezone_input_does_not_abort_batch(
        self, ingestion_service, create_staff, session, test_actor_id
    ):
        create_staff("E100")
        mixed = AttendanceRecordInput(
            work_date=DAY + timedelta(days=1),
            transaction_id="E100_mixed",
            employee_id="E100",
            clock_in=datetime(2024, 1, 16, 9, 0),
            clock_out=datetime(2024, 1, 16, 17, 0, tzinfo=UTC),
        )

        result = ingestion_service.create_records_batch([_input(day=DAY), mixed], test_actor_id)

        assert result.created_count == 1
        assert [e.error_type for e in result.errors] == ["VALIDATION_ERROR"]
        assert _record_count(session) == 1

    def test_empty_batch(self, ingestion_service, test_actor_id):
        result = ingestion_service.create_records_batch([], test_actor_id)

        assert result.created_count == 0
        assert result.error_count == 0


class TestIngestPunches:

    def test_ingest_creates_one_record_per_day(
        self, ingestion_service, create_staff, test_actor_id
    ):
        create_staff("E100")
        create_staff("E200")
        punches = (
            _day_punches("E100", date(2024, 1, 15))
            + _day_punches("E100", date(2024, 1, 16), hours=9)
            + _day_punches("E200", date(2024, 1, 15))
        )

        result = ingestion_service.ingest_punches(
            punches, date(2024, 1, 1), date(2024, 1, 31), test_actor_id
        )

        assert result.total_records_processed == 6
        assert result.records_created == 3
        assert result.records_skipped == 0
        assert not result.has_errors
        assert result.summary.fetched_by_id == test_actor_id

    def test_reingesting_same_batch_is_idempotent(
        self, ingestion_service, create_staff, session, test_actor_id
    ):
        create_staff("E100")
        punches = _day_punches("E100", date(2024, 1, 15)) + _day_punches("E100", date(2024, 1, 16))

        first = ingestion_service.ingest_punches(
            punches, date(2024, 1, 1), date(2024, 1, 31), test_actor_id
        )
        second = ingestion_service.ingest_punches(
            punches, date(2024, 1, 1), date(2024, 1, 31), test_actor_id
        )

        assert first.records_created == 2
        assert second.records_created == 0
        assert second.records_skipped == 2
        assert all(e.type is FetchErrorType.DUPLICATE for e in second.errors)
        assert _record_count(session) == 2

    def test_punches_outside_window_ignored(self, ingestion_service, create_staff, test_actor_id):
        create_staff("E100")
        punches = _day_punches("E100", date(2024, 1, 15)) + _day_punches("E100", date(2024, 2, 5))

        result = ingestion_service.ingest_punches(
            punches, date(2024, 1, 1), date(2024, 1, 31), test_actor_id
        )

        assert result.total_records_processed == 2
        assert result.records_created == 1

    def test_mapping_and_validation_errors_counted(
        self, ingestion_service, create_staff, test_actor_id
    ):
        create_staff("E100")
        bad_state = TerminalPunch("E100", datetime(2024, 1, 17, 9, tzinfo=UTC), 42, 1)
        punches = (
            _day_punches("E100", date(2024, 1, 15))
            + _day_punches("E404", date(2024, 1, 15))
            + [bad_state]
        )

        result = ingestion_service.ingest_punches(
            punches, date(2024, 1, 1), date(2024, 1, 31), test_actor_id
        )

        assert result.records_created == 1
        assert result.employee_mapping_errors == 1
        assert result.validation_errors == 1
        assert result.records_with_errors == 2
        types = {e.type for e in result.errors}
        assert types == {FetchErrorType.EMPLOYEE_MAPPING, FetchErrorType.VALIDATION}

    def test_naive_and_aware_punches_on_one_day(
        self, ingestion_service, create_staff, test_actor_id
    ):
        create_staff("E100")
        punches = [
            TerminalPunch("E100", datetime(2024, 1, 15, 9, 0, tzinfo=UTC), PunchState.CHECK_IN, 1),
            TerminalPunch("E100", datetime(2024, 1, 15, 8, 0), PunchState.CHECK_IN, 1),
            TerminalPunch("E100", datetime(2024, 1, 15, 17, 0, tzinfo=UTC), PunchState.CHECK_OUT, 1),
        ]

        result = ingestion_service.ingest_punches(
            punches, date(2024, 1, 1), date(2024, 1, 31), test_actor_id
        )

        assert result.records_created == 1
        assert not result.has_errors
        (record,) = result.records
        assert record.clock_in == datetime(2024, 1, 15, 8, 0, tzinfo=UTC)
        assert record.total_hours == Decimal("9")

    def test_punch_without_datetime_is_validation_error(
        self, ingestion_service, create_staff, test_actor_id
    ):
        create_staff("E100")
        garbled = TerminalPunch("E100", "2024-01-15 09:00", PunchState.CHECK_IN, 1)

        result = ingestion_service.ingest_punches(
            _day_punches("E100", date(2024, 1, 16)) + [garbled],
            date(2024, 1, 1),
            date(2024, 1, 31),
            test_actor_id,
        )

        assert result.records_created == 1
        assert result.validation_errors == 1
        assert [e.type for e in result.errors] == [FetchErrorType.VALIDATION]
