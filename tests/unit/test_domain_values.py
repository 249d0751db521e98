"""
Domain value and DTO tests.

Verifies:
- Hours and money quantization
- Worked-hours derivation
- Payroll run configuration and rate resolution
- Period transition table
- DTO serialization and result helpers
- Deterministic clock behavior
"""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from attendance_kernel.domain.clock import DeterministicClock
from attendance_kernel.domain.dtos import (
    AttendancePeriodInfo,
    FinalizationIssue,
    FinalizationIssueType,
    PeriodOperationResult,
    PeriodValidationResult,
)
from attendance_kernel.domain.payroll import EmployeeRate, PayrollRules, PayrollRunConfig
from attendance_kernel.domain.values import round_hours, round_money, worked_hours
from attendance_kernel.exceptions import RateConfigurationError
from attendance_kernel.models.attendance_period import (
    VALID_TRANSITIONS,
    AttendancePeriod,
    PeriodStatus,
)

D = Decimal


class TestRounding:

    def test_money_rounds_half_up(self):
        assert round_money(D("10.005")) == D("10.01")
        assert round_money(D("10.004")) == D("10.00")

    def test_hours_keep_four_places(self):
        assert round_hours(D("1.23455")) == D("1.2346")
        assert str(round_hours(D("8"))) == "8.0000"


class TestWorkedHours:

    def test_regular_shift(self):
        start = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)

        assert worked_hours(start, start + timedelta(hours=8, minutes=30)) == D("8.5")

    def test_missing_side_is_none(self):
        start = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)

        assert worked_hours(start, None) is None
        assert worked_hours(None, start) is None

    def test_clock_out_before_clock_in_is_zero(self):
        start = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)

        assert worked_hours(start, start - timedelta(hours=1)) == D("0")

    def test_seconds_are_counted(self):
        start = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)

        assert worked_hours(start, start + timedelta(minutes=20)) == D("0.3333")


class TestPayrollRunConfig:

    def test_default_overtime_rate_uses_multiplier(self):
        config = PayrollRunConfig(default_rate=EmployeeRate(D("20")))

        assert config.resolve_rate("E100") == (D("20"), D("30.0"))

    def test_employee_rate_overrides_default(self):
        config = PayrollRunConfig(
            default_rate=EmployeeRate(D("20")),
            employee_rates={"E200": EmployeeRate(D("25"), overtime_rate=D("40"))},
        )

        assert config.resolve_rate("E200") == (D("25"), D("40"))
        assert config.resolve_rate("E100")[0] == D("20")

    def test_missing_rate_raises(self):
        config = PayrollRunConfig()

        with pytest.raises(RateConfigurationError) as exc_info:
            config.resolve_rate("E100")

        assert exc_info.value.code == "RATE_NOT_CONFIGURED"

    def test_rate_table_is_read_only(self):
        config = PayrollRunConfig(employee_rates={"E1": EmployeeRate(D("10"))})

        with pytest.raises(TypeError):
            config.employee_rates["E2"] = EmployeeRate(D("10"))

    def test_rules_validate_thresholds(self):
        with pytest.raises(ValueError, match="daily_threshold"):
            PayrollRules(daily_threshold=D("0"))
        with pytest.raises(ValueError, match="overtime_multiplier"):
            PayrollRules(overtime_multiplier=D("0.5"))

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError):
            EmployeeRate(D("-1"))

    def test_rules_to_dict_is_string_valued(self):
        assert PayrollRules(weekly_threshold=None).to_dict() == {
            "daily_threshold": "8",
            "weekly_threshold": None,
            "overtime_multiplier": "1.5",
            "week_start": "monday",
        }


class TestPeriodTransitions:

    def _period(self, status: PeriodStatus) -> AttendancePeriod:
        return AttendancePeriod(
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
            status=status,
            created_by_id=uuid4(),
        )

    def test_locked_is_terminal(self):
        assert VALID_TRANSITIONS[PeriodStatus.LOCKED] == frozenset()

    def test_pending_only_finalizes(self):
        period = self._period(PeriodStatus.PENDING)

        assert period.can_transition_to(PeriodStatus.FINALIZED)
        assert not period.can_transition_to(PeriodStatus.LOCKED)

    def test_finalized_can_unlock_or_lock(self):
        period = self._period(PeriodStatus.FINALIZED)

        assert period.can_transition_to(PeriodStatus.PENDING)
        assert period.can_transition_to(PeriodStatus.LOCKED)
        assert period.is_frozen

    def test_invalid_transition_message(self):
        period = self._period(PeriodStatus.LOCKED)

        with pytest.raises(ValueError, match="Invalid transition: locked -> pending"):
            period.validate_transition(PeriodStatus.PENDING)

    def test_status_loaded_as_plain_string(self):
        period = self._period(PeriodStatus.PENDING)
        period.status = "finalized"

        assert period.status_enum is PeriodStatus.FINALIZED


class TestResultDtos:

    def test_issue_messages(self):
        result = PeriodValidationResult(
            can_finalize=False,
            issues=(
                FinalizationIssue(FinalizationIssueType.UNRESOLVED_CONFLICTS, 2),
                FinalizationIssue(FinalizationIssueType.PENDING_APPROVALS, 1),
                FinalizationIssue(FinalizationIssueType.MISSING_DATA, 4),
            ),
        )

        assert result.messages == (
            "2 records have unresolved conflicts",
            "1 records have pending approvals",
            "4 records have missing clock data",
        )

    def test_failed_operation_result(self):
        result = PeriodOperationResult.failed("NOT_FOUND", "Period not found")

        assert not result.success
        assert result.errors == ("Period not found",)
        assert result.error_code == "NOT_FOUND"

    def test_to_dict_is_json_safe(self):
        period_id = uuid4()
        info = AttendancePeriodInfo(
            id=period_id,
            start_date=date(2024, 1, 1),
            end_date=date(2024, 1, 31),
            status="pending",
        )

        data = PeriodOperationResult.ok(info, 3).to_dict()

        assert data["period"]["id"] == str(period_id)
        assert data["period"]["start_date"] == "2024-01-01"
        assert data["affected_record_count"] == 3
        assert info.contains_date(date(2024, 1, 31))
        assert not info.contains_date(date(2024, 2, 1))


class TestDeterministicClock:

    def test_frozen_until_advanced(self):
        clock = DeterministicClock(datetime(2024, 1, 1, 9, 0, tzinfo=UTC))

        assert clock.now() == clock.now()
        assert clock.advance(hours=2) == datetime(2024, 1, 1, 11, 0, tzinfo=UTC)
        assert clock.now() == datetime(2024, 1, 1, 11, 0, tzinfo=UTC)

    def test_naive_time_taken_as_utc(self):
        clock = DeterministicClock(datetime(2024, 1, 1, 9, 0))

        assert clock.now().tzinfo is UTC
