"""
Overtime engine tests.

Verifies:
- Daily threshold splits a long day into standard and overtime
- Weekly threshold applies to the standard hours left after the daily rule
- Weeks start on the configured weekday
- No hour is ever counted twice (property test)
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from attendance_engines.overtime import split_overtime, week_of, week_start_index
from attendance_engines.tracer import input_fingerprint

D = Decimal

# 2024-01-01 is a Monday
MONDAY = date(2024, 1, 1)


def _week(*hours, start=MONDAY) -> dict[date, Decimal]:
    return {start + timedelta(days=i): D(str(h)) for i, h in enumerate(hours)}


class TestDailyThreshold:

    def test_nine_hour_day_gives_one_hour_overtime(self):
        result = split_overtime(
            days={MONDAY: D("9")}, daily_threshold=D("8"), weekly_threshold=D("40")
        )

        assert result.standard_hours == D("8")
        assert result.overtime_hours == D("1")
        assert result.days[0].daily_overtime == D("1")
        assert result.days[0].weekly_overtime == D("0")

    def test_day_at_threshold_has_no_overtime(self):
        result = split_overtime(
            days={MONDAY: D("8")}, daily_threshold=D("8"), weekly_threshold=None
        )

        assert result.overtime_hours == D("0")
        assert result.standard_hours == D("8")

    def test_fractional_hours(self):
        result = split_overtime(
            days={MONDAY: D("10.25")}, daily_threshold=D("8"), weekly_threshold=None
        )

        assert result.standard_hours == D("8")
        assert result.overtime_hours == D("2.25")

    def test_disabled_daily_rule(self):
        result = split_overtime(
            days={MONDAY: D("12")}, daily_threshold=None, weekly_threshold=None
        )

        assert result.standard_hours == D("12")
        assert result.overtime_hours == D("0")


class TestWeeklyThreshold:

    def test_sixth_day_pushes_past_weekly_threshold(self):
        # 8h x 6 days: 40 standard, the sixth day is entirely weekly overtime
        result = split_overtime(
            days=_week(8, 8, 8, 8, 8, 8),
            daily_threshold=D("8"),
            weekly_threshold=D("40"),
        )

        assert result.standard_hours == D("40")
        assert result.overtime_hours == D("8")
        assert result.days[-1].weekly_overtime == D("8")
        assert all(d.weekly_overtime == D("0") for d in result.days[:5])

    def test_daily_overtime_does_not_count_toward_weekly(self):
        # 10h x 5: 2h daily OT per day, 40 standard, no weekly OT
        result = split_overtime(
            days=_week(10, 10, 10, 10, 10),
            daily_threshold=D("8"),
            weekly_threshold=D("40"),
        )

        assert result.standard_hours == D("40")
        assert result.overtime_hours == D("10")
        assert all(d.weekly_overtime == D("0") for d in result.days)

    def test_day_straddling_threshold_is_split(self):
        # 9h x 4 = 36 (daily threshold disabled); the fifth day's 9h splits 4/5
        result = split_overtime(
            days=_week(9, 9, 9, 9, 9),
            daily_threshold=None,
            weekly_threshold=D("40"),
        )

        last = result.days[-1]
        assert last.standard_hours == D("4")
        assert last.weekly_overtime == D("5")
        assert result.standard_hours == D("40")

    def test_weeks_are_independent(self):
        days = _week(8, 8, 8, 8, 8, 8)
        days.update(_week(8, 8, 8, 8, 8, start=MONDAY + timedelta(days=7)))

        result = split_overtime(days=days, daily_threshold=D("8"), weekly_threshold=D("40"))

        assert result.standard_hours == D("80")
        assert result.overtime_hours == D("8")

    def test_week_start_changes_grouping(self):
        # Wed..Tue with a Wednesday week start is one week; with Monday it is two
        wednesday = MONDAY + timedelta(days=2)
        days = _week(8, 8, 8, 8, 8, 8, start=wednesday)

        monday_weeks = split_overtime(
            days=days, daily_threshold=None, weekly_threshold=D("40"), week_start="monday"
        )
        wednesday_weeks = split_overtime(
            days=days, daily_threshold=None, weekly_threshold=D("40"), week_start="wednesday"
        )

        assert monday_weeks.overtime_hours == D("0")
        assert wednesday_weeks.overtime_hours == D("8")

    def test_unordered_input_is_processed_in_date_order(self):
        days = _week(8, 8, 8, 8, 8, 8)
        reversed_days = dict(reversed(list(days.items())))

        result = split_overtime(
            days=reversed_days, daily_threshold=D("8"), weekly_threshold=D("40")
        )

        assert [d.work_date for d in result.days] == sorted(days)
        assert result.days[-1].weekly_overtime == D("8")


class TestValidation:

    def test_negative_hours_rejected(self):
        with pytest.raises(ValueError, match="Negative hours"):
            split_overtime(days={MONDAY: D("-1")}, daily_threshold=D("8"), weekly_threshold=None)

    @pytest.mark.parametrize("threshold", [D("0"), D("-8")])
    def test_non_positive_threshold_rejected(self, threshold):
        with pytest.raises(ValueError, match="must be positive"):
            split_overtime(days={MONDAY: D("1")}, daily_threshold=threshold, weekly_threshold=None)

    def test_unknown_week_start_rejected(self):
        with pytest.raises(ValueError, match="Unknown week_start"):
            week_start_index("someday")

    def test_empty_input(self):
        result = split_overtime(days={}, daily_threshold=D("8"), weekly_threshold=D("40"))

        assert result.days == ()
        assert result.total_hours == D("0")


class TestWeekOf:

    def test_monday_week(self):
        assert week_of(date(2024, 1, 7), week_start_index("monday")) == MONDAY

    def test_sunday_week(self):
        assert week_of(date(2024, 1, 3), week_start_index("sunday")) == date(2023, 12, 31)


class TestTrace:

    def test_engine_emits_trace(self, captured_logs):
        split_overtime(days={MONDAY: D("9")}, daily_threshold=D("8"), weekly_threshold=None)

        traces = [r for r in captured_logs() if r["message"] == "ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "overtime"
        assert len(traces[-1]["input_fingerprint"]) == 16

    def test_trace_summarizes_result(self, captured_logs):
        split_overtime(days={MONDAY: D("9")}, daily_threshold=D("8"), weekly_threshold=None)

        trace = [r for r in captured_logs() if r["message"] == "ENGINE_TRACE"][-1]
        assert trace["result"]["day_count"] == 1
        assert D(trace["result"]["standard_hours"]) == D("8")
        assert D(trace["result"]["overtime_hours"]) == D("1")

    def test_equal_inputs_share_fingerprint(self):
        first = input_fingerprint(("days",), {"days": {MONDAY: D("8")}})
        second = input_fingerprint(("days",), {"days": {MONDAY: D("8.00")}})
        other = input_fingerprint(("days",), {"days": {MONDAY: D("9")}})

        assert first == second
        assert first != other

    def test_failure_is_traced_and_raised(self, captured_logs):
        with pytest.raises(ValueError):
            split_overtime(days={MONDAY: D("9")}, daily_threshold=D("0"), weekly_threshold=None)

        trace = [r for r in captured_logs() if r["message"] == "ENGINE_TRACE"][-1]
        assert trace["level"] == "WARNING"
        assert trace["error_type"] == "ValueError"


hours = st.decimals(min_value=0, max_value=24, places=2, allow_nan=False, allow_infinity=False)


class TestNoDoubleCounting:

    @settings(max_examples=200, deadline=None)
    @given(
        daily_hours=st.lists(hours, min_size=1, max_size=21),
        daily_threshold=st.sampled_from([None, D("8"), D("10")]),
        weekly_threshold=st.sampled_from([None, D("40"), D("44")]),
        week_start=st.sampled_from(["monday", "sunday", "thursday"]),
    )
    def test_standard_plus_overtime_equals_total(
        self, daily_hours, daily_threshold, weekly_threshold, week_start
    ):
        days = _week(*daily_hours)

        result = split_overtime(
            days=days,
            daily_threshold=daily_threshold,
            weekly_threshold=weekly_threshold,
            week_start=week_start,
        )

        assert result.standard_hours + result.overtime_hours == sum(days.values(), D("0"))
        for day in result.days:
            assert day.standard_hours + day.overtime_hours == day.total_hours
            assert day.standard_hours >= 0
            assert day.weekly_overtime >= 0
            if daily_threshold is not None:
                assert day.overtime_hours >= max(D("0"), day.total_hours - daily_threshold)
                assert day.standard_hours <= daily_threshold

    @settings(max_examples=100, deadline=None)
    @given(daily_hours=st.lists(hours, min_size=1, max_size=7))
    def test_weekly_standard_never_exceeds_threshold(self, daily_hours):
        result = split_overtime(
            days=_week(*daily_hours), daily_threshold=D("8"), weekly_threshold=D("40")
        )

        assert result.standard_hours <= D("40")
