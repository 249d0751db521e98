"""
Attendance record maintenance tests.

Verifies:
- Edits recompute hours and require approval
- Edits with unusable clock times are rejected before any change
- Conflicts and pending approvals resolve to CLEAR or DISCARDED
- Nothing in a finalized period can be edited or resolved
- Retention purge removes only non-finalized records
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from attendance_kernel.exceptions import NotFoundError, StateConflictError, ValidationError
from attendance_kernel.models.attendance_record import AttendanceRecord, ReviewStatus
from attendance_kernel.models.audit_entry import AuditAction
from attendance_kernel.services.auditor_service import RECORD_ENTITY
from attendance_kernel.services.record_service import Resolution

JAN_15 = date(2024, 1, 15)


class TestUpdateRecord:

    def test_edit_recomputes_hours_and_needs_approval(
        self, record_service, create_staff, create_record, test_actor_id
    ):
        record = create_record(create_staff("E100"), JAN_15, hours=None)

        info = record_service.update_record(
            record.id,
            datetime(2024, 1, 15, 8, 0, tzinfo=UTC),
            datetime(2024, 1, 15, 17, 30, tzinfo=UTC),
            test_actor_id,
        )

        assert info.total_hours == Decimal("9.5")
        assert info.review_status == ReviewStatus.PENDING_APPROVAL.value

    def test_edit_is_audited_with_changes(
        self, record_service, auditor, create_staff, create_record, test_actor_id
    ):
        record = create_record(create_staff("E100"), JAN_15, hours=None)

        record_service.update_record(
            record.id,
            datetime(2024, 1, 15, 8, 0, tzinfo=UTC),
            None,
            test_actor_id,
        )

        trace = auditor.get_trace(RECORD_ENTITY, record.id)
        assert trace.last_action is AuditAction.RECORD_EDITED
        entry = trace.entries[-1]
        assert entry.before_status == "clear"
        assert entry.payload["clock_in"]["to"] == "2024-01-15T08:00:00+00:00"
        assert entry.payload["clock_out"] == {"from": None, "to": None}

    def test_edit_in_finalized_period_rejected(
        self, record_service, create_staff, create_record, finalized_period, test_actor_id
    ):
        record = create_record(create_staff("E100"), JAN_15)
        finalized_period(date(2024, 1, 1), date(2024, 1, 31))

        with pytest.raises(StateConflictError, match="finalized"):
            record_service.update_record(record.id, None, None, test_actor_id)

    def test_unknown_record(self, record_service, test_actor_id):
        with pytest.raises(NotFoundError):
            record_service.update_record(uuid4(), None, None, test_actor_id)

    def test_mixed_timezone_edit_rejected(
        self, record_service, session, create_staff, create_record, test_actor_id
    ):
        record = create_record(create_staff("E100"), JAN_15, hours=None)

        with pytest.raises(ValidationError, match="naive"):
            record_service.update_record(
                record.id,
                datetime(2024, 1, 15, 8, 0),
                datetime(2024, 1, 15, 17, 0, tzinfo=UTC),
                test_actor_id,
            )

        session.refresh(record)
        assert record.review_status == ReviewStatus.CLEAR


class TestResolveRecord:

    @pytest.mark.parametrize(
        ("resolution", "expected"),
        [
            (Resolution.APPROVE, ReviewStatus.CLEAR),
            (Resolution.DISCARD, ReviewStatus.DISCARDED),
        ],
    )
    def test_conflict_resolution(
        self, record_service, create_staff, create_record, test_actor_id, resolution, expected
    ):
        record = create_record(create_staff("E100"), JAN_15, review_status=ReviewStatus.CONFLICT)

        info = record_service.resolve_record(record.id, resolution, test_actor_id, notes="checked")

        assert info.review_status == expected.value

    def test_resolution_accepts_plain_string(
        self, record_service, create_staff, create_record, test_actor_id
    ):
        record = create_record(
            create_staff("E100"), JAN_15, review_status=ReviewStatus.PENDING_APPROVAL
        )

        info = record_service.resolve_record(record.id, "approve", test_actor_id)

        assert info.review_status == ReviewStatus.CLEAR.value

    def test_clear_record_has_nothing_to_resolve(
        self, record_service, create_staff, create_record, test_actor_id
    ):
        record = create_record(create_staff("E100"), JAN_15)

        with pytest.raises(StateConflictError, match="nothing to resolve"):
            record_service.resolve_record(record.id, Resolution.APPROVE, test_actor_id)

    def test_resolved_conflicts_unblock_finalization(
        self, record_service, period_service, create_staff, create_record, test_actor_id
    ):
        record = create_record(create_staff("E100"), JAN_15, review_status=ReviewStatus.CONFLICT)
        period = period_service.create_period(date(2024, 1, 1), date(2024, 1, 31), test_actor_id).period
        assert not period_service.finalize_period(period.id, test_actor_id).success

        record_service.resolve_record(record.id, Resolution.DISCARD, test_actor_id)

        assert period_service.finalize_period(period.id, test_actor_id).success


class TestPurge:

    def test_purge_removes_only_old_unfinalized_records(
        self, record_service, session, create_staff, create_record, finalized_period, test_actor_id
    ):
        staff = create_staff("E100")
        create_record(staff, date(2024, 1, 10))
        create_record(staff, date(2024, 2, 10))
        finalized_period(date(2024, 1, 1), date(2024, 1, 31))
        create_record(staff, date(2023, 12, 10))

        purged = record_service.purge_records_before(date(2024, 3, 1), test_actor_id)

        assert purged == 2
        remaining = session.execute(select(AttendanceRecord.work_date)).scalars().all()
        assert remaining == [date(2024, 1, 10)]

    def test_purge_is_audited(self, record_service, auditor, test_actor_id):
        record_service.purge_records_before(date(2024, 1, 1), test_actor_id)

        (entry,) = auditor.get_recent_entries(limit=1)
        assert entry.action == AuditAction.RECORDS_PURGED.value
        assert entry.affected_count == 0

    def test_purge_nothing(self, record_service, session, test_actor_id):
        assert record_service.purge_records_before(date(2020, 1, 1), test_actor_id) == 0
        assert session.execute(select(func.count(AttendanceRecord.id))).scalar_one() == 0
