"""
Immutability enforcement tests.

Verifies:
- Audit entries can be neither updated nor deleted through the ORM
- Clock data of a finalized attendance record is frozen; review notes are not
- Finalized records cannot be deleted
- Unlocking a period makes its records editable again
- PostgreSQL triggers block the same changes made with raw SQL
"""

from datetime import UTC, date, datetime

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import DBAPIError

from attendance_kernel.exceptions import ImmutabilityViolationError
from attendance_kernel.models.audit_entry import AuditEntry

JAN_10 = date(2024, 1, 10)


@pytest.fixture
def finalized_record(session, create_staff, create_record, finalized_period):
    record = create_record(create_staff("E100"), JAN_10, hours=8)
    period = finalized_period(date(2024, 1, 1), date(2024, 1, 31))
    session.refresh(record)
    assert record.is_finalized
    return record, period


@pytest.fixture
def audit_entry(session, period_service, test_actor_id):
    period_service.create_period(date(2024, 1, 1), date(2024, 1, 31), test_actor_id)
    return session.execute(select(AuditEntry)).scalars().first()


class TestAuditEntryImmutability:

    def test_update_rejected(self, session, audit_entry):
        audit_entry.reason = "rewritten"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.entity_type == "AuditEntry"

    def test_delete_rejected(self, session, audit_entry):
        session.delete(audit_entry)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestFinalizedRecordImmutability:

    @pytest.mark.parametrize(
        "field, value",
        [
            ("clock_in", datetime(2024, 1, 10, 7, 0, tzinfo=UTC)),
            ("work_date", date(2024, 1, 11)),
            ("transaction_id", "rewritten"),
            ("review_status", "discarded"),
        ],
    )
    def test_frozen_field_rejected(self, session, finalized_record, field, value):
        record, _ = finalized_record
        setattr(record, field, value)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_review_notes_still_editable(self, session, finalized_record):
        record, _ = finalized_record
        record.review_notes = "checked against paper timesheet"

        session.flush()

    def test_delete_rejected(self, session, finalized_record):
        record, _ = finalized_record
        session.delete(record)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_unlocked_record_is_editable(
        self, session, period_service, finalized_record, test_actor_id
    ):
        record, period = finalized_record
        period_service.unlock_period(period.id, test_actor_id, "correction")
        session.refresh(record)

        record.clock_in = datetime(2024, 1, 10, 8, 0, tzinfo=UTC)
        session.flush()

        assert record.is_finalized is False


@pytest.mark.postgres
class TestDatabaseTriggers:
    """Raw SQL never reaches the ORM listeners."""

    @pytest.fixture(autouse=True)
    def _postgres(self, requires_postgres):
        pass

    def test_raw_update_of_audit_entry_rejected(self, session, audit_entry):
        with pytest.raises(DBAPIError, match="IMMUTABILITY_VIOLATION"):
            session.execute(
                text("UPDATE audit_entries SET reason = 'rewritten' WHERE id = :id"),
                {"id": audit_entry.id},
            )

    def test_raw_delete_of_audit_entry_rejected(self, session, audit_entry):
        with pytest.raises(DBAPIError, match="IMMUTABILITY_VIOLATION"):
            session.execute(
                text("DELETE FROM audit_entries WHERE id = :id"), {"id": audit_entry.id}
            )

    def test_raw_update_of_finalized_record_rejected(self, session, finalized_record):
        record, _ = finalized_record
        with pytest.raises(DBAPIError, match="IMMUTABILITY_VIOLATION"):
            session.execute(
                text("UPDATE attendance_records SET total_hours = 12 WHERE id = :id"),
                {"id": record.id},
            )

    def test_raw_delete_of_finalized_record_rejected(self, session, finalized_record):
        record, _ = finalized_record
        with pytest.raises(DBAPIError, match="IMMUTABILITY_VIOLATION"):
            session.execute(
                text("DELETE FROM attendance_records WHERE id = :id"), {"id": record.id}
            )

    def test_triggers_installed(self, db_engine, db_tables):
        from attendance_kernel.db.triggers import triggers_installed

        assert triggers_installed(db_engine)
