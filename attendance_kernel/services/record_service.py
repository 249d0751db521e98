"""
AttendanceRecordService -- operator edits, review resolution, retention purge.

Responsibility:
    Applies operator changes to individual attendance records while their
    period is editable, resolves conflicts and pending approvals, and
    deletes old non-finalized records on request.

Architecture position:
    Kernel > Services -- imperative shell.  Editability is decided by
    PeriodLifecycleService.validate_record_editability.

Invariants enforced:
    - No change to a record whose period is FINALIZED or LOCKED.
    - An edit recomputes total_hours and puts the record into
      PENDING_APPROVAL.
    - Every change writes an audit entry in the same transaction.

Failure modes:
    - NotFoundError if the record does not exist.
    - ValidationError if edited clock times are not datetimes of matching
      timezone awareness.
    - StateConflictError if the record is not editable, or a resolution
      targets a record with nothing to resolve.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from attendance_kernel.db.engine import atomic
from attendance_kernel.domain.clock import Clock
from attendance_kernel.domain.dtos import AttendanceRecordInfo
from attendance_kernel.domain.validation import validate_clock_times
from attendance_kernel.domain.values import worked_hours
from attendance_kernel.exceptions import NotFoundError, StateConflictError, ValidationError
from attendance_kernel.logging_config import get_logger
from attendance_kernel.models.attendance_record import AttendanceRecord, ReviewStatus
from attendance_kernel.services.auditor_service import AuditTrailService
from attendance_kernel.services.base import BaseService
from attendance_kernel.services.period_service import PeriodLifecycleService

logger = get_logger("services.record")


class Resolution(str, Enum):
    APPROVE = "approve"
    DISCARD = "discard"


_RESOLUTION_STATUS = {
    Resolution.APPROVE: ReviewStatus.CLEAR,
    Resolution.DISCARD: ReviewStatus.DISCARDED,
}


class AttendanceRecordService(BaseService[AttendanceRecord]):

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditTrailService | None = None,
    ):
        super().__init__(session, clock)
        self._auditor = auditor or AuditTrailService(session, self.clock)
        self._periods = PeriodLifecycleService(session, self.clock, self._auditor)

    def _editable_record(self, record_id: UUID) -> AttendanceRecord:
        # Share-locks the period row; finalize takes FOR UPDATE on it first
        editability = self._periods.validate_record_editability(record_id, for_share=True)
        if not editability.can_edit:
            if editability.reason == "record not found":
                raise NotFoundError("AttendanceRecord", str(record_id))
            logger.warning(
                "record_edit_rejected",
                extra={"record_id": str(record_id), "reason": editability.reason},
            )
            raise StateConflictError(f"Record is not editable: {editability.reason}")
        return self.session.execute(
            select(AttendanceRecord)
            .where(AttendanceRecord.id == record_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()

    def update_record(
        self,
        record_id: UUID,
        clock_in: datetime | None,
        clock_out: datetime | None,
        actor_id: UUID,
    ) -> AttendanceRecordInfo:
        """Replace the clock times; the record then awaits approval."""
        issues = validate_clock_times(clock_in, clock_out)
        if issues:
            raise ValidationError("; ".join(str(i) for i in issues), field=issues[0].field)

        with atomic(self.session):
            record = self._editable_record(record_id)
            before_status = ReviewStatus(record.review_status).value
            changes = {
                "clock_in": {"from": record.clock_in, "to": clock_in},
                "clock_out": {"from": record.clock_out, "to": clock_out},
            }

            record.clock_in = clock_in
            record.clock_out = clock_out
            record.total_hours = worked_hours(clock_in, clock_out)
            record.review_status = ReviewStatus.PENDING_APPROVAL
            record.updated_by_id = actor_id
            self.session.flush()

            self._auditor.record_record_edited(record.id, actor_id, before_status, changes)

        logger.info(
            "attendance_record_edited",
            extra={"record_id": str(record.id), "actor_id": str(actor_id)},
        )
        return AttendanceRecordInfo.from_model(record)

    def resolve_record(
        self,
        record_id: UUID,
        resolution: Resolution,
        actor_id: UUID,
        notes: str | None = None,
    ) -> AttendanceRecordInfo:
        """
        Close out a CONFLICT or PENDING_APPROVAL record.

        APPROVE clears the flag; DISCARD excludes the record from payroll
        and from the missing-data count.
        """
        resolution = Resolution(resolution)
        with atomic(self.session):
            record = self._editable_record(record_id)
            before_status = ReviewStatus(record.review_status)
            if before_status not in (ReviewStatus.CONFLICT, ReviewStatus.PENDING_APPROVAL):
                raise StateConflictError(
                    f"Record has nothing to resolve (status {before_status.value})",
                    current_status=before_status.value,
                )

            after_status = _RESOLUTION_STATUS[resolution]
            record.review_status = after_status
            record.reviewed_by_id = actor_id
            record.review_notes = notes
            record.updated_by_id = actor_id
            self.session.flush()

            self._auditor.record_record_resolved(
                record.id, actor_id, before_status.value, after_status.value, notes
            )

        logger.info(
            "attendance_record_resolved",
            extra={"record_id": str(record.id), "resolution": resolution.value},
        )
        return AttendanceRecordInfo.from_model(record)

    def purge_records_before(self, cutoff: date, actor_id: UUID) -> int:
        """Delete non-finalized records dated before ``cutoff``.  Returns the count."""
        with atomic(self.session):
            result = self.session.execute(
                delete(AttendanceRecord)
                .where(
                    AttendanceRecord.work_date < cutoff,
                    AttendanceRecord.is_finalized.is_(False),
                )
                .execution_options(synchronize_session="fetch")
            )
            purged = result.rowcount or 0
            self._auditor.record_records_purged(uuid4(), actor_id, cutoff, purged)

        logger.info(
            "attendance_records_purged",
            extra={"cutoff": cutoff.isoformat(), "purged_count": purged},
        )
        return purged
