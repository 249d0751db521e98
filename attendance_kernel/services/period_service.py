"""
PeriodLifecycleService -- attendance period state machine.

Responsibility:
    Creates attendance periods, decides record editability, validates and
    performs finalization, unlock and lock transitions.  Owns the
    association of records to periods and the bulk is_finalized flag.

Architecture position:
    Kernel > Services -- imperative shell, called by API handlers and the
    payroll-approval collaborator (lock_period).

Invariants enforced:
    - No two periods overlap.
    - Transitions follow VALID_TRANSITIONS (PENDING -> FINALIZED ->
      LOCKED; FINALIZED -> PENDING only via unlock with a reason).
    - Each mutating operation is a single ``atomic()`` block: period row,
      record flags and audit entry commit together or not at all.
    - The period row is re-read with SELECT ... FOR UPDATE inside the
      transaction, so concurrent finalize/unlock calls serialize and the
      loser observes the winner's committed status.

Failure modes:
    Operations return PeriodOperationResult(success=False, errors,
    error_code) instead of raising.  Kernel errors keep their code;
    SQLAlchemy errors become STORAGE_ERROR and are logged with exc_info.
"""

from collections.abc import Callable
from datetime import date
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from attendance_kernel.db.engine import atomic
from attendance_kernel.domain.clock import Clock
from attendance_kernel.domain.dtos import (
    AttendancePeriodInfo,
    EditabilityResult,
    FinalizationIssue,
    FinalizationIssueType,
    PeriodOperationResult,
    PeriodValidationResult,
)
from attendance_kernel.exceptions import (
    AttendanceKernelError,
    FinalizationBlockedError,
    NotFoundError,
    OverlapError,
    StateConflictError,
    ValidationError,
)
from attendance_kernel.logging_config import LogContext, get_logger
from attendance_kernel.models.attendance_period import AttendancePeriod, PeriodStatus
from attendance_kernel.models.attendance_record import AttendanceRecord, ReviewStatus
from attendance_kernel.services.auditor_service import AuditTrailService
from attendance_kernel.services.base import BaseService

logger = get_logger("services.period")

STORAGE_ERROR = "STORAGE_ERROR"

PERIOD_NOT_FOUND = "Period not found"
NOT_PENDING = "Period is not in pending status"
UNLOCK_REASON_REQUIRED = "Unlock reason is required"
ONLY_FINALIZED_UNLOCK = "Only finalized periods can be unlocked"
ONLY_FINALIZED_LOCK = "Only finalized periods can be locked"


class PeriodLifecycleService(BaseService[AttendancePeriod]):
    """
    Owns the attendance period lifecycle.

    Contract:
        Mutating operations never raise for business or storage failures;
        they return PeriodOperationResult.  Read operations return DTOs.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditTrailService | None = None,
    ):
        super().__init__(session, clock)
        self._auditor = auditor or AuditTrailService(session, self.clock)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        period_id: UUID | None,
        body: Callable[[], PeriodOperationResult],
    ) -> PeriodOperationResult:
        with LogContext.bind(period_id=str(period_id) if period_id else None):
            try:
                return body()
            except AttendanceKernelError as exc:
                messages = getattr(exc, "messages", None) or (str(exc),)
                logger.warning(
                    "period_operation_rejected",
                    extra={
                        "operation": operation,
                        "error_code": exc.code,
                        "errors": list(messages),
                    },
                )
                return PeriodOperationResult.failed(exc.code, *messages)
            except SQLAlchemyError:
                logger.error(
                    "period_operation_failed",
                    extra={"operation": operation},
                    exc_info=True,
                )
                return PeriodOperationResult.failed(
                    STORAGE_ERROR,
                    f"Storage error during {operation}",
                )

    def _get_period_for_update(self, period_id: UUID) -> AttendancePeriod:
        period = self.session.execute(
            select(AttendancePeriod)
            .where(AttendancePeriod.id == period_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if period is None:
            raise NotFoundError("AttendancePeriod", str(period_id), PERIOD_NOT_FOUND)
        return period

    def _find_overlap(self, start_date: date, end_date: date) -> AttendancePeriod | None:
        return self.session.execute(
            select(AttendancePeriod)
            .where(
                AttendancePeriod.start_date <= end_date,
                AttendancePeriod.end_date >= start_date,
            )
            .order_by(AttendancePeriod.start_date)
            .limit(1)
        ).scalar_one_or_none()

    def _associate_records(self, period: AttendancePeriod, actor_id: UUID) -> int:
        """Attach unassociated in-range records to ``period``."""
        result = self.session.execute(
            update(AttendanceRecord)
            .where(
                AttendanceRecord.period_id.is_(None),
                AttendanceRecord.work_date >= period.start_date,
                AttendanceRecord.work_date <= period.end_date,
            )
            .values(period_id=period.id, updated_by_id=actor_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def _set_records_finalized(self, period: AttendancePeriod, finalized: bool, actor_id: UUID) -> int:
        result = self.session.execute(
            update(AttendanceRecord)
            .where(AttendanceRecord.period_id == period.id)
            .values(is_finalized=finalized, updated_by_id=actor_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def _count_in_range(self, start_date: date, end_date: date, *criteria) -> int:
        return self.session.execute(
            select(func.count(AttendanceRecord.id)).where(
                AttendanceRecord.work_date >= start_date,
                AttendanceRecord.work_date <= end_date,
                *criteria,
            )
        ).scalar_one()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_period(
        self,
        start_date: date,
        end_date: date,
        actor_id: UUID,
    ) -> PeriodOperationResult:
        """
        Create a PENDING period and attach unassociated in-range records.

        Fails with VALIDATION_ERROR when start_date > end_date and with
        PERIOD_OVERLAP when the range intersects an existing period.
        """

        def body() -> PeriodOperationResult:
            if start_date > end_date:
                raise ValidationError("Start date must not be after end date", field="start_date")

            with atomic(self.session):
                existing = self._find_overlap(start_date, end_date)
                if existing is not None:
                    raise OverlapError(
                        str(existing.id),
                        max(start_date, existing.start_date).isoformat(),
                        min(end_date, existing.end_date).isoformat(),
                    )

                period = AttendancePeriod(
                    start_date=start_date,
                    end_date=end_date,
                    status=PeriodStatus.PENDING,
                    created_by_id=actor_id,
                )
                self.session.add(period)
                self.session.flush()

                associated = self._associate_records(period, actor_id)
                self._auditor.record_period_created(
                    period.id, start_date, end_date, actor_id, associated
                )

            logger.info(
                "period_created",
                extra={
                    "period_id": str(period.id),
                    "start_date": start_date.isoformat(),
                    "end_date": end_date.isoformat(),
                    "associated_records": associated,
                },
            )
            return PeriodOperationResult.ok(AttendancePeriodInfo.from_model(period), associated)

        return self._run("create_period", None, body)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def covering_period(self, day: date, *, for_share: bool = False) -> AttendancePeriod | None:
        """
        The period whose range contains ``day``, if any.

        ``for_share`` takes a FOR SHARE row lock, so a concurrent
        finalize/unlock waits for the caller's transaction.
        """
        stmt = select(AttendancePeriod).where(
            AttendancePeriod.start_date <= day,
            AttendancePeriod.end_date >= day,
        )
        if for_share:
            stmt = stmt.with_for_update(read=True).execution_options(populate_existing=True)
        return self.session.execute(stmt).scalar_one_or_none()

    def validate_record_editability(
        self,
        record_id: UUID,
        *,
        for_share: bool = False,
    ) -> EditabilityResult:
        """
        Whether the record's period still allows edits.

        Callers about to write pass ``for_share=True`` inside their
        transaction; the period row then stays share-locked until commit.
        """
        record = self.session.get(AttendanceRecord, record_id)
        if record is None:
            return EditabilityResult(can_edit=False, reason="record not found")

        if record.period_id is not None:
            stmt = select(AttendancePeriod).where(AttendancePeriod.id == record.period_id)
            if for_share:
                stmt = stmt.with_for_update(read=True).execution_options(populate_existing=True)
            period = self.session.execute(stmt).scalar_one_or_none()
        else:
            period = self.covering_period(record.work_date, for_share=for_share)

        if period is not None:
            status = period.status_enum
            if status is PeriodStatus.FINALIZED:
                return EditabilityResult(can_edit=False, reason="in finalized period")
            if status is PeriodStatus.LOCKED:
                return EditabilityResult(can_edit=False, reason="in locked period")
        return EditabilityResult(can_edit=True)

    def validate_period_for_finalization(
        self,
        start_date: date,
        end_date: date,
    ) -> PeriodValidationResult:
        """
        Count conflicts, pending approvals and missing-data records in range.

        Every nonzero count is reported as its own issue.
        """
        counts = (
            (
                FinalizationIssueType.UNRESOLVED_CONFLICTS,
                self._count_in_range(
                    start_date,
                    end_date,
                    AttendanceRecord.review_status == ReviewStatus.CONFLICT,
                ),
            ),
            (
                FinalizationIssueType.PENDING_APPROVALS,
                self._count_in_range(
                    start_date,
                    end_date,
                    AttendanceRecord.review_status == ReviewStatus.PENDING_APPROVAL,
                ),
            ),
            (
                FinalizationIssueType.MISSING_DATA,
                self._count_in_range(
                    start_date,
                    end_date,
                    AttendanceRecord.clock_in.is_(None),
                    AttendanceRecord.clock_out.is_(None),
                    AttendanceRecord.review_status != ReviewStatus.DISCARDED,
                ),
            ),
        )
        issues = tuple(
            FinalizationIssue(type=issue_type, count=count)
            for issue_type, count in counts
            if count > 0
        )
        return PeriodValidationResult(can_finalize=not issues, issues=issues)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def finalize_period(self, period_id: UUID, actor_id: UUID) -> PeriodOperationResult:
        """
        PENDING -> FINALIZED; freezes every record in the period.

        Blocked by unresolved conflicts, and also by pending approvals and
        missing-data records: a finalized period may only hold records that
        are CLEAR or DISCARDED.  Counting only conflicts would let an
        unapproved edit be frozen into payroll.
        """

        def body() -> PeriodOperationResult:
            with atomic(self.session):
                period = self._get_period_for_update(period_id)
                if not period.can_transition_to(PeriodStatus.FINALIZED):
                    raise StateConflictError(NOT_PENDING, current_status=period.status_enum.value)

                validation = self.validate_period_for_finalization(
                    period.start_date, period.end_date
                )
                if not validation.can_finalize:
                    raise FinalizationBlockedError(validation.messages)

                self._associate_records(period, actor_id)
                affected = self._set_records_finalized(period, True, actor_id)

                period.status = PeriodStatus.FINALIZED
                period.finalized_by_id = actor_id
                period.finalized_at = self.clock.now()
                period.updated_by_id = actor_id
                self.session.flush()

                self._auditor.record_period_finalized(period.id, actor_id, affected)

            logger.info(
                "period_finalized",
                extra={"period_id": str(period.id), "affected_records": affected},
            )
            return PeriodOperationResult.ok(AttendancePeriodInfo.from_model(period), affected)

        return self._run("finalize_period", period_id, body)

    def unlock_period(
        self,
        period_id: UUID,
        actor_id: UUID,
        reason: str,
    ) -> PeriodOperationResult:
        """FINALIZED -> PENDING with a mandatory reason; records become editable."""
        if reason is None or not reason.strip():
            logger.warning(
                "period_operation_rejected",
                extra={"operation": "unlock_period", "period_id": str(period_id)},
            )
            return PeriodOperationResult.failed(ValidationError.code, UNLOCK_REASON_REQUIRED)

        def body() -> PeriodOperationResult:
            with atomic(self.session):
                period = self._get_period_for_update(period_id)
                if period.status_enum is not PeriodStatus.FINALIZED:
                    raise StateConflictError(
                        ONLY_FINALIZED_UNLOCK, current_status=period.status_enum.value
                    )
                period.validate_transition(PeriodStatus.PENDING)

                previous_by = period.finalized_by_id
                previous_at = period.finalized_at
                affected = self._set_records_finalized(period, False, actor_id)

                period.status = PeriodStatus.PENDING
                period.unlock_reason = reason.strip()
                period.unlocked_by_id = actor_id
                period.unlocked_at = self.clock.now()
                period.updated_by_id = actor_id
                self.session.flush()

                self._auditor.record_period_unlocked(
                    period.id,
                    actor_id,
                    reason.strip(),
                    affected,
                    previous_finalized_by_id=previous_by,
                    previous_finalized_at=previous_at,
                )

            logger.info(
                "period_unlocked",
                extra={"period_id": str(period.id), "affected_records": affected},
            )
            return PeriodOperationResult.ok(AttendancePeriodInfo.from_model(period), affected)

        return self._run("unlock_period", period_id, body)

    def lock_period(self, period_id: UUID, actor_id: UUID) -> PeriodOperationResult:
        """FINALIZED -> LOCKED, called once payroll for the period is approved."""

        def body() -> PeriodOperationResult:
            with atomic(self.session):
                period = self._get_period_for_update(period_id)
                if not period.can_transition_to(PeriodStatus.LOCKED):
                    raise StateConflictError(
                        ONLY_FINALIZED_LOCK, current_status=period.status_enum.value
                    )
                period.status = PeriodStatus.LOCKED
                period.locked_at = self.clock.now()
                period.updated_by_id = actor_id
                self.session.flush()
                self._auditor.record_period_locked(period.id, actor_id)

            logger.info("period_locked", extra={"period_id": str(period.id)})
            return PeriodOperationResult.ok(AttendancePeriodInfo.from_model(period))

        return self._run("lock_period", period_id, body)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_period(self, period_id: UUID) -> AttendancePeriodInfo | None:
        period = self.session.get(AttendancePeriod, period_id)
        return AttendancePeriodInfo.from_model(period) if period else None

    def get_period_for_date(self, day: date) -> AttendancePeriodInfo | None:
        period = self.covering_period(day)
        return AttendancePeriodInfo.from_model(period) if period else None

    def list_periods(self, status: PeriodStatus | None = None) -> list[AttendancePeriodInfo]:
        stmt = select(AttendancePeriod).order_by(AttendancePeriod.start_date)
        if status is not None:
            stmt = stmt.where(AttendancePeriod.status == status)
        return [AttendancePeriodInfo.from_model(p) for p in self.session.execute(stmt).scalars()]
