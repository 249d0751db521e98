"""
AttendanceIngestionService -- terminal punch ingestion with deduplication.

Responsibility:
    Converts validated record inputs (and raw terminal punches, via
    ``ingest_punches``) into AttendanceRecord rows.  Deduplicates on the
    natural key (staff, work_date, transaction_id), flags same-day
    re-fetches as conflicts, and associates each record with the PENDING
    period that covers its date.

Architecture position:
    Kernel > Services -- imperative shell, called by the terminal fetch
    orchestrator or directly by API layers.

Invariants enforced:
    - Natural-key uniqueness: checked before insert and backed by the
      ``uq_attendance_record_natural_key`` constraint.  A concurrent insert
      that loses the race surfaces as DuplicateError, never a second row.
    - No record is created inside a FINALIZED or LOCKED period.  The covering
      period is read FOR SHARE, so finalize cannot slip in between the
      status check and the insert.
    - Batches are many small independent attempts: each input runs in its
      own SAVEPOINT inside a per-chunk transaction, so one failure never
      aborts the others.

Failure modes:
    - ValidationError, MappingError, DuplicateError, StateConflictError
      from create_record.
    - create_records_batch and ingest_punches never raise for per-record
      failures; they report them.
"""

from collections.abc import Iterable, Sequence
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from attendance_kernel.db.engine import atomic
from attendance_kernel.domain.clock import Clock
from attendance_kernel.domain.dtos import (
    AttendanceFetchResult,
    AttendanceRecordInfo,
    AttendanceRecordInput,
    BatchCreateResult,
    FetchError,
    FetchErrorType,
    FetchSummary,
    RecordFailure,
)
from attendance_kernel.domain.punches import TerminalPunch, group_punches
from attendance_kernel.domain.validation import (
    DEFAULT_MAX_PUNCH_AGE_DAYS,
    normalize_punch,
    validate_punch,
    validate_record_input,
)
from attendance_kernel.domain.values import worked_hours
from attendance_kernel.exceptions import (
    AttendanceKernelError,
    DuplicateError,
    MappingError,
    StateConflictError,
    ValidationError,
)
from attendance_kernel.logging_config import get_logger
from attendance_kernel.models.attendance_period import AttendancePeriod
from attendance_kernel.models.attendance_record import AttendanceRecord, ReviewStatus
from attendance_kernel.models.staff import Staff
from attendance_kernel.services.base import BaseService

logger = get_logger("services.ingestion")

DEFAULT_BATCH_SIZE = 50
DATABASE_ERROR_CODE = "DATABASE_ERROR"

_FETCH_ERROR_TYPES = {
    DuplicateError.code: FetchErrorType.DUPLICATE,
    MappingError.code: FetchErrorType.EMPLOYEE_MAPPING,
    ValidationError.code: FetchErrorType.VALIDATION,
    StateConflictError.code: FetchErrorType.VALIDATION,
}


class AttendanceIngestionService(BaseService[AttendanceRecord]):
    """
    Creates attendance records from terminal data.

    Contract:
        create_record is atomic on its own.  Called inside a caller's
        transaction it runs as a SAVEPOINT.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_punch_age_days: int = DEFAULT_MAX_PUNCH_AGE_DAYS,
    ):
        super().__init__(session, clock)
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.batch_size = batch_size
        self.max_punch_age_days = max_punch_age_days

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _resolve_staff(self, record_input: AttendanceRecordInput) -> Staff:
        if record_input.staff_id is not None:
            staff = self.session.get(Staff, record_input.staff_id)
            reference = str(record_input.staff_id)
        else:
            staff = self.session.execute(
                select(Staff).where(Staff.employee_id == record_input.employee_id)
            ).scalar_one_or_none()
            reference = record_input.employee_id

        if staff is None:
            raise MappingError(reference, f"No staff member mapped to employee ID {reference}")
        if not staff.is_active:
            raise MappingError(reference, f"Staff member {reference} is inactive")
        return staff

    def _period_covering(self, day: date) -> AttendancePeriod | None:
        # FOR SHARE: a concurrent finalize waits until this insert commits
        return self.session.execute(
            select(AttendancePeriod)
            .where(
                AttendancePeriod.start_date <= day,
                AttendancePeriod.end_date >= day,
            )
            .with_for_update(read=True)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def record_exists(self, staff_id: UUID, work_date: date, transaction_id: str) -> bool:
        """True if a record with this natural key exists."""
        found = self.session.execute(
            select(AttendanceRecord.id).where(
                AttendanceRecord.staff_id == staff_id,
                AttendanceRecord.work_date == work_date,
                AttendanceRecord.transaction_id == transaction_id,
            )
        ).first()
        return found is not None

    def _has_other_transaction(self, staff_id: UUID, work_date: date, transaction_id: str) -> bool:
        found = self.session.execute(
            select(AttendanceRecord.id).where(
                AttendanceRecord.staff_id == staff_id,
                AttendanceRecord.work_date == work_date,
                AttendanceRecord.transaction_id != transaction_id,
                AttendanceRecord.review_status != ReviewStatus.DISCARDED,
            )
        ).first()
        return found is not None

    # ------------------------------------------------------------------
    # Single record
    # ------------------------------------------------------------------

    def create_record(
        self,
        record_input: AttendanceRecordInput,
        actor_id: UUID,
    ) -> AttendanceRecordInfo:
        """
        Validate and insert one attendance record.

        Raises:
            ValidationError: Malformed input.
            MappingError: No active staff member for the employee reference.
            StateConflictError: Date falls inside a FINALIZED/LOCKED period.
            DuplicateError: Natural key already exists.
        """
        issues = validate_record_input(record_input)
        if issues:
            logger.warning(
                "record_rejected_validation",
                extra={"issues": [str(i) for i in issues]},
            )
            raise ValidationError("; ".join(str(i) for i in issues), field=issues[0].field)

        try:
            with atomic(self.session):
                record = self._insert_record(record_input, actor_id)
        except IntegrityError:
            # Lost a concurrent insert race on the natural key
            staff_ref = str(record_input.staff_id or record_input.employee_id)
            logger.warning(
                "record_duplicate_race",
                extra={"transaction_id": record_input.transaction_id},
            )
            raise DuplicateError(
                staff_ref,
                record_input.work_date.isoformat(),
                record_input.transaction_id,
            ) from None

        logger.debug(
            "attendance_record_created",
            extra={
                "record_id": str(record.id),
                "employee_id": record.employee_id,
                "work_date": record.work_date.isoformat(),
                "review_status": record.review_status,
            },
        )
        return AttendanceRecordInfo.from_model(record)

    def _insert_record(
        self,
        record_input: AttendanceRecordInput,
        actor_id: UUID,
    ) -> AttendanceRecord:
        staff = self._resolve_staff(record_input)
        day = record_input.work_date

        period = self._period_covering(day)
        if period is not None and period.is_frozen:
            raise StateConflictError(
                f"Date {day.isoformat()} falls in a {period.status_enum.value} period",
                current_status=period.status_enum.value,
            )

        if self.record_exists(staff.id, day, record_input.transaction_id):
            raise DuplicateError(str(staff.id), day.isoformat(), record_input.transaction_id)

        conflict = self._has_other_transaction(staff.id, day, record_input.transaction_id)

        record = AttendanceRecord(
            staff_id=staff.id,
            employee_id=staff.employee_id,
            work_date=day,
            clock_in=record_input.clock_in,
            clock_out=record_input.clock_out,
            total_hours=worked_hours(record_input.clock_in, record_input.clock_out),
            transaction_id=record_input.transaction_id,
            fetched_at=self.clock.now(),
            fetched_by_id=actor_id,
            is_finalized=False,
            period_id=period.id if period is not None else None,
            review_status=ReviewStatus.CONFLICT if conflict else ReviewStatus.CLEAR,
            created_by_id=actor_id,
        )
        self.session.add(record)
        self.session.flush()
        return record

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def create_records_batch(
        self,
        inputs: Sequence[AttendanceRecordInput],
        actor_id: UUID,
    ) -> BatchCreateResult:
        """
        Create many records with per-record failure isolation.

        Each chunk of ``batch_size`` inputs is one short transaction; each
        input inside it is its own SAVEPOINT.
        """
        created: list[AttendanceRecordInfo] = []
        errors: list[RecordFailure] = []

        for start in range(0, len(inputs), self.batch_size):
            chunk = inputs[start:start + self.batch_size]
            with atomic(self.session):
                for record_input in chunk:
                    try:
                        created.append(self.create_record(record_input, actor_id))
                    except AttendanceKernelError as exc:
                        errors.append(RecordFailure(record_input, str(exc), exc.code))
                    except SQLAlchemyError:
                        logger.error(
                            "record_create_failed",
                            extra={"transaction_id": record_input.transaction_id},
                            exc_info=True,
                        )
                        errors.append(
                            RecordFailure(
                                record_input,
                                "Database error while creating record",
                                DATABASE_ERROR_CODE,
                            )
                        )

        logger.info(
            "attendance_batch_processed",
            extra={
                "input_count": len(inputs),
                "created_count": len(created),
                "error_count": len(errors),
            },
        )
        return BatchCreateResult(created=tuple(created), errors=tuple(errors))

    def ingest_punches(
        self,
        punches: Iterable[TerminalPunch],
        start_date: date,
        end_date: date,
        actor_id: UUID,
    ) -> AttendanceFetchResult:
        """
        Filter punches to the window, validate, group per employee-day,
        and batch-create.  Re-running the same window creates nothing new
        and reports every record as skipped.
        """
        now = self.clock.now()
        # Punches without a usable timestamp stay in so validation reports them
        window = [
            p for p in punches
            if not isinstance(p.timestamp, datetime) or start_date <= p.work_date <= end_date
        ]

        errors: list[FetchError] = []
        valid: list[TerminalPunch] = []
        validation_errors = 0
        for punch in window:
            issues = validate_punch(punch, now, self.max_punch_age_days)
            if issues:
                validation_errors += 1
                errors.append(
                    FetchError(
                        type=FetchErrorType.VALIDATION,
                        message="; ".join(str(i) for i in issues),
                        employee_id=str(punch.external_employee_id),
                    )
                )
            else:
                valid.append(normalize_punch(punch, now))

        batch = self.create_records_batch(group_punches(valid), actor_id)

        skipped = 0
        mapping_errors = 0
        other_errors = 0
        for failure in batch.errors:
            error_type = _FETCH_ERROR_TYPES.get(failure.error_type, FetchErrorType.DATABASE)
            if error_type is FetchErrorType.DUPLICATE:
                skipped += 1
            elif error_type is FetchErrorType.EMPLOYEE_MAPPING:
                mapping_errors += 1
            elif error_type is FetchErrorType.VALIDATION:
                validation_errors += 1
            else:
                other_errors += 1
            errors.append(
                FetchError(
                    type=error_type,
                    message=failure.reason,
                    employee_id=failure.input.employee_id,
                    transaction_id=failure.input.transaction_id,
                )
            )

        result = AttendanceFetchResult(
            total_records_processed=len(window),
            records_created=batch.created_count,
            records_skipped=skipped,
            records_with_errors=validation_errors + mapping_errors + other_errors,
            employee_mapping_errors=mapping_errors,
            validation_errors=validation_errors,
            records=batch.created,
            errors=tuple(errors),
            summary=FetchSummary(
                start_date=start_date,
                end_date=end_date,
                fetched_at=now,
                fetched_by_id=actor_id,
            ),
        )
        logger.info(
            "attendance_punches_ingested",
            extra={
                "punch_count": len(window),
                "records_created": result.records_created,
                "records_skipped": result.records_skipped,
                "records_with_errors": result.records_with_errors,
            },
        )
        return result
