"""
AttendanceFetchOrchestrator -- pulls punches from a terminal and ingests them.

Responsibility:
    One operator-triggered fetch: check authority, ask the punch source for
    the date window, hand the punches to AttendanceIngestionService and
    return the AttendanceFetchResult.

Architecture position:
    Services layer.  Owns the session for the fetch (one per call, from the
    injected session factory).  The device-polling collaborator sits behind
    the PunchSource protocol.

Failure modes:
    - Device failures (PunchSourceError, OSError, TimeoutError) become a
      TERMINAL_COMMUNICATION error in the result; nothing is written.
    - Storage failures become a DATABASE error in the result.
    - AuthorizationError is raised before the device is contacted.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import date
from typing import Protocol
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from attendance_config.bridges import build_ingestion_service
from attendance_config.schema import KernelSettings
from attendance_kernel.domain.clock import Clock, SystemClock
from attendance_kernel.domain.dtos import (
    AttendanceFetchResult,
    FetchError,
    FetchErrorType,
    FetchSummary,
)
from attendance_kernel.domain.punches import TerminalPunch
from attendance_kernel.logging_config import LogContext, get_logger
from attendance_services.authority import OperatorAction, OperatorRole, require_authority

logger = get_logger("services.attendance_fetch")


class PunchSourceError(Exception):
    """The attendance terminal could not be reached or returned garbage."""


class PunchSource(Protocol):
    def fetch_punches(
        self, start_date: date, end_date: date, timeout: int
    ) -> Iterable[TerminalPunch]: ...


class AttendanceFetchOrchestrator:

    def __init__(
        self,
        session_factory: Callable[[], Session],
        punch_source: PunchSource,
        clock: Clock | None = None,
        settings: KernelSettings | None = None,
    ):
        self._session_factory = session_factory
        self._punch_source = punch_source
        self._clock = clock or SystemClock()
        self._settings = settings or KernelSettings()

    def _failed(
        self,
        start_date: date,
        end_date: date,
        actor_id: UUID,
        error_type: FetchErrorType,
        message: str,
        processed: int = 0,
    ) -> AttendanceFetchResult:
        return AttendanceFetchResult(
            total_records_processed=processed,
            records_created=0,
            records_skipped=0,
            records_with_errors=processed,
            employee_mapping_errors=0,
            validation_errors=processed if error_type is FetchErrorType.VALIDATION else 0,
            records=(),
            errors=(FetchError(type=error_type, message=message),),
            summary=FetchSummary(
                start_date=start_date,
                end_date=end_date,
                fetched_at=self._clock.now(),
                fetched_by_id=actor_id,
            ),
        )

    def fetch(
        self,
        start_date: date,
        end_date: date,
        actor_id: UUID,
        role: OperatorRole = OperatorRole.ADMINISTRATOR,
    ) -> AttendanceFetchResult:
        """Fetch and ingest one date window.  Raises only AuthorizationError."""
        require_authority(role, OperatorAction.FETCH_ATTENDANCE)

        with LogContext.bind(actor_id=str(actor_id)):
            if start_date > end_date:
                return self._failed(
                    start_date,
                    end_date,
                    actor_id,
                    FetchErrorType.VALIDATION,
                    "Start date must not be after end date",
                )

            try:
                punches = list(
                    self._punch_source.fetch_punches(
                        start_date,
                        end_date,
                        timeout=self._settings.ingestion.device_timeout_seconds,
                    )
                )
            except (PunchSourceError, OSError, TimeoutError) as exc:
                logger.error(
                    "terminal_fetch_failed",
                    extra={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
                    exc_info=True,
                )
                return self._failed(
                    start_date,
                    end_date,
                    actor_id,
                    FetchErrorType.TERMINAL_COMMUNICATION,
                    f"Failed to communicate with attendance terminal: {exc}",
                )

            logger.info("terminal_punches_received", extra={"punch_count": len(punches)})

            session = self._session_factory()
            try:
                service = build_ingestion_service(session, self._settings, self._clock)
                return service.ingest_punches(punches, start_date, end_date, actor_id)
            except SQLAlchemyError as exc:
                logger.error("attendance_ingest_storage_failed", exc_info=True)
                return self._failed(
                    start_date,
                    end_date,
                    actor_id,
                    FetchErrorType.DATABASE,
                    f"Storage failure during ingestion: {exc.__class__.__name__}",
                    processed=len(punches),
                )
            finally:
                session.close()
