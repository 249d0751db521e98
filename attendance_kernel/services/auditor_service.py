"""
AuditTrailService -- tamper-evident audit trail and hash chain maintenance.

Responsibility:
    Creates immutable, hash-chained audit entries for every lifecycle
    transition (period created/finalized/unlocked/locked, payroll
    calculated, record edited/resolved/purged).  Provides chain validation
    for tamper detection and trace queries for review.

Architecture position:
    Kernel > Services -- imperative shell, called by PeriodLifecycleService,
    PayrollCalculatorService and AttendanceRecordService inside their own
    transactions.

Invariants enforced:
    - Sequence monotonicity via SequenceService (never MAX(seq)+1).
    - Chain integrity: ``hash = H(entity_type, entity_id, action,
      payload_hash, prev_hash)`` where payload_hash covers the actor,
      before/after status, affected count, reason and payload.
    - Append-only: audit entries are never modified or deleted (ORM
      listeners + PostgreSQL triggers).

Failure modes:
    - AuditChainBrokenError from validate_chain().
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from attendance_kernel.domain.clock import Clock, SystemClock
from attendance_kernel.exceptions import AuditChainBrokenError
from attendance_kernel.logging_config import get_logger
from attendance_kernel.models.audit_entry import AuditAction, AuditEntry
from attendance_kernel.services.sequence_service import SequenceService
from attendance_kernel.utils.hashing import hash_audit_event, hash_payload, to_json_safe

logger = get_logger("services.auditor")

PERIOD_ENTITY = "AttendancePeriod"
PAYROLL_ENTITY = "PayrollPeriod"
RECORD_ENTITY = "AttendanceRecord"


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: AuditAction
    occurred_at: datetime
    actor_id: UUID
    before_status: str | None
    after_status: str | None
    affected_count: int | None
    reason: str | None
    payload: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """Complete audit trace for an entity, in sequence order."""

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    @property
    def actions(self) -> tuple[AuditAction, ...]:
        return tuple(e.action for e in self.entries)

    @property
    def last_action(self) -> AuditAction | None:
        return self.entries[-1].action if self.entries else None


def _hashed_body(
    actor_id: UUID,
    before_status: str | None,
    after_status: str | None,
    affected_count: int | None,
    reason: str | None,
    payload: dict[str, Any],
) -> dict[str, Any]:
    return {
        "actor_id": str(actor_id),
        "before_status": before_status,
        "after_status": after_status,
        "affected_count": affected_count,
        "reason": reason,
        "payload": payload,
    }


def _action_value(action: AuditAction | str) -> str:
    return action.value if isinstance(action, AuditAction) else action


class AuditTrailService:
    """
    Service for creating and validating tamper-evident audit entries.

    Non-goals:
        - Does NOT call ``session.commit()``; entries land in the caller's
          transaction so they commit or roll back with the transition.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        return self._session.execute(
            select(AuditEntry.hash).order_by(AuditEntry.seq.desc()).limit(1)
        ).scalar_one_or_none()

    def _create_audit_entry(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        before_status: str | None = None,
        after_status: str | None = None,
        affected_count: int | None = None,
        reason: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> AuditEntry:
        """
        Create a new audit entry with hash chain linkage.

        Postconditions:
            - A new AuditEntry is flushed with the next audit sequence and
              ``prev_hash`` equal to the latest entry's hash.
        """
        # Allocating the sequence locks the counter row, serializing chain appends
        seq = self._sequence_service.next_value(SequenceService.AUDIT_ENTRY)
        prev_hash = self._get_last_hash()

        payload_data = to_json_safe(payload or {})
        body = _hashed_body(
            actor_id, before_status, after_status, affected_count, reason, payload_data
        )
        payload_hash = hash_payload(body)

        entry_hash = hash_audit_event(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action.value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        entry = AuditEntry(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            before_status=before_status,
            after_status=after_status,
            affected_count=affected_count,
            reason=reason,
            payload=payload_data,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=entry_hash,
        )
        self._session.add(entry)
        self._session.flush()

        logger.info(
            "audit_entry_created",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
                "seq": seq,
            },
        )
        return entry

    # Domain-specific recording methods

    def record_period_created(
        self,
        period_id: UUID,
        start_date,
        end_date,
        actor_id: UUID,
        associated_count: int,
    ) -> AuditEntry:
        return self._create_audit_entry(
            entity_type=PERIOD_ENTITY,
            entity_id=period_id,
            action=AuditAction.PERIOD_CREATED,
            actor_id=actor_id,
            after_status="pending",
            affected_count=associated_count,
            payload={"start_date": start_date, "end_date": end_date},
        )

    def record_period_finalized(
        self,
        period_id: UUID,
        actor_id: UUID,
        affected_count: int,
    ) -> AuditEntry:
        return self._create_audit_entry(
            entity_type=PERIOD_ENTITY,
            entity_id=period_id,
            action=AuditAction.PERIOD_FINALIZED,
            actor_id=actor_id,
            before_status="pending",
            after_status="finalized",
            affected_count=affected_count,
        )

    def record_period_unlocked(
        self,
        period_id: UUID,
        actor_id: UUID,
        reason: str,
        affected_count: int,
        previous_finalized_by_id: UUID | None = None,
        previous_finalized_at: datetime | None = None,
    ) -> AuditEntry:
        """The payload keeps the finalization being undone."""
        return self._create_audit_entry(
            entity_type=PERIOD_ENTITY,
            entity_id=period_id,
            action=AuditAction.PERIOD_UNLOCKED,
            actor_id=actor_id,
            before_status="finalized",
            after_status="pending",
            affected_count=affected_count,
            reason=reason,
            payload={
                "previous_finalized_by_id": previous_finalized_by_id,
                "previous_finalized_at": previous_finalized_at,
            },
        )

    def record_period_locked(self, period_id: UUID, actor_id: UUID) -> AuditEntry:
        return self._create_audit_entry(
            entity_type=PERIOD_ENTITY,
            entity_id=period_id,
            action=AuditAction.PERIOD_LOCKED,
            actor_id=actor_id,
            before_status="finalized",
            after_status="locked",
        )

    def record_payroll_calculated(
        self,
        payroll_period_id: UUID,
        attendance_period_id: UUID,
        actor_id: UUID,
        employee_count: int,
        total_amount,
        before_status: str | None,
    ) -> AuditEntry:
        return self._create_audit_entry(
            entity_type=PAYROLL_ENTITY,
            entity_id=payroll_period_id,
            action=AuditAction.PAYROLL_CALCULATED,
            actor_id=actor_id,
            before_status=before_status,
            after_status="calculated",
            affected_count=employee_count,
            payload={
                "attendance_period_id": attendance_period_id,
                "total_amount": total_amount,
            },
        )

    def record_record_edited(
        self,
        record_id: UUID,
        actor_id: UUID,
        before_status: str,
        changes: dict[str, Any],
    ) -> AuditEntry:
        return self._create_audit_entry(
            entity_type=RECORD_ENTITY,
            entity_id=record_id,
            action=AuditAction.RECORD_EDITED,
            actor_id=actor_id,
            before_status=before_status,
            after_status="pending_approval",
            payload=changes,
        )

    def record_record_resolved(
        self,
        record_id: UUID,
        actor_id: UUID,
        before_status: str,
        after_status: str,
        notes: str | None = None,
    ) -> AuditEntry:
        return self._create_audit_entry(
            entity_type=RECORD_ENTITY,
            entity_id=record_id,
            action=AuditAction.RECORD_RESOLVED,
            actor_id=actor_id,
            before_status=before_status,
            after_status=after_status,
            reason=notes,
        )

    def record_records_purged(
        self,
        purge_id: UUID,
        actor_id: UUID,
        cutoff,
        purged_count: int,
    ) -> AuditEntry:
        return self._create_audit_entry(
            entity_type=RECORD_ENTITY,
            entity_id=purge_id,
            action=AuditAction.RECORDS_PURGED,
            actor_id=actor_id,
            affected_count=purged_count,
            payload={"cutoff": cutoff},
        )

    def validate_chain(self) -> bool:
        """
        Validate the entire audit chain.

        Recomputes each entry's payload hash from its stored columns, then
        its chain hash, and checks every prev_hash against its predecessor.

        Raises:
            AuditChainBrokenError: If chain validation fails at any point.
        """
        entries = self._session.execute(
            select(AuditEntry).order_by(AuditEntry.seq)
        ).scalars().all()

        if not entries:
            return True

        if entries[0].prev_hash is not None:
            logger.critical("audit_chain_broken", extra={"entry_id": str(entries[0].id)})
            raise AuditChainBrokenError(str(entries[0].id), "None", entries[0].prev_hash)

        for i, entry in enumerate(entries):
            expected_payload_hash = hash_payload(
                _hashed_body(
                    entry.actor_id,
                    entry.before_status,
                    entry.after_status,
                    entry.affected_count,
                    entry.reason,
                    entry.payload or {},
                )
            )
            if entry.payload_hash != expected_payload_hash:
                logger.critical("audit_chain_broken", extra={"entry_id": str(entry.id)})
                raise AuditChainBrokenError(
                    str(entry.id), expected_payload_hash, entry.payload_hash
                )

            expected_hash = hash_audit_event(
                entity_type=entry.entity_type,
                entity_id=str(entry.entity_id),
                action=_action_value(entry.action),
                payload_hash=entry.payload_hash,
                prev_hash=entry.prev_hash,
            )
            if entry.hash != expected_hash:
                logger.critical("audit_chain_broken", extra={"entry_id": str(entry.id)})
                raise AuditChainBrokenError(str(entry.id), expected_hash, entry.hash)

            if i > 0:
                expected_prev = entries[i - 1].hash
                if entry.prev_hash != expected_prev:
                    logger.critical("audit_chain_broken", extra={"entry_id": str(entry.id)})
                    raise AuditChainBrokenError(
                        str(entry.id), expected_prev, entry.prev_hash or "None"
                    )

        logger.info("audit_chain_valid", extra={"entry_count": len(entries)})
        return True

    # Trace and query methods

    def get_trace(self, entity_type: str, entity_id: UUID) -> AuditTrace:
        entries = self._session.execute(
            select(AuditEntry)
            .where(
                AuditEntry.entity_type == entity_type,
                AuditEntry.entity_id == entity_id,
            )
            .order_by(AuditEntry.seq)
        ).scalars().all()

        return AuditTrace(
            entity_type=entity_type,
            entity_id=entity_id,
            entries=tuple(
                AuditTraceEntry(
                    seq=e.seq,
                    action=AuditAction(_action_value(e.action)),
                    occurred_at=e.occurred_at,
                    actor_id=e.actor_id,
                    before_status=e.before_status,
                    after_status=e.after_status,
                    affected_count=e.affected_count,
                    reason=e.reason,
                    payload=e.payload or {},
                    hash=e.hash,
                )
                for e in entries
            ),
        )

    def get_recent_entries(self, limit: int = 100) -> list[AuditEntry]:
        """Most recent audit entries, newest first."""
        result = self._session.execute(
            select(AuditEntry).order_by(AuditEntry.seq.desc()).limit(limit)
        )
        return list(result.scalars().all())
