"""
Module: attendance_kernel.models.audit_entry
Responsibility: ORM persistence for the tamper-evident audit hash chain.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit entries are append-only; no UPDATE or DELETE (ORM + DB trigger).
    - hash = H(entity_type | entity_id | action | payload_hash | prev_hash),
      validated by AuditTrailService.validate_chain().
    - seq is monotonically increasing, allocated by SequenceService.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - AuditChainBrokenError when chain validation detects a mismatch.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from attendance_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Types of auditable lifecycle actions."""

    # Period lifecycle
    PERIOD_CREATED = "period_created"
    PERIOD_FINALIZED = "period_finalized"
    PERIOD_UNLOCKED = "period_unlocked"
    PERIOD_LOCKED = "period_locked"

    # Payroll
    PAYROLL_CALCULATED = "payroll_calculated"

    # Record maintenance
    RECORD_EDITED = "record_edited"
    RECORD_RESOLVED = "record_resolved"
    RECORDS_PURGED = "records_purged"


class AuditEntry(Base):
    """
    Audit entry with hash chain for tamper evidence.

    Contract:
        Rows are append-only.  before_status, after_status, affected_count
        and reason are also carried inside payload, so the chain hash covers
        them.
    """

    __tablename__ = "audit_entries"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
        Index("idx_audit_occurred", "occurred_at"),
    )

    seq: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        unique=True,
    )

    # e.g. "AttendancePeriod", "PayrollPeriod", "AttendanceRecord"
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    action: Mapped[AuditAction] = mapped_column(String(50), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    before_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    after_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    affected_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    # Null only for the genesis entry
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEntry #{self.seq} {self.action} on {self.entity_type}:{self.entity_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
