"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Helpers (sequence, audit) only flush; they never commit or roll back.
    - Lifecycle operations own exactly one ``atomic()`` block, so every
      row they write commits together or not at all.  When the caller
      already holds a transaction the block becomes a SAVEPOINT and the
      caller's commit publishes it.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from attendance_kernel.db.base import Base
from attendance_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and an optional
        Clock.  Services never call ``datetime.now()`` directly.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
