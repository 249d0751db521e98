"""
Declarative bases for the attendance ORM models.

``Base`` gives every table a uuid4 primary key and maps Python annotations
to portable column types (Decimal to Numeric, never float).  ``TrackedBase``
adds who/when bookkeeping.  Nothing in this module imports from models,
services or selectors.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID kept as its 36-character text form so SQLite and PostgreSQL agree."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):

    type_annotation_map: ClassVar[dict] = {
        PyUUID: UUIDString(),
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds created/updated timestamps and actor ids.

    The timestamps are maintained by the database.  These columns are
    bookkeeping, so they may change on a finalized record even though its
    attendance data may not.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
    created_by_id: Mapped[PyUUID] = mapped_column(UUIDString())
    updated_by_id: Mapped[PyUUID | None] = mapped_column(UUIDString())


UUID = PyUUID
