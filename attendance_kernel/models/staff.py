"""
Module: attendance_kernel.models.staff
Responsibility: ORM persistence for the staff master used to resolve
    external terminal employee ids to staff members.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - employee_id (the id enrolled on the biometric terminal) is unique.
    - Inactive staff never receive new attendance records.
"""

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from attendance_kernel.db.base import TrackedBase


class Staff(TrackedBase):
    """A staff member as known to the attendance system."""

    __tablename__ = "staff"

    __table_args__ = (
        Index("idx_staff_department", "department"),
    )

    # External id enrolled on the terminal (e.g. "E1042")
    employee_id: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    department: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    def __repr__(self) -> str:
        return f"<Staff {self.employee_id}: {self.name}>"
