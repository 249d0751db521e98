"""
Module: attendance_kernel.selectors.attendance_selector
Responsibility: Read-only search and aggregate statistics over attendance
    records: paged search, monthly and departmental rollups, recent fetch
    activity, and the summary shown before finalizing a date range.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Parameterized queries only; no SQL text is assembled from input.
    - Deterministic ordering on every list result.

Failure modes:
    - ValueError for an unknown sort column or a non-positive page size.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import distinct, func, select

from attendance_kernel.domain.dtos import AttendanceRecordInfo
from attendance_kernel.domain.values import ZERO, round_hours
from attendance_kernel.models.attendance_record import AttendanceRecord, ReviewStatus
from attendance_kernel.models.staff import Staff
from attendance_kernel.selectors.base import BaseSelector

SORTABLE_COLUMNS = {
    "work_date": AttendanceRecord.work_date,
    "employee_id": AttendanceRecord.employee_id,
    "fetched_at": AttendanceRecord.fetched_at,
    "total_hours": AttendanceRecord.total_hours,
}

MAX_PAGE_SIZE = 500


@dataclass(frozen=True)
class RecordSearchCriteria:
    employee_id: str | None = None
    department: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    review_status: ReviewStatus | None = None
    is_finalized: bool | None = None
    sort_by: str = "work_date"
    descending: bool = False
    page: int = 1
    page_size: int = 50


@dataclass(frozen=True)
class RecordPage:
    items: tuple[AttendanceRecordInfo, ...]
    total: int
    page: int
    page_size: int

    @property
    def page_count(self) -> int:
        return max(1, -(-self.total // self.page_size))


@dataclass(frozen=True)
class MonthStats:
    month: str  # YYYY-MM
    record_count: int
    total_hours: Decimal


@dataclass(frozen=True)
class DepartmentStats:
    department: str | None
    record_count: int
    employee_count: int


@dataclass(frozen=True)
class FetchActivity:
    fetched_at: datetime
    fetched_by_id: UUID
    record_count: int


@dataclass(frozen=True)
class PeriodSummary:
    start_date: date
    end_date: date
    total_records: int
    employee_count: int
    pending_approvals: int
    conflicts: int
    missing_data: int
    total_hours: Decimal


def _decimal(value) -> Decimal:
    if value is None:
        return ZERO
    return round_hours(Decimal(str(value)))


class AttendanceSelector(BaseSelector[AttendanceRecord]):
    """Read-only queries over attendance records."""

    def search(self, criteria: RecordSearchCriteria | None = None) -> RecordPage:
        criteria = criteria or RecordSearchCriteria()
        if criteria.sort_by not in SORTABLE_COLUMNS:
            raise ValueError(f"Unknown sort column: {criteria.sort_by}")
        if not 1 <= criteria.page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")
        page = max(1, criteria.page)

        filters = []
        if criteria.employee_id is not None:
            filters.append(AttendanceRecord.employee_id == criteria.employee_id)
        if criteria.start_date is not None:
            filters.append(AttendanceRecord.work_date >= criteria.start_date)
        if criteria.end_date is not None:
            filters.append(AttendanceRecord.work_date <= criteria.end_date)
        if criteria.review_status is not None:
            filters.append(AttendanceRecord.review_status == criteria.review_status)
        if criteria.is_finalized is not None:
            filters.append(AttendanceRecord.is_finalized.is_(criteria.is_finalized))
        if criteria.department is not None:
            filters.append(
                AttendanceRecord.staff_id.in_(
                    select(Staff.id).where(Staff.department == criteria.department)
                )
            )

        total = self.session.execute(
            select(func.count(AttendanceRecord.id)).where(*filters)
        ).scalar_one()

        column = SORTABLE_COLUMNS[criteria.sort_by]
        order = column.desc() if criteria.descending else column.asc()
        rows = self.session.execute(
            select(AttendanceRecord)
            .where(*filters)
            .order_by(order, AttendanceRecord.id)
            .offset((page - 1) * criteria.page_size)
            .limit(criteria.page_size)
        ).scalars()

        return RecordPage(
            items=tuple(AttendanceRecordInfo.from_model(r) for r in rows),
            total=total,
            page=page,
            page_size=criteria.page_size,
        )

    def _month_expression(self):
        if self.dialect == "postgresql":
            return func.to_char(AttendanceRecord.work_date, "YYYY-MM")
        return func.strftime("%Y-%m", AttendanceRecord.work_date)

    def records_by_month(self, since: date) -> list[MonthStats]:
        month = self._month_expression().label("month")
        rows = self.session.execute(
            select(
                month,
                func.count(AttendanceRecord.id),
                func.sum(AttendanceRecord.total_hours),
            )
            .where(AttendanceRecord.work_date >= since)
            .group_by(month)
            .order_by(month)
        ).all()
        return [
            MonthStats(month=m, record_count=count, total_hours=_decimal(hours))
            for m, count, hours in rows
        ]

    def records_by_department(self) -> list[DepartmentStats]:
        rows = self.session.execute(
            select(
                Staff.department,
                func.count(AttendanceRecord.id),
                func.count(distinct(AttendanceRecord.staff_id)),
            )
            .join(Staff, Staff.id == AttendanceRecord.staff_id)
            .group_by(Staff.department)
            .order_by(Staff.department)
        ).all()
        return [
            DepartmentStats(department=dept, record_count=count, employee_count=employees)
            for dept, count, employees in rows
        ]

    def recent_fetches(self, limit: int = 10) -> list[FetchActivity]:
        """Most recent fetch batches, one row per (fetched_at, operator)."""
        rows = self.session.execute(
            select(
                AttendanceRecord.fetched_at,
                AttendanceRecord.fetched_by_id,
                func.count(AttendanceRecord.id),
            )
            .group_by(AttendanceRecord.fetched_at, AttendanceRecord.fetched_by_id)
            .order_by(AttendanceRecord.fetched_at.desc())
            .limit(limit)
        ).all()
        return [
            FetchActivity(fetched_at=at, fetched_by_id=by, record_count=count)
            for at, by, count in rows
        ]

    def period_summary(self, start_date: date, end_date: date) -> PeriodSummary:
        in_range = (
            AttendanceRecord.work_date >= start_date,
            AttendanceRecord.work_date <= end_date,
        )

        def count_where(*criteria) -> int:
            return self.session.execute(
                select(func.count(AttendanceRecord.id)).where(*in_range, *criteria)
            ).scalar_one()

        total, employees, hours = self.session.execute(
            select(
                func.count(AttendanceRecord.id),
                func.count(distinct(AttendanceRecord.staff_id)),
                func.sum(AttendanceRecord.total_hours),
            ).where(*in_range)
        ).one()

        return PeriodSummary(
            start_date=start_date,
            end_date=end_date,
            total_records=total,
            employee_count=employees,
            pending_approvals=count_where(
                AttendanceRecord.review_status == ReviewStatus.PENDING_APPROVAL
            ),
            conflicts=count_where(AttendanceRecord.review_status == ReviewStatus.CONFLICT),
            missing_data=count_where(
                AttendanceRecord.clock_in.is_(None),
                AttendanceRecord.clock_out.is_(None),
                AttendanceRecord.review_status != ReviewStatus.DISCARDED,
            ),
            total_hours=_decimal(hours),
        )
