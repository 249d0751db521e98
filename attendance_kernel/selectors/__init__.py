"""Read-only query selectors."""

from attendance_kernel.selectors.attendance_selector import (
    AttendanceSelector,
    DepartmentStats,
    FetchActivity,
    MonthStats,
    PeriodSummary,
    RecordPage,
    RecordSearchCriteria,
)
from attendance_kernel.selectors.base import BaseSelector
from attendance_kernel.selectors.payroll_selector import (
    PayrollExportRow,
    PayrollSelector,
    PayrollSummary,
)

__all__ = [
    "AttendanceSelector",
    "BaseSelector",
    "DepartmentStats",
    "FetchActivity",
    "MonthStats",
    "PayrollExportRow",
    "PayrollSelector",
    "PayrollSummary",
    "PeriodSummary",
    "RecordPage",
    "RecordSearchCriteria",
]
