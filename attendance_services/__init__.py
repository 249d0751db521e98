"""
attendance_services -- outer orchestration above the kernel.

Terminal fetch orchestration and operator authority checks.
"""

from attendance_services.attendance_fetch import (
    AttendanceFetchOrchestrator,
    PunchSource,
    PunchSourceError,
)
from attendance_services.authority import (
    OperatorAction,
    OperatorRole,
    allowed_roles,
    check_authority,
    require_authority,
)

__all__ = [
    "AttendanceFetchOrchestrator",
    "OperatorAction",
    "OperatorRole",
    "PunchSource",
    "PunchSourceError",
    "allowed_roles",
    "check_authority",
    "require_authority",
]
