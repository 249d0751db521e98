"""
attendance_services.authority -- operator role checks at the service boundary.

Responsibility:
    Decide whether an operator acting under a role may perform an action.
    Period lifecycle, payroll and retention actions are ADMINISTRATOR only;
    fetching and reviewing attendance is open to ADMINISTRATOR and MANAGER;
    every role may read.

Architecture position:
    Services layer.  The kernel stays actor-agnostic: it records the actor
    id it is given and never resolves roles.

Invariants:
    - Roles and actions are closed enums; check_authority matches them
      exhaustively so a new action cannot be added without a decision.
"""

from __future__ import annotations

from enum import Enum
from typing import assert_never

from attendance_kernel.exceptions import AuthorizationError
from attendance_kernel.logging_config import get_logger

logger = get_logger("services.authority")


class OperatorRole(str, Enum):
    ADMINISTRATOR = "administrator"
    MANAGER = "manager"
    STAFF = "staff"


class OperatorAction(str, Enum):
    CREATE_PERIOD = "create_period"
    FINALIZE_PERIOD = "finalize_period"
    UNLOCK_PERIOD = "unlock_period"
    LOCK_PERIOD = "lock_period"
    CALCULATE_PAYROLL = "calculate_payroll"
    PURGE_RECORDS = "purge_records"
    FETCH_ATTENDANCE = "fetch_attendance"
    EDIT_RECORD = "edit_record"
    RESOLVE_RECORD = "resolve_record"
    VIEW_RECORDS = "view_records"


_ADMIN_ONLY = frozenset({OperatorRole.ADMINISTRATOR})
_REVIEWERS = frozenset({OperatorRole.ADMINISTRATOR, OperatorRole.MANAGER})
_EVERYONE = frozenset(OperatorRole)


def allowed_roles(action: OperatorAction) -> frozenset[OperatorRole]:
    match action:
        case (
            OperatorAction.CREATE_PERIOD
            | OperatorAction.FINALIZE_PERIOD
            | OperatorAction.UNLOCK_PERIOD
            | OperatorAction.LOCK_PERIOD
            | OperatorAction.CALCULATE_PAYROLL
            | OperatorAction.PURGE_RECORDS
        ):
            return _ADMIN_ONLY
        case (
            OperatorAction.FETCH_ATTENDANCE
            | OperatorAction.EDIT_RECORD
            | OperatorAction.RESOLVE_RECORD
        ):
            return _REVIEWERS
        case OperatorAction.VIEW_RECORDS:
            return _EVERYONE
        case _:
            assert_never(action)


def check_authority(role: OperatorRole, action: OperatorAction) -> tuple[bool, str]:
    """Return (allowed, reason).  reason is empty when allowed."""
    role = OperatorRole(role)
    action = OperatorAction(action)
    if role in allowed_roles(action):
        return (True, "")
    return (False, f"Role '{role.value}' may not perform '{action.value}'")


def require_authority(role: OperatorRole, action: OperatorAction) -> None:
    """Raise AuthorizationError unless ``role`` may perform ``action``."""
    allowed, reason = check_authority(role, action)
    if not allowed:
        logger.warning(
            "authorization_denied",
            extra={"role": OperatorRole(role).value, "action": OperatorAction(action).value},
        )
        raise AuthorizationError(OperatorRole(role).value, OperatorAction(action).value, reason)
