"""
Payroll -- run configuration value objects.

Responsibility:
    PayrollRules (overtime thresholds), EmployeeRate (pay rates) and
    PayrollRunConfig (rules + rate table for one calculation run).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Built by
    attendance_config.bridges from YAML settings, or directly by callers.

Invariants enforced:
    - Rates and thresholds are Decimal; rates are non-negative and
      thresholds positive.
    - An employee's overtime rate defaults to standard_rate x multiplier.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType

from attendance_kernel.domain.values import ZERO
from attendance_kernel.exceptions import RateConfigurationError


@dataclass(frozen=True)
class PayrollRules:
    """Overtime thresholds.  A None threshold disables that rule."""

    daily_threshold: Decimal | None = Decimal("8")
    weekly_threshold: Decimal | None = Decimal("40")
    overtime_multiplier: Decimal = Decimal("1.5")
    week_start: str = "monday"

    def __post_init__(self) -> None:
        for name in ("daily_threshold", "weekly_threshold"):
            value = getattr(self, name)
            if value is not None and value <= ZERO:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.overtime_multiplier < Decimal("1"):
            raise ValueError(
                f"overtime_multiplier must be >= 1, got {self.overtime_multiplier}"
            )

    def to_dict(self) -> dict[str, str | None]:
        return {
            "daily_threshold": None if self.daily_threshold is None else str(self.daily_threshold),
            "weekly_threshold": None if self.weekly_threshold is None else str(self.weekly_threshold),
            "overtime_multiplier": str(self.overtime_multiplier),
            "week_start": self.week_start,
        }


@dataclass(frozen=True)
class EmployeeRate:
    standard_rate: Decimal
    overtime_rate: Decimal | None = None

    def __post_init__(self) -> None:
        if self.standard_rate < ZERO:
            raise ValueError(f"standard_rate must be non-negative, got {self.standard_rate}")
        if self.overtime_rate is not None and self.overtime_rate < ZERO:
            raise ValueError(f"overtime_rate must be non-negative, got {self.overtime_rate}")

    def resolved_overtime_rate(self, multiplier: Decimal) -> Decimal:
        if self.overtime_rate is not None:
            return self.overtime_rate
        return self.standard_rate * multiplier


@dataclass(frozen=True)
class PayrollRunConfig:
    """
    Everything a single payroll run needs besides the attendance data.

    Contract:
        resolve_rate(employee_id) returns (standard_rate, overtime_rate),
        preferring the per-employee entry over default_rate.  Raises
        RateConfigurationError when neither exists.
    """

    rules: PayrollRules = field(default_factory=PayrollRules)
    default_rate: EmployeeRate | None = None
    employee_rates: Mapping[str, EmployeeRate] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "employee_rates", MappingProxyType(dict(self.employee_rates)))

    def resolve_rate(self, employee_id: str) -> tuple[Decimal, Decimal]:
        rate = self.employee_rates.get(employee_id, self.default_rate)
        if rate is None:
            raise RateConfigurationError(employee_id)
        return rate.standard_rate, rate.resolved_overtime_rate(self.rules.overtime_multiplier)
