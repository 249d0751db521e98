"""
KernelSettings schema.

Typed, frozen view of the YAML configuration.  The loader parses raw
YAML into these types; bridges turn them into kernel inputs
(engine URL, PayrollRunConfig, ingestion service arguments).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from attendance_engines.overtime import WEEKDAYS

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url must not be empty")
        if self.pool_size < 1:
            raise ValueError(f"database.pool_size must be >= 1, got {self.pool_size}")
        if self.max_overflow < 0:
            raise ValueError(f"database.max_overflow must be >= 0, got {self.max_overflow}")


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IngestionSettings:
    """Batching and freshness limits for terminal punch ingestion."""

    batch_size: int = 50
    max_punch_age_days: int = 365
    device_timeout_seconds: int = 10

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"ingestion.batch_size must be >= 1, got {self.batch_size}")
        if self.max_punch_age_days < 1:
            raise ValueError(
                f"ingestion.max_punch_age_days must be >= 1, got {self.max_punch_age_days}"
            )
        if self.device_timeout_seconds < 1:
            raise ValueError(
                f"ingestion.device_timeout_seconds must be >= 1, got {self.device_timeout_seconds}"
            )


# ---------------------------------------------------------------------------
# Payroll
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateDef:
    standard_rate: Decimal
    overtime_rate: Decimal | None = None


@dataclass(frozen=True)
class PayrollSettings:
    daily_threshold: Decimal | None = Decimal("8")
    weekly_threshold: Decimal | None = Decimal("40")
    overtime_multiplier: Decimal = Decimal("1.5")
    week_start: str = "monday"
    default_rate: RateDef | None = None
    employee_rates: tuple[tuple[str, RateDef], ...] = ()

    def __post_init__(self) -> None:
        if self.week_start not in WEEKDAYS:
            raise ValueError(
                f"payroll.week_start must be one of {list(WEEKDAYS)}, got {self.week_start!r}"
            )
        seen: set[str] = set()
        for employee_id, _ in self.employee_rates:
            if employee_id in seen:
                raise ValueError(f"payroll.employee_rates lists {employee_id!r} twice")
            seen.add(employee_id)


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KernelSettings:
    """Root configuration object.  ``checksum`` identifies the merged source."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    ingestion: IngestionSettings = field(default_factory=IngestionSettings)
    payroll: PayrollSettings = field(default_factory=PayrollSettings)
    checksum: str = ""
    source: str | None = None
