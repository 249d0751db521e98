"""
Configuration Loader (``attendance_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into the frozen ``attendance_config.schema``
dataclasses.  Runtime callers go through
``attendance_config.get_active_settings()``; the functions here are the
building blocks it uses and are exposed for tests and tooling.

Invariants enforced
-------------------
* Unknown top-level sections and unknown keys raise ``ValueError`` rather
  than being silently ignored.
* Numeric payroll values are parsed to ``Decimal`` via ``str`` so YAML
  floats never leak binary rounding into rates.
* ``compute_checksum`` is a deterministic SHA-256 over canonical JSON.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad values  -> ``ValueError`` with the offending key in the message.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from attendance_config.schema import (
    DatabaseSettings,
    IngestionSettings,
    KernelSettings,
    PayrollSettings,
    RateDef,
)

SECTIONS = ("database", "ingestion", "payroll")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Returns an empty dict for an empty file.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root in {path} must be a mapping")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursive merge; ``override`` wins, nested mappings are merged key by key."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def parse_decimal(value: Any, key: str) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{key}: expected a number, got {value!r}") from exc


def _optional_decimal(value: Any, key: str) -> Decimal | None:
    return None if value is None else parse_decimal(value, key)


def _check_keys(data: dict[str, Any], allowed: set[str], section: str) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in {section}: {sorted(unknown)}")


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    _check_keys(
        data,
        {"url", "echo", "pool_size", "max_overflow", "pool_timeout", "pool_recycle"},
        "database",
    )
    return DatabaseSettings(
        url=str(data.get("url", DatabaseSettings.url)),
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", DatabaseSettings.pool_size)),
        max_overflow=int(data.get("max_overflow", DatabaseSettings.max_overflow)),
        pool_timeout=int(data.get("pool_timeout", DatabaseSettings.pool_timeout)),
        pool_recycle=int(data.get("pool_recycle", DatabaseSettings.pool_recycle)),
    )


def parse_ingestion(data: dict[str, Any]) -> IngestionSettings:
    _check_keys(data, {"batch_size", "max_punch_age_days", "device_timeout_seconds"}, "ingestion")
    return IngestionSettings(
        batch_size=int(data.get("batch_size", IngestionSettings.batch_size)),
        max_punch_age_days=int(
            data.get("max_punch_age_days", IngestionSettings.max_punch_age_days)
        ),
        device_timeout_seconds=int(
            data.get("device_timeout_seconds", IngestionSettings.device_timeout_seconds)
        ),
    )


def parse_rate(data: Any, key: str) -> RateDef:
    """A rate is either a bare number or ``{standard, overtime}``."""
    if isinstance(data, dict):
        _check_keys(data, {"standard", "overtime"}, key)
        if "standard" not in data:
            raise ValueError(f"{key}: 'standard' rate is required")
        return RateDef(
            standard_rate=parse_decimal(data["standard"], f"{key}.standard"),
            overtime_rate=_optional_decimal(data.get("overtime"), f"{key}.overtime"),
        )
    return RateDef(standard_rate=parse_decimal(data, key))


def parse_payroll(data: dict[str, Any]) -> PayrollSettings:
    _check_keys(
        data,
        {
            "daily_threshold",
            "weekly_threshold",
            "overtime_multiplier",
            "week_start",
            "default_rate",
            "employee_rates",
        },
        "payroll",
    )
    defaults = PayrollSettings()
    employee_rates = data.get("employee_rates") or {}
    if not isinstance(employee_rates, dict):
        raise ValueError("payroll.employee_rates must be a mapping of employee id to rate")

    default_rate = data.get("default_rate")
    return PayrollSettings(
        daily_threshold=_optional_decimal(
            data.get("daily_threshold", defaults.daily_threshold), "payroll.daily_threshold"
        ),
        weekly_threshold=_optional_decimal(
            data.get("weekly_threshold", defaults.weekly_threshold), "payroll.weekly_threshold"
        ),
        overtime_multiplier=parse_decimal(
            data.get("overtime_multiplier", defaults.overtime_multiplier),
            "payroll.overtime_multiplier",
        ),
        week_start=str(data.get("week_start", defaults.week_start)).lower(),
        default_rate=(
            None if default_rate is None else parse_rate(default_rate, "payroll.default_rate")
        ),
        employee_rates=tuple(
            (str(employee_id), parse_rate(rate, f"payroll.employee_rates.{employee_id}"))
            for employee_id, rate in sorted(employee_rates.items(), key=lambda kv: str(kv[0]))
        ),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of a raw configuration dict."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_settings(data: dict[str, Any], source: str | None = None) -> KernelSettings:
    """
    Parse a merged configuration dict into ``KernelSettings``.

    Raises:
        ValueError: for unknown sections or keys, or invalid values.
    """
    _check_keys(data, set(SECTIONS), "configuration root")
    for section in SECTIONS:
        if not isinstance(data.get(section) or {}, dict):
            raise ValueError(f"Section '{section}' must be a mapping")
    return KernelSettings(
        database=parse_database(data.get("database") or {}),
        ingestion=parse_ingestion(data.get("ingestion") or {}),
        payroll=parse_payroll(data.get("payroll") or {}),
        checksum=compute_checksum(data),
        source=source,
    )


def load_settings(path: Path) -> KernelSettings:
    return parse_settings(load_yaml_file(path), source=str(path))
