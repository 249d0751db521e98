"""
attendance_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_settings()`` returns the frozen ``KernelSettings`` built
    from the bundled ``defaults.yaml``, an optional override file and the
    ``DATABASE_URL`` environment variable.  Nothing else in the code base
    reads configuration files or environment variables.

Architecture position:
    Configuration -- sits above ``attendance_kernel`` and below
    ``attendance_services``.  The kernel never imports this package;
    ``attendance_config.bridges`` translates settings into kernel inputs.

Invariants enforced:
    - Precedence: defaults < override file < DATABASE_URL.
    - Same inputs always produce the same ``checksum``.

Failure modes:
    - ``FileNotFoundError`` -- the override file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every call emits an ``ATTENDANCE_CONFIG_TRACE`` log entry with the
    checksum and the effective payroll thresholds, tying each payroll run
    to the configuration that governed it.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from attendance_config.loader import load_yaml_file, merge_dicts, parse_settings
from attendance_config.schema import (
    DatabaseSettings,
    IngestionSettings,
    KernelSettings,
    PayrollSettings,
    RateDef,
)

_logger = logging.getLogger("attendance_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_ENV_VAR = "ATTENDANCE_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"


def get_active_settings(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> KernelSettings:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override file.  Defaults to ``$ATTENDANCE_CONFIG`` when set.
        environ: Environment mapping, ``os.environ`` by default.

    Raises:
        FileNotFoundError: If the override file is missing.
        ValueError: If the merged configuration is invalid.
    """
    env = os.environ if environ is None else environ
    data = load_yaml_file(DEFAULTS_PATH)
    source = str(DEFAULTS_PATH)

    if config_path is None and env.get(CONFIG_ENV_VAR):
        config_path = Path(env[CONFIG_ENV_VAR])
    if config_path is not None:
        data = merge_dicts(data, load_yaml_file(config_path))
        source = str(config_path)

    database_url = env.get(DATABASE_URL_ENV_VAR)
    if database_url:
        data = merge_dicts(data, {"database": {"url": database_url}})

    settings = parse_settings(data, source=source)

    _logger.info(
        "ATTENDANCE_CONFIG_TRACE",
        extra={
            "trace_type": "ATTENDANCE_CONFIG_TRACE",
            "checksum": settings.checksum,
            "source": source,
            "daily_threshold": str(settings.payroll.daily_threshold),
            "weekly_threshold": str(settings.payroll.weekly_threshold),
            "employee_rate_count": len(settings.payroll.employee_rates),
        },
    )
    return settings


__all__ = [
    "DatabaseSettings",
    "IngestionSettings",
    "KernelSettings",
    "PayrollSettings",
    "RateDef",
    "get_active_settings",
]
