"""
attendance_engines.tracer -- ENGINE_TRACE logging for pure engines.

Every call to a ``@traced_engine`` function logs one ENGINE_TRACE record:
engine name and version, a fingerprint of the inputs that determine the
result, elapsed time, and an optional summary of the result.  A payroll
record can then be tied to the exact engine invocation that produced it.

Engines stay pure: the tracer only reads keyword arguments and the return
value.  It logs under ``attendance_kernel.engines.tracer`` without importing
the kernel.

Invariants enforced:
    - Equal inputs give equal fingerprints.  Mappings are ordered by key,
      Decimals are normalized (8 and 8.00 hash alike), dates use ISO form.
    - A failing engine is traced at WARNING with the exception type and the
      exception propagates unchanged.
"""

from __future__ import annotations

import functools
import hashlib
import logging
import time
from collections.abc import Callable, Mapping
from datetime import date
from decimal import Decimal
from typing import Any

_logger = logging.getLogger("attendance_kernel.engines.tracer")

FINGERPRINT_LENGTH = 16


def _canonical(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        pairs = sorted((_canonical(k), _canonical(v)) for k, v in value.items())
        return "{" + ",".join(f"{k}:{v}" for k, v in pairs) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonical(v) for v in value) + "]"
    return str(value)


def input_fingerprint(fields: tuple[str, ...], kwargs: Mapping[str, Any]) -> str:
    """Hex SHA-256 prefix over the named keyword arguments."""
    canonical = "|".join(f"{name}={_canonical(kwargs.get(name))}" for name in fields)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
    summarize: Callable[[Any], Mapping[str, Any]] | None = None,
) -> Callable:
    """
    Decorate a keyword-only engine entry point.

    ``summarize`` maps the engine's result to a few loggable fields
    (totals, counts); they appear under ``result`` in the trace.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            trace: dict[str, Any] = {
                "trace_type": "ENGINE_TRACE",
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": input_fingerprint(fingerprint_fields, kwargs),
            }
            started = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                trace["duration_ms"] = round((time.monotonic() - started) * 1000, 2)
                trace["error_type"] = type(exc).__name__
                _logger.warning("ENGINE_TRACE", extra=trace)
                raise

            trace["duration_ms"] = round((time.monotonic() - started) * 1000, 2)
            if summarize is not None:
                trace["result"] = dict(summarize(result))
            _logger.info("ENGINE_TRACE", extra=trace)
            return result

        return wrapper

    return decorator
