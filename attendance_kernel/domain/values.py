"""
Values -- precision rules for hours and pay.

Responsibility:
    Canonical quantization of worked hours and money, and the worked-hours
    derivation shared by ingestion and record edits.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Decimal-only arithmetic; floats never appear.
    - Hours carry 4 decimal places, money 2, both ROUND_HALF_UP.
    - Worked hours are never negative.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

HOURS_DECIMAL_PLACES = 4
MONEY_DECIMAL_PLACES = 2

ZERO = Decimal("0")

_HOURS_QUANTUM = Decimal(1).scaleb(-HOURS_DECIMAL_PLACES)
_MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)
_SECONDS_PER_HOUR = Decimal(3600)


def round_hours(value: Decimal) -> Decimal:
    """Quantize an hour amount to the canonical 4 decimal places."""
    return value.quantize(_HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def round_money(value: Decimal) -> Decimal:
    """Quantize a monetary amount to cents.  The only sanctioned money rounding."""
    return value.quantize(_MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def worked_hours(clock_in: datetime | None, clock_out: datetime | None) -> Decimal | None:
    """
    Hours between clock-in and clock-out, floored at zero.

    Returns None when either timestamp is missing.  A clock-out earlier than
    the clock-in yields zero rather than a negative amount.
    """
    if clock_in is None or clock_out is None:
        return None
    delta = clock_out - clock_in
    seconds = Decimal(delta.days * 86400 + delta.seconds) + Decimal(delta.microseconds) / Decimal(1_000_000)
    return round_hours(max(ZERO, seconds / _SECONDS_PER_HOUR))
