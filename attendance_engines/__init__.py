"""
Pure calculation engines.

Engines take plain values and return plain values: no ORM, no sessions,
no clock reads.  Each public entry point is wrapped with ``@traced_engine``.
"""

from attendance_engines.overtime import DaySplit, OvertimeSplit, split_overtime

__all__ = ["DaySplit", "OvertimeSplit", "split_overtime"]
