"""
Temporal Layer
==============

Logical time and the ordered history of committed operations.

Modules:
- clock: Injectable, monotonically non-decreasing integer clock
- event_log: Hash-chained append-only operation log
"""

from .clock import LogicalClock, ClockExhausted, ClockRegression
from .event_log import OperationLog, LogState, LogIntegrityError

__all__ = [
    'LogicalClock',
    'ClockExhausted',
    'ClockRegression',
    'OperationLog',
    'LogState',
    'LogIntegrityError',
]
