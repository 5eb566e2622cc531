"""
Logical Clock
=============

Injectable integer clock used for every recorded timestamp
(registered-at, created-at, added-at, completed-at).

GUARANTEES:
- Readings are monotonically non-decreasing
- The ledger never reads system time except through this clock
- All readings are logged so a run can be replayed exactly
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional
from pathlib import Path
import json
import time


class ClockExhausted(Exception):
    """Raised when replay clock runs out of ticks."""
    pass


class ClockRegression(Exception):
    """Raised when a replayed tick sequence goes backwards."""
    pass


@dataclass
class LogicalClock:
    """
    Injectable clock supplying monotonically non-decreasing integers.

    MODES:
    ======
    1. LIVE mode: Unix seconds, clamped so readings never go backwards
    2. COUNTING mode: start, start+1, start+2, ... (deterministic tests)
    3. REPLAY mode: Uses pre-recorded tick sequence
    """
    _ticks: List[int] = field(default_factory=list)
    _current_index: int = 0
    _mode: str = "live"
    _next_count: int = 1

    def now(self) -> int:
        """
        Get current logical time.

        Every mode records the reading so the log can be replayed.
        """
        if self._mode == "replay":
            if self._current_index >= len(self._ticks):
                raise ClockExhausted(
                    f"Replay clock exhausted at index {self._current_index}. "
                    f"Original execution had {len(self._ticks)} ticks."
                )
            tick = self._ticks[self._current_index]
            self._current_index += 1
            return tick

        if self._mode == "counting":
            current = self._next_count
            self._next_count += 1
        else:
            current = int(time.time())
            if self._ticks:
                current = max(current, self._ticks[-1])

        self._ticks.append(current)
        self._current_index = len(self._ticks)
        return current

    def tick_count(self) -> int:
        """Number of ticks recorded/consumed."""
        return self._current_index

    @property
    def mode(self) -> str:
        return self._mode

    def last_tick(self) -> Optional[int]:
        if self._current_index == 0:
            return None
        return self._ticks[self._current_index - 1]

    @classmethod
    def live(cls) -> 'LogicalClock':
        """Create clock in LIVE mode (uses system time)."""
        return cls(_mode="live")

    @classmethod
    def counting(cls, start: int = 1) -> 'LogicalClock':
        """Create a deterministic clock that advances by one per reading."""
        return cls(_mode="counting", _next_count=start)

    @classmethod
    def replaying(cls, ticks: List[int]) -> 'LogicalClock':
        """Create clock in REPLAY mode from an explicit tick sequence."""
        for earlier, later in zip(ticks, ticks[1:]):
            if later < earlier:
                raise ClockRegression(f"Tick {later} follows {earlier}")
        return cls(_ticks=list(ticks), _current_index=0, _mode="replay")

    @classmethod
    def from_log(cls, tick_log_path: Path) -> 'LogicalClock':
        """
        Create clock in REPLAY mode from recorded log.

        Args:
            tick_log_path: Path to JSON file containing tick sequence

        Returns:
            LogicalClock configured for replay
        """
        with open(tick_log_path, 'r') as f:
            data = json.load(f)

        return cls.replaying([int(t) for t in data['ticks']])

    def save_log(self, tick_log_path: Path) -> None:
        """
        Save tick log for future replay.

        Args:
            tick_log_path: Path to write JSON tick sequence
        """
        tick_log_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            'version': '1.0',
            'mode': self._mode,
            'tick_count': len(self._ticks),
            'ticks': list(self._ticks),
        }

        with open(tick_log_path, 'w') as f:
            json.dump(data, f, indent=2)

    def __repr__(self) -> str:
        return f"LogicalClock({self._mode.upper()}, ticks={len(self._ticks)}, index={self._current_index})"
