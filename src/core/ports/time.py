"""
Time Port.

All timestamps are stored and compared in UTC. Components take a TimePort
instead of calling datetime.now() so tests can pin and advance the clock.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class TimePort(Protocol):
    """Time provider interface."""

    def now_utc(self) -> datetime:
        """Get current UTC time (timezone-aware)."""
        ...
