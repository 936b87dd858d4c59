"""
Clock collaborator for the protocol engines.
"""

import time


class Clock:
    """Source of monotonic timestamps in seconds."""

    def now(self) -> float:
        raise NotImplementedError


class MonotonicClock(Clock):
    """Clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()
