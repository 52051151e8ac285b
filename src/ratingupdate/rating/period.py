"""
Rating period arithmetic.

A run always covers whole periods: from last_update it advances to the
last period boundary at or before `now`, never to `now` itself. That keeps
period boundaries fixed across outages and means a game is in exactly one
window: (last_update, period_end].
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RunWindow:
    """The slice of the match log one run processes."""

    last_update: int
    period_end: int
    period_seconds: int

    @property
    def periods(self) -> int:
        return (self.period_end - self.last_update) // self.period_seconds

    def contains(self, timestamp: int) -> bool:
        return self.last_update < timestamp <= self.period_end


def next_window(last_update: int, now: int, period_seconds: int) -> RunWindow | None:
    """
    Return the window due at `now`, or None if a full period has not elapsed.

    Examples:
        next_window(3600, 5000, 3600)   # → None
        next_window(3600, 11000, 3600)  # → RunWindow(3600, 10800, 3600)
    """
    elapsed = now - last_update
    if elapsed < period_seconds:
        return None
    periods = elapsed // period_seconds
    return RunWindow(
        last_update=last_update,
        period_end=last_update + periods * period_seconds,
        period_seconds=period_seconds,
    )


def time_until_next_run(last_update: int, now: int, period_seconds: int) -> int:
    """Seconds until the next window opens; 0 if one is already due."""
    return max(0, last_update + period_seconds - now)
