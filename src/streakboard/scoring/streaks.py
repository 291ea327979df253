"""Streak engine: pure functions, no DB access.

A streak counts consecutive periods with an approved submission, ending at
the most recent approval. The caller normalizes event instants to their
period start before calling in here.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from streakboard.scoring.periods import PERIOD_LENGTH, as_utc


@dataclass(frozen=True)
class StreakState:
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_marker: datetime | None = None


def advance_streak(state: StreakState, period_start: datetime) -> StreakState:
    """Apply one approval in period_start to state.

    Consecutive period -> +1. Same period -> unchanged. Anything else
    (first approval or a gap) -> 1. ``longest_streak`` never decreases.
    """
    period_start = as_utc(period_start)
    last = as_utc(state.last_activity_marker) if state.last_activity_marker is not None else None

    if last == period_start:
        return StreakState(state.current_streak, state.longest_streak, period_start)

    if last is not None and last == period_start - PERIOD_LENGTH:
        current = state.current_streak + 1
    else:
        current = 1

    return StreakState(
        current_streak=current,
        longest_streak=max(state.longest_streak, current),
        last_activity_marker=period_start,
    )


def is_backfill(state: StreakState, period_start: datetime) -> bool:
    """True if period_start is older than the last approved period."""
    if state.last_activity_marker is None:
        return False
    return as_utc(period_start) < as_utc(state.last_activity_marker)


def replay_streak(period_starts: Iterable[datetime]) -> StreakState:
    """Rebuild streak state from a full approval history, in period order."""
    state = StreakState()
    for period_start in sorted({as_utc(p) for p in period_starts}):
        state = advance_streak(state, period_start)
    return state
