"""Streak multiplier.

Linear in streak length, saturating at a cap:

    streak <= 0  -> 1.0
    streak >= 1  -> min(1.0 + streak * step, cap)

With the default step 0.12 and cap 3.0 the cap is reached at a 17-period
streak.
"""

from __future__ import annotations

DEFAULT_STEP = 0.12
DEFAULT_CAP = 3.0


def streak_multiplier(current_streak: int, step: float = DEFAULT_STEP, cap: float = DEFAULT_CAP) -> float:
    """Multiplier for a streak length, full precision."""
    if current_streak <= 0:
        return 1.0
    return min(1.0 + current_streak * step, cap)


def display_multiplier(multiplier: float) -> float:
    """Round a multiplier for presentation."""
    return round(multiplier, 2)
