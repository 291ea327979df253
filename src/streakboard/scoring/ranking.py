"""Deterministic leaderboard ranking.

Members are ranked by total_score DESC, then member_id ASC. Ranks are
strictly sequential (1, 2, 3, ...): tied totals still get distinct ranks.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from streakboard.scoring.multiplier import DEFAULT_CAP, DEFAULT_STEP, display_multiplier, streak_multiplier


@dataclass(frozen=True)
class MemberTotals:
    """Per-member aggregate for one track and period."""

    member_id: int
    display_name: str
    base_score: float
    submission_count: int
    current_streak: int = 0
    longest_streak: int = 0
    avatar_url: str | None = None


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    member_id: int
    display_name: str
    base_score: float
    current_streak: int
    longest_streak: int
    multiplier: float
    total_score: float
    submission_count: int
    avatar_url: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """JSON-ready shape; the multiplier is rounded for display only."""
        return {
            "rank": self.rank,
            "member_id": self.member_id,
            "display_name": self.display_name,
            "base_score": self.base_score,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "multiplier": display_multiplier(self.multiplier),
            "total_score": self.total_score,
            "submission_count": self.submission_count,
            "avatar_url": self.avatar_url,
        }


def rank_members(
    totals: Iterable[MemberTotals],
    step: float = DEFAULT_STEP,
    cap: float = DEFAULT_CAP,
) -> list[LeaderboardEntry]:
    """Apply streak multipliers, sort, and assign sequential ranks."""
    scored = []
    for t in totals:
        multiplier = streak_multiplier(t.current_streak, step, cap)
        scored.append((round(t.base_score * multiplier, 2), multiplier, t))

    scored.sort(key=lambda item: (-item[0], item[2].member_id))

    return [
        LeaderboardEntry(
            rank=idx + 1,
            member_id=t.member_id,
            display_name=t.display_name,
            base_score=t.base_score,
            current_streak=t.current_streak,
            longest_streak=t.longest_streak,
            multiplier=multiplier,
            total_score=score,
            submission_count=t.submission_count,
            avatar_url=t.avatar_url,
        )
        for idx, (score, multiplier, t) in enumerate(scored)
    ]
