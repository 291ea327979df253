"""Per-period leaderboard aggregation.

Reads approved submissions for one period, groups them by member in SQL and
hands the totals to the pure ranking code. Nothing is cached or written:
every call recomputes from stored rows. The streak joined in is the
member's streak at query time, so past periods are weighted by today's
multiplier.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.config import get_settings
from streakboard.db.models import Submission, Track, TrackMembership, User
from streakboard.scoring.periods import PeriodBoundaries
from streakboard.scoring.ranking import LeaderboardEntry, MemberTotals, rank_members
from streakboard.submissions.workflow import APPROVED


@dataclass(frozen=True)
class LeaderboardStats:
    total_participants: int
    total_submissions: int
    average_score: float


def _approved_in_period(track_id: int, period: PeriodBoundaries):
    return and_(
        Submission.track_id == track_id,
        Submission.period_start == period.start,
        Submission.status == APPROVED,
    )


async def collect_member_totals(db: AsyncSession, track: Track, period: PeriodBoundaries) -> list[MemberTotals]:
    """Sum approved scores per member for one period, with current streaks."""
    result = await db.execute(
        select(
            Submission.user_id,
            User.display_name,
            User.email,
            User.avatar_url,
            func.coalesce(func.sum(Submission.score), 0).label("base_score"),
            func.count(Submission.id).label("submission_count"),
            TrackMembership.current_streak,
            TrackMembership.longest_streak,
        )
        .join(User, User.id == Submission.user_id)
        .outerjoin(
            TrackMembership,
            and_(
                TrackMembership.user_id == Submission.user_id,
                TrackMembership.track_id == Submission.track_id,
            ),
        )
        .where(_approved_in_period(track.id, period))
        .group_by(
            Submission.user_id,
            User.display_name,
            User.email,
            User.avatar_url,
            TrackMembership.current_streak,
            TrackMembership.longest_streak,
        )
    )
    return [
        MemberTotals(
            member_id=row.user_id,
            display_name=row.display_name or row.email,
            base_score=float(row.base_score),
            submission_count=row.submission_count,
            current_streak=row.current_streak or 0,
            longest_streak=row.longest_streak or 0,
            avatar_url=row.avatar_url,
        )
        for row in result.all()
    ]


async def get_period_leaderboard(
    db: AsyncSession,
    track: Track,
    period: PeriodBoundaries,
) -> list[LeaderboardEntry]:
    """Ranked standings for one track and period."""
    settings = get_settings()
    totals = await collect_member_totals(db, track, period)
    return rank_members(totals, settings.streak_multiplier_step, settings.streak_multiplier_cap)


async def get_leaderboard_stats(db: AsyncSession, track: Track, period: PeriodBoundaries) -> LeaderboardStats:
    """Participant count, approved submission count and average score for a period."""
    result = await db.execute(
        select(
            func.count(func.distinct(Submission.user_id)),
            func.count(Submission.id),
            func.coalesce(func.sum(Submission.score), 0),
        ).where(_approved_in_period(track.id, period))
    )
    participants, submissions, total = result.one()
    average = float(total) / submissions if submissions else 0.0
    return LeaderboardStats(
        total_participants=participants,
        total_submissions=submissions,
        average_score=round(average, 2),
    )


async def get_member_rank(
    db: AsyncSession,
    track: Track,
    user_id: int,
    period: PeriodBoundaries,
) -> tuple[LeaderboardEntry | None, int]:
    """The member's entry (None if unranked) and the number of ranked members."""
    entries = await get_period_leaderboard(db, track, period)
    mine = next((e for e in entries if e.member_id == user_id), None)
    return mine, len(entries)
