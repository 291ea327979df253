"""Leaderboard endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.access.capabilities import VIEW_TRACK, resolve_track_actor
from streakboard.auth.dependencies import get_current_user
from streakboard.database import get_session
from streakboard.db.models import User
from streakboard.errors import ValidationError
from streakboard.leaderboard.schemas import (
    LeaderboardEntryResponse,
    LeaderboardResponse,
    LeaderboardStatsResponse,
    MyRankResponse,
)
from streakboard.leaderboard.service import get_leaderboard_stats, get_member_rank, get_period_leaderboard
from streakboard.scoring.periods import format_period_range, get_current_period_boundaries, resolve_period
from streakboard.tracks.service import get_track

router = APIRouter(prefix="/api/v1", tags=["Leaderboard"])


@router.get("/tracks/{track_id}/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard_endpoint(
    track_id: int,
    week: str | None = Query(None, description="current, previous, or an ISO date"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Ranked standings for one period (track members)."""
    track = await get_track(db, track_id)
    actor = await resolve_track_actor(db, user.id, track)
    actor.require(VIEW_TRACK, "Not a member of this track")

    try:
        period = resolve_period(week, track.period_start_day)
    except ValueError as e:
        raise ValidationError(str(e)) from e

    entries = await get_period_leaderboard(db, track, period)
    stats = await get_leaderboard_stats(db, track, period)
    return LeaderboardResponse(
        track_id=track.id,
        period_start=period.start,
        period_end=period.end,
        period_range=format_period_range(period.start, period.end),
        stats=LeaderboardStatsResponse(
            total_participants=stats.total_participants,
            total_submissions=stats.total_submissions,
            average_score=stats.average_score,
        ),
        entries=[LeaderboardEntryResponse(**e.as_dict()) for e in entries],
    )


@router.get("/tracks/{track_id}/leaderboard/my-rank", response_model=MyRankResponse)
async def get_my_rank_endpoint(
    track_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """The caller's rank in the current period."""
    track = await get_track(db, track_id)
    actor = await resolve_track_actor(db, user.id, track)
    actor.require(VIEW_TRACK, "Not a member of this track")

    period = get_current_period_boundaries(track.period_start_day)
    entry, participants = await get_member_rank(db, track, user.id, period)
    return MyRankResponse(
        track_id=track.id,
        period_start=period.start,
        period_end=period.end,
        rank=entry.rank if entry else None,
        total_score=entry.total_score if entry else 0,
        total_participants=participants,
    )
