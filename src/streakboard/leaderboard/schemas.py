"""Pydantic schemas for leaderboard endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class LeaderboardEntryResponse(BaseModel):
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


class LeaderboardStatsResponse(BaseModel):
    total_participants: int
    total_submissions: int
    average_score: float


class LeaderboardResponse(BaseModel):
    track_id: int
    period_start: datetime
    period_end: datetime
    period_range: str
    stats: LeaderboardStatsResponse
    entries: list[LeaderboardEntryResponse]


class MyRankResponse(BaseModel):
    track_id: int
    period_start: datetime
    period_end: datetime
    rank: int | None = None
    total_score: float = 0
    total_participants: int
