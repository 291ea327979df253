"""Pydantic schemas for track endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CreateTrackRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: str | None = Field(None, max_length=500)
    period_start_day: int | None = Field(None, ge=0, le=6)
    min_score: float | None = None
    max_score: float | None = None
    fixed_points: float | None = None
    max_members: int | None = Field(None, ge=1)


class UpdateTrackRequest(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=100)
    description: str | None = Field(None, max_length=500)
    period_start_day: int | None = Field(None, ge=0, le=6)
    min_score: float | None = None
    max_score: float | None = None
    fixed_points: float | None = None
    max_members: int | None = Field(None, ge=1)


class JoinTrackRequest(BaseModel):
    invite_code: str = Field(..., min_length=8, max_length=8)


class ToggleInviteRequest(BaseModel):
    enabled: bool


class AddMemberRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    role: str = Field("member", pattern="^(admin|member)$")


class SuspendMemberRequest(BaseModel):
    duration_days: int | None = Field(None, ge=1, le=3650)


class TrackResponse(BaseModel):
    id: int
    organization_id: int
    name: str
    description: str | None = None
    period_start_day: int
    period_start_day_name: str
    min_score: float
    max_score: float
    fixed_points: float | None = None
    member_count: int
    # Only shown to admins
    invite_code: str | None = None
    invite_enabled: bool | None = None
    max_members: int | None = None


class TrackListResponse(BaseModel):
    tracks: list[TrackResponse]


class MyTrackResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    organization_id: int
    organization_name: str
    period_start_day: int
    member_count: int
    role: str
    status: str
    current_streak: int
    longest_streak: int


class MyTrackListResponse(BaseModel):
    tracks: list[MyTrackResponse]


class JoinTrackResponse(BaseModel):
    track_id: int
    track_name: str
    role: str


class TrackMemberResponse(BaseModel):
    user_id: int
    email: str
    display_name: str
    avatar_url: str | None = None
    role: str
    status: str
    current_streak: int
    longest_streak: int
    suspended_until: datetime | None = None
    joined_at: datetime


class TrackMemberListResponse(BaseModel):
    members: list[TrackMemberResponse]
    total: int


class InviteCodeResponse(BaseModel):
    invite_code: str
    invite_enabled: bool
