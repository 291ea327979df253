"""Pydantic schemas for submission endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CreateSubmissionRequest(BaseModel):
    description: str = Field(..., max_length=4000)
    proof_url: str = Field(..., max_length=2048)
    proof_type: str


class VerifySubmissionRequest(BaseModel):
    status: str
    score: float | None = None


class SubmitterResponse(BaseModel):
    id: int
    email: str
    display_name: str
    avatar_url: str | None = None


class SubmissionResponse(BaseModel):
    id: int
    track_id: int
    user: SubmitterResponse | None = None
    period_start: datetime
    period_end: datetime
    description: str
    proof_url: str
    proof_type: str
    status: str
    score: float | None = None
    verified_by: int | None = None
    verified_at: datetime | None = None
    created_at: datetime


class SubmissionListResponse(BaseModel):
    submissions: list[SubmissionResponse]
    total: int


class VerifySubmissionResponse(BaseModel):
    id: int
    status: str
    score: float | None = None
    verified_at: datetime | None = None
    current_streak: int | None = None
    longest_streak: int | None = None
