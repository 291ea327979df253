"""Pydantic schemas for auth endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    id: int
    email: str
    display_name: str | None = None
    avatar_url: str | None = None
    created_at: datetime | None = None


class UpdateProfileRequest(BaseModel):
    display_name: str | None = Field(None, min_length=1, max_length=64)
    avatar_url: str | None = Field(None, max_length=2048)
