"""Pydantic schemas for organization endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CreateOrganizationRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: str | None = Field(None, max_length=500)


class UpdateOrganizationRequest(BaseModel):
    name: str | None = Field(None, min_length=2, max_length=100)
    description: str | None = Field(None, max_length=500)


class JoinOrganizationRequest(BaseModel):
    invite_code: str = Field(..., min_length=8, max_length=8)


class UpdateMemberRoleRequest(BaseModel):
    role: str = Field(..., pattern="^(admin|member)$")


class ToggleInviteRequest(BaseModel):
    enabled: bool


class OrganizationResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: str | None = None
    owner_id: int
    role: str | None = None
    invite_code: str | None = None  # Only shown to admins
    invite_enabled: bool | None = None
    created_at: datetime | None = None


class OrganizationListResponse(BaseModel):
    organizations: list[OrganizationResponse]


class OrgMemberResponse(BaseModel):
    user_id: int
    email: str
    display_name: str
    role: str
    joined_at: datetime


class OrgMemberListResponse(BaseModel):
    members: list[OrgMemberResponse]
    total: int


class InviteCodeResponse(BaseModel):
    invite_code: str
    invite_enabled: bool
