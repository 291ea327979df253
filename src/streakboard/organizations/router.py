"""Organization endpoints.

Create, list mine, get, update, join by invite, invite management,
members, role changes and removal.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.access.capabilities import MANAGE_ORG, Capability, resolve_org_actor
from streakboard.auth.dependencies import get_current_user
from streakboard.auth.service import display_name_for
from streakboard.database import get_session
from streakboard.db.models import Organization, User
from streakboard.organizations.schemas import (
    CreateOrganizationRequest,
    InviteCodeResponse,
    JoinOrganizationRequest,
    OrganizationListResponse,
    OrganizationResponse,
    OrgMemberListResponse,
    OrgMemberResponse,
    ToggleInviteRequest,
    UpdateMemberRoleRequest,
    UpdateOrganizationRequest,
)
from streakboard.organizations.service import (
    create_organization,
    get_org_membership,
    get_organization,
    join_organization,
    list_members,
    list_user_organizations,
    regenerate_invite_code,
    remove_member,
    set_invite_enabled,
    update_member_role,
    update_organization,
)

router = APIRouter(prefix="/api/v1", tags=["Organizations"])


def _org_response(org: Organization, role: str | None, show_invite: bool = False) -> OrganizationResponse:
    return OrganizationResponse(
        id=org.id,
        name=org.name,
        slug=org.slug,
        description=org.description,
        owner_id=org.owner_id,
        role=role,
        invite_code=org.invite_code if show_invite else None,
        invite_enabled=org.invite_enabled if show_invite else None,
        created_at=org.created_at,
    )


@router.post("/organizations", response_model=OrganizationResponse, status_code=201)
async def create_organization_endpoint(
    body: CreateOrganizationRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Create an organization. The creator becomes owner."""
    org = await create_organization(db, user.id, body.name, body.description)
    await db.commit()
    return _org_response(org, "owner", show_invite=True)


@router.get("/organizations", response_model=OrganizationListResponse)
async def list_my_organizations_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Organizations the caller belongs to."""
    rows = await list_user_organizations(db, user.id)
    return OrganizationListResponse(
        organizations=[_org_response(org, m.role, show_invite=m.role in ("owner", "admin")) for org, m in rows],
    )


@router.post("/organizations/join", response_model=OrganizationResponse)
async def join_organization_endpoint(
    body: JoinOrganizationRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Join an organization using an invite code."""
    membership = await join_organization(db, user.id, body.invite_code)
    await db.commit()
    org = await get_organization(db, membership.organization_id)
    return _org_response(org, membership.role)


@router.get("/organizations/{org_id}", response_model=OrganizationResponse)
async def get_organization_endpoint(
    org_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Organization details (members only)."""
    org = await get_organization(db, org_id)
    actor = await resolve_org_actor(db, user.id, org.id)
    actor.require({Capability.ORG_MEMBER}, "Not a member of this organization")
    membership = await get_org_membership(db, user.id, org.id)
    return _org_response(org, membership.role if membership else None, show_invite=actor.has(MANAGE_ORG))


@router.patch("/organizations/{org_id}", response_model=OrganizationResponse)
async def update_organization_endpoint(
    org_id: int,
    body: UpdateOrganizationRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Update name/description (admin or owner)."""
    org = await get_organization(db, org_id)
    actor = await resolve_org_actor(db, user.id, org.id)
    org = await update_organization(db, actor, org, body.name, body.description)
    await db.commit()
    membership = await get_org_membership(db, user.id, org.id)
    return _org_response(org, membership.role if membership else None, show_invite=True)


@router.post("/organizations/{org_id}/invite/regenerate", response_model=InviteCodeResponse)
async def regenerate_invite_endpoint(
    org_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Issue a new invite code (admin or owner)."""
    org = await get_organization(db, org_id)
    actor = await resolve_org_actor(db, user.id, org.id)
    code = await regenerate_invite_code(db, actor, org)
    await db.commit()
    return InviteCodeResponse(invite_code=code, invite_enabled=org.invite_enabled)


@router.put("/organizations/{org_id}/invite", response_model=InviteCodeResponse)
async def toggle_invite_endpoint(
    org_id: int,
    body: ToggleInviteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Enable or disable the invite code (admin or owner)."""
    org = await get_organization(db, org_id)
    actor = await resolve_org_actor(db, user.id, org.id)
    enabled = await set_invite_enabled(db, actor, org, body.enabled)
    await db.commit()
    return InviteCodeResponse(invite_code=org.invite_code, invite_enabled=enabled)


@router.get("/organizations/{org_id}/members", response_model=OrgMemberListResponse)
async def list_members_endpoint(
    org_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Organization members (members only)."""
    org = await get_organization(db, org_id)
    actor = await resolve_org_actor(db, user.id, org.id)
    actor.require({Capability.ORG_MEMBER}, "Not a member of this organization")
    rows = await list_members(db, org.id)
    return OrgMemberListResponse(
        members=[
            OrgMemberResponse(
                user_id=u.id,
                email=u.email,
                display_name=display_name_for(u),
                role=m.role,
                joined_at=m.joined_at,
            )
            for m, u in rows
        ],
        total=len(rows),
    )


@router.put("/organizations/{org_id}/members/{member_id}/role", response_model=OrgMemberResponse)
async def update_member_role_endpoint(
    org_id: int,
    member_id: int,
    body: UpdateMemberRoleRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Change a member's role (owner only)."""
    org = await get_organization(db, org_id)
    actor = await resolve_org_actor(db, user.id, org.id)
    membership = await update_member_role(db, actor, org, member_id, body.role)
    await db.commit()
    target = await db.get(User, member_id)
    return OrgMemberResponse(
        user_id=target.id,
        email=target.email,
        display_name=display_name_for(target),
        role=membership.role,
        joined_at=membership.joined_at,
    )


@router.delete("/organizations/{org_id}/members/{member_id}", status_code=204)
async def remove_member_endpoint(
    org_id: int,
    member_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Remove a member from the organization."""
    org = await get_organization(db, org_id)
    actor = await resolve_org_actor(db, user.id, org.id)
    await remove_member(db, actor, org, member_id)
    await db.commit()
