"""Organization business logic.

Rules:
- The creator becomes the owner; the owner's role cannot be changed or removed
- Slugs derive from the name and get a numeric suffix on collision
- Joining by invite code creates a plain member
- Only owners can change roles or remove admins
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.access.capabilities import MANAGE_ORG, Actor, Capability
from streakboard.db.models import Organization, OrganizationMembership, User
from streakboard.errors import Conflict, NotFound, ValidationError
from streakboard.organizations.invite_codes import generate_unique_invite_code, normalize_invite_code

logger = logging.getLogger(__name__)

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Lowercase, non-alphanumerics collapsed to '-', no leading/trailing '-'."""
    return _SLUG_STRIP.sub("-", name.lower()).strip("-")


async def get_organization(db: AsyncSession, organization_id: int) -> Organization:
    """Get an organization by ID or raise NotFound."""
    result = await db.execute(select(Organization).where(Organization.id == organization_id))
    org = result.scalar_one_or_none()
    if org is None:
        raise NotFound("Organization not found")
    return org


async def get_org_membership(db: AsyncSession, user_id: int, organization_id: int) -> OrganizationMembership | None:
    """Get a user's membership in an organization (if any)."""
    result = await db.execute(
        select(OrganizationMembership).where(
            OrganizationMembership.user_id == user_id,
            OrganizationMembership.organization_id == organization_id,
        )
    )
    return result.scalar_one_or_none()


async def ensure_org_member(db: AsyncSession, user_id: int, organization_id: int) -> OrganizationMembership:
    """Return the user's org membership, adding them as a plain member if absent."""
    membership = await get_org_membership(db, user_id, organization_id)
    if membership is None:
        membership = OrganizationMembership(user_id=user_id, organization_id=organization_id, role="member")
        db.add(membership)
        await db.flush()
    return membership


async def _unique_slug(db: AsyncSession, name: str) -> str:
    base = slugify(name) or "org"
    slug = base
    counter = 1
    while (await db.execute(select(Organization.id).where(Organization.slug == slug))).scalar_one_or_none():
        slug = f"{base}-{counter}"
        counter += 1
    return slug


async def create_organization(
    db: AsyncSession,
    owner_id: int,
    name: str,
    description: str | None = None,
) -> Organization:
    """Create an organization. The creator becomes its owner."""
    name = name.strip()
    if len(name) < 2:
        raise ValidationError("Organization name must be at least 2 characters")

    org = Organization(
        name=name,
        slug=await _unique_slug(db, name),
        description=description.strip() if description else None,
        owner_id=owner_id,
        invite_code=await generate_unique_invite_code(db, Organization),
    )
    db.add(org)
    await db.flush()

    db.add(OrganizationMembership(user_id=owner_id, organization_id=org.id, role="owner"))
    await db.flush()

    logger.info("Organization created: %s (id=%d, owner=%d)", org.slug, org.id, owner_id)
    return org


async def list_user_organizations(
    db: AsyncSession, user_id: int
) -> list[tuple[Organization, OrganizationMembership]]:
    """All organizations the user belongs to, with their membership."""
    result = await db.execute(
        select(Organization, OrganizationMembership)
        .join(OrganizationMembership, OrganizationMembership.organization_id == Organization.id)
        .where(OrganizationMembership.user_id == user_id)
        .order_by(OrganizationMembership.joined_at.asc())
    )
    return [(org, m) for org, m in result.all()]


async def update_organization(
    db: AsyncSession,
    actor: Actor,
    org: Organization,
    name: str | None = None,
    description: str | None = None,
) -> Organization:
    """Update name/description (admin or owner)."""
    actor.ensure_org_scope(org.id)
    actor.require(MANAGE_ORG, "Only organization admins can update the organization")

    if name is not None:
        name = name.strip()
        if len(name) < 2:
            raise ValidationError("Organization name must be at least 2 characters")
        org.name = name
    if description is not None:
        org.description = description.strip() or None
    org.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return org


async def join_organization(db: AsyncSession, user_id: int, invite_code: str) -> OrganizationMembership:
    """Join an organization using its invite code."""
    code = normalize_invite_code(invite_code)
    result = await db.execute(select(Organization).where(Organization.invite_code == code))
    org = result.scalar_one_or_none()
    if org is None:
        raise NotFound("Invalid invite code")
    if not org.invite_enabled:
        raise ValidationError("Invites are disabled for this organization")

    if await get_org_membership(db, user_id, org.id) is not None:
        raise Conflict("You are already a member of this organization")

    org_id = org.id
    membership = OrganizationMembership(user_id=user_id, organization_id=org_id, role="member")
    db.add(membership)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        logger.info("Duplicate organization membership rejected: user=%d org=%d", user_id, org_id)
        raise Conflict("You are already a member of this organization") from e
    logger.info("User %d joined organization %d via invite code", user_id, org_id)
    return membership


async def regenerate_invite_code(db: AsyncSession, actor: Actor, org: Organization) -> str:
    """Issue a new invite code (admin or owner)."""
    actor.ensure_org_scope(org.id)
    actor.require(MANAGE_ORG, "Only organization admins can manage invites")
    org.invite_code = await generate_unique_invite_code(db, Organization)
    org.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return org.invite_code


async def set_invite_enabled(db: AsyncSession, actor: Actor, org: Organization, enabled: bool) -> bool:
    """Enable or disable joining by invite code (admin or owner)."""
    actor.ensure_org_scope(org.id)
    actor.require(MANAGE_ORG, "Only organization admins can manage invites")
    org.invite_enabled = enabled
    org.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return org.invite_enabled


async def list_members(db: AsyncSession, organization_id: int) -> list[tuple[OrganizationMembership, User]]:
    """Organization members with their user rows, oldest first."""
    result = await db.execute(
        select(OrganizationMembership, User)
        .join(User, User.id == OrganizationMembership.user_id)
        .where(OrganizationMembership.organization_id == organization_id)
        .order_by(OrganizationMembership.joined_at.asc())
    )
    return [(m, u) for m, u in result.all()]


async def update_member_role(
    db: AsyncSession,
    actor: Actor,
    org: Organization,
    target_user_id: int,
    role: str,
) -> OrganizationMembership:
    """Change a member's role between admin and member (owner only)."""
    actor.ensure_org_scope(org.id)
    actor.require({Capability.ORG_OWNER}, "Only the organization owner can change roles")

    if role not in ("admin", "member"):
        raise ValidationError("Invalid role. Must be admin or member")
    if target_user_id == actor.user_id:
        raise ValidationError("Cannot change your own role")

    membership = await get_org_membership(db, target_user_id, org.id)
    if membership is None:
        raise NotFound("Member not found")
    if membership.role == "owner":
        raise ValidationError("Cannot change owner role")

    membership.role = role
    await db.flush()
    return membership


async def remove_member(db: AsyncSession, actor: Actor, org: Organization, target_user_id: int) -> None:
    """Remove a member (admin or owner; only the owner can remove admins)."""
    actor.ensure_org_scope(org.id)
    actor.require(MANAGE_ORG, "Only organization admins can remove members")

    if target_user_id == actor.user_id:
        raise ValidationError("Cannot remove yourself")

    membership = await get_org_membership(db, target_user_id, org.id)
    if membership is None:
        raise NotFound("Member not found")
    if membership.role == "owner":
        raise ValidationError("Cannot remove the owner")
    if membership.role == "admin":
        actor.require({Capability.ORG_OWNER}, "Only owners can remove admins")

    await db.delete(membership)
    await db.flush()
    logger.info("User %d removed from organization %d by %d", target_user_id, org.id, actor.user_id)
