"""Capability resolution.

The single place that turns stored roles into capabilities. Routers resolve
an ``Actor`` once per request and pass it into the service layer; services
check capabilities on the actor and never look roles up themselves.

Role -> capability mapping:
    org owner     -> org_member, org_owner
    org admin     -> org_member, org_admin
    org member    -> org_member
    track admin   -> track_member, track_admin
    track member  -> track_member
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.db.models import OrganizationMembership, Track, TrackMembership
from streakboard.errors import Forbidden, InvariantViolation


class Capability(str, Enum):
    ORG_MEMBER = "org_member"
    ORG_ADMIN = "org_admin"
    ORG_OWNER = "org_owner"
    TRACK_MEMBER = "track_member"
    TRACK_ADMIN = "track_admin"


MANAGE_ORG = frozenset({Capability.ORG_ADMIN, Capability.ORG_OWNER})
MANAGE_TRACK = frozenset({Capability.TRACK_ADMIN, Capability.ORG_ADMIN, Capability.ORG_OWNER})
VIEW_TRACK = MANAGE_TRACK | {Capability.TRACK_MEMBER}

_ORG_ROLE_CAPABILITIES: dict[str, frozenset[Capability]] = {
    "owner": frozenset({Capability.ORG_MEMBER, Capability.ORG_OWNER}),
    "admin": frozenset({Capability.ORG_MEMBER, Capability.ORG_ADMIN}),
    "member": frozenset({Capability.ORG_MEMBER}),
}

_TRACK_ROLE_CAPABILITIES: dict[str, frozenset[Capability]] = {
    "admin": frozenset({Capability.TRACK_MEMBER, Capability.TRACK_ADMIN}),
    "member": frozenset({Capability.TRACK_MEMBER}),
}


@dataclass(frozen=True)
class Actor:
    """The caller of an operation and the capabilities confirmed for its scope."""

    user_id: int
    organization_id: int | None = None
    track_id: int | None = None
    capabilities: frozenset[Capability] = field(default_factory=frozenset)

    def has(self, capabilities: Iterable[Capability]) -> bool:
        return not self.capabilities.isdisjoint(capabilities)

    def require(self, capabilities: Iterable[Capability], detail: str = "Insufficient permissions") -> None:
        if not self.has(capabilities):
            raise Forbidden(detail)

    def ensure_track_scope(self, track_id: int) -> None:
        """Capabilities resolved for one track must not be used on another."""
        if self.track_id != track_id:
            raise InvariantViolation(f"Actor resolved for track {self.track_id} used on track {track_id}")

    def ensure_org_scope(self, organization_id: int) -> None:
        if self.organization_id != organization_id:
            raise InvariantViolation(
                f"Actor resolved for organization {self.organization_id} used on organization {organization_id}"
            )


async def _org_capabilities(db: AsyncSession, user_id: int, organization_id: int) -> frozenset[Capability]:
    result = await db.execute(
        select(OrganizationMembership.role).where(
            OrganizationMembership.user_id == user_id,
            OrganizationMembership.organization_id == organization_id,
        )
    )
    role = result.scalar_one_or_none()
    return _ORG_ROLE_CAPABILITIES.get(role, frozenset())


async def _track_capabilities(db: AsyncSession, user_id: int, track_id: int) -> frozenset[Capability]:
    result = await db.execute(
        select(TrackMembership.role).where(
            TrackMembership.user_id == user_id,
            TrackMembership.track_id == track_id,
        )
    )
    role = result.scalar_one_or_none()
    return _TRACK_ROLE_CAPABILITIES.get(role, frozenset())


async def resolve_org_actor(db: AsyncSession, user_id: int, organization_id: int) -> Actor:
    """Build an actor scoped to an organization."""
    return Actor(
        user_id=user_id,
        organization_id=organization_id,
        capabilities=await _org_capabilities(db, user_id, organization_id),
    )


async def resolve_track_actor(db: AsyncSession, user_id: int, track: Track) -> Actor:
    """Build an actor scoped to a track; org roles carry over to the org's tracks."""
    capabilities = await _org_capabilities(db, user_id, track.organization_id)
    capabilities |= await _track_capabilities(db, user_id, track.id)
    return Actor(
        user_id=user_id,
        organization_id=track.organization_id,
        track_id=track.id,
        capabilities=capabilities,
    )


async def has_capability(
    db: AsyncSession, user_id: int, track: Track, capabilities: Capability | Iterable[Capability]
) -> bool:
    """Does user_id hold any of capabilities over track (directly or via its organization)?"""
    if isinstance(capabilities, Capability):
        capabilities = {capabilities}
    actor = await resolve_track_actor(db, user_id, track)
    return actor.has(capabilities)
