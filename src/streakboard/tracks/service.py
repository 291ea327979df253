"""Track business logic.

Rules:
- Tracks belong to one organization; org admins/owners create them
- The creator becomes the first track admin (member_count starts at 1)
- Joining by invite auto-joins the organization as a plain member
- max_members caps joins and admin additions alike
- Track admins (direct or via the organization) cannot be banned or suspended
- A suspension with an expired ``suspended_until`` no longer blocks the member
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.access.capabilities import (
    MANAGE_ORG,
    MANAGE_TRACK,
    Actor,
    Capability,
    has_capability,
)
from streakboard.auth.service import get_user_by_email
from streakboard.config import get_settings
from streakboard.db.models import Organization, Track, TrackMembership, User
from streakboard.errors import Conflict, Forbidden, NotFound, ValidationError
from streakboard.organizations.invite_codes import generate_unique_invite_code, normalize_invite_code
from streakboard.organizations.service import ensure_org_member
from streakboard.scoring.periods import as_utc, validate_period_start_day

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_track(db: AsyncSession, track_id: int) -> Track:
    """Get a track by ID or raise NotFound."""
    result = await db.execute(select(Track).where(Track.id == track_id))
    track = result.scalar_one_or_none()
    if track is None:
        raise NotFound("Track not found")
    return track


async def get_track_membership(db: AsyncSession, user_id: int, track_id: int) -> TrackMembership | None:
    """Get a user's membership in a track (if any)."""
    result = await db.execute(
        select(TrackMembership).where(
            TrackMembership.user_id == user_id,
            TrackMembership.track_id == track_id,
        )
    )
    return result.scalar_one_or_none()


async def _require_membership(db: AsyncSession, user_id: int, track_id: int) -> TrackMembership:
    membership = await get_track_membership(db, user_id, track_id)
    if membership is None:
        raise NotFound("Member not found")
    return membership


def is_membership_active(membership: TrackMembership, now: datetime | None = None) -> bool:
    """Banned members are never active; suspensions lapse at ``suspended_until``."""
    if membership.status == "banned":
        return False
    if membership.status == "suspended":
        if membership.suspended_until is None:
            return False
        now = now or datetime.now(timezone.utc)
        return as_utc(membership.suspended_until) <= now
    return True


def ensure_active_member(membership: TrackMembership | None, now: datetime | None = None) -> TrackMembership:
    """Raise Forbidden unless membership exists and is currently active."""
    if membership is None:
        raise Forbidden("You are not a member of this track")
    if membership.status == "banned":
        raise Forbidden("You have been banned from this track")
    if not is_membership_active(membership, now):
        raise Forbidden("Your membership in this track is suspended")
    return membership


def _validate_bounds(min_score: float, max_score: float) -> None:
    if max_score <= min_score:
        raise ValidationError("max_score must be greater than min_score")


def _validate_period_day(day: int) -> None:
    try:
        validate_period_start_day(day)
    except ValueError as e:
        raise ValidationError(str(e)) from e


# ---------------------------------------------------------------------------
# Track CRUD
# ---------------------------------------------------------------------------


async def create_track(
    db: AsyncSession,
    actor: Actor,
    organization: Organization,
    name: str,
    description: str | None = None,
    period_start_day: int | None = None,
    min_score: float | None = None,
    max_score: float | None = None,
    fixed_points: float | None = None,
    max_members: int | None = None,
) -> Track:
    """Create a track inside an organization (org admin/owner)."""
    actor.ensure_org_scope(organization.id)
    actor.require(MANAGE_ORG, "Only organization admins can create tracks")

    settings = get_settings()
    name = name.strip()
    if len(name) < 2:
        raise ValidationError("Track name must be at least 2 characters")

    period_start_day = settings.default_period_start_day if period_start_day is None else period_start_day
    min_score = settings.default_min_score if min_score is None else min_score
    max_score = settings.default_max_score if max_score is None else max_score
    _validate_period_day(period_start_day)
    _validate_bounds(min_score, max_score)
    if fixed_points is not None and not min_score <= fixed_points <= max_score:
        raise ValidationError(f"fixed_points must be between {min_score} and {max_score}")

    track = Track(
        organization_id=organization.id,
        name=name,
        description=description.strip() if description else None,
        period_start_day=period_start_day,
        min_score=min_score,
        max_score=max_score,
        fixed_points=fixed_points,
        max_members=max_members,
        invite_code=await generate_unique_invite_code(db, Track),
        member_count=1,
    )
    db.add(track)
    await db.flush()

    db.add(TrackMembership(user_id=actor.user_id, track_id=track.id, role="admin"))
    await db.flush()

    logger.info("Track created: %s (id=%d, org=%d)", track.name, track.id, organization.id)
    return track


async def update_track(
    db: AsyncSession,
    actor: Actor,
    track: Track,
    name: str | None = None,
    description: str | None = None,
    period_start_day: int | None = None,
    min_score: float | None = None,
    max_score: float | None = None,
    fixed_points: float | None = None,
    max_members: int | None = None,
) -> Track:
    """Update track settings (track admin or org admin/owner)."""
    actor.ensure_track_scope(track.id)
    actor.require(MANAGE_TRACK, "Only track admins can update the track")

    new_min = track.min_score if min_score is None else min_score
    new_max = track.max_score if max_score is None else max_score
    _validate_bounds(new_min, new_max)
    new_fixed = track.fixed_points if fixed_points is None else fixed_points
    if new_fixed is not None and not new_min <= new_fixed <= new_max:
        raise ValidationError(f"fixed_points must be between {new_min} and {new_max}")
    if period_start_day is not None:
        _validate_period_day(period_start_day)
        track.period_start_day = period_start_day

    if name is not None:
        name = name.strip()
        if len(name) < 2:
            raise ValidationError("Track name must be at least 2 characters")
        track.name = name
    if description is not None:
        track.description = description.strip() or None
    if max_members is not None:
        track.max_members = max_members
    track.min_score = new_min
    track.max_score = new_max
    track.fixed_points = new_fixed
    track.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return track


async def list_organization_tracks(db: AsyncSession, actor: Actor, organization_id: int) -> list[Track]:
    """Org admins see every track; members see only the tracks they joined."""
    actor.ensure_org_scope(organization_id)
    actor.require({Capability.ORG_MEMBER}, "Not a member of this organization")

    query = select(Track).where(Track.organization_id == organization_id)
    if not actor.has(MANAGE_ORG):
        query = query.join(TrackMembership, TrackMembership.track_id == Track.id).where(
            TrackMembership.user_id == actor.user_id
        )
    result = await db.execute(query.order_by(Track.id.asc()))
    return list(result.scalars().all())


async def list_user_tracks(db: AsyncSession, user_id: int) -> list[tuple[Track, Organization, TrackMembership]]:
    """Every track the user belongs to, across organizations."""
    result = await db.execute(
        select(Track, Organization, TrackMembership)
        .join(TrackMembership, TrackMembership.track_id == Track.id)
        .join(Organization, Organization.id == Track.organization_id)
        .where(TrackMembership.user_id == user_id)
        .order_by(TrackMembership.joined_at.asc())
    )
    return [(t, o, m) for t, o, m in result.all()]


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


async def _lock_track(db: AsyncSession, track_id: int) -> Track:
    result = await db.execute(
        select(Track)
        .where(Track.id == track_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _add_membership(db: AsyncSession, track: Track, user_id: int, role: str = "member") -> TrackMembership:
    track_id = track.id
    track = await _lock_track(db, track_id)
    # Re-check under the lock: a concurrent join may have landed since the caller looked
    if await get_track_membership(db, user_id, track_id) is not None:
        raise Conflict("Already a member of this track")
    if track.max_members and track.member_count >= track.max_members:
        raise ValidationError("This track has reached its member limit")

    try:
        await ensure_org_member(db, user_id, track.organization_id)
        membership = TrackMembership(user_id=user_id, track_id=track_id, role=role)
        db.add(membership)
        track.member_count += 1
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        logger.info("Duplicate track membership rejected: user=%d track=%d", user_id, track_id)
        raise Conflict("Already a member of this track") from e
    return membership


async def join_track(db: AsyncSession, user_id: int, invite_code: str) -> tuple[Track, TrackMembership]:
    """Join a track using its invite code."""
    code = normalize_invite_code(invite_code)
    result = await db.execute(select(Track).where(Track.invite_code == code))
    track = result.scalar_one_or_none()
    if track is None:
        raise NotFound("Invalid invite code")
    if not track.invite_enabled:
        raise ValidationError("Invites are disabled for this track")
    if await get_track_membership(db, user_id, track.id) is not None:
        raise Conflict("You are already a member of this track")

    membership = await _add_membership(db, track, user_id)
    logger.info("User %d joined track %d via invite code", user_id, track.id)
    return track, membership


async def add_member_by_email(
    db: AsyncSession,
    actor: Actor,
    track: Track,
    email: str,
    role: str = "member",
) -> tuple[User, TrackMembership]:
    """Add an existing user to the track by email (track admin or org admin/owner)."""
    actor.ensure_track_scope(track.id)
    actor.require(MANAGE_TRACK, "Only track or org admins can add members")

    target = await get_user_by_email(db, email.strip())
    if target is None:
        raise NotFound("User not found with this email")
    if await get_track_membership(db, target.id, track.id) is not None:
        raise Conflict("User is already a member of this track")

    membership = await _add_membership(db, track, target.id, "admin" if role == "admin" else "member")
    logger.info("User %d added to track %d by %d", target.id, track.id, actor.user_id)
    return target, membership


async def list_track_members(db: AsyncSession, actor: Actor, track: Track) -> list[tuple[TrackMembership, User]]:
    """Track members with their user rows, oldest first."""
    actor.ensure_track_scope(track.id)
    actor.require(MANAGE_TRACK | {Capability.TRACK_MEMBER}, "Not a member of this track")
    result = await db.execute(
        select(TrackMembership, User)
        .join(User, User.id == TrackMembership.user_id)
        .where(TrackMembership.track_id == track.id)
        .order_by(TrackMembership.joined_at.asc())
    )
    return [(m, u) for m, u in result.all()]


async def regenerate_invite_code(db: AsyncSession, actor: Actor, track: Track) -> str:
    """Issue a new invite code (track admin or org admin/owner)."""
    actor.ensure_track_scope(track.id)
    actor.require(MANAGE_TRACK, "Only track admins can manage invites")
    track.invite_code = await generate_unique_invite_code(db, Track)
    track.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return track.invite_code


async def set_invite_enabled(db: AsyncSession, actor: Actor, track: Track, enabled: bool) -> bool:
    """Enable or disable joining by invite code."""
    actor.ensure_track_scope(track.id)
    actor.require(MANAGE_TRACK, "Only track admins can manage invites")
    track.invite_enabled = enabled
    track.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return track.invite_enabled


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------


async def _moderation_target(
    db: AsyncSession, actor: Actor, track: Track, target_user_id: int, verb: str
) -> TrackMembership:
    actor.ensure_track_scope(track.id)
    actor.require(MANAGE_TRACK, f"Only admins can {verb} members")
    if target_user_id == actor.user_id:
        raise ValidationError(f"Cannot {verb} yourself")
    membership = await _require_membership(db, target_user_id, track.id)
    if await has_capability(db, target_user_id, track, MANAGE_TRACK):
        raise ValidationError(f"Cannot {verb} track admins")
    return membership


async def ban_member(db: AsyncSession, actor: Actor, track: Track, target_user_id: int) -> TrackMembership:
    """Ban a member from submitting to the track."""
    membership = await _moderation_target(db, actor, track, target_user_id, "ban")
    membership.status = "banned"
    membership.banned_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("User %d banned from track %d by %d", target_user_id, track.id, actor.user_id)
    return membership


async def unban_member(db: AsyncSession, actor: Actor, track: Track, target_user_id: int) -> TrackMembership:
    """Lift a ban."""
    actor.ensure_track_scope(track.id)
    actor.require(MANAGE_TRACK, "Only admins can unban members")
    membership = await _require_membership(db, target_user_id, track.id)
    membership.status = "active"
    membership.banned_at = None
    await db.flush()
    return membership


async def suspend_member(
    db: AsyncSession,
    actor: Actor,
    track: Track,
    target_user_id: int,
    duration_days: int | None = None,
    now: datetime | None = None,
) -> TrackMembership:
    """Suspend a member, indefinitely or for ``duration_days``."""
    membership = await _moderation_target(db, actor, track, target_user_id, "suspend")
    now = now or datetime.now(timezone.utc)
    membership.status = "suspended"
    membership.suspended_at = now
    membership.suspended_until = now + timedelta(days=duration_days) if duration_days else None
    await db.flush()
    logger.info(
        "User %d suspended from track %d by %d (days=%s)", target_user_id, track.id, actor.user_id, duration_days
    )
    return membership


async def unsuspend_member(db: AsyncSession, actor: Actor, track: Track, target_user_id: int) -> TrackMembership:
    """Lift a suspension."""
    actor.ensure_track_scope(track.id)
    actor.require(MANAGE_TRACK, "Only admins can unsuspend members")
    membership = await _require_membership(db, target_user_id, track.id)
    membership.status = "active"
    membership.suspended_at = None
    membership.suspended_until = None
    await db.flush()
    return membership


async def set_track_role(
    db: AsyncSession,
    actor: Actor,
    track: Track,
    target_user_id: int,
    role: str,
) -> TrackMembership:
    """Promote to or demote from track admin (org admin/owner only)."""
    actor.ensure_track_scope(track.id)
    actor.require(MANAGE_ORG, "Only organization owners/admins can change track admins")
    if role not in ("admin", "member"):
        raise ValidationError("Invalid role. Must be admin or member")
    membership = await _require_membership(db, target_user_id, track.id)
    membership.role = role
    await db.flush()
    logger.info("User %d set to %s on track %d by %d", target_user_id, role, track.id, actor.user_id)
    return membership
