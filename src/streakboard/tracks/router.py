"""Track endpoints.

Track CRUD, invite-code joins, member listing and moderation.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.access.capabilities import (
    MANAGE_TRACK,
    VIEW_TRACK,
    Actor,
    Capability,
    resolve_org_actor,
    resolve_track_actor,
)
from streakboard.auth.dependencies import get_current_user
from streakboard.auth.service import display_name_for
from streakboard.database import get_session
from streakboard.db.models import Track, TrackMembership, User
from streakboard.organizations.service import get_organization
from streakboard.scoring.periods import get_day_name
from streakboard.tracks.schemas import (
    AddMemberRequest,
    CreateTrackRequest,
    InviteCodeResponse,
    JoinTrackRequest,
    JoinTrackResponse,
    MyTrackListResponse,
    MyTrackResponse,
    SuspendMemberRequest,
    ToggleInviteRequest,
    TrackListResponse,
    TrackMemberListResponse,
    TrackMemberResponse,
    TrackResponse,
    UpdateTrackRequest,
)
from streakboard.tracks.service import (
    add_member_by_email,
    ban_member,
    create_track,
    get_track,
    join_track,
    list_organization_tracks,
    list_track_members,
    list_user_tracks,
    regenerate_invite_code,
    set_invite_enabled,
    set_track_role,
    suspend_member,
    unban_member,
    unsuspend_member,
    update_track,
)

router = APIRouter(prefix="/api/v1", tags=["Tracks"])


# ── Helpers ──


def _track_response(track: Track, show_invite: bool = False) -> TrackResponse:
    return TrackResponse(
        id=track.id,
        organization_id=track.organization_id,
        name=track.name,
        description=track.description,
        period_start_day=track.period_start_day,
        period_start_day_name=get_day_name(track.period_start_day),
        min_score=track.min_score,
        max_score=track.max_score,
        fixed_points=track.fixed_points,
        member_count=track.member_count,
        invite_code=track.invite_code if show_invite else None,
        invite_enabled=track.invite_enabled if show_invite else None,
        max_members=track.max_members if show_invite else None,
    )


def _member_response(membership: TrackMembership, user: User) -> TrackMemberResponse:
    return TrackMemberResponse(
        user_id=user.id,
        email=user.email,
        display_name=display_name_for(user),
        avatar_url=user.avatar_url,
        role=membership.role,
        status=membership.status,
        current_streak=membership.current_streak,
        longest_streak=membership.longest_streak,
        suspended_until=membership.suspended_until,
        joined_at=membership.joined_at,
    )


async def _track_and_actor(db: AsyncSession, user: User, track_id: int) -> tuple[Track, Actor]:
    track = await get_track(db, track_id)
    return track, await resolve_track_actor(db, user.id, track)


# ── Track CRUD ──


@router.post("/organizations/{org_id}/tracks", response_model=TrackResponse, status_code=201)
async def create_track_endpoint(
    org_id: int,
    body: CreateTrackRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Create a track (org admin/owner). The creator becomes track admin."""
    org = await get_organization(db, org_id)
    actor = await resolve_org_actor(db, user.id, org.id)
    track = await create_track(
        db,
        actor,
        org,
        body.name,
        description=body.description,
        period_start_day=body.period_start_day,
        min_score=body.min_score,
        max_score=body.max_score,
        fixed_points=body.fixed_points,
        max_members=body.max_members,
    )
    await db.commit()
    return _track_response(track, show_invite=True)


@router.get("/organizations/{org_id}/tracks", response_model=TrackListResponse)
async def list_org_tracks_endpoint(
    org_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Admins see all tracks; members see the ones they joined."""
    org = await get_organization(db, org_id)
    actor = await resolve_org_actor(db, user.id, org.id)
    tracks = await list_organization_tracks(db, actor, org.id)
    show_invite = actor.has(MANAGE_TRACK)
    return TrackListResponse(tracks=[_track_response(t, show_invite) for t in tracks])


@router.get("/tracks/my-tracks", response_model=MyTrackListResponse)
async def my_tracks_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Every track the caller belongs to, across organizations."""
    rows = await list_user_tracks(db, user.id)
    return MyTrackListResponse(
        tracks=[
            MyTrackResponse(
                id=t.id,
                name=t.name,
                description=t.description,
                organization_id=o.id,
                organization_name=o.name,
                period_start_day=t.period_start_day,
                member_count=t.member_count,
                role=m.role,
                status=m.status,
                current_streak=m.current_streak,
                longest_streak=m.longest_streak,
            )
            for t, o, m in rows
        ],
    )


@router.post("/tracks/join", response_model=JoinTrackResponse)
async def join_track_endpoint(
    body: JoinTrackRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Join a track using an invite code."""
    track, membership = await join_track(db, user.id, body.invite_code)
    await db.commit()
    return JoinTrackResponse(track_id=track.id, track_name=track.name, role=membership.role)


@router.get("/tracks/{track_id}", response_model=TrackResponse)
async def get_track_endpoint(
    track_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Track details. Invite fields are visible to admins only."""
    track, actor = await _track_and_actor(db, user, track_id)
    actor.require(VIEW_TRACK | {Capability.ORG_MEMBER}, "Not a member of this track")
    return _track_response(track, show_invite=actor.has(MANAGE_TRACK))


@router.patch("/tracks/{track_id}", response_model=TrackResponse)
async def update_track_endpoint(
    track_id: int,
    body: UpdateTrackRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Update track settings (admin)."""
    track, actor = await _track_and_actor(db, user, track_id)
    track = await update_track(
        db,
        actor,
        track,
        name=body.name,
        description=body.description,
        period_start_day=body.period_start_day,
        min_score=body.min_score,
        max_score=body.max_score,
        fixed_points=body.fixed_points,
        max_members=body.max_members,
    )
    await db.commit()
    return _track_response(track, show_invite=True)


# ── Invites ──


@router.post("/tracks/{track_id}/invite/regenerate", response_model=InviteCodeResponse)
async def regenerate_invite_endpoint(
    track_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Issue a new invite code (admin)."""
    track, actor = await _track_and_actor(db, user, track_id)
    code = await regenerate_invite_code(db, actor, track)
    await db.commit()
    return InviteCodeResponse(invite_code=code, invite_enabled=track.invite_enabled)


@router.put("/tracks/{track_id}/invite", response_model=InviteCodeResponse)
async def toggle_invite_endpoint(
    track_id: int,
    body: ToggleInviteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Enable or disable the invite code (admin)."""
    track, actor = await _track_and_actor(db, user, track_id)
    enabled = await set_invite_enabled(db, actor, track, body.enabled)
    await db.commit()
    return InviteCodeResponse(invite_code=track.invite_code, invite_enabled=enabled)


# ── Members ──


@router.get("/tracks/{track_id}/members", response_model=TrackMemberListResponse)
async def list_members_endpoint(
    track_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Track members with their streaks."""
    track, actor = await _track_and_actor(db, user, track_id)
    rows = await list_track_members(db, actor, track)
    return TrackMemberListResponse(members=[_member_response(m, u) for m, u in rows], total=len(rows))


@router.post("/tracks/{track_id}/members", response_model=TrackMemberResponse, status_code=201)
async def add_member_endpoint(
    track_id: int,
    body: AddMemberRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Add an existing user by email (admin)."""
    track, actor = await _track_and_actor(db, user, track_id)
    target, membership = await add_member_by_email(db, actor, track, body.email, body.role)
    await db.commit()
    return _member_response(membership, target)


async def _moderate(db: AsyncSession, user: User, track_id: int, target_id: int, action, *args) -> TrackMemberResponse:
    track, actor = await _track_and_actor(db, user, track_id)
    membership = await action(db, actor, track, target_id, *args)
    await db.commit()
    return _member_response(membership, await db.get(User, target_id))


@router.post("/tracks/{track_id}/members/{member_id}/ban", response_model=TrackMemberResponse)
async def ban_member_endpoint(
    track_id: int,
    member_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Ban a member (admin)."""
    return await _moderate(db, user, track_id, member_id, ban_member)


@router.delete("/tracks/{track_id}/members/{member_id}/ban", response_model=TrackMemberResponse)
async def unban_member_endpoint(
    track_id: int,
    member_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Lift a ban (admin)."""
    return await _moderate(db, user, track_id, member_id, unban_member)


@router.post("/tracks/{track_id}/members/{member_id}/suspend", response_model=TrackMemberResponse)
async def suspend_member_endpoint(
    track_id: int,
    member_id: int,
    body: SuspendMemberRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Suspend a member, optionally for a number of days (admin)."""
    return await _moderate(db, user, track_id, member_id, suspend_member, body.duration_days)


@router.delete("/tracks/{track_id}/members/{member_id}/suspend", response_model=TrackMemberResponse)
async def unsuspend_member_endpoint(
    track_id: int,
    member_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Lift a suspension (admin)."""
    return await _moderate(db, user, track_id, member_id, unsuspend_member)


@router.post("/tracks/{track_id}/members/{member_id}/promote", response_model=TrackMemberResponse)
async def promote_member_endpoint(
    track_id: int,
    member_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Make a member track admin (org admin/owner)."""
    return await _moderate(db, user, track_id, member_id, set_track_role, "admin")


@router.delete("/tracks/{track_id}/members/{member_id}/promote", response_model=TrackMemberResponse)
async def demote_member_endpoint(
    track_id: int,
    member_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Demote a track admin to member (org admin/owner)."""
    return await _moderate(db, user, track_id, member_id, set_track_role, "member")
