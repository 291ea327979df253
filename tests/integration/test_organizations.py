"""Organization lifecycle: creation, invites, roles and removal."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from streakboard.access.capabilities import MANAGE_ORG, resolve_org_actor, resolve_track_actor
from streakboard.db.models import OrganizationMembership
from streakboard.errors import Conflict, Forbidden, NotFound, ValidationError
from streakboard.organizations import service as org_service
from streakboard.organizations.service import (
    create_organization,
    get_org_membership,
    join_organization,
    list_members,
    regenerate_invite_code,
    remove_member,
    set_invite_enabled,
    slugify,
    update_member_role,
)
from streakboard.tracks.service import join_track, set_track_role, update_track
from tests.conftest import make_user

pytestmark = pytest.mark.asyncio


async def _org_with_members(db, *subjects):
    """An organization owned by 'owner-sub' plus one joined member per subject."""
    owner = await make_user(db, "owner-sub", "Owner")
    org = await create_organization(db, owner.id, "Night Owls")
    await db.commit()
    members = []
    for subject in subjects:
        user = await make_user(db, subject)
        await join_organization(db, user.id, org.invite_code)
        await db.commit()
        members.append(user)
    return owner, org, members


async def _promote(db, owner, org, user):
    actor = await resolve_org_actor(db, owner.id, org.id)
    await update_member_role(db, actor, org, user.id, "admin")
    await db.commit()


def test_slugify():
    assert slugify("  Night Owls & Friends!! ") == "night-owls-friends"
    assert slugify("***") == ""


class TestCreate:
    async def test_creator_is_owner(self, db_session):
        owner = await make_user(db_session, "owner-sub")
        org = await create_organization(db_session, owner.id, "  Night Owls  ", "  reading at night  ")
        await db_session.commit()

        assert org.name == "Night Owls"
        assert org.slug == "night-owls"
        assert org.description == "reading at night"
        assert org.owner_id == owner.id
        assert len(org.invite_code) == 8
        membership = await get_org_membership(db_session, owner.id, org.id)
        assert membership.role == "owner"

    async def test_slug_collision_gets_suffix(self, db_session):
        owner = await make_user(db_session, "owner-sub")
        first = await create_organization(db_session, owner.id, "Night Owls")
        second = await create_organization(db_session, owner.id, "night owls")
        third = await create_organization(db_session, owner.id, "Night-Owls")
        assert (first.slug, second.slug, third.slug) == ("night-owls", "night-owls-1", "night-owls-2")

    async def test_symbol_only_name_falls_back(self, db_session):
        owner = await make_user(db_session, "owner-sub")
        org = await create_organization(db_session, owner.id, "!!")
        assert org.slug == "org"

    async def test_short_name_rejected(self, db_session):
        owner = await make_user(db_session, "owner-sub")
        with pytest.raises(ValidationError):
            await create_organization(db_session, owner.id, " x ")


class TestInvites:
    async def test_join_as_member(self, db_session):
        _, org, [reader] = await _org_with_members(db_session, "reader-sub")
        membership = await get_org_membership(db_session, reader.id, org.id)
        assert membership.role == "member"
        assert reader.id in {u.id for _, u in await list_members(db_session, org.id)}

    async def test_code_is_case_insensitive(self, db_session):
        _, org, _ = await _org_with_members(db_session)
        reader = await make_user(db_session, "reader-sub")
        membership = await join_organization(db_session, reader.id, f"  {org.invite_code.lower()} ")
        assert membership.organization_id == org.id

    async def test_unknown_code(self, db_session):
        reader = await make_user(db_session, "reader-sub")
        with pytest.raises(NotFound):
            await join_organization(db_session, reader.id, "ZZZZZZZZ")

    async def test_duplicate_join(self, db_session):
        _, org, [reader] = await _org_with_members(db_session, "reader-sub")
        with pytest.raises(Conflict):
            await join_organization(db_session, reader.id, org.invite_code)

    async def test_concurrent_duplicate_join_conflicts(self, db_session, monkeypatch):
        _, org, [reader] = await _org_with_members(db_session, "reader-sub")
        org_id, invite_code = org.id, org.invite_code

        async def _not_yet_member(*_args, **_kwargs):
            return None

        monkeypatch.setattr(org_service, "get_org_membership", _not_yet_member)
        with pytest.raises(Conflict):
            await join_organization(db_session, reader.id, invite_code)
        monkeypatch.undo()

        count = await db_session.scalar(
            select(func.count(OrganizationMembership.id)).where(
                OrganizationMembership.organization_id == org_id,
                OrganizationMembership.user_id == reader.id,
            )
        )
        assert count == 1

    async def test_disabled_invites(self, db_session):
        owner, org, _ = await _org_with_members(db_session)
        actor = await resolve_org_actor(db_session, owner.id, org.id)
        assert await set_invite_enabled(db_session, actor, org, False) is False
        await db_session.commit()

        reader = await make_user(db_session, "reader-sub")
        with pytest.raises(ValidationError, match="disabled"):
            await join_organization(db_session, reader.id, org.invite_code)

        await set_invite_enabled(db_session, actor, org, True)
        await db_session.commit()
        await join_organization(db_session, reader.id, org.invite_code)

    async def test_regenerate_retires_old_code(self, db_session):
        owner, org, _ = await _org_with_members(db_session)
        old_code = org.invite_code
        new_code = await regenerate_invite_code(db_session, await resolve_org_actor(db_session, owner.id, org.id), org)
        await db_session.commit()
        assert new_code != old_code

        reader = await make_user(db_session, "reader-sub")
        with pytest.raises(NotFound):
            await join_organization(db_session, reader.id, old_code)
        await join_organization(db_session, reader.id, new_code)

    async def test_member_cannot_manage_invites(self, db_session):
        _, org, [reader] = await _org_with_members(db_session, "reader-sub")
        actor = await resolve_org_actor(db_session, reader.id, org.id)
        with pytest.raises(Forbidden):
            await regenerate_invite_code(db_session, actor, org)
        with pytest.raises(Forbidden):
            await set_invite_enabled(db_session, actor, org, False)


class TestRoles:
    async def test_owner_promotes_and_demotes(self, db_session):
        owner, org, [reader] = await _org_with_members(db_session, "reader-sub")
        actor = await resolve_org_actor(db_session, owner.id, org.id)

        assert (await update_member_role(db_session, actor, org, reader.id, "admin")).role == "admin"
        assert (await update_member_role(db_session, actor, org, reader.id, "member")).role == "member"

    async def test_admin_cannot_change_roles(self, db_session):
        owner, org, [admin, reader] = await _org_with_members(db_session, "admin-sub", "reader-sub")
        await _promote(db_session, owner, org, admin)

        with pytest.raises(Forbidden):
            await update_member_role(
                db_session, await resolve_org_actor(db_session, admin.id, org.id), org, reader.id, "admin"
            )

    async def test_owner_cannot_change_own_role(self, db_session):
        owner, org, _ = await _org_with_members(db_session)
        with pytest.raises(ValidationError, match="your own role"):
            await update_member_role(
                db_session, await resolve_org_actor(db_session, owner.id, org.id), org, owner.id, "member"
            )

    async def test_invalid_role(self, db_session):
        owner, org, [reader] = await _org_with_members(db_session, "reader-sub")
        with pytest.raises(ValidationError, match="Invalid role"):
            await update_member_role(
                db_session, await resolve_org_actor(db_session, owner.id, org.id), org, reader.id, "owner"
            )

    async def test_unknown_member(self, db_session):
        owner, org, _ = await _org_with_members(db_session)
        stranger = await make_user(db_session, "stranger-sub")
        with pytest.raises(NotFound):
            await update_member_role(
                db_session, await resolve_org_actor(db_session, owner.id, org.id), org, stranger.id, "admin"
            )


class TestRemoval:
    async def test_admin_removes_member(self, db_session):
        owner, org, [admin, reader] = await _org_with_members(db_session, "admin-sub", "reader-sub")
        await _promote(db_session, owner, org, admin)

        await remove_member(db_session, await resolve_org_actor(db_session, admin.id, org.id), org, reader.id)
        await db_session.commit()
        assert await get_org_membership(db_session, reader.id, org.id) is None

    async def test_admin_cannot_remove_admin(self, db_session):
        owner, org, [first, second] = await _org_with_members(db_session, "first-sub", "second-sub")
        owner_actor = await resolve_org_actor(db_session, owner.id, org.id)
        await update_member_role(db_session, owner_actor, org, first.id, "admin")
        await update_member_role(db_session, owner_actor, org, second.id, "admin")
        await db_session.commit()

        with pytest.raises(Forbidden, match="Only owners"):
            await remove_member(db_session, await resolve_org_actor(db_session, first.id, org.id), org, second.id)

        await remove_member(db_session, owner_actor, org, second.id)
        assert await get_org_membership(db_session, second.id, org.id) is None

    async def test_nobody_removes_the_owner(self, db_session):
        owner, org, [admin] = await _org_with_members(db_session, "admin-sub")
        await _promote(db_session, owner, org, admin)

        with pytest.raises(ValidationError, match="owner"):
            await remove_member(db_session, await resolve_org_actor(db_session, admin.id, org.id), org, owner.id)

    async def test_cannot_remove_yourself(self, db_session):
        owner, org, _ = await _org_with_members(db_session)
        with pytest.raises(ValidationError, match="yourself"):
            await remove_member(db_session, await resolve_org_actor(db_session, owner.id, org.id), org, owner.id)

    async def test_member_cannot_remove(self, db_session):
        _, org, [first, second] = await _org_with_members(db_session, "first-sub", "second-sub")
        with pytest.raises(Forbidden):
            await remove_member(db_session, await resolve_org_actor(db_session, first.id, org.id), org, second.id)


class TestTrackRoles:
    async def test_org_admin_promotes_and_demotes(self, setup):
        admin = await setup.admin_actor()
        promoted = await set_track_role(setup.db, admin, setup.track, setup.member.id, "admin")
        assert promoted.role == "admin"
        await setup.db.commit()

        member_actor = await setup.actor_for(setup.member)
        assert not member_actor.has(MANAGE_ORG)
        demoted = await set_track_role(setup.db, admin, setup.track, setup.member.id, "member")
        assert demoted.role == "member"

    async def test_track_admin_cannot_change_track_roles(self, setup):
        await set_track_role(setup.db, await setup.admin_actor(), setup.track, setup.member.id, "admin")
        await setup.db.commit()

        peer = await make_user(setup.db, "peer-sub")
        await join_track(setup.db, peer.id, setup.track.invite_code)
        await setup.db.commit()

        track_admin = await resolve_track_actor(setup.db, setup.member.id, setup.track)
        with pytest.raises(Forbidden):
            await set_track_role(setup.db, track_admin, setup.track, peer.id, "admin")

    async def test_invalid_track_role(self, setup):
        with pytest.raises(ValidationError, match="Invalid role"):
            await set_track_role(setup.db, await setup.admin_actor(), setup.track, setup.member.id, "owner")

    async def test_unknown_track_member(self, setup):
        stranger = await make_user(setup.db, "stranger-sub")
        with pytest.raises(NotFound):
            await set_track_role(setup.db, await setup.admin_actor(), setup.track, stranger.id, "admin")


class TestTrackSettings:
    async def test_max_must_exceed_min(self, setup):
        admin = await setup.admin_actor()
        with pytest.raises(ValidationError, match="greater than"):
            await update_track(setup.db, admin, setup.track, min_score=5, max_score=5)
        with pytest.raises(ValidationError, match="greater than"):
            await update_track(setup.db, admin, setup.track, max_score=-1)

    async def test_fixed_points_within_bounds(self, setup):
        admin = await setup.admin_actor()
        with pytest.raises(ValidationError, match="fixed_points"):
            await update_track(setup.db, admin, setup.track, fixed_points=11)

        track = await update_track(setup.db, admin, setup.track, fixed_points=4)
        assert track.fixed_points == 4
        with pytest.raises(ValidationError, match="fixed_points"):
            await update_track(setup.db, admin, setup.track, max_score=3)

    async def test_bad_period_day(self, setup):
        with pytest.raises(ValidationError):
            await update_track(setup.db, await setup.admin_actor(), setup.track, period_start_day=7)

    async def test_member_cannot_update(self, setup):
        with pytest.raises(Forbidden):
            await update_track(setup.db, await setup.actor_for(setup.member), setup.track, name="Renamed")
