"""Fixtures for service-level tests: an organization with one track."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.access.capabilities import Actor, resolve_org_actor, resolve_track_actor
from streakboard.db.models import Organization, Track
from streakboard.organizations.service import create_organization
from streakboard.tracks.service import create_track, join_track
from tests.conftest import TestUser, make_user

# Monday 2 Feb 2026; tracks below anchor periods on Monday
PERIOD_ONE = datetime(2026, 2, 2, tzinfo=timezone.utc)


@dataclass
class TrackSetup:
    __test__ = False

    db: AsyncSession
    admin: TestUser
    member: TestUser
    org: Organization
    track: Track
    track_id: int

    async def admin_actor(self) -> Actor:
        return await resolve_track_actor(self.db, self.admin.id, self.track)

    async def actor_for(self, user: TestUser) -> Actor:
        return await resolve_track_actor(self.db, user.id, self.track)


async def build_track(db: AsyncSession, **track_kwargs) -> TrackSetup:
    admin = await make_user(db, "admin-sub", "Admin")
    member = await make_user(db, "member-sub", "Member")
    org = await create_organization(db, admin.id, "Acme Readers")
    org_actor = await resolve_org_actor(db, admin.id, org.id)
    track_kwargs.setdefault("period_start_day", 1)
    track = await create_track(db, org_actor, org, "Weekly Reading", **track_kwargs)
    await db.commit()
    await join_track(db, member.id, track.invite_code)
    await db.commit()
    return TrackSetup(db=db, admin=admin, member=member, org=org, track=track, track_id=track.id)


@pytest_asyncio.fixture
async def setup(db_session: AsyncSession) -> TrackSetup:
    return await build_track(db_session)
