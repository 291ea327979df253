"""Leaderboard aggregation over stored submissions."""

from __future__ import annotations

from datetime import timedelta

import pytest
import pytest_asyncio

from streakboard.leaderboard.service import (
    collect_member_totals,
    get_leaderboard_stats,
    get_member_rank,
    get_period_leaderboard,
)
from streakboard.scoring.periods import PERIOD_LENGTH, get_period_boundaries
from streakboard.submissions.service import create_submission
from streakboard.submissions.workflow import verify_submission
from streakboard.tracks.service import get_track_membership, join_track
from tests.conftest import make_user
from tests.integration.conftest import PERIOD_ONE, build_track

pytestmark = pytest.mark.asyncio

WEDNESDAY = timedelta(days=2, hours=12)


async def _submit(setup, user, period: int = 1):
    actor = await setup.actor_for(user)
    submission = await create_submission(
        setup.db,
        actor,
        setup.track,
        "Practiced scales for forty minutes",
        "https://example.com/log",
        "link",
        now=PERIOD_ONE + (period - 1) * PERIOD_LENGTH + WEDNESDAY,
    )
    await setup.db.commit()
    return submission


async def _decide(setup, submission, decision: str, score: float | None = None):
    actor = await setup.admin_actor()
    await verify_submission(setup.db, actor, submission, setup.track, decision, score)
    await setup.db.commit()


async def _set_streak(setup, user, current: int, longest: int | None = None):
    membership = await get_track_membership(setup.db, user.id, setup.track_id)
    membership.current_streak = current
    membership.longest_streak = longest if longest is not None else current
    await setup.db.commit()


@pytest.fixture
def period_one():
    return get_period_boundaries(PERIOD_ONE + WEDNESDAY, 1)


@pytest_asyncio.fixture
async def board(db_session):
    """A track with scores up to 30, the default member, and a second reader without a display name."""
    setup = await build_track(db_session, max_score=30)
    reader = await make_user(db_session, "reader-sub")
    await join_track(db_session, reader.id, setup.track.invite_code)
    await db_session.commit()
    return setup, reader


class TestStreakWeightedRanking:
    async def test_streak_lifts_lower_base_above_higher_base(self, board, period_one):
        setup, reader = board
        await _decide(setup, await _submit(setup, setup.member), "approved", 20)
        await _decide(setup, await _submit(setup, reader), "approved", 25)
        await _set_streak(setup, setup.member, 5)
        await _set_streak(setup, reader, 0, 3)

        entries = await get_period_leaderboard(setup.db, setup.track, period_one)

        assert [e.member_id for e in entries] == [setup.member.id, reader.id]
        first, second = entries
        assert first.rank == 1
        assert first.total_score == 32.0
        assert first.multiplier == pytest.approx(1.6)
        assert second.rank == 2
        assert second.total_score == 25.0
        assert second.multiplier == 1.0
        assert second.longest_streak == 3

    async def test_ties_broken_by_member_id(self, board, period_one):
        setup, reader = board
        await _decide(setup, await _submit(setup, reader), "approved", 10)
        await _decide(setup, await _submit(setup, setup.member), "approved", 10)
        await _set_streak(setup, setup.member, 0)
        await _set_streak(setup, reader, 0)

        entries = await get_period_leaderboard(setup.db, setup.track, period_one)

        ids = [e.member_id for e in entries]
        assert ids == sorted(ids)
        assert [e.rank for e in entries] == [1, 2]


class TestWhatCounts:
    async def test_only_approved_rows_in_the_period(self, board, period_one):
        setup, reader = board
        await _decide(setup, await _submit(setup, setup.member, period=1), "approved", 8)
        await _decide(setup, await _submit(setup, setup.member, period=2), "approved", 9)
        await _decide(setup, await _submit(setup, reader, period=1), "rejected")
        await _submit(setup, setup.admin, period=1)  # left pending

        totals = await collect_member_totals(setup.db, setup.track, period_one)

        assert len(totals) == 1
        assert totals[0].member_id == setup.member.id
        assert totals[0].base_score == 8
        assert totals[0].submission_count == 1

    async def test_empty_period(self, board, period_one):
        setup, _ = board
        assert await get_period_leaderboard(setup.db, setup.track, period_one) == []
        stats = await get_leaderboard_stats(setup.db, setup.track, period_one)
        assert (stats.total_participants, stats.total_submissions, stats.average_score) == (0, 0, 0.0)

    async def test_display_name_falls_back_to_email(self, board, period_one):
        setup, reader = board
        await _decide(setup, await _submit(setup, reader), "approved", 5)

        totals = await collect_member_totals(setup.db, setup.track, period_one)

        assert totals[0].display_name == "reader-sub@example.com"

    async def test_avatar_carried_to_entries(self, board, period_one):
        setup, reader = board
        reader.user.avatar_url = "https://cdn.example.com/reader.png"
        await setup.db.commit()
        await _decide(setup, await _submit(setup, reader), "approved", 5)

        (entry,) = await get_period_leaderboard(setup.db, setup.track, period_one)

        assert entry.avatar_url == "https://cdn.example.com/reader.png"
        assert entry.as_dict()["avatar_url"] == "https://cdn.example.com/reader.png"

    async def test_recomputes_on_every_call(self, board, period_one):
        setup, reader = board
        await _decide(setup, await _submit(setup, setup.member), "approved", 10)
        before = await get_period_leaderboard(setup.db, setup.track, period_one)

        await _decide(setup, await _submit(setup, reader), "approved", 12)
        after = await get_period_leaderboard(setup.db, setup.track, period_one)

        assert len(before) == 1
        assert len(after) == 2


class TestStatsAndRank:
    async def test_stats(self, board, period_one):
        setup, reader = board
        await _decide(setup, await _submit(setup, setup.member), "approved", 7)
        await _decide(setup, await _submit(setup, reader), "approved", 8)

        stats = await get_leaderboard_stats(setup.db, setup.track, period_one)

        assert stats.total_participants == 2
        assert stats.total_submissions == 2
        assert stats.average_score == 7.5

    async def test_member_rank(self, board, period_one):
        setup, reader = board
        await _decide(setup, await _submit(setup, setup.member), "approved", 4)
        await _decide(setup, await _submit(setup, reader), "approved", 9)
        await _set_streak(setup, setup.member, 0)
        await _set_streak(setup, reader, 0)

        entry, participants = await get_member_rank(setup.db, setup.track, setup.member.id, period_one)
        assert entry.rank == 2
        assert participants == 2

        missing, _ = await get_member_rank(setup.db, setup.track, setup.admin.id, period_one)
        assert missing is None
