"""Submission business logic.

Rules:
- One submission per (member, track, period); the period is always the
  track's current period at creation time
- Only active members submit (banned or currently suspended -> Forbidden)
- Admins see every submission of a track; members see their own
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.access.capabilities import MANAGE_TRACK, Actor, Capability
from streakboard.config import get_settings
from streakboard.db.models import PROOF_TYPES, Submission, Track, User
from streakboard.errors import Conflict, Forbidden, NotFound, ValidationError
from streakboard.scoring.periods import get_current_period_boundaries, resolve_period
from streakboard.submissions.workflow import PENDING
from streakboard.tracks.service import ensure_active_member, get_track_membership

logger = logging.getLogger(__name__)


def _validate_submission_input(description: str, proof_url: str, proof_type: str) -> str:
    settings = get_settings()
    description = (description or "").strip()
    if len(description) < settings.description_min_length:
        raise ValidationError(f"Description must be at least {settings.description_min_length} characters")
    if len(description) > settings.description_max_length:
        raise ValidationError(f"Description must be at most {settings.description_max_length} characters")
    if not proof_url or not proof_url.strip():
        raise ValidationError("Proof URL is required")
    if proof_type not in PROOF_TYPES:
        raise ValidationError("Invalid proof type. Must be image, file, or link")
    return description


async def _find_for_period(db: AsyncSession, user_id: int, track_id: int, period_start: datetime) -> Submission | None:
    result = await db.execute(
        select(Submission).where(
            Submission.user_id == user_id,
            Submission.track_id == track_id,
            Submission.period_start == period_start,
        )
    )
    return result.scalar_one_or_none()


async def create_submission(
    db: AsyncSession,
    actor: Actor,
    track: Track,
    description: str,
    proof_url: str,
    proof_type: str,
    now: datetime | None = None,
) -> Submission:
    """Submit evidence for the track's current period."""
    actor.ensure_track_scope(track.id)
    description = _validate_submission_input(description, proof_url, proof_type)

    now = now or datetime.now(timezone.utc)
    membership = await get_track_membership(db, actor.user_id, track.id)
    ensure_active_member(membership, now)

    period = get_current_period_boundaries(track.period_start_day, now)
    if await _find_for_period(db, actor.user_id, track.id, period.start) is not None:
        raise Conflict("You have already submitted for this period")

    submission = Submission(
        user_id=actor.user_id,
        track_id=track.id,
        period_start=period.start,
        period_end=period.end,
        description=description,
        proof_url=proof_url.strip(),
        proof_type=proof_type,
        status=PENDING,
        created_at=now,
        updated_at=now,
    )
    user_id, track_id = actor.user_id, track.id
    db.add(submission)
    try:
        await db.flush()
    except IntegrityError as e:
        # Lost a race against a concurrent create for the same period.
        # The rollback expires every loaded instance; only plain ids below.
        await db.rollback()
        logger.info("Duplicate submission rejected: user=%d track=%d", user_id, track_id)
        raise Conflict("You have already submitted for this period") from e

    logger.info(
        "Submission created: id=%d user=%d track=%d period=%s",
        submission.id, actor.user_id, track.id, period.start.date().isoformat(),
    )
    return submission


async def list_submissions(
    db: AsyncSession,
    actor: Actor,
    track: Track,
    week: str | None = None,
    now: datetime | None = None,
) -> list[tuple[Submission, User]]:
    """Newest first. Admins see all submissions; members see their own."""
    actor.ensure_track_scope(track.id)
    actor.require(MANAGE_TRACK | {Capability.TRACK_MEMBER}, "Not a member of this track")

    query = (
        select(Submission, User)
        .join(User, User.id == Submission.user_id)
        .where(Submission.track_id == track.id)
    )
    if not actor.has(MANAGE_TRACK):
        query = query.where(Submission.user_id == actor.user_id)
    if week:
        try:
            period = resolve_period(week, track.period_start_day, now)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        query = query.where(Submission.period_start == period.start)

    result = await db.execute(query.order_by(Submission.created_at.desc(), Submission.id.desc()))
    return [(s, u) for s, u in result.all()]


async def get_pending_submissions(db: AsyncSession, actor: Actor, track: Track) -> list[tuple[Submission, User]]:
    """The verification queue, oldest first (admin)."""
    actor.ensure_track_scope(track.id)
    actor.require(MANAGE_TRACK, "Only track admins can view pending submissions")
    result = await db.execute(
        select(Submission, User)
        .join(User, User.id == Submission.user_id)
        .where(Submission.track_id == track.id, Submission.status == PENDING)
        .order_by(Submission.created_at.asc(), Submission.id.asc())
    )
    return [(s, u) for s, u in result.all()]


async def get_submission(db: AsyncSession, submission_id: int) -> Submission:
    """Get a submission by ID or raise NotFound."""
    result = await db.execute(select(Submission).where(Submission.id == submission_id))
    submission = result.scalar_one_or_none()
    if submission is None:
        raise NotFound("Submission not found")
    return submission


def ensure_can_view(actor: Actor, submission: Submission) -> None:
    """Only the submitter or a track admin may view a submission."""
    actor.ensure_track_scope(submission.track_id)
    if submission.user_id != actor.user_id and not actor.has(MANAGE_TRACK):
        raise Forbidden("Access denied")
