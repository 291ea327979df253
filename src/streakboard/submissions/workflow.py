"""Submission verification workflow.

State machine:
    pending -> approved  (score assigned, streak advanced)
    pending -> rejected  (score = 0, streak untouched)
    approved, rejected   (terminal)

A decision and the streak update it causes are flushed in the caller's
transaction; the router commits both or neither. The submission and the
membership rows are locked with SELECT ... FOR UPDATE so two decisions on
the same membership are applied one after the other.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

import redis.asyncio as aioredis
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.access.capabilities import MANAGE_TRACK, Actor
from streakboard.db.models import Submission, Track, TrackMembership
from streakboard.errors import Conflict, InvariantViolation, ValidationError
from streakboard.scoring.periods import as_utc
from streakboard.scoring.streaks import StreakState, advance_streak, is_backfill, replay_streak

logger = structlog.get_logger()

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"

VALID_TRANSITIONS: dict[str, list[str]] = {
    PENDING: [APPROVED, REJECTED],
    APPROVED: [],
    REJECTED: [],
}


def validate_transition(current_status: str, target_status: str) -> None:
    """Raise if current_status -> target_status is not allowed.

    Decided submissions raise Conflict; an unknown target raises ValidationError.
    """
    if target_status not in (APPROVED, REJECTED):
        raise ValidationError(f"Invalid decision: {target_status}. Must be approved or rejected")
    valid = VALID_TRANSITIONS.get(current_status, [])
    if target_status not in valid:
        raise Conflict(f"Submission has already been {current_status}")


def resolve_score(track: Track, score: float | None) -> float:
    """Score for an approval: explicit value or the track's fixed points, within bounds."""
    if score is None:
        if track.fixed_points is None:
            raise ValidationError("Score is required to approve a submission")
        score = track.fixed_points
    if not track.min_score <= score <= track.max_score:
        raise ValidationError(f"Score must be between {track.min_score} and {track.max_score}")
    return float(score)


async def _lock_submission(db: AsyncSession, submission_id: int) -> Submission:
    result = await db.execute(
        select(Submission)
        .where(Submission.id == submission_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _lock_membership(db: AsyncSession, user_id: int, track_id: int) -> TrackMembership | None:
    result = await db.execute(
        select(TrackMembership)
        .where(TrackMembership.user_id == user_id, TrackMembership.track_id == track_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _approved_period_starts(db: AsyncSession, user_id: int, track_id: int) -> list[datetime]:
    result = await db.execute(
        select(Submission.period_start).where(
            Submission.user_id == user_id,
            Submission.track_id == track_id,
            Submission.status == APPROVED,
        )
    )
    return list(result.scalars().all())


async def apply_approval(db: AsyncSession, membership: TrackMembership, period_start: datetime) -> StreakState:
    """Advance the membership's streak for an approval in period_start.

    In-order approvals use the incremental rule. An approval older than the
    last approved period replays the membership's whole approved history;
    ``longest_streak`` keeps its previous value if that was higher.
    """
    before = StreakState(
        current_streak=membership.current_streak,
        longest_streak=membership.longest_streak,
        last_activity_marker=membership.last_activity_marker,
    )

    if is_backfill(before, period_start):
        history = await _approved_period_starts(db, membership.user_id, membership.track_id)
        replayed = replay_streak([*history, period_start])
        after = StreakState(
            current_streak=replayed.current_streak,
            longest_streak=max(replayed.longest_streak, before.longest_streak),
            last_activity_marker=replayed.last_activity_marker,
        )
        logger.info(
            "streak_replayed",
            user_id=membership.user_id,
            track_id=membership.track_id,
            periods=len(set(history)) + 1,
            current_streak=after.current_streak,
        )
    else:
        after = advance_streak(before, period_start)
        if before.current_streak > 1 and after.current_streak == 1:
            logger.info(
                "streak_reset",
                user_id=membership.user_id,
                track_id=membership.track_id,
                previous_streak=before.current_streak,
            )

    membership.current_streak = after.current_streak
    membership.longest_streak = after.longest_streak
    membership.last_activity_marker = after.last_activity_marker
    return after


async def verify_submission(
    db: AsyncSession,
    actor: Actor,
    submission: Submission,
    track: Track,
    decision: str,
    score: float | None = None,
    now: datetime | None = None,
) -> Submission:
    """Approve or reject a pending submission.

    Raises:
        Forbidden: actor is not an admin of the track.
        Conflict: the submission was already decided.
        ValidationError: bad decision, or score missing/out of bounds.
        InvariantViolation: the submitter has no membership row.
    """
    actor.ensure_track_scope(track.id)
    if submission.track_id != track.id:
        raise InvariantViolation(f"Submission {submission.id} does not belong to track {track.id}")
    actor.require(MANAGE_TRACK, "Only track admins can verify submissions")

    submission = await _lock_submission(db, submission.id)
    validate_transition(submission.status, decision)
    now = now or datetime.now(timezone.utc)

    if decision == APPROVED:
        points = resolve_score(track, score)
        membership = await _lock_membership(db, submission.user_id, track.id)
        if membership is None:
            logger.error(
                "verify_missing_membership",
                submission_id=submission.id,
                user_id=submission.user_id,
                track_id=track.id,
            )
            raise InvariantViolation(
                f"No membership for user {submission.user_id} on track {track.id}"
            )
        await apply_approval(db, membership, as_utc(submission.period_start))
        submission.score = points
    else:
        submission.score = 0

    submission.status = decision
    submission.verified_by = actor.user_id
    submission.verified_at = now
    submission.updated_at = now
    await db.flush()

    logger.info(
        "submission_verified",
        submission_id=submission.id,
        track_id=track.id,
        user_id=submission.user_id,
        status=decision,
        score=submission.score,
        verified_by=actor.user_id,
    )
    return submission


async def publish_decision(redis: aioredis.Redis | None, submission: Submission) -> None:
    """Broadcast a committed decision to the submitter's channel. Best effort."""
    if redis is None:
        return
    try:
        await redis.publish(
            f"ws:user:{submission.user_id}",
            json.dumps({
                "event": "submission_verified",
                "submission_id": submission.id,
                "track_id": submission.track_id,
                "status": submission.status,
                "score": submission.score,
            }),
        )
    except Exception:
        logger.warning("Failed to publish submission_verified event", exc_info=True)
