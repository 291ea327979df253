"""Weekly quiz business logic.

Rules:
- At most one quiz per (track, period); admins post it for the current period
- Active members answer once per quiz; inactive quizzes take no answers
- Admins read every answer and may score (or rescore) it
- Quiz scores are kept on the response and never feed streaks or the leaderboard
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.access.capabilities import MANAGE_TRACK, VIEW_TRACK, Actor
from streakboard.db.models import Quiz, QuizResponse, Track, User
from streakboard.errors import Conflict, NotFound, ValidationError
from streakboard.scoring.periods import get_current_period_boundaries
from streakboard.tracks.service import ensure_active_member, get_track_membership

logger = logging.getLogger(__name__)

QUESTION_MIN_LENGTH = 10


async def get_quiz(db: AsyncSession, quiz_id: int) -> Quiz:
    """Get a quiz by ID or raise NotFound."""
    result = await db.execute(select(Quiz).where(Quiz.id == quiz_id))
    quiz = result.scalar_one_or_none()
    if quiz is None:
        raise NotFound("Quiz not found")
    return quiz


async def get_response(db: AsyncSession, response_id: int) -> QuizResponse:
    """Get a quiz response by ID or raise NotFound."""
    result = await db.execute(select(QuizResponse).where(QuizResponse.id == response_id))
    response = result.scalar_one_or_none()
    if response is None:
        raise NotFound("Response not found")
    return response


async def _find_response(db: AsyncSession, quiz_id: int, user_id: int) -> QuizResponse | None:
    result = await db.execute(
        select(QuizResponse).where(QuizResponse.quiz_id == quiz_id, QuizResponse.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def create_quiz(
    db: AsyncSession,
    actor: Actor,
    track: Track,
    question: str,
    now: datetime | None = None,
) -> Quiz:
    """Post the quiz for the track's current period (admin)."""
    actor.ensure_track_scope(track.id)
    actor.require(MANAGE_TRACK, "Only admins can create quizzes")

    question = (question or "").strip()
    if len(question) < QUESTION_MIN_LENGTH:
        raise ValidationError(f"Question must be at least {QUESTION_MIN_LENGTH} characters")

    now = now or datetime.now(timezone.utc)
    period = get_current_period_boundaries(track.period_start_day, now)
    existing = await db.execute(
        select(Quiz.id).where(Quiz.track_id == track.id, Quiz.period_start == period.start)
    )
    if existing.scalar_one_or_none() is not None:
        raise Conflict("A quiz already exists for this period")

    track_id = track.id
    quiz = Quiz(
        track_id=track_id,
        question=question,
        period_start=period.start,
        period_end=period.end,
        created_by=actor.user_id,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(quiz)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        logger.info("Duplicate quiz rejected: track=%d", track_id)
        raise Conflict("A quiz already exists for this period") from e

    logger.info("Quiz created: id=%d track=%d by=%d", quiz.id, track_id, actor.user_id)
    return quiz


async def get_current_quiz(
    db: AsyncSession,
    actor: Actor,
    track: Track,
    now: datetime | None = None,
) -> tuple[Quiz | None, QuizResponse | None]:
    """The active quiz for the current period and the caller's answer to it, if any."""
    actor.ensure_track_scope(track.id)
    actor.require(VIEW_TRACK, "Not a member of this track")

    period = get_current_period_boundaries(track.period_start_day, now)
    result = await db.execute(
        select(Quiz).where(
            Quiz.track_id == track.id,
            Quiz.period_start == period.start,
            Quiz.is_active.is_(True),
        )
    )
    quiz = result.scalar_one_or_none()
    if quiz is None:
        return None, None
    return quiz, await _find_response(db, quiz.id, actor.user_id)


async def list_quizzes(db: AsyncSession, actor: Actor, track: Track) -> list[Quiz]:
    """Every quiz of a track, newest period first (admin)."""
    actor.ensure_track_scope(track.id)
    actor.require(MANAGE_TRACK, "Only admins can list all quizzes")
    result = await db.execute(
        select(Quiz).where(Quiz.track_id == track.id).order_by(Quiz.period_start.desc())
    )
    return list(result.scalars().all())


async def set_quiz_active(db: AsyncSession, actor: Actor, quiz: Quiz, active: bool) -> Quiz:
    """Open or close a quiz for answers (admin)."""
    actor.ensure_track_scope(quiz.track_id)
    actor.require(MANAGE_TRACK, "Only admins can manage quizzes")
    quiz.is_active = active
    quiz.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return quiz


async def submit_response(
    db: AsyncSession,
    actor: Actor,
    quiz: Quiz,
    answer: str,
    now: datetime | None = None,
) -> QuizResponse:
    """Answer a quiz. One answer per member; banned or suspended members cannot answer."""
    actor.ensure_track_scope(quiz.track_id)

    answer = (answer or "").strip()
    if not answer:
        raise ValidationError("Answer is required")
    if not quiz.is_active:
        raise ValidationError("This quiz is no longer active")

    now = now or datetime.now(timezone.utc)
    membership = await get_track_membership(db, actor.user_id, quiz.track_id)
    ensure_active_member(membership, now)

    if await _find_response(db, quiz.id, actor.user_id) is not None:
        raise Conflict("You have already answered this quiz")

    quiz_id, user_id = quiz.id, actor.user_id
    response = QuizResponse(quiz_id=quiz_id, user_id=user_id, answer=answer, submitted_at=now)
    db.add(response)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        logger.info("Duplicate quiz answer rejected: quiz=%d user=%d", quiz_id, user_id)
        raise Conflict("You have already answered this quiz") from e
    return response


async def list_responses(db: AsyncSession, actor: Actor, quiz: Quiz) -> list[tuple[QuizResponse, User]]:
    """All answers to a quiz with their authors, oldest first (admin)."""
    actor.ensure_track_scope(quiz.track_id)
    actor.require(MANAGE_TRACK, "Only admins can view responses")
    result = await db.execute(
        select(QuizResponse, User)
        .join(User, User.id == QuizResponse.user_id)
        .where(QuizResponse.quiz_id == quiz.id)
        .order_by(QuizResponse.submitted_at.asc(), QuizResponse.id.asc())
    )
    return [(r, u) for r, u in result.all()]


async def score_response(
    db: AsyncSession,
    actor: Actor,
    quiz: Quiz,
    response: QuizResponse,
    score: float,
    now: datetime | None = None,
) -> QuizResponse:
    """Score an answer (admin). Rescoring overwrites the previous score."""
    actor.ensure_track_scope(quiz.track_id)
    actor.require(MANAGE_TRACK, "Only admins can score responses")
    if response.quiz_id != quiz.id:
        raise NotFound("Response not found")
    if score is None or score < 0:
        raise ValidationError("Score must be a non-negative number")

    response.score = score
    response.scored_by = actor.user_id
    response.scored_at = now or datetime.now(timezone.utc)
    await db.flush()
    logger.info("Quiz response %d scored %s by %d", response.id, score, actor.user_id)
    return response
