"""Quiz endpoints.

One essay question per track and period; members answer once, admins score.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.access.capabilities import resolve_track_actor
from streakboard.auth.dependencies import get_current_user
from streakboard.auth.service import display_name_for
from streakboard.database import get_session
from streakboard.db.models import Quiz, User
from streakboard.quizzes.schemas import (
    AnswerResponse,
    CreateQuizRequest,
    CurrentQuizResponse,
    QuizAnswerListResponse,
    QuizAnswerResponse,
    QuizDetailResponse,
    QuizListResponse,
    ScoreAnswerRequest,
    ScoredAnswerResponse,
    SetQuizActiveRequest,
    SubmitAnswerRequest,
)
from streakboard.quizzes.service import (
    create_quiz,
    get_current_quiz,
    get_quiz,
    get_response,
    list_quizzes,
    list_responses,
    score_response,
    set_quiz_active,
    submit_response,
)
from streakboard.scoring.periods import as_utc
from streakboard.tracks.service import get_track

router = APIRouter(prefix="/api/v1", tags=["Quizzes"])


def _quiz_response(quiz: Quiz) -> QuizDetailResponse:
    return QuizDetailResponse(
        id=quiz.id,
        track_id=quiz.track_id,
        question=quiz.question,
        period_start=as_utc(quiz.period_start),
        period_end=as_utc(quiz.period_end),
        is_active=quiz.is_active,
        created_at=as_utc(quiz.created_at),
    )


@router.post("/tracks/{track_id}/quizzes", response_model=QuizDetailResponse, status_code=201)
async def create_quiz_endpoint(
    track_id: int,
    body: CreateQuizRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Post this period's quiz (admin)."""
    track = await get_track(db, track_id)
    actor = await resolve_track_actor(db, user.id, track)
    quiz = await create_quiz(db, actor, track, body.question)
    await db.commit()
    return _quiz_response(quiz)


@router.get("/tracks/{track_id}/quizzes", response_model=QuizListResponse)
async def list_quizzes_endpoint(
    track_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """All quizzes of a track, newest first (admin)."""
    track = await get_track(db, track_id)
    actor = await resolve_track_actor(db, user.id, track)
    quizzes = await list_quizzes(db, actor, track)
    return QuizListResponse(quizzes=[_quiz_response(q) for q in quizzes])


@router.get("/tracks/{track_id}/quizzes/current", response_model=CurrentQuizResponse | None)
async def current_quiz_endpoint(
    track_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """This period's active quiz, or null."""
    track = await get_track(db, track_id)
    actor = await resolve_track_actor(db, user.id, track)
    quiz, mine = await get_current_quiz(db, actor, track)
    if quiz is None:
        return None
    return CurrentQuizResponse(
        id=quiz.id,
        question=quiz.question,
        period_start=as_utc(quiz.period_start),
        period_end=as_utc(quiz.period_end),
        has_answered=mine is not None,
        my_score=mine.score if mine is not None else None,
    )


@router.put("/quizzes/{quiz_id}/active", response_model=QuizDetailResponse)
async def set_quiz_active_endpoint(
    quiz_id: int,
    body: SetQuizActiveRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Open or close a quiz (admin)."""
    quiz = await get_quiz(db, quiz_id)
    actor = await resolve_track_actor(db, user.id, await get_track(db, quiz.track_id))
    quiz = await set_quiz_active(db, actor, quiz, body.active)
    await db.commit()
    return _quiz_response(quiz)


@router.post("/quizzes/{quiz_id}/respond", response_model=AnswerResponse, status_code=201)
async def respond_endpoint(
    quiz_id: int,
    body: SubmitAnswerRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Answer a quiz (one answer per member)."""
    quiz = await get_quiz(db, quiz_id)
    actor = await resolve_track_actor(db, user.id, await get_track(db, quiz.track_id))
    response = await submit_response(db, actor, quiz, body.answer)
    await db.commit()
    return AnswerResponse(
        id=response.id,
        quiz_id=response.quiz_id,
        answer=response.answer,
        submitted_at=as_utc(response.submitted_at),
    )


@router.get("/quizzes/{quiz_id}/responses", response_model=QuizAnswerListResponse)
async def list_responses_endpoint(
    quiz_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Every answer to a quiz (admin)."""
    quiz = await get_quiz(db, quiz_id)
    actor = await resolve_track_actor(db, user.id, await get_track(db, quiz.track_id))
    rows = await list_responses(db, actor, quiz)
    return QuizAnswerListResponse(
        responses=[
            QuizAnswerResponse(
                id=r.id,
                user_id=u.id,
                email=u.email,
                display_name=display_name_for(u),
                answer=r.answer,
                score=r.score,
                scored_at=as_utc(r.scored_at) if r.scored_at else None,
                submitted_at=as_utc(r.submitted_at),
            )
            for r, u in rows
        ],
        total=len(rows),
    )


@router.post("/quiz-responses/{response_id}/score", response_model=ScoredAnswerResponse)
async def score_response_endpoint(
    response_id: int,
    body: ScoreAnswerRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Score an answer (admin)."""
    response = await get_response(db, response_id)
    quiz = await get_quiz(db, response.quiz_id)
    actor = await resolve_track_actor(db, user.id, await get_track(db, quiz.track_id))
    response = await score_response(db, actor, quiz, response, body.score)
    await db.commit()
    return ScoredAnswerResponse(id=response.id, score=response.score, scored_at=as_utc(response.scored_at))
