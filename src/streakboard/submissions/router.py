"""Submission endpoints.

Create for the current period, list, pending queue, detail, verify.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.access.capabilities import resolve_track_actor
from streakboard.auth.dependencies import get_current_user
from streakboard.auth.service import display_name_for
from streakboard.database import get_session
from streakboard.db.models import Submission, User
from streakboard.redis_client import get_optional_redis
from streakboard.scoring.periods import as_utc
from streakboard.submissions.schemas import (
    CreateSubmissionRequest,
    SubmissionListResponse,
    SubmissionResponse,
    SubmitterResponse,
    VerifySubmissionRequest,
    VerifySubmissionResponse,
)
from streakboard.submissions.service import (
    create_submission,
    ensure_can_view,
    get_pending_submissions,
    get_submission,
    list_submissions,
)
from streakboard.submissions.workflow import APPROVED, publish_decision, verify_submission
from streakboard.tracks.service import get_track, get_track_membership

router = APIRouter(prefix="/api/v1", tags=["Submissions"])


def _submission_response(submission: Submission, user: User | None = None) -> SubmissionResponse:
    return SubmissionResponse(
        id=submission.id,
        track_id=submission.track_id,
        user=SubmitterResponse(
            id=user.id,
            email=user.email,
            display_name=display_name_for(user),
            avatar_url=user.avatar_url,
        ) if user is not None else None,
        period_start=as_utc(submission.period_start),
        period_end=as_utc(submission.period_end),
        description=submission.description,
        proof_url=submission.proof_url,
        proof_type=submission.proof_type,
        status=submission.status,
        score=submission.score,
        verified_by=submission.verified_by,
        verified_at=as_utc(submission.verified_at) if submission.verified_at else None,
        created_at=as_utc(submission.created_at),
    )


@router.post("/tracks/{track_id}/submissions", response_model=SubmissionResponse, status_code=201)
async def create_submission_endpoint(
    track_id: int,
    body: CreateSubmissionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Submit evidence for the current period (one per period)."""
    track = await get_track(db, track_id)
    actor = await resolve_track_actor(db, user.id, track)
    submission = await create_submission(db, actor, track, body.description, body.proof_url, body.proof_type)
    await db.commit()
    return _submission_response(submission, user)


@router.get("/tracks/{track_id}/submissions", response_model=SubmissionListResponse)
async def list_submissions_endpoint(
    track_id: int,
    week: str | None = Query(None, description="current, previous, or an ISO date"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Admins see all submissions; members see their own."""
    track = await get_track(db, track_id)
    actor = await resolve_track_actor(db, user.id, track)
    rows = await list_submissions(db, actor, track, week)
    return SubmissionListResponse(
        submissions=[_submission_response(s, u) for s, u in rows],
        total=len(rows),
    )


@router.get("/tracks/{track_id}/submissions/pending", response_model=SubmissionListResponse)
async def pending_submissions_endpoint(
    track_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Verification queue, oldest first (admin)."""
    track = await get_track(db, track_id)
    actor = await resolve_track_actor(db, user.id, track)
    rows = await get_pending_submissions(db, actor, track)
    return SubmissionListResponse(
        submissions=[_submission_response(s, u) for s, u in rows],
        total=len(rows),
    )


@router.get("/submissions/{submission_id}", response_model=SubmissionResponse)
async def get_submission_endpoint(
    submission_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Submission detail (submitter or track admin)."""
    submission = await get_submission(db, submission_id)
    track = await get_track(db, submission.track_id)
    actor = await resolve_track_actor(db, user.id, track)
    ensure_can_view(actor, submission)
    return _submission_response(submission, await db.get(User, submission.user_id))


@router.post("/submissions/{submission_id}/verify", response_model=VerifySubmissionResponse)
async def verify_submission_endpoint(
    submission_id: int,
    body: VerifySubmissionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Approve or reject a pending submission (admin). Decisions are final."""
    submission = await get_submission(db, submission_id)
    track = await get_track(db, submission.track_id)
    actor = await resolve_track_actor(db, user.id, track)
    submission = await verify_submission(db, actor, submission, track, body.status, body.score)
    await db.commit()

    await publish_decision(get_optional_redis(), submission)

    response = VerifySubmissionResponse(
        id=submission.id,
        status=submission.status,
        score=submission.score,
        verified_at=submission.verified_at,
    )
    if submission.status == APPROVED:
        membership = await get_track_membership(db, submission.user_id, track.id)
        if membership is not None:
            response.current_streak = membership.current_streak
            response.longest_streak = membership.longest_streak
    return response
