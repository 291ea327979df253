"""Auth endpoints: current user profile."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.auth.dependencies import get_current_user
from streakboard.auth.schemas import UpdateProfileRequest, UserResponse
from streakboard.auth.service import update_profile
from streakboard.database import get_session
from streakboard.db.models import User

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        avatar_url=user.avatar_url,
        created_at=user.created_at,
    )


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    """Current authenticated user profile."""
    return _user_response(user)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    body: UpdateProfileRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Update display name and avatar."""
    user = await update_profile(db, user, body.display_name, body.avatar_url)
    await db.commit()
    return _user_response(user)
