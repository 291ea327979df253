"""User mirror maintenance for verified identities."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.db.models import User

logger = structlog.get_logger()


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_subject(db: AsyncSession, subject: str) -> User | None:
    """Fetch a user by upstream subject."""
    result = await db.execute(select(User).where(User.subject == subject))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


async def get_or_create_user(db: AsyncSession, claims: dict[str, Any]) -> tuple[User, bool]:
    """
    Get the local user for a verified token, creating it on first sight.

    A missing display name is backfilled from the claims on later logins.

    Returns:
        Tuple of (user, created).
    """
    subject = str(claims["sub"])
    user = await get_user_by_subject(db, subject)
    display_name = claims.get("name")

    if user is not None:
        if not user.display_name and display_name:
            user.display_name = display_name
            user.updated_at = datetime.now(timezone.utc)
            await db.flush()
        return user, False

    user = User(
        subject=subject,
        email=(claims.get("email") or f"{subject}@identity.local").lower(),
        display_name=display_name,
        avatar_url=claims.get("picture"),
    )
    db.add(user)
    await db.flush()
    logger.info("user_created", user_id=user.id, subject=subject)
    return user, True


async def update_profile(
    db: AsyncSession,
    user: User,
    display_name: str | None = None,
    avatar_url: str | None = None,
) -> User:
    """Update the mutable profile fields."""
    if display_name is not None:
        user.display_name = display_name
    if avatar_url is not None:
        user.avatar_url = avatar_url
    user.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return user


def display_name_for(user: User) -> str:
    """Name shown on leaderboards: display name, else email."""
    return user.display_name or user.email
