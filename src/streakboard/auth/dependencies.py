"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.auth.jwt import verify_token
from streakboard.auth.service import get_or_create_user
from streakboard.database import get_session
from streakboard.db.models import User

_bearer = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Verify the bearer token and return the local User.

    The first request from a new subject creates its user row, so the
    session is committed before the endpoint runs. Raises 401 on an
    invalid token.
    """
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    user, _ = await get_or_create_user(db, payload)
    await db.commit()
    return user
