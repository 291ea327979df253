"""
Identity token verification.

Tokens are issued by the upstream identity provider. This module only checks
signature, expiry and issuer, and hands the claims on. ``create_access_token``
exists for local development and the test suite.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from streakboard.config import get_settings


def create_access_token(
    subject: str,
    email: str,
    display_name: str | None = None,
    avatar_url: str | None = None,
) -> str:
    """
    Create a signed access token for a subject.

    Args:
        subject: Stable upstream identity key.
        email: The user's email address.
        display_name: Optional name shown on leaderboards.
        avatar_url: Optional avatar URL.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": subject,
        "email": email,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    if display_name is not None:
        payload["name"] = display_name
    if avatar_url is not None:
        payload["picture"] = avatar_url
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, expected_type: str = "access") -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or wrong type.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    return payload
