"""Invite code generation for organizations and tracks.

Codes are 8 characters from an alphabet without look-alike glyphs
(no 0/O, 1/I), generated server-side with a cryptographic random source.
"""

from __future__ import annotations

import secrets

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from streakboard.db.models import Organization, Track

INVITE_CHARSET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITE_LENGTH = 8


def generate_invite_code() -> str:
    """Generate a cryptographically random 8-character invite code."""
    return "".join(secrets.choice(INVITE_CHARSET) for _ in range(INVITE_LENGTH))


def normalize_invite_code(code: str) -> str:
    """Normalize an invite code for case-insensitive lookup."""
    return code.strip().upper()


async def generate_unique_invite_code(db: AsyncSession, model: type[Organization] | type[Track]) -> str:
    """Generate an invite code not already used by any row of model."""
    for _ in range(10):
        code = generate_invite_code()
        existing = await db.execute(select(model.id).where(model.invite_code == code))
        if existing.scalar_one_or_none() is None:
            return code
    raise RuntimeError("Failed to generate unique invite code after 10 attempts")
