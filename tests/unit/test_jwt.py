"""Identity token verification."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from streakboard.auth.jwt import create_access_token, verify_token
from streakboard.config import get_settings


class TestVerifyToken:
    def test_round_trip_claims(self):
        token = create_access_token("sub-1", "a@example.com", display_name="Ada")
        claims = verify_token(token)
        assert claims["sub"] == "sub-1"
        assert claims["email"] == "a@example.com"
        assert claims["name"] == "Ada"

    def test_expired(self):
        settings = get_settings()
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": "x", "iat": past, "exp": past + timedelta(minutes=1), "iss": settings.jwt_issuer, "type": "access"},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(token)

    def test_wrong_issuer(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "x", "exp": datetime.now(timezone.utc) + timedelta(minutes=5), "iss": "someone-else", "type": "access"},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)

    def test_wrong_type(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "x", "exp": datetime.now(timezone.utc) + timedelta(minutes=5), "iss": settings.jwt_issuer, "type": "refresh"},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(token)

    def test_bad_signature(self):
        token = create_access_token("sub-1", "a@example.com")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token[:-4] + "AAAA")
