"""Tests for access token validation."""

from datetime import timedelta
from uuid import uuid4

import pytest
from jose import JWTError, jwt

from mindful.auth.permissions import UserRole
from mindful.auth.security import create_access_token, decode_access_token
from mindful.config import get_settings


def _claims() -> dict[str, str]:
    return {
        "sub": str(uuid4()),
        "email": "learner@example.com",
        "role": UserRole.STUDENT.value,
    }


class TestAccessToken:
    """Tests for access token creation and decoding."""

    def test_decode_access_token(self) -> None:
        """Should decode token and return payload."""
        data = _claims()
        payload = decode_access_token(create_access_token(data))

        assert payload["sub"] == data["sub"]
        assert payload["email"] == data["email"]
        assert payload["role"] == UserRole.STUDENT.value
        assert payload["type"] == "access"
        assert "exp" in payload
        assert "iat" in payload

    def test_decode_access_token_expired(self) -> None:
        """Should raise JWTError for expired token."""
        token = create_access_token(_claims(), expires_delta=timedelta(seconds=-1))

        with pytest.raises(JWTError):
            decode_access_token(token)

    def test_decode_access_token_invalid(self) -> None:
        """Should raise JWTError for invalid token."""
        with pytest.raises(JWTError):
            decode_access_token("invalid.token.here")

    def test_decode_access_token_wrong_type(self) -> None:
        """Should raise JWTError if token type is not 'access'."""
        settings = get_settings()
        token = jwt.encode(
            {**_claims(), "type": "refresh"},
            settings.auth_secret_key,
            algorithm=settings.auth_algorithm,
        )

        with pytest.raises(JWTError, match="expected 'access'"):
            decode_access_token(token)

    def test_decode_access_token_missing_role(self) -> None:
        claims = _claims()
        del claims["role"]
        token = create_access_token(claims)

        with pytest.raises(JWTError, match="role"):
            decode_access_token(token)

    def test_decode_rejects_other_secret(self) -> None:
        settings = get_settings()
        token = jwt.encode(
            {**_claims(), "type": "access"},
            "another-secret-key-that-is-long-enough!!",
            algorithm=settings.auth_algorithm,
        )

        with pytest.raises(JWTError):
            decode_access_token(token)
