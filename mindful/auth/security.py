"""JWT validation for tokens issued by the identity service.

Provides:
- Access token decoding and validation
- Access token creation (service-to-service calls and tests)
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from mindful.config.settings import get_settings


DEFAULT_ACCESS_TOKEN_LIFETIME = timedelta(minutes=15)


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token.

    Args:
        data: Payload data (typically {"sub": user_id, "email": email, "role": role})
        expires_delta: Token lifetime (default 15 minutes)

    Returns:
        Encoded JWT string

    Token payload includes:
        - All provided data
        - exp: Expiration timestamp
        - iat: Issued at timestamp
        - type: "access" (for validation)
    """
    settings = get_settings()

    now = datetime.now(UTC)
    to_encode = data.copy()
    to_encode.update(
        {
            "exp": now + (expires_delta or DEFAULT_ACCESS_TOKEN_LIFETIME),
            "iat": now,
            "type": "access",
        }
    )

    return jwt.encode(
        to_encode,
        settings.auth_secret_key,
        algorithm=settings.auth_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Validates:
    - JWT signature
    - Expiration time
    - Token type == "access"
    - Presence of the sub, email and role claims

    Args:
        token: JWT string

    Returns:
        Decoded payload dictionary

    Raises:
        JWTError: If token is invalid, expired, or wrong type
    """
    settings = get_settings()

    payload = jwt.decode(
        token,
        settings.auth_secret_key,
        algorithms=[settings.auth_algorithm],
    )

    if payload.get("type") != "access":
        msg = "Invalid token type: expected 'access'"
        raise JWTError(msg)

    missing = [claim for claim in ("sub", "email", "role") if claim not in payload]
    if missing:
        msg = f"Access token missing claims: {', '.join(missing)}"
        raise JWTError(msg)

    return payload
