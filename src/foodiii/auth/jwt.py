"""JWT token creation and verification.

- Access token: short-lived (60min), carries the user's role and email
- Refresh token: long-lived (30 days), only good for minting new tokens
- Restaurant token: 7 days, signed with the restaurant secret

Every token has a `type` claim so one kind can't stand in for another.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from foodiii.config import settings


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def create_access_token(
    user_id: str,
    role: str = "user",
    email: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "type": "access",
        "role": role,
        "exp": now + timedelta(
            minutes=expires_minutes or settings.access_token_expire_minutes
        ),
        "iat": now,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_refresh_token(
    user_id: str,
    expires_days: Optional[int] = None,
) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "type": "refresh",
        "exp": now + timedelta(
            days=expires_days or settings.refresh_token_expire_days
        ),
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_restaurant_token(
    restaurant_id: str,
    expires_days: Optional[int] = None,
) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": restaurant_id,
        "type": "restaurant",
        "exp": now + timedelta(
            days=expires_days or settings.restaurant_token_expire_days
        ),
        "iat": now,
    }
    return jwt.encode(
        payload, settings.restaurant_secret, algorithm=settings.jwt_algorithm
    )


def _decode(token: str, secret: str) -> dict:
    try:
        return jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")


def verify_token(token: str, expected_type: Optional[str] = None) -> dict:
    """Verify and decode a user token (access or refresh).

    Returns the payload dict on success.
    Raises TokenError on failure or when the type doesn't match.
    """
    payload = _decode(token, settings.jwt_secret)
    if expected_type and payload.get("type") != expected_type:
        raise TokenError(f"Expected a {expected_type} token")
    return payload


def verify_restaurant_token(token: str) -> dict:
    payload = _decode(token, settings.restaurant_secret)
    if payload.get("type") != "restaurant":
        raise TokenError("Expected a restaurant token")
    return payload
