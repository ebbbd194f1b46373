"""FastAPI auth dependencies.

Used as Depends() in route handlers (or at include_router level) to
extract and validate the caller's identity from the Authorization header.

- get_current_user: any logged-in user (401 otherwise)
- require_admin: logged-in user with role "admin" (403 otherwise)
- get_current_restaurant: restaurant token → active Restaurant row
"""

import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from foodiii.auth.jwt import TokenError, verify_restaurant_token, verify_token
from foodiii.db.engine import get_db
from foodiii.db.models import Restaurant


class CurrentIdentity:
    """The authenticated user making the request (decoded from the token)."""

    def __init__(
        self,
        user_id: str,
        role: str = "user",
        email: Optional[str] = None,
    ):
        self.user_id = user_id
        self.role = role
        self.email = email

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _bearer(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:]
    return None


def identity_from_token(token: str) -> CurrentIdentity:
    """Decode an access token into an identity. Raises TokenError."""
    payload = verify_token(token, expected_type="access")
    return CurrentIdentity(
        user_id=payload["sub"],
        role=payload.get("role", "user"),
        email=payload.get("email"),
    )


async def get_current_user_optional(
    authorization: Optional[str] = Header(None),
) -> Optional[CurrentIdentity]:
    """Soft auth — None when no bearer token was sent."""
    token = _bearer(authorization)
    if token is None:
        return None
    try:
        return identity_from_token(token)
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(
    identity: Optional[CurrentIdentity] = Depends(get_current_user_optional),
) -> CurrentIdentity:
    if not identity:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


async def require_admin(
    identity: CurrentIdentity = Depends(get_current_user),
) -> CurrentIdentity:
    if not identity.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return identity


async def get_current_restaurant(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Restaurant:
    """Resolve the restaurant token to an active restaurant (with its menu)."""
    token = _bearer(authorization)
    if token is None:
        raise HTTPException(status_code=401, detail="Authorization token missing")

    try:
        payload = verify_restaurant_token(token)
        restaurant_id = uuid.UUID(payload["sub"])
    except TokenError as e:
        detail = (
            "Session expired. Please log in again."
            if "expired" in str(e)
            else "Invalid authentication token"
        )
        raise HTTPException(status_code=401, detail=detail)
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    result = await db.execute(
        select(Restaurant)
        .where(Restaurant.id == restaurant_id, Restaurant.is_active.is_(True))
        .options(selectinload(Restaurant.menu_items))
    )
    restaurant = result.scalars().first()
    if not restaurant:
        raise HTTPException(
            status_code=401, detail="Restaurant not found or inactive"
        )
    return restaurant
