"""Auth API — customer and admin accounts.

Learn: Routes for user authentication:
- POST /auth/register → create a customer account
- POST /auth/login → email/password → JWT tokens (role carried in the token)
- POST /auth/refresh → refresh token → new token pair
- GET /auth/me → current user info
"""

import uuid
from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from foodiii.auth.dependencies import CurrentIdentity, get_current_user
from foodiii.auth.jwt import (
    TokenError,
    create_access_token,
    create_refresh_token,
    verify_token,
)
from foodiii.db.engine import get_db
from foodiii.services.user_service import DuplicateEmailError, UserService

logger = structlog.get_logger()
router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=128)
    location: str = ""
    mobile_no: str = Field("", pattern=r"^(\d{10,15})?$")


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


class UserRead(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    location: str
    mobile_no: str
    role: str
    created_at: datetime

    model_config = {"from_attributes": True}


def _svc(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(db)


def _tokens(user_id: str, role: str, email: str | None) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user_id, role=role, email=email),
        refresh_token=create_refresh_token(user_id),
    )


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=UserRead, status_code=201)
async def register(body: RegisterRequest, svc: UserService = Depends(_svc)):
    """Create a new customer account."""
    try:
        user = await svc.create_user(
            name=body.name,
            email=body.email,
            password=body.password,
            location=body.location,
            mobile_no=body.mobile_no,
        )
    except DuplicateEmailError as e:
        raise HTTPException(status_code=409, detail=str(e))
    logger.info("foodiii.auth.registered", user_id=str(user.id))
    return user


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, svc: UserService = Depends(_svc)):
    """Login with email and password → JWT tokens."""
    user = await svc.authenticate(body.email, body.password)
    if not user:
        logger.info("foodiii.auth.login_failed")
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _tokens(str(user.id), user.role, user.email)


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, svc: UserService = Depends(_svc)):
    """Exchange a refresh token for a new token pair.

    The role is re-read from the database, so a promotion or demotion
    takes effect on the next refresh.
    """
    try:
        payload = verify_token(body.refresh_token, expected_type="refresh")
    except TokenError as e:
        raise HTTPException(status_code=401, detail=str(e))

    try:
        user = await svc.get(uuid.UUID(payload["sub"]))
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return _tokens(str(user.id), user.role, user.email)


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=UserRead)
async def get_me(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: UserService = Depends(_svc),
):
    """Get the current authenticated user's info."""
    try:
        user = await svc.get(uuid.UUID(identity.user_id))
    except ValueError:
        user = None
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
