"""User service — accounts for customers and admins.

Shared by the auth routes and the admin maintenance commands in the CLI
(create-admin, check-admin, set-admin-password), so both go through the
same hashing and email normalization.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from foodiii.auth.password import hash_password, verify_password
from foodiii.db.models import USER_ROLES, User, utcnow


class DuplicateEmailError(Exception):
    pass


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == email.strip().lower())
        )
        return result.scalars().first()

    async def get(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def create_user(
        self,
        name: str,
        email: str,
        password: str,
        location: str = "",
        mobile_no: str = "",
        role: str = "user",
    ) -> User:
        if role not in USER_ROLES:
            raise ValueError(f"Unknown role '{role}'")
        if await self.get_by_email(email):
            raise DuplicateEmailError("Email already registered")

        user = User(
            name=name.strip(),
            email=email.strip().lower(),
            password_hash=hash_password(password),
            location=location.strip(),
            mobile_no=mobile_no,
            role=role,
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def authenticate(self, email: str, password: str) -> Optional[User]:
        """The user for these credentials, or None (also for inactive accounts)."""
        user = await self.get_by_email(email)
        if not user or not user.is_active:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    async def set_password(self, user: User, password: str) -> User:
        user.password_hash = hash_password(password)
        user.updated_at = utcnow()
        await self.db.commit()
        return user

    async def promote_to_admin(self, user: User) -> User:
        user.role = "admin"
        user.is_active = True
        user.updated_at = utcnow()
        await self.db.commit()
        return user
