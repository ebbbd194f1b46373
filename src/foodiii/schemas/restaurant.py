"""Pydantic schemas for restaurant onboarding and menus.

Learn: RestaurantRead is the "sanitized" view: it has no password_hash
field, so the hash can't leak through a response even by accident.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# Fields a restaurant may change on its own profile.
PROFILE_FIELDS = (
    "phone",
    "address",
    "city",
    "state",
    "postal_code",
    "country",
    "cuisine",
    "bio",
    "logo_url",
    "owner_name",
)


# ─── Auth ────────────────────────────────────────────────

class RestaurantRegister(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6, max_length=128)
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""
    cuisine: str = ""
    bio: str = ""
    logo_url: str = ""
    owner_name: str = ""


class RestaurantLogin(BaseModel):
    email: str
    password: str


class RestaurantProfileUpdate(BaseModel):
    """Profile edit. Anything outside PROFILE_FIELDS is ignored."""
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    cuisine: Optional[str] = None
    bio: Optional[str] = None
    logo_url: Optional[str] = None
    owner_name: Optional[str] = None


# ─── Menu ────────────────────────────────────────────────

class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=100)
    price: float = Field(..., ge=0)
    description: str = ""
    image_url: str = ""
    is_available: bool = True


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_available: Optional[bool] = None


class MenuItemRead(BaseModel):
    id: uuid.UUID
    name: str
    category: str
    price: float
    description: str
    image_url: str
    is_available: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class LegacyImport(BaseModel):
    food_item_ids: Optional[list[str]] = None


# ─── Responses ───────────────────────────────────────────

class RestaurantRead(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    restaurant_code: str
    phone: str
    address: str
    city: str
    state: str
    postal_code: str
    country: str
    cuisine: str
    bio: str
    logo_url: str
    owner_name: str
    is_active: bool
    menu_items: list[MenuItemRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RestaurantSession(BaseModel):
    token: str
    restaurant: RestaurantRead


class RestaurantEnvelope(BaseModel):
    restaurant: RestaurantRead


class MenuItemEnvelope(BaseModel):
    menu_item: MenuItemRead
    restaurant: RestaurantRead


class LegacyImportResult(BaseModel):
    imported: int
    skipped: int
    restaurant: RestaurantRead
