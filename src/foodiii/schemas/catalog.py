"""Pydantic schemas for the shared food catalog."""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


# ─── Categories ──────────────────────────────────────────

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""


class CategoryUpdate(BaseModel):
    """Partial update — only non-None fields are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None


class CategoryRead(BaseModel):
    id: uuid.UUID
    name: str
    description: str
    created_at: datetime

    model_config = {"from_attributes": True}


# ─── Food items ──────────────────────────────────────────

class FoodItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    price: float = Field(..., ge=0)
    category_id: uuid.UUID
    img: str = Field(..., min_length=1)
    options: list[dict[str, Any]] = Field(default_factory=list)
    is_available: bool = True


class FoodItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    category_id: Optional[uuid.UUID] = None
    img: Optional[str] = Field(None, min_length=1)
    options: Optional[list[dict[str, Any]]] = None
    is_available: Optional[bool] = None


class FoodItemRead(BaseModel):
    id: uuid.UUID
    name: str
    description: str
    price: float
    category_id: uuid.UUID
    category_name: Optional[str] = None
    img: str
    options: list[dict[str, Any]]
    is_available: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class FoodData(BaseModel):
    """Everything the storefront menu page needs in one call."""
    food_items: list[FoodItemRead]
    food_categories: list[CategoryRead]
