"""Pydantic schemas for orders.

Learn: StatusChange.status is a plain string. An unknown status is a
400 from the service, not a 422 from validation.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class OrderLine(BaseModel):
    food_item_id: Optional[uuid.UUID] = None
    name: str = Field(..., min_length=1, max_length=200)
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)
    size: Optional[str] = None


class OrderCreate(BaseModel):
    items: list[OrderLine] = Field(..., min_length=1)
    delivery_address: str = ""
    mobile_no: Optional[str] = Field(None, pattern=r"^\d{10,15}$")


class StatusChange(BaseModel):
    status: str


class OrderRead(BaseModel):
    id: uuid.UUID
    order_number: str
    user_id: Optional[uuid.UUID]
    email: str
    mobile_no: str
    delivery_address: str
    items: list[dict]
    total_amount: float
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrderPage(BaseModel):
    data: list[OrderRead]
    total: int
    total_pages: int
    current_page: int


class StatusTotals(BaseModel):
    status: str
    count: int
    amount: float


class OrderStats(BaseModel):
    total_orders: int
    total_revenue: float
    statuses: list[StatusTotals]
