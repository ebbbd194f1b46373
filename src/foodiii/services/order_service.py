"""Order service — placing orders and the admin order workflow.

Learn: the service only persists. Telling dashboards about a change is
the route's job (it holds the publisher), and it happens after commit,
so a dashboard never sees an order the database doesn't have.

Status values form a set, not a state machine: any member of
ORDER_STATUSES may follow any other. Anything outside the set is rejected.
"""

import math
import secrets
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from foodiii.config import settings
from foodiii.db.models import ORDER_STATUSES, Order, utcnow


class InvalidOrderStatusError(Exception):
    """Raised when a status isn't one of ORDER_STATUSES."""
    pass


class OrderNotFoundError(Exception):
    pass


def generate_order_number(now: Optional[datetime] = None) -> str:
    """ORD-20261019-3F9A1C: prefix, UTC date, six random hex digits."""
    now = now or datetime.now(timezone.utc)
    return f"{settings.order_number_prefix}-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


def order_total(items: list[dict[str, Any]]) -> float:
    return round(sum(line["quantity"] * line["price"] for line in items), 2)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class OrderService:
    """Business logic for orders."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Create ──────────────────────────────────────────

    async def create_order(
        self,
        email: str,
        items: list[dict[str, Any]],
        user_id: Optional[uuid.UUID] = None,
        mobile_no: str = "",
        delivery_address: str = "",
    ) -> Order:
        """Create a new order in 'pending' status with its total computed."""
        lines = [
            {
                **line,
                "food_item_id": str(line["food_item_id"]) if line.get("food_item_id") else None,
            }
            for line in items
        ]
        order = Order(
            order_number=generate_order_number(),
            user_id=user_id,
            email=email,
            mobile_no=mobile_no or "",
            delivery_address=delivery_address.strip(),
            items=lines,
            total_amount=order_total(lines),
            status="pending",
        )
        self.db.add(order)
        await self.db.commit()
        await self.db.refresh(order)
        return order

    # ─── Read ────────────────────────────────────────────

    async def get_order(self, order_id: uuid.UUID) -> Optional[Order]:
        return await self.db.get(Order, order_id)

    async def list_for_user(self, user_id: uuid.UUID) -> list[Order]:
        result = await self.db.execute(
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_orders(
        self,
        status: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 10,
    ) -> dict[str, Any]:
        """Paginated admin listing, newest first.

        Returns {data, total, total_pages, current_page}.
        """
        query = select(Order)
        if status:
            query = query.where(Order.status == status)
        if start_date:
            query = query.where(Order.created_at >= _as_utc(start_date))
        if end_date:
            query = query.where(Order.created_at <= _as_utc(end_date))

        total = await self.db.scalar(
            select(func.count()).select_from(query.subquery())
        ) or 0

        result = await self.db.execute(
            query.order_by(Order.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return {
            "data": list(result.scalars().all()),
            "total": total,
            "total_pages": math.ceil(total / limit) if limit else 0,
            "current_page": page,
        }

    async def stats(self) -> dict[str, Any]:
        """Order counts and revenue, overall and per status."""
        result = await self.db.execute(
            select(
                Order.status,
                func.count(Order.id),
                func.coalesce(func.sum(Order.total_amount), 0),
            )
            .group_by(Order.status)
            .order_by(Order.status)
        )
        statuses = [
            {"status": status, "count": count, "amount": round(float(amount), 2)}
            for status, count, amount in result.all()
        ]
        return {
            "total_orders": sum(s["count"] for s in statuses),
            "total_revenue": round(sum(s["amount"] for s in statuses), 2),
            "statuses": statuses,
        }

    # ─── Status ──────────────────────────────────────────

    async def update_status(self, order_id: uuid.UUID, new_status: str) -> Order:
        """Set an order's status and return the freshly persisted row.

        Raises:
            InvalidOrderStatusError: status not in ORDER_STATUSES
            OrderNotFoundError: no order with that id
        """
        if new_status not in ORDER_STATUSES:
            raise InvalidOrderStatusError(
                f"Invalid status '{new_status}'. "
                f"Expected one of: {', '.join(ORDER_STATUSES)}"
            )

        order = await self.get_order(order_id)
        if not order:
            raise OrderNotFoundError(f"Order {order_id} not found")

        order.status = new_status
        order.updated_at = utcnow()
        await self.db.commit()
        await self.db.refresh(order)
        return order
