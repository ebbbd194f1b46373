"""Order API routes.

Learn: every write that changes an order goes:
1. service persists and commits
2. route dispatches the fresh row to admin dashboards (background task)
3. route responds

Publishing is best-effort. Its outcome is logged and never changes the
HTTP response: a customer's order is placed even if no admin is watching.
"""

import asyncio
import uuid
from datetime import datetime
from functools import partial
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from foodiii.auth.dependencies import CurrentIdentity, get_current_user, require_admin
from foodiii.db.engine import get_db
from foodiii.db.models import Order
from foodiii.events.types import ORDER_CREATED, ORDER_STATUS_UPDATED
from foodiii.realtime.publisher import OrderEventPublisher, PublishOutcome
from foodiii.schemas.order import (
    OrderCreate,
    OrderPage,
    OrderRead,
    OrderStats,
    StatusChange,
)
from foodiii.services.order_service import (
    InvalidOrderStatusError,
    OrderNotFoundError,
    OrderService,
)
from foodiii.services.user_service import UserService

logger = structlog.get_logger()
router = APIRouter()
_admin = [Depends(require_admin)]


def _svc(db: AsyncSession = Depends(get_db)) -> OrderService:
    return OrderService(db)


def get_publisher(request: Request) -> OrderEventPublisher:
    return request.app.state.publisher


def _log_outcome(event: str, order_id: str, task: asyncio.Task) -> None:
    if task.cancelled():
        logger.warning("foodiii.orders.notify_cancelled", order_event=event, order_id=order_id)
        return
    error = task.exception()
    if error is not None:
        logger.error(
            "foodiii.orders.notify_failed",
            order_event=event,
            order_id=order_id,
            error=str(error),
        )
        return
    result = task.result()
    log = logger.warning if result.outcome is not PublishOutcome.DELIVERED else logger.info
    log(
        "foodiii.orders.notified",
        order_event=event,
        order_id=order_id,
        outcome=result.outcome.value,
        delivered=len(result.delivered),
        failed=len(result.failed),
    )


def _notify(publisher: OrderEventPublisher, event: str, order: Order) -> None:
    """Push to dashboards in the background; the response doesn't wait."""
    task = publisher.dispatch(event, order)
    task.add_done_callback(partial(_log_outcome, event, str(order.id)))


# ─── Customer ───────────────────────────────────────────

@router.post("/orders", response_model=OrderRead, status_code=201)
async def place_order(
    body: OrderCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: OrderService = Depends(_svc),
    publisher: OrderEventPublisher = Depends(get_publisher),
):
    """Place an order for the current user. Admin dashboards get a `created` event."""
    try:
        user_id = uuid.UUID(identity.user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    user = await UserService(svc.db).get(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    order = await svc.create_order(
        email=user.email,
        items=[line.model_dump() for line in body.items],
        user_id=user.id,
        mobile_no=body.mobile_no or user.mobile_no,
        delivery_address=body.delivery_address or user.location,
    )
    logger.info(
        "foodiii.orders.placed",
        order_id=str(order.id),
        order_number=order.order_number,
        total=order.total_amount,
    )
    _notify(publisher, ORDER_CREATED, order)
    return order


@router.get("/orders/mine", response_model=list[OrderRead])
async def my_orders(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: OrderService = Depends(_svc),
):
    try:
        user_id = uuid.UUID(identity.user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token subject")
    return await svc.list_for_user(user_id)


# ─── Admin ──────────────────────────────────────────────

@router.get("/admin/orders", response_model=OrderPage, dependencies=_admin)
async def list_orders(
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    svc: OrderService = Depends(_svc),
):
    return await svc.list_orders(
        status=status,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )


@router.get("/admin/orders/stats", response_model=OrderStats, dependencies=_admin)
async def order_stats(svc: OrderService = Depends(_svc)):
    return await svc.stats()


@router.get("/admin/orders/{order_id}", response_model=OrderRead, dependencies=_admin)
async def get_order(order_id: uuid.UUID, svc: OrderService = Depends(_svc)):
    order = await svc.get_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.put("/admin/orders/{order_id}/status", response_model=OrderRead, dependencies=_admin)
async def update_order_status(
    order_id: uuid.UUID,
    body: StatusChange,
    svc: OrderService = Depends(_svc),
    publisher: OrderEventPublisher = Depends(get_publisher),
):
    """Set an order's status. Admin dashboards get a `status-updated` event."""
    try:
        order = await svc.update_status(order_id, body.status)
    except InvalidOrderStatusError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OrderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    logger.info(
        "foodiii.orders.status_changed",
        order_id=str(order.id),
        status=order.status,
    )
    _notify(publisher, ORDER_STATUS_UPDATED, order)
    return order
