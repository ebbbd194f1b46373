"""Catalog API — the shared food menu.

Learn: the storefront reads the whole catalog in one call (/food-data);
admins manage it under /admin/*. The admin routes are protected per
route with require_admin rather than at include_router level, because
the public reads live on the same router.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from foodiii.auth.dependencies import require_admin
from foodiii.db.engine import get_db
from foodiii.db.models import FoodItem
from foodiii.schemas.catalog import (
    CategoryCreate,
    CategoryRead,
    CategoryUpdate,
    FoodData,
    FoodItemCreate,
    FoodItemRead,
    FoodItemUpdate,
)
from foodiii.services.catalog_service import (
    CatalogService,
    CategoryInUseError,
    CategoryNotFoundError,
    DuplicateCategoryError,
)

router = APIRouter()
_admin = [Depends(require_admin)]


def _svc(db: AsyncSession = Depends(get_db)) -> CatalogService:
    return CatalogService(db)


def _read(item: FoodItem) -> FoodItemRead:
    read = FoodItemRead.model_validate(item)
    read.category_name = item.category.name if item.category else None
    return read


# ─── Public ─────────────────────────────────────────────

@router.get("/food-data", response_model=FoodData)
async def food_data(svc: CatalogService = Depends(_svc)):
    """All available food items plus all categories."""
    items = await svc.list_food_items(available_only=True)
    categories = await svc.list_categories()
    return FoodData(
        food_items=[_read(i) for i in items],
        food_categories=[CategoryRead.model_validate(c) for c in categories],
    )


@router.get("/categories", response_model=list[CategoryRead])
async def list_categories(svc: CatalogService = Depends(_svc)):
    return await svc.list_categories()


# ─── Admin: food items ──────────────────────────────────

@router.get("/admin/food-items", response_model=list[FoodItemRead], dependencies=_admin)
async def admin_list_food_items(svc: CatalogService = Depends(_svc)):
    return [_read(i) for i in await svc.list_food_items()]


@router.post(
    "/admin/food-items",
    response_model=FoodItemRead,
    status_code=201,
    dependencies=_admin,
)
async def create_food_item(body: FoodItemCreate, svc: CatalogService = Depends(_svc)):
    try:
        item = await svc.create_food_item(**body.model_dump())
    except CategoryNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _read(item)


@router.get("/admin/food-items/{item_id}", response_model=FoodItemRead, dependencies=_admin)
async def get_food_item(item_id: uuid.UUID, svc: CatalogService = Depends(_svc)):
    item = await svc.get_food_item(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Food item not found")
    return _read(item)


@router.put("/admin/food-items/{item_id}", response_model=FoodItemRead, dependencies=_admin)
async def update_food_item(
    item_id: uuid.UUID,
    body: FoodItemUpdate,
    svc: CatalogService = Depends(_svc),
):
    try:
        item = await svc.update_food_item(item_id, body.model_dump(exclude_unset=True))
    except CategoryNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not item:
        raise HTTPException(status_code=404, detail="Food item not found")
    return _read(item)


@router.delete("/admin/food-items/{item_id}", dependencies=_admin)
async def delete_food_item(item_id: uuid.UUID, svc: CatalogService = Depends(_svc)):
    if not await svc.delete_food_item(item_id):
        raise HTTPException(status_code=404, detail="Food item not found")
    return {"deleted": True}


# ─── Admin: categories ──────────────────────────────────

@router.get("/admin/categories", response_model=list[CategoryRead], dependencies=_admin)
async def admin_list_categories(svc: CatalogService = Depends(_svc)):
    return await svc.list_categories()


@router.post(
    "/admin/categories",
    response_model=CategoryRead,
    status_code=201,
    dependencies=_admin,
)
async def create_category(body: CategoryCreate, svc: CatalogService = Depends(_svc)):
    try:
        return await svc.create_category(body.name, body.description)
    except DuplicateCategoryError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.put("/admin/categories/{category_id}", response_model=CategoryRead, dependencies=_admin)
async def update_category(
    category_id: uuid.UUID,
    body: CategoryUpdate,
    svc: CatalogService = Depends(_svc),
):
    try:
        category = await svc.update_category(category_id, body.name, body.description)
    except DuplicateCategoryError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.delete("/admin/categories/{category_id}", dependencies=_admin)
async def delete_category(category_id: uuid.UUID, svc: CatalogService = Depends(_svc)):
    try:
        deleted = await svc.delete_category(category_id)
    except CategoryInUseError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Category not found")
    return {"deleted": True}
