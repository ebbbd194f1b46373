"""Restaurant API — onboarding, profile, and menu management.

Learn: Routes for restaurant self-service:
- POST /restaurants/register → account + restaurant token
- POST /restaurants/login → restaurant token
- GET/PUT /restaurants/me → profile (PUT accepts profile fields only)
- POST/PUT/DELETE /restaurants/menu[/{item_id}] → menu items
- POST /restaurants/menu/import-legacy → copy dishes from the shared catalog

Everything except register/login authenticates with a restaurant token
(get_current_restaurant), never a user token.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from foodiii.auth.dependencies import get_current_restaurant
from foodiii.auth.jwt import create_restaurant_token
from foodiii.db.engine import get_db
from foodiii.db.models import Restaurant
from foodiii.schemas.restaurant import (
    LegacyImport,
    LegacyImportResult,
    MenuItemCreate,
    MenuItemEnvelope,
    MenuItemUpdate,
    RestaurantEnvelope,
    RestaurantLogin,
    RestaurantProfileUpdate,
    RestaurantRead,
    RestaurantRegister,
    RestaurantSession,
)
from foodiii.services.restaurant_service import (
    DuplicateRestaurantError,
    InvalidCredentialsError,
    InvalidImportError,
    MenuItemNotFoundError,
    NoValidFieldsError,
    NothingToImportError,
    RestaurantNotFoundError,
    RestaurantService,
)

router = APIRouter(prefix="/restaurants")


def _svc(db: AsyncSession = Depends(get_db)) -> RestaurantService:
    return RestaurantService(db)


def _session(restaurant: Restaurant) -> RestaurantSession:
    return RestaurantSession(
        token=create_restaurant_token(str(restaurant.id)),
        restaurant=RestaurantRead.model_validate(restaurant),
    )


# ─── Accounts ───────────────────────────────────────────

@router.post("/register", response_model=RestaurantSession, status_code=201)
async def register(body: RestaurantRegister, svc: RestaurantService = Depends(_svc)):
    fields = body.model_dump()
    try:
        restaurant = await svc.register(
            fields.pop("name"), fields.pop("email"), fields.pop("password"), **fields
        )
    except DuplicateRestaurantError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _session(restaurant)


@router.post("/login", response_model=RestaurantSession)
async def login(body: RestaurantLogin, svc: RestaurantService = Depends(_svc)):
    try:
        restaurant = await svc.authenticate(body.email, body.password)
    except RestaurantNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=401, detail=str(e))
    return _session(restaurant)


@router.get("/me", response_model=RestaurantEnvelope)
async def get_me(restaurant: Restaurant = Depends(get_current_restaurant)):
    return {"restaurant": restaurant}


@router.put("/me", response_model=RestaurantEnvelope)
async def update_me(
    body: RestaurantProfileUpdate,
    restaurant: Restaurant = Depends(get_current_restaurant),
    svc: RestaurantService = Depends(_svc),
):
    try:
        restaurant = await svc.update_profile(
            restaurant, body.model_dump(exclude_unset=True)
        )
    except NoValidFieldsError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"restaurant": restaurant}


# ─── Menu ───────────────────────────────────────────────

@router.post("/menu", response_model=MenuItemEnvelope, status_code=201)
async def add_menu_item(
    body: MenuItemCreate,
    restaurant: Restaurant = Depends(get_current_restaurant),
    svc: RestaurantService = Depends(_svc),
):
    item = await svc.add_menu_item(restaurant, **body.model_dump())
    return {"menu_item": item, "restaurant": restaurant}


@router.put("/menu/{item_id}", response_model=MenuItemEnvelope)
async def update_menu_item(
    item_id: uuid.UUID,
    body: MenuItemUpdate,
    restaurant: Restaurant = Depends(get_current_restaurant),
    svc: RestaurantService = Depends(_svc),
):
    try:
        item = await svc.update_menu_item(
            restaurant, item_id, body.model_dump(exclude_unset=True)
        )
    except NoValidFieldsError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MenuItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"menu_item": item, "restaurant": restaurant}


@router.delete("/menu/{item_id}", response_model=RestaurantEnvelope)
async def delete_menu_item(
    item_id: uuid.UUID,
    restaurant: Restaurant = Depends(get_current_restaurant),
    svc: RestaurantService = Depends(_svc),
):
    try:
        await svc.delete_menu_item(restaurant, item_id)
    except MenuItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"restaurant": restaurant}


@router.post("/menu/import-legacy", response_model=LegacyImportResult)
async def import_legacy_menu(
    body: LegacyImport,
    restaurant: Restaurant = Depends(get_current_restaurant),
    svc: RestaurantService = Depends(_svc),
):
    """Copy shared-catalog dishes into this restaurant's menu."""
    try:
        imported, skipped = await svc.import_legacy(restaurant, body.food_item_ids)
    except InvalidImportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NothingToImportError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"imported": imported, "skipped": skipped, "restaurant": restaurant}
