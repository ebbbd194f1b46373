"""Restaurant service — self-service onboarding and menu management.

Learn: restaurants are a separate principal from users. They register
and log in on their own routes, get a restaurant token (own secret, own
`type` claim), and can only ever touch their own menu.

The legacy import copies dishes from the shared catalog into a
restaurant's menu. Catalog items may carry their price only inside their
size options ({"half": "120", "full": "220"}), so the price is dug out
by extract_price().
"""

import random
import re
import string
import uuid
from typing import Any, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from foodiii.auth.password import hash_password, verify_password
from foodiii.db.models import FoodItem, MenuItem, Restaurant, utcnow
from foodiii.schemas.restaurant import PROFILE_FIELDS

logger = structlog.get_logger()

MENU_FIELDS = ("name", "category", "price", "description", "image_url", "is_available")
CODE_ATTEMPTS = 5

_NUMBER = re.compile(r"\d+(?:\.\d+)?")


class DuplicateRestaurantError(Exception):
    pass


class RestaurantNotFoundError(Exception):
    pass


class InvalidCredentialsError(Exception):
    pass


class NoValidFieldsError(Exception):
    """Raised when an update carries nothing that may be changed."""
    pass


class MenuItemNotFoundError(Exception):
    pass


class InvalidImportError(Exception):
    pass


class NothingToImportError(Exception):
    pass


# ═══════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════


def generate_restaurant_code(name: str = "") -> str:
    """'Spice Route!' → 'spice-route-k3x9'."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")[:24].rstrip("-")
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=4))
    return f"{slug or 'restaurant'}-{suffix}"


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _NUMBER.search(value)
        return float(match.group()) if match else None
    return None


def extract_price(price: Any, options: Any = None) -> float:
    """Price of a catalog dish for a restaurant menu.

    A positive `price` wins. Otherwise the first numeric value in the first
    option map is used, and 0 when there is none.
    """
    direct = _to_number(price)
    if direct:
        return direct

    if isinstance(options, list) and options and isinstance(options[0], dict):
        for value in options[0].values():
            number = _to_number(value)
            if number is not None:
                return number

    return 0.0


# ═══════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════


class RestaurantService:
    """Business logic for restaurant accounts and their menus."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Accounts ───────────────────────────────────────

    async def _get_by_email(self, email: str) -> Optional[Restaurant]:
        result = await self.db.execute(
            select(Restaurant)
            .where(Restaurant.email == email.lower())
            .options(selectinload(Restaurant.menu_items))
        )
        return result.scalars().first()

    async def _unique_code(self, name: str) -> str:
        code = generate_restaurant_code(name)
        for _ in range(CODE_ATTEMPTS):
            taken = await self.db.scalar(
                select(func.count(Restaurant.id)).where(
                    Restaurant.restaurant_code == code
                )
            )
            if not taken:
                break
            code = generate_restaurant_code(name)
        return code

    async def register(self, name: str, email: str, password: str, **profile: str) -> Restaurant:
        email = email.strip().lower()
        if await self._get_by_email(email):
            raise DuplicateRestaurantError("A restaurant with this email already exists")

        restaurant = Restaurant(
            name=name.strip(),
            email=email,
            password_hash=hash_password(password),
            restaurant_code=await self._unique_code(name),
            menu_items=[],
            **{
                field: (profile.get(field) or "").strip()
                for field in PROFILE_FIELDS
            },
        )
        self.db.add(restaurant)
        await self.db.commit()
        logger.info(
            "foodiii.restaurant.registered",
            restaurant_id=str(restaurant.id),
            code=restaurant.restaurant_code,
        )
        return restaurant

    async def authenticate(self, email: str, password: str) -> Restaurant:
        """Check credentials.

        Raises:
            RestaurantNotFoundError: unknown email or inactive account
            InvalidCredentialsError: wrong password
        """
        restaurant = await self._get_by_email(email.strip())
        if not restaurant or not restaurant.is_active:
            raise RestaurantNotFoundError("Restaurant not found")
        if not verify_password(password, restaurant.password_hash):
            raise InvalidCredentialsError("Invalid credentials")
        return restaurant

    async def update_profile(
        self, restaurant: Restaurant, changes: dict[str, Any]
    ) -> Restaurant:
        updates = {
            field: value.strip() if isinstance(value, str) else value
            for field, value in changes.items()
            if field in PROFILE_FIELDS and value is not None
        }
        if not updates:
            raise NoValidFieldsError("No valid fields provided for update")

        for field, value in updates.items():
            setattr(restaurant, field, value)
        restaurant.updated_at = utcnow()
        await self.db.commit()
        return restaurant

    # ─── Menu ───────────────────────────────────────────

    def _find_item(self, restaurant: Restaurant, item_id: uuid.UUID) -> MenuItem:
        for item in restaurant.menu_items:
            if item.id == item_id:
                return item
        raise MenuItemNotFoundError("Menu item not found")

    async def add_menu_item(
        self,
        restaurant: Restaurant,
        name: str,
        category: str,
        price: float,
        description: str = "",
        image_url: str = "",
        is_available: bool = True,
    ) -> MenuItem:
        now = utcnow()
        item = MenuItem(
            id=uuid.uuid4(),
            name=name.strip(),
            category=category.strip(),
            price=float(price),
            description=description.strip(),
            image_url=image_url.strip(),
            is_available=is_available,
            created_at=now,
            updated_at=now,
        )
        restaurant.menu_items.append(item)
        restaurant.updated_at = now
        await self.db.commit()
        return item

    async def update_menu_item(
        self, restaurant: Restaurant, item_id: uuid.UUID, changes: dict[str, Any]
    ) -> MenuItem:
        updates = {
            field: value.strip() if isinstance(value, str) else value
            for field, value in changes.items()
            if field in MENU_FIELDS and value is not None
        }
        if not updates:
            raise NoValidFieldsError("No valid fields provided for update")

        item = self._find_item(restaurant, item_id)
        for field, value in updates.items():
            setattr(item, field, value)
        now = utcnow()
        item.updated_at = now
        restaurant.updated_at = now
        await self.db.commit()
        return item

    async def delete_menu_item(self, restaurant: Restaurant, item_id: uuid.UUID) -> None:
        item = self._find_item(restaurant, item_id)
        restaurant.menu_items.remove(item)
        restaurant.updated_at = utcnow()
        await self.db.commit()

    # ─── Legacy import ──────────────────────────────────

    async def import_legacy(
        self, restaurant: Restaurant, food_item_ids: Optional[list[str]] = None
    ) -> tuple[int, int]:
        """Copy catalog dishes into the menu. Returns (imported, skipped).

        Names already on the menu are skipped case-insensitively, and so
        are repeats within the same batch.
        """
        query = select(FoodItem).options(selectinload(FoodItem.category))
        if food_item_ids:
            ids = []
            for raw in food_item_ids:
                try:
                    ids.append(uuid.UUID(str(raw)))
                except ValueError:
                    continue
            if not ids:
                raise InvalidImportError("No valid food item ids provided")
            query = query.where(FoodItem.id.in_(ids))

        result = await self.db.execute(query.order_by(FoodItem.created_at))
        food_items = list(result.scalars().all())
        if not food_items:
            raise NothingToImportError("No matching food items found to import")

        seen = {item.name.strip().lower() for item in restaurant.menu_items}
        imported = 0
        now = utcnow()
        for food in food_items:
            key = (food.name or "").strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            restaurant.menu_items.append(MenuItem(
                id=uuid.uuid4(),
                name=food.name.strip(),
                category=food.category.name if food.category else "General",
                price=extract_price(food.price, food.options),
                description=food.description or "",
                image_url=food.img or "",
                is_available=food.is_available,
                created_at=now,
                updated_at=now,
            ))
            imported += 1

        if imported:
            restaurant.updated_at = now
            await self.db.commit()

        skipped = len(food_items) - imported
        logger.info(
            "foodiii.restaurant.legacy_import",
            restaurant_id=str(restaurant.id),
            imported=imported,
            skipped=skipped,
        )
        return imported, skipped
