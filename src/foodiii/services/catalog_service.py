"""Catalog service — categories and food items of the shared menu.

Learn: a food item always belongs to an existing category, and a category
can't be deleted while items still point at it. Both rules are checked
here rather than left to the foreign key, so the API can answer 400 with
a clear message instead of surfacing an IntegrityError.
"""

import uuid
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from foodiii.db.models import Category, FoodItem


class CategoryNotFoundError(Exception):
    """Raised when a food item references a category that doesn't exist."""
    pass


class CategoryInUseError(Exception):
    """Raised when deleting a category that food items still reference."""
    pass


class DuplicateCategoryError(Exception):
    pass


class CatalogService:
    """Business logic for the food catalog."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Categories ─────────────────────────────────────

    async def list_categories(self) -> list[Category]:
        result = await self.db.execute(select(Category).order_by(Category.name))
        return list(result.scalars().all())

    async def get_category(self, category_id: uuid.UUID) -> Optional[Category]:
        return await self.db.get(Category, category_id)

    async def _name_taken(
        self, name: str, exclude_id: Optional[uuid.UUID] = None
    ) -> bool:
        query = select(Category.id).where(func.lower(Category.name) == name.lower())
        if exclude_id:
            query = query.where(Category.id != exclude_id)
        result = await self.db.execute(query)
        return result.first() is not None

    async def create_category(self, name: str, description: str = "") -> Category:
        name = name.strip()
        if await self._name_taken(name):
            raise DuplicateCategoryError(f"Category '{name}' already exists")

        category = Category(name=name, description=description.strip())
        self.db.add(category)
        await self.db.commit()
        await self.db.refresh(category)
        return category

    async def update_category(
        self,
        category_id: uuid.UUID,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Optional[Category]:
        category = await self.get_category(category_id)
        if not category:
            return None

        if name is not None:
            name = name.strip()
            if await self._name_taken(name, exclude_id=category_id):
                raise DuplicateCategoryError(f"Category '{name}' already exists")
            category.name = name
        if description is not None:
            category.description = description.strip()

        await self.db.commit()
        await self.db.refresh(category)
        return category

    async def delete_category(self, category_id: uuid.UUID) -> bool:
        category = await self.get_category(category_id)
        if not category:
            return False

        in_use = await self.db.scalar(
            select(func.count(FoodItem.id)).where(FoodItem.category_id == category_id)
        )
        if in_use:
            raise CategoryInUseError(
                f"Cannot delete category '{category.name}': "
                f"{in_use} food item(s) still use it"
            )

        await self.db.delete(category)
        await self.db.commit()
        return True

    # ─── Food items ─────────────────────────────────────

    async def list_food_items(self, available_only: bool = False) -> list[FoodItem]:
        query = (
            select(FoodItem)
            .options(selectinload(FoodItem.category))
            .order_by(FoodItem.name)
        )
        if available_only:
            query = query.where(FoodItem.is_available.is_(True))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_food_item(self, item_id: uuid.UUID) -> Optional[FoodItem]:
        result = await self.db.execute(
            select(FoodItem)
            .where(FoodItem.id == item_id)
            .options(selectinload(FoodItem.category))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def _require_category(self, category_id: uuid.UUID) -> Category:
        category = await self.get_category(category_id)
        if not category:
            raise CategoryNotFoundError(f"Category {category_id} not found")
        return category

    async def create_food_item(
        self,
        name: str,
        price: float,
        category_id: uuid.UUID,
        img: str,
        description: str = "",
        options: Optional[list[dict[str, Any]]] = None,
        is_available: bool = True,
    ) -> FoodItem:
        await self._require_category(category_id)

        item = FoodItem(
            name=name.strip(),
            price=price,
            category_id=category_id,
            img=img.strip(),
            description=description.strip(),
            options=options or [],
            is_available=is_available,
        )
        self.db.add(item)
        await self.db.commit()
        return await self.get_food_item(item.id)

    async def update_food_item(
        self, item_id: uuid.UUID, changes: dict[str, Any]
    ) -> Optional[FoodItem]:
        """Apply a partial update. Keys with None values are skipped."""
        item = await self.get_food_item(item_id)
        if not item:
            return None

        changes = {k: v for k, v in changes.items() if v is not None}
        if "category_id" in changes:
            await self._require_category(changes["category_id"])

        for field, value in changes.items():
            if isinstance(value, str):
                value = value.strip()
            setattr(item, field, value)

        await self.db.commit()
        return await self.get_food_item(item_id)

    async def delete_food_item(self, item_id: uuid.UUID) -> bool:
        item = await self.db.get(FoodItem, item_id)
        if not item:
            return False
        await self.db.delete(item)
        await self.db.commit()
        return True
