"""Menu categories and items, scoped to a restaurant."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.core.exceptions import NotFoundError
from dinehub.models import MenuCategory, MenuItem
from dinehub.schemas import (
    CategoryCreate,
    CategoryUpdate,
    MenuItemCreate,
    MenuItemResponse,
    MenuItemUpdate,
    PublicMenuSection,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CATEGORIES
# =============================================================================

async def create_category(db: AsyncSession, restaurant_id: int, data: CategoryCreate) -> MenuCategory:
    category = MenuCategory(restaurant_id=restaurant_id, **data.model_dump())
    db.add(category)
    await db.commit()
    await db.refresh(category)
    return category


async def list_categories(db: AsyncSession, restaurant_id: int) -> list[MenuCategory]:
    result = await db.execute(
        select(MenuCategory)
        .where(MenuCategory.restaurant_id == restaurant_id)
        .order_by(MenuCategory.sort_order, MenuCategory.name)
    )
    return list(result.scalars().all())


async def get_category(db: AsyncSession, restaurant_id: int, category_id: int) -> MenuCategory:
    category = await db.get(MenuCategory, category_id)
    if category is None or category.restaurant_id != restaurant_id:
        raise NotFoundError("Category", category_id)
    return category


async def update_category(db: AsyncSession, restaurant_id: int, category_id: int, data: CategoryUpdate) -> MenuCategory:
    category = await get_category(db, restaurant_id, category_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(category, field, value)
    await db.commit()
    await db.refresh(category)
    return category


async def delete_category(db: AsyncSession, restaurant_id: int, category_id: int) -> None:
    category = await get_category(db, restaurant_id, category_id)
    # Items survive as uncategorized
    result = await db.execute(select(MenuItem).where(MenuItem.category_id == category_id))
    for item in result.scalars():
        item.category_id = None
    await db.delete(category)
    await db.commit()
    logger.info(f"🗑️ Category {category_id} deleted")


# =============================================================================
# ITEMS
# =============================================================================

async def create_item(db: AsyncSession, restaurant_id: int, data: MenuItemCreate) -> MenuItem:
    if data.category_id is not None:
        await get_category(db, restaurant_id, data.category_id)
    item = MenuItem(restaurant_id=restaurant_id, **data.model_dump())
    db.add(item)
    await db.commit()
    await db.refresh(item)
    logger.info(f"🍽️ Menu item {item.id} ({item.name}) created")
    return item


async def list_items(
    db: AsyncSession,
    restaurant_id: int,
    category_id: Optional[int] = None,
    available: Optional[bool] = None,
) -> list[MenuItem]:
    query = select(MenuItem).where(MenuItem.restaurant_id == restaurant_id).order_by(MenuItem.name)
    if category_id is not None:
        query = query.where(MenuItem.category_id == category_id)
    if available is not None:
        query = query.where(MenuItem.is_available.is_(available))
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_item(db: AsyncSession, restaurant_id: int, item_id: int) -> MenuItem:
    item = await db.get(MenuItem, item_id)
    if item is None or item.restaurant_id != restaurant_id:
        raise NotFoundError("Menu item", item_id)
    return item


async def update_item(db: AsyncSession, restaurant_id: int, item_id: int, data: MenuItemUpdate) -> MenuItem:
    item = await get_item(db, restaurant_id, item_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("category_id") is not None:
        await get_category(db, restaurant_id, changes["category_id"])
    for field, value in changes.items():
        setattr(item, field, value)
    await db.commit()
    await db.refresh(item)
    return item


async def delete_item(db: AsyncSession, restaurant_id: int, item_id: int) -> None:
    item = await get_item(db, restaurant_id, item_id)
    await db.delete(item)
    await db.commit()


async def public_menu(db: AsyncSession, restaurant_id: int) -> list[PublicMenuSection]:
    """Available items grouped by active category; uncategorized items last."""
    categories = [c for c in await list_categories(db, restaurant_id) if c.is_active]
    items = await list_items(db, restaurant_id, available=True)

    sections = []
    for category in categories:
        in_category = [i for i in items if i.category_id == category.id]
        if in_category:
            sections.append(PublicMenuSection(
                category_id=category.id,
                category_name=category.name,
                items=[MenuItemResponse.model_validate(i) for i in in_category],
            ))

    active_ids = {c.id for c in categories}
    others = [i for i in items if i.category_id not in active_ids]
    if others:
        sections.append(PublicMenuSection(
            category_id=None,
            category_name="Other",
            items=[MenuItemResponse.model_validate(i) for i in others],
        ))
    return sections
