"""Menu management and the public menu."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.database import get_db
from dinehub.dependencies import MANAGEMENT_ROLES, STAFF_ROLES, AuthContext, require_roles, resolve_restaurant_id
from dinehub.schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    MenuItemCreate,
    MenuItemResponse,
    MenuItemUpdate,
    MessageResponse,
    PublicMenuSection,
)
from dinehub.services import menu as menu_service
from dinehub.services import restaurants as restaurants_service

router = APIRouter(prefix="/api/menu", tags=["Menu"])

management = require_roles(*MANAGEMENT_ROLES)
staff = require_roles(*STAFF_ROLES)


@router.get("/public/{restaurant_id}", response_model=list[PublicMenuSection], summary="Public menu")
async def public_menu(restaurant_id: int, db: AsyncSession = Depends(get_db)) -> list[PublicMenuSection]:
    """Available items grouped by category. No authentication."""
    await restaurants_service.get_restaurant(db, restaurant_id)
    return await menu_service.public_menu(db, restaurant_id)


# =============================================================================
# CATEGORIES
# =============================================================================

@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    data: CategoryCreate,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> CategoryResponse:
    category = await menu_service.create_category(db, resolve_restaurant_id(ctx, restaurant_id), data)
    return CategoryResponse.model_validate(category)


@router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(staff),
    db: AsyncSession = Depends(get_db),
) -> list[CategoryResponse]:
    categories = await menu_service.list_categories(db, resolve_restaurant_id(ctx, restaurant_id))
    return [CategoryResponse.model_validate(c) for c in categories]


@router.patch("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    data: CategoryUpdate,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> CategoryResponse:
    category = await menu_service.update_category(db, resolve_restaurant_id(ctx, restaurant_id), category_id, data)
    return CategoryResponse.model_validate(category)


@router.delete("/categories/{category_id}", response_model=MessageResponse)
async def delete_category(
    category_id: int,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await menu_service.delete_category(db, resolve_restaurant_id(ctx, restaurant_id), category_id)
    return MessageResponse(message="Category deleted")


# =============================================================================
# ITEMS
# =============================================================================

@router.post("/items", response_model=MenuItemResponse, status_code=status.HTTP_201_CREATED)
async def create_item(
    data: MenuItemCreate,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    item = await menu_service.create_item(db, resolve_restaurant_id(ctx, restaurant_id), data)
    return MenuItemResponse.model_validate(item)


@router.get("/items", response_model=list[MenuItemResponse])
async def list_items(
    restaurant_id: Optional[int] = Query(None),
    category_id: Optional[int] = Query(None),
    available: Optional[bool] = Query(None),
    ctx: AuthContext = Depends(staff),
    db: AsyncSession = Depends(get_db),
) -> list[MenuItemResponse]:
    items = await menu_service.list_items(db, resolve_restaurant_id(ctx, restaurant_id), category_id, available)
    return [MenuItemResponse.model_validate(i) for i in items]


@router.get("/items/{item_id}", response_model=MenuItemResponse)
async def get_item(
    item_id: int,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(staff),
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    item = await menu_service.get_item(db, resolve_restaurant_id(ctx, restaurant_id), item_id)
    return MenuItemResponse.model_validate(item)


@router.patch("/items/{item_id}", response_model=MenuItemResponse)
async def update_item(
    item_id: int,
    data: MenuItemUpdate,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    item = await menu_service.update_item(db, resolve_restaurant_id(ctx, restaurant_id), item_id, data)
    return MenuItemResponse.model_validate(item)


@router.delete("/items/{item_id}", response_model=MessageResponse)
async def delete_item(
    item_id: int,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await menu_service.delete_item(db, resolve_restaurant_id(ctx, restaurant_id), item_id)
    return MessageResponse(message="Menu item deleted")
