"""Admin endpoints for restaurants (tenants) and staff accounts."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.core.exceptions import ForbiddenError
from dinehub.database import get_db
from dinehub.dependencies import MANAGEMENT_ROLES, AuthContext, require_roles, resolve_restaurant_id
from dinehub.models import RoleName
from dinehub.schemas import (
    ErrorResponse,
    MessageResponse,
    RestaurantCreate,
    RestaurantResponse,
    RestaurantUpdate,
    StaffUserCreate,
    UserResponse,
    UserUpdate,
)
from dinehub.services import restaurants as restaurants_service

router = APIRouter(prefix="/api", tags=["Admin"])

admin_only = require_roles(RoleName.ADMIN)
management = require_roles(*MANAGEMENT_ROLES)


# =============================================================================
# RESTAURANTS
# =============================================================================

@router.post(
    "/restaurants",
    response_model=RestaurantResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_restaurant(
    data: RestaurantCreate,
    _: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> RestaurantResponse:
    restaurant = await restaurants_service.create_restaurant(db, data)
    return RestaurantResponse.model_validate(restaurant)


@router.get("/restaurants", response_model=list[RestaurantResponse])
async def list_restaurants(
    active_only: bool = Query(False),
    _: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> list[RestaurantResponse]:
    restaurants = await restaurants_service.list_restaurants(db, active_only)
    return [RestaurantResponse.model_validate(r) for r in restaurants]


@router.get("/restaurants/{restaurant_id}", response_model=RestaurantResponse)
async def get_restaurant(
    restaurant_id: int,
    _: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> RestaurantResponse:
    return RestaurantResponse.model_validate(await restaurants_service.get_restaurant(db, restaurant_id))


@router.patch("/restaurants/{restaurant_id}", response_model=RestaurantResponse)
async def update_restaurant(
    restaurant_id: int,
    data: RestaurantUpdate,
    _: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> RestaurantResponse:
    restaurant = await restaurants_service.update_restaurant(db, restaurant_id, data)
    return RestaurantResponse.model_validate(restaurant)


@router.delete("/restaurants/{restaurant_id}", response_model=MessageResponse)
async def delete_restaurant(
    restaurant_id: int,
    _: AuthContext = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await restaurants_service.delete_restaurant(db, restaurant_id)
    return MessageResponse(message="Restaurant deactivated")


# =============================================================================
# USERS
# =============================================================================

@router.post(
    "/users",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Create a staff account",
)
async def create_user(
    data: StaffUserCreate,
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """
    Admins may create any role for any restaurant; restaurant management
    only creates staff of its own restaurant.
    """
    if not ctx.is_admin and data.role == RoleName.ADMIN:
        raise ForbiddenError("Only admins can create admins")
    restaurant_id = data.restaurant_id if ctx.is_admin else resolve_restaurant_id(ctx, data.restaurant_id)
    user = await restaurants_service.create_staff_user(db, data, restaurant_id)
    return UserResponse.model_validate(user)


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    restaurant_id: Optional[int] = Query(None),
    role: Optional[RoleName] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> list[UserResponse]:
    scope = restaurant_id if ctx.is_admin else resolve_restaurant_id(ctx, restaurant_id)
    users = await restaurants_service.list_users(db, scope, role)
    return [UserResponse.model_validate(u) for u in users]


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    scope = None if ctx.is_admin else resolve_restaurant_id(ctx)
    return UserResponse.model_validate(await restaurants_service.get_user(db, user_id, scope))


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    data: UserUpdate,
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    if not ctx.is_admin and data.role == RoleName.ADMIN:
        raise ForbiddenError("Only admins can grant the admin role")
    scope = None if ctx.is_admin else resolve_restaurant_id(ctx)
    user = await restaurants_service.update_user(db, user_id, data, scope)
    return UserResponse.model_validate(user)
