"""Restaurants (tenants) and their staff accounts."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.core.exceptions import BadRequestError, ConflictError, NotFoundError
from dinehub.models import Restaurant, Role, RoleName, User
from dinehub.schemas import RestaurantCreate, RestaurantUpdate, StaffUserCreate, UserUpdate
from dinehub.services import auth as auth_service

logger = logging.getLogger(__name__)


async def create_restaurant(db: AsyncSession, data: RestaurantCreate) -> Restaurant:
    restaurant = Restaurant(**data.model_dump())
    db.add(restaurant)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Restaurant slug '{data.slug}' is taken")
    await db.refresh(restaurant)
    logger.info(f"🏪 Restaurant {restaurant.id} ({restaurant.slug}) created")
    return restaurant


async def list_restaurants(db: AsyncSession, active_only: bool = False) -> list[Restaurant]:
    query = select(Restaurant).order_by(Restaurant.name)
    if active_only:
        query = query.where(Restaurant.is_active.is_(True))
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_restaurant(db: AsyncSession, restaurant_id: int) -> Restaurant:
    restaurant = await db.get(Restaurant, restaurant_id)
    if restaurant is None:
        raise NotFoundError("Restaurant", restaurant_id)
    return restaurant


async def update_restaurant(db: AsyncSession, restaurant_id: int, data: RestaurantUpdate) -> Restaurant:
    restaurant = await get_restaurant(db, restaurant_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(restaurant, field, value)
    await db.commit()
    await db.refresh(restaurant)
    return restaurant


async def delete_restaurant(db: AsyncSession, restaurant_id: int) -> None:
    """Soft delete; orders and staff keep referencing the row."""
    restaurant = await get_restaurant(db, restaurant_id)
    restaurant.is_active = False
    await db.commit()
    logger.info(f"🏪 Restaurant {restaurant_id} deactivated")


# =============================================================================
# STAFF USERS
# =============================================================================

async def create_staff_user(db: AsyncSession, data: StaffUserCreate, restaurant_id: Optional[int]) -> User:
    if data.role not in (RoleName.ADMIN, RoleName.CUSTOMER):
        if restaurant_id is None:
            raise BadRequestError("Staff users need a restaurant")
        await get_restaurant(db, restaurant_id)
    else:
        restaurant_id = None

    return await auth_service.create_user(
        db,
        email=data.email,
        password=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
        phone_number=data.phone_number,
        role_name=data.role,
        restaurant_id=restaurant_id,
    )


async def list_users(
    db: AsyncSession,
    restaurant_id: Optional[int] = None,
    role: Optional[RoleName] = None,
) -> list[User]:
    query = select(User).order_by(User.created_at.desc())
    if restaurant_id is not None:
        query = query.where(User.restaurant_id == restaurant_id)
    if role is not None:
        query = query.join(Role, Role.id == User.role_id).where(Role.name == role.value)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_user(db: AsyncSession, user_id: int, restaurant_id: Optional[int] = None) -> User:
    user = await db.get(User, user_id)
    if user is None or (restaurant_id is not None and user.restaurant_id != restaurant_id):
        raise NotFoundError("User", user_id)
    return user


async def update_user(db: AsyncSession, user_id: int, data: UserUpdate, restaurant_id: Optional[int] = None) -> User:
    user = await get_user(db, user_id, restaurant_id)
    changes = data.model_dump(exclude_unset=True)
    role_name = changes.pop("role", None)
    for field, value in changes.items():
        setattr(user, field, value)
    if role_name is not None:
        user.role = await auth_service.get_role(db, role_name)
    await db.commit()
    await db.refresh(user)
    if changes.get("is_active") is False:
        await auth_service.logout_all(db, user.id)
    logger.info(f"👤 User {user.id} updated")
    return user
