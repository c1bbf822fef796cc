"""
Item Feedback & Reviews

Customers rate the lines of a completed order from the link in the
feedback email. Each order line can be reviewed once.
"""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub import realtime
from dinehub.core.exceptions import BadRequestError, ConflictError, NotFoundError
from dinehub.models import MenuItemReview, Order, OrderStatus, User
from dinehub.schemas import FeedbackCreate, FeedbackFormResponse, ReviewResponse
from dinehub.services import orders as orders_service

logger = logging.getLogger(__name__)


async def get_order_by_number(db: AsyncSession, order_number: str) -> Order:
    result = await db.execute(select(Order).where(Order.order_number == order_number))
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order", order_number)
    return order


async def order_reviews(db: AsyncSession, order_id: int) -> list[MenuItemReview]:
    result = await db.execute(
        select(MenuItemReview)
        .where(MenuItemReview.order_id == order_id)
        .order_by(MenuItemReview.item_index)
    )
    return list(result.scalars().all())


async def feedback_form(db: AsyncSession, order_number: str) -> FeedbackFormResponse:
    order = await get_order_by_number(db, order_number)
    reviews = await order_reviews(db, order.id)
    return FeedbackFormResponse(
        order_number=order.order_number,
        restaurant_id=order.restaurant_id,
        status=order.status.value,
        items=order.items,
        reviews=[ReviewResponse.model_validate(r) for r in reviews],
    )


async def submit_feedback(
    db: AsyncSession,
    order_number: str,
    data: FeedbackCreate,
    user: Optional[User] = None,
) -> list[MenuItemReview]:
    """
    Store one review per selected order line.

    Raises:
        NotFoundError: Unknown order number
        ConflictError: Order not completed, or a line already reviewed
        BadRequestError: Item index out of range
    """
    order = await get_order_by_number(db, order_number)
    if order.status != OrderStatus.COMPLETED:
        raise ConflictError(f"Order is {order.status.value}; feedback opens once it is completed")

    items = orders_service.load_items(order.items)
    indexes = list(dict.fromkeys(data.item_indexes))
    for index in indexes:
        if not 0 <= index < len(items):
            raise BadRequestError(f"Item index {index} is out of range")

    reviewed = {r.item_index for r in await order_reviews(db, order.id)}
    already = sorted(reviewed.intersection(indexes))
    if already:
        raise ConflictError(f"Item(s) {already} already reviewed")

    reviewer_name = data.reviewer_name or (user.full_name if user else order.customer_name)
    created = []
    try:
        for index in indexes:
            review = MenuItemReview(
                restaurant_id=order.restaurant_id,
                order_id=order.id,
                item_index=index,
                menu_item_id=items[index].get("menu_item_id"),
                item_name=items[index]["name"],
                user_id=user.id if user else order.user_id,
                reviewer_name=reviewer_name,
                rating=data.rating,
                comment=data.comment,
            )
            db.add(review)
            created.append(review)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("One of the items was reviewed concurrently")

    for review in created:
        await db.refresh(review)
    logger.info(f"⭐ {len(created)} review(s) for order {order.order_number}, rating {data.rating}")

    await realtime.emit(
        "newReview",
        {"orderId": order.id, "rating": data.rating, "items": [r.item_name for r in created]},
        order.restaurant_id,
        namespaces=("kitchenAdmin",),
    )
    return created


async def list_reviews(
    db: AsyncSession,
    restaurant_id: int,
    menu_item_id: Optional[int] = None,
    max_rating: Optional[int] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[int, Optional[float], list[MenuItemReview]]:
    """Reviews for a restaurant, newest first, with the average over the filtered set."""
    filters = [MenuItemReview.restaurant_id == restaurant_id]
    if menu_item_id is not None:
        filters.append(MenuItemReview.menu_item_id == menu_item_id)
    if max_rating is not None:
        filters.append(MenuItemReview.rating <= max_rating)

    total, average = (await db.execute(
        select(func.count(MenuItemReview.id), func.avg(MenuItemReview.rating)).where(*filters)
    )).one()
    result = await db.execute(
        select(MenuItemReview)
        .where(*filters)
        .order_by(MenuItemReview.created_at.desc(), MenuItemReview.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return total or 0, round(float(average), 2) if average is not None else None, list(result.scalars().all())
