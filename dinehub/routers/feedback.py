"""
Feedback Endpoints

Public per-item feedback for completed orders (reached from the feedback
email) and the restaurant's review listing.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.database import get_db
from dinehub.dependencies import (
    STAFF_ROLES,
    AuthContext,
    get_optional_user,
    require_roles,
    resolve_restaurant_id,
)
from dinehub.schemas import (
    ErrorResponse,
    FeedbackCreate,
    FeedbackFormResponse,
    ReviewListResponse,
    ReviewResponse,
)
from dinehub.services import feedback as feedback_service

router = APIRouter(prefix="/api/feedback", tags=["Feedback"])


@router.get(
    "/orders/{order_number}",
    response_model=FeedbackFormResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Order lines and existing reviews for the feedback page",
)
async def feedback_form(order_number: str, db: AsyncSession = Depends(get_db)) -> FeedbackFormResponse:
    return await feedback_service.feedback_form(db, order_number)


@router.post(
    "/orders/{order_number}",
    response_model=list[ReviewResponse],
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Rate items of a completed order",
)
async def submit_feedback(
    order_number: str,
    data: FeedbackCreate,
    ctx: Optional[AuthContext] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> list[ReviewResponse]:
    reviews = await feedback_service.submit_feedback(
        db, order_number, data, user=ctx.user if ctx else None
    )
    return [ReviewResponse.model_validate(r) for r in reviews]


@router.get("/reviews", response_model=ReviewListResponse, summary="Reviews for a restaurant")
async def list_reviews(
    restaurant_id: Optional[int] = Query(None),
    menu_item_id: Optional[int] = Query(None),
    max_rating: Optional[int] = Query(None, ge=1, le=5, description="Only reviews at or below this rating"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    ctx: AuthContext = Depends(require_roles(*STAFF_ROLES)),
    db: AsyncSession = Depends(get_db),
) -> ReviewListResponse:
    total, average, reviews = await feedback_service.list_reviews(
        db, resolve_restaurant_id(ctx, restaurant_id), menu_item_id, max_rating, page, limit
    )
    return ReviewListResponse(
        total=total,
        page=page,
        limit=limit,
        average_rating=average,
        reviews=[ReviewResponse.model_validate(r) for r in reviews],
    )
