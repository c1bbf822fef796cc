"""Complaints, complaint responses and in-app notifications."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.database import get_db
from dinehub.dependencies import MANAGEMENT_ROLES, AuthContext, get_current_user, require_roles, resolve_restaurant_id
from dinehub.models import ComplaintStatus
from dinehub.schemas import (
    ComplaintCreate,
    ComplaintDetailResponse,
    ComplaintListResponse,
    ComplaintReplyCreate,
    ComplaintReplyResponse,
    ComplaintResponse,
    ComplaintUpdate,
    ErrorResponse,
    NotificationResponse,
)
from dinehub.services import support as support_service

router = APIRouter(prefix="/api/support", tags=["Support"])

management = require_roles(*MANAGEMENT_ROLES)


def _staff_scope(ctx: AuthContext, restaurant_id: Optional[int]) -> Optional[int]:
    """Admins may look across restaurants; other staff see their own."""
    if ctx.is_admin:
        return restaurant_id
    return resolve_restaurant_id(ctx, restaurant_id)


async def _visible_complaint(db: AsyncSession, ctx: AuthContext, complaint_id: int):
    if ctx.is_customer:
        return await support_service.get_complaint(db, complaint_id, user_id=ctx.user.id)
    return await support_service.get_complaint(db, complaint_id, _staff_scope(ctx, None))


@router.post("/complaints", response_model=ComplaintResponse, status_code=status.HTTP_201_CREATED)
async def create_complaint(
    data: ComplaintCreate,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ComplaintResponse:
    """Open a complaint; every admin receives an in-app notification."""
    complaint = await support_service.create_complaint(db, ctx.user, data)
    return ComplaintResponse.model_validate(complaint)


@router.get("/complaints", response_model=ComplaintListResponse)
async def list_complaints(
    restaurant_id: Optional[int] = Query(None),
    status: Optional[ComplaintStatus] = Query(None),
    type: Optional[str] = Query(None),
    assigned_to: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ComplaintListResponse:
    if ctx.is_customer:
        total, complaints = await support_service.list_complaints(
            db, user_id=ctx.user.id, status=status, type=type, page=page, limit=limit
        )
    else:
        total, complaints = await support_service.list_complaints(
            db, _staff_scope(ctx, restaurant_id), status=status, type=type,
            assigned_to=assigned_to, page=page, limit=limit,
        )
    return ComplaintListResponse(
        total=total,
        page=page,
        limit=limit,
        complaints=[ComplaintResponse.model_validate(c) for c in complaints],
    )


@router.get("/complaints/{complaint_id}", response_model=ComplaintDetailResponse, responses={404: {"model": ErrorResponse}})
async def get_complaint(
    complaint_id: int,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ComplaintDetailResponse:
    complaint = await _visible_complaint(db, ctx, complaint_id)
    return await support_service.complaint_detail(db, complaint, include_internal=not ctx.is_customer)


@router.patch("/complaints/{complaint_id}", response_model=ComplaintResponse)
async def update_complaint(
    complaint_id: int,
    data: ComplaintUpdate,
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> ComplaintResponse:
    complaint = await support_service.get_complaint(db, complaint_id, _staff_scope(ctx, None))
    complaint = await support_service.update_complaint(db, complaint, data)
    return ComplaintResponse.model_validate(complaint)


@router.post(
    "/complaints/{complaint_id}/responses",
    response_model=ComplaintReplyResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_response(
    complaint_id: int,
    data: ComplaintReplyCreate,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ComplaintReplyResponse:
    """Staff replies that are not internal are emailed to the complainant."""
    complaint = await _visible_complaint(db, ctx, complaint_id)
    if ctx.is_customer:
        data = data.model_copy(update={"is_internal": False})
    reply = await support_service.add_response(db, complaint, ctx.user, data)
    return ComplaintReplyResponse.model_validate(reply)


# =============================================================================
# NOTIFICATIONS
# =============================================================================

@router.get("/notifications", response_model=list[NotificationResponse], tags=["Notifications"])
async def my_notifications(
    unread_only: bool = Query(False),
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[NotificationResponse]:
    notifications = await support_service.list_notifications(db, ctx.user.id, unread_only)
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.patch("/notifications/{notification_id}/read", response_model=NotificationResponse, tags=["Notifications"])
async def mark_notification_read(
    notification_id: int,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationResponse:
    notification = await support_service.mark_read(db, ctx.user.id, notification_id)
    return NotificationResponse.model_validate(notification)
