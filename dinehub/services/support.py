"""
Support: customer complaints, staff responses and in-app notifications.

Creating a complaint notifies every active admin in-app. A public
(non-internal) response is emailed to the complainant, best-effort.
"""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.core.exceptions import NotFoundError
from dinehub.database import utcnow
from dinehub.models import (
    Complaint,
    ComplaintResponse as ComplaintReply,
    ComplaintStatus,
    Notification,
    Role,
    RoleName,
    User,
)
from dinehub.schemas import (
    ComplaintCreate,
    ComplaintDetailResponse,
    ComplaintReplyCreate,
    ComplaintReplyResponse,
    ComplaintResponse,
    ComplaintUpdate,
)
from dinehub.services.notifications import get_notification_service

logger = logging.getLogger(__name__)

CLOSED_STATUSES = (ComplaintStatus.RESOLVED, ComplaintStatus.CLOSED)


# =============================================================================
# COMPLAINTS
# =============================================================================

async def create_complaint(db: AsyncSession, user: User, data: ComplaintCreate) -> Complaint:
    complaint = Complaint(user_id=user.id, **data.model_dump())
    db.add(complaint)
    await db.flush()

    admins = await db.execute(
        select(User.id)
        .join(Role, Role.id == User.role_id)
        .where(Role.name == RoleName.ADMIN.value, User.is_active.is_(True))
    )
    for admin_id in admins.scalars():
        db.add(Notification(
            user_id=admin_id,
            type="complaint",
            title=f"New complaint: {complaint.subject}",
            message=f"{user.full_name} reported a {complaint.type} issue ({complaint.priority.value} priority).",
        ))

    await db.commit()
    await db.refresh(complaint)
    logger.info(f"📣 Complaint {complaint.id} opened by user {user.id}")
    return complaint


async def list_complaints(
    db: AsyncSession,
    restaurant_id: Optional[int] = None,
    user_id: Optional[int] = None,
    status: Optional[ComplaintStatus] = None,
    type: Optional[str] = None,
    assigned_to: Optional[int] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[int, list[Complaint]]:
    filters = []
    if restaurant_id is not None:
        filters.append(Complaint.restaurant_id == restaurant_id)
    if user_id is not None:
        filters.append(Complaint.user_id == user_id)
    if status is not None:
        filters.append(Complaint.status == status)
    if type:
        filters.append(Complaint.type == type)
    if assigned_to is not None:
        filters.append(Complaint.assigned_to == assigned_to)

    total = (await db.execute(select(func.count(Complaint.id)).where(*filters))).scalar() or 0
    result = await db.execute(
        select(Complaint)
        .where(*filters)
        .order_by(Complaint.created_at.desc(), Complaint.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return total, list(result.scalars().all())


async def get_complaint(
    db: AsyncSession,
    complaint_id: int,
    restaurant_id: Optional[int] = None,
    user_id: Optional[int] = None,
) -> Complaint:
    complaint = await db.get(Complaint, complaint_id)
    if complaint is None:
        raise NotFoundError("Complaint", complaint_id)
    if restaurant_id is not None and complaint.restaurant_id != restaurant_id:
        raise NotFoundError("Complaint", complaint_id)
    if user_id is not None and complaint.user_id != user_id:
        raise NotFoundError("Complaint", complaint_id)
    return complaint


async def complaint_detail(db: AsyncSession, complaint: Complaint, include_internal: bool) -> ComplaintDetailResponse:
    query = (
        select(ComplaintReply)
        .where(ComplaintReply.complaint_id == complaint.id)
        .order_by(ComplaintReply.created_at, ComplaintReply.id)
    )
    if not include_internal:
        query = query.where(ComplaintReply.is_internal.is_(False))
    replies = (await db.execute(query)).scalars().all()

    detail = ComplaintResponse.model_validate(complaint).model_dump()
    return ComplaintDetailResponse(
        **detail,
        responses=[ComplaintReplyResponse.model_validate(r) for r in replies],
    )


async def update_complaint(db: AsyncSession, complaint: Complaint, data: ComplaintUpdate) -> Complaint:
    changes = data.model_dump(exclude_unset=True)
    if changes.get("assigned_to") is not None and await db.get(User, changes["assigned_to"]) is None:
        raise NotFoundError("User", changes["assigned_to"])

    for field, value in changes.items():
        setattr(complaint, field, value)
    if complaint.status in CLOSED_STATUSES and complaint.resolved_at is None:
        complaint.resolved_at = utcnow()

    await db.commit()
    await db.refresh(complaint)
    logger.info(f"📣 Complaint {complaint.id} -> {complaint.status.value}")
    return complaint


async def add_response(db: AsyncSession, complaint: Complaint, author: User, data: ComplaintReplyCreate) -> ComplaintReply:
    reply = ComplaintReply(
        complaint_id=complaint.id,
        user_id=author.id,
        message=data.message,
        is_internal=data.is_internal,
    )
    db.add(reply)
    if complaint.status == ComplaintStatus.OPEN and author.id != complaint.user_id:
        complaint.status = ComplaintStatus.IN_PROGRESS
    await db.commit()
    await db.refresh(reply)

    if not reply.is_internal and author.id != complaint.user_id:
        await _email_complainant(db, complaint, reply)
    return reply


async def _email_complainant(db: AsyncSession, complaint: Complaint, reply: ComplaintReply) -> None:
    complainant = await db.get(User, complaint.user_id)
    if complainant is None or not complainant.email:
        return
    subject = f"Re: {complaint.subject}"
    result = await get_notification_service().send_templated_email(
        complainant.email, subject, f"<p>{reply.message}</p>"
    )
    if not result.success:
        logger.warning(f"⚠️ Complaint {complaint.id} reply email failed: {result.error_message}")


# =============================================================================
# NOTIFICATIONS
# =============================================================================

async def list_notifications(db: AsyncSession, user_id: int, unread_only: bool = False) -> list[Notification]:
    query = (
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    result = await db.execute(query)
    return list(result.scalars().all())


async def mark_read(db: AsyncSession, user_id: int, notification_id: int) -> Notification:
    notification = await db.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFoundError("Notification", notification_id)
    notification.is_read = True
    await db.commit()
    await db.refresh(notification)
    return notification
