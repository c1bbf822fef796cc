"""
Loyalty Points Ledger

Balance = unexpired ``earn`` entries minus unexpired ``redeem`` entries.
Writes here never commit; they ride in the order transaction that caused
them.
"""

import logging
import math
from datetime import timedelta
from typing import Optional

from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.core.exceptions import BadRequestError
from dinehub.database import utcnow
from dinehub.models import LoyaltyEntryType, LoyaltyPoint
from dinehub.schemas import LoyaltySettings

logger = logging.getLogger(__name__)


async def get_balance(db: AsyncSession, user_id: int) -> int:
    signed = case(
        (LoyaltyPoint.type == LoyaltyEntryType.EARN, LoyaltyPoint.points),
        else_=-LoyaltyPoint.points,
    )
    result = await db.execute(
        select(func.coalesce(func.sum(signed), 0)).where(
            LoyaltyPoint.user_id == user_id,
            LoyaltyPoint.expires_at > utcnow(),
        )
    )
    return int(result.scalar() or 0)


async def get_history(db: AsyncSession, user_id: int, limit: int = 50) -> list[LoyaltyPoint]:
    result = await db.execute(
        select(LoyaltyPoint)
        .where(LoyaltyPoint.user_id == user_id)
        .order_by(LoyaltyPoint.created_at.desc(), LoyaltyPoint.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


def points_value(points: int, config: LoyaltySettings) -> float:
    return round(points / config.redeemRate * config.redeemValue, 2)


def points_for_total(total: float, config: LoyaltySettings) -> int:
    return math.floor(total * config.earnRate)


async def redemption_discount(
    db: AsyncSession,
    user_id: Optional[int],
    points: int,
    cap: float,
    config: LoyaltySettings,
) -> float:
    """
    Validate a redemption request and return its discount.

    Raises:
        BadRequestError: Program disabled, no customer, below minimum or above balance
    """
    if not config.enabled:
        raise BadRequestError("Loyalty program is disabled")
    if user_id is None:
        raise BadRequestError("Loyalty points need a customer account")
    if points < config.minRedeemPoints:
        raise BadRequestError(f"Minimum redemption is {config.minRedeemPoints} points")
    balance = await get_balance(db, user_id)
    if points > balance:
        raise BadRequestError(f"Insufficient points: balance is {balance}")
    return min(points_value(points, config), round(cap, 2))


def add_entry(
    db: AsyncSession,
    user_id: int,
    order_id: Optional[int],
    points: int,
    entry_type: LoyaltyEntryType,
    config: LoyaltySettings,
    description: Optional[str] = None,
) -> LoyaltyPoint:
    entry = LoyaltyPoint(
        user_id=user_id,
        order_id=order_id,
        points=points,
        type=entry_type,
        description=description,
        expires_at=utcnow() + timedelta(days=config.pointExpiryDays),
    )
    db.add(entry)
    logger.info(f"⭐ {entry_type.value} {points} points for user {user_id}")
    return entry


async def reverse_order_entries(db: AsyncSession, order_id: int) -> int:
    """Drop every ledger entry of a cancelled order, restoring the balance."""
    result = await db.execute(delete(LoyaltyPoint).where(LoyaltyPoint.order_id == order_id))
    return result.rowcount
