"""Loyalty balance and history of the signed-in customer."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.database import get_db
from dinehub.dependencies import AuthContext, get_current_user
from dinehub.schemas import LoyaltyBalanceResponse, LoyaltyEntryResponse
from dinehub.services import loyalty as loyalty_service
from dinehub.services import settings as settings_service

router = APIRouter(prefix="/api/loyalty", tags=["Loyalty"])


@router.get("/balance", response_model=LoyaltyBalanceResponse)
async def my_balance(
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> LoyaltyBalanceResponse:
    config = await settings_service.get_loyalty_settings(db)
    return LoyaltyBalanceResponse(
        user_id=ctx.user.id,
        enabled=config.enabled,
        balance=await loyalty_service.get_balance(db, ctx.user.id),
        redeem_value_per_point=loyalty_service.points_value(1, config),
    )


@router.get("/history", response_model=list[LoyaltyEntryResponse])
async def my_history(
    limit: int = Query(50, ge=1, le=200),
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[LoyaltyEntryResponse]:
    entries = await loyalty_service.get_history(db, ctx.user.id, limit)
    return [LoyaltyEntryResponse.model_validate(e) for e in entries]
