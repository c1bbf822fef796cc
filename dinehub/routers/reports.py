"""Dashboard and spreadsheet exports."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.database import get_db
from dinehub.dependencies import MANAGEMENT_ROLES, AuthContext, require_roles, resolve_restaurant_id
from dinehub.schemas import DashboardResponse, ErrorResponse
from dinehub.services import reports as reports_service

router = APIRouter(prefix="/api/reports", tags=["Reports"])

management = require_roles(*MANAGEMENT_ROLES)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/dashboard", response_model=DashboardResponse, summary="Restaurant dashboard")
async def dashboard(
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> DashboardResponse:
    return await reports_service.dashboard(db, resolve_restaurant_id(ctx, restaurant_id))


@router.get(
    "/orders/export",
    response_class=Response,
    responses={
        200: {"content": {XLSX_MEDIA_TYPE: {}}},
        400: {"model": ErrorResponse},
    },
    summary="Download orders as an Excel workbook",
)
async def export_orders(
    range: str = Query("today", pattern="^(today|week|month|custom)$"),
    status: Optional[str] = Query(None),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """``custom`` needs both ``start`` and ``end`` (inclusive dates)."""
    filename, content = await reports_service.export_orders(
        db, resolve_restaurant_id(ctx, restaurant_id), range, status, start, end
    )
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
