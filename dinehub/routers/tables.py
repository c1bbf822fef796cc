"""Dining table endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.database import get_db
from dinehub.dependencies import MANAGEMENT_ROLES, STAFF_ROLES, AuthContext, require_roles, resolve_restaurant_id
from dinehub.schemas import (
    ErrorResponse,
    TableAvailabilityResponse,
    TableCreate,
    TableResponse,
    TableStatusUpdate,
)
from dinehub.services import tables as tables_service

router = APIRouter(prefix="/api/tables", tags=["Tables"])

management = require_roles(*MANAGEMENT_ROLES)
staff = require_roles(*STAFF_ROLES)


@router.post(
    "",
    response_model=TableResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_table(
    data: TableCreate,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> TableResponse:
    table = await tables_service.create_table(db, resolve_restaurant_id(ctx, restaurant_id), data)
    return TableResponse.model_validate(table)


@router.get("", response_model=list[TableResponse])
async def list_tables(
    restaurant_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    ctx: AuthContext = Depends(staff),
    db: AsyncSession = Depends(get_db),
) -> list[TableResponse]:
    tables = await tables_service.list_tables(db, resolve_restaurant_id(ctx, restaurant_id), status)
    return [TableResponse.model_validate(t) for t in tables]


@router.get(
    "/availability/{restaurant_id}/{number}",
    response_model=TableAvailabilityResponse,
    summary="Check whether a table can be ordered at",
)
async def check_availability(
    restaurant_id: int,
    number: int,
    db: AsyncSession = Depends(get_db),
) -> TableAvailabilityResponse:
    """Public: used by the table-side ordering page before showing the menu."""
    return await tables_service.check_availability(db, restaurant_id, number)


@router.patch(
    "/{table_id}/status",
    response_model=TableResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_table_status(
    table_id: int,
    data: TableStatusUpdate,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(staff),
    db: AsyncSession = Depends(get_db),
) -> TableResponse:
    table = await tables_service.update_status(db, resolve_restaurant_id(ctx, restaurant_id), table_id, data.status)
    return TableResponse.model_validate(table)
