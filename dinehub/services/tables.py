"""
Dining Tables

A table is in exactly one of ``available``, ``occupied`` or ``reserved``.
Status changes made here broadcast ``tableUpdate``; changes made as part of
placing or closing an order go through ``occupy_table`` / ``release_table``
inside the caller's transaction and broadcast after its commit.
"""

import logging
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from dinehub import realtime
from dinehub.core.exceptions import BadRequestError, ConflictError, NotFoundError
from dinehub.database import utcnow
from dinehub.models import DiningTable, Order, OrderStatus, TableStatus
from dinehub.schemas import TableAvailabilityResponse, TableCreate

logger = logging.getLogger(__name__)

_SEATED_STATUSES = (OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY)


def parse_status(value: str) -> TableStatus:
    try:
        return TableStatus(value)
    except ValueError:
        valid = [s.value for s in TableStatus]
        raise BadRequestError(f"Invalid table status '{value}'. Options: {valid}")


def table_event(table: DiningTable) -> dict:
    return {
        "tableId": table.id,
        "number": table.number,
        "status": table.status.value,
        "timestamp": utcnow().isoformat(),
    }


async def create_table(db: AsyncSession, restaurant_id: int, data: TableCreate) -> DiningTable:
    table = DiningTable(restaurant_id=restaurant_id, number=data.number, capacity=data.capacity)
    db.add(table)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Table {data.number} already exists")
    await db.refresh(table)
    logger.info(f"🪑 Table {table.number} created for restaurant {restaurant_id}")
    return table


async def list_tables(db: AsyncSession, restaurant_id: int, status: Optional[str] = None) -> list[DiningTable]:
    query = (
        select(DiningTable)
        .where(DiningTable.restaurant_id == restaurant_id, DiningTable.is_active.is_(True))
        .order_by(DiningTable.number)
    )
    if status:
        query = query.where(DiningTable.status == parse_status(status))
    result = await db.execute(query)
    return list(result.scalars().all())


async def find_table(db: AsyncSession, restaurant_id: int, number: int) -> Optional[DiningTable]:
    result = await db.execute(
        select(DiningTable).where(
            DiningTable.restaurant_id == restaurant_id,
            DiningTable.number == number,
            DiningTable.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def check_availability(db: AsyncSession, restaurant_id: int, number: int) -> TableAvailabilityResponse:
    table = await find_table(db, restaurant_id, number)
    if table is None:
        return TableAvailabilityResponse(number=number, exists=False, available=False)
    return TableAvailabilityResponse(
        number=number,
        exists=True,
        available=table.status == TableStatus.AVAILABLE,
        status=table.status.value,
    )


async def occupy_table(db: AsyncSession, table: DiningTable) -> None:
    """
    Mark a table occupied inside the current transaction.

    The update only matches while the table is still available, so two
    orders racing for the same table cannot both succeed. Does not commit.

    Raises:
        ConflictError: The table is no longer available
    """
    result = await db.execute(
        update(DiningTable)
        .where(DiningTable.id == table.id, DiningTable.status == TableStatus.AVAILABLE)
        .values(status=TableStatus.OCCUPIED, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(f"Table {table.number} is not available")
    set_committed_value(table, "status", TableStatus.OCCUPIED)


async def release_table(db: AsyncSession, table_id: Optional[int]) -> Optional[DiningTable]:
    """
    Set a table back to available inside the current transaction. Does not commit.

    Call after the closing order's status is written. The table stays as it is
    while another order on it is still open.
    """
    if table_id is None:
        return None
    table = await db.get(DiningTable, table_id)
    if table is None:
        return None

    still_open = (await db.execute(
        select(func.count(Order.id))
        .where(Order.table_id == table_id, Order.status.in_(_SEATED_STATUSES))
    )).scalar()
    if still_open:
        logger.info(f"🪑 Table {table.number} kept: {still_open} open order(s) still seated")
        return None
    table.status = TableStatus.AVAILABLE
    return table


async def update_status(db: AsyncSession, restaurant_id: int, table_id: int, status: str) -> DiningTable:
    new_status = parse_status(status)
    table = await db.get(DiningTable, table_id)
    if table is None or table.restaurant_id != restaurant_id:
        raise NotFoundError("Table", table_id)

    table.status = new_status
    await db.commit()
    await db.refresh(table)
    logger.info(f"🪑 Table {table.number} -> {new_status.value}")

    await realtime.emit("tableUpdate", table_event(table), restaurant_id)
    return table
