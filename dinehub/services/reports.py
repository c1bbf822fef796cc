"""Restaurant dashboard figures and spreadsheet exports of orders."""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.core.exceptions import BadRequestError
from dinehub.models import DiningTable, Order, OrderStatus
from dinehub.schemas import DashboardResponse, OrderResponse
from dinehub.services import orders as orders_service
from dinehub.services.excel_manager import ExcelManager

logger = logging.getLogger(__name__)

RANGES = ("today", "week", "month", "custom")


async def dashboard(db: AsyncSession, restaurant_id: int, recent: int = 10) -> DashboardResponse:
    counts = dict((await db.execute(
        select(Order.status, func.count(Order.id))
        .where(Order.restaurant_id == restaurant_id)
        .group_by(Order.status)
    )).all())
    total_orders = sum(counts.values())

    revenue, billed = (await db.execute(
        select(func.coalesce(func.sum(Order.total_amount), 0.0), func.count(Order.id))
        .where(Order.restaurant_id == restaurant_id, Order.status != OrderStatus.CANCELLED)
    )).one()

    stats = await orders_service.order_stats(db, restaurant_id)
    tables_total = (await db.execute(
        select(func.count(DiningTable.id))
        .where(DiningTable.restaurant_id == restaurant_id, DiningTable.is_active.is_(True))
    )).scalar() or 0

    _, latest = await orders_service.list_orders(db, restaurant_id, limit=recent)

    return DashboardResponse(
        total_orders=total_orders,
        open_orders=stats.open_orders,
        completed_orders=counts.get(OrderStatus.COMPLETED, 0),
        cancelled_orders=counts.get(OrderStatus.CANCELLED, 0),
        today_orders=stats.today_orders,
        today_revenue=stats.today_revenue,
        avg_order_value=round(float(revenue) / billed, 2) if billed else 0.0,
        tables_total=tables_total,
        tables_occupied=stats.occupied_tables,
        occupancy_rate=round(stats.occupied_tables / tables_total * 100, 1) if tables_total else 0.0,
        recent_orders=[OrderResponse.model_validate(o) for o in latest],
    )


def resolve_range(
    range_name: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    today: Optional[date] = None,
) -> tuple[datetime, datetime]:
    """
    Turn a named range into ``[from, to)`` datetimes.

    ``week`` is the last seven days including today, ``month`` the calendar
    month so far, ``custom`` the inclusive ``start``..``end`` dates.
    """
    today = today or orders_service.today_start().date()
    if range_name == "today":
        first, last = today, today
    elif range_name == "week":
        first, last = today - timedelta(days=6), today
    elif range_name == "month":
        first, last = today.replace(day=1), today
    elif range_name == "custom":
        if start is None or end is None:
            raise BadRequestError("Custom range needs start and end dates")
        if end < start:
            raise BadRequestError("End date must not be before start date")
        first, last = start, end
    else:
        raise BadRequestError(f"Invalid range. Options: {list(RANGES)}")
    return datetime.combine(first, time.min), datetime.combine(last + timedelta(days=1), time.min)


async def export_orders(
    db: AsyncSession,
    restaurant_id: int,
    range_name: str = "today",
    status: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> tuple[str, bytes]:
    """
    Build an ``.xlsx`` of the restaurant's orders in a date range.

    Returns:
        (filename, workbook bytes)
    """
    window_start, window_end = resolve_range(range_name, start, end)
    query = (
        select(Order)
        .where(
            Order.restaurant_id == restaurant_id,
            Order.created_at >= window_start,
            Order.created_at < window_end,
        )
        .order_by(Order.created_at, Order.id)
    )
    if status:
        query = query.where(Order.status == orders_service.parse_status(status))

    result = await db.execute(query)
    rows = [orders_service.order_ledger_row(o) for o in result.scalars()]
    content = ExcelManager.build_orders_report(rows)

    filename = f"orders_{restaurant_id}_{range_name}_{window_start:%Y%m%d}.xlsx"
    logger.info(f"📊 Exported {len(rows)} orders for restaurant {restaurant_id} ({range_name})")
    return filename, content

