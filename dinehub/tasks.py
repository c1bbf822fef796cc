"""
Celery Tasks
Background tasks: the completed-orders Excel ledger and the nightly
session purge.
"""

import asyncio
import logging
import time
from datetime import datetime

from dinehub.celery_worker import celery_app
from dinehub.services.excel_manager import ExcelManager

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(OSError,),
    retry_backoff=True
)
def export_order_to_excel(self, order_data: dict) -> dict:
    """
    Append a completed order to the Excel ledger.

    Args:
        order_data: Order row as produced by ``orders.order_ledger_row``

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    order_number = order_data.get('order_number', 'unknown')

    logger.info(f"📋 Task {task_id}: Exporting order {order_number}")
    start_time = time.time()

    result = ExcelManager.export_order(order_data)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if result['success']:
        logger.info(f"✅ Task {task_id}: Order {order_number} done in {elapsed}s")
    else:
        logger.warning(f"⚠️ Task {task_id}: Order {order_number} failed - {result['message']}")

    return result


async def _purge_expired_sessions() -> int:
    from dinehub.database import create_worker_session_maker
    from dinehub.services.auth import purge_expired_sessions as purge

    engine, session_maker = create_worker_session_maker()
    try:
        async with session_maker() as db:
            return await purge(db)
    finally:
        await engine.dispose()


@celery_app.task
def purge_expired_sessions() -> dict:
    """Delete sessions that expired longer ago than the retention window."""
    deleted = asyncio.run(_purge_expired_sessions())
    logger.info(f"🧹 Purged {deleted} expired sessions")
    return {
        'deleted': deleted,
        'timestamp': datetime.now().isoformat(),
    }
