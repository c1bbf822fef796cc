"""
Excel File Manager with Concurrency Control

Process-safe Excel operations for:
- The completed-orders ledger appended by the Celery worker
- Order report downloads built in memory for the export endpoint
"""

import io
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

import pandas as pd
from filelock import FileLock, Timeout

from dinehub.core.config import get_settings

logger = logging.getLogger(__name__)

LEDGER_FILENAME = "orders_ledger.xlsx"


def _items_summary(items: Any) -> str:
    """Render the serialized items as "2x Margherita, 1x Tiramisu"."""
    if isinstance(items, str):
        try:
            items = json.loads(items)
        except json.JSONDecodeError:
            return items
    return ", ".join(f"{i.get('quantity', 1)}x {i.get('name', '?')}" for i in items or [])


class ExcelManager:
    """Excel ledger guarded by a file lock shared between worker processes."""

    ORDER_COLUMNS = [
        "order_id",
        "order_number",
        "restaurant_id",
        "order_type",
        "date_time",
        "completed_at",
        "table_number",
        "customer_name",
        "customer_phone",
        "customer_email",
        "items",
        "notes",
        "subtotal",
        "tax",
        "discount",
        "total_amount",
        "currency",
        "payment_status",
        "payment_method",
        "payment_intent_id",
        "order_status",
        "exported_at",
    ]

    @staticmethod
    def _data_dir() -> Path:
        return Path(get_settings().data_directory)

    @classmethod
    def ledger_path(cls) -> Path:
        return cls._data_dir() / LEDGER_FILENAME

    @classmethod
    def _lock_path(cls) -> Path:
        return cls._data_dir() / f"{LEDGER_FILENAME}.lock"

    @classmethod
    def _ensure_data_dir(cls) -> None:
        """Create data directory if needed."""
        data_dir = cls._data_dir()
        if not data_dir.exists():
            data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {data_dir}")

    @classmethod
    def _load_or_create_df(cls, file_path: Path, columns: list) -> pd.DataFrame:
        """Load existing file or create new DataFrame."""
        if file_path.exists():
            try:
                return pd.read_excel(file_path, engine="openpyxl")
            except (ValueError, OSError) as e:
                logger.warning(f"Error reading {file_path}: {e}")
        return pd.DataFrame(columns=columns)

    @classmethod
    def _row(cls, order_data: dict[str, Any], export_time: str) -> dict[str, Any]:
        row = {column: order_data.get(column) for column in cls.ORDER_COLUMNS}
        row["date_time"] = order_data.get("created_at", export_time)
        row["items"] = _items_summary(order_data.get("items"))
        row["order_status"] = order_data.get("order_status") or order_data.get("status")
        row["exported_at"] = export_time
        return row

    @classmethod
    def export_order(cls, order_data: dict[str, Any]) -> dict[str, Any]:
        """
        Append one completed order to the ledger.

        An order number already in the ledger is not written twice, so a
        retried task is harmless.
        """
        cls._ensure_data_dir()
        timeout = get_settings().excel_lock_timeout

        order_number = order_data.get("order_number", "unknown")
        result = {
            "success": False,
            "message": "",
            "order_number": order_number,
            "exported_at": None,
        }

        try:
            with FileLock(str(cls._lock_path()), timeout=timeout):
                logger.debug(f"Lock acquired for {order_number}")

                df = cls._load_or_create_df(cls.ledger_path(), cls.ORDER_COLUMNS)
                if "order_number" in df.columns and order_number in set(df["order_number"].astype(str)):
                    result["success"] = True
                    result["message"] = f"{order_number} already exported"
                    return result

                export_time = datetime.now().isoformat()
                df = pd.concat([df, pd.DataFrame([cls._row(order_data, export_time)])], ignore_index=True)
                df.to_excel(str(cls.ledger_path()), index=False, engine="openpyxl")

                logger.info(f"📊 Order {order_number} exported to Excel")

                result["success"] = True
                result["message"] = f"{order_number} exported"
                result["exported_at"] = export_time

        except Timeout:
            result["message"] = f"Lock timeout ({timeout}s)"
            logger.error(f"Lock timeout for {order_number}")

        return result

    @classmethod
    def get_all_orders(cls) -> list[dict[str, Any]]:
        """Get all ledger rows."""
        path = cls.ledger_path()
        if not path.exists():
            return []
        return pd.read_excel(path, engine="openpyxl").to_dict("records")

    @classmethod
    def build_orders_report(cls, orders: Iterable[dict[str, Any]], sheet_name: str = "Orders") -> bytes:
        """
        Render order rows to an in-memory ``.xlsx`` workbook.

        Returns:
            Workbook bytes, ready to stream as a download
        """
        export_time = datetime.now().isoformat()
        df = pd.DataFrame(
            [cls._row(order, export_time) for order in orders],
            columns=cls.ORDER_COLUMNS,
        )
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name=sheet_name)
        return buffer.getvalue()
