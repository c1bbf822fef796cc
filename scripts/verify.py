"""
Excel Ledger Verification Script

Verifies data integrity of the completed-orders ledger written by the
Celery worker.
Run from project root: python scripts/verify.py
"""

import os
import sys
from datetime import datetime

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from dinehub.services.excel_manager import ExcelManager

REQUIRED_COLUMNS = ["order_number", "restaurant_id", "order_type", "total_amount", "order_status"]


def verify_excel() -> bool:
    """Verify the ledger after orders have been completed."""
    ledger = ExcelManager.ledger_path()

    print("=" * 60)
    print("🔍 EXCEL LEDGER VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {ledger}")
    print("=" * 60)

    if not ledger.exists():
        print("\n❌ Ledger not found!")
        print("   Complete some orders with the API and Celery worker running.")
        return False

    try:
        df = pd.read_excel(ledger, engine="openpyxl")
        print("\n✅ File loaded successfully!")
    except (ValueError, OSError) as e:
        print(f"\n❌ Could not read ledger: {e}")
        return False

    print("\n📊 STATISTICS:")
    print(f"   Total Orders: {len(df)}")
    print(f"   Columns: {len(df.columns)}")

    ok = True
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        print(f"\n⚠️ Missing Columns: {missing}")
        ok = False
    else:
        print("\n✅ All required columns present")

    if "order_number" in df.columns:
        duplicates = df["order_number"].duplicated().sum()
        if duplicates > 0:
            print(f"\n⚠️ {duplicates} duplicate order numbers found!")
            ok = False
        else:
            print("✅ No duplicate order numbers")

    if "order_status" in df.columns:
        not_completed = (df["order_status"] != "completed").sum()
        if not_completed:
            print(f"⚠️ {not_completed} rows are not completed orders")
            ok = False

    if "total_amount" in df.columns and len(df) > 0:
        print("\n💰 REVENUE:")
        print(f"   Total: ${df['total_amount'].sum():.2f}")
        print(f"   Average: ${df['total_amount'].mean():.2f}")
        if "restaurant_id" in df.columns:
            for restaurant_id, total in df.groupby("restaurant_id")["total_amount"].sum().items():
                print(f"   Restaurant {restaurant_id}: ${total:.2f}")

    print("\n📋 RECENT ORDERS:")
    print("-" * 60)
    if len(df) > 0:
        cols = ["order_number", "order_type", "table_number", "total_amount", "completed_at"]
        cols = [c for c in cols if c in df.columns]
        print(df[cols].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if ok else "⚠️ VERIFICATION FOUND ISSUES")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    sys.exit(0 if verify_excel() else 1)
