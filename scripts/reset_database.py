#!/usr/bin/env python3
"""
Script to reset the operational blood bank data.
This will delete:
- All inventory batches (including used and expired ones)
- All blood requests
- All demand forecasts
- All notification history

This script preserves:
- Donor profiles and contact details
- Hospitals and donation centers
- Notification preferences

WARNING: This is a destructive operation that cannot be undone!

Usage: python scripts/reset_database.py
       python scripts/reset_database.py --confirm  # Skip confirmation prompt
"""
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.database.database import SessionLocal, init_db
from app.models.blood_inventory import InventoryBatch
from app.models.blood_request import BloodRequest
from app.models.notification import NotificationLog
from app.models.predictive_demand import DemandForecast


def reset_database(skip_confirmation: bool = False):
    """
    Remove inventory, requests, forecasts and notification history.

    Args:
        skip_confirmation: If True, skip the confirmation prompt
    """
    init_db()
    db = SessionLocal()

    try:
        batch_count = db.query(InventoryBatch).count()
        request_count = db.query(BloodRequest).count()
        forecast_count = db.query(DemandForecast).count()
        notification_count = db.query(NotificationLog).count()

        print("=" * 60)
        print("DATABASE RESET - Current Data Summary")
        print("=" * 60)
        print(f"Inventory batches:     {batch_count}")
        print(f"Blood requests:        {request_count}")
        print(f"Demand forecasts:      {forecast_count}")
        print(f"Notification history:  {notification_count}")
        print("=" * 60)

        if batch_count + request_count + forecast_count + notification_count == 0:
            print("Database is already empty. Nothing to reset.")
            return

        if not skip_confirmation:
            print("\nWARNING: This will PERMANENTLY DELETE all inventory and request data!")
            print("   Donors, hospitals and donation centers are preserved.")
            response = input("\n   Are you absolutely sure you want to proceed? (type 'RESET' to confirm): ")
            if response != "RESET":
                print("Operation cancelled")
                return

        print("\nDeleting notification history...")
        notifications_deleted = db.query(NotificationLog).delete(synchronize_session=False)
        print("Deleting demand forecasts...")
        forecasts_deleted = db.query(DemandForecast).delete(synchronize_session=False)
        print("Deleting blood requests...")
        requests_deleted = db.query(BloodRequest).delete(synchronize_session=False)
        print("Deleting inventory batches...")
        batches_deleted = db.query(InventoryBatch).delete(synchronize_session=False)

        db.commit()

        print("\n" + "=" * 60)
        print("DATABASE RESET COMPLETE")
        print("=" * 60)
        print(f"Inventory batches deleted:     {batches_deleted}")
        print(f"Blood requests deleted:        {requests_deleted}")
        print(f"Demand forecasts deleted:      {forecasts_deleted}")
        print(f"Notification entries deleted:  {notifications_deleted}")

    except Exception as e:
        print(f"\nError resetting database: {e}")
        import traceback
        traceback.print_exc()
        db.rollback()
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    skip_confirmation = "--confirm" in sys.argv or "-y" in sys.argv

    try:
        reset_database(skip_confirmation=skip_confirmation)
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user")
        sys.exit(1)
