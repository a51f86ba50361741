#!/usr/bin/env python3
"""
Daily stock maintenance:
- marks batches past their expiry date as expired
- recomputes the demand forecast for every blood type
- emails eligible compatible donors for each low-stock blood type (with --notify)

Usage: python scripts/daily_stock_check.py
       python scripts/daily_stock_check.py --notify
"""
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.clock import system_clock
from app.core.exceptions import BloodBankError
from app.core.logging import logger
from app.database.database import SessionLocal, init_db
from app.models.blood_type import BloodType
from app.services.demand_forecast_service import demand_forecast_service
from app.services.inventory_service import inventory_ledger
from app.services.notification_service import notification_service


def run(notify: bool = False) -> int:
    init_db()
    db = SessionLocal()
    try:
        expired = inventory_ledger.expire_stale_batches(db)
        print(f"Expired batches:  {expired}")

        forecasts = demand_forecast_service.recompute_all(db)
        urgent = [f.blood_type.value for f in forecasts if f.short_term_demand > f.current_stock]
        print(f"Forecasts:        {len(forecasts)} updated, demand above stock for {urgent or 'none'}")

        summary = inventory_ledger.get_inventory(db)
        print(f"Low stock types:  {summary.low_stock_types or 'none'}")

        if notify:
            for label in summary.low_stock_types:
                notified = notification_service.notify_low_stock_donors(
                    db, BloodType(label), summary.totals[label], system_clock.now()
                )
                print(f"  {label}: notified {notified} donor(s)")
        return 0
    except BloodBankError as e:
        logger.error(f"Daily stock check failed: {e.message}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(run(notify="--notify" in sys.argv))
