from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
import logging
from app.api.deps import get_clock, get_inventory_ledger, get_notification_service
from app.database.database import get_db
from app.models.blood_type import BloodType
from app.models.notification import NotificationEvent
from app.schemas.notification import (
    LowStockNotifyResponse,
    NotificationLogResponse,
    NotificationPreferences,
)

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/history", response_model=List[NotificationLogResponse])
def get_history(
    limit: int = 100,
    event: Optional[NotificationEvent] = None,
    db: Session = Depends(get_db),
    notifier=Depends(get_notification_service)
):
    """Sent, simulated, failed and skipped notifications, newest first."""
    return notifier.get_history(db, limit=limit, event=event)

@router.get("/preferences/{user_id}", response_model=NotificationPreferences)
def get_preferences(user_id: int, db: Session = Depends(get_db), notifier=Depends(get_notification_service)):
    return notifier.get_preferences(db, user_id)

@router.put("/preferences/{user_id}", response_model=NotificationPreferences)
def save_preferences(
    user_id: int,
    preferences: NotificationPreferences,
    db: Session = Depends(get_db),
    notifier=Depends(get_notification_service)
):
    return notifier.save_preferences(db, user_id, preferences.email, preferences.sms, preferences.app)

@router.post("/low-stock/{blood_type}", response_model=LowStockNotifyResponse)
def notify_low_stock(
    blood_type: BloodType,
    db: Session = Depends(get_db),
    ledger=Depends(get_inventory_ledger),
    notifier=Depends(get_notification_service),
    clock=Depends(get_clock)
):
    """Ask eligible compatible donors to come in for `blood_type`."""
    current_units = ledger.available_units(db, blood_type)
    notified = notifier.notify_low_stock_donors(db, blood_type, current_units, clock.now())
    return LowStockNotifyResponse(blood_type=blood_type, current_units=current_units, notified=notified)
