from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from app.models.blood_type import BloodType
from app.models.notification import NotificationEvent, NotificationChannel, DeliveryStatus

class NotificationPreferences(BaseModel):
    email: bool = True
    sms: bool = False
    app: bool = True

class NotificationLogResponse(BaseModel):
    id: int
    recipient: str
    subject: Optional[str] = None
    message: str
    event: NotificationEvent
    channel: NotificationChannel
    status: DeliveryStatus
    blood_type: Optional[BloodType] = None
    units: Optional[int] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class LowStockNotifyResponse(BaseModel):
    blood_type: BloodType
    current_units: int
    notified: int
