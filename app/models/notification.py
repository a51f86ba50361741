from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database.database import Base
from app.models.blood_type import blood_type_column, enum_values
import enum

class NotificationEvent(str, enum.Enum):
    DONATION = "donation"
    APPOINTMENT = "appointment"
    LOW_STOCK = "low_stock"
    ELIGIBILITY = "eligibility"
    REQUEST = "request"
    MATCH = "match"

class NotificationChannel(str, enum.Enum):
    EMAIL = "email"
    SMS = "sms"
    APP = "app"

class DeliveryStatus(str, enum.Enum):
    SENT = "sent"
    SIMULATED = "simulated"  # no email gateway configured
    FAILED = "failed"
    SKIPPED = "skipped"  # invalid address

class NotificationLog(Base):
    __tablename__ = "notification_history"

    id = Column(Integer, primary_key=True, index=True)
    recipient = Column(String, nullable=False, index=True)
    subject = Column(String, nullable=True)
    message = Column(Text, nullable=False)
    event = Column(Enum(NotificationEvent, name="notification_event", values_callable=enum_values), nullable=False)
    channel = Column(
        Enum(NotificationChannel, name="notification_channel", values_callable=enum_values),
        nullable=False,
        default=NotificationChannel.EMAIL
    )
    status = Column(Enum(DeliveryStatus, name="delivery_status", values_callable=enum_values), nullable=False)
    blood_type = Column(blood_type_column, nullable=True)
    units = Column(Integer, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), unique=True, nullable=False)
    email = Column(Boolean, nullable=False, default=True)
    sms = Column(Boolean, nullable=False, default=False)
    app = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    profile = relationship("Profile", back_populates="notification_preference")
