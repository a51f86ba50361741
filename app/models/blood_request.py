from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from app.database.database import Base
from app.models.blood_type import blood_type_column, enum_values
import enum

class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    FULFILLED = "fulfilled"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

class PriorityLevel(str, enum.Enum):
    """Shared by request priority and forecast urgency."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

priority_level_column = Enum(PriorityLevel, name="priority_level", values_callable=enum_values)

# Allowed status changes; anything else is an InvalidTransitionError
REQUEST_TRANSITIONS = {
    RequestStatus.PENDING: {RequestStatus.APPROVED, RequestStatus.REJECTED, RequestStatus.CANCELLED},
    RequestStatus.APPROVED: {RequestStatus.FULFILLED, RequestStatus.CANCELLED},
    RequestStatus.FULFILLED: set(),
    RequestStatus.REJECTED: set(),
    RequestStatus.CANCELLED: set(),
}

# Requests whose units still count as outstanding demand
OPEN_REQUEST_STATUSES = (RequestStatus.PENDING, RequestStatus.APPROVED)

class BloodRequest(Base):
    __tablename__ = "blood_requests"

    id = Column(Integer, primary_key=True, index=True)
    hospital_id = Column(Integer, ForeignKey("hospitals.id"), nullable=False, index=True)
    blood_type = Column(blood_type_column, nullable=False, index=True)
    units = Column(Integer, nullable=False)
    priority = Column(priority_level_column, nullable=False, default=PriorityLevel.MEDIUM)
    status = Column(
        Enum(RequestStatus, name="request_status", values_callable=enum_values),
        nullable=False,
        default=RequestStatus.PENDING,
        index=True
    )
    request_date = Column(DateTime, nullable=False)
    approval_date = Column(DateTime, nullable=True)
    fulfillment_date = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    # Relationships
    hospital = relationship("Hospital", back_populates="requests")

    @property
    def hospital_name(self) -> str:
        return self.hospital.name if self.hospital else "Unknown Hospital"
