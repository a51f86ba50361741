from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from app.database.database import Base
from app.models.blood_type import enum_values
import enum

class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

class DonationAppointment(Base):
    __tablename__ = "donation_appointments"

    id = Column(Integer, primary_key=True, index=True)
    donor_id = Column(Integer, ForeignKey("donor_profiles.id"), nullable=False, index=True)
    center_id = Column(Integer, ForeignKey("donation_centers.id"), nullable=False)
    appointment_date = Column(DateTime, nullable=False)
    time_slot = Column(String, nullable=True)  # e.g. "morning"
    status = Column(
        Enum(AppointmentStatus, name="appointment_status", values_callable=enum_values),
        nullable=False,
        default=AppointmentStatus.SCHEDULED
    )

    # Relationships
    donor = relationship("DonorProfile", back_populates="appointments")
    center = relationship("DonationCenter")
