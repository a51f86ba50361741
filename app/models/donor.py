from sqlalchemy import Column, Integer, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database.database import Base
from app.models.blood_type import blood_type_column

class DonorProfile(Base):
    __tablename__ = "donor_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=True, index=True)
    blood_type = Column(blood_type_column, nullable=False, index=True)
    last_donation_date = Column(DateTime, nullable=True)  # UTC, null if never donated
    eligible_to_donate = Column(Boolean, nullable=False, default=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    profile = relationship("Profile", back_populates="donor")
    batches = relationship("InventoryBatch", back_populates="donor", lazy="dynamic")
    appointments = relationship("DonationAppointment", back_populates="donor", lazy="dynamic")

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def name(self) -> str:
        return self.profile.full_name if self.profile else "Unknown"

    @property
    def email(self):
        return self.profile.email if self.profile else None

    @property
    def phone(self):
        return self.profile.phone if self.profile else None
