from sqlalchemy import Column, Integer, DateTime, ForeignKey, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from app.database.database import Base
from app.models.blood_type import blood_type_column, enum_values
import enum

class BatchStatus(str, enum.Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    USED = "used"
    EXPIRED = "expired"

class InventoryBatch(Base):
    __tablename__ = "blood_inventory"
    __table_args__ = (
        CheckConstraint("units >= 0", name="ck_blood_inventory_units_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    donor_id = Column(Integer, ForeignKey("donor_profiles.id"), nullable=True, index=True)
    blood_type = Column(blood_type_column, nullable=False, index=True)
    units = Column(Integer, nullable=False, default=1)
    donation_date = Column(DateTime, nullable=False)
    expiry_date = Column(DateTime, nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("donation_centers.id"), nullable=True)
    status = Column(
        Enum(BatchStatus, name="batch_status", values_callable=enum_values),
        nullable=False,
        default=BatchStatus.AVAILABLE,
        index=True
    )
    # Bumped on every UPDATE; a concurrent writer gets StaleDataError
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    donor = relationship("DonorProfile", back_populates="batches")
    center = relationship("DonationCenter", back_populates="batches")
