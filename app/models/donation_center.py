from sqlalchemy import Column, Integer, String, Float
from sqlalchemy.orm import relationship
from app.database.database import Base

class DonationCenter(Base):
    __tablename__ = "donation_centers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    batches = relationship("InventoryBatch", back_populates="center", lazy="dynamic")
