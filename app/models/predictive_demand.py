from sqlalchemy import Column, Integer, DateTime
from app.database.database import Base
from app.models.blood_type import blood_type_column
from app.models.blood_request import PriorityLevel, priority_level_column

class DemandForecast(Base):
    __tablename__ = "predictive_demand"

    id = Column(Integer, primary_key=True, index=True)
    blood_type = Column(blood_type_column, unique=True, nullable=False)
    short_term_demand = Column(Integer, nullable=False, default=0)  # units in pending + approved requests
    medium_term_demand = Column(Integer, nullable=False, default=0)
    current_stock = Column(Integer, nullable=False, default=0)
    urgency_level = Column(priority_level_column, nullable=False, default=PriorityLevel.LOW)
    last_updated = Column(DateTime, nullable=False)
