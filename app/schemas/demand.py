from pydantic import BaseModel
from datetime import datetime
from app.models.blood_type import BloodType
from app.models.blood_request import PriorityLevel

class DemandForecastResponse(BaseModel):
    blood_type: BloodType
    short_term_demand: int
    medium_term_demand: int
    current_stock: int
    urgency_level: PriorityLevel
    last_updated: datetime

    class Config:
        from_attributes = True

class RecommendationResponse(BaseModel):
    blood_type: BloodType
    message: str
