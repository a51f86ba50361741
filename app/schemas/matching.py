from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from app.models.blood_type import BloodType

class Location(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

class MatchRequest(BaseModel):
    blood_type: BloodType
    location: Optional[Location] = None
    units_needed: int = Field(1, gt=0)

class MatchedDonorResponse(BaseModel):
    id: int
    name: str
    blood_type: BloodType
    distance_km: Optional[float] = None  # null when the donor's location is unknown
    last_donation_date: Optional[datetime] = None
    eligible_to_notify: bool
    days_until_eligible: int
    exact_match: bool
    score: float
    rank: int
    email: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        from_attributes = True

class MatchResultResponse(BaseModel):
    blood_type: BloodType
    units_needed: int
    donors: List[MatchedDonorResponse]
    total_matches: int
    error: Optional[str] = None

class CompatibilityResponse(BaseModel):
    blood_type: BloodType
    compatible_donors: List[BloodType]
    compatible_recipients: List[BloodType]
