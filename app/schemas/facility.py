from pydantic import BaseModel, Field
from typing import Optional

class HospitalCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    is_active: bool = True

class HospitalResponse(HospitalCreate):
    id: int

    class Config:
        from_attributes = True

class DonationCenterCreate(BaseModel):
    name: str = Field(..., min_length=1)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

class DonationCenterResponse(DonationCenterCreate):
    id: int

    class Config:
        from_attributes = True
