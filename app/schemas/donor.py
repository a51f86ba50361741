from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from app.models.blood_type import BloodType
from app.models.donation_appointment import AppointmentStatus
from app.core.clock import to_naive_utc

class DonorBase(BaseModel):
    blood_type: BloodType
    last_donation_date: Optional[datetime] = None
    eligible_to_donate: bool = True
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator("last_donation_date")
    @classmethod
    def normalize_last_donation_date(cls, v):
        return to_naive_utc(v)

class DonorCreate(DonorBase):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

class DonorUpdate(BaseModel):
    eligible_to_donate: Optional[bool] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    phone: Optional[str] = None
    email: Optional[str] = None

class DonorResponse(DonorBase):
    id: int
    user_id: Optional[int] = None
    name: str = "Unknown"
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class DonorEligibilityResponse(BaseModel):
    donor_id: int
    eligible_to_donate: bool
    eligible_to_notify: bool
    days_until_eligible: int
    last_donation_date: Optional[datetime] = None
    next_eligible_date: Optional[datetime] = None

class DonationCreate(BaseModel):
    blood_type: BloodType
    center_id: int
    appointment_id: Optional[int] = None

class AppointmentCreate(BaseModel):
    center_id: int
    appointment_date: datetime
    time_slot: str = "morning"

    @field_validator("appointment_date")
    @classmethod
    def normalize_appointment_date(cls, v):
        return to_naive_utc(v)

class AppointmentResponse(BaseModel):
    id: int
    donor_id: int
    center_id: int
    appointment_date: datetime
    time_slot: Optional[str] = None
    status: AppointmentStatus

    class Config:
        from_attributes = True
