from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from app.models.blood_type import BloodType
from app.models.blood_request import PriorityLevel, RequestStatus
from app.schemas.matching import MatchResultResponse

class BloodRequestCreate(BaseModel):
    hospital_id: int
    blood_type: BloodType
    units: int = Field(..., gt=0)
    priority: PriorityLevel = PriorityLevel.MEDIUM
    notes: Optional[str] = None

class BloodRequestResponse(BaseModel):
    id: int
    hospital_id: int
    hospital_name: str
    blood_type: BloodType
    units: int
    priority: PriorityLevel
    status: RequestStatus
    request_date: datetime
    approval_date: Optional[datetime] = None
    fulfillment_date: Optional[datetime] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True

class NotifyDonorsRequest(BaseModel):
    donor_ids: List[int] = Field(..., min_length=1)

class NotifyDonorsResponse(BaseModel):
    request_id: int
    requested: int
    notified: int
    skipped: List[int]
    delivered: bool

class BloodRequestCreatedResponse(BloodRequestResponse):
    # Present for high and critical requests, which are matched on creation
    matches: Optional[MatchResultResponse] = None
