from pydantic import BaseModel
from typing import Optional, List, Dict
from datetime import datetime
from app.models.blood_type import BloodType
from app.models.blood_inventory import BatchStatus

class BatchResponse(BaseModel):
    id: int
    donor_id: Optional[int] = None
    blood_type: BloodType
    units: int
    donation_date: datetime
    expiry_date: datetime
    location_id: Optional[int] = None
    status: BatchStatus

    class Config:
        from_attributes = True

class InventorySummaryResponse(BaseModel):
    batches: List[BatchResponse]
    totals: Dict[str, int]
    low_stock_types: List[str]

class StockAlertResponse(BaseModel):
    type: str
    blood_type: str
    message: str
    current_units: Optional[int] = None
    predicted_demand: Optional[int] = None
    count: Optional[int] = None

class AvailableUnitsResponse(BaseModel):
    blood_type: BloodType
    available_units: int

class ExpireResponse(BaseModel):
    expired: int
