from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
import logging
from app.api.deps import get_inventory_ledger
from app.database.database import get_db
from app.models.blood_inventory import BatchStatus
from app.models.blood_type import BloodType
from app.schemas.inventory import (
    AvailableUnitsResponse,
    BatchResponse,
    ExpireResponse,
    InventorySummaryResponse,
    StockAlertResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/", response_model=InventorySummaryResponse)
def get_inventory(db: Session = Depends(get_db), ledger=Depends(get_inventory_ledger)):
    """Usable batches (soonest expiry first) with per-type totals and low-stock types."""
    summary = ledger.get_inventory(db)
    return InventorySummaryResponse(
        batches=[BatchResponse.model_validate(batch) for batch in summary.batches],
        totals=summary.totals,
        low_stock_types=summary.low_stock_types,
    )

@router.get("/batches", response_model=List[BatchResponse])
def list_batches(
    blood_type: Optional[BloodType] = None,
    status: Optional[BatchStatus] = None,
    db: Session = Depends(get_db),
    ledger=Depends(get_inventory_ledger)
):
    """All batches including used and expired ones (audit trail)."""
    return ledger.list_batches(db, blood_type=blood_type, status=status)

@router.get("/batches/{batch_id}", response_model=BatchResponse)
def get_batch(batch_id: int, db: Session = Depends(get_db), ledger=Depends(get_inventory_ledger)):
    return ledger.get_batch(db, batch_id)

@router.get("/alerts", response_model=List[StockAlertResponse])
def get_stock_alerts(db: Session = Depends(get_db), ledger=Depends(get_inventory_ledger)):
    """Low stock, high predicted demand and soon-to-expire units."""
    return [StockAlertResponse(**vars(alert)) for alert in ledger.get_stock_alerts(db)]

@router.get("/available/{blood_type}", response_model=AvailableUnitsResponse)
def get_available_units(
    blood_type: BloodType,
    db: Session = Depends(get_db),
    ledger=Depends(get_inventory_ledger)
):
    return AvailableUnitsResponse(blood_type=blood_type, available_units=ledger.available_units(db, blood_type))

@router.post("/expire", response_model=ExpireResponse)
def expire_stale_batches(db: Session = Depends(get_db), ledger=Depends(get_inventory_ledger)):
    """Mark batches past their expiry date as expired."""
    expired = ledger.expire_stale_batches(db)
    logger.info(f"Expiry sweep marked {expired} batch(es)")
    return ExpireResponse(expired=expired)
