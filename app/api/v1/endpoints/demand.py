from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
import logging
from app.api.deps import get_forecaster
from app.database.database import get_db
from app.models.blood_type import BloodType
from app.schemas.demand import DemandForecastResponse, RecommendationResponse

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/", response_model=List[DemandForecastResponse])
def get_forecasts(db: Session = Depends(get_db), forecaster=Depends(get_forecaster)):
    return forecaster.get_forecasts(db)

@router.post("/recompute", response_model=List[DemandForecastResponse])
def recompute_all(db: Session = Depends(get_db), forecaster=Depends(get_forecaster)):
    """Recompute forecasts for every blood type."""
    forecasts = forecaster.recompute_all(db)
    logger.info(f"Recomputed {len(forecasts)} demand forecasts")
    return forecasts

@router.post("/recompute/{blood_type}", response_model=DemandForecastResponse)
def recompute(blood_type: BloodType, db: Session = Depends(get_db), forecaster=Depends(get_forecaster)):
    return forecaster.recompute(db, blood_type)

@router.get("/recommendation", response_model=RecommendationResponse)
def get_recommendation(
    blood_type: Optional[BloodType] = None,
    db: Session = Depends(get_db),
    forecaster=Depends(get_forecaster)
):
    """Donor outreach message for `blood_type`, or for the most urgent type when omitted."""
    recommendation = forecaster.targeted_donor_recommendation(db, blood_type)
    return RecommendationResponse(blood_type=recommendation.blood_type, message=recommendation.message)
