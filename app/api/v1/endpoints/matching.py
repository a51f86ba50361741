from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging
from app.api.deps import get_matching_service
from app.database.database import get_db
from app.models.blood_type import BloodType
from app.schemas.matching import CompatibilityResponse, MatchRequest, MatchResultResponse
from app.services.compatibility import compatible_donors, compatible_recipients
from app.services.geo import GeoPoint

logger = logging.getLogger(__name__)
router = APIRouter()

def _sorted_types(types):
    order = list(BloodType)
    return sorted(types, key=order.index)

@router.post("/", response_model=MatchResultResponse)
def match_donors(
    match_request: MatchRequest,
    db: Session = Depends(get_db),
    matcher=Depends(get_matching_service)
):
    """Rank compatible donors for an ad-hoc need, optionally around a location."""
    location = None
    if match_request.location is not None:
        location = GeoPoint(match_request.location.latitude, match_request.location.longitude)
    result = matcher.find_matching_donors(
        db,
        match_request.blood_type,
        location=location,
        units_needed=match_request.units_needed,
    )
    return MatchResultResponse(
        blood_type=match_request.blood_type,
        units_needed=match_request.units_needed,
        donors=[donor.to_dict() for donor in result.donors],
        total_matches=len(result.donors),
        error=result.error,
    )

@router.get("/compatibility/{blood_type}", response_model=CompatibilityResponse)
async def get_compatibility(blood_type: BloodType):
    """Donor types a recipient of `blood_type` can receive, and recipients it can give to."""
    return CompatibilityResponse(
        blood_type=blood_type,
        compatible_donors=_sorted_types(compatible_donors(blood_type)),
        compatible_recipients=_sorted_types(compatible_recipients(blood_type)),
    )
