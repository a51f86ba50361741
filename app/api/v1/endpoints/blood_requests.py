from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
import logging
from app.api.deps import get_matching_service, get_request_service
from app.database.database import get_db
from app.models.blood_request import PriorityLevel, RequestStatus
from app.schemas.blood_request import (
    BloodRequestCreate,
    BloodRequestCreatedResponse,
    BloodRequestResponse,
    NotifyDonorsRequest,
    NotifyDonorsResponse,
)
from app.schemas.matching import MatchResultResponse

logger = logging.getLogger(__name__)
router = APIRouter()

# Requests at these priorities get a donor match as soon as they are filed
AUTO_MATCH_PRIORITIES = (PriorityLevel.HIGH, PriorityLevel.CRITICAL)

def _match_response(blood_request, result) -> MatchResultResponse:
    return MatchResultResponse(
        blood_type=blood_request.blood_type,
        units_needed=blood_request.units,
        donors=[donor.to_dict() for donor in result.donors],
        total_matches=len(result.donors),
        error=result.error,
    )

@router.get("/", response_model=List[BloodRequestResponse])
def list_requests(
    status: Optional[RequestStatus] = None,
    hospital_id: Optional[int] = None,
    db: Session = Depends(get_db),
    service=Depends(get_request_service)
):
    """Blood requests, newest first."""
    return service.list_requests(db, status=status, hospital_id=hospital_id)

@router.get("/{request_id}", response_model=BloodRequestResponse)
def get_request(request_id: int, db: Session = Depends(get_db), service=Depends(get_request_service)):
    return service.get_request(db, request_id)

@router.post("/", response_model=BloodRequestCreatedResponse, status_code=201)
def create_request(
    request_in: BloodRequestCreate,
    db: Session = Depends(get_db),
    service=Depends(get_request_service),
    matcher=Depends(get_matching_service)
):
    """File a blood request. High and critical requests are matched against donors immediately."""
    blood_request = service.create_request(
        db,
        hospital_id=request_in.hospital_id,
        blood_type=request_in.blood_type,
        units=request_in.units,
        priority=request_in.priority,
        notes=request_in.notes,
    )
    response = BloodRequestCreatedResponse.model_validate(blood_request)
    if blood_request.priority in AUTO_MATCH_PRIORITIES:
        result = matcher.find_for_request(db, blood_request)
        logger.info(
            f"Auto-match for {blood_request.priority.value} request {blood_request.id}: "
            f"{len(result.donors)} candidate(s)"
        )
        response.matches = _match_response(blood_request, result)
    return response

@router.post("/{request_id}/approve", response_model=BloodRequestResponse)
def approve_request(request_id: int, db: Session = Depends(get_db), service=Depends(get_request_service)):
    """Approve a pending request; its units are taken from stock, soonest expiry first."""
    return service.approve_request(db, request_id)

@router.post("/{request_id}/reject", response_model=BloodRequestResponse)
def reject_request(request_id: int, db: Session = Depends(get_db), service=Depends(get_request_service)):
    return service.reject_request(db, request_id)

@router.post("/{request_id}/cancel", response_model=BloodRequestResponse)
def cancel_request(request_id: int, db: Session = Depends(get_db), service=Depends(get_request_service)):
    return service.cancel_request(db, request_id)

@router.post("/{request_id}/fulfill", response_model=BloodRequestResponse)
def fulfill_request(request_id: int, db: Session = Depends(get_db), service=Depends(get_request_service)):
    return service.fulfill_request(db, request_id)

@router.get("/{request_id}/matches", response_model=MatchResultResponse)
def get_request_matches(
    request_id: int,
    db: Session = Depends(get_db),
    service=Depends(get_request_service),
    matcher=Depends(get_matching_service)
):
    """Ranked donor candidates for a request."""
    blood_request = service.get_request(db, request_id)
    return _match_response(blood_request, matcher.find_for_request(db, blood_request))

@router.post("/{request_id}/notify-donors", response_model=NotifyDonorsResponse)
def notify_donors(
    request_id: int,
    body: NotifyDonorsRequest,
    db: Session = Depends(get_db),
    service=Depends(get_request_service),
    matcher=Depends(get_matching_service)
):
    """Email the selected donors about this request."""
    blood_request = service.get_request(db, request_id)
    result = matcher.notify_matched_donors(db, body.donor_ids, blood_request)
    return NotifyDonorsResponse(
        request_id=blood_request.id,
        requested=result.requested,
        notified=result.notified,
        skipped=result.skipped,
        delivered=result.delivered,
    )
