from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging
from app.api.deps import get_clock, get_forecaster, get_inventory_ledger, get_notification_service
from app.database.database import get_db
from app.models.blood_type import BloodType
from app.models.donation_appointment import DonationAppointment, AppointmentStatus
from app.models.donation_center import DonationCenter
from app.models.donor import DonorProfile
from app.models.notification import NotificationEvent
from app.models.profile import Profile
from app.schemas.donor import (
    AppointmentCreate,
    AppointmentResponse,
    DonationCreate,
    DonorCreate,
    DonorEligibilityResponse,
    DonorResponse,
    DonorUpdate,
)
from app.schemas.inventory import BatchResponse
from app.services.eligibility import days_until_eligible, eligible_to_notify, next_eligible_date
from app.services.notification_service import appointment_reminder_message, donation_confirmation_message

logger = logging.getLogger(__name__)
router = APIRouter()

def _get_donor_or_404(db: Session, donor_id: int) -> DonorProfile:
    donor = db.query(DonorProfile).filter(DonorProfile.id == donor_id).first()
    if not donor:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Donor not found"
        )
    return donor

@router.get("/", response_model=List[DonorResponse])
def get_donors(
    skip: int = 0,
    limit: int = 100,
    blood_type: Optional[BloodType] = None,
    db: Session = Depends(get_db)
):
    """Get all donors with pagination, optionally filtered by blood type."""
    query = db.query(DonorProfile)
    if blood_type is not None:
        query = query.filter(DonorProfile.blood_type == blood_type)
    return query.order_by(DonorProfile.id).offset(skip).limit(limit).all()

@router.get("/{donor_id}", response_model=DonorResponse)
def get_donor(donor_id: int, db: Session = Depends(get_db)):
    """Get a specific donor by ID."""
    return _get_donor_or_404(db, donor_id)

@router.post("/", response_model=DonorResponse, status_code=status.HTTP_201_CREATED)
def create_donor(donor: DonorCreate, db: Session = Depends(get_db)):
    """Register a donor together with their contact profile."""
    if donor.email:
        existing = db.query(Profile).filter(Profile.email == donor.email).first()
        if existing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A profile with this email already exists"
            )

    profile = Profile(
        first_name=donor.first_name,
        last_name=donor.last_name,
        email=donor.email,
        phone=donor.phone,
    )
    db.add(profile)
    db.flush()

    db_donor = DonorProfile(
        user_id=profile.id,
        blood_type=donor.blood_type,
        last_donation_date=donor.last_donation_date,
        eligible_to_donate=donor.eligible_to_donate,
        latitude=donor.latitude,
        longitude=donor.longitude,
    )
    db.add(db_donor)
    db.commit()
    db.refresh(db_donor)

    logger.info(f"Donor registered: {db_donor.id} ({db_donor.blood_type.value})")
    return db_donor

@router.put("/{donor_id}", response_model=DonorResponse)
def update_donor(donor_id: int, donor_update: DonorUpdate, db: Session = Depends(get_db)):
    """Update a donor's availability, location or contact details."""
    donor = _get_donor_or_404(db, donor_id)

    update_data = donor_update.model_dump(exclude_unset=True)
    for field in ("email", "phone"):
        if field in update_data:
            value = update_data.pop(field)
            if donor.profile is not None:
                setattr(donor.profile, field, value)
    for field, value in update_data.items():
        setattr(donor, field, value)

    db.commit()
    db.refresh(donor)

    logger.info(f"Donor updated: {donor.id}")
    return donor

@router.get("/{donor_id}/eligibility", response_model=DonorEligibilityResponse)
def get_donor_eligibility(donor_id: int, db: Session = Depends(get_db), clock=Depends(get_clock)):
    """Whether the donor can be asked to donate now, and when they next can."""
    donor = _get_donor_or_404(db, donor_id)
    now = clock.now()
    return DonorEligibilityResponse(
        donor_id=donor.id,
        eligible_to_donate=donor.eligible_to_donate,
        eligible_to_notify=eligible_to_notify(donor.last_donation_date, now),
        days_until_eligible=days_until_eligible(donor.last_donation_date, now),
        last_donation_date=donor.last_donation_date,
        next_eligible_date=next_eligible_date(donor.last_donation_date),
    )

@router.post("/{donor_id}/donations", response_model=BatchResponse, status_code=status.HTTP_201_CREATED)
def record_donation(
    donor_id: int,
    donation: DonationCreate,
    db: Session = Depends(get_db),
    ledger=Depends(get_inventory_ledger),
    forecaster=Depends(get_forecaster),
    notifier=Depends(get_notification_service)
):
    """Record a completed donation: adds one unit to stock and refreshes the forecast."""
    batch = ledger.record_donation(
        db,
        donor_id=donor_id,
        blood_type=donation.blood_type,
        center_id=donation.center_id,
        appointment_id=donation.appointment_id,
    )
    forecaster.refresh(db, batch.blood_type)

    donor = db.get(DonorProfile, donor_id)
    if donor.email:
        center = db.get(DonationCenter, donation.center_id)
        subject, message = donation_confirmation_message(
            batch.blood_type.value,
            batch.donation_date.date().isoformat(),
            center.name,
        )
        notifier.notify(
            db, [donor.email], subject, message, NotificationEvent.DONATION,
            {"blood_type": batch.blood_type, "units": batch.units}
        )
    return batch

@router.post("/{donor_id}/appointments", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def schedule_appointment(
    donor_id: int,
    appointment: AppointmentCreate,
    db: Session = Depends(get_db),
    notifier=Depends(get_notification_service)
):
    """Book a donation appointment and email the donor a reminder."""
    donor = _get_donor_or_404(db, donor_id)
    center = db.query(DonationCenter).filter(DonationCenter.id == appointment.center_id).first()
    if not center:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Donation center not found"
        )

    db_appointment = DonationAppointment(
        donor_id=donor.id,
        center_id=center.id,
        appointment_date=appointment.appointment_date,
        time_slot=appointment.time_slot,
        status=AppointmentStatus.SCHEDULED,
    )
    db.add(db_appointment)
    db.commit()
    db.refresh(db_appointment)

    if donor.email:
        subject, message = appointment_reminder_message(
            appointment.appointment_date.date().isoformat(),
            center.name,
            appointment.time_slot,
        )
        notifier.notify(db, [donor.email], subject, message, NotificationEvent.APPOINTMENT)

    logger.info(f"Appointment {db_appointment.id} scheduled for donor {donor.id} at {center.name}")
    return db_appointment
