from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
import logging
from app.database.database import get_db
from app.models.donation_center import DonationCenter
from app.models.hospital import Hospital
from app.schemas.facility import (
    DonationCenterCreate,
    DonationCenterResponse,
    HospitalCreate,
    HospitalResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get("/hospitals", response_model=List[HospitalResponse])
def get_hospitals(active_only: bool = True, db: Session = Depends(get_db)):
    query = db.query(Hospital)
    if active_only:
        query = query.filter(Hospital.is_active.is_(True))
    return query.order_by(Hospital.name).all()

@router.get("/hospitals/{hospital_id}", response_model=HospitalResponse)
def get_hospital(hospital_id: int, db: Session = Depends(get_db)):
    hospital = db.query(Hospital).filter(Hospital.id == hospital_id).first()
    if not hospital:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Hospital not found"
        )
    return hospital

@router.post("/hospitals", response_model=HospitalResponse, status_code=status.HTTP_201_CREATED)
def create_hospital(hospital: HospitalCreate, db: Session = Depends(get_db)):
    db_hospital = Hospital(**hospital.model_dump())
    db.add(db_hospital)
    db.commit()
    db.refresh(db_hospital)
    logger.info(f"Hospital created: {db_hospital.name}")
    return db_hospital

@router.get("/centers", response_model=List[DonationCenterResponse])
def get_centers(db: Session = Depends(get_db)):
    return db.query(DonationCenter).order_by(DonationCenter.name).all()

@router.post("/centers", response_model=DonationCenterResponse, status_code=status.HTTP_201_CREATED)
def create_center(center: DonationCenterCreate, db: Session = Depends(get_db)):
    db_center = DonationCenter(**center.model_dump())
    db.add(db_center)
    db.commit()
    db.refresh(db_center)
    logger.info(f"Donation center created: {db_center.name}")
    return db_center
