"""
Inventory ledger: expiry-dated blood batches.

Stock leaves the ledger earliest-expiry first. Consumed batches are kept
with status USED for the audit trail; they are never deleted.

Deduction for one blood type is a critical section: an in-process lock per
blood type serializes callers, and the batch `version` column makes a
concurrent writer in another process fail with StaleDataError instead of
over-deducting.
"""
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import system_clock
from app.core.config import settings
from app.core.exceptions import (
    DependencyFailureError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from app.models.blood_inventory import BatchStatus, InventoryBatch
from app.models.blood_request import PriorityLevel
from app.models.blood_type import BloodType
from app.models.donation_appointment import AppointmentStatus, DonationAppointment
from app.models.donation_center import DonationCenter
from app.models.donor import DonorProfile
from app.models.predictive_demand import DemandForecast
from app.services.compatibility import parse_blood_type

logger = logging.getLogger(__name__)


@dataclass
class BatchDeduction:
    batch_id: int
    units_taken: int
    units_remaining: int
    status: BatchStatus


@dataclass
class DeductionResult:
    blood_type: BloodType
    units_deducted: int
    batches: List[BatchDeduction] = field(default_factory=list)


@dataclass
class InventorySummary:
    batches: List[InventoryBatch]
    totals: Dict[str, int]
    low_stock_types: List[str]


@dataclass
class StockAlert:
    type: str  # low_stock | high_demand | expiring
    blood_type: str
    message: str
    current_units: Optional[int] = None
    predicted_demand: Optional[int] = None
    count: Optional[int] = None


class InventoryLedger:
    """Available units, FIFO-by-expiry deduction and donation intake."""

    def __init__(self, clock=None):
        self.clock = clock or system_clock
        self._locks = defaultdict(threading.RLock)
        self._locks_guard = threading.Lock()

    def lock_for(self, blood_type: BloodType) -> threading.RLock:
        """Lock serializing stock changes for one blood type (re-entrant)."""
        with self._locks_guard:
            return self._locks[parse_blood_type(blood_type)]

    def _available_batches(self, db: Session, blood_type: BloodType):
        now = self.clock.now()
        return db.query(InventoryBatch).filter(
            InventoryBatch.blood_type == blood_type,
            InventoryBatch.status == BatchStatus.AVAILABLE,
            InventoryBatch.expiry_date >= now,
            InventoryBatch.units > 0
        )

    def available_units(self, db: Session, blood_type: Union[str, BloodType]) -> int:
        """Units of `blood_type` that are available and not yet expired."""
        blood_type = parse_blood_type(blood_type)
        now = self.clock.now()
        total = db.query(func.coalesce(func.sum(InventoryBatch.units), 0)).filter(
            InventoryBatch.blood_type == blood_type,
            InventoryBatch.status == BatchStatus.AVAILABLE,
            InventoryBatch.expiry_date >= now
        ).scalar()
        return int(total or 0)

    def deduct_units(
        self,
        db: Session,
        blood_type: Union[str, BloodType],
        units_needed: int,
        commit: bool = True
    ) -> DeductionResult:
        """
        Take `units_needed` units of `blood_type`, soonest-expiring batches first.

        With commit=False the changes are only flushed; the caller owns the
        transaction and must hold `lock_for(blood_type)` until it commits.

        Raises:
            ValidationError: non-positive units or unknown blood type
            InsufficientStockError: not enough stock; nothing is changed
            DependencyFailureError: database failure; the session is rolled back
                and the caller must re-check availability before retrying
        """
        blood_type = parse_blood_type(blood_type)
        if units_needed is None or units_needed <= 0:
            raise ValidationError(f"Units to deduct must be positive, got {units_needed}")

        with self.lock_for(blood_type):
            try:
                batches = self._available_batches(db, blood_type).order_by(
                    InventoryBatch.expiry_date.asc(),
                    InventoryBatch.id.asc()
                ).with_for_update().all()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Error reading {blood_type.value} batches for deduction: {e}")
                raise DependencyFailureError(f"Could not read {blood_type.value} inventory")

            available = sum(batch.units for batch in batches)
            if available < units_needed:
                logger.warning(
                    f"Insufficient {blood_type.value} stock: requested {units_needed}, available {available}"
                )
                raise InsufficientStockError(blood_type.value, units_needed, available)

            remaining = units_needed
            touched = []
            for batch in batches:
                if remaining == 0:
                    break
                take = min(remaining, batch.units)
                batch.units -= take
                if batch.units == 0:
                    batch.status = BatchStatus.USED
                remaining -= take
                touched.append(BatchDeduction(batch.id, take, batch.units, batch.status))

            try:
                db.flush()
                if commit:
                    db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Inventory deduction for {blood_type.value} failed and was rolled back: {e}")
                raise DependencyFailureError(
                    f"Deduction of {units_needed} {blood_type.value} unit(s) is unconfirmed; "
                    f"re-check availability before retrying"
                )

        logger.info(
            f"Deducted {units_needed} unit(s) of {blood_type.value} from batches "
            f"{[t.batch_id for t in touched]}"
        )
        return DeductionResult(blood_type=blood_type, units_deducted=units_needed, batches=touched)

    def record_donation(
        self,
        db: Session,
        donor_id: int,
        blood_type: Union[str, BloodType],
        center_id: int,
        appointment_id: Optional[int] = None
    ) -> InventoryBatch:
        """
        Add a freshly collected unit to stock and stamp the donor's last donation date.

        The linked appointment, if any, is marked completed in the same transaction.
        Callers refresh the demand forecast afterwards.
        """
        blood_type = parse_blood_type(blood_type)

        donor = db.get(DonorProfile, donor_id)
        if donor is None:
            raise NotFoundError("Donor", donor_id)
        if donor.blood_type != blood_type:
            raise ValidationError(
                f"Donor {donor_id} is registered as {donor.blood_type.value}, not {blood_type.value}"
            )
        if db.get(DonationCenter, center_id) is None:
            raise NotFoundError("Donation center", center_id)

        appointment = None
        if appointment_id is not None:
            appointment = db.get(DonationAppointment, appointment_id)
            if appointment is None:
                raise NotFoundError("Appointment", appointment_id)
            if appointment.donor_id != donor_id:
                raise ValidationError(f"Appointment {appointment_id} belongs to another donor")

        now = self.clock.now()
        batch = InventoryBatch(
            donor_id=donor_id,
            blood_type=blood_type,
            units=settings.UNITS_PER_DONATION,
            donation_date=now,
            expiry_date=now + timedelta(days=settings.BLOOD_SHELF_LIFE_DAYS),
            location_id=center_id,
            status=BatchStatus.AVAILABLE,
        )
        with self.lock_for(blood_type):
            db.add(batch)
            donor.last_donation_date = now
            if appointment is not None:
                appointment.status = AppointmentStatus.COMPLETED
            try:
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Error recording donation for donor {donor_id}: {e}")
                raise DependencyFailureError(
                    f"Donation for donor {donor_id} is unconfirmed; check inventory before retrying"
                )

        logger.info(f"Recorded {blood_type.value} donation from donor {donor_id} as batch {batch.id}")
        return batch

    def get_batch(self, db: Session, batch_id: int) -> InventoryBatch:
        batch = db.get(InventoryBatch, batch_id)
        if batch is None:
            raise NotFoundError("Batch", batch_id)
        return batch

    def list_batches(
        self,
        db: Session,
        blood_type: Optional[BloodType] = None,
        status: Optional[BatchStatus] = None
    ) -> List[InventoryBatch]:
        query = db.query(InventoryBatch)
        if blood_type is not None:
            query = query.filter(InventoryBatch.blood_type == parse_blood_type(blood_type))
        if status is not None:
            query = query.filter(InventoryBatch.status == status)
        return query.order_by(InventoryBatch.expiry_date.asc(), InventoryBatch.id.asc()).all()

    def get_inventory(self, db: Session) -> InventorySummary:
        """Usable batches (soonest expiry first), per-type totals and low-stock types."""
        now = self.clock.now()
        batches = db.query(InventoryBatch).filter(
            InventoryBatch.status == BatchStatus.AVAILABLE,
            InventoryBatch.expiry_date >= now,
            InventoryBatch.units > 0
        ).order_by(InventoryBatch.expiry_date.asc(), InventoryBatch.id.asc()).all()

        totals = {bt.value: 0 for bt in BloodType}
        for batch in batches:
            totals[batch.blood_type.value] += batch.units

        low_stock = [bt for bt, units in totals.items() if units < settings.LOW_STOCK_THRESHOLD]
        return InventorySummary(batches=batches, totals=totals, low_stock_types=low_stock)

    def get_stock_alerts(self, db: Session) -> List[StockAlert]:
        """Low stock, predicted demand above stock, and units about to expire."""
        summary = self.get_inventory(db)
        totals = summary.totals
        alerts = []

        for blood_type in summary.low_stock_types:
            alerts.append(StockAlert(
                type="low_stock",
                blood_type=blood_type,
                current_units=totals[blood_type],
                message=f"Low stock alert for blood type {blood_type}. Current units: {totals[blood_type]}",
            ))

        forecasts = db.query(DemandForecast).filter(
            DemandForecast.urgency_level.in_([PriorityLevel.HIGH, PriorityLevel.CRITICAL])
        ).all()
        for forecast in forecasts:
            current = totals.get(forecast.blood_type.value, 0)
            if current < forecast.short_term_demand:
                alerts.append(StockAlert(
                    type="high_demand",
                    blood_type=forecast.blood_type.value,
                    current_units=current,
                    predicted_demand=forecast.short_term_demand,
                    message=(
                        f"High demand predicted for blood type {forecast.blood_type.value}. "
                        f"Current units: {current}, Predicted demand: {forecast.short_term_demand}"
                    ),
                ))

        for blood_type, units in self.expiring_units(db).items():
            alerts.append(StockAlert(
                type="expiring",
                blood_type=blood_type,
                count=units,
                message=f"{units} units of {blood_type} blood will expire within the next "
                        f"{settings.EXPIRING_WINDOW_DAYS} days",
            ))

        return alerts

    def expiring_units(self, db: Session, within_days: Optional[int] = None) -> Dict[str, int]:
        """Available units per blood type expiring within the window."""
        now = self.clock.now()
        horizon = now + timedelta(days=within_days or settings.EXPIRING_WINDOW_DAYS)
        rows = db.query(InventoryBatch.blood_type, func.sum(InventoryBatch.units)).filter(
            InventoryBatch.status == BatchStatus.AVAILABLE,
            InventoryBatch.expiry_date >= now,
            InventoryBatch.expiry_date < horizon,
            InventoryBatch.units > 0
        ).group_by(InventoryBatch.blood_type).all()
        return {blood_type.value: int(units) for blood_type, units in rows}

    def expire_stale_batches(self, db: Session) -> int:
        """Flip available/reserved batches past their expiry date to EXPIRED."""
        now = self.clock.now()
        stale = db.query(InventoryBatch).filter(
            InventoryBatch.status.in_([BatchStatus.AVAILABLE, BatchStatus.RESERVED]),
            InventoryBatch.expiry_date < now
        ).all()
        for batch in stale:
            batch.status = BatchStatus.EXPIRED
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error expiring stale batches: {e}")
            raise DependencyFailureError("Expiry sweep failed; no batches were changed")

        if stale:
            logger.info(f"Marked {len(stale)} batch(es) as expired")
        return len(stale)


# Global instance
inventory_ledger = InventoryLedger()
