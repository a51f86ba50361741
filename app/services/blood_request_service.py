"""
Hospital blood request lifecycle.

Approval is one transaction: the inventory deduction and the status change
commit together or not at all. The forecast refresh and the hospital email
run afterwards and never undo an approval.
"""
import logging
from typing import List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import system_clock
from app.core.exceptions import (
    DependencyFailureError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.models.blood_request import (
    BloodRequest,
    PriorityLevel,
    REQUEST_TRANSITIONS,
    RequestStatus,
)
from app.models.blood_type import BloodType
from app.models.hospital import Hospital
from app.models.notification import NotificationEvent
from app.services.compatibility import parse_blood_type
from app.services.demand_forecast_service import DemandForecastService, demand_forecast_service as default_forecaster
from app.services.inventory_service import InventoryLedger, inventory_ledger as default_ledger
from app.services.notification_service import (
    NotificationService,
    notification_service as default_notification_service,
    request_approval_message,
)

logger = logging.getLogger(__name__)


class BloodRequestService:

    def __init__(
        self,
        clock=None,
        ledger: InventoryLedger = None,
        forecaster: DemandForecastService = None,
        notifier: NotificationService = None
    ):
        self.clock = clock or system_clock
        self.ledger = ledger or default_ledger
        self.forecaster = forecaster or default_forecaster
        self.notifier = notifier or default_notification_service

    def get_request(self, db: Session, request_id: int) -> BloodRequest:
        blood_request = db.get(BloodRequest, request_id)
        if blood_request is None:
            raise NotFoundError("Blood request", request_id)
        return blood_request

    def list_requests(
        self,
        db: Session,
        status: Optional[RequestStatus] = None,
        hospital_id: Optional[int] = None
    ) -> List[BloodRequest]:
        query = db.query(BloodRequest)
        if status is not None:
            query = query.filter(BloodRequest.status == status)
        if hospital_id is not None:
            query = query.filter(BloodRequest.hospital_id == hospital_id)
        return query.order_by(BloodRequest.request_date.desc(), BloodRequest.id.desc()).all()

    def create_request(
        self,
        db: Session,
        hospital_id: int,
        blood_type: Union[str, BloodType],
        units: int,
        priority: PriorityLevel = PriorityLevel.MEDIUM,
        notes: Optional[str] = None
    ) -> BloodRequest:
        blood_type = parse_blood_type(blood_type)
        if units is None or units <= 0:
            raise ValidationError(f"Units requested must be positive, got {units}")
        try:
            priority = PriorityLevel(priority)
        except ValueError:
            raise ValidationError(f"Unknown priority: {priority!r}")

        hospital = db.get(Hospital, hospital_id)
        if hospital is None:
            raise NotFoundError("Hospital", hospital_id)
        if not hospital.is_active:
            raise ValidationError(f"Hospital {hospital_id} is inactive")

        blood_request = BloodRequest(
            hospital_id=hospital_id,
            blood_type=blood_type,
            units=units,
            priority=priority,
            status=RequestStatus.PENDING,
            request_date=self.clock.now(),
            notes=notes,
        )
        db.add(blood_request)
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error creating blood request for hospital {hospital_id}: {e}")
            raise DependencyFailureError("Blood request was not saved; please retry")

        logger.info(
            f"Blood request {blood_request.id} created: {units} unit(s) of {blood_type.value} "
            f"for {hospital.name} ({priority.value})"
        )
        self.forecaster.refresh(db, blood_type)
        return blood_request

    def _check_transition(self, blood_request: BloodRequest, target: RequestStatus) -> None:
        if target not in REQUEST_TRANSITIONS[blood_request.status]:
            raise InvalidTransitionError(blood_request.status.value, target.value)

    def approve_request(self, db: Session, request_id: int) -> BloodRequest:
        """
        Approve a pending request and take its units out of stock.

        Raises:
            NotFoundError: no such request
            InvalidTransitionError: request is not pending
            InsufficientStockError: not enough stock; request stays pending
            DependencyFailureError: database failure; nothing applied, re-check before retrying
        """
        blood_request = self.get_request(db, request_id)
        self._check_transition(blood_request, RequestStatus.APPROVED)
        blood_type = blood_request.blood_type

        with self.ledger.lock_for(blood_type):
            # Re-read under the lock; another approval may have won the race
            db.refresh(blood_request)
            self._check_transition(blood_request, RequestStatus.APPROVED)
            try:
                deduction = self.ledger.deduct_units(db, blood_type, blood_request.units, commit=False)
                blood_request.status = RequestStatus.APPROVED
                blood_request.approval_date = self.clock.now()
                db.commit()
            except InsufficientStockError:
                db.rollback()
                raise
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Approval of request {request_id} rolled back: {e}")
                raise DependencyFailureError(
                    f"Approval of request {request_id} is unconfirmed; re-check availability before retrying"
                )

        logger.info(
            f"Blood request {request_id} approved; {deduction.units_deducted} unit(s) of "
            f"{blood_type.value} taken from {len(deduction.batches)} batch(es)"
        )

        self.forecaster.refresh(db, blood_type)
        self._notify_hospital_of_approval(db, blood_request)
        return blood_request

    def _notify_hospital_of_approval(self, db: Session, blood_request: BloodRequest) -> bool:
        hospital = blood_request.hospital
        if hospital is None or not hospital.email:
            logger.info(f"No contact email for hospital of request {blood_request.id}; approval email skipped")
            return False
        subject, message = request_approval_message(
            blood_request.blood_type.value,
            blood_request.units,
            blood_request.approval_date.date().isoformat(),
        )
        return self.notifier.notify(
            db, [hospital.email], subject, message, NotificationEvent.REQUEST,
            {"blood_type": blood_request.blood_type, "units": blood_request.units}
        )

    def _change_status(self, db: Session, request_id: int, target: RequestStatus) -> BloodRequest:
        blood_request = self.get_request(db, request_id)
        self._check_transition(blood_request, target)

        blood_request.status = target
        if target == RequestStatus.FULFILLED:
            blood_request.fulfillment_date = self.clock.now()
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error moving request {request_id} to {target.value}: {e}")
            raise DependencyFailureError(f"Status change of request {request_id} is unconfirmed")

        logger.info(f"Blood request {request_id} is now {target.value}")
        self.forecaster.refresh(db, blood_request.blood_type)
        return blood_request

    def reject_request(self, db: Session, request_id: int) -> BloodRequest:
        return self._change_status(db, request_id, RequestStatus.REJECTED)

    def cancel_request(self, db: Session, request_id: int) -> BloodRequest:
        # Units already issued for an approved request are not returned to stock
        return self._change_status(db, request_id, RequestStatus.CANCELLED)

    def fulfill_request(self, db: Session, request_id: int) -> BloodRequest:
        return self._change_status(db, request_id, RequestStatus.FULFILLED)


# Global instance
blood_request_service = BloodRequestService()
