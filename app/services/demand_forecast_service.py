"""
Demand forecaster: per blood type, outstanding request volume against stock.

The projection is a linear placeholder (medium term = 1.5 x short term), not
a statistical model. Callers recompute after every donation and every
request status change; concurrent recomputes are last-writer-wins since the
forecast is advisory.
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import system_clock
from app.core.exceptions import DependencyFailureError
from app.models.blood_request import BloodRequest, OPEN_REQUEST_STATUSES, PriorityLevel
from app.models.blood_type import BloodType
from app.models.predictive_demand import DemandForecast
from app.services.compatibility import parse_blood_type
from app.services.inventory_service import InventoryLedger, inventory_ledger as default_ledger

logger = logging.getLogger(__name__)

MEDIUM_TERM_FACTOR = 1.5
MEDIUM_URGENCY_RATIO = 0.5
EXPIRING_SHARE_FOR_APPEAL = 0.3


@dataclass
class DonorRecommendation:
    blood_type: BloodType
    message: str


def urgency_for(short_term_demand: int, current_stock: int) -> PriorityLevel:
    if short_term_demand > current_stock:
        return PriorityLevel.HIGH
    if short_term_demand > current_stock * MEDIUM_URGENCY_RATIO:
        return PriorityLevel.MEDIUM
    return PriorityLevel.LOW


def project_medium_term(short_term_demand: int) -> int:
    """short term x 1.5, rounded half up."""
    return int(math.floor(short_term_demand * MEDIUM_TERM_FACTOR + 0.5))


class DemandForecastService:

    def __init__(self, clock=None, ledger: InventoryLedger = None):
        self.clock = clock or system_clock
        self.ledger = ledger or default_ledger

    def short_term_demand(self, db: Session, blood_type: BloodType) -> int:
        total = db.query(func.coalesce(func.sum(BloodRequest.units), 0)).filter(
            BloodRequest.blood_type == blood_type,
            BloodRequest.status.in_(OPEN_REQUEST_STATUSES)
        ).scalar()
        return int(total or 0)

    def recompute(self, db: Session, blood_type: Union[str, BloodType]) -> DemandForecast:
        """
        Refresh and store the forecast for one blood type.

        Raises:
            DependencyFailureError: the forecast could not be read or written
        """
        blood_type = parse_blood_type(blood_type)
        try:
            short_term = self.short_term_demand(db, blood_type)
            stock = self.ledger.available_units(db, blood_type)

            forecast = db.query(DemandForecast).filter(DemandForecast.blood_type == blood_type).first()
            if forecast is None:
                forecast = DemandForecast(blood_type=blood_type)
                db.add(forecast)

            forecast.short_term_demand = short_term
            forecast.medium_term_demand = project_medium_term(short_term)
            forecast.current_stock = stock
            forecast.urgency_level = urgency_for(short_term, stock)
            forecast.last_updated = self.clock.now()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error updating predictive demand for {blood_type.value}: {e}")
            raise DependencyFailureError(f"Could not update demand forecast for {blood_type.value}")

        logger.debug(
            f"Forecast {blood_type.value}: demand={forecast.short_term_demand} "
            f"stock={forecast.current_stock} urgency={forecast.urgency_level.value}"
        )
        return forecast

    def refresh(self, db: Session, blood_type: Union[str, BloodType]) -> Optional[DemandForecast]:
        """Recompute after a committed change; a failure is logged, not raised."""
        try:
            return self.recompute(db, blood_type)
        except DependencyFailureError as e:
            logger.error(f"Forecast refresh skipped: {e.message}")
            return None

    def recompute_all(self, db: Session) -> List[DemandForecast]:
        return [self.recompute(db, blood_type) for blood_type in BloodType]

    def get_forecasts(self, db: Session) -> List[DemandForecast]:
        return db.query(DemandForecast).order_by(DemandForecast.blood_type).all()

    def targeted_donor_recommendation(
        self,
        db: Session,
        blood_type: Optional[Union[str, BloodType]] = None
    ) -> DonorRecommendation:
        """
        Appeal text for donor outreach.

        Without a blood type, targets the high-urgency type with the lowest
        stock-to-demand ratio, or O- when nothing is urgent.
        """
        forecasts = {forecast.blood_type: forecast for forecast in self.get_forecasts(db)}
        totals = self.ledger.get_inventory(db).totals

        if blood_type is None:
            urgent = [
                f for f in forecasts.values()
                if f.urgency_level in (PriorityLevel.HIGH, PriorityLevel.CRITICAL)
            ]

            def ratio(forecast):
                if forecast.short_term_demand <= 0:
                    return float("inf")
                return totals[forecast.blood_type.value] / forecast.short_term_demand

            urgent.sort(key=ratio)
            blood_type = urgent[0].blood_type if urgent else BloodType.O_NEG
        else:
            blood_type = parse_blood_type(blood_type)

        forecast = forecasts.get(blood_type)
        if forecast is None:
            return DonorRecommendation(
                blood_type, "We need donors of all blood types. Please consider donating today!"
            )

        label = blood_type.value
        stock = totals[label]
        expiring = self.ledger.expiring_units(db).get(label, 0)

        if forecast.urgency_level in (PriorityLevel.HIGH, PriorityLevel.CRITICAL):
            message = (
                f"We urgently need {label} donors. Our inventory is critically low "
                f"and patients' lives depend on these donations."
            )
        elif forecast.urgency_level == PriorityLevel.MEDIUM:
            message = f"{label} blood is in high demand. Your donation would help us meet patient needs in the coming days."
        elif stock > 0 and expiring > stock * EXPIRING_SHARE_FOR_APPEAL:
            message = f"We have {label} units that will expire soon. New fresh donations would help maintain our supply."
        else:
            message = f"Our {label} supply is currently stable, but regular donations help us stay prepared for emergencies."
        return DonorRecommendation(blood_type, message)


# Global instance
demand_forecast_service = DemandForecastService()
