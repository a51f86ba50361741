"""
Service for finding donors who can give to a blood request.

Candidates are compatible, cleared-to-donate donors with a resolvable
contact profile, ranked by:
    1. exact blood type before compatible-but-different
    2. distance to the request site (unknown distance last)
    3. oldest last donation first (never donated first), to spread the burden
and truncated to MATCH_BUFFER_FACTOR x units needed, since not every
contacted donor will respond.
"""
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import system_clock, days_since
from app.core.config import settings
from app.core.exceptions import ValidationError
from app.models.blood_request import BloodRequest
from app.models.blood_type import BloodType
from app.models.donor import DonorProfile
from app.models.notification import NotificationEvent
from app.models.profile import Profile
from app.services.compatibility import compatible_donors, parse_blood_type
from app.services.eligibility import eligible_to_notify, days_until_eligible
from app.services.geo import GeoPoint, get_distance_provider
from app.services.notification_service import (
    NotificationService,
    donor_match_message,
    is_valid_email,
    notification_service as default_notification_service,
)

logger = logging.getLogger(__name__)


@dataclass
class MatchedDonor:
    id: int
    name: str
    blood_type: BloodType
    distance_km: Optional[float]  # None when the donor's location is unknown
    last_donation_date: Optional[datetime]
    eligible_to_notify: bool
    days_until_eligible: int
    exact_match: bool
    score: float = 0.0
    rank: int = 0
    email: Optional[str] = None
    phone: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MatchResult:
    donors: List[MatchedDonor] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DonorNotificationResult:
    requested: int
    notified: int
    skipped: List[int]
    delivered: bool


def _sort_key(donor: MatchedDonor):
    return (
        0 if donor.exact_match else 1,
        donor.distance_km if donor.distance_km is not None else float("inf"),
        donor.last_donation_date or datetime.min,
    )


def matching_score(exact_match: bool, distance: Optional[float], last_donation: Optional[datetime], now: datetime) -> float:
    """
    Informational 0-1 score (blood match 40%, distance 30%, rest period 20%, base 10%).

    Shown to staff next to each candidate; ranking uses the sort order above.
    """
    blood_score = 1.0 if exact_match else 0.7

    if distance is None:
        distance_score = 0.0
    elif distance <= 5:
        distance_score = 1.0
    elif distance <= 10:
        distance_score = 0.7
    elif distance <= 20:
        distance_score = 0.4
    else:
        distance_score = max(0.1, 1.0 - (distance / 100))

    if last_donation is None:
        donation_score = 1.0
    else:
        days = days_since(last_donation, now)
        if days >= 90:
            donation_score = 1.0
        elif days >= settings.DONATION_INTERVAL_DAYS:
            donation_score = 0.8
        else:
            donation_score = 0.3

    return round(blood_score * 0.4 + distance_score * 0.3 + donation_score * 0.2 + 0.1, 3)


class DonorMatchingService:
    """Ranks compatible donors for a blood request and contacts the selected ones."""

    def __init__(self, clock=None, distance_provider=None, notifier: NotificationService = None):
        self.clock = clock or system_clock
        self.distance_provider = distance_provider or get_distance_provider()
        self.notifier = notifier or default_notification_service

    def find_matching_donors(
        self,
        db: Session,
        blood_type: Union[str, BloodType],
        location: Optional[GeoPoint] = None,
        units_needed: int = 1
    ) -> MatchResult:
        """
        Find and rank donors for `units_needed` units of `blood_type`.

        Raises:
            ValidationError: unknown blood type or non-positive units

        Returns:
            MatchResult; on a database failure `donors` is empty and `error` is set
        """
        requested = parse_blood_type(blood_type)
        if units_needed is None or units_needed <= 0:
            raise ValidationError(f"units_needed must be positive, got {units_needed}")

        donor_types = compatible_donors(requested)
        now = self.clock.now()

        try:
            # Inner join drops donors whose profile cannot be resolved
            rows = db.query(DonorProfile, Profile).join(
                Profile, DonorProfile.user_id == Profile.id
            ).filter(
                DonorProfile.blood_type.in_(list(donor_types)),
                DonorProfile.eligible_to_donate.is_(True)
            ).all()
        except SQLAlchemyError as e:
            logger.error(f"Error finding matching donors for {requested.value}: {e}")
            return MatchResult(donors=[], error="Failed to find matching donors. Please try again.")

        if not rows:
            logger.info(f"No eligible donors for {requested.value}")
            return MatchResult(donors=[])

        candidates = []
        for donor, profile in rows:
            distance = None
            if location is not None:
                distance = self.distance_provider.distance_to(donor, location)
            exact = donor.blood_type == requested
            candidates.append(MatchedDonor(
                id=donor.id,
                name=profile.full_name,
                blood_type=donor.blood_type,
                distance_km=round(distance, 2) if distance is not None else None,
                last_donation_date=donor.last_donation_date,
                eligible_to_notify=eligible_to_notify(donor.last_donation_date, now),
                days_until_eligible=days_until_eligible(donor.last_donation_date, now),
                exact_match=exact,
                score=matching_score(exact, distance, donor.last_donation_date, now),
                email=profile.email,
                phone=profile.phone,
            ))

        candidates.sort(key=_sort_key)
        selected = candidates[:units_needed * settings.MATCH_BUFFER_FACTOR]
        for position, candidate in enumerate(selected, start=1):
            candidate.rank = position

        logger.info(
            f"Matched {len(selected)} of {len(candidates)} compatible donors "
            f"for {units_needed} unit(s) of {requested.value}"
        )
        return MatchResult(donors=selected)

    def find_for_request(self, db: Session, blood_request: BloodRequest) -> MatchResult:
        """Match donors for a stored request, using its hospital as the site when located."""
        location = None
        hospital = blood_request.hospital
        if hospital is not None and hospital.latitude is not None and hospital.longitude is not None:
            location = GeoPoint(hospital.latitude, hospital.longitude)
        return self.find_matching_donors(db, blood_request.blood_type, location, blood_request.units)

    def notify_matched_donors(
        self,
        db: Session,
        donor_ids: List[int],
        blood_request: BloodRequest
    ) -> DonorNotificationResult:
        """
        Email the selected donors about `blood_request`.

        Donors that are incompatible, not cleared, still inside the donation
        interval, opted out of email or without an address are skipped.
        """
        now = self.clock.now()
        donor_types = compatible_donors(blood_request.blood_type)
        rows = db.query(DonorProfile, Profile).join(
            Profile, DonorProfile.user_id == Profile.id
        ).filter(DonorProfile.id.in_(donor_ids)).all() if donor_ids else []

        opted_out = self.notifier.email_opted_out(db, [profile.id for _, profile in rows])
        recipients = []
        notified_ids = set()
        for donor, profile in rows:
            if (
                donor.blood_type in donor_types
                and donor.eligible_to_donate
                and eligible_to_notify(donor.last_donation_date, now)
                and profile.id not in opted_out
                and is_valid_email(profile.email)
            ):
                recipients.append(profile.email)
                notified_ids.add(donor.id)

        skipped = [donor_id for donor_id in donor_ids if donor_id not in notified_ids]
        if not recipients:
            logger.info(f"No notifiable donors among {donor_ids} for request {blood_request.id}")
            return DonorNotificationResult(len(donor_ids), 0, skipped, False)

        subject, message = donor_match_message(
            blood_request.blood_type.value,
            blood_request.units,
            blood_request.hospital_name,
            blood_request.priority.value,
        )
        delivered = self.notifier.notify(
            db, recipients, subject, message, NotificationEvent.MATCH,
            {"blood_type": blood_request.blood_type, "units": blood_request.units}
        )
        return DonorNotificationResult(
            requested=len(donor_ids),
            notified=len(recipients) if delivered else 0,
            skipped=skipped,
            delivered=delivered,
        )


# Global instance
donor_matching_service = DonorMatchingService()
