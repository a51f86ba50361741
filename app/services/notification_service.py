"""
Notification dispatcher: donor and hospital emails, delivery history and
per-user channel preferences.

Sending is best-effort. The send methods and the low-stock campaign log
delivery and storage failures instead of raising. They are not part of any
inventory or request transaction; call them after those have been committed.
Preference updates raise `NotFoundError` or `DependencyFailureError`.
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import DependencyFailureError, NotFoundError
from app.models.blood_type import BloodType
from app.models.donor import DonorProfile
from app.models.profile import Profile
from app.services.compatibility import compatible_donors
from app.services.eligibility import eligible_to_notify
from app.models.notification import (
    DeliveryStatus,
    NotificationChannel,
    NotificationEvent,
    NotificationLog,
    NotificationPreference,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DEFAULT_PREFERENCES = {"email": True, "sms": False, "app": True}


def is_valid_email(address: Optional[str]) -> bool:
    return bool(address) and EMAIL_PATTERN.match(address) is not None


# ---------------------------------------------------------------------------
# Message templates
# ---------------------------------------------------------------------------

def low_stock_message(blood_type: str, current_units: int) -> Tuple[str, str]:
    subject = f"Urgent: {blood_type} Blood Stock is Low"
    message = (
        f"Our {blood_type} blood supply is critically low with only {current_units} units available. "
        f"As someone with compatible blood type, your donation would be incredibly valuable right now. "
        f"Please consider scheduling a donation appointment soon."
    )
    return subject, message


def donation_confirmation_message(blood_type: str, donation_date: str, location: str) -> Tuple[str, str]:
    subject = "Thank You for Your Blood Donation"
    message = (
        f"Thank you for your generous blood donation (type {blood_type}) on {donation_date} at {location}. "
        f"Your donation can save up to 3 lives. "
        f"You will be eligible to donate again in {settings.DONATION_INTERVAL_DAYS} days."
    )
    return subject, message


def appointment_reminder_message(appointment_date: str, location: str, time_slot: str) -> Tuple[str, str]:
    subject = "Reminder: Upcoming Blood Donation Appointment"
    message = (
        f"This is a reminder about your upcoming blood donation appointment on {appointment_date} "
        f"at {location} during the {time_slot} time slot. "
        f"Please remember to bring a valid ID and stay hydrated."
    )
    return subject, message


def request_approval_message(blood_type: str, units: int, approval_date: str) -> Tuple[str, str]:
    subject = "Blood Request Approved"
    message = (
        f"Your request for {units} units of {blood_type} blood has been approved on {approval_date}. "
        f"The blood units are being prepared for delivery to your facility."
    )
    return subject, message


def donor_match_message(blood_type: str, units: int, hospital_name: str, priority: str) -> Tuple[str, str]:
    subject = f"{priority.capitalize()} Need: {blood_type} Blood Donors"
    message = (
        f"{hospital_name} needs {units} units of {blood_type} blood (priority: {priority}). "
        f"Your blood type is compatible and you are eligible to donate. "
        f"Please contact us or book a donation appointment if you are able to help."
    )
    return subject, message


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------

class EmailClient:
    """HTTP email gateway client. Simulates delivery when no gateway URL is configured."""

    def __init__(
        self,
        service_url: Optional[str] = None,
        api_key: Optional[str] = None,
        sender: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.service_url = settings.EMAIL_SERVICE_URL if service_url is None else service_url
        self.api_key = settings.EMAIL_API_KEY if api_key is None else api_key
        self.sender = sender or settings.EMAIL_SENDER
        self.timeout = timeout or settings.EMAIL_TIMEOUT_SECONDS

    @property
    def configured(self) -> bool:
        return bool(self.service_url)

    def deliver(self, recipients: List[str], subject: str, body: str) -> DeliveryStatus:
        """
        Send one message to one or many recipients.

        Raises:
            DependencyFailureError: the gateway is unreachable or answered with an error
        """
        if not self.configured:
            logger.info(f"[simulated email] to={recipients} subject={subject!r}")
            return DeliveryStatus.SIMULATED

        payload = {
            "to": recipients if len(recipients) > 1 else recipients[0],
            "subject": subject,
            "body": body,
            "from": self.sender,
            "isMultiple": len(recipients) > 1,
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = requests.post(self.service_url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise DependencyFailureError(f"Email gateway error: {e}")

        logger.info(f"Email sent to {len(recipients)} recipient(s): {subject!r}")
        return DeliveryStatus.SENT


class NotificationService:
    """Formats, sends and records notifications."""

    def __init__(self, email_client: Optional[EmailClient] = None):
        self.email_client = email_client or EmailClient()

    def send(self, recipient: str, subject: str, body: str) -> bool:
        return self.send_bulk([recipient], subject, body)

    def send_bulk(self, recipients: List[str], subject: str, body: str) -> bool:
        valid = [r for r in recipients if is_valid_email(r)]
        if not valid:
            logger.error(f"No valid email addresses in {recipients}")
            return False
        try:
            self.email_client.deliver(valid, subject, body)
            return True
        except DependencyFailureError as e:
            logger.error(f"Failed to send email notification: {e.message}")
            return False

    def notify(
        self,
        db: Optional[Session],
        recipients: List[str],
        subject: str,
        message: str,
        event: NotificationEvent,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Send `message` to `recipients` and record each attempt in the history.

        Invalid addresses are skipped and recorded as such. Returns True when
        at least one recipient was delivered to (or simulated).
        """
        metadata = metadata or {}
        valid = [r for r in recipients if is_valid_email(r)]
        invalid = [r for r in recipients if not is_valid_email(r)]
        for address in invalid:
            logger.warning(f"Invalid email address skipped: {address!r}")

        status = DeliveryStatus.SKIPPED
        error = None
        if valid:
            try:
                status = self.email_client.deliver(valid, subject, message)
            except DependencyFailureError as e:
                status = DeliveryStatus.FAILED
                error = e.message
                logger.error(f"Notification '{event.value}' failed for {len(valid)} recipient(s): {error}")

        if db is not None:
            entries = [(r, status, error) for r in valid]
            entries += [(r or "", DeliveryStatus.SKIPPED, "invalid email address") for r in invalid]
            self._record(db, entries, subject, message, event, metadata)

        return status in (DeliveryStatus.SENT, DeliveryStatus.SIMULATED)

    def _record(self, db: Session, entries, subject, message, event, metadata) -> None:
        try:
            for recipient, status, error in entries:
                db.add(NotificationLog(
                    recipient=recipient,
                    subject=subject,
                    message=message,
                    event=event,
                    channel=NotificationChannel.EMAIL,
                    status=status,
                    blood_type=metadata.get("blood_type"),
                    units=metadata.get("units"),
                    error=error,
                ))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Could not record notification history: {e}")

    # -- history ------------------------------------------------------------

    def get_history(
        self,
        db: Session,
        limit: int = 100,
        event: Optional[NotificationEvent] = None
    ) -> List[NotificationLog]:
        query = db.query(NotificationLog)
        if event is not None:
            query = query.filter(NotificationLog.event == event)
        return query.order_by(NotificationLog.id.desc()).limit(limit).all()

    # -- preferences --------------------------------------------------------

    def get_preferences(self, db: Session, user_id: int) -> Dict[str, bool]:
        preference = db.query(NotificationPreference).filter(
            NotificationPreference.user_id == user_id
        ).first()
        if not preference:
            return dict(DEFAULT_PREFERENCES)
        return {"email": preference.email, "sms": preference.sms, "app": preference.app}

    def save_preferences(self, db: Session, user_id: int, email: bool, sms: bool, app: bool) -> Dict[str, bool]:
        if db.get(Profile, user_id) is None:
            raise NotFoundError("Profile", user_id)
        preference = db.query(NotificationPreference).filter(
            NotificationPreference.user_id == user_id
        ).first()
        if not preference:
            preference = NotificationPreference(user_id=user_id)
            db.add(preference)
        preference.email = email
        preference.sms = sms
        preference.app = app
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise DependencyFailureError(f"Could not save notification preferences: {e}")
        logger.info(f"Notification preferences updated for user {user_id}")
        return {"email": email, "sms": sms, "app": app}

    def email_opted_out(self, db: Session, user_ids: List[int]) -> set:
        """User ids that switched email notifications off."""
        if not user_ids:
            return set()
        rows = db.query(NotificationPreference.user_id).filter(
            NotificationPreference.user_id.in_(user_ids),
            NotificationPreference.email.is_(False)
        ).all()
        return {row[0] for row in rows}

    # -- campaigns ----------------------------------------------------------

    def notify_low_stock_donors(self, db: Session, blood_type: BloodType, current_units: int, now: datetime) -> int:
        """
        Ask compatible donors to come in because `blood_type` stock is low.

        Only donors that are cleared to donate, past the donation interval,
        reachable by email and not opted out are contacted.

        Returns:
            Number of donors notified (0 when the donor lookup or delivery failed, or nobody qualified)
        """
        donor_types = compatible_donors(blood_type)
        try:
            rows = db.query(DonorProfile, Profile).join(
                Profile, DonorProfile.user_id == Profile.id
            ).filter(
                DonorProfile.blood_type.in_(list(donor_types)),
                DonorProfile.eligible_to_donate.is_(True)
            ).all()
            opted_out = self.email_opted_out(db, [profile.id for _, profile in rows])
        except SQLAlchemyError as e:
            logger.error(f"Could not load donors for low {blood_type.value} stock campaign: {str(e)}")
            return 0

        recipients = [
            profile.email for donor, profile in rows
            if profile.id not in opted_out
            and is_valid_email(profile.email)
            and eligible_to_notify(donor.last_donation_date, now)
        ]
        if not recipients:
            logger.info(f"No eligible donors found for blood type {blood_type.value}")
            return 0

        subject, message = low_stock_message(blood_type.value, current_units)
        delivered = self.notify(
            db, recipients, subject, message, NotificationEvent.LOW_STOCK,
            {"blood_type": blood_type, "units": current_units}
        )
        if not delivered:
            return 0
        logger.info(f"Notified {len(recipients)} eligible donors about low {blood_type.value} stock")
        return len(recipients)


# Global instance
notification_service = NotificationService()
