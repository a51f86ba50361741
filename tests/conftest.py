"""Pytest configuration and fixtures."""
import os
import time

# Keep test runs off the on-disk database, log file and email gateway
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("EMAIL_SERVICE_URL", "")

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api import deps
from app.core.clock import FixedClock
from app.core.exceptions import DependencyFailureError
from app.database.database import Base, get_db, init_db
from app.main import app
from app.models import (
    BatchStatus,
    BloodRequest,
    BloodType,
    DonationCenter,
    DonorProfile,
    Hospital,
    InventoryBatch,
    NotificationPreference,
    PriorityLevel,
    Profile,
    RequestStatus,
)
from app.models.notification import DeliveryStatus
from app.services.blood_request_service import BloodRequestService
from app.services.demand_forecast_service import DemandForecastService
from app.services.donor_matching_service import DonorMatchingService
from app.services.geo import StoredCoordinatesProvider
from app.services.inventory_service import InventoryLedger
from app.services.notification_service import EmailClient, NotificationService

NOW = datetime(2024, 6, 1, 12, 0, 0)


class RecordingEmailClient(EmailClient):
    """Captures outgoing mail instead of calling the gateway; `fail` simulates an outage, `delay` a slow one."""

    def __init__(self):
        super().__init__(service_url="http://email.test/send", api_key="", sender="noreply@test.org")
        self.sent = []
        self.fail = False
        self.delay = 0

    def deliver(self, recipients, subject, body):
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise DependencyFailureError("Email gateway error: connection refused")
        self.sent.append({"to": list(recipients), "subject": subject, "body": body})
        return DeliveryStatus.SENT


class Factory:
    """Seeds rows directly through the session."""

    def __init__(self, db, clock):
        self.db = db
        self.clock = clock
        self._emails = 0

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def donor(
        self,
        blood_type=BloodType.O_POS,
        email="auto",
        last_donation_days_ago=None,
        latitude=None,
        longitude=None,
        eligible=True,
        first_name="Test",
        with_profile=True,
    ):
        profile_id = None
        if with_profile:
            if email == "auto":
                self._emails += 1
                email = f"donor{self._emails}@example.com"
            profile = self._save(Profile(first_name=first_name, last_name="Donor", email=email))
            profile_id = profile.id
        last_donation = None
        if last_donation_days_ago is not None:
            last_donation = self.clock.now() - timedelta(days=last_donation_days_ago)
        return self._save(DonorProfile(
            user_id=profile_id,
            blood_type=blood_type,
            last_donation_date=last_donation,
            eligible_to_donate=eligible,
            latitude=latitude,
            longitude=longitude,
        ))

    def hospital(self, name="General Hospital", email="bloodbank@general.org", latitude=None, longitude=None, active=True):
        return self._save(Hospital(name=name, email=email, latitude=latitude, longitude=longitude, is_active=active))

    def center(self, name="Central Donation Center"):
        return self._save(DonationCenter(name=name))

    def batch(self, blood_type=BloodType.O_POS, units=1, expires_in_days=30, status=BatchStatus.AVAILABLE):
        now = self.clock.now()
        return self._save(InventoryBatch(
            blood_type=blood_type,
            units=units,
            donation_date=now - timedelta(days=1),
            expiry_date=now + timedelta(days=expires_in_days),
            status=status,
        ))

    def request(self, hospital, blood_type=BloodType.O_POS, units=1, priority=PriorityLevel.MEDIUM, status=RequestStatus.PENDING):
        return self._save(BloodRequest(
            hospital_id=hospital.id,
            blood_type=blood_type,
            units=units,
            priority=priority,
            status=status,
            request_date=self.clock.now(),
        ))

    def opt_out_of_email(self, donor):
        return self._save(NotificationPreference(user_id=donor.user_id, email=False, sms=False, app=True))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def email_client():
    return RecordingEmailClient()


@pytest.fixture
def notifier(email_client):
    return NotificationService(email_client)


@pytest.fixture
def ledger(clock):
    return InventoryLedger(clock)


@pytest.fixture
def forecaster(clock, ledger):
    return DemandForecastService(clock, ledger)


@pytest.fixture
def matcher(clock, notifier):
    return DonorMatchingService(clock, StoredCoordinatesProvider(), notifier)


@pytest.fixture
def request_service(clock, ledger, forecaster, notifier):
    return BloodRequestService(clock, ledger, forecaster, notifier)


@pytest.fixture
def factory(db, clock):
    return Factory(db, clock)


@pytest.fixture
def client(db, clock, ledger, forecaster, matcher, request_service, notifier):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_clock] = lambda: clock
    app.dependency_overrides[deps.get_inventory_ledger] = lambda: ledger
    app.dependency_overrides[deps.get_forecaster] = lambda: forecaster
    app.dependency_overrides[deps.get_matching_service] = lambda: matcher
    app.dependency_overrides[deps.get_request_service] = lambda: request_service
    app.dependency_overrides[deps.get_notification_service] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
