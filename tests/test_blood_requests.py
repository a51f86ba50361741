"""Tests for the blood request lifecycle and atomic approval."""
import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from app.core.exceptions import (
    DependencyFailureError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.database.database import Base, init_db
from app.models import BatchStatus, BloodType, PriorityLevel, RequestStatus
from app.models.notification import DeliveryStatus, NotificationEvent, NotificationLog
from app.models.predictive_demand import DemandForecast
from app.services.blood_request_service import BloodRequestService
from app.services.demand_forecast_service import DemandForecastService
from app.services.inventory_service import InventoryLedger
from app.services.notification_service import NotificationService


def _forecast(db, blood_type):
    return db.query(DemandForecast).filter(DemandForecast.blood_type == blood_type).first()


def test_create_request_is_pending_and_refreshes_forecast(db, factory, request_service, clock):
    hospital = factory.hospital()

    blood_request = request_service.create_request(db, hospital.id, "a+", 3, PriorityLevel.HIGH, notes="Surgery")

    assert blood_request.status == RequestStatus.PENDING
    assert blood_request.blood_type == BloodType.A_POS
    assert blood_request.request_date == clock.now()
    assert blood_request.hospital_name == "General Hospital"
    assert _forecast(db, BloodType.A_POS).short_term_demand == 3


def test_create_request_validation(db, factory, request_service):
    hospital = factory.hospital()
    inactive = factory.hospital(name="Closed Clinic", active=False)

    with pytest.raises(ValidationError):
        request_service.create_request(db, hospital.id, "A+", 0)
    with pytest.raises(ValidationError):
        request_service.create_request(db, hospital.id, "X+", 1)
    with pytest.raises(ValidationError):
        request_service.create_request(db, hospital.id, "A+", 1, priority="urgent")
    with pytest.raises(ValidationError):
        request_service.create_request(db, inactive.id, "A+", 1)
    with pytest.raises(NotFoundError):
        request_service.create_request(db, 4242, "A+", 1)


def test_approve_deducts_stock_and_emails_hospital(db, factory, request_service, ledger, clock, email_client):
    hospital = factory.hospital(email="orders@stmary.org")
    first = factory.batch(BloodType.O_POS, units=2, expires_in_days=4)
    factory.batch(BloodType.O_POS, units=5, expires_in_days=30)
    blood_request = factory.request(hospital, BloodType.O_POS, units=3)

    approved = request_service.approve_request(db, blood_request.id)

    assert approved.status == RequestStatus.APPROVED
    assert approved.approval_date == clock.now()
    assert ledger.available_units(db, "O+") == 4
    assert first.status == BatchStatus.USED
    assert email_client.sent[0]["to"] == ["orders@stmary.org"]
    assert "3 units of O+" in email_client.sent[0]["body"]
    forecast = _forecast(db, BloodType.O_POS)
    assert (forecast.short_term_demand, forecast.current_stock) == (3, 4)


def test_approve_with_insufficient_stock_leaves_everything_unchanged(db, factory, request_service, ledger, email_client):
    hospital = factory.hospital()
    factory.batch(BloodType.B_NEG, units=3)
    blood_request = factory.request(hospital, BloodType.B_NEG, units=5)

    with pytest.raises(InsufficientStockError):
        request_service.approve_request(db, blood_request.id)

    db.refresh(blood_request)
    assert blood_request.status == RequestStatus.PENDING
    assert blood_request.approval_date is None
    assert ledger.available_units(db, "B-") == 3
    assert email_client.sent == []


def test_approve_database_failure_applies_nothing(db, factory, request_service, ledger, monkeypatch):
    hospital = factory.hospital()
    factory.batch(BloodType.A_NEG, units=4)
    blood_request = factory.request(hospital, BloodType.A_NEG, units=2)

    def failing_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", failing_commit)
    with pytest.raises(DependencyFailureError):
        request_service.approve_request(db, blood_request.id)
    monkeypatch.undo()

    db.refresh(blood_request)
    assert blood_request.status == RequestStatus.PENDING
    assert ledger.available_units(db, "A-") == 4


def test_email_failure_does_not_undo_approval(db, factory, request_service, ledger, email_client):
    hospital = factory.hospital()
    factory.batch(BloodType.AB_NEG, units=2)
    blood_request = factory.request(hospital, BloodType.AB_NEG, units=1)
    email_client.fail = True

    approved = request_service.approve_request(db, blood_request.id)

    assert approved.status == RequestStatus.APPROVED
    assert ledger.available_units(db, "AB-") == 1
    entry = db.query(NotificationLog).filter(NotificationLog.event == NotificationEvent.REQUEST).one()
    assert entry.status == DeliveryStatus.FAILED


def test_approve_without_hospital_email_still_approves(db, factory, request_service, email_client):
    hospital = factory.hospital(email=None)
    factory.batch(BloodType.O_NEG, units=1)
    blood_request = factory.request(hospital, BloodType.O_NEG, units=1)

    assert request_service.approve_request(db, blood_request.id).status == RequestStatus.APPROVED
    assert email_client.sent == []


def test_second_approval_is_an_invalid_transition(db, factory, request_service, ledger):
    hospital = factory.hospital()
    factory.batch(BloodType.O_POS, units=10)
    blood_request = factory.request(hospital, BloodType.O_POS, units=2)
    request_service.approve_request(db, blood_request.id)

    with pytest.raises(InvalidTransitionError):
        request_service.approve_request(db, blood_request.id)
    assert ledger.available_units(db, "O+") == 8


def test_approvals_compete_for_the_same_stock(db, factory, request_service, ledger):
    hospital = factory.hospital()
    factory.batch(BloodType.A_POS, units=3)
    first = factory.request(hospital, BloodType.A_POS, units=2)
    second = factory.request(hospital, BloodType.A_POS, units=2)

    request_service.approve_request(db, first.id)
    with pytest.raises(InsufficientStockError):
        request_service.approve_request(db, second.id)

    db.refresh(second)
    assert second.status == RequestStatus.PENDING
    assert ledger.available_units(db, "A+") == 1


def test_status_transitions(db, factory, request_service, clock):
    hospital = factory.hospital()
    factory.batch(BloodType.O_POS, units=5)
    rejected = factory.request(hospital, units=1)
    cancelled = factory.request(hospital, units=1)
    fulfilled = factory.request(hospital, units=1)

    assert request_service.reject_request(db, rejected.id).status == RequestStatus.REJECTED
    assert request_service.cancel_request(db, cancelled.id).status == RequestStatus.CANCELLED
    request_service.approve_request(db, fulfilled.id)
    clock.advance(hours=3)
    done = request_service.fulfill_request(db, fulfilled.id)
    assert done.status == RequestStatus.FULFILLED
    assert done.fulfillment_date == clock.now()

    for request_id in (rejected.id, cancelled.id, fulfilled.id):
        with pytest.raises(InvalidTransitionError):
            request_service.cancel_request(db, request_id)


def test_pending_request_cannot_be_fulfilled(db, factory, request_service):
    blood_request = factory.request(factory.hospital())
    with pytest.raises(InvalidTransitionError):
        request_service.fulfill_request(db, blood_request.id)


def test_cancelling_approved_request_does_not_restock(db, factory, request_service, ledger):
    hospital = factory.hospital()
    factory.batch(BloodType.B_POS, units=4)
    blood_request = factory.request(hospital, BloodType.B_POS, units=3)
    request_service.approve_request(db, blood_request.id)

    request_service.cancel_request(db, blood_request.id)

    assert ledger.available_units(db, "B+") == 1
    assert _forecast(db, BloodType.B_POS).short_term_demand == 0


def test_list_and_get_requests(db, factory, request_service):
    hospital = factory.hospital()
    other = factory.hospital(name="County Hospital")
    factory.request(hospital, units=1)
    factory.request(other, units=2, status=RequestStatus.REJECTED)

    assert len(request_service.list_requests(db)) == 2
    assert [r.units for r in request_service.list_requests(db, status=RequestStatus.REJECTED)] == [2]
    assert [r.units for r in request_service.list_requests(db, hospital_id=hospital.id)] == [1]
    with pytest.raises(NotFoundError):
        request_service.get_request(db, 999)


def test_concurrent_approvals_never_oversell(tmp_path, clock, factory):
    """Two workers approving against stock that covers only one of them."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    init_db(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    seed = Session()
    seeding = type(factory)(seed, clock)
    hospital = seeding.hospital(email=None)
    seeding.batch(BloodType.O_NEG, units=3)
    request_ids = [seeding.request(hospital, BloodType.O_NEG, units=2).id for _ in range(2)]
    seed.close()

    ledger = InventoryLedger(clock)
    service = BloodRequestService(clock, ledger, DemandForecastService(clock, ledger), NotificationService())
    barrier = threading.Barrier(2)
    outcomes = []

    def approve(request_id):
        session = Session()
        try:
            barrier.wait()
            service.approve_request(session, request_id)
            outcomes.append("approved")
        except InsufficientStockError:
            outcomes.append("insufficient")
        finally:
            session.close()

    threads = [threading.Thread(target=approve, args=(request_id,)) for request_id in request_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    check = Session()
    assert sorted(outcomes) == ["approved", "insufficient"]
    assert ledger.available_units(check, "O-") == 1
    check.close()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
