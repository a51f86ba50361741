"""Tests for the email gateway client and the notification dispatcher."""
import pytest
import requests
from sqlalchemy.exc import OperationalError

from app.core.exceptions import DependencyFailureError, NotFoundError
from app.models import BloodType
from app.models.notification import DeliveryStatus, NotificationEvent, NotificationLog
from app.services import notification_service as notification_module
from app.services.notification_service import (
    EmailClient,
    NotificationService,
    donor_match_message,
    is_valid_email,
    low_stock_message,
    request_approval_message,
)


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


def test_unconfigured_gateway_simulates_delivery(monkeypatch):
    def unexpected_post(*args, **kwargs):
        raise AssertionError("gateway must not be called")

    monkeypatch.setattr(notification_module.requests, "post", unexpected_post)
    client = EmailClient(service_url="")
    assert client.deliver(["a@example.com"], "Subject", "Body") == DeliveryStatus.SIMULATED


def test_gateway_payload_for_multiple_recipients(monkeypatch):
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return FakeResponse()

    monkeypatch.setattr(notification_module.requests, "post", fake_post)
    client = EmailClient(service_url="http://mail.local/send", api_key="secret", sender="bank@example.org", timeout=3)

    status = client.deliver(["a@example.com", "b@example.com"], "Subject", "Body")

    assert status == DeliveryStatus.SENT
    call = calls[0]
    assert call["url"] == "http://mail.local/send"
    assert call["json"] == {
        "to": ["a@example.com", "b@example.com"],
        "subject": "Subject",
        "body": "Body",
        "from": "bank@example.org",
        "isMultiple": True,
    }
    assert call["headers"]["Authorization"] == "Bearer secret"
    assert call["timeout"] == 3


def test_gateway_single_recipient_is_a_string(monkeypatch):
    payloads = []
    monkeypatch.setattr(
        notification_module.requests, "post",
        lambda url, json=None, headers=None, timeout=None: payloads.append(json) or FakeResponse()
    )
    EmailClient(service_url="http://mail.local/send").deliver(["a@example.com"], "S", "B")
    assert payloads[0]["to"] == "a@example.com"
    assert payloads[0]["isMultiple"] is False


@pytest.mark.parametrize("failure", ["http", "connection"])
def test_gateway_errors_become_dependency_failures(monkeypatch, failure):
    def fake_post(*args, **kwargs):
        if failure == "connection":
            raise requests.ConnectionError("connection refused")
        return FakeResponse(502)

    monkeypatch.setattr(notification_module.requests, "post", fake_post)
    with pytest.raises(DependencyFailureError):
        EmailClient(service_url="http://mail.local/send").deliver(["a@example.com"], "S", "B")


@pytest.mark.parametrize("address,valid", [
    ("donor@example.com", True),
    ("first.last@hospital.co.uk", True),
    ("no-at-sign.example.com", False),
    ("spaces in@example.com", False),
    ("", False),
    (None, False),
])
def test_is_valid_email(address, valid):
    assert is_valid_email(address) is valid


def test_notify_records_history_and_skips_invalid_addresses(db, notifier, email_client):
    delivered = notifier.notify(
        db, ["good@example.com", "not-an-email"], "Subject", "Body",
        NotificationEvent.LOW_STOCK, {"blood_type": BloodType.O_NEG, "units": 2}
    )

    assert delivered is True
    assert email_client.sent == [{"to": ["good@example.com"], "subject": "Subject", "body": "Body"}]
    entries = {entry.recipient: entry for entry in notifier.get_history(db)}
    assert entries["good@example.com"].status == DeliveryStatus.SENT
    assert entries["good@example.com"].blood_type == BloodType.O_NEG
    assert entries["not-an-email"].status == DeliveryStatus.SKIPPED


def test_notify_failure_is_reported_not_raised(db, notifier, email_client):
    email_client.fail = True

    assert notifier.notify(db, ["good@example.com"], "S", "B", NotificationEvent.DONATION) is False

    entry = db.query(NotificationLog).one()
    assert entry.status == DeliveryStatus.FAILED
    assert "connection refused" in entry.error


def test_notify_without_valid_recipients(db, notifier, email_client):
    assert notifier.notify(db, ["bad"], "S", "B", NotificationEvent.MATCH) is False
    assert email_client.sent == []


def test_send_bulk(notifier, email_client):
    assert notifier.send_bulk(["a@example.com", "oops"], "S", "B") is True
    assert email_client.sent[0]["to"] == ["a@example.com"]
    assert notifier.send("oops", "S", "B") is False
    email_client.fail = True
    assert notifier.send("a@example.com", "S", "B") is False


def test_history_filters_by_event(db, notifier):
    notifier.notify(db, ["a@example.com"], "S", "B", NotificationEvent.DONATION)
    notifier.notify(db, ["b@example.com"], "S", "B", NotificationEvent.APPOINTMENT)

    history = notifier.get_history(db, event=NotificationEvent.APPOINTMENT)

    assert [entry.recipient for entry in history] == ["b@example.com"]
    assert len(notifier.get_history(db, limit=1)) == 1


def test_preferences_default_and_save(db, factory, notifier):
    donor = factory.donor()

    assert notifier.get_preferences(db, donor.user_id) == {"email": True, "sms": False, "app": True}
    notifier.save_preferences(db, donor.user_id, email=False, sms=True, app=False)
    assert notifier.get_preferences(db, donor.user_id) == {"email": False, "sms": True, "app": False}
    assert notifier.email_opted_out(db, [donor.user_id]) == {donor.user_id}


def test_save_preferences_for_unknown_user(db, notifier):
    with pytest.raises(NotFoundError):
        notifier.save_preferences(db, 321, email=True, sms=False, app=True)


def test_low_stock_campaign_targets_eligible_compatible_donors(db, factory, notifier, clock, email_client):
    factory.donor(BloodType.O_NEG, email="oneg@example.com")
    factory.donor(BloodType.A_NEG, email="aneg@example.com", last_donation_days_ago=56)
    factory.donor(BloodType.A_NEG, email="recent@example.com", last_donation_days_ago=55)
    factory.donor(BloodType.A_POS, email="apos@example.com")
    factory.donor(BloodType.A_NEG, email="paused@example.com", eligible=False)
    opted = factory.donor(BloodType.O_NEG, email="optout@example.com")
    factory.opt_out_of_email(opted)

    notified = notifier.notify_low_stock_donors(db, BloodType.A_NEG, 1, clock.now())

    assert notified == 2
    assert sorted(email_client.sent[0]["to"]) == ["aneg@example.com", "oneg@example.com"]
    assert "A- Blood Stock is Low" in email_client.sent[0]["subject"]


def test_low_stock_campaign_with_nobody_to_ask(db, notifier, clock, email_client):
    assert notifier.notify_low_stock_donors(db, BloodType.AB_POS, 0, clock.now()) == 0
    assert email_client.sent == []


def test_low_stock_campaign_survives_donor_lookup_failure(db, factory, notifier, clock, email_client, monkeypatch):
    factory.donor(BloodType.O_NEG, email="oneg@example.com")

    def failing_query(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "query", failing_query)

    assert notifier.notify_low_stock_donors(db, BloodType.A_NEG, 1, clock.now()) == 0
    assert email_client.sent == []


def test_message_templates():
    subject, message = low_stock_message("B+", 3)
    assert "B+" in subject and "3 units" in message
    subject, message = request_approval_message("O-", 2, "2024-06-01")
    assert subject == "Blood Request Approved"
    assert "2 units of O- blood" in message
    subject, message = donor_match_message("AB-", 1, "City Hospital", "critical")
    assert subject.startswith("Critical Need")
    assert "City Hospital" in message


def test_default_service_uses_configured_client():
    assert isinstance(NotificationService().email_client, EmailClient)
