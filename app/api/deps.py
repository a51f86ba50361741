"""Service providers for the endpoints; tests override these to pin the clock and capture email."""
from app.core.clock import system_clock
from app.services.blood_request_service import blood_request_service
from app.services.demand_forecast_service import demand_forecast_service
from app.services.donor_matching_service import donor_matching_service
from app.services.inventory_service import inventory_ledger
from app.services.notification_service import notification_service


def get_inventory_ledger():
    return inventory_ledger


def get_forecaster():
    return demand_forecast_service


def get_request_service():
    return blood_request_service


def get_matching_service():
    return donor_matching_service


def get_notification_service():
    return notification_service


def get_clock():
    return system_clock
