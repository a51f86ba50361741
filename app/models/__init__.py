# Database models
from .blood_type import BloodType
from .profile import Profile
from .donor import DonorProfile
from .hospital import Hospital
from .donation_center import DonationCenter
from .donation_appointment import DonationAppointment, AppointmentStatus
from .blood_inventory import InventoryBatch, BatchStatus
from .blood_request import BloodRequest, RequestStatus, PriorityLevel
from .predictive_demand import DemandForecast
from .notification import (
    NotificationLog,
    NotificationPreference,
    NotificationEvent,
    NotificationChannel,
    DeliveryStatus,
)
