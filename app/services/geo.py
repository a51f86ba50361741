"""
Great-circle distance and the providers that place donors relative to a request site.
"""
import logging
import random
from dataclasses import dataclass
from math import radians, sin, cos, sqrt, atan2
from typing import Optional

from app.core.config import settings
from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise ValidationError(f"Latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValidationError(f"Longitude out of range: {self.longitude}")


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two coordinates in kilometres."""
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


class StoredCoordinatesProvider:
    """Distance from the request site to the donor's registered coordinates.

    Returns None (unknown) for donors without coordinates.
    """

    name = "stored_coordinates"

    def distance_to(self, donor, origin: GeoPoint) -> Optional[float]:
        if not donor.has_coordinates:
            return None
        return distance_km(origin.latitude, origin.longitude, donor.latitude, donor.longitude)


class SimulatedDistanceProvider:
    """Demo/test mode: random placeholder distances, ignores real coordinates."""

    name = "simulated"

    def __init__(self, max_km: float = 50.0, seed: Optional[int] = None):
        self.max_km = max_km
        self._random = random.Random(seed)

    def distance_to(self, donor, origin: GeoPoint) -> Optional[float]:
        return float(self._random.randint(0, int(self.max_km)))


def get_distance_provider():
    """Provider selected by configuration; simulation must be switched on explicitly."""
    if settings.SIMULATE_DONOR_DISTANCES:
        logger.warning("SIMULATE_DONOR_DISTANCES is on: donor distances are random placeholders")
        return SimulatedDistanceProvider(max_km=settings.SIMULATED_DISTANCE_MAX_KM)
    return StoredCoordinatesProvider()
