import math
from dataclasses import dataclass

EARTH_RADIUS_METERS = 6_371_000.0
MIN_RADIUS_METERS = 10
MAX_RADIUS_METERS = 10_000


@dataclass(frozen=True)
class GeofenceCheck:
    inside: bool
    distance_m: float
    radius_m: int
    label: str

    @property
    def rounded_distance(self) -> int:
        return int(round(self.distance_m))


def calculate_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters (haversine)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    c = 2 * math.asin(min(1.0, math.sqrt(a)))
    return c * EARTH_RADIUS_METERS


def is_within_geofence(
    lat: float,
    lng: float,
    center_lat: float,
    center_lng: float,
    radius_m: float,
) -> bool:
    return calculate_distance(lat, lng, center_lat, center_lng) <= radius_m


def check_point(lat: float, lng: float, fence: dict) -> GeofenceCheck:
    distance = calculate_distance(lat, lng, float(fence["latitude"]), float(fence["longitude"]))
    radius = int(fence["radius_meters"])
    return GeofenceCheck(
        inside=distance <= radius,
        distance_m=distance,
        radius_m=radius,
        label=str(fence.get("label") or "Sekolah"),
    )
