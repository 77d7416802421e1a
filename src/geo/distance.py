import math
from dataclasses import dataclass
from typing import Iterable, Sequence

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class Coordinate:
    """A point on the Earth's surface in decimal degrees."""

    latitude: float
    longitude: float

    @classmethod
    def from_pair(cls, pair: Sequence[float]) -> "Coordinate":
        """Build a coordinate from a ``(latitude, longitude)`` pair."""
        latitude, longitude = pair
        return cls(latitude=latitude, longitude=longitude)

    def as_pair(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


def is_valid_coordinate(coordinate: Coordinate) -> bool:
    """Check that both components are finite and inside their ranges."""
    lat = coordinate.latitude
    lon = coordinate.longitude

    if isinstance(lat, bool) or isinstance(lon, bool):
        return False
    if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False

    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def haversine_distance(a: Coordinate, b: Coordinate) -> float:
    """
    Great-circle distance between two coordinates in kilometers.

    Floating point rounding can push the intermediate term a hair above 1
    for near-antipodal points, so it is clamped before the square roots.
    """
    if a == b:
        return 0.0

    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    )
    h = min(1.0, max(0.0, h))

    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def accumulate(
    previous: Coordinate, current: Coordinate, running_total: float
) -> float:
    """Add the leg from ``previous`` to ``current`` onto ``running_total``."""
    return running_total + haversine_distance(previous, current)


def path_distance(coordinates: Iterable[Coordinate]) -> float:
    """Total distance in km along an ordered sequence of coordinates."""
    total = 0.0
    previous = None
    for coordinate in coordinates:
        if previous is not None:
            total = accumulate(previous, coordinate, total)
        previous = coordinate
    return total
