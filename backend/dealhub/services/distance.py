"""Great-circle distance helpers for ranking deals around a viewer.

All coordinates are WGS84 degrees. Nothing here validates ranges; callers
pass whatever the geocoder or the client supplied.
"""

import math
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, NamedTuple, Sequence, TypeVar

EARTH_RADIUS_KM = 6371.0

T = TypeVar("T")


@dataclass(frozen=True)
class Coordinates:
    """A latitude/longitude pair in degrees."""

    lat: float
    lng: float


# Map fallback when there is nothing to centre on (Times Square, NYC)
DEFAULT_CENTER = Coordinates(lat=40.7589, lng=-73.9851)


class RankedPoint(NamedTuple):
    """A point paired with its distance from the origin, in km."""

    item: Any
    distance: float


def distance_km(a: Coordinates, b: Coordinates) -> float:
    """Haversine distance between ``a`` and ``b`` rounded to 0.1 km."""
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat))
        * math.cos(math.radians(b.lat))
        * math.sin(d_lng / 2) ** 2
    )
    h = min(1.0, h)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return round(EARTH_RADIUS_KM * c, 1)


def _identity(point):
    return point


def filter_by_distance(
    points: Iterable[T],
    origin: Coordinates,
    max_km: float,
    coords_of: Callable[[T], Coordinates] = _identity,
) -> List[RankedPoint]:
    """Keep points within ``max_km`` of ``origin``, nearest first.

    Args:
        points: Items to rank
        origin: Reference coordinate (usually the viewer)
        max_km: Inclusive distance threshold
        coords_of: Extracts ``Coordinates`` from an item; defaults to the
            item itself

    Returns:
        RankedPoint list sorted ascending by distance. Ties keep no
        particular order.
    """
    ranked = [RankedPoint(p, distance_km(origin, coords_of(p))) for p in points]
    ranked = [r for r in ranked if r.distance <= max_km]
    ranked.sort(key=lambda r: r.distance)
    return ranked


def centroid(points: Sequence[Coordinates]) -> Coordinates:
    """Arithmetic mean of latitudes and longitudes.

    This is a flat average rather than a spherical centroid, which is good
    enough for centring a map on nearby points. Returns ``DEFAULT_CENTER``
    for an empty input.
    """
    if not points:
        return DEFAULT_CENTER

    lat = sum(p.lat for p in points) / len(points)
    lng = sum(p.lng for p in points) / len(points)
    return Coordinates(lat=lat, lng=lng)
