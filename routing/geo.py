#Purpose: Great-circle geo math.
#Everything here is pure: no network, no randomness.
#Coordinates are (lat, lon) degrees internally; objects or mappings exposing
#latitude/longitude (what the app sends around) are normalised with as_latlon().

import math
from typing import Any, Mapping, Tuple, Union

#internal coordinate type :(lat,lon)
LatLon = Tuple[float, float]
Coordinates = Union[LatLon, Mapping[str, float], Any]

EARTH_RADIUS_KM = 6371.0


def as_latlon(point: Coordinates) -> LatLon:
    """
    Normalise a coordinate into an internal (lat, lon) tuple.
    Accepts (lat, lon) tuples/lists, {"latitude", "longitude"} mappings,
    or any object with .latitude / .longitude attributes.
    """
    if isinstance(point, Mapping):
        return float(point["latitude"]), float(point["longitude"])
    if hasattr(point, "latitude") and hasattr(point, "longitude"):
        return float(point.latitude), float(point.longitude)
    lat, lon = point
    return float(lat), float(lon)


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    """
    Great-circle distance in kilometres between two points
    (haversine formula, spherical earth of radius 6371 km).
    """
    lat1, lon1 = as_latlon(origin)
    lat2, lon2 = as_latlon(destination)

    d_lat = (lat2 - lat1) * math.pi / 180
    d_lon = (lon2 - lon1) * math.pi / 180
    a = (
        math.sin(d_lat / 2) * math.sin(d_lat / 2)
        + math.cos(lat1 * math.pi / 180) * math.cos(lat2 * math.pi / 180)
        * math.sin(d_lon / 2) * math.sin(d_lon / 2)
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c
