"""Geodesic helpers for the annotation overlay.

Everything here is pure and deterministic:

  * ``distance_km`` / ``bearing_deg``: haversine great-circle distance
    (Earth radius 6371 km) and initial bearing, normalized to [0, 360).
  * ``to_mgrs`` / ``to_utm``: grid reference strings for display. These are
    NOT real MGRS/UTM conversions: zone = floor((lon + 180) / 6) + 1 and the
    easting/northing are naive modular offsets. Do not feed them into
    anything that expects geodetic accuracy.
  * ``centroid`` / ``midpoint`` / ``anchor``: the derived point used to
    label and drag an area. Never stored on the entity.
  * ``translate``: rigid shift of an area by (dlat, dlon).
  * ``destination`` / ``circle_ring`` / ``path_length_km``: helpers for
    drawing circles as rings and for length/perimeter labels.
"""

from __future__ import annotations

import dataclasses
import math

import numpy as np

from .types import Area, LatLon

EARTH_RADIUS_KM = 6371.0


def distance_km(a: LatLon, b: LatLon) -> float:
    """Haversine great-circle distance between two (lat, lon) points in km."""
    lat1, lon1 = math.radians(a[0]), math.radians(a[1])
    lat2, lon2 = math.radians(b[0]), math.radians(b[1])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def bearing_deg(a: LatLon, b: LatLon) -> float:
    """Initial bearing from a to b in degrees, in [0, 360)."""
    lat1, lat2 = math.radians(a[0]), math.radians(b[0])
    dlon = math.radians(b[1] - a[1])
    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(
        lat2
    ) * math.cos(dlon)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def destination(origin: LatLon, bearing: float, dist_km: float) -> LatLon:
    """Point reached by travelling dist_km from origin on an initial bearing."""
    lat1 = math.radians(origin[0])
    lon1 = math.radians(origin[1])
    brg = math.radians(bearing)
    d = dist_km / EARTH_RADIUS_KM
    lat2 = math.asin(
        math.sin(lat1) * math.cos(d)
        + math.cos(lat1) * math.sin(d) * math.cos(brg)
    )
    lon2 = lon1 + math.atan2(
        math.sin(brg) * math.sin(d) * math.cos(lat1),
        math.cos(d) - math.sin(lat1) * math.sin(lat2),
    )
    lon_deg = (math.degrees(lon2) + 540.0) % 360.0 - 180.0
    return (math.degrees(lat2), lon_deg)


def path_length_km(points: list[LatLon], closed: bool = False) -> float:
    """Sum of haversine leg lengths along points (closing the ring if asked)."""
    if len(points) < 2:
        return 0.0
    arr = np.radians(np.asarray(points, dtype=float))
    if closed:
        arr = np.vstack([arr, arr[:1]])
    lat1, lon1 = arr[:-1, 0], arr[:-1, 1]
    lat2, lon2 = arr[1:, 0], arr[1:, 1]
    h = (
        np.sin((lat2 - lat1) / 2) ** 2
        + np.cos(lat1) * np.cos(lat2) * np.sin((lon2 - lon1) / 2) ** 2
    )
    legs = 2 * EARTH_RADIUS_KM * np.arctan2(np.sqrt(h), np.sqrt(1 - h))
    return float(legs.sum())


def circle_ring(
    center: LatLon, radius_m: float, segments: int = 64
) -> list[LatLon]:
    """Approximate a geodesic circle as a closed-by-convention vertex ring."""
    km = radius_m / 1000.0
    return [
        destination(center, 360.0 * i / segments, km) for i in range(segments)
    ]


# -- grid references (display approximations) --


def _zone(lon: float) -> int:
    return math.floor((lon + 180.0) / 6.0) + 1


def to_mgrs(lat: float, lon: float) -> str:
    """Simplified MGRS-style string, e.g. ``"32T 450000 425000"``."""
    letter = chr(67 + math.floor((lat + 80.0) / 8.0))
    easting = math.floor((lon % 6.0) * 100000)
    northing = math.floor((lat % 8.0) * 100000)
    return f"{_zone(lon)}{letter} {easting:05d} {northing:05d}"


def to_utm(lat: float, lon: float) -> str:
    """Simplified UTM-style string, e.g. ``"32N 950000 6684511"``."""
    hemisphere = "N" if lat >= 0 else "S"
    easting = math.floor((lon % 6.0) * 100000) + 500000
    if lat >= 0:
        northing = math.floor(lat * 110946.257)
    else:
        northing = math.floor((lat + 90.0) * 110946.257) + 10000000
    return f"{_zone(lon)}{hemisphere} {easting} {northing}"


def describe_position(p: LatLon) -> dict[str, str]:
    """Display block for a position: decimal lat/lon plus grid references."""
    lat, lon = p
    return {
        "lat": f"{lat:.6f}",
        "lon": f"{lon:.6f}",
        "mgrs": to_mgrs(lat, lon),
        "utm": to_utm(lat, lon),
    }


def format_distance(km: float) -> str:
    if km < 1.0:
        return f"{km * 1000:.0f} m"
    return f"{km:.2f} km"


def format_bearing(deg: float) -> str:
    return f"{round(deg) % 360:03d}°"


# -- anchors & translation --


def centroid(points: list[LatLon]) -> LatLon:
    """Arithmetic mean of a non-empty point list.

    Raises ValueError on an empty list.
    """
    if not points:
        raise ValueError("centroid of an empty point list is undefined")
    lat, lon = np.asarray(points, dtype=float).mean(axis=0)
    return (float(lat), float(lon))


def midpoint(points: list[LatLon]) -> LatLon:
    """Anchor of a line: the mean of its vertices (not the path midpoint)."""
    return centroid(points)


def anchor(area: Area) -> LatLon:
    """Derived drag/label point: centroid, line midpoint, or circle center."""
    if area.shape == "circle":
        if area.center is None:
            raise ValueError(f"circle area {area.id} has no center")
        return area.center
    if area.shape == "line":
        return midpoint(area.vertices)
    return centroid(area.vertices)


def translate_points(
    points: list[LatLon], dlat: float, dlon: float
) -> list[LatLon]:
    return [(lat + dlat, lon + dlon) for lat, lon in points]


def translate(area: Area, dlat: float, dlon: float) -> Area:
    """Return a copy of area shifted by (dlat, dlon). Radius is unchanged."""
    if area.shape == "circle":
        assert area.center is not None
        lat, lon = area.center
        return dataclasses.replace(area, center=(lat + dlat, lon + dlon))
    return dataclasses.replace(
        area, vertices=translate_points(area.vertices, dlat, dlon)
    )
