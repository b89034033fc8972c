from __future__ import annotations

import math
from dataclasses import dataclass

EARTH_RADIUS_METERS = 6_371_000.0


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in meters (Haversine formula)."""
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


@dataclass(frozen=True)
class BoundingBox:
    south: float
    west: float
    north: float
    east: float

    def as_overpass(self) -> str:
        return f"{self.south:.6f},{self.west:.6f},{self.north:.6f},{self.east:.6f}"


def bounding_box(lat: float, lon: float, radius_meters: float) -> BoundingBox:
    lat_offset = math.degrees(radius_meters / EARTH_RADIUS_METERS)
    cos_lat = max(math.cos(math.radians(lat)), 1e-6)
    lon_offset = math.degrees(radius_meters / (EARTH_RADIUS_METERS * cos_lat))
    return BoundingBox(
        south=max(-90.0, lat - lat_offset),
        west=max(-180.0, lon - lon_offset),
        north=min(90.0, lat + lat_offset),
        east=min(180.0, lon + lon_offset),
    )


def offset_position(lat: float, lon: float, north_meters: float, east_meters: float) -> tuple[float, float]:
    dlat = math.degrees(north_meters / EARTH_RADIUS_METERS)
    cos_lat = max(math.cos(math.radians(lat)), 1e-6)
    dlon = math.degrees(east_meters / (EARTH_RADIUS_METERS * cos_lat))
    return lat + dlat, lon + dlon
