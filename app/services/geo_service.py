"""Geo filter builder — proximity predicates over property coordinates.

Distances are great-circle (haversine) metres, computed in SQL from the
plain latitude/longitude columns. A bounding box on those (indexed) columns
narrows the rows the distance is evaluated for. SQLite connections get the
math functions registered in ``app.database``.
"""
import math
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import ColumnElement, Float, case, func

from app.core.exceptions import ValidationError
from app.models.property_model import Property

EARTH_RADIUS_M = 6_371_008.8
BOX_MARGIN_DEG = 1e-6


def _parse_float(raw: str, name: str) -> float:
    try:
        value = float(raw.strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number, got '{raw}'")
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be a finite number")
    return value


def validate_point(latitude: float, longitude: float) -> None:
    if not -90.0 <= latitude <= 90.0:
        raise ValidationError(f"latitude {latitude} is out of range [-90, 90]")
    if not -180.0 <= longitude <= 180.0:
        raise ValidationError(f"longitude {longitude} is out of range [-180, 180]")


@dataclass(frozen=True)
class GeoPredicate:
    latitude: float
    longitude: float
    max_distance_m: float

    def bounding_box_clauses(self) -> list[ColumnElement[bool]]:
        """Coarse SQL prefilter; never excludes a point inside the radius."""
        clauses: list[ColumnElement[bool]] = [
            Property.latitude.is_not(None),
            Property.longitude.is_not(None),
        ]

        angular = self.max_distance_m / EARTH_RADIUS_M
        if angular >= math.pi:
            return clauses

        lat_delta = math.degrees(angular) + BOX_MARGIN_DEG
        min_lat = self.latitude - lat_delta
        max_lat = self.latitude + lat_delta
        clauses.append(Property.latitude >= max(min_lat, -90.0))
        clauses.append(Property.latitude <= min(max_lat, 90.0))

        # The circle reaches a pole: every longitude can be within range.
        if min_lat <= -90.0 or max_lat >= 90.0:
            return clauses

        ratio = math.sin(angular) / math.cos(math.radians(self.latitude))
        if ratio >= 1.0:
            return clauses
        lon_delta = math.degrees(math.asin(ratio)) + BOX_MARGIN_DEG
        min_lon = self.longitude - lon_delta
        max_lon = self.longitude + lon_delta
        # Crossing the antimeridian: leave longitude to the exact check.
        if min_lon < -180.0 or max_lon > 180.0:
            return clauses

        clauses.append(Property.longitude >= min_lon)
        clauses.append(Property.longitude <= max_lon)
        return clauses

    def distance_expression(self) -> ColumnElement[float]:
        """Haversine distance in metres from this point to each row."""
        lat1 = math.radians(self.latitude)
        lat2 = func.radians(Property.latitude, type_=Float)
        dlon = func.radians(Property.longitude, type_=Float) - math.radians(self.longitude)
        half_dlat = func.sin((lat2 - lat1) / 2.0, type_=Float)
        half_dlon = func.sin(dlon / 2.0, type_=Float)
        a = half_dlat * half_dlat + math.cos(lat1) * func.cos(lat2, type_=Float) * half_dlon * half_dlon
        # rounding can push ``a`` just past 1 for antipodal points
        a = case((a > 1.0, 1.0), else_=a)
        return 2.0 * EARTH_RADIUS_M * func.asin(func.sqrt(a, type_=Float), type_=Float)

    def within_clauses(self) -> list[ColumnElement[bool]]:
        """Bounding box prefilter plus the inclusive radius check."""
        return [*self.bounding_box_clauses(), self.distance_expression() <= self.max_distance_m]


def build_geo_predicate(latitude: float, longitude: float, max_distance_m: float) -> GeoPredicate:
    validate_point(latitude, longitude)
    if not math.isfinite(max_distance_m) or max_distance_m <= 0:
        raise ValidationError("distance must be a positive number of metres")
    return GeoPredicate(latitude=latitude, longitude=longitude, max_distance_m=max_distance_m)


def parse_near_location(raw: str, default_distance_m: float) -> GeoPredicate:
    """Parse ``"lat,lng[,distanceMeters]"`` into a GeoPredicate.

    Malformed input raises ValidationError instead of silently degrading
    into a query that matches nothing.
    """
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) not in (2, 3):
        raise ValidationError(
            "nearLocation must be 'lat,lng' or 'lat,lng,distanceMeters'",
            detail={"nearLocation": raw},
        )

    latitude = _parse_float(parts[0], "latitude")
    longitude = _parse_float(parts[1], "longitude")
    distance = default_distance_m
    if len(parts) == 3 and parts[2]:
        distance = _parse_float(parts[2], "distance")

    return build_geo_predicate(latitude, longitude, distance)


def parse_proximity(
    latitude: Optional[str],
    longitude: Optional[str],
    distance: Optional[str],
    default_distance_m: float,
) -> GeoPredicate:
    """Build a predicate from separate latitude/longitude/distance parameters."""
    if latitude is None or longitude is None or not latitude.strip() or not longitude.strip():
        raise ValidationError("latitude and longitude are required")
    max_distance = default_distance_m
    if distance is not None and distance.strip():
        max_distance = _parse_float(distance, "distance")
    return build_geo_predicate(
        _parse_float(latitude, "latitude"),
        _parse_float(longitude, "longitude"),
        max_distance,
    )


def parse_coordinates(raw: str) -> tuple[float, float]:
    """Parse a GeoJSON-ordered ``"lng,lat"`` string. Returns (lng, lat)."""
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 2:
        raise ValidationError("coordinates must be 'lng,lat'", detail={"coordinates": raw})
    longitude = _parse_float(parts[0], "longitude")
    latitude = _parse_float(parts[1], "latitude")
    validate_point(latitude, longitude)
    return longitude, latitude
