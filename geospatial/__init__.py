"""
Geospatial Module for Panorama Label Geolocation.

All Earth-surface calculations system-wide MUST originate from this
module. No downstream module may implement geometry calculations
independently: the cleaner, the estimators' training targets and the
scorer all share the same ellipsoid and bearing conventions.

This module provides:
- Geodesic distance and initial bearing (WGS84)
- Destination point from origin, bearing and distance
- Heading-difference normalization
"""

from geospatial.distance_calculations import (
    GeodesicResult,
    geodesic_inverse,
    great_circle_distance,
    bearing,
    destination_point,
    geodesic_distance_batch,
    bearing_batch,
    destination_point_batch,
    normalize_heading_difference,
)

__all__ = [
    "GeodesicResult",
    "geodesic_inverse",
    "great_circle_distance",
    "bearing",
    "destination_point",
    "geodesic_distance_batch",
    "bearing_batch",
    "destination_point_batch",
    "normalize_heading_difference",
]
