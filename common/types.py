"""
Type Definitions for Panorama Label Geolocation.

This module defines the dataclasses and enumerations passed between the
cleaning, estimation and scoring stages. Using typed containers instead of
raw rows or dicts keeps the boundary between what an estimator may see
(the feature view) and the ground truth explicit.

Conventions
-----------
- Coordinates are geodetic DEGREES on the WGS84 ellipsoid.
- Headings and bearings are DEGREES clockwise from north.
- Distances are METERS.
- Pixel positions are integer-valued but carried as floats.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Mapping, NamedTuple, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class GeoCoordinate:
    """A geographic coordinate on Earth's surface.

    Attributes
    ----------
    latitude : float
        Geodetic latitude in DEGREES. Range: [-90, 90].
    longitude : float
        Geodetic longitude in DEGREES. Range: [-180, 180].

    Examples
    --------
    >>> camera = GeoCoordinate(38.9072, -77.0369)
    >>> camera.to_radians()
    (0.679..., -1.344...)
    """
    latitude: float
    longitude: float

    def __post_init__(self):
        """Validate coordinate ranges."""
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(
                f"Latitude {self.latitude} out of range [-90, 90]. "
                f"Did you swap latitude and longitude?"
            )
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude {self.longitude} out of range [-180, 180]")

    def to_radians(self) -> Tuple[float, float]:
        """Return (latitude, longitude) in radians."""
        return float(np.radians(self.latitude)), float(np.radians(self.longitude))


class ZoomLevel(IntEnum):
    """Discrete viewport magnification a label was recorded at."""

    ONE = 1
    TWO = 2
    THREE = 3

    @classmethod
    def parse(cls, value: Any) -> Optional['ZoomLevel']:
        """Convert a raw zoom value, returning None if it is not a known level."""
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return None


@dataclass(frozen=True)
class LabelFeatures:
    """The feature view of one label: everything `predict` is allowed to see.

    Ground-truth columns (`lat`, `lng`, `pano_distance`, `heading_diff`)
    are not part of it.

    Attributes
    ----------
    canvas_x, canvas_y : float
        Click position within the rendered viewport, pixels.
    sv_image_y : float
        Click row within the full panorama image, pixels.
    heading : float
        Camera heading at click time, degrees.
    zoom : int
        Viewport zoom level (1, 2 or 3 for valid records).
    label_type : str
        Label category.
    """
    canvas_x: float
    canvas_y: float
    sv_image_y: float
    heading: float
    zoom: int
    label_type: str = ""

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'LabelFeatures':
        """Build the feature view from a corpus row (Series or dict)."""
        return cls(
            canvas_x=float(row["canvas_x"]),
            canvas_y=float(row["canvas_y"]),
            sv_image_y=float(row["sv_image_y"]),
            heading=float(row["heading"]),
            zoom=int(row["zoom"]),
            label_type=str(row.get("label_type", "")),
        )


FEATURE_COLUMNS: Tuple[str, ...] = (
    "canvas_x", "canvas_y", "sv_image_y", "heading", "zoom", "label_type",
)


class Prediction(NamedTuple):
    """Output of an estimator for one label."""
    distance_m: float
    heading_offset_deg: float
