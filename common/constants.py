"""
Reference Constants for Panorama Label Geolocation.

Geodetic parameters of the reference ellipsoid and the calibration
defaults used by the cleaning and estimation stages. Every constant
carries its unit and provenance.

References
----------
- WGS84 parameters: NIMA TR8350.2, Third Edition, 2000
- Corpus thresholds: data-quality policy of the labelled panorama corpus
"""

from dataclasses import dataclass
from typing import Final, Tuple


@dataclass(frozen=True)
class Constant:
    """A value with its unit and where it comes from.

    Attributes
    ----------
    value : float
        Nominal value.
    unit : str
        Unit of `value`.
    source : str
        Reference or policy the value is taken from.
    description : str
        What the value is used for.
    """
    value: float
    unit: str
    source: str
    description: str


class GeodeticConstants:
    """Defining parameters of the WGS84 ellipsoid.

    The geodesic solver in `geospatial.distance_calculations` is built
    from these two values.
    """

    EARTH_SEMI_MAJOR_AXIS: Final[Constant] = Constant(
        value=6_378_137.0,
        unit="m",
        source="WGS84, NIMA TR8350.2",
        description="Equatorial radius",
    )

    EARTH_INVERSE_FLATTENING: Final[Constant] = Constant(
        value=298.257223563,
        unit="dimensionless",
        source="WGS84, NIMA TR8350.2",
        description="1 / f, with f = (a - b) / a",
    )


class CalibrationDefaults:
    """Default thresholds for cleaning the corpus and fitting estimators.

    These are the values `pipeline.config.CalibrationConfig` falls back to.
    """

    MAX_LABELS_PER_PANO: Final[int] = 20
    """A panorama with this many surviving labels or more is excluded."""

    MAX_PANO_DISTANCE: Final[Constant] = Constant(
        value=50.0,
        unit="m",
        source="corpus data-quality policy",
        description="Labels at or beyond this distance from the camera are dropped",
    )

    CONSTANT_DISTANCE: Final[Constant] = Constant(
        value=10.0,
        unit="m",
        source="naive baseline",
        description="Distance used by the constant-distance estimator",
    )

    CALIBRATION_FRACTION: Final[float] = 0.8
    RANDOM_SEED: Final[int] = 0
    TRUSTED_GROUND_TRUTH_SOURCE: Final[str] = "depth"


# Zoom levels a viewport can be recorded at
ZOOM_LEVELS: Final[Tuple[int, ...]] = (1, 2, 3)
