"""
Common utilities and infrastructure for the panorama label geolocation engine.

This package provides foundational components used across all modules:
- Geodetic constants and calibration defaults
- Unit registry for configuration lengths
- Type definitions for coordinates, features and predictions
- Error taxonomy
- Logging and audit trail infrastructure
"""

from common.constants import GeodeticConstants, CalibrationDefaults, ZOOM_LEVELS
from common.units import ureg, Q_, to_meters
from common.types import (
    GeoCoordinate,
    ZoomLevel,
    LabelFeatures,
    Prediction,
)
from common.errors import (
    GeolocationError,
    SchemaError,
    InsufficientDataError,
    EstimationError,
    UnknownStratumError,
)
from common.logging_config import get_logger, AuditLogger

__all__ = [
    "GeodeticConstants",
    "CalibrationDefaults",
    "ZOOM_LEVELS",
    "ureg",
    "Q_",
    "to_meters",
    "GeoCoordinate",
    "ZoomLevel",
    "LabelFeatures",
    "Prediction",
    "GeolocationError",
    "SchemaError",
    "InsufficientDataError",
    "EstimationError",
    "UnknownStratumError",
    "get_logger",
    "AuditLogger",
]
