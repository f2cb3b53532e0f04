"""
Calibration pipeline orchestration.
"""

from pipeline.config import CalibrationConfig
from pipeline.runner import (
    CalibrationRun,
    fit_and_score,
    run_calibration,
    export_coefficients,
)

__all__ = [
    "CalibrationConfig",
    "CalibrationRun",
    "fit_and_score",
    "run_calibration",
    "export_coefficients",
]
