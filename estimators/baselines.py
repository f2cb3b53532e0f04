"""
Baseline estimators: constant and median distances, zero heading offset.

These ignore the click position entirely and place the label straight
ahead of the camera. They exist to show how much the regressions gain.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple

import numpy as np
import pandas as pd

from common.constants import CalibrationDefaults
from common.types import LabelFeatures
from estimators.base import Estimator, EstimatorModel, require_samples


@dataclass(frozen=True)
class ConstantDistanceModel(EstimatorModel):
    """Fixed distance straight ahead of the camera."""
    name: str
    distance_m: float

    def _predict_raw(self, features: LabelFeatures) -> Tuple[float, float]:
        return self.distance_m, 0.0


@dataclass(frozen=True)
class StratifiedMedianModel(EstimatorModel):
    """Median distance per label type, global median for unseen types."""
    name: str
    fallback_distance_m: float
    medians: Dict[str, float] = field(default_factory=dict)

    def _predict_raw(self, features: LabelFeatures) -> Tuple[float, float]:
        return self.medians.get(features.label_type, self.fallback_distance_m), 0.0


class ConstantDistanceEstimator(Estimator):
    """Estimator 1: a fixed distance, no free parameters."""

    name = "constant"
    description = "Fixed distance, zero heading offset"

    def __init__(self, distance_m: float = CalibrationDefaults.CONSTANT_DISTANCE.value):
        if distance_m < 0:
            raise ValueError(f"Constant distance must be non-negative, got {distance_m}")
        self.distance_m = float(distance_m)

    def _fit(self, calibration: pd.DataFrame) -> ConstantDistanceModel:
        return ConstantDistanceModel(name=self.name, distance_m=self.distance_m)


class MedianDistanceEstimator(Estimator):
    """Estimator 2: median calibration distance."""

    name = "median_distance"
    description = "Median calibration distance, zero heading offset"
    required_columns = ("pano_distance",)

    def _fit(self, calibration: pd.DataFrame) -> ConstantDistanceModel:
        require_samples(len(calibration), 1, "all", self.name)
        median = float(np.median(calibration['pano_distance'].to_numpy(dtype=float)))
        return ConstantDistanceModel(name=self.name, distance_m=median)


class MedianDistanceByTypeEstimator(Estimator):
    """Estimator 3: median calibration distance within each label type."""

    name = "median_distance_by_type"
    description = "Median distance per label type, zero heading offset"
    required_columns = ("pano_distance", "label_type")

    def _fit(self, calibration: pd.DataFrame) -> StratifiedMedianModel:
        require_samples(len(calibration), 1, "all", self.name)
        global_median = float(np.median(calibration['pano_distance'].to_numpy(dtype=float)))
        by_type = calibration.groupby('label_type', sort=True)['pano_distance'].median()
        return StratifiedMedianModel(
            name=self.name,
            fallback_distance_m=global_median,
            medians={str(k): float(v) for k, v in by_type.items()},
        )
