"""
The estimator family, ordered from naive to production-grade.

The evaluation is comparative, so a run always fits every member.
"""

from typing import List

from common.constants import CalibrationDefaults
from estimators.base import Estimator
from estimators.baselines import (
    ConstantDistanceEstimator,
    MedianDistanceByTypeEstimator,
    MedianDistanceEstimator,
)
from estimators.mixed_effects import MixedEffectsEstimator
from estimators.regression import (
    JointLinearEstimator,
    PerZoomLinearEstimator,
    SeparateLinearEstimator,
)


def build_estimator_family(
    constant_distance_m: float = CalibrationDefaults.CONSTANT_DISTANCE.value,
) -> List[Estimator]:
    """All seven estimators in increasing sophistication."""
    return [
        ConstantDistanceEstimator(constant_distance_m),
        MedianDistanceEstimator(),
        MedianDistanceByTypeEstimator(),
        JointLinearEstimator(),
        SeparateLinearEstimator(),
        MixedEffectsEstimator(),
        PerZoomLinearEstimator(),
    ]
