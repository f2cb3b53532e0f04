"""
Estimator Family for Label Geolocation.

Each estimator maps the feature view of a label (canvas and panorama
pixel coordinates, camera heading, zoom level, label type) to a distance
from the camera and a heading offset from the camera heading.

1. constant                 fixed distance
2. median_distance          median calibration distance
3. median_distance_by_type  median distance per label type
4. joint_linear             joint OLS of both responses
5. separate_linear          separate OLS fits, zoom as a categorical
6. mixed_effects            separate fits, zoom as a random intercept
7. per_zoom_linear          separate OLS fits per zoom level (production)
"""

from estimators.base import Estimator, EstimatorModel, LinearCoefficients
from estimators.baselines import (
    ConstantDistanceEstimator,
    ConstantDistanceModel,
    MedianDistanceEstimator,
    MedianDistanceByTypeEstimator,
    StratifiedMedianModel,
)
from estimators.regression import (
    JointLinearEstimator,
    JointLinearModel,
    SeparateLinearEstimator,
    SeparateLinearModel,
    PerZoomLinearEstimator,
    PerZoomLinearModel,
    fit_ols,
)
from estimators.mixed_effects import (
    MixedEffectsEstimator,
    MixedEffectsModel,
    RandomInterceptFit,
)
from estimators.family import build_estimator_family

__all__ = [
    "Estimator",
    "EstimatorModel",
    "LinearCoefficients",
    "ConstantDistanceEstimator",
    "ConstantDistanceModel",
    "MedianDistanceEstimator",
    "MedianDistanceByTypeEstimator",
    "StratifiedMedianModel",
    "JointLinearEstimator",
    "JointLinearModel",
    "SeparateLinearEstimator",
    "SeparateLinearModel",
    "PerZoomLinearEstimator",
    "PerZoomLinearModel",
    "fit_ols",
    "MixedEffectsEstimator",
    "MixedEffectsModel",
    "RandomInterceptFit",
    "build_estimator_family",
]
