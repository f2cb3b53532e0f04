"""
Mixed-effects estimator: zoom level as a random intercept.

Same predictors as the separate linear regressions, but instead of one
free intercept per zoom level the zoom intercepts are drawn from a common
normal distribution and estimated by REML with `statsmodels` MixedLM.
Prediction uses the fixed effects plus the zoom's conditional mode (BLUP)
of the random intercept, which shrinks sparse zoom levels toward the
global intercept. A zoom level never seen at fit time gets a random
intercept of zero, i.e. the population-level prediction.

Only directional agreement with the per-zoom regressions is expected
(signs of slopes, ordering of zoom intercepts); the coefficients are not
equal to either the separate or the per-zoom OLS fits.

Predictors are standardized before fitting for optimizer stability; the
reported fixed effects are transformed back to raw pixel units.
"""

import warnings
from dataclasses import dataclass, field
from typing import Dict, Sequence, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm

from common.errors import EstimationError
from common.logging_config import get_logger
from common.types import LabelFeatures, ZoomLevel
from estimators.base import (
    Estimator,
    EstimatorModel,
    LinearCoefficients,
    column_names,
    require_samples,
)
from estimators.regression import DISTANCE_PREDICTORS, HEADING_PREDICTORS, feature_values

logger = get_logger(__name__)


@dataclass(frozen=True)
class RandomInterceptFit:
    """One response fitted with a zoom random intercept.

    Attributes
    ----------
    fixed : LinearCoefficients
        Population-level intercept and slopes, raw units.
    zoom_intercepts : Dict[ZoomLevel, float]
        Predicted random intercept (BLUP) per zoom level.
    group_variance : float
        Estimated variance of the random intercept.
    """
    fixed: LinearCoefficients
    zoom_intercepts: Dict[ZoomLevel, float] = field(default_factory=dict)
    group_variance: float = 0.0

    def intercept_for(self, zoom: int) -> float:
        """Fixed intercept plus the zoom's random intercept (0 if unseen)."""
        level = ZoomLevel.parse(zoom)
        return self.fixed.intercept + self.zoom_intercepts.get(level, 0.0)

    def evaluate(self, values: Dict[str, float], zoom: int) -> float:
        slopes = sum(coef * float(values[name]) for name, coef in self.fixed.slopes)
        return self.intercept_for(zoom) + slopes


def fit_random_intercept(
    frame: pd.DataFrame,
    response: str,
    predictors: Sequence[str],
    estimator: str,
) -> RandomInterceptFit:
    """Fit `response ~ predictors + (1 | zoom)` by REML.

    A predictor that is constant over `frame` cannot be separated from the
    intercept; it is left out of the fit and its slope reported as 0.

    Raises
    ------
    InsufficientDataError
        With fewer than two zoom groups, or fewer rows than the fixed
        effects plus the variance component.
    EstimationError
        If the REML fit fails numerically.
    """
    groups = frame['zoom'].astype(int)
    require_samples(int(groups.nunique()), 2, "zoom groups", estimator)
    require_samples(len(frame), len(predictors) + 2, "all", estimator)

    raw = frame[list(predictors)].astype(float)
    spread = raw.std(ddof=0)
    varying = [p for p in predictors if spread[p] > 0.0]
    for p in predictors:
        if p not in varying:
            logger.warning(f"{estimator}: {response} predictor '{p}' is constant, slope fixed at 0")

    means = raw[varying].mean()
    scales = spread[varying]
    exog = sm.add_constant((raw[varying] - means) / scales, has_constant='add')
    endog = frame[response].astype(float)

    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            result = sm.MixedLM(endog, exog, groups=groups).fit(reml=True)
    except np.linalg.LinAlgError as e:
        raise EstimationError(f"{response} mixed model fit failed: {e}", estimator) from e
    for w in caught:
        logger.warning(f"{estimator}: {response} mixed model: {w.message}")

    fe = result.fe_params
    slopes = tuple(
        (p, float(fe[p] / scales[p]) if p in varying else 0.0) for p in predictors
    )
    intercept = float(fe['const'] - sum(fe[p] * means[p] / scales[p] for p in varying))

    zoom_intercepts = {
        ZoomLevel(int(group)): float(np.asarray(effect)[0])
        for group, effect in result.random_effects.items()
    }
    group_variance = float(np.asarray(result.cov_re)[0, 0])

    return RandomInterceptFit(
        fixed=LinearCoefficients(intercept=intercept, slopes=slopes),
        zoom_intercepts=zoom_intercepts,
        group_variance=group_variance,
    )


@dataclass(frozen=True)
class MixedEffectsModel(EstimatorModel):
    """Distance and heading models with partially pooled zoom intercepts."""
    name: str
    distance: RandomInterceptFit
    heading: RandomInterceptFit

    def _predict_raw(self, features: LabelFeatures) -> Tuple[float, float]:
        values = feature_values(features)
        return (
            self.distance.evaluate(values, features.zoom),
            self.heading.evaluate(values, features.zoom),
        )


class MixedEffectsEstimator(Estimator):
    """Estimator 6: separate regressions with zoom as a random intercept."""

    name = "mixed_effects"
    description = "Mixed-effects regressions, zoom as a random intercept"
    required_columns = column_names(
        ("pano_distance", "heading_diff", "zoom"), DISTANCE_PREDICTORS, HEADING_PREDICTORS
    )

    def _fit(self, calibration: pd.DataFrame) -> MixedEffectsModel:
        distance = fit_random_intercept(calibration, 'pano_distance', DISTANCE_PREDICTORS, self.name)
        heading = fit_random_intercept(calibration, 'heading_diff', HEADING_PREDICTORS, self.name)
        logger.debug(
            f"{self.name}: zoom intercept variance distance={distance.group_variance:.4g}, "
            f"heading={heading.group_variance:.4g}"
        )
        return MixedEffectsModel(name=self.name, distance=distance, heading=heading)
