"""
Ordinary least squares estimators.

Three variants, in increasing specificity:

- JointLinearEstimator: a single multivariate OLS fit of
  (heading_diff, pano_distance) on (canvas_y, sv_image_y).
- SeparateLinearEstimator: one OLS model for distance and one for heading
  offset, each with zoom as a categorical (treatment-coded) predictor.
- PerZoomLinearEstimator: independent distance and heading models for each
  zoom level. This is the production estimator; its coefficients are the
  constants baked into the labelling runtime.

Runtime Formula (per zoom level)
--------------------------------
    distance       = intercept_dist + a * sv_image_y + b * canvas_y
    heading_offset = intercept_heading + c * canvas_x
    final          = destination(pano, camera_heading + heading_offset, max(0, distance))
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from common.constants import ZOOM_LEVELS
from common.errors import UnknownStratumError
from common.logging_config import get_logger
from common.types import LabelFeatures, ZoomLevel
from estimators.base import (
    Estimator,
    EstimatorModel,
    LinearCoefficients,
    column_names,
    require_samples,
)

logger = get_logger(__name__)

DISTANCE_PREDICTORS: Tuple[str, ...] = ("sv_image_y", "canvas_y")
HEADING_PREDICTORS: Tuple[str, ...] = ("canvas_x",)
JOINT_PREDICTORS: Tuple[str, ...] = ("canvas_y", "sv_image_y")
JOINT_RESPONSES: Tuple[str, ...] = ("heading_diff", "pano_distance")


def fit_ols(
    frame: pd.DataFrame,
    responses: Sequence[str],
    predictors: Sequence[str],
    stratum: str,
    estimator: str,
) -> Dict[str, LinearCoefficients]:
    """Fit one or more responses on shared predictors by least squares.

    Parameters
    ----------
    frame : pd.DataFrame
        Rows to fit on.
    responses : sequence of str
        Response columns. Several responses share the design matrix and
        are solved jointly.
    predictors : sequence of str
        Predictor columns; an intercept is always added.
    stratum : str
        Name of the rows being fitted, for error messages.
    estimator : str
        Estimator name, for error messages.

    Returns
    -------
    Dict[str, LinearCoefficients]
        Fitted coefficients per response.

    Raises
    ------
    InsufficientDataError
        If there are fewer rows than coefficients per response.
    """
    n_parameters = len(predictors) + 1
    n = len(frame)
    require_samples(n, n_parameters, stratum, estimator)

    design = np.column_stack(
        [np.ones(n)] + [frame[p].to_numpy(dtype=float) for p in predictors]
    )
    targets = frame[list(responses)].to_numpy(dtype=float)

    beta, _, rank, _ = np.linalg.lstsq(design, targets, rcond=None)
    if rank < n_parameters:
        logger.warning(
            f"{estimator}: design matrix for stratum '{stratum}' is rank deficient "
            f"({rank} < {n_parameters}); using the minimum-norm solution"
        )

    return {
        response: LinearCoefficients(
            intercept=float(beta[0, j]),
            slopes=tuple((p, float(beta[i + 1, j])) for i, p in enumerate(predictors)),
        )
        for j, response in enumerate(responses)
    }


def zoom_dummy_name(level: int) -> str:
    return f"zoom_{int(level)}"


def add_zoom_dummies(frame: pd.DataFrame, levels: Sequence[int]) -> pd.DataFrame:
    """Return a copy with one 0/1 indicator column per level in `levels`."""
    out = frame.copy()
    for level in levels:
        out[zoom_dummy_name(level)] = (out['zoom'].astype(int) == int(level)).astype(float)
    return out


def feature_values(features: LabelFeatures, dummy_levels: Sequence[int] = ()) -> Dict[str, float]:
    """Numeric predictor values of one label, including zoom indicators."""
    values = {
        'canvas_x': features.canvas_x,
        'canvas_y': features.canvas_y,
        'sv_image_y': features.sv_image_y,
    }
    for level in dummy_levels:
        values[zoom_dummy_name(level)] = 1.0 if int(features.zoom) == int(level) else 0.0
    return values


# ---------------------------------------------------------------------------
# Joint linear regression
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class JointLinearModel(EstimatorModel):
    """Multivariate OLS of (heading_diff, pano_distance)."""
    name: str
    heading: LinearCoefficients
    distance: LinearCoefficients

    def _predict_raw(self, features: LabelFeatures) -> Tuple[float, float]:
        values = feature_values(features)
        return self.distance.evaluate(values), self.heading.evaluate(values)


class JointLinearEstimator(Estimator):
    """Estimator 4: both responses regressed jointly on canvas_y and sv_image_y."""

    name = "joint_linear"
    description = "Joint OLS of heading offset and distance on canvas_y, sv_image_y"
    required_columns = column_names(JOINT_RESPONSES, JOINT_PREDICTORS)

    def _fit(self, calibration: pd.DataFrame) -> JointLinearModel:
        fitted = fit_ols(calibration, JOINT_RESPONSES, JOINT_PREDICTORS, "all", self.name)
        return JointLinearModel(
            name=self.name,
            heading=fitted['heading_diff'],
            distance=fitted['pano_distance'],
        )


# ---------------------------------------------------------------------------
# Separate linear regressions with zoom as a categorical predictor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SeparateLinearModel(EstimatorModel):
    """Independent OLS fits for distance and heading offset.

    Zoom enters as treatment-coded indicators against `base_zoom`, the
    lowest zoom level present at fit time. A zoom level absent at fit time
    has no indicator and is predicted at the base level.
    """
    name: str
    distance: LinearCoefficients
    heading: LinearCoefficients
    base_zoom: int
    dummy_levels: Tuple[int, ...] = ()

    def _predict_raw(self, features: LabelFeatures) -> Tuple[float, float]:
        values = feature_values(features, self.dummy_levels)
        return self.distance.evaluate(values), self.heading.evaluate(values)


class SeparateLinearEstimator(Estimator):
    """Estimator 5: separate distance and heading OLS models, zoom as a factor."""

    name = "separate_linear"
    description = "Separate OLS for distance and heading offset, zoom as a categorical"
    required_columns = column_names(
        ("pano_distance", "heading_diff", "zoom"), DISTANCE_PREDICTORS, HEADING_PREDICTORS
    )

    def _fit(self, calibration: pd.DataFrame) -> SeparateLinearModel:
        observed = sorted(int(z) for z in calibration['zoom'].unique())
        require_samples(len(observed), 1, "zoom levels", self.name)
        base_zoom, dummy_levels = observed[0], tuple(observed[1:])
        frame = add_zoom_dummies(calibration, dummy_levels)
        dummies = tuple(zoom_dummy_name(z) for z in dummy_levels)

        distance = fit_ols(
            frame, ("pano_distance",), DISTANCE_PREDICTORS + dummies, "all", self.name
        )['pano_distance']
        heading = fit_ols(
            frame, ("heading_diff",), HEADING_PREDICTORS + dummies, "all", self.name
        )['heading_diff']

        return SeparateLinearModel(
            name=self.name,
            distance=distance,
            heading=heading,
            base_zoom=base_zoom,
            dummy_levels=dummy_levels,
        )


# ---------------------------------------------------------------------------
# Per-zoom regressions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PerZoomLinearModel(EstimatorModel):
    """Independent distance and heading regressions for each zoom level.

    Attributes
    ----------
    distance : Dict[ZoomLevel, LinearCoefficients]
        distance ~ sv_image_y + canvas_y, per zoom.
    heading : Dict[ZoomLevel, LinearCoefficients]
        heading_offset ~ canvas_x, per zoom.
    """
    name: str
    distance: Dict[ZoomLevel, LinearCoefficients] = field(default_factory=dict)
    heading: Dict[ZoomLevel, LinearCoefficients] = field(default_factory=dict)

    def _stratum(self, features: LabelFeatures) -> ZoomLevel:
        zoom = ZoomLevel.parse(features.zoom)
        if zoom is None or zoom not in self.distance or zoom not in self.heading:
            raise UnknownStratumError(features.zoom, self.name)
        return zoom

    def _predict_raw(self, features: LabelFeatures) -> Tuple[float, float]:
        zoom = self._stratum(features)
        values = feature_values(features)
        return self.distance[zoom].evaluate(values), self.heading[zoom].evaluate(values)

    def coefficient_table(self) -> pd.DataFrame:
        """The runtime constants, one row per zoom level.

        Columns: intercept_dist, a_sv_image_y, b_canvas_y, intercept_heading,
        c_canvas_x.
        """
        rows = []
        for zoom in sorted(self.distance):
            dist, head = self.distance[zoom], self.heading[zoom]
            rows.append({
                'zoom': int(zoom),
                'intercept_dist': dist.intercept,
                'a_sv_image_y': dist.slope('sv_image_y'),
                'b_canvas_y': dist.slope('canvas_y'),
                'intercept_heading': head.intercept,
                'c_canvas_x': head.slope('canvas_x'),
            })
        return pd.DataFrame(rows).set_index('zoom')

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, float]]]:
        """JSON-serialisable coefficients keyed by zoom level then response."""
        return {
            str(int(zoom)): {
                'distance': self.distance[zoom].to_dict(),
                'heading_offset': self.heading[zoom].to_dict(),
            }
            for zoom in sorted(self.distance)
        }

    def runtime_formula(self, precision: int = 6) -> str:
        """Render the fitted formulas as they are copied into the runtime."""
        lines = []
        for zoom, row in self.coefficient_table().iterrows():
            lines.append(
                f"zoom {zoom}: distance = {row['intercept_dist']:.{precision}f}"
                f" + {row['a_sv_image_y']:.{precision}f} * sv_image_y"
                f" + {row['b_canvas_y']:.{precision}f} * canvas_y"
            )
            lines.append(
                f"zoom {zoom}: heading_offset = {row['intercept_heading']:.{precision}f}"
                f" + {row['c_canvas_x']:.{precision}f} * canvas_x"
            )
        return "\n".join(lines)


class PerZoomLinearEstimator(Estimator):
    """Estimator 7: one distance and one heading OLS model per zoom level."""

    name = "per_zoom_linear"
    description = "Per-zoom OLS: distance ~ sv_image_y + canvas_y, heading ~ canvas_x"
    required_columns = column_names(
        ("pano_distance", "heading_diff", "zoom"), DISTANCE_PREDICTORS, HEADING_PREDICTORS
    )

    def __init__(self, zoom_levels: Optional[Sequence[int]] = None):
        self.zoom_levels: List[ZoomLevel] = [
            ZoomLevel(z) for z in (zoom_levels if zoom_levels is not None else ZOOM_LEVELS)
        ]

    def _fit_stratum(
        self, calibration: pd.DataFrame, zoom: ZoomLevel
    ) -> Tuple[LinearCoefficients, LinearCoefficients]:
        stratum = calibration.loc[calibration['zoom'].astype(int) == int(zoom)]
        label = f"zoom={int(zoom)}"
        distance = fit_ols(stratum, ("pano_distance",), DISTANCE_PREDICTORS, label, self.name)
        heading = fit_ols(stratum, ("heading_diff",), HEADING_PREDICTORS, label, self.name)
        logger.debug(f"{self.name}: fitted {label} on {len(stratum)} labels")
        return distance['pano_distance'], heading['heading_diff']

    def _fit(self, calibration: pd.DataFrame) -> PerZoomLinearModel:
        distance: Dict[ZoomLevel, LinearCoefficients] = {}
        heading: Dict[ZoomLevel, LinearCoefficients] = {}
        for zoom in self.zoom_levels:
            distance[zoom], heading[zoom] = self._fit_stratum(calibration, zoom)
        return PerZoomLinearModel(name=self.name, distance=distance, heading=heading)
