"""
Projection and Scoring of Fitted Estimators.

This module applies a fitted estimator to the holdout set, projects each
prediction to a coordinate, and measures the error against the ground
truth coordinate.

Metrics
-------
- Position Error: geodesic distance between projected and true coordinate
- Distance Error: |predicted distance - pano_distance|
- Heading Error: |predicted heading offset - heading_diff|

Distance and heading errors decompose the position error into its radial
and angular parts for diagnosis.

Skipped Records
---------------
A holdout record outside a model's support (`UnknownStratumError`) is
skipped and counted; the same policy applies to every estimator.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from common.errors import UnknownStratumError
from common.logging_config import AuditLogger, get_logger
from common.types import FEATURE_COLUMNS, LabelFeatures
from data_ingestion.loaders import RECORD_KEY
from estimators.base import EstimatorModel
from geospatial.distance_calculations import destination_point_batch, geodesic_distance_batch

logger = get_logger(__name__)

ERROR_COLUMNS: List[str] = [
    *RECORD_KEY,
    'predicted_distance',
    'predicted_heading_offset',
    'predicted_lat',
    'predicted_lng',
    'position_error',
    'distance_error',
    'heading_error',
]


@dataclass(frozen=True)
class ErrorSummary:
    """Aggregate error statistics of one estimator on the holdout set.

    Attributes
    ----------
    n_scored : int
        Holdout records that were predicted and scored.
    n_skipped : int
        Holdout records outside the model's support.
    mean_position_error : float
        Mean position error in meters.
    median_position_error : float
        Median position error in meters.
    min_position_error : float
        Smallest position error in meters.
    max_position_error : float
        Largest position error in meters.
    std_position_error : float
        Sample standard deviation (ddof=1) of position error in meters.
    median_distance_error : float
        Median absolute distance error in meters.
    median_heading_error : float
        Median absolute heading error in degrees.
    """
    n_scored: int
    n_skipped: int
    mean_position_error: float
    median_position_error: float
    min_position_error: float
    max_position_error: float
    std_position_error: float
    median_distance_error: float
    median_heading_error: float


@dataclass(frozen=True)
class EstimatorScore:
    """Per-record errors and their summary for one estimator."""
    name: str
    errors: pd.DataFrame
    summary: ErrorSummary


def summarize_errors(errors: pd.DataFrame, n_skipped: int = 0) -> ErrorSummary:
    """Compute aggregate statistics over a per-record error table."""
    position = errors['position_error'].to_numpy(dtype=float)
    n = len(position)
    if n == 0:
        nan = float('nan')
        return ErrorSummary(0, n_skipped, nan, nan, nan, nan, nan, nan, nan)

    return ErrorSummary(
        n_scored=n,
        n_skipped=n_skipped,
        mean_position_error=float(np.mean(position)),
        median_position_error=float(np.median(position)),
        min_position_error=float(np.min(position)),
        max_position_error=float(np.max(position)),
        std_position_error=float(np.std(position, ddof=1)) if n > 1 else float('nan'),
        median_distance_error=float(np.median(errors['distance_error'].to_numpy(dtype=float))),
        median_heading_error=float(np.median(errors['heading_error'].to_numpy(dtype=float))),
    )


def project_predictions(
    pano_lat: NDArray[np.float64],
    pano_lng: NDArray[np.float64],
    camera_heading: NDArray[np.float64],
    distance_m: NDArray[np.float64],
    heading_offset_deg: NDArray[np.float64],
):
    """Project (distance, heading offset) predictions to coordinates.

    The bearing travelled from the camera is `camera_heading +
    heading_offset`.

    Returns
    -------
    Tuple[ndarray, ndarray]
        (latitudes, longitudes) in degrees.
    """
    bearings = np.asarray(camera_heading, dtype=float) + np.asarray(heading_offset_deg, dtype=float)
    return destination_point_batch(pano_lat, pano_lng, bearings, distance_m)


def score_model(
    model: EstimatorModel,
    holdout: pd.DataFrame,
    audit: Optional[AuditLogger] = None,
) -> EstimatorScore:
    """Score a fitted model on the holdout set.

    Parameters
    ----------
    model : EstimatorModel
        Fitted model. It only ever receives the feature view of a row.
    holdout : pd.DataFrame
        Clean holdout rows with derived geometry features.
    audit : AuditLogger, optional
        Receives the skipped-prediction count.

    Returns
    -------
    EstimatorScore
        Per-record errors (indexed like the scored holdout rows) and
        summary statistics.
    """
    features = [
        LabelFeatures.from_row(row)
        for row in holdout.loc[:, list(FEATURE_COLUMNS)].to_dict('records')
    ]

    scored_positions = []
    distances = []
    offsets = []
    for position, feature in enumerate(features):
        try:
            prediction = model.predict(feature)
        except UnknownStratumError as e:
            logger.debug(f"{model.name}: skipping holdout row {position}: {e}")
            continue
        scored_positions.append(position)
        distances.append(prediction.distance_m)
        offsets.append(prediction.heading_offset_deg)

    n_skipped = len(features) - len(scored_positions)
    if n_skipped:
        logger.warning(f"{model.name}: skipped {n_skipped} holdout labels outside model support")
    if audit is not None:
        audit.log_skipped_predictions(model.name, n_skipped)

    scored = holdout.iloc[scored_positions]
    distances = np.asarray(distances, dtype=float)
    offsets = np.asarray(offsets, dtype=float)

    if len(scored):
        pred_lat, pred_lng = project_predictions(
            scored['pano_lat'].to_numpy(), scored['pano_lng'].to_numpy(),
            scored['heading'].to_numpy(), distances, offsets,
        )
        position_error = geodesic_distance_batch(
            pred_lat, pred_lng, scored['lat'].to_numpy(), scored['lng'].to_numpy()
        )
    else:
        pred_lat = pred_lng = position_error = np.empty(0, dtype=float)

    errors = pd.DataFrame(
        {
            **{key: scored[key].to_numpy() for key in RECORD_KEY},
            'predicted_distance': distances,
            'predicted_heading_offset': offsets,
            'predicted_lat': pred_lat,
            'predicted_lng': pred_lng,
            'position_error': position_error,
            'distance_error': np.abs(distances - scored['pano_distance'].to_numpy(dtype=float)),
            'heading_error': np.abs(offsets - scored['heading_diff'].to_numpy(dtype=float)),
        },
        index=scored.index,
        columns=ERROR_COLUMNS,
    )

    summary = summarize_errors(errors, n_skipped=n_skipped)
    logger.info(
        f"{model.name}: median position error {summary.median_position_error:.2f} m "
        f"over {summary.n_scored} holdout labels"
    )
    return EstimatorScore(name=model.name, errors=errors, summary=summary)
