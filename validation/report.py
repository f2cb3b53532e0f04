"""
Ranked comparison of estimator scores.

The report is a read-only view over `EstimatorScore` summaries: it only
arranges and sorts numbers the scorer already computed.
"""

from dataclasses import dataclass
from typing import Iterable, List

import pandas as pd

from validation.metrics import EstimatorScore

POSITION_COLUMNS: List[str] = ['mean', 'median', 'min', 'max', 'std']


@dataclass(frozen=True)
class EvaluationReport:
    """Three rankings of the estimators, each ascending.

    Attributes
    ----------
    position_error : pd.DataFrame
        Index estimator; columns mean, median, min, max, std (meters),
        plus n_scored and n_skipped; sorted by median.
    heading_error : pd.DataFrame
        Index estimator; column median_heading_error (degrees), sorted.
    distance_error : pd.DataFrame
        Index estimator; column median_distance_error (meters), sorted.
    """
    position_error: pd.DataFrame
    heading_error: pd.DataFrame
    distance_error: pd.DataFrame

    @property
    def ranking(self) -> List[str]:
        """Estimator names, best median position error first."""
        return list(self.position_error.index)

    def to_text(self, float_format: str = "{:.3f}") -> str:
        """Render the three tables as plain text."""
        fmt = float_format.format
        sections = [
            ("Position error (m), by median", self.position_error),
            ("Median heading error (deg)", self.heading_error),
            ("Median distance error (m)", self.distance_error),
        ]
        return "\n\n".join(
            f"{title}\n{table.to_string(float_format=fmt)}" for title, table in sections
        )


def build_report(scores: Iterable[EstimatorScore]) -> EvaluationReport:
    """Rank estimators by median position, heading and distance error.

    Ties keep the order the scores were given in.
    """
    rows = []
    for score in scores:
        s = score.summary
        rows.append({
            'estimator': score.name,
            'mean': s.mean_position_error,
            'median': s.median_position_error,
            'min': s.min_position_error,
            'max': s.max_position_error,
            'std': s.std_position_error,
            'n_scored': s.n_scored,
            'n_skipped': s.n_skipped,
            'median_heading_error': s.median_heading_error,
            'median_distance_error': s.median_distance_error,
        })

    columns = ['estimator'] + POSITION_COLUMNS + [
        'n_scored', 'n_skipped', 'median_heading_error', 'median_distance_error'
    ]
    table = pd.DataFrame(rows, columns=columns).set_index('estimator')

    def ranked(cols: List[str], by: str) -> pd.DataFrame:
        return table.loc[:, cols].sort_values(by, kind='mergesort', na_position='last')

    return EvaluationReport(
        position_error=ranked(POSITION_COLUMNS + ['n_scored', 'n_skipped'], 'median'),
        heading_error=ranked(['median_heading_error'], 'median_heading_error'),
        distance_error=ranked(['median_distance_error'], 'median_distance_error'),
    )
