"""
Validation Framework for Label Geolocation.

Scores fitted estimators against holdout ground truth and ranks them.
"""

from validation.metrics import (
    ErrorSummary,
    EstimatorScore,
    project_predictions,
    score_model,
    summarize_errors,
)

from validation.report import (
    EvaluationReport,
    build_report,
)

__all__ = [
    "ErrorSummary",
    "EstimatorScore",
    "project_predictions",
    "score_model",
    "summarize_errors",
    "EvaluationReport",
    "build_report",
]
