"""
Base interfaces for distance / heading-offset estimators.

Every estimator variant follows the same two-step contract:

    model = estimator.fit(calibration)      # sees calibration rows only
    model.predict(features)                 # sees the feature view only

`fit` returns an immutable `EstimatorModel`. `predict` takes a
`LabelFeatures`, which carries no ground-truth columns, so a model cannot
look at holdout truth by construction.

Output Constraints
------------------
Predicted distances are clamped to be non-negative. A negative distance
from a regression is non-physical; it is replaced with 0 rather than
rejected.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Mapping, Sequence, Tuple

import pandas as pd

from common.errors import InsufficientDataError, SchemaError
from common.logging_config import get_logger
from common.types import LabelFeatures, Prediction

logger = get_logger(__name__)


@dataclass(frozen=True)
class LinearCoefficients:
    """Intercept and named slopes of one fitted linear response.

    Attributes
    ----------
    intercept : float
        Constant term.
    slopes : Tuple[Tuple[str, float], ...]
        (predictor name, coefficient) pairs in fitting order.
    """
    intercept: float
    slopes: Tuple[Tuple[str, float], ...] = ()

    @property
    def predictors(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.slopes)

    def slope(self, predictor: str) -> float:
        """Coefficient of `predictor`."""
        for name, value in self.slopes:
            if name == predictor:
                return value
        raise KeyError(predictor)

    def evaluate(self, values: Mapping[str, float]) -> float:
        """Evaluate intercept + sum(slope * value)."""
        return self.intercept + sum(coef * float(values[name]) for name, coef in self.slopes)

    def to_dict(self) -> Dict[str, float]:
        """Flat mapping with 'intercept' and one key per predictor."""
        out = {'intercept': float(self.intercept)}
        out.update({name: float(value) for name, value in self.slopes})
        return out


class EstimatorModel(ABC):
    """Fitted parameters of one estimator variant.

    Subclasses are frozen dataclasses and implement `_predict_raw`.
    """

    name: str

    @abstractmethod
    def _predict_raw(self, features: LabelFeatures) -> Tuple[float, float]:
        """Return (distance_m, heading_offset_deg) before output constraints."""

    def predict(self, features: LabelFeatures) -> Prediction:
        """Predict distance from camera and heading offset for one label.

        Parameters
        ----------
        features : LabelFeatures
            Feature view of the label.

        Returns
        -------
        Prediction
            Distance in meters (never negative) and heading offset in
            degrees relative to the camera heading.
        """
        distance, heading_offset = self._predict_raw(features)
        if distance < 0.0:
            logger.debug(f"{self.name}: clamped predicted distance {distance:.3f} m to 0")
            distance = 0.0
        return Prediction(distance_m=float(distance), heading_offset_deg=float(heading_offset))


class Estimator(ABC):
    """An unfitted estimator variant.

    Attributes
    ----------
    name : str
        Identifier used in reports and audit records.
    description : str
        One-line description for reports.
    required_columns : Tuple[str, ...]
        Calibration columns `fit` reads.
    """

    name: str = "estimator"
    description: str = ""
    required_columns: Tuple[str, ...] = ()

    @abstractmethod
    def _fit(self, calibration: pd.DataFrame) -> EstimatorModel:
        """Fit on a validated calibration table."""

    def fit(self, calibration: pd.DataFrame) -> EstimatorModel:
        """Fit the estimator on the calibration set.

        Parameters
        ----------
        calibration : pd.DataFrame
            Clean calibration rows with derived geometry features.

        Returns
        -------
        EstimatorModel
            Immutable fitted model.

        Raises
        ------
        SchemaError
            If required columns are missing.
        InsufficientDataError
            If a stratum is too small for the parameters being fitted.
        """
        missing = [c for c in self.required_columns if c not in calibration.columns]
        if missing:
            raise SchemaError(f"{self.name}: calibration set is missing columns {missing}")

        model = self._fit(calibration)
        logger.info(f"Fitted {self.name} on {len(calibration)} calibration labels")
        return model


def require_samples(n_samples: int, n_parameters: int, stratum: str, estimator: str) -> None:
    """Raise InsufficientDataError if a stratum cannot support the fit."""
    if n_samples < n_parameters:
        raise InsufficientDataError(stratum, n_samples, n_parameters, estimator)


def column_names(*groups: Sequence[str]) -> Tuple[str, ...]:
    """Concatenate column groups, dropping duplicates while keeping order."""
    seen = []
    for group in groups:
        for name in group:
            if name not in seen:
                seen.append(name)
    return tuple(seen)
