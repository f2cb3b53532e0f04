"""
Error taxonomy for the calibration engine.

- SchemaError: an input extract does not match the label schema. Fatal.
- InsufficientDataError: a stratum is too small to fit. Fatal for the
  estimator being fitted only.
- EstimationError: a numerical fit failed (e.g. a singular design). Fatal
  for the estimator being fitted only.
- UnknownStratumError: a record lies outside a fitted model's support.
  Fatal for that record's prediction.
"""

from typing import Any, Optional


class GeolocationError(Exception):
    """Base class for errors raised by this package."""


class SchemaError(GeolocationError, ValueError):
    """Malformed or incompatible input batch."""


class InsufficientDataError(GeolocationError, ValueError):
    """A stratum has fewer samples than the parameters being estimated."""

    def __init__(self, stratum: str, n_samples: int, n_parameters: int,
                 estimator: Optional[str] = None):
        self.stratum = stratum
        self.n_samples = n_samples
        self.n_parameters = n_parameters
        self.estimator = estimator
        prefix = f"{estimator}: " if estimator else ""
        super().__init__(
            f"{prefix}stratum '{stratum}' has {n_samples} samples, "
            f"needs at least {n_parameters}"
        )


class EstimationError(GeolocationError, RuntimeError):
    """A numerical fit failed on data that passed the sample-size checks."""

    def __init__(self, message: str, estimator: Optional[str] = None):
        self.estimator = estimator
        prefix = f"{estimator}: " if estimator else ""
        super().__init__(f"{prefix}{message}")


class UnknownStratumError(GeolocationError, KeyError):
    """Prediction requested for a stratum the model was never fitted on."""

    def __init__(self, stratum: Any, estimator: Optional[str] = None):
        self.stratum = stratum
        self.estimator = estimator
        prefix = f"{estimator}: " if estimator else ""
        super().__init__(f"{prefix}no fitted parameters for stratum {stratum!r}")

    def __str__(self) -> str:
        # KeyError would repr() the message
        return str(self.args[0])
