"""
Configuration for calibration runs.

Length thresholds may be given as plain numbers (meters) or as strings
with units ("50 m", "0.05 km"); they are converted to meters here, once.
"""

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Union

from common.constants import CalibrationDefaults
from common.units import to_meters

_LENGTH_FIELDS = ('max_pano_distance_m', 'constant_distance_m')


@dataclass(frozen=True)
class CalibrationConfig:
    """Configuration for one calibration run.

    Attributes
    ----------
    calibration_fraction : float
        Share of the clean corpus used for fitting, in (0, 1).
    random_seed : int
        Seed for the calibration / holdout split.
    max_labels_per_pano : int
        Panoramas with at least this many labels are excluded.
    max_pano_distance_m : float
        Labels at or beyond this distance from the camera are excluded.
    constant_distance_m : float
        Distance used by the constant baseline estimator.
    trusted_ground_truth_source : str
        The only ground-truth source admitted to the corpus.
    """
    calibration_fraction: float = CalibrationDefaults.CALIBRATION_FRACTION
    random_seed: int = CalibrationDefaults.RANDOM_SEED
    max_labels_per_pano: int = CalibrationDefaults.MAX_LABELS_PER_PANO
    max_pano_distance_m: float = CalibrationDefaults.MAX_PANO_DISTANCE.value
    constant_distance_m: float = CalibrationDefaults.CONSTANT_DISTANCE.value
    trusted_ground_truth_source: str = CalibrationDefaults.TRUSTED_GROUND_TRUTH_SOURCE

    def __post_init__(self):
        if not 0.0 < self.calibration_fraction < 1.0:
            raise ValueError(
                f"calibration_fraction must be in (0, 1), got {self.calibration_fraction}"
            )
        if self.max_labels_per_pano < 1:
            raise ValueError("max_labels_per_pano must be at least 1")
        if self.max_pano_distance_m <= 0:
            raise ValueError("max_pano_distance_m must be positive")
        if self.constant_distance_m < 0:
            raise ValueError("constant_distance_m must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization and hashing."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'CalibrationConfig':
        """Create from a dictionary, converting lengths to meters.

        Unknown keys raise ValueError so that typos do not silently fall
        back to defaults.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {unknown}")

        values = dict(d)
        for name in _LENGTH_FIELDS:
            if name in values:
                values[name] = to_meters(values[name])
        if 'calibration_fraction' in values:
            values['calibration_fraction'] = float(values['calibration_fraction'])
        for name in ('random_seed', 'max_labels_per_pano'):
            if name in values:
                values[name] = int(values[name])
        return cls(**values)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> 'CalibrationConfig':
        """Load from a JSON file."""
        with open(path, 'r', encoding='utf-8') as f:
            return cls.from_dict(json.load(f))
