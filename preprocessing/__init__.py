"""
Preprocessing Module for Label Geolocation.

This module provides:
- Derived geometry features (distance, bearing, heading difference)
- Corpus cleaning with per-stage drop accounting
- Seeded calibration / holdout partitioning
"""

from preprocessing.feature_engineering import (
    FeatureMetadata,
    DERIVED_FEATURES_REGISTRY,
    DERIVED_COLUMNS,
    derive_geometry_features,
)

from preprocessing.cleaning import (
    CleaningResult,
    clean_label_records,
)

from preprocessing.partition import (
    CorpusPartition,
    partition_corpus,
)

__all__ = [
    "FeatureMetadata",
    "DERIVED_FEATURES_REGISTRY",
    "DERIVED_COLUMNS",
    "derive_geometry_features",
    "CleaningResult",
    "clean_label_records",
    "CorpusPartition",
    "partition_corpus",
]
