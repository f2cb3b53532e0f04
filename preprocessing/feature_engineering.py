"""
Feature Engineering for Label Geolocation.

This module derives the per-label geometric quantities the estimators are
calibrated against. Each derived value depends only on the fields of its
own row, so the computation is a pure column-wise transform.

Derived Features
----------------
- pano_distance: geodesic distance from camera to label, meters
- label_heading: initial bearing from camera to label, degrees in [0, 360)
- heading_diff: label_heading minus camera heading, degrees in (-180, 180]

`heading_diff` is normalized so that regression targets are continuous
across the 0/360 wrap of compass headings.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

import pandas as pd

from common.logging_config import get_logger
from geospatial.distance_calculations import (
    bearing_batch,
    geodesic_distance_batch,
    normalize_heading_difference,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class FeatureMetadata:
    """Metadata for a derived feature.

    Attributes
    ----------
    name : str
        Column name.
    unit : str
        Unit of the values.
    description : str
        Human-readable description.
    sources : List[str]
        Columns the feature is computed from.
    """
    name: str
    unit: str
    description: str
    sources: Tuple[str, ...]


# Registry of derived features
DERIVED_FEATURES_REGISTRY: Dict[str, FeatureMetadata] = {
    'pano_distance': FeatureMetadata(
        name='pano_distance',
        unit='m',
        description='Geodesic distance from the camera to the labelled point',
        sources=('lat', 'lng', 'pano_lat', 'pano_lng'),
    ),
    'label_heading': FeatureMetadata(
        name='label_heading',
        unit='deg',
        description='Bearing from the camera to the labelled point, [0, 360)',
        sources=('lat', 'lng', 'pano_lat', 'pano_lng'),
    ),
    'heading_diff': FeatureMetadata(
        name='heading_diff',
        unit='deg',
        description='label_heading minus camera heading, normalized to (-180, 180]',
        sources=('label_heading', 'heading'),
    ),
}

DERIVED_COLUMNS: List[str] = list(DERIVED_FEATURES_REGISTRY)


def derive_geometry_features(table: pd.DataFrame) -> pd.DataFrame:
    """Append `pano_distance`, `label_heading` and `heading_diff`.

    Parameters
    ----------
    table : pd.DataFrame
        Rows with `lat`, `lng`, `pano_lat`, `pano_lng` and `heading`.

    Returns
    -------
    pd.DataFrame
        A copy of `table` with the three derived columns (overwritten if
        already present).
    """
    out = table.copy()

    if out.empty:
        for name in DERIVED_COLUMNS:
            out[name] = pd.Series(dtype=float)
        return out

    out['pano_distance'] = geodesic_distance_batch(
        out['pano_lat'].to_numpy(), out['pano_lng'].to_numpy(),
        out['lat'].to_numpy(), out['lng'].to_numpy(),
    )
    out['label_heading'] = bearing_batch(
        out['pano_lat'].to_numpy(), out['pano_lng'].to_numpy(),
        out['lat'].to_numpy(), out['lng'].to_numpy(),
    )
    out['heading_diff'] = normalize_heading_difference(
        out['label_heading'].to_numpy() - out['heading'].to_numpy()
    )

    logger.debug(f"Derived geometry features for {len(out)} labels")
    return out
