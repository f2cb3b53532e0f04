"""
Corpus Cleaning for Label Geolocation.

This module filters the loaded label table down to records that are
trustworthy enough to calibrate against, and annotates the survivors with
their derived geometry.

Cleaning Stages (applied in order)
----------------------------------
1. invalid_record: missing numeric values, coordinates out of range,
   non-positive canvas pixels, zoom outside {1, 2, 3}
2. untrusted_ground_truth: ground truth not computed from depth
3. deleted: label was deleted by its author
4. tutorial: label was placed during the tutorial
5. crowded_panorama: every label of a panorama with too many labels, which
   would otherwise over-weight a single capture point
6. distant_label: labels at or beyond the distance cap, which are
   long-tail outliers for the regressions

Dropping is filtering, not error handling: nothing raises for a bad row,
but every drop is counted, logged and reported to the audit trail. The
cleaner is idempotent: cleaning its own output drops nothing.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd

from common.constants import CalibrationDefaults, ZOOM_LEVELS
from common.errors import SchemaError
from common.logging_config import AuditLogger, get_logger
from data_ingestion.loaders import (
    BOOLEAN_COLUMNS,
    NUMERIC_COLUMNS,
    ORIGIN_COLUMN,
    REQUIRED_COLUMNS,
)
from preprocessing.feature_engineering import DERIVED_COLUMNS, derive_geometry_features

logger = get_logger(__name__)

CLEAN_COLUMNS: List[str] = [ORIGIN_COLUMN] + list(REQUIRED_COLUMNS)


@dataclass(frozen=True)
class CleaningResult:
    """Output of the cleaning pass.

    Attributes
    ----------
    table : pd.DataFrame
        Clean, annotated corpus.
    total_in : int
        Rows given to the cleaner.
    total_out : int
        Rows that survived.
    dropped : Dict[str, int]
        Rows removed by each stage, in stage order.
    """
    table: pd.DataFrame
    total_in: int
    total_out: int
    dropped: Dict[str, int] = field(default_factory=dict)


def _invalid_mask(table: pd.DataFrame) -> pd.Series:
    numeric = table[list(NUMERIC_COLUMNS)]
    return (
        numeric.isna().any(axis=1)
        | ~table['lat'].between(-90.0, 90.0)
        | ~table['lng'].between(-180.0, 180.0)
        | ~table['pano_lat'].between(-90.0, 90.0)
        | ~table['pano_lng'].between(-180.0, 180.0)
        | (table['canvas_x'] <= 0)
        | (table['canvas_y'] <= 0)
        | ~table['zoom'].isin(ZOOM_LEVELS)
    )


def _panorama_key(table: pd.DataFrame) -> pd.Series:
    """One key per (origin, panorama); labels without a `pano_id` are keyed by camera position."""
    position = 'at:' + table['pano_lat'].astype(str) + ',' + table['pano_lng'].astype(str)
    key = position
    if 'pano_id' in table.columns:
        text = table['pano_id'].astype(str).str.strip()
        known = table['pano_id'].notna() & ~text.isin(['', 'nan', 'None'])
        key = position.where(~known, 'id:' + text)
    return table[ORIGIN_COLUMN].astype(str) + '|' + key


def clean_label_records(
    table: pd.DataFrame,
    max_labels_per_pano: int = CalibrationDefaults.MAX_LABELS_PER_PANO,
    max_pano_distance_m: float = CalibrationDefaults.MAX_PANO_DISTANCE.value,
    trusted_source: str = CalibrationDefaults.TRUSTED_GROUND_TRUTH_SOURCE,
    audit: Optional[AuditLogger] = None,
) -> CleaningResult:
    """Filter and annotate the label table.

    Parameters
    ----------
    table : pd.DataFrame
        Loaded labels (see `data_ingestion.loaders`).
    max_labels_per_pano : int
        Panoramas with at least this many surviving labels are excluded.
    max_pano_distance_m : float
        Labels with `pano_distance` at or above this are excluded.
    trusted_source : str
        The only accepted `ground_truth_source`.
    audit : AuditLogger, optional
        Receives one record-drop entry per stage.

    Returns
    -------
    CleaningResult
        The clean table (new object, fresh RangeIndex) and drop counts.

    Raises
    ------
    SchemaError
        If the table lacks columns the cleaner needs.
    """
    missing = [c for c in CLEAN_COLUMNS if c not in table.columns]
    if missing:
        raise SchemaError(f"Cannot clean table missing columns: {missing}")

    total_in = len(table)
    dropped: Dict[str, int] = OrderedDict()
    current = table

    def apply(stage: str, drop_mask: pd.Series) -> None:
        nonlocal current
        count = int(drop_mask.sum())
        dropped[stage] = count
        current = current.loc[~drop_mask]
        logger.info(f"Cleaning stage '{stage}' dropped {count} labels, {len(current)} remain")
        if audit is not None:
            audit.log_record_drop(stage, count)

    apply('invalid_record', _invalid_mask(current))
    apply('untrusted_ground_truth', current['ground_truth_source'] != trusted_source)
    apply('deleted', current['is_deleted'].astype(bool))
    apply('tutorial', current['is_tutorial'].astype(bool))

    pano_key = _panorama_key(current)
    pano_sizes = pano_key.map(pano_key.value_counts())
    apply('crowded_panorama', pano_sizes >= max_labels_per_pano)

    current = derive_geometry_features(current)
    apply('distant_label', current['pano_distance'] >= max_pano_distance_m)

    keep = CLEAN_COLUMNS + (['pano_id'] if 'pano_id' in current.columns else []) + DERIVED_COLUMNS
    clean = current.loc[:, keep].reset_index(drop=True)
    clean['zoom'] = clean['zoom'].astype(int)
    for name in BOOLEAN_COLUMNS:
        clean[name] = clean[name].astype(bool)

    logger.info(f"Cleaning kept {len(clean)} of {total_in} labels")
    return CleaningResult(
        table=clean,
        total_in=total_in,
        total_out=len(clean),
        dropped=dict(dropped),
    )
