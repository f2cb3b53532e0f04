"""
Data Loaders for Panorama Label Extracts.

This module reads the tabular label extracts produced by the image-capture
subsystems and returns them as a single typed table. Each loader call
validates the schema, preserves provenance, and tags every row with the
origin of its batch.

Supported Sources
-----------------
1. CSV extracts on disk
2. In-memory `pandas.DataFrame` extracts (already queried elsewhere)

Design Principles
-----------------
- Fail fast: a batch with a missing required column or values of the wrong
  type raises `SchemaError`; a malformed batch is never partially loaded
- Extra columns are ignored
- Loaded frames are new objects; the caller's frames are never modified
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Mapping, Tuple, Union

import numpy as np
import pandas as pd

from common.errors import SchemaError
from common.logging_config import get_logger

logger = get_logger(__name__)

BatchSource = Union[str, Path, pd.DataFrame]

NUMERIC_COLUMNS: Tuple[str, ...] = (
    "lat", "lng", "pano_lat", "pano_lng",
    "canvas_x", "canvas_y", "heading", "pitch", "zoom", "sv_image_y",
)
STRING_COLUMNS: Tuple[str, ...] = ("label_id", "label_type", "ground_truth_source")
BOOLEAN_COLUMNS: Tuple[str, ...] = ("is_deleted", "is_tutorial")
REQUIRED_COLUMNS: Tuple[str, ...] = STRING_COLUMNS + NUMERIC_COLUMNS + BOOLEAN_COLUMNS
OPTIONAL_COLUMNS: Tuple[str, ...] = ("pano_id",)

ORIGIN_COLUMN = "origin"
RECORD_KEY: Tuple[str, str] = (ORIGIN_COLUMN, "label_id")

_TRUE_LITERALS = {"true", "t", "1", "yes", "y"}
_FALSE_LITERALS = {"false", "f", "0", "no", "n"}


@dataclass(frozen=True)
class DataProvenance:
    """Metadata tracking where a batch came from.

    Attributes
    ----------
    origin : str
        Identifier the batch is tagged with (e.g. a city deployment).
    source : str
        Path of the extract, or '<dataframe>' for in-memory batches.
    row_count : int
        Rows in the batch as loaded.
    load_time : datetime
        When the batch was loaded.
    """
    origin: str
    source: str
    row_count: int
    load_time: datetime


def _coerce_boolean(column: pd.Series, name: str, origin: str) -> pd.Series:
    """Coerce a boolean column given as bools, 0/1 or textual literals."""
    if pd.api.types.is_bool_dtype(column):
        return column.astype(bool)

    def convert(value):
        if isinstance(value, (bool, np.bool_)):
            return bool(value)
        if isinstance(value, (int, np.integer, float, np.floating)) and value in (0, 1):
            return bool(value)
        text = str(value).strip().lower()
        if text in _TRUE_LITERALS:
            return True
        if text in _FALSE_LITERALS:
            return False
        raise SchemaError(
            f"Batch '{origin}': column '{name}' has non-boolean value {value!r}"
        )

    if column.isna().any():
        raise SchemaError(f"Batch '{origin}': column '{name}' has missing values")
    return column.map(convert).astype(bool)


def validate_label_schema(frame: pd.DataFrame, origin: str) -> pd.DataFrame:
    """Validate and coerce one batch against the label schema.

    Parameters
    ----------
    frame : pd.DataFrame
        Raw batch.
    origin : str
        Batch identifier, used in error messages.

    Returns
    -------
    pd.DataFrame
        A new frame containing only the schema columns, with numeric
        columns as float, string columns as str and boolean columns as bool.

    Raises
    ------
    SchemaError
        If a required column is missing or holds values of the wrong type.
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
    if missing:
        raise SchemaError(f"Batch '{origin}' is missing required columns: {missing}")

    keep = list(REQUIRED_COLUMNS) + [c for c in OPTIONAL_COLUMNS if c in frame.columns]
    out = frame.loc[:, keep].copy()

    for name in NUMERIC_COLUMNS:
        coerced = pd.to_numeric(out[name], errors="coerce")
        bad = coerced.isna() & out[name].notna()
        if bad.any():
            example = out.loc[bad, name].iloc[0]
            raise SchemaError(
                f"Batch '{origin}': column '{name}' has non-numeric value {example!r} "
                f"in {int(bad.sum())} rows"
            )
        out[name] = coerced.astype(float)

    for name in STRING_COLUMNS:
        if name == "label_id" and out[name].isna().any():
            raise SchemaError(f"Batch '{origin}': column 'label_id' has missing values")
        out[name] = out[name].astype(str)

    for name in BOOLEAN_COLUMNS:
        out[name] = _coerce_boolean(out[name], name, origin)

    if "pano_id" in out.columns:
        # Blank ids stay missing; cleaning falls back to the camera position
        pano_id = out["pano_id"]
        text = pano_id.astype(str).str.strip()
        blank = pano_id.isna() | text.isin(["", "nan", "None"])
        out["pano_id"] = text.astype(object).where(~blank)

    return out


class LabelBatchLoader:
    """Loader for label extracts.

    Each batch is validated independently, tagged with its origin and
    appended to a single table. Provenance of every loaded batch is kept
    on the loader.

    Examples
    --------
    >>> loader = LabelBatchLoader()
    >>> table = loader.load_batches({"seattle": "labels_seattle.csv",
    ...                              "dc": "labels_dc.csv"})
    """

    def __init__(self):
        self.provenance: List[DataProvenance] = []
        self._logger = get_logger(self.__class__.__name__)

    def load_batch(self, source: BatchSource, origin: str) -> pd.DataFrame:
        """Load and validate a single batch.

        Parameters
        ----------
        source : str, Path or pd.DataFrame
            CSV path or in-memory extract.
        origin : str
            Identifier to tag the rows with.

        Returns
        -------
        pd.DataFrame
            Validated batch with an `origin` column.
        """
        if isinstance(source, pd.DataFrame):
            raw = source
            source_name = "<dataframe>"
        elif isinstance(source, (str, Path)):
            source_name = str(source)
            self._logger.info(f"Reading label extract {source_name} for origin '{origin}'")
            raw = pd.read_csv(source)
        else:
            raise SchemaError(
                f"Batch '{origin}': unsupported source type {type(source).__name__}"
            )

        batch = validate_label_schema(raw, origin)
        batch.insert(0, ORIGIN_COLUMN, str(origin))

        self.provenance.append(
            DataProvenance(
                origin=str(origin),
                source=source_name,
                row_count=len(batch),
                load_time=datetime.now(),
            )
        )
        self._logger.info(f"Loaded {len(batch)} labels from origin '{origin}'")
        return batch

    def load_batches(self, sources: Mapping[str, BatchSource]) -> pd.DataFrame:
        """Load several batches and concatenate them.

        Parameters
        ----------
        sources : Mapping[str, source]
            Origin identifier to batch source.

        Returns
        -------
        pd.DataFrame
            All batches, with a fresh RangeIndex.

        Raises
        ------
        SchemaError
            If any batch is malformed, or if a label key `(origin, label_id)`
            occurs more than once.
        """
        if not sources:
            raise SchemaError("No label batches given")

        batches = [self.load_batch(source, origin) for origin, source in sources.items()]
        table = pd.concat(batches, ignore_index=True)

        duplicated = table.duplicated(subset=list(RECORD_KEY))
        if duplicated.any():
            first = table.loc[duplicated, list(RECORD_KEY)].iloc[0].tolist()
            raise SchemaError(
                f"{int(duplicated.sum())} duplicate label keys, first is {tuple(first)}"
            )

        self._logger.info(f"Loaded {len(table)} labels from {len(batches)} batches")
        return table

    def provenance_summary(self) -> List[Dict[str, object]]:
        """Provenance of every batch loaded so far, as plain dicts."""
        return [
            {
                "origin": p.origin,
                "source": p.source,
                "row_count": p.row_count,
                "load_time": p.load_time.isoformat(),
            }
            for p in self.provenance
        ]
