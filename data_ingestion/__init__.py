"""
Data Ingestion Module.

Provides schema-validated loading of label extracts from one or more
origins into a single table.
"""

from data_ingestion.loaders import (
    DataProvenance,
    LabelBatchLoader,
    validate_label_schema,
    REQUIRED_COLUMNS,
    ORIGIN_COLUMN,
    RECORD_KEY,
)

__all__ = [
    "DataProvenance",
    "LabelBatchLoader",
    "validate_label_schema",
    "REQUIRED_COLUMNS",
    "ORIGIN_COLUMN",
    "RECORD_KEY",
]
