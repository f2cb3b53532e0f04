"""
Calibration / holdout partitioning.

The split is a seeded random permutation of the clean table. Identical
seed and identical table give an identical partition, which is what makes
evaluation runs and fitted coefficients reproducible.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd

from common.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CorpusPartition:
    """Disjoint calibration and holdout sets covering the clean table.

    Attributes
    ----------
    calibration : pd.DataFrame
        Rows estimators are fitted on.
    holdout : pd.DataFrame
        Rows estimators are scored on.
    fraction : float
        Requested calibration fraction.
    seed : int
        Seed the permutation was drawn with.
    """
    calibration: pd.DataFrame
    holdout: pd.DataFrame
    fraction: float
    seed: int


def partition_corpus(table: pd.DataFrame, fraction: float, seed: int) -> CorpusPartition:
    """Split the clean table into calibration and holdout sets.

    Parameters
    ----------
    table : pd.DataFrame
        Clean corpus. Its index must be unique.
    fraction : float
        Share of rows assigned to calibration, in (0, 1). The calibration
        set has `round(fraction * N)` rows.
    seed : int
        Seed for `numpy.random.default_rng`; read once.

    Returns
    -------
    CorpusPartition
        Both sets keep the input's index labels and row order.
    """
    if not 0.0 < fraction < 1.0:
        raise ValueError(f"Calibration fraction must be in (0, 1), got {fraction}")
    if not table.index.is_unique:
        raise ValueError("Table index must be unique to partition it")

    n = len(table)
    n_calibration = int(round(fraction * n))

    rng = np.random.default_rng(seed)
    order = rng.permutation(n)
    in_calibration = np.zeros(n, dtype=bool)
    in_calibration[order[:n_calibration]] = True

    calibration = table.iloc[np.flatnonzero(in_calibration)].copy()
    holdout = table.iloc[np.flatnonzero(~in_calibration)].copy()

    logger.info(
        f"Partitioned {n} labels into {len(calibration)} calibration "
        f"and {len(holdout)} holdout (seed={seed})"
    )
    return CorpusPartition(calibration=calibration, holdout=holdout, fraction=fraction, seed=seed)
