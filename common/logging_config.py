"""
Logging Configuration and Audit Trail Infrastructure.

This module provides structured logging for reproducible calibration runs.
Every run records enough information to explain its coefficients after
the fact.

Audit Requirements
------------------
Every calibration run must produce:
- Configuration hash
- Record counts dropped by each cleaning stage
- Estimators that could not be fitted, and why
- Holdout predictions skipped per estimator

This module implements the infrastructure to capture this information.
"""

import hashlib
import json
import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Get a logger configured for the calibration engine.

    Parameters
    ----------
    name : str
        Logger name (typically __name__).
    level : int
        Logging level.

    Returns
    -------
    logging.Logger
        Configured logger instance.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            '%(asctime)s | %(name)s | %(levelname)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger


@dataclass
class RecordDrop:
    """Rows removed by one cleaning stage.

    Attributes
    ----------
    timestamp : datetime
        When the stage ran.
    stage : str
        Cleaning stage identifier (e.g. 'untrusted_ground_truth').
    count : int
        Number of rows removed.
    """
    timestamp: datetime
    stage: str
    count: int


@dataclass
class EstimatorFailure:
    """An estimator that could not be fitted in a run."""
    timestamp: datetime
    estimator: str
    error_type: str
    message: str


@dataclass
class RunMetadata:
    """Audit record of one calibration run.

    Attributes
    ----------
    run_id : str
        Identifier given to `AuditLogger.run_context`.
    start_time, end_time : datetime
        Wall-clock bounds of the run; `end_time` is None while it is open.
    config_hash : str
        Short digest of the run configuration, see `hash_config`.
    input_metadata, output_metadata : dict
        Free-form facts the pipeline attaches (batches, ranking, coefficients).
    record_drops : List[RecordDrop]
        One entry per cleaning stage, in execution order.
    estimator_failures : List[EstimatorFailure]
        Estimators disabled in this run.
    skipped_predictions : Dict[str, int]
        Holdout rows outside each estimator's support.
    """
    run_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    config_hash: str = ""
    input_metadata: Dict[str, Any] = field(default_factory=dict)
    output_metadata: Dict[str, Any] = field(default_factory=dict)
    record_drops: List[RecordDrop] = field(default_factory=list)
    estimator_failures: List[EstimatorFailure] = field(default_factory=list)
    skipped_predictions: Dict[str, int] = field(default_factory=dict)

    def hash_config(self, config: Dict[str, Any]) -> str:
        """Store and return the first 16 hex digits of SHA-256 over the sorted JSON config."""
        canonical = json.dumps(config, sort_keys=True, default=str)
        self.config_hash = hashlib.sha256(canonical.encode()).hexdigest()[:16]
        return self.config_hash

    def drops_by_stage(self) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for drop in self.record_drops:
            totals[drop.stage] = totals.get(drop.stage, 0) + drop.count
        return totals

    def _header(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "config_hash": self.config_hash,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }

    def summary(self) -> Dict[str, Any]:
        """Condensed view of the run, with drops totalled per stage."""
        drops = self.drops_by_stage()
        return {
            **self._header(),
            "total_records_dropped": sum(drops.values()),
            "drops_by_stage": drops,
            "failed_estimators": [f.estimator for f in self.estimator_failures],
            "skipped_predictions": dict(self.skipped_predictions),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Full record as JSON-compatible values."""
        return {
            **self._header(),
            "input_metadata": self.input_metadata,
            "output_metadata": self.output_metadata,
            "record_drops": [
                {"timestamp": d.timestamp.isoformat(), "stage": d.stage, "count": d.count}
                for d in self.record_drops
            ],
            "estimator_failures": [
                {
                    "timestamp": f.timestamp.isoformat(),
                    "estimator": f.estimator,
                    "error_type": f.error_type,
                    "message": f.message,
                }
                for f in self.estimator_failures
            ],
            "skipped_predictions": dict(self.skipped_predictions),
        }


class AuditLogger:
    """Audit trail of the calibration runs of one job.

    The pipeline opens a run with `run_context` and hands the logger to the
    cleaner and the scorer, which report drops and skipped predictions
    into the open run. Reports made while no run is open are only logged.

    Examples
    --------
    >>> audit = AuditLogger()
    >>> with audit.run_context("calibration_001", {"random_seed": 0}):
    ...     audit.log_record_drop("untrusted_ground_truth", 42)
    >>> audit.get_run_summary("calibration_001")["total_records_dropped"]
    42
    """

    def __init__(self):
        self.runs: Dict[str, RunMetadata] = {}
        self._open_run: Optional[RunMetadata] = None
        self._logger = get_logger("audit")

    @property
    def current_run(self) -> Optional[RunMetadata]:
        return self._open_run

    @contextmanager
    def run_context(self, run_id: str, config: Optional[Dict[str, Any]] = None):
        """Open a run for the duration of the block.

        Parameters
        ----------
        run_id : str
            Identifier of the run; reusing one replaces the earlier record.
        config : dict, optional
            Run configuration; only its hash is kept.

        Yields
        ------
        RunMetadata
            The open run, for the caller to attach metadata to.
        """
        run = RunMetadata(run_id=run_id, start_time=datetime.now())
        if config:
            run.hash_config(config)

        self.runs[run_id] = run
        self._open_run = run
        self._logger.info(f"Run {run_id} started (config {run.config_hash or 'unhashed'})")

        try:
            yield run
        finally:
            run.end_time = datetime.now()
            self._open_run = None
            self._logger.info(
                f"Run {run_id} finished: {sum(run.drops_by_stage().values())} labels dropped, "
                f"{len(run.estimator_failures)} estimators failed"
            )

    def log_record_drop(self, stage: str, count: int) -> None:
        """Record rows removed by a cleaning stage."""
        if self._open_run is not None:
            self._open_run.record_drops.append(
                RecordDrop(timestamp=datetime.now(), stage=stage, count=int(count))
            )
        self._logger.debug(f"RECORD DROP | {stage} | {count}")

    def log_estimator_failure(self, estimator: str, error: Exception) -> None:
        """Record an estimator that could not be fitted."""
        if self._open_run is not None:
            self._open_run.estimator_failures.append(
                EstimatorFailure(
                    timestamp=datetime.now(),
                    estimator=estimator,
                    error_type=type(error).__name__,
                    message=str(error),
                )
            )
        self._logger.warning(
            f"ESTIMATOR FAILURE | {estimator} | {type(error).__name__} | {error}"
        )

    def log_skipped_predictions(self, estimator: str, count: int) -> None:
        """Record holdout rows an estimator could not predict."""
        if self._open_run is not None:
            skipped = self._open_run.skipped_predictions
            skipped[estimator] = skipped.get(estimator, 0) + int(count)
        if count:
            self._logger.warning(f"SKIPPED PREDICTIONS | {estimator} | {count}")

    def _run(self, run_id: str) -> RunMetadata:
        try:
            return self.runs[run_id]
        except KeyError:
            raise KeyError(f"No audited run with ID {run_id!r}") from None

    def get_run_summary(self, run_id: str) -> Dict[str, Any]:
        """`RunMetadata.summary` of a recorded run.

        Raises
        ------
        KeyError
            If no run with this identifier was recorded.
        """
        return self._run(run_id).summary()

    def export_run_artifacts(self, run_id: str, output_path: Path) -> None:
        """Write the full record of a run as JSON to `output_path`."""
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(self._run(run_id).to_dict(), f, indent=2, default=str)
        self._logger.info(f"Wrote audit record of run {run_id} to {output_path}")
