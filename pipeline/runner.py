"""
End-to-end calibration run.

    load -> clean -> partition -> fit each estimator -> score -> report

Every stage returns new tables; none modifies its input, so all fitted
models are scored against the very same holdout rows. An estimator that
cannot be fitted (`InsufficientDataError`, `EstimationError`) is recorded
as a failure and the remaining estimators continue. A `SchemaError` aborts
the run.

Usage
-----
    python -m pipeline.runner seattle=labels_seattle.csv dc=labels_dc.csv \
        --config calibration.json --coefficients-out coefficients.json
"""

import argparse
import json
import sys
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

from common.errors import EstimationError, InsufficientDataError
from common.logging_config import AuditLogger, get_logger
from data_ingestion.loaders import BatchSource, LabelBatchLoader
from estimators.base import Estimator, EstimatorModel
from estimators.family import build_estimator_family
from estimators.regression import PerZoomLinearEstimator, PerZoomLinearModel
from pipeline.config import CalibrationConfig
from preprocessing.cleaning import CleaningResult, clean_label_records
from preprocessing.partition import CorpusPartition, partition_corpus
from validation.metrics import EstimatorScore, score_model
from validation.report import EvaluationReport, build_report

logger = get_logger(__name__)


@dataclass
class CalibrationRun:
    """Everything a calibration run produced.

    Attributes
    ----------
    run_id : str
        Identifier of the run in the audit trail.
    config : CalibrationConfig
        Configuration used.
    cleaning : CleaningResult
        Clean corpus and drop counts.
    partition : CorpusPartition
        Calibration and holdout sets.
    models : Dict[str, EstimatorModel]
        Fitted models by estimator name, in family order.
    scores : Dict[str, EstimatorScore]
        Holdout scores by estimator name.
    report : EvaluationReport
        Rankings over `scores`.
    failures : Dict[str, str]
        Estimators that could not be fitted, with the reason.
    provenance : List[dict]
        Loaded batches.
    """
    run_id: str
    config: CalibrationConfig
    cleaning: CleaningResult
    partition: CorpusPartition
    models: Dict[str, EstimatorModel]
    scores: Dict[str, EstimatorScore]
    report: EvaluationReport
    failures: Dict[str, str] = field(default_factory=dict)
    provenance: List[dict] = field(default_factory=list)

    @property
    def production_model(self) -> Optional[PerZoomLinearModel]:
        """The fitted per-zoom model, or None if it could not be fitted."""
        model = self.models.get(PerZoomLinearEstimator.name)
        return model if isinstance(model, PerZoomLinearModel) else None


def fit_and_score(
    estimators: Sequence[Estimator],
    partition: CorpusPartition,
    audit: Optional[AuditLogger] = None,
):
    """Fit each estimator on calibration rows and score it on holdout rows.

    Returns
    -------
    Tuple[Dict[str, EstimatorModel], Dict[str, EstimatorScore], Dict[str, str]]
        Fitted models, scores and failures, keyed by estimator name.
    """
    models: Dict[str, EstimatorModel] = {}
    scores: Dict[str, EstimatorScore] = {}
    failures: Dict[str, str] = {}

    for estimator in estimators:
        try:
            model = estimator.fit(partition.calibration)
        except (InsufficientDataError, EstimationError) as e:
            failures[estimator.name] = str(e)
            if audit is not None:
                audit.log_estimator_failure(estimator.name, e)
            else:
                logger.warning(f"Estimator {estimator.name} could not be fitted: {e}")
            continue
        models[estimator.name] = model
        scores[estimator.name] = score_model(model, partition.holdout, audit=audit)

    return models, scores, failures


def run_calibration(
    sources: Mapping[str, BatchSource],
    config: Optional[CalibrationConfig] = None,
    audit: Optional[AuditLogger] = None,
    run_id: Optional[str] = None,
    estimators: Optional[Sequence[Estimator]] = None,
) -> CalibrationRun:
    """Run the full calibration and evaluation job.

    Parameters
    ----------
    sources : Mapping[str, source]
        Origin identifier to CSV path or DataFrame.
    config : CalibrationConfig, optional
        Defaults to `CalibrationConfig()`.
    audit : AuditLogger, optional
        Audit trail to record into; a new one is created if omitted.
    run_id : str, optional
        Defaults to a random identifier.
    estimators : sequence of Estimator, optional
        Defaults to the full family of seven.

    Returns
    -------
    CalibrationRun
    """
    config = config or CalibrationConfig()
    audit = audit or AuditLogger()
    run_id = run_id or f"calibration_{uuid.uuid4().hex[:8]}"
    if estimators is None:
        estimators = build_estimator_family(config.constant_distance_m)

    with audit.run_context(run_id, config.to_dict()) as metadata:
        loader = LabelBatchLoader()
        table = loader.load_batches(sources)
        metadata.input_metadata['batches'] = loader.provenance_summary()

        cleaning = clean_label_records(
            table,
            max_labels_per_pano=config.max_labels_per_pano,
            max_pano_distance_m=config.max_pano_distance_m,
            trusted_source=config.trusted_ground_truth_source,
            audit=audit,
        )
        metadata.input_metadata['total_in'] = cleaning.total_in
        metadata.input_metadata['total_out'] = cleaning.total_out

        partition = partition_corpus(
            cleaning.table, config.calibration_fraction, config.random_seed
        )

        models, scores, failures = fit_and_score(estimators, partition, audit=audit)
        report = build_report(scores.values())

        metadata.output_metadata['ranking'] = report.ranking
        per_zoom = models.get(PerZoomLinearEstimator.name)
        if isinstance(per_zoom, PerZoomLinearModel):
            metadata.output_metadata['coefficients'] = per_zoom.to_dict()

    return CalibrationRun(
        run_id=run_id,
        config=config,
        cleaning=cleaning,
        partition=partition,
        models=models,
        scores=scores,
        report=report,
        failures=failures,
        provenance=loader.provenance_summary(),
    )


def export_coefficients(run: CalibrationRun, output_path: Union[str, Path]) -> None:
    """Write the per-zoom runtime constants of a run to JSON.

    Raises
    ------
    RuntimeError
        If the per-zoom estimator was not fitted in this run.
    """
    model = run.production_model
    if model is None:
        reason = run.failures.get(PerZoomLinearEstimator.name, "not part of this run")
        raise RuntimeError(f"No per-zoom coefficients to export: {reason}")

    payload = {
        'run_id': run.run_id,
        'config': run.config.to_dict(),
        'calibration_size': len(run.partition.calibration),
        'coefficients': model.to_dict(),
    }
    with open(output_path, 'w') as f:
        json.dump(payload, f, indent=2)
    logger.info(f"Exported per-zoom coefficients to {output_path}")


def _parse_source(argument: str):
    origin, sep, path = argument.partition('=')
    if not sep or not origin or not path:
        raise argparse.ArgumentTypeError(
            f"expected ORIGIN=PATH, got {argument!r}"
        )
    return origin, path


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(
        description="Calibrate and evaluate label geolocation estimators."
    )
    ap.add_argument("sources", nargs="+", type=_parse_source, metavar="ORIGIN=PATH",
                    help="Label extract CSV tagged with its origin")
    ap.add_argument("--config", default=None, help="JSON calibration config")
    ap.add_argument("--run-id", default=None, help="Identifier for the audit trail")
    ap.add_argument("--coefficients-out", default=None,
                    help="Write per-zoom runtime coefficients to this JSON path")
    ap.add_argument("--audit-out", default=None,
                    help="Write the run's audit artifacts to this JSON path")
    args = ap.parse_args(argv)

    config = CalibrationConfig.from_json(args.config) if args.config else CalibrationConfig()
    audit = AuditLogger()
    run = run_calibration(dict(args.sources), config=config, audit=audit, run_id=args.run_id)

    print(run.report.to_text())
    if run.production_model is not None:
        print()
        print(run.production_model.runtime_formula())

    if args.coefficients_out:
        export_coefficients(run, args.coefficients_out)
    if args.audit_out:
        audit.export_run_artifacts(run.run_id, Path(args.audit_out))
    return 0


if __name__ == "__main__":
    sys.exit(main())
