"""
Integration tests for the calibration pipeline, its configuration and CLI
"""

import json

import numpy as np
import pint
import pytest
import statsmodels.api as sm

from common.errors import SchemaError
from common.logging_config import AuditLogger
from pipeline import CalibrationConfig, export_coefficients, run_calibration
from pipeline.runner import main
from tests.synthetic import make_raw_labels


class TestCalibrationConfig:

    def test_defaults(self):
        config = CalibrationConfig()
        assert config.calibration_fraction == 0.8
        assert config.random_seed == 0
        assert config.max_labels_per_pano == 20
        assert config.max_pano_distance_m == 50.0
        assert config.constant_distance_m == 10.0
        assert config.trusted_ground_truth_source == "depth"

    def test_lengths_with_units(self):
        config = CalibrationConfig.from_dict({
            "max_pano_distance_m": "0.05 km",
            "constant_distance_m": "30 ft",
        })
        assert config.max_pano_distance_m == pytest.approx(50.0)
        assert config.constant_distance_m == pytest.approx(9.144)

    def test_bare_numbers_are_meters(self):
        config = CalibrationConfig.from_dict({"max_pano_distance_m": 40, "constant_distance_m": "12"})
        assert config.max_pano_distance_m == 40.0
        assert config.constant_distance_m == 12.0

    def test_non_length_rejected(self):
        with pytest.raises(pint.DimensionalityError):
            CalibrationConfig.from_dict({"max_pano_distance_m": "5 s"})

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="max_distance"):
            CalibrationConfig.from_dict({"max_distance": 50})

    @pytest.mark.parametrize("values", [
        {"calibration_fraction": 1.0},
        {"calibration_fraction": 0},
        {"max_labels_per_pano": 0},
        {"max_pano_distance_m": -5},
        {"constant_distance_m": -1},
    ])
    def test_invalid_values(self, values):
        with pytest.raises(ValueError):
            CalibrationConfig.from_dict(values)

    def test_from_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"calibration_fraction": 0.6, "random_seed": 4}))
        config = CalibrationConfig.from_json(path)
        assert config.calibration_fraction == 0.6
        assert config.random_seed == 4
        assert config.to_dict()["random_seed"] == 4


class TestRunCalibration:

    @pytest.fixture
    def run(self):
        return run_calibration(
            {"seattle": make_raw_labels(n=400, seed=1), "dc": make_raw_labels(n=300, seed=2)},
            config=CalibrationConfig(calibration_fraction=0.7, random_seed=5),
            run_id="test_run",
        )

    def test_all_estimators_fitted_and_scored(self, run):
        assert not run.failures
        assert list(run.models) == [
            "constant", "median_distance", "median_distance_by_type", "joint_linear",
            "separate_linear", "mixed_effects", "per_zoom_linear",
        ]
        assert set(run.scores) == set(run.models)
        assert sorted(run.report.ranking) == sorted(run.models)

    def test_every_estimator_scored_on_same_holdout(self, run):
        n_holdout = len(run.partition.holdout)
        for result in run.scores.values():
            assert result.summary.n_scored + result.summary.n_skipped == n_holdout

    def test_sizes(self, run):
        assert run.cleaning.total_in == 700
        assert run.cleaning.total_out == 700
        assert len(run.partition.calibration) == 490
        assert len(run.partition.holdout) == 210

    def test_per_zoom_beats_constant(self, run):
        table = run.report.position_error
        assert table.loc["per_zoom_linear", "median"] <= table.loc["constant", "median"]

    def test_production_model(self, run):
        assert run.production_model is run.models["per_zoom_linear"]

    def test_reproducible(self, run):
        again = run_calibration(
            {"seattle": make_raw_labels(n=400, seed=1), "dc": make_raw_labels(n=300, seed=2)},
            config=CalibrationConfig(calibration_fraction=0.7, random_seed=5),
        )
        assert again.production_model.to_dict() == run.production_model.to_dict()
        assert again.report.ranking == run.report.ranking

    def test_export_coefficients(self, run, tmp_path):
        path = tmp_path / "coefficients.json"
        export_coefficients(run, path)
        payload = json.loads(path.read_text())

        assert payload["run_id"] == "test_run"
        assert payload["calibration_size"] == 490
        assert payload["config"]["random_seed"] == 5
        assert payload["coefficients"] == run.production_model.to_dict()


class TestRunFailures:

    def test_missing_zoom_disables_only_per_zoom(self):
        audit = AuditLogger()
        run = run_calibration(
            {"seattle": make_raw_labels(n=300, zooms=(1, 2))},
            audit=audit,
            run_id="no_zoom_3",
        )

        assert set(run.failures) == {"per_zoom_linear"}
        assert "zoom=3" in run.failures["per_zoom_linear"]
        assert len(run.models) == 6
        assert "per_zoom_linear" not in run.report.ranking
        assert run.production_model is None

        summary = audit.get_run_summary("no_zoom_3")
        assert summary["failed_estimators"] == ["per_zoom_linear"]
        assert summary["end_time"] is not None

    def test_constant_canvas_x_still_scores_every_estimator(self):
        raw = make_raw_labels(n=300)
        raw['canvas_x'] = 360.0
        run = run_calibration({"seattle": raw})

        assert not run.failures
        assert len(run.scores) == 7
        assert run.models["mixed_effects"].heading.fixed.slope('canvas_x') == 0.0

    def test_failed_mixed_model_fit_disables_only_mixed_effects(self, monkeypatch):
        def singular(self, *args, **kwargs):
            raise np.linalg.LinAlgError("Singular matrix")

        monkeypatch.setattr(sm.MixedLM, "fit", singular)
        audit = AuditLogger()
        run = run_calibration({"seattle": make_raw_labels(n=300)}, audit=audit, run_id="singular")

        assert set(run.failures) == {"mixed_effects"}
        assert "Singular matrix" in run.failures["mixed_effects"]
        assert len(run.scores) == 6
        assert run.production_model is run.models["per_zoom_linear"]
        assert audit.get_run_summary("singular")["failed_estimators"] == ["mixed_effects"]

    def test_export_without_per_zoom_model(self, tmp_path):
        run = run_calibration({"seattle": make_raw_labels(n=300, zooms=(1, 2))})
        with pytest.raises(RuntimeError, match="zoom=3"):
            export_coefficients(run, tmp_path / "out.json")

    def test_schema_error_aborts(self):
        raw = make_raw_labels(n=50).drop(columns=["zoom"])
        with pytest.raises(SchemaError):
            run_calibration({"seattle": raw})

    def test_audit_records_drops(self):
        raw = make_raw_labels(n=300)
        raw.loc[:9, "ground_truth_source"] = "manual"

        audit = AuditLogger()
        run = run_calibration({"seattle": raw}, audit=audit, run_id="drops")

        summary = audit.get_run_summary("drops")
        assert summary["drops_by_stage"]["untrusted_ground_truth"] == 10
        assert summary["total_records_dropped"] == 10
        assert run.cleaning.total_out == 290

    def test_config_hash_is_deterministic(self):
        audit = AuditLogger()
        config = CalibrationConfig(random_seed=3)
        run_calibration({"a": make_raw_labels(n=200)}, config=config, audit=audit, run_id="r1")
        run_calibration({"a": make_raw_labels(n=200)}, config=config, audit=audit, run_id="r2")
        assert (audit.get_run_summary("r1")["config_hash"]
                == audit.get_run_summary("r2")["config_hash"])


class TestCommandLine:

    def test_main(self, tmp_path, capsys):
        csv_path = tmp_path / "seattle.csv"
        make_raw_labels(n=300).to_csv(csv_path, index=False)
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"max_pano_distance_m": "45 m", "random_seed": 2}))
        coefficients_path = tmp_path / "coefficients.json"
        audit_path = tmp_path / "audit.json"

        code = main([
            f"seattle={csv_path}",
            "--config", str(config_path),
            "--run-id", "cli_run",
            "--coefficients-out", str(coefficients_path),
            "--audit-out", str(audit_path),
        ])

        assert code == 0
        out = capsys.readouterr().out
        assert "per_zoom_linear" in out
        assert "zoom 1: distance" in out

        coefficients = json.loads(coefficients_path.read_text())
        assert coefficients["run_id"] == "cli_run"
        assert sorted(coefficients["coefficients"]) == ["1", "2", "3"]
        assert coefficients["config"]["max_pano_distance_m"] == 45.0

        audit = json.loads(audit_path.read_text())
        assert audit["run_id"] == "cli_run"
        assert [d["stage"] for d in audit["record_drops"]][0] == "invalid_record"
        assert audit["output_metadata"]["ranking"]

    def test_bad_source_argument(self):
        with pytest.raises(SystemExit):
            main(["seattle.csv"])
