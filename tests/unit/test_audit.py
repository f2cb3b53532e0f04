"""
Unit tests for the per-run audit trail
"""

import json

import pytest

from common.errors import EstimationError, InsufficientDataError
from common.logging_config import AuditLogger


@pytest.fixture
def audit():
    audit = AuditLogger()
    with audit.run_context("run_1", {"random_seed": 0}):
        audit.log_record_drop("invalid_record", 3)
        audit.log_record_drop("deleted", 2)
        audit.log_record_drop("invalid_record", 1)
        audit.log_estimator_failure("per_zoom_linear", InsufficientDataError("zoom=3", 0, 3))
        audit.log_estimator_failure("mixed_effects", EstimationError("singular", "mixed_effects"))
        audit.log_skipped_predictions("separate_linear", 4)
    return audit


class TestRunRecord:

    def test_summary(self, audit):
        summary = audit.get_run_summary("run_1")
        assert summary["total_records_dropped"] == 6
        assert summary["drops_by_stage"] == {"invalid_record": 4, "deleted": 2}
        assert summary["failed_estimators"] == ["per_zoom_linear", "mixed_effects"]
        assert summary["skipped_predictions"] == {"separate_linear": 4}
        assert summary == audit.runs["run_1"].summary()

    def test_summary_and_full_record_share_run_fields(self, audit):
        summary = audit.get_run_summary("run_1")
        record = audit.runs["run_1"].to_dict()
        for key in ("run_id", "config_hash", "start_time", "end_time", "skipped_predictions"):
            assert summary[key] == record[key]
        assert len(record["config_hash"]) == 16
        assert record["end_time"] is not None

    def test_export(self, audit, tmp_path):
        path = tmp_path / "audit.json"
        audit.export_run_artifacts("run_1", path)
        payload = json.loads(path.read_text())

        assert [d["count"] for d in payload["record_drops"]] == [3, 2, 1]
        assert [f["error_type"] for f in payload["estimator_failures"]] == [
            "InsufficientDataError", "EstimationError",
        ]
        assert payload["estimator_failures"][1]["message"] == "mixed_effects: singular"

    def test_unknown_run(self, audit):
        with pytest.raises(KeyError, match="run_2"):
            audit.get_run_summary("run_2")

    def test_reports_outside_a_run_are_not_recorded(self):
        audit = AuditLogger()
        audit.log_record_drop("deleted", 5)
        assert audit.current_run is None
        assert audit.runs == {}
