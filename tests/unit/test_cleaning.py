"""
Unit tests for corpus cleaning and derived geometry features
"""

import numpy as np
import pandas as pd
import pytest

from common.errors import SchemaError
from common.logging_config import AuditLogger
from data_ingestion.loaders import LabelBatchLoader
from preprocessing.cleaning import clean_label_records
from preprocessing.feature_engineering import DERIVED_COLUMNS, derive_geometry_features
from tests.synthetic import make_raw_labels, true_distance, true_heading_diff


def load(raw, origin="seattle"):
    return LabelBatchLoader().load_batches({origin: raw})


class TestDerivedFeatures:
    """pano_distance, label_heading and heading_diff"""

    def test_recovers_generative_geometry(self):
        raw = make_raw_labels(n=200, distance_noise=0.0, heading_noise=0.0)
        derived = derive_geometry_features(raw)

        expected_distance = true_distance(raw['zoom'], raw['sv_image_y'], raw['canvas_y'])
        expected_diff = true_heading_diff(raw['zoom'], raw['canvas_x'])
        np.testing.assert_allclose(derived['pano_distance'], expected_distance, atol=1e-6)
        np.testing.assert_allclose(derived['heading_diff'], expected_diff, atol=1e-6)

    def test_ranges(self):
        derived = derive_geometry_features(make_raw_labels(n=300))
        assert (derived['pano_distance'] >= 0).all()
        assert ((derived['label_heading'] >= 0) & (derived['label_heading'] < 360)).all()
        assert ((derived['heading_diff'] > -180) & (derived['heading_diff'] <= 180)).all()

    def test_does_not_modify_input(self):
        raw = make_raw_labels(n=10)
        derive_geometry_features(raw)
        assert not set(DERIVED_COLUMNS) & set(raw.columns)

    def test_label_on_camera(self):
        raw = make_raw_labels(n=3)
        raw.loc[1, 'lat'] = raw.loc[1, 'pano_lat']
        raw.loc[1, 'lng'] = raw.loc[1, 'pano_lng']
        raw.loc[1, 'heading'] = 90.0
        derived = derive_geometry_features(raw)
        assert derived.loc[1, 'pano_distance'] == 0.0
        assert derived.loc[1, 'label_heading'] == 0.0
        assert derived.loc[1, 'heading_diff'] == pytest.approx(-90.0)


class TestCleaningStages:
    """Each filter removes what it should and is counted"""

    @pytest.fixture
    def dirty(self):
        raw = make_raw_labels(n=30)
        raw['zoom'] = raw['zoom'].astype(float)
        raw.loc[0, 'ground_truth_source'] = 'manual'
        raw.loc[0, 'is_deleted'] = True
        raw.loc[1, 'is_deleted'] = True
        raw.loc[2, 'is_tutorial'] = True
        raw.loc[3, 'zoom'] = 4.0
        raw.loc[4, 'lat'] = np.nan
        raw.loc[5, 'canvas_x'] = 0.0
        raw.loc[6, 'ground_truth_source'] = 'manual'
        return load(raw)

    def test_drop_counts_per_stage(self, dirty):
        result = clean_label_records(dirty)
        assert result.dropped == {
            'invalid_record': 3,
            'untrusted_ground_truth': 2,
            'deleted': 1,
            'tutorial': 1,
            'crowded_panorama': 0,
            'distant_label': 0,
        }
        assert result.total_in == 30
        assert result.total_out == 23
        assert len(result.table) == 23

    def test_survivors(self, dirty):
        table = clean_label_records(dirty).table
        assert not set(table['label_id']) & {'0', '1', '2', '3', '4', '5', '6'}
        assert (table['ground_truth_source'] == 'depth').all()
        assert not table['is_deleted'].any()
        assert not table['is_tutorial'].any()
        assert table['zoom'].isin([1, 2, 3]).all()
        assert list(table.index) == list(range(23))

    def test_derived_columns_present(self, dirty):
        table = clean_label_records(dirty).table
        for name in DERIVED_COLUMNS:
            assert name in table.columns
            assert table[name].notna().all()

    def test_input_not_modified(self, dirty):
        before = dirty.copy()
        clean_label_records(dirty)
        pd.testing.assert_frame_equal(dirty, before)

    def test_trusted_source_is_configurable(self, dirty):
        result = clean_label_records(dirty, trusted_source='manual')
        assert set(result.table['label_id']) == {'6'}

    def test_missing_column_raises(self, dirty):
        with pytest.raises(SchemaError):
            clean_label_records(dirty.drop(columns=['is_tutorial']))


class TestPanoramaCap:
    """Panoramas with too many labels are dropped whole"""

    def test_twenty_labels_dropped_nineteen_kept(self):
        # pano_0 has 20 labels, pano_1 has 19
        table = load(make_raw_labels(n=39, labels_per_pano=20))
        result = clean_label_records(table, max_labels_per_pano=20)

        assert result.dropped['crowded_panorama'] == 20
        assert set(result.table['pano_id']) == {'pano_1'}
        assert result.total_out == 19

    def test_cap_counts_only_surviving_labels(self):
        raw = make_raw_labels(n=39, labels_per_pano=20)
        raw.loc[0, 'is_deleted'] = True
        result = clean_label_records(load(raw), max_labels_per_pano=20)

        assert result.dropped['crowded_panorama'] == 0
        assert result.total_out == 38

    def test_panorama_keyed_by_position_without_pano_id(self):
        raw = make_raw_labels(n=39, labels_per_pano=20).drop(columns=['pano_id'])
        result = clean_label_records(load(raw), max_labels_per_pano=20)

        assert result.dropped['crowded_panorama'] == 20
        assert 'pano_id' not in result.table.columns

    @pytest.mark.parametrize("blank", [np.nan, None, "", "  "])
    def test_blank_pano_id_keyed_by_position(self, blank):
        raw = make_raw_labels(n=25, labels_per_pano=25)
        raw['pano_id'] = blank
        result = clean_label_records(load(raw), max_labels_per_pano=20)

        assert result.dropped['crowded_panorama'] == 25
        assert result.total_out == 0

    def test_blank_pano_ids_at_different_positions_not_pooled(self):
        # Two camera positions with 15 labels each
        raw = make_raw_labels(n=30, labels_per_pano=15)
        raw['pano_id'] = np.nan
        result = clean_label_records(load(raw), max_labels_per_pano=20)

        assert result.dropped['crowded_panorama'] == 0
        assert result.total_out == 30

    def test_partially_blank_pano_ids(self):
        # pano_0 has an id on 10 labels and none on the other 10
        raw = make_raw_labels(n=39, labels_per_pano=20)
        raw.loc[10:19, 'pano_id'] = ""
        result = clean_label_records(load(raw), max_labels_per_pano=20)

        assert result.dropped['crowded_panorama'] == 0
        assert result.total_out == 39

    def test_same_pano_id_in_two_origins_is_two_panoramas(self):
        table = LabelBatchLoader().load_batches({
            "seattle": make_raw_labels(n=10, labels_per_pano=10, seed=1),
            "dc": make_raw_labels(n=10, labels_per_pano=10, seed=2),
        })
        result = clean_label_records(table, max_labels_per_pano=15)
        assert result.dropped['crowded_panorama'] == 0


class TestDistanceCap:
    """Labels at or beyond the distance cap are dropped"""

    def test_cap(self):
        table = load(make_raw_labels(n=200))
        distances = derive_geometry_features(table)['pano_distance']
        cap = float(distances.median())

        result = clean_label_records(table, max_pano_distance_m=cap)

        assert result.dropped['distant_label'] == int((distances >= cap).sum())
        assert (result.table['pano_distance'] < cap).all()

    def test_far_label_dropped_at_default_cap(self):
        raw = make_raw_labels(n=10)
        # about 111 m north of the camera
        raw.loc[0, 'lat'] = raw.loc[0, 'pano_lat'] + 0.001
        raw.loc[0, 'lng'] = raw.loc[0, 'pano_lng']
        result = clean_label_records(load(raw))
        assert result.dropped['distant_label'] == 1
        assert '0' not in set(result.table['label_id'])


class TestIdempotence:
    """Cleaning clean output drops nothing"""

    def test_reclean_is_identity(self):
        raw = make_raw_labels(n=120, labels_per_pano=20)
        raw.loc[3, 'is_deleted'] = True
        first = clean_label_records(load(raw), max_labels_per_pano=20)
        second = clean_label_records(first.table, max_labels_per_pano=20)

        assert all(count == 0 for count in second.dropped.values())
        pd.testing.assert_frame_equal(second.table, first.table)

    def test_reclean_without_pano_ids(self):
        raw = make_raw_labels(n=60, labels_per_pano=25)
        raw['pano_id'] = ""
        first = clean_label_records(load(raw), max_labels_per_pano=20)
        second = clean_label_records(first.table, max_labels_per_pano=20)

        assert first.dropped['crowded_panorama'] == 50
        assert second.dropped['crowded_panorama'] == 0
        pd.testing.assert_frame_equal(second.table, first.table)

    def test_everything_dropped(self):
        raw = make_raw_labels(n=10)
        raw['is_deleted'] = True
        result = clean_label_records(load(raw))
        assert result.total_out == 0
        assert result.table.empty
        assert set(DERIVED_COLUMNS) <= set(result.table.columns)


class TestCleaningAudit:
    """Drops are reported to the audit trail"""

    def test_drops_recorded(self):
        raw = make_raw_labels(n=20)
        raw.loc[0, 'is_tutorial'] = True
        raw.loc[1, 'ground_truth_source'] = 'manual'

        audit = AuditLogger()
        with audit.run_context("clean_test"):
            clean_label_records(load(raw), audit=audit)

        summary = audit.get_run_summary("clean_test")
        assert summary['total_records_dropped'] == 2
        assert summary['drops_by_stage']['tutorial'] == 1
        assert summary['drops_by_stage']['untrusted_ground_truth'] == 1
        assert summary['drops_by_stage']['deleted'] == 0
