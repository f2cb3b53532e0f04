import pytest

from data_ingestion.loaders import LabelBatchLoader
from preprocessing.cleaning import clean_label_records
from preprocessing.partition import partition_corpus
from tests.synthetic import make_raw_labels


@pytest.fixture
def raw_labels():
    return make_raw_labels()


@pytest.fixture
def loaded_table(raw_labels):
    return LabelBatchLoader().load_batches({"seattle": raw_labels})


@pytest.fixture
def clean_table(loaded_table):
    return clean_label_records(loaded_table).table


@pytest.fixture
def partition(clean_table):
    return partition_corpus(clean_table, 0.7, seed=11)
