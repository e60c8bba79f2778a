"""Tests for verified partition commits."""
from datetime import date

import pytest

from common.errors import StorageError, WriteVerificationError
from common.models.data_models import Batch
from common.models.partitions import date_to_ns
from ingestion.jobs.agg1d import AGG1D_SCHEMA
from ingestion.pipeline.partition_writer import PartitionWriter

from conftest import InMemoryStore, make_bar

DAY = date(2024, 3, 15)
TS = date_to_ns(DAY)


def batch(replace: bool = False) -> Batch:
    return Batch(partition_key="2024", start=date(2024, 1, 1), end=date(2025, 1, 1), replace=replace)


class TestPartitionWriter:
    """Commit and verification against the in-memory store."""

    def setup_method(self):
        self.store = InMemoryStore()
        self.table = self.store.open_table(AGG1D_SCHEMA)
        self.writer = PartitionWriter(self.table)

    def test_commit_appends_and_verifies(self):
        records = [make_bar(TS, "AAPL"), make_bar(TS, "MSFT")]

        result = self.writer.commit(batch(), records)

        assert result.written == 2
        assert result.row_count == 2
        assert [row[1] for row in self.table.rows("2024")] == ["AAPL", "MSFT"]
        assert self.table.flushes == 1

    def test_prior_rows_count_toward_verification(self):
        self.table.seed("2024", [make_bar(TS - 86_400_000_000_000, "AAPL").to_row()])

        result = self.writer.commit(batch(), [make_bar(TS, "AAPL")])

        assert result.prior_rows == 1
        assert result.row_count == 2

    def test_replace_rewrites_partition(self):
        self.table.seed("2024", [make_bar(TS, "OLD").to_row()] * 3)

        result = self.writer.commit(batch(replace=True), [make_bar(TS, "NEW")])

        assert result.replaced is True
        assert result.row_count == 1
        assert self.table.rows("2024")[0][1] == "NEW"

    def test_row_count_mismatch_is_fatal(self):
        self.table.lose_rows_on_flush = 1

        with pytest.raises(WriteVerificationError) as excinfo:
            self.writer.commit(batch(), [make_bar(TS, "AAPL"), make_bar(TS, "MSFT")])

        assert excinfo.value.expected == 2
        assert excinfo.value.actual == 1
        assert excinfo.value.partition_key == "2024"

    def test_record_outside_partition_rejected_before_writing(self):
        stray = make_bar(date_to_ns(date(2023, 12, 29)), "AAPL")

        with pytest.raises(StorageError):
            self.writer.commit(batch(), [make_bar(TS, "AAPL"), stray])

        assert self.table.flushes == 0
        assert self.table.row_count("2024") == 0

    def test_empty_batch_still_flushes(self):
        result = self.writer.commit(batch(), [])
        assert result.written == 0
        assert self.table.flushes == 1
