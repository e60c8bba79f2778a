"""Tests for the Timescale partitioned table (no database required)."""
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest

from common.errors import StorageError
from ingestion.jobs.agg1d import AGG1D_SCHEMA
from storage.timescale.partition_table import TimescalePartitionedTable


class FakePool:
    """Pool whose cursors are MagicMocks sharing one call log."""

    def __init__(self):
        self.cur = MagicMock()
        self.transactions = 0

    @contextmanager
    def cursor(self):
        self.transactions += 1
        yield self.cur


def params_of(cur):
    return [c[0][1] for c in cur.execute.call_args_list]


class TestTimescalePartitionedTable:

    def setup_method(self):
        self.pool = FakePool()
        self.table = TimescalePartitionedTable(self.pool, AGG1D_SCHEMA, page_size=100)

    def test_append_before_stage_rejected(self):
        with pytest.raises(StorageError):
            self.table.append_record((1, 'AAPL', 1.0, 1.0, 1.0, 1.0, 10, 1.0))

    def test_row_width_checked(self):
        self.table.stage_partition('2024')
        with pytest.raises(StorageError):
            self.table.append_record((1, 'AAPL'))

    def test_flush_without_writes_is_noop(self):
        self.table.flush()
        assert self.pool.transactions == 0

    @patch('storage.timescale.partition_table.extras.execute_batch')
    def test_flush_truncates_inserts_and_refreshes_metadata(self, execute_batch):
        self.pool.cur.fetchone.return_value = (2, 10, 20)

        self.table.truncate_partition('2024')
        self.table.stage_partition('2024')
        self.table.append_record((10, 'AAPL', 1.0, 2.0, 0.5, 1.5, 100, 1.5))
        self.table.append_record((20, 'MSFT', 3.0, 4.0, 2.5, 3.5, 200, 3.5))
        self.table.flush()

        assert self.pool.transactions == 1
        _, _, rows = execute_batch.call_args[0]
        assert rows == [
            (10, 'AAPL', 1.0, 2.0, 0.5, 1.5, 100, 1.5, '2024'),
            (20, 'MSFT', 3.0, 4.0, 2.5, 3.5, 200, 3.5, '2024'),
        ]
        assert execute_batch.call_args[1]['page_size'] == 100
        assert params_of(self.pool.cur) == [
            ('2024',),                          # delete truncated partition
            ('2024',),                          # count/min/max
            ('agg1d', '2024', 2, 10, 20),       # metadata upsert
        ]

    @patch('storage.timescale.partition_table.extras.execute_batch')
    def test_empty_partition_keeps_zero_count_metadata(self, execute_batch):
        self.pool.cur.fetchone.return_value = (0, None, None)

        self.table.truncate_partition('2023')
        self.table.stage_partition('2023')
        self.table.flush()

        execute_batch.assert_not_called()
        assert params_of(self.pool.cur)[-1] == ('agg1d', '2023', 0, None, None)

    def test_partition_metadata_includes_empty_partitions(self):
        self.pool.cur.fetchall.return_value = [('2022', 0, None, None), ('2023', 4, 1, 9)]

        metadata = self.table.partition_metadata()

        assert metadata['2022'].row_count == 0
        assert metadata['2022'].to_ts is None

    @patch('storage.timescale.partition_table.extras.execute_batch')
    def test_failed_flush_clears_buffers(self, execute_batch):
        execute_batch.side_effect = StorageError("connection lost")

        self.table.stage_partition('2024')
        self.table.append_record((10, 'AAPL', 1.0, 2.0, 0.5, 1.5, 100, 1.5))
        with pytest.raises(StorageError):
            self.table.flush()

        self.table.flush()
        assert self.pool.transactions == 1

    def test_partition_metadata_read(self):
        self.pool.cur.fetchall.return_value = [('2023', 5, 1, 9), ('2024', 3, 10, 30)]

        metadata = self.table.partition_metadata()

        assert set(metadata) == {'2023', '2024'}
        assert metadata['2024'].row_count == 3
        assert metadata['2024'].to_ts == 30
        assert params_of(self.pool.cur) == [('agg1d',)]

    def test_last_committed_timestamp_scoped_to_partition(self):
        self.pool.cur.fetchone.return_value = (42,)

        assert self.table.last_committed_timestamp('2024') == 42
        assert params_of(self.pool.cur) == [('agg1d', '2024')]

    def test_symbol_scan_with_volume_filter(self):
        self.pool.cur.fetchall.return_value = [('AAPL',), ('MSFT',)]

        symbols = self.table.scan_symbols_with_activity(0, 100, min_volume=0)

        assert symbols == {'AAPL', 'MSFT'}
        assert params_of(self.pool.cur) == [(0, 100, 0)]
