"""Tests for the bounded fetch worker pool."""
import threading
import time
from datetime import date

import pytest

from common.errors import (
    ExhaustedRetriesError,
    FatalFetchError,
    NoDataError,
    TransientFetchError,
    UnitFailedError,
)
from common.models.data_models import WorkUnit
from ingestion.pipeline.aggregator import ResultAggregator
from ingestion.pipeline.retry_policy import RetryPolicy
from ingestion.pipeline.worker_pool import FetchWorkerPool


def units(*keys):
    return [WorkUnit(key=k, partition_key="2024-03-15", start=date(2024, 3, 15),
                     end=date(2024, 3, 16), symbol=k) for k in keys]


def aggregator():
    return ResultAggregator(lambda r: r)


class TestFetchWorkerPool:
    """Barrier, retry and cancellation behaviour."""

    def setup_method(self):
        self.pool = FetchWorkerPool(max_workers=4, show_progress=False)
        self.policy = RetryPolicy(max_attempts=3, base_delay=0.0)

    def test_runs_units_concurrently_and_waits_for_all(self):
        barrier = threading.Barrier(4, timeout=5)

        def fetch(unit):
            barrier.wait()
            return [(unit.key, 1), (unit.key, 2)]

        buffer = aggregator()
        stats = self.pool.run(units("A", "B", "C", "D"), fetch, self.policy, buffer)

        assert stats.completed == 4
        assert stats.records == 8
        assert len(buffer) == 8

    def test_no_data_counts_as_empty_success(self):
        def fetch(unit):
            if unit.key == "B":
                raise NoDataError("none")
            return [unit.key]

        buffer = aggregator()
        stats = self.pool.run(units("A", "B"), fetch, self.policy, buffer)

        assert stats.empty == 1
        assert buffer.sorted_records() == ["A"]

    def test_transient_errors_are_retried(self):
        attempts = {"A": 0}

        def fetch(unit):
            attempts["A"] += 1
            if attempts["A"] < 3:
                raise TransientFetchError("503", status_code=503)
            return ["ok"]

        buffer = aggregator()
        stats = self.pool.run(units("A"), fetch, self.policy, buffer)

        assert attempts["A"] == 3
        assert stats.retries == 2
        assert buffer.sorted_records() == ["ok"]

    def test_exhausted_retries_abort_the_run(self):
        calls = []

        def fetch(unit):
            calls.append(unit.key)
            raise TransientFetchError("timeout")

        with pytest.raises(ExhaustedRetriesError) as excinfo:
            self.pool.run(units("A"), fetch, self.policy, aggregator())

        assert excinfo.value.unit_key == "A"
        assert excinfo.value.attempts == 3
        assert len(calls) == 3

    def test_fatal_error_names_the_unit(self):
        def fetch(unit):
            raise FatalFetchError("HTTP 401", status_code=401)

        with pytest.raises(UnitFailedError) as excinfo:
            self.pool.run(units("AAPL@2024-03"), fetch, self.policy, aggregator())

        assert excinfo.value.unit_key == "AAPL@2024-03"
        assert isinstance(excinfo.value.cause, FatalFetchError)

    def test_fatal_error_cancels_siblings(self):
        """Queued units never start and retry sleeps wake early."""
        pool = FetchWorkerPool(max_workers=2, show_progress=False)
        slow_policy = RetryPolicy(max_attempts=50, base_delay=30.0)
        sleeper_started = threading.Event()
        fetched = []

        def fetch(unit):
            fetched.append(unit.key)
            if unit.key == "sleeper":
                sleeper_started.set()
                raise TransientFetchError("503")
            if unit.key.startswith("Q"):
                time.sleep(0.2)
                return []
            sleeper_started.wait(5)
            raise FatalFetchError("HTTP 403", status_code=403)

        queued = [f"Q{i}" for i in range(20)]
        started = time.monotonic()
        with pytest.raises(UnitFailedError):
            pool.run(units("sleeper", "bad", *queued), fetch, slow_policy, aggregator())

        assert time.monotonic() - started < 10
        assert pool.cancel_event.is_set()
        assert fetched.count("sleeper") == 1
        assert len([k for k in fetched if k.startswith("Q")]) <= 2

    def test_empty_unit_list(self):
        stats = self.pool.run([], lambda u: [], self.policy, aggregator())
        assert stats.units == 0


def test_max_workers_must_be_positive():
    with pytest.raises(ValueError):
        FetchWorkerPool(max_workers=0)
