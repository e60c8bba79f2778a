"""Tests for the batch result buffer."""
import random
import threading

import pytest

from common.models.data_models import Trade
from ingestion.pipeline.aggregator import ResultAggregator


def trade(ts: int, symbol: str, seq: int) -> Trade:
    return Trade(ts=ts, symbol=symbol, size=1, price=1.0, exchange=1, tape=1,
                 trade_id=str(seq), sequence_number=seq)


def test_sort_independent_of_arrival_order():
    records = [trade(ts, sym, seq) for seq, (ts, sym) in enumerate(
        [(5, "B"), (5, "A"), (1, "Z"), (5, "A"), (3, "C")])]
    expected = sorted(records, key=lambda t: t.order_key)

    for seed in range(5):
        shuffled = records[:]
        random.Random(seed).shuffle(shuffled)
        aggregator = ResultAggregator(lambda t: t.order_key)
        for record in shuffled:
            aggregator.extend([record])
        assert aggregator.sorted_records() == expected


def test_append_after_sort_raises():
    aggregator = ResultAggregator(lambda t: t.order_key)
    aggregator.extend([trade(1, "A", 1)])
    aggregator.sorted_records()

    with pytest.raises(RuntimeError):
        aggregator.extend([trade(2, "A", 2)])


def test_concurrent_extends_keep_every_record():
    aggregator = ResultAggregator(lambda t: t.order_key)

    def worker(offset):
        for i in range(500):
            aggregator.extend([trade(i, f"S{offset}", i)])

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    records = aggregator.sorted_records()
    assert len(records) == 4000
    keys = [r.order_key for r in records]
    assert keys == sorted(keys)
