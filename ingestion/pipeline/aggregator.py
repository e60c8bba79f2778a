"""
Thread-safe record buffer for one batch.
"""
import threading
from typing import Callable, Generic, Iterable, List, Tuple, TypeVar

R = TypeVar("R")


class ResultAggregator(Generic[R]):
    """
    Append-only record collection shared by all workers of a batch.

    Workers call ``extend`` concurrently. After the worker barrier the
    coordinator calls ``sorted_records`` once; the buffer is sealed from then
    on and further appends raise.
    """

    def __init__(self, order_key: Callable[[R], Tuple]):
        self.order_key = order_key
        self._records: List[R] = []
        self._sealed = False
        self._lock = threading.Lock()

    def extend(self, records: Iterable[R]) -> None:
        """Append one unit's records."""
        with self._lock:
            if self._sealed:
                raise RuntimeError("Cannot append to aggregator after sort")
            self._records.extend(records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def sorted_records(self) -> List[R]:
        """
        Seal the buffer and return its records in total order.

        Ordering depends only on ``order_key``, never on arrival order, so the
        key must break ties down to a unique record.
        """
        with self._lock:
            self._sealed = True
            self._records.sort(key=self.order_key)
            return list(self._records)
