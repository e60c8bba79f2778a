"""
Bounded-concurrency executor for work units.

Every unit runs its own retry loop. The first fatal error sets a shared
cancellation event: queued units are cancelled, in-flight units stop at their
next retry sleep, and the error is re-raised to the coordinator once all
workers have returned.
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from tqdm import tqdm

from common.errors import ExhaustedRetriesError, TransientFetchError, UnitFailedError
from common.models.data_models import WorkUnit
from ingestion.pipeline.aggregator import ResultAggregator
from ingestion.pipeline.retry_policy import RetryAction, RetryPolicy, RetryState

logger = logging.getLogger(__name__)

R = TypeVar("R")

FetchFn = Callable[[WorkUnit], List[R]]


@dataclass
class PoolStats:
    """Counters for one ``FetchWorkerPool.run`` call."""
    units: int = 0
    completed: int = 0
    empty: int = 0
    retries: int = 0
    records: int = 0


class FetchWorkerPool:
    """
    Thread pool that fetches work units into a ResultAggregator.

    ``run()`` is a barrier: it returns only after every dispatched unit has
    finished, so the caller can sort and write without further coordination.
    """

    def __init__(self, max_workers: int = 100, show_progress: bool = True):
        """
        Initialize worker pool.

        Args:
            max_workers: Maximum concurrent fetches
            show_progress: Render a tqdm counter per run
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.show_progress = show_progress
        self.cancel_event = threading.Event()
        self._stats_lock = threading.Lock()

    def run(self, units: Sequence[WorkUnit], fetch: FetchFn, policy: RetryPolicy,
            aggregator: ResultAggregator, desc: Optional[str] = None) -> PoolStats:
        """
        Fetch every unit and deliver its records to ``aggregator``.

        Args:
            units: Work units of one batch
            fetch: Fetch function for a single unit
            policy: Retry policy applied to each unit
            aggregator: Shared result buffer
            desc: Progress bar label

        Returns:
            PoolStats for the run

        Raises:
            ExhaustedRetriesError: A unit failed on every allowed attempt
            UnitFailedError: A unit hit a fatal error
        """
        stats = PoolStats(units=len(units))
        if not units:
            return stats

        self.cancel_event = threading.Event()
        first_error: Optional[BaseException] = None
        workers = min(self.max_workers, len(units))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fetch") as executor:
            futures: Dict[Future, WorkUnit] = {
                executor.submit(self._run_unit, unit, fetch, policy, aggregator, stats): unit
                for unit in units
            }
            with tqdm(total=len(units), desc=desc, unit="unit",
                      disable=not self.show_progress, leave=False) as progress:
                try:
                    for future in as_completed(futures):
                        if future.cancelled():
                            continue
                        error = future.exception()
                        if error is not None:
                            if first_error is None:
                                first_error = error
                                logger.error(f"Fatal error in unit {futures[future].key}: {error}")
                                self._cancel(futures)
                            continue
                        progress.update(1)
                        progress.set_postfix(records=stats.records, refresh=False)
                except KeyboardInterrupt:
                    self._cancel(futures)
                    raise

        if first_error is not None:
            raise first_error
        return stats

    def _cancel(self, futures: Dict[Future, WorkUnit]) -> None:
        self.cancel_event.set()
        cancelled = sum(1 for future in futures if future.cancel())
        if cancelled:
            logger.warning(f"Cancelled {cancelled} queued units")

    def _run_unit(self, unit: WorkUnit, fetch: FetchFn, policy: RetryPolicy,
                  aggregator: ResultAggregator, stats: PoolStats) -> int:
        """Retry loop for one unit. Returns the number of records delivered."""
        state = RetryState()
        while not self.cancel_event.is_set():
            state.attempts += 1
            try:
                records = fetch(unit)
            except Exception as e:
                state.last_error = e
                decision = policy.classify(e, state)

                if decision.action is RetryAction.EMPTY:
                    logger.debug(f"{unit.key}: no data")
                    with self._stats_lock:
                        stats.completed += 1
                        stats.empty += 1
                    return 0

                if decision.action is RetryAction.ABORT:
                    if isinstance(e, TransientFetchError):
                        raise ExhaustedRetriesError(unit.key, state.attempts, e) from e
                    raise UnitFailedError(unit.key, e) from e

                logger.warning(
                    f"{unit.key}: attempt {state.attempts}/{policy.max_attempts} failed ({e}), "
                    f"retrying in {decision.delay:.1f}s"
                )
                with self._stats_lock:
                    stats.retries += 1
                # Wakes early when a sibling fails
                self.cancel_event.wait(decision.delay)
                continue

            aggregator.extend(records)
            with self._stats_lock:
                stats.completed += 1
                stats.records += len(records)
            return len(records)

        return 0
