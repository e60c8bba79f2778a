"""
Concurrent fetch/aggregate/write pipeline shared by every ingestion job.
"""
from .rate_limiter import RateLimiter
from .retry_policy import RetryAction, RetryDecision, RetryPolicy, RetryState
from .pagination import Page, PaginationDeduplicator
from .market_calendar import MarketCalendar, SessionCalendar
from .work_planner import WorkPlanner
from .aggregator import ResultAggregator
from .worker_pool import FetchWorkerPool, PoolStats
from .partition_writer import CommitResult, PartitionWriter
from .batch_runner import BatchRunner, JobResult

__all__ = [
    'RateLimiter',
    'RetryAction',
    'RetryDecision',
    'RetryPolicy',
    'RetryState',
    'Page',
    'PaginationDeduplicator',
    'MarketCalendar',
    'SessionCalendar',
    'WorkPlanner',
    'ResultAggregator',
    'FetchWorkerPool',
    'PoolStats',
    'CommitResult',
    'PartitionWriter',
    'BatchRunner',
    'JobResult',
]
