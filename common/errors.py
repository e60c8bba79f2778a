"""
Exception hierarchy for the backfill system.

Fetch errors are tagged at the client boundary so workers never have to infer
"no data" from a generic I/O failure. Only fatal classes escalate out of a
worker; everything else is resolved inside the unit that raised it.
"""
from typing import Optional


class BackfillError(Exception):
    """Base exception for all backfill failures."""


class BackfillConfigError(BackfillError):
    """Raised for invalid runtime configuration."""


class FetchError(BackfillError):
    """Base class for errors raised by market data clients."""


class NoDataError(FetchError):
    """Source confirmed there is no data for the request (terminal, not a failure)."""


class TransientFetchError(FetchError):
    """Network, timeout, throttling or server error. Safe to retry."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FatalFetchError(FetchError):
    """Error that retrying cannot fix (bad credentials, stalled pagination)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ExhaustedRetriesError(BackfillError):
    """A work unit failed on every allowed attempt."""

    def __init__(self, unit_key: str, attempts: int, last_error: Optional[BaseException]):
        super().__init__(
            f"{unit_key}: failed after {attempts} attempts (last error: {last_error})"
        )
        self.unit_key = unit_key
        self.attempts = attempts
        self.last_error = last_error


class MalformedRecordError(BackfillError):
    """A single decoded record is unusable. Skipped by the decoder, never fatal."""


class StorageError(BackfillError):
    """Raised for partitioned store failures."""


class WriteVerificationError(StorageError):
    """Committed row count disagrees with the number of records written."""

    def __init__(self, table: str, partition_key: str, expected: int, actual: int):
        super().__init__(
            f"{table}/{partition_key}: expected {expected} rows after flush, store reports {actual}"
        )
        self.table = table
        self.partition_key = partition_key
        self.expected = expected
        self.actual = actual


class DependencyNotReadyError(BackfillError):
    """A dependent job's source table has not been populated yet."""


class UnitFailedError(BackfillError):
    """Fatal error raised while processing a specific work unit."""

    def __init__(self, unit_key: str, cause: BaseException):
        super().__init__(f"{unit_key}: {cause}")
        self.unit_key = unit_key
        self.cause = cause
