"""
Timestamp-cursor pagination with boundary deduplication.

Polygon's trade and aggregate endpoints page by timestamp, and a timestamp is
not unique across records: several trades can share the nanosecond at which a
page happens to end. The next page therefore restarts at (or slightly before)
the last timestamp seen, and anything already delivered inside that overlap
window is dropped by identifier.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Hashable, List, TypeVar

from common.errors import FatalFetchError

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass
class Page(Generic[R]):
    """
    One decoded response page.

    ``size`` is the number of raw rows the source returned, which can exceed
    ``len(records)`` when malformed rows were dropped during decoding. Only
    ``size`` decides whether the page was full.
    """
    records: List[R] = field(default_factory=list)
    size: int = 0


class PaginationDeduplicator(Generic[R]):
    """
    Merges the pages of a single work unit into a unique, ordered record list.

    Args:
        ts_of: Cursor value of a record, in the source's cursor units
        id_of: Identifier unique per source record
        margin: Safety margin subtracted from the boundary timestamp before
            requesting the next page (same units as the cursor)
    """

    def __init__(self, ts_of: Callable[[R], int], id_of: Callable[[R], Hashable], margin: int = 0):
        if margin < 0:
            raise ValueError("margin cannot be negative")
        self.ts_of = ts_of
        self.id_of = id_of
        self.margin = margin

    def fetch_all(self, fetch_page: Callable[[int, int], Page[R]], start: int, limit: int,
                  label: str = "") -> List[R]:
        """
        Fetch pages until a short page is returned.

        Args:
            fetch_page: ``(cursor, limit) -> Page``; cursor is inclusive
            start: First cursor value
            limit: Page size requested from the source
            label: Unit description for log lines

        Returns:
            Records in source order, each exactly once

        Raises:
            FatalFetchError: If a full page brings nothing new even from the
                unmargined boundary (more than ``limit`` records share it)
        """
        results: List[R] = []
        window: Dict[Hashable, int] = {}
        cursor = start
        boundary = start
        pages = 0

        while True:
            page = fetch_page(cursor, limit)
            pages += 1

            fresh = []
            for record in page.records:
                record_id = self.id_of(record)
                if record_id in window:
                    continue
                window[record_id] = self.ts_of(record)
                fresh.append(record)
            results.extend(fresh)

            if page.size < limit:
                break
            if not fresh and cursor < boundary:
                # Whole page fell inside the margin; step to the boundary itself
                cursor = boundary
                window = {rid: ts for rid, ts in window.items() if ts >= cursor}
                continue
            if not fresh:
                raise FatalFetchError(
                    f"{label}: pagination stalled at cursor {cursor} "
                    f"({page.size} rows in window, none new)"
                )

            boundary = max(self.ts_of(r) for r in page.records) if page.records else cursor
            cursor = max(boundary - self.margin, cursor)
            # Only identifiers the next request can return again need remembering
            window = {rid: ts for rid, ts in window.items() if ts >= cursor}

        if pages > 1:
            logger.debug(f"{label}: merged {pages} pages into {len(results)} records")
        return results
