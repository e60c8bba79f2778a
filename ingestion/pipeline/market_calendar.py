"""
Trading-session calendar used to restrict date-keyed work units.
"""
import logging
from datetime import date, timedelta
from typing import List, Protocol

import exchange_calendars as xcals
import pandas as pd

logger = logging.getLogger(__name__)


class SessionCalendar(Protocol):
    """Anything that can tell whether the market was open on a date."""

    def is_session(self, day: date) -> bool:
        ...

    def sessions(self, start: date, end: date) -> List[date]:
        """Sessions in ``[start, end)``, chronological."""
        ...


class MarketCalendar:
    """
    Exchange session calendar backed by ``exchange_calendars``.

    Dates outside the calendar's loaded bounds fall back to a weekday check so
    that planning never fails on a far-past start date.
    """

    def __init__(self, name: str = "XNYS", start: date = date(2004, 1, 1)):
        """
        Initialize market calendar.

        Args:
            name: exchange_calendars calendar code (XNYS for US equities)
            start: Earliest date the calendar must cover
        """
        self.name = name
        self._calendar = xcals.get_calendar(name, start=pd.Timestamp(start))
        self._first = self._calendar.first_session.date()
        self._last = self._calendar.last_session.date()
        logger.debug(f"Loaded {name} calendar: {self._first} to {self._last}")

    def is_session(self, day: date) -> bool:
        if day < self._first or day > self._last:
            return day.weekday() < 5
        return bool(self._calendar.is_session(pd.Timestamp(day)))

    def sessions(self, start: date, end: date) -> List[date]:
        days: List[date] = []
        cursor = start
        while cursor < end:
            if self.is_session(cursor):
                days.append(cursor)
            cursor += timedelta(days=1)
        return days
