"""Tests for the exchange session calendar."""
from datetime import date

import pytest

from ingestion.pipeline import MarketCalendar


@pytest.fixture(scope="module")
def xnys():
    return MarketCalendar("XNYS", start=date(2020, 1, 1))


def test_holidays_and_weekends_are_not_sessions(xnys):
    assert xnys.is_session(date(2024, 3, 28))
    assert not xnys.is_session(date(2024, 3, 29))  # Good Friday
    assert not xnys.is_session(date(2024, 3, 30))
    assert not xnys.is_session(date(2023, 1, 2))  # New Year observed


def test_sessions_half_open(xnys):
    sessions = xnys.sessions(date(2024, 3, 25), date(2024, 4, 2))

    assert sessions == [date(2024, 3, 25), date(2024, 3, 26), date(2024, 3, 27),
                        date(2024, 3, 28), date(2024, 4, 1)]


def test_dates_before_calendar_fall_back_to_weekdays(xnys):
    assert xnys.is_session(date(2019, 12, 25))
    assert not xnys.is_session(date(2019, 12, 28))
