"""
Shared fixtures.

StubCalendar stands in for the ephemeris: sectional terms fall on fixed
days (the 4th of February, the 5th of every other month) and wall-clock
time is plain UTC+9 without a longitude correction.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from saju.calendar import CalendarGateway, EphemerisCalendar, LunarDate, SolarTermPeriod
from saju.config import Settings
from saju.errors import CalendarDataUnavailable
from saju.pillars import CalendarFacts

JST = timezone(timedelta(hours=9))

# Gregorian month → (sectional term opening in that month, branch index)
STUB_SECTIONAL = {
    1: ("小寒", 1), 2: ("立春", 2), 3: ("驚蟄", 3), 4: ("清明", 4),
    5: ("立夏", 5), 6: ("芒種", 6), 7: ("小暑", 7), 8: ("立秋", 8),
    9: ("白露", 9), 10: ("寒露", 10), 11: ("立冬", 11), 12: ("大雪", 0),
}


def stub_term(local: datetime) -> SolarTermPeriod:
    opening_day = 4 if local.month == 2 else 5
    month = local.month if local.day >= opening_day else (local.month - 2) % 12 + 1
    name, branch = STUB_SECTIONAL[month]
    start = datetime(local.year, local.month, 1, tzinfo=timezone.utc)
    return SolarTermPeriod(name=name, branch_index=branch, start=start,
                           end=start + timedelta(days=15), is_sectional=True,
                           sectional_name=name)


class StubCalendar(CalendarGateway):
    def __init__(self, lunar: Optional[LunarDate] = None, terms: bool = True,
                 local: bool = True):
        self.lunar = lunar
        self.terms = terms
        self.local = local
        self.calls = 0

    def _wall_clock(self, instant):
        return instant.astimezone(JST).replace(tzinfo=None)

    def solar_term_period_of(self, instant):
        self.calls += 1
        if not self.terms:
            raise CalendarDataUnavailable("no solar terms in stub")
        return stub_term(self._wall_clock(instant))

    def lunar_date_of(self, instant, longitude, latitude):
        self.calls += 1
        if self.lunar is None:
            raise CalendarDataUnavailable("no lunar calendar in stub")
        return self.lunar

    def local_time_adjust(self, instant, longitude, latitude):
        self.calls += 1
        if not self.local:
            raise CalendarDataUnavailable("no local time in stub")
        return self._wall_clock(instant)


def make_facts(local: datetime, branch: Optional[int] = None,
               lunar_month: Optional[int] = None, term_name: Optional[str] = None) -> CalendarFacts:
    """CalendarFacts for a JST wall-clock time; branch=None means no solar-term data."""
    term = None
    if branch is not None:
        name = term_name or "立春"
        start = datetime(local.year, local.month, 1, tzinfo=timezone.utc)
        term = SolarTermPeriod(name=name, branch_index=branch, start=start,
                               end=start + timedelta(days=15), is_sectional=True,
                               sectional_name=name)
    lunar = None
    if lunar_month is not None:
        lunar = LunarDate(lunar_year=local.year, lunar_month=lunar_month, lunar_day=1)
    return CalendarFacts(instant=local.replace(tzinfo=JST), local=local, term=term, lunar=lunar)


@pytest.fixture
def settings(monkeypatch):
    for key in list(os.environ):
        if key.startswith("SAJU_"):
            monkeypatch.delenv(key, raising=False)
    return Settings()


@pytest.fixture
def stub():
    return StubCalendar()


@pytest.fixture(scope="session")
def ephemeris():
    return EphemerisCalendar(Settings())


@pytest.fixture
def facts():
    return make_facts


@pytest.fixture
def stub_calendar():
    return StubCalendar
