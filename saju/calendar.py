"""
Calendar gateway: the calendar facts the pillar resolvers consume.

Handles:
- Solar term lookups (24 terms, 12 of them sectional month boundaries)
- Lunar date conversion
- Local Mean Time correction from birth longitude and civil time zone

The resolvers only see the CalendarGateway interface. EphemerisCalendar is
the shipped implementation: Swiss Ephemeris for the Sun's longitude,
lunar_python for the lunar calendar, timezonefinder for the civil zone.
"""

from __future__ import annotations

import abc
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import swisseph as swe
from lunar_python import Solar
from timezonefinder import TimezoneFinder

from saju.config import Settings, get_settings
from saju.errors import CalendarDataUnavailable
from saju.logging_utils import get_logger

logger = get_logger(__name__)

_tf = TimezoneFinder()


# ============================================================
# CALENDAR FACTS
# ============================================================

@dataclass(frozen=True)
class LunarDate:
    lunar_year: int
    lunar_month: int  # 1-12; a leap month keeps its base month number
    lunar_day: int
    is_leap_month: bool = False


@dataclass(frozen=True)
class SolarTermPeriod:
    """
    The solar term period an instant falls in.

    name / is_sectional describe the most recent of the 24 terms.
    branch_index is the month branch opened by the most recent sectional
    term, so crossing a central term never changes it.
    """
    name: str
    branch_index: int  # 0-11
    start: datetime  # UTC
    end: datetime  # UTC
    is_sectional: bool
    sectional_name: str

    @property
    def month_number(self) -> int:
        """Solar month number: 寅 = 1 ... 丑 = 12."""
        return (self.branch_index - 2) % 12 + 1


class CalendarGateway(abc.ABC):
    """Source of lunar dates, solar terms and local time.

    Implementations must be deterministic and may raise
    CalendarDataUnavailable for instants they cannot resolve.
    """

    @abc.abstractmethod
    def lunar_date_of(self, instant: datetime, longitude: float, latitude: float) -> LunarDate:
        ...

    @abc.abstractmethod
    def solar_term_period_of(self, instant: datetime) -> SolarTermPeriod:
        ...

    @abc.abstractmethod
    def local_time_adjust(self, instant: datetime, longitude: float, latitude: float) -> datetime:
        """Naive wall-clock datetime in local mean time at the birth place."""
        ...


# ============================================================
# LOCAL MEAN TIME
# ============================================================

def lmt_correction(longitude: float, standard_meridian: float = 135.0) -> float:
    """
    Calculate Local Mean Time correction in minutes.

    Civil time follows the zone's standard meridian (135°E for Japan and
    Korea). Every degree of longitude away from it shifts solar time by
    four minutes.

    Args:
        longitude: birth location longitude in degrees (east positive)
        standard_meridian: timezone standard meridian

    Returns:
        Correction in minutes (negative = subtract from clock time)

    Example:
        Seoul (126.98°E): correction = (126.98 - 135.0) * 4 = -32.08 min
        Tokyo (139.77°E): correction = (139.77 - 135.0) * 4 = +19.07 min
    """
    return (longitude - standard_meridian) * 4.0


def apply_lmt(clock_time: datetime, longitude: float,
              standard_meridian: float = 135.0) -> datetime:
    """Convert clock (standard) time to Local Mean Time."""
    correction_minutes = lmt_correction(longitude, standard_meridian)
    return clock_time + timedelta(minutes=correction_minutes)


def zone_for(latitude: float, longitude: float, default: str = "Asia/Tokyo") -> ZoneInfo:
    tz_name = _tf.timezone_at(lat=latitude, lng=longitude)
    if tz_name is None:
        logger.debug("No time zone at (%s, %s), using %s", latitude, longitude, default)
        tz_name = default
    return ZoneInfo(tz_name)


def utc_offset_for(instant: datetime, latitude: float, longitude: float,
                   default_zone: str = "Asia/Tokyo"):
    """
    Determine the civil UTC offset at the birth place for an aware instant.
    Detects historical DST (e.g., Japan 1948-1951, Korea 1987-1988).

    Returns:
        (clock_offset, standard_offset, timezone_name, dst_detected)

        clock_offset:    what the clock was actually set to (includes DST if active)
        standard_offset: the zone's standard (non-DST) offset
        dst_detected:    True if DST was active at birth time

    Local Mean Time is measured from the standard offset, so DST is stripped.
    """
    zone = zone_for(latitude, longitude, default_zone)
    local_dt = instant.astimezone(zone)
    clock_offset = local_dt.utcoffset().total_seconds() / 3600

    dst_seconds = local_dt.dst()
    dst_detected = dst_seconds is not None and dst_seconds.total_seconds() > 0

    if dst_detected:
        standard_offset = clock_offset - (dst_seconds.total_seconds() / 3600)
    else:
        standard_offset = clock_offset

    return clock_offset, standard_offset, zone.key, dst_detected


# ============================================================
# SOLAR TERM COMPUTATION
# ============================================================
#
# Each term is the moment the Sun reaches a multiple of 15° of ecliptic
# longitude. The sectional terms (節) at 15° + 30°k open the months:
#
# Li Chun (315°) → Tiger month (month 1)
# Jing Zhe (345°) → Rabbit month (month 2)
# Qing Ming (15°) → Dragon month (month 3)
# ...
# Xiao Han (285°) → Ox month (month 12)

# Indexed by longitude // 15: (name, pinyin, is_sectional)
SOLAR_TERMS = [
    ("春分", "Chun Fen", False),
    ("清明", "Qing Ming", True),
    ("穀雨", "Gu Yu", False),
    ("立夏", "Li Xia", True),
    ("小満", "Xiao Man", False),
    ("芒種", "Mang Zhong", True),
    ("夏至", "Xia Zhi", False),
    ("小暑", "Xiao Shu", True),
    ("大暑", "Da Shu", False),
    ("立秋", "Li Qiu", True),
    ("処暑", "Chu Shu", False),
    ("白露", "Bai Lu", True),
    ("秋分", "Qiu Fen", False),
    ("寒露", "Han Lu", True),
    ("霜降", "Shuang Jiang", False),
    ("立冬", "Li Dong", True),
    ("小雪", "Xiao Xue", False),
    ("大雪", "Da Xue", True),
    ("冬至", "Dong Zhi", False),
    ("小寒", "Xiao Han", True),
    ("大寒", "Da Han", False),
    ("立春", "Li Chun", True),
    ("雨水", "Yu Shui", False),
    ("驚蟄", "Jing Zhe", True),
]

SECTIONAL_TERM_NAMES = [name for name, _, sectional in SOLAR_TERMS if sectional]

# Sun longitude sitting exactly on a term still counts as inside it.
_LONGITUDE_EPSILON = 1e-5


def sectional_branch_index(longitude: float) -> int:
    """Month branch opened by the sectional term at or before a solar longitude."""
    steps = int(((longitude - 315.0) % 360.0) // 30)
    return (2 + steps) % 12


def _julian_day(instant: datetime) -> float:
    utc = instant.astimezone(timezone.utc)
    hours = utc.hour + utc.minute / 60 + (utc.second + utc.microsecond / 1e6) / 3600
    return swe.julday(utc.year, utc.month, utc.day, hours)


def _from_julian_day(jd: float) -> datetime:
    y, m, d, h = swe.revjul(jd)
    return datetime(y, m, d, tzinfo=timezone.utc) + timedelta(hours=h)


def julian_day_number(year: int, month: int, day: int) -> int:
    """Julian Day Number of a civil date (the JD at its noon)."""
    return int(swe.julday(year, month, day, 12.0))


class EphemerisCalendar(CalendarGateway):
    """Calendar facts from Swiss Ephemeris and lunar_python."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        if self.settings.ephe_path:
            swe.set_ephe_path(self.settings.ephe_path)
            self._flags = swe.FLG_SWIEPH
        else:
            self._flags = swe.FLG_MOSEPH

    def _check_range(self, year: int) -> None:
        low, high = self.settings.calendar_min_year, self.settings.calendar_max_year
        if not low <= year <= high:
            raise CalendarDataUnavailable(
                f"Year {year} is outside the supported calendar range {low}-{high}",
                detail={"year": year, "min_year": low, "max_year": high},
            )

    def _sun_longitude(self, jd: float) -> float:
        try:
            result, _ = swe.calc_ut(jd, swe.SUN, self._flags)
        except swe.Error as e:
            raise CalendarDataUnavailable(f"Sun position unavailable: {e}") from e
        return result[0]

    def _crossing(self, longitude: float, jd_start: float) -> float:
        try:
            return swe.solcross_ut(float(longitude), jd_start, self._flags)
        except swe.Error as e:
            raise CalendarDataUnavailable(f"Solar crossing of {longitude}° unavailable: {e}") from e

    def solar_term_period_of(self, instant: datetime) -> SolarTermPeriod:
        self._check_range(instant.astimezone(timezone.utc).year)
        jd = _julian_day(instant)
        longitude = (self._sun_longitude(jd) + _LONGITUDE_EPSILON) % 360.0

        term_index = int(longitude // 15) % 24
        name, _, is_sectional = SOLAR_TERMS[term_index]
        sectional_index = term_index if is_sectional else term_index - 1
        branch_index = sectional_branch_index(sectional_index * 15.0)

        # Terms are ~15 days apart; the previous crossing lies within 20 days.
        start_jd = self._crossing(term_index * 15, jd - 20)
        end_jd = self._crossing(((term_index + 1) % 24) * 15, jd)

        return SolarTermPeriod(
            name=name,
            branch_index=branch_index,
            start=_from_julian_day(start_jd),
            end=_from_julian_day(end_jd),
            is_sectional=is_sectional,
            sectional_name=SOLAR_TERMS[sectional_index % 24][0],
        )

    def lunar_date_of(self, instant: datetime, longitude: float, latitude: float) -> LunarDate:
        local = instant.astimezone(zone_for(latitude, longitude, self.settings.default_timezone))
        self._check_range(local.year)
        lunar = Solar.fromYmdHms(local.year, local.month, local.day,
                                 local.hour, local.minute, local.second).getLunar()
        month = lunar.getMonth()
        return LunarDate(
            lunar_year=lunar.getYear(),
            lunar_month=abs(month),
            lunar_day=lunar.getDay(),
            is_leap_month=month < 0,
        )

    def local_time_adjust(self, instant: datetime, longitude: float, latitude: float) -> datetime:
        _, standard_offset, tz_name, _ = utc_offset_for(
            instant, latitude, longitude, self.settings.default_timezone)
        standard_clock = instant.astimezone(timezone(timedelta(hours=standard_offset)))
        return apply_lmt(standard_clock.replace(tzinfo=None), longitude, standard_offset * 15)

    def find_term_instant(self, year: int, longitude: float) -> datetime:
        """First moment in a Gregorian year when the Sun reaches a longitude."""
        self._check_range(year)
        jd_cross = self._crossing(longitude, swe.julday(year, 1, 1, 0))
        return _from_julian_day(jd_cross)

    def find_sectional_terms(self, year: int) -> list[dict]:
        """
        All 12 sectional term instants of a Gregorian year, in order.

        Returns:
            List of dicts with keys: name, longitude, branch_index, instant (UTC)
        """
        results = []
        for term_index, (name, _, is_sectional) in enumerate(SOLAR_TERMS):
            if not is_sectional:
                continue
            longitude = term_index * 15
            results.append({
                "name": name,
                "longitude": longitude,
                "branch_index": sectional_branch_index(longitude),
                "instant": self.find_term_instant(year, longitude),
            })
        results.sort(key=lambda x: x["instant"])
        return results


# ============================================================
# TIMEOUT WRAPPER
# ============================================================

_EXECUTOR = ThreadPoolExecutor(max_workers=4, thread_name_prefix="saju-calendar")


class TimedCalendar(CalendarGateway):
    """Bounds every call into another gateway by a timeout.

    A call that does not finish in time is reported as
    CalendarDataUnavailable so the resolvers take their degraded path.
    """

    def __init__(self, inner: CalendarGateway, timeout: float):
        self.inner = inner
        self.timeout = timeout

    def _call(self, fn, *args):
        future = _EXECUTOR.submit(fn, *args)
        try:
            return future.result(timeout=self.timeout)
        except FuturesTimeout:
            future.cancel()
            raise CalendarDataUnavailable(
                f"Calendar lookup {fn.__name__} timed out after {self.timeout}s",
                detail={"call": fn.__name__, "timeout": self.timeout},
            ) from None

    def lunar_date_of(self, instant, longitude, latitude):
        return self._call(self.inner.lunar_date_of, instant, longitude, latitude)

    def solar_term_period_of(self, instant):
        return self._call(self.inner.solar_term_period_of, instant)

    def local_time_adjust(self, instant, longitude, latitude):
        return self._call(self.inner.local_time_adjust, instant, longitude, latitude)


def default_gateway(settings: Optional[Settings] = None) -> CalendarGateway:
    settings = settings or get_settings()
    return TimedCalendar(EphemerisCalendar(settings), settings.gateway_timeout)
