"""
Pillar resolvers: year, month, day and hour.

Calendar facts are gathered once per birth (gather_facts), then each
resolver is a pure function of those facts and a RuleSet. A missing fact
never raises past this module: the resolver falls back to the next tier
and marks its result degraded.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from saju.calendar import CalendarGateway, LunarDate, SolarTermPeriod, julian_day_number
from saju.cycle import EARTHLY_BRANCHES, HEAVENLY_STEMS, Pillar, pillar_from_index
from saju.errors import CalendarDataUnavailable
from saju.logging_utils import get_logger
from saju.rules import TIER_EXACT_DATE, TIER_FORMULA, RuleSet

logger = get_logger(__name__)

# 1984 is a 甲子 year.
YEAR_EPOCH = 1984

# (JDN + 49) % 60 is the sexagenary index of a day; 1949-10-01 is 甲子.
JDN_SEXAGENARY_OFFSET = 49

# Boundary used for the year when no solar-term data is available.
APPROX_LI_CHUN = (2, 4)

SOURCE_SOLAR_TERM = "solar_term"
SOURCE_LUNAR = "lunar"
SOURCE_GREGORIAN = "gregorian"
SOURCE_OVERRIDE = "override"
SOURCE_FORMULA = "formula"


# ============================================================
# CALENDAR FACTS
# ============================================================

@dataclass(frozen=True)
class CalendarFacts:
    instant: datetime  # aware
    local: datetime  # naive, local mean time at the birth place
    term: Optional[SolarTermPeriod]
    lunar: Optional[LunarDate]
    local_degraded: bool = False

    @property
    def missing(self) -> list:
        gaps = []
        if self.term is None:
            gaps.append("solar_term")
        if self.lunar is None:
            gaps.append("lunar_date")
        if self.local_degraded:
            gaps.append("local_time")
        return gaps


def gather_facts(instant: datetime, longitude: float, latitude: float,
                 gateway: CalendarGateway, fallback_zone: str = "Asia/Tokyo") -> CalendarFacts:
    """Ask the gateway for everything the resolvers need, tolerating gaps."""
    try:
        term = gateway.solar_term_period_of(instant)
    except CalendarDataUnavailable as exc:
        logger.warning("Solar term unavailable for %s: %s", instant.isoformat(), exc)
        term = None

    try:
        lunar = gateway.lunar_date_of(instant, longitude, latitude)
    except CalendarDataUnavailable as exc:
        logger.warning("Lunar date unavailable for %s: %s", instant.isoformat(), exc)
        lunar = None

    local_degraded = False
    try:
        local = gateway.local_time_adjust(instant, longitude, latitude)
    except CalendarDataUnavailable as exc:
        logger.warning("Local time adjustment unavailable, using %s clock time: %s", fallback_zone, exc)
        local = instant.astimezone(ZoneInfo(fallback_zone)).replace(tzinfo=None)
        local_degraded = True

    return CalendarFacts(instant=instant.astimezone(timezone.utc), local=local,
                         term=term, lunar=lunar, local_degraded=local_degraded)


# ============================================================
# YEAR PILLAR
# ============================================================

@dataclass(frozen=True)
class YearResolution:
    pillar: Pillar
    pillar_year: int
    source: str
    degraded: bool


def pillar_year(facts: CalendarFacts) -> tuple:
    """
    The year a birth counts toward, and whether it had to be approximated.

    The pillar year starts at Li Chun (Start of Spring). A birth in January
    or February that still sits in a 子 or 丑 solar month belongs to the
    previous year.
    """
    local = facts.local
    if facts.term is not None:
        before_spring = local.month <= 2 and facts.term.branch_index in (0, 1)
        return (local.year - 1 if before_spring else local.year), False

    li_chun_month, li_chun_day = APPROX_LI_CHUN
    before_spring = (local.month, local.day) < (li_chun_month, li_chun_day)
    return (local.year - 1 if before_spring else local.year), True


def resolve_year(facts: CalendarFacts, rules: RuleSet) -> YearResolution:
    """
    Compute the Year Pillar.

    Overrides in the rule set are checked first (keyed by the Gregorian
    year and month of the birth); otherwise the stem is
    (year - 1984) % 10 and the branch (year - 1984) % 12.
    """
    year, degraded = pillar_year(facts)

    override = rules.year_override(facts.local.year, facts.local.month)
    if override is not None:
        logger.debug("Year override %s applied for %s", override, facts.local.date())
        return YearResolution(pillar_from_index(override, "year"), year, SOURCE_OVERRIDE, degraded)

    return YearResolution(pillar_from_index(year - YEAR_EPOCH, "year"), year, SOURCE_FORMULA, degraded)


# ============================================================
# MONTH PILLAR
# ============================================================

@dataclass(frozen=True)
class MonthResolution:
    pillar: Pillar
    effective_month: int  # 1 = 寅 month ... 12 = 丑 month
    month_source: str
    rule_tier: str
    degraded: bool


def effective_month(facts: CalendarFacts) -> tuple:
    """
    Month number (1-12, month 1 = Tiger) and the tier it came from.

    Solar terms first: only they put month boundaries on the sectional
    terms. Then the lunar month (a leap month counts as its base month).
    Last, the Gregorian month shifted back by one, which is approximate.
    """
    if facts.term is not None:
        return facts.term.month_number, SOURCE_SOLAR_TERM
    if facts.lunar is not None:
        return facts.lunar.lunar_month, SOURCE_LUNAR
    return (facts.local.month - 2) % 12 + 1, SOURCE_GREGORIAN


def month_pillar(year_stem_index: int, month: int, stem_count: int) -> Pillar:
    """
    Compute the Month Pillar from the year stem's count.

    The count is the stem of the 丑 month closing the previous cycle, so
    month 1 starts one stem later. With the standard counts this is the
    Five Tigers Escape (Wu Hu Dun) rule:
    - Year stem Jia/Ji → month 1 stem starts at Bing
    - Year stem Yi/Geng → month 1 stem starts at Wu
    - Year stem Bing/Xin → month 1 stem starts at Geng
    - Year stem Ding/Ren → month 1 stem starts at Ren
    - Year stem Wu/Gui → month 1 stem starts at Jia

    Args:
        year_stem_index: index of the year's heavenly stem (0-9)
        month: solar month number, 1 (Tiger) to 12 (Ox)
        stem_count: count from the rule set for this year stem
    """
    base = stem_count + 1
    stem_index = (base + month - 1) % 10
    branch_index = (month + 1) % 12
    return Pillar(
        stem=HEAVENLY_STEMS[stem_index],
        branch=EARTHLY_BRANCHES[branch_index],
        position="month",
    )


def resolve_month(facts: CalendarFacts, year: YearResolution, rules: RuleSet) -> MonthResolution:
    month, source = effective_month(facts)
    degraded = source == SOURCE_GREGORIAN
    if degraded:
        logger.warning("Month for %s approximated from the Gregorian calendar", facts.local.date())

    year_stem = year.pillar.stem.index
    override = rules.month_override(
        facts.local.date(),
        year_stem,
        lunar_month=facts.lunar.lunar_month if facts.lunar is not None else None,
        term_name=facts.term.sectional_name if facts.term is not None else None,
        term_branch=facts.term.branch_index if facts.term is not None else None,
    )
    tier = override[0] if override is not None else TIER_FORMULA

    # Lunar-keyed overrides could not be checked.
    if facts.lunar is None and rules.lunar_months and tier != TIER_EXACT_DATE:
        logger.warning("Lunar month overrides of %s skipped for %s", rules.key, facts.local.date())
        degraded = True

    if override is not None:
        logger.debug("Month override (%s) applied for %s", tier, facts.local.date())
        return MonthResolution(pillar_from_index(override[1], "month"), month, source, tier, degraded)

    count = rules.stem_count(year_stem, year.pillar_year)
    return MonthResolution(month_pillar(year_stem, month, count), month, source, TIER_FORMULA, degraded)


# ============================================================
# DAY PILLAR
# ============================================================

def day_pillar(date) -> Pillar:
    """
    Compute the Day Pillar from the Julian Day Number.

    The sexagenary 60-day cycle runs without a break, so the index is the
    JDN plus a fixed offset. Checked against 2000-01-01 = 戊午 and
    1949-10-01 = 甲子.
    """
    jdn = julian_day_number(date.year, date.month, date.day)
    return pillar_from_index(jdn + JDN_SEXAGENARY_OFFSET, "day")


def resolve_day(facts: CalendarFacts) -> Pillar:
    # Local mean time decides which civil day the birth falls on.
    return day_pillar(facts.local.date())


# ============================================================
# HOUR PILLAR
# ============================================================

def hour_branch_index(hour: int) -> int:
    """
    Chinese hours are 2-hour blocks:
    23:00-00:59 = Zi (Rat)      = branch 0
    01:00-02:59 = Chou (Ox)     = branch 1
    ...
    21:00-22:59 = Hai (Pig)     = branch 11
    """
    if hour == 23 or hour == 0:
        return 0
    return ((hour + 1) // 2) % 12


def hour_pillar(day_stem_index: int, hour: int) -> Pillar:
    """
    Compute the Hour Pillar using the Five Rats Escape (Wu Shu Dun) rule.

    The Zi hour stem depends on the day stem only through day_stem % 5:
    Jia/Ji → Jia, Yi/Geng → Bing, Bing/Xin → Wu, Ding/Ren → Geng, Wu/Gui → Ren.
    The 23:00 block keeps the stem of the current day.

    Args:
        day_stem_index: index of the day's heavenly stem (0-9)
        hour: hour in 24h format, local mean time
    """
    branch_index = hour_branch_index(hour)
    start_stem = (day_stem_index % 5) * 2
    return Pillar(
        stem=HEAVENLY_STEMS[(start_stem + branch_index) % 10],
        branch=EARTHLY_BRANCHES[branch_index],
        position="hour",
    )


def resolve_hour(facts: CalendarFacts, day: Pillar) -> Pillar:
    return hour_pillar(day.stem.index, facts.local.hour)
