"""
Four Pillars assembly and the profile built on top of it.

Usage from Python:
    from saju.chart import BirthData, compute_profile
    profile = compute_profile(BirthData.from_input("1986-05-26T09:00"))
    profile.to_dict()
"""

import copy
import math
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from numbers import Real
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from saju.calendar import CalendarGateway, default_gateway
from saju.config import Settings, get_settings
from saju.cycle import Element, Pillar, Polarity
from saju.derived import (
    element_distribution,
    find_branch_interactions,
    hidden_stems,
    map_ten_gods,
    twelve_spirit,
    twelve_stage,
    void_pair,
)
from saju.errors import InternalConsistencyError, InvalidInput
from saju.logging_utils import get_logger
from saju.pillars import (
    MonthResolution,
    YearResolution,
    gather_facts,
    resolve_day,
    resolve_hour,
    resolve_month,
    resolve_year,
)
from saju.rules import RULE_SETS, RuleSet, get_rule_set

logger = get_logger(__name__)

POSITIONS = ["year", "month", "day", "hour"]


# ============================================================
# INPUT
# ============================================================

def _check_coordinate(name: str, value, limit: float) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidInput(f"{name} must be a number, got {value!r}", detail={name: repr(value)})
    value = float(value)
    if math.isnan(value) or not -limit <= value <= limit:
        raise InvalidInput(f"{name} must be within ±{limit}, got {value}", detail={name: value})
    return value


@dataclass(frozen=True)
class BirthData:
    instant: datetime  # timezone-aware
    longitude: float
    latitude: float

    def __post_init__(self):
        if not isinstance(self.instant, datetime):
            raise InvalidInput(f"instant must be a datetime, got {type(self.instant).__name__}")
        if self.instant.tzinfo is None or self.instant.utcoffset() is None:
            raise InvalidInput("instant must be timezone-aware", detail={"instant": self.instant.isoformat()})
        object.__setattr__(self, "longitude", _check_coordinate("longitude", self.longitude, 180.0))
        object.__setattr__(self, "latitude", _check_coordinate("latitude", self.latitude, 90.0))

    @classmethod
    def from_input(cls, instant: Union[datetime, str],
                   longitude: Optional[float] = None,
                   latitude: Optional[float] = None,
                   settings: Optional[Settings] = None) -> "BirthData":
        """
        Build birth data from loose input.

        ISO strings are parsed, naive datetimes are read in the default time
        zone, and missing coordinates fall back to the reference location.
        """
        settings = settings or get_settings()
        if isinstance(instant, str):
            try:
                instant = datetime.fromisoformat(instant)
            except ValueError:
                raise InvalidInput(f"Not an ISO date/time: {instant!r}") from None
        if isinstance(instant, datetime) and instant.tzinfo is None:
            try:
                zone = ZoneInfo(settings.default_timezone)
            except ZoneInfoNotFoundError:
                raise InvalidInput(f"Unknown time zone {settings.default_timezone!r}") from None
            instant = instant.replace(tzinfo=zone)
        return cls(
            instant=instant,
            longitude=settings.reference_longitude if longitude is None else longitude,
            latitude=settings.reference_latitude if latitude is None else latitude,
        )


# ============================================================
# FOUR PILLARS
# ============================================================

@dataclass(frozen=True)
class FourPillars:
    year: Pillar
    month: Pillar
    day: Pillar
    hour: Pillar

    def as_list(self) -> list[Pillar]:
        return [self.year, self.month, self.day, self.hour]

    def to_dict(self):
        return {p.position: {"stem": p.stem.chinese, "branch": p.branch.chinese, "name": p.name}
                for p in self.as_list()}


@dataclass(frozen=True)
class Assembly:
    pillars: FourPillars
    year: YearResolution
    month: MonthResolution
    local_time: datetime
    degraded: bool


def check_polarity(pillars: FourPillars) -> None:
    """Every pillar of the 60-cycle pairs a stem and branch of equal polarity."""
    for pillar in pillars.as_list():
        if pillar.stem.polarity != pillar.branch.polarity:
            raise InternalConsistencyError(
                f"{pillar.position} pillar {pillar.stem.chinese}{pillar.branch.chinese} mixes polarities",
                detail={"position": pillar.position,
                        "stem": pillar.stem.chinese,
                        "branch": pillar.branch.chinese},
            )


def compute_four_pillars(birth: BirthData, gateway: CalendarGateway, rules: RuleSet,
                         settings: Optional[Settings] = None) -> Assembly:
    settings = settings or get_settings()
    facts = gather_facts(birth.instant, birth.longitude, birth.latitude, gateway,
                         fallback_zone=settings.default_timezone)

    yr = resolve_year(facts, rules)
    mr = resolve_month(facts, yr, rules)
    dp = resolve_day(facts)
    hp = resolve_hour(facts, dp)

    pillars = FourPillars(year=yr.pillar, month=mr.pillar, day=dp, hour=hp)
    check_polarity(pillars)

    degraded = yr.degraded or mr.degraded or facts.local_degraded
    if degraded:
        logger.warning("Degraded profile for %s; missing %s",
                       birth.instant.isoformat(), ", ".join(facts.missing))
    return Assembly(pillars=pillars, year=yr, month=mr, local_time=facts.local, degraded=degraded)


# ============================================================
# PROFILE
# ============================================================

@dataclass(frozen=True)
class Profile:
    birth: BirthData
    pillars: FourPillars
    main_element: Element
    secondary_element: Optional[Element]
    polarity: Polarity
    ten_gods: dict
    twelve_stages: dict
    hidden_stems: dict
    void_branches: list
    twelve_spirits: dict
    branch_interactions: list
    element_distribution: dict
    local_time: datetime
    month_source: str
    month_rule: str
    rule_set: str
    degraded: bool

    @property
    def day_master(self):
        return self.pillars.day.stem

    def to_dict(self):
        # Profiles may be shared through the cache; callers get their own copy.
        return copy.deepcopy({
            "four_pillars": self.pillars.to_dict(),
            "main_element": self.main_element.value,
            "secondary_element": self.secondary_element.value if self.secondary_element else None,
            "polarity": self.polarity.value,
            "ten_gods": self.ten_gods,
            "twelve_stages": self.twelve_stages,
            "hidden_stems": self.hidden_stems,
            "void_branches": self.void_branches,
            "twelve_spirits": self.twelve_spirits,
            "branch_interactions": self.branch_interactions,
            "element_distribution": self.element_distribution,
            "local_time": self.local_time.isoformat(timespec="minutes"),
            "month_source": self.month_source,
            "month_rule": self.month_rule,
            "rule_set": self.rule_set,
            "degraded": self.degraded,
        })


def build_profile(birth: BirthData, assembly: Assembly, rules: RuleSet) -> Profile:
    pillars = assembly.pillars
    day_master = pillars.day.stem
    chart = pillars.as_list()

    main = day_master.element
    secondary = pillars.month.stem.element
    if secondary == main:
        secondary = None

    return Profile(
        birth=birth,
        pillars=pillars,
        main_element=main,
        secondary_element=secondary,
        polarity=day_master.polarity,
        ten_gods=map_ten_gods(day_master, chart),
        twelve_stages={p.position: twelve_stage(day_master, p.branch).value for p in chart},
        hidden_stems={p.position: [s.chinese for s in hidden_stems(p.branch)] for p in chart},
        void_branches=[b.chinese for b in void_pair(pillars.day)],
        twelve_spirits={p.position: twelve_spirit(pillars.year.branch, p.branch).value for p in chart},
        branch_interactions=find_branch_interactions([p.branch for p in chart], POSITIONS),
        element_distribution=element_distribution(chart),
        local_time=assembly.local_time,
        month_source=assembly.month.month_source,
        month_rule=assembly.month.rule_tier,
        rule_set=rules.key,
        degraded=assembly.degraded,
    )


def _compute(birth: BirthData, gateway: CalendarGateway, rules: RuleSet, settings: Settings) -> Profile:
    assembly = compute_four_pillars(birth, gateway, rules, settings)
    return build_profile(birth, assembly, rules)


@lru_cache(maxsize=1)
def _cached_compute(cache_size: int):
    settings = get_settings()
    gateway = default_gateway(settings)

    @lru_cache(maxsize=cache_size)
    def compute(instant: datetime, longitude: float, latitude: float, ruleset: str) -> Profile:
        birth = BirthData(instant=instant, longitude=longitude, latitude=latitude)
        return _compute(birth, gateway, get_rule_set(ruleset), settings)

    return compute


def compute_profile(birth: BirthData,
                    gateway: Optional[CalendarGateway] = None,
                    rules: Optional[RuleSet] = None,
                    settings: Optional[Settings] = None) -> Profile:
    """
    Compute a full profile from birth data.

    Args:
        birth: validated birth data
        gateway: calendar facts source; defaults to the ephemeris calendar
            with the configured timeout
        rules: special-case rule set; defaults to SAJU_RULESET
        settings: defaults to the process settings

    Results for the default gateway and settings are memoized when
    SAJU_CACHE_SIZE is positive.
    """
    if not isinstance(birth, BirthData):
        raise InvalidInput(f"Expected BirthData, got {type(birth).__name__}")

    use_defaults = gateway is None and settings is None
    settings = settings or get_settings()
    rules = rules or get_rule_set(settings.ruleset)

    if use_defaults and settings.cache_size > 0 and RULE_SETS.get(rules.name) is rules:
        return _cached_compute(settings.cache_size)(birth.instant, birth.longitude, birth.latitude, rules.name)

    return _compute(birth, gateway or default_gateway(settings), rules, settings)
