"""Full chart assembly and profiles, on the ephemeris and on the stub calendar."""

import math
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from saju.calendar import EphemerisCalendar, LunarDate
from saju.chart import (
    Assembly,
    BirthData,
    FourPillars,
    build_profile,
    check_polarity,
    compute_four_pillars,
    compute_profile,
)
from saju.config import Settings
from saju.cycle import Element, Pillar, branch_by_name, parse_pillar, stem_by_name
from saju.errors import InternalConsistencyError, InvalidInput
from saju.pillars import MonthResolution, YearResolution
from saju.rules import REFERENCE, STANDARD

TOKYO_TZ = ZoneInfo("Asia/Tokyo")
TOKYO = (139.7671, 35.6812)


def tokyo_birth(*args):
    return BirthData(datetime(*args, tzinfo=TOKYO_TZ), *TOKYO)


def stub_birth(*args):
    return BirthData(datetime(*args, tzinfo=TOKYO_TZ), 135.0, 35.0)


class TestEphemerisProfiles:
    @pytest.mark.parametrize("hour,minute", [(0, 0), (6, 30), (11, 59)])
    def test_day_pillar_is_stable_through_the_day(self, ephemeris, settings, hour, minute):
        profile = compute_profile(tokyo_birth(1986, 5, 26, hour, minute), ephemeris, STANDARD, settings)
        assert profile.pillars.day.name == "庚午"
        assert profile.pillars.year.name == "丙寅"
        assert profile.pillars.month.name == "癸巳"
        assert not profile.degraded

    def test_day_pillar_2023(self, ephemeris, settings):
        profile = compute_profile(tokyo_birth(2023, 10, 3, 12, 0), ephemeris, STANDARD, settings)
        assert profile.pillars.day.name == "甲午"
        assert profile.pillars.year.name == "癸卯"

    def test_local_mean_time_moves_late_births_into_the_next_day(self, ephemeris, settings):
        # 23:50 clock time in Tokyo is 00:09 local mean time
        profile = compute_profile(tokyo_birth(1986, 5, 26, 23, 50), ephemeris, STANDARD, settings)
        assert profile.local_time.date() == date(1986, 5, 27)
        assert profile.pillars.day.name == "辛未"
        assert profile.pillars.hour.name == "戊子"

    def test_li_chun_boundary(self, ephemeris, settings):
        li_chun = ephemeris.find_term_instant(2023, 315)
        at = compute_profile(BirthData(li_chun, *TOKYO), ephemeris, STANDARD, settings)
        before = compute_profile(BirthData(li_chun - timedelta(minutes=1), *TOKYO), ephemeris, STANDARD, settings)
        assert at.pillars.month.name == "甲寅"
        assert at.pillars.year.name == "癸卯"
        assert before.pillars.month.name == "癸丑"
        assert before.pillars.year.name == "壬寅"

    def test_li_chun_boundary_with_reference_rules(self, ephemeris, settings):
        li_chun = ephemeris.find_term_instant(2023, 315)
        at = compute_profile(BirthData(li_chun, *TOKYO), ephemeris, REFERENCE, settings)
        before = compute_profile(BirthData(li_chun - timedelta(minutes=1), *TOKYO), ephemeris, REFERENCE, settings)
        assert (at.pillars.year.name, at.pillars.month.name, at.month_rule) == ("癸卯", "甲寅", "exact_date")
        assert (before.pillars.year.name, before.pillars.month.name) == ("壬寅", "癸丑")
        assert before.month_rule != "exact_date"

    def test_central_term_does_not_change_month(self, ephemeris, settings):
        yu_shui = ephemeris.find_term_instant(2023, 330)
        names = {
            compute_profile(BirthData(yu_shui + delta, *TOKYO), ephemeris, STANDARD, settings).pillars.month.name
            for delta in (timedelta(minutes=-1), timedelta(minutes=1))
        }
        assert names == {"甲寅"}

    def test_deterministic(self, ephemeris, settings):
        birth = tokyo_birth(1990, 3, 15, 10, 30)
        first = compute_profile(birth, ephemeris, STANDARD, settings).to_dict()
        second = compute_profile(birth, ephemeris, STANDARD, settings).to_dict()
        assert first == second

    def test_secondary_element_from_month_stem(self, ephemeris, settings):
        profile = compute_profile(tokyo_birth(1986, 5, 26, 9, 0), ephemeris, STANDARD, settings)
        assert profile.main_element == Element.METAL
        assert profile.secondary_element == Element.WATER
        assert profile.day_master.chinese == "庚"

    def test_out_of_range_year_degrades(self, settings):
        profile = compute_profile(tokyo_birth(1850, 6, 15, 12, 0), EphemerisCalendar(settings), STANDARD, settings)
        assert profile.degraded
        assert profile.month_source == "gregorian"
        assert profile.pillars.year.name == "庚戌"
        assert profile.pillars.month.name == "壬午"


class TestStubProfiles:
    def test_polarity_holds_every_day(self, stub, settings):
        start = datetime(2023, 1, 1, 7, 0, tzinfo=TOKYO_TZ)
        for offset in range(0, 365, 3):
            birth = BirthData(start + timedelta(days=offset, hours=offset % 24), 135.0, 35.0)
            assembly = compute_four_pillars(birth, stub, STANDARD, settings)
            for pillar in assembly.pillars.as_list():
                assert pillar.stem.polarity == pillar.branch.polarity

    def test_day_advances_by_one(self, stub, settings):
        days = [compute_profile(stub_birth(2024, 2, d, 12, 0), stub, STANDARD, settings).pillars.day.index
                for d in range(25, 30)]
        assert all((b - a) % 60 == 1 for a, b in zip(days, days[1:]))

    def test_late_rat_hour_keeps_the_day_stem(self, stub, settings):
        late = compute_profile(stub_birth(2023, 10, 3, 23, 30), stub, STANDARD, settings)
        early = compute_profile(stub_birth(2023, 10, 4, 0, 30), stub, STANDARD, settings)
        assert (late.pillars.day.name, late.pillars.hour.name) == ("甲午", "甲子")
        assert (early.pillars.day.name, early.pillars.hour.name) == ("乙未", "丙子")

    def test_month_changes_only_on_sectional_day(self, stub, settings):
        months = [compute_profile(stub_birth(2023, 5, d, 12, 0), stub, STANDARD, settings).pillars.month.name
                  for d in (3, 4, 5, 6)]
        assert months == ["丙辰", "丙辰", "丁巳", "丁巳"]

    def test_every_calendar_source_failing(self, stub_calendar, settings):
        gateway = stub_calendar(terms=False, local=False)
        profile = compute_profile(stub_birth(2023, 6, 15, 12, 0), gateway, STANDARD, settings)
        assert profile.degraded
        assert profile.month_source == "gregorian"
        assert profile.pillars.month.name == "戊午"
        assert profile.local_time == datetime(2023, 6, 15, 12, 0)

    def test_lunar_only(self, stub_calendar, settings):
        gateway = stub_calendar(lunar=LunarDate(2023, 5, 3), terms=False)
        profile = compute_profile(stub_birth(2023, 6, 20, 12, 0), gateway, STANDARD, settings)
        assert profile.month_source == "lunar"
        assert profile.pillars.month.name == "戊午"
        # the year still falls back to the approximate Li Chun date
        assert profile.degraded

    def test_reference_rules_from_settings(self, stub_calendar):
        gateway = stub_calendar(lunar=LunarDate(2023, 1, 20))
        reference = compute_profile(stub_birth(2023, 2, 10, 12, 0), gateway, settings=Settings(ruleset="reference"))
        standard = compute_profile(stub_birth(2023, 2, 10, 12, 0), gateway, settings=Settings(ruleset="standard"))
        assert reference.pillars.month.name == "癸丑"
        assert reference.month_rule == "lunar_month"
        assert reference.rule_set == "reference@1"
        assert standard.pillars.month.name == "甲寅"
        assert standard.rule_set == "standard@1"

    def test_reference_rules_without_lunar_date_are_degraded(self, stub, settings):
        # the default stub has no lunar calendar
        profile = compute_profile(stub_birth(2023, 2, 10, 12, 0), stub, REFERENCE, settings)
        assert profile.pillars.month.name == "甲寅"
        assert profile.degraded
        assert not compute_profile(stub_birth(2023, 2, 10, 12, 0), stub, STANDARD, settings).degraded

    def test_explicit_rules_win_over_settings(self, stub, settings):
        profile = compute_profile(stub_birth(2023, 2, 4, 12, 0), stub, REFERENCE, settings)
        assert profile.month_rule == "exact_date"

    def test_to_dict(self, stub, settings):
        data = compute_profile(stub_birth(2023, 10, 3, 12, 0), stub, STANDARD, settings).to_dict()
        assert data["four_pillars"]["day"]["name"] == "甲午"
        assert data["main_element"] == "wood"
        assert data["polarity"] == "yang"
        assert data["local_time"] == "2023-10-03T12:00"
        assert set(data) >= {"ten_gods", "twelve_stages", "hidden_stems", "void_branches",
                             "twelve_spirits", "branch_interactions", "element_distribution"}
        assert data["void_branches"] == ["辰", "巳"]


class TestBirthData:
    @pytest.mark.parametrize("kwargs", [
        {"instant": datetime(2000, 1, 1, 12, 0), "longitude": 135.0, "latitude": 35.0},
        {"instant": "2000-01-01T12:00", "longitude": 135.0, "latitude": 35.0},
        {"instant": datetime(2000, 1, 1, tzinfo=timezone.utc), "longitude": 200.0, "latitude": 35.0},
        {"instant": datetime(2000, 1, 1, tzinfo=timezone.utc), "longitude": 135.0, "latitude": -91.0},
        {"instant": datetime(2000, 1, 1, tzinfo=timezone.utc), "longitude": math.nan, "latitude": 35.0},
        {"instant": datetime(2000, 1, 1, tzinfo=timezone.utc), "longitude": "135", "latitude": 35.0},
        {"instant": datetime(2000, 1, 1, tzinfo=timezone.utc), "longitude": True, "latitude": 35.0},
    ], ids=["naive", "string", "longitude", "latitude", "nan", "text", "bool"])
    def test_rejects(self, kwargs):
        with pytest.raises(InvalidInput):
            BirthData(**kwargs)

    def test_from_input_defaults(self, settings):
        birth = BirthData.from_input("1986-05-26T09:00", settings=settings)
        assert birth.instant.utcoffset() == timedelta(hours=9)
        assert (birth.longitude, birth.latitude) == (139.7671, 35.6812)

    def test_from_input_keeps_aware_instants(self, settings):
        birth = BirthData.from_input("1986-05-26T00:00+00:00", 126.978, 37.5665, settings=settings)
        assert birth.instant.utcoffset() == timedelta(0)
        assert birth.longitude == 126.978

    def test_from_input_rejects_garbage(self, settings):
        with pytest.raises(InvalidInput):
            BirthData.from_input("yesterday", settings=settings)

    def test_from_input_rejects_unknown_zone(self):
        with pytest.raises(InvalidInput):
            BirthData.from_input("1986-05-26T09:00", settings=Settings(default_timezone="Nowhere/City"))

    def test_compute_profile_rejects_other_types(self):
        with pytest.raises(InvalidInput):
            compute_profile("1986-05-26T09:00")


class TestConsistency:
    def _pillars(self, month):
        return FourPillars(
            year=parse_pillar("癸卯", "year"),
            month=month,
            day=parse_pillar("甲午", "day"),
            hour=parse_pillar("庚午", "hour"),
        )

    def test_mixed_polarity_is_fatal(self):
        broken = Pillar(stem=stem_by_name("甲"), branch=branch_by_name("丑"), position="month")
        with pytest.raises(InternalConsistencyError) as excinfo:
            check_polarity(self._pillars(broken))
        assert excinfo.value.detail["position"] == "month"

    def test_secondary_element_dropped_when_equal_to_main(self):
        pillars = self._pillars(parse_pillar("乙卯", "month"))
        assembly = Assembly(
            pillars=pillars,
            year=YearResolution(pillars.year, 2023, "formula", False),
            month=MonthResolution(pillars.month, 2, "solar_term", "formula", False),
            local_time=datetime(2023, 3, 10, 12, 0),
            degraded=False,
        )
        profile = build_profile(tokyo_birth(2023, 3, 10, 12, 0), assembly, STANDARD)
        assert profile.main_element == Element.WOOD
        assert profile.secondary_element is None
        assert profile.to_dict()["secondary_element"] is None


class TestCache:
    def test_default_path_is_memoized(self):
        birth = tokyo_birth(1986, 5, 26, 9, 0)
        assert compute_profile(birth) is compute_profile(birth)

    def test_changing_output_leaves_the_cache_alone(self):
        birth = tokyo_birth(1986, 5, 26, 9, 0)
        data = compute_profile(birth).to_dict()
        data["ten_gods"]["year"] = "changed"
        data["hidden_stems"]["day"].append("X")
        data["void_branches"].clear()

        again = compute_profile(birth).to_dict()
        assert again["ten_gods"]["year"] == "偏官"
        assert again["hidden_stems"]["day"] == ["丁", "己"]
        assert again["void_branches"] == ["戌", "亥"]

    def test_explicit_gateway_is_not_memoized(self, stub, settings):
        birth = stub_birth(2023, 10, 3, 12, 0)
        assert compute_profile(birth, stub, STANDARD, settings) is not compute_profile(birth, stub, STANDARD, settings)
        assert stub.calls == 6
