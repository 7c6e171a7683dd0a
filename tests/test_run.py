"""Command line entry point."""

import json

import pytest

from saju import run
from saju.errors import ConfigError


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(run, "setup_logging", lambda **kwargs: None)


def _invoke(capsys, *argv):
    code = run.main(list(argv))
    out = capsys.readouterr().out
    return code, (json.loads(out) if out else None)


class TestCli:
    def test_profile(self, capsys):
        code, data = _invoke(capsys, "profile", "--birth", "1986-05-26T09:00")
        assert code == 0
        assert data["four_pillars"]["day"]["name"] == "庚午"
        assert data["main_element"] == "metal"
        assert data["rule_set"] == "standard@1"

    def test_profile_with_coordinates_and_ruleset(self, capsys):
        code, data = _invoke(capsys, "--ruleset", "reference", "profile", "--birth", "2023-10-03T12:00+09:00",
                             "--longitude", "139.7671", "--latitude", "35.6812")
        assert code == 0
        assert data["four_pillars"]["day"]["name"] == "甲午"
        assert data["rule_set"] == "reference@1"

    def test_compare(self, capsys):
        code, data = _invoke(capsys, "compare", "--a", "1986-05-26T09:00", "--b", "2023-10-03T12:00")
        assert code == 0
        # 庚 metal against 甲 wood
        assert data["main_relation"] == "overcomes"
        assert 0 <= data["score"] <= 100

    def test_group(self, capsys):
        code, data = _invoke(capsys, "group", "1986-05-26T09:00", "2023-10-03T12:00", "1990-03-15T10:30",
                             "--top-k", "2")
        assert code == 0
        assert len(data["best_pairs"]) == 2
        assert data["yin_yang"]["yin"] + data["yin_yang"]["yang"] == 3

    @pytest.mark.parametrize("argv", [
        ["profile", "--birth", "not-a-date"],
        ["profile", "--birth", "1986-05-26T09:00", "--longitude", "500", "--latitude", "35"],
    ], ids=["bad_date", "bad_longitude"])
    def test_invalid_input_exits_2(self, capsys, argv):
        code, data = _invoke(capsys, *argv)
        assert code == 2
        assert data is None

    def test_unknown_subcommand(self):
        with pytest.raises(SystemExit):
            run.main(["horoscope"])

    def test_bad_settings_exit_2(self, capsys, monkeypatch):
        def broken_settings(**kwargs):
            raise ConfigError("SAJU_CACHE_SIZE must be an integer, got 'abc'")

        monkeypatch.setattr(run, "setup_logging", broken_settings)
        code, data = _invoke(capsys, "profile", "--birth", "1986-05-26T09:00")
        assert code == 2
        assert data is None
