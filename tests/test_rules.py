from __future__ import annotations

from pathlib import Path

import pytest

from prefix_organizer.rules import DestinationRule, first_match, matches


def rule(prefix: str = "", suffix: str = "", path: str = "/dest") -> DestinationRule:
    return DestinationRule(Path(path), prefix, suffix)


class TestMatches:
    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("report_2024.csv", True),
            ("report_", True),
            ("monthly_report_2024.csv", False),
            ("Report_2024.csv", False),
        ],
    )
    def test_prefix_only(self, filename: str, expected: bool) -> None:
        assert matches(filename, rule(prefix="report_")) is expected

    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("data.csv", True),
            ("data.csv.bak", False),
            ("data.CSV", False),
        ],
    )
    def test_suffix_only(self, filename: str, expected: bool) -> None:
        assert matches(filename, rule(suffix=".csv")) is expected

    def test_prefix_and_suffix_must_both_hold(self) -> None:
        r = rule(prefix="Screenshot", suffix=".png")
        assert matches("Screenshot 2024-01-01.png", r)
        assert not matches("Screenshot 2024-01-01.jpg", r)
        assert not matches("photo.png", r)

    @pytest.mark.parametrize("filename", ["", "anything.txt", "report_2024.csv"])
    def test_empty_rule_never_matches(self, filename: str) -> None:
        assert matches(filename, rule()) is False


class TestFirstMatch:
    def test_returns_first_rule_in_order(self) -> None:
        archive = rule(prefix="report_", path="/archive")
        csv = rule(suffix=".csv", path="/csv")

        assert first_match("report_2024.csv", [archive, csv]) is archive
        assert first_match("report_2024.csv", [csv, archive]) is csv

    def test_skips_empty_rules(self) -> None:
        empty = rule(path="/nowhere")
        csv = rule(suffix=".csv", path="/csv")
        assert first_match("data.csv", [empty, csv]) is csv

    def test_returns_none_without_match(self) -> None:
        assert first_match("x.tmp", [rule(suffix=".csv")]) is None
        assert first_match("x.tmp", []) is None


def test_describe_lists_conditions() -> None:
    assert rule(prefix="a", suffix=".b", path="/d").describe() == "prefix='a', suffix='.b' -> /d"
    assert rule(path="/d").describe() == "<empty> -> /d"
    assert rule(path="/d").is_empty
