"""
Tests for timeframe extraction and resolution
"""
from datetime import datetime, timedelta, timezone

import pytest

from casequery.components.timeframe import TimeframeExtractor, extract_timeframe, resolve_year_window
from casequery.core.exceptions import AmbiguousTimeframe
from casequery.utils.datetime_utils import fixed_clock, zoned_clock


class TestExtractTimeframe:
    def test_explicit_year(self):
        timeframe = extract_timeframe("How many cases were awarded in 2020?")
        assert timeframe.year == 2020
        assert timeframe.label == "2020"

    def test_first_year_wins(self):
        assert extract_timeframe("cases from 2018 to 2021").year == 2018

    @pytest.mark.parametrize("text", ["case 1899", "in 2100", "id 120200"])
    def test_out_of_range_years_ignored(self, text):
        assert not extract_timeframe(text).present

    @pytest.mark.parametrize(
        "text, label",
        [
            ("How many cases last year?", "last year"),
            ("cases filed this year", "this year"),
            ("over the past 5 years", "past 5 years"),
            ("in the last five years", "past 5 years"),
        ],
    )
    def test_relative_phrases(self, text, label):
        timeframe = extract_timeframe(text)
        assert timeframe.year is None
        assert timeframe.label == label

    @pytest.mark.parametrize("text", [None, "", "How many cases has Smith handled?"])
    def test_absent(self, text):
        assert not extract_timeframe(text).present

    def test_extractor_delegates(self):
        assert TimeframeExtractor().extract("in 2019").year == 2019


class TestResolveYearWindow:
    @pytest.fixture
    def clock(self):
        return fixed_clock(datetime(2024, 3, 1, tzinfo=timezone.utc))

    def test_explicit_year(self, clock):
        assert resolve_year_window(2020, "2020", clock) == ((2020, 2020), "in 2020")

    def test_last_year_reads_clock(self, clock):
        window, period = resolve_year_window(None, "last year", clock)
        assert window == (2023, 2023)
        assert "2023" in period

    def test_this_year(self, clock):
        assert resolve_year_window(None, "this year", clock)[0] == (2024, 2024)

    def test_past_years(self, clock):
        assert resolve_year_window(None, "past 5 years", clock)[0] == (2019, 2024)

    def test_unknown_label_is_ambiguous(self, clock):
        with pytest.raises(AmbiguousTimeframe) as exc_info:
            resolve_year_window(None, "the nineties", clock)
        assert "the nineties" in exc_info.value.user_message

    def test_missing_timeframe(self, clock):
        with pytest.raises(AmbiguousTimeframe):
            resolve_year_window(None, None, clock)

    def test_timezone_decides_the_year(self):
        # 2024-01-01 03:00 UTC is still 2023 five hours west
        moment = datetime(2024, 1, 1, 3, 0, tzinfo=timezone.utc)
        five_hours_west = fixed_clock(moment.astimezone(timezone(timedelta(hours=-5))))
        assert resolve_year_window(None, "this year", five_hours_west)[0] == (2023, 2023)
        assert resolve_year_window(None, "this year", fixed_clock(moment))[0] == (2024, 2024)


def test_zoned_clock_utc():
    assert zoned_clock("UTC")().tzinfo is timezone.utc
