"""
Tests for menu_calendar.dates module
"""

from datetime import date, datetime

import pytest
from menu_calendar.dates import (
    days_in_range,
    make_ymd,
    months_in_range,
    parse_ymd,
    pretty_ymd,
    tomorrow_ymd,
    week_range,
    ymd_to_dot,
)
from menu_calendar.errors import MalformedDateError


class TestParseYmd:
    def test_valid(self):
        assert parse_ymd('20250401') == date(2025, 4, 1)

    @pytest.mark.parametrize('value', ['2025-04-01', '2025041', '20251301', '20250230', '', None])
    def test_malformed(self, value):
        with pytest.raises(MalformedDateError):
            parse_ymd(value)


class TestRanges:
    """Tests for range expansion"""

    def test_days_inclusive(self):
        assert days_in_range('20250228', '20250302') == ['20250228', '20250301', '20250302']

    def test_single_day(self):
        assert days_in_range('20250401', '20250401') == ['20250401']

    def test_reversed(self):
        with pytest.raises(MalformedDateError):
            days_in_range('20250402', '20250401')

    def test_months(self):
        assert months_in_range('20241230', '20250102') == [(2024, 12), (2025, 1)]

    def test_week_range(self):
        """Test that a Wednesday maps to its Monday..Sunday"""
        assert week_range(datetime(2025, 4, 9, 12, 0)) == ('20250407', '20250413')

    def test_tomorrow_across_month(self):
        assert tomorrow_ymd(datetime(2025, 4, 30)) == '20250501'


class TestFormatting:
    def test_dot_and_pretty(self):
        assert ymd_to_dot('20250301') == '2025.03.01'
        assert pretty_ymd('20250301') == '2025-03-01'

    def test_make_ymd(self):
        assert make_ymd(2024, 2, 29) == '20240229'
        assert make_ymd(2025, 2, 29) is None
