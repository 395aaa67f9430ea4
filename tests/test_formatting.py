from datetime import date, datetime

import pytest

from imobcrm.services.formatting import (
    TrendDirection,
    format_count,
    format_currency,
    format_date,
    format_metric,
    format_number,
    format_rate,
    percent_difference,
    trend_direction,
)


class TestTrend:
    def test_rate_above_baseline_is_up(self):
        metric = format_rate(0.42, 0.40, epsilon=0.01)
        assert metric.trend == TrendDirection.up
        assert metric.percent_difference == pytest.approx(0.05)
        assert metric.value == 42.0
        assert metric.unit == "%"

    def test_within_epsilon_is_neutral(self):
        assert trend_direction(0.402, 0.40, 0.01) == TrendDirection.neutral

    def test_below_baseline_is_down(self):
        assert trend_direction(8, 10, 0.01) == TrendDirection.down

    def test_zero_baseline(self):
        assert percent_difference(5, 0) == 0.0
        assert trend_direction(5, 0) == TrendDirection.up
        assert trend_direction(0, 0) == TrendDirection.neutral


class TestFormatMetric:
    def test_counts_have_no_unit(self):
        metric = format_metric("sales_closed", 12, 10)
        assert metric.unit == ""
        assert metric.value == 12.0
        assert metric.percent_difference == pytest.approx(0.2)

    def test_rates_dispatch_by_name(self):
        assert format_metric("sales_to_visits", 0.25, 0.25).unit == "%"

    def test_count_helper(self):
        assert format_count(3, 3).trend == TrendDirection.neutral


class TestDisplayHelpers:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (1234.56, "R$ 1.234,56"),
            (0, "R$ 0,00"),
            (-10.5, "-R$ 10,50"),
            ("1234,5", "R$ 1.234,50"),
            ("1234.56", "R$ 1.234,56"),
            ("R$ 1.234,56", "R$ 1.234,56"),
            ("1.234", "R$ 1.234,00"),
            ("1.234.567", "R$ 1.234.567,00"),
            ("abc", "R$ 0,00"),
            (None, "R$ 0,00"),
        ],
    )
    def test_currency(self, value, expected):
        assert format_currency(value) == expected

    def test_number(self):
        assert format_number(1234) == "1.234"
        assert format_number(1234.5) == "1.234,5"
        assert format_number(None) == "0"

    def test_date(self):
        assert format_date(date(2024, 3, 5)) == "05/03/2024"
        assert format_date(datetime(2024, 12, 31, 23, 0)) == "31/12/2024"
        assert format_date("2024-03-05T10:00:00") == "05/03/2024"
        assert format_date("not a date") == ""
        assert format_date(None) == ""
