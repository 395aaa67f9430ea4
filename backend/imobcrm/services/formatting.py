from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from imobcrm.services.roles import RATE_FIELDS

DEFAULT_EPSILON = 0.01
_NON_NUMERIC = re.compile(r"[^\d,.\-]")
# A single dot with one or two digits after it is a decimal point, not a thousands separator.
_DOT_DECIMAL = re.compile(r"-?\d*\.\d{1,2}")


class TrendDirection(str, enum.Enum):
    up = "up"
    down = "down"
    neutral = "neutral"


@dataclass(frozen=True)
class FormattedMetric:
    value: float
    unit: str
    trend: TrendDirection
    percent_difference: float


def trend_direction(value: float, baseline: float, epsilon: float = DEFAULT_EPSILON) -> TrendDirection:
    if value > baseline * (1 + epsilon):
        return TrendDirection.up
    if value < baseline * (1 - epsilon):
        return TrendDirection.down
    return TrendDirection.neutral


def percent_difference(value: float, baseline: float) -> float:
    if baseline <= 0:
        return 0.0
    return round((value - baseline) / baseline, 4)


def format_rate(rate: float, baseline: float, epsilon: float = DEFAULT_EPSILON) -> FormattedMetric:
    """``rate`` and ``baseline`` are fractions; the displayed value is a percentage."""
    return FormattedMetric(
        value=round(rate * 100, 2),
        unit="%",
        trend=trend_direction(rate, baseline, epsilon),
        percent_difference=percent_difference(rate, baseline),
    )


def format_count(count: float, baseline: float, epsilon: float = DEFAULT_EPSILON) -> FormattedMetric:
    return FormattedMetric(
        value=float(count),
        unit="",
        trend=trend_direction(count, baseline, epsilon),
        percent_difference=percent_difference(count, baseline),
    )


def format_metric(name: str, value: float, baseline: float, epsilon: float = DEFAULT_EPSILON) -> FormattedMetric:
    if name in RATE_FIELDS:
        return format_rate(value, baseline, epsilon)
    return format_count(value, baseline, epsilon)


def _to_decimal(value) -> Decimal | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        cleaned = _NON_NUMERIC.sub("", value)
        if "," in cleaned:
            cleaned = cleaned.replace(".", "").replace(",", ".")
        elif not _DOT_DECIMAL.fullmatch(cleaned):
            cleaned = cleaned.replace(".", "")
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return None
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


def _swap_separators(text: str) -> str:
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_currency(value) -> str:
    """BRL formatting, e.g. ``R$ 1.234,56``; empty or invalid input renders as zero."""
    amount = _to_decimal(value)
    if amount is None:
        return "R$ 0,00"
    sign = "-" if amount < 0 else ""
    return f"{sign}R$ {_swap_separators(f'{abs(amount):,.2f}')}"


def format_number(value) -> str:
    number = _to_decimal(value)
    if number is None:
        return "0"
    if number == number.to_integral_value():
        return _swap_separators(f"{int(number):,}")
    return _swap_separators(f"{number:,.2f}".rstrip("0").rstrip("."))


def format_date(value) -> str:
    if not value:
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return ""
    if isinstance(value, (date, datetime)):
        return value.strftime("%d/%m/%Y")
    return ""
