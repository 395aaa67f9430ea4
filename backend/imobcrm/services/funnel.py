from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from imobcrm.services.metric_source import MetricBucket, Month


@dataclass(frozen=True)
class ConversionRates:
    appointments_to_leads: float = 0.0
    visits_to_appointments: float = 0.0
    sales_to_visits: float = 0.0


@dataclass(frozen=True)
class FunnelSeries:
    current: ConversionRates
    series: tuple[ConversionRates, ...]
    periods: tuple[Month, ...]


def ratio(numerator: float, denominator: float) -> float:
    """numerator/denominator clamped to [0, 1]; 0 for an empty denominator."""
    if denominator <= 0:
        return 0.0
    return min(1.0, max(0.0, numerator / denominator))


def conversion_rates(bucket: MetricBucket) -> ConversionRates:
    return ConversionRates(
        appointments_to_leads=ratio(bucket.appointments_booked, bucket.leads_created),
        visits_to_appointments=ratio(bucket.visits_completed, bucket.appointments_booked),
        sales_to_visits=ratio(bucket.sales_closed, bucket.visits_completed),
    )


def conversion_series(buckets: Sequence[MetricBucket]) -> FunnelSeries:
    if not buckets:
        raise ValueError("conversion_series needs at least one bucket")
    series = tuple(conversion_rates(bucket) for bucket in buckets)
    return FunnelSeries(
        current=series[-1],
        series=series,
        periods=tuple(bucket.period for bucket in buckets),
    )
