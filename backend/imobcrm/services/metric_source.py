"""Monthly funnel counts read from the relational store.

Every dashboard request goes through :func:`fetch_buckets`, which turns the
sparse rows a :class:`MetricStore` returns into one bucket per calendar month
of the requested range. Store failures surface as ``DataUnavailable``; a
range is either returned whole or not at all.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Protocol

from sqlalchemy import extract, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from imobcrm.core.errors import DataUnavailable, InvalidRange
from imobcrm.models.appointment import Appointment
from imobcrm.models.cliente import Cliente
from imobcrm.models.sale import Sale
from imobcrm.models.user import User
from imobcrm.models.visit import Visit

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class Month:
    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be in 1..12, got {self.month}")

    @classmethod
    def from_date(cls, value: date) -> "Month":
        return cls(value.year, value.month)

    @classmethod
    def parse(cls, value: str) -> "Month":
        try:
            year_part, month_part = value.strip().split("-")
            return cls(int(year_part), int(month_part))
        except ValueError:
            raise InvalidRange(f"Invalid month {value!r}, expected YYYY-MM")

    @property
    def index(self) -> int:
        return self.year * 12 + self.month - 1

    def shift(self, months: int) -> "Month":
        index = self.index + months
        return Month(index // 12, index % 12 + 1)

    @property
    def start(self) -> datetime:
        return datetime(self.year, self.month, 1)

    @property
    def end(self) -> datetime:
        """Exclusive upper bound: the first instant of the following month."""
        return self.shift(1).start

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class MonthRange:
    start: Month
    end: Month

    def __len__(self) -> int:
        return max(0, self.end.index - self.start.index + 1)

    def __contains__(self, month: object) -> bool:
        return isinstance(month, Month) and self.start <= month <= self.end

    def months(self) -> list[Month]:
        return [self.start.shift(i) for i in range(len(self))]

    def validate(self, max_months: int) -> None:
        if self.start > self.end:
            raise InvalidRange(f"Range start {self.start} is after end {self.end}")
        if len(self) > max_months:
            raise InvalidRange(f"Range of {len(self)} months exceeds the maximum of {max_months}")


@dataclass(frozen=True)
class MetricBucket:
    period: Month
    leads_created: int = 0
    appointments_booked: int = 0
    visits_completed: int = 0
    sales_closed: int = 0


def sum_buckets(buckets: Iterable[MetricBucket], period: Month | None = None) -> MetricBucket:
    """Collapse a sequence of buckets into one; ``period`` defaults to the last bucket's."""
    leads = appointments = visits = sales = 0
    last = None
    for bucket in buckets:
        leads += bucket.leads_created
        appointments += bucket.appointments_booked
        visits += bucket.visits_completed
        sales += bucket.sales_closed
        last = bucket.period
    period = period or last
    if period is None:
        raise ValueError("cannot sum an empty bucket sequence without a period")
    return MetricBucket(period, leads, appointments, visits, sales)


class MetricStore(Protocol):
    def get_counts(self, month_range: MonthRange, user_id: int | None = None) -> list[MetricBucket]: ...

    def active_user_ids(self) -> list[int]: ...


# (bucket field, model, timestamp column, ownership columns)
_SOURCES = (
    ("leads_created", Cliente, Cliente.created_at, (Cliente.assigned_to, Cliente.broker_id)),
    ("appointments_booked", Appointment, Appointment.created_at, (Appointment.user_id, Appointment.broker_id)),
    ("visits_completed", Visit, Visit.created_at, (Visit.user_id, Visit.broker_id)),
    ("sales_closed", Sale, Sale.created_at, (Sale.user_id, Sale.broker_id)),
)


class SqlMetricStore:
    def __init__(self, db: Session):
        self.db = db

    def get_counts(self, month_range: MonthRange, user_id: int | None = None) -> list[MetricBucket]:
        counts: dict[Month, dict[str, int]] = {}
        for field, model, ts_col, owner_cols in _SOURCES:
            year_col = extract("year", ts_col)
            month_col = extract("month", ts_col)
            q = self.db.query(year_col, month_col, func.count(model.id)).filter(
                ts_col >= month_range.start.start,
                ts_col < month_range.end.end,
            )
            if user_id is not None:
                # A record belongs to a user through either ownership column.
                q = q.filter(or_(*(col == user_id for col in owner_cols)))
            for year, month, total in q.group_by(year_col, month_col).all():
                counts.setdefault(Month(int(year), int(month)), {})[field] = int(total or 0)

        return [MetricBucket(period=month, **fields) for month, fields in sorted(counts.items())]

    def active_user_ids(self) -> list[int]:
        rows = self.db.query(User.id).filter(User.is_active == True).order_by(User.id).all()  # noqa: E712
        return [row[0] for row in rows]


def fetch_buckets(store: MetricStore, month_range: MonthRange, user_id: int | None = None) -> list[MetricBucket]:
    try:
        raw = store.get_counts(month_range, user_id=user_id)
    except (SQLAlchemyError, OSError) as exc:
        logger.error("Metric store failed for %s..%s (user=%s): %s", month_range.start, month_range.end, user_id, exc)
        raise DataUnavailable("Metric store unavailable") from exc

    by_month = {bucket.period: bucket for bucket in raw if bucket.period in month_range}
    return [by_month.get(month) or MetricBucket(period=month) for month in month_range.months()]


def fetch_team_totals(store: MetricStore, month_range: MonthRange) -> dict[int, MetricBucket]:
    """Range totals for every active user, keyed by user id."""
    try:
        user_ids = store.active_user_ids()
    except (SQLAlchemyError, OSError) as exc:
        logger.error("Could not list active users: %s", exc)
        raise DataUnavailable("Metric store unavailable") from exc

    return {
        user_id: sum_buckets(fetch_buckets(store, month_range, user_id=user_id), period=month_range.end)
        for user_id in user_ids
    }
