"""Request-scoped dashboard pipeline: fetch -> funnel -> role projection -> formatting."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import or_
from sqlalchemy.orm import Session

from imobcrm.core.config import Settings, get_settings
from imobcrm.core.errors import InvalidRange
from imobcrm.models.appointment import Appointment, AppointmentStatus
from imobcrm.models.cliente import Cliente
from imobcrm.models.user import User, UserRole
from imobcrm.services.formatting import FormattedMetric, format_metric
from imobcrm.services.funnel import ConversionRates, FunnelSeries, conversion_rates, conversion_series
from imobcrm.services.metric_source import (
    MetricBucket,
    MetricStore,
    Month,
    MonthRange,
    SqlMetricStore,
    fetch_buckets,
    fetch_team_totals,
    sum_buckets,
)
from imobcrm.services.roles import RoleView, metric_set, project

logger = logging.getLogger(__name__)

PERIODS = ("month", "last_month", "quarter", "semester", "year")

# Only these roles may look at aggregate data or at another user's dashboard.
AGGREGATE_ROLES = {UserRole.manager.value}


@dataclass(frozen=True)
class DashboardResult:
    month_range: MonthRange
    user_id: int | None
    funnel: FunnelSeries
    totals: MetricBucket
    period_rates: ConversionRates
    role_view: RoleView
    formatted: dict[str, FormattedMetric]


def month_range_for_period(period: str, today: date | None = None) -> MonthRange:
    """Calendar window for a period keyword, never extending past the current month."""
    current = Month.from_date(today or date.today())
    if period == "month":
        return MonthRange(current, current)
    if period == "last_month":
        previous = current.shift(-1)
        return MonthRange(previous, previous)
    if period == "quarter":
        return MonthRange(Month(current.year, (current.month - 1) // 3 * 3 + 1), current)
    if period == "semester":
        return MonthRange(Month(current.year, 1 if current.month <= 6 else 7), current)
    if period == "year":
        return MonthRange(Month(current.year, 1), current)
    raise InvalidRange(f"Unknown period {period!r}; expected one of {', '.join(PERIODS)}")


def resolve_month_range(
    period: str | None = None,
    start: str | None = None,
    end: str | None = None,
    today: date | None = None,
) -> MonthRange:
    if start or end:
        if not (start and end):
            raise InvalidRange("Both start and end months are required")
        return MonthRange(Month.parse(start), Month.parse(end))
    return month_range_for_period(period or "month", today)


def resolve_scope(viewer: User, requested_user_id: int | None) -> int | None:
    """User whose data the dashboard shows; ``None`` means every user combined."""
    if viewer.role in AGGREGATE_ROLES:
        return requested_user_id
    if requested_user_id is not None and requested_user_id != viewer.id:
        logger.info("User %s asked for user %s's dashboard; showing their own", viewer.id, requested_user_id)
    return viewer.id


def build_dashboard(
    db: Session,
    *,
    role: str,
    viewer_id: int | None,
    month_range: MonthRange,
    user_id: int | None = None,
    store: MetricStore | None = None,
    settings: Settings | None = None,
) -> DashboardResult:
    settings = settings or get_settings()
    month_range.validate(settings.DASHBOARD_MAX_RANGE_MONTHS)
    store = store or SqlMetricStore(db)

    buckets = fetch_buckets(store, month_range, user_id=user_id)
    funnel = conversion_series(buckets)
    totals = sum_buckets(buckets, period=month_range.end)

    if user_id is None:
        role_view = project(role, metric_set(totals), {}, aggregate=True)
    else:
        team = {uid: metric_set(bucket) for uid, bucket in fetch_team_totals(store, month_range).items()}
        role_view = project(role, metric_set(totals), team, exclude_user_id=user_id)

    formatted = {
        name: format_metric(name, role_view.metrics[name], role_view.team_average[name], settings.TREND_EPSILON)
        for name in role_view.visible_metrics
    }
    logger.info(
        "Dashboard %s..%s viewer=%s role=%s user=%s: %d leads, %d sales",
        month_range.start,
        month_range.end,
        viewer_id,
        role_view.role,
        user_id,
        totals.leads_created,
        totals.sales_closed,
    )
    return DashboardResult(
        month_range=month_range,
        user_id=user_id,
        funnel=funnel,
        totals=totals,
        period_rates=conversion_rates(totals),
        role_view=role_view,
        formatted=formatted,
    )


def performance_ranking(
    db: Session,
    month_range: MonthRange,
    store: MetricStore | None = None,
    settings: Settings | None = None,
) -> list[dict]:
    settings = settings or get_settings()
    month_range.validate(settings.DASHBOARD_MAX_RANGE_MONTHS)
    store = store or SqlMetricStore(db)
    totals = fetch_team_totals(store, month_range)
    names = dict(db.query(User.id, User.full_name).filter(User.id.in_(list(totals))).all()) if totals else {}

    rows = []
    for uid, bucket in totals.items():
        rates = conversion_rates(bucket)
        rows.append(
            {
                "user_id": uid,
                "full_name": names.get(uid, ""),
                "leads_created": bucket.leads_created,
                "appointments_booked": bucket.appointments_booked,
                "visits_completed": bucket.visits_completed,
                "sales_closed": bucket.sales_closed,
                "sales_to_visits": rates.sales_to_visits,
            }
        )
    rows.sort(key=lambda r: (-r["sales_closed"], -r["visits_completed"], -r["appointments_booked"], r["user_id"]))
    for position, row in enumerate(rows, start=1):
        row["position"] = position
    return rows


def recent_clientes(db: Session, user_id: int | None = None, limit: int = 5) -> list[Cliente]:
    q = db.query(Cliente)
    if user_id is not None:
        q = q.filter(or_(Cliente.assigned_to == user_id, Cliente.broker_id == user_id))
    return q.order_by(Cliente.created_at.desc(), Cliente.id.desc()).limit(limit).all()


def upcoming_appointments(
    db: Session,
    user_id: int | None = None,
    limit: int = 5,
    now: datetime | None = None,
) -> list[Appointment]:
    now = now or datetime.utcnow()
    q = db.query(Appointment).filter(
        Appointment.scheduled_at >= now,
        Appointment.status.notin_([AppointmentStatus.cancelado.value, AppointmentStatus.concluido.value]),
    )
    if user_id is not None:
        q = q.filter(or_(Appointment.user_id == user_id, Appointment.broker_id == user_id))
    return q.order_by(Appointment.scheduled_at.asc()).limit(limit).all()
