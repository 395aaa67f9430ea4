from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from imobcrm.core.config import get_settings
from imobcrm.core.database import get_db
from imobcrm.core.deps import get_current_user, require_roles
from imobcrm.models.user import User, UserRole
from imobcrm.schemas.dashboard import DashboardResponse, RankingEntry, RecentCliente, UpcomingAppointment
from imobcrm.services.dashboard import (
    DashboardResult,
    build_dashboard,
    performance_ranking,
    recent_clientes,
    resolve_month_range,
    resolve_scope,
    upcoming_appointments,
)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def _rates(rates) -> dict:
    return {
        "appointments_to_leads": rates.appointments_to_leads,
        "visits_to_appointments": rates.visits_to_appointments,
        "sales_to_visits": rates.sales_to_visits,
    }


def serialize_dashboard(result: DashboardResult) -> dict:
    view = result.role_view
    return {
        "range": {
            "start": str(result.month_range.start),
            "end": str(result.month_range.end),
            "months": len(result.month_range),
        },
        "user_id": result.user_id,
        "current": _rates(result.funnel.current),
        "series": [
            {"period": str(period), **_rates(rates)}
            for period, rates in zip(result.funnel.periods, result.funnel.series)
        ],
        "totals": {
            "leads_created": result.totals.leads_created,
            "appointments_booked": result.totals.appointments_booked,
            "visits_completed": result.totals.visits_completed,
            "sales_closed": result.totals.sales_closed,
        },
        "period_rates": _rates(result.period_rates),
        "role_view": {
            "role": view.role,
            "view": view.view.value,
            "visible_metrics": list(view.visible_metrics),
            "metrics": {
                name: {
                    "value": m.value,
                    "unit": m.unit,
                    "trend": m.trend.value,
                    "percent_difference": m.percent_difference,
                }
                for name, m in result.formatted.items()
            },
            "team_average": view.team_average,
        },
    }


@router.get("/metrics", response_model=DashboardResponse)
def dashboard_metrics(
    period: str = Query(default="month"),
    start: str | None = Query(default=None, description="YYYY-MM"),
    end: str | None = Query(default=None, description="YYYY-MM"),
    user_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    month_range = resolve_month_range(period, start, end, today=date.today())
    result = build_dashboard(
        db,
        role=current_user.role,
        viewer_id=current_user.id,
        month_range=month_range,
        user_id=resolve_scope(current_user, user_id),
    )
    return serialize_dashboard(result)


@router.get("/recent-clientes", response_model=list[RecentCliente])
def dashboard_recent_clientes(
    user_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return recent_clientes(db, resolve_scope(current_user, user_id), limit=get_settings().DASHBOARD_RECENT_LIMIT)


@router.get("/upcoming-appointments", response_model=list[UpcomingAppointment])
def dashboard_upcoming_appointments(
    user_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return upcoming_appointments(db, resolve_scope(current_user, user_id), limit=get_settings().DASHBOARD_RECENT_LIMIT)


@router.get("/ranking", response_model=list[RankingEntry])
def dashboard_ranking(
    period: str = Query(default="month"),
    start: str | None = Query(default=None),
    end: str | None = Query(default=None),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(UserRole.manager, UserRole.consultant)),
):
    return performance_ranking(db, resolve_month_range(period, start, end, today=date.today()))
