"""Which dashboard each role gets, and the team baseline it is compared to."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from statistics import mean
from typing import Mapping

from imobcrm.models.user import UserRole
from imobcrm.services.funnel import conversion_rates
from imobcrm.services.metric_source import MetricBucket

logger = logging.getLogger(__name__)

COUNT_FIELDS = ("leads_created", "appointments_booked", "visits_completed", "sales_closed")
RATE_FIELDS = ("appointments_to_leads", "visits_to_appointments", "sales_to_visits")
METRIC_FIELDS = COUNT_FIELDS + RATE_FIELDS


class DashboardView(str, enum.Enum):
    manager = "manager"
    marketing = "marketing"
    consultant = "consultant"
    broker = "broker"


@dataclass(frozen=True)
class ViewSpec:
    view: DashboardView
    visible_metrics: tuple[str, ...]


MANAGER_VIEW = ViewSpec(DashboardView.manager, METRIC_FIELDS)
MARKETING_VIEW = ViewSpec(DashboardView.marketing, ("leads_created", "appointments_to_leads"))
CONSULTANT_VIEW = ViewSpec(DashboardView.consultant, METRIC_FIELDS)
BROKER_VIEW = ViewSpec(DashboardView.broker, ("visits_completed", "sales_closed", "sales_to_visits"))

ROLE_VIEWS: dict[str, ViewSpec] = {
    UserRole.manager.value: MANAGER_VIEW,
    UserRole.marketing.value: MARKETING_VIEW,
    UserRole.consultant.value: CONSULTANT_VIEW,
    UserRole.broker_senior.value: BROKER_VIEW,
    UserRole.broker_junior.value: BROKER_VIEW,
    UserRole.broker_trainee.value: BROKER_VIEW,
    UserRole.executive.value: BROKER_VIEW,
}


@dataclass(frozen=True)
class RoleView:
    role: str
    view: DashboardView
    visible_metrics: tuple[str, ...]
    metrics: dict[str, float] = field(default_factory=dict)
    team_average: dict[str, float] = field(default_factory=dict)


def _role_key(role) -> str:
    if isinstance(role, enum.Enum):
        role = role.value
    return str(role or "").strip().lower()


def resolve_view(role) -> ViewSpec:
    spec = ROLE_VIEWS.get(_role_key(role))
    if spec is None:
        logger.warning("Unknown role %r, falling back to the manager dashboard", role)
        return MANAGER_VIEW
    return spec


def metric_set(totals: MetricBucket) -> dict[str, float]:
    rates = conversion_rates(totals)
    return {
        "leads_created": float(totals.leads_created),
        "appointments_booked": float(totals.appointments_booked),
        "visits_completed": float(totals.visits_completed),
        "sales_closed": float(totals.sales_closed),
        "appointments_to_leads": rates.appointments_to_leads,
        "visits_to_appointments": rates.visits_to_appointments,
        "sales_to_visits": rates.sales_to_visits,
    }


def team_average(
    team: Mapping[int, Mapping[str, float]],
    fields: tuple[str, ...],
    exclude_user_id: int | None = None,
) -> dict[str, float]:
    """Arithmetic mean per field over the given users, without ``exclude_user_id``."""
    peers = [team[user_id] for user_id in sorted(team) if user_id != exclude_user_id]
    if not peers:
        return {name: 0.0 for name in fields}
    return {name: float(mean(peer.get(name, 0.0) for peer in peers)) for name in fields}


def project(
    role,
    metrics: Mapping[str, float],
    team: Mapping[int, Mapping[str, float]],
    exclude_user_id: int | None = None,
    aggregate: bool = False,
) -> RoleView:
    """Restrict ``metrics`` to the role's view and attach the baseline.

    The team average is a per-user figure; an aggregate over all users is its
    own baseline.
    """
    spec = resolve_view(role)
    visible = spec.visible_metrics
    values = {name: float(metrics.get(name, 0.0)) for name in visible}
    return RoleView(
        role=_role_key(role),
        view=spec.view,
        visible_metrics=visible,
        metrics=values,
        team_average=dict(values) if aggregate else team_average(team, visible, exclude_user_id=exclude_user_id),
    )
