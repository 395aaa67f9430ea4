from datetime import datetime

from pydantic import BaseModel


class MonthRangeOut(BaseModel):
    start: str
    end: str
    months: int


class RatesOut(BaseModel):
    appointments_to_leads: float
    visits_to_appointments: float
    sales_to_visits: float


class SeriesPoint(RatesOut):
    period: str


class TotalsOut(BaseModel):
    leads_created: int
    appointments_booked: int
    visits_completed: int
    sales_closed: int


class FormattedMetricOut(BaseModel):
    value: float
    unit: str
    trend: str
    percent_difference: float


class RoleViewOut(BaseModel):
    role: str
    view: str
    visible_metrics: list[str]
    metrics: dict[str, FormattedMetricOut]
    team_average: dict[str, float]


class DashboardResponse(BaseModel):
    range: MonthRangeOut
    user_id: int | None
    current: RatesOut
    series: list[SeriesPoint]
    totals: TotalsOut
    period_rates: RatesOut
    role_view: RoleViewOut


class RankingEntry(BaseModel):
    position: int
    user_id: int
    full_name: str
    leads_created: int
    appointments_booked: int
    visits_completed: int
    sales_closed: int
    sales_to_visits: float


class RecentCliente(BaseModel):
    id: int
    full_name: str
    phone: str
    status: str
    source: str | None
    assigned_to: int | None
    created_at: datetime

    class Config:
        from_attributes = True


class UpcomingAppointment(BaseModel):
    id: int
    cliente_id: int
    title: str | None
    type: str
    status: str
    scheduled_at: datetime
    location: str | None

    class Config:
        from_attributes = True
