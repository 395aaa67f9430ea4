from io import StringIO, BytesIO
import csv
from datetime import date

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from imobcrm.models.cliente import Cliente
from imobcrm.services.dashboard import DashboardResult
from imobcrm.services.formatting import format_date

METRIC_LABELS = {
    "leads_created": "Leads",
    "appointments_booked": "Agendamentos",
    "visits_completed": "Visitas",
    "sales_closed": "Vendas",
    "appointments_to_leads": "Agendamentos / Leads",
    "visits_to_appointments": "Visitas / Agendamentos",
    "sales_to_visits": "Vendas / Visitas",
}

TREND_MARKERS = {"up": "+", "down": "-", "neutral": "="}


def clientes_csv(rows: list[Cliente]) -> str:
    out = StringIO()
    writer = csv.writer(out)
    writer.writerow([
        "id",
        "full_name",
        "email",
        "phone",
        "source",
        "status",
        "assigned_to",
        "broker_id",
        "first_contact_at",
        "created_at",
    ])

    for c in rows:
        writer.writerow([
            c.id,
            c.full_name,
            c.email or "",
            c.phone,
            c.source or "",
            c.status,
            c.assigned_to or "",
            c.broker_id or "",
            c.first_contact_at.isoformat() if c.first_contact_at else "",
            c.created_at.isoformat(),
        ])

    return out.getvalue()


def dashboard_pdf(result: DashboardResult, title_suffix: str = "", generated_on: date | None = None) -> bytes:
    buffer = BytesIO()
    p = canvas.Canvas(buffer, pagesize=A4)
    y = 790
    p.setFont("Helvetica-Bold", 16)
    title = "ImobCRM - Dashboard"
    if title_suffix:
        title = f"{title} ({title_suffix})"
    p.drawString(50, y, title)
    y -= 24
    p.setFont("Helvetica", 10)
    p.drawString(50, y, f"Período: {result.month_range.start} a {result.month_range.end}")
    y -= 30

    p.setFont("Helvetica-Bold", 12)
    p.drawString(50, y, "Indicadores")
    y -= 20
    p.setFont("Helvetica", 11)
    view = result.role_view
    for name in view.visible_metrics:
        metric = result.formatted[name]
        line = (
            f"{METRIC_LABELS.get(name, name)}: {metric.value:g}{metric.unit}"
            f"  [{TREND_MARKERS[metric.trend.value]} {metric.percent_difference * 100:.1f}% vs. equipe]"
        )
        p.drawString(60, y, line)
        y -= 18

    y -= 12
    p.setFont("Helvetica-Bold", 12)
    p.drawString(50, y, "Conversão mensal")
    y -= 20
    p.setFont("Helvetica", 10)
    for period, rates in zip(result.funnel.periods, result.funnel.series):
        if y < 60:
            p.showPage()
            p.setFont("Helvetica", 10)
            y = 790
        p.drawString(
            60,
            y,
            f"{period}: {rates.appointments_to_leads:.0%} / {rates.visits_to_appointments:.0%} / {rates.sales_to_visits:.0%}",
        )
        y -= 16

    p.setFont("Helvetica-Oblique", 8)
    p.drawString(50, 30, f"Gerado em {format_date(generated_on or date.today())}")
    p.showPage()
    p.save()
    buffer.seek(0)
    return buffer.read()
