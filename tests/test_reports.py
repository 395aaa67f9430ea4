import csv
from datetime import date
from io import StringIO

from reportlab.pdfgen import canvas

from imobcrm.models.user import UserRole
from imobcrm.services import reports as reports_service
from imobcrm.services.dashboard import build_dashboard
from imobcrm.services.metric_source import Month, MonthRange


def test_clientes_csv(client, manager, make_cliente, headers_for):
    make_cliente(full_name="Beatriz Rocha", email="bia@gmail.com")
    resp = client.get("/api/v1/reports/clientes.csv", headers=headers_for(manager))
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    rows = list(csv.reader(StringIO(resp.text)))
    assert rows[0][:4] == ["id", "full_name", "email", "phone"]
    assert rows[1][1] == "Beatriz Rocha"


def test_brokers_cannot_export_clientes(client, make_user, headers_for):
    broker = make_user(UserRole.broker_trainee)
    assert client.get("/api/v1/reports/clientes.csv", headers=headers_for(broker)).status_code == 403


def test_dashboard_pdf(client, consultant, make_cliente, headers_for):
    make_cliente(assigned_to=consultant.id)
    resp = client.get("/api/v1/reports/dashboard.pdf", params={"period": "quarter"}, headers=headers_for(consultant))
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content.startswith(b"%PDF")


def test_audit_requires_manager(client, consultant, headers_for):
    assert client.get("/api/v1/audit", headers=headers_for(consultant)).status_code == 403


class _EmptyStore:
    def get_counts(self, month_range, user_id=None):
        return []

    def active_user_ids(self):
        return []


def test_pdf_footer_shows_generation_date(monkeypatch):
    drawn = []

    class RecordingCanvas(canvas.Canvas):
        def drawString(self, x, y, text, *args, **kwargs):
            drawn.append(text)
            return super().drawString(x, y, text, *args, **kwargs)

    monkeypatch.setattr(reports_service.canvas, "Canvas", RecordingCanvas)
    result = build_dashboard(
        None,
        role="consultant",
        viewer_id=1,
        month_range=MonthRange(Month(2023, 1), Month(2023, 3)),
        user_id=1,
        store=_EmptyStore(),
    )
    pdf = reports_service.dashboard_pdf(result, generated_on=date(2024, 6, 20))
    assert pdf.startswith(b"%PDF")
    assert "Gerado em 20/06/2024" in drawn
    assert "Gerado em 01/03/2023" not in drawn
