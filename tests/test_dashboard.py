from datetime import date, datetime, timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from imobcrm.core.config import get_settings
from imobcrm.core.errors import DataUnavailable, InvalidRange
from imobcrm.models.appointment import Appointment, AppointmentStatus
from imobcrm.models.user import UserRole
from imobcrm.services import dashboard as dashboard_service
from imobcrm.services.dashboard import (
    build_dashboard,
    month_range_for_period,
    performance_ranking,
    resolve_month_range,
    resolve_scope,
    upcoming_appointments,
)
from imobcrm.services.formatting import TrendDirection
from imobcrm.services.metric_source import MetricBucket, Month, MonthRange
from imobcrm.services.roles import DashboardView


class StubStore:
    """Per-user buckets; ``None`` key holds the aggregate."""

    def __init__(self, by_user, users=None, fail=False):
        self.by_user = by_user
        self.users = users if users is not None else [u for u in by_user if u is not None]
        self.fail = fail

    def get_counts(self, month_range, user_id=None):
        if self.fail:
            raise SQLAlchemyError("connection refused")
        return self.by_user.get(user_id, [])

    def active_user_ids(self):
        return self.users


MAY = Month(2024, 5)


class TestPeriods:
    @pytest.mark.parametrize(
        "period, start, end",
        [
            ("month", Month(2024, 5), Month(2024, 5)),
            ("last_month", Month(2024, 4), Month(2024, 4)),
            ("quarter", Month(2024, 4), Month(2024, 5)),
            ("semester", Month(2024, 1), Month(2024, 5)),
            ("year", Month(2024, 1), Month(2024, 5)),
        ],
    )
    def test_period_windows(self, period, start, end):
        assert month_range_for_period(period, date(2024, 5, 17)) == MonthRange(start, end)

    def test_last_month_in_january(self):
        assert month_range_for_period("last_month", date(2024, 1, 3)) == MonthRange(Month(2023, 12), Month(2023, 12))

    def test_second_semester(self):
        assert month_range_for_period("semester", date(2024, 8, 1)).start == Month(2024, 7)

    def test_unknown_period(self):
        with pytest.raises(InvalidRange):
            month_range_for_period("decade", date(2024, 5, 1))

    def test_explicit_range_wins(self):
        r = resolve_month_range("year", "2023-02", "2023-04")
        assert r == MonthRange(Month(2023, 2), Month(2023, 4))

    def test_explicit_range_needs_both_ends(self):
        with pytest.raises(InvalidRange):
            resolve_month_range("month", "2023-02", None)


class TestScope:
    def test_manager_may_pick_anyone(self, manager):
        assert resolve_scope(manager, None) is None
        assert resolve_scope(manager, 42) == 42

    def test_others_see_only_themselves(self, make_user):
        broker = make_user(UserRole.broker_junior)
        assert resolve_scope(broker, None) == broker.id
        assert resolve_scope(broker, broker.id + 100) == broker.id


class TestBuildDashboard:
    def test_consultant_pipeline(self):
        store = StubStore(
            {
                1: [MetricBucket(MAY, 100, 40, 20, 5)],
                2: [MetricBucket(MAY, 50, 20, 10, 2)],
                3: [MetricBucket(MAY, 150, 60, 30, 6)],
            }
        )
        result = build_dashboard(
            None,
            role="consultant",
            viewer_id=1,
            month_range=MonthRange(MAY, MAY),
            user_id=1,
            store=store,
        )
        assert result.funnel.current.appointments_to_leads == pytest.approx(0.4)
        assert len(result.funnel.series) == 1
        assert result.totals.leads_created == 100
        assert result.role_view.view == DashboardView.consultant
        # Peers 2 and 3 average 100 leads, so the consultant sits exactly on it.
        assert result.role_view.team_average["leads_created"] == 100.0
        assert result.formatted["leads_created"].trend == TrendDirection.neutral
        assert result.formatted["sales_closed"].trend == TrendDirection.up
        assert result.formatted["appointments_to_leads"].unit == "%"

    def test_broker_sees_three_metrics(self):
        store = StubStore({5: [MetricBucket(MAY, 0, 0, 4, 1)], None: []})
        result = build_dashboard(
            None, role="broker-trainee", viewer_id=5, month_range=MonthRange(MAY, MAY), user_id=5, store=store
        )
        assert set(result.formatted) == {"visits_completed", "sales_closed", "sales_to_visits"}
        assert result.formatted["sales_to_visits"].value == 25.0

    def test_invalid_range_checked_before_fetch(self):
        store = StubStore({}, fail=True)
        with pytest.raises(InvalidRange):
            build_dashboard(
                None,
                role="manager",
                viewer_id=1,
                month_range=MonthRange(Month(2024, 6), Month(2024, 1)),
                store=store,
            )

    def test_store_failure_propagates(self):
        with pytest.raises(DataUnavailable):
            build_dashboard(
                None, role="manager", viewer_id=1, month_range=MonthRange(MAY, MAY), store=StubStore({}, fail=True)
            )

    def test_unknown_role_gets_manager_view(self):
        result = build_dashboard(
            None, role="intern", viewer_id=1, month_range=MonthRange(MAY, MAY), user_id=1, store=StubStore({1: []})
        )
        assert result.role_view.view == DashboardView.manager
        assert result.totals == MetricBucket(MAY)
        assert result.funnel.current.sales_to_visits == 0.0

    def test_aggregate_is_not_compared_to_per_user_average(self):
        team = {uid: [MetricBucket(MAY, 10, 4, 2, 1)] for uid in range(1, 11)}
        store = StubStore({**team, None: [MetricBucket(MAY, 100, 40, 20, 10)]})
        result = build_dashboard(
            None, role="manager", viewer_id=1, month_range=MonthRange(MAY, MAY), user_id=None, store=store
        )
        assert result.role_view.metrics["leads_created"] == 100.0
        assert result.role_view.team_average["leads_created"] == 100.0
        for metric in result.formatted.values():
            assert metric.trend == TrendDirection.neutral
            assert metric.percent_difference == 0

    def test_manager_viewing_one_user_uses_peer_average(self):
        store = StubStore(
            {
                1: [MetricBucket(MAY, 30, 0, 0, 0)],
                2: [MetricBucket(MAY, 10, 0, 0, 0)],
                3: [MetricBucket(MAY, 10, 0, 0, 0)],
            }
        )
        result = build_dashboard(
            None, role="manager", viewer_id=3, month_range=MonthRange(MAY, MAY), user_id=1, store=store
        )
        assert result.role_view.team_average["leads_created"] == 10.0
        assert result.formatted["leads_created"].trend == TrendDirection.up


def test_ranking_orders_by_sales(db, make_user):
    a = make_user(UserRole.consultant, full_name="Ana")
    b = make_user(UserRole.consultant, full_name="Bruno")
    c = make_user(UserRole.consultant, full_name="Carla")
    store = StubStore(
        {
            a.id: [MetricBucket(MAY, 10, 5, 3, 1)],
            b.id: [MetricBucket(MAY, 10, 5, 4, 3)],
            c.id: [MetricBucket(MAY, 10, 5, 5, 1)],
        }
    )
    rows = performance_ranking(db, MonthRange(MAY, MAY), store=store)
    assert [r["full_name"] for r in rows] == ["Bruno", "Carla", "Ana"]
    assert [r["position"] for r in rows] == [1, 2, 3]


def test_upcoming_appointments_skip_cancelled(db, consultant, make_cliente):
    cliente = make_cliente(assigned_to=consultant.id)
    now = datetime(2024, 5, 10, 12, 0)
    db.add_all(
        [
            Appointment(cliente_id=cliente.id, user_id=consultant.id, scheduled_at=now + timedelta(days=2)),
            Appointment(cliente_id=cliente.id, user_id=consultant.id, scheduled_at=now + timedelta(days=1)),
            Appointment(
                cliente_id=cliente.id,
                user_id=consultant.id,
                scheduled_at=now + timedelta(hours=1),
                status=AppointmentStatus.cancelado.value,
            ),
            Appointment(cliente_id=cliente.id, user_id=consultant.id, scheduled_at=now - timedelta(days=1)),
        ]
    )
    db.commit()
    items = upcoming_appointments(db, consultant.id, now=now)
    assert [a.scheduled_at for a in items] == [now + timedelta(days=1), now + timedelta(days=2)]


class TestDashboardApi:
    def test_requires_auth(self, client):
        assert client.get("/api/v1/dashboard/metrics").status_code == 401

    def test_manager_aggregate(self, client, manager, consultant, make_cliente, headers_for):
        this_month = datetime.utcnow().replace(day=1, hour=12)
        make_cliente(created_at=this_month, assigned_to=consultant.id)
        make_cliente(created_at=this_month)

        resp = client.get("/api/v1/dashboard/metrics", headers=headers_for(manager))
        assert resp.status_code == 200
        body = resp.json()
        assert body["user_id"] is None
        assert body["totals"]["leads_created"] == 2
        assert body["range"]["months"] == 1
        assert body["role_view"]["view"] == "manager"
        assert body["role_view"]["metrics"]["leads_created"]["value"] == 2.0
        assert len(body["series"]) == 1

    def test_broker_user_filter_ignored(self, client, manager, make_user, headers_for):
        broker = make_user(UserRole.broker_senior)
        resp = client.get(
            "/api/v1/dashboard/metrics",
            params={"user_id": manager.id, "period": "year"},
            headers=headers_for(broker),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["user_id"] == broker.id
        assert body["role_view"]["visible_metrics"] == ["visits_completed", "sales_closed", "sales_to_visits"]

    def test_explicit_range_series(self, client, manager, headers_for):
        resp = client.get(
            "/api/v1/dashboard/metrics",
            params={"start": "2023-11", "end": "2024-02"},
            headers=headers_for(manager),
        )
        assert resp.status_code == 200
        assert [p["period"] for p in resp.json()["series"]] == ["2023-11", "2023-12", "2024-01", "2024-02"]

    def test_inverted_range_is_422(self, client, manager, headers_for):
        resp = client.get(
            "/api/v1/dashboard/metrics",
            params={"start": "2024-05", "end": "2024-01"},
            headers=headers_for(manager),
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "invalid_range"

    def test_window_limit(self, client, manager, headers_for):
        limit = get_settings().DASHBOARD_MAX_RANGE_MONTHS
        end = Month(2024, 1)
        start = end.shift(-limit)
        resp = client.get(
            "/api/v1/dashboard/metrics",
            params={"start": str(start), "end": str(end)},
            headers=headers_for(manager),
        )
        assert resp.status_code == 422

    def test_store_down_is_503(self, client, manager, headers_for, monkeypatch):
        monkeypatch.setattr(dashboard_service, "SqlMetricStore", lambda db: StubStore({}, fail=True))
        resp = client.get("/api/v1/dashboard/metrics", headers=headers_for(manager))
        assert resp.status_code == 503
        assert resp.json()["code"] == "data_unavailable"

    def test_ranking_forbidden_for_brokers(self, client, make_user, headers_for):
        broker = make_user(UserRole.broker_junior)
        assert client.get("/api/v1/dashboard/ranking", headers=headers_for(broker)).status_code == 403

    def test_recent_clientes_scoped(self, client, consultant, make_user, make_cliente, headers_for):
        other = make_user(UserRole.consultant)
        mine = make_cliente(assigned_to=consultant.id)
        make_cliente(assigned_to=other.id)
        resp = client.get("/api/v1/dashboard/recent-clientes", headers=headers_for(consultant))
        assert resp.status_code == 200
        assert [c["id"] for c in resp.json()] == [mine.id]
