import pytest

from imobcrm.models.goal import Goal
from imobcrm.models.user import UserRole
from imobcrm.services.goals import goal_progress, upsert_goal
from imobcrm.services.metric_source import MetricBucket, Month


class OneMonthStore:
    def __init__(self, bucket):
        self.bucket = bucket

    def get_counts(self, month_range, user_id=None):
        return [self.bucket]

    def active_user_ids(self):
        return []


def test_upsert_is_unique_per_month(db, consultant):
    upsert_goal(db, consultant.id, 2024, 3, {"appointments": 8, "sales": 2})
    goal = upsert_goal(db, consultant.id, 2024, 3, {"sales": 3})
    assert db.query(Goal).count() == 1
    assert goal.appointments == 8
    assert goal.sales == 3


def test_progress(db, consultant):
    goal = upsert_goal(
        db,
        consultant.id,
        2024,
        3,
        {"appointments": 8, "visits": 4, "sales": 0, "appointments_conversion": 50},
    )
    store = OneMonthStore(MetricBucket(Month(2024, 3), 10, 4, 2, 1))
    progress = {p.name: p for p in goal_progress(db, goal, store=store)}

    assert progress["appointments"].actual == 4
    assert progress["appointments"].achieved == pytest.approx(0.5)
    assert progress["visits"].achieved == pytest.approx(0.5)
    assert progress["appointments_conversion"].actual == pytest.approx(40.0)
    assert progress["appointments_conversion"].achieved == pytest.approx(0.8)
    # Zero targets never count as achieved.
    assert progress["sales"].achieved == 0.0


class TestGoalsApi:
    def test_manager_sets_goal_and_owner_reads_progress(self, client, manager, consultant, headers_for):
        resp = client.put(
            "/api/v1/goals",
            json={"user_id": consultant.id, "year": 2024, "month": 3, "sales": 5, "visits": 10},
            headers=headers_for(manager),
        )
        assert resp.status_code == 200
        assert resp.json()["sales"] == 5

        resp = client.get(
            f"/api/v1/goals/{consultant.id}/progress",
            params={"year": 2024, "month": 3},
            headers=headers_for(consultant),
        )
        assert resp.status_code == 200
        items = {i["name"]: i for i in resp.json()["items"]}
        assert items["sales"]["target"] == 5
        assert items["sales"]["actual"] == 0

    def test_consultant_cannot_set_goals(self, client, consultant, headers_for):
        resp = client.put(
            "/api/v1/goals",
            json={"user_id": consultant.id, "year": 2024, "month": 3, "sales": 50},
            headers=headers_for(consultant),
        )
        assert resp.status_code == 403

    def test_other_users_progress_forbidden(self, client, consultant, make_user, headers_for):
        other = make_user(UserRole.consultant)
        resp = client.get(f"/api/v1/goals/{other.id}/progress", headers=headers_for(consultant))
        assert resp.status_code == 403

    def test_missing_goal(self, client, manager, consultant, headers_for):
        resp = client.get(
            f"/api/v1/goals/{consultant.id}/progress",
            params={"year": 2020, "month": 1},
            headers=headers_for(manager),
        )
        assert resp.status_code == 404
