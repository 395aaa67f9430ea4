import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from imobcrm.models.goal import Goal
from imobcrm.services.funnel import conversion_rates
from imobcrm.services.metric_source import MetricStore, Month, MonthRange, SqlMetricStore, fetch_buckets

logger = logging.getLogger(__name__)

GOAL_FIELDS = (
    "appointments",
    "visits",
    "sales",
    "appointments_conversion",
    "visits_conversion",
    "sales_conversion",
)


@dataclass(frozen=True)
class GoalProgress:
    name: str
    target: float
    actual: float
    achieved: float


def get_goal(db: Session, user_id: int, year: int, month: int) -> Goal | None:
    return db.query(Goal).filter(Goal.user_id == user_id, Goal.year == year, Goal.month == month).first()


def list_goals(db: Session, year: int, month: int | None = None) -> list[Goal]:
    q = db.query(Goal).filter(Goal.year == year)
    if month is not None:
        q = q.filter(Goal.month == month)
    return q.order_by(Goal.user_id, Goal.month).all()


def upsert_goal(db: Session, user_id: int, year: int, month: int, targets: dict) -> Goal:
    goal = get_goal(db, user_id, year, month)
    if goal is None:
        goal = Goal(user_id=user_id, year=year, month=month)
        db.add(goal)
    for name in GOAL_FIELDS:
        if targets.get(name) is not None:
            setattr(goal, name, int(targets[name]))
    db.commit()
    db.refresh(goal)
    logger.info("Saved goal for user %s %04d-%02d", user_id, year, month)
    return goal


def _achieved(actual: float, target: float) -> float:
    if target <= 0:
        return 0.0
    return round(actual / target, 4)


def goal_progress(db: Session, goal: Goal, store: MetricStore | None = None) -> list[GoalProgress]:
    month = Month(goal.year, goal.month)
    store = store or SqlMetricStore(db)
    bucket = fetch_buckets(store, MonthRange(month, month), user_id=goal.user_id)[0]
    rates = conversion_rates(bucket)
    actuals = {
        "appointments": bucket.appointments_booked,
        "visits": bucket.visits_completed,
        "sales": bucket.sales_closed,
        # Conversion targets are stored as whole percentages.
        "appointments_conversion": round(rates.appointments_to_leads * 100, 2),
        "visits_conversion": round(rates.visits_to_appointments * 100, 2),
        "sales_conversion": round(rates.sales_to_visits * 100, 2),
    }
    return [
        GoalProgress(
            name=name,
            target=float(getattr(goal, name)),
            actual=float(actuals[name]),
            achieved=_achieved(actuals[name], getattr(goal, name)),
        )
        for name in GOAL_FIELDS
    ]
