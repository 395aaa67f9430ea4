from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from imobcrm.core.database import get_db
from imobcrm.core.deps import get_current_user, is_manager, require_roles
from imobcrm.models.user import User, UserRole
from imobcrm.schemas.goal import GoalProgressResponse, GoalResponse, GoalUpsert
from imobcrm.services.audit import audit_event
from imobcrm.services.goals import GOAL_FIELDS, get_goal, goal_progress, list_goals, upsert_goal

router = APIRouter(prefix="/goals", tags=["goals"])


@router.put("", response_model=GoalResponse)
def save_goal(
    payload: GoalUpsert,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.manager)),
):
    if not db.query(User).filter(User.id == payload.user_id).first():
        raise HTTPException(status_code=404, detail="User not found")
    targets = payload.model_dump(include=set(GOAL_FIELDS))
    goal = upsert_goal(db, payload.user_id, payload.year, payload.month, targets)
    audit_event(db, "goal_upsert", "goal", user_id=current_user.id, resource_id=goal.id)
    return goal


@router.get("", response_model=list[GoalResponse])
def get_goals(
    year: int | None = Query(default=None),
    month: int | None = Query(default=None, ge=1, le=12),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    goals = list_goals(db, year or date.today().year, month)
    if not is_manager(current_user):
        goals = [g for g in goals if g.user_id == current_user.id]
    return goals


@router.get("/{user_id}/progress", response_model=GoalProgressResponse)
def get_goal_progress(
    user_id: int,
    year: int | None = Query(default=None),
    month: int | None = Query(default=None, ge=1, le=12),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    today = date.today()
    year = year or today.year
    month = month or today.month
    if not is_manager(current_user) and user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    goal = get_goal(db, user_id, year, month)
    if not goal:
        raise HTTPException(status_code=404, detail="Goal not found")
    items = goal_progress(db, goal)
    return {
        "user_id": user_id,
        "year": year,
        "month": month,
        "items": [
            {"name": p.name, "target": p.target, "actual": p.actual, "achieved": p.achieved}
            for p in items
        ],
    }
