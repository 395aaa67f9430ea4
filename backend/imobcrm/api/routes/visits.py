from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session

from imobcrm.api.routes.clientes import get_cliente_or_404
from imobcrm.core.database import get_db
from imobcrm.core.deps import get_current_user
from imobcrm.models.cliente import ClienteStatus
from imobcrm.models.user import User
from imobcrm.models.visit import Visit
from imobcrm.schemas.visit import VisitCreate, VisitResponse
from imobcrm.services.audit import audit_event
from imobcrm.services.clientes import GLOBAL_ROLES, advance_cliente

router = APIRouter(prefix="/visits", tags=["visits"])


@router.post("", response_model=VisitResponse)
def create_visit(payload: VisitCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    cliente = get_cliente_or_404(db, payload.cliente_id, current_user)
    visit = Visit(**payload.model_dump(), user_id=current_user.id)
    if visit.broker_id is None:
        visit.broker_id = cliente.broker_id
    db.add(visit)
    advance_cliente(cliente, ClienteStatus.visita)
    db.commit()
    db.refresh(visit)
    audit_event(db, "visit_create", "visit", user_id=current_user.id, resource_id=visit.id)
    return visit


@router.get("", response_model=list[VisitResponse])
def list_visits(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    q = db.query(Visit)
    if current_user.role not in GLOBAL_ROLES:
        q = q.filter(or_(Visit.user_id == current_user.id, Visit.broker_id == current_user.id))
    return q.order_by(Visit.visited_at.desc()).all()
