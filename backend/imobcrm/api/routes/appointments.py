from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from imobcrm.api.routes.clientes import get_cliente_or_404
from imobcrm.core.database import get_db
from imobcrm.core.deps import get_current_user
from imobcrm.models.appointment import Appointment
from imobcrm.models.cliente import ClienteStatus
from imobcrm.models.user import User
from imobcrm.schemas.appointment import AppointmentCreate, AppointmentResponse, AppointmentUpdate
from imobcrm.services.audit import audit_event
from imobcrm.services.clientes import GLOBAL_ROLES, advance_cliente

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post("", response_model=AppointmentResponse)
def create_appointment(
    payload: AppointmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cliente = get_cliente_or_404(db, payload.cliente_id, current_user)

    data = payload.model_dump(mode="json")
    data["scheduled_at"] = payload.scheduled_at
    appt = Appointment(**data, user_id=current_user.id)
    if appt.broker_id is None:
        appt.broker_id = cliente.broker_id
    db.add(appt)
    advance_cliente(cliente, ClienteStatus.agendamento)
    db.commit()
    db.refresh(appt)
    audit_event(db, "appointment_create", "appointment", user_id=current_user.id, resource_id=appt.id)
    return appt


@router.get("", response_model=list[AppointmentResponse])
def list_appointments(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    q = db.query(Appointment)
    if current_user.role not in GLOBAL_ROLES:
        q = q.filter(or_(Appointment.user_id == current_user.id, Appointment.broker_id == current_user.id))
    return q.order_by(Appointment.scheduled_at.desc()).all()


@router.patch("/{appointment_id}", response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    payload: AppointmentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    item = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if not item:
        raise HTTPException(status_code=404, detail="Appointment not found")
    if current_user.role not in GLOBAL_ROLES and current_user.id not in (item.user_id, item.broker_id):
        raise HTTPException(status_code=403, detail="Appointment belongs to another user")

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("status") is not None:
        changes["status"] = changes["status"].value
    for key, value in changes.items():
        setattr(item, key, value)
    db.commit()
    db.refresh(item)
    audit_event(db, "appointment_update", "appointment", user_id=current_user.id, resource_id=item.id)
    return item
