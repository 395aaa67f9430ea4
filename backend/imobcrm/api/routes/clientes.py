from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from imobcrm.core.database import get_db
from imobcrm.core.deps import get_current_user
from imobcrm.models.cliente import Cliente, ClienteNote, ClienteStatus
from imobcrm.models.user import User, UserRole
from imobcrm.schemas.cliente import (
    BoardColumn,
    ClienteCreate,
    ClienteCreateResponse,
    ClienteNoteCreate,
    ClienteNoteResponse,
    ClienteResponse,
    ClienteUpdate,
    SlaResponse,
)
from imobcrm.services.audit import audit_event
from imobcrm.services.automation import get_active_config
from imobcrm.services.clientes import board, can_access, create_cliente, move_cliente, visible_clientes
from imobcrm.services.sla import first_contact_sla

router = APIRouter(prefix="/clientes", tags=["clientes"])

# PATCH fields backed by NOT NULL columns.
REQUIRED_FIELDS = ("status", "phone")


def get_cliente_or_404(db: Session, cliente_id: int, user: User) -> Cliente:
    cliente = db.query(Cliente).filter(Cliente.id == cliente_id).first()
    if not cliente:
        raise HTTPException(status_code=404, detail="Cliente not found")
    if not can_access(user, cliente):
        raise HTTPException(status_code=403, detail="Cliente is assigned to another user")
    return cliente


@router.post("", response_model=ClienteCreateResponse)
def create(payload: ClienteCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    data = payload.model_dump(mode="json")
    cliente, recurring = create_cliente(db, data)
    audit_event(
        db,
        "cliente_recurring" if recurring else "cliente_create",
        "cliente",
        user_id=current_user.id,
        resource_id=cliente.id,
    )
    response = ClienteCreateResponse.model_validate(cliente)
    response.recurring = recurring
    return response


@router.get("", response_model=list[ClienteResponse])
def list_clientes(
    status: ClienteStatus | None = Query(default=None),
    search: str | None = Query(default=None, max_length=120),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    q = visible_clientes(db, current_user)
    if status is not None:
        q = q.filter(Cliente.status == status.value)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(Cliente.full_name.ilike(pattern) | Cliente.phone.ilike(pattern) | Cliente.email.ilike(pattern))
    return q.order_by(Cliente.created_at.desc(), Cliente.id.desc()).limit(limit).all()


@router.get("/board", response_model=list[BoardColumn])
def kanban_board(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    clientes = visible_clientes(db, current_user).order_by(Cliente.updated_at.desc()).all()
    return [{"status": status, "count": len(items), "clientes": items} for status, items in board(clientes)]


@router.get("/{cliente_id}", response_model=ClienteResponse)
def get_cliente(cliente_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return get_cliente_or_404(db, cliente_id, current_user)


@router.patch("/{cliente_id}", response_model=ClienteResponse)
def update_cliente(
    cliente_id: int,
    payload: ClienteUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cliente = get_cliente_or_404(db, cliente_id, current_user)
    changes = payload.model_dump(exclude_unset=True, mode="json")
    for key in REQUIRED_FIELDS:
        if key in changes and changes[key] is None:
            raise HTTPException(status_code=400, detail=f"{key} cannot be null")

    if "assigned_to" in changes and current_user.role != UserRole.manager:
        raise HTTPException(status_code=403, detail="Only managers can reassign clientes")
    for key in ("assigned_to", "broker_id"):
        if changes.get(key) is not None and not db.query(User).filter(User.id == changes[key]).first():
            raise HTTPException(status_code=400, detail=f"Unknown user {changes[key]}")

    status = changes.pop("status", None)
    if status is not None:
        move_cliente(cliente, ClienteStatus(status))
    for key, value in changes.items():
        setattr(cliente, key, value)
    if changes.get("assigned_to") is not None:
        cliente.assigned_at = datetime.utcnow()

    db.commit()
    db.refresh(cliente)
    audit_event(db, "cliente_update", "cliente", user_id=current_user.id, resource_id=cliente.id, details=",".join(sorted(payload.model_fields_set)))
    return cliente


@router.post("/{cliente_id}/notes", response_model=ClienteNoteResponse)
def add_note(
    cliente_id: int,
    payload: ClienteNoteCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cliente = get_cliente_or_404(db, cliente_id, current_user)
    note = ClienteNote(cliente_id=cliente.id, user_id=current_user.id, text=payload.text.strip())
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


@router.get("/{cliente_id}/notes", response_model=list[ClienteNoteResponse])
def list_notes(cliente_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    cliente = get_cliente_or_404(db, cliente_id, current_user)
    return (
        db.query(ClienteNote)
        .filter(ClienteNote.cliente_id == cliente.id)
        .order_by(ClienteNote.created_at.desc(), ClienteNote.id.desc())
        .all()
    )


@router.get("/{cliente_id}/sla", response_model=SlaResponse)
def cliente_sla(cliente_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    cliente = get_cliente_or_404(db, cliente_id, current_user)
    sla = first_contact_sla(cliente, get_active_config(db))
    return SlaResponse(
        cliente_id=cliente.id,
        level=sla.level.value,
        elapsed_minutes=sla.elapsed_minutes,
        limit_minutes=sla.limit_minutes,
        consumed=sla.consumed,
    )
