from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from imobcrm.core.database import get_db
from imobcrm.core.deps import get_current_user, require_roles
from imobcrm.models.user import User, UserRole
from imobcrm.schemas.automation import AutomationConfigCreate, AutomationConfigResponse, AutomationConfigUpdate
from imobcrm.services import automation as automation_service
from imobcrm.services.assignment import redistribute_expired
from imobcrm.services.audit import audit_event

router = APIRouter(prefix="/automation", tags=["automation"])


@router.get("/config/active", response_model=AutomationConfigResponse)
def active_config(db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return automation_service.get_active_config(db)


@router.get("/config", response_model=list[AutomationConfigResponse])
def list_configs(db: Session = Depends(get_db), _: User = Depends(require_roles(UserRole.manager))):
    return automation_service.list_configs(db)


@router.post("/config", response_model=AutomationConfigResponse)
def create_config(
    payload: AutomationConfigCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.manager)),
):
    config = automation_service.create_config(db, payload.model_dump(mode="json"))
    audit_event(db, "automation_config_create", "automation_config", user_id=current_user.id, resource_id=config.id)
    return config


@router.get("/config/{config_id}", response_model=AutomationConfigResponse)
def get_config(config_id: int, db: Session = Depends(get_db), _: User = Depends(require_roles(UserRole.manager))):
    config = automation_service.get_config(db, config_id)
    if not config:
        raise HTTPException(status_code=404, detail="Automation config not found")
    return config


@router.patch("/config/{config_id}", response_model=AutomationConfigResponse)
def update_config(
    config_id: int,
    payload: AutomationConfigUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.manager)),
):
    # Every config column is NOT NULL, so an explicit null leaves the field unchanged.
    changes = payload.model_dump(exclude_unset=True, exclude_none=True, mode="json")
    existing = automation_service.get_config(db, config_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Automation config not found")
    warning = changes.get("warning_percentage", existing.warning_percentage)
    critical = changes.get("critical_percentage", existing.critical_percentage)
    if warning > critical:
        raise HTTPException(status_code=400, detail="warning_percentage must not exceed critical_percentage")

    config = automation_service.update_config(db, config_id, changes)
    audit_event(
        db,
        "automation_config_update",
        "automation_config",
        user_id=current_user.id,
        resource_id=config_id,
        details=",".join(sorted(changes)),
    )
    return config


@router.delete("/config/{config_id}")
def delete_config(
    config_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.manager)),
):
    if not automation_service.delete_config(db, config_id):
        raise HTTPException(status_code=404, detail="Automation config not found")
    audit_event(db, "automation_config_delete", "automation_config", user_id=current_user.id, resource_id=config_id)
    return {"status": "deleted", "id": config_id}


@router.post("/redistribute")
def redistribute(db: Session = Depends(get_db), current_user: User = Depends(require_roles(UserRole.manager))):
    config = automation_service.get_active_config(db)
    moved = redistribute_expired(db, config)
    for cliente, previous in moved:
        audit_event(
            db,
            "cliente_cascade",
            "cliente",
            user_id=current_user.id,
            resource_id=cliente.id,
            details=f"{previous}->{cliente.assigned_to}",
        )
    return {
        "enabled": config.auto_redistribute,
        "moved": [
            {"cliente_id": cliente.id, "from_user": previous, "to_user": cliente.assigned_to}
            for cliente, previous in moved
        ],
    }
