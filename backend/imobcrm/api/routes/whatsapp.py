from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from imobcrm.core.database import get_db
from imobcrm.core.deps import get_current_user, is_manager
from imobcrm.models.user import User
from imobcrm.models.whatsapp import WhatsappInstance
from imobcrm.schemas.whatsapp import InstanceActionResponse, InstanceCreate, InstanceResponse
from imobcrm.services import whatsapp as whatsapp_service
from imobcrm.services.audit import audit_event

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])


def get_client() -> whatsapp_service.EvolutionClient:
    return whatsapp_service.EvolutionClient()


def _owned_instance(db: Session, instance_name: str, user: User) -> WhatsappInstance:
    instance = whatsapp_service.get_instance(db, instance_name)
    if not instance:
        raise HTTPException(status_code=404, detail="Instance not found")
    if instance.user_id != user.id and not is_manager(user):
        raise HTTPException(status_code=403, detail="Instance belongs to another user")
    return instance


@router.post("/instances", response_model=InstanceActionResponse)
def create_instance(
    payload: InstanceCreate,
    db: Session = Depends(get_db),
    client: whatsapp_service.EvolutionClient = Depends(get_client),
    current_user: User = Depends(get_current_user),
):
    if whatsapp_service.get_instance(db, payload.instance_name):
        raise HTTPException(status_code=400, detail="Instance name already in use")
    instance, result = whatsapp_service.create_instance(db, client, payload.instance_name, current_user.id)
    audit_event(db, "whatsapp_instance_create", "whatsapp_instance", user_id=current_user.id, resource_id=instance.id)
    return {"instance": instance, "provider": result}


@router.get("/instances", response_model=list[InstanceResponse])
def list_instances(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    q = db.query(WhatsappInstance)
    if not is_manager(current_user):
        q = q.filter(WhatsappInstance.user_id == current_user.id)
    return q.order_by(WhatsappInstance.instance_name).all()


@router.post("/instances/{instance_name}/connect", response_model=InstanceActionResponse)
def connect_instance(
    instance_name: str,
    db: Session = Depends(get_db),
    client: whatsapp_service.EvolutionClient = Depends(get_client),
    current_user: User = Depends(get_current_user),
):
    instance = _owned_instance(db, instance_name, current_user)
    result = whatsapp_service.connect_instance(db, client, instance)
    return {"instance": instance, "provider": result}


@router.post("/instances/{instance_name}/refresh", response_model=InstanceActionResponse)
def refresh_instance(
    instance_name: str,
    db: Session = Depends(get_db),
    client: whatsapp_service.EvolutionClient = Depends(get_client),
    current_user: User = Depends(get_current_user),
):
    instance = _owned_instance(db, instance_name, current_user)
    result = whatsapp_service.refresh_instance(db, client, instance)
    return {"instance": instance, "provider": result}


@router.post("/instances/{instance_name}/disconnect", response_model=InstanceActionResponse)
def disconnect_instance(
    instance_name: str,
    db: Session = Depends(get_db),
    client: whatsapp_service.EvolutionClient = Depends(get_client),
    current_user: User = Depends(get_current_user),
):
    instance = _owned_instance(db, instance_name, current_user)
    result = whatsapp_service.disconnect_instance(db, client, instance)
    audit_event(db, "whatsapp_instance_disconnect", "whatsapp_instance", user_id=current_user.id, resource_id=instance.id)
    return {"instance": instance, "provider": result}
