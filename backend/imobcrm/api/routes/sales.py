from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session

from imobcrm.api.routes.clientes import get_cliente_or_404
from imobcrm.core.database import get_db
from imobcrm.core.deps import get_current_user
from imobcrm.models.cliente import ClienteStatus
from imobcrm.models.sale import Sale
from imobcrm.models.user import User
from imobcrm.schemas.sale import SaleCreate, SaleResponse
from imobcrm.services.audit import audit_event
from imobcrm.services.clientes import GLOBAL_ROLES, advance_cliente

router = APIRouter(prefix="/sales", tags=["sales"])


@router.post("", response_model=SaleResponse)
def create_sale(payload: SaleCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    cliente = get_cliente_or_404(db, payload.cliente_id, current_user)
    sale = Sale(**payload.model_dump(), user_id=current_user.id)
    if sale.consultant_id is None:
        sale.consultant_id = cliente.assigned_to
    if sale.broker_id is None:
        sale.broker_id = cliente.broker_id
    if sale.commission is not None or sale.bonus is not None:
        sale.total_commission = (sale.commission or 0) + (sale.bonus or 0)
    db.add(sale)
    advance_cliente(cliente, ClienteStatus.venda)
    db.commit()
    db.refresh(sale)
    audit_event(db, "sale_create", "sale", user_id=current_user.id, resource_id=sale.id, details=f"value={sale.value}")
    return sale


@router.get("", response_model=list[SaleResponse])
def list_sales(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    q = db.query(Sale)
    if current_user.role not in GLOBAL_ROLES:
        q = q.filter(or_(Sale.user_id == current_user.id, Sale.broker_id == current_user.id, Sale.consultant_id == current_user.id))
    return q.order_by(Sale.sold_at.desc()).all()
