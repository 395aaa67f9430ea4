from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from imobcrm.core.database import get_db
from imobcrm.core.deps import require_roles
from imobcrm.models.audit import AuditLog
from imobcrm.models.user import User, UserRole
from imobcrm.schemas.audit import AuditLogResponse

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=list[AuditLogResponse])
def list_audit_logs(
    resource: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(UserRole.manager)),
):
    q = db.query(AuditLog)
    if resource:
        q = q.filter(AuditLog.resource == resource)
    return q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
