import logging

from sqlalchemy.orm import Session

from imobcrm.models.audit import AuditLog

logger = logging.getLogger(__name__)


def audit_event(
    db: Session,
    action: str,
    resource: str,
    user_id: int | None = None,
    resource_id: int | None = None,
    ip_address: str | None = None,
    details: str | None = None,
) -> None:
    entry = AuditLog(
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        ip_address=ip_address,
        details=details,
    )
    db.add(entry)
    db.commit()
    logger.debug("audit %s %s#%s by user %s", action, resource, resource_id, user_id)
