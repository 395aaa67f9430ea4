import logging
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from imobcrm.models.cliente import Cliente, ClienteStatus
from imobcrm.models.user import User, UserRole
from imobcrm.services.assignment import assign_consultant, find_recurring
from imobcrm.services.automation import get_active_config

logger = logging.getLogger(__name__)

BOARD_ORDER = list(ClienteStatus)

# Roles that see every cliente; everyone else only sees their own.
GLOBAL_ROLES = {UserRole.manager.value, UserRole.marketing.value}
BROKER_ROLES = {
    UserRole.broker_senior.value,
    UserRole.broker_junior.value,
    UserRole.broker_trainee.value,
    UserRole.executive.value,
}


def visible_clientes(db: Session, user: User) -> Query:
    q = db.query(Cliente)
    if user.role in GLOBAL_ROLES:
        return q
    if user.role in BROKER_ROLES:
        return q.filter(Cliente.broker_id == user.id)
    return q.filter(or_(Cliente.assigned_to == user.id, Cliente.broker_id == user.id))


def can_access(user: User, cliente: Cliente) -> bool:
    if user.role in GLOBAL_ROLES:
        return True
    return user.id in (cliente.assigned_to, cliente.broker_id)


def _recurring_assignee(db: Session, config, previous: int | None) -> int | None:
    if previous is not None and config.keep_same_consultant and not config.assign_new_consultant:
        owner = db.query(User).filter(User.id == previous).first()
        if owner is not None and owner.is_active:
            return previous
        logger.info("Previous consultant %s is no longer active, redistributing", previous)
    return assign_consultant(db, config, exclude_id=previous)


def create_cliente(db: Session, data: dict, now: datetime | None = None) -> tuple[Cliente, bool]:
    """Create a cliente. Returns ``(cliente, recurring)``.

    A returning lead gets its own row linked to the cliente it matched; the
    earlier cliente is left exactly as it was.
    """
    config = get_active_config(db)
    existing = find_recurring(db, config, data["full_name"], data.get("phone"), data.get("email"))

    cliente = Cliente(**data)
    if existing is not None:
        cliente.is_recurring = True
        cliente.recurring_of_id = existing.recurring_of_id or existing.id
        if cliente.assigned_to is None:
            cliente.assigned_to = _recurring_assignee(db, config, existing.assigned_to)
    elif cliente.assigned_to is None:
        cliente.assigned_to = assign_consultant(db, config)
    if cliente.assigned_to is not None:
        cliente.assigned_at = now or datetime.utcnow()

    db.add(cliente)
    db.commit()
    db.refresh(cliente)
    if existing is not None:
        logger.info(
            "Recurring cliente id=%s (of %s) assigned_to=%s", cliente.id, cliente.recurring_of_id, cliente.assigned_to
        )
    else:
        logger.info("Created cliente id=%s assigned_to=%s", cliente.id, cliente.assigned_to)
    return cliente, existing is not None


def move_cliente(cliente: Cliente, status: ClienteStatus, now: datetime | None = None) -> Cliente:
    """Kanban move; leaving the first column counts as the first contact."""
    if cliente.status == status.value:
        return cliente
    if (
        cliente.status == ClienteStatus.sem_atendimento.value
        and status != ClienteStatus.sem_atendimento
        and cliente.first_contact_at is None
    ):
        cliente.first_contact_at = now or datetime.utcnow()
    logger.debug("Cliente %s: %s -> %s", cliente.id, cliente.status, status.value)
    cliente.status = status.value
    cliente.updated_at = now or datetime.utcnow()
    return cliente


def advance_cliente(cliente: Cliente, status: ClienteStatus, now: datetime | None = None) -> Cliente:
    """Move forward along the funnel only; a sold cliente stays sold."""
    try:
        current = BOARD_ORDER.index(ClienteStatus(cliente.status))
    except ValueError:
        current = -1
    if BOARD_ORDER.index(status) > current:
        move_cliente(cliente, status, now)
    return cliente


def board(clientes: list[Cliente]) -> list[tuple[ClienteStatus, list[Cliente]]]:
    columns: dict[str, list[Cliente]] = {status.value: [] for status in BOARD_ORDER}
    for cliente in clientes:
        columns.setdefault(cliente.status, []).append(cliente)
    return [(status, columns[status.value]) for status in BOARD_ORDER]
