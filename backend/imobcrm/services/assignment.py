import logging
from datetime import datetime, timedelta

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from imobcrm.models.automation import DistributionMethod, LeadAutomationConfig
from imobcrm.models.cliente import OPEN_STATUSES, Cliente, ClienteStatus, phone_digits
from imobcrm.models.user import User, UserRole
from imobcrm.services.automation import rotation_entries

logger = logging.getLogger(__name__)


def active_user_ids(db: Session) -> set[int]:
    return {row[0] for row in db.query(User.id).filter(User.is_active == True).all()}  # noqa: E712


def cascade_users(db: Session, config: LeadAutomationConfig) -> list[int]:
    """Active users of the cascade order, in that order."""
    active_ids = active_user_ids(db)
    order = []
    for item in config.cascade_user_order or []:
        try:
            user_id = int(item)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed cascade entry %r in config %s", item, config.id)
            continue
        if user_id in active_ids and user_id not in order:
            order.append(user_id)
    return order


def _candidates(db: Session, config: LeadAutomationConfig) -> list[tuple[int, float]]:
    active_ids = active_user_ids(db)
    entries = [(uid, weight) for uid, weight in rotation_entries(config) if uid in active_ids]
    if entries:
        return entries
    cascade = cascade_users(db, config)
    if cascade:
        return [(uid, 1.0) for uid in cascade]
    consultants = (
        db.query(User.id)
        .filter(User.role == UserRole.consultant.value, User.is_active == True)  # noqa: E712
        .order_by(User.id)
        .all()
    )
    return [(row[0], 1.0) for row in consultants]


def _open_counts(db: Session, user_ids: list[int]) -> dict[int, int]:
    rows = (
        db.query(Cliente.assigned_to, func.count(Cliente.id))
        .filter(
            Cliente.assigned_to.in_(user_ids),
            Cliente.status.in_([s.value for s in OPEN_STATUSES]),
        )
        .group_by(Cliente.assigned_to)
        .all()
    )
    counts = {uid: 0 for uid in user_ids}
    counts.update({uid: int(n) for uid, n in rows})
    return counts


def assign_consultant(db: Session, config: LeadAutomationConfig, exclude_id: int | None = None) -> int | None:
    candidates = _candidates(db, config)
    if exclude_id is not None and len(candidates) > 1:
        candidates = [c for c in candidates if c[0] != exclude_id]
    if not candidates:
        logger.warning("No active consultant available for distribution")
        return None

    method = config.distribution_method
    user_ids = [uid for uid, _ in candidates]

    if method == DistributionMethod.round_robin.value:
        last = (
            db.query(Cliente.assigned_to)
            .filter(Cliente.assigned_to.in_(user_ids))
            .order_by(Cliente.created_at.desc(), Cliente.id.desc())
            .first()
        )
        if not last:
            return user_ids[0]
        return user_ids[(user_ids.index(last[0]) + 1) % len(user_ids)]

    counts = _open_counts(db, user_ids)
    if method == DistributionMethod.weighted.value:
        weighted = [(uid, w) for uid, w in candidates if w > 0] or candidates
        # Lowest load relative to weight wins; ties go to the earlier rotation slot.
        return min(weighted, key=lambda c: counts[c[0]] / (c[1] or 1.0))[0]

    # Volume: the consultant with the fewest open clientes.
    return min(user_ids, key=lambda uid: counts[uid])


def normalize_phone(phone: str | None) -> str:
    return phone_digits(phone)


def normalize_name(name: str | None) -> str:
    return " ".join((name or "").lower().split())


def find_recurring(
    db: Session,
    config: LeadAutomationConfig,
    full_name: str,
    phone: str | None,
    email: str | None,
) -> Cliente | None:
    """Most recent cliente matching on any of the identification keys the config enables."""
    conditions = []
    if config.by_phone and phone:
        digits = normalize_phone(phone)
        if digits:
            conditions.append(Cliente.phone_digits == digits)
    if config.by_email and email:
        conditions.append(func.lower(Cliente.email) == email.lower())
    if config.by_name and normalize_name(full_name):
        conditions.append(func.lower(Cliente.full_name) == normalize_name(full_name))
    if not conditions:
        return None
    return db.query(Cliente).filter(or_(*conditions)).order_by(Cliente.created_at.desc(), Cliente.id.desc()).first()


def redistribute_expired(
    db: Session, config: LeadAutomationConfig, now: datetime | None = None
) -> list[tuple[Cliente, int | None]]:
    """Hand uncontacted clientes whose exclusivity window ran out to the next user in the cascade.

    Returns ``(cliente, previous_assignee)`` for every cliente that moved.
    """
    if not config.auto_redistribute:
        return []
    order = cascade_users(db, config)
    if not order:
        logger.warning("SLA cascade is on but config %s has no active cascade users", config.id)
        return []

    now = now or datetime.utcnow()
    deadline = now - timedelta(hours=config.cascade_sla_hours)
    expired = (
        db.query(Cliente)
        .filter(
            Cliente.status == ClienteStatus.sem_atendimento.value,
            Cliente.first_contact_at.is_(None),
            Cliente.assigned_to.isnot(None),
            func.coalesce(Cliente.assigned_at, Cliente.created_at) <= deadline,
        )
        .order_by(Cliente.created_at, Cliente.id)
        .all()
    )

    moved = []
    for cliente in expired:
        previous = cliente.assigned_to
        position = order.index(previous) if previous in order else -1
        target = order[(position + 1) % len(order)]
        if target == previous:
            continue
        cliente.assigned_to = target
        cliente.assigned_at = now
        moved.append((cliente, previous))
        logger.info("SLA cascade: cliente %s moved from user %s to user %s", cliente.id, previous, target)
    if moved:
        db.commit()
    return moved
