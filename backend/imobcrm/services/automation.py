"""Lead automation configuration lifecycle.

At most one configuration is active at a time. Reading the active one when
none exists creates the default configuration, so callers can always rely on
getting a config back.
"""
import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from imobcrm.models.automation import DistributionMethod, LeadAutomationConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "Configuração Padrão"


def _deactivate_all(db: Session, keep_id: int | None = None) -> int:
    q = db.query(LeadAutomationConfig).filter(LeadAutomationConfig.active == True)  # noqa: E712
    if keep_id is not None:
        q = q.filter(LeadAutomationConfig.id != keep_id)
    changed = q.update({LeadAutomationConfig.active: False}, synchronize_session="fetch")
    if changed:
        logger.debug("Deactivated %d automation configs", changed)
    return changed


def create_default_config(db: Session) -> LeadAutomationConfig:
    config = LeadAutomationConfig(
        name=DEFAULT_CONFIG_NAME,
        active=True,
        distribution_method=DistributionMethod.volume.value,
        rotation_users=[],
        cascade_user_order=[],
    )
    db.add(config)
    db.commit()
    db.refresh(config)
    logger.info("Created default automation config id=%s", config.id)
    return config


def get_active_config(db: Session) -> LeadAutomationConfig:
    config = (
        db.query(LeadAutomationConfig)
        .filter(LeadAutomationConfig.active == True)  # noqa: E712
        .order_by(LeadAutomationConfig.updated_at.desc(), LeadAutomationConfig.id.desc())
        .first()
    )
    if config:
        return config
    logger.info("No active automation config found, creating the default one")
    return create_default_config(db)


def list_configs(db: Session) -> list[LeadAutomationConfig]:
    return db.query(LeadAutomationConfig).order_by(LeadAutomationConfig.created_at, LeadAutomationConfig.id).all()


def get_config(db: Session, config_id: int) -> LeadAutomationConfig | None:
    return db.query(LeadAutomationConfig).filter(LeadAutomationConfig.id == config_id).first()


def create_config(db: Session, data: dict[str, Any]) -> LeadAutomationConfig:
    if data.get("active", True):
        _deactivate_all(db)
    config = LeadAutomationConfig(**data)
    db.add(config)
    db.commit()
    db.refresh(config)
    logger.info("Created automation config id=%s active=%s", config.id, config.active)
    return config


def update_config(db: Session, config_id: int, data: dict[str, Any]) -> LeadAutomationConfig | None:
    config = get_config(db, config_id)
    if not config:
        return None
    if data.get("active"):
        _deactivate_all(db, keep_id=config.id)
    for key, value in data.items():
        setattr(config, key, value)
    config.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(config)
    logger.info("Updated automation config id=%s", config.id)
    return config


def delete_config(db: Session, config_id: int) -> bool:
    config = get_config(db, config_id)
    if not config:
        return False
    db.delete(config)
    db.commit()
    logger.info("Deleted automation config id=%s", config_id)
    return True


def rotation_entries(config: LeadAutomationConfig) -> list[tuple[int, float]]:
    """Normalized ``(user_id, weight)`` pairs from the rotation list, in order."""
    entries = []
    for item in config.rotation_users or []:
        if isinstance(item, dict):
            user_id = item.get("user_id") or item.get("id")
            weight = item.get("weight", 1)
        else:
            user_id, weight = item, 1
        try:
            entries.append((int(user_id), max(float(weight), 0.0)))
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed rotation entry %r in config %s", item, config.id)
    return entries
