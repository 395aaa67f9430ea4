import logging
import os

from imobcrm import models  # noqa: F401
from imobcrm.core.database import Base, SessionLocal, engine
from imobcrm.core.logging import configure_logging
from imobcrm.core.security import get_password_hash
from imobcrm.models.user import User, UserDepartment, UserRole
from imobcrm.services.automation import get_active_config

logger = logging.getLogger("imobcrm.bootstrap")


def create_user(email: str, full_name: str, password: str, role: UserRole) -> User | None:
    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            logger.info("User already exists: %s", email)
            return None

        user = User(
            email=email,
            full_name=full_name,
            hashed_password=get_password_hash(password),
            role=role.value,
            department=UserDepartment.gestao.value if role == UserRole.manager else UserDepartment.atendimento.value,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Created %s: %s", role.value, email)
        return user
    finally:
        db.close()


def ensure_automation_config() -> None:
    db = SessionLocal()
    try:
        config = get_active_config(db)
        logger.info("Active automation config: %s (id=%s)", config.name, config.id)
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    Base.metadata.create_all(bind=engine)
    ensure_automation_config()
    # Do not hardcode credentials in the repo. Use env vars for local bootstrap.
    manager_email = os.getenv("BOOTSTRAP_MANAGER_EMAIL")
    manager_password = os.getenv("BOOTSTRAP_MANAGER_PASSWORD")
    if manager_email and manager_password:
        create_user(manager_email, "Gestor", manager_password, UserRole.manager)
    else:
        logger.warning("Bootstrap skipped. Set BOOTSTRAP_MANAGER_EMAIL and BOOTSTRAP_MANAGER_PASSWORD to create a manager.")
