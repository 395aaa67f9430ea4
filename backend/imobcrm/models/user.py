from datetime import datetime
import enum

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from imobcrm.core.database import Base


class UserRole(str, enum.Enum):
    manager = "manager"
    marketing = "marketing"
    consultant = "consultant"
    broker_senior = "broker-senior"
    broker_junior = "broker-junior"
    broker_trainee = "broker-trainee"
    executive = "executive"


class UserDepartment(str, enum.Enum):
    gestao = "Gestão"
    marketing = "Marketing"
    vendas = "Vendas"
    atendimento = "Central de Atendimento"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    full_name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30))
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    # Plain string: legacy rows may carry roles the dashboard does not know about.
    role: Mapped[str] = mapped_column(String(40), default=UserRole.consultant.value, nullable=False)
    department: Mapped[str] = mapped_column(String(60), default=UserDepartment.atendimento.value, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    failed_login_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    locked_until: Mapped[datetime | None] = mapped_column(DateTime)
    session_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
