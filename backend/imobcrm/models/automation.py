from datetime import datetime
import enum

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from imobcrm.core.database import Base


class DistributionMethod(str, enum.Enum):
    volume = "volume"
    round_robin = "round_robin"
    weighted = "weighted"


class LeadAutomationConfig(Base):
    __tablename__ = "lead_automation_configs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    distribution_method: Mapped[str] = mapped_column(String(20), default=DistributionMethod.volume.value, nullable=False)
    # Either plain user ids or {"user_id": n, "weight": w} entries.
    rotation_users: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    first_contact_sla: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    warning_percentage: Mapped[int] = mapped_column(Integer, default=75, nullable=False)
    critical_percentage: Mapped[int] = mapped_column(Integer, default=90, nullable=False)
    auto_redistribute: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    by_name: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    by_phone: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    by_email: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    keep_same_consultant: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    assign_new_consultant: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    cascade_sla_hours: Mapped[int] = mapped_column(Integer, default=24, nullable=False)
    cascade_user_order: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
