from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from imobcrm.core.database import Base


class Goal(Base):
    __tablename__ = "goals"
    __table_args__ = (UniqueConstraint("user_id", "year", "month", name="uq_goals_user_period"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    period: Mapped[str] = mapped_column(String(20), default="mensal", nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)

    appointments: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    visits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sales: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Target conversion percentages (0-100) per funnel step.
    appointments_conversion: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    visits_conversion: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sales_conversion: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
