from datetime import datetime
import enum

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from imobcrm.core.database import Base


class InstanceState(str, enum.Enum):
    disconnected = "disconnected"
    connecting = "connecting"
    awaiting_qr = "awaiting_qr"
    connected = "connected"
    error = "error"


class WhatsappInstance(Base):
    __tablename__ = "whatsapp_instances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    instance_name: Mapped[str] = mapped_column(String(120), unique=True, index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    state: Mapped[str] = mapped_column(String(20), default=InstanceState.disconnected.value, nullable=False)
    qr_code_base64: Mapped[str | None] = mapped_column(Text)
    remote_jid: Mapped[str | None] = mapped_column(String(120))
    last_error: Mapped[str | None] = mapped_column(Text)
    last_connection: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
