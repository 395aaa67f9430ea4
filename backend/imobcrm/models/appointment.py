from datetime import datetime
import enum

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from imobcrm.core.database import Base


class AppointmentType(str, enum.Enum):
    visita = "Visita"
    reuniao = "Reunião"
    atendimento = "Atendimento"
    ligacao = "Ligação"
    video_chamada = "Vídeo Chamada"


class AppointmentStatus(str, enum.Enum):
    agendado = "Agendado"
    confirmado = "Confirmado"
    em_andamento = "Em Andamento"
    concluido = "Concluído"
    cancelado = "Cancelado"
    nao_compareceu = "Não Compareceu"
    reagendado = "Reagendado"


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    cliente_id: Mapped[int] = mapped_column(ForeignKey("clientes.id"), index=True, nullable=False)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), index=True)
    broker_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), index=True)
    title: Mapped[str | None] = mapped_column(String(160))
    type: Mapped[str] = mapped_column(String(40), default=AppointmentType.visita.value, nullable=False)
    status: Mapped[str] = mapped_column(String(40), default=AppointmentStatus.agendado.value, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    location: Mapped[str | None] = mapped_column(String(255))
    address: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False, index=True)
