from datetime import datetime
import enum
import re

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from imobcrm.core.database import Base


class ClienteSource(str, enum.Enum):
    facebook = "Facebook"
    facebook_ads = "Facebook Ads"
    site = "Site"
    indicacao = "Indicação"
    whatsapp = "WhatsApp"
    ligacao = "Ligação"
    instagram = "Instagram"
    portais = "Portais"
    google = "Google"
    outro = "Outro"


class ContactMethod(str, enum.Enum):
    whatsapp = "WhatsApp"
    email = "Email"
    telefone = "Telefone"
    presencial = "Presencial"


class ClienteStatus(str, enum.Enum):
    """Kanban columns, in board order."""

    sem_atendimento = "Sem Atendimento"
    nao_respondeu = "Não Respondeu"
    em_atendimento = "Em Atendimento"
    agendamento = "Agendamento"
    visita = "Visita"
    venda = "Venda"


OPEN_STATUSES = (
    ClienteStatus.sem_atendimento,
    ClienteStatus.nao_respondeu,
    ClienteStatus.em_atendimento,
    ClienteStatus.agendamento,
    ClienteStatus.visita,
)

_NON_DIGITS = re.compile(r"\D")


def phone_digits(phone: str | None) -> str:
    """Digits only, without the 55 country code on full international numbers."""
    digits = _NON_DIGITS.sub("", phone or "")
    if len(digits) in (12, 13) and digits.startswith("55"):
        digits = digits[2:]
    return digits


class Cliente(Base):
    __tablename__ = "clientes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    full_name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), index=True)
    phone: Mapped[str] = mapped_column(String(30), index=True, nullable=False)
    phone_digits: Mapped[str] = mapped_column(String(30), index=True, default="", nullable=False)
    source: Mapped[str | None] = mapped_column(String(40))
    source_details: Mapped[str | None] = mapped_column(Text)
    preferred_contact: Mapped[str | None] = mapped_column(String(20))
    status: Mapped[str] = mapped_column(String(40), default=ClienteStatus.sem_atendimento.value, nullable=False)
    assigned_to: Mapped[int | None] = mapped_column(ForeignKey("users.id"), index=True)
    # When the current assignee got the cliente; the SLA cascade counts from here.
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime)
    broker_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), index=True)
    has_whatsapp: Mapped[bool | None] = mapped_column()
    first_contact_at: Mapped[datetime | None] = mapped_column(DateTime)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurring_of_id: Mapped[int | None] = mapped_column(ForeignKey("clientes.id"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @validates("phone")
    def _sync_phone_digits(self, key, value):
        self.phone_digits = phone_digits(value)
        return value


class ClienteNote(Base):
    __tablename__ = "cliente_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    cliente_id: Mapped[int] = mapped_column(ForeignKey("clientes.id"), index=True, nullable=False)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
