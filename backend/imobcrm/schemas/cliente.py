from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from imobcrm.models.cliente import ClienteSource, ClienteStatus, ContactMethod


class ClienteCreate(BaseModel):
    full_name: str = Field(min_length=1, max_length=120)
    phone: str = Field(min_length=1, max_length=30)
    email: EmailStr | None = None
    source: ClienteSource | None = None
    source_details: str | None = None
    preferred_contact: ContactMethod | None = None
    assigned_to: int | None = None
    broker_id: int | None = None
    has_whatsapp: bool | None = None


class ClienteUpdate(BaseModel):
    status: ClienteStatus | None = None
    assigned_to: int | None = None
    broker_id: int | None = None
    email: EmailStr | None = None
    phone: str | None = None
    preferred_contact: ContactMethod | None = None


class ClienteResponse(BaseModel):
    id: int
    full_name: str
    email: str | None
    phone: str
    source: str | None
    source_details: str | None
    preferred_contact: str | None
    status: str
    assigned_to: int | None
    broker_id: int | None
    has_whatsapp: bool | None
    first_contact_at: datetime | None
    is_recurring: bool = False
    recurring_of_id: int | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClienteCreateResponse(ClienteResponse):
    # True when the payload matched an earlier cliente; recurring_of_id points at it.
    recurring: bool = False


class BoardColumn(BaseModel):
    status: ClienteStatus
    count: int
    clientes: list[ClienteResponse]


class ClienteNoteCreate(BaseModel):
    text: str = Field(min_length=1)


class ClienteNoteResponse(BaseModel):
    id: int
    cliente_id: int
    user_id: int | None
    text: str
    created_at: datetime

    class Config:
        from_attributes = True


class SlaResponse(BaseModel):
    cliente_id: int
    level: str
    elapsed_minutes: float
    limit_minutes: int
    consumed: float
