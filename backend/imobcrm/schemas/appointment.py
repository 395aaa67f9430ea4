from datetime import datetime

from pydantic import BaseModel

from imobcrm.models.appointment import AppointmentStatus, AppointmentType


class AppointmentCreate(BaseModel):
    cliente_id: int
    scheduled_at: datetime
    type: AppointmentType = AppointmentType.visita
    title: str | None = None
    broker_id: int | None = None
    notes: str | None = None
    location: str | None = None
    address: str | None = None


class AppointmentResponse(BaseModel):
    id: int
    cliente_id: int
    user_id: int | None
    broker_id: int | None
    title: str | None
    type: str
    status: str
    notes: str | None
    scheduled_at: datetime
    location: str | None
    address: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class AppointmentUpdate(BaseModel):
    status: AppointmentStatus | None = None
    scheduled_at: datetime | None = None
    broker_id: int | None = None
    notes: str | None = None
