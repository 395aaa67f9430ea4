from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class InstanceCreate(BaseModel):
    instance_name: str = Field(min_length=3, max_length=120, pattern=r"^[A-Za-z0-9_-]+$")


class InstanceResponse(BaseModel):
    id: int
    instance_name: str
    user_id: int
    state: str
    qr_code_base64: str | None
    remote_jid: str | None
    last_error: str | None
    last_connection: datetime | None
    updated_at: datetime

    class Config:
        from_attributes = True


class InstanceActionResponse(BaseModel):
    instance: InstanceResponse
    provider: dict[str, Any]
