from datetime import datetime

from pydantic import BaseModel, Field


class VisitCreate(BaseModel):
    cliente_id: int
    property_id: str
    visited_at: datetime
    broker_id: int | None = None
    notes: str | None = None
    temperature: int | None = Field(default=None, ge=1, le=5)
    visit_description: str | None = None
    next_steps: str | None = None


class VisitResponse(BaseModel):
    id: int
    cliente_id: int
    user_id: int | None
    broker_id: int | None
    property_id: str
    visited_at: datetime
    notes: str | None
    temperature: int | None
    visit_description: str | None
    next_steps: str | None
    created_at: datetime

    class Config:
        from_attributes = True
