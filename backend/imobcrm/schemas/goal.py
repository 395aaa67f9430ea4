from datetime import datetime

from pydantic import BaseModel, Field


class GoalUpsert(BaseModel):
    user_id: int
    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    appointments: int | None = Field(default=None, ge=0)
    visits: int | None = Field(default=None, ge=0)
    sales: int | None = Field(default=None, ge=0)
    appointments_conversion: int | None = Field(default=None, ge=0, le=100)
    visits_conversion: int | None = Field(default=None, ge=0, le=100)
    sales_conversion: int | None = Field(default=None, ge=0, le=100)


class GoalResponse(BaseModel):
    id: int
    user_id: int
    period: str
    year: int
    month: int
    appointments: int
    visits: int
    sales: int
    appointments_conversion: int
    visits_conversion: int
    sales_conversion: int
    updated_at: datetime

    class Config:
        from_attributes = True


class GoalProgressItem(BaseModel):
    name: str
    target: float
    actual: float
    achieved: float


class GoalProgressResponse(BaseModel):
    user_id: int
    year: int
    month: int
    items: list[GoalProgressItem]
