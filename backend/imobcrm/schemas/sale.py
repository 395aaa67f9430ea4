from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class SaleCreate(BaseModel):
    cliente_id: int
    value: Decimal = Field(gt=0)
    sold_at: datetime
    consultant_id: int | None = None
    broker_id: int | None = None
    notes: str | None = None
    property_type: str | None = None
    builder_name: str | None = None
    development_name: str | None = None
    block: str | None = None
    unit: str | None = None
    payment_method: str | None = None
    commission: Decimal | None = None
    bonus: Decimal | None = None


class SaleResponse(BaseModel):
    id: int
    cliente_id: int
    user_id: int | None
    consultant_id: int | None
    broker_id: int | None
    value: Decimal
    sold_at: datetime
    notes: str | None
    property_type: str | None
    builder_name: str | None
    development_name: str | None
    block: str | None
    unit: str | None
    payment_method: str | None
    commission: Decimal | None
    bonus: Decimal | None
    total_commission: Decimal | None
    created_at: datetime

    class Config:
        from_attributes = True
