from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from imobcrm.models.automation import DistributionMethod


class AutomationConfigBase(BaseModel):
    distribution_method: DistributionMethod = DistributionMethod.volume
    rotation_users: list[Any] = Field(default_factory=list)
    first_contact_sla: int = Field(default=30, ge=1)
    warning_percentage: int = Field(default=75, ge=1, le=100)
    critical_percentage: int = Field(default=90, ge=1, le=100)
    auto_redistribute: bool = False
    by_name: bool = True
    by_phone: bool = True
    by_email: bool = True
    keep_same_consultant: bool = True
    assign_new_consultant: bool = False
    cascade_sla_hours: int = Field(default=24, ge=1)
    cascade_user_order: list[int] = Field(default_factory=list)


class AutomationConfigCreate(AutomationConfigBase):
    name: str = Field(min_length=1, max_length=120)
    active: bool = True

    @model_validator(mode="after")
    def _check_thresholds(self):
        if self.warning_percentage > self.critical_percentage:
            raise ValueError("warning_percentage must not exceed critical_percentage")
        return self


class AutomationConfigUpdate(BaseModel):
    name: str | None = None
    active: bool | None = None
    distribution_method: DistributionMethod | None = None
    rotation_users: list[Any] | None = None
    first_contact_sla: int | None = Field(default=None, ge=1)
    warning_percentage: int | None = Field(default=None, ge=1, le=100)
    critical_percentage: int | None = Field(default=None, ge=1, le=100)
    auto_redistribute: bool | None = None
    by_name: bool | None = None
    by_phone: bool | None = None
    by_email: bool | None = None
    keep_same_consultant: bool | None = None
    assign_new_consultant: bool | None = None
    cascade_sla_hours: int | None = Field(default=None, ge=1)
    cascade_user_order: list[int] | None = None


class AutomationConfigResponse(AutomationConfigBase):
    id: int
    name: str
    active: bool
    distribution_method: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
