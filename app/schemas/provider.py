from __future__ import annotations

from datetime import time

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RegisterProviderPayload(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def _ensure_not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("name is required")
        return value.strip()


class ProviderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    approval_status: str


class SchedulePayload(BaseModel):
    start_time: time
    end_time: time
    slot_minutes: int = Field(default=30, gt=0, le=480)
    is_available: bool = True

    @model_validator(mode="after")
    def _check_window(self) -> "SchedulePayload":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ScheduleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    provider_id: str
    day_of_week: int
    start_time: time
    end_time: time
    slot_minutes: int
    is_available: bool


class DateAvailabilityPayload(BaseModel):
    is_available: bool


class DateAvailabilityResponse(BaseModel):
    provider_id: str
    date: str
    is_available: bool
    slots_created: int = 0
    slots_removed: int = 0
