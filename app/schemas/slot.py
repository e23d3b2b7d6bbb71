from __future__ import annotations

from datetime import date, datetime, time

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models.slot import SlotStatus


class SlotRecord(BaseModel):
    """A slot row as seen by the reservation services, validated at the store boundary."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    provider_id: str
    service_id: str | None = None
    slot_date: date
    slot_time: time
    status: SlotStatus
    held_by: str | None = None
    hold_expires_at: datetime | None = None
    booking_id: str | None = None

    @model_validator(mode="after")
    def _check_hold_fields(self) -> "SlotRecord":
        has_holder = self.held_by is not None
        has_deadline = self.hold_expires_at is not None
        if has_holder != has_deadline:
            raise ValueError("held_by and hold_expires_at must be set together")
        if has_holder != (self.status is SlotStatus.HELD):
            raise ValueError(f"hold fields present on a slot with status {self.status.value}")
        if self.booking_id is not None and self.status is not SlotStatus.BOOKED:
            raise ValueError("booking_id is only valid on booked slots")
        return self

    def is_held_by(self, user_id: str) -> bool:
        return self.status is SlotStatus.HELD and self.held_by == user_id

    def hold_expired(self, now: datetime) -> bool:
        return self.hold_expires_at is not None and self.hold_expires_at <= now


class SlotResponse(BaseModel):
    id: str
    provider_id: str
    service_id: str | None = None
    slot_date: date
    slot_time: time
    status: str

    @classmethod
    def from_record(cls, record: SlotRecord) -> "SlotResponse":
        return cls(
            id=record.id,
            provider_id=record.provider_id,
            service_id=record.service_id,
            slot_date=record.slot_date,
            slot_time=record.slot_time,
            status=record.status.value,
        )


class AvailableSlotsResponse(BaseModel):
    provider_id: str
    slot_date: date
    slots: list[SlotResponse] = Field(default_factory=list)
    status: str = "ok"


class HoldResponse(BaseModel):
    slot_id: str
    status: str
    hold_expires_at: datetime | None = None
    expires_in_sec: int | None = None
    message: str | None = None


class ReleaseResponse(BaseModel):
    slot_id: str
    status: str


class ConfirmHoldPayload(BaseModel):
    service_ids: list[str] = Field(default_factory=list)

    @field_validator("service_ids")
    @classmethod
    def _strip_ids(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item and item.strip()]


class ConfirmHoldResponse(BaseModel):
    slot_id: str
    status: str
    booking_id: str | None = None
    message: str | None = None


class SweepResponse(BaseModel):
    reclaimed: int
