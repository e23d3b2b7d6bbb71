from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    slot_id: str
    provider_id: str
    service_ids: list[str]
    status: str
    created_at: datetime
