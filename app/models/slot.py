from __future__ import annotations

import enum
from datetime import date, datetime, time

from sqlalchemy import CheckConstraint, Date, Index, String, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.utils.time import utcnow

from .base import Base, UTCDateTime


class SlotStatus(str, enum.Enum):
    AVAILABLE = "available"
    HELD = "held"
    BOOKED = "booked"
    BLOCKED = "blocked"


class Slot(Base):
    __table_args__ = (
        UniqueConstraint("provider_id", "slot_date", "slot_time", name="uq_slot_provider_date_time"),
        CheckConstraint(
            "(status = 'held' AND held_by IS NOT NULL AND hold_expires_at IS NOT NULL)"
            " OR (status != 'held' AND held_by IS NULL AND hold_expires_at IS NULL)",
            name="ck_slot_hold_fields",
        ),
        Index("ix_slot_provider_date_status", "provider_id", "slot_date", "status"),
        Index("ix_slot_status_expires", "status", "hold_expires_at"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    provider_id: Mapped[str] = mapped_column(String(32), nullable=False)
    service_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    slot_date: Mapped[date] = mapped_column(Date, nullable=False)
    slot_time: Mapped[time] = mapped_column(Time, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=SlotStatus.AVAILABLE.value)
    held_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hold_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    booking_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
