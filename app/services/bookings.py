from __future__ import annotations

from loguru import logger
from nanoid import generate
from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from app.models.booking import Booking
from app.schemas.slot import SlotRecord
from app.services.db import db_session


class BookingService:
    """Creates the booking record a confirmed hold hands off to."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def create_booking(self, *, slot: SlotRecord, user_id: str, service_ids: list[str]) -> str:
        booking = Booking(
            id=f"bk_{generate(size=12)}",
            slot_id=slot.id,
            user_id=user_id,
            provider_id=slot.provider_id,
            service_ids=list(service_ids) or ([slot.service_id] if slot.service_id else []),
            status="confirmed",
        )
        with db_session(self.session_factory) as session:
            session.add(booking)
        logger.info("Created booking {booking_id} for slot {slot_id}", booking_id=booking.id, slot_id=slot.id)
        return booking.id

    def cancel_booking(self, booking_id: str) -> None:
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id)
            .values(status="cancelled")
            .execution_options(synchronize_session=False)
        )
        with db_session(self.session_factory) as session:
            session.execute(stmt)
        logger.info("Cancelled booking {booking_id}", booking_id=booking_id)

    def get_booking(self, booking_id: str) -> Booking | None:
        with db_session(self.session_factory) as session:
            return session.get(Booking, booking_id)

    def list_for_user(self, user_id: str) -> list[Booking]:
        stmt = select(Booking).where(Booking.user_id == user_id).order_by(Booking.created_at.desc())
        with db_session(self.session_factory) as session:
            return list(session.scalars(stmt))
