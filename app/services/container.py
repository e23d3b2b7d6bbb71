from __future__ import annotations

from datetime import timedelta
from typing import Callable

from sqlalchemy.orm import Session, sessionmaker

from app.core.config import AppConfig, get_settings
from app.services.booking_flow import BookingFlow
from app.services.bookings import BookingService
from app.services.providers import ProviderService
from app.services.reservations import ReservationManager
from app.services.slot_generation import SlotGenerator
from app.services.slot_query import SlotQueryService
from app.services.slot_store import SlotStore
from app.services.sweeper import HoldSweeper
from app.utils.time import Clock, SystemClock


class ServiceContainer:
    """Explicitly wired services for one store; no module-level singletons."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: AppConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()
        self.store = SlotStore(session_factory)
        self.generator = SlotGenerator(session_factory, self.store)
        self.providers = ProviderService(session_factory, self.generator)
        self.bookings = BookingService(session_factory)
        self.slot_query = SlotQueryService(
            store=self.store,
            generator=self.generator,
            providers=self.providers,
            clock=self.clock,
            generation_window_days=self.settings.generation_window_days,
        )
        self.reservations = ReservationManager(
            store=self.store,
            booking_handoff=self.bookings,
            clock=self.clock,
            hold_duration=timedelta(minutes=self.settings.hold_duration_minutes),
            release_retry_attempts=self.settings.release_retry_attempts,
            release_retry_backoff_sec=self.settings.release_retry_backoff_sec,
        )
        self.sweeper = HoldSweeper(self.store, clock=self.clock)

    def booking_flow(self, user_id: str, on_expired: Callable[[str], None] | None = None) -> BookingFlow:
        return BookingFlow(
            user_id=user_id,
            manager=self.reservations,
            clock=self.clock,
            tick_seconds=self.settings.countdown_tick_seconds,
            on_expired=on_expired,
        )
