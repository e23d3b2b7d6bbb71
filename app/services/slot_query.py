from __future__ import annotations

from datetime import date, timedelta

from loguru import logger

from app.models.slot import SlotStatus
from app.schemas.slot import SlotRecord
from app.services.providers import ProviderService
from app.services.slot_generation import SlotGenerator
from app.services.slot_store import SlotStore
from app.utils.time import Clock, SystemClock

DEFAULT_GENERATION_WINDOW_DAYS = 14


class SlotQueryService:
    def __init__(
        self,
        *,
        store: SlotStore,
        generator: SlotGenerator,
        providers: ProviderService,
        clock: Clock | None = None,
        generation_window_days: int = DEFAULT_GENERATION_WINDOW_DAYS,
    ) -> None:
        self.store = store
        self.generator = generator
        self.providers = providers
        self.clock = clock or SystemClock()
        self.generation_window_days = generation_window_days

    def available_slots(self, *, provider_id: str, slot_date: date) -> list[SlotRecord]:
        self.providers.require_bookable(provider_id)

        reclaimed = self.store.reclaim_expired(now=self.clock.now(), provider_id=provider_id, slot_date=slot_date)
        if reclaimed:
            logger.info(
                "Reclaimed {count} expired holds for provider {provider_id} on {slot_date}",
                count=reclaimed,
                provider_id=provider_id,
                slot_date=slot_date,
            )

        if self.store.count_slots(provider_id=provider_id, slot_date=slot_date) == 0:
            logger.debug(
                "No slots materialised for provider {provider_id} on {slot_date}; generating",
                provider_id=provider_id,
                slot_date=slot_date,
            )
            self.generator.generate(
                provider_id=provider_id,
                start=slot_date,
                end=slot_date + timedelta(days=self.generation_window_days),
            )

        return self.store.list_slots(provider_id=provider_id, slot_date=slot_date, status=SlotStatus.AVAILABLE)
