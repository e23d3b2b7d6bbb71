from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from app.models.provider import ProviderDateAvailability, ProviderSchedule
from app.services.db import db_session
from app.services.slot_store import SlotStore


def iterate_slot_times(start: time, end: time, slot_minutes: int) -> Iterable[time]:
    """Start times of every whole slot that fits in [start, end)."""
    anchor = date(2000, 1, 1)
    current = datetime.combine(anchor, start)
    window_end = datetime.combine(anchor, end)
    step = timedelta(minutes=slot_minutes)
    while current + step <= window_end:
        yield current.time()
        current += step


def iterate_dates(start: date, end: date) -> Iterable[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


class SlotGenerator:
    """Materialises slots from a provider's weekly schedule and per-date overrides.

    Generation is idempotent: it only inserts (date, time) pairs the store does
    not already have, so it is safe to re-trigger for any window.
    """

    def __init__(self, session_factory: sessionmaker[Session], store: SlotStore) -> None:
        self.session_factory = session_factory
        self.store = store

    def candidate_times(self, *, provider_id: str, start: date, end: date) -> list[tuple[date, time]]:
        with db_session(self.session_factory) as session:
            schedules = {
                row.day_of_week: row
                for row in session.scalars(select(ProviderSchedule).where(ProviderSchedule.provider_id == provider_id))
            }
            overrides = {
                row.available_date: row.is_available
                for row in session.scalars(
                    select(ProviderDateAvailability).where(
                        ProviderDateAvailability.provider_id == provider_id,
                        ProviderDateAvailability.available_date >= start,
                        ProviderDateAvailability.available_date <= end,
                    )
                )
            }

        candidates: list[tuple[date, time]] = []
        for day in iterate_dates(start, end):
            if overrides.get(day) is False:
                continue
            schedule = schedules.get(day.weekday())
            if schedule is None or not schedule.is_available:
                continue
            candidates.extend(
                (day, slot_time)
                for slot_time in iterate_slot_times(schedule.start_time, schedule.end_time, schedule.slot_minutes)
            )
        return candidates

    def generate(self, *, provider_id: str, start: date, end: date) -> int:
        if end < start:
            raise ValueError("end date must not be before start date")
        candidates = self.candidate_times(provider_id=provider_id, start=start, end=end)
        created = self.store.add_missing_slots(provider_id=provider_id, candidates=candidates)
        logger.info(
            "Generated {created} slots for provider {provider_id} between {start} and {end}",
            created=created,
            provider_id=provider_id,
            start=start,
            end=end,
        )
        return created

    def prune(self, *, provider_id: str, slot_date: date) -> int:
        """Remove unbooked, unheld slots for a date whose availability was revoked."""
        removed = self.store.delete_available(provider_id=provider_id, slot_date=slot_date)
        logger.info(
            "Pruned {removed} available slots for provider {provider_id} on {slot_date}",
            removed=removed,
            provider_id=provider_id,
            slot_date=slot_date,
        )
        return removed
