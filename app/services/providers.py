from __future__ import annotations

from datetime import date, time

from loguru import logger
from nanoid import generate
from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from app.core.errors import InvalidTransitionError, ProviderNotFoundError
from app.models.provider import ApprovalStatus, Provider, ProviderDateAvailability, ProviderSchedule
from app.services.db import db_session
from app.services.slot_generation import SlotGenerator


class ProviderService:
    def __init__(self, session_factory: sessionmaker[Session], generator: SlotGenerator) -> None:
        self.session_factory = session_factory
        self.generator = generator

    def register(self, *, name: str) -> Provider:
        provider = Provider(id=generate(size=12), name=name, approval_status=ApprovalStatus.PENDING.value)
        with db_session(self.session_factory) as session:
            session.add(provider)
        logger.info("Registered provider {provider_id} ({name})", provider_id=provider.id, name=name)
        return provider

    def get_provider(self, provider_id: str) -> Provider | None:
        with db_session(self.session_factory) as session:
            return session.get(Provider, provider_id)

    def require_bookable(self, provider_id: str) -> Provider:
        provider = self.get_provider(provider_id)
        if provider is None or provider.approval_status != ApprovalStatus.APPROVED.value:
            raise ProviderNotFoundError(provider_id)
        return provider

    def approve(self, provider_id: str) -> Provider:
        return self._transition(provider_id, ApprovalStatus.APPROVED)

    def reject(self, provider_id: str) -> Provider:
        return self._transition(provider_id, ApprovalStatus.REJECTED)

    def _transition(self, provider_id: str, target: ApprovalStatus) -> Provider:
        stmt = (
            update(Provider)
            .where(Provider.id == provider_id, Provider.approval_status == ApprovalStatus.PENDING.value)
            .values(approval_status=target.value)
            .execution_options(synchronize_session=False)
        )
        with db_session(self.session_factory) as session:
            changed = session.execute(stmt).rowcount == 1

        provider = self.get_provider(provider_id)
        if provider is None:
            raise ProviderNotFoundError(provider_id)
        if not changed:
            raise InvalidTransitionError(
                f"Provider {provider_id} is {provider.approval_status}; only pending providers can be {target.value}"
            )
        logger.info("Provider {provider_id} is now {status}", provider_id=provider_id, status=target.value)
        return provider

    def set_schedule(
        self,
        *,
        provider_id: str,
        day_of_week: int,
        start_time: time,
        end_time: time,
        slot_minutes: int = 30,
        is_available: bool = True,
    ) -> ProviderSchedule:
        if not 0 <= day_of_week <= 6:
            raise ValueError("day_of_week must be between 0 (Monday) and 6 (Sunday)")
        if self.get_provider(provider_id) is None:
            raise ProviderNotFoundError(provider_id)

        with db_session(self.session_factory) as session:
            stmt = select(ProviderSchedule).where(
                ProviderSchedule.provider_id == provider_id, ProviderSchedule.day_of_week == day_of_week
            )
            schedule = session.scalars(stmt).first()
            if schedule is None:
                schedule = ProviderSchedule(provider_id=provider_id, day_of_week=day_of_week)
                session.add(schedule)
            schedule.start_time = start_time
            schedule.end_time = end_time
            schedule.slot_minutes = slot_minutes
            schedule.is_available = is_available
        logger.debug("Updated schedule for provider {provider_id} day {day}", provider_id=provider_id, day=day_of_week)
        return schedule

    def set_date_availability(self, *, provider_id: str, day: date, is_available: bool) -> tuple[int, int]:
        """Enable or revoke a single date. Returns (slots_created, slots_removed)."""
        if self.get_provider(provider_id) is None:
            raise ProviderNotFoundError(provider_id)

        with db_session(self.session_factory) as session:
            stmt = select(ProviderDateAvailability).where(
                ProviderDateAvailability.provider_id == provider_id,
                ProviderDateAvailability.available_date == day,
            )
            override = session.scalars(stmt).first()
            if override is None:
                override = ProviderDateAvailability(provider_id=provider_id, available_date=day)
                session.add(override)
            override.is_available = is_available

        if is_available:
            return self.generator.generate(provider_id=provider_id, start=day, end=day), 0
        return 0, self.generator.prune(provider_id=provider_id, slot_date=day)
