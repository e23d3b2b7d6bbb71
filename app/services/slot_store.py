from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, time
from typing import Generator, Iterable

from loguru import logger
from nanoid import generate
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from app.core.errors import SlotStoreUnavailableError
from app.models.slot import Slot, SlotStatus
from app.schemas.slot import SlotRecord
from app.services.db import db_session

INSERT_ATTEMPTS = 3


class SlotStore:
    """Typed access to the slot table.

    Every mutation is a single conditional UPDATE in its own short transaction;
    the WHERE clause is the compare-and-set predicate and ``rowcount`` tells the
    caller whether it won. Nothing here reads a row and then writes it back.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        try:
            with db_session(self.session_factory) as session:
                yield session
        except (OperationalError, PoolTimeoutError) as exc:
            logger.warning("Slot store unavailable: {error}", error=exc)
            raise SlotStoreUnavailableError() from exc

    @staticmethod
    def _to_record(row: Slot) -> SlotRecord:
        return SlotRecord.model_validate(row)

    # Reads

    def get_slot(self, slot_id: str) -> SlotRecord | None:
        with self._session() as session:
            row = session.get(Slot, slot_id)
            return self._to_record(row) if row else None

    def list_slots(
        self,
        *,
        provider_id: str,
        slot_date: date,
        status: SlotStatus | None = None,
    ) -> list[SlotRecord]:
        stmt = select(Slot).where(Slot.provider_id == provider_id, Slot.slot_date == slot_date)
        if status is not None:
            stmt = stmt.where(Slot.status == status.value)
        stmt = stmt.order_by(Slot.slot_time.asc())
        with self._session() as session:
            return [self._to_record(row) for row in session.scalars(stmt)]

    def count_slots(self, *, provider_id: str, slot_date: date) -> int:
        stmt = select(func.count()).select_from(Slot).where(
            Slot.provider_id == provider_id, Slot.slot_date == slot_date
        )
        with self._session() as session:
            return session.scalar(stmt) or 0

    def holds_for_user(self, user_id: str) -> list[SlotRecord]:
        stmt = select(Slot).where(Slot.status == SlotStatus.HELD.value, Slot.held_by == user_id)
        with self._session() as session:
            return [self._to_record(row) for row in session.scalars(stmt)]

    # Conditional updates

    def try_hold(self, *, slot_id: str, user_id: str, deadline: datetime) -> bool:
        stmt = (
            update(Slot)
            .where(Slot.id == slot_id, Slot.status == SlotStatus.AVAILABLE.value)
            .values(status=SlotStatus.HELD.value, held_by=user_id, hold_expires_at=deadline)
            .execution_options(synchronize_session=False)
        )
        with self._session() as session:
            return session.execute(stmt).rowcount == 1

    def release(self, *, slot_id: str, user_id: str) -> bool:
        stmt = (
            update(Slot)
            .where(Slot.id == slot_id, Slot.status == SlotStatus.HELD.value, Slot.held_by == user_id)
            .values(status=SlotStatus.AVAILABLE.value, held_by=None, hold_expires_at=None)
            .execution_options(synchronize_session=False)
        )
        with self._session() as session:
            return session.execute(stmt).rowcount == 1

    def mark_booked(self, *, slot_id: str, user_id: str, booking_id: str, now: datetime) -> bool:
        stmt = (
            update(Slot)
            .where(
                Slot.id == slot_id,
                Slot.status == SlotStatus.HELD.value,
                Slot.held_by == user_id,
                Slot.hold_expires_at > now,
            )
            .values(status=SlotStatus.BOOKED.value, held_by=None, hold_expires_at=None, booking_id=booking_id)
            .execution_options(synchronize_session=False)
        )
        with self._session() as session:
            return session.execute(stmt).rowcount == 1

    def reclaim_expired(
        self,
        *,
        now: datetime,
        provider_id: str | None = None,
        slot_date: date | None = None,
    ) -> int:
        stmt = update(Slot).where(Slot.status == SlotStatus.HELD.value, Slot.hold_expires_at <= now)
        if provider_id is not None:
            stmt = stmt.where(Slot.provider_id == provider_id)
        if slot_date is not None:
            stmt = stmt.where(Slot.slot_date == slot_date)
        stmt = stmt.values(
            status=SlotStatus.AVAILABLE.value, held_by=None, hold_expires_at=None
        ).execution_options(synchronize_session=False)
        with self._session() as session:
            return session.execute(stmt).rowcount

    # Materialisation

    def add_missing_slots(
        self,
        *,
        provider_id: str,
        candidates: Iterable[tuple[date, time]],
        service_id: str | None = None,
    ) -> int:
        """Insert the (date, time) pairs that do not exist yet; returns how many were created."""
        wanted = set(candidates)
        if not wanted:
            return 0
        dates = {slot_date for slot_date, _ in wanted}

        for attempt in range(1, INSERT_ATTEMPTS + 1):
            try:
                with self._session() as session:
                    existing_stmt = select(Slot.slot_date, Slot.slot_time).where(
                        Slot.provider_id == provider_id, Slot.slot_date.in_(dates)
                    )
                    existing = {(row.slot_date, row.slot_time) for row in session.execute(existing_stmt)}
                    missing = sorted(wanted - existing)
                    session.add_all(
                        Slot(
                            id=generate(size=16),
                            provider_id=provider_id,
                            service_id=service_id,
                            slot_date=slot_date,
                            slot_time=slot_time,
                            status=SlotStatus.AVAILABLE.value,
                        )
                        for slot_date, slot_time in missing
                    )
                return len(missing)
            except IntegrityError:
                # Someone else materialised an overlapping window first.
                logger.info(
                    "Concurrent slot generation for provider {provider_id}, retry {attempt}",
                    provider_id=provider_id,
                    attempt=attempt,
                )
        raise SlotStoreUnavailableError("Slot generation kept conflicting, try again")

    def delete_available(self, *, provider_id: str, slot_date: date) -> int:
        stmt = delete(Slot).where(
            Slot.provider_id == provider_id,
            Slot.slot_date == slot_date,
            Slot.status == SlotStatus.AVAILABLE.value,
        ).execution_options(synchronize_session=False)
        with self._session() as session:
            return session.execute(stmt).rowcount
