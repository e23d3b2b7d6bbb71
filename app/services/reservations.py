from __future__ import annotations

import enum
from datetime import datetime, timedelta
from typing import Protocol

from loguru import logger
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.core.errors import AuthorizationError, SlotStoreUnavailableError
from app.schemas.slot import SlotRecord
from app.services.slot_store import SlotStore
from app.utils.time import Clock, SystemClock

HOLD_DURATION = timedelta(minutes=7)


class HoldOutcome(str, enum.Enum):
    SUCCESS = "success"
    UNAVAILABLE = "unavailable"


class ReleaseOutcome(str, enum.Enum):
    RELEASED = "released"
    NOOP = "noop"


class ConfirmOutcome(str, enum.Enum):
    BOOKED = "booked"
    EXPIRED = "expired"


class HoldResult(BaseModel):
    outcome: HoldOutcome
    slot_id: str
    deadline: datetime | None = None


class ConfirmResult(BaseModel):
    outcome: ConfirmOutcome
    slot_id: str
    booking_id: str | None = None


class BookingHandoff(Protocol):
    def create_booking(self, *, slot: SlotRecord, user_id: str, service_ids: list[str]) -> str: ...

    def cancel_booking(self, booking_id: str) -> None: ...


class ReservationManager:
    """Hold / release / confirm protocol for a single slot on behalf of one user.

    The store's conditional updates are the only arbitration between users;
    the manager never locks and never writes based on a value it read earlier.
    """

    def __init__(
        self,
        *,
        store: SlotStore,
        booking_handoff: BookingHandoff,
        clock: Clock | None = None,
        hold_duration: timedelta = HOLD_DURATION,
        release_retry_attempts: int = 3,
        release_retry_backoff_sec: float = 0.5,
    ) -> None:
        self.store = store
        self.booking_handoff = booking_handoff
        self.clock = clock or SystemClock()
        self.hold_duration = hold_duration
        self.release_retry_attempts = release_retry_attempts
        self.release_retry_backoff_sec = release_retry_backoff_sec

    @staticmethod
    def _require_user(user_id: str | None) -> str:
        if not user_id or not user_id.strip():
            raise AuthorizationError()
        return user_id.strip()

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.release_retry_attempts),
            wait=wait_exponential(multiplier=self.release_retry_backoff_sec, max=10),
            retry=retry_if_exception_type(SlotStoreUnavailableError),
            reraise=True,
        )

    def _release(self, slot_id: str, user_id: str) -> bool:
        try:
            return self._retrying()(self.store.release, slot_id=slot_id, user_id=user_id)
        except SlotStoreUnavailableError:
            logger.exception("Failed to release slot {slot_id} held by {user_id}", slot_id=slot_id, user_id=user_id)
            raise

    def _cancel_booking(self, booking_id: str) -> None:
        """Compensate a booking whose slot could not be marked booked.

        A failure here is logged and not raised so the hold can still be released.
        """
        try:
            self._retrying()(self.booking_handoff.cancel_booking, booking_id)
        except (SlotStoreUnavailableError, SQLAlchemyError):
            logger.exception("Failed to cancel orphaned booking {booking_id}", booking_id=booking_id)

    def acquire_hold(self, slot_id: str, user_id: str) -> HoldResult:
        user_id = self._require_user(user_id)
        now = self.clock.now()

        for held in self.store.holds_for_user(user_id):
            if held.id == slot_id and not held.hold_expired(now):
                return HoldResult(outcome=HoldOutcome.SUCCESS, slot_id=slot_id, deadline=held.hold_expires_at)
            logger.debug("Releasing prior hold {slot_id} for {user_id}", slot_id=held.id, user_id=user_id)
            self._release(held.id, user_id)

        deadline = now + self.hold_duration
        if self.store.try_hold(slot_id=slot_id, user_id=user_id, deadline=deadline):
            logger.info(
                "Held slot {slot_id} for {user_id} until {deadline}",
                slot_id=slot_id,
                user_id=user_id,
                deadline=deadline.isoformat(),
            )
            return HoldResult(outcome=HoldOutcome.SUCCESS, slot_id=slot_id, deadline=deadline)

        logger.info("Slot {slot_id} unavailable for {user_id}", slot_id=slot_id, user_id=user_id)
        return HoldResult(outcome=HoldOutcome.UNAVAILABLE, slot_id=slot_id)

    def release_hold(self, slot_id: str, user_id: str) -> ReleaseOutcome:
        user_id = self._require_user(user_id)
        if self._release(slot_id, user_id):
            logger.info("Released slot {slot_id} held by {user_id}", slot_id=slot_id, user_id=user_id)
            return ReleaseOutcome.RELEASED
        return ReleaseOutcome.NOOP

    def confirm_hold(self, slot_id: str, user_id: str, service_ids: list[str] | None = None) -> ConfirmResult:
        user_id = self._require_user(user_id)
        expired = ConfirmResult(outcome=ConfirmOutcome.EXPIRED, slot_id=slot_id)

        slot = self.store.get_slot(slot_id)
        if slot is None or not slot.is_held_by(user_id):
            logger.info("Confirm for {slot_id} by {user_id} without a live hold", slot_id=slot_id, user_id=user_id)
            return expired

        if slot.hold_expired(self.clock.now()):
            logger.info("Hold on {slot_id} by {user_id} expired before confirm", slot_id=slot_id, user_id=user_id)
            self._release(slot_id, user_id)
            return expired

        booking_id = self.booking_handoff.create_booking(slot=slot, user_id=user_id, service_ids=service_ids or [])

        # The deadline is re-checked by the store; the handoff may have taken a while.
        try:
            booked = self.store.mark_booked(
                slot_id=slot_id, user_id=user_id, booking_id=booking_id, now=self.clock.now()
            )
        except SlotStoreUnavailableError:
            logger.exception(
                "Could not mark slot {slot_id} booked; cancelling {booking_id}",
                slot_id=slot_id,
                booking_id=booking_id,
            )
            self._cancel_booking(booking_id)
            raise

        if booked:
            logger.info("Booked slot {slot_id} as {booking_id}", slot_id=slot_id, booking_id=booking_id)
            return ConfirmResult(outcome=ConfirmOutcome.BOOKED, slot_id=slot_id, booking_id=booking_id)

        logger.warning(
            "Hold on {slot_id} lapsed during booking {booking_id}; rolling back",
            slot_id=slot_id,
            booking_id=booking_id,
        )
        self._cancel_booking(booking_id)
        self._release(slot_id, user_id)
        return expired
