from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable

from loguru import logger

from app.core.errors import SlotStoreUnavailableError
from app.services.countdown import DEFAULT_TICK_SECONDS, CountdownNotifier
from app.services.reservations import (
    ConfirmResult,
    HoldOutcome,
    HoldResult,
    ReleaseOutcome,
    ReservationManager,
)
from app.utils.time import Clock, SystemClock


def _event_loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class BookingFlow:
    """One user's pass through slot selection.

    Holds at most one slot at a time and owns the countdown for it. When the
    flow ends (confirm, cancel or expiry) no notifier is left running.
    """

    def __init__(
        self,
        *,
        user_id: str,
        manager: ReservationManager,
        clock: Clock | None = None,
        tick_seconds: float = DEFAULT_TICK_SECONDS,
        on_expired: Callable[[str], None] | None = None,
    ) -> None:
        self.user_id = user_id
        self.manager = manager
        self.clock = clock or SystemClock()
        self.tick_seconds = tick_seconds
        self.on_expired = on_expired
        self.held_slot_id: str | None = None
        self.deadline: datetime | None = None
        self.notifier: CountdownNotifier | None = None

    def _clear(self) -> None:
        if self.notifier is not None:
            self.notifier.cancel()
        self.notifier = None
        self.held_slot_id = None
        self.deadline = None

    def select_slot(self, slot_id: str) -> HoldResult:
        result = self.manager.acquire_hold(slot_id, self.user_id)
        # any previous hold is gone either way
        self._clear()
        if result.outcome is not HoldOutcome.SUCCESS:
            return result

        self.held_slot_id = slot_id
        self.deadline = result.deadline
        self.notifier = CountdownNotifier(
            deadline=result.deadline,
            on_expired=self.handle_expired,
            clock=self.clock,
            tick_seconds=self.tick_seconds,
        )
        if _event_loop_running():
            self.notifier.start()
        return result

    def remaining(self) -> timedelta:
        if self.notifier is None:
            return timedelta(0)
        return self.notifier.remaining()

    def tick(self) -> None:
        if self.notifier is not None:
            self.notifier.tick()

    def cancel(self) -> ReleaseOutcome:
        if self.held_slot_id is None:
            return ReleaseOutcome.NOOP
        slot_id = self.held_slot_id
        self._clear()
        return self.manager.release_hold(slot_id, self.user_id)

    def confirm(self, service_ids: list[str] | None = None) -> ConfirmResult | None:
        if self.held_slot_id is None:
            return None
        slot_id = self.held_slot_id
        self._clear()
        return self.manager.confirm_hold(slot_id, self.user_id, service_ids)

    def handle_expired(self) -> None:
        slot_id = self.held_slot_id
        if slot_id is None:
            return
        logger.info("Hold on {slot_id} for {user_id} ran out", slot_id=slot_id, user_id=self.user_id)
        self.notifier = None
        self.held_slot_id = None
        self.deadline = None
        try:
            self.manager.release_hold(slot_id, self.user_id)
        except SlotStoreUnavailableError:
            # the sweeper reclaims it once the deadline has passed
            logger.exception(
                "Could not release expired hold on {slot_id} for {user_id}",
                slot_id=slot_id,
                user_id=self.user_id,
            )
        if self.on_expired:
            self.on_expired(slot_id)
