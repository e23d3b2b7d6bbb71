from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable

from loguru import logger

from app.utils.time import Clock, SystemClock

DEFAULT_TICK_SECONDS = 1.0


class CountdownNotifier:
    """Counts down to a hold deadline and signals expiry exactly once.

    ``tick()`` drives it; ``run()`` ticks cooperatively on the event loop.
    A cancelled notifier never fires.
    """

    def __init__(
        self,
        *,
        deadline: datetime,
        on_expired: Callable[[], None],
        clock: Clock | None = None,
        tick_seconds: float = DEFAULT_TICK_SECONDS,
        on_tick: Callable[[timedelta], None] | None = None,
    ) -> None:
        self.deadline = deadline
        self.on_expired = on_expired
        self.on_tick = on_tick
        self.clock = clock or SystemClock()
        self.tick_seconds = tick_seconds
        self._fired = False
        self._cancelled = False
        self._last_remaining: timedelta | None = None
        self._task: asyncio.Task | None = None

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        return not (self._fired or self._cancelled)

    def remaining(self) -> timedelta:
        remaining = max(self.deadline - self.clock.now(), timedelta(0))
        # never count back up, even if the clock steps backwards
        if self._last_remaining is not None and remaining > self._last_remaining:
            remaining = self._last_remaining
        self._last_remaining = remaining
        return remaining

    def _advance(self) -> tuple[timedelta, bool]:
        if not self.active:
            return self._last_remaining or timedelta(0), False

        remaining = self.remaining()
        if self.on_tick:
            self.on_tick(remaining)
        if remaining <= timedelta(0):
            self._fired = True
            logger.debug("Countdown to {deadline} expired", deadline=self.deadline.isoformat())
            return remaining, True
        return remaining, False

    def tick(self) -> timedelta:
        remaining, expired = self._advance()
        if expired:
            self.on_expired()
        return remaining

    def cancel(self) -> None:
        if self._cancelled or self._fired:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            if self._task is not current:
                self._task.cancel()

    async def run(self) -> None:
        while self.active:
            remaining, expired = self._advance()
            if expired:
                # expiry handlers do blocking store I/O and retry sleeps
                await asyncio.to_thread(self.on_expired)
                break
            await asyncio.sleep(min(self.tick_seconds, max(remaining.total_seconds(), 0.0)) or self.tick_seconds)

    def start(self) -> asyncio.Task:
        """Schedule ``run()`` on the running event loop."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task
