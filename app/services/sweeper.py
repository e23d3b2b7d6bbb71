from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler
from loguru import logger

from app.services.slot_store import SlotStore
from app.utils.time import Clock, SystemClock

SWEEP_JOB_ID = "hold_sweep"


class HoldSweeper:
    """Returns held slots whose deadline has passed to available.

    Abandoned flows never send a release; this is what bounds how long such a
    slot stays stranded.
    """

    def __init__(self, store: SlotStore, clock: Clock | None = None) -> None:
        self.store = store
        self.clock = clock or SystemClock()

    def sweep(self) -> int:
        reclaimed = self.store.reclaim_expired(now=self.clock.now())
        if reclaimed:
            logger.info("Sweeper reclaimed {count} expired holds", count=reclaimed)
        return reclaimed

    def run_job(self) -> None:
        try:
            self.sweep()
        except Exception:  # noqa: BLE001
            logger.exception("Hold sweep failed; will retry on next interval")


def start_sweeper(sweeper: HoldSweeper, interval_sec: int) -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        sweeper.run_job,
        "interval",
        seconds=interval_sec,
        id=SWEEP_JOB_ID,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info("Hold sweeper scheduled every {interval}s", interval=interval_sec)
    return scheduler
