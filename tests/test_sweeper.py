from datetime import timedelta

from app.models.slot import SlotStatus
from app.services.sweeper import SWEEP_JOB_ID, start_sweeper


def test_sweep_reclaims_only_expired_holds(services, slots, clock) -> None:
    services.reservations.acquire_hold(slots[0].id, "alice")
    clock.advance(minutes=5)
    services.reservations.acquire_hold(slots[1].id, "bob")
    clock.advance(minutes=3)

    assert services.sweeper.sweep() == 1
    assert services.store.get_slot(slots[0].id).status is SlotStatus.AVAILABLE
    assert services.store.get_slot(slots[1].id).is_held_by("bob")


def test_sweep_after_everything_expired(services, slots, clock) -> None:
    services.reservations.acquire_hold(slots[0].id, "alice")
    services.reservations.acquire_hold(slots[1].id, "bob")
    clock.advance(minutes=7)

    assert services.sweeper.sweep() == 2
    assert services.sweeper.sweep() == 0


def test_run_job_logs_and_survives_store_errors(services, monkeypatch) -> None:
    def boom(**kwargs):
        raise RuntimeError("store down")

    monkeypatch.setattr(services.store, "reclaim_expired", boom)

    services.sweeper.run_job()


def test_start_sweeper_schedules_interval_job(services) -> None:
    scheduler = start_sweeper(services.sweeper, interval_sec=60)
    try:
        job = scheduler.get_job(SWEEP_JOB_ID)
        assert job is not None
        assert job.trigger.interval == timedelta(seconds=60)
    finally:
        scheduler.shutdown(wait=False)
