import asyncio
from datetime import timedelta

from app.core.config import AppConfig
from app.core.errors import SlotStoreUnavailableError
from app.models.slot import SlotStatus
from app.services.booking_flow import BookingFlow
from app.services.container import ServiceContainer
from app.services.reservations import ConfirmOutcome, HoldOutcome, ReleaseOutcome


def _flow(services, clock, **kwargs) -> BookingFlow:
    return BookingFlow(user_id="alice", manager=services.reservations, clock=clock, **kwargs)


def test_select_slot_starts_a_countdown(services, slots, clock) -> None:
    flow = _flow(services, clock)

    result = flow.select_slot(slots[0].id)

    assert result.outcome is HoldOutcome.SUCCESS
    assert flow.held_slot_id == slots[0].id
    assert flow.deadline == clock.now() + timedelta(minutes=7)
    assert flow.remaining() == timedelta(minutes=7)


def test_switching_slots_replaces_hold_and_countdown(services, slots, clock) -> None:
    flow = _flow(services, clock)
    flow.select_slot(slots[0].id)
    first_notifier = flow.notifier

    flow.select_slot(slots[1].id)

    assert first_notifier.cancelled is True
    assert flow.held_slot_id == slots[1].id
    assert services.store.get_slot(slots[0].id).status is SlotStatus.AVAILABLE


def test_losing_a_race_leaves_the_flow_empty(services, slots, clock) -> None:
    services.reservations.acquire_hold(slots[0].id, "bob")
    flow = _flow(services, clock)

    result = flow.select_slot(slots[0].id)

    assert result.outcome is HoldOutcome.UNAVAILABLE
    assert flow.held_slot_id is None
    assert flow.notifier is None


def test_expiry_releases_the_hold_and_notifies(services, slots, clock) -> None:
    expired: list = []
    flow = _flow(services, clock, on_expired=expired.append)
    flow.select_slot(slots[0].id)
    notifier = flow.notifier

    clock.advance(minutes=7)
    flow.tick()
    notifier.tick()

    assert expired == [slots[0].id]
    assert flow.held_slot_id is None
    assert services.store.get_slot(slots[0].id).status is SlotStatus.AVAILABLE


def test_cancel_releases_and_stops_countdown(services, slots, clock) -> None:
    expired: list = []
    flow = _flow(services, clock, on_expired=expired.append)
    flow.select_slot(slots[0].id)
    notifier = flow.notifier

    assert flow.cancel() is ReleaseOutcome.RELEASED
    clock.advance(minutes=10)
    notifier.tick()

    assert expired == []
    assert notifier.fired is False
    assert flow.cancel() is ReleaseOutcome.NOOP


def test_confirm_hands_off_and_tears_down(services, slots, clock) -> None:
    flow = _flow(services, clock)
    flow.select_slot(slots[0].id)
    notifier = flow.notifier

    result = flow.confirm(["massage"])

    assert result.outcome is ConfirmOutcome.BOOKED
    assert notifier.cancelled is True
    assert flow.held_slot_id is None
    assert services.store.get_slot(slots[0].id).status is SlotStatus.BOOKED


def test_confirm_without_selection_returns_none(services, clock) -> None:
    assert _flow(services, clock).confirm() is None


def test_countdown_runs_on_the_event_loop(services, slots) -> None:
    expired: list = []

    async def scenario() -> None:
        flow = BookingFlow(
            user_id="alice",
            manager=services.reservations,
            clock=services.clock,
            tick_seconds=0.01,
            on_expired=expired.append,
        )
        flow.select_slot(slots[0].id)
        # the countdown task has not run yet; its first tick sees the deadline passed
        services.clock.advance(minutes=8)
        await asyncio.sleep(0.1)

    asyncio.run(scenario())

    assert expired == [slots[0].id]
    assert services.store.get_slot(slots[0].id).status is SlotStatus.AVAILABLE


def test_failed_release_on_expiry_still_notifies(services, slots, monkeypatch) -> None:
    expired: list = []

    def unreachable(**kwargs):
        raise SlotStoreUnavailableError()

    async def scenario():
        flow = services.booking_flow("alice", on_expired=expired.append)
        flow.select_slot(slots[0].id)
        task = flow.notifier.start()
        monkeypatch.setattr(services.store, "release", unreachable)
        services.clock.advance(minutes=8)
        await asyncio.wait_for(task, timeout=2)
        return task

    task = asyncio.run(scenario())

    assert task.exception() is None
    assert expired == [slots[0].id]
    assert services.store.get_slot(slots[0].id).status is SlotStatus.HELD

    monkeypatch.undo()
    assert services.sweeper.sweep() == 1


def test_flow_uses_configured_tick(session_factory, clock, slots) -> None:
    settings = AppConfig(COUNTDOWN_TICK_SECONDS=0.25, RELEASE_RETRY_BACKOFF_SEC=0)
    services = ServiceContainer(session_factory, settings=settings, clock=clock)

    flow = services.booking_flow("alice")
    flow.select_slot(slots[0].id)

    assert flow.tick_seconds == 0.25
    assert flow.notifier.tick_seconds == 0.25
