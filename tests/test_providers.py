from datetime import date, time

import pytest

from app.core.errors import InvalidTransitionError, ProviderNotFoundError
from app.models.provider import ApprovalStatus
from app.models.slot import SlotStatus


def test_register_starts_pending(services) -> None:
    provider = services.providers.register(name="Fresh Face")

    assert provider.approval_status == ApprovalStatus.PENDING.value
    assert services.providers.get_provider(provider.id).name == "Fresh Face"


def test_approve_and_reject_only_from_pending(services) -> None:
    approved = services.providers.register(name="Approved")
    rejected = services.providers.register(name="Rejected")

    assert services.providers.approve(approved.id).approval_status == ApprovalStatus.APPROVED.value
    assert services.providers.reject(rejected.id).approval_status == ApprovalStatus.REJECTED.value

    with pytest.raises(InvalidTransitionError):
        services.providers.reject(approved.id)
    with pytest.raises(InvalidTransitionError):
        services.providers.approve(rejected.id)


def test_transition_of_unknown_provider(services) -> None:
    with pytest.raises(ProviderNotFoundError):
        services.providers.approve("nobody")


def test_set_schedule_upserts(services, provider) -> None:
    schedule = services.providers.set_schedule(
        provider_id=provider.id, day_of_week=5, start_time=time(12, 0), end_time=time(13, 0), slot_minutes=15
    )

    assert schedule.slot_minutes == 15
    created = services.generator.generate(provider_id=provider.id, start=date(2025, 3, 1), end=date(2025, 3, 1))
    assert created == 4


def test_set_schedule_rejects_bad_weekday(services, provider) -> None:
    with pytest.raises(ValueError):
        services.providers.set_schedule(
            provider_id=provider.id, day_of_week=7, start_time=time(9, 0), end_time=time(10, 0)
        )


def test_revoking_a_date_prunes_only_unbooked_slots(services, provider, slots, scenario_date) -> None:
    services.reservations.acquire_hold(slots[0].id, "alice")
    services.reservations.confirm_hold(slots[0].id, "alice")

    created, removed = services.providers.set_date_availability(
        provider_id=provider.id, day=scenario_date, is_available=False
    )

    assert (created, removed) == (0, 1)
    remaining = services.store.list_slots(provider_id=provider.id, slot_date=scenario_date)
    assert [(slot.id, slot.status) for slot in remaining] == [(slots[0].id, SlotStatus.BOOKED)]


def test_restoring_a_date_regenerates_missing_slots(services, provider, slots, scenario_date) -> None:
    services.providers.set_date_availability(provider_id=provider.id, day=scenario_date, is_available=False)

    created, removed = services.providers.set_date_availability(
        provider_id=provider.id, day=scenario_date, is_available=True
    )

    assert (created, removed) == (2, 0)
    assert services.store.count_slots(provider_id=provider.id, slot_date=scenario_date) == 2
