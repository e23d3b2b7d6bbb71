import os
from datetime import datetime, time, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("HOLD_SWEEP_INTERVAL_SEC", "0")

from app.core.config import AppConfig  # noqa: E402
from app.models.base import Base  # noqa: E402
from app.services.container import ServiceContainer  # noqa: E402
from app.services.db import build_session_factory  # noqa: E402

# 2025-03-01 is a Saturday
SCENARIO_DATE = datetime(2025, 3, 1).date()


class FrozenClock:
    def __init__(self, current: datetime) -> None:
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> AppConfig:
    return AppConfig(RELEASE_RETRY_BACKOFF_SEC=0, HOLD_SWEEP_INTERVAL_SEC=0, API_TOKEN=None)


@pytest.fixture
def services(session_factory, settings, clock) -> ServiceContainer:
    return ServiceContainer(session_factory, settings=settings, clock=clock)


def make_provider(services: ServiceContainer, *, name: str, start: time, end: time, slot_minutes: int = 30):
    provider = services.providers.register(name=name)
    services.providers.approve(provider.id)
    for day_of_week in range(7):
        services.providers.set_schedule(
            provider_id=provider.id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
            slot_minutes=slot_minutes,
        )
    return provider


@pytest.fixture
def scenario_date():
    return SCENARIO_DATE


@pytest.fixture
def provider_factory(services):
    def factory(**kwargs):
        return make_provider(services, **kwargs)

    return factory


@pytest.fixture
def provider(services):
    """Approved provider with 10:00 and 10:30 slots every day."""
    return make_provider(services, name="Asha Salon", start=time(10, 0), end=time(11, 0))


@pytest.fixture
def single_slot_provider(services):
    """Approved provider with exactly one slot a day, at 10:00."""
    return make_provider(services, name="Solo Studio", start=time(10, 0), end=time(10, 30))


@pytest.fixture
def slots(services, provider):
    return services.slot_query.available_slots(provider_id=provider.id, slot_date=SCENARIO_DATE)
