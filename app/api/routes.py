from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from typing import Generator

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import get_settings
from app.core.errors import (
    MSG_AUTH_REQUIRED,
    MSG_RESERVATION_EXPIRED,
    MSG_SLOT_UNAVAILABLE,
    InvalidDateError,
    SlotServiceError,
    error_to_http,
)
from app.schemas import (
    AvailableSlotsResponse,
    BookingResponse,
    ConfirmHoldPayload,
    ConfirmHoldResponse,
    DateAvailabilityPayload,
    DateAvailabilityResponse,
    HoldResponse,
    ProviderResponse,
    RegisterProviderPayload,
    ReleaseResponse,
    SchedulePayload,
    ScheduleResponse,
    SlotResponse,
    SweepResponse,
)
from app.services.container import ServiceContainer
from app.services.db import get_session_factory
from app.services.reservations import ConfirmOutcome, HoldOutcome
from app.utils.time import parse_slot_date


def _authorize(x_api_token: str | None = Header(default=None, alias="x-api-token")) -> None:
    settings = get_settings()
    expected = settings.api_token
    if expected and x_api_token != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API token")


def get_services(session_factory: sessionmaker[Session] = Depends(get_session_factory)) -> ServiceContainer:
    return ServiceContainer(session_factory)


def require_user(x_user_id: str | None = Header(default=None, alias="x-user-id")) -> str:
    """Identity asserted by the upstream auth gateway; checked before any store call."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=MSG_AUTH_REQUIRED)
    return x_user_id.strip()


@contextmanager
def _service_errors(operation: str) -> Generator[None, None, None]:
    try:
        yield
    except SlotServiceError as exc:
        logger.warning("{operation} failed: {error}", operation=operation, error=exc)
        raise error_to_http(exc) from exc
    except ValueError as exc:
        logger.warning("Invalid request for {operation}: {error}", operation=operation, error=exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


router = APIRouter(dependencies=[Depends(_authorize)])


@router.get("/providers/{provider_id}/slots", response_model=AvailableSlotsResponse)
def list_available_slots(
    provider_id: str,
    slot_date: str = Query(..., alias="date"),
    services: ServiceContainer = Depends(get_services),
) -> AvailableSlotsResponse:
    with _service_errors("list_available_slots"):
        parsed = parse_slot_date(slot_date, services.settings.timezone)
        if parsed is None:
            raise InvalidDateError(f"Unrecognised date '{slot_date}'")
        slots = services.slot_query.available_slots(provider_id=provider_id, slot_date=parsed)

    return AvailableSlotsResponse(
        provider_id=provider_id,
        slot_date=parsed,
        slots=[SlotResponse.from_record(slot) for slot in slots],
        status="ok" if slots else "no_availability",
    )


@router.post("/slots/{slot_id}/hold", response_model=HoldResponse)
def acquire_hold(
    slot_id: str,
    user_id: str = Depends(require_user),
    services: ServiceContainer = Depends(get_services),
):
    with _service_errors("acquire_hold"):
        result = services.reservations.acquire_hold(slot_id, user_id)

    if result.outcome is HoldOutcome.UNAVAILABLE:
        body = HoldResponse(slot_id=slot_id, status=result.outcome.value, message=MSG_SLOT_UNAVAILABLE)
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=body.model_dump(mode="json"))

    expires_in = int((result.deadline - services.clock.now()).total_seconds())
    return HoldResponse(
        slot_id=slot_id,
        status="held",
        hold_expires_at=result.deadline,
        expires_in_sec=max(expires_in, 0),
    )


@router.delete("/slots/{slot_id}/hold", response_model=ReleaseResponse)
def release_hold(
    slot_id: str,
    user_id: str = Depends(require_user),
    services: ServiceContainer = Depends(get_services),
) -> ReleaseResponse:
    with _service_errors("release_hold"):
        outcome = services.reservations.release_hold(slot_id, user_id)
    return ReleaseResponse(slot_id=slot_id, status=outcome.value)


@router.post("/slots/{slot_id}/confirm", response_model=ConfirmHoldResponse)
def confirm_hold(
    slot_id: str,
    payload: ConfirmHoldPayload | None = None,
    user_id: str = Depends(require_user),
    services: ServiceContainer = Depends(get_services),
):
    service_ids = payload.service_ids if payload else []
    with _service_errors("confirm_hold"):
        result = services.reservations.confirm_hold(slot_id, user_id, service_ids)

    if result.outcome is ConfirmOutcome.EXPIRED:
        body = ConfirmHoldResponse(slot_id=slot_id, status=result.outcome.value, message=MSG_RESERVATION_EXPIRED)
        return JSONResponse(status_code=status.HTTP_410_GONE, content=body.model_dump(mode="json"))

    return ConfirmHoldResponse(slot_id=slot_id, status=result.outcome.value, booking_id=result.booking_id)


@router.get("/bookings", response_model=list[BookingResponse])
def list_bookings(
    user_id: str = Depends(require_user),
    services: ServiceContainer = Depends(get_services),
) -> list[BookingResponse]:
    with _service_errors("list_bookings"):
        bookings = services.bookings.list_for_user(user_id)
    return [BookingResponse.model_validate(booking) for booking in bookings]


@router.post("/providers", response_model=ProviderResponse, status_code=status.HTTP_201_CREATED)
def register_provider(
    payload: RegisterProviderPayload,
    services: ServiceContainer = Depends(get_services),
) -> ProviderResponse:
    with _service_errors("register_provider"):
        provider = services.providers.register(name=payload.name)
    return ProviderResponse.model_validate(provider)


@router.post("/providers/{provider_id}/approve", response_model=ProviderResponse)
def approve_provider(provider_id: str, services: ServiceContainer = Depends(get_services)) -> ProviderResponse:
    with _service_errors("approve_provider"):
        provider = services.providers.approve(provider_id)
    return ProviderResponse.model_validate(provider)


@router.post("/providers/{provider_id}/reject", response_model=ProviderResponse)
def reject_provider(provider_id: str, services: ServiceContainer = Depends(get_services)) -> ProviderResponse:
    with _service_errors("reject_provider"):
        provider = services.providers.reject(provider_id)
    return ProviderResponse.model_validate(provider)


@router.put("/providers/{provider_id}/schedule/{day_of_week}", response_model=ScheduleResponse)
def set_schedule(
    provider_id: str,
    day_of_week: int,
    payload: SchedulePayload,
    services: ServiceContainer = Depends(get_services),
) -> ScheduleResponse:
    with _service_errors("set_schedule"):
        schedule = services.providers.set_schedule(
            provider_id=provider_id,
            day_of_week=day_of_week,
            start_time=payload.start_time,
            end_time=payload.end_time,
            slot_minutes=payload.slot_minutes,
            is_available=payload.is_available,
        )
    return ScheduleResponse.model_validate(schedule)


@router.put("/providers/{provider_id}/availability/{available_date}", response_model=DateAvailabilityResponse)
def set_date_availability(
    provider_id: str,
    available_date: date,
    payload: DateAvailabilityPayload,
    services: ServiceContainer = Depends(get_services),
) -> DateAvailabilityResponse:
    with _service_errors("set_date_availability"):
        created, removed = services.providers.set_date_availability(
            provider_id=provider_id, day=available_date, is_available=payload.is_available
        )
    return DateAvailabilityResponse(
        provider_id=provider_id,
        date=available_date.isoformat(),
        is_available=payload.is_available,
        slots_created=created,
        slots_removed=removed,
    )


@router.post("/admin/holds/sweep", response_model=SweepResponse)
def sweep_expired_holds(services: ServiceContainer = Depends(get_services)) -> SweepResponse:
    with _service_errors("sweep_expired_holds"):
        reclaimed = services.sweeper.sweep()
    return SweepResponse(reclaimed=reclaimed)


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
