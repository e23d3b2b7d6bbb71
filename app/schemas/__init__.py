from .slot import (
    AvailableSlotsResponse,
    ConfirmHoldPayload,
    ConfirmHoldResponse,
    HoldResponse,
    ReleaseResponse,
    SlotRecord,
    SlotResponse,
    SweepResponse,
)
from .provider import (
    DateAvailabilityPayload,
    DateAvailabilityResponse,
    ProviderResponse,
    RegisterProviderPayload,
    SchedulePayload,
    ScheduleResponse,
)
from .booking import BookingResponse

__all__ = [
    "AvailableSlotsResponse",
    "ConfirmHoldPayload",
    "ConfirmHoldResponse",
    "HoldResponse",
    "ReleaseResponse",
    "SlotRecord",
    "SlotResponse",
    "SweepResponse",
    "DateAvailabilityPayload",
    "DateAvailabilityResponse",
    "ProviderResponse",
    "RegisterProviderPayload",
    "SchedulePayload",
    "ScheduleResponse",
    "BookingResponse",
]
