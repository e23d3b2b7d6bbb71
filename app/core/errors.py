"""
Error types raised by the slot services and their mapping to HTTP responses.

Losing a race for a slot and running out the hold clock are *outcomes*, not
errors; they are returned as values by the reservation manager. Everything
here is something the caller cannot treat as a normal result.
"""
from __future__ import annotations

from fastapi import HTTPException, status

MSG_STORE_UNAVAILABLE = "Unable to reach slot store, try again"
MSG_SLOT_UNAVAILABLE = "Slot no longer available"
MSG_RESERVATION_EXPIRED = "Reservation expired"
MSG_AUTH_REQUIRED = "Authentication required"


class SlotServiceError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


class SlotStoreUnavailableError(SlotServiceError):
    """The slot store could not be reached or timed out. Safe to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = MSG_STORE_UNAVAILABLE) -> None:
        super().__init__(message)


class AuthorizationError(SlotServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = MSG_AUTH_REQUIRED) -> None:
        super().__init__(message)


class ProviderNotFoundError(SlotServiceError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, provider_id: str) -> None:
        super().__init__(f"Provider {provider_id} not found")
        self.provider_id = provider_id


class InvalidTransitionError(SlotServiceError):
    status_code = status.HTTP_409_CONFLICT


class InvalidDateError(SlotServiceError):
    status_code = 422


def error_to_http(exc: SlotServiceError) -> HTTPException:
    """Map a service error onto an HTTPException carrying its message."""
    return HTTPException(status_code=exc.status_code, detail=str(exc))
