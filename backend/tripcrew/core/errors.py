"""Domain errors raised by the trip workflow services."""

from __future__ import annotations

from fastapi import status


class TripCrewError(Exception):
    """Base class for workflow errors surfaced to the caller."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    kind: str = "error"
    detail: str = "Request could not be completed"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class NotFoundError(TripCrewError):
    """Entity is missing."""

    status_code = status.HTTP_404_NOT_FOUND
    kind = "not_found"
    detail = "Not found"


class AuthorizationError(TripCrewError):
    """Caller is not the host/owner the operation requires."""

    status_code = status.HTTP_403_FORBIDDEN
    kind = "forbidden"
    detail = "Not authorized"


class InvalidOperation(TripCrewError):
    """State-machine violation: wrong trip status, resolved request, duplicate mark."""

    status_code = status.HTTP_400_BAD_REQUEST
    kind = "invalid_operation"
    detail = "Invalid operation"


class Conflict(TripCrewError):
    """Uniqueness violation or a lost concurrent write."""

    status_code = status.HTTP_409_CONFLICT
    kind = "conflict"
    detail = "Conflict"
