"""Typed failures shared by the engine, service and controller layers."""

from __future__ import annotations

from typing import Optional


class CoordinationError(Exception):
    """Base failure. Carries the HTTP-equivalent status for the controller layer."""

    status_code = 400
    code = "coordination_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RequestValidationError(CoordinationError):
    """Raised when a request payload or action is malformed."""

    code = "validation_error"


class RoomNotFoundError(CoordinationError):
    status_code = 404
    code = "room_not_found"


class RequestNotFoundError(CoordinationError):
    status_code = 404
    code = "request_not_found"


class EventNotFoundError(CoordinationError):
    status_code = 404
    code = "event_not_found"


class RequestPermissionError(CoordinationError):
    status_code = 403
    code = "permission_denied"


class DuplicateRequestError(CoordinationError):
    code = "duplicate_request"


class RequestAlreadyProcessedError(CoordinationError):
    code = "already_processed"


class ChainAdjustmentFailedError(CoordinationError):
    """Raised when a displaced member has no free alternative slot."""

    status_code = 409
    code = "chain_adjustment_failed"

    def __init__(self, message: str, displaced_member_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.displaced_member_id = displaced_member_id


class ConcurrentModificationError(CoordinationError):
    """Raised when the room changed between read and commit."""

    status_code = 409
    code = "concurrent_modification"
