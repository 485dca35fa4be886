"""Side-effect free validation rules for coordination requests.

Every rule returns a ``CoordinationError`` describing the failure, or ``None``
when the input is acceptable. Services decide whether to raise.
"""

from __future__ import annotations

from typing import Iterable, Optional

from backend.domain.errors import (
    CoordinationError,
    DuplicateRequestError,
    RequestAlreadyProcessedError,
    RequestPermissionError,
    RequestValidationError,
)
from backend.domain.intervals import parse_time
from backend.domain.models import (
    DAY_CODES,
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_PENDING,
    REQUEST_STATUS_REJECTED,
    REQUEST_TYPES,
    SWAP_REQUEST_TYPES,
    CoordinationRequest,
    RequestTimeSlot,
    Room,
)


VALID_ACTIONS = (REQUEST_STATUS_APPROVED, REQUEST_STATUS_REJECTED)


def validate_time_slot(time_slot: Optional[RequestTimeSlot]) -> Optional[CoordinationError]:
    if time_slot is None:
        return RequestValidationError("timeSlot is required")
    if time_slot.day not in DAY_CODES:
        return RequestValidationError(f"Unknown day code: {time_slot.day!r}")
    start = parse_time(time_slot.start_time)
    end = parse_time(time_slot.end_time)
    if start is None or end is None:
        return RequestValidationError("timeSlot times must use HH:MM")
    if start >= end:
        return RequestValidationError("timeSlot startTime must be before endTime")
    return None


def validate_create_request(
    room_id: Optional[int],
    request_type: Optional[str],
    time_slot: Optional[RequestTimeSlot],
) -> Optional[CoordinationError]:
    if room_id is None:
        return RequestValidationError("roomId is required")
    if not request_type:
        return RequestValidationError("type is required")
    if request_type not in REQUEST_TYPES:
        return RequestValidationError(f"Unsupported request type: {request_type!r}")
    return validate_time_slot(time_slot)


def validate_action(action: Optional[str]) -> Optional[CoordinationError]:
    if action not in VALID_ACTIONS:
        return RequestValidationError("action must be 'approved' or 'rejected'")
    return None


def has_duplicate_request(
    existing: Iterable[CoordinationRequest],
    requester_id: str,
    request_type: str,
    time_slot: RequestTimeSlot,
    target_user_id: Optional[str] = None,
) -> bool:
    """Pending request of the same type from the same requester for the same window.

    The window is day, date and start/end. The target only separates requests
    for swap-like types; any two bookings of the same window by one requester
    are duplicates.
    """
    for request in existing:
        if request.status != REQUEST_STATUS_PENDING or request.requester_id != requester_id:
            continue
        if request.request_type != request_type:
            continue
        slot = request.time_slot
        if (slot.day, slot.date, slot.start_time, slot.end_time) != (
            time_slot.day,
            time_slot.date,
            time_slot.start_time,
            time_slot.end_time,
        ):
            continue
        if request_type in SWAP_REQUEST_TYPES and request.target_user_id != target_user_id:
            continue
        return True
    return False


def validate_not_duplicate(
    existing: Iterable[CoordinationRequest],
    requester_id: str,
    request_type: str,
    time_slot: RequestTimeSlot,
    target_user_id: Optional[str] = None,
) -> Optional[CoordinationError]:
    if has_duplicate_request(existing, requester_id, request_type, time_slot, target_user_id):
        return DuplicateRequestError("An identical pending request already exists")
    return None


def validate_handle_permission(
    request: CoordinationRequest,
    room: Room,
    actor_id: str,
) -> Optional[CoordinationError]:
    if request.status != REQUEST_STATUS_PENDING:
        return RequestAlreadyProcessedError(f"Request {request.request_id} was already processed")
    if actor_id != room.owner_id and actor_id != request.target_user_id:
        return RequestPermissionError("Only the room owner or the target member can respond")
    return None


def validate_delete_permission(
    request: CoordinationRequest,
    actor_id: str,
) -> Optional[CoordinationError]:
    if request.status == REQUEST_STATUS_PENDING:
        if actor_id != request.requester_id:
            return RequestPermissionError("Only the requester can cancel a pending request")
        return None
    if actor_id not in (request.requester_id, request.target_user_id):
        return RequestPermissionError("Only the requester or the target can delete this request")
    return None


def format_slot_details(time_slot: RequestTimeSlot) -> str:
    if time_slot.date is not None:
        prefix = f"{time_slot.date.month}/{time_slot.date.day}"
    else:
        prefix = time_slot.day
    return f"{prefix} {time_slot.start_time}-{time_slot.end_time}"
