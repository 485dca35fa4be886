"""Coordination request lifecycle: creation, approval with chain adjustment, rejection."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from threading import RLock
from typing import Optional, Sequence

from backend.domain.constraints import RecommendationConfig
from backend.domain.errors import (
    ChainAdjustmentFailedError,
    CoordinationError,
    RequestNotFoundError,
    RequestPermissionError,
    RequestValidationError,
    RoomNotFoundError,
)
from backend.domain.intervals import format_minutes, intervals_overlap, parse_time
from backend.domain.models import (
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_REJECTED,
    ActivityLogEntry,
    AssignedSlot,
    CalendarEvent,
    CoordinationRequest,
    RequestTimeSlot,
    Room,
    day_code_for,
)
from backend.domain.request_rules import (
    format_slot_details,
    validate_action,
    validate_create_request,
    validate_delete_permission,
    validate_handle_permission,
    validate_not_duplicate,
)
from backend.repository.data_repository import DataRepository
from backend.services.recommendation_service import (
    build_recommendation_config,
    generate_reschedule_time_recommendations,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

REQUEST_TYPE_LABELS = {
    "booking": "a booking",
    "slot_swap": "a slot swap",
    "time_request": "a time request",
    "time_change": "a time change",
    "slot_release": "a slot release",
    "conflict": "a conflict resolution",
}
REQUESTED_SLOT_LABEL = "Requested"


def _raise_if(error: Optional[CoordinationError]) -> None:
    if error is not None:
        raise error


def _at(day: date, minutes: int) -> datetime:
    return datetime.combine(day, time.min) + timedelta(minutes=minutes)


def _slot_minutes(slot: AssignedSlot) -> tuple[int, int]:
    start = parse_time(slot.start_time) or 0
    end = parse_time(slot.end_time)
    if end is None or end <= start:
        end = 24 * 60
    return start, end


def _slot_event(slot: AssignedSlot) -> CalendarEvent:
    start, end = _slot_minutes(slot)
    return CalendarEvent(
        start=_at(slot.date, start),
        end=_at(slot.date, end),
        id=str(slot.slot_id) if slot.slot_id is not None else None,
        title=slot.label,
    )


def _slot_as_request_slot(slot: AssignedSlot) -> RequestTimeSlot:
    return RequestTimeSlot(
        day=slot.day,
        start_time=slot.start_time,
        end_time=slot.end_time,
        date=slot.date,
    )


def _slot_metadata(slot: Optional[AssignedSlot]) -> Optional[dict[str, str]]:
    if slot is None:
        return None
    return {
        "date": slot.date.isoformat(),
        "day": slot.day,
        "startTime": slot.start_time,
        "endTime": slot.end_time,
    }


@dataclass(frozen=True)
class HandleRequestResult:
    request: CoordinationRequest
    logged_entries: list[ActivityLogEntry]
    relocated_slots: list[AssignedSlot] = field(default_factory=list)


@dataclass
class _ApprovalPlan:
    removed_slot_ids: list[int] = field(default_factory=list)
    added_slots: list[AssignedSlot] = field(default_factory=list)
    moved_slots: list[tuple[AssignedSlot, AssignedSlot]] = field(default_factory=list)
    previous_slot: Optional[AssignedSlot] = None
    new_slot: Optional[AssignedSlot] = None


class RequestCoordinationService:
    """Validates, stores and resolves swap and booking requests inside a room.

    Approval may displace another member's slot. The displaced slot is moved to
    the nearest free time found by the reschedule search within the room's
    working hours; a relocation only lands in free time, so it never displaces
    anyone else. When no free time exists the approval fails and nothing is
    written.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._recommendation_config = build_recommendation_config(self._settings)
        self._lock = RLock()

    def _require_room(self, room_id: int) -> Room:
        room = self._repository.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(f"Room {room_id} was not found")
        return room

    def _require_request(self, request_id: int) -> CoordinationRequest:
        request = self._repository.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(f"Request {request_id} was not found")
        return request

    def _display_name(self, user_id: Optional[str]) -> str:
        return self._repository.get_user_name(user_id) or "unknown"

    def create_request(
        self,
        *,
        actor_id: str,
        room_id: Optional[int],
        request_type: Optional[str],
        time_slot: Optional[RequestTimeSlot],
        target_user_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> CoordinationRequest:
        _raise_if(validate_create_request(room_id, request_type, time_slot))
        room = self._require_room(room_id)
        if actor_id == room.owner_id:
            raise RequestPermissionError("The room owner cannot file requests")
        if not self._repository.is_room_member(room.room_id, actor_id):
            raise RequestPermissionError("Only room members can file requests")
        if target_user_id is not None:
            if target_user_id == actor_id:
                raise RequestValidationError("targetUser must differ from the requester")
            if target_user_id != room.owner_id and not self._repository.is_room_member(
                room.room_id, target_user_id
            ):
                raise RequestValidationError(f"targetUser {target_user_id} is not in this room")

        with self._lock:
            _raise_if(
                validate_not_duplicate(
                    self._repository.list_requests(room.room_id),
                    actor_id,
                    request_type,
                    time_slot,
                    target_user_id,
                )
            )
            conflicting_user_id = self._find_conflicting_user(room, actor_id, time_slot)
            if not message:
                message = (
                    f"{self._display_name(actor_id)} sent "
                    f"{REQUEST_TYPE_LABELS.get(request_type, 'a request')} "
                    f"for {format_slot_details(time_slot)}"
                )
            created = self._repository.create_request(
                room_id=room.room_id,
                requester_id=actor_id,
                request_type=request_type,
                time_slot=time_slot,
                target_user_id=target_user_id,
                conflicting_user_id=conflicting_user_id,
                message=message,
            )
        logger.info(
            "Coordination request created | request_id=%s | room_id=%s | type=%s | conflicting_user_id=%s",
            created.request_id,
            room.room_id,
            request_type,
            conflicting_user_id,
        )
        return created

    def _find_conflicting_user(
        self,
        room: Room,
        requester_id: str,
        time_slot: RequestTimeSlot,
    ) -> Optional[str]:
        start = parse_time(time_slot.start_time)
        end = parse_time(time_slot.end_time)
        for slot in self._repository.list_time_slots(room.room_id):
            if slot.is_travel or slot.member_id in (None, requester_id):
                continue
            if time_slot.date is not None and slot.date != time_slot.date:
                continue
            if slot.day != time_slot.day:
                continue
            slot_start, slot_end = _slot_minutes(slot)
            if intervals_overlap(start, end, slot_start, slot_end):
                return slot.member_id
        return None

    def handle_request(
        self,
        *,
        actor_id: str,
        request_id: int,
        action: Optional[str],
        response: Optional[str] = None,
    ) -> HandleRequestResult:
        _raise_if(validate_action(action))
        request = self._require_request(request_id)

        with self._lock:
            room = self._require_room(request.room_id)
            _raise_if(validate_handle_permission(request, room, actor_id))
            responder_name = self._display_name(actor_id)
            requester_name = self._display_name(request.requester_id)
            details = format_slot_details(request.time_slot)

            if action == REQUEST_STATUS_REJECTED:
                entries = [
                    ActivityLogEntry(
                        room_id=room.room_id,
                        actor_id=actor_id,
                        actor_name=responder_name,
                        action="change_reject",
                        detail_text=f"Rejected {requester_name}'s request for {details}",
                        metadata={"requestId": request.request_id, "requester": request.requester_id},
                    )
                ]
                self._repository.apply_request_resolution(
                    room_id=room.room_id,
                    expected_version=room.version,
                    request_id=request.request_id,
                    status=REQUEST_STATUS_REJECTED,
                    responded_by=actor_id,
                    response=response,
                    log_entries=entries,
                )
                logger.info(
                    "Coordination request rejected | request_id=%s | responder=%s",
                    request.request_id,
                    actor_id,
                )
                return HandleRequestResult(
                    request=self._require_request(request.request_id),
                    logged_entries=entries,
                )

            plan = self._plan_approval(room, request)
            entries = self._approval_entries(
                room, request, plan, actor_id, responder_name, requester_name, details
            )
            self._repository.apply_request_resolution(
                room_id=room.room_id,
                expected_version=room.version,
                request_id=request.request_id,
                status=REQUEST_STATUS_APPROVED,
                responded_by=actor_id,
                response=response,
                removed_slot_ids=plan.removed_slot_ids,
                added_slots=plan.added_slots,
                moved_slots=[moved for _, moved in plan.moved_slots],
                log_entries=entries,
            )

        logger.info(
            "Coordination request approved | request_id=%s | responder=%s | relocated=%s",
            request.request_id,
            actor_id,
            len(plan.moved_slots),
        )
        return HandleRequestResult(
            request=self._require_request(request.request_id),
            logged_entries=entries,
            relocated_slots=[moved for _, moved in plan.moved_slots],
        )

    def _resolve_request_date(
        self,
        request: CoordinationRequest,
        slots: Sequence[AssignedSlot],
    ) -> date:
        if request.time_slot.date is not None:
            return request.time_slot.date
        same_day = [slot for slot in slots if slot.day == request.time_slot.day]
        own = [slot for slot in same_day if slot.member_id == request.requester_id]
        candidates = own or same_day
        if not candidates:
            raise RequestValidationError(
                "timeSlot.date is required when the room has no slot on that day"
            )
        return max(slot.date for slot in candidates)

    def _plan_approval(self, room: Room, request: CoordinationRequest) -> _ApprovalPlan:
        slots = self._repository.list_time_slots(room.room_id)
        target_date = self._resolve_request_date(request, slots)
        start = parse_time(request.time_slot.start_time)
        end = parse_time(request.time_slot.end_time)

        day_slots = [slot for slot in slots if slot.date == target_date and not slot.is_travel]
        requester_slots = [slot for slot in day_slots if slot.member_id == request.requester_id]
        requester_overlapping = [
            slot for slot in requester_slots if intervals_overlap(start, end, *_slot_minutes(slot))
        ]

        plan = _ApprovalPlan()
        if request.request_type == "slot_release":
            plan.removed_slot_ids = [slot.slot_id for slot in requester_overlapping]
            plan.previous_slot = requester_overlapping[0] if requester_overlapping else None
            return plan
        if requester_overlapping:
            # Requester already holds the window.
            plan.previous_slot = requester_overlapping[0]
            plan.new_slot = requester_overlapping[0]
            return plan

        previous = requester_slots[0] if requester_slots else None
        new_slot = AssignedSlot(
            member_id=request.requester_id,
            date=target_date,
            start_time=request.time_slot.start_time,
            end_time=request.time_slot.end_time,
            day=day_code_for(target_date),
            is_travel=False,
            label=previous.label if previous is not None else REQUESTED_SLOT_LABEL,
        )
        plan.previous_slot = previous
        plan.new_slot = new_slot
        if previous is not None:
            plan.removed_slot_ids.append(previous.slot_id)
        plan.added_slots.append(new_slot)

        displaced = [
            slot
            for slot in day_slots
            if slot.member_id not in (None, request.requester_id)
            and intervals_overlap(start, end, *_slot_minutes(slot))
        ]
        # Free time after the move: everything except the displaced and vacated slots.
        blocking = [
            _slot_event(slot)
            for slot in slots
            if slot.date == target_date
            and slot not in displaced
            and (previous is None or slot.slot_id != previous.slot_id)
        ]
        blocking.append(_slot_event(new_slot))

        for slot in displaced:
            if (
                request.request_type == "slot_swap"
                and previous is not None
                and slot.member_id == request.target_user_id
            ):
                moved = replace(
                    slot,
                    date=previous.date,
                    day=previous.day,
                    start_time=previous.start_time,
                    end_time=previous.end_time,
                )
            else:
                moved = self._relocate(room, slot, blocking)
            plan.moved_slots.append((slot, moved))
            blocking.append(_slot_event(moved))
        return plan

    def _relocate(
        self,
        room: Room,
        slot: AssignedSlot,
        blocking: Sequence[CalendarEvent],
    ) -> AssignedSlot:
        offsets = self._recommendation_config.search_offsets
        config = RecommendationConfig(
            search_offsets=offsets,
            min_hour=room.settings.schedule_start_hour,
            max_hour=room.settings.schedule_end_hour,
            max_recommendations=len(offsets),
        )
        anchor = _slot_event(slot)
        slot_start, slot_end = _slot_minutes(slot)
        room_close = _at(slot.date, room.settings.schedule_end_hour * 60)
        for recommendation in generate_reschedule_time_recommendations(anchor, blocking, config):
            if recommendation.end > room_close:
                continue
            start_minutes = recommendation.start.hour * 60 + recommendation.start.minute
            end_minutes = start_minutes + (slot_end - slot_start)
            logger.debug(
                "Displaced slot relocated | slot_id=%s | member_id=%s | start=%s",
                slot.slot_id,
                slot.member_id,
                recommendation.start,
            )
            return replace(
                slot,
                start_time=format_minutes(start_minutes),
                end_time=format_minutes(end_minutes),
            )

        name = self._display_name(slot.member_id)
        logger.warning(
            "Chain adjustment failed | room_id=%s | displaced_member_id=%s | slot_id=%s",
            room.room_id,
            slot.member_id,
            slot.slot_id,
        )
        raise ChainAdjustmentFailedError(
            f"No alternative slot is available for {name} on {slot.date.isoformat()}",
            displaced_member_id=slot.member_id,
        )

    def _approval_entries(
        self,
        room: Room,
        request: CoordinationRequest,
        plan: _ApprovalPlan,
        actor_id: str,
        responder_name: str,
        requester_name: str,
        details: str,
    ) -> list[ActivityLogEntry]:
        entries: list[ActivityLogEntry] = []
        for original, moved in plan.moved_slots:
            entries.append(
                ActivityLogEntry(
                    room_id=room.room_id,
                    actor_id=actor_id,
                    actor_name=responder_name,
                    action="slot_move",
                    detail_text=(
                        f"Moved {self._display_name(original.member_id)} from "
                        f"{format_slot_details(_slot_as_request_slot(original))} to "
                        f"{format_slot_details(_slot_as_request_slot(moved))}"
                    ),
                    metadata={
                        "member": original.member_id,
                        "prevSlot": _slot_metadata(original),
                        "slot": _slot_metadata(moved),
                        "requestId": request.request_id,
                    },
                )
            )

        entries.append(
            ActivityLogEntry(
                room_id=room.room_id,
                actor_id=actor_id,
                actor_name=responder_name,
                action="change_approve",
                detail_text=f"Approved {requester_name}'s request for {details}",
                metadata={"requestId": request.request_id, "requester": request.requester_id},
            )
        )

        previous = plan.previous_slot
        if request.request_type == "slot_release":
            swap_text = f"Released {details}"
            new_slot_meta = None
        elif previous is not None and previous is not plan.new_slot:
            swap_text = (
                f"Moved from {format_slot_details(_slot_as_request_slot(previous))} to {details}"
            )
            new_slot_meta = _slot_metadata(plan.new_slot)
        else:
            swap_text = f"Took {details}"
            new_slot_meta = _slot_metadata(plan.new_slot)
        entries.append(
            ActivityLogEntry(
                room_id=room.room_id,
                actor_id=request.requester_id,
                actor_name=requester_name,
                action="slot_swap",
                detail_text=f"{swap_text} (approved by {responder_name})",
                metadata={
                    "prevSlot": _slot_metadata(previous),
                    "slot": new_slot_meta,
                    "type": "from_request",
                    "approver": actor_id,
                    "approverName": responder_name,
                },
            )
        )
        return entries

    def cancel_request(self, *, actor_id: str, request_id: int) -> None:
        request = self._require_request(request_id)
        _raise_if(validate_delete_permission(request, actor_id))
        self._repository.delete_request(request_id)
        logger.info(
            "Coordination request deleted | request_id=%s | actor_id=%s | status=%s",
            request_id,
            actor_id,
            request.status,
        )

    def list_room_requests(
        self,
        room_id: int,
        status: Optional[str] = None,
    ) -> list[CoordinationRequest]:
        self._require_room(room_id)
        return self._repository.list_requests(room_id, status=status)

    def list_activity(self, room_id: int, limit: int = 100) -> list[ActivityLogEntry]:
        self._require_room(room_id)
        return self._repository.list_activity_logs(room_id, limit=limit)
