"""HTTP controller layer for room coordination requests and travel scheduling."""

from __future__ import annotations

from datetime import date
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from backend.controllers.dependencies import (
    get_actor_id,
    get_request_service,
    get_travel_service,
    to_http_exception,
)
from backend.domain.errors import CoordinationError
from backend.domain.intervals import parse_time
from backend.domain.models import (
    DAY_CODES,
    ActivityLogEntry,
    AssignedSlot,
    CarryOverRecord,
    CarryOverSuggestion,
    CoordinationRequest,
    Location,
    Member,
    PreferredBlock,
    RequestTimeSlot,
    RoomSettings,
    TravelScheduleOptions,
    TravelScheduleResult,
)
from backend.services.request_service import RequestCoordinationService
from backend.services.travel_service import TravelSchedulingService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/coordination", tags=["coordination"])


class TimeWindowModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    day: str
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str) -> str:
        if value not in DAY_CODES:
            raise ValueError(f"day must be one of {', '.join(DAY_CODES)}")
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_clock_time(cls, value: str) -> str:
        if parse_time(value) is None:
            raise ValueError("time must use HH:MM")
        return value

    @field_validator("end_time")
    @classmethod
    def validate_end_after_start(cls, value: str, info: ValidationInfo) -> str:
        start = info.data.get("start_time")
        if start is not None and parse_time(start) >= parse_time(value):
            raise ValueError("endTime must be after startTime")
        return value


class RequestTimeSlotModel(TimeWindowModel):
    slot_date: Optional[date] = Field(default=None, alias="date")

    def to_domain(self) -> RequestTimeSlot:
        return RequestTimeSlot(
            day=self.day,
            start_time=self.start_time,
            end_time=self.end_time,
            date=self.slot_date,
        )


class CreateCoordinationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: int = Field(gt=0, alias="roomId")
    type: str = Field(min_length=1)
    time_slot: RequestTimeSlotModel = Field(alias="timeSlot")
    target_user: Optional[str] = Field(default=None, alias="targetUser")
    message: Optional[str] = Field(default=None, max_length=500)


class HandleCoordinationRequest(BaseModel):
    response: Optional[str] = Field(default=None, max_length=500)


class CoordinationRequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    room_id: int = Field(alias="roomId")
    requester: str
    target_user: Optional[str] = Field(default=None, alias="targetUser")
    type: str
    time_slot: RequestTimeSlotModel = Field(alias="timeSlot")
    status: str
    conflicting_user_id: Optional[str] = Field(default=None, alias="conflictingUserId")
    message: Optional[str] = None
    response: Optional[str] = None
    responded_by: Optional[str] = Field(default=None, alias="respondedBy")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    responded_at: Optional[str] = Field(default=None, alias="respondedAt")

    @classmethod
    def from_domain(cls, request: CoordinationRequest) -> "CoordinationRequestModel":
        slot = request.time_slot
        return cls(
            id=request.request_id,
            room_id=request.room_id,
            requester=request.requester_id,
            target_user=request.target_user_id,
            type=request.request_type,
            time_slot=RequestTimeSlotModel(
                day=slot.day,
                start_time=slot.start_time,
                end_time=slot.end_time,
                slot_date=slot.date,
            ),
            status=request.status,
            conflicting_user_id=request.conflicting_user_id,
            message=request.message,
            response=request.response,
            responded_by=request.responded_by,
            created_at=request.created_at,
            responded_at=request.responded_at,
        )


class ActivityLogModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_id: int = Field(alias="roomId")
    actor_id: Optional[str] = Field(default=None, alias="actorId")
    actor_name: str = Field(alias="actorName")
    action: str
    detail_text: str = Field(alias="detailText")
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    @classmethod
    def from_domain(cls, entry: ActivityLogEntry) -> "ActivityLogModel":
        return cls(
            room_id=entry.room_id,
            actor_id=entry.actor_id,
            actor_name=entry.actor_name,
            action=entry.action,
            detail_text=entry.detail_text,
            metadata=entry.metadata,
            created_at=entry.created_at,
        )


class AssignedSlotModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    member_id: Optional[str] = Field(default=None, alias="memberId")
    slot_date: date = Field(alias="date")
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    day: str
    is_travel: bool = Field(default=False, alias="isTravel")
    label: str = ""

    @classmethod
    def from_domain(cls, slot: AssignedSlot) -> "AssignedSlotModel":
        return cls(
            member_id=slot.member_id,
            slot_date=slot.date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            day=slot.day,
            is_travel=slot.is_travel,
            label=slot.label,
        )


class HandleRequestResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    request: CoordinationRequestModel
    logged_entries: list[ActivityLogModel] = Field(alias="loggedEntries")
    relocated_slots: list[AssignedSlotModel] = Field(default_factory=list, alias="relocatedSlots")


class RequestListResponse(BaseModel):
    requests: list[CoordinationRequestModel]


class ActivityListResponse(BaseModel):
    entries: list[ActivityLogModel]


class LocationModel(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class CarryOverRecordModel(BaseModel):
    week: date
    amount: float = Field(ge=0.0)


class MemberModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    name: str = ""
    location: Optional[LocationModel] = None
    preferred_blocks: list[TimeWindowModel] = Field(default_factory=list, alias="preferredBlocks")
    carry_over_hours: float = Field(default=0.0, ge=0.0, alias="carryOverHours")
    carry_over_history: list[CarryOverRecordModel] = Field(
        default_factory=list, alias="carryOverHistory"
    )

    def to_domain(self) -> Member:
        return Member(
            member_id=self.id,
            name=self.name,
            location=Location(lat=self.location.lat, lng=self.location.lng)
            if self.location is not None
            else None,
            preferred_blocks=tuple(
                PreferredBlock(day=block.day, start_time=block.start_time, end_time=block.end_time)
                for block in self.preferred_blocks
            ),
            carry_over_hours=self.carry_over_hours,
            carry_over_history=tuple(
                CarryOverRecord(week=record.week, amount=record.amount)
                for record in self.carry_over_history
            ),
        )

    @classmethod
    def from_domain(cls, member: Member) -> "MemberModel":
        return cls(
            id=member.member_id,
            name=member.name,
            location=LocationModel(lat=member.location.lat, lng=member.location.lng)
            if member.location is not None
            else None,
            preferred_blocks=[
                TimeWindowModel(day=block.day, start_time=block.start_time, end_time=block.end_time)
                for block in member.preferred_blocks
            ],
            carry_over_hours=member.carry_over_hours,
            carry_over_history=[
                CarryOverRecordModel(week=record.week, amount=record.amount)
                for record in member.carry_over_history
            ],
        )


class RoomSettingsModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schedule_start_hour: int = Field(default=9, ge=0, le=23, alias="scheduleStartHour")
    schedule_end_hour: int = Field(default=18, ge=1, le=24, alias="scheduleEndHour")
    min_hours_per_week: float = Field(default=3.0, ge=0.0, alias="minHoursPerWeek")

    @field_validator("schedule_end_hour")
    @classmethod
    def validate_hours_order(cls, value: int, info: ValidationInfo) -> int:
        start = info.data.get("schedule_start_hour")
        if start is not None and value <= start:
            raise ValueError("scheduleEndHour must be after scheduleStartHour")
        return value

    def to_domain(self) -> RoomSettings:
        return RoomSettings(
            schedule_start_hour=self.schedule_start_hour,
            schedule_end_hour=self.schedule_end_hour,
            min_hours_per_week=self.min_hours_per_week,
        )

    @classmethod
    def from_domain(cls, settings: RoomSettings) -> "RoomSettingsModel":
        return cls(
            schedule_start_hour=settings.schedule_start_hour,
            schedule_end_hour=settings.schedule_end_hour,
            min_hours_per_week=settings.min_hours_per_week,
        )


class TravelOptionsModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    min_hours_per_week: Optional[float] = Field(default=None, ge=0.0, alias="minHoursPerWeek")
    current_week: Optional[date] = Field(default=None, alias="currentWeek")
    room_settings: RoomSettingsModel = Field(default_factory=RoomSettingsModel, alias="roomSettings")


class TravelScheduleRequest(BaseModel):
    members: list[MemberModel]
    owner: MemberModel
    options: TravelOptionsModel = Field(default_factory=TravelOptionsModel)


class RoomTravelScheduleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    week_start: Optional[date] = Field(default=None, alias="weekStart")


class CarryOverSuggestionModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    member_id: str = Field(alias="memberId")
    title: str
    content: str

    @classmethod
    def from_domain(cls, suggestion: CarryOverSuggestion) -> "CarryOverSuggestionModel":
        return cls(member_id=suggestion.member_id, title=suggestion.title, content=suggestion.content)


class TravelScheduleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    time_slots: list[AssignedSlotModel] = Field(alias="timeSlots")
    members: list[MemberModel]
    settings: RoomSettingsModel
    assigned_minutes: dict[str, int] = Field(alias="assignedMinutes")
    unvisited_member_ids: list[str] = Field(alias="unvisitedMemberIds")
    suggestions: list[CarryOverSuggestionModel] = Field(default_factory=list)


class CarryOverResponse(BaseModel):
    suggestions: list[CarryOverSuggestionModel]


def _travel_response(
    result: TravelScheduleResult,
    suggestions: Optional[list[CarryOverSuggestion]] = None,
) -> TravelScheduleResponse:
    return TravelScheduleResponse(
        time_slots=[AssignedSlotModel.from_domain(slot) for slot in result.time_slots],
        members=[MemberModel.from_domain(member) for member in result.members],
        settings=RoomSettingsModel.from_domain(result.settings),
        assigned_minutes=result.assigned_minutes,
        unvisited_member_ids=result.unvisited_member_ids,
        suggestions=[CarryOverSuggestionModel.from_domain(item) for item in suggestions or []],
    )


@router.post(
    "/requests",
    response_model=CoordinationRequestModel,
    status_code=status.HTTP_201_CREATED,
)
async def create_request(
    payload: CreateCoordinationRequest,
    actor_id: str = Depends(get_actor_id),
    service: RequestCoordinationService = Depends(get_request_service),
) -> CoordinationRequestModel:
    try:
        created = service.create_request(
            actor_id=actor_id,
            room_id=payload.room_id,
            request_type=payload.type,
            time_slot=payload.time_slot.to_domain(),
            target_user_id=payload.target_user,
            message=payload.message,
        )
    except CoordinationError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected request creation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create request",
        ) from exc
    return CoordinationRequestModel.from_domain(created)


@router.post(
    "/requests/{request_id}/{action}",
    response_model=HandleRequestResponse,
    status_code=status.HTTP_200_OK,
)
async def handle_request(
    request_id: int,
    action: str,
    payload: Optional[HandleCoordinationRequest] = None,
    actor_id: str = Depends(get_actor_id),
    service: RequestCoordinationService = Depends(get_request_service),
) -> HandleRequestResponse:
    """Approve or reject a pending request; approval may relocate a displaced slot."""
    try:
        result = service.handle_request(
            actor_id=actor_id,
            request_id=request_id,
            action=action,
            response=payload.response if payload is not None else None,
        )
    except CoordinationError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected request handling failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to handle request",
        ) from exc
    return HandleRequestResponse(
        status=result.request.status,
        request=CoordinationRequestModel.from_domain(result.request),
        logged_entries=[ActivityLogModel.from_domain(entry) for entry in result.logged_entries],
        relocated_slots=[AssignedSlotModel.from_domain(slot) for slot in result.relocated_slots],
    )


@router.delete(
    "/requests/{request_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_request(
    request_id: int,
    actor_id: str = Depends(get_actor_id),
    service: RequestCoordinationService = Depends(get_request_service),
) -> Response:
    try:
        service.cancel_request(actor_id=actor_id, request_id=request_id)
    except CoordinationError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/rooms/{room_id}/requests",
    response_model=RequestListResponse,
    status_code=status.HTTP_200_OK,
)
async def list_room_requests(
    room_id: int,
    request_status: Optional[Literal["pending", "approved", "rejected"]] = Query(
        default=None, alias="status"
    ),
    service: RequestCoordinationService = Depends(get_request_service),
) -> RequestListResponse:
    try:
        requests = service.list_room_requests(room_id, status=request_status)
    except CoordinationError as exc:
        raise to_http_exception(exc) from exc
    return RequestListResponse(
        requests=[CoordinationRequestModel.from_domain(item) for item in requests]
    )


@router.get(
    "/rooms/{room_id}/activity",
    response_model=ActivityListResponse,
    status_code=status.HTTP_200_OK,
)
async def list_room_activity(
    room_id: int,
    limit: int = Query(default=100, gt=0, le=1000),
    service: RequestCoordinationService = Depends(get_request_service),
) -> ActivityListResponse:
    try:
        entries = service.list_activity(room_id, limit=limit)
    except CoordinationError as exc:
        raise to_http_exception(exc) from exc
    return ActivityListResponse(entries=[ActivityLogModel.from_domain(entry) for entry in entries])


@router.post(
    "/travel-schedule",
    response_model=TravelScheduleResponse,
    status_code=status.HTTP_200_OK,
)
async def run_travel_schedule(
    payload: TravelScheduleRequest,
    service: TravelSchedulingService = Depends(get_travel_service),
) -> TravelScheduleResponse:
    """Stateless scheduler call; nothing is persisted."""
    options = TravelScheduleOptions(
        room_settings=payload.options.room_settings.to_domain(),
        current_week=payload.options.current_week,
        min_hours_per_week=payload.options.min_hours_per_week,
    )
    try:
        result = service.run_travel_schedule(
            [member.to_domain() for member in payload.members],
            payload.owner.to_domain(),
            options,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return _travel_response(result)


@router.post(
    "/rooms/{room_id}/travel-schedule",
    response_model=TravelScheduleResponse,
    status_code=status.HTTP_200_OK,
)
async def run_room_travel_schedule(
    room_id: int,
    payload: Optional[RoomTravelScheduleRequest] = None,
    actor_id: str = Depends(get_actor_id),
    service: TravelSchedulingService = Depends(get_travel_service),
) -> TravelScheduleResponse:
    """Schedule the room's week, persist slots and update carry-over."""
    try:
        result, suggestions = service.run_room_schedule(
            room_id=room_id,
            actor_id=actor_id,
            week_start=payload.week_start if payload is not None else None,
        )
    except CoordinationError as exc:
        raise to_http_exception(exc) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected travel scheduling failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run travel schedule",
        ) from exc
    return _travel_response(result, suggestions)


@router.get(
    "/rooms/{room_id}/carry-over",
    response_model=CarryOverResponse,
    status_code=status.HTTP_200_OK,
)
async def get_carry_over_suggestions(
    room_id: int,
    as_of: Optional[date] = Query(default=None, alias="asOf"),
    service: TravelSchedulingService = Depends(get_travel_service),
) -> CarryOverResponse:
    try:
        suggestions = service.carry_over_suggestions(room_id, as_of=as_of)
    except CoordinationError as exc:
        raise to_http_exception(exc) from exc
    return CarryOverResponse(
        suggestions=[CarryOverSuggestionModel.from_domain(item) for item in suggestions]
    )
