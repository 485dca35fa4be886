"""HTTP controller layer for conflict checks, combinations and time recommendations."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from backend.controllers.dependencies import (
    get_actor_id,
    get_combination_service,
    get_recommendation_service,
    to_http_exception,
)
from backend.domain.errors import CoordinationError
from backend.domain.intervals import parse_time
from backend.domain.models import DAY_CODES, CalendarEvent, Recommendation, Schedule
from backend.services.conflict_service import ScheduleCombinationService
from backend.services.recommendation_service import (
    TimeRecommendationService,
    create_recommendation_message,
)
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["schedules"])


class ScheduleModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    days: list[str] = Field(default_factory=list)
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    id: Optional[str] = None
    schedule_date: Optional[date] = Field(default=None, alias="date")

    @field_validator("days")
    @classmethod
    def validate_days(cls, value: list[str]) -> list[str]:
        unknown = [day for day in value if day not in DAY_CODES]
        if unknown:
            raise ValueError(f"unknown day codes: {unknown}")
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

    def to_domain(self) -> Schedule:
        return Schedule(
            title=self.title,
            days=tuple(self.days),
            start_time=self.start_time,
            end_time=self.end_time,
            id=self.id,
            date=self.schedule_date,
        )

    @classmethod
    def from_domain(cls, schedule: Schedule) -> "ScheduleModel":
        return cls(
            title=schedule.title,
            days=list(schedule.days),
            start_time=schedule.start_time,
            end_time=schedule.end_time,
            id=schedule.id,
            schedule_date=schedule.date,
        )


class ConflictCheckRequest(BaseModel):
    schedules: list[ScheduleModel]


class ConflictPair(BaseModel):
    first: int = Field(ge=0)
    second: int = Field(ge=0)


class ConflictCheckResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_conflicts: bool = Field(alias="hasConflicts")
    conflicts: list[ConflictPair]


class CombinationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    schedules: list[ScheduleModel]
    max_combinations: Optional[int] = Field(default=None, gt=0, alias="maxCombinations")
    max_attempts: Optional[int] = Field(default=None, gt=0, alias="maxAttempts")


class CombinationResponse(BaseModel):
    combinations: list[list[ScheduleModel]]


class EventModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    title: str = ""
    start_time: AwareDatetime = Field(alias="startTime")
    end_time: AwareDatetime = Field(alias="endTime")

    @field_validator("end_time")
    @classmethod
    def validate_end_after_start(cls, value: AwareDatetime, info: ValidationInfo) -> AwareDatetime:
        start = info.data.get("start_time")
        if start is not None and value <= start:
            raise ValueError("endTime must be after startTime")
        return value

    def to_domain(self) -> CalendarEvent:
        return CalendarEvent(start=self.start_time, end=self.end_time, id=self.id, title=self.title)

    @classmethod
    def from_domain(cls, event: CalendarEvent) -> "EventModel":
        return cls(id=event.id, title=event.title, start_time=event.start, end_time=event.end)


class RecommendAlternativeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pending_event: EventModel = Field(alias="pendingEvent")
    existing_events: list[EventModel] = Field(default_factory=list, alias="existingEvents")


class RecommendRescheduleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conflicting_event: EventModel = Field(alias="conflictingEvent")
    existing_events: list[EventModel] = Field(default_factory=list, alias="existingEvents")

    @field_validator("conflicting_event")
    @classmethod
    def validate_has_id(cls, value: EventModel) -> EventModel:
        if not value.id:
            raise ValueError("conflictingEvent.id is required")
        return value


class RecommendationModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_time: AwareDatetime = Field(alias="startTime")
    end_time: AwareDatetime = Field(alias="endTime")
    display: str

    @classmethod
    def from_domain(cls, recommendation: Recommendation) -> "RecommendationModel":
        return cls(
            start_time=recommendation.start,
            end_time=recommendation.end,
            display=recommendation.display,
        )


class RecommendationResponse(BaseModel):
    recommendations: list[RecommendationModel]
    message: str


class ConfirmRescheduleRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event_id: str = Field(min_length=1, alias="eventId")
    selected_start_time: AwareDatetime = Field(alias="selectedStartTime")
    selected_end_time: AwareDatetime = Field(alias="selectedEndTime")
    pending_event: Optional[EventModel] = Field(default=None, alias="pendingEvent")


class ConfirmRescheduleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rescheduled_event: EventModel = Field(alias="rescheduledEvent")
    new_event: Optional[EventModel] = Field(default=None, alias="newEvent")
    changed: bool
    message: str


class CreateEventRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    start_time: AwareDatetime = Field(alias="startTime")
    end_time: AwareDatetime = Field(alias="endTime")


class EventListResponse(BaseModel):
    events: list[EventModel]


@router.post(
    "/schedules/conflicts",
    response_model=ConflictCheckResponse,
    status_code=status.HTTP_200_OK,
)
async def check_conflicts(
    payload: ConflictCheckRequest,
    service: ScheduleCombinationService = Depends(get_combination_service),
) -> ConflictCheckResponse:
    pairs = service.find_conflicts([schedule.to_domain() for schedule in payload.schedules])
    return ConflictCheckResponse(
        has_conflicts=bool(pairs),
        conflicts=[ConflictPair(first=first, second=second) for first, second in pairs],
    )


@router.post(
    "/schedules/combinations",
    response_model=CombinationResponse,
    status_code=status.HTTP_200_OK,
)
async def generate_combinations(
    payload: CombinationRequest,
    service: ScheduleCombinationService = Depends(get_combination_service),
) -> CombinationResponse:
    """Randomized; repeated calls may return different combinations."""
    try:
        combinations = service.generate(
            [schedule.to_domain() for schedule in payload.schedules],
            max_combinations=payload.max_combinations,
            max_attempts=payload.max_attempts,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return CombinationResponse(
        combinations=[
            [ScheduleModel.from_domain(schedule) for schedule in combination]
            for combination in combinations
        ]
    )


@router.post(
    "/events/recommend-alternative",
    response_model=RecommendationResponse,
    status_code=status.HTTP_200_OK,
)
async def recommend_alternative(
    payload: RecommendAlternativeRequest,
    service: TimeRecommendationService = Depends(get_recommendation_service),
) -> RecommendationResponse:
    try:
        recommendations = service.recommend_alternative(
            payload.pending_event.to_domain(),
            [event.to_domain() for event in payload.existing_events],
        )
    except CoordinationError as exc:
        raise to_http_exception(exc) from exc
    return RecommendationResponse(
        recommendations=[RecommendationModel.from_domain(item) for item in recommendations],
        message=create_recommendation_message(recommendations),
    )


@router.post(
    "/events/recommend-reschedule",
    response_model=RecommendationResponse,
    status_code=status.HTTP_200_OK,
)
async def recommend_reschedule(
    payload: RecommendRescheduleRequest,
    service: TimeRecommendationService = Depends(get_recommendation_service),
) -> RecommendationResponse:
    conflicting_event = payload.conflicting_event.to_domain()
    try:
        recommendations = service.recommend_reschedule(
            conflicting_event,
            [event.to_domain() for event in payload.existing_events],
        )
    except CoordinationError as exc:
        raise to_http_exception(exc) from exc
    return RecommendationResponse(
        recommendations=[RecommendationModel.from_domain(item) for item in recommendations],
        message=create_recommendation_message(recommendations, conflicting_event),
    )


@router.post(
    "/events/confirm-reschedule",
    response_model=ConfirmRescheduleResponse,
    status_code=status.HTTP_200_OK,
)
async def confirm_reschedule(
    payload: ConfirmRescheduleRequest,
    actor_id: str = Depends(get_actor_id),
    service: TimeRecommendationService = Depends(get_recommendation_service),
) -> ConfirmRescheduleResponse:
    """Idempotent: confirming an already committed slot succeeds without changes."""
    try:
        result = service.confirm_reschedule(
            user_id=actor_id,
            event_id=payload.event_id,
            selected_start=payload.selected_start_time,
            selected_end=payload.selected_end_time,
            pending_event=payload.pending_event.to_domain() if payload.pending_event else None,
        )
    except CoordinationError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected reschedule confirmation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to confirm reschedule",
        ) from exc
    return ConfirmRescheduleResponse(
        rescheduled_event=EventModel.from_domain(result.rescheduled_event),
        new_event=EventModel.from_domain(result.new_event) if result.new_event else None,
        changed=result.changed,
        message=result.message,
    )


@router.post(
    "/events",
    response_model=EventModel,
    status_code=status.HTTP_201_CREATED,
)
async def create_event(
    payload: CreateEventRequest,
    actor_id: str = Depends(get_actor_id),
    service: TimeRecommendationService = Depends(get_recommendation_service),
) -> EventModel:
    try:
        event = service.add_event(
            user_id=actor_id,
            title=payload.title,
            start=payload.start_time,
            end=payload.end_time,
        )
    except CoordinationError as exc:
        raise to_http_exception(exc) from exc
    return EventModel.from_domain(event)


@router.get(
    "/events",
    response_model=EventListResponse,
    status_code=status.HTTP_200_OK,
)
async def list_events(
    actor_id: str = Depends(get_actor_id),
    service: TimeRecommendationService = Depends(get_recommendation_service),
) -> EventListResponse:
    return EventListResponse(
        events=[EventModel.from_domain(event) for event in service.list_events(actor_id)]
    )
