"""Domain models for schedule coordination, travel assignment and requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional


DAY_CODES: tuple[str, ...] = ("MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN")

REQUEST_STATUS_PENDING = "pending"
REQUEST_STATUS_APPROVED = "approved"
REQUEST_STATUS_REJECTED = "rejected"

REQUEST_TYPES: frozenset[str] = frozenset(
    {"booking", "slot_swap", "time_request", "time_change", "slot_release", "conflict"}
)
SWAP_REQUEST_TYPES: frozenset[str] = frozenset({"slot_swap", "time_request"})


def day_code_for(value: date) -> str:
    return DAY_CODES[value.weekday()]


@dataclass(frozen=True)
class Schedule:
    """Candidate or existing recurring commitment."""

    title: str
    days: tuple[str, ...]
    start_time: str
    end_time: str
    id: Optional[str] = None
    date: Optional[date] = None


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float


@dataclass(frozen=True)
class PreferredBlock:
    day: str
    start_time: str
    end_time: str


@dataclass(frozen=True)
class CarryOverRecord:
    week: date
    amount: float


@dataclass(frozen=True)
class Member:
    member_id: str
    name: str = ""
    location: Optional[Location] = None
    preferred_blocks: tuple[PreferredBlock, ...] = ()
    carry_over_hours: float = 0.0
    carry_over_history: tuple[CarryOverRecord, ...] = ()


@dataclass(frozen=True)
class RoomSettings:
    schedule_start_hour: int = 9
    schedule_end_hour: int = 18
    min_hours_per_week: float = 3.0


@dataclass(frozen=True)
class Room:
    room_id: int
    name: str
    owner_id: str
    settings: RoomSettings
    version: int = 0


@dataclass(frozen=True)
class AssignedSlot:
    member_id: Optional[str]
    date: date
    start_time: str
    end_time: str
    day: str
    is_travel: bool = False
    label: str = ""
    slot_id: Optional[int] = None


@dataclass(frozen=True)
class CalendarEvent:
    """Absolute-time event used by the recommendation search."""

    start: datetime
    end: datetime
    id: Optional[str] = None
    title: str = ""


@dataclass(frozen=True)
class Recommendation:
    start: datetime
    end: datetime
    display: str


@dataclass(frozen=True)
class RequestTimeSlot:
    day: str
    start_time: str
    end_time: str
    date: Optional[date] = None


@dataclass(frozen=True)
class CoordinationRequest:
    request_id: int
    room_id: int
    requester_id: str
    request_type: str
    time_slot: RequestTimeSlot
    target_user_id: Optional[str] = None
    status: str = REQUEST_STATUS_PENDING
    conflicting_user_id: Optional[str] = None
    message: Optional[str] = None
    response: Optional[str] = None
    responded_by: Optional[str] = None
    created_at: Optional[str] = None
    responded_at: Optional[str] = None


@dataclass(frozen=True)
class ActivityLogEntry:
    room_id: int
    actor_id: Optional[str]
    actor_name: str
    action: str
    detail_text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[str] = None


@dataclass(frozen=True)
class TravelScheduleOptions:
    room_settings: RoomSettings
    current_week: Optional[date] = None
    min_hours_per_week: Optional[float] = None

    @property
    def effective_min_hours(self) -> float:
        if self.min_hours_per_week is not None:
            return self.min_hours_per_week
        return self.room_settings.min_hours_per_week


@dataclass(frozen=True)
class TravelScheduleResult:
    time_slots: list[AssignedSlot]
    members: list[Member]
    settings: RoomSettings
    assigned_minutes: dict[str, int]
    unvisited_member_ids: list[str]


@dataclass(frozen=True)
class CarryOverSuggestion:
    member_id: str
    title: str
    content: str
