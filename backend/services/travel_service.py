"""Travel-aware greedy visit assignment across one work week.

The owner starts each day from their own location. At every step the nearest
unvisited member (Haversine distance, constant average speed, rounded up to
whole travel slots) is visited at the first free slot inside the owner and
member's shared preferred availability. When no slot exists the run moves on
to the next day and retries the same member.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta
from threading import RLock
from typing import Optional, Protocol, Sequence

import numpy as np

from backend.domain.constraints import TravelConfig, validate_room_settings, validate_travel_config
from backend.domain.errors import RequestPermissionError, RoomNotFoundError
from backend.domain.intervals import (
    TimeBlock,
    format_minutes,
    intersect_time_blocks,
    merge_time_blocks,
)
from backend.domain.models import (
    ActivityLogEntry,
    AssignedSlot,
    CarryOverSuggestion,
    Location,
    Member,
    TravelScheduleOptions,
    TravelScheduleResult,
    day_code_for,
)
from backend.repository.data_repository import DataRepository
from backend.services.carry_over_service import apply_weekly_carry_over, find_long_term_carry_overs
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

VISIT_LABEL = "Visit"


def build_travel_config(settings: Settings) -> TravelConfig:
    return TravelConfig(
        average_speed_kmh=settings.travel_average_speed_kmh,
        slot_minutes=settings.travel_slot_minutes,
        max_days=settings.travel_max_days,
        day_start_hour=settings.travel_day_start_hour,
        slot_search_limit=settings.travel_slot_search_limit,
        appointment_slots=settings.travel_appointment_slots,
        earth_radius_km=settings.travel_earth_radius_km,
    )


def haversine_distances(
    origin: Optional[Location],
    targets: Sequence[Optional[Location]],
    earth_radius_km: float = 6371.0,
) -> np.ndarray:
    """Great-circle distances in km; missing coordinates on either end give inf."""
    distances = np.full(len(targets), np.inf)
    if origin is None:
        return distances
    located = [index for index, target in enumerate(targets) if target is not None]
    if not located:
        return distances

    lat1 = np.radians(origin.lat)
    lng1 = np.radians(origin.lng)
    lat2 = np.radians(np.array([targets[index].lat for index in located], dtype=float))
    lng2 = np.radians(np.array([targets[index].lng for index in located], dtype=float))

    a = (
        np.sin((lat2 - lat1) / 2.0) ** 2
        + np.cos(lat1) * np.cos(lat2) * np.sin((lng2 - lng1) / 2.0) ** 2
    )
    distances[located] = 2.0 * earth_radius_km * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))
    return distances


def haversine_distance(
    first: Optional[Location],
    second: Optional[Location],
    earth_radius_km: float = 6371.0,
) -> float:
    return float(haversine_distances(first, [second], earth_radius_km)[0])


def travel_time_slots(
    distance_km: float,
    average_speed_kmh: float = 30.0,
    slot_minutes: int = 30,
) -> float:
    if math.isinf(distance_km):
        return math.inf
    travel_minutes = distance_km / average_speed_kmh * 60.0
    return math.ceil(travel_minutes / slot_minutes)


def _blocks_for_day(member: Member, day_code: str) -> list[TimeBlock]:
    return merge_time_blocks(
        TimeBlock(block.start_time, block.end_time)
        for block in member.preferred_blocks
        if block.day == day_code
    )


def _slot_bounds(slot: AssignedSlot) -> tuple[datetime, datetime]:
    start_hour, start_minute = (int(part) for part in slot.start_time.split(":"))
    end_hour, end_minute = (int(part) for part in slot.end_time.split(":"))
    start = datetime.combine(slot.date, time(start_hour, start_minute))
    end = datetime.combine(slot.date, time(end_hour % 24, end_minute))
    if end <= start:
        # Travel blocks may run past midnight.
        end += timedelta(days=1)
    return start, end


def _to_minutes(value: str) -> int:
    hours, minutes = (int(part) for part in value.split(":"))
    return hours * 60 + minutes


def _clock_label(day: date, moment: datetime) -> str:
    """HH:MM relative to ``day``; midnight at the end of the day is 24:00."""
    return format_minutes((moment - datetime.combine(day, time.min)) // timedelta(minutes=1))


class AssignmentStrategy(Protocol):
    def run(
        self,
        members: Sequence[Member],
        owner: Member,
        options: TravelScheduleOptions,
    ) -> TravelScheduleResult:
        ...


class NearestNeighborTravelScheduler:
    """Greedy nearest-neighbour heuristic; not globally optimal."""

    def __init__(self, config: TravelConfig) -> None:
        validate_travel_config(config)
        self._config = config

    def run(
        self,
        members: Sequence[Member],
        owner: Member,
        options: TravelScheduleOptions,
    ) -> TravelScheduleResult:
        config = self._config
        room_settings = options.room_settings
        validate_room_settings(room_settings)

        start_date = options.current_week or date.today()
        slot_delta = timedelta(minutes=config.slot_minutes)
        slots_per_hour = 60 // config.slot_minutes
        min_slots = options.effective_min_hours * slots_per_hour

        unvisited = [member for member in members if member.member_id != owner.member_id]
        assigned_slots: dict[str, int] = {member.member_id: 0 for member in unvisited}
        schedule: list[AssignedSlot] = []

        day_start = time(config.day_start_hour, 0)
        current_time = datetime.combine(start_date, day_start)
        current_location = owner.location
        day_index = 0

        while unvisited and day_index < config.max_days:
            distances = haversine_distances(
                current_location,
                [member.location for member in unvisited],
                config.earth_radius_km,
            )
            travel_slots = [
                travel_time_slots(float(distance), config.average_speed_kmh, config.slot_minutes)
                for distance in distances
            ]
            # min() keeps the first of equal candidates, so ties go to input order.
            nearest_index = min(range(len(unvisited)), key=lambda index: travel_slots[index])
            nearest = unvisited[nearest_index]
            nearest_slots = travel_slots[nearest_index]
            nearest_distance = float(distances[nearest_index])
            if math.isinf(nearest_slots):
                # Only unlocated members remain: visit without a travel block.
                nearest_slots = 0

            if min_slots - assigned_slots[nearest.member_id] <= 0:
                unvisited.pop(nearest_index)
                continue

            arrival_time = current_time + nearest_slots * slot_delta
            if nearest_slots > 0:
                # Travel occupies [current_time, arrival_time) whether or not a visit follows.
                schedule.append(
                    AssignedSlot(
                        member_id=None,
                        date=current_time.date(),
                        start_time=f"{current_time:%H:%M}",
                        end_time=f"{arrival_time:%H:%M}",
                        day=day_code_for(current_time.date()),
                        is_travel=True,
                        label=f"Travel ({round(nearest_distance)}km)",
                    )
                )
            found = self._find_next_available_slot(
                nearest, owner, arrival_time, schedule, options
            )
            if found is not None:
                schedule.append(found)
                assigned_slots[nearest.member_id] += config.appointment_slots
                current_time = _slot_bounds(found)[1]
                current_location = nearest.location
                unvisited.pop(nearest_index)
                logger.debug(
                    "Visit assigned | member_id=%s | date=%s | start=%s",
                    nearest.member_id,
                    found.date,
                    found.start_time,
                )
            else:
                day_index += 1
                current_time = datetime.combine(start_date + timedelta(days=day_index), day_start)
                current_location = owner.location
                logger.debug(
                    "No slot found, advancing day | member_id=%s | day_index=%s",
                    nearest.member_id,
                    day_index,
                )

        assigned_minutes = {
            member_id: count * config.slot_minutes for member_id, count in assigned_slots.items()
        }
        logger.info(
            "Travel schedule completed | members=%s | visits=%s | travel_blocks=%s | unvisited=%s",
            len(assigned_slots),
            sum(1 for slot in schedule if not slot.is_travel),
            sum(1 for slot in schedule if slot.is_travel),
            len(unvisited),
        )
        return TravelScheduleResult(
            time_slots=schedule,
            members=list(members),
            settings=room_settings,
            assigned_minutes=assigned_minutes,
            unvisited_member_ids=[member.member_id for member in unvisited],
        )

    def _find_next_available_slot(
        self,
        member: Member,
        owner: Member,
        after: datetime,
        schedule: Sequence[AssignedSlot],
        options: TravelScheduleOptions,
    ) -> Optional[AssignedSlot]:
        config = self._config
        start_hour = options.room_settings.schedule_start_hour
        end_hour = options.room_settings.schedule_end_hour
        slot_delta = timedelta(minutes=config.slot_minutes)
        duration = config.appointment_slots * slot_delta

        search_time = after
        for _ in range(config.slot_search_limit):
            if search_time.weekday() < 5 and start_hour <= search_time.hour < end_hour:
                candidate_end = search_time + duration
                if self._is_slot_free(member, owner, search_time, candidate_end, schedule):
                    return AssignedSlot(
                        member_id=member.member_id,
                        date=search_time.date(),
                        start_time=f"{search_time:%H:%M}",
                        end_time=_clock_label(search_time.date(), candidate_end),
                        day=day_code_for(search_time.date()),
                        is_travel=False,
                        label=VISIT_LABEL,
                    )

            search_time += slot_delta
            if search_time.hour >= end_hour:
                search_time = datetime.combine(
                    search_time.date() + timedelta(days=1), time(start_hour, 0)
                )
        return None

    @staticmethod
    def _is_slot_free(
        member: Member,
        owner: Member,
        start: datetime,
        end: datetime,
        schedule: Sequence[AssignedSlot],
    ) -> bool:
        day_start = datetime.combine(start.date(), time.min)
        # A visit may end exactly at midnight but never run into the next day.
        if end > day_start + timedelta(days=1):
            return False
        day_code = day_code_for(start.date())
        owner_blocks = _blocks_for_day(owner, day_code)
        member_blocks = _blocks_for_day(member, day_code)
        if not owner_blocks or not member_blocks:
            return False

        start_minutes = start.hour * 60 + start.minute
        end_minutes = (end - day_start) // timedelta(minutes=1)
        shared_blocks = intersect_time_blocks(owner_blocks, member_blocks)
        if not any(
            _to_minutes(block.start_time) <= start_minutes
            and end_minutes <= _to_minutes(block.end_time)
            for block in shared_blocks
        ):
            return False

        for existing in schedule:
            existing_start, existing_end = _slot_bounds(existing)
            if start < existing_end and end > existing_start:
                return False
        return True


def _clip_to_week(result: TravelScheduleResult, week_end: date) -> TravelScheduleResult:
    """Drop slots the search placed after ``week_end``.

    Members whose every visit was dropped count as unvisited for this week.
    """
    kept = [slot for slot in result.time_slots if slot.date <= week_end]
    if len(kept) == len(result.time_slots):
        return result

    assigned_minutes = {member_id: 0 for member_id in result.assigned_minutes}
    for slot in kept:
        if slot.is_travel or slot.member_id is None:
            continue
        start, end = _slot_bounds(slot)
        assigned_minutes[slot.member_id] = assigned_minutes.get(slot.member_id, 0) + int(
            (end - start).total_seconds() // 60
        )
    dropped = {
        slot.member_id
        for slot in result.time_slots
        if slot.date > week_end and not slot.is_travel and slot.member_id is not None
    }
    unvisited = set(result.unvisited_member_ids) | {
        member_id for member_id in dropped if assigned_minutes.get(member_id, 0) == 0
    }
    return TravelScheduleResult(
        time_slots=kept,
        members=result.members,
        settings=result.settings,
        assigned_minutes=assigned_minutes,
        unvisited_member_ids=[
            member.member_id for member in result.members if member.member_id in unvisited
        ],
    )


class TravelSchedulingService:
    """Runs the travel scheduler statelessly or against a stored room."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        strategy: Optional[AssignmentStrategy] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._strategy = strategy or NearestNeighborTravelScheduler(
            build_travel_config(self._settings)
        )
        self._lock = RLock()

    def run_travel_schedule(
        self,
        members: Sequence[Member],
        owner: Member,
        options: TravelScheduleOptions,
    ) -> TravelScheduleResult:
        return self._strategy.run(members, owner, options)

    def run_room_schedule(
        self,
        *,
        room_id: int,
        actor_id: str,
        week_start: Optional[date] = None,
    ) -> tuple[TravelScheduleResult, list[CarryOverSuggestion]]:
        """Schedule one room's week, persist it and update carry-over bookkeeping."""
        room = self._repository.get_room(room_id)
        if room is None:
            raise RoomNotFoundError(f"Room {room_id} was not found")
        if room.owner_id != actor_id:
            raise RequestPermissionError("Only the room owner can run the travel schedule")

        start_date = week_start or date.today()
        week_end = start_date + timedelta(days=6)

        with self._lock:
            owner = self._repository.get_member(room.owner_id)
            if owner is None:
                raise RoomNotFoundError(f"Owner of room {room_id} was not found")
            members = self._repository.list_room_members(room_id)
            result = _clip_to_week(
                self.run_travel_schedule(
                    members,
                    owner,
                    TravelScheduleOptions(room_settings=room.settings, current_week=start_date),
                ),
                week_end,
            )
            updated_members = apply_weekly_carry_over(
                members,
                result.assigned_minutes,
                room.settings.min_hours_per_week,
                start_date,
            )
            owner_name = owner.name or owner.member_id
            visits = sum(1 for slot in result.time_slots if not slot.is_travel)
            log_entry = ActivityLogEntry(
                room_id=room_id,
                actor_id=actor_id,
                actor_name=owner_name,
                action="auto_assign",
                detail_text=(
                    f"Travel-aware auto assignment for week of {start_date.isoformat()}: "
                    f"{visits} visits, {len(result.unvisited_member_ids)} members unassigned"
                ),
                metadata={
                    "week": start_date.isoformat(),
                    "visits": visits,
                    "unvisited": list(result.unvisited_member_ids),
                },
            )
            self._repository.replace_week_schedule(
                room_id=room_id,
                expected_version=room.version,
                week_start=start_date,
                week_end=week_end,
                slots=result.time_slots,
                members=updated_members,
                log_entries=[log_entry],
            )

        # Evaluate as of the end of the scheduled week so its shortfall counts as the latest.
        suggestions = find_long_term_carry_overs(
            updated_members,
            start_date + timedelta(days=self._settings.carry_over_window_days),
            window_days=self._settings.carry_over_window_days,
        )
        if suggestions:
            logger.warning(
                "Long-term carry-over detected | room_id=%s | members=%s",
                room_id,
                [suggestion.member_id for suggestion in suggestions],
            )
        return (
            TravelScheduleResult(
                time_slots=result.time_slots,
                members=updated_members,
                settings=result.settings,
                assigned_minutes=result.assigned_minutes,
                unvisited_member_ids=result.unvisited_member_ids,
            ),
            suggestions,
        )

    def carry_over_suggestions(
        self,
        room_id: int,
        as_of: Optional[date] = None,
    ) -> list[CarryOverSuggestion]:
        if self._repository.get_room(room_id) is None:
            raise RoomNotFoundError(f"Room {room_id} was not found")
        return find_long_term_carry_overs(
            self._repository.list_room_members(room_id),
            as_of or date.today(),
            window_days=self._settings.carry_over_window_days,
        )
