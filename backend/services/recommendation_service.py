"""Alternative and reschedule time recommendations for conflicting events.

Both searches probe a fixed list of minute offsets around an anchor event and
keep every candidate that stays inside the allowed clock hours, stays on the
anchor's calendar day and does not overlap an existing event. The offset list
is the preference order: earlier offsets win regardless of their magnitude.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Sequence

from backend.domain.constraints import RecommendationConfig, validate_recommendation_config
from backend.domain.errors import EventNotFoundError, RequestValidationError
from backend.domain.models import CalendarEvent, Recommendation
from backend.repository.data_repository import DataRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

NO_RECOMMENDATION_MESSAGE = "Sorry, there is no recommended time available on that date."


def build_recommendation_config(settings: Settings) -> RecommendationConfig:
    return RecommendationConfig(
        search_offsets=tuple(settings.recommendation_search_offsets),
        min_hour=settings.recommendation_min_hour,
        max_hour=settings.recommendation_max_hour,
        max_recommendations=settings.recommendation_max_results,
    )


def _time_label(value: datetime) -> str:
    if value.minute:
        return f"{value.hour}h {value.minute}m"
    return f"{value.hour}h"


def _format_recommendation(start: datetime, end: datetime) -> Recommendation:
    display = f"{_time_label(start)} ({start:%H:%M} - {end:%H:%M})"
    return Recommendation(start=start, end=end, display=display)


def _search_free_slots(
    anchor: CalendarEvent,
    existing_events: Sequence[CalendarEvent],
    config: RecommendationConfig,
    exclude_event_id: Optional[str] = None,
) -> list[Recommendation]:
    duration = anchor.end - anchor.start
    if duration <= timedelta(0):
        raise RequestValidationError("event end must be after its start")

    recommendations: list[Recommendation] = []
    for offset in config.search_offsets:
        candidate_start = anchor.start + timedelta(minutes=offset)
        candidate_end = candidate_start + duration

        if not config.min_hour <= candidate_start.hour < config.max_hour:
            continue
        if candidate_start.date() != anchor.start.date():
            continue

        conflicts = False
        for event in existing_events:
            if exclude_event_id is not None and event.id == exclude_event_id:
                continue
            if candidate_start < event.end and candidate_end > event.start:
                conflicts = True
                break
        if conflicts:
            continue

        recommendations.append(_format_recommendation(candidate_start, candidate_end))
        if len(recommendations) >= config.max_recommendations:
            break
    return recommendations


def generate_alternative_time_recommendations(
    pending_event: CalendarEvent,
    existing_events: Sequence[CalendarEvent],
    config: RecommendationConfig,
) -> list[Recommendation]:
    """Free slots near a new event that collides with existing ones."""
    return _search_free_slots(pending_event, existing_events, config)


def generate_reschedule_time_recommendations(
    conflicting_event: CalendarEvent,
    existing_events: Sequence[CalendarEvent],
    config: RecommendationConfig,
) -> list[Recommendation]:
    """Free slots for moving an existing event; the event never blocks itself."""
    return _search_free_slots(
        conflicting_event,
        existing_events,
        config,
        exclude_event_id=conflicting_event.id,
    )


def create_recommendation_message(
    recommendations: Sequence[Recommendation],
    conflicting_event: Optional[CalendarEvent] = None,
) -> str:
    if not recommendations:
        return NO_RECOMMENDATION_MESSAGE

    options = "\n".join(
        f"{index}. {recommendation.display}"
        for index, recommendation in enumerate(recommendations, start=1)
    )
    if conflicting_event is not None:
        original_label = _time_label(conflicting_event.start)
        return (
            f'When would you like to move "{conflicting_event.title}" ({original_label})?'
            f"\n\n{options}"
        )
    return f"You already have plans at that time. How about one of these?\n\n{options}"


@dataclass(frozen=True)
class ConfirmRescheduleResult:
    rescheduled_event: CalendarEvent
    new_event: Optional[CalendarEvent]
    changed: bool
    message: str


class TimeRecommendationService:
    """Recommendation search plus commit of a chosen slot to stored events."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._config = build_recommendation_config(self._settings)
        validate_recommendation_config(self._config)

    @property
    def config(self) -> RecommendationConfig:
        return self._config

    def add_event(
        self,
        *,
        user_id: str,
        title: str,
        start: datetime,
        end: datetime,
    ) -> CalendarEvent:
        if end <= start:
            raise RequestValidationError("event end must be after its start")
        event = self._repository.create_event(user_id=user_id, title=title, start=start, end=end)
        logger.info("Event stored | user_id=%s | event_id=%s", user_id, event.id)
        return event

    def list_events(self, user_id: str) -> list[CalendarEvent]:
        return self._repository.list_events(user_id)

    def recommend_alternative(
        self,
        pending_event: CalendarEvent,
        existing_events: Sequence[CalendarEvent],
    ) -> list[Recommendation]:
        recommendations = generate_alternative_time_recommendations(
            pending_event, existing_events, self._config
        )
        logger.info(
            "Alternative recommendations generated | existing=%s | results=%s",
            len(existing_events),
            len(recommendations),
        )
        return recommendations

    def recommend_reschedule(
        self,
        conflicting_event: CalendarEvent,
        existing_events: Sequence[CalendarEvent],
    ) -> list[Recommendation]:
        recommendations = generate_reschedule_time_recommendations(
            conflicting_event, existing_events, self._config
        )
        logger.info(
            "Reschedule recommendations generated | event_id=%s | existing=%s | results=%s",
            conflicting_event.id,
            len(existing_events),
            len(recommendations),
        )
        return recommendations

    def confirm_reschedule(
        self,
        *,
        user_id: str,
        event_id: str,
        selected_start: datetime,
        selected_end: datetime,
        pending_event: Optional[CalendarEvent] = None,
    ) -> ConfirmRescheduleResult:
        """Move a stored event to the selected slot; repeating the call is a no-op."""
        if selected_end <= selected_start:
            raise RequestValidationError("selected end time must be after its start time")

        stored = self._repository.get_event(user_id=user_id, event_id=event_id)
        if stored is None:
            raise EventNotFoundError(f"Event {event_id} was not found")

        changed = False
        if stored.start != selected_start or stored.end != selected_end:
            self._repository.update_event_time(
                user_id=user_id,
                event_id=event_id,
                start=selected_start,
                end=selected_end,
            )
            changed = True
        rescheduled = CalendarEvent(
            start=selected_start,
            end=selected_end,
            id=stored.id,
            title=stored.title,
        )

        new_event: Optional[CalendarEvent] = None
        if pending_event is not None:
            new_event = self._repository.find_event(
                user_id=user_id,
                title=pending_event.title,
                start=pending_event.start,
                end=pending_event.end,
            )
            if new_event is None:
                new_event = self._repository.create_event(
                    user_id=user_id,
                    title=pending_event.title,
                    start=pending_event.start,
                    end=pending_event.end,
                )
                changed = True

        message = f"Moved '{rescheduled.title}' to {selected_start:%Y-%m-%d %H:%M}."
        if new_event is not None:
            message += f" Added '{new_event.title}' at {new_event.start:%Y-%m-%d %H:%M}."
        logger.info(
            "Reschedule confirmed | user_id=%s | event_id=%s | changed=%s",
            user_id,
            event_id,
            changed,
        )
        return ConfirmRescheduleResult(
            rescheduled_event=rescheduled,
            new_event=new_event,
            changed=changed,
            message=message,
        )
