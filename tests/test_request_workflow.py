from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta

import pytest

from backend.domain.errors import (
    ChainAdjustmentFailedError,
    ConcurrentModificationError,
    DuplicateRequestError,
    RequestAlreadyProcessedError,
    RequestNotFoundError,
    RequestPermissionError,
    RequestValidationError,
)
from backend.domain.models import AssignedSlot, Location, RequestTimeSlot, RoomSettings
from backend.domain.request_rules import (
    format_slot_details,
    has_duplicate_request,
    validate_action,
    validate_create_request,
)
from backend.repository.data_repository import DataRepository
from backend.services.request_service import RequestCoordinationService
from backend.utils.config import get_settings


MONDAY = date(2026, 3, 2)


def _slot(start: str, end: str, day: date = MONDAY) -> RequestTimeSlot:
    return RequestTimeSlot(day="MON", start_time=start, end_time=end, date=day)


def _build_room(tmp_path) -> tuple[RequestCoordinationService, DataRepository, int]:
    settings = replace(get_settings(), database_path=tmp_path / "requests.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    for user_id, name in [
        ("owner", "Owner"),
        ("alice", "Alice"),
        ("bob", "Bob"),
        ("carol", "Carol"),
    ]:
        repository.upsert_user(user_id, name, Location(37.5663, 126.9779))
    room_id = repository.create_room("Study room", "owner", RoomSettings())
    for member_id in ("alice", "bob", "carol"):
        repository.add_room_member(room_id, member_id)
    service = RequestCoordinationService(repository=repository, settings=settings)
    return service, repository, room_id


def _assign(repository: DataRepository, room_id: int, member_id: str, start: str, end: str) -> int:
    return repository.add_time_slot(
        room_id,
        AssignedSlot(
            member_id=member_id,
            date=MONDAY,
            start_time=start,
            end_time=end,
            day="MON",
            label="Visit",
        ),
    )


def _slots_of(repository: DataRepository, room_id: int, member_id: str) -> list[tuple[str, str]]:
    return [
        (slot.start_time, slot.end_time)
        for slot in repository.list_time_slots(room_id)
        if slot.member_id == member_id
    ]


# --- Pure rules ---

def test_create_validation_rules() -> None:
    valid = _slot("10:00", "11:00")
    assert validate_create_request(1, "booking", valid) is None

    invalid_inputs = [
        (None, "booking", valid),
        (1, "", valid),
        (1, "teleport", valid),
        (1, "booking", None),
        (1, "booking", _slot("11:00", "10:00")),
    ]
    for room_id, request_type, time_slot in invalid_inputs:
        error = validate_create_request(room_id, request_type, time_slot)
        assert isinstance(error, RequestValidationError)


def test_action_must_be_approved_or_rejected() -> None:
    assert validate_action("approved") is None
    assert validate_action("rejected") is None
    assert isinstance(validate_action("maybe"), RequestValidationError)


def test_slot_details_prefer_calendar_date() -> None:
    assert format_slot_details(_slot("10:00", "11:00")) == "3/2 10:00-11:00"
    assert format_slot_details(RequestTimeSlot("TUE", "09:00", "10:00")) == "TUE 09:00-10:00"


# --- Creation ---

def test_create_request_detects_conflicting_member_and_fills_message(tmp_path) -> None:
    service, repository, room_id = _build_room(tmp_path)
    _assign(repository, room_id, "bob", "10:00", "11:00")

    created = service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="booking",
        time_slot=_slot("10:30", "11:30"),
    )

    assert created.status == "pending"
    assert created.conflicting_user_id == "bob"
    assert created.message == "Alice sent a booking for 3/2 10:30-11:30"


def test_duplicate_pending_request_is_rejected(tmp_path) -> None:
    service, _, room_id = _build_room(tmp_path)
    service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="booking",
        time_slot=_slot("10:00", "11:00"),
    )

    with pytest.raises(DuplicateRequestError):
        service.create_request(
            actor_id="alice",
            room_id=room_id,
            request_type="booking",
            time_slot=_slot("10:00", "11:00"),
            target_user_id="bob",
        )


def test_other_dates_and_types_for_the_same_window_are_not_duplicates(tmp_path) -> None:
    service, repository, room_id = _build_room(tmp_path)
    service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="booking",
        time_slot=_slot("10:00", "11:00"),
    )

    next_week = service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="booking",
        time_slot=_slot("10:00", "11:00", day=MONDAY + timedelta(days=7)),
    )
    release = service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="slot_release",
        time_slot=_slot("10:00", "11:00"),
    )

    assert next_week.status == "pending"
    assert release.status == "pending"
    assert len(repository.list_requests(room_id, status="pending")) == 3


def test_swap_requests_with_different_targets_are_not_duplicates(tmp_path) -> None:
    service, repository, room_id = _build_room(tmp_path)
    service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="slot_swap",
        time_slot=_slot("10:00", "11:00"),
        target_user_id="bob",
    )
    service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="slot_swap",
        time_slot=_slot("10:00", "11:00"),
        target_user_id="carol",
    )

    existing = repository.list_requests(room_id)
    assert len(existing) == 2
    assert has_duplicate_request(existing, "alice", "slot_swap", _slot("10:00", "11:00"), "bob")
    assert not has_duplicate_request(existing, "bob", "slot_swap", _slot("10:00", "11:00"), "carol")


def test_owner_and_outsiders_cannot_file_requests(tmp_path) -> None:
    service, _, room_id = _build_room(tmp_path)

    with pytest.raises(RequestPermissionError):
        service.create_request(
            actor_id="owner",
            room_id=room_id,
            request_type="booking",
            time_slot=_slot("10:00", "11:00"),
        )
    with pytest.raises(RequestPermissionError):
        service.create_request(
            actor_id="mallory",
            room_id=room_id,
            request_type="booking",
            time_slot=_slot("10:00", "11:00"),
        )


# --- Approval and rejection ---

def test_approval_moves_requester_and_logs_both_entries(tmp_path) -> None:
    service, repository, room_id = _build_room(tmp_path)
    _assign(repository, room_id, "alice", "09:00", "10:00")
    request = service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="time_change",
        time_slot=_slot("14:00", "15:00"),
    )

    result = service.handle_request(actor_id="owner", request_id=request.request_id, action="approved")

    assert result.request.status == "approved"
    assert result.request.responded_by == "owner"
    assert [entry.action for entry in result.logged_entries] == ["change_approve", "slot_swap"]
    approve_entry, swap_entry = result.logged_entries
    assert approve_entry.actor_id == "owner"
    assert swap_entry.actor_id == "alice"
    assert swap_entry.metadata["prevSlot"]["startTime"] == "09:00"
    assert swap_entry.metadata["slot"]["startTime"] == "14:00"
    assert swap_entry.metadata["type"] == "from_request"
    assert swap_entry.metadata["approver"] == "owner"
    assert _slots_of(repository, room_id, "alice") == [("14:00", "15:00")]
    assert repository.count_activity_logs(room_id) == 2


def test_rejection_logs_once_and_keeps_slots(tmp_path) -> None:
    service, repository, room_id = _build_room(tmp_path)
    _assign(repository, room_id, "alice", "09:00", "10:00")
    request = service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="booking",
        time_slot=_slot("14:00", "15:00"),
    )

    result = service.handle_request(
        actor_id="owner",
        request_id=request.request_id,
        action="rejected",
        response="Room is closed then",
    )

    assert result.request.status == "rejected"
    assert result.request.response == "Room is closed then"
    assert [entry.action for entry in result.logged_entries] == ["change_reject"]
    assert "Alice" in result.logged_entries[0].detail_text
    assert _slots_of(repository, room_id, "alice") == [("09:00", "10:00")]


def test_terminal_requests_cannot_be_processed_again(tmp_path) -> None:
    service, _, room_id = _build_room(tmp_path)
    request = service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="booking",
        time_slot=_slot("14:00", "15:00"),
    )
    service.handle_request(actor_id="owner", request_id=request.request_id, action="rejected")

    with pytest.raises(RequestAlreadyProcessedError):
        service.handle_request(actor_id="owner", request_id=request.request_id, action="approved")


def test_only_owner_or_target_may_respond(tmp_path) -> None:
    service, repository, room_id = _build_room(tmp_path)
    _assign(repository, room_id, "alice", "09:00", "10:00")
    _assign(repository, room_id, "bob", "14:00", "15:00")
    request = service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="slot_swap",
        time_slot=_slot("14:00", "15:00"),
        target_user_id="bob",
    )

    with pytest.raises(RequestPermissionError):
        service.handle_request(actor_id="carol", request_id=request.request_id, action="approved")

    result = service.handle_request(actor_id="bob", request_id=request.request_id, action="approved")

    assert result.request.status == "approved"
    # Swap hands the requester's previous slot to the target.
    assert _slots_of(repository, room_id, "alice") == [("14:00", "15:00")]
    assert _slots_of(repository, room_id, "bob") == [("09:00", "10:00")]


def test_unknown_request_and_invalid_action(tmp_path) -> None:
    service, _, _ = _build_room(tmp_path)
    with pytest.raises(RequestValidationError):
        service.handle_request(actor_id="owner", request_id=1, action="maybe")
    with pytest.raises(RequestNotFoundError):
        service.handle_request(actor_id="owner", request_id=999, action="approved")


def test_slot_release_removes_requester_slot(tmp_path) -> None:
    service, repository, room_id = _build_room(tmp_path)
    _assign(repository, room_id, "alice", "09:00", "10:00")
    request = service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="slot_release",
        time_slot=_slot("09:00", "10:00"),
    )

    service.handle_request(actor_id="owner", request_id=request.request_id, action="approved")

    assert _slots_of(repository, room_id, "alice") == []


# --- Chain adjustment ---

def test_chain_adjustment_relocates_displaced_member(tmp_path) -> None:
    service, repository, room_id = _build_room(tmp_path)
    bob_slot = _assign(repository, room_id, "bob", "12:00", "13:00")
    _assign(repository, room_id, "carol", "09:00", "12:00")
    request = service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="booking",
        time_slot=_slot("12:00", "13:00"),
    )

    result = service.handle_request(actor_id="owner", request_id=request.request_id, action="approved")

    assert [entry.action for entry in result.logged_entries] == [
        "slot_move",
        "change_approve",
        "slot_swap",
    ]
    assert [(slot.slot_id, slot.start_time, slot.end_time) for slot in result.relocated_slots] == [
        (bob_slot, "13:00", "14:00")
    ]
    assert _slots_of(repository, room_id, "bob") == [("13:00", "14:00")]
    assert _slots_of(repository, room_id, "alice") == [("12:00", "13:00")]


def test_chain_adjustment_failure_leaves_request_pending(tmp_path) -> None:
    service, repository, room_id = _build_room(tmp_path)
    _assign(repository, room_id, "bob", "12:00", "13:00")
    _assign(repository, room_id, "carol", "09:00", "12:00")
    _assign(repository, room_id, "carol", "13:00", "18:00")
    request = service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="booking",
        time_slot=_slot("12:00", "13:00"),
    )

    with pytest.raises(ChainAdjustmentFailedError) as excinfo:
        service.handle_request(actor_id="owner", request_id=request.request_id, action="approved")

    assert excinfo.value.displaced_member_id == "bob"
    assert repository.get_request(request.request_id).status == "pending"
    assert _slots_of(repository, room_id, "bob") == [("12:00", "13:00")]
    assert _slots_of(repository, room_id, "alice") == []
    assert repository.count_activity_logs(room_id) == 0


# --- Cancellation ---

def test_pending_request_can_only_be_cancelled_by_requester(tmp_path) -> None:
    service, repository, room_id = _build_room(tmp_path)
    request = service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="slot_swap",
        time_slot=_slot("10:00", "11:00"),
        target_user_id="bob",
    )

    with pytest.raises(RequestPermissionError):
        service.cancel_request(actor_id="bob", request_id=request.request_id)

    service.cancel_request(actor_id="alice", request_id=request.request_id)
    assert repository.get_request(request.request_id) is None


def test_processed_request_can_be_deleted_by_target_only_among_others(tmp_path) -> None:
    service, _, room_id = _build_room(tmp_path)
    request = service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="slot_swap",
        time_slot=_slot("10:00", "11:00"),
        target_user_id="bob",
    )
    service.handle_request(actor_id="bob", request_id=request.request_id, action="rejected")

    with pytest.raises(RequestPermissionError):
        service.cancel_request(actor_id="carol", request_id=request.request_id)
    service.cancel_request(actor_id="bob", request_id=request.request_id)
    with pytest.raises(RequestNotFoundError):
        service.cancel_request(actor_id="bob", request_id=request.request_id)


# --- Concurrency ---

def test_stale_room_version_is_rejected(tmp_path) -> None:
    service, repository, room_id = _build_room(tmp_path)
    request = service.create_request(
        actor_id="alice",
        room_id=room_id,
        request_type="booking",
        time_slot=_slot("14:00", "15:00"),
    )
    stale_version = repository.get_room(room_id).version
    service.handle_request(actor_id="owner", request_id=request.request_id, action="rejected")

    with pytest.raises(ConcurrentModificationError):
        repository.apply_request_resolution(
            room_id=room_id,
            expected_version=stale_version,
            request_id=request.request_id,
            status="approved",
            responded_by="owner",
            response=None,
        )
    assert repository.get_request(request.request_id).status == "rejected"
