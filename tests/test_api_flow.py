from __future__ import annotations

from dataclasses import replace

from fastapi.testclient import TestClient

from app import create_app
from backend.utils.config import get_settings


OWNER = {"X-User-Id": "owner-1"}
MEMBER_ONE = {"X-User-Id": "member-1"}
MEMBER_TWO = {"X-User-Id": "member-2"}
GYM_EVENT = {
    "title": "Gym",
    "startTime": "2026-03-02T10:00:00+00:00",
    "endTime": "2026-03-02T11:00:00+00:00",
}


def _build_test_app(tmp_path, filename: str = "api_flow.db"):
    get_settings.cache_clear()
    settings = replace(get_settings(), database_path=tmp_path / filename, seed_demo_data=True)
    return create_app(settings)


def test_conflict_and_combination_endpoints(tmp_path) -> None:
    app = _build_test_app(tmp_path)
    schedules = [
        {"title": "A", "days": ["MON"], "startTime": "10:00", "endTime": "11:00"},
        {"title": "B", "days": ["MON", "WED"], "startTime": "10:30", "endTime": "11:30"},
        {"title": "C", "days": ["TUE"], "startTime": "10:00", "endTime": "11:00"},
    ]

    with TestClient(app) as client:
        conflicts = client.post("/schedules/conflicts", json={"schedules": schedules})
        assert conflicts.status_code == 200
        assert conflicts.json() == {
            "hasConflicts": True,
            "conflicts": [{"first": 0, "second": 1}],
        }

        combinations = client.post(
            "/schedules/combinations",
            json={"schedules": schedules, "maxCombinations": 3},
        )
        assert combinations.status_code == 200
        payload = combinations.json()["combinations"]
        assert 1 <= len(payload) <= 3
        for combination in payload:
            titles = {item["title"] for item in combination}
            assert not {"A", "B"} <= titles
            assert "C" in titles

        invalid = client.post(
            "/schedules/conflicts",
            json={"schedules": [{"title": "X", "days": ["MON"], "startTime": "11:00", "endTime": "10:00"}]},
        )
        assert invalid.status_code == 422


def test_recommendation_and_reschedule_endpoints(tmp_path) -> None:
    app = _build_test_app(tmp_path)

    with TestClient(app) as client:
        naive = client.post(
            "/events/recommend-alternative",
            json={
                "pendingEvent": {"startTime": "2026-03-02T10:00:00", "endTime": "2026-03-02T11:00:00"},
                "existingEvents": [],
            },
        )
        assert naive.status_code == 422

        alternative = client.post(
            "/events/recommend-alternative",
            json={
                "pendingEvent": {
                    "startTime": "2026-03-02T10:00:00+00:00",
                    "endTime": "2026-03-02T11:00:00+00:00",
                },
                "existingEvents": [
                    {
                        "id": "b",
                        "title": "B",
                        "startTime": "2026-03-02T10:30:00+00:00",
                        "endTime": "2026-03-02T11:30:00+00:00",
                    }
                ],
            },
        )
        assert alternative.status_code == 200
        body = alternative.json()
        assert [item["display"] for item in body["recommendations"]] == [
            "9h 30m (09:30 - 10:30)",
            "9h (09:00 - 10:00)",
            "11h 30m (11:30 - 12:30)",
            "12h (12:00 - 13:00)",
            "13h (13:00 - 14:00)",
        ]
        assert body["message"].startswith("You already have plans")

        assert client.post("/events", json=GYM_EVENT).status_code == 401
        created = client.post("/events", json=GYM_EVENT, headers=MEMBER_ONE)
        assert created.status_code == 201
        event_id = created.json()["id"]

        reschedule = client.post(
            "/events/recommend-reschedule",
            json={"conflictingEvent": created.json(), "existingEvents": [created.json()]},
        )
        assert reschedule.status_code == 200
        assert reschedule.json()["recommendations"][0]["display"] == "10h 30m (10:30 - 11:30)"
        assert '"Gym"' in reschedule.json()["message"]

        confirm_body = {
            "eventId": event_id,
            "selectedStartTime": "2026-03-02T12:00:00+00:00",
            "selectedEndTime": "2026-03-02T13:00:00+00:00",
        }
        first = client.post("/events/confirm-reschedule", json=confirm_body, headers=MEMBER_ONE)
        second = client.post("/events/confirm-reschedule", json=confirm_body, headers=MEMBER_ONE)
        assert first.status_code == 200 and first.json()["changed"] is True
        assert second.status_code == 200 and second.json()["changed"] is False

        missing = client.post(
            "/events/confirm-reschedule",
            json={**confirm_body, "eventId": "999"},
            headers=MEMBER_ONE,
        )
        assert missing.status_code == 404
        assert missing.json()["detail"]["code"] == "event_not_found"


def test_coordination_end_to_end_flow(tmp_path) -> None:
    app = _build_test_app(tmp_path)
    room_id = 1

    with TestClient(app) as client:
        forbidden = client.post(
            f"/coordination/rooms/{room_id}/travel-schedule",
            json={"weekStart": "2026-03-02"},
            headers=MEMBER_ONE,
        )
        assert forbidden.status_code == 403

        schedule = client.post(
            f"/coordination/rooms/{room_id}/travel-schedule",
            json={"weekStart": "2026-03-02"},
            headers=OWNER,
        )
        assert schedule.status_code == 200
        schedule_body = schedule.json()
        visits = {
            slot["memberId"]: (slot["startTime"], slot["endTime"])
            for slot in schedule_body["timeSlots"]
            if not slot["isTravel"]
        }
        assert visits == {
            "member-1": ("09:30", "10:30"),
            "member-2": ("13:00", "14:00"),
            "member-3": ("14:30", "15:30"),
        }
        assert schedule_body["unvisitedMemberIds"] == []
        assert all(member["carryOverHours"] == 2.0 for member in schedule_body["members"])

        unauthenticated = client.post(
            "/coordination/requests",
            json={
                "roomId": room_id,
                "type": "booking",
                "timeSlot": {"day": "MON", "startTime": "13:00", "endTime": "14:00", "date": "2026-03-02"},
            },
        )
        assert unauthenticated.status_code == 401

        created = client.post(
            "/coordination/requests",
            json={
                "roomId": room_id,
                "type": "booking",
                "timeSlot": {"day": "MON", "startTime": "13:00", "endTime": "14:00", "date": "2026-03-02"},
            },
            headers=MEMBER_ONE,
        )
        assert created.status_code == 201
        request_body = created.json()
        assert request_body["status"] == "pending"
        assert request_body["conflictingUserId"] == "member-2"
        request_id = request_body["id"]

        duplicate = client.post(
            "/coordination/requests",
            json={
                "roomId": room_id,
                "type": "booking",
                "timeSlot": {"day": "MON", "startTime": "13:00", "endTime": "14:00", "date": "2026-03-02"},
            },
            headers=MEMBER_ONE,
        )
        assert duplicate.status_code == 400
        assert duplicate.json()["detail"]["code"] == "duplicate_request"

        not_allowed = client.post(f"/coordination/requests/{request_id}/approved", headers=MEMBER_TWO)
        assert not_allowed.status_code == 403

        approved = client.post(f"/coordination/requests/{request_id}/approved", headers=OWNER)
        assert approved.status_code == 200
        approved_body = approved.json()
        assert approved_body["status"] == "approved"
        assert [entry["action"] for entry in approved_body["loggedEntries"]] == [
            "slot_move",
            "change_approve",
            "slot_swap",
        ]
        assert approved_body["relocatedSlots"][0]["memberId"] == "member-2"
        assert approved_body["relocatedSlots"][0]["startTime"] == "12:00"

        again = client.post(f"/coordination/requests/{request_id}/rejected", headers=OWNER)
        assert again.status_code == 400
        assert again.json()["detail"]["code"] == "already_processed"

        listed = client.get(f"/coordination/rooms/{room_id}/requests", params={"status": "approved"})
        assert listed.status_code == 200
        assert [item["id"] for item in listed.json()["requests"]] == [request_id]

        activity = client.get(f"/coordination/rooms/{room_id}/activity")
        assert [entry["action"] for entry in activity.json()["entries"]] == [
            "auto_assign",
            "slot_move",
            "change_approve",
            "slot_swap",
        ]

        assert client.delete(f"/coordination/requests/{request_id}", headers=MEMBER_TWO).status_code == 403
        assert client.delete(f"/coordination/requests/{request_id}", headers=MEMBER_ONE).status_code == 204

        carry_over = client.get(f"/coordination/rooms/{room_id}/carry-over", params={"asOf": "2026-03-09"})
        assert carry_over.status_code == 200
        assert carry_over.json()["suggestions"] == []

        assert client.get("/coordination/rooms/999/requests").status_code == 404


def test_stateless_travel_schedule_endpoint(tmp_path) -> None:
    app = _build_test_app(tmp_path)
    weekday_blocks = [
        {"day": day, "startTime": "09:00", "endTime": "18:00"}
        for day in ("MON", "TUE", "WED", "THU", "FRI")
    ]

    with TestClient(app) as client:
        response = client.post(
            "/coordination/travel-schedule",
            json={
                "owner": {
                    "id": "owner",
                    "location": {"lat": 37.5663, "lng": 126.9779},
                    "preferredBlocks": weekday_blocks,
                },
                "members": [
                    {
                        "id": "north",
                        "location": {"lat": 37.6383, "lng": 126.9779},
                        "preferredBlocks": weekday_blocks,
                    },
                    {"id": "unlocated", "location": None, "preferredBlocks": weekday_blocks},
                ],
                "options": {
                    "currentWeek": "2026-03-02",
                    "minHoursPerWeek": 2,
                    "roomSettings": {"scheduleStartHour": 9, "scheduleEndHour": 18, "minHoursPerWeek": 3},
                },
            },
        )

    assert response.status_code == 200
    body = response.json()
    assert body["settings"]["scheduleEndHour"] == 18
    assert [slot["isTravel"] for slot in body["timeSlots"]] == [True, False, False]
    assert body["timeSlots"][0]["label"] == "Travel (8km)"
    assert body["assignedMinutes"] == {"north": 60, "unlocated": 60}


def test_unregistered_recommendation_service_returns_503(tmp_path) -> None:
    app = _build_test_app(tmp_path)

    with TestClient(app) as client:
        app.state.recommendation_service = None
        response = client.post("/events", json=GYM_EVENT, headers=MEMBER_ONE)

    assert response.status_code == 503
    assert response.json()["detail"] == "Recommendation service is not initialized"
