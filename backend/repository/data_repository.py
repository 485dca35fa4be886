"""Repository layer responsible for all database access."""

from __future__ import annotations

import json
import sqlite3
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence

from backend.domain.errors import ConcurrentModificationError
from backend.domain.models import (
    ActivityLogEntry,
    AssignedSlot,
    CalendarEvent,
    CarryOverRecord,
    CoordinationRequest,
    Location,
    Member,
    PreferredBlock,
    RequestTimeSlot,
    Room,
    RoomSettings,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DataRepository:
    """Encapsulates SQLite access so the engine stays storage-agnostic.

    Room-level writes that must land together (request resolution, weekly
    scheduling runs) go through one transaction guarded by a compare-and-swap
    on ``Rooms.version``.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS Users (
                        id TEXT PRIMARY KEY,
                        name TEXT NOT NULL,
                        lat REAL,
                        lng REAL,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );

                    CREATE TABLE IF NOT EXISTS PreferredBlocks (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT NOT NULL,
                        day TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        FOREIGN KEY (user_id) REFERENCES Users(id)
                    );

                    CREATE TABLE IF NOT EXISTS Rooms (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL,
                        owner_id TEXT NOT NULL,
                        schedule_start_hour INTEGER NOT NULL,
                        schedule_end_hour INTEGER NOT NULL,
                        min_hours_per_week REAL NOT NULL,
                        version INTEGER NOT NULL DEFAULT 0,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (owner_id) REFERENCES Users(id)
                    );

                    CREATE TABLE IF NOT EXISTS RoomMembers (
                        room_id INTEGER NOT NULL,
                        user_id TEXT NOT NULL,
                        carry_over_hours REAL NOT NULL DEFAULT 0,
                        joined_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        PRIMARY KEY (room_id, user_id),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id),
                        FOREIGN KEY (user_id) REFERENCES Users(id)
                    );

                    CREATE TABLE IF NOT EXISTS CarryOverHistory (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        room_id INTEGER NOT NULL,
                        user_id TEXT NOT NULL,
                        week TEXT NOT NULL,
                        amount REAL NOT NULL,
                        UNIQUE (room_id, user_id, week),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id)
                    );

                    CREATE TABLE IF NOT EXISTS TimeSlots (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        room_id INTEGER NOT NULL,
                        user_id TEXT,
                        date TEXT NOT NULL,
                        day TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        is_travel INTEGER NOT NULL DEFAULT 0 CHECK (is_travel IN (0,1)),
                        label TEXT NOT NULL DEFAULT '',
                        FOREIGN KEY (room_id) REFERENCES Rooms(id)
                    );

                    CREATE TABLE IF NOT EXISTS Requests (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        room_id INTEGER NOT NULL,
                        requester_id TEXT NOT NULL,
                        target_user_id TEXT,
                        type TEXT NOT NULL,
                        day TEXT NOT NULL,
                        date TEXT,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'pending',
                        conflicting_user_id TEXT,
                        message TEXT,
                        response TEXT,
                        responded_by TEXT,
                        created_at TEXT NOT NULL,
                        responded_at TEXT,
                        FOREIGN KEY (room_id) REFERENCES Rooms(id)
                    );

                    CREATE TABLE IF NOT EXISTS ActivityLogs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        room_id INTEGER NOT NULL,
                        actor_id TEXT,
                        actor_name TEXT NOT NULL,
                        action TEXT NOT NULL,
                        detail_text TEXT NOT NULL,
                        metadata TEXT NOT NULL DEFAULT '{}',
                        created_at TEXT NOT NULL,
                        FOREIGN KEY (room_id) REFERENCES Rooms(id)
                    );

                    CREATE TABLE IF NOT EXISTS Events (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT NOT NULL,
                        title TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );

                    CREATE INDEX IF NOT EXISTS idx_timeslots_room_date
                    ON TimeSlots(room_id, date);

                    CREATE INDEX IF NOT EXISTS idx_requests_room_status
                    ON Requests(room_id, status);

                    CREATE INDEX IF NOT EXISTS idx_activity_room
                    ON ActivityLogs(room_id, id);

                    CREATE INDEX IF NOT EXISTS idx_events_user
                    ON Events(user_id, start_time);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_data_if_empty(self) -> Optional[int]:
        """Seed one demo room around Seoul City Hall when no room exists."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM Rooms;")
            if int(cursor.fetchone()["count"]) > 0:
                logger.info("Demo data already present; skipping seed")
                return None

        weekday_blocks = [
            PreferredBlock(day=day, start_time="09:00", end_time="12:00")
            for day in ("MON", "TUE", "WED", "THU", "FRI")
        ] + [
            PreferredBlock(day=day, start_time="13:00", end_time="18:00")
            for day in ("MON", "TUE", "WED", "THU", "FRI")
        ]
        people = [
            ("owner-1", "Owner", Location(37.5663, 126.9779), weekday_blocks),
            ("member-1", "Member One", Location(37.5796, 126.9770), weekday_blocks[:5]),
            ("member-2", "Member Two", Location(37.5512, 126.9882), weekday_blocks[5:]),
            ("member-3", "Member Three", Location(37.5172, 127.0473), weekday_blocks),
        ]
        for user_id, name, location, blocks in people:
            self.upsert_user(user_id, name, location)
            self.set_preferred_blocks(user_id, blocks)

        room_id = self.create_room(
            "Demo Room",
            "owner-1",
            RoomSettings(
                schedule_start_hour=self._settings.default_schedule_start_hour,
                schedule_end_hour=self._settings.default_schedule_end_hour,
                min_hours_per_week=self._settings.default_min_hours_per_week,
            ),
        )
        for user_id, *_ in people[1:]:
            self.add_room_member(room_id, user_id)
        logger.info("Demo room seeded | room_id=%s | members=%s", room_id, len(people) - 1)
        return room_id

    # ------------------------------------------------------------------ users

    def upsert_user(
        self,
        user_id: str,
        name: str,
        location: Optional[Location] = None,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO Users (id, name, lat, lng)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    lat = excluded.lat,
                    lng = excluded.lng;
                """,
                (
                    user_id,
                    name,
                    location.lat if location else None,
                    location.lng if location else None,
                ),
            )
            conn.commit()

    def set_preferred_blocks(self, user_id: str, blocks: Iterable[PreferredBlock]) -> None:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM PreferredBlocks WHERE user_id = ?;", (user_id,))
            cursor.executemany(
                """
                INSERT INTO PreferredBlocks (user_id, day, start_time, end_time)
                VALUES (?, ?, ?, ?);
                """,
                [(user_id, block.day, block.start_time, block.end_time) for block in blocks],
            )
            conn.commit()

    def _load_member(
        self,
        cursor: sqlite3.Cursor,
        row: sqlite3.Row,
        room_id: Optional[int] = None,
        carry_over_hours: float = 0.0,
    ) -> Member:
        user_id = str(row["id"])
        cursor.execute(
            """
            SELECT day, start_time, end_time
            FROM PreferredBlocks
            WHERE user_id = ?
            ORDER BY day ASC, start_time ASC;
            """,
            (user_id,),
        )
        blocks = tuple(
            PreferredBlock(
                day=str(block["day"]),
                start_time=str(block["start_time"]),
                end_time=str(block["end_time"]),
            )
            for block in cursor.fetchall()
        )

        history: tuple[CarryOverRecord, ...] = ()
        if room_id is not None:
            cursor.execute(
                """
                SELECT week, amount
                FROM CarryOverHistory
                WHERE room_id = ? AND user_id = ?
                ORDER BY week ASC;
                """,
                (room_id, user_id),
            )
            history = tuple(
                CarryOverRecord(
                    week=date.fromisoformat(str(record["week"])),
                    amount=float(record["amount"]),
                )
                for record in cursor.fetchall()
            )

        location = None
        if row["lat"] is not None and row["lng"] is not None:
            location = Location(lat=float(row["lat"]), lng=float(row["lng"]))
        return Member(
            member_id=user_id,
            name=str(row["name"]),
            location=location,
            preferred_blocks=blocks,
            carry_over_hours=carry_over_hours,
            carry_over_history=history,
        )

    def get_member(self, user_id: str) -> Optional[Member]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT id, name, lat, lng FROM Users WHERE id = ?;", (user_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            return self._load_member(cursor, row)

    def get_user_name(self, user_id: Optional[str]) -> str:
        if user_id is None:
            return ""
        with self._connect() as conn:
            row = conn.execute("SELECT name FROM Users WHERE id = ?;", (user_id,)).fetchone()
        return str(row["name"]) if row is not None else user_id

    # ------------------------------------------------------------------ rooms

    def create_room(self, name: str, owner_id: str, settings: RoomSettings) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Rooms (
                    name, owner_id, schedule_start_hour, schedule_end_hour, min_hours_per_week
                )
                VALUES (?, ?, ?, ?, ?);
                """,
                (
                    name,
                    owner_id,
                    settings.schedule_start_hour,
                    settings.schedule_end_hour,
                    settings.min_hours_per_week,
                ),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def add_room_member(self, room_id: int, user_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO RoomMembers (room_id, user_id) VALUES (?, ?);",
                (room_id, user_id),
            )
            conn.commit()

    def get_room(self, room_id: int) -> Optional[Room]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT id, name, owner_id, schedule_start_hour, schedule_end_hour,
                       min_hours_per_week, version
                FROM Rooms
                WHERE id = ?;
                """,
                (room_id,),
            ).fetchone()
        if row is None:
            return None
        return Room(
            room_id=int(row["id"]),
            name=str(row["name"]),
            owner_id=str(row["owner_id"]),
            settings=RoomSettings(
                schedule_start_hour=int(row["schedule_start_hour"]),
                schedule_end_hour=int(row["schedule_end_hour"]),
                min_hours_per_week=float(row["min_hours_per_week"]),
            ),
            version=int(row["version"]),
        )

    def list_room_members(self, room_id: int) -> list[Member]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT u.id, u.name, u.lat, u.lng, rm.carry_over_hours
                FROM RoomMembers AS rm
                INNER JOIN Users AS u ON u.id = rm.user_id
                WHERE rm.room_id = ?
                ORDER BY rm.joined_at ASC, u.id ASC;
                """,
                (room_id,),
            )
            rows = cursor.fetchall()
            return [
                self._load_member(
                    cursor,
                    row,
                    room_id=room_id,
                    carry_over_hours=float(row["carry_over_hours"]),
                )
                for row in rows
            ]

    def is_room_member(self, room_id: int, user_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM RoomMembers WHERE room_id = ? AND user_id = ?;",
                (room_id, user_id),
            ).fetchone()
        return row is not None

    @staticmethod
    def _bump_version(cursor: sqlite3.Cursor, room_id: int, expected_version: int) -> None:
        cursor.execute(
            "UPDATE Rooms SET version = version + 1 WHERE id = ? AND version = ?;",
            (room_id, expected_version),
        )
        if cursor.rowcount != 1:
            raise ConcurrentModificationError(
                f"Room {room_id} was modified concurrently; reload and retry"
            )

    # ------------------------------------------------------------- time slots

    @staticmethod
    def _row_to_slot(row: sqlite3.Row) -> AssignedSlot:
        return AssignedSlot(
            member_id=str(row["user_id"]) if row["user_id"] is not None else None,
            date=date.fromisoformat(str(row["date"])),
            start_time=str(row["start_time"]),
            end_time=str(row["end_time"]),
            day=str(row["day"]),
            is_travel=bool(row["is_travel"]),
            label=str(row["label"]),
            slot_id=int(row["id"]),
        )

    @staticmethod
    def _insert_slots(
        cursor: sqlite3.Cursor,
        room_id: int,
        slots: Sequence[AssignedSlot],
    ) -> None:
        cursor.executemany(
            """
            INSERT INTO TimeSlots (
                room_id, user_id, date, day, start_time, end_time, is_travel, label
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            [
                (
                    room_id,
                    slot.member_id,
                    slot.date.isoformat(),
                    slot.day,
                    slot.start_time,
                    slot.end_time,
                    1 if slot.is_travel else 0,
                    slot.label,
                )
                for slot in slots
            ],
        )

    def add_time_slot(self, room_id: int, slot: AssignedSlot) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            self._insert_slots(cursor, room_id, [slot])
            conn.commit()
            return int(cursor.lastrowid)

    def list_time_slots(
        self,
        room_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[AssignedSlot]:
        query = """
            SELECT id, user_id, date, day, start_time, end_time, is_travel, label
            FROM TimeSlots
            WHERE room_id = ?
        """
        params: list[object] = [room_id]
        if start_date is not None:
            query += " AND date >= ?"
            params.append(start_date.isoformat())
        if end_date is not None:
            query += " AND date <= ?"
            params.append(end_date.isoformat())
        query += " ORDER BY date ASC, start_time ASC, id ASC;"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_slot(row) for row in rows]

    def replace_week_schedule(
        self,
        *,
        room_id: int,
        expected_version: int,
        week_start: date,
        week_end: date,
        slots: Sequence[AssignedSlot],
        members: Sequence[Member],
        log_entries: Sequence[ActivityLogEntry],
    ) -> None:
        """Swap a week's slots and carry-over state in one transaction."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                self._bump_version(cursor, room_id, expected_version)
                cursor.execute(
                    "DELETE FROM TimeSlots WHERE room_id = ? AND date >= ? AND date <= ?;",
                    (room_id, week_start.isoformat(), week_end.isoformat()),
                )
                self._insert_slots(
                    cursor,
                    room_id,
                    [slot for slot in slots if week_start <= slot.date <= week_end],
                )
                for member in members:
                    cursor.execute(
                        """
                        UPDATE RoomMembers SET carry_over_hours = ?
                        WHERE room_id = ? AND user_id = ?;
                        """,
                        (member.carry_over_hours, room_id, member.member_id),
                    )
                    cursor.executemany(
                        """
                        INSERT INTO CarryOverHistory (room_id, user_id, week, amount)
                        VALUES (?, ?, ?, ?)
                        ON CONFLICT(room_id, user_id, week) DO UPDATE SET
                            amount = excluded.amount;
                        """,
                        [
                            (room_id, member.member_id, record.week.isoformat(), record.amount)
                            for record in member.carry_over_history
                        ],
                    )
                self._insert_logs(cursor, log_entries)
                conn.commit()
        except sqlite3.Error as exc:
            raise RuntimeError(f"Failed to persist week schedule: {exc}") from exc
        logger.info(
            "Week schedule persisted | room_id=%s | week_start=%s | slots=%s",
            room_id,
            week_start.isoformat(),
            len(slots),
        )

    # --------------------------------------------------------------- requests

    @staticmethod
    def _row_to_request(row: sqlite3.Row) -> CoordinationRequest:
        return CoordinationRequest(
            request_id=int(row["id"]),
            room_id=int(row["room_id"]),
            requester_id=str(row["requester_id"]),
            request_type=str(row["type"]),
            time_slot=RequestTimeSlot(
                day=str(row["day"]),
                start_time=str(row["start_time"]),
                end_time=str(row["end_time"]),
                date=date.fromisoformat(str(row["date"])) if row["date"] else None,
            ),
            target_user_id=row["target_user_id"],
            status=str(row["status"]),
            conflicting_user_id=row["conflicting_user_id"],
            message=row["message"],
            response=row["response"],
            responded_by=row["responded_by"],
            created_at=row["created_at"],
            responded_at=row["responded_at"],
        )

    def create_request(
        self,
        *,
        room_id: int,
        requester_id: str,
        request_type: str,
        time_slot: RequestTimeSlot,
        target_user_id: Optional[str] = None,
        conflicting_user_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> CoordinationRequest:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Requests (
                    room_id, requester_id, target_user_id, type, day, date,
                    start_time, end_time, status, conflicting_user_id, message, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'pending', ?, ?, ?);
                """,
                (
                    room_id,
                    requester_id,
                    target_user_id,
                    request_type,
                    time_slot.day,
                    time_slot.date.isoformat() if time_slot.date else None,
                    time_slot.start_time,
                    time_slot.end_time,
                    conflicting_user_id,
                    message,
                    _utc_now(),
                ),
            )
            conn.commit()
            request_id = int(cursor.lastrowid)
        created = self.get_request(request_id)
        if created is None:
            raise RuntimeError(f"Request {request_id} vanished after insert")
        return created

    def get_request(self, request_id: int) -> Optional[CoordinationRequest]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM Requests WHERE id = ?;", (request_id,)).fetchone()
        return self._row_to_request(row) if row is not None else None

    def list_requests(
        self,
        room_id: int,
        status: Optional[str] = None,
    ) -> list[CoordinationRequest]:
        query = "SELECT * FROM Requests WHERE room_id = ?"
        params: list[object] = [room_id]
        if status is not None:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY id ASC;"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_request(row) for row in rows]

    def delete_request(self, request_id: int) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM Requests WHERE id = ?;", (request_id,))
            conn.commit()

    def apply_request_resolution(
        self,
        *,
        room_id: int,
        expected_version: int,
        request_id: int,
        status: str,
        responded_by: str,
        response: Optional[str],
        removed_slot_ids: Sequence[int] = (),
        added_slots: Sequence[AssignedSlot] = (),
        moved_slots: Sequence[AssignedSlot] = (),
        log_entries: Sequence[ActivityLogEntry] = (),
    ) -> None:
        """Commit a request decision with all its slot changes and log entries."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                self._bump_version(cursor, room_id, expected_version)
                cursor.execute(
                    """
                    UPDATE Requests
                    SET status = ?, responded_by = ?, response = ?, responded_at = ?
                    WHERE id = ? AND status = 'pending';
                    """,
                    (status, responded_by, response, _utc_now(), request_id),
                )
                if cursor.rowcount != 1:
                    raise ConcurrentModificationError(
                        f"Request {request_id} was resolved concurrently"
                    )
                cursor.executemany(
                    "DELETE FROM TimeSlots WHERE id = ? AND room_id = ?;",
                    [(slot_id, room_id) for slot_id in removed_slot_ids],
                )
                cursor.executemany(
                    """
                    UPDATE TimeSlots
                    SET user_id = ?, date = ?, day = ?, start_time = ?, end_time = ?, label = ?
                    WHERE id = ? AND room_id = ?;
                    """,
                    [
                        (
                            slot.member_id,
                            slot.date.isoformat(),
                            slot.day,
                            slot.start_time,
                            slot.end_time,
                            slot.label,
                            slot.slot_id,
                            room_id,
                        )
                        for slot in moved_slots
                    ],
                )
                self._insert_slots(cursor, room_id, added_slots)
                self._insert_logs(cursor, log_entries)
                conn.commit()
        except sqlite3.Error as exc:
            raise RuntimeError(f"Failed to persist request resolution: {exc}") from exc

    # ----------------------------------------------------------- activity log

    @staticmethod
    def _insert_logs(cursor: sqlite3.Cursor, entries: Sequence[ActivityLogEntry]) -> None:
        cursor.executemany(
            """
            INSERT INTO ActivityLogs (
                room_id, actor_id, actor_name, action, detail_text, metadata, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            [
                (
                    entry.room_id,
                    entry.actor_id,
                    entry.actor_name,
                    entry.action,
                    entry.detail_text,
                    json.dumps(entry.metadata, default=str),
                    entry.created_at or _utc_now(),
                )
                for entry in entries
            ],
        )

    def list_activity_logs(self, room_id: int, limit: int = 100) -> list[ActivityLogEntry]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT room_id, actor_id, actor_name, action, detail_text, metadata, created_at
                FROM ActivityLogs
                WHERE room_id = ?
                ORDER BY id ASC
                LIMIT ?;
                """,
                (room_id, limit),
            ).fetchall()
        return [
            ActivityLogEntry(
                room_id=int(row["room_id"]),
                actor_id=row["actor_id"],
                actor_name=str(row["actor_name"]),
                action=str(row["action"]),
                detail_text=str(row["detail_text"]),
                metadata=json.loads(row["metadata"]),
                created_at=row["created_at"],
            )
            for row in rows
        ]

    def count_activity_logs(self, room_id: int) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS count FROM ActivityLogs WHERE room_id = ?;",
                (room_id,),
            ).fetchone()
        return int(row["count"])

    # ----------------------------------------------------------------- events

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> CalendarEvent:
        return CalendarEvent(
            start=datetime.fromisoformat(str(row["start_time"])),
            end=datetime.fromisoformat(str(row["end_time"])),
            id=str(row["id"]),
            title=str(row["title"]),
        )

    def create_event(
        self,
        *,
        user_id: str,
        title: str,
        start: datetime,
        end: datetime,
    ) -> CalendarEvent:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO Events (user_id, title, start_time, end_time) VALUES (?, ?, ?, ?);",
                (user_id, title, start.isoformat(), end.isoformat()),
            )
            conn.commit()
            event_id = int(cursor.lastrowid)
        return CalendarEvent(start=start, end=end, id=str(event_id), title=title)

    def get_event(self, *, user_id: str, event_id: str) -> Optional[CalendarEvent]:
        try:
            numeric_id = int(event_id)
        except (TypeError, ValueError):
            return None
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM Events WHERE id = ? AND user_id = ?;",
                (numeric_id, user_id),
            ).fetchone()
        return self._row_to_event(row) if row is not None else None

    def find_event(
        self,
        *,
        user_id: str,
        title: str,
        start: datetime,
        end: datetime,
    ) -> Optional[CalendarEvent]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM Events WHERE user_id = ? AND title = ?;",
                (user_id, title),
            ).fetchall()
        for row in rows:
            event = self._row_to_event(row)
            if event.start == start and event.end == end:
                return event
        return None

    def list_events(self, user_id: str) -> list[CalendarEvent]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM Events WHERE user_id = ? ORDER BY start_time ASC;",
                (user_id,),
            ).fetchall()
        return [self._row_to_event(row) for row in rows]

    def update_event_time(
        self,
        *,
        user_id: str,
        event_id: str,
        start: datetime,
        end: datetime,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE Events SET start_time = ?, end_time = ? WHERE id = ? AND user_id = ?;",
                (start.isoformat(), end.isoformat(), int(event_id), user_id),
            )
            conn.commit()
