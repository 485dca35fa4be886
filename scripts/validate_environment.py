#!/usr/bin/env python3
"""Smoke-check that the coordination engine can run on this machine.

Each check is a callable returning a short detail string; any exception marks
it failed. Later checks share a scratch SQLite database under a temp dir.
"""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import date, timedelta
from pathlib import Path
from typing import Callable, Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.repository.data_repository import DataRepository
from backend.services.travel_service import TravelSchedulingService
from backend.utils.config import Settings, get_settings

REQUIRED_MODULES = ("fastapi", "uvicorn", "pydantic", "numpy", "httpx", "pytest")
MIN_PYTHON = (3, 10)


class _Scratch:
    """State carried between the database-backed checks."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.repository = DataRepository(settings)
        self.room_id: Optional[int] = None


def _check_python(_: _Scratch) -> str:
    found = sys.version.split()[0]
    if sys.version_info < MIN_PYTHON:
        raise RuntimeError(f"need Python {'.'.join(map(str, MIN_PYTHON))}+, found {found}")
    return found


def _check_modules(_: _Scratch) -> str:
    missing: list[str] = []
    for module_name in REQUIRED_MODULES:
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            missing.append(f"{module_name} ({exc})")
    if missing:
        raise RuntimeError("not importable: " + "; ".join(missing))
    return ", ".join(REQUIRED_MODULES)


def _check_schema(scratch: _Scratch) -> str:
    scratch.repository.initialize_database()
    return str(scratch.repository.database_path.name)


def _check_seed(scratch: _Scratch) -> str:
    scratch.room_id = scratch.repository.seed_demo_data_if_empty()
    if scratch.room_id is None:
        raise RuntimeError("empty database did not receive the demo room")
    return f"{len(scratch.repository.list_room_members(scratch.room_id))} members"


def _check_travel_run(scratch: _Scratch) -> str:
    if scratch.room_id is None:
        raise RuntimeError("skipped, no demo room")
    room = scratch.repository.get_room(scratch.room_id)
    today = date.today()
    service = TravelSchedulingService(repository=scratch.repository, settings=scratch.settings)
    result, _ = service.run_room_schedule(
        room_id=scratch.room_id,
        actor_id=room.owner_id,
        week_start=today - timedelta(days=today.weekday()),
    )
    visits = sum(1 for slot in result.time_slots if not slot.is_travel)
    return f"{visits} visits, {len(result.unvisited_member_ids)} unvisited"


CHECKS: list[tuple[str, Callable[[_Scratch], str]]] = [
    ("Python version", _check_python),
    ("Required packages", _check_modules),
    ("Database schema", _check_schema),
    ("Demo room seed", _check_seed),
    ("Travel scheduling run", _check_travel_run),
]


def main() -> int:
    temp_dir = Path(tempfile.mkdtemp(prefix="coord-env-"))
    scratch = _Scratch(replace(get_settings(), database_path=temp_dir / "validate.db"))
    failures = 0
    try:
        for name, check in CHECKS:
            try:
                detail = check(scratch)
            except Exception as exc:  # pragma: no cover - runtime guard
                failures += 1
                print(f"  FAIL  {name}: {exc}")
            else:
                print(f"  ok    {name} ({detail})")
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    if failures:
        print(f"\n{failures} of {len(CHECKS)} checks failed.")
        return 1
    print(f"\nAll {len(CHECKS)} checks passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
