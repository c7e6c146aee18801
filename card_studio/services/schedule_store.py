"""Schedule persistence.

Schedules are a JSON list under the Redis key ``schedules`` when Redis is
configured, otherwise ``DATA_DIR/schedules.json`` shaped as
``{"schedules": [...]}``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

from redis import asyncio as aioredis

from card_studio.config import get_settings
from card_studio.schemas.schedule import Schedule, ScheduleCreate, ScheduleOptions

logger = logging.getLogger(__name__)

SCHEDULES_KEY = "schedules"
VALID_FREQUENCIES = ("once", "daily", "weekly")
_RECURRENCE = {"daily": timedelta(days=1), "weekly": timedelta(days=7)}


class ScheduleValidationError(ValueError):
    """Raised for incomplete or malformed schedule input (maps to HTTP 400)."""


class ScheduleStore:
    """List/create/delete schedules and move them through their lifecycle."""

    def __init__(
        self,
        redis_client: Optional[aioredis.Redis] = None,
        file_path: Optional[Path] = None,
    ) -> None:
        if redis_client is None and file_path is None:
            raise ValueError("ScheduleStore needs a Redis client or a file path")
        self._redis = redis_client
        self._file_path = Path(file_path) if file_path is not None else None
        self._file_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls) -> "ScheduleStore":
        settings = get_settings()
        if settings.REDIS_URL:
            return cls(redis_client=aioredis.from_url(settings.REDIS_URL, decode_responses=True))
        return cls(file_path=Path(settings.DATA_DIR) / "schedules.json")

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "file"

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()

    # ------------------------------------------------------------------
    # Raw persistence
    # ------------------------------------------------------------------

    async def _load(self) -> List[Schedule]:
        if self._redis is not None:
            raw = await self._redis.get(SCHEDULES_KEY)
            items = json.loads(raw) if raw else []
        else:
            if not self._file_path.exists():
                return []
            data = json.loads(self._file_path.read_text(encoding="utf-8") or "{}")
            items = data.get("schedules", [])
        return [Schedule.model_validate(item) for item in items]

    async def _dump(self, schedules: List[Schedule]) -> None:
        items = [s.to_dict() for s in schedules]
        if self._redis is not None:
            await self._redis.set(SCHEDULES_KEY, json.dumps(items, ensure_ascii=False))
            return
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._file_path.with_suffix(".tmp")
        tmp_path.write_text(
            json.dumps({"schedules": items}, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        tmp_path.replace(self._file_path)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def list(self) -> List[Schedule]:
        return await self._load()

    async def get(self, schedule_id: str) -> Optional[Schedule]:
        for schedule in await self._load():
            if schedule.id == schedule_id:
                return schedule
        return None

    async def create(self, payload: ScheduleCreate, schedule_type: str = "standard") -> Schedule:
        """Validate and append a schedule.

        Raises ``ScheduleValidationError`` before touching storage when
        ``date``, ``time`` or ``frequency`` is missing or malformed.
        """
        if not payload.date or not payload.time or not payload.frequency:
            raise ScheduleValidationError("Date, time, and frequency are required")
        if payload.frequency not in VALID_FREQUENCIES:
            raise ScheduleValidationError(
                f"Invalid frequency '{payload.frequency}'. Use one of: {', '.join(VALID_FREQUENCIES)}"
            )
        try:
            datetime.strptime(f"{payload.date} {payload.time}", "%Y-%m-%d %H:%M")
        except ValueError:
            raise ScheduleValidationError("Date must be YYYY-MM-DD and time HH:MM") from None

        options = payload.options
        if schedule_type == "super-card" and options is None:
            options = ScheduleOptions()

        schedule = Schedule(
            date=payload.date,
            time=payload.time,
            frequency=payload.frequency,
            type=schedule_type,
            options=options,
        )
        async with self._file_lock:
            schedules = await self._load()
            schedules.append(schedule)
            await self._dump(schedules)
        logger.info("Schedule created: id=%s %s %s (%s)", schedule.id, schedule.date, schedule.time, schedule.frequency)
        return schedule

    async def save(self, schedule: Schedule) -> None:
        """Insert or replace a schedule by id."""
        async with self._file_lock:
            schedules = await self._load()
            for index, existing in enumerate(schedules):
                if existing.id == schedule.id:
                    schedules[index] = schedule
                    break
            else:
                schedules.append(schedule)
            await self._dump(schedules)

    async def delete(self, schedule_id: str) -> bool:
        async with self._file_lock:
            schedules = await self._load()
            remaining = [s for s in schedules if s.id != schedule_id]
            if len(remaining) == len(schedules):
                return False
            await self._dump(remaining)
        logger.info("Schedule deleted: id=%s", schedule_id)
        return True

    async def due(self, now: datetime) -> List[Schedule]:
        """Pending schedules whose slot is at or before ``now``."""
        due = []
        for schedule in await self._load():
            if schedule.status != "pending":
                continue
            try:
                if schedule.run_at() <= now:
                    due.append(schedule)
            except ValueError:
                logger.warning("Skipping schedule %s with malformed date/time", schedule.id)
        return due

    @staticmethod
    def advance(schedule: Schedule, now: datetime) -> Schedule:
        """Apply the post-run transition.

        ``once`` becomes ``completed``; ``daily``/``weekly`` stay ``pending``
        with the date moved to the first slot after ``now``, so missed slots
        are skipped rather than replayed. ``lastRun`` is always stamped.
        """
        updated = schedule.model_copy(deep=True)
        updated.last_run = now.isoformat()
        step = _RECURRENCE.get(schedule.frequency)
        if step is None:
            updated.status = "completed"
        else:
            next_run = schedule.run_at() + step
            while next_run <= now:
                next_run += step
            updated.date = next_run.strftime("%Y-%m-%d")
        return updated


# ---------------------------------------------------------------------------
# Singleton access (FastAPI dependency)
# ---------------------------------------------------------------------------

_store: Optional[ScheduleStore] = None


def get_schedule_store() -> ScheduleStore:
    global _store
    if _store is None:
        _store = ScheduleStore.from_settings()
    return _store


def reset_schedule_store() -> None:
    global _store
    _store = None
