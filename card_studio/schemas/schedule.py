"""Schedule schemas - automated card generation"""

import uuid
from datetime import datetime, timezone
from pydantic import BaseModel, Field
from typing import Any, Literal, Optional

Frequency = Literal["once", "daily", "weekly"]


class ScheduleOptions(BaseModel):
    """Generation flags for super-card schedules"""

    dark_mode: bool = Field(False, alias="darkMode")
    include_all_styles: bool = Field(False, alias="includeAllStyles")

    class Config:
        populate_by_name = True


class ScheduleCreate(BaseModel):
    """Body of POST /schedule and POST /super-schedule.

    Fields are optional here; ``ScheduleStore.create`` rejects missing ones
    with ``ScheduleValidationError`` before anything is written.
    """

    date: Optional[str] = None
    time: Optional[str] = None
    frequency: Optional[str] = None
    options: Optional[ScheduleOptions] = None


class ScheduleDelete(BaseModel):
    """Body of DELETE /schedule"""

    id: Optional[str] = None


class Schedule(BaseModel):
    """A stored schedule.

    ``status`` moves ``pending`` -> ``completed`` for one-off schedules;
    recurring schedules stay ``pending`` with their date advanced.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    date: str
    time: str
    frequency: Frequency
    status: Literal["pending", "completed"] = "pending"
    type: Literal["standard", "super-card"] = "standard"
    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        alias="createdAt",
    )
    last_run: Optional[str] = Field(None, alias="lastRun")
    options: Optional[ScheduleOptions] = None
    generated_cards: list[dict[str, Any]] = Field(default_factory=list, alias="generatedCards")
    errors: list[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    def run_at(self) -> datetime:
        """Naive datetime for the scheduled slot (server local time)."""
        return datetime.strptime(f"{self.date} {self.time}", "%Y-%m-%d %H:%M")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
