from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .utils import now_ms

# Shared type for incoming instants: epoch milliseconds, date, datetime or ISO8601 string
InstantInput = Union[int, float, date, datetime, str]

TITLE_MAX_LENGTH = 200
NAME_MIN_LENGTH = 2


def _to_epoch_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def _parse_instant(value: Optional[InstantInput]) -> Optional[int]:
    """
    Internal helper to normalize an instant into integer epoch milliseconds.
    - ints and floats are taken as epoch milliseconds.
    - A datetime is converted as-is; naive datetimes are read as UTC.
    - A date (not datetime) is promoted to midnight UTC.
    - A string is parsed as ISO8601 datetime first, then as a date.
    """
    if value is None:
        return None

    if isinstance(value, bool):
        raise ValueError("Invalid type for instant; expected epoch milliseconds, date, datetime, or ISO8601 string.")

    if isinstance(value, (int, float)):
        return int(value)

    if isinstance(value, datetime):
        return _to_epoch_ms(value)

    if isinstance(value, date):
        return _to_epoch_ms(datetime(value.year, value.month, value.day))

    if isinstance(value, str):
        s = value.strip()
        if s.isdigit():
            return int(s)
        try:
            return _to_epoch_ms(datetime.fromisoformat(s))
        except ValueError:
            try:
                d = date.fromisoformat(s)
                return _to_epoch_ms(datetime(d.year, d.month, d.day))
            except ValueError as e:
                raise ValueError(
                    "Invalid instant format. Use epoch milliseconds or an ISO8601 date or datetime string "
                    "(e.g., '2025-01-31' or '2025-01-31T13:45:00')."
                ) from e

    raise ValueError("Invalid type for instant; expected epoch milliseconds, date, datetime, or ISO8601 string.")


def _validate_title(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    s = v.strip()
    if not (1 <= len(s) <= TITLE_MAX_LENGTH):
        raise ValueError(f"title length must be between 1 and {TITLE_MAX_LENGTH} characters")
    return s


def _validate_name(v: str) -> str:
    s = v.strip()
    if len(s) < NAME_MIN_LENGTH:
        raise ValueError(f"Name must be at least {NAME_MIN_LENGTH} characters")
    return s


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# PUBLIC_INTERFACE
class TaskStatus(str, Enum):
    """Coarse task state, always derived from progress."""

    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


# PUBLIC_INTERFACE
class Subtask(CamelModel):
    """A single checklist line extracted from a task description."""

    id: str = Field(..., min_length=1, description="Identifier, stable across description edits")
    text: str = Field(..., description="Trimmed checklist line text")
    completed: bool = Field(default=False, description="Completion flag")


# PUBLIC_INTERFACE
class ActivityLogEntry(CamelModel):
    """
    One audit record of a toggle: a manual note (isSystemLog=False) or a
    system entry (isSystemLog=True) optionally threaded under a note.
    """

    id: str = Field(..., min_length=1, description="Entry identifier")
    timestamp: int = Field(..., description="Epoch milliseconds, non-decreasing per task")
    message: str = Field(..., description="Note text or system message")
    progress: int = Field(..., ge=0, le=100, description="Task progress when the entry was written")
    parent_id: Optional[str] = Field(default=None, description="Identifier of the parent note, if any")
    is_system_log: bool = Field(default=False, description="True for entries generated by a toggle")


# PUBLIC_INTERFACE
class ThreadedEntry(ActivityLogEntry):
    """A top-level log entry with the entries threaded beneath it."""

    children: List[ActivityLogEntry] = Field(default_factory=list)


# PUBLIC_INTERFACE
class Task(CamelModel):
    """
    Full task state as stored by either backend and echoed by the remote service.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "8f0c3a4e-6d1b-4c35-9c0e-2f7d1f8b9a10",
                "title": "Revise chemistry",
                "description": "1. Read chapter 4\n2. Do exercises",
                "subtasks": [
                    {"id": "a1", "text": "Read chapter 4", "completed": True},
                    {"id": "a2", "text": "Do exercises", "completed": False},
                ],
                "deadline": 1767225600000,
                "status": "In Progress",
                "progress": 50,
                "createdAt": 1764547200000,
                "logs": [],
            }
        }
    )

    id: str = Field(..., min_length=1, description="Globally unique task identifier")
    title: str = Field(..., description="Short title for the task", max_length=TITLE_MAX_LENGTH)
    description: str = Field(default="", description="Raw description text, may encode a checklist")
    subtasks: List[Subtask] = Field(default_factory=list, description="Checklist in description order")
    deadline: int = Field(..., description="Deadline as epoch milliseconds")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Derived from progress")
    progress: int = Field(default=0, ge=0, le=100, description="Completion percentage")
    created_at: int = Field(default_factory=now_ms, description="Creation instant, epoch milliseconds")
    logs: List[ActivityLogEntry] = Field(default_factory=list, description="Activity log, newest first")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _validate_title(v)  # type: ignore[return-value]

    @field_validator("description", mode="before")
    @classmethod
    def coerce_description(cls, v: Optional[str]) -> str:
        return "" if v is None else v

    @field_validator("deadline", "created_at", mode="before")
    @classmethod
    def parse_instant(cls, v: InstantInput) -> Optional[int]:
        """
        Normalize instants from int/str/date/datetime to epoch milliseconds.
        """
        return _parse_instant(v)


# PUBLIC_INTERFACE
class TaskDraft(CamelModel):
    """
    Caller input for creating a task. The identifier, checklist, creation
    instant and log are attached by the accessor before dispatch.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Revise chemistry",
                "description": "1. Read chapter 4\n2. Do exercises",
                "deadline": "2026-01-01",
                "status": "Pending",
                "progress": 0,
            }
        }
    )

    title: str = Field(..., description="Short title for the task", min_length=1, max_length=TITLE_MAX_LENGTH)
    description: str = Field(default="", description="Raw description text")
    deadline: int = Field(..., description="Deadline; accepts epoch ms, ISO8601 date or datetime")
    status: Optional[TaskStatus] = Field(default=None, description="Ignored; status is derived from progress")
    progress: int = Field(default=0, ge=0, le=100, description="Used only when the description has no checklist")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if v is None:
            raise ValueError("title is required")
        return _validate_title(v)  # type: ignore[return-value]

    @field_validator("description", mode="before")
    @classmethod
    def coerce_description(cls, v: Optional[str]) -> str:
        return "" if v is None else v

    @field_validator("deadline", mode="before")
    @classmethod
    def parse_deadline(cls, v: InstantInput) -> Optional[int]:
        return _parse_instant(v)


# PUBLIC_INTERFACE
class TaskUpdate(CamelModel):
    """
    Partial update of a task. Only fields present in model_fields_set are applied.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Revise chemistry and physics",
                "description": "1. Read chapter 4\n2. Do exercises\n3. Past paper",
                "deadline": "2026-01-02T09:30:00",
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Short title", min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(default=None, description="Raw description text")
    deadline: Optional[int] = Field(default=None, description="Deadline; accepts epoch ms, ISO8601 date or datetime")
    status: Optional[TaskStatus] = Field(default=None, description="Ignored; status is derived from progress")
    progress: Optional[int] = Field(default=None, ge=0, le=100, description="Applied only when the checklist is empty")
    subtasks: Optional[List[Subtask]] = Field(default=None, description="Checklist re-extracted by the client")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        If title is provided, strip whitespace and enforce 1..200 length.
        """
        return _validate_title(v)

    @field_validator("deadline", mode="before")
    @classmethod
    def parse_deadline(cls, v: Optional[InstantInput]) -> Optional[int]:
        return _parse_instant(v)


# PUBLIC_INTERFACE
class ToggleRequest(CamelModel):
    """Body of a subtask toggle: new completion flag plus an optional manual note."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"completed": True, "logMessage": "Finished the reading early"}}
    )

    completed: bool = Field(..., description="New completion flag")
    log_message: Optional[str] = Field(default=None, description="Optional manual note threaded above the system entry")


# PUBLIC_INTERFACE
class ActivityRecordOut(ActivityLogEntry):
    """
    Durable audit record returned by the logs endpoints. Outlives its task.
    """

    task_id: str = Field(..., description="Identifier of the task the entry belongs to")
    task_title: str = Field(..., description="Task title at the time of the entry")


# PUBLIC_INTERFACE
class UserProfile(CamelModel):
    """Display profile of the single local user or of an authenticated account."""

    name: str = Field(..., description="Display name, trimmed, at least 2 characters")
    has_onboarded: bool = Field(default=False, description="Onboarding completed")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_name(v)


# PUBLIC_INTERFACE
class ProfileUpdate(CamelModel):
    """Body of a profile save. Saving always marks the user as onboarded."""

    model_config = ConfigDict(json_schema_extra={"example": {"name": "Sam"}})

    name: str = Field(..., description="New display name")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """
        Strip whitespace and require at least 2 characters.
        """
        return _validate_name(v)

    def to_profile(self) -> UserProfile:
        return UserProfile(name=self.name, has_onboarded=True)
