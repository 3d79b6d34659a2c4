"""Task domain models and enums."""

import json
import logging
import uuid
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from questlog.core.timeutil import now_iso


logger = logging.getLogger(__name__)


class CamelModel(BaseModel):
    """Base model whose wire/storage shape uses camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape used by both stores."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Priority(StrEnum):
    """Task priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(StrEnum):
    """Task workflow status."""

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    IN_REVIEW = "in-review"
    BLOCKED = "blocked"
    COMPLETED = "completed"


class RecurrenceType(StrEnum):
    """Recurrence unit of a repeating task."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def generate_id() -> str:
    """Client-side id for records created without a server."""
    return uuid.uuid4().hex


def _string_list(value: Any) -> list[str]:
    """Coerce a stored list field to a list of strings, dropping anything else."""
    if isinstance(value, str):
        # Some stores keep list fields as a JSON blob
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    if not isinstance(value, list | tuple):
        return []
    return [str(item) for item in value if isinstance(item, str | int) and str(item)]


class Subtask(CamelModel):
    """Checklist item owned by a single task."""

    id: str = Field(default_factory=generate_id, description="Subtask ID (unique within its task)")
    title: str = Field(default="", description="Subtask title")
    completed: bool = Field(default=False, description="Whether the subtask is done")


class RecurrenceRule(CamelModel):
    """How often a task repeats."""

    type: RecurrenceType = Field(default=RecurrenceType.NONE, description="Recurrence unit")
    interval: int = Field(default=1, ge=1, description="Number of units between occurrences")
    end_date: str | None = Field(default=None, description="ISO date after which no occurrence is generated")

    @field_validator("interval", mode="before")
    @classmethod
    def default_missing_interval(cls, v: Any) -> Any:
        """Treat a missing interval as 1."""
        return 1 if v is None else v


class Task(CamelModel):
    """Task data transfer object.

    Reading is lenient: malformed optional fields degrade to defaults so a
    single corrupt record cannot prevent a collection from loading.
    """

    id: str = Field(..., description="Unique task ID")
    title: str = Field(default="", description="Task title")
    description: str | None = Field(default=None, description="Detailed task description")
    owner_id: str = Field(default="", description="Primary owner (member ID locally, account ID remotely)")
    priority: Priority = Field(default=Priority.MEDIUM, description="Task priority")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="Workflow status")
    due_date: str = Field(default_factory=now_iso, description="Due date (ISO format)")
    tags: list[str] = Field(default_factory=list, description="Ordered set of free-text tags")
    subtasks: list[Subtask] = Field(default_factory=list, description="Ordered checklist")
    completed: bool = Field(default=False, description="Legacy flag mirroring status == completed")
    created_at: str = Field(default_factory=now_iso, description="Creation timestamp (ISO format)")
    updated_at: str = Field(default_factory=now_iso, description="Last update timestamp (ISO format)")
    recurrence: RecurrenceRule | None = Field(default=None, description="Recurrence rule")
    parent_recurring_task_id: str | None = Field(
        default=None, description="Task occurrence that spawned this one (generated occurrences only)"
    )
    depends_on: list[str] = Field(default_factory=list, description="Task IDs that must complete first")
    blocks: list[str] = Field(default_factory=list, description="Task IDs this task holds up")
    assigned_to: list[str] = Field(default_factory=list, description="Assigned member or account IDs")
    created_by: str | None = Field(default=None, description="Account that created the task (remote mode)")
    previous_status: TaskStatus | None = Field(
        default=None, description="Last non-terminal status before the task was completed"
    )
    time_estimate: int | None = Field(default=None, description="Estimated time in minutes")
    time_spent: int | None = Field(default=None, description="Total time spent in minutes")

    @model_validator(mode="before")
    @classmethod
    def fill_lenient_defaults(cls, data: Any) -> Any:
        """Repair legacy and malformed stored values before field validation."""
        if not isinstance(data, dict):
            return data
        data = dict(data)

        if "id" in data and data["id"] is not None:
            data["id"] = str(data["id"])

        completed = bool(data.get("completed", False))
        data["completed"] = completed

        status = data.get("status")
        if status not in TaskStatus._value2member_map_:
            data["status"] = TaskStatus.COMPLETED if completed else TaskStatus.TODO

        if data.get("priority") not in Priority._value2member_map_:
            data["priority"] = Priority.MEDIUM

        if data.get("previous_status", data.get("previousStatus")) not in TaskStatus._value2member_map_:
            data.pop("previous_status", None)
            data.pop("previousStatus", None)

        for key in ("dueDate", "due_date", "createdAt", "created_at", "updatedAt", "updated_at"):
            if key in data and (not isinstance(data[key], str) or not data[key].strip()):
                del data[key]
        if "dueDate" not in data and "due_date" not in data:
            created = data.get("createdAt", data.get("created_at"))
            if created:
                data["dueDate"] = created

        if not isinstance(data.get("recurrence"), dict | RecurrenceRule):
            data.pop("recurrence", None)

        return data

    @field_validator("tags", "depends_on", "blocks", "assigned_to", mode="before")
    @classmethod
    def coerce_string_list(cls, v: Any) -> list[str]:
        """Degrade bad list values (including JSON blobs) to a list of strings."""
        return _string_list(v)

    @field_validator("subtasks", mode="before")
    @classmethod
    def drop_malformed_subtasks(cls, v: Any) -> list[Any]:
        """Keep only subtask entries that are objects."""
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, dict | Subtask)]

    @field_validator("recurrence", mode="wrap")
    @classmethod
    def drop_malformed_recurrence(cls, v: Any, handler: Any) -> RecurrenceRule | None:
        """An unreadable recurrence rule reads as no recurrence."""
        try:
            return handler(v)
        except ValueError:
            logger.warning("Ignoring malformed recurrence rule: %r", v)
            return None

    @property
    def is_recurring_root(self) -> bool:
        """True for a task with a recurrence rule that is not itself a generated occurrence."""
        return (
            self.recurrence is not None
            and self.recurrence.type != RecurrenceType.NONE
            and not self.parent_recurring_task_id
        )

    @property
    def is_done(self) -> bool:
        """True when either the legacy flag or the status says completed."""
        return self.completed or self.status == TaskStatus.COMPLETED

    def completed_subtask_count(self) -> int:
        return sum(1 for subtask in self.subtasks if subtask.completed)
