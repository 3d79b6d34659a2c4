"""Partial update models.

Only fields the caller actually set are applied; read them back with
``model_dump(exclude_unset=True)``.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from questlog.domain.create_models import (
    clean_description,
    clean_due_date,
    clean_member_name,
    clean_tags,
    clean_title,
)
from questlog.domain.task import CamelModel, Priority, RecurrenceRule, Subtask, TaskStatus


class TaskUpdate(CamelModel):
    """Partial update payload for a task."""

    title: str | None = None
    description: str | None = None
    priority: Priority | None = None
    status: TaskStatus | None = None
    completed: bool | None = None
    due_date: str | None = None
    tags: list[str] | None = None
    subtasks: list[Subtask] | None = None
    owner_id: str | None = None
    assigned_to: list[str] | None = None
    depends_on: list[str] | None = None
    blocks: list[str] | None = None
    recurrence: RecurrenceRule | None = None
    previous_status: TaskStatus | None = None
    time_estimate: int | None = Field(default=None, ge=0)
    time_spent: int | None = Field(default=None, ge=0)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        if v is None:
            raise ValueError("Title cannot be empty")
        return clean_title(v)

    @field_validator("owner_id")
    @classmethod
    def validate_owner_id(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            raise ValueError("Owner cannot be empty")
        return v.strip()

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        return clean_description(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str] | None) -> list[str]:
        return clean_tags(v or [])

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: str | None) -> str | None:
        return clean_due_date(v)

    def changes(self) -> dict:
        """Fields explicitly set by the caller, keyed by attribute name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class MemberUpdate(BaseModel):
    """Partial update payload for a member.

    XP and level are not updatable here: XP changes only through the XP
    operation and level is derived.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    avatar: str | None = None
    email: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            raise ValueError("Name cannot be empty")
        return clean_member_name(v)
