"""Pydantic models validating input before it reaches a store."""

from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from questlog.core.config import constants
from questlog.core.errors import TaskValidationError
from questlog.core.timeutil import parse_iso
from questlog.domain.task import CamelModel, Priority, RecurrenceRule, Subtask, TaskStatus


ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_input(model: type[ModelT], data: Any) -> ModelT:
    """Validate ``data`` against ``model``, raising TaskValidationError on failure."""
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "input"
        msg = first["msg"].removeprefix("Value error, ")
        raise TaskValidationError(f"{field}: {msg}") from e


def clean_title(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Title cannot be empty")
    if len(v) > constants.TITLE_MAX_LENGTH:
        raise ValueError(f"Title too long (max {constants.TITLE_MAX_LENGTH} characters)")
    return v


def clean_description(v: str | None) -> str | None:
    if v is not None and len(v) > constants.DESCRIPTION_MAX_LENGTH:
        raise ValueError(f"Description too long (max {constants.DESCRIPTION_MAX_LENGTH} characters)")
    return v


def clean_tags(v: list[str]) -> list[str]:
    """Strip tags, drop empties and duplicates (first occurrence wins)."""
    tags: list[str] = []
    for tag in v:
        tag = tag.strip()
        if tag and tag not in tags:
            tags.append(tag)
    if len(tags) > constants.MAX_TAGS:
        raise ValueError(f"Too many tags (max {constants.MAX_TAGS})")
    return tags


def clean_due_date(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip()
    if parse_iso(v) is None:
        raise ValueError(f"Invalid due date: {v!r}")
    return v


def clean_member_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Name cannot be empty")
    if len(v) > constants.MEMBER_NAME_MAX_LENGTH:
        raise ValueError(f"Name too long (max {constants.MEMBER_NAME_MAX_LENGTH} characters)")
    return v


class TaskCreate(CamelModel):
    """Pydantic model for creating a task record."""

    title: str = Field(..., description="Task title")
    description: str | None = Field(default=None, description="Detailed task description")
    priority: Priority = Field(default=Priority.MEDIUM, description="Task priority")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="Initial workflow status")
    completed: bool = Field(default=False, description="Legacy completion flag")
    due_date: str | None = Field(default=None, description="Due date (ISO format); defaults to creation time")
    tags: list[str] = Field(default_factory=list, description="Free-text tags")
    subtasks: list[Subtask] = Field(default_factory=list, description="Initial checklist")
    owner_id: str | None = Field(default=None, description="Primary owner; defaults to the selected member")
    assigned_to: list[str] | None = Field(default=None, description="Assignees; defaults to the owner")
    depends_on: list[str] = Field(default_factory=list, description="Task IDs that must complete first")
    blocks: list[str] = Field(default_factory=list, description="Task IDs this task holds up")
    recurrence: RecurrenceRule | None = Field(default=None, description="Recurrence rule")
    parent_recurring_task_id: str | None = Field(default=None, description="Source occurrence, if generated")
    time_estimate: int | None = Field(default=None, ge=0, description="Estimated time in minutes")
    time_spent: int | None = Field(default=None, ge=0, description="Time spent in minutes")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate title is non-empty after trimming and within limits."""
        return clean_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        return clean_description(v)

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: list[str]) -> list[str]:
        return clean_tags(v)

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: str | None) -> str | None:
        """Validate due date parses as ISO-8601."""
        return clean_due_date(v)


class SubtaskCreate(BaseModel):
    """Pydantic model for adding a subtask."""

    title: str = Field(..., description="Subtask title")
    completed: bool = Field(default=False, description="Initial completion state")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate title is non-empty and within limits."""
        return clean_title(v)


class MemberCreate(BaseModel):
    """Pydantic model for creating a local member."""

    name: str = Field(..., description="Display name of the member")
    avatar: str | None = Field(default=None, description="Optional avatar")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate name is non-empty and within limits."""
        return clean_member_name(v)
