"""Task template domain model."""

from pydantic import Field

from questlog.core.timeutil import now_iso
from questlog.domain.task import CamelModel, Priority, RecurrenceRule, Subtask, generate_id


class TemplateTask(CamelModel):
    """Reusable task shape: every task field except identity, timestamps and completion."""

    title: str = Field(..., description="Title given to tasks created from the template")
    description: str | None = Field(default=None, description="Task description")
    priority: Priority = Field(default=Priority.MEDIUM, description="Task priority")
    tags: list[str] = Field(default_factory=list, description="Task tags")
    subtasks: list[Subtask] = Field(default_factory=list, description="Checklist copied to each new task")
    recurrence: RecurrenceRule | None = Field(default=None, description="Recurrence rule")
    time_estimate: int | None = Field(default=None, description="Estimated time in minutes")


class TaskTemplate(CamelModel):
    """Saved task shape with usage statistics."""

    id: str = Field(default_factory=generate_id, description="Template ID")
    name: str = Field(..., description="Template name")
    task: TemplateTask = Field(..., description="Task shape instantiated by the template")
    category: str | None = Field(default=None, description="Optional grouping")
    tags: list[str] = Field(default_factory=list, description="Free tags describing the template")
    use_count: int = Field(default=0, ge=0, description="Number of tasks created from the template")
    created_at: str = Field(default_factory=now_iso, description="Creation timestamp (ISO format)")
    last_used: str | None = Field(default=None, description="Last instantiation timestamp (ISO format)")
