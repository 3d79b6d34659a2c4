"""Domain models and DTOs."""

from questlog.domain.achievement import AchievementCategory, AchievementUnlock
from questlog.domain.create_models import MemberCreate, SubtaskCreate, TaskCreate
from questlog.domain.member import Member
from questlog.domain.session import SessionContext, SessionIdentity
from questlog.domain.task import Priority, RecurrenceRule, RecurrenceType, Subtask, Task, TaskStatus
from questlog.domain.template import TaskTemplate, TemplateTask
from questlog.domain.update_models import MemberUpdate, TaskUpdate


__all__ = [
    "AchievementCategory",
    "AchievementUnlock",
    "Member",
    "MemberCreate",
    "MemberUpdate",
    "Priority",
    "RecurrenceRule",
    "RecurrenceType",
    "SessionContext",
    "SessionIdentity",
    "Subtask",
    "SubtaskCreate",
    "Task",
    "TaskCreate",
    "TaskStatus",
    "TaskTemplate",
    "TaskUpdate",
    "TemplateTask",
]
