"""Next-occurrence generation for recurring tasks."""

import logging
from datetime import datetime

from dateutil.relativedelta import relativedelta

from questlog.core.timeutil import parse_iso, to_iso
from questlog.domain.create_models import TaskCreate
from questlog.domain.task import RecurrenceRule, RecurrenceType, Subtask, Task, TaskStatus


logger = logging.getLogger(__name__)


def _step(rule: RecurrenceRule) -> relativedelta | None:
    interval = max(1, rule.interval)
    if rule.type == RecurrenceType.DAILY:
        return relativedelta(days=interval)
    if rule.type == RecurrenceType.WEEKLY:
        return relativedelta(weeks=interval)
    if rule.type == RecurrenceType.MONTHLY:
        # relativedelta clamps to the last day of shorter months
        return relativedelta(months=interval)
    return None


def next_due_date(due: datetime, rule: RecurrenceRule) -> datetime | None:
    """Due date of the occurrence after ``due``, or None when the series has ended.

    An unparseable end date is ignored and the series continues.
    """
    step = _step(rule)
    if step is None:
        return None

    next_due = due + step

    if rule.end_date:
        end = parse_iso(rule.end_date)
        if end is None:
            logger.warning("Ignoring unparseable recurrence end date", extra={"end_date": rule.end_date})
        elif end < next_due:
            return None
    return next_due


def build_next_occurrence(task: Task) -> TaskCreate | None:
    """Build the creation payload for the next occurrence of a completed root task.

    Returns None when the task is not a root recurring task, its due date is
    unparseable, or the series has ended.
    """
    if not task.is_recurring_root or task.recurrence is None:
        return None

    due = parse_iso(task.due_date)
    if due is None:
        logger.info("Skipping recurrence for task with unparseable due date", extra={"task_id": task.id})
        return None

    next_due = next_due_date(due, task.recurrence)
    if next_due is None:
        logger.info("Recurrence series ended", extra={"task_id": task.id})
        return None

    return TaskCreate(
        title=task.title,
        description=task.description,
        priority=task.priority,
        status=TaskStatus.TODO,
        completed=False,
        due_date=to_iso(next_due),
        tags=list(task.tags),
        subtasks=[Subtask(id=s.id, title=s.title, completed=False) for s in task.subtasks],
        owner_id=task.owner_id,
        assigned_to=list(task.assigned_to),
        depends_on=list(task.depends_on),
        blocks=list(task.blocks),
        recurrence=task.recurrence.model_copy(),
        parent_recurring_task_id=task.id,
        time_estimate=task.time_estimate,
    )
