"""Due-date reminder and overdue detection.

A task's due instant is 09:00 on its due date. A reminder fires during the
minute that starts ``minutes`` before that instant; a task is overdue once
the due instant has passed. Completed tasks and unparseable due dates are
skipped.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from questlog.core.config import constants, settings
from questlog.core.logging import span
from questlog.core.timeutil import parse_iso
from questlog.domain.task import Task
from questlog.services import notifications
from questlog.services.notifications import Notifier, TaskOverdue, TaskReminder


logger = logging.getLogger(__name__)


def due_instant(task: Task) -> datetime | None:
    due = parse_iso(task.due_date)
    if due is None:
        return None
    return due.replace(hour=constants.REMINDER_HOUR, minute=0, second=0, microsecond=0)


def describe_lead_time(minutes: int) -> str:
    """Human-readable lead time, e.g. ``"1 hour"`` or ``"15 minutes"``."""
    if minutes >= 60:  # noqa: PLR2004
        hours = minutes // 60
        return f"{hours} hour{'s' if hours > 1 else ''}"
    return f"{minutes} minute{'s' if minutes > 1 else ''}"


def check_task_reminders(
    tasks: Iterable[Task],
    now: datetime | None = None,
    reminder_minutes: Iterable[int] | None = None,
) -> list[TaskReminder | TaskOverdue]:
    """Build the reminder and overdue events due at ``now``."""
    now = now or datetime.now(UTC)
    minutes_list = list(reminder_minutes if reminder_minutes is not None else settings.reminder_minutes)
    events: list[TaskReminder | TaskOverdue] = []

    for task in tasks:
        if task.is_done:
            continue
        due = due_instant(task)
        if due is None:
            logger.debug("Skipping reminder for unparseable due date", extra={"task_id": task.id})
            continue

        for minutes in minutes_list:
            remind_at = due - timedelta(minutes=minutes)
            if timedelta(0) <= remind_at - now < timedelta(minutes=1):
                events.append(
                    TaskReminder(task_id=task.id, title=task.title, due_date=task.due_date, minutes_before=minutes)
                )

        if due < now:
            events.append(TaskOverdue(task_id=task.id, title=task.title, due_date=task.due_date))

    return events


async def send_task_reminders(
    tasks: Iterable[Task],
    notifier: Notifier,
    now: datetime | None = None,
) -> int:
    """Check reminders and deliver them. Returns the number of events delivered."""
    with span("reminders.send_task_reminders"):
        delivered = 0
        for event in check_task_reminders(tasks, now):
            if await notifications.send(notifier, event):
                delivered += 1
        if delivered:
            logger.info("Sent task reminders", extra={"count": delivered})
        return delivered
