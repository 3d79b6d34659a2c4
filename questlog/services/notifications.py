"""Notification events and the collaborator protocol that receives them."""

import logging
from typing import Protocol

from pydantic import BaseModel, Field

from questlog.core.timeutil import now_iso


logger = logging.getLogger(__name__)


class AchievementUnlocked(BaseModel):
    """A member earned an achievement for the first time."""

    achievement_id: str
    member_id: str
    name: str
    description: str
    icon: str
    unlocked_at: str = Field(default_factory=now_iso)


class TaskReminder(BaseModel):
    """A task's reminder instant has arrived."""

    task_id: str
    title: str
    due_date: str
    minutes_before: int = Field(..., description="Minutes between the reminder and the due instant")


class TaskOverdue(BaseModel):
    """An incomplete task is past its due instant."""

    task_id: str
    title: str
    due_date: str


NotificationEvent = AchievementUnlocked | TaskReminder | TaskOverdue


class Notifier(Protocol):
    """Receiver of notification-worthy events. Fire-and-forget: nothing is returned."""

    async def notify(self, event: NotificationEvent) -> None:
        """Deliver one event."""
        ...


class LoggingNotifier:
    """Notifier that only logs events; the default when no delivery channel is wired."""

    async def notify(self, event: NotificationEvent) -> None:
        logger.info("Notification: %s", type(event).__name__, extra={"event": event.model_dump()})


async def send(notifier: Notifier, event: NotificationEvent) -> bool:
    """Deliver an event, logging instead of raising on failure.

    Returns:
        True if the notifier accepted the event
    """
    try:
        await notifier.notify(event)
    except Exception as e:
        logger.error("Failed to deliver notification", extra={"event": type(event).__name__, "error": str(e)})
        return False
    return True
