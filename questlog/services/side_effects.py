"""Best-effort side effects (XP changes, achievement checks) as queued events.

The engine emits events and returns; registered handlers consume them either
on a background worker (``start``/``stop``) or inline through ``drain``.
A handler failure never reaches the operation that emitted the event: it is
logged and the event is parked on a bounded dead-letter queue from which
``retry_failed`` can re-enqueue it.
"""

import asyncio
import contextlib
import logging
from collections import defaultdict, deque
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, Field

from questlog.core.config import constants
from questlog.core.timeutil import now_iso


logger = logging.getLogger(__name__)


class XpChange(BaseModel):
    """Adjust a member's XP by ``amount`` (negative to reverse an award)."""

    member_id: str
    amount: int
    reason: str = ""


class AchievementCheck(BaseModel):
    """Re-evaluate achievements after a task or member mutation."""

    reason: str = ""


SideEffect = XpChange | AchievementCheck
Handler = Callable[[Any], Awaitable[None]]


class DeadLetter(BaseModel):
    """A side effect whose handler failed."""

    event: XpChange | AchievementCheck
    error: str
    failed_at: str = Field(default_factory=now_iso)


class SideEffectDispatcher:
    """Queue of side-effect events with per-type async handlers."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[SideEffect] = asyncio.Queue()
        self._handlers: dict[type, list[Handler]] = defaultdict(list)
        self._dead_letter_queue: deque[DeadLetter] = deque(maxlen=constants.DEAD_LETTER_QUEUE_MAXLEN)
        self._worker: asyncio.Task[None] | None = None

    def register(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def dead_letters(self) -> list[DeadLetter]:
        return list(self._dead_letter_queue)

    def emit(self, event: SideEffect) -> None:
        """Queue an event without waiting for it to be handled."""
        self._queue.put_nowait(event)
        logger.debug("Side effect queued", extra={"event": type(event).__name__})

    async def _process(self, event: SideEffect) -> None:
        for handler in self._handlers.get(type(event), []):
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "Side effect handler failed",
                    extra={"event": type(event).__name__, "payload": event.model_dump(), "error": str(e)},
                )
                self._dead_letter_queue.append(DeadLetter(event=event, error=str(e)))

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self._process(event)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        """Start consuming events on a background task."""
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._run(), name="questlog-side-effects")
        logger.info("Side effect worker started")

    async def stop(self) -> None:
        """Finish queued events, then stop the background worker."""
        if self._worker is None:
            return
        await self._queue.join()
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None
        logger.info("Side effect worker stopped")

    async def drain(self) -> None:
        """Wait until every queued event has been handled.

        Without a running worker the events are handled inline, in order.
        """
        if self.is_running:
            await self._queue.join()
            return
        while not self._queue.empty():
            event = self._queue.get_nowait()
            try:
                await self._process(event)
            finally:
                self._queue.task_done()

    def retry_failed(self) -> int:
        """Re-enqueue every dead-lettered event. Returns how many were re-queued."""
        count = 0
        while self._dead_letter_queue:
            self.emit(self._dead_letter_queue.popleft().event)
            count += 1
        if count:
            logger.info("Retrying failed side effects", extra={"count": count})
        return count
