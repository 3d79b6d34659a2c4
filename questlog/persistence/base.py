"""Storage boundary shared by the local and remote adapters."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from pydantic import BaseModel, Field, ValidationError

from questlog.domain.member import Member
from questlog.domain.task import Task


logger = logging.getLogger(__name__)


class XpResult(BaseModel):
    """Outcome of an XP adjustment."""

    member: Member
    was_level_up: bool = Field(default=False, description="True when the adjustment crossed a level boundary")


class Snapshot(BaseModel):
    """Full task and member lists pushed by a subscription."""

    tasks: list[Task]
    members: list[Member]


SnapshotCallback = Callable[[Snapshot], Awaitable[None]]


class PersistenceAdapter(Protocol):
    """Capability set the engine needs from a store.

    ``updates`` dictionaries are keyed by Task/Member attribute name.
    """

    @property
    def mode(self) -> str:
        """``"local"`` or ``"remote"``."""
        ...

    async def list_tasks(self) -> list[Task]: ...

    async def get_task(self, task_id: str) -> Task | None: ...

    async def create_task(self, record: dict[str, Any]) -> str:
        """Store a new task built from a camelCase record and return its id."""
        ...

    async def update_task(self, task_id: str, updates: dict[str, Any]) -> None: ...

    async def delete_task(self, task_id: str) -> None: ...

    async def list_members(self) -> list[Member]: ...

    async def get_member(self, member_id: str) -> Member | None: ...

    async def create_member(self, name: str, avatar: str | None = None) -> Member: ...

    async def update_member(self, member_id: str, updates: dict[str, Any]) -> Member: ...

    async def delete_member(self, member_id: str) -> None: ...

    async def add_xp(self, member_id: str, amount: int) -> XpResult: ...

    async def load_selected_member(self) -> str | None: ...

    async def save_selected_member(self, member_id: str | None) -> None: ...

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], Awaitable[None]] | None:
        """Start pushing snapshots to ``callback``; returns an unsubscribe coroutine function."""
        ...

    async def close(self) -> None: ...


def parse_tasks(raw: Any) -> list[Task]:
    """Leniently parse a list of task records, skipping any that cannot be read."""
    tasks: list[Task] = []
    for item in raw if isinstance(raw, list) else []:
        try:
            tasks.append(Task.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping malformed task record", extra={"record_id": _record_id(item), "error": str(e)})
    return tasks


def parse_members(raw: Any) -> list[Member]:
    members: list[Member] = []
    for item in raw if isinstance(raw, list) else []:
        try:
            members.append(Member.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping malformed member record", extra={"record_id": _record_id(item), "error": str(e)})
    return members


def _record_id(item: Any) -> Any:
    return item.get("id") if isinstance(item, dict) else None
