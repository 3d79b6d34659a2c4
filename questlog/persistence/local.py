"""Local-only adapter: an in-memory proxy of the key-value records.

Every mutation updates the in-memory lists first and then writes the whole
affected record back to the store. A write the store refuses (size ceiling,
I/O error) is logged by the store and tolerated here: the in-memory state
stays authoritative for the rest of the session.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from questlog.core.config import constants
from questlog.core.errors import RecordNotFoundError, TaskValidationError
from questlog.core.kv_store import KeyValueStore, StorageKeys
from questlog.core.timeutil import now_iso
from questlog.domain.member import Member
from questlog.domain.task import Task, generate_id
from questlog.persistence.base import SnapshotCallback, XpResult, parse_members, parse_tasks


logger = logging.getLogger(__name__)


class LocalAdapter:
    """Persistence adapter over the local key-value store."""

    mode = "local"

    def __init__(self, store: KeyValueStore | None = None) -> None:
        self._store = store or KeyValueStore()
        self._tasks: list[Task] = []
        self._members: list[Member] = []
        self._selected_member_id: str | None = None
        self._loaded = False

    @property
    def store(self) -> KeyValueStore:
        return self._store

    async def load(self) -> None:
        """Read the records once, migrating legacy data and seeding a default member."""
        if self._loaded:
            return

        raw_tasks = await self._store.read(StorageKeys.TASKS)
        self._tasks = parse_tasks(raw_tasks)
        # Records written before status existed get it derived from the legacy flag
        legacy = isinstance(raw_tasks, list) and any(isinstance(t, dict) and "status" not in t for t in raw_tasks)

        self._members = parse_members(await self._store.read(StorageKeys.MEMBERS))
        selected = await self._store.read(StorageKeys.SELECTED_MEMBER)
        self._selected_member_id = selected if isinstance(selected, str) else None
        self._loaded = True

        if legacy:
            logger.info("Migrated legacy task statuses", extra={"count": len(self._tasks)})
            await self._persist_tasks()

        if not self._members:
            default = Member(id=constants.DEFAULT_MEMBER_ID, name=constants.DEFAULT_MEMBER_NAME)
            self._members = [default]
            self._selected_member_id = default.id
            logger.info("Created default member", extra={"member_id": default.id})
            await self._persist_members()
            await self.save_selected_member(default.id)

    async def _persist_tasks(self) -> None:
        await self._store.write(StorageKeys.TASKS, [t.to_record() for t in self._tasks])

    async def _persist_members(self) -> None:
        await self._store.write(StorageKeys.MEMBERS, [m.to_record() for m in self._members])

    def _task_index(self, task_id: str) -> int:
        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                return i
        raise RecordNotFoundError(f"Task {task_id} not found")

    def _member_index(self, member_id: str) -> int:
        for i, member in enumerate(self._members):
            if member.id == member_id:
                return i
        raise RecordNotFoundError(f"Member {member_id} not found")

    # Tasks

    async def list_tasks(self) -> list[Task]:
        await self.load()
        return [t.model_copy(deep=True) for t in self._tasks]

    async def get_task(self, task_id: str) -> Task | None:
        await self.load()
        try:
            return self._tasks[self._task_index(task_id)].model_copy(deep=True)
        except RecordNotFoundError:
            return None

    async def create_task(self, record: dict[str, Any]) -> str:
        await self.load()
        now = now_iso()
        task = Task.model_validate({"dueDate": now, **record, "id": generate_id(), "createdAt": now, "updatedAt": now})
        self._tasks.append(task)
        await self._persist_tasks()
        return task.id

    async def update_task(self, task_id: str, updates: dict[str, Any]) -> None:
        await self.load()
        index = self._task_index(task_id)
        merged = {**self._tasks[index].model_dump(), **updates, "updated_at": now_iso()}
        self._tasks[index] = Task.model_validate(merged)
        await self._persist_tasks()

    async def delete_task(self, task_id: str) -> None:
        await self.load()
        self._tasks.pop(self._task_index(task_id))
        await self._persist_tasks()

    # Members

    async def list_members(self) -> list[Member]:
        await self.load()
        return [m.model_copy() for m in self._members]

    async def get_member(self, member_id: str) -> Member | None:
        await self.load()
        try:
            return self._members[self._member_index(member_id)].model_copy()
        except RecordNotFoundError:
            return None

    async def create_member(self, name: str, avatar: str | None = None) -> Member:
        await self.load()
        member = Member(id=generate_id(), name=name, avatar=avatar)
        self._members.append(member)
        await self._persist_members()
        return member.model_copy()

    async def update_member(self, member_id: str, updates: dict[str, Any]) -> Member:
        await self.load()
        index = self._member_index(member_id)
        self._members[index] = Member.model_validate({**self._members[index].model_dump(), **updates})
        await self._persist_members()
        return self._members[index].model_copy()

    async def delete_member(self, member_id: str) -> None:
        await self.load()
        index = self._member_index(member_id)
        if len(self._members) == 1:
            raise TaskValidationError("Cannot delete the last member")
        self._members.pop(index)
        await self._persist_members()

    async def add_xp(self, member_id: str, amount: int) -> XpResult:
        await self.load()
        index = self._member_index(member_id)
        member = self._members[index]
        updated = Member.model_validate({**member.model_dump(), "xp": max(0, member.xp + amount)})
        self._members[index] = updated
        await self._persist_members()
        return XpResult(member=updated.model_copy(), was_level_up=updated.level > member.level)

    # Selected member

    async def load_selected_member(self) -> str | None:
        await self.load()
        return self._selected_member_id

    async def save_selected_member(self, member_id: str | None) -> None:
        self._selected_member_id = member_id
        if member_id is None:
            await self._store.delete(StorageKeys.SELECTED_MEMBER)
        else:
            await self._store.write(StorageKeys.SELECTED_MEMBER, member_id)

    # Whole-store operations used by backup and migration

    async def replace_all(self, tasks: list[Task], members: list[Member], selected_member_id: str | None) -> None:
        """Overwrite every record at once."""
        self._tasks = [t.model_copy(deep=True) for t in tasks]
        self._members = [m.model_copy() for m in members]
        self._loaded = True
        await self._persist_tasks()
        await self._persist_members()
        await self.save_selected_member(selected_member_id)

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], Awaitable[None]] | None:
        # Single writer: nothing to push.
        return None

    async def close(self) -> None:
        await self._store.close()
