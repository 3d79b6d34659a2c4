"""Pure Python in-memory remote store for unit testing."""

import copy
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from questlog.core.errors import AuthorizationError, RecordNotFoundError
from questlog.domain.member import Member
from questlog.domain.task import Task
from questlog.domain.update_models import TaskUpdate
from questlog.persistence.base import SnapshotCallback, XpResult, parse_members, parse_tasks


def _now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class InMemoryRemoteAdapter:
    """In-memory stand-in for the remote-backed adapter.

    Records are kept in their camelCase wire shape, ids are server-assigned
    from a counter, and ``fail_with`` makes the next matching call raise so
    failure semantics can be exercised without a server.
    """

    mode = "remote"

    def __init__(self, account_id: str = "acct-1") -> None:
        self.account_id = account_id
        self._tasks: dict[str, dict[str, Any]] = {}
        self._members: dict[str, dict[str, Any]] = {}
        self._id_counter = 1000
        self._failures: dict[str, Exception] = {}
        self.calls: list[tuple[str, Any]] = []
        self.closed = False

    # Test helpers

    def fail_with(self, operation: str, error: Exception) -> None:
        """Make the next call to ``operation`` raise ``error``."""
        self._failures[operation] = error

    def _maybe_fail(self, operation: str) -> None:
        error = self._failures.pop(operation, None)
        if error is not None:
            raise error

    def _next_id(self) -> str:
        self._id_counter += 1
        return str(self._id_counter)

    def seed_member(self, member_id: str, name: str, *, user_id: str | None = None, xp: int = 0) -> Member:
        self._members[member_id] = {"id": member_id, "name": name, "xp": xp, "userId": user_id}
        return Member.model_validate(self._members[member_id])

    def seed_task(self, **fields: Any) -> Task:
        task_id = fields.pop("id", None) or self._next_id()
        now = _now()
        record = {"id": task_id, "createdAt": now, "updatedAt": now, "createdBy": self.account_id, **fields}
        self._tasks[task_id] = record
        return Task.model_validate(record)

    def raw_task(self, task_id: str) -> dict[str, Any]:
        return copy.deepcopy(self._tasks[task_id])

    # Tasks

    async def list_tasks(self) -> list[Task]:
        self.calls.append(("list_tasks", None))
        self._maybe_fail("list_tasks")
        return parse_tasks([copy.deepcopy(r) for r in self._tasks.values()])

    async def get_task(self, task_id: str) -> Task | None:
        self.calls.append(("get_task", task_id))
        self._maybe_fail("get_task")
        record = self._tasks.get(task_id)
        return Task.model_validate(copy.deepcopy(record)) if record else None

    async def create_task(self, record: dict[str, Any]) -> str:
        self.calls.append(("create_task", record))
        self._maybe_fail("create_task")
        task_id = self._next_id()
        now = _now()
        self._tasks[task_id] = {
            **copy.deepcopy(record),
            "id": task_id,
            "createdAt": now,
            "updatedAt": now,
            "createdBy": self.account_id,
        }
        return task_id

    async def update_task(self, task_id: str, updates: dict[str, Any]) -> None:
        self.calls.append(("update_task", (task_id, updates)))
        self._maybe_fail("update_task")
        if task_id not in self._tasks:
            raise RecordNotFoundError(f"/api/tasks/{task_id} not found")
        payload = TaskUpdate.model_validate(updates).model_dump(mode="json", by_alias=True, exclude_unset=True)
        self._tasks[task_id].update(payload)
        self._tasks[task_id]["updatedAt"] = _now()

    async def delete_task(self, task_id: str) -> None:
        self.calls.append(("delete_task", task_id))
        self._maybe_fail("delete_task")
        if self._tasks.pop(task_id, None) is None:
            raise RecordNotFoundError(f"/api/tasks/{task_id} not found")

    # Members

    async def list_members(self) -> list[Member]:
        self._maybe_fail("list_members")
        return parse_members([copy.deepcopy(r) for r in self._members.values()])

    async def get_member(self, member_id: str) -> Member | None:
        record = self._members.get(member_id)
        return Member.model_validate(copy.deepcopy(record)) if record else None

    async def create_member(self, name: str, avatar: str | None = None) -> Member:
        raise AuthorizationError("Members are created by registering an account")

    async def update_member(self, member_id: str, updates: dict[str, Any]) -> Member:
        self._maybe_fail("update_member")
        if member_id not in self._members:
            raise RecordNotFoundError(f"/api/members/{member_id} not found")
        self._members[member_id].update(updates)
        return Member.model_validate(copy.deepcopy(self._members[member_id]))

    async def delete_member(self, member_id: str) -> None:
        self._maybe_fail("delete_member")
        if self._members.pop(member_id, None) is None:
            raise RecordNotFoundError(f"/api/members/{member_id} not found")

    async def add_xp(self, member_id: str, amount: int) -> XpResult:
        self.calls.append(("add_xp", (member_id, amount)))
        self._maybe_fail("add_xp")
        if member_id not in self._members:
            raise RecordNotFoundError(f"/api/members/{member_id} not found")
        before = Member.model_validate(self._members[member_id])
        self._members[member_id]["xp"] = max(0, before.xp + amount)
        after = Member.model_validate(copy.deepcopy(self._members[member_id]))
        return XpResult(member=after, was_level_up=after.level > before.level)

    async def load_selected_member(self) -> str | None:
        return None

    async def save_selected_member(self, member_id: str | None) -> None:
        return None

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], Awaitable[None]] | None:
        self.calls.append(("subscribe", None))

        async def unsubscribe() -> None:
            self.calls.append(("unsubscribe", None))

        return unsubscribe

    async def close(self) -> None:
        self.closed = True
