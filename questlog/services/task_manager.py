"""Task lifecycle engine.

``TaskManager`` owns the live task and member collections for the active
session and routes every mutation through the adapter chosen by
``select_adapter``. XP changes and achievement checks are emitted as events
on a ``SideEffectDispatcher``: they never block, fail or roll back the
operation that triggered them.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from questlog.core.config import constants
from questlog.core.errors import (
    AuthorizationError,
    PersistenceError,
    RecordNotFoundError,
    TaskValidationError,
)
from questlog.core.logging import configure_logfire, log_with_member_context, span
from questlog.core.timeutil import now_iso
from questlog.domain.create_models import MemberCreate, SubtaskCreate, TaskCreate, clean_title, validate_input
from questlog.domain.member import Member
from questlog.domain.session import SessionContext, SessionIdentity
from questlog.domain.task import Priority, Subtask, Task, TaskStatus
from questlog.domain.update_models import MemberUpdate, TaskUpdate
from questlog.persistence.base import PersistenceAdapter, Snapshot, XpResult
from questlog.persistence.local import LocalAdapter
from questlog.persistence.remote import RemoteAdapter
from questlog.persistence.selection import resolve_assignees, select_adapter
from questlog.services import dependency_graph, leveling, migration, recurrence, reminders
from questlog.services.achievements import AchievementTracker
from questlog.services.dependency_graph import DependencyView, EdgeUpdates
from questlog.services.leveling import MemberProgress
from questlog.services.migration import MigrationResult
from questlog.services.notifications import LoggingNotifier, Notifier
from questlog.services.side_effects import AchievementCheck, SideEffectDispatcher, XpChange


logger = logging.getLogger(__name__)

RemoteFactory = Callable[[SessionIdentity], PersistenceAdapter]


class StatusFilter(StrEnum):
    """Status buckets of the task list view."""

    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"


class TaskFilters(BaseModel):
    """Current task list filters. Derived view state only; never persisted."""

    owner_id: str | None = Field(default=None, description="Only tasks with this owner")
    status: StatusFilter = Field(default=StatusFilter.ALL, description="Status bucket")
    priority: Priority | None = Field(default=None, description="Only tasks with this priority")
    search_query: str = Field(default="", description="Case-insensitive substring over title, description and tags")

    def matches(self, task: Task) -> bool:
        if self.owner_id and task.owner_id != self.owner_id:
            return False

        done = task.completed or task.status == TaskStatus.COMPLETED
        if self.status == StatusFilter.ACTIVE and done:
            return False
        if self.status == StatusFilter.COMPLETED and not done:
            return False

        if self.priority is not None and task.priority != self.priority:
            return False

        query = self.search_query.strip().lower()
        if query:
            haystack = [task.title, task.description or "", *task.tags]
            if not any(query in text.lower() for text in haystack):
                return False
        return True


def completion_award(task: Task) -> int:
    """XP for completing ``task``: the task award plus one award per completed subtask."""
    return constants.XP_TASK_COMPLETE + constants.XP_SUBTASK_COMPLETE * task.completed_subtask_count()


def _default_remote_factory(identity: SessionIdentity) -> PersistenceAdapter:
    return RemoteAdapter(identity)


class TaskManager:
    """Orchestrates tasks, members, dependencies, recurrence and gamification."""

    def __init__(
        self,
        context: SessionContext | None = None,
        *,
        local: LocalAdapter | None = None,
        remote_factory: RemoteFactory | None = None,
        notifier: Notifier | None = None,
        dispatcher: SideEffectDispatcher | None = None,
        achievements: AchievementTracker | None = None,
    ) -> None:
        self._context = context or SessionContext()
        self._local = local or LocalAdapter()
        self._remote_factory = remote_factory or _default_remote_factory
        self._remote: PersistenceAdapter | None = None
        self._adapter: PersistenceAdapter = self._bind(self._context)

        self._notifier = notifier or LoggingNotifier()
        self._achievements = achievements or AchievementTracker(self._local.store, self._notifier)
        self._dispatcher = dispatcher or SideEffectDispatcher()
        self._dispatcher.register(XpChange, self._handle_xp_change)
        self._dispatcher.register(AchievementCheck, self._handle_achievement_check)

        self._tasks: list[Task] = []
        self._members: list[Member] = []
        self._selected_member_id: str | None = None
        self._filters = TaskFilters()
        self._unsubscribe: Callable[[], Awaitable[None]] | None = None
        self._started = False

    # State

    @property
    def context(self) -> SessionContext:
        return self._context

    @property
    def adapter(self) -> PersistenceAdapter:
        return self._adapter

    @property
    def is_remote(self) -> bool:
        return self._adapter.mode == "remote"

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    @property
    def members(self) -> list[Member]:
        return list(self._members)

    @property
    def dispatcher(self) -> SideEffectDispatcher:
        return self._dispatcher

    @property
    def achievements(self) -> AchievementTracker:
        return self._achievements

    @property
    def selected_member_id(self) -> str | None:
        return self._selected_member_id

    @property
    def selected_member(self) -> Member | None:
        return self.find_member(self._selected_member_id) if self._selected_member_id else None

    def find_task(self, task_id: str) -> Task | None:
        return next((t for t in self._tasks if t.id == task_id), None)

    def find_member(self, member_id: str) -> Member | None:
        return next((m for m in self._members if m.id == member_id), None)

    def _require_task(self, task_id: str) -> Task:
        task = self.find_task(task_id)
        if task is None:
            raise RecordNotFoundError(f"Task {task_id} not found")
        return task

    def _require_member(self, member_id: str) -> Member:
        member = self.find_member(member_id)
        if member is None:
            raise RecordNotFoundError(f"Member {member_id} not found")
        return member

    def _replace_task(self, task: Task) -> None:
        self._tasks = [task if t.id == task.id else t for t in self._tasks]

    def _replace_member(self, member: Member) -> None:
        self._members = [member if m.id == member.id else m for m in self._members]

    def member_for_owner(self, owner_id: str) -> Member | None:
        """Member profile behind an owner id (a member id locally, an account id remotely)."""
        return next((m for m in self._members if owner_id in (m.id, m.user_id)), None)

    # Session and lifecycle

    def _bind(self, context: SessionContext) -> PersistenceAdapter:
        self._remote = self._remote_factory(context.identity) if context.is_remote and context.identity else None
        return select_adapter(context, local=self._local, remote=self._remote)

    async def load(self) -> None:
        """Replace the live collections with the active store's contents."""
        with span("task_manager.load"):
            self._tasks = await self._adapter.list_tasks()
            self._members = await self._adapter.list_members()
            selected = await self._adapter.load_selected_member()

            if selected is None or self.find_member(selected) is None:
                selected = None
                if self._context.account_id:
                    own = self.member_for_owner(self._context.account_id)
                    selected = own.id if own else None
                if selected is None and self._members:
                    selected = self._members[0].id
            self._selected_member_id = selected

            logger.info(
                "Loaded task manager state",
                extra={"mode": self._adapter.mode, "tasks": len(self._tasks), "members": len(self._members)},
            )

    async def rebind(self, context: SessionContext) -> None:
        """Switch to the adapter selected for a new session context and reload.

        Local data is not migrated on sign-in; see ``migrate_local_data``.
        """
        with span("task_manager.rebind"):
            await self._stop_watching()
            previous_remote = self._remote
            self._context = context
            self._adapter = self._bind(context)
            if previous_remote is not None:
                await previous_remote.close()
            logger.info("Rebound persistence adapter", extra={"mode": self._adapter.mode})
            await self.load()
            if self._started:
                self._watch()

    async def apply_snapshot(self, snapshot: Snapshot) -> None:
        """Adopt a pushed snapshot as the source of truth."""
        self._tasks = list(snapshot.tasks)
        self._members = list(snapshot.members)
        if self._selected_member_id and self.find_member(self._selected_member_id) is None:
            self._selected_member_id = self._members[0].id if self._members else None
        self._dispatcher.emit(AchievementCheck(reason="snapshot"))

    async def start(self) -> None:
        """Configure observability, load state, then start the side-effect worker and store subscription."""
        configure_logfire()
        await self.load()
        self._dispatcher.start()
        self._started = True
        self._watch()

    def _watch(self) -> None:
        self._unsubscribe = self._adapter.subscribe(self.apply_snapshot)

    async def _stop_watching(self) -> None:
        if self._unsubscribe is not None:
            await self._unsubscribe()
            self._unsubscribe = None

    async def settle(self) -> None:
        """Wait for every pending side effect to be handled."""
        await self._dispatcher.drain()

    async def close(self) -> None:
        await self._stop_watching()
        self._started = False
        await self._dispatcher.stop()
        if self._remote is not None:
            await self._remote.close()
        await self._local.close()

    # Tasks

    def _default_owner(self) -> str:
        if self.is_remote:
            return self._context.account_id or ""
        return self._selected_member_id or ""

    def _resolve(self, ids: list[str]) -> list[str]:
        return resolve_assignees(ids, self._members, self._context)

    async def add_task(self, data: TaskCreate | dict[str, Any]) -> Task:
        """Validate and create a task, then adopt the stored record.

        Args:
            data: Task fields (TaskCreate or a dict of its fields)

        Returns:
            The task as read back from the store

        Raises:
            TaskValidationError: If the input is invalid
            AuthorizationError: If the remote store refuses the creation
            PersistenceError: If the store call fails (no local fallback)
        """
        with span("task_manager.add_task"):
            payload = validate_input(TaskCreate, data)

            owner_id = payload.owner_id or self._default_owner()
            if self.is_remote and owner_id:
                owner_id = self._resolve([owner_id])[0]
            assignees = payload.assigned_to or ([owner_id] if owner_id else [])

            completed = payload.completed or payload.status == TaskStatus.COMPLETED
            record = payload.model_copy(
                update={
                    "owner_id": owner_id,
                    "assigned_to": self._resolve(assignees),
                    "completed": completed,
                    "status": TaskStatus.COMPLETED if completed else payload.status,
                    "due_date": payload.due_date or now_iso(),
                }
            ).to_record()

            task_id = await self._adapter.create_task(record)
            task = await self._adapter.get_task(task_id)
            if task is None:
                raise PersistenceError(f"Created task {task_id} could not be read back")

            self._tasks.append(task)
            logger.info("Task added", extra={"task_id": task.id, "mode": self._adapter.mode})
            self._dispatcher.emit(AchievementCheck(reason="task_added"))
            return task

    async def update_task(self, task_id: str, updates: TaskUpdate | dict[str, Any]) -> Task:
        """Apply a partial update to a task.

        ``completed`` and ``status`` are kept in sync; when both are given,
        ``status`` wins. A new assignment list is re-resolved to the active
        store's identity space.

        Raises:
            RecordNotFoundError: If the task does not exist
            TaskValidationError: If the update is invalid
            AuthorizationError: If the remote store refuses the update
            PersistenceError: If the store call fails (no local fallback)
        """
        with span("task_manager.update_task"):
            task = self._require_task(task_id)
            changes = validate_input(TaskUpdate, updates).changes()
            if not changes:
                return task

            if changes.get("status") is not None:
                changes["completed"] = changes["status"] == TaskStatus.COMPLETED
            elif changes.get("completed") is not None:
                if changes["completed"]:
                    changes["status"] = TaskStatus.COMPLETED
                elif task.status == TaskStatus.COMPLETED:
                    changes["status"] = TaskStatus.TODO

            if "assigned_to" in changes:
                changes["assigned_to"] = self._resolve(changes["assigned_to"] or [])
            if self.is_remote and "owner_id" in changes:
                changes["owner_id"] = self._resolve([changes["owner_id"]])[0]

            await self._adapter.update_task(task_id, changes)

            updated = Task.model_validate({**task.model_dump(), **changes, "updated_at": now_iso()})
            self._replace_task(updated)
            logger.debug("Task updated", extra={"task_id": task_id, "fields": sorted(changes)})
            self._dispatcher.emit(AchievementCheck(reason="task_updated"))
            return updated

    async def _remove_task(self, task: Task) -> None:
        """Delete through the adapter, degrading to local-only removal, then clean up edges."""
        try:
            await self._adapter.delete_task(task.id)
        except (PersistenceError, RecordNotFoundError) as e:
            logger.warning(
                "Store delete failed, removing task locally only",
                extra={"task_id": task.id, "error": str(e)},
            )

        self._tasks = [t for t in self._tasks if t.id != task.id]

        for other_id, edge_changes in dependency_graph.strip_task_references(self._tasks, task.id).items():
            other = self.find_task(other_id)
            if other is None:
                continue
            try:
                await self._adapter.update_task(other_id, edge_changes)
            except Exception as e:
                logger.warning(
                    "Failed to persist edge cleanup",
                    extra={"task_id": other_id, "removed_id": task.id, "error": str(e)},
                )
            self._replace_task(other.model_copy(update=edge_changes))

    async def delete_task(self, task_id: str) -> None:
        """Delete a task, reversing its XP if it was completed.

        Store failures degrade to removing the task locally only.
        """
        with span("task_manager.delete_task"):
            task = self._require_task(task_id)
            await self._remove_task(task)

            if task.completed and task.owner_id:
                self._dispatcher.emit(
                    XpChange(member_id=task.owner_id, amount=-completion_award(task), reason="task_deleted")
                )
            self._dispatcher.emit(AchievementCheck(reason="task_deleted"))
            logger.info("Task deleted", extra={"task_id": task_id})

    async def toggle_complete(self, task_id: str) -> Task:
        """Flip a task's completion, award or reverse XP, and spawn the next occurrence.

        The status update is awaited; the XP change is only queued. Completing
        a root recurring task submits its next occurrence through ``add_task``;
        a failure there is logged and does not fail the toggle.
        """
        with span("task_manager.toggle_complete"):
            task = self._require_task(task_id)
            completing = not task.completed

            if completing:
                changes: dict[str, Any] = {
                    "completed": True,
                    "status": TaskStatus.COMPLETED,
                    "previous_status": task.status if task.status != TaskStatus.COMPLETED else None,
                }
            else:
                restored = task.previous_status
                if restored is None or restored == TaskStatus.COMPLETED:
                    restored = TaskStatus.TODO
                changes = {"completed": False, "status": restored, "previous_status": None}

            updated = await self.update_task(task_id, changes)

            if task.owner_id:
                amount = completion_award(task)
                self._dispatcher.emit(
                    XpChange(
                        member_id=task.owner_id,
                        amount=amount if completing else -amount,
                        reason="task_completed" if completing else "task_uncompleted",
                    )
                )

            if completing and updated.is_recurring_root:
                await self._spawn_next_occurrence(updated)

            return updated

    async def _spawn_next_occurrence(self, task: Task) -> Task | None:
        try:
            payload = recurrence.build_next_occurrence(task)
            if payload is None:
                return None
            occurrence = await self.add_task(payload)
        except Exception as e:
            logger.error("Failed to create next occurrence", extra={"task_id": task.id, "error": str(e)})
            return None
        logger.info("Created next occurrence", extra={"task_id": task.id, "occurrence_id": occurrence.id})
        return occurrence

    # Subtasks

    def _require_subtask(self, task: Task, subtask_id: str) -> Subtask:
        subtask = next((s for s in task.subtasks if s.id == subtask_id), None)
        if subtask is None:
            raise RecordNotFoundError(f"Subtask {subtask_id} not found on task {task.id}")
        return subtask

    async def add_subtask(self, task_id: str, data: SubtaskCreate | dict[str, Any]) -> Subtask:
        with span("task_manager.add_subtask"):
            task = self._require_task(task_id)
            payload = validate_input(SubtaskCreate, data)
            subtask = Subtask(title=payload.title, completed=payload.completed)
            await self.update_task(task_id, {"subtasks": [*task.subtasks, subtask]})
            return subtask

    async def update_subtask(self, task_id: str, subtask_id: str, updates: dict[str, Any]) -> Subtask:
        """Rewrite one subtask (title and/or completed) as a full subtask-list update."""
        with span("task_manager.update_subtask"):
            task = self._require_task(task_id)
            subtask = self._require_subtask(task, subtask_id)

            changes: dict[str, Any] = {}
            if "title" in updates:
                try:
                    changes["title"] = clean_title(str(updates["title"] or ""))
                except ValueError as e:
                    raise TaskValidationError(f"title: {e}") from e
            if "completed" in updates:
                changes["completed"] = bool(updates["completed"])

            replacement = subtask.model_copy(update=changes)
            subtasks = [replacement if s.id == subtask_id else s for s in task.subtasks]
            await self.update_task(task_id, {"subtasks": subtasks})
            return replacement

    async def delete_subtask(self, task_id: str, subtask_id: str) -> None:
        with span("task_manager.delete_subtask"):
            task = self._require_task(task_id)
            subtask = self._require_subtask(task, subtask_id)

            if subtask.completed and task.owner_id:
                self._dispatcher.emit(
                    XpChange(member_id=task.owner_id, amount=-constants.XP_SUBTASK_COMPLETE, reason="subtask_deleted")
                )
            await self.update_task(task_id, {"subtasks": [s for s in task.subtasks if s.id != subtask_id]})

    async def toggle_subtask_complete(self, task_id: str, subtask_id: str) -> Subtask:
        with span("task_manager.toggle_subtask_complete"):
            task = self._require_task(task_id)
            subtask = self._require_subtask(task, subtask_id)

            updated = await self.update_subtask(task_id, subtask_id, {"completed": not subtask.completed})

            if task.owner_id:
                amount = constants.XP_SUBTASK_COMPLETE if updated.completed else -constants.XP_SUBTASK_COMPLETE
                self._dispatcher.emit(XpChange(member_id=task.owner_id, amount=amount, reason="subtask_toggled"))
            return updated

    # Dependencies

    async def _apply_edge_updates(self, updates: EdgeUpdates) -> None:
        for task_id, changes in updates.items():
            await self.update_task(task_id, changes)

    async def add_dependency(self, task_id: str, depends_on_id: str) -> None:
        """Make ``task_id`` wait for ``depends_on_id``. Only the dependent task changes.

        Raises:
            DependencyCycleError: If the edge is a self edge or would close a cycle
        """
        with span("task_manager.add_dependency"):
            await self._apply_edge_updates(dependency_graph.add_dependency(self._tasks, task_id, depends_on_id))

    async def remove_dependency(self, task_id: str, depends_on_id: str) -> None:
        with span("task_manager.remove_dependency"):
            await self._apply_edge_updates(dependency_graph.remove_dependency(self._tasks, task_id, depends_on_id))

    async def add_blocking(self, task_id: str, blocked_id: str) -> None:
        """Make ``task_id`` block ``blocked_id``; both tasks change.

        Raises:
            DependencyCycleError: If the edge is a self edge or would close a cycle
        """
        with span("task_manager.add_blocking"):
            await self._apply_edge_updates(dependency_graph.add_blocking(self._tasks, task_id, blocked_id))

    async def remove_blocking(self, task_id: str, blocked_id: str) -> None:
        with span("task_manager.remove_blocking"):
            await self._apply_edge_updates(dependency_graph.remove_blocking(self._tasks, task_id, blocked_id))

    def can_complete(self, task_id: str) -> bool:
        return dependency_graph.can_complete(self._require_task(task_id), self._tasks)

    def dependency_view(self, task_id: str) -> DependencyView:
        return dependency_graph.dependency_view(self._require_task(task_id), self._tasks)

    # Members

    async def add_member(self, data: MemberCreate | dict[str, Any]) -> Member:
        """Create a local member.

        Raises:
            AuthorizationError: In remote mode, where members are accounts
            TaskValidationError: If the name is invalid
        """
        with span("task_manager.add_member"):
            if self.is_remote:
                raise AuthorizationError("Members cannot be created while signed in")
            payload = validate_input(MemberCreate, data)
            member = await self._adapter.create_member(payload.name, payload.avatar)
            self._members.append(member)
            if self._selected_member_id is None:
                await self.set_selected_member(member.id)
            logger.info("Member added", extra={"member_id": member.id})
            self._dispatcher.emit(AchievementCheck(reason="member_added"))
            return member

    async def update_member(self, member_id: str, updates: MemberUpdate | dict[str, Any]) -> Member:
        with span("task_manager.update_member"):
            self._require_member(member_id)
            changes = validate_input(MemberUpdate, updates).model_dump(exclude_unset=True)
            member = await self._adapter.update_member(member_id, changes)
            self._replace_member(member)
            return member

    async def delete_member(self, member_id: str) -> None:
        """Delete a member and every task it exclusively owns.

        A task is exclusively owned when its owner is the member and nobody
        else is assigned. Local mode refuses to delete the last member.
        """
        with span("task_manager.delete_member"):
            member = self._require_member(member_id)
            if not self.is_remote and len(self._members) <= 1:
                raise TaskValidationError("Cannot delete the last member")

            await self._adapter.delete_member(member_id)
            self._members = [m for m in self._members if m.id != member_id]

            identities = {member.id, member.user_id} - {None}
            owned = [
                t
                for t in self._tasks
                if t.owner_id in identities and all(a in identities for a in t.assigned_to)
            ]
            for task in owned:
                await self._remove_task(task)

            if self._selected_member_id == member_id:
                await self.set_selected_member(self._members[0].id if self._members else None)

            log_with_member_context(logger, "info", "Member deleted", member_id=member_id, tasks_removed=len(owned))
            self._dispatcher.emit(AchievementCheck(reason="member_deleted"))

    async def set_selected_member(self, member_id: str | None) -> None:
        if member_id is not None:
            self._require_member(member_id)
        self._selected_member_id = member_id
        await self._adapter.save_selected_member(member_id)

    def member_progress(self, member_id: str) -> MemberProgress:
        return leveling.member_progress(self._require_member(member_id))

    # XP

    async def add_xp(self, member_id: str, amount: int) -> XpResult:
        """Adjust a member's XP (negative to reverse). XP never drops below zero.

        Returns:
            XpResult with the updated member and whether a level boundary was crossed
        """
        with span("task_manager.add_xp"):
            self._require_member(member_id)
            result = await self._adapter.add_xp(member_id, amount)
            self._replace_member(result.member)
            if result.was_level_up:
                log_with_member_context(
                    logger, "info", "Level up", member_id=member_id, level=result.member.level
                )
            self._dispatcher.emit(AchievementCheck(reason="xp_changed"))
            return result

    async def _handle_xp_change(self, event: XpChange) -> None:
        member = self.member_for_owner(event.member_id)
        if member is None:
            raise RecordNotFoundError(f"No member for owner {event.member_id}")
        await self.add_xp(member.id, event.amount)

    async def _handle_achievement_check(self, event: AchievementCheck) -> None:
        await self._achievements.evaluate(self._members, self._tasks)

    # Filtering

    @property
    def filters(self) -> TaskFilters:
        return self._filters

    def filter_by_owner(self, owner_id: str | None) -> None:
        self._filters = self._filters.model_copy(update={"owner_id": owner_id or None})

    def filter_by_status(self, status: StatusFilter | str) -> None:
        self._filters = self._filters.model_copy(update={"status": StatusFilter(status)})

    def filter_by_priority(self, priority: Priority | str | None) -> None:
        value = None if priority in (None, "all") else Priority(priority)
        self._filters = self._filters.model_copy(update={"priority": value})

    def set_search_query(self, query: str) -> None:
        self._filters = self._filters.model_copy(update={"search_query": query})

    @property
    def filtered_tasks(self) -> list[Task]:
        return [t for t in self._tasks if self._filters.matches(t)]

    # Reconciliation and reminders

    async def migrate_local_data(self) -> MigrationResult:
        """Copy local-only tasks into the signed-in account's store, then reload.

        Raises:
            AuthorizationError: When no remote session is active
        """
        with span("task_manager.migrate_local_data"):
            if not self.is_remote or not self._context.account_id:
                raise AuthorizationError("Sign in before migrating local data")
            result = await migration.migrate_local_data(
                self._local, self._adapter, account_id=self._context.account_id
            )
            await self.load()
            return result

    async def send_reminders(self, now: datetime | None = None) -> int:
        """Deliver due reminders and overdue notices for the live task list."""
        return await reminders.send_task_reminders(self._tasks, self._notifier, now)
