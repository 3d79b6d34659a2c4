"""Dependency graph maintenance over the task collection.

Every edit function is pure: it validates the edit against the current
collection and returns the partial updates to apply, keyed by task id. An
empty result means the edit is a no-op. Rejected edits raise before any
update is produced, so a rejection never leaves a partial effect.

``depends_on`` and ``blocks`` are edited through different paths with
different reach: editing ``depends_on`` touches only the dependent task,
while editing ``blocks`` also writes (or removes) the paired ``depends_on``
edge on the other task.
"""

import logging
from collections.abc import Iterable, Mapping

from pydantic import BaseModel, Field

from questlog.core.errors import DependencyCycleError, RecordNotFoundError
from questlog.domain.task import Task


logger = logging.getLogger(__name__)

EdgeUpdates = dict[str, dict[str, list[str]]]


class DependencyView(BaseModel):
    """Resolved relationships of one task."""

    depends_on: list[Task] = Field(default_factory=list, description="Tasks this task waits for")
    blocks: list[Task] = Field(default_factory=list, description="Tasks this task holds up")
    depended_on_by: list[Task] = Field(default_factory=list, description="Tasks listing this one in dependsOn")
    blocked_by: list[Task] = Field(default_factory=list, description="Tasks listing this one in blocks")


def index_tasks(tasks: Iterable[Task]) -> dict[str, Task]:
    return {task.id: task for task in tasks}


def _require(tasks_by_id: Mapping[str, Task], task_id: str) -> Task:
    task = tasks_by_id.get(task_id)
    if task is None:
        raise RecordNotFoundError(f"Task {task_id} not found")
    return task


def would_create_cycle(tasks_by_id: Mapping[str, Task], task_id: str, depends_on_id: str) -> bool:
    """Return True if making ``task_id`` depend on ``depends_on_id`` closes a cycle.

    Walks ``depends_on`` edges from ``depends_on_id`` looking for ``task_id``.
    Iterative with a visited set, so it terminates on any graph, including one
    that is already corrupt.
    """
    if task_id == depends_on_id:
        return True

    visited: set[str] = set()
    stack = [depends_on_id]
    while stack:
        current = stack.pop()
        if current == task_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        node = tasks_by_id.get(current)
        if node is None:
            continue
        stack.extend(dep for dep in node.depends_on if dep not in visited)
    return False


def add_dependency(tasks: Iterable[Task], task_id: str, depends_on_id: str) -> EdgeUpdates:
    """Make ``task_id`` depend on ``depends_on_id``.

    Raises:
        DependencyCycleError: If the edge is a self edge or closes a cycle
        RecordNotFoundError: If either task does not exist
    """
    tasks_by_id = index_tasks(tasks)
    if task_id == depends_on_id:
        raise DependencyCycleError("A task cannot depend on itself")
    task = _require(tasks_by_id, task_id)
    _require(tasks_by_id, depends_on_id)

    if depends_on_id in task.depends_on:
        return {}
    if would_create_cycle(tasks_by_id, task_id, depends_on_id):
        logger.info("Rejected cyclic dependency", extra={"task_id": task_id, "depends_on_id": depends_on_id})
        raise DependencyCycleError(f"Adding {depends_on_id} as a dependency of {task_id} would create a cycle")

    return {task_id: {"depends_on": [*task.depends_on, depends_on_id]}}


def remove_dependency(tasks: Iterable[Task], task_id: str, depends_on_id: str) -> EdgeUpdates:
    tasks_by_id = index_tasks(tasks)
    task = _require(tasks_by_id, task_id)
    if depends_on_id not in task.depends_on:
        return {}
    return {task_id: {"depends_on": [dep for dep in task.depends_on if dep != depends_on_id]}}


def add_blocking(tasks: Iterable[Task], task_id: str, blocked_id: str) -> EdgeUpdates:
    """Make ``task_id`` block ``blocked_id``, writing both sides of the edge.

    Raises:
        DependencyCycleError: If the edge is a self edge or the implied
            dependency of ``blocked_id`` on ``task_id`` closes a cycle
        RecordNotFoundError: If either task does not exist
    """
    tasks_by_id = index_tasks(tasks)
    if task_id == blocked_id:
        raise DependencyCycleError("A task cannot block itself")
    task = _require(tasks_by_id, task_id)
    blocked = _require(tasks_by_id, blocked_id)

    if blocked_id in task.blocks and task_id in blocked.depends_on:
        return {}
    if task_id not in blocked.depends_on and would_create_cycle(tasks_by_id, blocked_id, task_id):
        logger.info("Rejected cyclic blocking edge", extra={"task_id": task_id, "blocked_id": blocked_id})
        raise DependencyCycleError(f"{task_id} blocking {blocked_id} would create a cycle")

    updates: EdgeUpdates = {}
    if blocked_id not in task.blocks:
        updates[task_id] = {"blocks": [*task.blocks, blocked_id]}
    if task_id not in blocked.depends_on:
        updates[blocked_id] = {"depends_on": [*blocked.depends_on, task_id]}
    return updates


def remove_blocking(tasks: Iterable[Task], task_id: str, blocked_id: str) -> EdgeUpdates:
    """Remove ``blocked_id`` from ``task_id``'s blocks and the paired dependency edge."""
    tasks_by_id = index_tasks(tasks)
    task = _require(tasks_by_id, task_id)

    updates: EdgeUpdates = {}
    if blocked_id in task.blocks:
        updates[task_id] = {"blocks": [b for b in task.blocks if b != blocked_id]}
    blocked = tasks_by_id.get(blocked_id)
    if blocked is not None and task_id in blocked.depends_on:
        updates[blocked_id] = {"depends_on": [dep for dep in blocked.depends_on if dep != task_id]}
    return updates


def can_complete(task: Task, all_tasks: Iterable[Task]) -> bool:
    """True iff every dependency that still exists is completed.

    Dependencies that no longer resolve to a task count as satisfied.
    """
    tasks_by_id = index_tasks(all_tasks)
    for dep_id in task.depends_on:
        dep = tasks_by_id.get(dep_id)
        if dep is not None and not dep.completed:
            return False
    return True


def dependency_view(task: Task, all_tasks: Iterable[Task]) -> DependencyView:
    """Resolve both edge lists of ``task`` and the reverse edges pointing at it."""
    all_tasks = list(all_tasks)
    tasks_by_id = index_tasks(all_tasks)
    return DependencyView(
        depends_on=[tasks_by_id[i] for i in task.depends_on if i in tasks_by_id],
        blocks=[tasks_by_id[i] for i in task.blocks if i in tasks_by_id],
        depended_on_by=[t for t in all_tasks if task.id in t.depends_on],
        blocked_by=[t for t in all_tasks if task.id in t.blocks],
    )


def strip_task_references(tasks: Iterable[Task], removed_id: str) -> EdgeUpdates:
    """Updates removing every edge that points at a deleted task."""
    updates: EdgeUpdates = {}
    for task in tasks:
        if task.id == removed_id:
            continue
        changes: dict[str, list[str]] = {}
        if removed_id in task.depends_on:
            changes["depends_on"] = [dep for dep in task.depends_on if dep != removed_id]
        if removed_id in task.blocks:
            changes["blocks"] = [b for b in task.blocks if b != removed_id]
        if changes:
            updates[task.id] = changes
    return updates
