"""Explicit reconciliation of local-only data into the remote store."""

import logging

from pydantic import BaseModel, Field

from questlog.core.errors import PersistenceError, RecordNotFoundError, TaskValidationError
from questlog.core.logging import span
from questlog.domain.create_models import TaskCreate, validate_input
from questlog.domain.task import Task
from questlog.persistence.base import PersistenceAdapter
from questlog.persistence.local import LocalAdapter


logger = logging.getLogger(__name__)


class MigrationResult(BaseModel):
    """Counts from one migration run."""

    migrated: int = Field(default=0, description="Tasks created in the remote store")
    skipped: int = Field(default=0, description="Duplicates and unreadable tasks left behind")
    failed: int = Field(default=0, description="Tasks the remote store failed to create")
    errors: list[str] = Field(default_factory=list, description="Failure messages, one per failed task")


def is_duplicate(task: Task, remote_tasks: list[Task], account_id: str) -> bool:
    """A task is already migrated when the account created a remote task with the same trimmed title."""
    title = task.title.strip()
    return any(
        remote.title.strip() == title and (remote.created_by or remote.owner_id) == account_id
        for remote in remote_tasks
    )


def _remote_payload(task: Task, account_id: str) -> TaskCreate:
    # Edges and occurrence links hold local ids and are not carried over
    return validate_input(
        TaskCreate,
        {
            "title": task.title,
            "description": task.description,
            "priority": task.priority,
            "status": task.status,
            "completed": task.completed,
            "due_date": task.due_date,
            "tags": task.tags,
            "subtasks": task.subtasks,
            "owner_id": account_id,
            "assigned_to": [account_id],
            "recurrence": task.recurrence,
            "time_estimate": task.time_estimate,
            "time_spent": task.time_spent,
        },
    )


async def migrate_local_data(
    local: LocalAdapter,
    remote: PersistenceAdapter,
    *,
    account_id: str,
) -> MigrationResult:
    """Re-submit every local task through the remote creation path.

    Authorization failures propagate and stop the run; other per-task failures
    are counted and the run continues.

    Args:
        local: Adapter holding the local-only snapshot
        remote: Adapter for the signed-in account
        account_id: Account that will own the migrated tasks

    Returns:
        MigrationResult with migrated, skipped and failed counts
    """
    with span("migration.migrate_local_data"):
        result = MigrationResult()
        remote_tasks = await remote.list_tasks()

        for task in await local.list_tasks():
            if not task.title.strip():
                logger.warning("Skipping invalid local task", extra={"task_id": task.id})
                result.skipped += 1
                continue
            if is_duplicate(task, remote_tasks, account_id):
                result.skipped += 1
                continue

            try:
                payload = _remote_payload(task, account_id)
                new_id = await remote.create_task(payload.to_record())
            except (PersistenceError, RecordNotFoundError, TaskValidationError) as e:
                logger.error("Failed to migrate task", extra={"task_id": task.id, "error": str(e)})
                result.failed += 1
                result.errors.append(f"{task.title}: {e}")
                continue

            created = await remote.get_task(new_id)
            if created is not None:
                remote_tasks.append(created)
            result.migrated += 1

        logger.info(
            "Local data migration finished",
            extra={"migrated": result.migrated, "skipped": result.skipped, "failed": result.failed},
        )
        return result
