"""JSON export and import of the local records."""

import json
import logging
from typing import Any

from pydantic import BaseModel, Field

from questlog.core.config import constants
from questlog.core.kv_store import StorageKeys
from questlog.core.logging import span
from questlog.core.timeutil import now_iso
from questlog.persistence.base import parse_members, parse_tasks
from questlog.persistence.local import LocalAdapter


logger = logging.getLogger(__name__)


class BackupResult(BaseModel):
    """Outcome of an import."""

    success: bool
    error: str | None = None


class StorageInfo(BaseModel):
    """Size summary of the local records."""

    tasks_count: int
    members_count: int
    total_size_bytes: int = Field(..., description="Serialized size of the tasks, members and selection records")


async def export_data(local: LocalAdapter) -> str:
    """Serialize tasks, members and the selected member id as a JSON document."""
    with span("backup.export_data"):
        tasks = await local.list_tasks()
        members = await local.list_members()
        data = {
            "tasks": [t.to_record() for t in tasks],
            "members": [m.to_record() for m in members],
            "selectedMemberId": await local.load_selected_member(),
            "exportDate": now_iso(),
            "version": constants.BACKUP_VERSION,
        }
        return json.dumps(data, indent=2, ensure_ascii=False)


async def import_data(local: LocalAdapter, json_data: str) -> BackupResult:
    """Replace the local records with those in a backup document.

    Only sections present in the document are replaced. Structural problems
    are reported in the result instead of raised.
    """
    with span("backup.import_data"):
        if not isinstance(json_data, str) or not json_data.strip():
            return BackupResult(success=False, error="Empty or invalid JSON data")

        try:
            data: Any = json.loads(json_data)
        except json.JSONDecodeError as e:
            return BackupResult(success=False, error=f"Invalid JSON format: {e.msg}")

        if not isinstance(data, dict):
            return BackupResult(success=False, error="Invalid backup file: data must be an object")
        if "tasks" in data and not isinstance(data["tasks"], list):
            return BackupResult(success=False, error="Invalid backup file: tasks must be an array")
        if "members" in data and not isinstance(data["members"], list):
            return BackupResult(success=False, error="Invalid backup file: members must be an array")

        tasks = parse_tasks(data["tasks"]) if "tasks" in data else await local.list_tasks()
        members = parse_members(data["members"]) if "members" in data else await local.list_members()
        if "selectedMemberId" in data:
            selected = data["selectedMemberId"] if isinstance(data["selectedMemberId"], str) else None
        else:
            selected = await local.load_selected_member()

        await local.replace_all(tasks, members, selected)
        logger.info("Imported backup", extra={"tasks": len(tasks), "members": len(members)})
        return BackupResult(success=True)


async def storage_info(local: LocalAdapter) -> StorageInfo:
    tasks = await local.list_tasks()
    members = await local.list_members()
    total = 0
    for key in (StorageKeys.TASKS, StorageKeys.MEMBERS, StorageKeys.SELECTED_MEMBER):
        value = await local.store.read(key)
        if value is not None:
            total += len(json.dumps(value).encode("utf-8"))
    return StorageInfo(tasks_count=len(tasks), members_count=len(members), total_size_bytes=total)
