"""Remote-backed adapter talking to the task REST API over httpx."""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from questlog.core.config import constants, settings
from questlog.core.errors import AuthorizationError, PersistenceError, RecordNotFoundError
from questlog.domain.member import Member
from questlog.domain.session import SessionIdentity
from questlog.domain.task import Task
from questlog.domain.update_models import TaskUpdate
from questlog.persistence.base import Snapshot, SnapshotCallback, XpResult, parse_members, parse_tasks


logger = logging.getLogger(__name__)


class RemoteAdapter:
    """Persistence adapter over the authenticated remote store.

    Failures are mapped onto the error taxonomy: 401/403 raise
    AuthorizationError, 404 raises RecordNotFoundError (reads return None
    instead), and every other failure raises PersistenceError.
    """

    mode = "remote"

    def __init__(
        self,
        identity: SessionIdentity,
        *,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        poll_interval: float | None = None,
    ) -> None:
        self._identity = identity
        headers = {"Content-Type": "application/json"}
        if identity.token:
            headers["Authorization"] = f"Bearer {identity.token}"
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.require_credential("remote_base_url", "Remote task API"),
            timeout=settings.api_timeout_seconds,
        )
        self._client.headers.update(headers)
        self._poll_interval = poll_interval if poll_interval is not None else settings.poll_interval_seconds
        self._poller: asyncio.Task[None] | None = None

    @property
    def identity(self) -> SessionIdentity:
        return self._identity

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        missing_ok: bool = False,
    ) -> dict[str, Any] | None:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.error("Remote request failed", extra={"method": method, "path": path, "error": str(e)})
            raise PersistenceError(f"{method} {path} failed: {e}") from e

        if response.status_code in (constants.HTTP_UNAUTHORIZED, constants.HTTP_FORBIDDEN):
            logger.warning("Remote store refused request", extra={"method": method, "path": path})
            raise AuthorizationError(_error_message(response) or "Not authorized")
        if response.status_code == constants.HTTP_NOT_FOUND:
            if missing_ok:
                return None
            raise RecordNotFoundError(f"{path} not found")
        if not response.is_success:
            logger.error(
                "Remote store error",
                extra={"method": method, "path": path, "status": response.status_code},
            )
            raise PersistenceError(_error_message(response) or f"{method} {path} returned {response.status_code}")

        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as e:
            raise PersistenceError(f"{method} {path} returned invalid JSON") from e
        return body if isinstance(body, dict) else {}

    # Tasks

    async def list_tasks(self) -> list[Task]:
        body = await self._request("GET", "/api/tasks")
        return parse_tasks((body or {}).get("tasks"))

    async def get_task(self, task_id: str) -> Task | None:
        body = await self._request("GET", f"/api/tasks/{task_id}", missing_ok=True)
        if not body or not isinstance(body.get("task"), dict):
            return None
        tasks = parse_tasks([body["task"]])
        return tasks[0] if tasks else None

    async def create_task(self, record: dict[str, Any]) -> str:
        body = await self._request("POST", "/api/tasks", json=record)
        task = (body or {}).get("task")
        if not isinstance(task, dict) or not task.get("id"):
            raise PersistenceError("Task creation response did not include a task id")
        return str(task["id"])

    async def update_task(self, task_id: str, updates: dict[str, Any]) -> None:
        payload = TaskUpdate.model_validate(updates).model_dump(mode="json", by_alias=True, exclude_unset=True)
        await self._request("PUT", f"/api/tasks/{task_id}", json=payload)

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/api/tasks/{task_id}")

    # Members

    async def list_members(self) -> list[Member]:
        body = await self._request("GET", "/api/members")
        return parse_members((body or {}).get("members"))

    async def get_member(self, member_id: str) -> Member | None:
        body = await self._request("GET", f"/api/members/{member_id}", missing_ok=True)
        if not body or not isinstance(body.get("member"), dict):
            return None
        members = parse_members([body["member"]])
        return members[0] if members else None

    async def create_member(self, name: str, avatar: str | None = None) -> Member:
        raise AuthorizationError("Members are created by registering an account")

    async def update_member(self, member_id: str, updates: dict[str, Any]) -> Member:
        body = await self._request("PUT", f"/api/members/{member_id}", json=updates)
        members = parse_members([(body or {}).get("member")])
        if not members:
            raise PersistenceError("Member update response did not include a member")
        return members[0]

    async def delete_member(self, member_id: str) -> None:
        await self._request("DELETE", f"/api/members/{member_id}")

    async def add_xp(self, member_id: str, amount: int) -> XpResult:
        body = await self._request("POST", f"/api/members/{member_id}/xp", json={"amount": amount}) or {}
        members = parse_members([body.get("member")])
        if not members:
            raise PersistenceError("XP response did not include a member")
        return XpResult(member=members[0], was_level_up=bool(body.get("wasLevelUp", False)))

    # The selected member is a client-side preference; the remote store does not keep one.

    async def load_selected_member(self) -> str | None:
        return None

    async def save_selected_member(self, member_id: str | None) -> None:
        return None

    # Subscription

    async def fetch_snapshot(self) -> Snapshot:
        tasks, members = await asyncio.gather(self.list_tasks(), self.list_members())
        return Snapshot(tasks=tasks, members=members)

    async def _poll(self, callback: SnapshotCallback) -> None:
        last: Snapshot | None = None
        while True:
            try:
                snapshot = await self.fetch_snapshot()
                if snapshot != last:
                    await callback(snapshot)
                    last = snapshot
            except Exception as e:
                logger.warning("Snapshot poll failed", extra={"error": str(e)})
            await asyncio.sleep(self._poll_interval)

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], Awaitable[None]] | None:
        """Poll the store and push every changed snapshot to ``callback``."""
        if self._poller is not None and not self._poller.done():
            self._poller.cancel()
        self._poller = asyncio.create_task(self._poll(callback), name="questlog-remote-poll")

        async def unsubscribe() -> None:
            await self._stop_polling()

        return unsubscribe

    async def _stop_polling(self) -> None:
        if self._poller is None:
            return
        self._poller.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._poller
        self._poller = None

    async def close(self) -> None:
        await self._stop_polling()
        await self._client.aclose()


def _error_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return None
