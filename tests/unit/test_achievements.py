"""Unit tests for the achievement registry and unlock tracking."""

import logging
from unittest.mock import AsyncMock

import pytest

from questlog.core.kv_store import KeyValueStore, StorageKeys
from questlog.domain.member import Member
from questlog.domain.task import Priority, Subtask, Task
from questlog.services import notifications
from questlog.services.achievements import ACHIEVEMENTS_BY_ID, AchievementTracker, newly_unlocked
from questlog.services.notifications import AchievementUnlocked, LoggingNotifier


def done(task_id: str, owner: str = "m1", **kw) -> Task:
    return Task(id=task_id, title=task_id, owner_id=owner, completed=True, status="completed", **kw)


@pytest.mark.unit
class TestPredicates:
    """Tests for individual registry predicates."""

    def test_first_task(self) -> None:
        member = Member(id="m1", name="Alice")
        ids = [a.id for a in newly_unlocked(member, [done("t1")], [])]
        assert "first-task" in ids
        assert "ten-tasks" not in ids

    def test_only_owned_tasks_count(self) -> None:
        member = Member(id="m1", name="Alice")
        assert newly_unlocked(member, [done("t1", owner="m2")], []) == []

    def test_tasks_owned_by_linked_account_count(self) -> None:
        member = Member(id="m1", name="Alice", user_id="acct-1")
        ids = [a.id for a in newly_unlocked(member, [done("t1", owner="acct-1")], [])]
        assert "first-task" in ids

    def test_level_and_xp_thresholds(self) -> None:
        member = Member(id="m1", name="Alice", xp=1000)
        ids = {a.id for a in newly_unlocked(member, [], [])}
        assert {"level-5", "level-10", "thousand-xp"} <= ids
        assert "level-20" not in ids

    def test_high_priority_hero(self) -> None:
        member = Member(id="m1", name="Alice")
        tasks = [done(f"t{i}", priority=Priority.HIGH) for i in range(10)]
        assert ACHIEVEMENTS_BY_ID["high-priority"].condition(member, tasks) is True

    def test_subtask_master_counts_completed_subtasks(self) -> None:
        member = Member(id="m1", name="Alice")
        subtasks = [Subtask(title=f"s{i}", completed=i < 25) for i in range(30)]
        tasks = [
            Task(id="a", title="a", owner_id="m1", subtasks=subtasks),
            Task(id="b", title="b", owner_id="m1", subtasks=subtasks),
        ]
        assert ACHIEVEMENTS_BY_ID["subtask-master"].condition(member, tasks) is True

    def test_early_bird(self) -> None:
        member = Member(id="m1", name="Alice")
        tasks = [
            done(f"t{i}", due_date="2024-02-01T00:00:00Z", updated_at="2024-01-20T00:00:00Z") for i in range(5)
        ]
        assert ACHIEVEMENTS_BY_ID["early-bird"].condition(member, tasks) is True

    def test_already_unlocked_is_skipped(self) -> None:
        member = Member(id="m1", name="Alice")
        assert newly_unlocked(member, [done("t1")], ["first-task"]) == []


@pytest.mark.unit
class TestAchievementTracker:
    """Tests for AchievementTracker."""

    async def test_records_persists_and_notifies(self, kv_store: KeyValueStore, notifier: AsyncMock) -> None:
        tracker = AchievementTracker(kv_store, notifier)
        member = Member(id="m1", name="Alice")

        created = await tracker.evaluate([member], [done("t1")])

        assert [u.achievement_id for u in created] == ["first-task"]
        stored = await kv_store.read(StorageKeys.ACHIEVEMENTS)
        assert stored[0]["achievementId"] == "first-task"
        assert stored[0]["memberId"] == "m1"
        event = notifier.notify.await_args.args[0]
        assert isinstance(event, AchievementUnlocked)
        assert event.name == "First Steps"

    async def test_unlock_is_never_revoked(self, kv_store: KeyValueStore, notifier: AsyncMock) -> None:
        tracker = AchievementTracker(kv_store, notifier)
        member = Member(id="m1", name="Alice")
        await tracker.evaluate([member], [done("t1")])

        again = await tracker.evaluate([member], [])

        assert again == []
        assert await tracker.member_achievements("m1") == ["first-task"]
        assert notifier.notify.await_count == 1

    async def test_unlocks_survive_reload(self, kv_store: KeyValueStore, notifier: AsyncMock) -> None:
        await AchievementTracker(kv_store, notifier).evaluate([Member(id="m1", name="Alice")], [done("t1")])

        reloaded = AchievementTracker(kv_store, notifier)

        assert await reloaded.member_achievements("m1") == ["first-task"]

    async def test_notifier_failure_does_not_raise(self, kv_store: KeyValueStore) -> None:
        failing = AsyncMock()
        failing.notify = AsyncMock(side_effect=RuntimeError("push service down"))
        tracker = AchievementTracker(kv_store, failing)

        created = await tracker.evaluate([Member(id="m1", name="Alice")], [done("t1")])

        assert len(created) == 1


@pytest.mark.unit
class TestLoggingNotifier:
    """Tests for the log-only notifier."""

    async def test_logs_event_fields_under_one_key(self, caplog: pytest.LogCaptureFixture) -> None:
        event = AchievementUnlocked(
            achievement_id="first-task",
            member_id="m1",
            name="First Steps",
            description="Complete your first task",
            icon="🎯",
        )

        with caplog.at_level(logging.INFO, logger="questlog.services.notifications"):
            delivered = await notifications.send(LoggingNotifier(), event)

        assert delivered is True
        record = next(r for r in caplog.records if r.getMessage() == "Notification: AchievementUnlocked")
        assert record.event["name"] == "First Steps"
        assert record.event["member_id"] == "m1"
