"""Achievement registry and unlock tracking.

Unlocks are append-only: once ``(achievement_id, member_id)`` is recorded it
stays recorded, even if the member later drops back below the threshold.
"""

import logging
from collections.abc import Callable, Iterable

from pydantic import BaseModel, ConfigDict, ValidationError

from questlog.core.kv_store import KeyValueStore, StorageKeys
from questlog.core.logging import span
from questlog.core.timeutil import parse_iso
from questlog.domain.achievement import AchievementCategory, AchievementUnlock
from questlog.domain.member import Member
from questlog.domain.task import Priority, Task
from questlog.services import notifications
from questlog.services.notifications import AchievementUnlocked, Notifier


logger = logging.getLogger(__name__)

Condition = Callable[[Member, list[Task]], bool]


class Achievement(BaseModel):
    """Registry entry: a named predicate over a member and the task collection."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    icon: str
    category: AchievementCategory
    condition: Condition


def _owned(member: Member, tasks: list[Task]) -> list[Task]:
    identities = {member.id, member.user_id} - {None}
    return [t for t in tasks if t.owner_id in identities]


def _completed_count(threshold: int) -> Condition:
    return lambda member, tasks: sum(1 for t in _owned(member, tasks) if t.completed) >= threshold


def _level_at_least(level: int) -> Condition:
    return lambda member, _tasks: member.level >= level


def _xp_at_least(xp: int) -> Condition:
    return lambda member, _tasks: member.xp >= xp


def _high_priority_hero(member: Member, tasks: list[Task]) -> bool:
    return sum(1 for t in _owned(member, tasks) if t.completed and t.priority == Priority.HIGH) >= 10  # noqa: PLR2004


def _subtask_master(member: Member, tasks: list[Task]) -> bool:
    return sum(t.completed_subtask_count() for t in _owned(member, tasks)) >= 50  # noqa: PLR2004


def _tag_master(member: Member, tasks: list[Task]) -> bool:
    return sum(1 for t in _owned(member, tasks) if t.tags) >= 20  # noqa: PLR2004


def _early_bird(member: Member, tasks: list[Task]) -> bool:
    count = 0
    for task in _owned(member, tasks):
        if not task.completed:
            continue
        completed_at = parse_iso(task.updated_at)
        due = parse_iso(task.due_date)
        if completed_at is not None and due is not None and completed_at < due:
            count += 1
    return count >= 5  # noqa: PLR2004


ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement(
        id="first-task",
        name="First Steps",
        description="Complete your first task",
        icon="🎯",
        category=AchievementCategory.TASKS,
        condition=_completed_count(1),
    ),
    Achievement(
        id="ten-tasks",
        name="Getting Started",
        description="Complete 10 tasks",
        icon="⭐",
        category=AchievementCategory.TASKS,
        condition=_completed_count(10),
    ),
    Achievement(
        id="fifty-tasks",
        name="Task Master",
        description="Complete 50 tasks",
        icon="🏆",
        category=AchievementCategory.TASKS,
        condition=_completed_count(50),
    ),
    Achievement(
        id="hundred-tasks",
        name="Centurion",
        description="Complete 100 tasks",
        icon="👑",
        category=AchievementCategory.TASKS,
        condition=_completed_count(100),
    ),
    Achievement(
        id="level-5",
        name="Rising Star",
        description="Reach level 5",
        icon="⭐",
        category=AchievementCategory.XP,
        condition=_level_at_least(5),
    ),
    Achievement(
        id="level-10",
        name="Expert",
        description="Reach level 10",
        icon="🌟",
        category=AchievementCategory.XP,
        condition=_level_at_least(10),
    ),
    Achievement(
        id="level-20",
        name="Master",
        description="Reach level 20",
        icon="💎",
        category=AchievementCategory.XP,
        condition=_level_at_least(20),
    ),
    Achievement(
        id="level-50",
        name="Legend",
        description="Reach level 50",
        icon="🏅",
        category=AchievementCategory.XP,
        condition=_level_at_least(50),
    ),
    Achievement(
        id="thousand-xp",
        name="XP Collector",
        description="Earn 1000 XP",
        icon="💯",
        category=AchievementCategory.XP,
        condition=_xp_at_least(1000),
    ),
    Achievement(
        id="five-thousand-xp",
        name="XP Master",
        description="Earn 5000 XP",
        icon="🔥",
        category=AchievementCategory.XP,
        condition=_xp_at_least(5000),
    ),
    Achievement(
        id="high-priority",
        name="High Priority Hero",
        description="Complete 10 high priority tasks",
        icon="⚡",
        category=AchievementCategory.TASKS,
        condition=_high_priority_hero,
    ),
    Achievement(
        id="subtask-master",
        name="Detail Oriented",
        description="Complete 50 subtasks",
        icon="📋",
        category=AchievementCategory.TASKS,
        condition=_subtask_master,
    ),
    Achievement(
        id="tag-master",
        name="Organized",
        description="Use tags in 20 tasks",
        icon="🏷️",
        category=AchievementCategory.TASKS,
        condition=_tag_master,
    ),
    Achievement(
        id="early-bird",
        name="Early Bird",
        description="Complete 5 tasks before their due date",
        icon="🌅",
        category=AchievementCategory.SPECIAL,
        condition=_early_bird,
    ),
)

ACHIEVEMENTS_BY_ID: dict[str, Achievement] = {a.id: a for a in ACHIEVEMENTS}


def newly_unlocked(
    member: Member,
    tasks: list[Task],
    already_unlocked: Iterable[str],
) -> list[Achievement]:
    """Achievements whose predicate holds for ``member`` and which are not yet recorded."""
    skip = set(already_unlocked)
    unlocked = []
    for achievement in ACHIEVEMENTS:
        if achievement.id in skip:
            continue
        try:
            if achievement.condition(member, tasks):
                unlocked.append(achievement)
        except Exception as e:
            logger.warning(
                "Achievement predicate failed",
                extra={"achievement_id": achievement.id, "member_id": member.id, "error": str(e)},
            )
    return unlocked


class AchievementTracker:
    """Persists unlock records in the key-value store and announces new ones."""

    def __init__(self, store: KeyValueStore, notifier: Notifier) -> None:
        self._store = store
        self._notifier = notifier
        self._unlocks: list[AchievementUnlock] | None = None

    async def unlocks(self) -> list[AchievementUnlock]:
        """All recorded unlocks, loading them from the store on first use."""
        if self._unlocks is None:
            raw = await self._store.read(StorageKeys.ACHIEVEMENTS)
            loaded: list[AchievementUnlock] = []
            for item in raw if isinstance(raw, list) else []:
                try:
                    loaded.append(AchievementUnlock.model_validate(item))
                except ValidationError as e:
                    logger.warning("Skipping malformed achievement record", extra={"error": str(e)})
            self._unlocks = loaded
        return self._unlocks

    async def member_achievements(self, member_id: str) -> list[str]:
        return [u.achievement_id for u in await self.unlocks() if u.member_id == member_id]

    async def evaluate(self, members: Iterable[Member], tasks: list[Task]) -> list[AchievementUnlock]:
        """Record and announce every newly satisfied achievement for each member.

        Args:
            members: Members to evaluate
            tasks: Full task collection

        Returns:
            The unlock records created by this evaluation
        """
        with span("achievements.evaluate"):
            unlocks = await self.unlocks()
            recorded = {u.key for u in unlocks}
            created: list[AchievementUnlock] = []

            for member in members:
                already = [a_id for a_id, m_id in recorded if m_id == member.id]
                for achievement in newly_unlocked(member, tasks, already):
                    unlock = AchievementUnlock(achievement_id=achievement.id, member_id=member.id)
                    unlocks.append(unlock)
                    recorded.add(unlock.key)
                    created.append(unlock)
                    logger.info(
                        "Achievement unlocked",
                        extra={"achievement_id": achievement.id, "member_id": member.id},
                    )

            if not created:
                return []

            await self._store.write(StorageKeys.ACHIEVEMENTS, [u.to_record() for u in unlocks])

            for unlock in created:
                achievement = ACHIEVEMENTS_BY_ID[unlock.achievement_id]
                await notifications.send(
                    self._notifier,
                    AchievementUnlocked(
                        achievement_id=achievement.id,
                        member_id=unlock.member_id,
                        name=achievement.name,
                        description=achievement.description,
                        icon=achievement.icon,
                        unlocked_at=unlock.unlocked_at,
                    ),
                )
            return created
