"""Achievement domain models."""

from enum import StrEnum

from pydantic import Field

from questlog.core.timeutil import now_iso
from questlog.domain.task import CamelModel


class AchievementCategory(StrEnum):
    """Achievement grouping."""

    TASKS = "tasks"
    XP = "xp"
    SPECIAL = "special"


class AchievementUnlock(CamelModel):
    """Append-only record that a member earned an achievement."""

    achievement_id: str = Field(..., description="Registry ID of the achievement")
    member_id: str = Field(..., description="Member who unlocked it")
    unlocked_at: str = Field(default_factory=now_iso, description="Unlock timestamp (ISO format)")

    @property
    def key(self) -> tuple[str, str]:
        return (self.achievement_id, self.member_id)
