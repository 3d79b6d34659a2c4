"""XP to level arithmetic."""

from pydantic import BaseModel, Field

from questlog.core.config import constants
from questlog.domain.member import Member


class MemberProgress(BaseModel):
    """Progress of a member through their current level."""

    level: int = Field(..., description="Current level")
    xp: int = Field(..., description="Total XP")
    progress_percent: float = Field(..., description="Progress through the current level, 0-100")
    xp_to_next_level: int = Field(..., description="XP still needed to reach the next level")


def level_for_xp(xp: int) -> int:
    """Level for an XP total. Level 1 starts at 0 XP."""
    return max(0, xp) // constants.XP_PER_LEVEL + 1


def level_floor(level: int) -> int:
    return (level - 1) * constants.XP_PER_LEVEL


def progress_percent(xp: int) -> float:
    """Percentage of the current level already earned, clamped to [0, 100]."""
    floor = level_floor(level_for_xp(xp))
    percent = 100 * (xp - floor) / constants.XP_PER_LEVEL
    return min(100.0, max(0.0, percent))


def xp_to_next_level(xp: int) -> int:
    ceiling = level_floor(level_for_xp(xp) + 1)
    return ceiling - max(0, xp)


def member_progress(member: Member) -> MemberProgress:
    return MemberProgress(
        level=level_for_xp(member.xp),
        xp=member.xp,
        progress_percent=progress_percent(member.xp),
        xp_to_next_level=xp_to_next_level(member.xp),
    )
