"""Member domain model."""

from typing import Any

from pydantic import Field, field_validator, model_validator

from questlog.core.config import constants
from questlog.domain.task import CamelModel


class Member(CamelModel):
    """Gamification profile.

    ``level`` is always derived from ``xp``; any level supplied by a store is
    recomputed on read so the two can never disagree.
    """

    id: str = Field(..., description="Unique member ID")
    name: str = Field(default="", description="Display name of the member")
    xp: int = Field(default=0, ge=0, description="Accumulated experience points")
    level: int = Field(default=1, ge=1, description="Level derived from xp")
    avatar: str | None = Field(default=None, description="Optional avatar (emoji or URL)")
    user_id: str | None = Field(default=None, description="Linked account ID (remote mode)")
    email: str | None = Field(default=None, description="Linked account email (remote mode)")

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("xp", mode="before")
    @classmethod
    def clamp_xp(cls, v: Any) -> int:
        """Missing or negative xp reads as zero."""
        try:
            return max(0, int(v))
        except (TypeError, ValueError):
            return 0

    @model_validator(mode="after")
    def derive_level(self) -> "Member":
        self.level = self.xp // constants.XP_PER_LEVEL + 1
        return self
