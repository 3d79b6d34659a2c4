"""Unit tests for XP to level arithmetic."""

import pytest

from questlog.domain.member import Member
from questlog.services.leveling import level_for_xp, member_progress, progress_percent, xp_to_next_level


@pytest.mark.unit
class TestLevelForXp:
    """Tests for level_for_xp."""

    @pytest.mark.parametrize(
        ("xp", "level"),
        [(0, 1), (99, 1), (100, 2), (250, 3), (1000, 11)],
    )
    def test_known_levels(self, xp: int, level: int) -> None:
        assert level_for_xp(xp) == level

    def test_monotonic(self) -> None:
        levels = [level_for_xp(xp) for xp in range(0, 2001, 7)]
        assert levels == sorted(levels)

    def test_negative_xp_is_level_one(self) -> None:
        assert level_for_xp(-40) == 1


@pytest.mark.unit
class TestProgress:
    """Tests for progress_percent and xp_to_next_level."""

    def test_progress_within_level(self) -> None:
        assert progress_percent(0) == 0.0
        assert progress_percent(50) == 50.0
        assert progress_percent(250) == 50.0

    def test_progress_is_clamped(self) -> None:
        assert progress_percent(-10) == 0.0

    def test_xp_to_next_level(self) -> None:
        assert xp_to_next_level(0) == 100
        assert xp_to_next_level(250) == 50
        assert xp_to_next_level(100) == 100

    def test_member_progress(self) -> None:
        progress = member_progress(Member(id="m1", name="Alice", xp=130))

        assert progress.level == 2
        assert progress.xp == 130
        assert progress.progress_percent == 30.0
        assert progress.xp_to_next_level == 70


@pytest.mark.unit
def test_member_level_is_derived_from_xp() -> None:
    """A stored level that disagrees with xp is recomputed on read."""
    member = Member.model_validate({"id": "m1", "name": "Alice", "xp": 250, "level": 9})

    assert member.level == 3
