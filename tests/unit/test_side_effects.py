"""Unit tests for the side-effect dispatcher."""

import asyncio

import pytest

from questlog.services.side_effects import AchievementCheck, SideEffectDispatcher, XpChange


@pytest.fixture
def dispatcher() -> SideEffectDispatcher:
    return SideEffectDispatcher()


@pytest.mark.unit
class TestSideEffectDispatcher:
    """Tests for SideEffectDispatcher."""

    async def test_emit_does_not_run_handlers(self, dispatcher: SideEffectDispatcher) -> None:
        seen: list[XpChange] = []

        async def handler(event: XpChange) -> None:
            seen.append(event)

        dispatcher.register(XpChange, handler)
        dispatcher.emit(XpChange(member_id="m1", amount=50))

        assert seen == []
        assert dispatcher.pending == 1

    async def test_drain_runs_handlers_in_order(self, dispatcher: SideEffectDispatcher) -> None:
        seen: list[int] = []

        async def handler(event: XpChange) -> None:
            seen.append(event.amount)

        dispatcher.register(XpChange, handler)
        dispatcher.emit(XpChange(member_id="m1", amount=50))
        dispatcher.emit(XpChange(member_id="m1", amount=-10))
        await dispatcher.drain()

        assert seen == [50, -10]
        assert dispatcher.pending == 0

    async def test_handlers_are_routed_by_event_type(self, dispatcher: SideEffectDispatcher) -> None:
        checks: list[str] = []

        async def on_check(event: AchievementCheck) -> None:
            checks.append(event.reason)

        dispatcher.register(AchievementCheck, on_check)
        dispatcher.emit(XpChange(member_id="m1", amount=5))
        dispatcher.emit(AchievementCheck(reason="task_added"))
        await dispatcher.drain()

        assert checks == ["task_added"]

    async def test_failure_is_dead_lettered_and_retryable(self, dispatcher: SideEffectDispatcher) -> None:
        attempts: list[int] = []

        async def flaky(event: XpChange) -> None:
            attempts.append(event.amount)
            if len(attempts) == 1:
                raise RuntimeError("store unavailable")

        dispatcher.register(XpChange, flaky)
        dispatcher.emit(XpChange(member_id="m1", amount=50))
        await dispatcher.drain()

        assert len(dispatcher.dead_letters) == 1
        assert dispatcher.dead_letters[0].error == "store unavailable"

        assert dispatcher.retry_failed() == 1
        await dispatcher.drain()

        assert attempts == [50, 50]
        assert dispatcher.dead_letters == []

    async def test_background_worker(self, dispatcher: SideEffectDispatcher) -> None:
        done = asyncio.Event()

        async def handler(event: AchievementCheck) -> None:
            done.set()

        dispatcher.register(AchievementCheck, handler)
        dispatcher.start()
        assert dispatcher.is_running

        dispatcher.emit(AchievementCheck())
        await asyncio.wait_for(done.wait(), timeout=1)
        await dispatcher.stop()

        assert not dispatcher.is_running
