"""Tests for encounter timer groups.

These run on a real event loop with millisecond intervals, so assertions
are lower bounds rather than exact run counts.
"""

from __future__ import annotations

import asyncio

import pytest
import structlog

from shadow_dungeons.core.exceptions import EncounterNotFoundError, SchedulerClosedError
from shadow_dungeons.engine.timers import EncounterTimers


class TestScheduling:
    """Tests for periodic and one-shot timers."""

    def test_periodic_runs_until_cancelled(self) -> None:
        """Test a periodic timer keeps firing and stops for good once cancelled."""
        calls: list[int] = []

        async def scenario() -> tuple[int, int]:
            timers = EncounterTimers("dng-1")
            timers.start_periodic("combat", 5, lambda: calls.append(1))
            await asyncio.sleep(0.1)
            assert timers.is_scheduled("combat")
            timers.cancel_all()
            seen = len(calls)
            await asyncio.sleep(0.05)
            return seen, len(calls)

        seen, later = asyncio.run(scenario())
        assert seen >= 3
        assert later == seen

    def test_async_callbacks_are_awaited(self) -> None:
        """Test coroutine callbacks run to completion."""
        calls: list[str] = []

        async def tick() -> None:
            await asyncio.sleep(0)
            calls.append("tick")

        async def scenario() -> None:
            timers = EncounterTimers("dng-1")
            timers.schedule_once("debounce", 1, tick)
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert calls == ["tick"]

    def test_once_fires_once(self) -> None:
        """Test a one-shot timer fires once and leaves the group."""
        calls: list[int] = []

        async def scenario() -> list[str]:
            timers = EncounterTimers("dng-1")
            timers.schedule_once("timeout", 5, lambda: calls.append(1))
            assert timers.names == ["timeout"]
            await asyncio.sleep(0.05)
            return timers.names

        assert asyncio.run(scenario()) == []
        assert calls == [1]

    def test_same_name_replaces(self) -> None:
        """Test rescheduling a name cancels the previous timer."""
        calls: list[str] = []

        async def scenario() -> None:
            timers = EncounterTimers("dng-1")
            timers.schedule_once("debounce", 30, lambda: calls.append("stale"))
            timers.schedule_once("debounce", 5, lambda: calls.append("fresh"))
            await asyncio.sleep(0.08)

        asyncio.run(scenario())
        assert calls == ["fresh"]

    def test_cancel_one(self) -> None:
        """Test cancelling one timer leaves the others running."""
        calls: list[str] = []

        async def scenario() -> bool:
            timers = EncounterTimers("dng-1")
            timers.schedule_once("a", 10, lambda: calls.append("a"))
            timers.schedule_once("b", 10, lambda: calls.append("b"))
            cancelled = timers.cancel("a")
            await asyncio.sleep(0.05)
            return cancelled and not timers.cancel("a")

        assert asyncio.run(scenario())
        assert calls == ["b"]


class TestClosing:
    """Tests for group cancellation."""

    def test_closed_group_rejects_timers(self) -> None:
        """Test scheduling after cancel_all raises."""

        async def scenario() -> None:
            timers = EncounterTimers("dng-1")
            timers.cancel_all()
            assert timers.closed
            timers.schedule_once("late", 5, lambda: None)

        with pytest.raises(SchedulerClosedError):
            asyncio.run(scenario())

    def test_callback_cancelling_its_group(self) -> None:
        """Test a callback that closes its own group finishes and never runs again."""
        calls: list[str] = []

        async def scenario() -> None:
            timers = EncounterTimers("dng-1")

            def teardown() -> None:
                timers.cancel_all()
                calls.append("after-cancel")

            timers.start_periodic("combat", 5, teardown)
            await asyncio.sleep(0.08)

        asyncio.run(scenario())
        assert calls == ["after-cancel"]

    def test_cancel_all_reaches_running_once_timer(self) -> None:
        """Test a one-shot callback still awaiting work is cancelled by cancel_all."""
        calls: list[str] = []

        async def slow_flush() -> None:
            calls.append("started")
            await asyncio.sleep(0.2)
            calls.append("finished")

        async def scenario() -> bool:
            timers = EncounterTimers("dng-1")
            timers.schedule_once("debounce", 1, slow_flush)
            await asyncio.sleep(0.03)
            running = timers.is_scheduled("debounce")
            timers.cancel_all()
            await asyncio.sleep(0.3)
            return running

        assert asyncio.run(scenario())
        assert calls == ["started"]


class TestFailures:
    """Tests for callback failures."""

    def test_ordinary_errors_keep_timer_alive(self) -> None:
        """Test a failing callback is logged and the timer keeps firing."""
        calls: list[int] = []

        def flaky() -> None:
            calls.append(1)
            raise RuntimeError("transient")

        async def scenario() -> bool:
            timers = EncounterTimers("dng-1")
            timers.start_periodic("population", 5, flaky)
            await asyncio.sleep(0.08)
            alive = timers.is_scheduled("population")
            timers.cancel_all()
            return alive

        assert asyncio.run(scenario())
        assert len(calls) >= 2

    def test_structural_error_halts_group(self) -> None:
        """Test a vanished encounter stops every timer and reports once."""
        reported: list[tuple[str, BaseException]] = []
        other_calls: list[int] = []

        def vanished() -> None:
            raise EncounterNotFoundError("gone", encounter_id="dng-1")

        async def scenario() -> EncounterTimers:
            timers = EncounterTimers(
                "dng-1",
                on_structural_error=lambda name, error: reported.append((name, error)),
            )
            timers.start_periodic("combat", 5, vanished)
            timers.start_periodic("population", 40, lambda: other_calls.append(1))
            await asyncio.sleep(0.1)
            return timers

        timers = asyncio.run(scenario())

        assert timers.closed
        assert timers.names == []
        assert len(reported) == 1
        assert reported[0][0] == "combat"
        assert isinstance(reported[0][1], EncounterNotFoundError)
        assert other_calls == []


class TestLoggingContext:
    """Tests for the log context of timer callbacks."""

    def test_callback_sees_encounter_context(self) -> None:
        """Test callbacks run with the encounter id and timer name bound."""
        seen: list[dict[str, object]] = []

        async def scenario() -> dict[str, object]:
            timers = EncounterTimers("dng-7")
            timers.schedule_once(
                "grace_window",
                1,
                lambda: seen.append(dict(structlog.contextvars.get_contextvars())),
            )
            await asyncio.sleep(0.03)
            return dict(structlog.contextvars.get_contextvars())

        outside = asyncio.run(scenario())

        assert len(seen) == 1
        assert seen[0]["encounter_id"] == "dng-7"
        assert seen[0]["timer"] == "grace_window"
        assert "encounter_id" not in outside
