"""Named, group-cancellable timers owned by one encounter.

Each encounter runs a handful of named asyncio tasks (combat tick,
population tick, extraction retry, debounce, grace window, timeout).
:class:`EncounterTimers` owns them all so teardown can cancel the whole group
at once. After :meth:`EncounterTimers.cancel_all` no callback of the group
runs again and any further scheduling raises :class:`SchedulerClosedError`.

A callback that raises a structural error (the encounter vanished, or an
illegal state transition) halts the whole group; any other exception is
logged and the timer keeps running.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, Coroutine

from shadow_dungeons.core.exceptions import (
    EncounterNotFoundError,
    InvalidEncounterStateError,
    SchedulerClosedError,
)
from shadow_dungeons.core.logging import encounter_context, get_logger


logger = get_logger(__name__)

TimerCallback = Callable[[], Awaitable[Any] | Any]
ErrorHandler = Callable[[str, BaseException], None]

STRUCTURAL_ERRORS: tuple[type[Exception], ...] = (
    EncounterNotFoundError,
    InvalidEncounterStateError,
)


def monotonic_ms() -> float:
    """Monotonic clock in milliseconds, the engine's default clock."""
    return time.monotonic() * 1000.0


class EncounterTimers:
    """The timer group of one encounter.

    Must be used from inside a running event loop.

    Example:
        >>> timers = EncounterTimers("dng-1")
        >>> timers.start_periodic("combat", 3000, lambda: lifecycle.combat_tick("dng-1"))
        >>> timers.cancel_all()
    """

    def __init__(
        self,
        encounter_id: str,
        *,
        on_structural_error: ErrorHandler | None = None,
    ) -> None:
        """Initialize an empty timer group.

        Args:
            encounter_id: Encounter the group belongs to.
            on_structural_error: Called with the timer name and the error when
                a structural violation halts the group.
        """
        self.encounter_id = encounter_id
        self._on_structural_error = on_structural_error
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether the group was cancelled or halted."""
        return self._closed

    @property
    def names(self) -> list[str]:
        """Names of the timers still scheduled."""
        return [name for name, task in self._tasks.items() if not task.done()]

    def is_scheduled(self, name: str) -> bool:
        task = self._tasks.get(name)
        return task is not None and not task.done()

    def start_periodic(self, name: str, interval_ms: float, callback: TimerCallback) -> None:
        """Run ``callback`` every ``interval_ms``, replacing any timer named ``name``.

        The next run is scheduled only after the previous one finished, so
        runs of one timer never overlap.

        Raises:
            SchedulerClosedError: If the group was already cancelled.
        """
        self._install(name, self._run_periodic(name, interval_ms / 1000.0, callback))

    def schedule_once(self, name: str, delay_ms: float, callback: TimerCallback) -> None:
        """Run ``callback`` once after ``delay_ms``, replacing any timer named ``name``.

        Raises:
            SchedulerClosedError: If the group was already cancelled.
        """
        self._install(name, self._run_once(name, delay_ms / 1000.0, callback))

    def cancel(self, name: str) -> bool:
        """Cancel one timer.

        Returns:
            True if a live timer was cancelled.
        """
        task = self._tasks.pop(name, None)
        if task is None or task.done():
            return False
        current = asyncio.current_task() if self._has_running_loop() else None
        if task is not current:
            task.cancel()
        return True

    def cancel_all(self) -> int:
        """Cancel every timer and close the group.

        A timer cancelling its own group from inside its callback finishes
        that callback; it does not run again.

        Returns:
            Timers cancelled.
        """
        self._closed = True
        current = asyncio.current_task() if self._has_running_loop() else None
        cancelled = 0
        for task in self._tasks.values():
            if task.done():
                continue
            cancelled += 1
            if task is not current:
                task.cancel()
        self._tasks.clear()
        if cancelled:
            logger.debug(
                "Encounter timers cancelled",
                encounter_id=self.encounter_id,
                count=cancelled,
            )
        return cancelled

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _has_running_loop() -> bool:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    def _install(self, name: str, coro: Coroutine[Any, Any, None]) -> None:
        if self._closed:
            coro.close()
            raise SchedulerClosedError(
                f"Timer group of encounter {self.encounter_id} is closed",
                details={"encounter_id": self.encounter_id, "timer": name},
            )
        self.cancel(name)
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks[name] = task

    async def _run_periodic(self, name: str, interval_s: float, callback: TimerCallback) -> None:
        current = asyncio.current_task()
        while not self._closed and self._tasks.get(name) is current:
            await asyncio.sleep(interval_s)
            if self._closed or self._tasks.get(name) is not current:
                return
            await self._invoke(name, callback)

    async def _run_once(self, name: str, delay_s: float, callback: TimerCallback) -> None:
        # Stays registered while the callback runs so cancel_all reaches it.
        current = asyncio.current_task()
        try:
            await asyncio.sleep(delay_s)
            if self._closed:
                return
            await self._invoke(name, callback)
        finally:
            if self._tasks.get(name) is current:
                del self._tasks[name]

    async def _invoke(self, name: str, callback: TimerCallback) -> None:
        with encounter_context(self.encounter_id, timer=name):
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except STRUCTURAL_ERRORS as exc:
                logger.error(
                    "Structural violation in timer callback, halting encounter timers",
                    error=str(exc),
                )
                self.cancel_all()
                if self._on_structural_error is not None:
                    self._on_structural_error(name, exc)
            except Exception:
                logger.exception("Timer callback failed")


__all__ = ["EncounterTimers", "STRUCTURAL_ERRORS", "TimerCallback", "monotonic_ms"]
