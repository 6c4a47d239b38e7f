"""Retry policy for idempotent collaborator reads.

Only reads that are safe to repeat go through here (the collectible count and
the mana balance). Conversions and deductions are never retried: repeating
them could create a second shadow or charge mana twice.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shadow_dungeons.core.config import CollaboratorSettings, get_settings
from shadow_dungeons.core.exceptions import TransientCollaboratorError
from shadow_dungeons.core.logging import get_logger


logger = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    TransientCollaboratorError,
    ConnectionError,
    TimeoutError,
)


def _log_retry(retry_state: RetryCallState, collaborator: str) -> None:
    """Log a retried collaborator read before sleeping."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Collaborator read failed, retrying",
        collaborator=collaborator,
        attempt=retry_state.attempt_number,
        error=str(exc),
    )


class ReadRetryPolicy:
    """Wraps idempotent collaborator reads with tenacity.

    Example:
        >>> policy = ReadRetryPolicy()
        >>> count = await policy.call(store.count, collaborator="collectible_store")
    """

    def __init__(self, settings: CollaboratorSettings | None = None) -> None:
        """Initialize the policy.

        Args:
            settings: Retry bounds; the engine settings when None.
        """
        self.settings = settings or get_settings().collaborator

    def _retrying(self, collaborator: str) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            stop=stop_after_attempt(self.settings.retry_attempts),
            wait=wait_exponential(
                multiplier=self.settings.retry_wait_multiplier_s,
                min=self.settings.retry_wait_min_s,
                max=self.settings.retry_wait_max_s,
            ),
            before_sleep=lambda state: _log_retry(state, collaborator),
            reraise=True,
        )

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        collaborator: str = "collaborator",
        **kwargs: Any,
    ) -> T:
        """Await ``func`` with retries on transient failures.

        Args:
            func: Async callable performing an idempotent read.
            *args: Positional arguments for ``func``.
            collaborator: Name used in log lines.
            **kwargs: Keyword arguments for ``func``.

        Returns:
            Whatever ``func`` returns.

        Raises:
            Exception: The last error once attempts are exhausted, or any
                non-retryable error immediately.
        """
        async for attempt in self._retrying(collaborator):
            with attempt:
                return await func(*args, **kwargs)
        raise AssertionError(f"retry loop for {collaborator} exited without a result")


__all__ = ["RETRYABLE_ERRORS", "ReadRetryPolicy"]
