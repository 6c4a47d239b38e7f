"""Abstract collaborator interfaces and their no-op defaults.

The engine talks to the host only through these narrow interfaces. Each one
has a Null implementation that the engine resolves at construction time when
the host supplies nothing, so no call site ever checks whether an optional
integration is present.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from shadow_dungeons.models import (
    ConversionResult,
    EngineEvent,
    HostileEntity,
    RewardReport,
    UserContext,
)


# =============================================================================
# Consumed Interfaces
# =============================================================================


class KeyValueStore(ABC):
    """Abstract key/value persistence contract."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Read a value, or ``default`` when the key is absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Write a value."""
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete a key, returning whether it existed."""
        ...

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]:
        """List keys starting with ``prefix``."""
        ...


class CollectibleStore(ABC):
    """Permanent store of extracted shadows."""

    @abstractmethod
    async def convert(self, hostile: HostileEntity, user: UserContext) -> ConversionResult:
        """Turn a defeated hostile into a permanent shadow.

        Args:
            hostile: Snapshot of the defeated hostile.
            user: The extracting user.

        Returns:
            The store's success signal and the new shadow id.
        """
        ...

    @abstractmethod
    async def count(self) -> int:
        """Number of shadows currently stored."""
        ...


class ResourcePoolProvider(ABC):
    """The user's shared mana pool."""

    @abstractmethod
    async def read_mana(self) -> float:
        """Read the current mana balance."""
        ...

    @abstractmethod
    async def deduct_mana(self, amount: float) -> bool:
        """Deduct ``amount`` if affordable.

        Returns:
            False, leaving the balance untouched, when unaffordable.
        """
        ...


class ParticipationSignal(ABC):
    """Host-side signal of whether the user is watching an encounter."""

    @abstractmethod
    def is_participating(self, encounter_id: str) -> bool | None:
        """Report participation for an encounter.

        Returns:
            True or False when the host has an opinion, None otherwise.
        """
        ...


# =============================================================================
# Produced-To Interfaces
# =============================================================================


class RewardSink(ABC):
    """Receives aggregate rewards when an encounter ends."""

    @abstractmethod
    def emit(self, report: RewardReport) -> None:
        """Apply or record a reward report."""
        ...


class NotificationSink(ABC):
    """Receives semantic engine events."""

    @abstractmethod
    def emit(self, event: EngineEvent) -> None:
        """Present or record an event."""
        ...


# =============================================================================
# Null Implementations
# =============================================================================


class NullCollectibleStore(CollectibleStore):
    """Collectible store that never converts anything."""

    async def convert(self, hostile: HostileEntity, user: UserContext) -> ConversionResult:
        return ConversionResult(success=False)

    async def count(self) -> int:
        return 0


class NullResourcePool(ResourcePoolProvider):
    """Mana pool that is always empty."""

    async def read_mana(self) -> float:
        return 0.0

    async def deduct_mana(self, amount: float) -> bool:
        return False


class NullParticipationSignal(ParticipationSignal):
    """Signal with no opinion; the encounter keeps its own flag."""

    def is_participating(self, encounter_id: str) -> bool | None:
        return None


class NullRewardSink(RewardSink):
    """Reward sink that drops every report."""

    def emit(self, report: RewardReport) -> None:
        return None


class NullNotificationSink(NotificationSink):
    """Notification sink that drops every event."""

    def emit(self, event: EngineEvent) -> None:
        return None


__all__ = [
    "KeyValueStore",
    "CollectibleStore",
    "ResourcePoolProvider",
    "ParticipationSignal",
    "RewardSink",
    "NotificationSink",
    "NullCollectibleStore",
    "NullResourcePool",
    "NullParticipationSignal",
    "NullRewardSink",
    "NullNotificationSink",
]
