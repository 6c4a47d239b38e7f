"""In-memory reference collaborators.

These implementations back the engine in tests and in hosts that keep
everything in process. The collectible store persists shadows through the
abstract key/value contract so a host can swap in its own storage.
"""

from __future__ import annotations

from typing import Any
from uuid import uuid4

from shadow_dungeons.collaborators.base import (
    CollectibleStore,
    KeyValueStore,
    NotificationSink,
    ParticipationSignal,
    ResourcePoolProvider,
    RewardSink,
)
from shadow_dungeons.core.constants import (
    MANA_BASE,
    MANA_PER_INTELLIGENCE,
    MANA_PER_SHADOW,
    MANA_REGEN_FRACTION_PER_100_INT,
)
from shadow_dungeons.core.logging import get_logger
from shadow_dungeons.models import (
    BaseStats,
    ConversionResult,
    EngineEvent,
    EventType,
    FriendlyEntity,
    HostileEntity,
    ManaPool,
    RewardReport,
    ShadowRole,
    UserContext,
)


logger = get_logger(__name__)


# =============================================================================
# Key/Value Store
# =============================================================================


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed key/value store."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self, prefix: str = "") -> list[str]:
        return [key for key in self._data if key.startswith(prefix)]


# =============================================================================
# Collectible Store
# =============================================================================


_ROLE_BY_DOMINANT_STAT: dict[str, ShadowRole] = {
    "strength": ShadowRole.KNIGHT,
    "agility": ShadowRole.ASSASSIN,
    "intelligence": ShadowRole.MAGE,
    "vitality": ShadowRole.TANK,
    "luck": ShadowRole.RANGER,
}


def _role_for(stats: BaseStats) -> ShadowRole:
    """Pick a role from the hostile's strongest attribute."""
    values = stats.model_dump()
    dominant = max(values, key=lambda name: values[name])
    return _ROLE_BY_DOMINANT_STAT[dominant]


class InMemoryCollectibleStore(CollectibleStore):
    """Collectible store persisting shadows as records in a key/value store.

    A converted shadow inherits the hostile's rank and stats.

    Attributes:
        prefix: Key prefix under which shadows are stored.
    """

    def __init__(self, kv_store: KeyValueStore | None = None, *, prefix: str = "shadow:") -> None:
        """Initialize the store.

        Args:
            kv_store: Backing key/value store; a fresh in-memory one when None.
            prefix: Key prefix under which shadows are stored.
        """
        self._kv = kv_store or InMemoryKeyValueStore()
        self.prefix = prefix

    async def convert(self, hostile: HostileEntity, user: UserContext) -> ConversionResult:
        shadow = FriendlyEntity(
            id=f"shadow_{uuid4().hex[:12]}",
            name="Risen Monarch" if hostile.is_boss else f"Risen {hostile.rank.value}",
            rank=hostile.rank,
            role=_role_for(hostile.stats),
            stats=hostile.stats,
            source_hostile_id=hostile.id,
        )
        self._kv.set(f"{self.prefix}{shadow.id}", shadow.model_dump(mode="json"))
        logger.debug(
            "Shadow stored",
            shadow_id=shadow.id,
            rank=shadow.rank.value,
            user_id=user.user_id,
        )
        return ConversionResult(success=True, collectible_id=shadow.id)

    async def count(self) -> int:
        return len(self._kv.keys(self.prefix))

    def get(self, shadow_id: str) -> FriendlyEntity | None:
        """Load one stored shadow."""
        raw = self._kv.get(f"{self.prefix}{shadow_id}")
        return FriendlyEntity.model_validate(raw) if raw is not None else None

    def all(self) -> list[FriendlyEntity]:
        """Load every stored shadow."""
        return [
            FriendlyEntity.model_validate(self._kv.get(key))
            for key in sorted(self._kv.keys(self.prefix))
        ]


# =============================================================================
# Mana Pool
# =============================================================================


class InMemoryManaPool(ResourcePoolProvider):
    """Process-local mana pool.

    Deductions that would overdraw the pool are refused, so the balance
    never goes negative.
    """

    def __init__(self, current: float = 0.0, maximum: float | None = None) -> None:
        """Initialize the pool.

        Args:
            current: Starting mana.
            maximum: Maximum mana; defaults to ``current``.
        """
        self.pool = ManaPool(current=current, max=current if maximum is None else maximum)

    @property
    def current(self) -> float:
        return self.pool.current

    @property
    def maximum(self) -> float:
        return self.pool.max

    async def read_mana(self) -> float:
        return self.pool.current

    async def deduct_mana(self, amount: float) -> bool:
        if amount < 0 or amount > self.pool.current:
            return False
        self.pool.current = max(0.0, self.pool.current - amount)
        return True

    def regenerate(self, intelligence: float, elapsed_ms: float) -> float:
        """Regenerate mana for elapsed time.

        The pool refills 1% of its maximum per second for every 100
        intelligence.

        Args:
            intelligence: The user's intelligence.
            elapsed_ms: Time since the last regeneration.

        Returns:
            Mana actually gained.
        """
        if elapsed_ms <= 0 or intelligence <= 0:
            return 0.0
        rate_per_second = self.pool.max * MANA_REGEN_FRACTION_PER_100_INT * (intelligence / 100)
        before = self.pool.current
        self.pool.current = min(self.pool.max, before + rate_per_second * elapsed_ms / 1000)
        return self.pool.current - before

    def recalculate_max(self, intelligence: float, shadow_count: int) -> float:
        """Recompute maximum mana from intelligence and army size.

        Args:
            intelligence: The user's intelligence.
            shadow_count: Shadows in the army.

        Returns:
            The new maximum.
        """
        new_max = float(
            MANA_BASE + MANA_PER_INTELLIGENCE * intelligence + MANA_PER_SHADOW * shadow_count
        )
        if new_max >= self.pool.current:
            self.pool.max = new_max
        else:
            self.pool.current = new_max
            self.pool.max = new_max
        return new_max


# =============================================================================
# Sinks & Signals
# =============================================================================


class RecordingNotificationSink(NotificationSink):
    """Notification sink that keeps every event."""

    def __init__(self) -> None:
        self.events: list[EngineEvent] = []

    def emit(self, event: EngineEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> list[EngineEvent]:
        """Events of one type, in emission order."""
        return [event for event in self.events if event.type == event_type]


class RecordingRewardSink(RewardSink):
    """Reward sink that keeps every report."""

    def __init__(self) -> None:
        self.reports: list[RewardReport] = []

    def emit(self, report: RewardReport) -> None:
        self.reports.append(report)


class ParticipationFlags(ParticipationSignal):
    """Participation flags the host toggles per encounter."""

    def __init__(self, default: bool | None = None) -> None:
        self.default = default
        self._flags: dict[str, bool] = {}

    def set(self, encounter_id: str, participating: bool) -> None:
        self._flags[encounter_id] = participating

    def clear(self, encounter_id: str) -> None:
        self._flags.pop(encounter_id, None)

    def is_participating(self, encounter_id: str) -> bool | None:
        return self._flags.get(encounter_id, self.default)


__all__ = [
    "InMemoryKeyValueStore",
    "InMemoryCollectibleStore",
    "InMemoryManaPool",
    "RecordingNotificationSink",
    "RecordingRewardSink",
    "ParticipationFlags",
]
