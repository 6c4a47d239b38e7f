"""Shadow Dungeons - Real-Time Dungeon Encounter Engine.

A server-side engine that runs many concurrent dungeon encounters between a
user's army of shadows and a growing hostile population.

DETERMINISTIC CORE:
- The engine owns TRUTH (encounter state, HP, cooldowns, queues)
- Every random draw goes through one injectable VarianceRng
- Storage, mana and notifications stay behind collaborator interfaces

Example:
    >>> from shadow_dungeons import EncounterLifecycle, UserContext, Rank
    >>> from shadow_dungeons.collaborators import InMemoryCollectibleStore, InMemoryManaPool
    >>>
    >>> lifecycle = EncounterLifecycle(
    ...     collectible_store=InMemoryCollectibleStore(),
    ...     resource_pool=InMemoryManaPool(current=500),
    ... )
    >>> encounter = await lifecycle.spawn_encounter(UserContext(rank=Rank.C), army)
    >>>
    >>> # Host signals
    >>> await lifecycle.set_participation(encounter.id, False)
    >>> await lifecycle.shutdown()

Modules:
    core: Configuration, logging, and base exceptions.
    models: Pydantic V2 schemas for entities, encounters and events.
    collaborators: Storage, mana, participation and sink interfaces.
    engine: Combat, population, extraction, resurrection and lifecycle.
"""

from __future__ import annotations

# Core
from shadow_dungeons.core.config import Settings, get_settings
from shadow_dungeons.core.exceptions import ShadowDungeonsError
from shadow_dungeons.core.logging import configure_logging, get_logger

# Models
from shadow_dungeons.models import (
    Biome,
    Encounter,
    EncounterState,
    EngineEvent,
    EventType,
    FailureReason,
    FriendlyEntity,
    Rank,
    RewardReport,
    UserContext,
    UserStats,
)

# Engine
from shadow_dungeons.engine import (
    EncounterLifecycle,
    EncounterRegistry,
    VarianceRng,
)


__version__ = "0.1.0"
__author__ = "Shadow Dungeons Team"
__all__ = [
    # Version info
    "__version__",
    "__author__",
    # Core
    "ShadowDungeonsError",
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    # Models
    "Biome",
    "Encounter",
    "EncounterState",
    "EngineEvent",
    "EventType",
    "FailureReason",
    "FriendlyEntity",
    "Rank",
    "RewardReport",
    "UserContext",
    "UserStats",
    # Engine
    "EncounterLifecycle",
    "EncounterRegistry",
    "VarianceRng",
]
