"""Pydantic V2 schemas for the Shadow Dungeons engine.

This module provides the data model layer of the engine: enumerations,
stat blocks, combatants, encounters and the records exchanged with
collaborators.

Submodules:
    enums: Enumeration types (Rank, Biome, EncounterState, EventType, etc.)
    entities: Stat blocks and combatants (BaseStats, HostileEntity, CombatProjection)
    encounter: Encounter record, extraction tickets and result records
    events: EngineEvent emitted to the notification sink

Example:
    >>> from shadow_dungeons.models import Rank, UserContext, UserStats
    >>> user = UserContext(rank=Rank.C, stats=UserStats(intelligence=120))
    >>> user.rank.index
    2
"""

from __future__ import annotations

# =============================================================================
# Enumerations
# =============================================================================
from shadow_dungeons.models.enums import (
    BehaviorProfile,
    Biome,
    EncounterState,
    EventType,
    FailureReason,
    Rank,
    ShadowRole,
    TicketStatus,
)

# =============================================================================
# Entities
# =============================================================================
from shadow_dungeons.models.entities import (
    BaseStats,
    CombatProjection,
    FriendlyEntity,
    HostileEntity,
    ManaPool,
    UserContext,
    UserStats,
)

# =============================================================================
# Encounters
# =============================================================================
from shadow_dungeons.models.encounter import (
    BatchResult,
    BossGrace,
    ConversionResult,
    Encounter,
    EncounterStats,
    ExtractionReport,
    ExtractionTicket,
    ResurrectionReport,
    RewardReport,
)

# =============================================================================
# Events
# =============================================================================
from shadow_dungeons.models.events import EngineEvent


__all__ = [
    # Enumerations
    "BehaviorProfile",
    "Biome",
    "EncounterState",
    "EventType",
    "FailureReason",
    "Rank",
    "ShadowRole",
    "TicketStatus",
    # Entities
    "BaseStats",
    "CombatProjection",
    "FriendlyEntity",
    "HostileEntity",
    "ManaPool",
    "UserContext",
    "UserStats",
    # Encounters
    "BatchResult",
    "BossGrace",
    "ConversionResult",
    "Encounter",
    "EncounterStats",
    "ExtractionReport",
    "ExtractionTicket",
    "ResurrectionReport",
    "RewardReport",
    # Events
    "EngineEvent",
]
