"""Enumeration types for the Shadow Dungeons engine.

This module defines the enumerations used throughout the engine: the rank
ladder, encounter biomes, friendly behaviour profiles and roles, lifecycle
states, and the semantic event types emitted to the notification sink.
"""

from __future__ import annotations

from enum import StrEnum

from shadow_dungeons.core.constants import RANK_NAMES


class Rank(StrEnum):
    """The 13-tier power ladder shared by users, hostiles and shadows.

    All rank arithmetic goes through :attr:`index`; string comparison of the
    values is meaningless.
    """

    E = "E"
    D = "D"
    C = "C"
    B = "B"
    A = "A"
    S = "S"
    SS = "SS"
    SSS = "SSS"
    SSS_PLUS = "SSS+"
    NH = "NH"
    MONARCH = "Monarch"
    MONARCH_PLUS = "Monarch+"
    SHADOW_MONARCH = "Shadow Monarch"

    @property
    def index(self) -> int:
        """Get the 0-based position on the ladder.

        Returns:
            0 for E up to 12 for Shadow Monarch.
        """
        return RANK_NAMES.index(self.value)

    @classmethod
    def from_index(cls, index: int) -> Rank:
        """Get the rank at a ladder position, clamped to the ladder.

        Args:
            index: Desired 0-based position.

        Returns:
            The rank at the clamped position.
        """
        clamped = max(0, min(len(RANK_NAMES) - 1, index))
        return cls(RANK_NAMES[clamped])

    def offset(self, delta: int) -> Rank:
        """Get the rank ``delta`` tiers away, clamped to the ladder."""
        return Rank.from_index(self.index + delta)


class Biome(StrEnum):
    """Encounter biomes.

    A biome scales the hostile soft cap and the boss HP budget per
    expected friendly combatant.
    """

    FOREST = "forest"
    ARCTIC = "arctic"
    CAVERN = "cavern"
    SWAMP = "swamp"
    MOUNTAINS = "mountains"
    VOLCANO = "volcano"
    ANCIENT_RUINS = "ancient_ruins"
    DARK_ABYSS = "dark_abyss"
    TRIBAL_GROUNDS = "tribal_grounds"

    @property
    def population_multiplier(self) -> float:
        """Get the soft-cap multiplier for this biome.

        Returns:
            Multiplier applied to the configured soft cap.
        """
        multipliers: dict[Biome, float] = {
            Biome.FOREST: 2.5,
            Biome.ARCTIC: 1.2,
            Biome.CAVERN: 2.0,
            Biome.SWAMP: 1.8,
            Biome.MOUNTAINS: 0.8,
            Biome.VOLCANO: 1.0,
            Biome.ANCIENT_RUINS: 1.2,
            Biome.DARK_ABYSS: 1.5,
            Biome.TRIBAL_GROUNDS: 2.0,
        }
        return multipliers[self]

    @property
    def boss_hp_per_shadow(self) -> int:
        """Get the boss HP added per friendly combatant in the encounter.

        Returns:
            HP budget per allocated shadow.
        """
        hp_per_shadow: dict[Biome, int] = {
            Biome.FOREST: 4500,
            Biome.ARCTIC: 6000,
            Biome.CAVERN: 5500,
            Biome.SWAMP: 5000,
            Biome.MOUNTAINS: 7000,
            Biome.VOLCANO: 8000,
            Biome.ANCIENT_RUINS: 6500,
            Biome.DARK_ABYSS: 9000,
            Biome.TRIBAL_GROUNDS: 5500,
        }
        return hp_per_shadow[self]


class BehaviorProfile(StrEnum):
    """Combat behaviour of a friendly shadow."""

    AGGRESSIVE = "aggressive"
    BALANCED = "balanced"
    TACTICAL = "tactical"

    @property
    def damage_multiplier(self) -> float:
        """Get the damage multiplier of this profile.

        Returns:
            1.3 for aggressive, 1.0 for balanced, 0.85 for tactical.
        """
        multipliers: dict[BehaviorProfile, float] = {
            BehaviorProfile.AGGRESSIVE: 1.3,
            BehaviorProfile.BALANCED: 1.0,
            BehaviorProfile.TACTICAL: 0.85,
        }
        return multipliers[self]

    @property
    def cooldown_range_ms(self) -> tuple[float, float]:
        """Get the attack cooldown range of this profile.

        Returns:
            Tuple of (min_ms, max_ms).
        """
        ranges: dict[BehaviorProfile, tuple[float, float]] = {
            BehaviorProfile.AGGRESSIVE: (800.0, 1500.0),
            BehaviorProfile.BALANCED: (1500.0, 2500.0),
            BehaviorProfile.TACTICAL: (2000.0, 3500.0),
        }
        return ranges[self]


class ShadowRole(StrEnum):
    """Class role of a friendly shadow."""

    TANK = "tank"
    ASSASSIN = "assassin"
    MAGE = "mage"
    KNIGHT = "knight"
    RANGER = "ranger"
    HEALER = "healer"
    BERSERKER = "berserker"

    @property
    def damage_multiplier(self) -> float:
        """Get the damage multiplier of this role.

        Returns:
            Role damage multiplier (1.0 for roles without a modifier).
        """
        multipliers: dict[ShadowRole, float] = {
            ShadowRole.TANK: 0.8,
            ShadowRole.ASSASSIN: 1.3,
            ShadowRole.MAGE: 1.2,
        }
        return multipliers.get(self, 1.0)


class EncounterState(StrEnum):
    """Encounter lifecycle states."""

    SPAWNING = "spawning"
    ACTIVE = "active"
    BOSS_GRACE_WINDOW = "boss_grace_window"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check whether no further transitions are allowed.

        Returns:
            True for Completed and Failed.
        """
        return self in (EncounterState.COMPLETED, EncounterState.FAILED)


class FailureReason(StrEnum):
    """Why an encounter ended in the Failed state."""

    TIMEOUT = "timeout"
    ROSTER_WIPED = "roster_wiped"
    USER_DEFEATED = "user_defeated"
    SHUTDOWN = "shutdown"


class TicketStatus(StrEnum):
    """Extraction ticket status."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class EventType(StrEnum):
    """Semantic events emitted to the notification sink."""

    ENCOUNTER_SPAWNED = "encounterSpawned"
    BOSS_DEFEATED = "bossDefeated"
    ENCOUNTER_COMPLETED = "encounterCompleted"
    ENCOUNTER_FAILED = "encounterFailed"
    LOW_MANA_WARNING = "lowManaWarning"
    CRITICAL_ROSTER_HEALTH = "criticalRosterHealth"
    SHADOW_EXTRACTED = "shadowExtracted"
    BOSS_EXTRACTION_ATTEMPTED = "bossExtractionAttempted"


__all__ = [
    "Rank",
    "Biome",
    "BehaviorProfile",
    "ShadowRole",
    "EncounterState",
    "FailureReason",
    "TicketStatus",
    "EventType",
]
