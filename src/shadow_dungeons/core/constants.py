"""Engine-wide constants for the Shadow Dungeons engine.

This module defines the fixed game-rule numbers used by the stat model and the
reward calculation. Values that players or hosts are expected to tune
(spawn curves, extraction weights, mana costs) live in
:mod:`shadow_dungeons.core.config` instead.
"""

from __future__ import annotations

# =============================================================================
# Rank Ladder
# =============================================================================

RANK_NAMES: tuple[str, ...] = (
    "E",
    "D",
    "C",
    "B",
    "A",
    "S",
    "SS",
    "SSS",
    "SSS+",
    "NH",
    "Monarch",
    "Monarch+",
    "Shadow Monarch",
)
"""Ordered rank ladder, weakest first."""

RANK_COUNT = len(RANK_NAMES)

# =============================================================================
# Stat Baselines (value = base + per_rank * rank_index)
# =============================================================================

HOSTILE_STAT_BASELINES: dict[str, tuple[int, int]] = {
    "strength": (100, 50),
    "agility": (80, 40),
    "intelligence": (60, 30),
    "vitality": (150, 100),
    "luck": (50, 20),
}

BOSS_STAT_BASELINES: dict[str, tuple[int, int]] = {
    "strength": (50, 25),
    "agility": (30, 15),
    "intelligence": (40, 20),
    "vitality": (60, 30),
    "luck": (50, 30),
}

HOSTILE_STAT_VARIANCE = 0.15
"""Each hostile stat is independently varied by up to +/-15%."""

# =============================================================================
# Hit Points
# =============================================================================

HOSTILE_HP_BASE = 250
HOSTILE_HP_PER_VITALITY = 8
HOSTILE_HP_PER_RANK = 200
HOSTILE_HP_ROLL_RANGE = (0.70, 1.00)

BOSS_HP_BASE = 500
BOSS_HP_PER_RANK = 500

FRIENDLY_HP_BASE = 100
FRIENDLY_HP_PER_VITALITY = 10
FRIENDLY_HP_PER_RANK = 50

# =============================================================================
# Attack Cadence (milliseconds)
# =============================================================================

HOSTILE_COOLDOWN_RANGE_MS = (2000.0, 4000.0)
BOSS_ATTACK_COOLDOWN_MS = 4000.0

# =============================================================================
# Damage Formula
# =============================================================================

DAMAGE_BASE = 15
DAMAGE_PER_STRENGTH = 3
DAMAGE_PER_INTELLIGENCE = 2
RANK_ADVANTAGE_PER_TIER = 0.3
RANK_DISADVANTAGE_PER_TIER = 0.2
RANK_DISADVANTAGE_FLOOR = 0.4
CRIT_CHANCE_PER_AGILITY = 0.003
CRIT_CHANCE_CAP = 0.40
CRIT_MULTIPLIER = 2.5
DEFENSE_PER_STRENGTH = 0.25
DEFENSE_PER_VITALITY = 0.15
DEFENSE_SOFTENING = 100
DEFENSE_REDUCTION_CAP = 0.70

EFFECTIVE_POWER_PER_RANK = 0.5

BOSS_SPLASH_TARGETS: tuple[int, ...] = (1, 2, 3, 5, 8, 12)
"""Boss area-attack target counts for ranks E..S; higher ranks use the last entry."""

# =============================================================================
# Rewards
# =============================================================================

BOSS_XP_BASE = 200
BOSS_XP_PER_RANK = 100
ABSENT_BOSS_XP_FACTOR = 0.5
MOB_XP_BASE = 10
MOB_XP_PER_RANK = 5
ABSENT_MOB_XP_FACTOR = 0.3

ROSTER_XP_PER_MOB_KILL = 10
ROSTER_XP_FULL_BOSS_DAMAGE = 100
ROSTER_XP_ENCOUNTER_RANK_STEP = 0.5
ROSTER_XP_FRIENDLY_RANK_STEP = 0.3

CRITICAL_ROSTER_FRACTION = 0.25
"""Fraction of the roster alive below which a critical-health event fires."""

# =============================================================================
# Mana
# =============================================================================

MANA_BASE = 100
MANA_PER_INTELLIGENCE = 10
MANA_PER_SHADOW = 50
MANA_REGEN_FRACTION_PER_100_INT = 0.01
"""Fraction of max mana regenerated per second for every 100 intelligence."""


__all__ = [
    "RANK_NAMES",
    "RANK_COUNT",
    "HOSTILE_STAT_BASELINES",
    "BOSS_STAT_BASELINES",
    "HOSTILE_STAT_VARIANCE",
    "HOSTILE_HP_BASE",
    "HOSTILE_HP_PER_VITALITY",
    "HOSTILE_HP_PER_RANK",
    "HOSTILE_HP_ROLL_RANGE",
    "BOSS_HP_BASE",
    "BOSS_HP_PER_RANK",
    "FRIENDLY_HP_BASE",
    "FRIENDLY_HP_PER_VITALITY",
    "FRIENDLY_HP_PER_RANK",
    "HOSTILE_COOLDOWN_RANGE_MS",
    "BOSS_ATTACK_COOLDOWN_MS",
    "DAMAGE_BASE",
    "DAMAGE_PER_STRENGTH",
    "DAMAGE_PER_INTELLIGENCE",
    "RANK_ADVANTAGE_PER_TIER",
    "RANK_DISADVANTAGE_PER_TIER",
    "RANK_DISADVANTAGE_FLOOR",
    "CRIT_CHANCE_PER_AGILITY",
    "CRIT_CHANCE_CAP",
    "CRIT_MULTIPLIER",
    "DEFENSE_PER_STRENGTH",
    "DEFENSE_PER_VITALITY",
    "DEFENSE_SOFTENING",
    "DEFENSE_REDUCTION_CAP",
    "EFFECTIVE_POWER_PER_RANK",
    "BOSS_SPLASH_TARGETS",
    "BOSS_XP_BASE",
    "BOSS_XP_PER_RANK",
    "ABSENT_BOSS_XP_FACTOR",
    "MOB_XP_BASE",
    "MOB_XP_PER_RANK",
    "ABSENT_MOB_XP_FACTOR",
    "ROSTER_XP_PER_MOB_KILL",
    "ROSTER_XP_FULL_BOSS_DAMAGE",
    "ROSTER_XP_ENCOUNTER_RANK_STEP",
    "ROSTER_XP_FRIENDLY_RANK_STEP",
    "CRITICAL_ROSTER_FRACTION",
    "MANA_BASE",
    "MANA_PER_INTELLIGENCE",
    "MANA_PER_SHADOW",
    "MANA_REGEN_FRACTION_PER_100_INT",
]
