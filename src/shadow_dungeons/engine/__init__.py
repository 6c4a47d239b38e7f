"""Encounter engine for Shadow Dungeons.

This module runs dungeon encounters between a user's shadow army and a
growing hostile population: batched combat, population control, shadow
extraction, resurrection and the encounter lifecycle.

Submodules:
    rng: Variance source shared by every random draw
    stats: Stat model, damage formula and entity factories
    population: Soft-capped hostile population control
    scheduler: Cooldown-driven combat batch resolution
    extraction: Two-stage shadow extraction pipeline
    resurrection: Mana-funded revival of fallen shadows
    timers: Named, group-cancellable encounter timers
    registry: Encounter registry and roster allocation
    rewards: XP calculation at teardown
    lifecycle: The encounter state machine tying it all together

Example:
    >>> from shadow_dungeons.engine import EncounterLifecycle
    >>>
    >>> lifecycle = EncounterLifecycle(auto_schedule=False)
    >>> encounter = await lifecycle.spawn_encounter(user, army)
    >>> result = await lifecycle.combat_tick(encounter.id)
    >>> print(result.attacks_resolved)
"""

from __future__ import annotations

# =============================================================================
# Randomness and Stat Model
# =============================================================================
from shadow_dungeons.engine.rng import RandomSource, VarianceRng
from shadow_dungeons.engine.stats import (
    boss_max_hp,
    calculate_damage,
    create_boss,
    create_hostile,
    effective_power,
    friendly_max_hp,
    hostile_max_hp,
    project_friendly,
)

# =============================================================================
# Engine Components
# =============================================================================
from shadow_dungeons.engine.population import PopulationController
from shadow_dungeons.engine.scheduler import CombatBatchScheduler
from shadow_dungeons.engine.extraction import ExtractionPipeline, calculate_extraction_chance
from shadow_dungeons.engine.resurrection import ResurrectionEconomy
from shadow_dungeons.engine.timers import EncounterTimers, monotonic_ms

# =============================================================================
# Lifecycle
# =============================================================================
from shadow_dungeons.engine.registry import EncounterRegistry
from shadow_dungeons.engine.rewards import calculate_rewards
from shadow_dungeons.engine.lifecycle import EncounterLifecycle


__all__ = [
    # Randomness and stats
    "RandomSource",
    "VarianceRng",
    "boss_max_hp",
    "calculate_damage",
    "create_boss",
    "create_hostile",
    "effective_power",
    "friendly_max_hp",
    "hostile_max_hp",
    "project_friendly",
    # Components
    "PopulationController",
    "CombatBatchScheduler",
    "ExtractionPipeline",
    "calculate_extraction_chance",
    "ResurrectionEconomy",
    "EncounterTimers",
    "monotonic_ms",
    # Lifecycle
    "EncounterRegistry",
    "calculate_rewards",
    "EncounterLifecycle",
]
