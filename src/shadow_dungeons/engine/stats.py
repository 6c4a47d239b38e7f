"""Entity stat model: derived combat numbers from attributes and rank.

All functions here are pure apart from the draws they take from the
:class:`VarianceRng` they are given. The combat batch scheduler, the
population controller and the lifecycle build every combatant through them.
"""

from __future__ import annotations

import math
from uuid import uuid4

from shadow_dungeons.core.constants import (
    BOSS_ATTACK_COOLDOWN_MS,
    BOSS_HP_BASE,
    BOSS_HP_PER_RANK,
    BOSS_SPLASH_TARGETS,
    BOSS_STAT_BASELINES,
    CRIT_CHANCE_CAP,
    CRIT_CHANCE_PER_AGILITY,
    CRIT_MULTIPLIER,
    DAMAGE_BASE,
    DAMAGE_PER_INTELLIGENCE,
    DAMAGE_PER_STRENGTH,
    DEFENSE_PER_STRENGTH,
    DEFENSE_PER_VITALITY,
    DEFENSE_REDUCTION_CAP,
    DEFENSE_SOFTENING,
    EFFECTIVE_POWER_PER_RANK,
    FRIENDLY_HP_BASE,
    FRIENDLY_HP_PER_RANK,
    FRIENDLY_HP_PER_VITALITY,
    HOSTILE_COOLDOWN_RANGE_MS,
    HOSTILE_HP_BASE,
    HOSTILE_HP_PER_RANK,
    HOSTILE_HP_PER_VITALITY,
    HOSTILE_HP_ROLL_RANGE,
    HOSTILE_STAT_BASELINES,
    HOSTILE_STAT_VARIANCE,
    RANK_ADVANTAGE_PER_TIER,
    RANK_DISADVANTAGE_FLOOR,
    RANK_DISADVANTAGE_PER_TIER,
)
from shadow_dungeons.engine.rng import VarianceRng
from shadow_dungeons.models import (
    BaseStats,
    BehaviorProfile,
    Biome,
    CombatProjection,
    FriendlyEntity,
    HostileEntity,
    Rank,
    ShadowRole,
    UserStats,
)


# =============================================================================
# Stat Blocks
# =============================================================================


def hostile_baseline(rank: Rank) -> BaseStats:
    """Get the unvaried stat block of a hostile at ``rank``.

    Args:
        rank: Hostile rank.

    Returns:
        Baseline stats (base + per-rank growth).
    """
    i = rank.index
    return BaseStats(
        **{name: base + per_rank * i for name, (base, per_rank) in HOSTILE_STAT_BASELINES.items()}
    )


def roll_hostile_stats(rank: Rank, rng: VarianceRng) -> BaseStats:
    """Roll a hostile's stats, each varied independently by +/-15%.

    Draws one value per attribute in the order strength, agility,
    intelligence, vitality, luck.
    """
    baseline = hostile_baseline(rank)
    return BaseStats(
        **{
            name: max(0.0, rng.jitter(value, HOSTILE_STAT_VARIANCE))
            for name, value in baseline.model_dump().items()
        }
    )


def boss_stats(rank: Rank) -> BaseStats:
    """Get the stat block of a boss at ``rank``."""
    i = rank.index
    return BaseStats(
        **{name: base + per_rank * i for name, (base, per_rank) in BOSS_STAT_BASELINES.items()}
    )


# =============================================================================
# Hit Points
# =============================================================================


def hostile_max_hp(stats: BaseStats, rank: Rank, rng: VarianceRng) -> int:
    """Roll a hostile's maximum HP.

    The formula is ``(250 + VIT*8 + 200*rank) * U(0.70, 1.00)``.

    Args:
        stats: The hostile's rolled stats.
        rank: The hostile's rank.
        rng: Variance source (one draw).

    Returns:
        Maximum HP, at least 1.
    """
    base = (
        HOSTILE_HP_BASE
        + stats.vitality * HOSTILE_HP_PER_VITALITY
        + HOSTILE_HP_PER_RANK * rank.index
    )
    return max(1, math.floor(base * rng.uniform(*HOSTILE_HP_ROLL_RANGE)))


def boss_max_hp(rank: Rank, biome: Biome, expected_roster: int) -> int:
    """Compute the boss HP budget.

    The boss scales with the number of shadows sent against it, so a large
    army does not flatten it in one tick.

    Args:
        rank: Encounter rank.
        biome: Encounter biome.
        expected_roster: Number of shadows allocated to the encounter.

    Returns:
        Maximum HP of the boss.
    """
    return (
        BOSS_HP_BASE
        + BOSS_HP_PER_RANK * rank.index
        + max(0, expected_roster) * biome.boss_hp_per_shadow
    )


def friendly_max_hp(vitality: float, rank: Rank) -> int:
    """Compute a shadow's (or the user avatar's) maximum HP."""
    hp = FRIENDLY_HP_BASE + vitality * FRIENDLY_HP_PER_VITALITY + FRIENDLY_HP_PER_RANK * rank.index
    return max(1, math.floor(hp))


# =============================================================================
# Damage
# =============================================================================


def _rank_factor(attacker_rank: Rank, defender_rank: Rank) -> float:
    diff = attacker_rank.index - defender_rank.index
    if diff > 0:
        return 1.0 + RANK_ADVANTAGE_PER_TIER * diff
    if diff < 0:
        return max(RANK_DISADVANTAGE_FLOOR, 1.0 + RANK_DISADVANTAGE_PER_TIER * diff)
    return 1.0


def calculate_damage(
    attacker: BaseStats | UserStats,
    attacker_rank: Rank,
    defender: BaseStats | UserStats,
    defender_rank: Rank,
    rng: VarianceRng,
    *,
    multiplier: float = 1.0,
    variance: tuple[float, float] = (0.8, 1.2),
) -> int:
    """Resolve the damage of one attack.

    Raw damage is ``15 + 3*STR + 2*INT``, scaled by the rank factor, the
    caller's multiplier (role and behaviour) and a uniform variance roll,
    then by a critical hit if one lands, and finally reduced by the
    defender's softened defense.

    Draws two values: the variance roll, then the critical roll.

    Args:
        attacker: Attacker stats.
        attacker_rank: Attacker rank.
        defender: Defender stats.
        defender_rank: Defender rank.
        rng: Variance source.
        multiplier: Extra damage multiplier.
        variance: Range of the per-attack damage roll.

    Returns:
        Damage dealt, at least 1.
    """
    raw = (
        DAMAGE_BASE
        + attacker.strength * DAMAGE_PER_STRENGTH
        + attacker.intelligence * DAMAGE_PER_INTELLIGENCE
    )
    damage = raw * _rank_factor(attacker_rank, defender_rank) * multiplier
    damage *= rng.uniform(*variance)

    crit_chance = min(CRIT_CHANCE_CAP, attacker.agility * CRIT_CHANCE_PER_AGILITY)
    if rng.chance(crit_chance):
        damage *= CRIT_MULTIPLIER

    defense = defender.strength * DEFENSE_PER_STRENGTH + defender.vitality * DEFENSE_PER_VITALITY
    reduction = 0.0
    if defense > 0:
        reduction = min(DEFENSE_REDUCTION_CAP, defense / (defense + DEFENSE_SOFTENING))
    return max(1, math.floor(damage * (1.0 - reduction)))


def effective_power(stats: BaseStats, rank: Rank) -> float:
    """Total stats scaled by rank, used to rank shadows by strength."""
    return stats.total * (1.0 + EFFECTIVE_POWER_PER_RANK * rank.index)


def boss_splash_targets(rank: Rank) -> int:
    """Number of shadows one boss attack hits at ``rank``."""
    return BOSS_SPLASH_TARGETS[min(rank.index, len(BOSS_SPLASH_TARGETS) - 1)]


def behavior_damage_multiplier(behavior: BehaviorProfile) -> float:
    return behavior.damage_multiplier


def role_damage_multiplier(role: ShadowRole) -> float:
    return role.damage_multiplier


# =============================================================================
# Factories
# =============================================================================


def project_friendly(shadow: FriendlyEntity, rng: VarianceRng, now: float) -> CombatProjection:
    """Build the encounter-scoped combat projection of a shadow.

    The cooldown is drawn from the behaviour profile's range, and the first
    attack is staggered randomly within one cooldown so a freshly deployed
    roster does not strike in lockstep.

    Args:
        shadow: The shadow to deploy.
        rng: Variance source (two draws).
        now: Current clock reading (ms).

    Returns:
        A full-HP projection.
    """
    max_hp = friendly_max_hp(shadow.stats.vitality, shadow.rank)
    cooldown = rng.uniform(*shadow.behavior.cooldown_range_ms)
    return CombatProjection(
        shadow=shadow,
        hp=max_hp,
        max_hp=max_hp,
        cooldown_ms=cooldown,
        last_attack_at=now - rng.uniform(0.0, cooldown),
    )


def create_hostile(encounter_rank: Rank, rng: VarianceRng, now: float) -> HostileEntity:
    """Spawn one mob around the encounter rank.

    The mob's rank is the encounter rank shifted by -1, 0 or +1 (uniformly),
    clamped to the ladder.

    Args:
        encounter_rank: Rank of the encounter.
        rng: Variance source.
        now: Current clock reading (ms).

    Returns:
        A full-HP hostile whose cooldown starts now.
    """
    rank = encounter_rank.offset(rng.randint(-1, 1))
    stats = roll_hostile_stats(rank, rng)
    max_hp = hostile_max_hp(stats, rank, rng)
    return HostileEntity(
        id=f"mob_{uuid4().hex[:12]}",
        rank=rank,
        stats=stats,
        hp=max_hp,
        max_hp=max_hp,
        attack_cooldown_ms=rng.uniform(*HOSTILE_COOLDOWN_RANGE_MS),
        last_attack_at=now,
    )


def create_boss(rank: Rank, biome: Biome, expected_roster: int, now: float) -> HostileEntity:
    """Create the encounter boss."""
    max_hp = boss_max_hp(rank, biome, expected_roster)
    return HostileEntity(
        id=f"boss_{uuid4().hex[:12]}",
        rank=rank,
        stats=boss_stats(rank),
        hp=max_hp,
        max_hp=max_hp,
        attack_cooldown_ms=BOSS_ATTACK_COOLDOWN_MS,
        last_attack_at=now,
        is_boss=True,
    )


__all__ = [
    "hostile_baseline",
    "roll_hostile_stats",
    "boss_stats",
    "hostile_max_hp",
    "boss_max_hp",
    "friendly_max_hp",
    "calculate_damage",
    "effective_power",
    "boss_splash_targets",
    "behavior_damage_multiplier",
    "role_damage_multiplier",
    "project_friendly",
    "create_hostile",
    "create_boss",
]
