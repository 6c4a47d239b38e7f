"""Reward calculation at encounter teardown."""

from __future__ import annotations

import math

from shadow_dungeons.core.constants import (
    ABSENT_BOSS_XP_FACTOR,
    ABSENT_MOB_XP_FACTOR,
    BOSS_XP_BASE,
    BOSS_XP_PER_RANK,
    MOB_XP_BASE,
    MOB_XP_PER_RANK,
    ROSTER_XP_ENCOUNTER_RANK_STEP,
    ROSTER_XP_FRIENDLY_RANK_STEP,
    ROSTER_XP_FULL_BOSS_DAMAGE,
    ROSTER_XP_PER_MOB_KILL,
)
from shadow_dungeons.models import (
    CombatProjection,
    Encounter,
    EncounterState,
    FailureReason,
    RewardReport,
)


def user_xp(encounter: Encounter) -> int:
    """XP for the user when the boss fell.

    A present user earns the full boss reward. An absent one earns half of
    it plus a reduced share per mob killed.
    """
    i = encounter.rank.index
    boss_xp = BOSS_XP_BASE + BOSS_XP_PER_RANK * i
    if encounter.user_participating:
        return boss_xp
    mob_xp = (
        (MOB_XP_BASE + MOB_XP_PER_RANK * i) * ABSENT_MOB_XP_FACTOR * encounter.stats.mobs_killed
    )
    return math.floor(boss_xp * ABSENT_BOSS_XP_FACTOR) + math.floor(mob_xp)


def roster_xp(encounter: Encounter, projection: CombatProjection) -> int:
    """XP share of one shadow, scaled by encounter and shadow rank."""
    boss_share = min(1.0, projection.boss_damage / encounter.boss.max_hp)
    base = (
        projection.mobs_killed * ROSTER_XP_PER_MOB_KILL + boss_share * ROSTER_XP_FULL_BOSS_DAMAGE
    )
    encounter_scale = 1.0 + ROSTER_XP_ENCOUNTER_RANK_STEP * encounter.rank.index
    shadow_scale = 1.0 + ROSTER_XP_FRIENDLY_RANK_STEP * projection.rank.index
    return round(base * encounter_scale * shadow_scale)


def calculate_rewards(
    encounter: Encounter,
    outcome: EncounterState,
    now: float,
    *,
    failure_reason: FailureReason | None = None,
) -> RewardReport:
    """Build the reward report of a finished encounter.

    Failed encounters earn nothing but their combat time.

    Args:
        encounter: The finished encounter.
        outcome: Completed or Failed.
        now: Teardown clock reading (ms).
        failure_reason: Why the encounter failed, if it did.

    Returns:
        The report for the reward sink.
    """
    started = encounter.combat_started_at if encounter.combat_started_at is not None else now
    credit = max(0.0, now - started)
    boss_extracted = encounter.grace is not None and encounter.grace.extracted
    if outcome != EncounterState.COMPLETED:
        return RewardReport(
            encounter_id=encounter.id,
            outcome=outcome,
            failure_reason=failure_reason,
            combat_time_credit_ms=credit,
        )

    shares: dict[str, int] = {}
    for projection in encounter.roster:
        shares[projection.id] = shares.get(projection.id, 0) + roster_xp(encounter, projection)
    return RewardReport(
        encounter_id=encounter.id,
        outcome=outcome,
        user_xp=user_xp(encounter),
        roster_xp_share=shares,
        combat_time_credit_ms=credit,
        boss_extracted=boss_extracted,
    )


__all__ = ["user_xp", "roster_xp", "calculate_rewards"]
