"""Pydantic V2 schemas for encounters and their bookkeeping records.

This module defines the encounter record owned by the registry, the
extraction tickets flowing through the extraction pipeline, and the result
records produced by the scheduler, the pipeline, the resurrection economy and
the lifecycle.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, computed_field

from shadow_dungeons.models.entities import CombatProjection, HostileEntity, UserContext
from shadow_dungeons.models.enums import (
    Biome,
    EncounterState,
    FailureReason,
    Rank,
    TicketStatus,
)


# =============================================================================
# Extraction
# =============================================================================


class ExtractionTicket(BaseModel):
    """A defeated hostile waiting for extraction attempts.

    Attributes:
        hostile_entity_id: Identifier of the defeated hostile.
        snapshot: The hostile as it was when it died.
        attempts: Attempts made so far.
        status: Pending until success or exhaustion.
        enqueued_at: Clock reading (ms) at death; the FIFO key.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    hostile_entity_id: str = Field(min_length=1)
    snapshot: HostileEntity
    attempts: Annotated[int, Field(ge=0)] = 0
    status: TicketStatus = TicketStatus.PENDING
    enqueued_at: float


class ConversionResult(BaseModel):
    """Reply of the collectible store to a conversion request.

    Attributes:
        success: The store's own success signal.
        collectible_id: Identifier of the new shadow, when one was created.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    success: bool
    collectible_id: str | None = None


class ExtractionReport(BaseModel):
    """Outcome of one extraction processing pass.

    Attributes:
        attempted: Tickets attempted in this pass.
        extracted: Hostile ids converted into shadows.
        exhausted: Hostile ids that used up every attempt.
        requeued: Hostile ids sent (back) to the retry queue.
        dropped: Hostile ids abandoned because the user left or the
            encounter ended while their attempt was in flight.
        errors: Attempts that raised and were counted as failures.
        inconsistencies: Attempts whose two success signals disagreed.
    """

    model_config = ConfigDict(extra="forbid")

    attempted: int = 0
    extracted: list[str] = Field(default_factory=list)
    exhausted: list[str] = Field(default_factory=list)
    requeued: list[str] = Field(default_factory=list)
    dropped: list[str] = Field(default_factory=list)
    errors: int = 0
    inconsistencies: int = 0

    def merge(self, other: ExtractionReport) -> None:
        """Fold another report into this one."""
        self.attempted += other.attempted
        self.extracted.extend(other.extracted)
        self.exhausted.extend(other.exhausted)
        self.requeued.extend(other.requeued)
        self.dropped.extend(other.dropped)
        self.errors += other.errors
        self.inconsistencies += other.inconsistencies


class BossGrace(BaseModel):
    """Bookkeeping for the post-boss bonus extraction window.

    Attributes:
        started_at: Clock reading (ms) when the boss fell.
        max_attempts: ARISE attempts allowed.
        attempts_used: ARISE attempts made.
        extracted: Whether the boss was converted.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    started_at: float
    max_attempts: int = Field(ge=1)
    attempts_used: int = Field(default=0, ge=0)
    extracted: bool = False

    @property
    def resolved(self) -> bool:
        """Check whether no further ARISE attempt can change the outcome."""
        return self.extracted or self.attempts_used >= self.max_attempts


# =============================================================================
# Combat Results
# =============================================================================


class BatchResult(BaseModel):
    """Outcome of one combat batch tick.

    Attributes:
        now: The clock snapshot the tick was computed from.
        attacks_resolved: Attacks resolved across all combatants.
        damage_to_hostiles: Damage applied to mobs and boss.
        damage_to_roster: Damage applied to friendly projections.
        damage_to_user: Damage applied to the user's avatar.
        hostile_deaths: Mob ids that died this tick.
        friendly_deaths: Shadow ids whose projection died this tick.
        boss_defeated: Whether the boss died this tick.
        skipped: Combatant ids whose attack resolution failed.
    """

    model_config = ConfigDict(extra="forbid")

    now: float
    attacks_resolved: int = 0
    damage_to_hostiles: int = 0
    damage_to_roster: int = 0
    damage_to_user: int = 0
    hostile_deaths: list[str] = Field(default_factory=list)
    friendly_deaths: list[str] = Field(default_factory=list)
    boss_defeated: bool = False
    skipped: list[str] = Field(default_factory=list)


class ResurrectionReport(BaseModel):
    """Outcome of one resurrection batch.

    Attributes:
        revived: Shadow ids revived, in priority order.
        left_dead: Shadow ids that could not be revived.
        mana_spent: Mana deducted for this batch.
    """

    model_config = ConfigDict(extra="forbid")

    revived: list[str] = Field(default_factory=list)
    left_dead: list[str] = Field(default_factory=list)
    mana_spent: float = 0.0


# =============================================================================
# Encounter
# =============================================================================


class EncounterStats(BaseModel):
    """Running counters of an encounter.

    Attributes:
        mobs_spawned: Hostiles created by the population controller.
        mobs_killed: Hostiles defeated.
        attacks_resolved: Attacks resolved by the scheduler.
        extractions_succeeded: Hostiles converted into shadows.
        extractions_failed: Hostiles that exhausted their attempts.
        extraction_inconsistencies: Attempts whose success signals disagreed.
        resurrections: Friendly projections revived.
        resurrections_failed: Revivals refused for lack of mana.
        combat_errors: Combatants skipped after a failed resolution.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    mobs_spawned: int = 0
    mobs_killed: int = 0
    attacks_resolved: int = 0
    extractions_succeeded: int = 0
    extractions_failed: int = 0
    extraction_inconsistencies: int = 0
    resurrections: int = 0
    resurrections_failed: int = 0
    combat_errors: int = 0


class Encounter(BaseModel):
    """One active dungeon instance.

    Attributes:
        id: Unique encounter identifier.
        rank: Encounter rank.
        biome: Encounter biome.
        created_at: Clock reading (ms) at creation.
        state: Lifecycle state.
        user: Snapshot of the participating user.
        user_participating: Gates extraction and reward scaling.
        foreground: Whether the host is showing this encounter.
        soft_cap: Hostile population target for this encounter.
        hostile_population: Mobs, alive or awaiting extraction.
        boss: The encounter boss.
        roster: Combat projections of the allocated shadows.
        user_hp: The user's avatar HP.
        user_max_hp: The user's avatar maximum HP.
        pending_extractions: Immediate-stage accumulator.
        extraction_queue: Retry queue ordered by enqueue time.
        grace: Boss grace window state, once the boss fell.
        combat_started_at: Clock reading (ms) when combat began.
        last_tick_at: Clock reading (ms) of the last combat tick.
        critical_roster_notified: Whether the critical-health event fired.
        failure_reason: Why the encounter failed, if it did.
        stats: Running counters.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    id: str = Field(min_length=1)
    rank: Rank
    biome: Biome
    created_at: float
    state: EncounterState = EncounterState.SPAWNING
    user: UserContext
    user_participating: bool = True
    foreground: bool = True
    soft_cap: int = Field(ge=1)
    hostile_population: list[HostileEntity] = Field(default_factory=list)
    boss: HostileEntity
    roster: list[CombatProjection] = Field(default_factory=list)
    user_hp: int = 0
    user_max_hp: int = Field(default=1, ge=1)
    pending_extractions: list[ExtractionTicket] = Field(default_factory=list)
    extraction_queue: list[ExtractionTicket] = Field(default_factory=list)
    grace: BossGrace | None = None
    combat_started_at: float | None = None
    last_tick_at: float | None = None
    critical_roster_notified: bool = False
    failure_reason: FailureReason | None = None
    stats: EncounterStats = Field(default_factory=EncounterStats)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def alive_hostile_count(self) -> int:
        """Count living mobs, excluding the boss.

        Returns:
            Number of mobs with HP left.
        """
        return sum(1 for hostile in self.hostile_population if hostile.hp > 0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def alive_roster_count(self) -> int:
        """Count living friendly projections.

        Returns:
            Number of projections with HP left.
        """
        return sum(1 for projection in self.roster if projection.hp > 0)

    @property
    def boss_alive(self) -> bool:
        """Check whether the boss still stands."""
        return self.boss.hp > 0

    def find_hostile(self, hostile_id: str) -> HostileEntity | None:
        """Look up a mob by id."""
        for hostile in self.hostile_population:
            if hostile.id == hostile_id:
                return hostile
        return None

    def find_projection(self, shadow_id: str) -> CombatProjection | None:
        """Look up a friendly projection by shadow id."""
        for projection in self.roster:
            if projection.id == shadow_id:
                return projection
        return None


class RewardReport(BaseModel):
    """Payload handed to the reward sink at teardown.

    Attributes:
        encounter_id: The finished encounter.
        outcome: Completed or Failed.
        failure_reason: Why the encounter failed, if it did.
        user_xp: XP awarded to the user.
        roster_xp_share: XP per shadow id.
        combat_time_credit_ms: Time spent in combat.
        boss_extracted: Whether the boss joined the army.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    encounter_id: str
    outcome: EncounterState
    failure_reason: FailureReason | None = None
    user_xp: int = Field(default=0, ge=0)
    roster_xp_share: dict[str, int] = Field(default_factory=dict)
    combat_time_credit_ms: float = Field(default=0.0, ge=0)
    boss_extracted: bool = False


__all__ = [
    "ExtractionTicket",
    "ConversionResult",
    "ExtractionReport",
    "BossGrace",
    "BatchResult",
    "ResurrectionReport",
    "EncounterStats",
    "Encounter",
    "RewardReport",
]
