"""Pydantic V2 schemas for combatants and the shared mana pool.

This module defines the stat blocks and combatant records the engine works
on. Hostile entities and combat projections are mutable, encounter-scoped
state; friendly shadows and user contexts are immutable snapshots handed in
by collaborators.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shadow_dungeons.core.exceptions import ValidationError
from shadow_dungeons.models.enums import BehaviorProfile, Rank, ShadowRole


# =============================================================================
# Stat Blocks
# =============================================================================


class BaseStats(BaseModel):
    """Five-attribute stat block shared by hostiles and shadows.

    Attributes:
        strength: Raw damage and defense.
        agility: Critical-hit chance.
        intelligence: Spell damage.
        vitality: Hit points and defense.
        luck: Carried for collaborators; unused by the damage formula.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    strength: Annotated[float, Field(ge=0)] = 0.0
    agility: Annotated[float, Field(ge=0)] = 0.0
    intelligence: Annotated[float, Field(ge=0)] = 0.0
    vitality: Annotated[float, Field(ge=0)] = 0.0
    luck: Annotated[float, Field(ge=0)] = 0.0

    @property
    def total(self) -> float:
        """Sum of all five attributes.

        Returns:
            Total stat points.
        """
        return self.strength + self.agility + self.intelligence + self.vitality + self.luck


class UserStats(BaseModel):
    """The user's own stat block, as tracked by the leveling collaborator.

    Attributes:
        strength: User strength (also resists extraction targets).
        agility: User agility.
        intelligence: User intelligence (drives extraction chance).
        vitality: User vitality (avatar HP).
        perception: User perception (extraction stats multiplier).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    strength: Annotated[float, Field(ge=0)] = 0.0
    agility: Annotated[float, Field(ge=0)] = 0.0
    intelligence: Annotated[float, Field(ge=0)] = 0.0
    vitality: Annotated[float, Field(ge=0)] = 0.0
    perception: Annotated[float, Field(ge=0)] = 0.0

    @property
    def total(self) -> float:
        """Sum of all user attributes.

        Returns:
            Total stat points.
        """
        return (
            self.strength + self.agility + self.intelligence + self.vitality + self.perception
        )


class UserContext(BaseModel):
    """Snapshot of the user taking part in encounters.

    Attributes:
        user_id: Identifier of the user.
        rank: The user's rank.
        stats: The user's stat block.
        max_hp: Avatar HP override; derived from vitality and rank when None.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_id: str = Field(default="user", min_length=1, description="User identifier")
    rank: Rank = Field(default=Rank.E, description="User rank")
    stats: UserStats = Field(default_factory=UserStats, description="User stats")
    max_hp: int | None = Field(default=None, ge=1, description="Avatar HP override")


# =============================================================================
# Combatants
# =============================================================================


class HostileEntity(BaseModel):
    """A disposable enemy combatant, or the encounter boss.

    Attributes:
        id: Unique entity identifier.
        rank: Entity rank.
        stats: Rolled stat block.
        hp: Current hit points.
        max_hp: Maximum hit points.
        attack_cooldown_ms: Time between attacks.
        last_attack_at: Clock reading (ms) up to which attacks are consumed.
        is_boss: True for the encounter boss.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    id: str = Field(min_length=1, description="Unique entity ID")
    rank: Rank = Field(description="Entity rank")
    stats: BaseStats = Field(description="Stat block")
    hp: int = Field(description="Current HP")
    max_hp: int = Field(ge=1, description="Maximum HP")
    attack_cooldown_ms: float = Field(gt=0, description="Attack cooldown")
    last_attack_at: float = Field(description="Cooldown anchor (ms)")
    is_boss: bool = Field(default=False, description="Encounter boss flag")

    @property
    def alive(self) -> bool:
        """Check whether the entity still has HP."""
        return self.hp > 0


class FriendlyEntity(BaseModel):
    """A persistent shadow owned by the collectible store.

    Attributes:
        id: Unique shadow identifier.
        name: Display name.
        rank: Shadow rank.
        role: Class role.
        behavior: Combat behaviour profile.
        stats: Stat block (inherited from the hostile it was extracted from).
        experience: Accumulated XP, maintained by the store.
        source_hostile_id: Hostile this shadow was extracted from, if any.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1, description="Unique shadow ID")
    name: str = Field(default="Shadow", min_length=1, max_length=100)
    rank: Rank = Field(default=Rank.E)
    role: ShadowRole = Field(default=ShadowRole.KNIGHT)
    behavior: BehaviorProfile = Field(default=BehaviorProfile.BALANCED)
    stats: BaseStats = Field(default_factory=BaseStats)
    experience: float = Field(default=0.0, ge=0)
    source_hostile_id: str | None = Field(default=None)


class CombatProjection(BaseModel):
    """Encounter-scoped combat state of a friendly shadow.

    The projection is discarded on teardown; permanent growth is reported to
    collaborators through the reward sink, never written back here.

    Attributes:
        shadow: The underlying shadow record.
        hp: Current hit points.
        max_hp: Maximum hit points.
        cooldown_ms: Time between attacks.
        last_attack_at: Clock reading (ms) up to which attacks are consumed.
        mobs_killed: Hostiles finished off by this shadow.
        boss_damage: Damage dealt to the boss.
        resurrections: Times this projection was revived.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    shadow: FriendlyEntity
    hp: int
    max_hp: int = Field(ge=1)
    cooldown_ms: float = Field(gt=0)
    last_attack_at: float
    mobs_killed: int = Field(default=0, ge=0)
    boss_damage: float = Field(default=0.0, ge=0)
    resurrections: int = Field(default=0, ge=0)

    @property
    def id(self) -> str:
        """Identifier of the underlying shadow."""
        return self.shadow.id

    @property
    def rank(self) -> Rank:
        """Rank of the underlying shadow."""
        return self.shadow.rank

    @property
    def alive(self) -> bool:
        """Check whether the projection still has HP."""
        return self.hp > 0


# =============================================================================
# Shared Resources
# =============================================================================


class ManaPool(BaseModel):
    """The user's mana, shared by every concurrent encounter.

    Attributes:
        current: Current mana.
        max: Maximum mana.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    current: float = Field(default=0.0, ge=0, description="Current mana")
    max: float = Field(default=100.0, ge=0, description="Maximum mana")

    @model_validator(mode="after")
    def validate_bounds(self) -> ManaPool:
        """Ensure current mana does not exceed the maximum.

        Returns:
            Self if validation passes.

        Raises:
            ValidationError: If current > max.
        """
        if self.current > self.max:
            raise ValidationError(
                "Current mana cannot exceed maximum mana",
                field_name="current",
                invalid_value=self.current,
            )
        return self


__all__ = [
    "BaseStats",
    "UserStats",
    "UserContext",
    "HostileEntity",
    "FriendlyEntity",
    "CombatProjection",
    "ManaPool",
]
