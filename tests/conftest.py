"""Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the Shadow Dungeons test suite.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Iterable

import pytest

from shadow_dungeons.collaborators import (
    InMemoryCollectibleStore,
    InMemoryManaPool,
    ParticipationFlags,
    ReadRetryPolicy,
    RecordingNotificationSink,
    RecordingRewardSink,
)
from shadow_dungeons.core.config import (
    CollaboratorSettings,
    CombatSettings,
    Settings,
    clear_settings_cache,
)
from shadow_dungeons.engine.rng import VarianceRng
from shadow_dungeons.models import (
    BaseStats,
    BehaviorProfile,
    Biome,
    CombatProjection,
    Encounter,
    EncounterState,
    FriendlyEntity,
    HostileEntity,
    Rank,
    ShadowRole,
    UserContext,
    UserStats,
)


if TYPE_CHECKING:
    from collections.abc import Generator


# =============================================================================
# Test Doubles
# =============================================================================


class ScriptedRandom:
    """Random source replaying a fixed list of draws, then a default value.

    0.5 is the neutral default: damage and cooldown variance land on 1.0,
    no critical hit lands and friendly attacks go to mobs.
    """

    def __init__(self, values: Iterable[float] = (), default: float = 0.5) -> None:
        self.values = list(values)
        self.default = default
        self.draws = 0

    def random(self) -> float:
        self.draws += 1
        if self.values:
            return self.values.pop(0)
        return self.default

    def push(self, *values: float) -> None:
        self.values.extend(values)


class ManualClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Reset the settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def fast_settings() -> Settings:
    """Engine settings with instant retries and no cooldown jitter.

    Returns:
        Settings instance for deterministic tests.
    """
    return Settings(
        combat=CombatSettings(cooldown_variance_min=1.0, cooldown_variance_max=1.0),
        collaborator=CollaboratorSettings(
            retry_attempts=3,
            retry_wait_multiplier_s=0.0,
            retry_wait_min_s=0.0,
            retry_wait_max_s=0.0,
        ),
    )


@pytest.fixture
def retry_policy(fast_settings: Settings) -> ReadRetryPolicy:
    """Provide a collaborator read retry policy that never sleeps."""
    return ReadRetryPolicy(fast_settings.collaborator)


# =============================================================================
# Randomness Fixtures
# =============================================================================


@pytest.fixture
def scripted() -> ScriptedRandom:
    """Provide an empty scripted random source (always 0.5)."""
    return ScriptedRandom()


@pytest.fixture
def rng(scripted: ScriptedRandom) -> VarianceRng:
    """Provide a VarianceRng over the scripted source."""
    return VarianceRng(scripted)


@pytest.fixture
def clock() -> ManualClock:
    """Provide a manual clock starting at t=0."""
    return ManualClock()


# =============================================================================
# Model Fixtures
# =============================================================================


@pytest.fixture
def sample_user() -> UserContext:
    """Provide a mid-rank user with balanced stats."""
    return UserContext(
        user_id="user-1",
        rank=Rank.C,
        stats=UserStats(strength=120, agility=90, intelligence=150, vitality=100, perception=80),
    )


@pytest.fixture
def extraction_user() -> UserContext:
    """Provide the E-rank user with INT 600, PER 181 and STR 693.

    Against an E-rank target with STR 200 this user's extraction chance is
    about 0.1179.
    """
    return UserContext(
        user_id="arise-user",
        rank=Rank.E,
        stats=UserStats(strength=693, intelligence=600, perception=181),
    )


@pytest.fixture
def make_shadow() -> Callable[..., FriendlyEntity]:
    """Provide a factory of friendly shadows.

    Returns:
        Callable building a FriendlyEntity from keyword overrides.
    """
    counter = {"n": 0}

    def factory(
        *,
        rank: Rank = Rank.E,
        role: ShadowRole = ShadowRole.KNIGHT,
        behavior: BehaviorProfile = BehaviorProfile.BALANCED,
        strength: float = 100,
        agility: float = 0,
        intelligence: float = 0,
        vitality: float = 50,
        shadow_id: str | None = None,
    ) -> FriendlyEntity:
        counter["n"] += 1
        return FriendlyEntity(
            id=shadow_id or f"shadow-{counter['n']}",
            name=f"Shadow {counter['n']}",
            rank=rank,
            role=role,
            behavior=behavior,
            stats=BaseStats(
                strength=strength,
                agility=agility,
                intelligence=intelligence,
                vitality=vitality,
            ),
        )

    return factory


@pytest.fixture
def make_hostile() -> Callable[..., HostileEntity]:
    """Provide a factory of hostile entities with fixed stats."""
    counter = {"n": 0}

    def factory(
        *,
        rank: Rank = Rank.E,
        hp: int = 100,
        strength: float = 200,
        agility: float = 0,
        vitality: float = 0,
        cooldown_ms: float = 3000.0,
        last_attack_at: float = 0.0,
        is_boss: bool = False,
        hostile_id: str | None = None,
    ) -> HostileEntity:
        counter["n"] += 1
        return HostileEntity(
            id=hostile_id or f"mob-{counter['n']}",
            rank=rank,
            stats=BaseStats(strength=strength, agility=agility, vitality=vitality),
            hp=hp,
            max_hp=max(1, hp),
            attack_cooldown_ms=cooldown_ms,
            last_attack_at=last_attack_at,
            is_boss=is_boss,
        )

    return factory


@pytest.fixture
def make_projection(
    make_shadow: Callable[..., FriendlyEntity],
) -> Callable[..., CombatProjection]:
    """Provide a factory of combat projections with a fixed cooldown."""

    def factory(
        *,
        shadow: FriendlyEntity | None = None,
        hp: int = 600,
        max_hp: int = 600,
        cooldown_ms: float = 1000.0,
        last_attack_at: float = 0.0,
        **shadow_fields: object,
    ) -> CombatProjection:
        return CombatProjection(
            shadow=shadow or make_shadow(**shadow_fields),
            hp=hp,
            max_hp=max_hp,
            cooldown_ms=cooldown_ms,
            last_attack_at=last_attack_at,
        )

    return factory


@pytest.fixture
def make_encounter(make_hostile: Callable[..., HostileEntity]) -> Callable[..., Encounter]:
    """Provide a factory of Active encounters built from explicit parts.

    Returns:
        Callable building an Encounter from keyword overrides.
    """

    def factory(
        *,
        encounter_id: str = "dng-1",
        rank: Rank = Rank.E,
        biome: Biome = Biome.VOLCANO,
        user: UserContext | None = None,
        roster: list[CombatProjection] | None = None,
        mobs: list[HostileEntity] | None = None,
        boss: HostileEntity | None = None,
        boss_hp: int = 100000,
        soft_cap: int = 3000,
        participating: bool = True,
        user_hp: int = 500,
        state: EncounterState = EncounterState.ACTIVE,
        created_at: float = 0.0,
    ) -> Encounter:
        return Encounter(
            id=encounter_id,
            rank=rank,
            biome=biome,
            created_at=created_at,
            state=state,
            user=user or UserContext(),
            user_participating=participating,
            soft_cap=soft_cap,
            hostile_population=list(mobs or []),
            boss=boss
            or make_hostile(
                hp=boss_hp,
                strength=0,
                cooldown_ms=4000.0,
                is_boss=True,
                hostile_id="boss",
            ),
            roster=list(roster or []),
            user_hp=user_hp,
            user_max_hp=max(1, user_hp),
            combat_started_at=created_at,
        )

    return factory


# =============================================================================
# Collaborator Fixtures
# =============================================================================


@pytest.fixture
def collectible_store() -> InMemoryCollectibleStore:
    """Provide an empty in-memory collectible store."""
    return InMemoryCollectibleStore()


@pytest.fixture
def mana_pool() -> InMemoryManaPool:
    """Provide a mana pool with 1000 mana."""
    return InMemoryManaPool(current=1000)


@pytest.fixture
def notifications() -> RecordingNotificationSink:
    """Provide a notification sink that records events."""
    return RecordingNotificationSink()


@pytest.fixture
def rewards() -> RecordingRewardSink:
    """Provide a reward sink that records reports."""
    return RecordingRewardSink()


@pytest.fixture
def participation() -> ParticipationFlags:
    """Provide participation flags with no opinion by default."""
    return ParticipationFlags()
