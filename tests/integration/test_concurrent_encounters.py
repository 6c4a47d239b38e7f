"""Integration tests for encounters running on real timers.

Intervals are shrunk to milliseconds so whole encounters play out in a
fraction of a second on the event loop.
"""

from __future__ import annotations

import asyncio

import pytest

from shadow_dungeons.collaborators import (
    InMemoryCollectibleStore,
    InMemoryManaPool,
    RecordingNotificationSink,
    RecordingRewardSink,
)
from shadow_dungeons.core.config import (
    CombatSettings,
    ExtractionSettings,
    LifecycleSettings,
    PopulationSettings,
    Settings,
)
from shadow_dungeons.engine import EncounterLifecycle, VarianceRng
from shadow_dungeons.models import (
    BaseStats,
    Biome,
    EventType,
    FailureReason,
    FriendlyEntity,
    Rank,
    UserContext,
    UserStats,
)


@pytest.fixture
def quick_settings(fast_settings: Settings) -> Settings:
    """Settings with millisecond timers."""
    return Settings(
        combat=CombatSettings(foreground_tick_ms=5, background_tick_ms=10),
        population=PopulationSettings(tick_ms=10, soft_cap=40),
        extraction=ExtractionSettings(debounce_ms=1, retry_interval_ms=5),
        lifecycle=LifecycleSettings(grace_window_ms=30, max_duration_ms=150),
        collaborator=fast_settings.collaborator,
    )


@pytest.fixture
def army() -> list[FriendlyEntity]:
    """Provide a small army."""
    return [
        FriendlyEntity(
            id=f"shadow-{index}",
            name=f"Shadow {index}",
            rank=Rank.E,
            stats=BaseStats(strength=120, agility=60, vitality=100),
        )
        for index in range(6)
    ]


class TestScheduledEncounters:
    """Test encounters driven by their own timers."""

    def test_encounter_ends_on_its_own(
        self,
        quick_settings: Settings,
        army: list[FriendlyEntity],
    ) -> None:
        """Test timers alone carry an encounter to teardown."""
        rewards = RecordingRewardSink()
        notifications = RecordingNotificationSink()

        async def scenario() -> EncounterLifecycle:
            lifecycle = EncounterLifecycle(
                collectible_store=InMemoryCollectibleStore(),
                resource_pool=InMemoryManaPool(current=200),
                reward_sink=rewards,
                notifications=notifications,
                settings=quick_settings,
                rng=VarianceRng(seed=11),
            )
            await lifecycle.spawn_encounter(
                UserContext(rank=Rank.E, stats=UserStats(intelligence=300, strength=300)),
                army,
                biome=Biome.MOUNTAINS,
            )
            await asyncio.sleep(0.6)
            return lifecycle

        lifecycle = asyncio.run(scenario())

        assert len(lifecycle.registry) == 0
        assert len(rewards.reports) == 1
        terminal = {EventType.ENCOUNTER_COMPLETED, EventType.ENCOUNTER_FAILED}
        assert sum(1 for event in notifications.events if event.type in terminal) == 1

    def test_shared_pool_and_shutdown(
        self,
        quick_settings: Settings,
        army: list[FriendlyEntity],
    ) -> None:
        """Test concurrent encounters share the army and the mana pool, then shut down."""
        settings = quick_settings.model_copy(
            update={"lifecycle": LifecycleSettings(max_duration_ms=60_000)}
        )
        pool = InMemoryManaPool(current=150)
        rewards = RecordingRewardSink()
        notifications = RecordingNotificationSink()

        async def scenario() -> tuple[int, int, int, list[int]]:
            lifecycle = EncounterLifecycle(
                collectible_store=InMemoryCollectibleStore(),
                resource_pool=pool,
                reward_sink=rewards,
                notifications=notifications,
                settings=settings,
                rng=VarianceRng(seed=5),
            )
            user = UserContext(rank=Rank.E)
            first = await lifecycle.spawn_encounter(user, army, biome=Biome.VOLCANO)
            second = await lifecycle.spawn_encounter(user, army, biome=Biome.VOLCANO)
            rosters = [len(first.roster), len(second.roster)]
            await asyncio.sleep(0.05)
            stopped = await lifecycle.shutdown()
            emitted = len(notifications.events)
            await asyncio.sleep(0.05)
            return stopped, emitted, len(notifications.events), rosters

        stopped, emitted, emitted_later, rosters = asyncio.run(scenario())

        assert rosters == [6, 3]
        assert stopped == 2
        assert emitted_later == emitted
        assert pool.current >= 0
        assert {report.failure_reason for report in rewards.reports} == {FailureReason.SHUTDOWN}
