"""Tests for the combat batch scheduler."""

from __future__ import annotations

from typing import Callable

import pytest

from shadow_dungeons.core.config import CombatSettings
from shadow_dungeons.core.exceptions import CombatError
from shadow_dungeons.engine.rng import VarianceRng
from shadow_dungeons.engine.scheduler import CombatBatchScheduler
from shadow_dungeons.models import CombatProjection, Encounter, HostileEntity


DORMANT_MS = 1e12
"""Cooldown long enough that a combatant never acts during a test."""


@pytest.fixture
def scheduler(rng: VarianceRng) -> CombatBatchScheduler:
    """Create a scheduler with neutral draws and no cooldown jitter."""
    return CombatBatchScheduler(
        rng,
        CombatSettings(cooldown_variance_min=1.0, cooldown_variance_max=1.0),
    )


@pytest.fixture
def dormant_boss(make_hostile: Callable[..., HostileEntity]) -> HostileEntity:
    """Create a boss that never attacks."""
    return make_hostile(
        hp=1_000_000,
        strength=0,
        cooldown_ms=DORMANT_MS,
        is_boss=True,
        hostile_id="boss",
    )


class TestCooldownArithmetic:
    """Tests for cooldown accounting."""

    def test_attacks_available(self, scheduler: CombatBatchScheduler) -> None:
        """Test attacks are whole cooldowns elapsed since the anchor."""
        assert scheduler.attacks_available(0, 1000, 3500) == 3
        assert scheduler.attacks_available(0, 1000, 999) == 0
        assert scheduler.attacks_available(5000, 1000, 3000) == 0

    def test_non_positive_cooldown(self, scheduler: CombatBatchScheduler) -> None:
        """Test a zero cooldown is a combat error."""
        with pytest.raises(CombatError):
            scheduler.attacks_available(0, 0, 1000)

    def test_advance_keeps_remainder(self, scheduler: CombatBatchScheduler) -> None:
        """Test the anchor moves by consumed time only."""
        assert scheduler.advance_cooldown(0, 3, 1000, 3500) == 3000
        assert scheduler.advance_cooldown(250, 0, 1000, 3500) == 250

    def test_advance_never_passes_now(self, rng: VarianceRng) -> None:
        """Test a slow cooldown roll cannot push the anchor into the future."""
        slow = CombatBatchScheduler(
            rng,
            CombatSettings(cooldown_variance_min=1.05, cooldown_variance_max=1.05),
        )
        assert slow.advance_cooldown(0, 3, 1000, 3100) == 3100

    def test_tick_interval(
        self,
        scheduler: CombatBatchScheduler,
        make_encounter: Callable[..., Encounter],
    ) -> None:
        """Test backgrounded encounters tick slower."""
        encounter = make_encounter()
        assert scheduler.tick_interval_ms(encounter) == 3000
        encounter.foreground = False
        assert scheduler.tick_interval_ms(encounter) == 15000


class TestBatchResolution:
    """Tests for batch ticks."""

    def test_no_attacks_lost_across_ticks(
        self,
        scheduler: CombatBatchScheduler,
        make_encounter: Callable[..., Encounter],
        make_projection: Callable[..., CombatProjection],
        make_hostile: Callable[..., HostileEntity],
        dormant_boss: HostileEntity,
    ) -> None:
        """Test a combatant gets floor(elapsed / cooldown) attacks however ticks fall."""
        shadow = make_projection(cooldown_ms=1000, last_attack_at=0)
        mob = make_hostile(hp=1_000_000, cooldown_ms=DORMANT_MS)
        encounter = make_encounter(roster=[shadow], mobs=[mob], boss=dormant_boss)

        resolved = []
        for now in (2500, 3100, 6000):
            resolved.append(scheduler.resolve(encounter, now).attacks_resolved)

        assert resolved == [2, 1, 3]
        assert sum(resolved) == 6000 // 1000
        assert shadow.last_attack_at == 6000
        assert encounter.stats.attacks_resolved == 6

    def test_catch_up_cap_drops_backlog(
        self,
        scheduler: CombatBatchScheduler,
        make_encounter: Callable[..., Encounter],
        make_projection: Callable[..., CombatProjection],
        make_hostile: Callable[..., HostileEntity],
        dormant_boss: HostileEntity,
    ) -> None:
        """Test a long gap resolves at most the cap and forgets the rest."""
        shadow = make_projection(cooldown_ms=100, last_attack_at=0)
        mob = make_hostile(hp=1_000_000, cooldown_ms=DORMANT_MS)
        encounter = make_encounter(roster=[shadow], mobs=[mob], boss=dormant_boss)

        first = scheduler.resolve(encounter, 5050)
        assert first.attacks_resolved == 20
        assert shadow.last_attack_at == 5000

        second = scheduler.resolve(encounter, 5100)
        assert second.attacks_resolved == 1

    def test_overkill_is_void(
        self,
        scheduler: CombatBatchScheduler,
        make_encounter: Callable[..., Encounter],
        make_projection: Callable[..., CombatProjection],
        make_hostile: Callable[..., HostileEntity],
        dormant_boss: HostileEntity,
    ) -> None:
        """Test a mob dies once and only the killing blow is credited."""
        first = make_projection(cooldown_ms=1000, last_attack_at=0)
        second = make_projection(cooldown_ms=1000, last_attack_at=0)
        mob = make_hostile(hp=10, cooldown_ms=DORMANT_MS, hostile_id="weak")
        encounter = make_encounter(roster=[first, second], mobs=[mob], boss=dormant_boss)

        result = scheduler.resolve(encounter, 1000)

        assert result.attacks_resolved == 2
        assert result.hostile_deaths == ["weak"]
        assert result.damage_to_hostiles == 10
        assert mob.hp == 0
        assert first.mobs_killed + second.mobs_killed == 1
        assert encounter.stats.mobs_killed == 1

    def test_friendly_hits_boss_without_mobs(
        self,
        scheduler: CombatBatchScheduler,
        make_encounter: Callable[..., Encounter],
        make_projection: Callable[..., CombatProjection],
        make_hostile: Callable[..., HostileEntity],
    ) -> None:
        """Test the boss takes the hits once the mobs are gone."""
        shadow = make_projection(cooldown_ms=1000, last_attack_at=0)
        boss = make_hostile(hp=10, strength=0, cooldown_ms=DORMANT_MS, is_boss=True)
        encounter = make_encounter(roster=[shadow], boss=boss)

        result = scheduler.resolve(encounter, 1000)

        assert result.boss_defeated
        assert result.hostile_deaths == []
        assert shadow.boss_damage == 10

    def test_mob_kills_friendly(
        self,
        scheduler: CombatBatchScheduler,
        make_encounter: Callable[..., Encounter],
        make_projection: Callable[..., CombatProjection],
        make_hostile: Callable[..., HostileEntity],
        dormant_boss: HostileEntity,
    ) -> None:
        """Test friendly deaths are reported for the resurrection economy."""
        shadow = make_projection(hp=5, last_attack_at=1000, shadow_id="fragile")
        mob = make_hostile(hp=1000, cooldown_ms=1000, last_attack_at=0)
        encounter = make_encounter(roster=[shadow], mobs=[mob], boss=dormant_boss)

        result = scheduler.resolve(encounter, 1000)

        assert result.friendly_deaths == ["fragile"]
        assert result.damage_to_roster == 5
        assert shadow.hp == 0

    def test_user_targeted_only_without_roster(
        self,
        scheduler: CombatBatchScheduler,
        make_encounter: Callable[..., Encounter],
        make_hostile: Callable[..., HostileEntity],
        dormant_boss: HostileEntity,
    ) -> None:
        """Test mobs turn on the present user once no shadow stands."""
        mob = make_hostile(hp=1000, cooldown_ms=1000, last_attack_at=0)
        encounter = make_encounter(mobs=[mob], boss=dormant_boss, user_hp=500)

        result = scheduler.resolve(encounter, 1000)

        assert result.damage_to_user > 0
        assert encounter.user_hp == 500 - result.damage_to_user

    def test_absent_user_not_targeted(
        self,
        scheduler: CombatBatchScheduler,
        make_encounter: Callable[..., Encounter],
        make_hostile: Callable[..., HostileEntity],
        dormant_boss: HostileEntity,
    ) -> None:
        """Test an absent user's avatar is never attacked."""
        mob = make_hostile(hp=1000, cooldown_ms=1000, last_attack_at=0)
        encounter = make_encounter(
            mobs=[mob],
            boss=dormant_boss,
            user_hp=500,
            participating=False,
        )

        result = scheduler.resolve(encounter, 1000)

        assert result.attacks_resolved == 0
        assert encounter.user_hp == 500

    def test_failing_combatant_is_isolated(
        self,
        scheduler: CombatBatchScheduler,
        make_encounter: Callable[..., Encounter],
        make_projection: Callable[..., CombatProjection],
        make_hostile: Callable[..., HostileEntity],
        dormant_boss: HostileEntity,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test one combatant failing does not abort the batch."""
        broken = make_projection(cooldown_ms=1000, last_attack_at=0, shadow_id="broken")
        healthy = make_projection(cooldown_ms=1000, last_attack_at=0, shadow_id="healthy")
        mob = make_hostile(hp=1_000_000, cooldown_ms=DORMANT_MS)
        encounter = make_encounter(roster=[broken, healthy], mobs=[mob], boss=dormant_boss)

        original = scheduler._plan_friendly

        def flaky_plan(projection, *args, **kwargs):  # type: ignore[no-untyped-def]
            if projection.id == "broken":
                raise RuntimeError("corrupt projection")
            return original(projection, *args, **kwargs)

        monkeypatch.setattr(scheduler, "_plan_friendly", flaky_plan)

        result = scheduler.resolve(encounter, 1000)

        assert result.skipped == ["broken"]
        assert result.attacks_resolved == 1
        assert healthy.last_attack_at == 1000
        assert encounter.stats.combat_errors == 1
