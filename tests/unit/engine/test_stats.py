"""Tests for the stat model and entity factories."""

from __future__ import annotations

import math
from typing import Callable

import pytest

from conftest import ScriptedRandom
from shadow_dungeons.engine.rng import VarianceRng
from shadow_dungeons.engine.stats import (
    boss_max_hp,
    boss_splash_targets,
    boss_stats,
    calculate_damage,
    create_boss,
    create_hostile,
    effective_power,
    friendly_max_hp,
    hostile_baseline,
    hostile_max_hp,
    project_friendly,
)
from shadow_dungeons.models import BaseStats, Biome, FriendlyEntity, Rank


STRIKER = BaseStats(strength=100)
DUMMY = BaseStats()


class TestStatBlocks:
    """Tests for stat baselines."""

    def test_hostile_baseline_grows_with_rank(self) -> None:
        """Test baseline stats are base plus per-rank growth."""
        e_rank = hostile_baseline(Rank.E)
        c_rank = hostile_baseline(Rank.C)
        assert e_rank.strength == 100
        assert e_rank.vitality == 150
        assert c_rank.strength == 200
        assert c_rank.vitality == 350

    def test_boss_stats(self) -> None:
        """Test boss stat baselines."""
        assert boss_stats(Rank.C).strength == 100
        assert boss_stats(Rank.E).luck == 50


class TestHitPoints:
    """Tests for HP formulas."""

    def test_friendly_hp(self) -> None:
        """Test shadow HP from vitality and rank."""
        assert friendly_max_hp(50, Rank.E) == 600
        assert friendly_max_hp(50, Rank.C) == 700

    def test_boss_hp_scales_with_roster(self) -> None:
        """Test the boss HP budget grows per allocated shadow."""
        assert boss_max_hp(Rank.C, Biome.FOREST, 0) == 1500
        assert boss_max_hp(Rank.C, Biome.FOREST, 4) == 19500

    def test_hostile_hp_roll_range(self) -> None:
        """Test hostile HP stays within 70-100% of its base."""
        stats = hostile_baseline(Rank.E)
        base = 250 + 150 * 8
        low = hostile_max_hp(stats, Rank.E, VarianceRng(ScriptedRandom([0.0])))
        high = hostile_max_hp(stats, Rank.E, VarianceRng(ScriptedRandom([0.999999])))
        assert low == math.floor(base * 0.7)
        assert high <= base


class TestDamage:
    """Tests for the damage formula."""

    def test_plain_hit(self, rng: VarianceRng) -> None:
        """Test raw damage with neutral variance and no defense."""
        assert calculate_damage(STRIKER, Rank.E, DUMMY, Rank.E, rng) == 315

    def test_defense_reduces(self, rng: VarianceRng) -> None:
        """Test the defender's softened defense reduces damage."""
        tough = BaseStats(vitality=100)
        assert calculate_damage(STRIKER, Rank.E, tough, Rank.E, rng) == 273

    def test_rank_advantage(self, rng: VarianceRng) -> None:
        """Test higher-ranked attackers hit harder."""
        assert calculate_damage(STRIKER, Rank.B, DUMMY, Rank.E, rng) == 598

    def test_rank_disadvantage_floor(self, rng: VarianceRng) -> None:
        """Test the rank penalty bottoms out."""
        damage = calculate_damage(STRIKER, Rank.E, DUMMY, Rank.SSS, rng)
        assert damage == math.floor(315 * 0.4)

    def test_critical_hit(self) -> None:
        """Test a landed critical multiplies damage."""
        agile = BaseStats(strength=100, agility=200)
        rng = VarianceRng(ScriptedRandom([0.5, 0.1]))
        assert calculate_damage(agile, Rank.E, DUMMY, Rank.E, rng) == 787

    def test_multiplier_and_minimum(self, rng: VarianceRng) -> None:
        """Test the caller multiplier applies and damage never drops below 1."""
        assert calculate_damage(DUMMY, Rank.E, DUMMY, Rank.E, rng, multiplier=0.01) == 1

    def test_two_draws_per_attack(self) -> None:
        """Test each attack consumes the variance and the crit draws."""
        source = ScriptedRandom()
        calculate_damage(STRIKER, Rank.E, DUMMY, Rank.E, VarianceRng(source))
        assert source.draws == 2


class TestDerivedNumbers:
    """Tests for effective power and splash widths."""

    def test_effective_power(self) -> None:
        """Test total stats scale with rank."""
        stats = BaseStats(strength=50, agility=50, vitality=50)
        assert effective_power(stats, Rank.C) == 300

    @pytest.mark.parametrize(
        "rank,targets",
        [(Rank.E, 1), (Rank.D, 2), (Rank.B, 5), (Rank.S, 12), (Rank.SHADOW_MONARCH, 12)],
    )
    def test_boss_splash(self, rank: Rank, targets: int) -> None:
        """Test boss splash width per rank."""
        assert boss_splash_targets(rank) == targets


class TestFactories:
    """Tests for combatant factories."""

    def test_project_friendly(self, make_shadow: Callable[..., FriendlyEntity]) -> None:
        """Test a projection gets full HP and a staggered first attack."""
        rng = VarianceRng(ScriptedRandom([0.5, 0.5]))
        projection = project_friendly(make_shadow(vitality=50), rng, now=10000)
        assert projection.hp == projection.max_hp == 600
        assert projection.cooldown_ms == 2000
        assert projection.last_attack_at == 9000

    def test_create_hostile_neutral_draws(self, rng: VarianceRng) -> None:
        """Test a mob at the encounter rank with baseline stats."""
        hostile = create_hostile(Rank.C, rng, now=42)
        assert hostile.id.startswith("mob_")
        assert hostile.rank is Rank.C
        assert hostile.stats.strength == pytest.approx(200)
        assert hostile.hp == hostile.max_hp
        assert hostile.attack_cooldown_ms == pytest.approx(3000)
        assert hostile.last_attack_at == 42
        assert not hostile.is_boss

    def test_create_hostile_rank_spread(self) -> None:
        """Test mob ranks spread one tier around the encounter, clamped."""
        below = create_hostile(Rank.C, VarianceRng(ScriptedRandom([0.0])), now=0)
        above = create_hostile(Rank.C, VarianceRng(ScriptedRandom([0.99])), now=0)
        clamped = create_hostile(Rank.E, VarianceRng(ScriptedRandom([0.0])), now=0)
        assert below.rank is Rank.D
        assert above.rank is Rank.B
        assert clamped.rank is Rank.E

    def test_create_boss(self) -> None:
        """Test the boss carries its HP budget and flag."""
        boss = create_boss(Rank.C, Biome.FOREST, 4, now=5)
        assert boss.is_boss
        assert boss.id.startswith("boss_")
        assert boss.hp == boss.max_hp == 19500
        assert boss.attack_cooldown_ms == 4000
