"""Tests for reward calculation."""

from __future__ import annotations

from typing import Callable

from shadow_dungeons.engine.rewards import calculate_rewards, roster_xp, user_xp
from shadow_dungeons.models import (
    BossGrace,
    CombatProjection,
    Encounter,
    EncounterState,
    FailureReason,
    Rank,
)


class TestUserXp:
    """Tests for the user's XP."""

    def test_present_user(self, make_encounter: Callable[..., Encounter]) -> None:
        """Test a present user earns the full boss reward."""
        assert user_xp(make_encounter(rank=Rank.E)) == 200
        assert user_xp(make_encounter(rank=Rank.C)) == 400

    def test_absent_user(self, make_encounter: Callable[..., Encounter]) -> None:
        """Test an absent user earns half the boss plus a cut of the mobs."""
        encounter = make_encounter(rank=Rank.C, participating=False)
        encounter.stats.mobs_killed = 10
        assert user_xp(encounter) == 200 + 60


class TestRosterXp:
    """Tests for shadow XP shares."""

    def test_share_scales_with_ranks(
        self,
        make_encounter: Callable[..., Encounter],
        make_projection: Callable[..., CombatProjection],
    ) -> None:
        """Test kills and boss damage scaled by encounter and shadow rank."""
        e_shadow = make_projection(rank=Rank.E)
        e_shadow.mobs_killed = 3
        e_shadow.boss_damage = 50
        c_shadow = make_projection(rank=Rank.C)
        c_shadow.mobs_killed = 3
        c_shadow.boss_damage = 50

        assert roster_xp(make_encounter(boss_hp=100), e_shadow) == 80
        assert roster_xp(make_encounter(rank=Rank.C, boss_hp=100), c_shadow) == 256

    def test_boss_share_capped(
        self,
        make_encounter: Callable[..., Encounter],
        make_projection: Callable[..., CombatProjection],
    ) -> None:
        """Test boss damage beyond its HP earns no extra XP."""
        shadow = make_projection()
        shadow.boss_damage = 500
        assert roster_xp(make_encounter(boss_hp=100), shadow) == 100


class TestReport:
    """Tests for the teardown report."""

    def test_completed(
        self,
        make_encounter: Callable[..., Encounter],
        make_projection: Callable[..., CombatProjection],
    ) -> None:
        """Test a completed encounter pays user and roster."""
        shadow = make_projection(shadow_id="igris")
        shadow.mobs_killed = 2
        encounter = make_encounter(roster=[shadow], created_at=1000)
        encounter.grace = BossGrace(started_at=5000, max_attempts=3, extracted=True)

        report = calculate_rewards(encounter, EncounterState.COMPLETED, now=9000)

        assert report.user_xp == 200
        assert report.roster_xp_share == {"igris": 20}
        assert report.combat_time_credit_ms == 8000
        assert report.boss_extracted
        assert report.failure_reason is None

    def test_failed_earns_time_only(
        self,
        make_encounter: Callable[..., Encounter],
        make_projection: Callable[..., CombatProjection],
    ) -> None:
        """Test a failed encounter credits combat time and nothing else."""
        shadow = make_projection()
        shadow.mobs_killed = 40
        encounter = make_encounter(roster=[shadow], created_at=0)

        report = calculate_rewards(
            encounter,
            EncounterState.FAILED,
            now=4000,
            failure_reason=FailureReason.TIMEOUT,
        )

        assert report.user_xp == 0
        assert report.roster_xp_share == {}
        assert report.combat_time_credit_ms == 4000
        assert report.failure_reason is FailureReason.TIMEOUT
