"""Combat batch scheduler: one periodic tick advances every combatant.

Instead of one timer per combatant, each encounter gets a single combat tick.
On every tick each combatant works out how many attacks its own cooldown
allowed since its cooldown anchor, resolves them, and moves the anchor
forward by exactly the time those attacks consumed. Unconsumed time carries
into the next tick, so no attack is lost across tick boundaries and every
combatant keeps its independent cadence.

A tick runs in two phases. The planning phase decides every attack (targets
and damage) from a snapshot of the world taken at the start of the tick; the
apply phase then lands the damage. No combatant sees a partially updated
world, and the planning of one combatant never depends on its siblings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from shadow_dungeons.core.config import CombatSettings, get_settings
from shadow_dungeons.core.exceptions import CombatError
from shadow_dungeons.core.logging import get_logger
from shadow_dungeons.engine.rng import VarianceRng
from shadow_dungeons.engine.stats import boss_splash_targets, calculate_damage
from shadow_dungeons.models import BatchResult, CombatProjection, Encounter, HostileEntity


logger = get_logger(__name__)


@dataclass
class _Hit:
    """One planned damage application.

    Attributes:
        target: Hostile, friendly projection, or None for the user's avatar.
        amount: Damage to apply.
        source: Friendly projection credited with the hit, if any.
    """

    target: HostileEntity | CombatProjection | None
    amount: int
    source: CombatProjection | None = None


class CombatBatchScheduler:
    """Resolves combat for a whole encounter in one batch tick.

    Example:
        >>> scheduler = CombatBatchScheduler(VarianceRng(seed=3))
        >>> scheduler.attacks_available(last_attack_at=0, cooldown_ms=1000, now=3500)
        3
    """

    def __init__(self, rng: VarianceRng, settings: CombatSettings | None = None) -> None:
        """Initialize the scheduler.

        Args:
            rng: Variance source.
            settings: Combat tuning; the engine settings when None.
        """
        self.rng = rng
        self.settings = settings or get_settings().combat

    # -------------------------------------------------------------------------
    # Cooldown arithmetic
    # -------------------------------------------------------------------------

    def tick_interval_ms(self, encounter: Encounter) -> float:
        """Tick interval for an encounter, slower while backgrounded."""
        if encounter.foreground:
            return self.settings.foreground_tick_ms
        return self.settings.background_tick_ms

    def attacks_available(self, last_attack_at: float, cooldown_ms: float, now: float) -> int:
        """Count the attacks a combatant's cooldown allowed since its anchor.

        Args:
            last_attack_at: Cooldown anchor (ms).
            cooldown_ms: Effective cooldown.
            now: Tick snapshot (ms).

        Returns:
            ``floor((now - last_attack_at) / cooldown_ms)``, never negative.

        Raises:
            CombatError: If the cooldown is not positive.
        """
        if cooldown_ms <= 0:
            raise CombatError(
                "Cooldown must be positive",
                details={"cooldown_ms": cooldown_ms},
            )
        elapsed = now - last_attack_at
        if elapsed <= 0:
            return 0
        return math.floor(elapsed / cooldown_ms)

    def advance_cooldown(
        self,
        last_attack_at: float,
        attacks: int,
        cooldown_ms: float,
        now: float,
    ) -> float:
        """Move a cooldown anchor past the attacks just resolved.

        The consumed time is ``attacks * cooldown_ms`` scaled by one
        cooldown-variance draw. The anchor never moves past ``now``.

        Returns:
            The new anchor.
        """
        if attacks <= 0:
            return last_attack_at
        variance = self.rng.uniform(
            self.settings.cooldown_variance_min,
            self.settings.cooldown_variance_max,
        )
        return min(now, last_attack_at + attacks * cooldown_ms * variance)

    def _schedule(self, last_attack_at: float, cooldown_ms: float, now: float) -> tuple[int, float]:
        """Attacks to resolve this tick and the anchor to store afterwards.

        Past the per-tick cap the backlog is dropped: the anchor jumps to
        ``now`` minus the partial cooldown in progress.
        """
        available = self.attacks_available(last_attack_at, cooldown_ms, now)
        cap = self.settings.max_attacks_per_tick
        if available > cap:
            remainder = (now - last_attack_at) % cooldown_ms
            return cap, now - remainder
        return available, self.advance_cooldown(last_attack_at, available, cooldown_ms, now)

    # -------------------------------------------------------------------------
    # Planning
    # -------------------------------------------------------------------------

    def _damage_range(self) -> tuple[float, float]:
        return (self.settings.damage_variance_min, self.settings.damage_variance_max)

    def _plan_friendly(
        self,
        projection: CombatProjection,
        mobs: list[HostileEntity],
        boss: HostileEntity | None,
        now: float,
    ) -> tuple[int, list[_Hit]]:
        attacks, anchor = self._schedule(projection.last_attack_at, projection.cooldown_ms, now)
        shadow = projection.shadow
        multiplier = shadow.role.damage_multiplier * shadow.behavior.damage_multiplier
        hits: list[_Hit] = []
        made = 0
        for _ in range(attacks):
            target = self._pick_hostile_target(mobs, boss)
            if target is None:
                break
            amount = calculate_damage(
                shadow.stats,
                shadow.rank,
                target.stats,
                target.rank,
                self.rng,
                multiplier=multiplier,
                variance=self._damage_range(),
            )
            hits.append(_Hit(target=target, amount=amount, source=projection))
            made += 1
        projection.last_attack_at = anchor
        return made, hits

    def _pick_hostile_target(
        self,
        mobs: list[HostileEntity],
        boss: HostileEntity | None,
    ) -> HostileEntity | None:
        if mobs and (boss is None or self.rng.chance(self.settings.hostile_targeting_probability)):
            return self.rng.choice(mobs)
        return boss

    def _plan_hostile(
        self,
        hostile: HostileEntity,
        encounter: Encounter,
        roster: list[CombatProjection],
        user_targetable: bool,
        splash: int,
        now: float,
    ) -> tuple[int, list[_Hit]]:
        attacks, anchor = self._schedule(hostile.last_attack_at, hostile.attack_cooldown_ms, now)
        hits: list[_Hit] = []
        made = 0
        for _ in range(attacks):
            if roster:
                for target in self.rng.sample(roster, splash):
                    amount = calculate_damage(
                        hostile.stats,
                        hostile.rank,
                        target.shadow.stats,
                        target.rank,
                        self.rng,
                        variance=self._damage_range(),
                    )
                    hits.append(_Hit(target=target, amount=amount))
            elif user_targetable:
                amount = calculate_damage(
                    hostile.stats,
                    hostile.rank,
                    encounter.user.stats,
                    encounter.user.rank,
                    self.rng,
                    variance=self._damage_range(),
                )
                hits.append(_Hit(target=None, amount=amount))
            else:
                break
            made += 1
        hostile.last_attack_at = anchor
        return made, hits

    def _skip(self, result: BatchResult, encounter: Encounter, combatant_id: str) -> None:
        logger.exception(
            "Attack resolution failed, combatant skipped for this tick",
            encounter_id=encounter.id,
            combatant_id=combatant_id,
        )
        result.skipped.append(combatant_id)

    # -------------------------------------------------------------------------
    # Batch tick
    # -------------------------------------------------------------------------

    def resolve(self, encounter: Encounter, now: float) -> BatchResult:
        """Run one batch tick over every combatant of the encounter.

        Friendly shadows target mobs with high probability and the boss
        otherwise. Mobs and the boss splash the living roster, and only turn
        on the user's avatar once the roster is gone and the user is present.
        A combatant whose planning raises is logged and skipped; the rest of
        the batch carries on.

        Args:
            encounter: Encounter to advance.
            now: Clock snapshot (ms) shared by every combatant this tick.

        Returns:
            What happened during the tick.
        """
        result = BatchResult(now=now)

        mobs = [hostile for hostile in encounter.hostile_population if hostile.hp > 0]
        roster = [projection for projection in encounter.roster if projection.hp > 0]
        boss = encounter.boss if encounter.boss.hp > 0 else None
        user_targetable = encounter.user_participating and encounter.user_hp > 0

        hits: list[_Hit] = []
        for projection in roster:
            try:
                made, planned = self._plan_friendly(projection, mobs, boss, now)
            except Exception:
                self._skip(result, encounter, projection.id)
                continue
            result.attacks_resolved += made
            hits.extend(planned)

        mob_splash = self.settings.mob_splash_targets
        for hostile in mobs:
            try:
                made, planned = self._plan_hostile(
                    hostile, encounter, roster, user_targetable, mob_splash, now
                )
            except Exception:
                self._skip(result, encounter, hostile.id)
                continue
            result.attacks_resolved += made
            hits.extend(planned)

        if boss is not None:
            try:
                made, planned = self._plan_hostile(
                    boss, encounter, roster, user_targetable, boss_splash_targets(boss.rank), now
                )
            except Exception:
                self._skip(result, encounter, boss.id)
            else:
                result.attacks_resolved += made
                hits.extend(planned)

        self._apply(encounter, hits, result)

        encounter.last_tick_at = now
        encounter.stats.attacks_resolved += result.attacks_resolved
        encounter.stats.mobs_killed += len(result.hostile_deaths)
        encounter.stats.combat_errors += len(result.skipped)
        logger.debug(
            "Combat tick resolved",
            encounter_id=encounter.id,
            attacks=result.attacks_resolved,
            hostile_deaths=len(result.hostile_deaths),
            friendly_deaths=len(result.friendly_deaths),
            boss_hp=encounter.boss.hp,
        )
        return result

    def _apply(self, encounter: Encounter, hits: list[_Hit], result: BatchResult) -> None:
        """Land planned damage. Hits on targets already dead this tick are void."""
        for hit in hits:
            target = hit.target
            if target is None:
                if encounter.user_hp <= 0:
                    continue
                dealt = min(hit.amount, encounter.user_hp)
                encounter.user_hp -= dealt
                result.damage_to_user += dealt
            elif isinstance(target, CombatProjection):
                if target.hp <= 0:
                    continue
                dealt = min(hit.amount, target.hp)
                target.hp -= dealt
                result.damage_to_roster += dealt
                if target.hp <= 0:
                    result.friendly_deaths.append(target.id)
            else:
                if target.hp <= 0:
                    continue
                dealt = min(hit.amount, target.hp)
                target.hp -= dealt
                result.damage_to_hostiles += dealt
                if target.is_boss and hit.source is not None:
                    hit.source.boss_damage += dealt
                if target.hp <= 0:
                    if target.is_boss:
                        result.boss_defeated = True
                    else:
                        result.hostile_deaths.append(target.id)
                        if hit.source is not None:
                            hit.source.mobs_killed += 1


__all__ = ["CombatBatchScheduler"]
