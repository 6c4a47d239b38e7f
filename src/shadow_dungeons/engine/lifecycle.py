"""Encounter lifecycle state machine.

States: ``Spawning -> Active -> BossGraceWindow -> {Completed | Failed}``.

- Spawning: the population controller seeds the initial burst, then the
  encounter goes Active.
- Active: combat and population ticks run. The boss falling moves the
  encounter into the grace window. A timeout, a defeated user avatar, or a
  roster wipe while the user is away fails it.
- BossGraceWindow: spawning and combat stop. A present user gets a limited
  number of ARISE attempts on the boss before the window closes. An absent
  user gets none; the dead are purged and the encounter completes at once.
- Completed / Failed: every timer is cancelled, queues are discarded, rewards
  go to the reward sink and the record leaves the registry.

The lifecycle owns one :class:`EncounterTimers` group per encounter. With
``auto_schedule=False`` no timers are created and the host (or a test) drives
the ticks by calling the tick methods directly.
"""

from __future__ import annotations

from typing import Any, Callable
from uuid import uuid4

from shadow_dungeons.collaborators import (
    CollectibleStore,
    NotificationSink,
    NullNotificationSink,
    NullParticipationSignal,
    NullRewardSink,
    ParticipationSignal,
    ReadRetryPolicy,
    ResourcePoolProvider,
    RewardSink,
)
from shadow_dungeons.core.config import Settings, get_settings
from shadow_dungeons.core.constants import CRITICAL_ROSTER_FRACTION
from shadow_dungeons.core.exceptions import InvalidEncounterStateError
from shadow_dungeons.core.logging import get_logger
from shadow_dungeons.engine.extraction import ExtractionPipeline
from shadow_dungeons.engine.population import PopulationController
from shadow_dungeons.engine.registry import EncounterRegistry
from shadow_dungeons.engine.resurrection import ResurrectionEconomy
from shadow_dungeons.engine.rewards import calculate_rewards
from shadow_dungeons.engine.rng import VarianceRng
from shadow_dungeons.engine.scheduler import CombatBatchScheduler
from shadow_dungeons.engine.stats import create_boss, friendly_max_hp, project_friendly
from shadow_dungeons.engine.timers import EncounterTimers, monotonic_ms
from shadow_dungeons.models import (
    BatchResult,
    Biome,
    BossGrace,
    Encounter,
    EncounterState,
    EngineEvent,
    EventType,
    ExtractionReport,
    FailureReason,
    FriendlyEntity,
    Rank,
    RewardReport,
    UserContext,
)


logger = get_logger(__name__)

COMBAT_TIMER = "combat"
POPULATION_TIMER = "population"
RETRY_TIMER = "extraction_retry"
DEBOUNCE_TIMER = "extraction_debounce"
GRACE_TIMER = "grace_window"
TIMEOUT_TIMER = "timeout"


class EncounterLifecycle:
    """Creates, runs and tears down encounters.

    Example:
        >>> lifecycle = EncounterLifecycle(
        ...     collectible_store=InMemoryCollectibleStore(),
        ...     resource_pool=InMemoryManaPool(current=500),
        ... )
        >>> encounter = await lifecycle.spawn_encounter(user, army, rank=Rank.C)
    """

    def __init__(
        self,
        *,
        registry: EncounterRegistry | None = None,
        collectible_store: CollectibleStore | None = None,
        resource_pool: ResourcePoolProvider | None = None,
        reward_sink: RewardSink | None = None,
        notifications: NotificationSink | None = None,
        participation: ParticipationSignal | None = None,
        settings: Settings | None = None,
        rng: VarianceRng | None = None,
        clock: Callable[[], float] | None = None,
        auto_schedule: bool = True,
    ) -> None:
        """Wire the engine components together.

        Every collaborator left out is replaced by its Null implementation.

        Args:
            registry: Encounter registry; a fresh one when None.
            collectible_store: Store receiving extracted shadows.
            resource_pool: The user's mana pool.
            reward_sink: Receives reward reports at teardown.
            notifications: Receives engine events.
            participation: Host-side participation signal.
            settings: Engine settings; the cached settings when None.
            rng: Variance source shared by every component.
            clock: Millisecond clock; monotonic time when None.
            auto_schedule: Create asyncio timers for each encounter.
        """
        self.settings = settings or get_settings()
        self.registry = registry or EncounterRegistry()
        self.rng = rng or VarianceRng()
        self.clock = clock or monotonic_ms
        self.notifications = notifications or NullNotificationSink()
        self.reward_sink = reward_sink or NullRewardSink()
        self.participation = participation or NullParticipationSignal()
        self.auto_schedule = auto_schedule

        retry_policy = ReadRetryPolicy(self.settings.collaborator)
        self.scheduler = CombatBatchScheduler(self.rng, self.settings.combat)
        self.population = PopulationController(self.rng, self.settings.population)
        self.extraction = ExtractionPipeline(
            collectible_store,
            self.rng,
            self.settings.extraction,
            notifications=self.notifications,
            retry_policy=retry_policy,
            clock=self.clock,
        )
        self.resurrection = ResurrectionEconomy(
            resource_pool,
            self.settings.resurrection,
            notifications=self.notifications,
            retry_policy=retry_policy,
            clock=self.clock,
        )
        self._timers: dict[str, EncounterTimers] = {}

        logger.info(
            "EncounterLifecycle initialized",
            auto_schedule=auto_schedule,
            foreground_tick_ms=self.settings.combat.foreground_tick_ms,
        )

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    async def spawn_encounter(
        self,
        user: UserContext,
        army: list[FriendlyEntity],
        *,
        rank: Rank | None = None,
        biome: Biome | None = None,
        encounter_id: str | None = None,
        participating: bool | None = None,
        foreground: bool = True,
    ) -> Encounter:
        """Create an encounter, seed its population and start its timers.

        Args:
            user: The user the encounter belongs to.
            army: The user's whole shadow army; a share is allocated.
            rank: Encounter rank; the user's rank when None.
            biome: Encounter biome; picked at random when None.
            encounter_id: Explicit id; generated when None.
            participating: Initial participation; asks the participation
                signal, then defaults to True, when None.
            foreground: Whether the host is showing the encounter.

        Returns:
            The encounter, already Active.
        """
        now = self.clock()
        rank = rank or user.rank
        biome = biome or self.rng.choice(list(Biome))
        encounter_id = encounter_id or f"dng_{uuid4().hex[:12]}"
        if participating is None:
            signalled = self.participation.is_participating(encounter_id)
            participating = True if signalled is None else signalled
        allocated = self.registry.allocate_roster(army, rank)

        user_max_hp = user.max_hp or friendly_max_hp(user.stats.vitality, user.rank)
        encounter = Encounter(
            id=encounter_id,
            rank=rank,
            biome=biome,
            created_at=now,
            user=user,
            user_participating=participating,
            foreground=foreground,
            soft_cap=self.population.soft_cap_for(biome.population_multiplier),
            boss=create_boss(rank, biome, len(allocated), now),
            roster=[project_friendly(shadow, self.rng, now) for shadow in allocated],
            user_hp=user_max_hp,
            user_max_hp=user_max_hp,
        )
        self.registry.register(encounter)

        self.population.initial_burst(encounter, now)
        encounter.state = EncounterState.ACTIVE
        encounter.combat_started_at = now
        logger.info(
            "Encounter spawned",
            encounter_id=encounter.id,
            rank=rank.value,
            biome=biome.value,
            roster=len(encounter.roster),
            mobs=len(encounter.hostile_population),
            boss_hp=encounter.boss.max_hp,
        )
        self._emit(
            EventType.ENCOUNTER_SPAWNED,
            encounter,
            rank=rank.value,
            biome=biome.value,
            roster_size=len(encounter.roster),
            boss_max_hp=encounter.boss.max_hp,
        )
        if self.auto_schedule:
            self._start_timers(encounter)
        return encounter

    # -------------------------------------------------------------------------
    # Ticks
    # -------------------------------------------------------------------------

    async def combat_tick(self, encounter_id: str) -> BatchResult | None:
        """Run one combat batch tick and react to its outcome.

        Returns:
            The batch result, or None when the encounter ended before combat
            resolved.

        Raises:
            EncounterNotFoundError: If the encounter no longer exists.
            InvalidEncounterStateError: If the encounter is not Active.
        """
        encounter = self._require(encounter_id, EncounterState.ACTIVE)
        now = self.clock()
        if now - encounter.created_at >= self.settings.lifecycle.max_duration_ms:
            self.fail(encounter_id, FailureReason.TIMEOUT)
            return None

        if self.resurrection.low_mana_warned:
            await self.resurrection.check_mana_recovery(encounter_id=encounter_id)
            if encounter.state.is_terminal:
                return None

        signalled = self.participation.is_participating(encounter_id)
        if signalled is not None and signalled != encounter.user_participating:
            await self.set_participation(encounter_id, signalled)

        result = self.scheduler.resolve(encounter, now)

        if result.hostile_deaths:
            self._handle_hostile_deaths(encounter, result.hostile_deaths, now)

        if result.friendly_deaths:
            died = set(result.friendly_deaths)
            fallen = [
                projection
                for projection in encounter.roster
                if projection.id in died and projection.hp <= 0
            ]
            report = await self.resurrection.resurrect_batch(fallen, encounter_id=encounter_id)
            encounter.stats.resurrections += len(report.revived)
            encounter.stats.resurrections_failed += len(report.left_dead)
            if encounter.state.is_terminal or encounter_id not in self.registry:
                return result

        self._check_roster_health(encounter)

        if encounter.user_participating and encounter.user_hp <= 0:
            self.fail(encounter_id, FailureReason.USER_DEFEATED)
        elif (
            encounter.roster
            and encounter.alive_roster_count == 0
            and not encounter.user_participating
        ):
            self.fail(encounter_id, FailureReason.ROSTER_WIPED)
        elif result.boss_defeated:
            self._enter_grace(encounter, now)
        return result

    def population_tick(self, encounter_id: str) -> int:
        """Run one population growth step.

        Returns:
            Mobs spawned (always 0 outside the Active state).

        Raises:
            EncounterNotFoundError: If the encounter no longer exists.
        """
        encounter = self.registry.get(encounter_id)
        return self.population.tick(encounter, self.clock())

    async def retry_tick(self, encounter_id: str) -> ExtractionReport:
        """Drain one batch of the extraction retry queue.

        Raises:
            EncounterNotFoundError: If the encounter no longer exists.
        """
        encounter = self.registry.get(encounter_id)
        return await self.extraction.process_retry_queue(encounter)

    async def flush_extractions(self, encounter_id: str) -> ExtractionReport:
        """Process everything waiting in the immediate extraction stage.

        Raises:
            EncounterNotFoundError: If the encounter no longer exists.
        """
        encounter = self.registry.get(encounter_id)
        return await self.extraction.flush_immediate(encounter)

    # -------------------------------------------------------------------------
    # Host signals
    # -------------------------------------------------------------------------

    async def set_participation(self, encounter_id: str, participating: bool) -> None:
        """Record whether the user is watching the encounter.

        A user leaving forfeits every pending extraction and the dead are
        purged at once. Leaving during the grace window also closes it.

        Raises:
            EncounterNotFoundError: If the encounter no longer exists.
        """
        encounter = self.registry.get(encounter_id)
        if encounter.user_participating == participating:
            return
        encounter.user_participating = participating
        logger.info("Participation changed", encounter_id=encounter_id, participating=participating)
        if participating:
            return
        self.extraction.discard(encounter)
        self.population.prune_dead(encounter)
        if encounter.state == EncounterState.BOSS_GRACE_WINDOW:
            self.complete(encounter_id)

    def set_foreground(self, encounter_id: str, foreground: bool) -> None:
        """Switch an encounter between the fast and the slow combat tick.

        Raises:
            EncounterNotFoundError: If the encounter no longer exists.
        """
        encounter = self.registry.get(encounter_id)
        if encounter.foreground == foreground:
            return
        encounter.foreground = foreground
        timers = self._timers.get(encounter_id)
        if timers is not None and encounter.state == EncounterState.ACTIVE:
            timers.start_periodic(
                COMBAT_TIMER,
                self.scheduler.tick_interval_ms(encounter),
                lambda: self.combat_tick(encounter_id),
            )
        logger.debug("Foreground changed", encounter_id=encounter_id, foreground=foreground)

    # -------------------------------------------------------------------------
    # Boss grace window
    # -------------------------------------------------------------------------

    async def attempt_boss_extraction(self, encounter_id: str) -> bool:
        """Spend one ARISE attempt on the fallen boss.

        The encounter completes as soon as the boss is extracted or the
        attempts run out.

        Returns:
            True if the boss joined the army on this attempt.

        Raises:
            EncounterNotFoundError: If the encounter no longer exists.
            InvalidEncounterStateError: Outside the grace window.
        """
        encounter = self._require(encounter_id, EncounterState.BOSS_GRACE_WINDOW)
        extracted = await self.extraction.attempt_boss_extraction(encounter)
        grace = encounter.grace
        if grace is None or encounter_id not in self.registry:
            return extracted
        self._emit(
            EventType.BOSS_EXTRACTION_ATTEMPTED,
            encounter,
            attempt=grace.attempts_used,
            success=extracted,
            remaining=max(0, grace.max_attempts - grace.attempts_used),
        )
        if grace.resolved and not encounter.state.is_terminal:
            self.complete(encounter_id)
        return extracted

    def _enter_grace(self, encounter: Encounter, now: float) -> None:
        encounter.state = EncounterState.BOSS_GRACE_WINDOW
        encounter.grace = BossGrace(
            started_at=now,
            max_attempts=self.settings.extraction.boss_attempts,
        )
        timers = self._timers.get(encounter.id)
        if timers is not None:
            timers.cancel(COMBAT_TIMER)
            timers.cancel(POPULATION_TIMER)
            timers.cancel(TIMEOUT_TIMER)
        logger.info(
            "Boss defeated",
            encounter_id=encounter.id,
            participating=encounter.user_participating,
        )
        self._emit(
            EventType.BOSS_DEFEATED,
            encounter,
            boss_id=encounter.boss.id,
            rank=encounter.boss.rank.value,
            grace_window_ms=self.settings.lifecycle.grace_window_ms,
        )

        if not encounter.user_participating:
            self.extraction.discard(encounter)
            self.population.prune_dead(encounter)
            self.complete(encounter.id)
            return
        if timers is not None:
            encounter_id = encounter.id
            timers.schedule_once(
                GRACE_TIMER,
                self.settings.lifecycle.grace_window_ms,
                lambda: self._close_grace(encounter_id),
            )

    def _close_grace(self, encounter_id: str) -> None:
        self._require(encounter_id, EncounterState.BOSS_GRACE_WINDOW)
        logger.info("Grace window expired", encounter_id=encounter_id)
        self.complete(encounter_id)

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def complete(self, encounter_id: str) -> RewardReport:
        """Finish an encounter whose boss fell, and hand out rewards.

        Raises:
            EncounterNotFoundError: If the encounter no longer exists.
            InvalidEncounterStateError: If the boss is still standing, or the
                encounter already ended.
        """
        encounter = self._require(encounter_id, EncounterState.BOSS_GRACE_WINDOW)
        return self._teardown(encounter, EncounterState.COMPLETED, None)

    def fail(self, encounter_id: str, reason: FailureReason) -> RewardReport:
        """Fail an encounter; no XP is awarded.

        Raises:
            EncounterNotFoundError: If the encounter no longer exists.
            InvalidEncounterStateError: If the encounter already ended.
        """
        encounter = self.registry.get(encounter_id)
        if encounter.state.is_terminal:
            raise InvalidEncounterStateError(
                f"Encounter {encounter_id} already ended",
                current_state=encounter.state.value,
                expected_states=[
                    EncounterState.SPAWNING.value,
                    EncounterState.ACTIVE.value,
                    EncounterState.BOSS_GRACE_WINDOW.value,
                ],
            )
        return self._teardown(encounter, EncounterState.FAILED, reason)

    async def shutdown(self) -> int:
        """Fail every live encounter and cancel all timers.

        Returns:
            Encounters torn down.
        """
        live = self.registry.active()
        for encounter in live:
            self.fail(encounter.id, FailureReason.SHUTDOWN)
        for timers in self._timers.values():
            timers.cancel_all()
        self._timers.clear()
        logger.info("Lifecycle shut down", encounters=len(live))
        return len(live)

    def _teardown(
        self,
        encounter: Encounter,
        outcome: EncounterState,
        reason: FailureReason | None,
    ) -> RewardReport:
        now = self.clock()
        timers = self._timers.pop(encounter.id, None)
        if timers is not None:
            timers.cancel_all()
        self.extraction.discard(encounter)

        report = calculate_rewards(encounter, outcome, now, failure_reason=reason)
        encounter.state = outcome
        encounter.failure_reason = reason

        encounter.hostile_population = []
        encounter.roster = []
        self.registry.remove(encounter.id)

        self.reward_sink.emit(report)
        if outcome == EncounterState.COMPLETED:
            self._emit(
                EventType.ENCOUNTER_COMPLETED,
                encounter,
                user_xp=report.user_xp,
                boss_extracted=report.boss_extracted,
                combat_time_credit_ms=report.combat_time_credit_ms,
            )
        else:
            self._emit(
                EventType.ENCOUNTER_FAILED,
                encounter,
                reason=reason.value if reason else None,
            )
        logger.info(
            "Encounter ended",
            encounter_id=encounter.id,
            outcome=outcome.value,
            reason=reason.value if reason else None,
            user_xp=report.user_xp,
            mobs_killed=encounter.stats.mobs_killed,
            extracted=encounter.stats.extractions_succeeded,
        )
        return report

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require(self, encounter_id: str, state: EncounterState) -> Encounter:
        encounter = self.registry.get(encounter_id)
        if encounter.state != state:
            raise InvalidEncounterStateError(
                f"Encounter {encounter_id} is {encounter.state.value}, expected {state.value}",
                current_state=encounter.state.value,
                expected_states=[state.value],
            )
        return encounter

    def _handle_hostile_deaths(self, encounter: Encounter, dead_ids: list[str], now: float) -> None:
        if not encounter.user_participating:
            self.population.prune_dead(encounter)
            return
        dead = set(dead_ids)
        for hostile in encounter.hostile_population:
            if hostile.id in dead:
                self.extraction.submit(encounter, hostile, now)
        timers = self._timers.get(encounter.id)
        if timers is not None and not timers.is_scheduled(DEBOUNCE_TIMER):
            encounter_id = encounter.id
            timers.schedule_once(
                DEBOUNCE_TIMER,
                self.settings.extraction.debounce_ms,
                lambda: self.flush_extractions(encounter_id),
            )

    def _check_roster_health(self, encounter: Encounter) -> None:
        if encounter.critical_roster_notified or not encounter.roster:
            return
        alive = encounter.alive_roster_count
        if alive < len(encounter.roster) * CRITICAL_ROSTER_FRACTION:
            encounter.critical_roster_notified = True
            logger.warning(
                "Roster health critical",
                encounter_id=encounter.id,
                alive=alive,
                roster=len(encounter.roster),
            )
            self._emit(
                EventType.CRITICAL_ROSTER_HEALTH,
                encounter,
                alive=alive,
                roster_size=len(encounter.roster),
            )

    def _start_timers(self, encounter: Encounter) -> None:
        encounter_id = encounter.id
        timers = EncounterTimers(
            encounter_id,
            on_structural_error=lambda timer, error: self._on_structural_error(
                encounter_id, timer, error
            ),
        )
        self._timers[encounter_id] = timers
        timers.start_periodic(
            COMBAT_TIMER,
            self.scheduler.tick_interval_ms(encounter),
            lambda: self.combat_tick(encounter_id),
        )
        timers.start_periodic(
            POPULATION_TIMER,
            self.settings.population.tick_ms,
            lambda: self.population_tick(encounter_id),
        )
        timers.start_periodic(
            RETRY_TIMER,
            self.settings.extraction.retry_interval_ms,
            lambda: self.retry_tick(encounter_id),
        )
        timers.schedule_once(
            TIMEOUT_TIMER,
            self.settings.lifecycle.max_duration_ms,
            lambda: self._on_timeout(encounter_id),
        )

    def _on_timeout(self, encounter_id: str) -> None:
        self._require(encounter_id, EncounterState.ACTIVE)
        logger.info("Encounter timed out", encounter_id=encounter_id)
        self.fail(encounter_id, FailureReason.TIMEOUT)

    def _on_structural_error(self, encounter_id: str, timer: str, error: BaseException) -> None:
        self._timers.pop(encounter_id, None)
        encounter = self.registry.get(encounter_id) if encounter_id in self.registry else None
        if encounter is None or encounter.state.is_terminal:
            return
        logger.error(
            "Encounter halted by a structural error",
            encounter_id=encounter_id,
            timer=timer,
            error=str(error),
        )
        self.fail(encounter_id, FailureReason.SHUTDOWN)

    def _emit(self, event_type: EventType, encounter: Encounter, **payload: Any) -> None:
        self.notifications.emit(
            EngineEvent(
                type=event_type,
                encounter_id=encounter.id,
                emitted_at=self.clock(),
                payload=payload,
            )
        )


__all__ = ["EncounterLifecycle"]
