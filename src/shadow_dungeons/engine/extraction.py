"""Extraction pipeline: turning defeated hostiles into permanent shadows.

Every defeated mob of an observed encounter gets an :class:`ExtractionTicket`
and at most ``max_attempts`` independent attempts:

1. Immediate stage: deaths accumulate per encounter during a short debounce
   window and are then processed together, in batches, as attempt #1.
2. Retry stage: tickets that failed go to the encounter's retry queue, kept
   in FIFO order by enqueue time and drained in batches on a fixed interval.
3. A ticket that succeeds, or fails its last attempt, is finished in the same
   batch: its hostile leaves the population and the ticket leaves the queue.

Extraction only runs while the user is watching a live encounter. Tickets
whose attempt was in flight when the user left, or when the encounter ended,
are dropped instead of requeued.

Each attempt re-rolls against the extraction chance. A roll that succeeds
asks the collectible store to convert the hostile, and the conversion is
confirmed through two signals: the store's own success flag and the change
in the store's collectible count. When they disagree the count wins.
"""

from __future__ import annotations

import asyncio
import bisect
from typing import Callable

from shadow_dungeons.collaborators import (
    CollectibleStore,
    NotificationSink,
    NullCollectibleStore,
    NullNotificationSink,
    ReadRetryPolicy,
)
from shadow_dungeons.core.config import ExtractionSettings, get_settings
from shadow_dungeons.core.exceptions import ExtractionError, InvalidEncounterStateError
from shadow_dungeons.core.logging import get_logger
from shadow_dungeons.engine.rng import VarianceRng
from shadow_dungeons.engine.timers import monotonic_ms
from shadow_dungeons.models import (
    Encounter,
    EncounterState,
    EngineEvent,
    EventType,
    ExtractionReport,
    ExtractionTicket,
    HostileEntity,
    Rank,
    TicketStatus,
    UserContext,
)


logger = get_logger(__name__)


# =============================================================================
# Probability Model
# =============================================================================


def calculate_extraction_chance(
    user: UserContext,
    target_rank: Rank,
    target_strength: float,
    settings: ExtractionSettings | None = None,
) -> float:
    """Compute the chance of one extraction attempt.

    ``chance = base * statsMult * rankMult * rankPenalty * (1 - resistance)``
    where:

    - ``base = INT * k1``
    - ``statsMult = 1 + INT*a + PER*b + STR*c + (totalStats / 1000) * d``
    - ``rankMult`` is the configured multiplier of the target's rank
    - ``rankPenalty = penaltyBase ** rankDiff`` when the target outranks the user
    - ``resistance = min(maxResistance, targetSTR / (userSTR * 2))``

    Targets more than ``max_rank_gap`` tiers above the user cannot be
    extracted at all, whatever the stats.

    Args:
        user: The extracting user.
        target_rank: Rank of the defeated hostile.
        target_strength: Strength of the defeated hostile.
        settings: Extraction tuning; the engine settings when None.

    Returns:
        Probability in [0, 1].
    """
    settings = settings or get_settings().extraction
    rank_diff = target_rank.index - user.rank.index
    if rank_diff > settings.max_rank_gap:
        return 0.0

    stats = user.stats
    base = stats.intelligence * settings.base_chance_per_intelligence
    stats_mult = (
        1.0
        + stats.intelligence * settings.intelligence_weight
        + stats.perception * settings.perception_weight
        + stats.strength * settings.strength_weight
        + (stats.total / 1000.0) * settings.total_stats_weight
    )
    rank_mult = settings.rank_multipliers[target_rank.index]
    rank_penalty = settings.rank_penalty_base**rank_diff if rank_diff > 0 else 1.0
    if stats.strength > 0:
        resistance = min(settings.max_resistance, target_strength / (stats.strength * 2.0))
    else:
        resistance = settings.max_resistance

    chance = base * stats_mult * rank_mult * rank_penalty * (1.0 - resistance)
    return max(0.0, min(1.0, chance))


# =============================================================================
# Pipeline
# =============================================================================


class ExtractionPipeline:
    """Runs extraction tickets through the immediate and retry stages.

    One pipeline serves every encounter of a user. The count-delta check of
    each conversion runs under a lock, so concurrent conversions never see
    each other's count changes.
    """

    def __init__(
        self,
        store: CollectibleStore | None = None,
        rng: VarianceRng | None = None,
        settings: ExtractionSettings | None = None,
        *,
        notifications: NotificationSink | None = None,
        retry_policy: ReadRetryPolicy | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            store: Collectible store; a no-op store when None.
            rng: Variance source.
            settings: Extraction tuning; the engine settings when None.
            notifications: Sink for shadowExtracted events.
            retry_policy: Retry policy for the store's count reads.
            clock: Millisecond clock used to stamp events.
        """
        self.store = store or NullCollectibleStore()
        self.rng = rng or VarianceRng()
        self.settings = settings or get_settings().extraction
        self.notifications = notifications or NullNotificationSink()
        self.retry_policy = retry_policy or ReadRetryPolicy()
        self.clock = clock or monotonic_ms
        self._verify_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Intake
    # -------------------------------------------------------------------------

    def submit(
        self,
        encounter: Encounter,
        hostile: HostileEntity,
        now: float,
    ) -> ExtractionTicket | None:
        """Hand a defeated hostile to the immediate stage.

        Args:
            encounter: Owning encounter.
            hostile: The defeated hostile.
            now: Clock reading (ms) of the death.

        Returns:
            The (possibly pre-existing) ticket, or None when the user is not
            participating and no extraction will run.

        Raises:
            ExtractionError: If the hostile is still alive.
        """
        if hostile.hp > 0:
            raise ExtractionError(
                "Only defeated hostiles can be extracted",
                hostile_entity_id=hostile.id,
                details={"encounter_id": encounter.id, "hp": hostile.hp},
            )
        if not encounter.user_participating:
            return None
        for ticket in (*encounter.pending_extractions, *encounter.extraction_queue):
            if ticket.hostile_entity_id == hostile.id:
                return ticket
        ticket = ExtractionTicket(
            hostile_entity_id=hostile.id,
            snapshot=hostile.model_copy(),
            enqueued_at=now,
        )
        encounter.pending_extractions.append(ticket)
        return ticket

    def discard(self, encounter: Encounter) -> int:
        """Drop every pending and queued ticket of the encounter.

        Returns:
            Tickets dropped.
        """
        dropped = len(encounter.pending_extractions) + len(encounter.extraction_queue)
        encounter.pending_extractions = []
        encounter.extraction_queue = []
        if dropped:
            logger.debug("Extraction tickets discarded", encounter_id=encounter.id, dropped=dropped)
        return dropped

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def flush_immediate(self, encounter: Encounter) -> ExtractionReport:
        """Run attempt #1 for everything accumulated in the debounce window.

        Returns:
            Combined report of every batch processed.
        """
        report = ExtractionReport()
        size = self.settings.batch_size
        while encounter.pending_extractions and self._accepting(encounter):
            batch = encounter.pending_extractions[:size]
            encounter.pending_extractions = encounter.pending_extractions[size:]
            report.merge(await self._process_batch(encounter, batch))
        return report

    async def process_retry_queue(self, encounter: Encounter) -> ExtractionReport:
        """Drain one batch from the front of the retry queue.

        Returns:
            Report of the batch.
        """
        if not encounter.extraction_queue or not self._accepting(encounter):
            return ExtractionReport()
        size = self.settings.batch_size
        batch = encounter.extraction_queue[:size]
        encounter.extraction_queue = encounter.extraction_queue[size:]
        return await self._process_batch(encounter, batch)

    async def _process_batch(
        self,
        encounter: Encounter,
        batch: list[ExtractionTicket],
    ) -> ExtractionReport:
        report = ExtractionReport(attempted=len(batch))
        inconsistencies_before = encounter.stats.extraction_inconsistencies
        outcomes = await asyncio.gather(
            *(self._attempt(encounter, ticket) for ticket in batch),
            return_exceptions=True,
        )

        halted = not self._accepting(encounter)
        finished: set[str] = set()
        for ticket, outcome in zip(batch, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error(
                    "Extraction attempt raised, counted as a failed attempt",
                    encounter_id=encounter.id,
                    hostile_entity_id=ticket.hostile_entity_id,
                    attempt=ticket.attempts,
                    error=str(outcome),
                    exc_info=outcome,
                )
                report.errors += 1
                succeeded = False
            else:
                succeeded = outcome

            if succeeded:
                ticket.status = TicketStatus.SUCCESS
                report.extracted.append(ticket.hostile_entity_id)
                finished.add(ticket.hostile_entity_id)
            elif ticket.attempts >= self.settings.max_attempts:
                ticket.status = TicketStatus.FAILED
                report.exhausted.append(ticket.hostile_entity_id)
                finished.add(ticket.hostile_entity_id)
            elif halted:
                report.dropped.append(ticket.hostile_entity_id)
                finished.add(ticket.hostile_entity_id)
            else:
                self._requeue(encounter, ticket)
                report.requeued.append(ticket.hostile_entity_id)

        if finished:
            encounter.hostile_population = [
                hostile for hostile in encounter.hostile_population if hostile.id not in finished
            ]
        encounter.stats.extractions_succeeded += len(report.extracted)
        encounter.stats.extractions_failed += len(report.exhausted)
        report.inconsistencies = encounter.stats.extraction_inconsistencies - inconsistencies_before
        logger.debug(
            "Extraction batch processed",
            encounter_id=encounter.id,
            attempted=report.attempted,
            extracted=len(report.extracted),
            exhausted=len(report.exhausted),
            requeued=len(report.requeued),
            dropped=len(report.dropped),
        )
        return report

    @staticmethod
    def _accepting(encounter: Encounter) -> bool:
        return encounter.user_participating and not encounter.state.is_terminal

    def _requeue(self, encounter: Encounter, ticket: ExtractionTicket) -> None:
        """Insert a ticket into the retry queue keeping enqueue-time order."""
        keys = [queued.enqueued_at for queued in encounter.extraction_queue]
        index = bisect.bisect_right(keys, ticket.enqueued_at)
        encounter.extraction_queue.insert(index, ticket)

    # -------------------------------------------------------------------------
    # Attempts
    # -------------------------------------------------------------------------

    async def _attempt(self, encounter: Encounter, ticket: ExtractionTicket) -> bool:
        if not self._accepting(encounter):
            return False
        ticket.attempts += 1
        snapshot = ticket.snapshot
        chance = calculate_extraction_chance(
            encounter.user, snapshot.rank, snapshot.stats.strength, self.settings
        )
        roll = self.rng.random()
        if roll >= chance:
            return False
        extracted = await self._convert_verified(encounter, snapshot)
        if extracted:
            logger.info(
                "Shadow extracted",
                encounter_id=encounter.id,
                hostile_entity_id=snapshot.id,
                attempt=ticket.attempts,
                chance=round(chance, 4),
            )
        return extracted

    async def _count(self) -> int:
        return await self.retry_policy.call(self.store.count, collaborator="collectible_store")

    async def _convert_verified(self, encounter: Encounter, hostile: HostileEntity) -> bool:
        """Convert a hostile and confirm it through both success signals.

        Returns:
            The count-delta verdict.
        """
        async with self._verify_lock:
            if not self._accepting(encounter):
                logger.debug(
                    "Conversion skipped, encounter stopped extracting",
                    encounter_id=encounter.id,
                    hostile_entity_id=hostile.id,
                )
                return False
            before = await self._count()
            signalled = False
            collectible_id: str | None = None
            try:
                result = await self.store.convert(hostile, encounter.user)
                signalled = result.success
                collectible_id = result.collectible_id
            except Exception:
                logger.exception(
                    "Conversion call raised, deferring to the count delta",
                    encounter_id=encounter.id,
                    hostile_entity_id=hostile.id,
                )
            after = await self._count()

        counted = after > before
        if counted != signalled:
            encounter.stats.extraction_inconsistencies += 1
            logger.warning(
                "Extraction signals disagree, trusting the count delta",
                encounter_id=encounter.id,
                hostile_entity_id=hostile.id,
                signalled=signalled,
                count_before=before,
                count_after=after,
            )
        if counted:
            self.notifications.emit(
                EngineEvent(
                    type=EventType.SHADOW_EXTRACTED,
                    encounter_id=encounter.id,
                    emitted_at=self.clock(),
                    payload={
                        "hostile_entity_id": hostile.id,
                        "collectible_id": collectible_id,
                        "rank": hostile.rank.value,
                        "boss": hostile.is_boss,
                    },
                )
            )
        return counted

    # -------------------------------------------------------------------------
    # Boss ARISE
    # -------------------------------------------------------------------------

    async def attempt_boss_extraction(self, encounter: Encounter) -> bool:
        """Spend one of the limited ARISE attempts on the fallen boss.

        This pipeline is separate from the regular tickets: it has its own
        attempt budget and never touches the retry queue.

        Returns:
            True if the boss was converted on this attempt.

        Raises:
            InvalidEncounterStateError: Outside the boss grace window.
        """
        grace = encounter.grace
        if encounter.state != EncounterState.BOSS_GRACE_WINDOW or grace is None:
            raise InvalidEncounterStateError(
                "Boss extraction is only possible during the grace window",
                current_state=encounter.state.value,
                expected_states=[EncounterState.BOSS_GRACE_WINDOW.value],
            )
        if grace.resolved or not encounter.user_participating:
            return False

        grace.attempts_used += 1
        boss = encounter.boss
        chance = calculate_extraction_chance(
            encounter.user, boss.rank, boss.stats.strength, self.settings
        )
        if self.rng.random() >= chance:
            logger.info(
                "Boss extraction failed",
                encounter_id=encounter.id,
                attempt=grace.attempts_used,
                chance=round(chance, 4),
            )
            return False
        grace.extracted = await self._convert_verified(encounter, boss)
        logger.info(
            "Boss extraction resolved",
            encounter_id=encounter.id,
            attempt=grace.attempts_used,
            extracted=grace.extracted,
        )
        return grace.extracted


__all__ = ["calculate_extraction_chance", "ExtractionPipeline"]
