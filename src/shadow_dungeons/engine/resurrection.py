"""Resurrection economy: mana-funded revival of fallen shadows.

Reviving a shadow costs ``base_cost * growth_factor ** rank_index`` mana from
the user's shared pool. Several encounters may draw from that pool at once,
so every revival reads the balance and deducts inside one critical section;
two revivals can never both spend the same pre-deduction balance.

Running out of mana is routine. It is reported as a plain False. The pool is
depleted when it cannot pay even the cheapest (E-rank) revival; the low-mana
warning is raised once per depletion episode rather than once per refused
revival, and re-armed by the first balance read at or above that cost.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from shadow_dungeons.collaborators import (
    NotificationSink,
    NullNotificationSink,
    NullResourcePool,
    ReadRetryPolicy,
    ResourcePoolProvider,
)
from shadow_dungeons.core.config import ResurrectionSettings, get_settings
from shadow_dungeons.core.exceptions import ResurrectionError
from shadow_dungeons.core.logging import get_logger
from shadow_dungeons.engine.timers import monotonic_ms
from shadow_dungeons.models import (
    CombatProjection,
    EngineEvent,
    EventType,
    Rank,
    ResurrectionReport,
)


logger = get_logger(__name__)


class ResurrectionEconomy:
    """Decides which fallen shadows come back, and pays for them.

    Example:
        >>> economy = ResurrectionEconomy(InMemoryManaPool(current=170))
        >>> economy.resurrection_cost(Rank.A)
        160.0
    """

    def __init__(
        self,
        pool: ResourcePoolProvider | None = None,
        settings: ResurrectionSettings | None = None,
        *,
        notifications: NotificationSink | None = None,
        retry_policy: ReadRetryPolicy | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the economy.

        Args:
            pool: The user's mana pool; an always-empty pool when None.
            settings: Cost tuning; the engine settings when None.
            notifications: Sink for lowManaWarning events.
            retry_policy: Retry policy for mana reads.
            clock: Millisecond clock used to stamp events.
        """
        self.pool = pool or NullResourcePool()
        self.settings = settings or get_settings().resurrection
        self.notifications = notifications or NullNotificationSink()
        self.retry_policy = retry_policy or ReadRetryPolicy()
        self.clock = clock or monotonic_ms
        self._mana_lock = asyncio.Lock()
        self._low_mana_warned = False

    @property
    def low_mana_warned(self) -> bool:
        """Whether the current depletion episode has already been reported."""
        return self._low_mana_warned

    @property
    def cheapest_cost(self) -> float:
        """Cost of the cheapest revival, the depletion threshold."""
        return self.resurrection_cost(Rank.E)

    def resurrection_cost(self, rank: Rank) -> float:
        """Mana needed to revive a shadow of ``rank``."""
        return self.settings.base_cost * self.settings.growth_factor**rank.index

    async def attempt_resurrection(
        self,
        projection: CombatProjection,
        *,
        encounter_id: str | None = None,
    ) -> bool:
        """Try to revive one fallen shadow.

        The balance is re-read right before the affordability check and the
        deduction follows under the same lock.

        Args:
            projection: The fallen shadow's projection.
            encounter_id: Encounter the shadow fell in, for logs and events.

        Returns:
            True if the shadow was revived to full HP.

        Raises:
            ResurrectionError: If the shadow is not dead.
        """
        if projection.alive:
            raise ResurrectionError(
                f"Shadow {projection.id} is still alive",
                details={"encounter_id": encounter_id, "hp": projection.hp},
            )
        cost = self.resurrection_cost(projection.rank)
        async with self._mana_lock:
            mana = await self._read_mana(encounter_id)
            if mana < cost:
                self._report_insufficient(mana, cost, encounter_id)
                return False
            if not await self.pool.deduct_mana(cost):
                self._report_insufficient(mana, cost, encounter_id)
                return False

        projection.hp = projection.max_hp
        projection.resurrections += 1
        logger.debug(
            "Shadow resurrected",
            encounter_id=encounter_id,
            shadow_id=projection.id,
            rank=projection.rank.value,
            cost=cost,
        )
        return True

    async def resurrect_batch(
        self,
        projections: list[CombatProjection],
        *,
        encounter_id: str | None = None,
    ) -> ResurrectionReport:
        """Revive shadows that fell in the same tick, strongest rank first.

        When mana runs short the lower ranks are the ones left dead. A revival
        that raises is logged and counted as left dead; the batch continues.

        Args:
            projections: Fallen projections.
            encounter_id: Encounter they fell in.

        Returns:
            Which shadows were revived and which stayed dead.
        """
        report = ResurrectionReport()
        ordered = sorted(projections, key=lambda projection: projection.rank.index, reverse=True)
        for projection in ordered:
            try:
                revived = await self.attempt_resurrection(projection, encounter_id=encounter_id)
            except Exception:
                logger.exception(
                    "Resurrection attempt failed",
                    encounter_id=encounter_id,
                    shadow_id=projection.id,
                )
                revived = False
            if revived:
                report.revived.append(projection.id)
                report.mana_spent += self.resurrection_cost(projection.rank)
            else:
                report.left_dead.append(projection.id)
        return report

    async def check_mana_recovery(self, *, encounter_id: str | None = None) -> bool:
        """Re-read the pool while a depletion warning is outstanding.

        Mana regenerates outside the engine, so a recovery is only noticed
        when the balance is read. Lets a periodic caller close the episode
        even when no shadow dies in between. A failed read is logged and
        leaves the episode open.

        Returns:
            True if this read ended the depletion episode.
        """
        if not self._low_mana_warned:
            return False
        try:
            async with self._mana_lock:
                await self._read_mana(encounter_id)
        except Exception:
            logger.exception("Mana recovery check failed", encounter_id=encounter_id)
            return False
        return not self._low_mana_warned

    async def _read_mana(self, encounter_id: str | None) -> float:
        mana = await self.retry_policy.call(self.pool.read_mana, collaborator="resource_pool")
        if self._low_mana_warned and mana >= self.cheapest_cost:
            self._low_mana_warned = False
            logger.info("Mana recovered", encounter_id=encounter_id, mana=mana)
        return mana

    def _report_insufficient(self, mana: float, cost: float, encounter_id: str | None) -> None:
        if mana >= self.cheapest_cost:
            logger.debug(
                "Not enough mana for this rank",
                encounter_id=encounter_id,
                mana=mana,
                cost=cost,
            )
            return
        if self._low_mana_warned:
            return
        self._low_mana_warned = True
        logger.warning(
            "Not enough mana to resurrect",
            encounter_id=encounter_id,
            mana=mana,
            cost=cost,
        )
        self.notifications.emit(
            EngineEvent(
                type=EventType.LOW_MANA_WARNING,
                encounter_id=encounter_id,
                emitted_at=self.clock(),
                payload={
                    "mana": mana,
                    "required": cost,
                    "cheapest_cost": self.cheapest_cost,
                },
            )
        )


__all__ = ["ResurrectionEconomy"]
