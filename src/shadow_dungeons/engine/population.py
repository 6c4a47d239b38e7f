"""Population controller: grows the hostile population toward its soft cap.

Growth follows a step function of the fill ratio (living mobs divided by the
encounter's soft cap): the fuller the dungeon, the smaller the next batch.
Below the cap the curve never reaches zero, so the population keeps
trickling instead of slamming into a hard ceiling; at or above the cap
nothing spawns.
"""

from __future__ import annotations

from shadow_dungeons.core.config import PopulationSettings, get_settings
from shadow_dungeons.core.logging import get_logger
from shadow_dungeons.engine.rng import VarianceRng
from shadow_dungeons.engine.stats import create_hostile
from shadow_dungeons.models import Encounter, EncounterState, HostileEntity


logger = get_logger(__name__)


class PopulationController:
    """Spawns and prunes the mobs of an encounter.

    Example:
        >>> controller = PopulationController(VarianceRng(seed=1))
        >>> controller.base_spawn_count(population=0, soft_cap=3000)
        250
    """

    def __init__(self, rng: VarianceRng, settings: PopulationSettings | None = None) -> None:
        """Initialize the controller.

        Args:
            rng: Variance source.
            settings: Population tuning; the engine settings when None.
        """
        self.rng = rng
        self.settings = settings or get_settings().population

    def soft_cap_for(self, multiplier: float) -> int:
        """Scale the configured soft cap by a biome multiplier."""
        return max(1, round(self.settings.soft_cap * multiplier))

    def target_band(self, soft_cap: int) -> tuple[int, int]:
        """Get the (floor, cap) band the population settles into."""
        return (int(soft_cap * self.settings.band_floor_fraction), soft_cap)

    def base_spawn_count(self, population: int, soft_cap: int) -> int:
        """Look up the base batch size for the current fill ratio.

        Args:
            population: Living mobs.
            soft_cap: The encounter's soft cap.

        Returns:
            Base spawn count before variance; 0 at or above the cap.
        """
        fill = population / soft_cap
        for threshold, count in self.settings.spawn_steps:
            if fill < threshold:
                return count
        # Zero at the cap bounds overshoot to one trickle batch, which keeps the
        # population settling inside its band.
        return 0

    def spawn_batch_size(self, population: int, soft_cap: int) -> int:
        """Base spawn count with +/- variance applied (one draw).

        Returns:
            Batch size, at least 1 whenever the base count is positive.
        """
        base = self.base_spawn_count(population, soft_cap)
        if base <= 0:
            return 0
        return max(1, round(self.rng.jitter(base, self.settings.spawn_variance)))

    def spawn(self, encounter: Encounter, count: int, now: float) -> list[HostileEntity]:
        """Append ``count`` freshly rolled mobs to the encounter.

        Args:
            encounter: Target encounter.
            count: Mobs to create.
            now: Current clock reading (ms).

        Returns:
            The new mobs.
        """
        spawned = [create_hostile(encounter.rank, self.rng, now) for _ in range(max(0, count))]
        encounter.hostile_population.extend(spawned)
        encounter.stats.mobs_spawned += len(spawned)
        return spawned

    def initial_burst(self, encounter: Encounter, now: float) -> int:
        """Seed the encounter with its opening share of the soft cap.

        Returns:
            Mobs spawned.
        """
        count = round(encounter.soft_cap * self.settings.initial_burst_fraction)
        spawned = self.spawn(encounter, count, now)
        logger.info(
            "Initial burst spawned",
            encounter_id=encounter.id,
            spawned=len(spawned),
            soft_cap=encounter.soft_cap,
        )
        return len(spawned)

    def tick(self, encounter: Encounter, now: float) -> int:
        """Run one population growth step.

        Nothing spawns outside the Active state; the population is frozen
        once the boss falls. Unobserved encounters get their dead pruned
        first, since no extraction will run for them.

        Returns:
            Mobs spawned.
        """
        if encounter.state != EncounterState.ACTIVE:
            return 0
        if not encounter.user_participating:
            self.prune_dead(encounter)

        population = encounter.alive_hostile_count
        count = self.spawn_batch_size(population, encounter.soft_cap)
        spawned = self.spawn(encounter, count, now)
        logger.debug(
            "Population tick",
            encounter_id=encounter.id,
            population=population,
            spawned=len(spawned),
        )
        return len(spawned)

    def prune_dead(self, encounter: Encounter) -> list[str]:
        """Remove every dead mob from the encounter immediately.

        Returns:
            Ids of the removed mobs.
        """
        removed = [hostile.id for hostile in encounter.hostile_population if hostile.hp <= 0]
        if removed:
            encounter.hostile_population = [
                hostile for hostile in encounter.hostile_population if hostile.hp > 0
            ]
            logger.debug("Pruned dead mobs", encounter_id=encounter.id, pruned=len(removed))
        return removed


__all__ = ["PopulationController"]
