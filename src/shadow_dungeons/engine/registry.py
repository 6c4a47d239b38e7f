"""Encounter registry: the single owner of encounter lifetime.

Components never reach into shared state for encounters; the lifecycle looks
them up here and hands references to each component per call. An encounter
that is not in the registry no longer exists, and touching it is a
structural error.
"""

from __future__ import annotations

import math
from typing import Iterator

from shadow_dungeons.core.exceptions import EncounterNotFoundError, InvalidEncounterStateError
from shadow_dungeons.core.logging import get_logger
from shadow_dungeons.engine.stats import effective_power
from shadow_dungeons.models import Encounter, FriendlyEntity, Rank


logger = get_logger(__name__)

PREFERRED_RANK_SPREAD = 2
"""Shadows within this many tiers of the encounter are deployed first."""


class EncounterRegistry:
    """Maps encounter ids to live encounter records."""

    def __init__(self) -> None:
        self._encounters: dict[str, Encounter] = {}

    def __contains__(self, encounter_id: object) -> bool:
        return encounter_id in self._encounters

    def __len__(self) -> int:
        return len(self._encounters)

    def __iter__(self) -> Iterator[Encounter]:
        return iter(list(self._encounters.values()))

    def register(self, encounter: Encounter) -> Encounter:
        """Add a new encounter.

        Raises:
            InvalidEncounterStateError: If the id is already registered.
        """
        if encounter.id in self._encounters:
            raise InvalidEncounterStateError(
                f"Encounter {encounter.id} is already registered",
                current_state=self._encounters[encounter.id].state.value,
            )
        self._encounters[encounter.id] = encounter
        logger.debug("Encounter registered", encounter_id=encounter.id, active=len(self))
        return encounter

    def get(self, encounter_id: str) -> Encounter:
        """Look up an encounter.

        Raises:
            EncounterNotFoundError: If no such encounter exists.
        """
        try:
            return self._encounters[encounter_id]
        except KeyError:
            raise EncounterNotFoundError(
                f"Encounter {encounter_id} does not exist",
                encounter_id=encounter_id,
            ) from None

    def remove(self, encounter_id: str) -> Encounter:
        """Delete an encounter record.

        Raises:
            EncounterNotFoundError: If no such encounter exists.
        """
        encounter = self.get(encounter_id)
        del self._encounters[encounter_id]
        logger.debug("Encounter removed", encounter_id=encounter_id, active=len(self))
        return encounter

    def active(self) -> list[Encounter]:
        """Encounters not yet in a terminal state."""
        return [
            encounter for encounter in self._encounters.values() if not encounter.state.is_terminal
        ]

    def allocate_roster(self, roster: list[FriendlyEntity], rank: Rank) -> list[FriendlyEntity]:
        """Choose the shadows to send into a new encounter of ``rank``.

        The army is shared between concurrent encounters in proportion to
        their rank weight (rank index + 1), counting the live encounters and
        the new one. The new encounter gets at least one shadow. Shadows
        within two tiers of the encounter rank are picked first, strongest
        first within each group.

        Args:
            roster: The whole army.
            rank: Rank of the encounter being created.

        Returns:
            The shadows allocated to the new encounter.
        """
        if not roster:
            return []
        weight = rank.index + 1
        total_weight = weight + sum(encounter.rank.index + 1 for encounter in self.active())
        share = max(1, math.floor(weight / total_weight * len(roster)))

        def preference(shadow: FriendlyEntity) -> tuple[bool, float]:
            out_of_band = abs(shadow.rank.index - rank.index) > PREFERRED_RANK_SPREAD
            return (out_of_band, -effective_power(shadow.stats, shadow.rank))

        allocated = sorted(roster, key=preference)[:share]
        logger.debug(
            "Roster allocated",
            rank=rank.value,
            allocated=len(allocated),
            army=len(roster),
        )
        return allocated


__all__ = ["EncounterRegistry"]
