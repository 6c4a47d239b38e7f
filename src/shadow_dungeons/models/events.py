"""Semantic events emitted by the engine.

The engine never renders anything; it hands these records to the
notification sink and lets the host decide how to present them.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from shadow_dungeons.models.enums import EventType


class EngineEvent(BaseModel):
    """A discrete notification with its payload.

    Attributes:
        type: What happened.
        encounter_id: Encounter the event belongs to, if any.
        emitted_at: Clock reading (ms) at emission.
        payload: Event-specific data.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: EventType
    encounter_id: str | None = None
    emitted_at: float = 0.0
    payload: dict[str, Any] = Field(default_factory=dict)


__all__ = ["EngineEvent"]
