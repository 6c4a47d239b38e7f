"""Collaborator interfaces, defaults and reference implementations.

The engine consumes a collectible store, a mana pool and a participation
signal, and produces to a reward sink and a notification sink. Null objects
stand in for anything the host does not provide.

Submodules:
    base: Abstract interfaces and Null implementations
    memory: In-memory reference implementations
    retrying: Tenacity retry policy for idempotent reads
"""

from __future__ import annotations

from shadow_dungeons.collaborators.base import (
    CollectibleStore,
    KeyValueStore,
    NotificationSink,
    NullCollectibleStore,
    NullNotificationSink,
    NullParticipationSignal,
    NullResourcePool,
    NullRewardSink,
    ParticipationSignal,
    ResourcePoolProvider,
    RewardSink,
)
from shadow_dungeons.collaborators.memory import (
    InMemoryCollectibleStore,
    InMemoryKeyValueStore,
    InMemoryManaPool,
    ParticipationFlags,
    RecordingNotificationSink,
    RecordingRewardSink,
)
from shadow_dungeons.collaborators.retrying import RETRYABLE_ERRORS, ReadRetryPolicy


__all__ = [
    # Interfaces
    "CollectibleStore",
    "KeyValueStore",
    "NotificationSink",
    "ParticipationSignal",
    "ResourcePoolProvider",
    "RewardSink",
    # Null objects
    "NullCollectibleStore",
    "NullNotificationSink",
    "NullParticipationSignal",
    "NullResourcePool",
    "NullRewardSink",
    # In-memory
    "InMemoryCollectibleStore",
    "InMemoryKeyValueStore",
    "InMemoryManaPool",
    "ParticipationFlags",
    "RecordingNotificationSink",
    "RecordingRewardSink",
    # Retries
    "RETRYABLE_ERRORS",
    "ReadRetryPolicy",
]
