"""Core module providing configuration, logging, and base exceptions.

This module serves as the foundation of the Shadow Dungeons engine, providing
the infrastructure every engine component builds on.

Exports:
    Exceptions:
        ShadowDungeonsError: Base exception for all engine errors.
        ConfigurationError: Configuration-related errors.
        ValidationError: Data validation errors.
        EngineError: Base for combat/extraction engine errors.

    Configuration:
        Settings: Main engine settings class.
        get_settings: Get the settings singleton.
        clear_settings_cache: Force settings reload.

    Logging:
        configure_logging: Set up engine logging.
        get_logger: Get a configured logger instance.
        encounter_context: Bind an encounter to enclosed log entries.
"""

from __future__ import annotations

from shadow_dungeons.core.config import (
    CollaboratorSettings,
    CombatSettings,
    ExtractionSettings,
    LifecycleSettings,
    PopulationSettings,
    ResurrectionSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)
from shadow_dungeons.core.exceptions import (
    CollaboratorError,
    CombatError,
    ConfigurationError,
    EncounterNotFoundError,
    EngineError,
    ExtractionError,
    InvalidEncounterStateError,
    ResurrectionError,
    SchedulerClosedError,
    ShadowDungeonsError,
    TransientCollaboratorError,
    ValidationError,
)
from shadow_dungeons.core.logging import (
    configure_logging,
    encounter_context,
    get_logger,
)


__all__ = [
    # Configuration
    "CollaboratorSettings",
    "CombatSettings",
    "ExtractionSettings",
    "LifecycleSettings",
    "PopulationSettings",
    "ResurrectionSettings",
    "Settings",
    "clear_settings_cache",
    "get_settings",
    # Exceptions
    "CollaboratorError",
    "CombatError",
    "ConfigurationError",
    "EncounterNotFoundError",
    "EngineError",
    "ExtractionError",
    "InvalidEncounterStateError",
    "ResurrectionError",
    "SchedulerClosedError",
    "ShadowDungeonsError",
    "TransientCollaboratorError",
    "ValidationError",
    # Logging
    "configure_logging",
    "encounter_context",
    "get_logger",
]
