"""Custom exception hierarchy for the Shadow Dungeons engine.

This module defines the exception hierarchy used across the engine. All
exceptions inherit from ShadowDungeonsError, enabling unified error handling
at the host boundary while preserving domain-specific context.

Two families matter most at runtime:

* Structural violations (EncounterNotFoundError, InvalidEncounterStateError)
  are raised loudly. They mean a timer or caller touched an encounter that was
  already torn down or finished, and they halt that encounter's timers.
* Collaborator failures (CollaboratorError and TransientCollaboratorError)
  come from the host-provided stores. Transient ones are retried.

Example:
    >>> from shadow_dungeons.core.exceptions import EncounterNotFoundError
    >>> raise EncounterNotFoundError("Encounter vanished", encounter_id="dng-1")
"""

from __future__ import annotations

from typing import Any


class ShadowDungeonsError(Exception):
    """Base exception for all Shadow Dungeons errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        """Initialize the base exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional details.

        Returns:
            Formatted error message including any provided details.
        """
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} [{detail_str}]"
        return self.message

    def __repr__(self) -> str:
        """Return a detailed string representation of the exception."""
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


# =============================================================================
# Configuration & Validation Exceptions
# =============================================================================


class ConfigurationError(ShadowDungeonsError):
    """Raised when engine configuration is invalid.

    This includes invalid tuning values or incompatible combinations such
    as an inverted variance range.
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration error with config key context.

        Args:
            message: Human-readable error description.
            config_key: The configuration key that caused the error.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if config_key:
            combined_details["config_key"] = config_key
        super().__init__(message, details=combined_details)


class ValidationError(ShadowDungeonsError):
    """Raised when data handed to the engine fails validation."""

    def __init__(
        self,
        message: str,
        *,
        field_name: str | None = None,
        invalid_value: Any | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize validation error with field context.

        Args:
            message: Human-readable error description.
            field_name: Name of the field that failed validation.
            invalid_value: The value that failed validation.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if field_name:
            combined_details["field_name"] = field_name
        if invalid_value is not None:
            combined_details["invalid_value"] = invalid_value
        super().__init__(message, details=combined_details)


# =============================================================================
# Engine Domain Exceptions
# =============================================================================


class EngineError(ShadowDungeonsError):
    """Base exception for all combat/extraction engine errors."""


class EncounterNotFoundError(EngineError):
    """Raised when an operation targets an encounter that no longer exists.

    Seeing this from a timer callback means a timer outlived its encounter.
    """

    def __init__(
        self,
        message: str,
        *,
        encounter_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with the missing encounter's id.

        Args:
            message: Human-readable error description.
            encounter_id: Identifier of the encounter that was looked up.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if encounter_id:
            combined_details["encounter_id"] = encounter_id
        super().__init__(message, details=combined_details)


class InvalidEncounterStateError(EngineError):
    """Raised when a state transition violates the encounter lifecycle.

    The typical case is a second terminal transition for an encounter that
    already completed or failed.
    """

    def __init__(
        self,
        message: str,
        *,
        current_state: str | None = None,
        expected_states: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize invalid state error with state context.

        Args:
            message: Human-readable error description.
            current_state: The state the encounter was in.
            expected_states: States that would have allowed the operation.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if current_state:
            combined_details["current_state"] = current_state
        if expected_states:
            combined_details["expected_states"] = expected_states
        super().__init__(message, details=combined_details)


class CombatError(EngineError):
    """Raised when a single combatant's attack resolution fails."""

    def __init__(
        self,
        message: str,
        *,
        combatant_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize combat error with combatant context.

        Args:
            message: Human-readable error description.
            combatant_id: Identifier of the combatant involved.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if combatant_id:
            combined_details["combatant_id"] = combatant_id
        super().__init__(message, details=combined_details)


class ExtractionError(EngineError):
    """Raised when an extraction attempt cannot be carried out."""

    def __init__(
        self,
        message: str,
        *,
        hostile_entity_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize extraction error with target context.

        Args:
            message: Human-readable error description.
            hostile_entity_id: Identifier of the defeated hostile.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if hostile_entity_id:
            combined_details["hostile_entity_id"] = hostile_entity_id
        super().__init__(message, details=combined_details)


class ResurrectionError(EngineError):
    """Raised when a resurrection attempt fails for a reason other than mana."""


class SchedulerClosedError(EngineError):
    """Raised when a timer is scheduled on a timer group that was cancelled."""


# =============================================================================
# Collaborator Exceptions
# =============================================================================


class CollaboratorError(ShadowDungeonsError):
    """Raised when a host-provided collaborator fails."""

    def __init__(
        self,
        message: str,
        *,
        collaborator: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize collaborator error.

        Args:
            message: Human-readable error description.
            collaborator: Name of the collaborator (e.g. 'collectible_store').
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if collaborator:
            combined_details["collaborator"] = collaborator
        super().__init__(message, details=combined_details)


class TransientCollaboratorError(CollaboratorError):
    """A collaborator failure that is expected to succeed on retry."""


__all__ = [
    "ShadowDungeonsError",
    "ConfigurationError",
    "ValidationError",
    "EngineError",
    "EncounterNotFoundError",
    "InvalidEncounterStateError",
    "CombatError",
    "ExtractionError",
    "ResurrectionError",
    "SchedulerClosedError",
    "CollaboratorError",
    "TransientCollaboratorError",
]
