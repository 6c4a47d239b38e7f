"""Tests for the exception hierarchy."""

from __future__ import annotations

import pytest

from shadow_dungeons.core.exceptions import (
    CollaboratorError,
    CombatError,
    ConfigurationError,
    EncounterNotFoundError,
    EngineError,
    ExtractionError,
    InvalidEncounterStateError,
    SchedulerClosedError,
    ShadowDungeonsError,
    TransientCollaboratorError,
    ValidationError,
)


class TestShadowDungeonsError:
    """Tests for the base ShadowDungeonsError exception."""

    def test_basic_message(self) -> None:
        """Test exception with basic message."""
        exc = ShadowDungeonsError("Test error message")
        assert exc.message == "Test error message"
        assert exc.details == {}
        assert str(exc) == "Test error message"

    def test_with_details(self) -> None:
        """Test exception with additional details."""
        exc = ShadowDungeonsError("Test error", details={"key": "value", "count": 42})
        assert "key='value'" in str(exc)
        assert "count=42" in str(exc)

    def test_repr(self) -> None:
        """Test exception repr output."""
        repr_str = repr(ShadowDungeonsError("Test", details={"x": 1}))
        assert "ShadowDungeonsError" in repr_str
        assert "x" in repr_str


class TestEngineExceptions:
    """Tests for engine-related exceptions."""

    def test_encounter_not_found(self) -> None:
        """Test EncounterNotFoundError carries the encounter id."""
        exc = EncounterNotFoundError("gone", encounter_id="dng-1")
        assert exc.details["encounter_id"] == "dng-1"
        assert isinstance(exc, EngineError)

    def test_invalid_state(self) -> None:
        """Test InvalidEncounterStateError carries both states."""
        exc = InvalidEncounterStateError(
            "bad transition",
            current_state="completed",
            expected_states=["active"],
        )
        assert exc.details["current_state"] == "completed"
        assert exc.details["expected_states"] == ["active"]

    def test_combat_error(self) -> None:
        """Test CombatError carries the combatant id."""
        exc = CombatError("boom", combatant_id="mob-1")
        assert exc.details["combatant_id"] == "mob-1"

    def test_extraction_error(self) -> None:
        """Test ExtractionError carries the hostile id."""
        exc = ExtractionError("boom", hostile_entity_id="mob-2")
        assert exc.details["hostile_entity_id"] == "mob-2"

    def test_scheduler_closed_is_engine_error(self) -> None:
        """Test SchedulerClosedError belongs to the engine family."""
        with pytest.raises(EngineError):
            raise SchedulerClosedError("closed")


class TestOtherExceptions:
    """Tests for configuration, validation and collaborator exceptions."""

    def test_configuration_error(self) -> None:
        """Test ConfigurationError with config key."""
        exc = ConfigurationError("Invalid value", config_key="soft_cap")
        assert exc.details["config_key"] == "soft_cap"

    def test_validation_error(self) -> None:
        """Test ValidationError with field context."""
        exc = ValidationError("Invalid", field_name="current", invalid_value=-5)
        assert exc.details["field_name"] == "current"
        assert exc.details["invalid_value"] == -5

    def test_transient_collaborator_error(self) -> None:
        """Test TransientCollaboratorError is a CollaboratorError."""
        exc = TransientCollaboratorError("flaky", collaborator="collectible_store")
        assert isinstance(exc, CollaboratorError)
        assert exc.details["collaborator"] == "collectible_store"

    def test_all_inherit_from_base(self) -> None:
        """Test every engine exception derives from ShadowDungeonsError."""
        for exc_class in (
            ConfigurationError,
            ValidationError,
            EngineError,
            EncounterNotFoundError,
            InvalidEncounterStateError,
            CombatError,
            ExtractionError,
            SchedulerClosedError,
            CollaboratorError,
        ):
            assert issubclass(exc_class, ShadowDungeonsError)
