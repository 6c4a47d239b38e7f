"""Configuration management for the Shadow Dungeons engine.

This module provides centralized configuration using pydantic-settings,
supporting environment variables, .env files, and runtime overrides. Every
tuning constant of the engine (tick intervals, spawn curve, extraction weights,
resurrection costs) is a field here rather than a literal in engine code.

Example:
    >>> from shadow_dungeons.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.extraction.max_attempts
    3

Environment Variables:
    SHADOW_DUNGEONS_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    SHADOW_DUNGEONS_COMBAT_FOREGROUND_TICK_MS: Combat tick while the user watches
    SHADOW_DUNGEONS_POPULATION_SOFT_CAP: Hostile soft cap before biome scaling
    SHADOW_DUNGEONS_EXTRACTION_MAX_ATTEMPTS: Extraction attempts per defeated hostile
    SHADOW_DUNGEONS_RESURRECTION_BASE_COST: Mana cost of reviving an E-rank shadow
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shadow_dungeons.core.constants import RANK_COUNT
from shadow_dungeons.core.exceptions import ConfigurationError


class CombatSettings(BaseSettings):
    """Configuration for the combat batch scheduler.

    Attributes:
        foreground_tick_ms: Tick interval while the encounter is in the foreground.
        background_tick_ms: Tick interval while the encounter is backgrounded.
        max_attacks_per_tick: Catch-up cap per combatant per tick.
        damage_variance_min: Lower bound of the per-attack damage roll.
        damage_variance_max: Upper bound of the per-attack damage roll.
        cooldown_variance_min: Lower bound of the per-attack cooldown jitter.
        cooldown_variance_max: Upper bound of the per-attack cooldown jitter.
        hostile_targeting_probability: Chance a friendly attack goes to a mob
            rather than the boss.
        mob_splash_targets: Friendly combatants hit by one mob attack.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHADOW_DUNGEONS_COMBAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    foreground_tick_ms: float = Field(default=3000.0, gt=0, description="Foreground tick")
    background_tick_ms: float = Field(default=15000.0, gt=0, description="Background tick")
    max_attacks_per_tick: int = Field(default=20, ge=1, le=1000, description="Catch-up cap")
    damage_variance_min: float = Field(default=0.80, gt=0, description="Damage roll floor")
    damage_variance_max: float = Field(default=1.20, gt=0, description="Damage roll ceiling")
    cooldown_variance_min: float = Field(default=0.95, gt=0, description="Cooldown jitter floor")
    cooldown_variance_max: float = Field(default=1.05, gt=0, description="Cooldown jitter ceiling")
    hostile_targeting_probability: float = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
        description="Probability a friendly attack targets a mob instead of the boss",
    )
    mob_splash_targets: int = Field(default=2, ge=1, le=50, description="Mob splash width")

    @model_validator(mode="after")
    def validate_ranges(self) -> "CombatSettings":
        """Ensure every variance range is ordered and backgrounding slows ticks.

        Returns:
            Self if validation passes.

        Raises:
            ConfigurationError: If a range is inverted.
        """
        if self.damage_variance_min > self.damage_variance_max:
            raise ConfigurationError(
                f"damage_variance_min ({self.damage_variance_min}) must not exceed "
                f"damage_variance_max ({self.damage_variance_max})",
                config_key="damage_variance_min",
            )
        if self.cooldown_variance_min > self.cooldown_variance_max:
            raise ConfigurationError(
                f"cooldown_variance_min ({self.cooldown_variance_min}) must not exceed "
                f"cooldown_variance_max ({self.cooldown_variance_max})",
                config_key="cooldown_variance_min",
            )
        if self.background_tick_ms < self.foreground_tick_ms:
            raise ConfigurationError(
                "background_tick_ms must be at least foreground_tick_ms",
                config_key="background_tick_ms",
            )
        return self


class PopulationSettings(BaseSettings):
    """Configuration for the hostile population controller.

    ``spawn_steps`` is the step function of the spawn curve: each entry is
    ``(fill_ratio_below, base_count)`` where fill ratio is population divided by
    the encounter's soft cap. The last entry is the trickle used right below the
    soft cap; at or above it nothing spawns.

    Attributes:
        tick_ms: Interval of the population growth tick.
        soft_cap: Target population before the biome multiplier.
        band_floor_fraction: Lower edge of the target band as a fraction of the cap.
        spawn_steps: Step function of fill ratio to base spawn count.
        spawn_variance: Relative +/- variance applied to each batch.
        initial_burst_fraction: Share of the soft cap spawned while Spawning.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHADOW_DUNGEONS_POPULATION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    tick_ms: float = Field(default=10000.0, gt=0, description="Population tick")
    soft_cap: int = Field(default=3000, ge=1, le=200000, description="Soft cap")
    band_floor_fraction: float = Field(
        default=0.83,
        gt=0.0,
        le=1.0,
        description="Target band floor as a fraction of the soft cap",
    )
    spawn_steps: tuple[tuple[float, int], ...] = Field(
        default=((0.30, 250), (0.60, 150), (0.80, 80), (0.90, 40), (1.00, 15)),
        description="Fill ratio thresholds and their base spawn counts",
    )
    spawn_variance: float = Field(default=0.20, ge=0.0, lt=1.0, description="Batch variance")
    initial_burst_fraction: float = Field(
        default=0.30,
        ge=0.0,
        le=1.0,
        description="Share of the soft cap spawned up front",
    )

    @model_validator(mode="after")
    def validate_spawn_steps(self) -> "PopulationSettings":
        """Ensure the spawn curve is monotonically decreasing with a positive tail.

        Returns:
            Self if validation passes.

        Raises:
            ConfigurationError: If the step function is malformed.
        """
        if not self.spawn_steps:
            raise ConfigurationError("spawn_steps must not be empty", config_key="spawn_steps")
        thresholds = [threshold for threshold, _ in self.spawn_steps]
        counts = [count for _, count in self.spawn_steps]
        if any(b <= a for a, b in zip(thresholds, thresholds[1:])):
            raise ConfigurationError(
                "spawn_steps thresholds must be strictly ascending",
                config_key="spawn_steps",
                details={"thresholds": thresholds},
            )
        if any(b > a for a, b in zip(counts, counts[1:])):
            raise ConfigurationError(
                "spawn_steps counts must be non-increasing",
                config_key="spawn_steps",
                details={"counts": counts},
            )
        if counts[-1] < 1:
            raise ConfigurationError(
                "the last spawn step (trickle) must spawn at least one hostile",
                config_key="spawn_steps",
            )
        if thresholds[-1] < 1.0:
            raise ConfigurationError(
                "the last spawn step must reach the soft cap (threshold >= 1.0)",
                config_key="spawn_steps",
            )
        return self


class ExtractionSettings(BaseSettings):
    """Configuration for the extraction pipeline and its probability model.

    The probability weights mirror the formula
    ``base * statsMult * rankMult * rankPenalty * (1 - resistance)``.

    Attributes:
        debounce_ms: Accumulation window that coalesces near-simultaneous deaths.
        retry_interval_ms: Interval of the retry queue processor.
        batch_size: Tickets processed together per batch.
        max_attempts: Attempts per defeated hostile before it is purged.
        base_chance_per_intelligence: k1, base chance per user INT point.
        intelligence_weight: a, stats multiplier weight of INT.
        perception_weight: b, stats multiplier weight of PER.
        strength_weight: c, stats multiplier weight of STR.
        total_stats_weight: d, weight of total user stats per 1000.
        rank_multipliers: Per target rank multiplier, E first.
        rank_penalty_base: Penalty base per tier the target outranks the user.
        max_resistance: Cap of the strength-based resistance.
        max_rank_gap: Largest tier gap that still allows extraction.
        boss_attempts: Attempts allowed against a defeated boss.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHADOW_DUNGEONS_EXTRACTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debounce_ms: float = Field(default=100.0, gt=0, description="Immediate-stage window")
    retry_interval_ms: float = Field(default=500.0, gt=0, description="Retry processor interval")
    batch_size: int = Field(default=20, ge=1, le=1000, description="Tickets per batch")
    max_attempts: int = Field(default=3, ge=1, le=10, description="Attempts per hostile")

    base_chance_per_intelligence: float = Field(default=0.00005, ge=0.0)
    intelligence_weight: float = Field(default=0.003, ge=0.0)
    perception_weight: float = Field(default=0.002, ge=0.0)
    strength_weight: float = Field(default=0.001, ge=0.0)
    total_stats_weight: float = Field(default=0.5, ge=0.0)
    rank_multipliers: tuple[float, ...] = Field(
        default=(1.0, 0.95, 0.9, 0.85, 0.8, 0.7, 0.6, 0.5, 0.4, 0.3, 0.2, 0.15, 0.1),
        description="Target rank multiplier, weakest rank first",
    )
    rank_penalty_base: float = Field(default=0.5, gt=0.0, le=1.0)
    max_resistance: float = Field(default=0.9, ge=0.0, lt=1.0)
    max_rank_gap: int = Field(default=2, ge=0)
    boss_attempts: int = Field(default=3, ge=1, le=10, description="Boss ARISE attempts")

    @model_validator(mode="after")
    def validate_rank_multipliers(self) -> "ExtractionSettings":
        """Ensure one multiplier exists per rank.

        Returns:
            Self if validation passes.

        Raises:
            ConfigurationError: If the table length is wrong or has negatives.
        """
        if len(self.rank_multipliers) != RANK_COUNT:
            raise ConfigurationError(
                f"rank_multipliers needs {RANK_COUNT} entries, "
                f"got {len(self.rank_multipliers)}",
                config_key="rank_multipliers",
            )
        if any(value < 0 for value in self.rank_multipliers):
            raise ConfigurationError(
                "rank_multipliers must be non-negative",
                config_key="rank_multipliers",
            )
        return self


class ResurrectionSettings(BaseSettings):
    """Configuration for the resurrection economy.

    Attributes:
        base_cost: Mana cost of reviving the lowest rank.
        growth_factor: Cost multiplier per rank tier.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHADOW_DUNGEONS_RESURRECTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_cost: float = Field(default=10.0, gt=0, description="E-rank resurrection cost")
    growth_factor: float = Field(default=2.0, ge=1.0, le=4.0, description="Cost growth per tier")


class LifecycleSettings(BaseSettings):
    """Configuration for the encounter lifecycle.

    Attributes:
        grace_window_ms: Duration of the post-boss bonus extraction window.
        max_duration_ms: Encounters still running after this fail with a timeout.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHADOW_DUNGEONS_LIFECYCLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    grace_window_ms: float = Field(default=300000.0, gt=0, description="Boss grace window")
    max_duration_ms: float = Field(default=600000.0, gt=0, description="Encounter timeout")


class CollaboratorSettings(BaseSettings):
    """Retry policy for idempotent collaborator reads.

    Attributes:
        retry_attempts: Total attempts for a read (1 disables retrying).
        retry_wait_multiplier_s: Exponential backoff multiplier in seconds.
        retry_wait_min_s: Minimum wait between attempts in seconds.
        retry_wait_max_s: Maximum wait between attempts in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHADOW_DUNGEONS_COLLABORATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    retry_attempts: int = Field(default=3, ge=1, le=10)
    retry_wait_multiplier_s: float = Field(default=0.05, ge=0.0)
    retry_wait_min_s: float = Field(default=0.0, ge=0.0)
    retry_wait_max_s: float = Field(default=1.0, ge=0.0)

    @model_validator(mode="after")
    def validate_wait_bounds(self) -> "CollaboratorSettings":
        """Ensure the backoff window is ordered.

        Returns:
            Self if validation passes.

        Raises:
            ConfigurationError: If retry_wait_min_s > retry_wait_max_s.
        """
        if self.retry_wait_min_s > self.retry_wait_max_s:
            raise ConfigurationError(
                "retry_wait_min_s must not exceed retry_wait_max_s",
                config_key="retry_wait_min_s",
            )
        return self


class Settings(BaseSettings):
    """Main engine settings aggregating all configuration domains.

    Attributes:
        app_name: Application name.
        app_version: Application version string.
        debug: Enable debug mode.
        log_level: Engine logging level.
        json_logs: Emit JSON log lines instead of console output.
        combat: Combat batch scheduler settings.
        population: Population controller settings.
        extraction: Extraction pipeline settings.
        resurrection: Resurrection economy settings.
        lifecycle: Encounter lifecycle settings.
        collaborator: Collaborator retry settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHADOW_DUNGEONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    app_name: str = Field(default="Shadow Dungeons", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    json_logs: bool = Field(default=False, description="Emit JSON logs")

    combat: CombatSettings = Field(default_factory=CombatSettings)
    population: PopulationSettings = Field(default_factory=PopulationSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    resurrection: ResurrectionSettings = Field(default_factory=ResurrectionSettings)
    lifecycle: LifecycleSettings = Field(default_factory=LifecycleSettings)
    collaborator: CollaboratorSettings = Field(default_factory=CollaboratorSettings)

    @property
    def is_production(self) -> bool:
        """Check if running in production mode.

        Returns:
            True if not in debug mode.
        """
        return not self.debug


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the engine settings singleton.

    Returns:
        The engine Settings instance.

    Raises:
        ConfigurationError: If configuration is missing or invalid.
    """
    try:
        return Settings()
    except ConfigurationError:
        raise
    except Exception as exc:
        raise ConfigurationError(
            f"Failed to load engine settings: {exc}",
            details={"original_error": str(exc)},
        ) from exc


def clear_settings_cache() -> None:
    """Clear the settings cache, forcing a reload on next access."""
    get_settings.cache_clear()


__all__ = [
    "CombatSettings",
    "PopulationSettings",
    "ExtractionSettings",
    "ResurrectionSettings",
    "LifecycleSettings",
    "CollaboratorSettings",
    "Settings",
    "get_settings",
    "clear_settings_cache",
]
