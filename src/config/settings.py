# src/config/settings.py - v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for every tunable threshold of the engine. The
similarity bands are empirical defaults; override them per deployment.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


_UNIT_INTERVAL_FIELDS = (
    "detector_path_similarity_threshold",
    "detector_content_similarity_threshold",
    "detector_equivalence_boost",
    "matcher_min_confidence",
    "matcher_update_threshold",
    "matcher_strong_match_confidence",
    "matcher_strong_update_threshold",
    "matcher_fallback_update_threshold",
    "cleanup_group_confidence",
    "cleanup_merge_confidence",
    "cleanup_delete_confidence",
    "adapter_auto_update_confidence",
)

_NON_NEGATIVE_FIELDS = (
    "detector_min_content_length",
    "lock_timeout_s",
    "batch_retry_count",
    "batch_retry_base_delay_s",
    "batch_retry_max_delay_s",
)


class Settings(BaseSettings):
    """Engine settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Duplicate detection ===
    detector_path_similarity_threshold: float = 0.85
    detector_content_similarity_threshold: float = 0.95
    detector_min_content_length: int = 50
    detector_equivalence_boost: float = 0.3

    # === File matching ===
    matcher_min_confidence: float = 0.4
    matcher_update_threshold: float = 0.65
    matcher_strong_match_confidence: float = 0.85
    matcher_strong_update_threshold: float = 0.6
    matcher_fallback_update_threshold: float = 0.7

    # === Locking ===
    lock_timeout_s: float = 30.0

    # === Batch processing ===
    batch_retry_count: int = 1
    batch_retry_base_delay_s: float = 1.0
    batch_retry_max_delay_s: float = 5.0

    # === Cleanup ===
    cleanup_group_confidence: float = 0.7
    cleanup_merge_confidence: float = 0.8
    cleanup_delete_confidence: float = 0.9

    # === Input adapter ===
    adapter_auto_update_confidence: float = 0.5

    # === Event log ===
    event_log_max_entries: int = 1000

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(*_UNIT_INTERVAL_FIELDS)
    @classmethod
    def validate_unit_interval(cls, v: float, info) -> float:  # noqa: N805
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"{info.field_name} must be within [0, 1], got {v}")
        return v

    @field_validator(*_NON_NEGATIVE_FIELDS)
    @classmethod
    def validate_non_negative(cls, v: float, info) -> float:  # noqa: N805
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    @field_validator("event_log_max_entries")
    @classmethod
    def validate_event_log_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("event_log_max_entries must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency of the threshold bands."""
        errors: list[str] = []

        if not (
            self.matcher_strong_update_threshold
            <= self.matcher_update_threshold
            <= self.matcher_fallback_update_threshold
        ):
            errors.append(
                "matcher thresholds must satisfy strong_update <= update <= fallback_update"
            )

        if self.cleanup_merge_confidence >= self.cleanup_delete_confidence:
            errors.append("cleanup_merge_confidence must be < cleanup_delete_confidence")

        if self.batch_retry_base_delay_s > self.batch_retry_max_delay_s:
            errors.append("batch_retry_base_delay_s must be <= batch_retry_max_delay_s")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-project config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
