# reanchor/service/config.py

"""Application configuration using Pydantic Settings.

Manages environment variables, defaults, and validation rules.
"""

from typing import Dict

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from reanchor.core.definitions import STRATEGY_PRIORITY, StrategyKind


class Settings(BaseSettings):
    """Global anchoring settings.

    Loads values from environment variables (prefix 'REANCHOR_') or .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="REANCHOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Resolver
    reinforcement_step: float = Field(
        default=0.05,
        gt=0.0,
        le=1.0,
        description="Confidence added to a strategy after it resolves an anchor.",
    )

    degraded_confidence: float = Field(
        default=0.10,
        ge=0.0,
        le=1.0,
        description="Confidence reported when every strategy misses.",
    )

    initial_confidence: Dict[StrategyKind, float] = Field(
        default_factory=lambda: {
            StrategyKind.IDENTIFIER: 0.9,
            StrategyKind.TEXT_CONTEXT: 0.7,
            StrategyKind.STRUCTURAL_PATH: 0.6,
            StrategyKind.SPATIAL_POSITION: 0.4,
        },
        description="Confidence assigned to each strategy when an anchor is created.",
    )

    # Locators
    neighbor_overlap_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum share of recorded neighbor tags a hit-test match must keep.",
    )

    neighbor_tag_limit: int = Field(default=5, ge=0)

    text_sample_length: int = Field(
        default=50,
        ge=1,
        description="Characters recorded for target and context text fragments.",
    )

    # Fingerprint
    fingerprint_tag_limit: int = Field(default=100, ge=1)
    fingerprint_text_limit: int = Field(default=1000, ge=1)

    # Drift calibration
    correction_cap: int = Field(default=20, ge=1)
    calibration_min_samples: int = Field(default=3, ge=1)
    calibration_consistency_threshold: float = Field(
        default=20.0,
        gt=0.0,
        description="Per-axis standard deviation below which corrections count as systematic.",
    )

    # Recommended coalescing windows for callers feeding re-resolve triggers
    mutation_debounce_ms: int = Field(default=200, ge=150, le=300)
    resize_debounce_ms: int = Field(default=300, ge=200, le=400)

    log_level: str = Field(default="INFO")

    @field_validator("initial_confidence")
    @classmethod
    def validate_initial_confidence(
        cls, v: Dict[StrategyKind, float]
    ) -> Dict[StrategyKind, float]:
        """Ensure every strategy has an initial score within [0, 1]."""
        missing = [kind.value for kind in STRATEGY_PRIORITY if kind not in v]
        if missing:
            raise ValueError(f"Initial confidence missing for: {missing}")
        if any(not 0.0 <= score <= 1.0 for score in v.values()):
            raise ValueError("Initial confidence values must be within [0, 1]")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if v.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return v.upper()


# Singleton settings instance
settings = Settings()
