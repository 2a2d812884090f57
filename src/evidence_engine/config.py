"""Application configuration.

Configuration is loaded from environment variables. For local development, you can provide a
`.env` file and set `EVIDENCE_ENGINE_ENV_FILE` to point to it.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from evidence_engine.models.config import DeduplicationStrategy, ProcessingConfig, build_config


class Settings(BaseSettings):
    """Evidence engine settings.

    All fields are environment-configurable. Prefix is `EVIDENCE_ENGINE_`.
    """

    model_config = SettingsConfigDict(
        env_prefix="EVIDENCE_ENGINE_",
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    log_level: str = Field(default="INFO")

    # Unitization and filtering
    min_unit_size: int = Field(default=200, ge=1)
    max_unit_size: int = Field(default=400, ge=1)
    overlap_size: int = Field(default=50, ge=0)
    preferred_size: int = Field(default=300, ge=1)
    confidence_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    quality_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    max_units_per_source: int = Field(default=100, ge=1)

    # Deduplication
    deduplication_enabled: bool = Field(default=True)
    similarity_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    dedup_strategy: DeduplicationStrategy = Field(default="keep_highest_quality")
    use_fast_prefiltering: bool = Field(default=True)

    # Topics
    topic_tagging_enabled: bool = Field(default=True)
    topics_per_unit: int = Field(default=4, ge=1)
    clustering_enabled: bool = Field(default=True)
    random_seed: int | None = Field(default=None)

    # Batch processing
    max_concurrent_sources: int = Field(default=4, ge=1, le=64)

    # Artifacts
    artifacts_dir: Path = Field(default=Path("artifacts"))

    def processing_config(self) -> ProcessingConfig:
        """Build the pipeline configuration described by these settings.

        Raises:
            MalformedConfigError: If the settings combine into an invalid configuration.
        """

        return build_config(
            ProcessingConfig,
            min_unit_size=self.min_unit_size,
            max_unit_size=self.max_unit_size,
            overlap_size=self.overlap_size,
            preferred_size=self.preferred_size,
            confidence_threshold=self.confidence_threshold,
            quality_threshold=self.quality_threshold,
            max_units_per_source=self.max_units_per_source,
            deduplication_enabled=self.deduplication_enabled,
            topic_tagging_enabled=self.topic_tagging_enabled,
            deduplication={
                "cosine_similarity_threshold": self.similarity_threshold,
                "strategy": self.dedup_strategy,
                "use_fast_prefiltering": self.use_fast_prefiltering,
            },
            topics={
                "topics_per_unit": self.topics_per_unit,
                "clustering_enabled": self.clustering_enabled,
                "clustering": {"random_seed": self.random_seed},
            },
        )


def load_settings() -> Settings:
    """Load settings from env.

    Returns:
        Settings: Parsed settings.
    """

    env_file_override = os.getenv("EVIDENCE_ENGINE_ENV_FILE")
    if env_file_override:
        env_path = Path(env_file_override)
        return Settings(_env_file=env_path)

    default_env = Path.cwd() / ".env"
    if default_env.exists():
        return Settings(_env_file=default_env)

    return Settings()
