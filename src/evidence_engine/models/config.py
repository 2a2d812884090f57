"""Option records for the engine components.

Every record is immutable. Services replace their record on update instead of mutating it, so a
call in flight keeps reading the record it started with.
"""

from __future__ import annotations

from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from evidence_engine.errors import MalformedConfigError


DeduplicationStrategy = Literal["keep_highest_quality", "keep_first", "keep_longest", "merge"]

ConfigT = TypeVar("ConfigT", bound="EngineConfig")


class EngineConfig(BaseModel):
    """Base class for option records. Invalid values raise :class:`MalformedConfigError`."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise MalformedConfigError(f"Invalid {type(self).__name__}: {e}") from e


class UnitizationConfig(EngineConfig):
    """Character budgets for text unitization."""

    min_unit_size: int = Field(default=200, ge=1)
    max_unit_size: int = Field(default=400, ge=1)
    overlap_size: int = Field(default=50, ge=0)
    preferred_size: int = Field(default=300, ge=1)

    @model_validator(mode="after")
    def _check_bounds(self) -> "UnitizationConfig":
        if self.min_unit_size > self.max_unit_size:
            raise ValueError("min_unit_size must not exceed max_unit_size")
        if not self.min_unit_size <= self.preferred_size <= self.max_unit_size:
            raise ValueError("preferred_size must lie between min_unit_size and max_unit_size")
        return self


class SimilarityConfig(EngineConfig):
    """Parameters shared by every similarity metric."""

    cosine_similarity_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    min_hash_signature_length: int = Field(default=128, ge=1)
    # sha256 yields 256 bits per shingle
    sim_hash_dimensions: int = Field(default=64, ge=1, le=256)
    shingle_size: int = Field(default=3, ge=1)


class DeduplicationConfig(SimilarityConfig):
    """Deduplication options."""

    strategy: DeduplicationStrategy = Field(default="keep_highest_quality")
    preserve_exact_duplicates: bool = Field(default=False)
    max_cluster_size: int = Field(default=10, ge=1)
    use_fast_prefiltering: bool = Field(default=True)


class KeywordConfig(EngineConfig):
    """Keyword extraction options."""

    max_keywords: int = Field(default=5, ge=1)
    min_word_length: int = Field(default=3, ge=1)
    max_word_length: int = Field(default=20, ge=1)
    min_term_frequency: int = Field(default=1, ge=1)
    use_stop_word_filtering: bool = Field(default=True)
    use_stemming: bool = Field(default=False)
    ngram_size: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _check_lengths(self) -> "KeywordConfig":
        if self.min_word_length > self.max_word_length:
            raise ValueError("min_word_length must not exceed max_word_length")
        return self


class ClusteringConfig(EngineConfig):
    """k-means topic clustering options. ``num_clusters=0`` selects the count automatically."""

    enabled: bool = Field(default=True)
    num_clusters: int = Field(default=0, ge=0)
    max_clusters: int = Field(default=10, ge=1)
    min_cluster_size: int = Field(default=2, ge=1)
    similarity_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    max_iterations: int = Field(default=100, ge=1)
    convergence_threshold: float = Field(default=0.001, ge=0.0)
    random_seed: int | None = Field(default=None)


class TopicExtractionConfig(KeywordConfig):
    """Topic extraction options."""

    topics_per_unit: int = Field(default=4, ge=1)
    use_corpus_tfidf: bool = Field(default=True)
    clustering_enabled: bool = Field(default=True)
    clustering: ClusteringConfig = Field(default_factory=ClusteringConfig)


class ProcessingConfig(UnitizationConfig):
    """Per-source processing pipeline options."""

    confidence_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    quality_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    max_units_per_source: int = Field(default=100, ge=1)
    deduplication_enabled: bool = Field(default=True)
    metadata_extraction: bool = Field(default=True)
    topic_tagging_enabled: bool = Field(default=True)
    deduplication: DeduplicationConfig = Field(default_factory=DeduplicationConfig)
    topics: TopicExtractionConfig = Field(default_factory=TopicExtractionConfig)


def build_config(config_type: type[ConfigT], **values: Any) -> ConfigT:
    """Validate options into a record of ``config_type``.

    Raises:
        MalformedConfigError: If any value is out of range.
    """

    try:
        return config_type.model_validate(values)
    except ValidationError as e:
        raise MalformedConfigError(f"Invalid {config_type.__name__}: {e}") from e


def merge_config(config: ConfigT, **patch: Any) -> ConfigT:
    """Shallow-merge ``patch`` into ``config`` and re-validate.

    Nested records are replaced as a whole, not merged field by field.

    Raises:
        MalformedConfigError: If the merged record is invalid.
    """

    values = {name: getattr(config, name) for name in type(config).model_fields}
    values.update(patch)
    return build_config(type(config), **values)
