"""Evidence unit models.

An evidence unit is a snippet of a source text together with its position in the normalized
source, its quality signals and its topic tags. This is the record handed to persistence.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from evidence_engine.models.text_unit import TextUnit


class EvidenceUnit(BaseModel):
    """A snippet extracted from a source."""

    id: str
    source_id: str
    snippet: str
    start_index: int = Field(ge=0)
    end_index: int = Field(ge=0)
    quality_score: float | None = Field(default=None, ge=0.0, le=1.0)
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    topics: list[str] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class DuplicateCluster(BaseModel):
    """A group of similar units and the unit kept for them."""

    representative: EvidenceUnit
    units: list[EvidenceUnit]
    average_similarity: float
    reason: str


class DeduplicationStatistics(BaseModel):
    """Counters and timing for one deduplication run."""

    original_count: int = 0
    deduplicated_count: int = 0
    duplicates_removed: int = 0
    clusters_found: int = 0
    comparisons: int = 0
    prefilter_buckets: int = 0
    oversized_clusters: int = 0
    processing_time_ms: float = 0.0


class DeduplicationResult(BaseModel):
    """Output of a deduplication run."""

    deduplicated: list[EvidenceUnit] = Field(default_factory=list)
    duplicate_clusters: list[DuplicateCluster] = Field(default_factory=list)
    statistics: DeduplicationStatistics = Field(default_factory=DeduplicationStatistics)


class RejectedUnit(BaseModel):
    """A text unit excluded from a processing run."""

    unit: TextUnit
    reason: str
