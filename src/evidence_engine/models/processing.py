"""Processing pipeline result models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from evidence_engine.models.evidence import DeduplicationResult, EvidenceUnit, RejectedUnit
from evidence_engine.models.text_unit import UnitizationReport
from evidence_engine.models.topics import TopicClusteringResult, TopicExtractionResult


class ProcessingStats(BaseModel):
    avg_confidence: float = 0.0
    avg_quality: float = 0.0
    avg_unit_size: float = 0.0
    total_coverage: float = 0.0


class ProcessingResult(BaseModel):
    """Everything produced for one source."""

    source_id: str
    units: list[EvidenceUnit] = Field(default_factory=list)
    total_units: int = 0
    processed_units: int = 0
    rejected_units: int = 0
    rejected: list[RejectedUnit] = Field(default_factory=list)
    deduplicated_units: int = 0
    deduplication: DeduplicationResult | None = None
    topics: list[TopicExtractionResult] = Field(default_factory=list)
    topic_clustering: TopicClusteringResult | None = None
    processing_time_ms: float = 0.0
    validation: UnitizationReport
    stats: ProcessingStats = Field(default_factory=ProcessingStats)


class SourceText(BaseModel):
    """A source handed to batch processing."""

    source_id: str
    text: str


class BatchProcessingResult(BaseModel):
    """Results for several sources, processed independently."""

    results: list[ProcessingResult] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)
    accepted_units: int = 0
    rejected_units: int = 0
    deduplicated_units: int = 0
