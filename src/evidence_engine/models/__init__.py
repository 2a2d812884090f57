"""Pydantic models used across the project."""

from __future__ import annotations

from evidence_engine.models.config import (
    ClusteringConfig,
    DeduplicationConfig,
    KeywordConfig,
    ProcessingConfig,
    SimilarityConfig,
    TopicExtractionConfig,
    UnitizationConfig,
)
from evidence_engine.models.evidence import (
    DeduplicationResult,
    DeduplicationStatistics,
    DuplicateCluster,
    EvidenceUnit,
    RejectedUnit,
)
from evidence_engine.models.processing import BatchProcessingResult, ProcessingResult, SourceText
from evidence_engine.models.similarity import SimilarityResult
from evidence_engine.models.text_unit import TextUnit, UnitizationReport
from evidence_engine.models.topics import (
    ExtractedTopic,
    TopicCluster,
    TopicClusteringResult,
    TopicExtractionResult,
    TopicUnit,
)

__all__ = [
    "BatchProcessingResult",
    "ClusteringConfig",
    "DeduplicationConfig",
    "DeduplicationResult",
    "DeduplicationStatistics",
    "DuplicateCluster",
    "EvidenceUnit",
    "ExtractedTopic",
    "KeywordConfig",
    "ProcessingConfig",
    "ProcessingResult",
    "RejectedUnit",
    "SimilarityConfig",
    "SimilarityResult",
    "SourceText",
    "TextUnit",
    "TopicCluster",
    "TopicClusteringResult",
    "TopicExtractionConfig",
    "TopicExtractionResult",
    "TopicUnit",
    "UnitizationConfig",
    "UnitizationReport",
]
