"""Topic extraction and clustering models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ExtractedTopic(BaseModel):
    """A ranked keyword for one unit."""

    keyword: str
    score: float
    frequency: float
    positions: list[int] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)


class TopicExtractionResult(BaseModel):
    """Keywords extracted for one unit."""

    evidence_id: str
    topics: list[ExtractedTopic] = Field(default_factory=list)
    cluster_id: str | None = None
    processing_time_ms: float = 0.0
    confidence: float = 0.0


class TopicCluster(BaseModel):
    """Units grouped by keyword profile. Lives only as long as the run that produced it."""

    id: str
    label: str
    keywords: list[str]
    evidence_ids: list[str]
    centroid: list[float]
    coherence_score: float
    size: int


class TopicClusteringResult(BaseModel):
    """Diagnostic summary of a clustering run."""

    clusters: list[TopicCluster] = Field(default_factory=list)
    unclustered_ids: list[str] = Field(default_factory=list)
    silhouette_score: float = 0.0
    total_units: int = 0
    clustered_units: int = 0
    processing_time_ms: float = 0.0


class TopicUnit(BaseModel):
    """Minimal view of a unit for topic extraction."""

    id: str
    text: str
    source_id: str = ""
