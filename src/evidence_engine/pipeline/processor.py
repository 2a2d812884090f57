"""Per-source evidence processing pipeline.

A source text is unitized, each unit is scored and filtered, accepted units are deduplicated,
capped and tagged with topics. Sources are processed independently of one another, so
duplicates spanning two sources are not detected.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Iterable
from typing import Any

from evidence_engine.core.concurrency import TaskPool
from evidence_engine.dedup.service import DeduplicationService
from evidence_engine.errors import UnitizationError
from evidence_engine.logging import get_logger, log_exception, processing_context, set_stage
from evidence_engine.memory.evidence_store import EvidenceStore
from evidence_engine.models.config import ProcessingConfig, merge_config
from evidence_engine.models.evidence import DeduplicationResult, EvidenceUnit, RejectedUnit
from evidence_engine.models.processing import BatchProcessingResult, ProcessingResult, ProcessingStats, SourceText
from evidence_engine.models.text_unit import TextUnit
from evidence_engine.models.topics import TopicClusteringResult, TopicExtractionResult, TopicUnit
from evidence_engine.pipeline.scoring import (
    calculate_confidence_score,
    calculate_quality_score,
    extract_metadata,
    extract_topic_candidates,
)
from evidence_engine.text.unitizer import normalize_text, unitize_text, validate_unitization
from evidence_engine.topics.service import TopicService
from evidence_engine.utils.ids import format_unit_id

logger = get_logger(__name__)


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class EvidenceProcessor:
    """Turns raw source text into scored, deduplicated, topic-tagged evidence units."""

    def __init__(self, config: ProcessingConfig | None = None, *, store: EvidenceStore | None = None) -> None:
        self._config = merge_config(config) if config is not None else ProcessingConfig()
        self._store = store

    @property
    def config(self) -> ProcessingConfig:
        return self._config

    def update_config(self, **patch: Any) -> ProcessingConfig:
        """Merge ``patch`` into the active configuration.

        Raises:
            MalformedConfigError: If the result is invalid.
        """

        self._config = merge_config(self._config, **patch)
        return self._config

    def process_source_text(self, source_id: str, text: str) -> ProcessingResult:
        """Process one source.

        Args:
            source_id: Identifier of the source; unit ids are derived from it.
            text: Raw source text.

        Returns:
            The accepted units together with rejects, deduplication and topic diagnostics.

        Raises:
            UnitizationError: If the units do not validate against the normalized text.
        """

        config = self._config
        start = time.perf_counter()

        with processing_context(source_id=source_id, stage="unitize"):
            normalized = normalize_text(text)
            text_units = unitize_text(text, config)
            validation = validate_unitization(text_units, normalized, config)
            if not validation.is_valid:
                raise UnitizationError(validation.errors)
            for warning in validation.warnings:
                logger.debug("Unitization warning: %s", warning)

            set_stage("score")
            accepted, rejected = self._score_units(source_id, text_units, normalized, config)

            set_stage("deduplicate")
            units = accepted
            deduplication: DeduplicationResult | None = None
            if config.deduplication_enabled and len(accepted) > 1:
                deduplication = DeduplicationService(config.deduplication).deduplicate(accepted)
                units = deduplication.deduplicated
            units = units[: config.max_units_per_source]

            set_stage("topics")
            topic_results: list[TopicExtractionResult] = []
            clustering: TopicClusteringResult | None = None
            if config.topic_tagging_enabled and units:
                units, topic_results, clustering = self._tag_topics(source_id, units, config)

            if self._store is not None:
                set_stage("store")
                self._store.add_units(units)

            result = ProcessingResult(
                source_id=source_id,
                units=units,
                total_units=len(text_units),
                processed_units=len(units),
                rejected_units=len(rejected),
                rejected=rejected,
                deduplicated_units=deduplication.statistics.duplicates_removed if deduplication else 0,
                deduplication=deduplication,
                topics=topic_results,
                topic_clustering=clustering,
                processing_time_ms=(time.perf_counter() - start) * 1000,
                validation=validation,
                stats=ProcessingStats(
                    avg_confidence=_mean([u.confidence or 0.0 for u in units]),
                    avg_quality=_mean([u.quality_score or 0.0 for u in units]),
                    avg_unit_size=_mean([float(len(u.snippet)) for u in units]),
                    total_coverage=validation.stats.total_coverage,
                ),
            )
            logger.info(
                "Processed source: %d units, %d accepted, %d rejected, %d duplicates removed",
                result.total_units,
                result.processed_units,
                result.rejected_units,
                result.deduplicated_units,
            )
            return result

    def _score_units(
        self,
        source_id: str,
        text_units: list[TextUnit],
        normalized: str,
        config: ProcessingConfig,
    ) -> tuple[list[EvidenceUnit], list[RejectedUnit]]:
        accepted: list[EvidenceUnit] = []
        rejected: list[RejectedUnit] = []
        for unit in text_units:
            try:
                evidence = self._build_unit(source_id, len(accepted) + 1, unit, normalized, config)
            except Exception as e:
                log_exception(logger, "Failed to score unit", start_index=unit.start_index)
                rejected.append(RejectedUnit(unit=unit, reason=f"Scoring failed: {e}"))
                continue

            confidence = evidence.confidence or 0.0
            quality = evidence.quality_score or 0.0
            if confidence < config.confidence_threshold:
                rejected.append(
                    RejectedUnit(
                        unit=unit,
                        reason=f"Confidence {confidence:.2f} below threshold {config.confidence_threshold}",
                    )
                )
            elif quality < config.quality_threshold:
                rejected.append(
                    RejectedUnit(
                        unit=unit,
                        reason=f"Quality {quality:.2f} below threshold {config.quality_threshold}",
                    )
                )
            else:
                accepted.append(evidence)
        return accepted, rejected

    @staticmethod
    def _build_unit(
        source_id: str,
        n: int,
        unit: TextUnit,
        normalized: str,
        config: ProcessingConfig,
    ) -> EvidenceUnit:
        confidence = calculate_confidence_score(unit, normalized, config.preferred_size)
        quality = calculate_quality_score(unit)
        candidates = extract_topic_candidates(unit)

        metadata: dict[str, Any] = extract_metadata(unit, normalized) if config.metadata_extraction else {}
        metadata.update(
            {
                "confidenceScore": confidence,
                "wordCount": unit.word_count,
                "sentenceCount": unit.sentence_count,
                "hasCompleteStart": unit.has_complete_start,
                "hasCompleteEnd": unit.has_complete_end,
                "topicCandidates": candidates,
            }
        )
        return EvidenceUnit(
            id=format_unit_id(source_id, n),
            source_id=source_id,
            snippet=unit.text,
            start_index=unit.start_index,
            end_index=unit.end_index,
            quality_score=quality,
            confidence=confidence,
            topics=candidates,
            metadata=metadata,
        )

    @staticmethod
    def _tag_topics(
        source_id: str,
        units: list[EvidenceUnit],
        config: ProcessingConfig,
    ) -> tuple[list[EvidenceUnit], list[TopicExtractionResult], TopicClusteringResult | None]:
        service = TopicService(config.topics)
        topic_results, clustering = service.extract_topics_from_units(
            [TopicUnit(id=u.id, text=u.snippet, source_id=source_id) for u in units]
        )
        by_id = {r.evidence_id: r for r in topic_results}

        tagged: list[EvidenceUnit] = []
        for u in units:
            result = by_id.get(u.id)
            keywords = [t.keyword for t in result.topics] if result else []
            metadata = dict(u.metadata)
            if result is not None and result.cluster_id is not None:
                metadata["topicClusterId"] = result.cluster_id
            tagged.append(u.model_copy(update={"topics": keywords or u.topics, "metadata": metadata}))
        return tagged, topic_results, clustering

    async def process_sources(
        self,
        sources: Iterable[SourceText],
        max_concurrent: int = 4,
    ) -> BatchProcessingResult:
        """Process several sources concurrently.

        Each source runs in a worker thread on a bounded task pool. A failing source is reported
        in ``failed`` and does not stop the others.
        """

        sources = list(sources)
        pool = TaskPool(max_concurrent)

        async def _run(source: SourceText) -> ProcessingResult:
            return await asyncio.to_thread(self.process_source_text, source.source_id, source.text)

        outcomes = await pool.map(_run, sources, return_exceptions=True)

        batch = BatchProcessingResult()
        for source, outcome in zip(sources, outcomes):
            if isinstance(outcome, Exception):
                logger.warning("Source %s failed: %s", source.source_id, outcome)
                batch.failed[source.source_id] = str(outcome)
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            batch.results.append(outcome)
            batch.accepted_units += outcome.processed_units
            batch.rejected_units += outcome.rejected_units
            batch.deduplicated_units += outcome.deduplicated_units
        return batch
