"""Evidence deduplication.

Units whose composite similarity reaches the configured threshold are joined in a union-find;
each connected component becomes a cluster that is collapsed to one representative unit.
"""

from __future__ import annotations

import asyncio
import itertools
import time
from collections.abc import Sequence
from typing import Any

from evidence_engine.dedup.prefilter import (
    PREFILTER_MIN_UNITS,
    bucket_by_sim_hash,
    bucket_pairs,
    cross_bucket_pairs,
)
from evidence_engine.dedup.union_find import UnionFind
from evidence_engine.errors import EmptyClusterError
from evidence_engine.logging import get_logger
from evidence_engine.models.config import DeduplicationConfig, DeduplicationStrategy, merge_config
from evidence_engine.models.evidence import (
    DeduplicationResult,
    DeduplicationStatistics,
    DuplicateCluster,
    EvidenceUnit,
)
from evidence_engine.models.similarity import SimilarityResult
from evidence_engine.similarity.engine import calculate_similarity, composite_similarity, compute_signature

logger = get_logger(__name__)


def _mean(values: Sequence[float]) -> float | None:
    return sum(values) / len(values) if values else None


def merge_units(units: Sequence[EvidenceUnit]) -> EvidenceUnit:
    """Synthesize one unit from a cluster.

    The longest snippet is the base. Scores are averaged over the members that define them,
    topics are unioned in first-seen order and the member ids are recorded in metadata.
    """

    if not units:
        raise EmptyClusterError("Cannot merge an empty cluster")

    base = max(units, key=lambda u: len(u.snippet))
    topics: list[str] = []
    has_topics = False
    for u in units:
        if u.topics is None:
            continue
        has_topics = True
        for t in u.topics:
            if t not in topics:
                topics.append(t)

    metadata: dict[str, Any] = dict(base.metadata)
    metadata["mergedFrom"] = [u.id for u in units]
    metadata["mergedCount"] = len(units)

    return base.model_copy(
        update={
            "quality_score": _mean([u.quality_score for u in units if u.quality_score is not None]),
            "confidence": _mean([u.confidence for u in units if u.confidence is not None]),
            "topics": topics if has_topics else None,
            "metadata": metadata,
        }
    )


def select_representative(units: Sequence[EvidenceUnit], strategy: DeduplicationStrategy) -> EvidenceUnit:
    """Pick (or build) the unit that stands for a cluster. Ties keep the earliest unit."""

    if not units:
        raise EmptyClusterError("Cannot select a representative from an empty cluster")

    if strategy == "keep_first":
        return units[0]
    if strategy == "keep_longest":
        return max(units, key=lambda u: len(u.snippet))
    if strategy == "merge":
        return merge_units(units)
    return max(units, key=lambda u: (u.quality_score or 0.0) + (u.confidence or 0.0))


class DeduplicationService:
    """Collapses near-duplicate evidence units."""

    def __init__(self, config: DeduplicationConfig | None = None) -> None:
        """Re-validate ``config`` and make it the active record.

        Raises:
            MalformedConfigError: If ``config`` holds out-of-range values.
        """

        self._config = merge_config(config) if config is not None else DeduplicationConfig()

    @property
    def config(self) -> DeduplicationConfig:
        return self._config

    def update_config(self, **patch: Any) -> DeduplicationConfig:
        """Merge ``patch`` into the active configuration.

        Raises:
            MalformedConfigError: If the result is invalid; the active configuration is kept.
        """

        self._config = merge_config(self._config, **patch)
        logger.debug("Deduplication config updated: %s", patch)
        return self._config

    def deduplicate(self, units: Sequence[EvidenceUnit]) -> DeduplicationResult:
        """Cluster ``units`` and keep one representative per cluster.

        Args:
            units: Units to deduplicate, in input order.

        Returns:
            Representatives ordered by the first input position of their cluster, the clusters
            with more than one member, and run statistics.
        """

        config = self._config
        start = time.perf_counter()
        units = list(units)
        if not units:
            return DeduplicationResult()

        signatures = [compute_signature(u.snippet, config) for u in units]
        uf = UnionFind(len(units))
        scores: dict[tuple[int, int], float] = {}
        comparisons = 0
        prefilter_buckets = 0

        if config.use_fast_prefiltering and len(units) > PREFILTER_MIN_UNITS:
            buckets = bucket_by_sim_hash([s.sim_hash for s in signatures])
            prefilter_buckets = len(buckets)
            pairs = itertools.chain(
                bucket_pairs(buckets),
                cross_bucket_pairs(buckets, signatures, config.cosine_similarity_threshold),
            )
        else:
            pairs = itertools.combinations(range(len(units)), 2)

        for i, j in pairs:
            score = composite_similarity(signatures[i], signatures[j])
            comparisons += 1
            scores[(i, j)] = score
            if score < config.cosine_similarity_threshold:
                continue
            if config.preserve_exact_duplicates and units[i].snippet.strip() == units[j].snippet.strip():
                continue
            uf.union(i, j)

        clusters = uf.components()
        oversized = [c for c in clusters if len(c) > config.max_cluster_size]
        if oversized:
            logger.warning(
                "%d duplicate clusters exceed max_cluster_size=%d (largest has %d units)",
                len(oversized),
                config.max_cluster_size,
                max(len(c) for c in oversized),
            )

        deduplicated: list[EvidenceUnit] = []
        duplicate_clusters: list[DuplicateCluster] = []
        for members in clusters:
            member_units = [units[i] for i in members]
            representative = select_representative(member_units, config.strategy)
            deduplicated.append(representative)
            if len(members) < 2:
                continue
            pair_scores = [
                scores[(a, b)] if (a, b) in scores else composite_similarity(signatures[a], signatures[b])
                for a, b in itertools.combinations(members, 2)
            ]
            duplicate_clusters.append(
                DuplicateCluster(
                    representative=representative,
                    units=member_units,
                    average_similarity=sum(pair_scores) / len(pair_scores),
                    reason=f"Similarity threshold {config.cosine_similarity_threshold}",
                )
            )

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Deduplicated %d units into %d (%d duplicate clusters, %d comparisons)",
            len(units),
            len(deduplicated),
            len(duplicate_clusters),
            comparisons,
        )
        return DeduplicationResult(
            deduplicated=deduplicated,
            duplicate_clusters=duplicate_clusters,
            statistics=DeduplicationStatistics(
                original_count=len(units),
                deduplicated_count=len(deduplicated),
                duplicates_removed=len(units) - len(deduplicated),
                clusters_found=len(duplicate_clusters),
                comparisons=comparisons,
                prefilter_buckets=prefilter_buckets,
                oversized_clusters=len(oversized),
                processing_time_ms=elapsed_ms,
            ),
        )

    async def deduplicate_async(self, units: Sequence[EvidenceUnit]) -> DeduplicationResult:
        """Run :meth:`deduplicate` in a worker thread."""

        return await asyncio.to_thread(self.deduplicate, list(units))

    def find_exact_duplicates(self, units: Sequence[EvidenceUnit]) -> list[DuplicateCluster]:
        """Group units whose trimmed snippets are identical."""

        config = self._config
        groups: dict[str, list[EvidenceUnit]] = {}
        for u in units:
            groups.setdefault(u.snippet.strip(), []).append(u)

        return [
            DuplicateCluster(
                representative=select_representative(members, config.strategy),
                units=members,
                average_similarity=1.0,
                reason="Exact text match",
            )
            for members in groups.values()
            if len(members) > 1
        ]

    def get_similarity_report(self, unit1: EvidenceUnit, unit2: EvidenceUnit) -> SimilarityResult:
        return calculate_similarity(unit1.snippet, unit2.snippet, self._config)
