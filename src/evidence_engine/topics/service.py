"""Topic extraction and clustering for evidence units."""

from __future__ import annotations

import random
import time
from collections.abc import Sequence
from typing import Any

from evidence_engine.logging import get_logger, log_exception
from evidence_engine.models.config import ClusteringConfig, TopicExtractionConfig, merge_config
from evidence_engine.models.topics import (
    ExtractedTopic,
    TopicCluster,
    TopicClusteringResult,
    TopicExtractionResult,
    TopicUnit,
)
from evidence_engine.topics.keywords import (
    TermFrequency,
    TfIdfScore,
    extract_keywords,
    extract_keywords_simple,
    preprocess_terms,
)
from evidence_engine.topics.kmeans import (
    elbow_point,
    kmeans,
    mean_vector,
    silhouette_score,
    vector_cosine,
    wcss,
)

logger = get_logger(__name__)

CLUSTER_KEYWORDS = 5
LABEL_KEYWORDS = 3


def _length_bonus(term: str, good: float, fair: float) -> float:
    if 4 <= len(term) <= 12:
        return good
    if 3 <= len(term) <= 15:
        return fair
    return 0.0


def keyword_confidence(score: TfIdfScore) -> float:
    """Confidence of a TF-IDF keyword."""

    confidence = 0.5
    confidence += min(score.tfidf / 0.5, 1.0) * 0.4
    confidence += min(score.tf * 10, 1.0) * 0.25
    confidence += 0.2 if len(score.positions) > 1 else 0.1
    confidence += _length_bonus(score.term, 0.15, 0.07)
    return max(0.0, min(confidence, 1.0))


def term_confidence(freq: TermFrequency) -> float:
    """Confidence of a keyword ranked by plain term frequency."""

    confidence = 0.4
    confidence += min(freq.normalized_frequency * 20, 1.0) * 0.5
    confidence += _length_bonus(freq.term, 0.3, 0.15)
    confidence += min(freq.count / 3, 1.0) * 0.2
    return max(0.0, min(confidence, 1.0))


class TopicService:
    """Extracts keywords per unit and groups units with k-means over keyword vectors.

    The corpus used for TF-IDF is held on the instance between :meth:`build_corpus` and
    :meth:`clear_cache`.
    """

    def __init__(self, config: TopicExtractionConfig | None = None) -> None:
        self._config = merge_config(config) if config is not None else TopicExtractionConfig()
        self._corpus: list[list[str]] = []

    @property
    def config(self) -> TopicExtractionConfig:
        return self._config

    def update_config(self, **patch: Any) -> TopicExtractionConfig:
        """Merge ``patch`` into the active configuration and drop the cached corpus.

        Raises:
            MalformedConfigError: If the result is invalid.
        """

        self._config = merge_config(self._config, **patch)
        self.clear_cache()
        return self._config

    def clear_cache(self) -> None:
        self._corpus = []

    def build_corpus(self, units: Sequence[TopicUnit]) -> None:
        self._corpus = [preprocess_terms(u.text, self._config) for u in units]

    def extract_topics(self, unit: TopicUnit) -> TopicExtractionResult:
        """Rank keywords for one unit. A failure yields an empty result instead of raising."""

        config = self._config
        start = time.perf_counter()
        try:
            keyword_config = merge_config(config, max_keywords=config.topics_per_unit)
            if config.use_corpus_tfidf and self._corpus:
                topics = [
                    ExtractedTopic(
                        keyword=s.term,
                        score=s.tfidf,
                        frequency=s.tf,
                        positions=s.positions,
                        confidence=keyword_confidence(s),
                    )
                    for s in extract_keywords(unit.text, self._corpus, keyword_config)
                ]
            else:
                topics = [
                    ExtractedTopic(
                        keyword=f.term,
                        score=f.normalized_frequency,
                        frequency=f.count,
                        positions=f.positions,
                        confidence=term_confidence(f),
                    )
                    for f in extract_keywords_simple(unit.text, keyword_config)
                ]
        except Exception:
            log_exception(logger, "Topic extraction failed", evidence_id=unit.id)
            return TopicExtractionResult(
                evidence_id=unit.id,
                processing_time_ms=(time.perf_counter() - start) * 1000,
            )

        return TopicExtractionResult(
            evidence_id=unit.id,
            topics=topics,
            processing_time_ms=(time.perf_counter() - start) * 1000,
            confidence=self._unit_confidence(topics, unit.text, config),
        )

    @staticmethod
    def _unit_confidence(topics: list[ExtractedTopic], text: str, config: TopicExtractionConfig) -> float:
        if not topics:
            return 0.0
        avg = sum(t.confidence for t in topics) / len(topics)
        count_score = 0.25 if len(topics) >= config.topics_per_unit * 0.7 else 0.1
        length_score = 0.15 if 100 <= len(text) <= 500 else 0.07
        return min(avg * 0.6 + count_score + length_score, 1.0)

    def extract_topics_from_units(
        self, units: Sequence[TopicUnit]
    ) -> tuple[list[TopicExtractionResult], TopicClusteringResult | None]:
        """Extract topics for every unit, then cluster them when enabled.

        Returns:
            Per-unit results (with ``cluster_id`` filled in for clustered units) and the
            clustering result, or ``None`` when clustering did not run.
        """

        config = self._config
        if config.use_corpus_tfidf:
            self.build_corpus(units)

        results = [self.extract_topics(u) for u in units]
        clustering: TopicClusteringResult | None = None
        if config.clustering_enabled and len(units) > 1:
            clustering = self.cluster_by_topics(units, results)
            cluster_of = {eid: c.id for c in clustering.clusters for eid in c.evidence_ids}
            results = [r.model_copy(update={"cluster_id": cluster_of.get(r.evidence_id)}) for r in results]
        return results, clustering

    def cluster_by_topics(
        self,
        units: Sequence[TopicUnit],
        topic_results: Sequence[TopicExtractionResult],
    ) -> TopicClusteringResult:
        """Group units by their keyword vectors.

        Vectors span the union vocabulary in first-seen order with each unit's keyword score as
        the value. The cluster count is fixed by ``num_clusters`` or chosen by the elbow method.
        """

        cfg = self._config.clustering
        start = time.perf_counter()
        ids = [u.id for u in units]

        def unclustered() -> TopicClusteringResult:
            return TopicClusteringResult(
                unclustered_ids=ids,
                total_units=len(ids),
                processing_time_ms=(time.perf_counter() - start) * 1000,
            )

        if not cfg.enabled or len(units) < cfg.min_cluster_size * 2:
            return unclustered()

        by_id = {r.evidence_id: r for r in topic_results}
        vocabulary: dict[str, int] = {}
        for r in topic_results:
            for t in r.topics:
                vocabulary.setdefault(t.keyword, len(vocabulary))
        if not vocabulary:
            return unclustered()

        vectors: list[list[float]] = []
        for uid in ids:
            vector = [0.0] * len(vocabulary)
            result = by_id.get(uid)
            for t in result.topics if result else []:
                vector[vocabulary[t.keyword]] = t.score
            vectors.append(vector)

        rng = random.Random(cfg.random_seed)
        k = cfg.num_clusters or self._choose_k(vectors, cfg, rng)
        if k < 2:
            return unclustered()

        km = kmeans(
            vectors,
            k,
            max_iterations=cfg.max_iterations,
            convergence_threshold=cfg.convergence_threshold,
            rng=rng,
        )

        clusters: list[TopicCluster] = []
        for c, centroid in enumerate(km.centroids):
            members = [
                i
                for i, a in enumerate(km.assignments)
                if a == c and vector_cosine(vectors[i], centroid) >= cfg.similarity_threshold
            ]
            if len(members) < cfg.min_cluster_size:
                continue
            clusters.append(self._build_cluster(c, members, ids, vectors, by_id))

        clustered = {eid for c in clusters for eid in c.evidence_ids}
        result = TopicClusteringResult(
            clusters=clusters,
            unclustered_ids=[i for i in ids if i not in clustered],
            silhouette_score=silhouette_score(vectors, km.assignments),
            total_units=len(ids),
            clustered_units=len(clustered),
            processing_time_ms=(time.perf_counter() - start) * 1000,
        )
        logger.info("Clustered %d of %d units into %d topics (k=%d)", len(clustered), len(ids), len(clusters), k)
        return result

    @staticmethod
    def _choose_k(vectors: list[list[float]], cfg: ClusteringConfig, rng: random.Random) -> int:
        max_k = min(cfg.max_clusters, len(vectors) // cfg.min_cluster_size)
        if max_k < 2:
            return 0
        values = []
        for k in range(1, max_k + 1):
            km = kmeans(
                vectors,
                k,
                max_iterations=cfg.max_iterations,
                convergence_threshold=cfg.convergence_threshold,
                rng=rng,
            )
            values.append(wcss(vectors, km.assignments, km.centroids))
        return elbow_point(values)

    @staticmethod
    def _build_cluster(
        index: int,
        members: list[int],
        ids: list[str],
        vectors: list[list[float]],
        by_id: dict[str, TopicExtractionResult],
    ) -> TopicCluster:
        counts: dict[str, int] = {}
        for i in members:
            result = by_id.get(ids[i])
            for t in result.topics if result else []:
                counts[t.keyword] = counts.get(t.keyword, 0) + 1
        keywords = [kw for kw, _ in sorted(counts.items(), key=lambda kv: kv[1], reverse=True)][:CLUSTER_KEYWORDS]

        member_vectors = [vectors[i] for i in members]
        pairs = [
            vector_cosine(member_vectors[a], member_vectors[b])
            for a in range(len(member_vectors))
            for b in range(a + 1, len(member_vectors))
        ]
        return TopicCluster(
            id=f"cluster_{index}",
            label=", ".join(keywords[:LABEL_KEYWORDS]),
            keywords=keywords,
            evidence_ids=[ids[i] for i in members],
            centroid=mean_vector(member_vectors, len(vectors[0])),
            coherence_score=sum(pairs) / len(pairs) if pairs else 1.0,
            size=len(members),
        )
