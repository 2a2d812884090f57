"""Tests for evidence deduplication."""

from __future__ import annotations

import asyncio

import pytest

from evidence_engine.dedup import service as dedup_service
from evidence_engine.dedup.prefilter import composite_upper_bound, cross_bucket_pairs
from evidence_engine.dedup.service import DeduplicationService, merge_units, select_representative
from evidence_engine.dedup.union_find import UnionFind
from evidence_engine.errors import EmptyClusterError, MalformedConfigError
from evidence_engine.models.config import DeduplicationConfig
from evidence_engine.models.evidence import EvidenceUnit
from evidence_engine.similarity.engine import calculate_similarity, compute_signature

FOX = "The quick brown fox jumps over the lazy dog."
FOX_RUNS = "The quick brown fox runs over the lazy dog."


def _unit(uid: str, snippet: str, **kwargs) -> EvidenceUnit:
    return EvidenceUnit(id=uid, source_id="src", snippet=snippet, start_index=0, end_index=len(snippet), **kwargs)


def _distinct(i: int) -> str:
    return f"alpha{i} bravo{i} charlie{i} delta{i} echo{i} foxtrot{i} golf{i}."


def test_exact_duplicates_keep_highest_quality() -> None:
    """It should collapse identical snippets and keep the best-scored one."""

    units = [
        _unit("A", FOX, quality_score=0.8),
        _unit("B", FOX, quality_score=0.9),
        _unit("C", "Completely different text.", quality_score=0.7),
    ]
    result = DeduplicationService().deduplicate(units)

    assert len(result.deduplicated) == 2
    assert [u.id for u in result.deduplicated] == ["B", "C"]
    assert len(result.duplicate_clusters) == 1
    cluster = result.duplicate_clusters[0]
    assert cluster.representative.id == "B"
    assert [u.id for u in cluster.units] == ["A", "B"]
    assert cluster.average_similarity == pytest.approx(1.0)
    assert cluster.reason == "Similarity threshold 0.85"

    stats = result.statistics
    assert stats.original_count == 3
    assert stats.deduplicated_count == 2
    assert stats.duplicates_removed == 1
    assert stats.clusters_found == 1
    assert stats.comparisons == 3


def test_threshold_sensitivity() -> None:
    """It should merge a one-word variant only under a permissive threshold."""

    units = [_unit("a", FOX), _unit("b", FOX_RUNS)]

    strict = DeduplicationService(DeduplicationConfig(cosine_similarity_threshold=0.85))
    assert len(strict.deduplicate(units).deduplicated) == 2

    lenient = DeduplicationService(DeduplicationConfig(cosine_similarity_threshold=0.4))
    assert len(lenient.deduplicate(units).deduplicated) == 1


def test_merge_strategy_unions_topics() -> None:
    """It should synthesize one unit from the longest snippet and the union of topics."""

    units = [
        _unit("short", "The quick brown fox", topics=["animals"], quality_score=0.6),
        _unit("long", "The quick brown fox jumps", topics=["motion"], quality_score=0.8),
    ]
    service = DeduplicationService(DeduplicationConfig(cosine_similarity_threshold=0.5, strategy="merge"))
    result = service.deduplicate(units)

    assert len(result.deduplicated) == 1
    merged = result.deduplicated[0]
    assert merged.snippet == "The quick brown fox jumps"
    assert merged.topics == ["animals", "motion"]
    assert merged.quality_score == pytest.approx(0.7)
    assert merged.confidence is None
    assert merged.metadata["mergedFrom"] == ["short", "long"]
    assert merged.metadata["mergedCount"] == 2


def test_merge_units_deduplicates_topics() -> None:
    """It should not repeat topics shared by several members."""

    merged = merge_units(
        [
            _unit("a", "one", topics=["x", "y"], confidence=0.2),
            _unit("b", "three", topics=["y", "z"]),
            _unit("c", "two", confidence=0.4),
        ]
    )
    assert merged.id == "b"
    assert merged.topics == ["x", "y", "z"]
    assert merged.confidence == pytest.approx(0.3)
    assert merged.metadata["mergedCount"] == 3


def test_representative_strategies() -> None:
    """It should honor keep_first, keep_longest and earliest-wins ties."""

    units = [_unit("a", "short"), _unit("b", "much longer text"), _unit("c", "much longer text")]
    assert select_representative(units, "keep_first").id == "a"
    assert select_representative(units, "keep_longest").id == "b"
    assert select_representative(units, "keep_highest_quality").id == "a"
    with pytest.raises(EmptyClusterError):
        select_representative([], "keep_first")


def test_union_find_components() -> None:
    """It should report a planted triangle and two isolated nodes as three components."""

    uf = UnionFind(5)
    assert uf.union(0, 1)
    assert uf.union(1, 2)
    assert not uf.union(0, 2)
    assert uf.connected(0, 2)
    assert not uf.connected(0, 3)
    assert uf.components() == [[0, 1, 2], [3], [4]]


def test_transitive_clusters_and_order() -> None:
    """It should emit one unit per cluster in order of first appearance."""

    units = [
        _unit("x1", _distinct(1)),
        _unit("d1", FOX),
        _unit("x2", _distinct(2)),
        _unit("d2", FOX),
        _unit("d3", FOX),
    ]
    result = DeduplicationService(DeduplicationConfig(strategy="keep_first")).deduplicate(units)
    assert [u.id for u in result.deduplicated] == ["x1", "d1", "x2"]
    assert [u.id for u in result.duplicate_clusters[0].units] == ["d1", "d2", "d3"]


def test_large_component_collapses_to_one_unit() -> None:
    """It should keep one unit per component even past max_cluster_size, and report the overflow."""

    units = [_unit(f"u{i}", FOX) for i in range(11)]
    result = DeduplicationService().deduplicate(units)

    assert len(result.deduplicated) == 1
    assert [len(c.units) for c in result.duplicate_clusters] == [11]
    assert result.statistics.duplicates_removed == 10
    assert result.statistics.clusters_found == 1
    assert result.statistics.oversized_clusters == 1

    roomy = DeduplicationService(DeduplicationConfig(max_cluster_size=20)).deduplicate(units)
    assert roomy.statistics.oversized_clusters == 0


def test_components_become_clusters() -> None:
    """It should turn a planted triangle and two isolated units into three output units."""

    units = [
        _unit("a", FOX),
        _unit("x1", _distinct(1)),
        _unit("b", FOX),
        _unit("x2", _distinct(2)),
        _unit("c", FOX),
    ]
    result = DeduplicationService(DeduplicationConfig(strategy="keep_first")).deduplicate(units)

    assert [u.id for u in result.deduplicated] == ["a", "x1", "x2"]
    assert [[u.id for u in c.units] for c in result.duplicate_clusters] == [["a", "b", "c"]]
    assert result.statistics.clusters_found == 1
    assert result.statistics.duplicates_removed == 2


def test_preserve_exact_duplicates() -> None:
    """It should leave identical snippets unmerged when asked to."""

    units = [_unit("a", FOX), _unit("b", FOX)]
    service = DeduplicationService(DeduplicationConfig(preserve_exact_duplicates=True))
    assert len(service.deduplicate(units).deduplicated) == 2


def test_empty_input() -> None:
    """It should return an empty result with zeroed statistics."""

    result = DeduplicationService().deduplicate([])
    assert result.deduplicated == []
    assert result.duplicate_clusters == []
    assert result.statistics.original_count == 0


def test_prefilter_matches_full_scoring() -> None:
    """It should find the same clusters with and without SimHash prefiltering."""

    units = [_unit(f"u{i}", _distinct(i)) for i in range(105)]
    units += [_unit(f"copy{i}", _distinct(0)) for i in range(3)]

    fast = DeduplicationService(DeduplicationConfig(strategy="keep_first")).deduplicate(units)
    full = DeduplicationService(
        DeduplicationConfig(strategy="keep_first", use_fast_prefiltering=False)
    ).deduplicate(units)

    assert fast.statistics.prefilter_buckets > 0
    assert full.statistics.prefilter_buckets == 0
    assert [u.id for u in fast.deduplicated] == [u.id for u in full.deduplicated]
    assert len(fast.deduplicated) == 105
    assert [u.id for u in fast.duplicate_clusters[0].units] == ["u0", "copy0", "copy1", "copy2"]


def test_find_exact_duplicates() -> None:
    """It should group units whose trimmed snippets match."""

    units = [_unit("a", FOX), _unit("b", f"  {FOX} "), _unit("c", FOX_RUNS)]
    clusters = DeduplicationService().find_exact_duplicates(units)

    assert len(clusters) == 1
    assert [u.id for u in clusters[0].units] == ["a", "b"]
    assert clusters[0].average_similarity == 1.0
    assert clusters[0].reason == "Exact text match"


def test_similarity_report_uses_current_config() -> None:
    """It should apply threshold updates to later reports."""

    service = DeduplicationService()
    a, b = _unit("a", FOX), _unit("b", FOX_RUNS)
    assert not service.get_similarity_report(a, b).is_duplicate

    service.update_config(cosine_similarity_threshold=0.4)
    assert service.config.cosine_similarity_threshold == 0.4
    assert service.get_similarity_report(a, b).is_duplicate


def test_update_config_rejects_invalid_values() -> None:
    """It should raise on out-of-range values and keep the previous config."""

    service = DeduplicationService()
    with pytest.raises(MalformedConfigError):
        service.update_config(cosine_similarity_threshold=1.5)
    with pytest.raises(MalformedConfigError):
        service.update_config(strategy="keep_random")
    assert service.config == DeduplicationConfig()


def test_deduplicate_async() -> None:
    """It should produce the same result from the async entry point."""

    units = [_unit("a", FOX), _unit("b", FOX)]
    result = asyncio.run(DeduplicationService().deduplicate_async(units))
    assert len(result.deduplicated) == 1


def _family(f: int, variant: int) -> str:
    words = [f"w{f}x{k}" for k in range(12)]
    if variant:
        words[3 * variant] = f"v{f}x{variant}"
    return " ".join(words) + "."


def test_prefilter_matches_full_scoring_on_near_duplicates() -> None:
    """It should find exactly the full-scoring clusters for families of one-word variants."""

    units = [_unit(f"f{f}v{v}", _family(f, v)) for f in range(30) for v in range(3)]
    units += [_unit(f"u{i}", _distinct(i)) for i in range(20)]

    fast = DeduplicationService(DeduplicationConfig(strategy="keep_first")).deduplicate(units)
    full = DeduplicationService(
        DeduplicationConfig(strategy="keep_first", use_fast_prefiltering=False)
    ).deduplicate(units)

    assert fast.statistics.prefilter_buckets > 0
    assert [u.id for u in fast.deduplicated] == [u.id for u in full.deduplicated]
    assert [[u.id for u in c.units] for c in fast.duplicate_clusters] == [
        [u.id for u in c.units] for c in full.duplicate_clusters
    ]
    assert fast.statistics.comparisons < full.statistics.comparisons


def test_duplicates_split_across_buckets_are_merged(monkeypatch: pytest.MonkeyPatch) -> None:
    """It should unite a duplicate pair even when bucketing separates it."""

    units = [_unit(f"u{i}", _distinct(i)) for i in range(101)]
    units += [_unit("dup_a", FOX), _unit("dup_b", FOX)]

    def split_buckets(fingerprints, threshold=0.7):
        return [list(range(102)), [102]]

    monkeypatch.setattr(dedup_service, "bucket_by_sim_hash", split_buckets)
    result = DeduplicationService(DeduplicationConfig(strategy="keep_first")).deduplicate(units)

    assert result.statistics.prefilter_buckets == 2
    assert len(result.deduplicated) == 102
    assert [[u.id for u in c.units] for c in result.duplicate_clusters] == [["dup_a", "dup_b"]]


def test_cross_bucket_pairs_only_yields_reachable_pairs() -> None:
    """It should skip same-bucket pairs and pairs whose overlap cannot reach the threshold."""

    signatures = [compute_signature(t) for t in (_distinct(0), FOX, FOX, FOX_RUNS)]
    buckets = [[0, 1], [2], [3]]

    assert list(cross_bucket_pairs(buckets, signatures, 0.85)) == [(1, 2)]
    # Below the combined hash weight every cross-bucket pair is a candidate.
    assert list(cross_bucket_pairs(buckets, signatures, 0.3)) == [(0, 2), (0, 3), (1, 2), (1, 3), (2, 3)]


def test_composite_upper_bound() -> None:
    """It should bound the composite score from the shingle overlap alone."""

    bound = composite_upper_bound(4, 7, 7)
    assert bound == pytest.approx(0.4 * 4 / 7 + 0.25 * 0.4 + 0.35)
    assert bound >= calculate_similarity(FOX, FOX_RUNS).overall_similarity
    assert composite_upper_bound(7, 7, 7) == pytest.approx(1.0)
    assert composite_upper_bound(0, 7, 9) == pytest.approx(0.35)
