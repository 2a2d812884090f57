"""Tests for the similarity metrics."""

from __future__ import annotations

import pytest

from evidence_engine.errors import LengthMismatchError
from evidence_engine.models.config import SimilarityConfig
from evidence_engine.similarity.engine import (
    MIN_HASH_SENTINEL,
    calculate_similarity,
    calculate_similarity_matrix,
    composite_similarity,
    compute_signature,
    cosine_similarity,
    fast_similarity_check,
    generate_min_hash_signature,
    generate_shingles,
    generate_sim_hash,
    hamming_distance,
    jaccard_similarity,
    min_hash_similarity,
    preprocess_text,
    sim_hash_similarity,
)

FOX = "The quick brown fox jumps over the lazy dog."
FOX_RUNS = "The quick brown fox runs over the lazy dog."


def test_preprocess_and_shingles() -> None:
    """It should lowercase, drop punctuation and build word trigrams."""

    assert preprocess_text("Hello,   World!") == "hello world"
    assert generate_shingles("Hello, world") == {"hello world"}
    assert generate_shingles("one two three four") == {"one two three", "two three four"}
    assert generate_shingles("one two three four", 1) == {"one", "two", "three", "four"}


def test_identical_texts_score_one() -> None:
    """It should score a text against itself as a perfect duplicate."""

    result = calculate_similarity(FOX, FOX)
    assert result.cosine_similarity == 1.0
    assert result.jaccard_similarity == 1.0
    assert result.min_hash_similarity == 1.0
    assert result.sim_hash_similarity == 1.0
    assert result.overall_similarity == pytest.approx(1.0)
    assert result.is_duplicate


def test_similarity_is_symmetric() -> None:
    """It should give the same scores in both argument orders."""

    forward = calculate_similarity(FOX, FOX_RUNS)
    backward = calculate_similarity(FOX_RUNS, FOX)
    assert forward == backward


def test_one_word_difference_scores() -> None:
    """It should score a one-word change well below the default threshold."""

    result = calculate_similarity(FOX, FOX_RUNS)
    assert result.jaccard_similarity == pytest.approx(4 / 10)
    assert result.cosine_similarity == pytest.approx(4 / 7)
    assert 0.45 < result.overall_similarity < 0.55
    assert not result.is_duplicate


def test_threshold_monotonicity() -> None:
    """It should only gain duplicates as the threshold is lowered."""

    low = calculate_similarity(FOX, FOX_RUNS, SimilarityConfig(cosine_similarity_threshold=0.4))
    high = calculate_similarity(FOX, FOX_RUNS, SimilarityConfig(cosine_similarity_threshold=0.6))
    assert low.is_duplicate
    assert not high.is_duplicate


def test_jaccard_and_cosine_edge_cases() -> None:
    """It should treat two empty sets as identical."""

    assert jaccard_similarity(set(), set()) == 1.0
    assert jaccard_similarity({"a"}, {"b"}) == 0.0
    assert cosine_similarity("alpha beta gamma", "delta epsilon zeta") == 0.0


def test_min_hash_signature() -> None:
    """It should produce fixed-length signatures with sentinels for empty input."""

    sig = generate_min_hash_signature({"a b c", "b c d"}, 16)
    assert len(sig) == 16
    assert all(0 <= v < 2**32 for v in sig)
    assert generate_min_hash_signature(set(), 4) == [MIN_HASH_SENTINEL] * 4


def test_min_hash_length_mismatch() -> None:
    """It should refuse to compare signatures of different lengths."""

    with pytest.raises(LengthMismatchError):
        min_hash_similarity([1, 2, 3], [4, 5])
    with pytest.raises(ValueError):
        min_hash_similarity([1, 2, 3], [4, 5])
    assert min_hash_similarity([1, 2, 3, 4], [1, 2, 0, 4]) == 0.75


def test_sim_hash_fingerprints() -> None:
    """It should produce bit strings of the requested width."""

    fp = generate_sim_hash(FOX)
    assert len(fp) == 64
    assert set(fp) <= {"0", "1"}
    assert len(generate_sim_hash(FOX, 128)) == 128
    assert generate_sim_hash(FOX) == generate_sim_hash(FOX.upper())


def test_hamming_distance() -> None:
    """It should count differing bits and reject unequal lengths."""

    assert hamming_distance("1010", "1001") == 2
    assert sim_hash_similarity("1010", "1001") == 0.5
    with pytest.raises(LengthMismatchError):
        hamming_distance("10", "101")


def test_fast_similarity_check() -> None:
    """It should accept identical texts unless the threshold is unreachable."""

    assert fast_similarity_check(FOX, FOX)
    assert not fast_similarity_check(FOX, FOX, threshold=1.01)


def test_similarity_matrix_shape() -> None:
    """It should return a symmetric matrix with a unit diagonal."""

    assert calculate_similarity_matrix([]) == []
    assert calculate_similarity_matrix(["only text"]) == [[1.0]]

    texts = [FOX, FOX_RUNS, "Completely different text."]
    matrix = calculate_similarity_matrix(texts)
    assert len(matrix) == 3
    for i in range(3):
        assert matrix[i][i] == 1.0
        for j in range(3):
            assert matrix[i][j] == matrix[j][i]
    assert matrix[0][1] == pytest.approx(calculate_similarity(FOX, FOX_RUNS).overall_similarity)
    assert matrix[0][2] < 0.3


def test_signature_scoring_works_on_frozen_shingle_sets() -> None:
    """It should score precomputed frozenset signatures the same as a fresh comparison."""

    sig_fox, sig_runs = compute_signature(FOX), compute_signature(FOX_RUNS)
    assert isinstance(sig_fox.shingles, frozenset)
    assert jaccard_similarity(sig_fox.shingles, sig_runs.shingles) == pytest.approx(0.4)
    assert composite_similarity(sig_fox, sig_runs) == calculate_similarity(FOX, FOX_RUNS).overall_similarity
    assert composite_similarity(sig_fox, sig_fox) == 1.0
