"""SimHash bucketing used to avoid full pairwise scoring on large inputs.

Units are scored in full within their bucket. Pairs that straddle two buckets are recovered by a
second pass over an inverted shingle index: a pair is scored only when its shingle overlap alone
could still lift the composite score to the threshold, assuming perfect MinHash and SimHash
agreement. No pair that reaches the threshold is skipped.
"""

from __future__ import annotations

import itertools
import math
from collections import Counter
from collections.abc import Iterator, Sequence

from evidence_engine.similarity.engine import (
    COSINE_WEIGHT,
    JACCARD_WEIGHT,
    MIN_HASH_WEIGHT,
    SIM_HASH_WEIGHT,
    TextSignature,
    sim_hash_similarity,
)

# Prefiltering only pays off above this many units.
PREFILTER_MIN_UNITS = 100
BUCKET_SIMILARITY = 0.7

# Float slack when comparing an upper bound against the threshold.
_BOUND_EPSILON = 1e-9


def bucket_by_sim_hash(fingerprints: Sequence[str], threshold: float = BUCKET_SIMILARITY) -> list[list[int]]:
    """Greedily bucket indices by SimHash.

    Each index joins the first bucket whose first member is at least ``threshold`` similar,
    otherwise it opens a new bucket. Every index lands in exactly one bucket.
    """

    buckets: list[list[int]] = []
    for i, fp in enumerate(fingerprints):
        for bucket in buckets:
            if sim_hash_similarity(fingerprints[bucket[0]], fp) >= threshold:
                bucket.append(i)
                break
        else:
            buckets.append([i])
    return buckets


def bucket_pairs(buckets: Sequence[Sequence[int]]) -> Iterator[tuple[int, int]]:
    """Yield every index pair that shares a bucket."""

    for bucket in buckets:
        for x in range(len(bucket)):
            for y in range(x + 1, len(bucket)):
                yield bucket[x], bucket[y]


def composite_upper_bound(overlap: int, size1: int, size2: int) -> float:
    """Highest composite score two shingle sets of the given sizes and overlap can reach."""

    if not size1 or not size2:
        return 1.0
    cosine = overlap / math.sqrt(size1 * size2)
    jaccard = overlap / (size1 + size2 - overlap)
    return cosine * COSINE_WEIGHT + jaccard * JACCARD_WEIGHT + MIN_HASH_WEIGHT + SIM_HASH_WEIGHT


def cross_bucket_pairs(
    buckets: Sequence[Sequence[int]],
    signatures: Sequence[TextSignature],
    threshold: float,
) -> Iterator[tuple[int, int]]:
    """Yield ``(i, j)`` pairs, ``i < j``, from different buckets that may reach ``threshold``."""

    bucket_of = {i: b for b, members in enumerate(buckets) for i in members}

    if threshold <= MIN_HASH_WEIGHT + SIM_HASH_WEIGHT + _BOUND_EPSILON:
        # Hash agreement alone can reach the threshold, so disjoint texts stay candidates.
        for i, j in itertools.combinations(range(len(signatures)), 2):
            if bucket_of[i] != bucket_of[j]:
                yield i, j
        return

    index: dict[str, list[int]] = {}
    for j, signature in enumerate(signatures):
        overlaps: Counter[int] = Counter()
        for shingle in signature.shingles:
            for i in index.get(shingle, ()):
                overlaps[i] += 1
            index.setdefault(shingle, []).append(j)

        for i in sorted(overlaps):
            if bucket_of[i] == bucket_of[j]:
                continue
            bound = composite_upper_bound(overlaps[i], len(signatures[i].shingles), len(signature.shingles))
            if bound + _BOUND_EPSILON >= threshold:
                yield i, j
