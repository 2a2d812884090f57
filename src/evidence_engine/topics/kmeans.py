"""k-means clustering over dense keyword vectors."""

from __future__ import annotations

import math
import random
from collections.abc import Sequence
from dataclasses import dataclass

Vector = Sequence[float]


def squared_distance(a: Vector, b: Vector) -> float:
    return sum((x - y) * (x - y) for x, y in zip(a, b))


def euclidean_distance(a: Vector, b: Vector) -> float:
    return math.sqrt(squared_distance(a, b))


def vector_cosine(a: Vector, b: Vector) -> float:
    """Cosine similarity; 0 when either vector is all zeros."""

    dot = sum(x * y for x, y in zip(a, b))
    magnitude = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / magnitude if magnitude else 0.0


def mean_vector(vectors: Sequence[Vector], dimensions: int) -> list[float]:
    if not vectors:
        return [0.0] * dimensions
    return [sum(v[d] for v in vectors) / len(vectors) for d in range(dimensions)]


@dataclass(frozen=True)
class KMeansResult:
    assignments: list[int]
    centroids: list[list[float]]
    iterations: int


def kmeans_plus_plus(vectors: Sequence[Vector], k: int, rng: random.Random) -> list[list[float]]:
    """Seed up to ``k`` centroids.

    The first is drawn uniformly, the rest with probability proportional to the squared distance
    to the nearest centroid already chosen. Seeding stops early once every point coincides with
    a centroid.
    """

    if not vectors or k < 1:
        return []
    centroids = [list(vectors[rng.randrange(len(vectors))])]
    while len(centroids) < k:
        distances = [min(squared_distance(v, c) for c in centroids) for v in vectors]
        total = sum(distances)
        if total == 0:
            break
        threshold = rng.random() * total
        cumulative = 0.0
        selected = max(i for i, d in enumerate(distances) if d > 0)
        for i, d in enumerate(distances):
            cumulative += d
            if cumulative >= threshold and d > 0:
                selected = i
                break
        centroids.append(list(vectors[selected]))
    return centroids


def assign(vectors: Sequence[Vector], centroids: Sequence[Vector]) -> list[int]:
    """Index of the nearest centroid per vector; ties go to the lowest index."""

    out = []
    for v in vectors:
        best, best_distance = 0, math.inf
        for i, c in enumerate(centroids):
            d = squared_distance(v, c)
            if d < best_distance:
                best, best_distance = i, d
        out.append(best)
    return out


def kmeans(
    vectors: Sequence[Vector],
    k: int,
    *,
    max_iterations: int = 100,
    convergence_threshold: float = 0.001,
    rng: random.Random | None = None,
) -> KMeansResult:
    """Lloyd's algorithm with k-means++ seeding.

    Iteration stops when the mean centroid shift drops below ``convergence_threshold`` or after
    ``max_iterations`` rounds. A cluster that loses all its members gets a zero centroid.
    """

    if not vectors:
        return KMeansResult(assignments=[], centroids=[], iterations=0)

    rng = rng or random.Random()
    dimensions = len(vectors[0])
    centroids = kmeans_plus_plus(vectors, k, rng)
    assignments: list[int] = []

    iterations = 0
    for iterations in range(1, max_iterations + 1):
        assignments = assign(vectors, centroids)
        new_centroids = [
            mean_vector([v for v, a in zip(vectors, assignments) if a == c], dimensions)
            for c in range(len(centroids))
        ]
        shift = sum(euclidean_distance(o, n) for o, n in zip(centroids, new_centroids)) / len(centroids)
        centroids = new_centroids
        if shift < convergence_threshold:
            break

    return KMeansResult(assignments=assignments, centroids=centroids, iterations=iterations)


def wcss(vectors: Sequence[Vector], assignments: Sequence[int], centroids: Sequence[Vector]) -> float:
    """Within-cluster sum of squared distances."""

    return sum(squared_distance(v, centroids[a]) for v, a in zip(vectors, assignments))


def elbow_point(wcss_values: Sequence[float]) -> int:
    """Pick k from WCSS values for k = 1..len(values).

    Returns the k with the largest second difference ``w[k-1] - 2 w[k] + w[k+1]``; ties keep the
    smaller k. With only two candidates the answer is 2.
    """

    max_k = len(wcss_values)
    if max_k <= 2:
        return max_k
    best_k, best_bend = 2, -math.inf
    for k in range(2, max_k):
        # wcss_values[k - 1] holds the WCSS for k clusters
        bend = wcss_values[k - 2] - 2 * wcss_values[k - 1] + wcss_values[k]
        if bend > best_bend:
            best_k, best_bend = k, bend
    return best_k


def silhouette_score(vectors: Sequence[Vector], assignments: Sequence[int]) -> float:
    """Mean silhouette coefficient over all points.

    A point scores 0 when no other cluster exists or when both of its mean distances are 0.
    """

    n = len(vectors)
    if n < 2:
        return 0.0

    members: dict[int, list[int]] = {}
    for i, a in enumerate(assignments):
        members.setdefault(a, []).append(i)

    total = 0.0
    for i, v in enumerate(vectors):
        own = [j for j in members[assignments[i]] if j != i]
        a = sum(euclidean_distance(v, vectors[j]) for j in own) / len(own) if own else 0.0
        b = math.inf
        for cluster, idx in members.items():
            if cluster == assignments[i]:
                continue
            b = min(b, sum(euclidean_distance(v, vectors[j]) for j in idx) / len(idx))
        if b == math.inf or max(a, b) == 0:
            continue
        total += (b - a) / max(a, b)
    return total / n
