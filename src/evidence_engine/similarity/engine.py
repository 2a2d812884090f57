"""Text similarity metrics used for evidence deduplication.

Every function here is pure. Texts are compared through word shingles, from which four scores are
derived: cosine over binary shingle presence, Jaccard, MinHash agreement and SimHash agreement.
The composite score weights them 0.4 / 0.25 / 0.2 / 0.15.
"""

from __future__ import annotations

import hashlib
import math
import re
from collections.abc import Iterable, Sequence, Set
from dataclasses import dataclass

from evidence_engine.errors import LengthMismatchError
from evidence_engine.models.config import SimilarityConfig
from evidence_engine.models.similarity import SimilarityResult

# Value of an unset MinHash slot (largest integer that survives a JSON round trip).
MIN_HASH_SENTINEL = 2**53 - 1

COSINE_WEIGHT = 0.4
JACCARD_WEIGHT = 0.25
MIN_HASH_WEIGHT = 0.2
SIM_HASH_WEIGHT = 0.15

_NON_WORD_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")

DEFAULT_SIMILARITY_CONFIG = SimilarityConfig()


def preprocess_text(text: str) -> str:
    """Lowercase, turn punctuation into spaces and collapse whitespace."""

    text = _NON_WORD_RE.sub(" ", text.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def generate_shingles(text: str, shingle_size: int = 3) -> set[str]:
    """Return the set of ``shingle_size``-word n-grams of ``text``.

    Texts shorter than ``shingle_size`` words yield a single shingle holding the whole text.
    """

    words = preprocess_text(text).split(" ")
    if len(words) < shingle_size:
        return {" ".join(words)}
    return {" ".join(words[i : i + shingle_size]) for i in range(len(words) - shingle_size + 1)}


def jaccard_similarity(set1: Set[str], set2: Set[str]) -> float:
    """|A ∩ B| / |A ∪ B|; two empty sets are identical."""

    if not set1 and not set2:
        return 1.0
    return len(set1 & set2) / len(set1 | set2)


def _binary_cosine(shingles1: Set[str], shingles2: Set[str]) -> float:
    if not shingles1 and not shingles2:
        return 1.0
    if not shingles1 or not shingles2:
        return 0.0
    # For 0/1 vectors the dot product is the overlap and each squared magnitude the set size.
    return len(shingles1 & shingles2) / math.sqrt(len(shingles1) * len(shingles2))


def cosine_similarity(text1: str, text2: str, shingle_size: int = 3) -> float:
    """Cosine similarity of binary shingle-presence vectors over the pair's shingle union."""

    return _binary_cosine(generate_shingles(text1, shingle_size), generate_shingles(text2, shingle_size))


def _seeded_hash(value: str, seed: int) -> int:
    digest = hashlib.sha256(f"{value}{seed}".encode("utf-8")).hexdigest()
    return int(digest[:8], 16)


def generate_min_hash_signature(
    shingles: Iterable[str],
    signature_length: int = DEFAULT_SIMILARITY_CONFIG.min_hash_signature_length,
) -> list[int]:
    """Compute a MinHash signature: for every seed, the minimum 32-bit hash over all shingles."""

    signature = [MIN_HASH_SENTINEL] * signature_length
    for shingle in shingles:
        for i in range(signature_length):
            h = _seeded_hash(shingle, i)
            if h < signature[i]:
                signature[i] = h
    return signature


def min_hash_similarity(signature1: Sequence[int], signature2: Sequence[int]) -> float:
    """Fraction of positions where two signatures agree.

    Raises:
        LengthMismatchError: If the signatures differ in length.
    """

    if len(signature1) != len(signature2):
        raise LengthMismatchError("MinHash signatures", len(signature1), len(signature2))
    if not signature1:
        return 1.0
    matches = sum(1 for a, b in zip(signature1, signature2) if a == b)
    return matches / len(signature1)


def generate_sim_hash(
    text: str,
    dimensions: int = DEFAULT_SIMILARITY_CONFIG.sim_hash_dimensions,
    shingle_size: int = 3,
) -> str:
    """Compute a SimHash fingerprint as a string of ``dimensions`` bits.

    Each shingle votes +1/-1 per dimension with the leading bits of its sha256 digest; a
    dimension is set when its total is non-negative.
    """

    weights = [0] * dimensions
    for shingle in generate_shingles(text, shingle_size):
        digest = int.from_bytes(hashlib.sha256(shingle.encode("utf-8")).digest(), "big")
        for i in range(min(dimensions, 256)):
            bit = (digest >> (255 - i)) & 1
            weights[i] += 1 if bit else -1
    return "".join("1" if w >= 0 else "0" for w in weights)


def hamming_distance(fingerprint1: str, fingerprint2: str) -> int:
    """Count differing bit positions.

    Raises:
        LengthMismatchError: If the fingerprints differ in length.
    """

    if len(fingerprint1) != len(fingerprint2):
        raise LengthMismatchError("SimHash fingerprints", len(fingerprint1), len(fingerprint2))
    return sum(1 for a, b in zip(fingerprint1, fingerprint2) if a != b)


def sim_hash_similarity(fingerprint1: str, fingerprint2: str) -> float:
    """1 - normalized Hamming distance."""

    distance = hamming_distance(fingerprint1, fingerprint2)
    if not fingerprint1:
        return 1.0
    return 1 - distance / len(fingerprint1)


def fast_similarity_check(
    text1: str,
    text2: str,
    threshold: float = 0.85,
    dimensions: int = DEFAULT_SIMILARITY_CONFIG.sim_hash_dimensions,
) -> bool:
    """Cheap SimHash-only test that two texts are likely similar."""

    return (
        sim_hash_similarity(generate_sim_hash(text1, dimensions), generate_sim_hash(text2, dimensions))
        >= threshold
    )


@dataclass(frozen=True)
class TextSignature:
    """Per-text material precomputed once for pairwise scoring."""

    shingles: frozenset[str]
    min_hash: tuple[int, ...]
    sim_hash: str


def compute_signature(text: str, config: SimilarityConfig = DEFAULT_SIMILARITY_CONFIG) -> TextSignature:
    shingles = generate_shingles(text, config.shingle_size)
    return TextSignature(
        shingles=frozenset(shingles),
        min_hash=tuple(generate_min_hash_signature(shingles, config.min_hash_signature_length)),
        sim_hash=generate_sim_hash(text, config.sim_hash_dimensions, config.shingle_size),
    )


def _component_scores(sig1: TextSignature, sig2: TextSignature) -> tuple[float, float, float, float]:
    cosine = _binary_cosine(sig1.shingles, sig2.shingles)
    jaccard = jaccard_similarity(sig1.shingles, sig2.shingles)
    min_hash = min_hash_similarity(sig1.min_hash, sig2.min_hash)
    sim_hash = sim_hash_similarity(sig1.sim_hash, sig2.sim_hash)
    return cosine, jaccard, min_hash, sim_hash


def _weighted(cosine: float, jaccard: float, min_hash: float, sim_hash: float) -> float:
    return math.fsum(
        (
            cosine * COSINE_WEIGHT,
            jaccard * JACCARD_WEIGHT,
            min_hash * MIN_HASH_WEIGHT,
            sim_hash * SIM_HASH_WEIGHT,
        )
    )


def composite_similarity(sig1: TextSignature, sig2: TextSignature) -> float:
    """Weighted composite score for two precomputed signatures."""

    return _weighted(*_component_scores(sig1, sig2))


def calculate_similarity(
    text1: str,
    text2: str,
    config: SimilarityConfig = DEFAULT_SIMILARITY_CONFIG,
) -> SimilarityResult:
    """Compute all four metrics and the composite for a pair of texts."""

    cosine, jaccard, min_hash, sim_hash = _component_scores(
        compute_signature(text1, config), compute_signature(text2, config)
    )
    overall = _weighted(cosine, jaccard, min_hash, sim_hash)
    return SimilarityResult(
        cosine_similarity=cosine,
        jaccard_similarity=jaccard,
        min_hash_similarity=min_hash,
        sim_hash_similarity=sim_hash,
        overall_similarity=overall,
        is_duplicate=overall >= config.cosine_similarity_threshold,
    )


def calculate_similarity_matrix(
    texts: Sequence[str],
    config: SimilarityConfig = DEFAULT_SIMILARITY_CONFIG,
) -> list[list[float]]:
    """Composite similarity for every pair of ``texts``.

    Signatures are computed once per text; each pair is scored once and mirrored.

    Returns:
        A symmetric ``n x n`` matrix with a unit diagonal.
    """

    n = len(texts)
    matrix = [[0.0] * n for _ in range(n)]
    signatures = [compute_signature(t, config) for t in texts]

    for i in range(n):
        matrix[i][i] = 1.0
        for j in range(i + 1, n):
            score = composite_similarity(signatures[i], signatures[j])
            matrix[i][j] = score
            matrix[j][i] = score
    return matrix
