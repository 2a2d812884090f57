"""Similarity result model."""

from __future__ import annotations

from pydantic import BaseModel


class SimilarityResult(BaseModel):
    """Component scores and the weighted composite for a pair of texts."""

    cosine_similarity: float
    jaccard_similarity: float
    min_hash_similarity: float
    sim_hash_similarity: float
    overall_similarity: float
    is_duplicate: bool
