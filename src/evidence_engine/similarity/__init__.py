"""Text similarity metrics."""

from __future__ import annotations

from evidence_engine.similarity.engine import (
    calculate_similarity,
    calculate_similarity_matrix,
    fast_similarity_check,
)

__all__ = ["calculate_similarity", "calculate_similarity_matrix", "fast_similarity_check"]
