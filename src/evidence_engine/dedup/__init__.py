"""Near-duplicate detection for evidence units."""

from __future__ import annotations

from evidence_engine.dedup.service import DeduplicationService, merge_units, select_representative
from evidence_engine.dedup.union_find import UnionFind

__all__ = [
    "DeduplicationService",
    "UnionFind",
    "merge_units",
    "select_representative",
]
