"""Evidence store.

Keeps accepted evidence units in memory and, when given a directory, appends every stored unit
to a JSONL file that is replayed on construction. Later records for the same id win.
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from pydantic import TypeAdapter

from evidence_engine.logging import get_logger
from evidence_engine.models.evidence import EvidenceUnit

logger = get_logger(__name__)

HIGH_QUALITY = 0.7
MEDIUM_QUALITY = 0.4


@dataclass(frozen=True)
class EvidenceStorePaths:
    """Filesystem layout for an evidence store."""

    root: Path

    @property
    def units_jsonl(self) -> Path:
        return self.root / "evidence_units.jsonl"


class EvidenceStore:
    """In-memory evidence store with optional append-only JSONL persistence."""

    def __init__(self, root_dir: Path | None = None) -> None:
        self._paths = EvidenceStorePaths(root=Path(root_dir)) if root_dir is not None else None
        self._units: dict[str, EvidenceUnit] = {}
        self._lock = threading.Lock()

        if self._paths is not None:
            self._paths.root.mkdir(parents=True, exist_ok=True)
            self._load_existing()

    @property
    def path(self) -> Path | None:
        return self._paths.units_jsonl if self._paths else None

    def _load_existing(self) -> None:
        assert self._paths is not None
        if not self._paths.units_jsonl.exists():
            return

        adapter = TypeAdapter(EvidenceUnit)
        for line in self._paths.units_jsonl.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line:
                continue
            unit = adapter.validate_python(json.loads(line))
            self._units[unit.id] = unit

        logger.info("Loaded %d evidence units from %s", len(self._units), self._paths.units_jsonl)

    def add_units(self, units: Iterable[EvidenceUnit]) -> list[EvidenceUnit]:
        """Store units, replacing any in-memory record with the same id.

        Returns:
            The stored units, in the given order.
        """

        stored = list(units)
        with self._lock:
            for unit in stored:
                self._units[unit.id] = unit
            if self._paths is not None and stored:
                self._append_jsonl(stored)
        return stored

    def get(self, unit_id: str) -> EvidenceUnit:
        """Get a unit by id.

        Raises:
            KeyError: If the id is unknown.
        """

        return self._units[unit_id]

    def bulk_get(self, unit_ids: Iterable[str]) -> list[EvidenceUnit]:
        """Get units in order, ignoring missing ones."""

        out: list[EvidenceUnit] = []
        for uid in unit_ids:
            unit = self._units.get(uid)
            if unit is not None:
                out.append(unit)
        return out

    def list_all(self) -> list[EvidenceUnit]:
        return list(self._units.values())

    def list_by_source(self, source_id: str) -> list[EvidenceUnit]:
        return [u for u in self._units.values() if u.source_id == source_id]

    def count(self) -> int:
        return len(self._units)

    def stats(self) -> dict[str, int]:
        """Return basic stats."""

        return {
            "unit_count": len(self._units),
            "source_count": len({u.source_id for u in self._units.values()}),
        }

    def processing_stats(self, source_id: str) -> dict[str, Any]:
        """Summarize the stored units of one source.

        Confidence is read from the ``confidenceScore`` metadata entry; units without it are
        left out of that average. Missing quality scores count as 0.
        """

        units = self.list_by_source(source_id)
        if not units:
            return {
                "total_units": 0,
                "avg_confidence": 0.0,
                "avg_quality": 0.0,
                "avg_unit_size": 0.0,
                "quality_distribution": {},
            }

        confidences = [
            float(u.metadata["confidenceScore"])
            for u in units
            if isinstance(u.metadata.get("confidenceScore"), (int, float))
        ]
        qualities = [u.quality_score or 0.0 for u in units]
        return {
            "total_units": len(units),
            "avg_confidence": sum(confidences) / len(confidences) if confidences else 0.0,
            "avg_quality": sum(qualities) / len(units),
            "avg_unit_size": sum(len(u.snippet) for u in units) / len(units),
            "quality_distribution": {
                "high": sum(1 for q in qualities if q >= HIGH_QUALITY),
                "medium": sum(1 for q in qualities if MEDIUM_QUALITY <= q < HIGH_QUALITY),
                "low": sum(1 for q in qualities if q < MEDIUM_QUALITY),
            },
        }

    def _append_jsonl(self, units: list[EvidenceUnit]) -> None:
        assert self._paths is not None
        with self._paths.units_jsonl.open("a", encoding="utf-8") as f:
            for unit in units:
                f.write(json.dumps(unit.model_dump(mode="json"), ensure_ascii=False) + "\n")
