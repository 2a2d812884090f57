"""Tests for the HTTP API."""

from __future__ import annotations

from fastapi.testclient import TestClient

from evidence_engine.api.app import create_app
from evidence_engine.config import Settings
from evidence_engine.memory.evidence_store import EvidenceStore


def _client(store: EvidenceStore | None = None) -> TestClient:
    return TestClient(create_app(Settings(), store=store))


def test_similarity_endpoint_scores_identical_texts() -> None:
    """It should return a perfect duplicate for identical texts."""

    text = "The quick brown fox jumps over the lazy dog."
    resp = _client().post("/similarity", json={"text1": text, "text2": text})

    assert resp.status_code == 200
    body = resp.json()
    assert body["overall_similarity"] == 1.0
    assert body["is_duplicate"] is True


def test_similarity_endpoint_rejects_bad_config() -> None:
    """It should answer 422 for an out-of-range threshold."""

    resp = _client().post(
        "/similarity",
        json={"text1": "a b c", "text2": "a b c", "config": {"cosine_similarity_threshold": 2}},
    )
    assert resp.status_code == 422


def test_deduplicate_endpoint_merges_similar_units() -> None:
    """It should collapse near duplicates and keep the higher-quality unit."""

    units = [
        {"id": "short", "source_id": "s", "snippet": "The quick brown fox", "start_index": 0, "end_index": 19, "quality_score": 0.6},
        {"id": "long", "source_id": "s", "snippet": "The quick brown fox jumps", "start_index": 0, "end_index": 25, "quality_score": 0.8},
    ]
    resp = _client().post("/deduplicate", json={"units": units, "config": {"cosine_similarity_threshold": 0.5}})

    assert resp.status_code == 200
    body = resp.json()
    assert [u["id"] for u in body["deduplicated"]] == ["long"]
    assert body["statistics"]["duplicates_removed"] == 1


def test_process_endpoint(article: str) -> None:
    """It should process a source and store its units."""

    store = EvidenceStore()
    resp = _client(store).post("/sources/doc1/process", json={"text": article})

    assert resp.status_code == 200
    body = resp.json()
    assert body["source_id"] == "doc1"
    assert body["processed_units"] == len(body["units"]) > 0
    assert store.count() == body["processed_units"]


def test_process_endpoint_rejects_empty_text() -> None:
    """It should answer 400 when the text yields no units."""

    resp = _client().post("/sources/doc1/process", json={"text": "  "})

    assert resp.status_code == 400
    assert resp.json()["errors"] == ["No units generated"]
