"""Tests for the command line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from evidence_engine.cli import app

runner = CliRunner()


def test_compare_prints_metrics() -> None:
    """It should print every metric as JSON."""

    result = runner.invoke(app, ["compare", "a b c d", "a b c d"])

    assert result.exit_code == 0
    body = json.loads(result.stdout)
    assert body["overall_similarity"] == 1.0
    assert set(body) >= {"cosine_similarity", "jaccard_similarity", "min_hash_similarity", "sim_hash_similarity"}


def test_process_writes_output_file(tmp_path: Path, article: str) -> None:
    """It should write the processing result to --output and persist units to --store-dir."""

    source = tmp_path / "report.txt"
    source.write_text(article, encoding="utf-8")
    output = tmp_path / "out" / "result.json"
    store_dir = tmp_path / "store"

    result = runner.invoke(
        app,
        ["process", str(source), "-o", str(output), "--store-dir", str(store_dir), "--strategy", "keep_first"],
    )

    assert result.exit_code == 0, result.output
    body = json.loads(output.read_text(encoding="utf-8"))
    assert body["source_id"] == "report"
    assert body["units"][0]["id"].startswith("report_u")
    assert (store_dir / "evidence_units.jsonl").exists()


def test_process_reports_engine_errors(tmp_path: Path) -> None:
    """It should exit with status 1 for text without units or a bad option."""

    empty = tmp_path / "empty.txt"
    empty.write_text("   ", encoding="utf-8")
    assert runner.invoke(app, ["process", str(empty)]).exit_code == 1

    source = tmp_path / "doc.txt"
    source.write_text("Some text.", encoding="utf-8")
    assert runner.invoke(app, ["process", str(source), "--strategy", "keep_random"]).exit_code == 1


def test_batch_uses_settings_for_output_and_concurrency(
    tmp_path: Path, article: str, monkeypatch: pytest.MonkeyPatch
) -> None:
    """It should write the batch result under the artifacts dir and report failed sources."""

    good = tmp_path / "good.txt"
    good.write_text(article, encoding="utf-8")
    empty = tmp_path / "empty.txt"
    empty.write_text("", encoding="utf-8")
    artifacts = tmp_path / "artifacts"
    monkeypatch.setenv("EVIDENCE_ENGINE_ARTIFACTS_DIR", str(artifacts))
    monkeypatch.setenv("EVIDENCE_ENGINE_MAX_CONCURRENT_SOURCES", "1")

    result = runner.invoke(app, ["batch", str(good), str(empty)])

    assert result.exit_code == 0, result.output
    body = json.loads((artifacts / "batch_result.json").read_text(encoding="utf-8"))
    assert [r["source_id"] for r in body["results"]] == ["good"]
    assert "empty" in body["failed"]
    assert body["accepted_units"] == body["results"][0]["processed_units"]
