"""CLI entrypoints for the evidence engine."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer

from evidence_engine.config import load_settings
from evidence_engine.errors import EngineError
from evidence_engine.logging import configure_logging, get_logger
from evidence_engine.memory.evidence_store import EvidenceStore
from evidence_engine.models.config import SimilarityConfig, build_config, merge_config
from evidence_engine.models.processing import SourceText
from evidence_engine.pipeline.processor import EvidenceProcessor
from evidence_engine.similarity.engine import calculate_similarity

app = typer.Typer(add_completion=False, help="Evidence unitization, deduplication and topic clustering")
logger = get_logger(__name__)


def _dump(payload: dict, output: Path | None) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2)
    if output is None:
        typer.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    typer.echo(str(output))


@app.command()
def process(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="UTF-8 text file to process"),
    source_id: str | None = typer.Option(None, "--source-id", help="Source id (defaults to the file stem)"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the result JSON here"),
    store_dir: Path | None = typer.Option(
        None,
        "--store-dir",
        help="Persist accepted units to an evidence store in this directory",
    ),
    threshold: float | None = typer.Option(None, "--threshold", help="Duplicate similarity threshold"),
    strategy: str | None = typer.Option(
        None,
        "--strategy",
        help="keep_highest_quality, keep_longest, keep_first or merge",
    ),
) -> None:
    """Unitize, score, deduplicate and tag one source text."""

    settings = load_settings()
    configure_logging(settings.log_level)

    try:
        config = settings.processing_config()
        patch = {}
        if threshold is not None:
            patch["cosine_similarity_threshold"] = threshold
        if strategy is not None:
            patch["strategy"] = strategy
        if patch:
            config = merge_config(config, deduplication=merge_config(config.deduplication, **patch))

        store = EvidenceStore(store_dir) if store_dir is not None else None
        processor = EvidenceProcessor(config, store=store)
        result = processor.process_source_text(source_id or path.stem, path.read_text(encoding="utf-8"))
    except EngineError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e

    logger.info("CLI processed %s", path)
    _dump(result.model_dump(mode="json"), output)


@app.command()
def batch(
    paths: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="UTF-8 text files, one source each"),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the batch result JSON here (defaults to <artifacts_dir>/batch_result.json)",
    ),
    store_dir: Path | None = typer.Option(
        None,
        "--store-dir",
        help="Persist accepted units to an evidence store in this directory",
    ),
    max_concurrent: int | None = typer.Option(
        None,
        "--max-concurrent",
        min=1,
        help="Sources processed at once (defaults to EVIDENCE_ENGINE_MAX_CONCURRENT_SOURCES)",
    ),
) -> None:
    """Process several source files concurrently; each file stem is its source id."""

    settings = load_settings()
    configure_logging(settings.log_level)

    try:
        config = settings.processing_config()
    except EngineError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e

    store = EvidenceStore(store_dir) if store_dir is not None else None
    processor = EvidenceProcessor(config, store=store)
    sources = [SourceText(source_id=p.stem, text=p.read_text(encoding="utf-8")) for p in paths]
    result = asyncio.run(processor.process_sources(sources, max_concurrent or settings.max_concurrent_sources))

    for source_id, message in result.failed.items():
        typer.echo(f"failed: {source_id}: {message}", err=True)
    logger.info("CLI processed %d sources (%d failed)", len(sources), len(result.failed))
    _dump(result.model_dump(mode="json"), output or settings.artifacts_dir / "batch_result.json")


@app.command()
def compare(
    text1: str = typer.Argument(..., help="First text"),
    text2: str = typer.Argument(..., help="Second text"),
    threshold: float = typer.Option(0.85, "--threshold", help="Duplicate similarity threshold"),
) -> None:
    """Print all similarity metrics for two texts."""

    try:
        config = build_config(SimilarityConfig, cosine_similarity_threshold=threshold)
    except EngineError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e
    _dump(calculate_similarity(text1, text2, config).model_dump(mode="json"), None)


if __name__ == "__main__":
    app()
