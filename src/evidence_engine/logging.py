"""Logging for the evidence engine.

Every record is tagged with the source being processed and the pipeline stage it was emitted
from, so interleaved output from :meth:`EvidenceProcessor.process_sources` can be told apart.
Both values live in contextvars; worker threads started through ``asyncio.to_thread`` inherit
a copy of the caller's context.
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
from typing import Any

from rich.logging import RichHandler

PIPELINE_STAGES = ("unitize", "score", "deduplicate", "topics", "store")

_NO_CONTEXT = "-"

_source_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("evidence_engine_source_id", default=_NO_CONTEXT)
_stage_var: contextvars.ContextVar[str] = contextvars.ContextVar("evidence_engine_stage", default=_NO_CONTEXT)


class _SourceStageFilter(logging.Filter):
    """Stamp ``source_id`` and ``stage`` onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.source_id = _source_id_var.get()  # type: ignore[attr-defined]
        record.stage = _stage_var.get()  # type: ignore[attr-defined]
        return True


def _check_stage(stage: str) -> str:
    if stage not in PIPELINE_STAGES:
        raise ValueError(f"Unknown pipeline stage {stage!r}; expected one of {', '.join(PIPELINE_STAGES)}")
    return stage


@contextlib.contextmanager
def processing_context(*, source_id: str, stage: str | None = None) -> Any:
    """Bind the source being processed (and optionally its first stage) for the block.

    Args:
        source_id: Source identifier, as used in unit ids.
        stage: One of :data:`PIPELINE_STAGES`; the enclosing stage is kept when omitted.

    Raises:
        ValueError: If ``stage`` is not a pipeline stage.
    """

    stage = _check_stage(stage) if stage else _stage_var.get()
    token_source = _source_id_var.set(source_id)
    token_stage = _stage_var.set(stage)
    try:
        yield
    finally:
        _source_id_var.reset(token_source)
        _stage_var.reset(token_stage)


def set_stage(stage: str) -> None:
    """Move the current source on to the next pipeline stage."""

    _stage_var.set(_check_stage(stage))


def current_context() -> dict[str, str]:
    return {"source_id": _source_id_var.get(), "stage": _stage_var.get()}


def configure_logging(level: str = "INFO") -> None:
    """Install the rich console handler on the root logger.

    Calling it again only changes the level.

    Args:
        level: Logging level name.
    """

    root = logging.getLogger()
    root.setLevel(level.upper())
    if any(isinstance(h, RichHandler) for h in root.handlers):
        return

    handler = RichHandler(rich_tracebacks=True, show_time=True, show_level=True)
    handler.addFilter(_SourceStageFilter())
    handler.setFormatter(logging.Formatter(fmt="[%(source_id)s/%(stage)s] %(name)s: %(message)s"))
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""

    return logging.getLogger(name)


def log_exception(logger: logging.Logger, msg: str, **context: Any) -> None:
    """Log the active exception with the unit or source fields that identify the failure."""

    if context:
        logger.exception("%s | context=%s", msg, context)
    else:
        logger.exception("%s", msg)
