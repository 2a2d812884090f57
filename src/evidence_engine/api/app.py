"""FastAPI app exposing source processing, similarity and deduplication."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from evidence_engine.config import Settings, load_settings
from evidence_engine.dedup.service import DeduplicationService
from evidence_engine.errors import MalformedConfigError, UnitizationError
from evidence_engine.logging import configure_logging, get_logger
from evidence_engine.memory.evidence_store import EvidenceStore
from evidence_engine.models.config import DeduplicationConfig, SimilarityConfig, build_config
from evidence_engine.models.evidence import DeduplicationResult, EvidenceUnit
from evidence_engine.models.processing import ProcessingResult
from evidence_engine.models.similarity import SimilarityResult
from evidence_engine.pipeline.processor import EvidenceProcessor
from evidence_engine.similarity.engine import calculate_similarity


class ProcessRequest(BaseModel):
    """Process request."""

    text: str


class SimilarityRequest(BaseModel):
    text1: str
    text2: str
    config: dict = Field(default_factory=dict)


class DeduplicateRequest(BaseModel):
    units: list[EvidenceUnit]
    config: dict = Field(default_factory=dict)


def create_app(settings: Settings | None = None, store: EvidenceStore | None = None) -> FastAPI:
    """Create FastAPI app."""

    settings = settings or load_settings()
    configure_logging(settings.log_level)
    logger = get_logger(__name__)

    processor = EvidenceProcessor(settings.processing_config(), store=store)

    app = FastAPI(title="Evidence Engine", version="0.1.0")

    @app.exception_handler(MalformedConfigError)
    async def malformed_config(_: Request, exc: MalformedConfigError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(UnitizationError)
    async def unitization_failed(_: Request, exc: UnitizationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc), "errors": exc.errors})

    @app.post("/sources/{source_id}/process")
    def process_source(source_id: str, req: ProcessRequest) -> ProcessingResult:
        logger.info("API process requested", extra={"text_len": len(req.text)})
        return processor.process_source_text(source_id, req.text)

    @app.post("/similarity")
    def similarity(req: SimilarityRequest) -> SimilarityResult:
        config = build_config(SimilarityConfig, **req.config)
        return calculate_similarity(req.text1, req.text2, config)

    @app.post("/deduplicate")
    def deduplicate(req: DeduplicateRequest) -> DeduplicationResult:
        logger.info("API deduplicate requested", extra={"unit_count": len(req.units)})
        service = DeduplicationService(build_config(DeduplicationConfig, **req.config))
        return service.deduplicate(req.units)

    return app
