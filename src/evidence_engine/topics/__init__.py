"""Keyword extraction and topic clustering."""

from __future__ import annotations

from evidence_engine.topics.keywords import extract_keywords, extract_keywords_simple
from evidence_engine.topics.service import TopicService

__all__ = ["TopicService", "extract_keywords", "extract_keywords_simple"]
