"""Heuristic scoring and metadata for freshly cut text units."""

from __future__ import annotations

import re
from typing import Any

from evidence_engine.models.text_unit import TextUnit

_SENTENCE_PUNCT_RE = re.compile(r"[.!?]")
_CONNECTIVE_RE = re.compile(
    r"\b(the|and|or|but|however|therefore|because|since|when|where|what|who|which|that|this|these|"
    r"those|could|would|should|might|may|can|will|shall)\b",
    re.IGNORECASE,
)
_PUNCT_RE = re.compile(r"[^\w\s]")
_DIGIT_RE = re.compile(r"\d")
_UPPER_RE = re.compile(r"[A-Z]")
_PHRASE_RE = re.compile(r"\b[a-z]+(?:\s+[a-z]+){0,2}\b")
_FUNCTION_WORDS = frozenset(
    "the and or but for with by to of in on at as is are was were be been have has had do does did "
    "will would could should may might can shall".split()
)

_URL_RE = re.compile(r"https?://\S+", re.IGNORECASE)
_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_DATE_RE = re.compile(r"\b\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}\b|\b\d{4}[/\-]\d{1,2}[/\-]\d{1,2}\b")
_NUMBER_RE = re.compile(r"\b\d+(?:,\d{3})*(?:\.\d+)?\b")

MAX_TOPIC_CANDIDATES = 5
MAX_NUMBERS = 10


def _clamp(score: float) -> float:
    return min(1.0, max(0.0, score))


def calculate_confidence_score(unit: TextUnit, full_text: str, preferred_size: int = 300) -> float:
    """How well the unit stands on its own: boundaries, size, density and position."""

    score = 0.5
    if unit.has_complete_start and unit.has_complete_end:
        score += 0.3
    elif unit.has_complete_start or unit.has_complete_end:
        score += 0.15

    size_ratio = len(unit.text) / preferred_size
    if 0.8 <= size_ratio <= 1.2:
        score += 0.2
    elif 0.6 <= size_ratio <= 1.5:
        score += 0.1

    score += 0.25 if unit.sentence_count >= 1 else 0.1

    density = unit.word_count / len(unit.text) if unit.text else 0.0
    if 0.12 <= density <= 0.18:
        score += 0.15
    elif 0.08 <= density <= 0.22:
        score += 0.07

    position = unit.start_index / len(full_text) if full_text else 0.0
    score += 0.1 if 0.1 < position < 0.9 else 0.05
    return _clamp(score)


def calculate_quality_score(unit: TextUnit) -> float:
    """Content quality: real sentences, reasonable length, connectives, little repetition."""

    text = unit.text
    if not text:
        return 0.0
    lowered = text.lower()
    score = 0.4

    if unit.sentence_count >= 1 and _SENTENCE_PUNCT_RE.search(text):
        score += 0.25

    if 15 <= unit.word_count <= 80:
        score += 0.2
    elif 10 <= unit.word_count <= 100:
        score += 0.1

    connectives = len(_CONNECTIVE_RE.findall(text))
    if connectives >= 3:
        score += 0.2
    elif connectives >= 1:
        score += 0.1

    words = lowered.split()
    uniqueness = len(set(words)) / len(words) if words else 0.0
    if uniqueness >= 0.7:
        score += 0.15
    elif uniqueness >= 0.5:
        score += 0.07

    penalties = 0.0
    if len(_PUNCT_RE.findall(text)) / len(text) > 0.2:
        penalties += 0.05
    if len(_DIGIT_RE.findall(text)) / len(text) > 0.3:
        penalties += 0.05
    if len(_UPPER_RE.findall(text)) / len(text) > 0.5:
        penalties += 0.05
    score = max(0.1, score - penalties)

    if unit.has_complete_start and unit.has_complete_end and unit.sentence_count >= 2:
        score += 0.1
    return _clamp(score)


def extract_topic_candidates(unit: TextUnit) -> list[str]:
    """Up to five short lowercase phrases whose words all have three or more letters."""

    candidates = []
    for phrase in _PHRASE_RE.findall(unit.text.lower()):
        words = phrase.split()
        if not 1 <= len(words) <= 3 or any(len(w) < 3 for w in words):
            continue
        if phrase in _FUNCTION_WORDS:
            continue
        candidates.append(phrase)
        if len(candidates) == MAX_TOPIC_CANDIDATES:
            break
    return candidates


def extract_metadata(unit: TextUnit, full_text: str) -> dict[str, Any]:
    """Positional and structural facts about the unit, plus any URLs, e-mails, dates and numbers."""

    metadata: dict[str, Any] = {
        "position": {
            "start": unit.start_index,
            "end": unit.end_index,
            "ratio": unit.start_index / len(full_text) if full_text else 0.0,
        },
        "structure": {
            "wordCount": unit.word_count,
            "sentenceCount": unit.sentence_count,
            "avgWordsPerSentence": unit.word_count / unit.sentence_count if unit.sentence_count else 0.0,
        },
        "boundaries": {
            "hasCompleteStart": unit.has_complete_start,
            "hasCompleteEnd": unit.has_complete_end,
        },
    }

    text = unit.text
    urls = _URL_RE.findall(text)
    if urls:
        metadata["urls"] = urls
    emails = _EMAIL_RE.findall(text)
    if emails:
        metadata["emails"] = emails
    dates = _DATE_RE.findall(text)
    if dates:
        metadata["dates"] = dates
    numbers = _NUMBER_RE.findall(text)
    if numbers:
        metadata["numbers"] = numbers[:MAX_NUMBERS]
    return metadata
