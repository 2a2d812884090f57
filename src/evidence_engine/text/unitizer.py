"""Text unitization.

Splits source text into evidence-sized units (200-400 characters by default) that start and end on
sentence or paragraph boundaries where possible. Consecutive units overlap by a bounded number of
characters and never leave a gap, so the units of one call tile the normalized text.

Offsets are always relative to the *normalized* text returned by :func:`normalize_text`.
"""

from __future__ import annotations

import re
from typing import Literal

from evidence_engine.logging import get_logger
from evidence_engine.models.config import UnitizationConfig
from evidence_engine.models.text_unit import TextUnit, UnitizationReport, UnitizationStats

logger = get_logger(__name__)

# Boundaries farther than this from a target position are ignored.
BOUNDARY_SEARCH_WINDOW = 100

_WHITESPACE_RE = re.compile(r"\s+")
_ELLIPSIS_RE = re.compile(r"\.{3,}")
_SENTENCE_BOUNDARY_RE = re.compile(r"([.!?]+)\s+")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+\s+")
_PARAGRAPH_BOUNDARY_RE = re.compile(r"\n\s*\n")
_SENTENCE_END_CHARS = ".!?"

_QUOTE_TABLE = str.maketrans(
    {
        "“": '"',
        "”": '"',
        "‘": "'",
        "’": "'",
    }
)


def normalize_text(text: str) -> str:
    """Collapse whitespace, squeeze long ellipses and straighten curly quotes."""

    text = _WHITESPACE_RE.sub(" ", text)
    text = _ELLIPSIS_RE.sub("...", text)
    text = text.translate(_QUOTE_TABLE)
    return text.strip()


def find_sentence_boundaries(text: str) -> list[int]:
    """Return sorted offsets where sentences start, including 0 and ``len(text)``."""

    boundaries = {0}
    for m in _SENTENCE_BOUNDARY_RE.finditer(text):
        end_of_sentence = m.start() + len(m.group(1))
        if end_of_sentence < len(text):
            boundaries.add(m.end())
    boundaries.add(len(text))
    return sorted(boundaries)


def find_paragraph_boundaries(text: str) -> list[int]:
    """Return sorted offsets where paragraphs start, including 0 and ``len(text)``."""

    boundaries = {0}
    for m in _PARAGRAPH_BOUNDARY_RE.finditer(text):
        if m.end() < len(text):
            boundaries.add(m.end())
    boundaries.add(len(text))
    return sorted(boundaries)


def count_words(text: str) -> int:
    return len(text.split())


def count_sentences(text: str) -> int:
    """Count sentences; any text counts as at least one."""

    sentences = [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]
    return max(1, len(sentences))


def starts_at_boundary(full_text: str, start_index: int) -> bool:
    """Check whether ``start_index`` begins a sentence or paragraph of ``full_text``."""

    if start_index <= 0:
        return True
    if start_index >= len(full_text):
        return False

    prev_char = full_text[start_index - 1]
    curr_char = full_text[start_index]

    if prev_char in _SENTENCE_END_CHARS and curr_char.isspace():
        return True
    if prev_char.isspace() and not curr_char.isspace():
        preceding = full_text[:start_index].rstrip()
        if preceding and preceding[-1] in _SENTENCE_END_CHARS:
            return True
    if prev_char == "\n" and curr_char.isspace():
        return True
    return False


def ends_at_boundary(text: str, full_text: str, end_index: int) -> bool:
    """Check whether the unit ``text`` ending at ``end_index`` closes a sentence or paragraph."""

    if end_index >= len(full_text):
        return True

    stripped = text.rstrip()
    if not stripped:
        return False
    next_char = full_text[end_index]
    trailing_space = len(stripped) < len(text)

    if stripped[-1] in _SENTENCE_END_CHARS and (next_char.isspace() or trailing_space):
        return True
    if text.endswith("\n") and next_char.isspace():
        return True
    return False


def find_nearest_boundary(
    text: str,
    target_position: int,
    boundaries: list[int],
    direction: Literal["before", "after"] = "after",
) -> int:
    """Find the best boundary within the search window around ``target_position``.

    The nearest boundary on the preferred side wins; otherwise the farthest one on the other side.
    Without any boundary in the window, the window edge on the preferred side is returned.
    """

    if not boundaries:
        return target_position

    candidates = [b for b in boundaries if abs(b - target_position) <= BOUNDARY_SEARCH_WINDOW]
    if not candidates:
        if direction == "before":
            return max(0, target_position - BOUNDARY_SEARCH_WINDOW)
        return min(len(text), target_position + BOUNDARY_SEARCH_WINDOW)

    if direction == "before":
        before = [b for b in candidates if b <= target_position]
        return max(before) if before else min(candidates)
    after = [b for b in candidates if b >= target_position]
    return min(after) if after else max(candidates)


def create_text_unit(full_text: str, start_index: int, end_index: int) -> TextUnit:
    """Build a :class:`TextUnit` for ``full_text[start_index:end_index]``."""

    unit_text = full_text[start_index:end_index]
    return TextUnit(
        text=unit_text,
        start_index=start_index,
        end_index=end_index,
        word_count=count_words(unit_text),
        sentence_count=count_sentences(unit_text),
        has_complete_start=starts_at_boundary(full_text, start_index),
        has_complete_end=ends_at_boundary(unit_text, full_text, end_index),
    )


def _snap_before_cap(current: int, boundaries: list[int], config: UnitizationConfig) -> int:
    cap = current + config.max_unit_size
    fitting = [
        b for b in boundaries if current < b <= cap and cap - b <= BOUNDARY_SEARCH_WINDOW
    ]
    return max(fitting) if fitting else cap


def _choose_unit_end(
    text: str,
    current: int,
    sentence_boundaries: list[int],
    paragraph_boundaries: list[int],
    config: UnitizationConfig,
) -> int:
    length = len(text)
    target = current + config.preferred_size
    if target >= length:
        return length

    nearest_sentence = find_nearest_boundary(text, target, sentence_boundaries, "after")
    nearest_paragraph = find_nearest_boundary(text, target, paragraph_boundaries, "after")
    if abs(nearest_paragraph - target) <= abs(nearest_sentence - target):
        end = nearest_paragraph
    else:
        end = nearest_sentence

    if end - current < config.min_unit_size and end < length:
        end = find_nearest_boundary(
            text, current + config.min_unit_size, sentence_boundaries, "after"
        )

    if end - current > config.max_unit_size:
        end = _snap_before_cap(current, sentence_boundaries, config)

    if end <= current:
        end = min(length, current + config.max_unit_size)
    return end


def unitize_text(text: str, config: UnitizationConfig | None = None) -> list[TextUnit]:
    """Segment text into overlapping, boundary-aligned units.

    Args:
        text: Raw source text. It is normalized first.
        config: Size budgets; defaults to 200/400/50/300.

    Returns:
        Units in offset order. Empty text yields no units; text that fits in one unit yields one.
    """

    config = config or UnitizationConfig()
    normalized = normalize_text(text)
    length = len(normalized)

    if length == 0:
        return []
    if length <= config.max_unit_size:
        return [create_text_unit(normalized, 0, length)]

    sentence_boundaries = find_sentence_boundaries(normalized)
    paragraph_boundaries = find_paragraph_boundaries(normalized)

    units: list[TextUnit] = []
    current = 0
    while current < length:
        end = _choose_unit_end(
            normalized, current, sentence_boundaries, paragraph_boundaries, config
        )
        units.append(create_text_unit(normalized, current, end))
        if end >= length:
            break

        overlap_start = max(current + config.min_unit_size, end - config.overlap_size)
        next_start = find_nearest_boundary(normalized, overlap_start, sentence_boundaries, "after")
        # The next unit may overlap this one but must not leave a gap.
        next_start = min(next_start, end)
        if next_start <= units[-1].start_index:
            next_start = end
        current = next_start

    logger.debug("Unitized %d chars into %d units", length, len(units))
    return units


def validate_unitization(
    units: list[TextUnit],
    original_text: str,
    config: UnitizationConfig | None = None,
) -> UnitizationReport:
    """Check coverage and size bounds of ``units`` against the text they were cut from.

    Oversized units, gaps and uncovered ends are errors; undersized units are warnings.
    """

    config = config or UnitizationConfig()
    errors: list[str] = []
    warnings: list[str] = []

    if not units:
        return UnitizationReport(is_valid=False, errors=["No units generated"])

    sizes = [len(u.text) for u in units]
    min_size = min(sizes)
    max_size = max(sizes)
    avg_size = sum(sizes) / len(sizes)

    if min_size < config.min_unit_size:
        warnings.append(
            f"Some units are smaller than minimum size ({min_size} < {config.min_unit_size})"
        )
    if max_size > config.max_unit_size:
        errors.append(f"Some units exceed maximum size ({max_size} > {config.max_unit_size})")

    first, last = units[0], units[-1]
    if first.start_index != 0:
        errors.append("First unit does not start at text beginning")
    if last.end_index != len(original_text):
        errors.append("Last unit does not end at text end")

    total_overlap = 0
    for i in range(1, len(units)):
        prev, curr = units[i - 1], units[i]
        if curr.start_index > prev.end_index:
            errors.append(f"Gap detected between units {i - 1} and {i}")
        total_overlap += max(0, prev.end_index - curr.start_index)

    text_length = len(original_text)
    total_coverage = (last.end_index - first.start_index) / text_length if text_length else 0.0
    overlap_coverage = total_overlap / text_length if text_length else 0.0

    return UnitizationReport(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        stats=UnitizationStats(
            total_units=len(units),
            avg_unit_size=avg_size,
            min_unit_size=min_size,
            max_unit_size=max_size,
            total_coverage=total_coverage,
            overlap_coverage=overlap_coverage,
        ),
    )
