"""Text unit models produced by the unitizer."""

from __future__ import annotations

from pydantic import BaseModel, Field


class TextUnit(BaseModel):
    """A slice of normalized source text."""

    text: str
    start_index: int = Field(ge=0)
    end_index: int = Field(ge=0)
    word_count: int = 0
    sentence_count: int = 1
    has_complete_start: bool = False
    has_complete_end: bool = False


class UnitizationStats(BaseModel):
    total_units: int = 0
    avg_unit_size: float = 0.0
    min_unit_size: int = 0
    max_unit_size: int = 0
    total_coverage: float = 0.0
    overlap_coverage: float = 0.0


class UnitizationReport(BaseModel):
    """Validation outcome for a list of units."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    stats: UnitizationStats = Field(default_factory=UnitizationStats)
