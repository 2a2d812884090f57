"""Engine error taxonomy."""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all engine errors."""


class LengthMismatchError(EngineError, ValueError):
    """Raised when MinHash signatures or SimHash fingerprints differ in length."""

    def __init__(self, kind: str, left: int, right: int) -> None:
        super().__init__(f"{kind} must have the same length (got {left} and {right})")
        self.kind = kind
        self.left = left
        self.right = right


class EmptyClusterError(EngineError, RuntimeError):
    """Raised when a representative is requested for a cluster without members."""


class MalformedConfigError(EngineError, ValueError):
    """Raised when a configuration record is rejected on construction or update."""


class UnitizationError(EngineError):
    """Raised when the units produced for a source fail validation."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__(f"Text unitization failed: {', '.join(errors)}")
        self.errors = errors
