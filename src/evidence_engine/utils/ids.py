"""ID utilities."""

from __future__ import annotations


def format_unit_id(source_id: str, n: int) -> str:
    """Format the ``n``-th accepted unit of a source (e.g. ``src1_u0001``)."""

    return f"{source_id}_u{n:04d}"
