"""Shared fixtures."""

from __future__ import annotations

import pytest

ARTICLE = (
    "Municipal water utilities across the region reported a sharp rise in maintenance costs last year. "
    "Engineers attributed most of the increase to aging cast iron pipes that were installed before 1950. "
    "The state auditor published a review on 03/14/2023 that questioned how the budget was allocated. "
    "According to the review, only 12 percent of the capital funds reached the oldest neighborhoods. "
    "Residents in those districts described frequent outages, discolored water and slow repair crews. "
    "City officials responded that federal grants would cover replacement of 4,500 service lines. "
    "However, contractors warned that supply chain delays could push the schedule into the next decade. "
    "Environmental groups argued that lead exposure remains the most urgent public health concern. "
    "Several school districts began testing drinking fountains after parents demanded clearer data. "
    "The utility board plans to publish quarterly progress reports at https://water.example.org/reports. "
    "Independent researchers will compare those reports with field inspections conducted by volunteers. "
    "Questions about the program can be sent to the oversight office at oversight@example.org for review. "
    "Analysts expect the total replacement effort to cost roughly 310 million dollars over ten years. "
    "Council members must still approve the rate increase that would finance the remaining work."
)


@pytest.fixture
def article() -> str:
    return ARTICLE
