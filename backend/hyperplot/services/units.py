"""Square metre / square foot conversion helpers."""

from __future__ import annotations

import math

SQFT_PER_SQM = 10.7639

SQM_UNITS = ("sqm", "unknown")
SQFT_UNITS = ("sqft",)


def sqm_to_sqft(sqm: float) -> float:
    return sqm * SQFT_PER_SQM


def sqft_to_sqm(sqft: float) -> float:
    return sqft / SQFT_PER_SQM


def to_sqm(value: float, unit: str) -> float:
    """Convert a measurement to sqm.

    Undeclared units ("unknown") are assumed to already be sqm, which is
    how the DDA affection plans and most broker sheets quote plot sizes.
    """
    if unit in SQFT_UNITS:
        return sqft_to_sqm(value)
    return value


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))
