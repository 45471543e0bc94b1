from __future__ import annotations

from hyperplot.models.schemas import (
    FeasibilityInput,
    FeasibilityOverrides,
    MatchResult,
    ParcelSpec,
    PlotRecord,
)

__all__ = ["ParcelSpec", "PlotRecord", "MatchResult", "FeasibilityInput", "FeasibilityOverrides"]
