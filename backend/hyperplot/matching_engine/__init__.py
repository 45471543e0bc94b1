from __future__ import annotations

from hyperplot.matching_engine.cross_check import cross_check_with_sheet
from hyperplot.matching_engine.fallback import find_similar_plots, match_with_fallback
from hyperplot.matching_engine.scoring import confidence_score, match_parcels

__all__ = [
    "match_parcels",
    "match_with_fallback",
    "find_similar_plots",
    "cross_check_with_sheet",
    "confidence_score",
]
