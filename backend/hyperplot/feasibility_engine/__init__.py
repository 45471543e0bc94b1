from __future__ import annotations

from hyperplot.feasibility_engine.calculator import (
    calculate_all_mixes,
    calculate_feasibility,
    feasibility_input_from_plot,
)
from hyperplot.feasibility_engine.market_data import MarketAssumptionSet, resolve_market_assumptions

__all__ = [
    "calculate_feasibility",
    "calculate_all_mixes",
    "feasibility_input_from_plot",
    "resolve_market_assumptions",
    "MarketAssumptionSet",
]
