"""
Remote fallback when the local registry has no match.

Strategies, tried in order per parcel (first non-empty success wins):
  1. gis_by_id:        plot number given (or the area name is a bare plot number)
  2. gis_by_area_name: strict: size range within the named project only
  3. gis_by_range:     no area name at all: plot-area and/or GFA range, no name filter

A named area never falls back to an un-scoped range search. Each lookup is
made once; a failure is logged and counts as "no result" for that strategy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from hyperplot.matching_engine.cross_check import cross_check_with_sheet
from hyperplot.matching_engine.scoring import (
    EXACT_CONFIDENCE,
    area_name_of,
    build_match_result,
    deviation_pct,
    is_plot_number,
    match_parcels,
    score_plot,
    sort_results,
    tolerance_for,
)
from hyperplot.models.schemas import MatchResult, ParcelSpec, PlotRecord
from hyperplot.services.gis import validate_search_point

logger = logging.getLogger(__name__)


@dataclass
class StrategyOutcome:
    """Result of one strategy run: results on success, error text on failure."""
    name: str
    results: list[MatchResult] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "results": [r.model_dump() for r in self.results],
            "error": self.error,
        }


@dataclass(frozen=True)
class FallbackStrategy:
    name: str
    applies: Callable[[ParcelSpec], bool]
    search: Callable[[ParcelSpec, Any], Awaitable[list[MatchResult]]]


# ──────────────────────────────────────────────────────────────────
# STRATEGIES
# ──────────────────────────────────────────────────────────────────

def plot_number_of(spec: ParcelSpec) -> str | None:
    if is_plot_number(spec.plot_number):
        return spec.plot_number.strip()
    if is_plot_number(spec.area_name):
        return spec.area_name.strip()
    return None


def _bounds(spec: ParcelSpec, value: float, present: bool) -> tuple[float | None, float | None]:
    if not present:
        return None, None
    tolerance = tolerance_for(spec) / 100
    return value * (1 - tolerance), value * (1 + tolerance)


def _size_bounds(spec: ParcelSpec) -> tuple[float | None, float | None]:
    return _bounds(spec, spec.plot_area_sqm, spec.has_area)


def _gfa_bounds(spec: ParcelSpec) -> tuple[float | None, float | None]:
    return _bounds(spec, spec.gfa_sqm, spec.has_gfa)


def _score_candidates(spec: ParcelSpec, plots: list[PlotRecord], source: str) -> list[MatchResult]:
    results = []
    for plot in plots:
        # The search itself scoped the location
        result = score_plot(spec, plot, source=source, check_location=False)
        if result is not None:
            results.append(result)
    return results


async def _search_by_id(spec: ParcelSpec, gis) -> list[MatchResult]:
    plot = await gis.fetch_plot_by_id(plot_number_of(spec))
    if plot is None:
        return []
    area_dev = deviation_pct(plot.area_sqm, spec.plot_area_sqm) if spec.has_area else 0.0
    gfa_dev = deviation_pct(plot.gfa_sqm, spec.gfa_sqm) if spec.has_gfa else 0.0
    # Identity match on the plot number
    return [build_match_result(spec, plot, area_dev, gfa_dev, EXACT_CONFIDENCE, "gis_by_id")]


async def _search_by_area_name(spec: ParcelSpec, gis) -> list[MatchResult]:
    min_area, max_area = _size_bounds(spec)
    min_gfa, max_gfa = _gfa_bounds(spec)
    plots = await gis.search_by_area(
        min_area, max_area, area_name_of(spec), min_gfa=min_gfa, max_gfa=max_gfa,
    )
    return _score_candidates(spec, plots, "gis_by_area_name")


async def _search_by_range(spec: ParcelSpec, gis) -> list[MatchResult]:
    min_area, max_area = _size_bounds(spec)
    min_gfa, max_gfa = _gfa_bounds(spec)
    plots = await gis.search_by_area(min_area, max_area, min_gfa=min_gfa, max_gfa=max_gfa)
    return _score_candidates(spec, plots, "gis_by_range")


FALLBACK_STRATEGIES: list[FallbackStrategy] = [
    FallbackStrategy("gis_by_id", lambda s: plot_number_of(s) is not None, _search_by_id),
    FallbackStrategy("gis_by_area_name", lambda s: bool(area_name_of(s)), _search_by_area_name),
    FallbackStrategy("gis_by_range", lambda s: not area_name_of(s) and s.is_valid, _search_by_range),
]


# ──────────────────────────────────────────────────────────────────
# COORDINATOR
# ──────────────────────────────────────────────────────────────────

async def run_strategy(strategy: FallbackStrategy, spec: ParcelSpec, gis) -> StrategyOutcome:
    try:
        results = await strategy.search(spec, gis)
    except Exception as exc:
        logger.warning("Fallback %s failed for %r: %s", strategy.name, spec.area_name or spec.plot_number, exc)
        return StrategyOutcome(strategy.name, error=str(exc) or type(exc).__name__)
    return StrategyOutcome(strategy.name, results=results)


async def match_spec_with_fallback(
    spec: ParcelSpec,
    gis,
    strategies: list[FallbackStrategy] | None = None,
) -> tuple[list[MatchResult], list[StrategyOutcome]]:
    """Run the strategies for one spec, sequentially, stopping at the first hit."""
    outcomes = []
    for strategy in strategies or FALLBACK_STRATEGIES:
        if not strategy.applies(spec):
            continue
        outcome = await run_strategy(strategy, spec, gis)
        outcomes.append(outcome)
        if outcome.results:
            logger.info("Fallback %s found %d plot(s)", strategy.name, len(outcome.results))
            return sort_results(outcome.results), outcomes
    return [], outcomes


async def match_with_fallback(
    specs: list[ParcelSpec],
    registry: list[PlotRecord],
    gis,
    sheets=None,
) -> list[MatchResult]:
    """Local registry first; remote strategies only when it yields nothing.

    Never raises for collaborator failures. When ``sheets`` is given the
    final list is cross-checked against the owner sheet.
    """
    results = match_parcels(specs, registry)

    if not results and gis is not None:
        for spec in specs:
            if not spec.is_valid:
                continue
            spec_results, _ = await match_spec_with_fallback(spec, gis)
            results.extend(spec_results)
        results = sort_results(results)

    if sheets is not None and results:
        results = await cross_check_with_sheet(results, sheets)
    return results


# ──────────────────────────────────────────────────────────────────
# SIMILAR PLOTS
# ──────────────────────────────────────────────────────────────────

async def find_similar_plots(
    spec: ParcelSpec,
    gis,
    latitude: float,
    longitude: float,
    radius_m: float = 1000,
    include_out_of_tolerance: bool = False,
) -> list[MatchResult]:
    """Plots near a point, scored against ``spec``, best first.

    Raises ValueError for an invalid spec or search point; a failed lookup
    returns [].
    """
    if not spec.is_valid:
        raise ValueError("Similar-plot search needs a plot area or GFA to compare against")
    validate_search_point(latitude, longitude, radius_m)

    try:
        plots = await gis.search_by_location(latitude, longitude, radius_m)
    except Exception as exc:
        logger.warning("Radius search failed at %.5f,%.5f: %s", latitude, longitude, exc)
        return []

    results = []
    for plot in plots:
        result = score_plot(
            spec, plot, source="gis_radius",
            check_location=False,
            enforce_tolerance=not include_out_of_tolerance,
        )
        if result is not None:
            results.append(result)
    return sort_results(results)
