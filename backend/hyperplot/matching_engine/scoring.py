"""
Plot scoring: how well a candidate plot matches a parcel query.

Tolerance (max deviation per supplied dimension):
  ±6%   when an area name is given (named-area search)
  ±10%  otherwise (broad range search)

Points per supplied dimension, with deviation d in percent:
  d ≤ 6   →  max(35, 50 − 2.5·d)
  d > 6   →  max(20, 50 − 3·d)

A single-dimension query doubles its points. Every supplied dimension
exactly on target scores 100; anything else is clamped to 10..99.

Supplemental filters, only when the query supplies them:
  - location: plot location must name the same area
  - zoning: normalised zoning must overlap either way
  - floors: within ±1 of the plot's floor count
"""

from __future__ import annotations

import logging
import re

from hyperplot.feasibility_engine.area_profiles import extract_area_codes, resolve_area_code
from hyperplot.models.schemas import MatchResult, ParcelSpec, PlotRecord
from hyperplot.services.parcel_input import parse_floor_count
from hyperplot.services.units import round_half_up

logger = logging.getLogger(__name__)

NAMED_AREA_TOLERANCE_PCT = 6.0
RANGE_TOLERANCE_PCT = 10.0
FLOOR_TOLERANCE = 1

MIN_CONFIDENCE = 10
MAX_PARTIAL_CONFIDENCE = 99
EXACT_CONFIDENCE = 100


# ──────────────────────────────────────────────────────────────────
# DEVIATION & CONFIDENCE
# ──────────────────────────────────────────────────────────────────

def deviation_pct(actual: float, expected: float) -> float:
    """|actual − expected| / expected × 100. Zero when nothing was expected."""
    if expected <= 0:
        return 0.0
    return abs(actual - expected) / expected * 100


def is_plot_number(value: str | None) -> bool:
    return bool(value) and value.strip().isdigit()


def area_name_of(spec: ParcelSpec) -> str:
    """Area name usable for scoping; a bare plot number is not a name."""
    name = spec.area_name.strip()
    return "" if is_plot_number(name) else name


def tolerance_for(spec: ParcelSpec) -> float:
    return NAMED_AREA_TOLERANCE_PCT if area_name_of(spec) else RANGE_TOLERANCE_PCT


def dimension_points(deviation: float) -> float:
    if deviation <= 6:
        return max(35.0, 50 - deviation * 2.5)
    return max(20.0, 50 - deviation * 3)


def confidence_score(
    area_dev: float,
    gfa_dev: float,
    has_area: bool,
    has_gfa: bool,
) -> int:
    """0–100 confidence from the deviations of the supplied dimensions."""
    deviations = []
    if has_area:
        deviations.append(area_dev)
    if has_gfa:
        deviations.append(gfa_dev)
    if not deviations:
        return 0

    if all(d == 0 for d in deviations):
        return EXACT_CONFIDENCE

    weight = 2 if len(deviations) == 1 else 1
    total = sum(dimension_points(d) * weight for d in deviations)
    return min(MAX_PARTIAL_CONFIDENCE, max(MIN_CONFIDENCE, round_half_up(total)))


# ──────────────────────────────────────────────────────────────────
# QUALIFICATION FILTERS
# ──────────────────────────────────────────────────────────────────

def normalize_zoning(zoning: str) -> str:
    z = re.sub(r"[\s_-]+", "", zoning.lower())
    return re.sub(r"apartments?|villas?", "", z)


def zoning_matches(spec_zoning: str | None, plot_zoning: str) -> bool:
    if not spec_zoning:
        return True
    wanted = normalize_zoning(spec_zoning)
    have = normalize_zoning(plot_zoning or "")
    return wanted in have or have in wanted


def floors_match(spec_floors: int | None, plot_floors: str | None) -> bool:
    if not spec_floors:
        return True
    have = parse_floor_count(plot_floors)
    if have is None:
        return True
    return abs(have - spec_floors) <= FLOOR_TOLERANCE


def location_matches(area_name: str, plot_location: str) -> bool:
    if not area_name or not plot_location:
        return True
    wanted = area_name.lower()
    have = plot_location.lower()
    if wanted in have or have in wanted:
        return True
    code = resolve_area_code(area_name)
    if code and code in extract_area_codes(plot_location):
        return True
    # Short tokens ("JVC", "DIP") are too generic to exclude on
    return len(wanted) <= 3


# ──────────────────────────────────────────────────────────────────
# SCORING
# ──────────────────────────────────────────────────────────────────

def build_match_result(
    spec: ParcelSpec,
    plot: PlotRecord,
    area_dev: float,
    gfa_dev: float,
    score: int,
    source: str,
) -> MatchResult:
    return MatchResult(
        input=spec,
        matched_plot_id=plot.id,
        matched_plot_area=plot.area_sqm,
        matched_gfa=plot.gfa_sqm,
        matched_zoning=plot.zoning,
        matched_status=plot.status,
        matched_location=plot.location,
        area_deviation_pct=round(area_dev, 2),
        gfa_deviation_pct=round(gfa_dev, 2),
        confidence_score=score,
        source=source,
    )


def score_plot(
    spec: ParcelSpec,
    plot: PlotRecord,
    source: str = "registry",
    check_location: bool = True,
    enforce_tolerance: bool = True,
) -> MatchResult | None:
    """Score one plot. Returns None when the plot does not qualify."""
    if not spec.is_valid:
        return None
    if check_location and not location_matches(area_name_of(spec), plot.location):
        return None
    if not zoning_matches(spec.zoning, plot.zoning):
        return None
    if not floors_match(spec.floors, plot.floors):
        return None

    area_dev = deviation_pct(plot.area_sqm, spec.plot_area_sqm) if spec.has_area else 0.0
    gfa_dev = deviation_pct(plot.gfa_sqm, spec.gfa_sqm) if spec.has_gfa else 0.0

    if enforce_tolerance:
        tolerance = tolerance_for(spec)
        if spec.has_area and area_dev > tolerance:
            return None
        if spec.has_gfa and gfa_dev > tolerance:
            return None

    score = confidence_score(area_dev, gfa_dev, spec.has_area, spec.has_gfa)
    return build_match_result(spec, plot, area_dev, gfa_dev, score, source)


def sort_results(results: list[MatchResult]) -> list[MatchResult]:
    return sorted(results, key=lambda r: r.confidence_score, reverse=True)


def match_parcels(specs: list[ParcelSpec], registry: list[PlotRecord]) -> list[MatchResult]:
    """Score every valid spec against every registry plot, best first.

    Invalid specs (no plot area and no GFA) are skipped and counted.
    """
    results = []
    excluded = 0
    for spec in specs:
        if not spec.is_valid:
            excluded += 1
            continue
        for plot in registry:
            result = score_plot(spec, plot)
            if result is not None:
                results.append(result)

    if excluded:
        logger.warning("Excluded %d parcel(s) missing both plot area and GFA", excluded)
    return sort_results(results)
