from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from hyperplot.config import settings
from hyperplot.feasibility_engine.area_profiles import (
    AREA_PROFILES,
    get_area_market_data,
)
from hyperplot.feasibility_engine.calculator import calculate_all_mixes, calculate_feasibility
from hyperplot.feasibility_engine.market_data import resolve_market_assumptions
from hyperplot.feasibility_engine.unit_mix import MIX_STRATEGIES
from hyperplot.matching_engine.fallback import find_similar_plots, match_with_fallback
from hyperplot.matching_engine.scoring import match_parcels
from hyperplot.models.schemas import (
    AreaResearchDocument,
    FeasibilityRequest,
    MarketAssumptionsRequest,
    MatchRequest,
    MatchResponse,
    MatchWithFallbackRequest,
    NormalizeRequest,
    ParcelBatchResponse,
    SimilarPlotsRequest,
)
from hyperplot.services.area_research import read_cached_area_research
from hyperplot.services.gis import GISClient
from hyperplot.services.parcel_input import normalize_parcel_input
from hyperplot.services.sheets import SheetsClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")


def get_research_documents(request: Request) -> list[AreaResearchDocument]:
    """Area research, read once per app and shared read-only by every request."""
    docs = getattr(request.app.state, "research_documents", None)
    if docs is None:
        docs = read_cached_area_research(settings.area_research_path)
        request.app.state.research_documents = docs
    return docs


# ──────────────────────────────────────────────────────────────────
# PARCELS
# ──────────────────────────────────────────────────────────────────

@router.post("/parcels/normalize", response_model=ParcelBatchResponse)
async def normalize_parcels(request: NormalizeRequest):
    """Normalize pasted text or a form submission into canonical parcels."""
    if request.text is not None:
        raw = request.text
    elif request.form is not None:
        raw = request.form
    else:
        raise HTTPException(status_code=400, detail="Provide either 'text' or 'form'")

    batch = normalize_parcel_input(raw)
    return ParcelBatchResponse(valid=batch.valid, invalid=batch.invalid, warnings=batch.warnings)


@router.post("/parcels/match", response_model=MatchResponse)
async def match_against_registry(request: MatchRequest):
    """Match parcels against a caller-supplied plot registry."""
    results = match_parcels(request.specs, request.registry)
    excluded = sum(1 for s in request.specs if not s.is_valid)
    return MatchResponse(results=results, excluded_count=excluded)


@router.post("/parcels/match-with-fallback", response_model=MatchResponse)
async def match_with_gis_fallback(request: MatchWithFallbackRequest):
    """Registry match, falling back to the GIS service when it finds nothing."""
    sheets = None
    if request.cross_check:
        sheets = SheetsClient.from_settings()
        if not sheets.configured:
            raise HTTPException(status_code=400, detail="Owner sheet is not configured")

    results = await match_with_fallback(
        request.specs, request.registry, GISClient.from_settings(), sheets=sheets,
    )
    excluded = sum(1 for s in request.specs if not s.is_valid)
    return MatchResponse(results=results, excluded_count=excluded)


@router.post("/parcels/similar", response_model=MatchResponse)
async def similar_plots(request: SimilarPlotsRequest):
    """Plots around a point, scored against the given parcel."""
    try:
        results = await find_similar_plots(
            request.spec,
            GISClient.from_settings(),
            request.latitude,
            request.longitude,
            radius_m=request.radius_m,
            include_out_of_tolerance=request.include_out_of_tolerance,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return MatchResponse(results=results)


# ──────────────────────────────────────────────────────────────────
# MARKET DATA
# ──────────────────────────────────────────────────────────────────

@router.post("/market-assumptions")
async def market_assumptions(
    request: MarketAssumptionsRequest,
    research: list[AreaResearchDocument] = Depends(get_research_documents),
):
    """Resolve market inputs for a location, with their source."""
    assumptions = resolve_market_assumptions(
        request.location_hint,
        area_code=request.area_code,
        overrides=request.overrides,
        research_documents=research,
    )
    return assumptions.to_dict()


@router.get("/area-profiles")
async def area_profiles():
    """Curated area profiles with their market benchmarks."""
    profiles = []
    for code, profile in AREA_PROFILES.items():
        market = get_area_market_data(code)
        profiles.append({
            **profile.to_dict(),
            "market": market.to_dict() if market else None,
        })
    return {"profiles": profiles}


@router.get("/mix-strategies")
async def mix_strategies():
    return {"strategies": [s.to_dict() for s in MIX_STRATEGIES.values()]}


# ──────────────────────────────────────────────────────────────────
# FEASIBILITY
# ──────────────────────────────────────────────────────────────────

@router.post("/feasibility")
async def feasibility(
    request: FeasibilityRequest,
    research: list[AreaResearchDocument] = Depends(get_research_documents),
):
    """Run the feasibility model for one plot (or every mix strategy)."""
    assumptions = resolve_market_assumptions(
        request.location_hint or request.input.name,
        area_code=request.area_code,
        research_documents=research,
    )

    try:
        if request.compare_all:
            results = calculate_all_mixes(request.input, assumptions)
        else:
            results = [calculate_feasibility(request.input, request.mix_strategy, assumptions)]
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    logger.info(
        "Feasibility for %r: %d scenario(s), market source %s",
        request.input.name or request.input.id, len(results), assumptions.source,
    )
    return {
        "assumptions": assumptions.to_dict(),
        "results": [r.to_dict() for r in results],
    }
