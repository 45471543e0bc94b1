"""
Market assumption resolution.

Sources, highest priority first. The first source with data ends the
search; user overrides are layered on top of whatever it produced.

  1. User overrides (always merged last)
  2. Uploaded area research, strictly scoped to the target area code
  3. Curated area profile for the exact area code
  4. Anchor area: nearest curated profile, flagged as an approximation
  5. Nothing: reported as "no area data", never invented numbers

A research document covering more than one area code is rejected outright
rather than blended into the target area's numbers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from hyperplot.feasibility_engine.area_profiles import (
    AreaMarketData,
    AreaProfile,
    extract_area_codes,
    find_anchor_area,
    get_area_market_data,
    get_area_profile,
    normalize_area_code,
    resolve_area_code,
)
from hyperplot.models.schemas import (
    UNIT_TYPES,
    AreaResearchDocument,
    AreaTransactions,
    FeasibilityOverrides,
)

logger = logging.getLogger(__name__)

# Larger units rent for less per sqft than the area average
RENT_FACTORS = {"studio": 1.0, "br1": 1.0, "br2": 0.95, "br3": 0.88}


@dataclass
class MarketAssumptionSet:
    """Resolved market inputs for one feasibility run. Empty maps mean "no data"."""
    unit_psf: dict[str, float] = field(default_factory=dict)
    unit_sizes: dict[str, float] = field(default_factory=dict)
    unit_rents: dict[str, float] = field(default_factory=dict)
    construction_psf: Optional[float] = None
    land_cost_psf: Optional[float] = None
    bua_multiplier: Optional[float] = None
    efficiency: Optional[float] = None
    market_floor: Optional[float] = None
    market_avg: Optional[float] = None
    market_ceiling: Optional[float] = None
    recommended_mix: Optional[dict[str, float]] = None

    # area_research, area_profile, anchor_area, override_only, none
    source: str = "none"
    area_code: Optional[str] = None
    is_approximation: bool = False
    anchor_confidence: Optional[float] = None
    has_area_data: bool = False

    def to_dict(self) -> dict:
        return {
            "unit_psf": dict(self.unit_psf),
            "unit_sizes": dict(self.unit_sizes),
            "unit_rents": dict(self.unit_rents),
            "construction_psf": self.construction_psf,
            "land_cost_psf": self.land_cost_psf,
            "bua_multiplier": self.bua_multiplier,
            "efficiency": self.efficiency,
            "market_floor": self.market_floor,
            "market_avg": self.market_avg,
            "market_ceiling": self.market_ceiling,
            "recommended_mix": dict(self.recommended_mix) if self.recommended_mix else None,
            "source": self.source,
            "area_code": self.area_code,
            "is_approximation": self.is_approximation,
            "anchor_confidence": self.anchor_confidence,
            "has_area_data": self.has_area_data,
        }


def _positive(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if value > 0 else None


def _positive_map(values: dict | None) -> dict[str, float]:
    if not values:
        return {}
    cleaned = {}
    for t in UNIT_TYPES:
        v = _positive(values.get(t))
        if v is not None:
            cleaned[t] = v
    return cleaned


# ──────────────────────────────────────────────────────────────────
# AREA RESEARCH (strictly scoped)
# ──────────────────────────────────────────────────────────────────

def research_scope(doc: AreaResearchDocument) -> set[str]:
    """All area codes a document speaks about (declared + per-area transactions)."""
    codes = set(extract_area_codes(doc.area_code)) | set(extract_area_codes(doc.area_name))
    if doc.market_data:
        for key in doc.market_data.area_transactions:
            codes |= set(extract_area_codes(key))
    return codes


def is_research_usable(doc: AreaResearchDocument, target_code: str) -> bool:
    if not doc.ai_parsed or doc.market_data is None:
        return False
    if len(doc.market_data.area_transactions) > 1:
        return False
    return research_scope(doc) == {target_code}


def _from_research(doc: AreaResearchDocument, target_code: str) -> MarketAssumptionSet | None:
    md = doc.market_data
    txn: AreaTransactions | None = None
    for key, value in md.area_transactions.items():
        if target_code in extract_area_codes(key):
            txn = value
            break

    def _prefer(attr):
        if txn is not None and getattr(txn, attr) is not None:
            return getattr(txn, attr)
        return getattr(md, attr)

    unit_psf = _positive_map(_prefer("unit_psf"))
    unit_sizes = _positive_map(_prefer("unit_sizes"))
    unit_rents = _positive_map(md.unit_rents)
    market_avg = _positive(_prefer("market_avg_psf"))
    if not (unit_psf or unit_sizes or unit_rents or market_avg):
        return None

    return MarketAssumptionSet(
        unit_psf=unit_psf,
        unit_sizes=unit_sizes,
        unit_rents=unit_rents,
        market_floor=_positive(_prefer("market_floor_psf")),
        market_avg=market_avg,
        market_ceiling=_positive(_prefer("market_ceiling_psf")),
        source="area_research",
        area_code=target_code,
        has_area_data=True,
    )


def find_scoped_research(
    documents: Iterable[AreaResearchDocument],
    target_code: str,
) -> MarketAssumptionSet | None:
    """Most recent usable document for ``target_code`` (documents are in upload order)."""
    for doc in reversed(list(documents)):
        if not is_research_usable(doc, target_code):
            if doc.ai_parsed and doc.market_data is not None and target_code in research_scope(doc):
                logger.debug("Rejecting multi-area research '%s' for %s", doc.area_name, target_code)
            continue
        assumptions = _from_research(doc, target_code)
        if assumptions is not None:
            return assumptions
    return None


# ──────────────────────────────────────────────────────────────────
# CURATED PROFILES
# ──────────────────────────────────────────────────────────────────

def _from_profile(profile: AreaProfile, market: AreaMarketData | None) -> MarketAssumptionSet:
    unit_psf = _positive_map(market.unit_psf) if market else {}
    unit_rents = {}
    avg_rent = _positive(market.avg_rent_psf_yr) if market else None
    if avg_rent:
        unit_rents = {t: avg_rent * factor for t, factor in RENT_FACTORS.items()}

    psfs = list(unit_psf.values())
    return MarketAssumptionSet(
        unit_psf=unit_psf,
        unit_rents=unit_rents,
        construction_psf=profile.construction_psf,
        bua_multiplier=profile.bua_multiplier,
        efficiency=profile.sellable_pct / 100,
        market_floor=min(psfs) if psfs else None,
        market_avg=sum(psfs) / len(psfs) if psfs else None,
        market_ceiling=max(psfs) if psfs else None,
        recommended_mix=dict(profile.recommended_mix),
        source="area_profile",
        area_code=profile.code,
        has_area_data=True,
    )


def profile_assumptions(code: str) -> MarketAssumptionSet | None:
    profile = get_area_profile(code)
    if profile is None:
        return None
    return _from_profile(profile, get_area_market_data(code))


# ──────────────────────────────────────────────────────────────────
# OVERRIDES
# ──────────────────────────────────────────────────────────────────

def apply_overrides(
    assumptions: MarketAssumptionSet,
    overrides: FeasibilityOverrides | None,
) -> MarketAssumptionSet:
    """Layer explicit user values on top. Non-positive values are ignored."""
    if overrides is None:
        return assumptions

    applied = False
    for attr in ("unit_psf", "unit_sizes", "unit_rents"):
        values = _positive_map(getattr(overrides, attr))
        if values:
            getattr(assumptions, attr).update(values)
            applied = True

    for attr in ("construction_psf", "land_cost_psf", "bua_multiplier"):
        value = _positive(getattr(overrides, attr))
        if value is not None:
            setattr(assumptions, attr, value)
            applied = True

    efficiency = _positive(overrides.efficiency)
    if efficiency is not None and efficiency <= 1:
        assumptions.efficiency = efficiency
        applied = True

    if applied and assumptions.source == "none":
        assumptions.source = "override_only"
    return assumptions


# ──────────────────────────────────────────────────────────────────
# ENTRY POINT
# ──────────────────────────────────────────────────────────────────

def resolve_market_assumptions(
    location_hint: str | None,
    area_code: str | None = None,
    overrides: FeasibilityOverrides | None = None,
    research_documents: Iterable[AreaResearchDocument] = (),
) -> MarketAssumptionSet:
    """Resolve market inputs for a plot location.

    ``area_code`` (a code or any known alias) wins over ``location_hint`` for
    deciding the target area. The result is a fresh object on every call.
    """
    target = normalize_area_code(area_code) if area_code else None
    if target is None and area_code and get_area_profile(area_code):
        target = area_code.upper()
    if target is None:
        target = resolve_area_code(location_hint)

    assumptions = None
    if target:
        assumptions = find_scoped_research(research_documents, target)
        if assumptions is None:
            assumptions = profile_assumptions(target)

    if assumptions is None:
        anchor = find_anchor_area(location_hint)
        if anchor is not None:
            code, confidence = anchor
            assumptions = profile_assumptions(code)
            assumptions.source = "anchor_area"
            assumptions.is_approximation = True
            assumptions.anchor_confidence = confidence
            logger.info("No area data for %r, anchored on %s (%.2f)", location_hint, code, confidence)

    if assumptions is None:
        assumptions = MarketAssumptionSet(area_code=target)

    return apply_overrides(assumptions, overrides)
