from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

UNIT_TYPES = ("studio", "br1", "br2", "br3")

AreaUnit = Literal["sqm", "sqft", "unknown"]
FinanceBasis = Literal["gdv", "construction"]


# ──────────────────────────────────────────────────────────────────
# PARCELS & PLOTS
# ──────────────────────────────────────────────────────────────────

class ParcelSpec(BaseModel):
    """Canonical parcel query, always in sqm."""
    area_name: str = ""
    plot_area_sqm: float = Field(default=0, ge=0)
    gfa_sqm: float = Field(default=0, ge=0)
    zoning: Optional[str] = None
    floors: Optional[int] = None
    plot_number: Optional[str] = None
    use: Optional[str] = None
    far: Optional[float] = None

    # As entered, before conversion
    plot_area: float = 0
    plot_area_unit: AreaUnit = "unknown"
    gfa: float = 0
    gfa_unit: AreaUnit = "unknown"

    errors: list[str] = []

    @property
    def has_area(self) -> bool:
        return self.plot_area_sqm > 0

    @property
    def has_gfa(self) -> bool:
        return self.gfa_sqm > 0

    @property
    def is_valid(self) -> bool:
        return self.has_area or self.has_gfa


class PlotRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    area_sqm: float = 0
    gfa_sqm: float = 0
    zoning: str = ""
    status: str = ""
    location: str = ""
    floors: Optional[str] = None  # e.g. "G+14"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    geometry: Optional[dict] = None  # GeoJSON or ArcGIS {"rings": [...]}

    developer: Optional[str] = None
    project: Optional[str] = None
    entity: Optional[str] = None
    main_landuse: Optional[str] = None
    sub_landuse: Optional[str] = None
    max_height_m: Optional[float] = None
    plot_coverage: Optional[float] = None
    is_frozen: bool = False
    freeze_reason: Optional[str] = None
    construction_status: Optional[str] = None
    site_status: Optional[str] = None


class MatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    input: ParcelSpec
    matched_plot_id: str
    matched_plot_area: float
    matched_gfa: float
    matched_zoning: str = ""
    matched_status: str = ""
    matched_location: str = ""
    area_deviation_pct: float = 0
    gfa_deviation_pct: float = 0
    confidence_score: int = Field(ge=0, le=100)
    # registry, gis_by_id, gis_by_area_name, gis_by_range, gis_radius
    source: str = "registry"
    owner_reference: Optional[str] = None
    sheet_metadata: Optional[dict] = None


# ──────────────────────────────────────────────────────────────────
# FEASIBILITY
# ──────────────────────────────────────────────────────────────────

class FeasibilityOverrides(BaseModel):
    """Explicit assumption overrides. Unset (None) fields fall through to
    market data, then to built-in defaults."""
    gfa: Optional[float] = None
    efficiency: Optional[float] = None
    land_cost_psf: Optional[float] = None
    land_cost: Optional[float] = None
    construction_psf: Optional[float] = None
    bua_multiplier: Optional[float] = None
    avg_psf_override: Optional[float] = None
    contingency_pct: Optional[float] = None
    finance_pct: Optional[float] = None
    marketing_pct: Optional[float] = None
    authority_fee_pct: Optional[float] = None
    consultant_fee_pct: Optional[float] = None
    finance_basis: Optional[FinanceBasis] = None
    mix: Optional[dict[str, float]] = None
    unit_psf: Optional[dict[str, float]] = None
    unit_sizes: Optional[dict[str, float]] = None
    unit_rents: Optional[dict[str, float]] = None


class FeasibilityInput(BaseModel):
    id: str = ""
    name: str = ""
    area_sqft: float
    ratio: float  # plot ratio / FAR
    height: str = ""
    zone: str = ""
    constraints: str = ""
    overrides: FeasibilityOverrides = FeasibilityOverrides()


# ──────────────────────────────────────────────────────────────────
# AREA RESEARCH (uploaded, AI-parsed market reports)
# ──────────────────────────────────────────────────────────────────

class _CamelModel(BaseModel):
    # Documents are written by the web app, which uses camelCase keys
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AreaTransactions(_CamelModel):
    unit_psf: Optional[dict[str, float]] = None
    unit_sizes: Optional[dict[str, float]] = None
    median_psf: Optional[float] = None
    txn_count: Optional[int] = None
    market_floor_psf: Optional[float] = None
    market_avg_psf: Optional[float] = None
    market_ceiling_psf: Optional[float] = None


class ResearchMarketData(AreaTransactions):
    unit_rents: Optional[dict[str, float]] = None
    area_transactions: dict[str, AreaTransactions] = {}
    comparables: list[dict] = []


class AreaResearchDocument(_CamelModel):
    area_name: str = ""
    area_code: Optional[str] = None
    ai_parsed: bool = False
    market_data: Optional[ResearchMarketData] = None


# ──────────────────────────────────────────────────────────────────
# API REQUEST / RESPONSE BODIES
# ──────────────────────────────────────────────────────────────────

class NormalizeRequest(BaseModel):
    text: Optional[str] = None
    form: Optional[dict] = None


class ParcelBatchResponse(BaseModel):
    valid: list[ParcelSpec] = []
    invalid: list[ParcelSpec] = []
    warnings: list[str] = []


class MatchRequest(BaseModel):
    specs: list[ParcelSpec]
    registry: list[PlotRecord] = []


class MatchWithFallbackRequest(MatchRequest):
    cross_check: bool = False


class MatchResponse(BaseModel):
    results: list[MatchResult] = []
    excluded_count: int = 0


class SimilarPlotsRequest(BaseModel):
    spec: ParcelSpec
    latitude: float
    longitude: float
    radius_m: float = 1000
    include_out_of_tolerance: bool = False


class MarketAssumptionsRequest(BaseModel):
    location_hint: str = ""
    area_code: Optional[str] = None
    overrides: Optional[FeasibilityOverrides] = None


class FeasibilityRequest(BaseModel):
    input: FeasibilityInput
    mix_strategy: str = "balanced"
    location_hint: str = ""
    area_code: Optional[str] = None
    compare_all: bool = False
