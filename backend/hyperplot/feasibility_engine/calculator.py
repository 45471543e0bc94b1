"""
Development feasibility calculator.

Pipeline (all areas in sqft, money in AED):
  GFA        = plot area × plot ratio
  Sellable   = GFA × efficiency                 (default 0.95)
  BUA        = GFA × BUA multiplier             (default 1.45)
  Floors     = round(GFA / (plot area × efficiency))
  Units      = mix strategy over sellable area  (see unit_mix)
  GDV        = Σ units × size × PSF
  Costs      = land + construction + authority + consultant
               + marketing + contingency + financing
  Profit     = GDV − total cost
  Sensitivity: GDV shocked by −10 / −5 / 0 / +5 / +10 %

Input precedence for every assumption, resolved once in resolve_inputs():
  explicit override  >  resolved market data  >  built-in default

The built-in defaults are the Dubai Sports City baseline (809 DLD
transactions). The result is a pure function of its inputs.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

from hyperplot.feasibility_engine.area_profiles import get_area_profile
from hyperplot.feasibility_engine.market_data import MarketAssumptionSet
from hyperplot.feasibility_engine.unit_mix import (
    MIX_STRATEGIES,
    PaymentPlan,
    UnitCounts,
    allocate_units,
    get_mix_strategy,
    merge_mix,
)
from hyperplot.models.schemas import UNIT_TYPES, FeasibilityInput, FeasibilityOverrides, PlotRecord
from hyperplot.services.units import round_half_up, sqm_to_sqft


# ──────────────────────────────────────────────────────────────────
# DEFAULTS
# ──────────────────────────────────────────────────────────────────

DEFAULT_EFFICIENCY = 0.95
DEFAULT_BUA_MULTIPLIER = 1.45
DEFAULT_LAND_COST_PSF = 148.23     # AED / sqft of GFA
DEFAULT_CONSTRUCTION_PSF = 420.0   # AED / sqft of BUA

# DSC transaction averages
DEFAULT_UNIT_SIZES = {"studio": 426.0, "br1": 771.0, "br2": 1208.0, "br3": 1680.0}
DEFAULT_UNIT_PSF = {"studio": 1796.0, "br1": 1531.0, "br2": 1368.0, "br3": 1449.0}
DEFAULT_UNIT_RENTS = {"studio": 90.0, "br1": 86.0, "br2": 83.0, "br3": 78.0}  # AED / sqft / yr

SENSITIVITY_DELTAS = (-0.10, -0.05, 0.0, 0.05, 0.10)


@dataclass(frozen=True)
class CostRates:
    """Soft-cost rates as fractions of their base.

    Marketing is charged on GDV. Financing is charged on GDV by default;
    ``finance_basis="construction"`` charges it on construction cost instead.
    """
    authority_fee_pct: float = 0.04     # of land cost
    consultant_fee_pct: float = 0.03    # of construction cost
    marketing_pct: float = 0.02         # of GDV
    contingency_pct: float = 0.05       # of construction cost
    finance_pct: float = 0.03
    finance_basis: str = "gdv"          # "gdv" or "construction"

    def to_dict(self) -> dict:
        return {
            "authority_fee_pct": self.authority_fee_pct,
            "consultant_fee_pct": self.consultant_fee_pct,
            "marketing_pct": self.marketing_pct,
            "contingency_pct": self.contingency_pct,
            "finance_pct": self.finance_pct,
            "finance_basis": self.finance_basis,
        }


DEFAULT_COST_RATES = CostRates()


# ──────────────────────────────────────────────────────────────────
# DATA CLASSES
# ──────────────────────────────────────────────────────────────────

@dataclass
class ResolvedInputs:
    """Every assumption after the override > market > default merge."""
    efficiency: float
    bua_multiplier: float
    land_cost_psf: float
    land_cost: Optional[float]
    construction_psf: float
    unit_sizes: dict[str, float]
    unit_psf: dict[str, float]
    unit_rents: dict[str, float]
    rates: CostRates
    gfa: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "efficiency": self.efficiency,
            "bua_multiplier": self.bua_multiplier,
            "land_cost_psf": self.land_cost_psf,
            "land_cost": self.land_cost,
            "construction_psf": self.construction_psf,
            "unit_sizes": dict(self.unit_sizes),
            "unit_psf": dict(self.unit_psf),
            "unit_rents": dict(self.unit_rents),
            "rates": self.rates.to_dict(),
            "gfa": self.gfa,
        }


@dataclass
class SensitivityRow:
    delta: float
    revenue: float
    profit: float
    margin: float
    roi: float

    def to_dict(self) -> dict:
        return {
            "delta": self.delta,
            "revenue": self.revenue,
            "profit": self.profit,
            "margin": self.margin,
            "roi": self.roi,
        }


@dataclass
class FeasibilityResult:
    """Complete feasibility snapshot for one plot and mix strategy."""
    plot_id: str
    plot_name: str
    mix_strategy: str
    mix: dict[str, float]

    gfa: float
    bua: float
    sellable_area: float
    residential_floors: int
    floor_plate: float

    units: UnitCounts
    unit_sizes: dict[str, float]
    unit_psf: dict[str, float]
    prices: dict[str, float]
    rev_break: dict[str, float]
    gross_sales: float
    avg_psf: float
    blended_psf: float
    annual_rent: float
    gross_yield: float

    land_cost: float
    construction_cost: float
    authority_fees: float
    consultant_fees: float
    marketing: float
    contingency: float
    financing: float
    total_cost: float

    gross_profit: float
    gross_margin: float
    roi: float
    break_even_psf: float

    pay_plan: PaymentPlan
    pay_plan_amounts: dict[str, float]
    sens: list[SensitivityRow]

    rates: CostRates
    assumptions_source: str = "none"
    is_approximation: bool = False
    area_code: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "plot_id": self.plot_id,
            "plot_name": self.plot_name,
            "mix_strategy": self.mix_strategy,
            "mix": dict(self.mix),
            "gfa": self.gfa,
            "bua": self.bua,
            "sellable_area": self.sellable_area,
            "residential_floors": self.residential_floors,
            "floor_plate": self.floor_plate,
            "units": self.units.to_dict(),
            "unit_sizes": dict(self.unit_sizes),
            "unit_psf": dict(self.unit_psf),
            "prices": dict(self.prices),
            "rev_break": dict(self.rev_break),
            "gross_sales": self.gross_sales,
            "avg_psf": self.avg_psf,
            "blended_psf": self.blended_psf,
            "annual_rent": self.annual_rent,
            "gross_yield": self.gross_yield,
            "land_cost": self.land_cost,
            "construction_cost": self.construction_cost,
            "authority_fees": self.authority_fees,
            "consultant_fees": self.consultant_fees,
            "marketing": self.marketing,
            "contingency": self.contingency,
            "financing": self.financing,
            "total_cost": self.total_cost,
            "gross_profit": self.gross_profit,
            "gross_margin": self.gross_margin,
            "roi": self.roi,
            "break_even_psf": self.break_even_psf,
            "pay_plan": self.pay_plan.to_dict(),
            "pay_plan_amounts": dict(self.pay_plan_amounts),
            "sens": [row.to_dict() for row in self.sens],
            "rates": self.rates.to_dict(),
            "assumptions_source": self.assumptions_source,
            "is_approximation": self.is_approximation,
            "area_code": self.area_code,
            "warnings": list(self.warnings),
        }


# ──────────────────────────────────────────────────────────────────
# INPUT MERGE
# ──────────────────────────────────────────────────────────────────

def _valid(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value > 0
    )


def _first_positive(*candidates, default: float) -> float:
    for value in candidates:
        if _valid(value):
            return float(value)
    return default


def _rate(value, default: float, allow_zero: bool = False) -> float:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value) or value < 0:
        return default
    if value == 0 and not allow_zero:
        return default
    return float(value)


def _per_type(
    override: dict[str, float] | None,
    market: dict[str, float] | None,
    default: dict[str, float],
    global_override: float | None = None,
) -> dict[str, float]:
    override = override or {}
    market = market or {}
    return {
        t: _first_positive(override.get(t), global_override, market.get(t), default=default[t])
        for t in UNIT_TYPES
    }


def resolve_inputs(
    overrides: FeasibilityOverrides | None,
    assumptions: MarketAssumptionSet | None,
) -> ResolvedInputs:
    """Merge explicit overrides, resolved market data and built-in defaults."""
    o = overrides or FeasibilityOverrides()
    m = assumptions or MarketAssumptionSet()

    efficiency = DEFAULT_EFFICIENCY
    for candidate in (o.efficiency, m.efficiency):
        if _valid(candidate) and candidate <= 1:
            efficiency = float(candidate)
            break

    finance_basis = o.finance_basis or DEFAULT_COST_RATES.finance_basis
    rates = CostRates(
        authority_fee_pct=_rate(o.authority_fee_pct, DEFAULT_COST_RATES.authority_fee_pct),
        consultant_fee_pct=_rate(o.consultant_fee_pct, DEFAULT_COST_RATES.consultant_fee_pct),
        marketing_pct=_rate(o.marketing_pct, DEFAULT_COST_RATES.marketing_pct),
        contingency_pct=_rate(o.contingency_pct, DEFAULT_COST_RATES.contingency_pct, allow_zero=True),
        finance_pct=_rate(o.finance_pct, DEFAULT_COST_RATES.finance_pct, allow_zero=True),
        finance_basis=finance_basis,
    )

    return ResolvedInputs(
        efficiency=efficiency,
        bua_multiplier=_first_positive(o.bua_multiplier, m.bua_multiplier, default=DEFAULT_BUA_MULTIPLIER),
        land_cost_psf=_first_positive(o.land_cost_psf, m.land_cost_psf, default=DEFAULT_LAND_COST_PSF),
        land_cost=float(o.land_cost) if _valid(o.land_cost) else None,
        construction_psf=_first_positive(
            o.construction_psf, m.construction_psf, default=DEFAULT_CONSTRUCTION_PSF,
        ),
        unit_sizes=_per_type(o.unit_sizes, m.unit_sizes, DEFAULT_UNIT_SIZES),
        unit_psf=_per_type(
            o.unit_psf, m.unit_psf, DEFAULT_UNIT_PSF,
            global_override=o.avg_psf_override if _valid(o.avg_psf_override) else None,
        ),
        unit_rents=_per_type(o.unit_rents, m.unit_rents, DEFAULT_UNIT_RENTS),
        rates=rates,
        gfa=float(o.gfa) if _valid(o.gfa) else None,
    )


# ──────────────────────────────────────────────────────────────────
# CALCULATION
# ──────────────────────────────────────────────────────────────────

def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def calculate_feasibility(
    inp: FeasibilityInput,
    mix_strategy: str = "balanced",
    assumptions: MarketAssumptionSet | None = None,
) -> FeasibilityResult:
    """Full feasibility for one plot.

    Raises ValueError when plot area or plot ratio is not positive; the
    result would be undefined.
    """
    if not _valid(inp.area_sqft):
        raise ValueError(f"Plot area must be positive, got {inp.area_sqft}")
    if not _valid(inp.ratio):
        raise ValueError(f"Plot ratio must be positive, got {inp.ratio}")

    strategy = get_mix_strategy(mix_strategy)
    resolved = resolve_inputs(inp.overrides, assumptions)
    rates = resolved.rates
    mix = merge_mix(strategy.mix, inp.overrides.mix)

    # ── Areas ──
    gfa = resolved.gfa or inp.area_sqft * inp.ratio
    sellable_area = gfa * resolved.efficiency
    bua = gfa * resolved.bua_multiplier
    floor_plate = inp.area_sqft * resolved.efficiency
    residential_floors = round_half_up(gfa / floor_plate)

    # ── Units & revenue ──
    units = allocate_units(sellable_area, mix, resolved.unit_sizes)
    prices = {t: resolved.unit_sizes[t] * resolved.unit_psf[t] for t in UNIT_TYPES}
    rev_break = {t: units.count(t) * prices[t] for t in UNIT_TYPES}
    gross_sales = sum(rev_break.values())
    sold_area = sum(units.count(t) * resolved.unit_sizes[t] for t in UNIT_TYPES)
    avg_psf = _ratio(gross_sales, sellable_area)
    blended_psf = _ratio(gross_sales, sold_area)

    annual_rent = sum(
        units.count(t) * resolved.unit_sizes[t] * resolved.unit_rents[t] for t in UNIT_TYPES
    )
    gross_yield = _ratio(annual_rent, gross_sales)

    # ── Costs ──
    land_cost = resolved.land_cost if resolved.land_cost is not None else resolved.land_cost_psf * gfa
    construction_cost = resolved.construction_psf * bua
    authority_fees = land_cost * rates.authority_fee_pct
    consultant_fees = construction_cost * rates.consultant_fee_pct
    marketing = gross_sales * rates.marketing_pct
    contingency = construction_cost * rates.contingency_pct
    finance_base = construction_cost if rates.finance_basis == "construction" else gross_sales
    financing = finance_base * rates.finance_pct
    total_cost = (
        land_cost + construction_cost + authority_fees + consultant_fees
        + marketing + contingency + financing
    )

    # ── Returns ──
    gross_profit = gross_sales - total_cost
    gross_margin = _ratio(gross_profit, gross_sales)
    roi = _ratio(gross_profit, total_cost)
    break_even_psf = _ratio(total_cost, sellable_area)

    # revenue = sellable × avg_psf × (1 + δ); written on GDV so δ = 0 is the base case exactly
    sens = []
    for delta in SENSITIVITY_DELTAS:
        revenue = gross_sales * (1 + delta)
        profit = revenue - total_cost
        sens.append(SensitivityRow(
            delta=delta,
            revenue=revenue,
            profit=profit,
            margin=_ratio(profit, revenue),
            roi=_ratio(profit, total_cost),
        ))

    warnings = []
    if units.total == 0:
        warnings.append("Sellable area is smaller than one average unit; no units allocated")
    if assumptions is not None and assumptions.is_approximation:
        warnings.append(f"Market data approximated from anchor area {assumptions.area_code}")

    return FeasibilityResult(
        plot_id=inp.id,
        plot_name=inp.name,
        mix_strategy=strategy.key,
        mix=mix,
        gfa=gfa,
        bua=bua,
        sellable_area=sellable_area,
        residential_floors=residential_floors,
        floor_plate=floor_plate,
        units=units,
        unit_sizes=dict(resolved.unit_sizes),
        unit_psf=dict(resolved.unit_psf),
        prices=prices,
        rev_break=rev_break,
        gross_sales=gross_sales,
        avg_psf=avg_psf,
        blended_psf=blended_psf,
        annual_rent=annual_rent,
        gross_yield=gross_yield,
        land_cost=land_cost,
        construction_cost=construction_cost,
        authority_fees=authority_fees,
        consultant_fees=consultant_fees,
        marketing=marketing,
        contingency=contingency,
        financing=financing,
        total_cost=total_cost,
        gross_profit=gross_profit,
        gross_margin=gross_margin,
        roi=roi,
        break_even_psf=break_even_psf,
        pay_plan=strategy.pay_plan,
        pay_plan_amounts=strategy.pay_plan.amounts(gross_sales),
        sens=sens,
        rates=rates,
        assumptions_source=assumptions.source if assumptions else "none",
        is_approximation=assumptions.is_approximation if assumptions else False,
        area_code=assumptions.area_code if assumptions else None,
        warnings=warnings,
    )


def calculate_all_mixes(
    inp: FeasibilityInput,
    assumptions: MarketAssumptionSet | None = None,
) -> list[FeasibilityResult]:
    """One result per mix strategy, for side-by-side comparison."""
    return [calculate_feasibility(inp, key, assumptions) for key in MIX_STRATEGIES]


# ──────────────────────────────────────────────────────────────────
# PLOT → INPUT
# ──────────────────────────────────────────────────────────────────

def feasibility_input_from_plot(
    plot: PlotRecord,
    ratio: float | None = None,
    area_code: str | None = None,
    overrides: FeasibilityOverrides | None = None,
) -> FeasibilityInput:
    """Build calculator input (sqft) from a matched plot (sqm).

    Plot ratio comes from ``ratio``, else the plot's own GFA / area, else the
    area profile's default FAR.
    """
    if not _valid(plot.area_sqm):
        raise ValueError(f"Plot {plot.id} has no area")

    if not _valid(ratio):
        ratio = None
        if _valid(plot.gfa_sqm):
            ratio = plot.gfa_sqm / plot.area_sqm
        else:
            profile = get_area_profile(area_code)
            if profile is not None:
                ratio = profile.far
    if ratio is None:
        raise ValueError(f"No plot ratio available for plot {plot.id}")

    return FeasibilityInput(
        id=plot.id,
        name=plot.project or plot.location or plot.id,
        area_sqft=sqm_to_sqft(plot.area_sqm),
        ratio=ratio,
        height=plot.floors or "",
        zone=plot.zoning,
        overrides=overrides or FeasibilityOverrides(),
    )
