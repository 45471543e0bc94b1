"""
Unit mix strategies and unit allocation.

Three strategies, each a fixed studio/1BR/2BR/3BR split plus the payment
plan that goes with that buyer profile:

  investor  50/30/15/5   pay plan  5/45/50   (best yield, fastest absorption)
  balanced  35/35/25/5   pay plan 10/40/50   (market standard)
  family    15/30/40/15  pay plan 20/40/40   (premium pricing, slower absorption)

Allocation: total units = floor(sellable / weighted-average unit size), each
type gets round(total × share), and rounding drift is settled in the largest
bucket so the counts always add up to the total.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from hyperplot.models.schemas import UNIT_TYPES

DEFAULT_STRATEGY = "balanced"


# ──────────────────────────────────────────────────────────────────
# DATA CLASSES
# ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PaymentPlan:
    """Off-plan payment split, in percent of the sale price."""
    booking: float
    construction: float
    handover: float

    def amounts(self, gross_sales: float) -> dict[str, float]:
        return {
            "booking": gross_sales * self.booking / 100,
            "construction": gross_sales * self.construction / 100,
            "handover": gross_sales * self.handover / 100,
        }

    def to_dict(self) -> dict:
        return {
            "booking": self.booking,
            "construction": self.construction,
            "handover": self.handover,
        }


@dataclass(frozen=True)
class MixStrategy:
    key: str
    label: str
    description: str
    mix: dict[str, float]
    pay_plan: PaymentPlan
    tag: str = ""

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "label": self.label,
            "description": self.description,
            "mix": dict(self.mix),
            "pay_plan": self.pay_plan.to_dict(),
            "tag": self.tag,
        }


@dataclass
class UnitCounts:
    studio: int = 0
    br1: int = 0
    br2: int = 0
    br3: int = 0

    def count(self, unit_type: str) -> int:
        return getattr(self, unit_type)

    @property
    def total(self) -> int:
        return self.studio + self.br1 + self.br2 + self.br3

    def to_dict(self) -> dict:
        return {
            "studio": self.studio,
            "br1": self.br1,
            "br2": self.br2,
            "br3": self.br3,
            "total": self.total,
        }


# ──────────────────────────────────────────────────────────────────
# STRATEGIES
# ──────────────────────────────────────────────────────────────────

MIX_STRATEGIES: dict[str, MixStrategy] = {
    "investor": MixStrategy(
        key="investor",
        label="Investor-Focused",
        description="High rental yield, studio / 1BR heavy",
        mix={"studio": 0.50, "br1": 0.30, "br2": 0.15, "br3": 0.05},
        pay_plan=PaymentPlan(booking=5, construction=45, handover=50),
        tag="Best yield, fastest absorption",
    ),
    "balanced": MixStrategy(
        key="balanced",
        label="Balanced Mix",
        description="Market standard, investor and end-user appeal",
        mix={"studio": 0.35, "br1": 0.35, "br2": 0.25, "br3": 0.05},
        pay_plan=PaymentPlan(booking=10, construction=40, handover=50),
        tag="Lowest market risk, broad appeal",
    ),
    "family": MixStrategy(
        key="family",
        label="Family-Oriented",
        description="End-user focus, 2BR / 3BR dominant",
        mix={"studio": 0.15, "br1": 0.30, "br2": 0.40, "br3": 0.15},
        pay_plan=PaymentPlan(booking=20, construction=40, handover=40),
        tag="Premium pricing, longer absorption",
    ),
}


def get_mix_strategy(key: str | None) -> MixStrategy:
    """Strategy by key; unknown keys fall back to balanced."""
    return MIX_STRATEGIES.get((key or "").lower(), MIX_STRATEGIES[DEFAULT_STRATEGY])


def merge_mix(base: dict[str, float], override: dict[str, float] | None) -> dict[str, float]:
    """Overlay partial shares onto a strategy mix and renormalise to 1.0.

    Negative or non-numeric shares in the override are ignored.
    """
    mix = {t: float(base.get(t, 0)) for t in UNIT_TYPES}
    if override:
        for t in UNIT_TYPES:
            value = override.get(t)
            if isinstance(value, (int, float)) and math.isfinite(value) and value >= 0:
                mix[t] = float(value)

    total = sum(mix.values())
    if total <= 0:
        return {t: float(base.get(t, 0)) for t in UNIT_TYPES}
    if abs(total - 1.0) > 1e-9:
        mix = {t: share / total for t, share in mix.items()}
    return mix


# ──────────────────────────────────────────────────────────────────
# ALLOCATION
# ──────────────────────────────────────────────────────────────────

def weighted_unit_size(mix: dict[str, float], unit_sizes: dict[str, float]) -> float:
    return sum(mix.get(t, 0) * unit_sizes.get(t, 0) for t in UNIT_TYPES)


def allocate_units(
    sellable_area: float,
    mix: dict[str, float],
    unit_sizes: dict[str, float],
) -> UnitCounts:
    """Split sellable area into whole units per type.

    The counts always sum to floor(sellable / weighted-average size).
    """
    avg_size = weighted_unit_size(mix, unit_sizes)
    if sellable_area <= 0 or avg_size <= 0:
        return UnitCounts()

    total = math.floor(sellable_area / avg_size)
    counts = {t: math.floor(total * mix.get(t, 0) + 0.5) for t in UNIT_TYPES}

    # Largest share first; ties keep studio → 3BR order
    order = sorted(UNIT_TYPES, key=lambda t: mix.get(t, 0), reverse=True)
    diff = total - sum(counts.values())
    if diff > 0:
        counts[order[0]] += diff
    else:
        for t in order:
            if diff == 0:
                break
            take = min(counts[t], -diff)
            counts[t] -= take
            diff += take

    return UnitCounts(**counts)
