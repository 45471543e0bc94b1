"""
Curated Dubai area profiles and area-name canonicalization.

Six benchmark areas carry development defaults (FAR, BUA multiplier,
construction cost, sellable ratio, recommended mix) and a Feb-2026 market
snapshot drawn from DLD sales, Ejari rentals and Reelly listings.

Land-registry names and the community names brokers actually use are folded
onto one area code, e.g. "Saih Shuaib 2" and "Dubai Industrial City" → DIC.
Everything downstream (research scoping, profile lookup, anchor search)
compares codes, never raw names.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field


# ──────────────────────────────────────────────────────────────────
# DATA CLASSES
# ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AreaProfile:
    """Development defaults for one benchmark area."""
    code: str
    name: str
    zone_type: str  # RESIDENTIAL, MIXED_USE, INDUSTRIAL, COMMERCIAL
    sub_zone: str
    market_tier: str  # PREMIUM, MID_HIGH, MID, AFFORDABLE
    far: float
    bua_multiplier: float
    construction_psf: float  # AED / sqft of BUA
    sellable_pct: float  # % of GFA
    service_charge: str
    recommended_mix: dict[str, float] = field(default_factory=dict)
    key_note: str = ""

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "name": self.name,
            "zone_type": self.zone_type,
            "sub_zone": self.sub_zone,
            "market_tier": self.market_tier,
            "far": self.far,
            "bua_multiplier": self.bua_multiplier,
            "construction_psf": self.construction_psf,
            "sellable_pct": self.sellable_pct,
            "service_charge": self.service_charge,
            "recommended_mix": dict(self.recommended_mix),
            "key_note": self.key_note,
        }


@dataclass(frozen=True)
class AreaMarketData:
    """Market snapshot for one benchmark area (AED)."""
    area_code: str
    period: str
    sales_transactions: int
    off_plan_pct: float | None
    unit_psf: dict[str, float | None]  # studio, br1, br2, br3
    avg_rent_psf_yr: float | None
    rental_contracts: int
    gross_yield_est: float
    data_source: str

    def to_dict(self) -> dict:
        return {
            "area_code": self.area_code,
            "period": self.period,
            "sales_transactions": self.sales_transactions,
            "off_plan_pct": self.off_plan_pct,
            "unit_psf": dict(self.unit_psf),
            "avg_rent_psf_yr": self.avg_rent_psf_yr,
            "rental_contracts": self.rental_contracts,
            "gross_yield_est": self.gross_yield_est,
            "data_source": self.data_source,
        }


# ──────────────────────────────────────────────────────────────────
# AREA PROFILES
# ──────────────────────────────────────────────────────────────────

AREA_PROFILES: dict[str, AreaProfile] = {
    "MAJAN": AreaProfile(
        code="MAJAN", name="Majan", zone_type="RESIDENTIAL", sub_zone="Dubailand",
        market_tier="MID", far=5.0, bua_multiplier=1.0, construction_psf=420,
        sellable_pct=95, service_charge="AED 14–17",
        recommended_mix={"studio": 0.62, "br1": 0.22, "br2": 0.10, "br3": 0.05},
        key_note="Most affordable entry; highest yield of the six areas; strong studio investor demand",
    ),
    "DLRC": AreaProfile(
        code="DLRC", name="Dubai Land Residential Complex", zone_type="RESIDENTIAL",
        sub_zone="Dubailand", market_tier="MID_HIGH", far=4.5, bua_multiplier=1.45,
        construction_psf=420, sellable_pct=95, service_charge="AED 10–17",
        recommended_mix={"studio": 0.50, "br1": 0.37, "br2": 0.10, "br3": 0.03},
        key_note="Volume leader; 48.2% renewal rate; easiest sales velocity",
    ),
    "ALSATWA": AreaProfile(
        code="ALSATWA", name="Al Satwa (Jumeirah Garden City)", zone_type="MIXED_USE",
        sub_zone="Jumeirah Garden City", market_tier="PREMIUM", far=3.5, bua_multiplier=1.0,
        construction_psf=450, sellable_pct=95, service_charge="AED 18–20",
        recommended_mix={"studio": 0.39, "br1": 0.48, "br2": 0.10, "br3": 0.03},
        key_note="70.4% rental renewal; JGC is 99% of Al Satwa transactions",
    ),
    "DSC": AreaProfile(
        code="DSC", name="Dubai Sports City", zone_type="RESIDENTIAL",
        sub_zone="Dubai Sports City", market_tier="MID", far=4.5, bua_multiplier=1.45,
        construction_psf=420, sellable_pct=95, service_charge="AED 12–15",
        recommended_mix={"studio": 0.35, "br1": 0.35, "br2": 0.25, "br3": 0.05},
        key_note="Lower transaction velocity; golf/sports amenity premium",
    ),
    "MEYDAN": AreaProfile(
        code="MEYDAN", name="Meydan Horizon", zone_type="MIXED_USE", sub_zone="Meydan",
        market_tier="PREMIUM", far=4.75, bua_multiplier=1.0, construction_psf=450,
        sellable_pct=95, service_charge="AED 18–22",
        recommended_mix={"studio": 0.0, "br1": 0.45, "br2": 0.40, "br3": 0.15},
        key_note="Racecourse/canal proximity drives premium; 94.9% off-plan",
    ),
    "DIC": AreaProfile(
        code="DIC", name="Dubai Industrial City", zone_type="MIXED_USE",
        sub_zone="Dubai Industrial City", market_tier="MID", far=4.5, bua_multiplier=1.6,
        construction_psf=420, sellable_pct=95, service_charge="AED 12–15",
        recommended_mix={"studio": 0.35, "br1": 0.35, "br2": 0.25, "br3": 0.05},
        key_note="Only area with meaningful commercial/office rental income",
    ),
}

AREA_MARKET_DATA: dict[str, AreaMarketData] = {
    "MAJAN": AreaMarketData(
        "MAJAN", "FEB_2026", 2559, 85.0,
        {"studio": 1200, "br1": 1315, "br2": 1263, "br3": None},
        65, 2890, 6.8, "DLD + Reelly",
    ),
    "DLRC": AreaMarketData(
        "DLRC", "FEB_2026", 2018, 87.5,
        {"studio": 1560, "br1": 1248, "br2": 1130, "br3": None},
        66, 3200, 5.8, "DLD + Ejari",
    ),
    "ALSATWA": AreaMarketData(
        "ALSATWA", "FEB_2026", 327, 92.0,
        {"studio": 2408, "br1": 2151, "br2": 2073, "br3": None},
        106, 3307, 5.1, "DLD + Reelly",
    ),
    "DSC": AreaMarketData(
        "DSC", "FEB_2026", 25, None,
        {"studio": 1227, "br1": 1200, "br2": 1095, "br3": None},
        84, 800, 6.2, "DLD",
    ),
    "MEYDAN": AreaMarketData(
        "MEYDAN", "FEB_2026", 742, 94.9,
        {"studio": None, "br1": 2250, "br2": 2148, "br3": None},
        None, 600, 4.8, "DLD + Reelly",
    ),
    "DIC": AreaMarketData(
        "DIC", "FEB_2026", 285, 94.7,
        {"studio": 1498, "br1": 1521, "br2": 1366, "br3": None},
        79, 2034, 6.5, "DLD + Ejari",
    ),
}


# ──────────────────────────────────────────────────────────────────
# NAME CANONICALIZATION
# ──────────────────────────────────────────────────────────────────
# Keys are lower-case; DLD official names, acronyms and community names.

AREA_ALIAS_MAP: dict[str, str] = {
    "dubai industrial city": "DIC",
    "dic": "DIC",
    "saih shuaib 2": "DIC",
    "saih shuaib2": "DIC",

    "dlrc": "DLRC",
    "dubai land residential complex": "DLRC",
    "dubai land residential": "DLRC",
    "dubailand residential complex": "DLRC",
    "dubailand residential": "DLRC",

    "al satwa": "ALSATWA",
    "alsatwa": "ALSATWA",
    "jumeirah garden city": "ALSATWA",
    "jgc": "ALSATWA",

    "majan": "MAJAN",
    "wadi al safa 3": "MAJAN",
    "wadi al safa3": "MAJAN",
    "wadi alsafa 3": "MAJAN",

    "dubai sports city": "DSC",
    "dsc": "DSC",
    "sports city": "DSC",

    "meydan": "MEYDAN",
    "meydan horizon": "MEYDAN",
}

# Context keywords → nearest benchmark area, with the confidence of the guess
ANCHOR_MATCHERS: list[tuple[tuple[str, ...], str, float]] = [
    # Central Dubai → Al Satwa (premium, mixed-use)
    (("downtown", "business bay", "difc", "burj", "sheikh zayed", "bur dubai", "deira",
      "creek", "jumeirah", "marina", "palm", "jlt", "jbr", "tecom", "barsha"), "ALSATWA", 0.7),
    (("motor city", "falcon city", "global village", "studio city", "arjan"), "DSC", 0.65),
    (("dubailand", "liwan", "wadi al safa", "villanova", "remraam", "al barari"), "MAJAN", 0.6),
    (("south", "jafza", "dip", "techno", "impz", "al quoz"), "DIC", 0.6),
    (("mbr city", "ras al khor", "nad al sheba", "al khail", "sobha"), "MEYDAN", 0.65),
    (("silicon oasis", "academic city", "international city", "warsan", "muhaisnah"), "DLRC", 0.55),
]


def _normalize_text(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", " ", value.lower()).strip()


def _padded(value: str) -> str:
    return f" {_normalize_text(value)} "


def normalize_area_code(name: str | None) -> str | None:
    """Exact alias lookup. Returns the area code or None."""
    if not name:
        return None
    key = name.strip().lower()
    if key in AREA_ALIAS_MAP:
        return AREA_ALIAS_MAP[key]
    return AREA_ALIAS_MAP.get(_normalize_text(name))


def extract_area_codes(text: str | None) -> list[str]:
    """Every area code whose alias appears in ``text`` as whole words.

    Order follows first appearance of the code in the alias map, with an
    exact match (if any) first.
    """
    if not text:
        return []

    found: list[str] = []
    direct = normalize_area_code(text)
    if direct:
        found.append(direct)

    padded = _padded(text)
    for alias, code in AREA_ALIAS_MAP.items():
        if code in found:
            continue
        if _padded(alias) in padded:
            found.append(code)
    return found


def resolve_area_code(name: str | None) -> str | None:
    """Canonicalize a free-text area name onto one area code.

    Text naming several benchmark areas is ambiguous and resolves to None.
    """
    direct = normalize_area_code(name)
    if direct:
        return direct
    codes = extract_area_codes(name)
    if len(codes) == 1:
        return codes[0]
    return None


def find_area_alias(text: str) -> str | None:
    """Return the area name as written in ``text`` for the longest known alias."""
    for alias in sorted(AREA_ALIAS_MAP, key=len, reverse=True):
        m = re.search(rf"\b{re.escape(alias)}\b", text, re.IGNORECASE)
        if m:
            return m.group(0)
    return None


def find_anchor_area(location: str | None) -> tuple[str, float] | None:
    """Nearest benchmark area for a location outside the six profiled areas.

    Returns ``(code, confidence)`` from context keywords. No keyword hit means
    no anchor; there is no catch-all default area.
    """
    if not location:
        return None
    padded = _padded(location)
    for keywords, code, confidence in ANCHOR_MATCHERS:
        if any(f" {kw} " in padded for kw in keywords):
            return code, confidence
    return None


def get_area_profile(code: str | None) -> AreaProfile | None:
    if not code:
        return None
    return AREA_PROFILES.get(code.upper())


def get_area_market_data(code: str | None) -> AreaMarketData | None:
    if not code:
        return None
    return AREA_MARKET_DATA.get(code.upper())
