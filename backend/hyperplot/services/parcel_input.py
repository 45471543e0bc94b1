"""
Parcel input normalization.

Turns whatever a broker sends us into canonical ParcelSpec records (sqm).

Accepted inputs (tried in this order for text):
  1. Form payload (dict): explicit fields with declared units
  2. Structured text: "Key: Value" blocks separated by "---" lines
  3. Free-form text: numbers next to unit tokens, known area names,
     "G+N" floor counts, "Plot No. 123" references

Parsing is best-effort. Malformed numbers are skipped, never fatal. A parcel
with neither plot area nor GFA is kept but marked invalid so the caller can
report it instead of silently dropping it.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field

from hyperplot.feasibility_engine.area_profiles import find_area_alias
from hyperplot.models.schemas import ParcelSpec
from hyperplot.services.units import to_sqm

logger = logging.getLogger(__name__)

MISSING_DIMENSIONS = "missing both plot area and GFA"

_NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d+)?|\.\d+")
_BLOCK_DELIMITER_RE = re.compile(r"^\s*-{3,}\s*$", re.MULTILINE)
_PARAGRAPH_RE = re.compile(r"\n\s*\n")

_SQFT_TOKENS = ("sqft", "sq ft", "sq. ft", "sq.ft", "ft²", "ft2", "square feet", "square foot")
_SQM_TOKENS = ("sqm", "sq m", "sq. m", "sq.m", "m²", "m2", "square meter", "square metre")

_MEASURE_RE = re.compile(
    r"(\d[\d,]*(?:\.\d+)?)\s*"
    r"(sq\.?\s*ft|sqft|ft²|ft2|square\s+f(?:ee|oo)t"
    r"|sq\.?\s*m(?:eters?|etres?)?|sqm|m²|m2|square\s+met(?:er|re)s?)"
    r"(?![a-z])",
    re.IGNORECASE,
)
_GFA_BEFORE_RE = re.compile(r"\b(gfa|bua|gross floor|built[- ]?up|floor area)\b", re.IGNORECASE)
# "9,000 sqm (96,875 sqft)": the same figure restated in another unit
_RESTATED_GAP_RE = re.compile(r"\s{0,3}[(\[/]\s{0,3}")
_GFA_AFTER_RE = re.compile(r"^\s{0,2}(gfa|bua)\b", re.IGNORECASE)
_PLOT_NUMBER_RE = re.compile(
    r"\bplot\s*(?:no\.?|number|#)?\s*[:#]?\s*(\d{3,})(?![\d,.]*\s*(?:sq|m²|m2|ft))",
    re.IGNORECASE,
)
_G_PLUS_RE = re.compile(r"\bG\s*\+\s*(\d+)", re.IGNORECASE)
_FLOORS_RE = re.compile(r"\b(\d+)\s*(?:floors?|storeys?|stories)\b", re.IGNORECASE)
_FAR_RE = re.compile(r"\b(?:far|plot ratio)\s*[:=]?\s*(\d+(?:\.\d+)?)", re.IGNORECASE)

# Most specific first
_ZONING_KEYWORDS = [
    (re.compile(r"\bmixed[\s-]?use\b", re.IGNORECASE), "Mixed Use"),
    (re.compile(r"\bresidential\b", re.IGNORECASE), "Residential"),
    (re.compile(r"\bcommercial\b", re.IGNORECASE), "Commercial"),
    (re.compile(r"\bindustrial\b", re.IGNORECASE), "Industrial"),
]


@dataclass
class ParcelBatch:
    """Normalized parcels split by validity, plus user-facing warnings."""
    valid: list[ParcelSpec] = field(default_factory=list)
    invalid: list[ParcelSpec] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def excluded_count(self) -> int:
        return len(self.invalid)

    def to_dict(self) -> dict:
        return {
            "valid": [s.model_dump() for s in self.valid],
            "invalid": [s.model_dump() for s in self.invalid],
            "warnings": list(self.warnings),
        }


# ──────────────────────────────────────────────────────────────────
# VALUE PARSING
# ──────────────────────────────────────────────────────────────────

def _unit_of(text: str) -> str:
    lowered = text.lower()
    if any(tok in lowered for tok in _SQM_TOKENS):
        return "sqm"
    if any(tok in lowered for tok in _SQFT_TOKENS):
        return "sqft"
    return "unknown"


def _clean_number(raw: str) -> float:
    try:
        num = float(raw.replace(",", ""))
    except ValueError:
        return 0.0
    if not math.isfinite(num) or num < 0:
        return 0.0
    return num


def parse_unit(text: str | None) -> tuple[float, str]:
    """Parse "1,200 sqft" into ``(1200.0, "sqft")``.

    Returns ``(0.0, "unknown")`` when there is no usable number.
    """
    if not text:
        return 0.0, "unknown"
    m = _NUMBER_RE.search(text)
    if not m:
        return 0.0, "unknown"
    num = _clean_number(m.group(0))
    if num == 0:
        return 0.0, "unknown"
    # "2,500 sqm (26,910 sqft)": the unit next to the number wins
    measure = _MEASURE_RE.search(text)
    if measure and measure.start() == m.start():
        return num, _unit_of(measure.group(2))
    return num, _unit_of(text)


def parse_floor_count(text: str | None) -> int | None:
    """Floors from "G+14", "B+G+12" or "15". Returns None when absent."""
    if not text:
        return None
    m = _G_PLUS_RE.search(text)
    if m:
        return int(m.group(1))
    m = re.search(r"\d+", text)
    if m:
        return int(m.group(0))
    return None


def _float(val) -> float:
    if val is None or isinstance(val, bool):
        return 0.0
    if isinstance(val, (int, float)):
        return float(val) if math.isfinite(val) and val > 0 else 0.0
    return _clean_number(str(val).strip()) if str(val).strip() else 0.0


def _optional_float(val) -> float | None:
    num = _float(val)
    return num if num > 0 else None


def _optional_str(val) -> str | None:
    if val is None:
        return None
    text = str(val).strip()
    return text or None


# ──────────────────────────────────────────────────────────────────
# SPEC CONSTRUCTION
# ──────────────────────────────────────────────────────────────────

def _build_spec(
    *,
    area_name: str = "",
    plot_area: float = 0.0,
    plot_area_unit: str = "unknown",
    gfa: float = 0.0,
    gfa_unit: str = "unknown",
    zoning: str | None = None,
    use: str | None = None,
    floors: int | None = None,
    far: float | None = None,
    plot_number: str | None = None,
) -> ParcelSpec:
    plot_area_sqm = to_sqm(plot_area, plot_area_unit)
    gfa_sqm = to_sqm(gfa, gfa_unit)
    errors = [] if (plot_area_sqm > 0 or gfa_sqm > 0) else [MISSING_DIMENSIONS]
    return ParcelSpec(
        area_name=area_name.strip(),
        plot_area_sqm=plot_area_sqm,
        gfa_sqm=gfa_sqm,
        zoning=zoning or None,
        floors=floors if floors else None,
        plot_number=plot_number or None,
        use=use or None,
        far=far if far else None,
        plot_area=plot_area,
        plot_area_unit=plot_area_unit,
        gfa=gfa,
        gfa_unit=gfa_unit,
        errors=errors,
    )


def build_parcel_from_form(form: dict) -> ParcelSpec:
    """Build a spec from the quick-search form.

    Units default to sqm, which is what the form preselects.
    """
    plot_area_unit = form.get("plot_area_unit") or "sqm"
    gfa_unit = form.get("gfa_unit") or "sqm"
    if plot_area_unit not in ("sqm", "sqft"):
        plot_area_unit = "unknown"
    if gfa_unit not in ("sqm", "sqft"):
        gfa_unit = "unknown"

    floors = form.get("floors")
    return _build_spec(
        area_name=str(form.get("area_name") or form.get("area") or ""),
        plot_area=_float(form.get("plot_area")),
        plot_area_unit=plot_area_unit,
        gfa=_float(form.get("gfa")),
        gfa_unit=gfa_unit,
        zoning=_optional_str(form.get("zoning")),
        use=_optional_str(form.get("use")),
        floors=parse_floor_count(str(floors)) if floors not in (None, "") else None,
        far=_optional_float(form.get("far")),
        plot_number=_optional_str(form.get("plot_number")),
    )


# ──────────────────────────────────────────────────────────────────
# STRUCTURED TEXT
# ──────────────────────────────────────────────────────────────────

def parse_text_file(content: str) -> list[ParcelSpec]:
    """Parse "Key: Value" blocks separated by ``---`` lines.

    Example block:
        Area: Saih Shuaib 2
        Plot Area: 2,500 sqm
        GFA: 11,250 sqm
        Zoning: Residential Apartments
        Floors: 14
    """
    specs = []
    for block in _BLOCK_DELIMITER_RE.split(content):
        fields: dict[str, str] = {}
        for line in block.splitlines():
            if ":" not in line:
                continue
            key, value = line.split(":", 1)
            key = re.sub(r"\s+", "", key.strip().lower())
            if key:
                fields[key] = value.strip()
        if not fields:
            continue

        plot_area, plot_area_unit = parse_unit(fields.get("plotarea") or fields.get("area_sqm"))
        gfa, gfa_unit = parse_unit(fields.get("gfa") or fields.get("gfa_sqm"))
        specs.append(_build_spec(
            area_name=fields.get("area", ""),
            plot_area=plot_area,
            plot_area_unit=plot_area_unit,
            gfa=gfa,
            gfa_unit=gfa_unit,
            zoning=fields.get("zoning"),
            use=fields.get("use"),
            floors=parse_floor_count(fields.get("heightfloors") or fields.get("floors")),
            far=_optional_float(fields.get("far")),
            plot_number=fields.get("plotnumber") or fields.get("plot_number"),
        ))
    return specs


# ──────────────────────────────────────────────────────────────────
# FREE-FORM TEXT
# ──────────────────────────────────────────────────────────────────

def _parse_paragraph(text: str) -> ParcelSpec | None:
    plot_area, plot_area_unit = 0.0, "unknown"
    gfa, gfa_unit = 0.0, "unknown"

    prev_end = 0
    for m in _MEASURE_RE.finditer(text):
        num = _clean_number(m.group(1))
        restated = prev_end > 0 and _RESTATED_GAP_RE.fullmatch(text, prev_end, m.start())
        # Keywords only count up to the previous measurement
        window_start = max(text.rfind("\n", 0, m.start()) + 1, prev_end, m.start() - 40)
        prev_end = m.end()
        if num == 0 or restated:
            continue
        unit = _unit_of(m.group(2))
        before = text[window_start:m.start()]
        after = text[m.end():m.end() + 12]
        is_gfa = bool(_GFA_BEFORE_RE.search(before) or _GFA_AFTER_RE.search(after))
        if is_gfa and gfa == 0:
            gfa, gfa_unit = num, unit
        elif not is_gfa and plot_area == 0:
            plot_area, plot_area_unit = num, unit

    area_name = find_area_alias(text) or ""
    plot_number_match = _PLOT_NUMBER_RE.search(text)
    plot_number = plot_number_match.group(1) if plot_number_match else None

    if plot_area == 0 and gfa == 0 and not area_name and not plot_number:
        return None

    floors = None
    m = _G_PLUS_RE.search(text) or _FLOORS_RE.search(text)
    if m:
        floors = int(m.group(1))

    far_match = _FAR_RE.search(text)
    zoning = next((label for pattern, label in _ZONING_KEYWORDS if pattern.search(text)), None)

    return _build_spec(
        area_name=area_name,
        plot_area=plot_area,
        plot_area_unit=plot_area_unit,
        gfa=gfa,
        gfa_unit=gfa_unit,
        zoning=zoning,
        floors=floors,
        far=_optional_float(far_match.group(1)) if far_match else None,
        plot_number=plot_number,
    )


def parse_free_form_text(content: str) -> list[ParcelSpec]:
    """Heuristic scan of unstructured text, one parcel per paragraph.

    Paragraphs with nothing recognisable (no measurement, area name or plot
    number) are skipped.
    """
    specs = []
    for paragraph in _PARAGRAPH_RE.split(content):
        if not paragraph.strip():
            continue
        spec = _parse_paragraph(paragraph)
        if spec is not None:
            specs.append(spec)
    return specs


def _parse_text(content: str) -> list[ParcelSpec]:
    specs = parse_text_file(content)
    if specs and any(s.is_valid for s in specs):
        return specs
    free_form = parse_free_form_text(content)
    return free_form or specs


# ──────────────────────────────────────────────────────────────────
# ENTRY POINT
# ──────────────────────────────────────────────────────────────────

def normalize_parcel_input(raw) -> ParcelBatch:
    """Normalize text, a form dict, a ParcelSpec, or a list of those.

    Raises TypeError for any other input type. Content problems never raise;
    they end up in ``invalid`` and ``warnings``.
    """
    if isinstance(raw, str):
        specs = _parse_text(raw)
    elif isinstance(raw, (dict, ParcelSpec)):
        specs = [_normalize_one(raw)]
    elif isinstance(raw, list):
        specs = [_normalize_one(item) for item in raw]
    else:
        raise TypeError(f"Unsupported parcel input type: {type(raw).__name__}")

    batch = ParcelBatch()
    for spec in specs:
        if spec.is_valid:
            batch.valid.append(spec)
        else:
            if not spec.errors:
                spec = spec.model_copy(update={"errors": [MISSING_DIMENSIONS]})
            batch.invalid.append(spec)

    if not specs:
        batch.warnings.append("No parcels found in the input")
    if batch.invalid:
        batch.warnings.append(
            f"{len(batch.invalid)} parcel(s) missing both plot area and GFA, excluded from matching"
        )
        logger.info("Parcel input: %d valid, %d invalid", len(batch.valid), len(batch.invalid))
    return batch


def _normalize_one(item) -> ParcelSpec:
    if isinstance(item, ParcelSpec):
        return item
    if isinstance(item, dict):
        return build_parcel_from_form(item)
    raise TypeError(f"Unsupported parcel input type: {type(item).__name__}")
