"""
DDA land base lookups (ArcGIS MapServer REST, plot layer).

Three queries back the matching fallback and the similar-plot search:
  - by plot number:       where PLOT_NUMBER='6457890'
  - by size range / name: where AREA_SQM (and GFA_SQM) between bounds AND PROJECT_NAME LIKE '%..%'
  - by location:          point + distance (m), then a centroid distance check

Failures propagate (httpx errors, GISServiceError); callers decide whether a
failed lookup is fatal. The matching fallback treats it as "no result".
"""

from __future__ import annotations

import logging
import math
import re
from typing import Optional

import httpx
from shapely.errors import GEOSException
from shapely.geometry import Polygon, shape

from hyperplot.config import Settings, settings
from hyperplot.models.schemas import PlotRecord
from hyperplot.services.cache import (
    get_cached_plot,
    get_cached_search,
    set_cached_plot,
    set_cached_search,
)
from hyperplot.services.units import sqft_to_sqm

logger = logging.getLogger(__name__)

PLOT_FIELDS = [
    "OBJECTID", "PLOT_NUMBER", "ENTITY_NAME", "DEVELOPER_NAME",
    "PROJECT_NAME", "AREA_SQM", "AREA_SQFT", "GFA_SQM", "GFA_SQFT",
    "MAX_HEIGHT_FLOORS", "MAX_HEIGHT_METERS", "MAIN_LANDUSE", "SUB_LANDUSE",
    "LANDUSE_DETAILS", "CONSTRUCTION_STATUS", "SITE_STATUS",
    "MAX_PLOT_COVERAGE", "IS_FROZEN", "FREEZE_REASON",
]

MIN_RADIUS_M = 1
MAX_RADIUS_M = 50_000
# Centroids sit off the query point for large plots
RADIUS_SLACK = 1.1

EARTH_RADIUS_M = 6_371_000


class GISServiceError(Exception):
    """The MapServer answered 200 with an error payload."""


# ──────────────────────────────────────────────────────────────────
# FEATURE PARSING
# ──────────────────────────────────────────────────────────────────

def _sanitize(value: str | None) -> str:
    """Strip anything that could break out of a quoted where-clause literal."""
    if not value:
        return ""
    return re.sub(r"[^a-zA-Z0-9\s_\-]", "", str(value)).strip()


def zoning_category(main_landuse: str | None, sub_landuse: str | None) -> str:
    if not main_landuse:
        return ""
    landuse = main_landuse.lower()
    if "residential" in landuse:
        if sub_landuse and "villa" in sub_landuse.lower():
            return "Residential Villa"
        return "Residential Apartments"
    if "commercial" in landuse:
        return "Commercial"
    if "industrial" in landuse:
        return "Industrial"
    if "mixed" in landuse:
        return "Mixed Use"
    return main_landuse


def plot_status(construction_status: str | None, is_frozen: bool, site_status: str | None) -> str:
    if is_frozen:
        return "Frozen"
    if site_status and "available" in site_status.lower():
        return "Available"
    if construction_status:
        status = construction_status.lower()
        if "complete" in status:
            return "Completed"
        if "progress" in status:
            return "Under Construction"
    return "Available"


def geometry_centroid(geometry: dict | None) -> tuple[float, float] | None:
    """(lat, lng) centroid of an ArcGIS rings geometry, GeoJSON, or point."""
    if not geometry:
        return None
    try:
        if geometry.get("rings"):
            ring = geometry["rings"][0]
            if len(ring) < 3:
                return None
            c = Polygon(ring).centroid
        elif geometry.get("type"):
            c = shape(geometry).centroid
        elif geometry.get("x") is not None and geometry.get("y") is not None:
            return float(geometry["y"]), float(geometry["x"])
        else:
            return None
    except (ValueError, TypeError, IndexError, AttributeError, GEOSException):
        return None
    if c.is_empty:
        return None
    return c.y, c.x


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def _parse_plot_feature(feature: dict) -> PlotRecord | None:
    """Parse one ArcGIS feature into a PlotRecord. Features without a plot number are dropped."""
    def _float(val):
        if val is None:
            return None
        try:
            return float(val)
        except (ValueError, TypeError):
            return None

    def _str(val):
        if val is None:
            return None
        text = str(val).strip()
        return text or None

    attrs = feature.get("attributes") or {}
    plot_id = _str(attrs.get("PLOT_NUMBER"))
    if not plot_id:
        return None

    area_sqm = _float(attrs.get("AREA_SQM"))
    if not area_sqm and _float(attrs.get("AREA_SQFT")):
        area_sqm = sqft_to_sqm(_float(attrs.get("AREA_SQFT")))
    gfa_sqm = _float(attrs.get("GFA_SQM"))
    if not gfa_sqm and _float(attrs.get("GFA_SQFT")):
        gfa_sqm = sqft_to_sqm(_float(attrs.get("GFA_SQFT")))

    is_frozen = _float(attrs.get("IS_FROZEN")) == 1
    geometry = feature.get("geometry")
    centroid = geometry_centroid(geometry)
    floors = attrs.get("MAX_HEIGHT_FLOORS")

    return PlotRecord(
        id=plot_id,
        area_sqm=area_sqm or 0.0,
        gfa_sqm=gfa_sqm or 0.0,
        zoning=zoning_category(attrs.get("MAIN_LANDUSE"), attrs.get("SUB_LANDUSE")),
        status=plot_status(attrs.get("CONSTRUCTION_STATUS"), is_frozen, attrs.get("SITE_STATUS")),
        location=_str(attrs.get("PROJECT_NAME")) or _str(attrs.get("ENTITY_NAME")) or "",
        floors=str(floors) if floors not in (None, "") else None,
        latitude=centroid[0] if centroid else None,
        longitude=centroid[1] if centroid else None,
        geometry=geometry,
        developer=_str(attrs.get("DEVELOPER_NAME")),
        project=_str(attrs.get("PROJECT_NAME")),
        entity=_str(attrs.get("ENTITY_NAME")),
        main_landuse=_str(attrs.get("MAIN_LANDUSE")),
        sub_landuse=_str(attrs.get("SUB_LANDUSE")),
        max_height_m=_float(attrs.get("MAX_HEIGHT_METERS")),
        plot_coverage=_float(attrs.get("MAX_PLOT_COVERAGE")),
        is_frozen=is_frozen,
        freeze_reason=_str(attrs.get("FREEZE_REASON")),
        construction_status=_str(attrs.get("CONSTRUCTION_STATUS")),
        site_status=_str(attrs.get("SITE_STATUS")),
    )


def validate_search_point(latitude: float, longitude: float, radius_m: float):
    if not -90 <= latitude <= 90:
        raise ValueError(f"latitude must be between -90 and 90, got {latitude}")
    if not -180 <= longitude <= 180:
        raise ValueError(f"longitude must be between -180 and 180, got {longitude}")
    if not MIN_RADIUS_M <= radius_m <= MAX_RADIUS_M:
        raise ValueError(f"radius must be between {MIN_RADIUS_M} and {MAX_RADIUS_M} m, got {radius_m}")


# ──────────────────────────────────────────────────────────────────
# CLIENT
# ──────────────────────────────────────────────────────────────────

class GISClient:
    """Plot layer client. One short-lived httpx client per query."""

    def __init__(
        self,
        base_url: str,
        layer_id: int = 2,
        out_sr: int = 4326,
        timeout: float = 10.0,
        max_records: int = 200,
        use_cache: bool = True,
    ):
        self.base_url = base_url.rstrip("/")
        self.layer_id = layer_id
        self.out_sr = out_sr
        self.timeout = timeout
        self.max_records = max_records
        self.use_cache = use_cache

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "GISClient":
        return cls(
            base_url=config.gis_base_url,
            layer_id=config.gis_plot_layer_id,
            out_sr=config.gis_out_sr,
            timeout=config.gis_timeout_s,
            max_records=config.gis_max_records,
            use_cache=bool(config.redis_url),
        )

    @property
    def query_url(self) -> str:
        return f"{self.base_url}/{self.layer_id}/query"

    async def _query(self, where: str, extra: Optional[dict] = None) -> list[dict]:
        params = {
            "where": where,
            "outFields": ",".join(PLOT_FIELDS),
            "returnGeometry": "true",
            "outSR": str(self.out_sr),
            "resultRecordCount": str(self.max_records),
            "f": "json",
        }
        if extra:
            params.update(extra)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(self.query_url, params=params)
            resp.raise_for_status()
            data = resp.json()

        if data.get("error"):
            err = data["error"]
            raise GISServiceError(err.get("message") if isinstance(err, dict) else str(err))
        return data.get("features") or []

    def _parse_features(self, features: list[dict]) -> list[PlotRecord]:
        plots = []
        for feature in features:
            plot = _parse_plot_feature(feature)
            if plot is not None:
                plots.append(plot)
        return plots

    async def fetch_plot_by_id(self, plot_id: str) -> PlotRecord | None:
        plot_number = _sanitize(plot_id)
        if not plot_number:
            return None

        if self.use_cache:
            cached = await get_cached_plot(plot_number)
            if cached:
                return PlotRecord.model_validate(cached)

        plots = self._parse_features(await self._query(f"PLOT_NUMBER='{plot_number}'"))
        if not plots:
            return None

        if self.use_cache:
            await set_cached_plot(plot_number, plots[0].model_dump())
        return plots[0]

    async def search_by_area(
        self,
        min_area: float | None = None,
        max_area: float | None = None,
        area_name: str | None = None,
        min_gfa: float | None = None,
        max_gfa: float | None = None,
    ) -> list[PlotRecord]:
        """Plots whose AREA_SQM (and GFA_SQM) lie within the given bounds, optionally within a project name."""
        clauses = []
        if min_area is not None:
            clauses.append(f"AREA_SQM >= {min_area:.2f}")
        if max_area is not None:
            clauses.append(f"AREA_SQM <= {max_area:.2f}")
        if min_gfa is not None:
            clauses.append(f"GFA_SQM >= {min_gfa:.2f}")
        if max_gfa is not None:
            clauses.append(f"GFA_SQM <= {max_gfa:.2f}")
        name = _sanitize(area_name)
        if name:
            clauses.append(f"UPPER(PROJECT_NAME) LIKE '%{name.upper()}%'")
        where = " AND ".join(clauses) or "1=1"

        if self.use_cache:
            cached = await get_cached_search(where)
            if cached is not None:
                return [PlotRecord.model_validate(p) for p in cached]

        plots = self._parse_features(await self._query(where))
        logger.info("GIS search '%s' returned %d plot(s)", where, len(plots))

        if self.use_cache:
            await set_cached_search(where, [p.model_dump() for p in plots])
        return plots

    async def search_by_location(
        self,
        latitude: float,
        longitude: float,
        radius_m: float,
    ) -> list[PlotRecord]:
        """Plots within ``radius_m`` of a point, nearest first."""
        validate_search_point(latitude, longitude, radius_m)

        features = await self._query("1=1", {
            "geometry": f"{longitude},{latitude}",
            "geometryType": "esriGeometryPoint",
            "spatialRel": "esriSpatialRelIntersects",
            "inSR": "4326",
            "outSR": "4326",
            "distance": str(radius_m),
            "units": "esriSRUnit_Meter",
        })

        ranked = []
        for plot in self._parse_features(features):
            if plot.latitude is None or plot.longitude is None:
                continue
            dist = haversine_m(latitude, longitude, plot.latitude, plot.longitude)
            if dist > radius_m * RADIUS_SLACK:
                continue
            ranked.append((dist, plot))

        ranked.sort(key=lambda pair: pair[0])
        return [plot for _, plot in ranked]
