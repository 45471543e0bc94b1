"""Tests for the GIS fallback coordinator and similar-plot search (no network)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from hyperplot.matching_engine.fallback import (
    find_similar_plots,
    match_spec_with_fallback,
    match_with_fallback,
    plot_number_of,
)
from hyperplot.models.schemas import ParcelSpec, PlotRecord


class FakeGIS:
    """Records every call; ``fail`` names the lookups that raise."""

    def __init__(self, by_id=None, by_area=None, by_location=None, fail=()):
        self.by_id = by_id or {}
        self.by_area = by_area or []
        self.by_location = by_location or []
        self.fail = set(fail)
        self.calls = []
        self.gfa_bounds = []

    async def fetch_plot_by_id(self, plot_id):
        self.calls.append(("by_id", plot_id))
        if "by_id" in self.fail:
            raise RuntimeError("GIS unavailable")
        return self.by_id.get(plot_id)

    async def search_by_area(self, min_area=None, max_area=None, area_name=None, min_gfa=None, max_gfa=None):
        self.calls.append(("by_area", min_area, max_area, area_name))
        self.gfa_bounds.append((min_gfa, max_gfa))
        if "by_area" in self.fail:
            raise RuntimeError("GIS unavailable")
        return list(self.by_area)

    async def search_by_location(self, latitude, longitude, radius_m):
        self.calls.append(("by_location", latitude, longitude, radius_m))
        if "by_location" in self.fail:
            raise RuntimeError("GIS unavailable")
        return list(self.by_location)


def _plot(plot_id: str, area: float, gfa: float = 0, **kwargs) -> PlotRecord:
    return PlotRecord(id=plot_id, area_sqm=area, gfa_sqm=gfa, **kwargs)


# ──────────────────────────────────────────────────────────────────
# STRATEGY SELECTION
# ──────────────────────────────────────────────────────────────────

class TestPlotNumber:

    def test_explicit_plot_number(self):
        assert plot_number_of(ParcelSpec(plot_number="6457890", plot_area_sqm=1)) == "6457890"

    def test_numeric_area_name(self):
        assert plot_number_of(ParcelSpec(area_name=" 6457890 ", plot_area_sqm=1)) == "6457890"

    def test_named_area_has_no_plot_number(self):
        assert plot_number_of(ParcelSpec(area_name="Majan", plot_area_sqm=1)) is None


class TestMatchWithFallback:

    @pytest.mark.asyncio
    async def test_registry_hit_skips_gis(self):
        gis = FakeGIS()
        spec = ParcelSpec(plot_area_sqm=1000)
        results = await match_with_fallback([spec], [_plot("R1", 1000)], gis)
        assert [r.matched_plot_id for r in results] == ["R1"]
        assert gis.calls == []

    @pytest.mark.asyncio
    async def test_plot_number_lookup(self):
        gis = FakeGIS(by_id={"6457890": _plot("6457890", 2400, location="Majan")})
        spec = ParcelSpec(plot_number="6457890", plot_area_sqm=2300)
        results = await match_with_fallback([spec], [], gis)
        assert len(results) == 1
        assert results[0].source == "gis_by_id"
        assert results[0].confidence_score == 100
        assert gis.calls == [("by_id", "6457890")]

    @pytest.mark.asyncio
    async def test_named_area_search_is_scoped(self):
        gis = FakeGIS(by_area=[_plot("G1", 1030, location="Majan")])
        spec = ParcelSpec(area_name="Majan", plot_area_sqm=1000)
        results = await match_with_fallback([spec], [], gis)

        assert len(gis.calls) == 1
        name, min_area, max_area, area_name = gis.calls[0]
        assert name == "by_area"
        assert min_area == pytest.approx(940)
        assert max_area == pytest.approx(1060)
        assert area_name == "Majan"
        assert results[0].source == "gis_by_area_name"
        assert results[0].confidence_score == 85

    @pytest.mark.asyncio
    async def test_named_area_never_widens_to_range(self):
        gis = FakeGIS(by_area=[])
        spec = ParcelSpec(area_name="Majan", plot_area_sqm=1000)
        results = await match_with_fallback([spec], [], gis)
        assert results == []
        assert [c[3] for c in gis.calls] == ["Majan"]

    @pytest.mark.asyncio
    async def test_unnamed_range_search(self):
        gis = FakeGIS(by_area=[_plot("G1", 1000), _plot("G2", 1300)])
        spec = ParcelSpec(plot_area_sqm=1000)
        results = await match_with_fallback([spec], [], gis)

        _, min_area, max_area, area_name = gis.calls[0]
        assert min_area == pytest.approx(900)
        assert max_area == pytest.approx(1100)
        assert area_name is None
        # G2 is outside ±10% even if the server returned it
        assert [r.matched_plot_id for r in results] == ["G1"]
        assert results[0].source == "gis_by_range"

    @pytest.mark.asyncio
    async def test_unnamed_gfa_only_range_search(self):
        gis = FakeGIS(by_area=[_plot("G1", 0, gfa=4600), _plot("G2", 0, gfa=6000)])
        spec = ParcelSpec(gfa_sqm=4500)
        results = await match_with_fallback([spec], [], gis)

        assert gis.calls == [("by_area", None, None, None)]
        min_gfa, max_gfa = gis.gfa_bounds[0]
        assert min_gfa == pytest.approx(4050)
        assert max_gfa == pytest.approx(4950)
        assert [r.matched_plot_id for r in results] == ["G1"]
        assert results[0].source == "gis_by_range"

    @pytest.mark.asyncio
    async def test_gfa_bounds_passed_with_area(self):
        gis = FakeGIS(by_area=[_plot("G1", 1030, gfa=4600, location="Majan")])
        spec = ParcelSpec(area_name="Majan", plot_area_sqm=1000, gfa_sqm=4500)
        await match_with_fallback([spec], [], gis)

        min_gfa, max_gfa = gis.gfa_bounds[0]
        assert min_gfa == pytest.approx(4230)
        assert max_gfa == pytest.approx(4770)

    @pytest.mark.asyncio
    async def test_area_only_search_has_no_gfa_bounds(self):
        gis = FakeGIS(by_area=[])
        await match_with_fallback([ParcelSpec(plot_area_sqm=1000)], [], gis)
        assert gis.gfa_bounds == [(None, None)]

    @pytest.mark.asyncio
    async def test_results_accumulate_across_specs(self):
        gis = FakeGIS(by_area=[_plot("G1", 1000), _plot("G2", 2000)])
        specs = [ParcelSpec(plot_area_sqm=1000), ParcelSpec(plot_area_sqm=2000)]
        results = await match_with_fallback(specs, [], gis)
        assert sorted(r.matched_plot_id for r in results) == ["G1", "G2"]

    @pytest.mark.asyncio
    async def test_invalid_specs_not_searched(self):
        gis = FakeGIS()
        results = await match_with_fallback([ParcelSpec(area_name="Majan")], [], gis)
        assert results == []
        assert gis.calls == []

    @pytest.mark.asyncio
    async def test_all_strategies_fail_returns_empty(self):
        gis = FakeGIS(fail=("by_id", "by_area"))
        spec = ParcelSpec(plot_number="6457890", area_name="Majan", plot_area_sqm=1000)
        assert await match_with_fallback([spec], [], gis) == []

    @pytest.mark.asyncio
    async def test_without_gis(self):
        assert await match_with_fallback([ParcelSpec(plot_area_sqm=1000)], [], None) == []

    @pytest.mark.asyncio
    async def test_cross_check_applied(self):
        sheets = MagicMock()
        sheets.lookup_sheet_rows = AsyncMock(return_value={"R1": {"owner_reference": "OWN-7"}})
        results = await match_with_fallback(
            [ParcelSpec(plot_area_sqm=1000)], [_plot("R1", 1000)], FakeGIS(), sheets=sheets,
        )
        assert results[0].owner_reference == "OWN-7"
        sheets.lookup_sheet_rows.assert_awaited_once_with(["R1"])


class TestStrategyOutcomes:

    @pytest.mark.asyncio
    async def test_failure_recorded_and_next_strategy_tried(self):
        gis = FakeGIS(by_area=[_plot("G1", 1000, location="Majan")], fail=("by_id",))
        spec = ParcelSpec(plot_number="6457890", area_name="Majan", plot_area_sqm=1000)
        results, outcomes = await match_spec_with_fallback(spec, gis)

        assert [o.name for o in outcomes] == ["gis_by_id", "gis_by_area_name"]
        assert not outcomes[0].ok
        assert outcomes[0].error == "GIS unavailable"
        assert outcomes[1].ok
        assert [r.matched_plot_id for r in results] == ["G1"]

    @pytest.mark.asyncio
    async def test_stops_at_first_hit(self):
        gis = FakeGIS(by_id={"6457890": _plot("6457890", 1000)}, by_area=[_plot("G1", 1000)])
        spec = ParcelSpec(plot_number="6457890", area_name="Majan", plot_area_sqm=1000)
        _, outcomes = await match_spec_with_fallback(spec, gis)
        assert [o.name for o in outcomes] == ["gis_by_id"]

    @pytest.mark.asyncio
    async def test_outcome_to_dict(self):
        gis = FakeGIS(fail=("by_area",))
        _, outcomes = await match_spec_with_fallback(ParcelSpec(plot_area_sqm=1000), gis)
        assert outcomes[0].to_dict() == {"name": "gis_by_range", "results": [], "error": "GIS unavailable"}


# ──────────────────────────────────────────────────────────────────
# SIMILAR PLOTS
# ──────────────────────────────────────────────────────────────────

class TestFindSimilarPlots:

    @pytest.mark.asyncio
    async def test_scored_and_filtered(self):
        gis = FakeGIS(by_location=[_plot("N1", 1200), _plot("N2", 1020)])
        spec = ParcelSpec(area_name="Majan", plot_area_sqm=1000)
        results = await find_similar_plots(spec, gis, 25.05, 55.2, radius_m=500)
        assert [r.matched_plot_id for r in results] == ["N2"]
        assert results[0].source == "gis_radius"
        assert gis.calls == [("by_location", 25.05, 55.2, 500)]

    @pytest.mark.asyncio
    async def test_include_out_of_tolerance(self):
        gis = FakeGIS(by_location=[_plot("N1", 1200), _plot("N2", 1020)])
        spec = ParcelSpec(area_name="Majan", plot_area_sqm=1000)
        results = await find_similar_plots(spec, gis, 25.05, 55.2, include_out_of_tolerance=True)
        assert [r.matched_plot_id for r in results] == ["N2", "N1"]
        assert [r.confidence_score for r in results] == [90, 40]

    @pytest.mark.asyncio
    async def test_invalid_spec_raises(self):
        with pytest.raises(ValueError):
            await find_similar_plots(ParcelSpec(area_name="Majan"), FakeGIS(), 25.05, 55.2)

    @pytest.mark.asyncio
    async def test_invalid_radius_raises(self):
        with pytest.raises(ValueError):
            await find_similar_plots(ParcelSpec(plot_area_sqm=1000), FakeGIS(), 25.05, 55.2, radius_m=0)

    @pytest.mark.asyncio
    async def test_invalid_latitude_raises(self):
        with pytest.raises(ValueError):
            await find_similar_plots(ParcelSpec(plot_area_sqm=1000), FakeGIS(), 95, 55.2)

    @pytest.mark.asyncio
    async def test_lookup_failure_returns_empty(self):
        gis = FakeGIS(fail=("by_location",))
        assert await find_similar_plots(ParcelSpec(plot_area_sqm=1000), gis, 25.05, 55.2) == []
