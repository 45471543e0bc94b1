"""Tests for plot scoring, qualification filters and registry matching."""

from __future__ import annotations

from hyperplot.matching_engine.scoring import (
    confidence_score,
    deviation_pct,
    floors_match,
    location_matches,
    match_parcels,
    round_half_up,
    score_plot,
    tolerance_for,
    zoning_matches,
)
from hyperplot.models.schemas import ParcelSpec, PlotRecord


def _plot(plot_id: str, area: float, gfa: float = 0, **kwargs) -> PlotRecord:
    return PlotRecord(id=plot_id, area_sqm=area, gfa_sqm=gfa, **kwargs)


# ──────────────────────────────────────────────────────────────────
# CONFIDENCE
# ──────────────────────────────────────────────────────────────────

class TestConfidenceScore:

    def test_five_percent_area_only(self):
        """max(35, 50 − 5×2.5) = 37.5, doubled for a single dimension."""
        assert confidence_score(5.0, 0, has_area=True, has_gfa=False) == 75

    def test_exact_single_dimension(self):
        assert confidence_score(0, 0, has_area=True, has_gfa=False) == 100

    def test_exact_both_dimensions(self):
        assert confidence_score(0, 0, has_area=True, has_gfa=True) == 100

    def test_near_exact_is_capped_below_100(self):
        assert confidence_score(0.01, 0, has_area=True, has_gfa=False) == 99

    def test_two_dimensions_sum(self):
        # 50 + 37.5 = 87.5 → 88 (half up)
        assert confidence_score(0, 5.0, has_area=True, has_gfa=True) == 88

    def test_wide_deviation_uses_steeper_slope(self):
        # max(20, 50 − 10×3) = 20, doubled
        assert confidence_score(10.0, 0, has_area=True, has_gfa=False) == 40

    def test_floor_of_points(self):
        assert confidence_score(25.0, 30.0, has_area=True, has_gfa=True) == 40

    def test_no_dimensions(self):
        assert confidence_score(0, 0, has_area=False, has_gfa=False) == 0

    def test_monotonic_in_deviation(self):
        scores = [confidence_score(d / 10, 0, True, False) for d in range(0, 301)]
        assert all(a >= b for a, b in zip(scores, scores[1:]))

    def test_bounds(self):
        for d in (0, 0.5, 3, 6, 6.5, 10, 50, 500):
            for both in (True, False):
                score = confidence_score(d, d, True, both)
                assert 0 <= score <= 100


class TestHelpers:

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(87.5) == 88
        assert round_half_up(4.49) == 4

    def test_deviation(self):
        assert deviation_pct(1050, 1000) == 5.0
        assert deviation_pct(950, 1000) == 5.0

    def test_deviation_without_expected_value(self):
        assert deviation_pct(1050, 0) == 0.0

    def test_tolerance_named_vs_range(self):
        assert tolerance_for(ParcelSpec(area_name="Majan", plot_area_sqm=1)) == 6.0
        assert tolerance_for(ParcelSpec(plot_area_sqm=1)) == 10.0

    def test_numeric_area_name_is_not_a_name(self):
        assert tolerance_for(ParcelSpec(area_name="6457890", plot_area_sqm=1)) == 10.0


# ──────────────────────────────────────────────────────────────────
# FILTERS
# ──────────────────────────────────────────────────────────────────

class TestFilters:

    def test_zoning_ignores_apartment_suffix(self):
        assert zoning_matches("Residential", "Residential Apartments")

    def test_zoning_mismatch(self):
        assert not zoning_matches("Commercial", "Residential Apartments")

    def test_zoning_hyphen_and_case(self):
        assert zoning_matches("mixed-use", "Mixed Use")

    def test_no_requested_zoning(self):
        assert zoning_matches(None, "Industrial")

    def test_floors_within_one(self):
        assert floors_match(14, "G+15")
        assert floors_match(14, "G+13")

    def test_floors_outside_tolerance(self):
        assert not floors_match(14, "G+16")

    def test_unknown_plot_floors_pass(self):
        assert floors_match(14, None)

    def test_location_substring(self):
        assert location_matches("Majan", "Majan Residences")

    def test_location_alias_same_area(self):
        assert location_matches("Wadi Al Safa 3", "Majan")

    def test_location_different_area(self):
        assert not location_matches("Majan", "Dubai Sports City")

    def test_short_area_name_not_excluded(self):
        assert location_matches("JVC", "Dubai South")


# ──────────────────────────────────────────────────────────────────
# SCORING
# ──────────────────────────────────────────────────────────────────

class TestScorePlot:

    def test_example_match(self):
        spec = ParcelSpec(area_name="Majan", plot_area_sqm=1000)
        result = score_plot(spec, _plot("P1", 1050, location="Majan"))
        assert result is not None
        assert result.area_deviation_pct == 5.0
        assert result.confidence_score == 75
        assert result.source == "registry"
        assert result.matched_plot_id == "P1"

    def test_outside_named_tolerance(self):
        spec = ParcelSpec(area_name="Majan", plot_area_sqm=1000)
        assert score_plot(spec, _plot("P1", 1070, location="Majan")) is None

    def test_range_tolerance_without_name(self):
        spec = ParcelSpec(plot_area_sqm=1000)
        result = score_plot(spec, _plot("P1", 1070))
        # max(20, 50 − 7×3) = 29, doubled
        assert result.confidence_score == 58

    def test_gfa_tolerance_enforced(self):
        spec = ParcelSpec(plot_area_sqm=1000, gfa_sqm=4500)
        assert score_plot(spec, _plot("P1", 1000, gfa=5500)) is None

    def test_tolerance_can_be_lifted(self):
        spec = ParcelSpec(plot_area_sqm=1000)
        result = score_plot(spec, _plot("P1", 2000), enforce_tolerance=False)
        assert result.confidence_score == 40

    def test_invalid_spec_never_scores(self):
        assert score_plot(ParcelSpec(area_name="Majan"), _plot("P1", 1000)) is None

    def test_deviation_rounded_to_two_places(self):
        spec = ParcelSpec(plot_area_sqm=3000)
        result = score_plot(spec, _plot("P1", 3100))
        assert result.area_deviation_pct == 3.33

    def test_location_filter(self):
        spec = ParcelSpec(area_name="Majan", plot_area_sqm=1000)
        assert score_plot(spec, _plot("P1", 1000, location="Dubai Sports City")) is None
        assert score_plot(spec, _plot("P1", 1000, location="Dubai Sports City"), check_location=False)


class TestMatchParcels:

    def test_sorted_best_first(self):
        spec = ParcelSpec(plot_area_sqm=1000)
        registry = [_plot("A", 1050), _plot("B", 1000), _plot("C", 1030)]
        results = match_parcels([spec], registry)
        assert [r.matched_plot_id for r in results] == ["B", "C", "A"]
        assert [r.confidence_score for r in results] == [100, 85, 75]

    def test_invalid_specs_skipped(self, caplog):
        specs = [ParcelSpec(area_name="Majan"), ParcelSpec(plot_area_sqm=1000)]
        results = match_parcels(specs, [_plot("B", 1000)])
        assert len(results) == 1
        assert "Excluded 1 parcel(s)" in caplog.text

    def test_empty_registry(self):
        assert match_parcels([ParcelSpec(plot_area_sqm=1000)], []) == []

    def test_results_carry_input(self):
        spec = ParcelSpec(plot_area_sqm=1000, gfa_sqm=4500)
        result = match_parcels([spec], [_plot("B", 1000, gfa=4500)])[0]
        assert result.input == spec
        assert result.confidence_score == 100
