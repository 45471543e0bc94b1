"""Tests for market assumption resolution (research → profile → anchor → none)."""

from __future__ import annotations

import pytest

from hyperplot.feasibility_engine.market_data import (
    is_research_usable,
    research_scope,
    resolve_market_assumptions,
)
from hyperplot.models.schemas import AreaResearchDocument, FeasibilityOverrides


def _doc(area_name="Dubai Sports City", area_code="DSC", ai_parsed=True, **market) -> AreaResearchDocument:
    return AreaResearchDocument.model_validate({
        "areaName": area_name,
        "areaCode": area_code,
        "aiParsed": ai_parsed,
        "marketData": market or {"unitPsf": {"studio": 1500, "br1": 1350}, "marketAvgPsf": 1400},
    })


# ──────────────────────────────────────────────────────────────────
# CURATED PROFILES
# ──────────────────────────────────────────────────────────────────

class TestProfileResolution:

    def test_dsc_profile(self):
        a = resolve_market_assumptions("Dubai Sports City")
        assert a.source == "area_profile"
        assert a.area_code == "DSC"
        assert a.has_area_data
        assert not a.is_approximation
        assert a.unit_psf == {"studio": 1227, "br1": 1200, "br2": 1095}
        assert a.bua_multiplier == 1.45
        assert a.construction_psf == 420
        assert a.efficiency == pytest.approx(0.95)

    def test_market_band_from_unit_psf(self):
        a = resolve_market_assumptions("DSC")
        assert a.market_floor == 1095
        assert a.market_ceiling == 1227
        assert a.market_avg == pytest.approx(1174)

    def test_rents_scaled_for_larger_units(self):
        a = resolve_market_assumptions("DSC")
        assert a.unit_rents["studio"] == 84
        assert a.unit_rents["br2"] == pytest.approx(79.8)
        assert a.unit_rents["br3"] == pytest.approx(73.92)

    def test_area_without_rent_data(self):
        a = resolve_market_assumptions("Meydan Horizon")
        assert a.area_code == "MEYDAN"
        assert a.unit_rents == {}
        assert "studio" not in a.unit_psf

    def test_alias_resolves_to_code(self):
        assert resolve_market_assumptions("Saih Shuaib 2").area_code == "DIC"

    def test_explicit_area_code_wins(self):
        a = resolve_market_assumptions("Business Bay", area_code="Majan")
        assert a.area_code == "MAJAN"
        assert a.source == "area_profile"

    def test_fresh_object_every_call(self):
        a = resolve_market_assumptions("DSC")
        a.unit_psf["studio"] = 1
        b = resolve_market_assumptions("DSC")
        assert b.unit_psf["studio"] == 1227
        assert a is not b


# ──────────────────────────────────────────────────────────────────
# ANCHOR & NONE
# ──────────────────────────────────────────────────────────────────

class TestFallbackResolution:

    def test_anchor_area(self):
        a = resolve_market_assumptions("Motor City")
        assert a.source == "anchor_area"
        assert a.area_code == "DSC"
        assert a.is_approximation
        assert a.anchor_confidence == 0.65

    def test_nothing_known(self):
        a = resolve_market_assumptions("Atlantis")
        assert a.source == "none"
        assert not a.has_area_data
        assert a.unit_psf == {}
        assert a.construction_psf is None

    def test_empty_hint(self):
        assert resolve_market_assumptions("").source == "none"
        assert resolve_market_assumptions(None).source == "none"


# ──────────────────────────────────────────────────────────────────
# AREA RESEARCH
# ──────────────────────────────────────────────────────────────────

class TestResearchScoping:

    def test_scope_from_declared_codes(self):
        assert research_scope(_doc()) == {"DSC"}

    def test_scope_includes_transaction_keys(self):
        doc = _doc(areaTransactions={"Majan": {"unitPsf": {"studio": 1000}}})
        assert research_scope(doc) == {"DSC", "MAJAN"}

    def test_single_area_usable(self):
        assert is_research_usable(_doc(), "DSC")

    def test_other_area_not_usable(self):
        assert not is_research_usable(_doc(), "MAJAN")

    def test_unparsed_not_usable(self):
        assert not is_research_usable(_doc(ai_parsed=False), "DSC")

    def test_multi_area_document_rejected(self):
        doc = _doc(area_name="Majan and Dubai Sports City", area_code=None)
        assert not is_research_usable(doc, "DSC")

    def test_several_transaction_areas_rejected(self):
        doc = _doc(
            unitPsf={"studio": 1500},
            areaTransactions={
                "Dubai Sports City": {"unitPsf": {"studio": 1600}},
                "Sports City": {"unitPsf": {"studio": 1650}},
            },
        )
        assert not is_research_usable(doc, "DSC")


class TestResearchResolution:

    def test_research_beats_profile(self):
        a = resolve_market_assumptions("Dubai Sports City", research_documents=[_doc()])
        assert a.source == "area_research"
        assert a.unit_psf == {"studio": 1500, "br1": 1350}
        assert a.market_avg == 1400

    def test_multi_area_research_falls_back_to_profile(self):
        doc = _doc(area_name="Majan and Dubai Sports City", area_code=None)
        a = resolve_market_assumptions("Dubai Sports City", research_documents=[doc])
        assert a.source == "area_profile"
        assert a.unit_psf["studio"] == 1227

    def test_newest_document_wins(self):
        older = _doc(unitPsf={"studio": 1500})
        newer = _doc(unitPsf={"studio": 1550})
        a = resolve_market_assumptions("DSC", research_documents=[older, newer])
        assert a.unit_psf["studio"] == 1550

    def test_target_transactions_preferred(self):
        doc = _doc(
            unitPsf={"studio": 1000, "br1": 1100},
            areaTransactions={"Dubai Sports City": {"unitPsf": {"studio": 1600}}},
        )
        a = resolve_market_assumptions("DSC", research_documents=[doc])
        assert a.unit_psf == {"studio": 1600}

    def test_document_without_numbers_skipped(self):
        empty = _doc(txnCount=3)
        a = resolve_market_assumptions("DSC", research_documents=[empty])
        assert a.source == "area_profile"

    def test_research_ignored_for_anchor(self):
        a = resolve_market_assumptions("Motor City", research_documents=[_doc()])
        assert a.source == "anchor_area"


# ──────────────────────────────────────────────────────────────────
# OVERRIDES
# ──────────────────────────────────────────────────────────────────

class TestOverrides:

    def test_overrides_layered_on_profile(self):
        overrides = FeasibilityOverrides(construction_psf=500, unit_psf={"br3": 1500}, efficiency=0)
        a = resolve_market_assumptions("DSC", overrides=overrides)
        assert a.source == "area_profile"
        assert a.construction_psf == 500
        assert a.unit_psf["br3"] == 1500
        assert a.unit_psf["studio"] == 1227
        assert a.efficiency == pytest.approx(0.95)

    def test_override_only(self):
        a = resolve_market_assumptions("Atlantis", overrides=FeasibilityOverrides(land_cost_psf=200))
        assert a.source == "override_only"
        assert a.land_cost_psf == 200
        assert not a.has_area_data

    def test_non_positive_overrides_ignored(self):
        overrides = FeasibilityOverrides(construction_psf=-1, bua_multiplier=0, unit_psf={"studio": 0})
        a = resolve_market_assumptions("Atlantis", overrides=overrides)
        assert a.source == "none"
        assert a.construction_psf is None

    def test_efficiency_above_one_ignored(self):
        a = resolve_market_assumptions("DSC", overrides=FeasibilityOverrides(efficiency=1.2))
        assert a.efficiency == pytest.approx(0.95)

    def test_to_dict(self):
        data = resolve_market_assumptions("Motor City").to_dict()
        assert data["source"] == "anchor_area"
        assert data["is_approximation"] is True
        assert data["recommended_mix"]["studio"] == 0.35
