"""Tests for sqm / sqft conversion."""

from __future__ import annotations

import pytest

from hyperplot.services.units import SQFT_PER_SQM, sqft_to_sqm, sqm_to_sqft, to_sqm


class TestConversion:

    def test_one_sqm_in_sqft(self):
        assert sqm_to_sqft(1) == SQFT_PER_SQM == 10.7639

    def test_sqft_to_sqm_divides(self):
        assert sqft_to_sqm(10.7639) == pytest.approx(1.0)

    def test_round_trip_recovers_value(self):
        for value in (1, 850.5, 12_345.678, 1_000_000):
            assert sqft_to_sqm(sqm_to_sqft(value)) == pytest.approx(value)

    def test_to_sqm_converts_sqft(self):
        assert to_sqm(1076.39, "sqft") == pytest.approx(100.0)

    def test_to_sqm_keeps_sqm(self):
        assert to_sqm(1200, "sqm") == 1200

    def test_unknown_unit_is_treated_as_sqm(self):
        assert to_sqm(1200, "unknown") == 1200
