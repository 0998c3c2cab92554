"""
tests/test_heatmap.py — Heatmap metric set and colour scales.

Covers:
    - Closed metric set, units and titles
    - Value extraction per metric kind (KPI vs investment, Total)
    - Boundaries: fractions of the max, non-decreasing, no-data scale
    - Band monotonicity and colour lookup edge cases
    - Legend and cache keys
"""

from __future__ import annotations

import pytest

from conftest import investment_doc, kpi_doc, scenario_doc
from latam_energy.assembler import assemble_documents
from latam_energy.constants import BAND_COLORS, NO_DATA_COLOR
from latam_energy.errors import UnknownMetricError
from latam_energy.hashing import canonical_float, scale_cache_key
from latam_energy.heatmap import (
    METRICS,
    build_scale,
    get_metric,
    heatmap_values,
    metric_ids,
)


@pytest.fixture()
def snapshot(isolated):
    return assemble_documents(isolated, scenario_doc(), kpi_doc(), investment_doc())


# ===========================================================================
# Metric set
# ===========================================================================


class TestMetrics:

    def test_closed_set(self):
        assert metric_ids() == [
            "BESS", "Coal", "Diesel", "Gas", "Solar", "Wind", "Total",
            "lossToTrust", "lossToNotTrust", "operationCost",
            "imports", "exports", "totalEmissions",
        ]
        assert len(METRICS) == 13

    def test_units_and_titles(self):
        assert get_metric("Solar").unit == "MW"
        assert get_metric("Solar").title == "Investment: Solar"
        assert get_metric("operationCost").unit == "MMUSD"
        assert get_metric("operationCost").title == "KPI: operationCost"

    def test_unknown_metric(self):
        with pytest.raises(UnknownMetricError):
            get_metric("Nuclear")
        with pytest.raises(KeyError):
            get_metric("")


class TestValues:

    def test_total_investment(self, snapshot):
        assert heatmap_values("Total", snapshot) == {
            "Chile": 2000, "Argentina": 1600, "Peru": 0,
        }

    def test_single_technology(self, snapshot):
        assert heatmap_values("Solar", snapshot)["Argentina"] == 100

    def test_kpi_metric(self, snapshot):
        assert heatmap_values("operationCost", snapshot)["Argentina"] == 1500

    def test_energy_balance_metrics(self, snapshot):
        assert heatmap_values("exports", snapshot)["Chile"] == 350
        assert heatmap_values("imports", snapshot)["Argentina"] == 400


# ===========================================================================
# Scale
# ===========================================================================


class TestBuildScale:

    def test_boundaries_are_fractions_of_max(self):
        scale = build_scale({"Chile": 2000, "Argentina": 1600, "Peru": 0}, "Total")
        assert scale.boundaries == pytest.approx((0, 20, 200, 500, 1000, 1500))
        assert scale.has_data

    def test_boundaries_non_decreasing(self):
        for values in ({"a": 1}, {"a": 0.001, "b": 5e9}, {"a": 3, "b": 3, "c": -7}):
            b = build_scale(values, "Gas").boundaries
            assert list(b) == sorted(b)
            assert b[0] == 0

    @pytest.mark.parametrize("values", [{}, {"Chile": 0}, {"Chile": -5, "Peru": None}])
    def test_no_data_scale(self, values):
        scale = build_scale(values, "Coal")
        assert scale.boundaries == (0.0,)
        assert not scale.has_data
        for v in (None, -1, 0, 1, 1e9):
            assert scale.color_of(v) == NO_DATA_COLOR
            assert scale.band_index(v) is None
        assert scale.legend() == [{"label": "No data available", "color": NO_DATA_COLOR}]

    def test_colour_lookup(self):
        scale = build_scale({"Chile": 1200, "Argentina": 100, "Peru": 0}, "Solar")
        assert scale.color_of(1200) == BAND_COLORS[5]
        assert scale.color_of(100) == BAND_COLORS[1]
        assert scale.color_of(0) == NO_DATA_COLOR
        assert scale.color_of(None) == NO_DATA_COLOR
        assert scale.color_of(-3) == NO_DATA_COLOR

    def test_boundary_values_fall_in_lower_band(self):
        scale = build_scale({"a": 100}, "Wind")
        # boundary[1] == 1.0; the band is entered only when strictly exceeded
        assert scale.band_index(1.0) == 0
        assert scale.band_index(1.0001) == 1
        assert scale.band_index(75.0) == 4
        assert scale.band_index(100) == 5

    def test_band_monotonic(self):
        scale = build_scale({"a": 1000, "b": 3}, "BESS")
        samples = [x / 10 for x in range(-10, 12000)]
        bands = [scale.band_index(v) for v in samples]
        ranks = [-1 if b is None else b for b in bands]
        assert ranks == sorted(ranks)

    def test_scale_is_metric_relative(self):
        low = build_scale({"Chile": 100, "Peru": 10_000}, "Gas")
        high = build_scale({"Chile": 100, "Peru": 150}, "Gas")
        assert low.band_index(100) < high.band_index(100)

    def test_legend(self):
        legend = build_scale({"a": 2000}, "Total").legend()
        assert [e["from"] for e in legend] == [0, 20, 200, 500, 1000, 1500]
        assert legend[-1]["to"] is None
        assert legend[0]["to"] == 20
        assert [e["color"] for e in legend] == list(BAND_COLORS)

    def test_format_value(self):
        inv = build_scale({"a": 2000}, "Total")
        kpi = build_scale({"a": 2000}, "operationCost")
        assert inv.format_value(1234.4) == "1,234 MW"
        assert inv.format_value(0) == "No investment"
        assert kpi.format_value(None) == "No data"

    def test_non_finite_values_ignored(self):
        scale = build_scale({"a": float("inf"), "b": 5.0, "c": float("nan")}, "operationCost")
        assert scale.boundaries == pytest.approx((0, 0.05, 0.5, 1.25, 2.5, 3.75))
        assert all(b == b for b in scale.boundaries)
        assert scale.color_of(float("inf")) == NO_DATA_COLOR
        assert scale.format_value(float("nan")) == "No data"

    def test_only_non_finite_values_is_no_data(self):
        assert not build_scale({"a": float("inf")}, "Gas").has_data

    def test_to_dict(self):
        d = build_scale({"a": 10}, "exports").to_dict()
        assert d["metric"] == "exports"
        assert d["title"] == "KPI: exports"
        assert len(d["boundaries"]) == 6


class TestCacheKeys:

    def test_canonical_float(self):
        assert canonical_float(0.5) == "0.50000000"
        assert canonical_float(1200) == "1200.00000000"

    def test_key_is_order_independent(self):
        assert scale_cache_key("Gas", {"a": 1, "b": 2}) == scale_cache_key("Gas", {"b": 2, "a": 1})

    def test_key_depends_on_metric_and_values(self):
        base = scale_cache_key("Gas", {"a": 1})
        assert base != scale_cache_key("Coal", {"a": 1})
        assert base != scale_cache_key("Gas", {"a": 2})
        assert scale_cache_key("Gas", {"a": 0}) != scale_cache_key("Gas", {"a": None})
