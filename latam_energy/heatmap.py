"""
latam_energy.heatmap — Choropleth metric set and colour-scale derivation.

The heatmap colours each country by one selected metric. The metric set
is closed: six investment technologies, their "Total", and six KPIs.
Each metric carries its own accessor, resolved once by get_metric().

Scale derivation (build_scale):
    - Only strictly positive, finite values shape the scale.
    - No positive values → single "no data" boundary (0,), every value
      maps to NO_DATA_COLOR.
    - Otherwise boundaries = max * SCALE_FRACTIONS (first is always 0).
    - Band of v = highest i with v > boundaries[i]. v <= 0, None or
      non-finite has no band and maps to NO_DATA_COLOR.

The scale is metric-relative: the same raw value can fall into different
bands under different metrics or scenarios.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Literal, Union

from latam_energy.constants import (
    BAND_COLORS,
    INVESTMENT_TECHNOLOGIES,
    NO_DATA_COLOR,
    SCALE_FRACTIONS,
    TOTAL_METRIC,
)
from latam_energy.errors import UnknownMetricError
from latam_energy.models import CountryKpi, InvestmentMix, ScenarioSnapshot

MetricKind = Literal["kpi", "investment"]

KPI_UNIT: str = "MMUSD"
INVESTMENT_UNIT: str = "MW"


# ---------------------------------------------------------------------------
# Metric set
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class KpiMetric:
    id: str
    accessor: Callable[[CountryKpi], float]
    kind: MetricKind = "kpi"
    unit: str = KPI_UNIT

    @property
    def title(self) -> str:
        return f"KPI: {self.id}"

    def values(self, snapshot: ScenarioSnapshot) -> dict[str, float]:
        return {name: self.accessor(kpi) or 0.0 for name, kpi in snapshot.kpi.countries.items()}


@dataclass(frozen=True, slots=True)
class InvestmentMetric:
    id: str
    accessor: Callable[[InvestmentMix], float]
    kind: MetricKind = "investment"
    unit: str = INVESTMENT_UNIT

    @property
    def title(self) -> str:
        return f"Investment: {self.id}"

    def values(self, snapshot: ScenarioSnapshot) -> dict[str, float]:
        return {
            name: self.accessor(mix) or 0.0
            for name, mix in snapshot.investment.countries.items()
        }


HeatmapMetric = Union[KpiMetric, InvestmentMetric]


def _technology(technology: str) -> Callable[[InvestmentMix], float]:
    return lambda mix: mix.get(technology)


METRICS: tuple[HeatmapMetric, ...] = (
    *(InvestmentMetric(t, _technology(t)) for t in INVESTMENT_TECHNOLOGIES),
    InvestmentMetric(TOTAL_METRIC, lambda mix: mix.total),
    KpiMetric("lossToTrust", lambda k: k.loss_to_trust),
    KpiMetric("lossToNotTrust", lambda k: k.loss_to_not_trust),
    KpiMetric("operationCost", lambda k: k.operation_cost),
    KpiMetric("imports", lambda k: k.energy_balance.imports),
    KpiMetric("exports", lambda k: k.energy_balance.exports),
    KpiMetric("totalEmissions", lambda k: k.total_emissions),
)

_METRICS_BY_ID: dict[str, HeatmapMetric] = {m.id: m for m in METRICS}

DEFAULT_METRIC: str = TOTAL_METRIC


def get_metric(metric_id: str) -> HeatmapMetric:
    """Raises UnknownMetricError for ids outside the closed set."""
    try:
        return _METRICS_BY_ID[metric_id]
    except KeyError:
        raise UnknownMetricError(metric_id) from None


def metric_ids() -> list[str]:
    return [m.id for m in METRICS]


def heatmap_values(metric: HeatmapMetric | str, snapshot: ScenarioSnapshot) -> dict[str, float]:
    """Per-country values of one metric. Missing values count as 0."""
    if isinstance(metric, str):
        metric = get_metric(metric)
    return metric.values(snapshot)


# ---------------------------------------------------------------------------
# Scale
# ---------------------------------------------------------------------------

def _usable(value: float | None) -> bool:
    return value is not None and math.isfinite(value) and value > 0


@dataclass(frozen=True, slots=True)
class HeatmapScale:
    """Bucket boundaries plus the lookup that maps a value to a colour."""

    metric_id: str
    title: str
    unit: str
    boundaries: tuple[float, ...]

    @property
    def has_data(self) -> bool:
        return len(self.boundaries) > 1

    def band_index(self, value: float | None) -> int | None:
        if not _usable(value) or not self.has_data:
            return None
        band = 0
        for i, boundary in enumerate(self.boundaries):
            if value > boundary:
                band = i
        return band

    def color_of(self, value: float | None) -> str:
        band = self.band_index(value)
        return NO_DATA_COLOR if band is None else BAND_COLORS[band]

    def format_value(self, value: float | None) -> str:
        if not _usable(value):
            return "No investment" if self.unit == INVESTMENT_UNIT else "No data"
        return f"{round(value):,} {self.unit}"

    def legend(self) -> list[dict[str, Any]]:
        if not self.has_data:
            return [{"label": "No data available", "color": NO_DATA_COLOR}]
        entries = []
        for i, lower in enumerate(self.boundaries):
            upper = self.boundaries[i + 1] if i + 1 < len(self.boundaries) else None
            entries.append({
                "from": round(lower),
                "to": round(upper) if upper is not None else None,
                "color": BAND_COLORS[i],
            })
        return entries

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric_id,
            "title": self.title,
            "unit": self.unit,
            "boundaries": list(self.boundaries),
            "legend": self.legend(),
        }


def build_scale(
    values: Mapping[str, float | None],
    metric: HeatmapMetric | str,
) -> HeatmapScale:
    """Derive the colour scale for one metric's value map."""
    if isinstance(metric, str):
        metric = get_metric(metric)

    positive = [v for v in values.values() if _usable(v)]
    if not positive:
        boundaries: tuple[float, ...] = (0.0,)
    else:
        top = max(positive)
        boundaries = tuple(top * fraction for fraction in SCALE_FRACTIONS)

    return HeatmapScale(
        metric_id=metric.id,
        title=metric.title,
        unit=metric.unit,
        boundaries=boundaries,
    )
