"""
latam_energy.models — Canonical in-memory models for one scenario.

All models are immutable value objects keyed by canonical country name.
They are created fresh for every scenario configuration and replaced
wholesale; nothing here is mutated after construction. Country maps are
exposed as read-only mappings.

to_dict() produces the camelCase wire shape the presentation layer reads.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from latam_energy.constants import GENERATION_TECHNOLOGIES, INVESTMENT_TECHNOLOGIES
from latam_energy.schemas import ScenarioConfig


def _frozen_map(values: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(values))


@dataclass(frozen=True, slots=True)
class GenerationMix:
    """Energy output by technology (GWh). Hydroelectric is derived."""

    Solar: float = 0.0
    Wind: float = 0.0
    Nuclear: float = 0.0
    Hydroelectric: float = 0.0
    Coal: float = 0.0
    Gas: float = 0.0
    Diesel: float = 0.0

    def get(self, technology: str) -> float:
        return getattr(self, technology)

    @property
    def total(self) -> float:
        return sum(getattr(self, t) for t in GENERATION_TECHNOLOGIES)

    def to_dict(self) -> dict[str, float]:
        return {t: getattr(self, t) for t in GENERATION_TECHNOLOGIES}


@dataclass(frozen=True, slots=True)
class InvestmentMix:
    """Newly built capacity by technology (MW)."""

    BESS: float = 0.0
    Coal: float = 0.0
    Diesel: float = 0.0
    Gas: float = 0.0
    Solar: float = 0.0
    Wind: float = 0.0

    def get(self, technology: str) -> float:
        return getattr(self, technology)

    @property
    def total(self) -> float:
        return sum(getattr(self, t) for t in INVESTMENT_TECHNOLOGIES)

    def to_dict(self) -> dict[str, float]:
        return {t: getattr(self, t) for t in INVESTMENT_TECHNOLOGIES}


@dataclass(frozen=True, slots=True)
class Line:
    """Transmission link between two countries.

    ``flow`` is a deterministic placeholder derived from capacity and
    endpoint names. It is not measured data.
    """

    id: str
    from_: str
    to: str
    capacity: float
    flow: float
    is_new: bool

    @property
    def endpoints(self) -> frozenset[str]:
        return frozenset((self.from_, self.to))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from": self.from_,
            "to": self.to,
            "capacity": self.capacity,
            "flow": self.flow,
            "isNew": self.is_new,
        }


@dataclass(frozen=True, slots=True)
class StaticLine:
    """Existing interconnection as listed in the scenario document."""

    id: str
    from_: str
    to: str
    existing_capacity: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from": self.from_,
            "to": self.to,
            "existingCapacity": self.existing_capacity,
        }


@dataclass(frozen=True, slots=True)
class EnergyBalance:
    imports: float
    exports: float


@dataclass(frozen=True, slots=True)
class CountryKpi:
    loss_to_trust: float
    loss_to_not_trust: float
    operation_cost: float
    total_emissions: float
    energy_balance: EnergyBalance

    def to_dict(self) -> dict[str, Any]:
        return {
            "lossToTrust": self.loss_to_trust,
            "lossToNotTrust": self.loss_to_not_trust,
            "operationCost": self.operation_cost,
            "totalEmissions": self.total_emissions,
            "energyBalance": {
                "imports": self.energy_balance.imports,
                "exports": self.energy_balance.exports,
            },
        }


@dataclass(frozen=True, slots=True)
class RegionalKpi:
    total_cost: float
    total_investment: float
    total_emissions: float
    geopolitical_cost: float
    lines: tuple[Line, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalCost": self.total_cost,
            "totalInvestment": self.total_investment,
            "totalEmissions": self.total_emissions,
            "geopoliticalCost": self.geopolitical_cost,
            "lines": [line.to_dict() for line in self.lines],
        }


@dataclass(frozen=True)
class GenerationModel:
    regional: GenerationMix
    countries: Mapping[str, GenerationMix]
    static_lines: tuple[StaticLine, ...] = ()
    scenario_parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "countries", _frozen_map(self.countries))
        object.__setattr__(self, "scenario_parameters", _frozen_map(self.scenario_parameters))

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenarioParameters": dict(self.scenario_parameters),
            "regional": {"generationMix": self.regional.to_dict()},
            "countries": {
                name: {"generationMix": mix.to_dict()}
                for name, mix in self.countries.items()
            },
            "staticLines": [line.to_dict() for line in self.static_lines],
        }


@dataclass(frozen=True)
class KpiModel:
    regional: RegionalKpi
    countries: Mapping[str, CountryKpi]

    def __post_init__(self) -> None:
        object.__setattr__(self, "countries", _frozen_map(self.countries))

    @property
    def lines(self) -> tuple[Line, ...]:
        return self.regional.lines

    def to_dict(self) -> dict[str, Any]:
        return {
            "regional": self.regional.to_dict(),
            "countries": {name: kpi.to_dict() for name, kpi in self.countries.items()},
        }


@dataclass(frozen=True)
class InvestmentModel:
    regional: InvestmentMix
    countries: Mapping[str, InvestmentMix]

    def __post_init__(self) -> None:
        object.__setattr__(self, "countries", _frozen_map(self.countries))

    def to_dict(self) -> dict[str, Any]:
        return {
            "regional": self.regional.to_dict(),
            "countries": {name: mix.to_dict() for name, mix in self.countries.items()},
        }


@dataclass(frozen=True)
class ScenarioSnapshot:
    """Complete, consistent model triple for one scenario configuration."""

    config: ScenarioConfig
    key: str
    generation: GenerationModel
    kpi: KpiModel
    investment: InvestmentModel

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "config": self.config.to_wire(),
            "scenarioData": self.generation.to_dict(),
            "kpiData": self.kpi.to_dict(),
            "investmentData": self.investment.to_dict(),
        }
