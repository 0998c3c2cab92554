"""
latam_energy.schemas — Pydantic schemas for configuration and raw documents.

The source data has no static contract of its own. Everything read from
disk is validated here, at the boundary, before any transformation:

    ScenarioConfig         one fully-specified scenario (six dimensions)
    ScenarioManifest       ordered set of valid ScenarioConfig tuples
    RawScenarioDocument    {key}_scenario.json   (generation mix + static lines)
    RawKpiDocument         {key}_kpi.json        (regional + country KPIs)
    RawInvestmentDocument  {key}_investment.json (investment mix + new lines)

Tolerance rules for raw documents:
    - Unknown extra fields → ignored
    - Missing or null numeric fields → 0.0
    - Missing top-level structures (countries, regional, generation) → error
    - Infinity or NaN in any numeric field → error
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from latam_energy.constants import DEPENDENCY_ORDER, FIELD_WIRE_NAMES


# ---------------------------------------------------------------------------
# Scenario configuration
# ---------------------------------------------------------------------------

Year = Literal[2025, 2035, 2045]
Transmission = Literal["Isolated", "Integrated"]
Sovereignty = Literal["WithSovereignty", "WithoutSovereignty"]
Demand = Literal["BaseCase", "NoCoal", "ElecPlus", "ElecRenLimit"]
HydroLevel = Literal["High", "Medium", "Low"]


class ScenarioConfig(BaseModel):
    """One combination of the six configuration dimensions.

    Identity is the tuple itself. Instances are frozen and hashable;
    an edit always produces a new instance.
    """

    model_config = {"frozen": True, "extra": "ignore", "populate_by_name": True}

    year: Year
    transmission: Transmission
    sovereignty: Sovereignty
    demand: Demand
    hydro_andean: HydroLevel = Field(..., alias="hydroAndean")
    hydro_cono_sur: HydroLevel = Field(..., alias="hydroConoSur")

    @field_validator("year", mode="before")
    @classmethod
    def _coerce_year(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().isdigit():
            return int(v.strip())
        return v

    def get(self, field: str) -> Any:
        return getattr(self, field)

    def as_tuple(self) -> tuple:
        return tuple(getattr(self, f) for f in DEPENDENCY_ORDER)

    def to_wire(self) -> dict[str, Any]:
        """camelCase dict, the shape used in scenarios.json."""
        return {FIELD_WIRE_NAMES[f]: getattr(self, f) for f in DEPENDENCY_ORDER}


class ScenarioManifest(BaseModel):
    """All valid scenario combinations, in file order."""

    model_config = {"frozen": True, "extra": "ignore"}

    scenarios: tuple[ScenarioConfig, ...]

    def contains(self, config: ScenarioConfig) -> bool:
        return config in self.scenarios

    @property
    def default(self) -> ScenarioConfig:
        return self.scenarios[0]


# ---------------------------------------------------------------------------
# Raw document building blocks
# ---------------------------------------------------------------------------

class _ZeroFilled(BaseModel):
    """Numeric fields default to 0.0; explicit nulls are treated as 0.0.
    Infinity and NaN are rejected."""

    model_config = {"extra": "ignore", "populate_by_name": True, "allow_inf_nan": False}

    @field_validator("*", mode="before")
    @classmethod
    def _null_to_zero(cls, v: Any) -> Any:
        return 0.0 if v is None else v


class RawGenerationMix(_ZeroFilled):
    Solar: float = 0.0
    Wind: float = 0.0
    Nuclear: float = 0.0
    Hydro_Embalse: float = 0.0
    Hydro_Pasada: float = 0.0
    Coal: float = 0.0
    Gas: float = 0.0
    Diesel: float = 0.0


class RawGenerationEntry(BaseModel):
    model_config = {"extra": "ignore"}

    generationMix: RawGenerationMix = Field(default_factory=RawGenerationMix)


class RawStaticLine(BaseModel):
    """Existing interconnection. Endpoints are canonical country names."""

    model_config = {"extra": "ignore", "populate_by_name": True, "allow_inf_nan": False}

    id: str
    from_: str = Field(..., alias="from")
    to: str
    existingCapacity: float = 0.0
    coordinates: Optional[Dict[str, str]] = None

    @field_validator("existingCapacity", mode="before")
    @classmethod
    def _null_capacity(cls, v: Any) -> Any:
        return 0.0 if v is None else v


def _all_finite(value: Any) -> bool:
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, dict):
        return all(_all_finite(v) for v in value.values())
    if isinstance(value, list):
        return all(_all_finite(v) for v in value)
    return True


class RawScenarioDocument(BaseModel):
    model_config = {"extra": "ignore"}

    scenarioParameters: Optional[Dict[str, Any]] = None
    regional: RawGenerationEntry
    countries: Dict[str, RawGenerationEntry]
    staticLines: List[RawStaticLine] = Field(default_factory=list)

    @field_validator("scenarioParameters")
    @classmethod
    def _finite_parameters(cls, v: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if v is not None and not _all_finite(v):
            raise ValueError("scenario parameters must not contain Infinity or NaN")
        return v


class RawEnergyBalance(_ZeroFilled):
    imports: float = 0.0
    exports: float = 0.0


class RawCountryKpi(_ZeroFilled):
    lossToTrust: float = 0.0
    lossToNotTrust: float = 0.0
    operationCost: float = 0.0
    totalEmissions: float = 0.0
    energyBalance: RawEnergyBalance = Field(default_factory=RawEnergyBalance)

    @field_validator("energyBalance", mode="before")
    @classmethod
    def _null_balance(cls, v: Any) -> Any:
        return {} if v is None or v == 0.0 else v


class RawRegionalKpi(_ZeroFilled):
    totalCost: float = 0.0
    totalInvestment: float = 0.0
    totalEmissions: float = 0.0
    geopoliticalCost: float = 0.0


class RawKpiDocument(BaseModel):
    model_config = {"extra": "ignore"}

    regional: RawRegionalKpi
    countries: Dict[str, RawCountryKpi]


class RawInvestmentMix(_ZeroFilled):
    BESS: float = 0.0
    Coal: float = 0.0
    Diesel: float = 0.0
    Gas: float = 0.0
    Solar: float = 0.0
    Wind: float = 0.0


class RawInvestmentGeneration(BaseModel):
    model_config = {"extra": "ignore"}

    regional: RawInvestmentMix
    countries: Dict[str, RawInvestmentMix]


class RawInvestmentLine(_ZeroFilled):
    """New transmission capacity. ``id`` is "<CODE>-<CODE>"."""

    id: str
    newCapacityMW: float = 0.0


class RawTransmission(BaseModel):
    model_config = {"extra": "ignore"}

    lines: List[RawInvestmentLine] = Field(default_factory=list)


class RawInvestmentDocument(BaseModel):
    model_config = {"extra": "ignore"}

    generation: RawInvestmentGeneration
    transmission: RawTransmission = Field(default_factory=RawTransmission)
