"""
latam_energy.assembler — Scenario data assembly.

Turns the three raw documents of one scenario into the canonical model
triple (generation, KPI, investment):

    1. scenario_key()               six config fields joined in dependency order
    2. transform_generation_mix()   Hydro_Embalse + Hydro_Pasada → Hydroelectric
    3. normalize_country_keys()     per document, independently
    4. merge_lines()                static topology + newly invested capacity
    5. derive_flow()                deterministic placeholder flow sign
    6. energy-balance exports       absolute value; imports unchanged

Design contract:
    - assemble_documents() is pure and synchronous.
    - assemble() is the only async entry point; it suspends only while
      the three documents are fetched.
    - Any missing or unparsable document fails the whole assembly with a
      single DataUnavailableError. No partial snapshot is ever returned.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from pydantic import ValidationError

from latam_energy.constants import (
    DEPENDENCY_ORDER,
    FLOW_FACTOR,
    LINE_ID_SEPARATOR,
    SCENARIO_KEY_SEPARATOR,
)
from latam_energy.errors import DataUnavailableError
from latam_energy.models import (
    CountryKpi,
    EnergyBalance,
    GenerationMix,
    GenerationModel,
    InvestmentMix,
    InvestmentModel,
    KpiModel,
    Line,
    RegionalKpi,
    ScenarioSnapshot,
    StaticLine,
)
from latam_energy.normalizer import canonical_key, normalize_country_keys
from latam_energy.registry import resolve_code
from latam_energy.schemas import (
    RawCountryKpi,
    RawGenerationMix,
    RawInvestmentDocument,
    RawInvestmentLine,
    RawInvestmentMix,
    RawKpiDocument,
    RawScenarioDocument,
    RawStaticLine,
    ScenarioConfig,
)

logger = logging.getLogger("latam.assembler")


class DocumentSource(Protocol):
    """Anything that can fetch the three raw documents for a key."""

    async def fetch_scenario_documents(self, key: str) -> dict[str, Any]: ...


# ---------------------------------------------------------------------------
# Scenario key
# ---------------------------------------------------------------------------

def scenario_key(config: ScenarioConfig) -> str:
    """Deterministic key addressing all three documents of a scenario.

    Example: "2025-Isolated-WithSovereignty-BaseCase-High-High"
    """
    return SCENARIO_KEY_SEPARATOR.join(str(config.get(f)) for f in DEPENDENCY_ORDER)


def parse_scenario_key(key: str) -> ScenarioConfig:
    """Inverse of scenario_key(). Raises ValueError on malformed keys."""
    parts = key.split(SCENARIO_KEY_SEPARATOR)
    if len(parts) != len(DEPENDENCY_ORDER):
        raise ValueError(
            f"Scenario key '{key}' has {len(parts)} parts, "
            f"expected {len(DEPENDENCY_ORDER)}."
        )
    try:
        return ScenarioConfig(**dict(zip(DEPENDENCY_ORDER, parts)))
    except ValidationError as exc:
        raise ValueError(f"Scenario key '{key}' is not a valid configuration.") from exc


# ---------------------------------------------------------------------------
# Per-document transforms
# ---------------------------------------------------------------------------

def transform_generation_mix(raw: RawGenerationMix) -> GenerationMix:
    """Collapse the two hydro sub-categories; pass everything else through."""
    return GenerationMix(
        Solar=raw.Solar,
        Wind=raw.Wind,
        Nuclear=raw.Nuclear,
        Hydroelectric=raw.Hydro_Embalse + raw.Hydro_Pasada,
        Coal=raw.Coal,
        Gas=raw.Gas,
        Diesel=raw.Diesel,
    )


def to_investment_mix(raw: RawInvestmentMix) -> InvestmentMix:
    return InvestmentMix(
        BESS=raw.BESS,
        Coal=raw.Coal,
        Diesel=raw.Diesel,
        Gas=raw.Gas,
        Solar=raw.Solar,
        Wind=raw.Wind,
    )


def to_country_kpi(raw: RawCountryKpi) -> CountryKpi:
    return CountryKpi(
        loss_to_trust=raw.lossToTrust,
        loss_to_not_trust=raw.lossToNotTrust,
        operation_cost=raw.operationCost,
        total_emissions=raw.totalEmissions,
        energy_balance=EnergyBalance(
            imports=raw.energyBalance.imports,
            exports=abs(raw.energyBalance.exports),
        ),
    )


# ---------------------------------------------------------------------------
# Transmission lines
# ---------------------------------------------------------------------------

def derive_flow(from_: str, to: str, capacity: float) -> float:
    """Placeholder flow: |flow| = capacity * FLOW_FACTOR.

    Positive only when from_ > to lexicographically, negative otherwise.
    Stable and reproducible; carries no physical meaning.
    """
    magnitude = capacity * FLOW_FACTOR
    if magnitude == 0:
        return 0.0
    return magnitude if from_ > to else -magnitude


def _split_line_id(line_id: str) -> tuple[str, str] | None:
    parts = line_id.split(LINE_ID_SEPARATOR)
    if len(parts) != 2:
        return None
    return parts[0].strip(), parts[1].strip()


def merge_lines(
    static_lines: Iterable[RawStaticLine],
    investment_lines: Iterable[RawInvestmentLine],
) -> tuple[Line, ...]:
    """Merge existing topology with newly invested transmission capacity.

    At most one line per unordered endpoint pair; the pair, not the id,
    decides which line receives capacity. A static line keeps
    isNew=False even when new capacity is added to it. An investment
    entry whose id names an existing line adds to that line; otherwise
    it becomes a new line when both codes of its id resolve to registry
    countries, and is dropped when they do not.
    """
    merged: dict[frozenset[str], dict[str, Any]] = {}
    pair_by_id: dict[str, frozenset[str]] = {}

    for s in static_lines:
        capacity = max(0.0, s.existingCapacity)
        from_name, to_name = canonical_key(s.from_), canonical_key(s.to)
        pair = frozenset((from_name, to_name))

        known = pair_by_id.setdefault(s.id, pair)
        if known != pair:
            logger.warning(json.dumps({
                "event": "static_line_id_reused",
                "line_id": s.id,
                "endpoints": sorted(pair),
                "first_endpoints": sorted(known),
            }))

        if pair in merged:
            merged[pair]["capacity"] += capacity
            continue
        merged[pair] = {
            "id": s.id, "from_": from_name, "to": to_name,
            "capacity": capacity, "is_new": False,
        }

    for inv in investment_lines:
        if inv.newCapacityMW <= 0:
            continue

        if inv.id in pair_by_id:
            merged[pair_by_id[inv.id]]["capacity"] += inv.newCapacityMW
            continue

        codes = _split_line_id(inv.id)
        from_name = resolve_code(codes[0]) if codes else None
        to_name = resolve_code(codes[1]) if codes else None
        if from_name is None or to_name is None or from_name == to_name:
            logger.debug(json.dumps({
                "event": "investment_line_dropped",
                "line_id": inv.id,
                "new_capacity_mw": inv.newCapacityMW,
            }))
            continue

        pair = frozenset((from_name, to_name))
        pair_by_id[inv.id] = pair
        if pair in merged:
            merged[pair]["capacity"] += inv.newCapacityMW
            continue
        merged[pair] = {
            "id": inv.id, "from_": from_name, "to": to_name,
            "capacity": inv.newCapacityMW, "is_new": True,
        }

    return tuple(
        Line(
            id=entry["id"],
            from_=entry["from_"],
            to=entry["to"],
            capacity=entry["capacity"],
            flow=derive_flow(entry["from_"], entry["to"], entry["capacity"]),
            is_new=entry["is_new"],
        )
        for entry in merged.values()
    )


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def parse_documents(
    key: str,
    raw_scenario: Any,
    raw_kpi: Any,
    raw_investment: Any,
) -> tuple[RawScenarioDocument, RawKpiDocument, RawInvestmentDocument]:
    """Validate the three raw documents. All failures are reported together."""
    failures: list[str] = []
    parsed: dict[str, Any] = {}
    schemas = {
        "scenario": (RawScenarioDocument, raw_scenario),
        "kpi": (RawKpiDocument, raw_kpi),
        "investment": (RawInvestmentDocument, raw_investment),
    }
    for kind, (schema, raw) in schemas.items():
        if not isinstance(raw, Mapping):
            failures.append(f"{kind}: document is not a JSON object")
            continue
        try:
            parsed[kind] = schema.model_validate(raw)
        except ValidationError as exc:
            first = exc.errors()[0]
            loc = ".".join(str(p) for p in first.get("loc", []))
            failures.append(f"{kind}: {loc or '<root>'}: {first.get('msg', 'invalid')}")

    if failures:
        raise DataUnavailableError(key, failures)
    return parsed["scenario"], parsed["kpi"], parsed["investment"]


def assemble_documents(
    config: ScenarioConfig,
    raw_scenario: Any,
    raw_kpi: Any,
    raw_investment: Any,
) -> ScenarioSnapshot:
    """Build the canonical model triple from three raw documents."""
    key = scenario_key(config)
    scenario_doc, kpi_doc, investment_doc = parse_documents(
        key, raw_scenario, raw_kpi, raw_investment,
    )

    generation_countries = normalize_country_keys(scenario_doc.countries)
    kpi_countries = normalize_country_keys(kpi_doc.countries)
    investment_countries = normalize_country_keys(investment_doc.generation.countries)

    generation = GenerationModel(
        regional=transform_generation_mix(scenario_doc.regional.generationMix),
        countries={
            name: transform_generation_mix(entry.generationMix)
            for name, entry in generation_countries.items()
        },
        static_lines=tuple(
            StaticLine(
                id=s.id, from_=s.from_, to=s.to,
                existing_capacity=s.existingCapacity,
            )
            for s in scenario_doc.staticLines
        ),
        scenario_parameters=scenario_doc.scenarioParameters or {},
    )

    lines = merge_lines(scenario_doc.staticLines, investment_doc.transmission.lines)
    kpi = KpiModel(
        regional=RegionalKpi(
            total_cost=kpi_doc.regional.totalCost,
            total_investment=kpi_doc.regional.totalInvestment,
            total_emissions=kpi_doc.regional.totalEmissions,
            geopolitical_cost=kpi_doc.regional.geopoliticalCost,
            lines=lines,
        ),
        countries={name: to_country_kpi(raw) for name, raw in kpi_countries.items()},
    )

    investment = InvestmentModel(
        regional=to_investment_mix(investment_doc.generation.regional),
        countries={name: to_investment_mix(raw) for name, raw in investment_countries.items()},
    )

    return ScenarioSnapshot(
        config=config,
        key=key,
        generation=generation,
        kpi=kpi,
        investment=investment,
    )


async def assemble(config: ScenarioConfig, source: DocumentSource) -> ScenarioSnapshot:
    """Fetch the three documents for ``config`` and assemble them.

    Raises:
        DataUnavailableError: if any document is missing or unparsable.
    """
    key = scenario_key(config)
    try:
        documents = await source.fetch_scenario_documents(key)
    except DataUnavailableError:
        logger.warning(json.dumps({"event": "scenario_data_unavailable", "key": key}))
        raise

    try:
        snapshot = assemble_documents(
            config,
            documents.get("scenario"),
            documents.get("kpi"),
            documents.get("investment"),
        )
    except DataUnavailableError as exc:
        logger.warning(json.dumps({
            "event": "scenario_data_unavailable",
            "key": key,
            "failures": exc.failures,
        }))
        raise

    logger.info(json.dumps({
        "event": "scenario_assembled",
        "key": key,
        "countries": len(snapshot.generation.countries),
        "lines": len(snapshot.kpi.lines),
        "new_lines": sum(1 for line in snapshot.kpi.lines if line.is_new),
    }))
    return snapshot
