"""
tests/conftest.py — Shared scenario data for the explorer test suite.

Builds a small but realistic data directory in tmp_path:

    scenarios.json                 four manifest entries
    ne_110m_admin_0_map_units-1.json
    <key>_{scenario,kpi,investment}.json for entries 0 and 1
    entry 2: no documents at all
    entry 3: KPI document is not valid JSON

Country keys deliberately mix vocabularies (names, codes, legacy codes)
the way the production data files do.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

import pytest

from latam_energy.schemas import ScenarioConfig, ScenarioManifest

MANIFEST_ENTRIES: list[dict[str, Any]] = [
    {"year": 2025, "transmission": "Isolated", "sovereignty": "WithSovereignty",
     "demand": "BaseCase", "hydroAndean": "High", "hydroConoSur": "High"},
    {"year": 2025, "transmission": "Integrated", "sovereignty": "WithSovereignty",
     "demand": "BaseCase", "hydroAndean": "High", "hydroConoSur": "High"},
    {"year": 2025, "transmission": "Integrated", "sovereignty": "WithoutSovereignty",
     "demand": "NoCoal", "hydroAndean": "Medium", "hydroConoSur": "Low"},
    {"year": 2035, "transmission": "Integrated", "sovereignty": "WithSovereignty",
     "demand": "ElecPlus", "hydroAndean": "Low", "hydroConoSur": "Medium"},
]

KEY_ISOLATED = "2025-Isolated-WithSovereignty-BaseCase-High-High"
KEY_INTEGRATED = "2025-Integrated-WithSovereignty-BaseCase-High-High"
KEY_MISSING = "2025-Integrated-WithoutSovereignty-NoCoal-Medium-Low"
KEY_BROKEN = "2035-Integrated-WithSovereignty-ElecPlus-Low-Medium"

SCENARIO_DOC: dict[str, Any] = {
    "scenarioParameters": {"discountRate": 0.06},
    "regional": {"generationMix": {
        "Solar": 100, "Wind": 50, "Hydro_Embalse": 300, "Hydro_Pasada": 200,
        "Coal": 10, "Gas": 80,
    }},
    "countries": {
        "Chile": {"generationMix": {
            "Solar": 40, "Wind": 20, "Hydro_Embalse": 30, "Hydro_Pasada": 20,
            "Coal": 10, "Gas": 30,
        }},
        "AR": {"generationMix": {
            "Solar": 5, "Wind": 15, "Hydro_Embalse": 60, "Gas": 50, "Nuclear": 8,
        }},
        "Peru": {"generationMix": {"Solar": 10, "Hydro_Pasada": 40, "Gas": 25, "Diesel": 2}},
    },
    "staticLines": [
        {"id": "CL-AR", "from": "Chile", "to": "Argentina", "existingCapacity": 100,
         "coordinates": {"from": "Chile", "to": "Argentina"}},
        {"id": "CL-PE", "from": "Chile", "to": "Peru", "existingCapacity": 200},
    ],
}

KPI_DOC: dict[str, Any] = {
    "regional": {
        "totalCost": 5000, "totalInvestment": 12000,
        "totalEmissions": 300, "geopoliticalCost": 40,
    },
    "countries": {
        "CL": {"lossToTrust": 120, "lossToNotTrust": 80, "operationCost": 900,
               "totalEmissions": 50, "energyBalance": {"imports": 200, "exports": -350}},
        "Argentina": {"lossToTrust": 30, "lossToNotTrust": 90, "operationCost": 1500,
                      "totalEmissions": 100, "energyBalance": {"imports": 400, "exports": -100}},
        "PE": {"lossToTrust": 0, "lossToNotTrust": 0, "operationCost": 600,
               "totalEmissions": 20, "energyBalance": {"imports": 0, "exports": 0}},
    },
}

INVESTMENT_DOC: dict[str, Any] = {
    "generation": {
        "regional": {"BESS": 500, "Coal": 0, "Diesel": 0, "Gas": 1000, "Solar": 3000, "Wind": 1500},
        "countries": {
            "Chile": {"BESS": 200, "Gas": 0, "Solar": 1200, "Wind": 600},
            "AR": {"Gas": 800, "Wind": 700, "Solar": 100},
            "Peru": {},
        },
    },
    "transmission": {"lines": [
        {"id": "CL-AR", "newCapacityMW": 50},
        {"id": "PE-BO", "newCapacityMW": 30},
        {"id": "CL-ZZ", "newCapacityMW": 10},
        {"id": "AR-PE", "newCapacityMW": 0},
    ]},
}

TOPOLOGY_DOC: dict[str, Any] = {
    "type": "FeatureCollection",
    "features": [
        {"type": "Feature", "properties": {"ADMIN": name},
         "geometry": {"type": "Point", "coordinates": [0, 0]}}
        for name in ("Chile", "Argentina", "Peru", "Bolivia", "France")
    ],
}


def scenario_doc() -> dict[str, Any]:
    return copy.deepcopy(SCENARIO_DOC)


def kpi_doc() -> dict[str, Any]:
    return copy.deepcopy(KPI_DOC)


def investment_doc() -> dict[str, Any]:
    return copy.deepcopy(INVESTMENT_DOC)


def write_json(path: Path, data: Any) -> None:
    path.write_text(json.dumps(data), encoding="utf-8")


def write_scenario(data_dir: Path, key: str) -> None:
    write_json(data_dir / f"{key}_scenario.json", scenario_doc())
    write_json(data_dir / f"{key}_kpi.json", kpi_doc())
    write_json(data_dir / f"{key}_investment.json", investment_doc())


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def manifest() -> ScenarioManifest:
    return ScenarioManifest.model_validate({"scenarios": MANIFEST_ENTRIES})


@pytest.fixture()
def isolated(manifest: ScenarioManifest) -> ScenarioConfig:
    return manifest.scenarios[0]


@pytest.fixture()
def integrated(manifest: ScenarioManifest) -> ScenarioConfig:
    return manifest.scenarios[1]


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    """A complete data directory with one missing and one broken scenario."""
    root = tmp_path / "data"
    root.mkdir()
    write_json(root / "scenarios.json", {"scenarios": MANIFEST_ENTRIES})
    write_json(root / "ne_110m_admin_0_map_units-1.json", TOPOLOGY_DOC)
    write_scenario(root, KEY_ISOLATED)
    write_scenario(root, KEY_INTEGRATED)
    write_json(root / f"{KEY_BROKEN}_scenario.json", scenario_doc())
    write_json(root / f"{KEY_BROKEN}_investment.json", investment_doc())
    (root / f"{KEY_BROKEN}_kpi.json").write_text("{not json", encoding="utf-8")
    return root
