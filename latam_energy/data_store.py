"""
latam_energy.data_store — Filesystem access to scenario data.

Resolves the data directory, loads the startup documents (scenario
manifest, base map topology) and fetches the three per-scenario
documents addressed by a scenario key.

Design contract:
    - DataStore is the ONLY component that maps scenario keys to
      filesystem paths.
    - Startup documents fail with structured errors, never None.
    - fetch_scenario_documents() reads the three documents concurrently
      and reports every failing document in one DataUnavailableError.
    - Paths never escape the data directory (path traversal guard).
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from latam_energy.errors import (
    DataUnavailableError,
    ManifestUnavailableError,
    TopologyUnavailableError,
)
from latam_energy.registry import COUNTRY_NAMES
from latam_energy.schemas import ScenarioManifest

logger = logging.getLogger("latam.store")

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent

DATA_DIR: Path = Path(os.getenv("SCENARIO_DATA_DIR", str(PROJECT_ROOT / "data")))
"""Directory holding scenarios.json, the topology and all scenario files.
Controlled by SCENARIO_DATA_DIR env var."""

MANIFEST_FILE: str = "scenarios.json"

TOPOLOGY_FILE: str = os.getenv("TOPOLOGY_FILE", "ne_110m_admin_0_map_units-1.json")
"""GeoJSON FeatureCollection; properties.ADMIN carries the country name."""

DOCUMENT_SUFFIXES: dict[str, str] = {
    "scenario": "_scenario.json",
    "kpi": "_kpi.json",
    "investment": "_investment.json",
}

TOPOLOGY_NAME_PROPERTY: str = "ADMIN"


class DataStore:
    """Read-only view of one scenario data directory.

    Usage::

        store = DataStore(Path("data"))
        manifest = store.load_manifest()
        documents = await store.fetch_scenario_documents(
            "2025-Isolated-WithSovereignty-BaseCase-High-High",
        )
    """

    def __init__(
        self,
        data_dir: Path | None = None,
        topology_file: str | None = None,
    ) -> None:
        self._data_dir: Path = Path(data_dir) if data_dir is not None else DATA_DIR
        self._topology_file: str = topology_file or TOPOLOGY_FILE

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def manifest_path(self) -> Path:
        return self._data_dir / MANIFEST_FILE

    @property
    def topology_path(self) -> Path:
        return self._data_dir / self._topology_file

    def document_path(self, key: str, kind: str) -> Path:
        """Path of one per-scenario document.

        Raises ValueError for unknown document kinds or keys that would
        resolve outside the data directory.
        """
        if kind not in DOCUMENT_SUFFIXES:
            raise ValueError(f"Unknown document kind: '{kind}'")
        resolved = self._data_dir / f"{key}{DOCUMENT_SUFFIXES[kind]}"
        try:
            resolved.resolve().relative_to(self._data_dir.resolve())
        except ValueError:
            raise ValueError(
                f"Path traversal detected: key '{key}' resolves to "
                f"{resolved.resolve()}, which is outside {self._data_dir.resolve()}."
            )
        return resolved

    # ------------------------------------------------------------------
    # Startup documents
    # ------------------------------------------------------------------

    def load_manifest(self) -> ScenarioManifest:
        """Load and validate scenarios.json.

        Raises:
            ManifestUnavailableError: missing, unparsable or empty manifest.
        """
        path = self.manifest_path
        if not path.is_file():
            raise ManifestUnavailableError(f"Scenario manifest not found: {path.name}")
        try:
            with open(path, encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise ManifestUnavailableError(
                f"Scenario manifest {path.name} could not be parsed: {exc}"
            ) from exc

        if isinstance(raw, list):
            raw = {"scenarios": raw}
        try:
            manifest = ScenarioManifest.model_validate(raw)
        except ValidationError as exc:
            raise ManifestUnavailableError(
                f"Scenario manifest {path.name} is invalid: "
                f"{exc.error_count()} validation error(s)."
            ) from exc

        if not manifest.scenarios:
            raise ManifestUnavailableError(f"Scenario manifest {path.name} is empty.")

        logger.info(json.dumps({
            "event": "manifest_loaded",
            "path": str(path),
            "scenarios": len(manifest.scenarios),
        }))
        return manifest

    def load_topology(self) -> dict[str, Any]:
        """Load the base map GeoJSON.

        Raises:
            TopologyUnavailableError: missing or unparsable document.
        """
        path = self.topology_path
        if not path.is_file():
            raise TopologyUnavailableError(f"Map topology not found: {path.name}")
        try:
            with open(path, encoding="utf-8") as fh:
                topology = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise TopologyUnavailableError(
                f"Map topology {path.name} could not be parsed: {exc}"
            ) from exc

        if not isinstance(topology, dict) or not isinstance(topology.get("features"), list):
            raise TopologyUnavailableError(
                f"Map topology {path.name} is not a GeoJSON FeatureCollection."
            )
        return topology

    # ------------------------------------------------------------------
    # Per-scenario documents
    # ------------------------------------------------------------------

    def read_document(self, key: str, kind: str) -> Any:
        """Read one per-scenario document. Blocking; raises on any failure."""
        with open(self.document_path(key, kind), encoding="utf-8") as fh:
            return json.load(fh)

    def scenario_files_present(self, key: str) -> dict[str, bool]:
        return {kind: self.document_path(key, kind).is_file() for kind in DOCUMENT_SUFFIXES}

    async def fetch_scenario_documents(self, key: str) -> dict[str, Any]:
        """Read the three documents of a scenario concurrently.

        Returns:
            {"scenario": ..., "kpi": ..., "investment": ...} parsed JSON.

        Raises:
            DataUnavailableError: if any document is missing or unparsable.
                ``failures`` lists every failing document.
        """
        kinds = tuple(DOCUMENT_SUFFIXES)
        results = await asyncio.gather(
            *(asyncio.to_thread(self.read_document, key, kind) for kind in kinds),
            return_exceptions=True,
        )

        failures: list[str] = []
        documents: dict[str, Any] = {}
        for kind, result in zip(kinds, results):
            if isinstance(result, FileNotFoundError):
                failures.append(f"{kind}: not found")
            elif isinstance(result, json.JSONDecodeError):
                failures.append(f"{kind}: invalid JSON ({result.msg})")
            elif isinstance(result, (OSError, ValueError)):
                failures.append(f"{kind}: {result}")
            elif isinstance(result, BaseException):
                raise result
            else:
                documents[kind] = result

        if failures:
            raise DataUnavailableError(key, failures)
        return documents


# ---------------------------------------------------------------------------
# Topology helpers
# ---------------------------------------------------------------------------

def feature_name(feature: dict[str, Any]) -> str | None:
    properties = feature.get("properties") or {}
    name = properties.get(TOPOLOGY_NAME_PROPERTY)
    return name if isinstance(name, str) else None


def filter_topology(topology: dict[str, Any]) -> dict[str, Any]:
    """Keep only the features of registry countries, matched by ADMIN name."""
    features = [
        f for f in topology.get("features", [])
        if isinstance(f, dict) and feature_name(f) in COUNTRY_NAMES
    ]
    return {**topology, "features": features}
