"""
tests/test_data_store.py — Filesystem access to scenario data.

Covers:
    - Manifest loading: happy path, missing, unparsable, empty, invalid
    - Topology loading and filtering to registry countries
    - Document paths and path traversal guard
    - Concurrent fetch of the three documents, aggregate failures
"""

from __future__ import annotations

import asyncio
import json

import pytest

from conftest import KEY_BROKEN, KEY_ISOLATED, KEY_MISSING, MANIFEST_ENTRIES, write_json
from latam_energy.data_store import DataStore, filter_topology
from latam_energy.errors import (
    DataUnavailableError,
    ManifestUnavailableError,
    TopologyUnavailableError,
)


@pytest.fixture()
def store(data_dir) -> DataStore:
    return DataStore(data_dir)


# ===========================================================================
# Manifest
# ===========================================================================


class TestManifest:

    def test_load(self, store, isolated):
        manifest = store.load_manifest()
        assert len(manifest.scenarios) == len(MANIFEST_ENTRIES)
        assert manifest.default == isolated

    def test_bare_list_accepted(self, tmp_path):
        write_json(tmp_path / "scenarios.json", MANIFEST_ENTRIES)
        assert len(DataStore(tmp_path).load_manifest().scenarios) == 4

    def test_missing(self, tmp_path):
        with pytest.raises(ManifestUnavailableError, match="not found"):
            DataStore(tmp_path).load_manifest()

    def test_unparsable(self, tmp_path):
        (tmp_path / "scenarios.json").write_text("[{", encoding="utf-8")
        with pytest.raises(ManifestUnavailableError, match="could not be parsed"):
            DataStore(tmp_path).load_manifest()

    def test_empty(self, tmp_path):
        write_json(tmp_path / "scenarios.json", {"scenarios": []})
        with pytest.raises(ManifestUnavailableError, match="empty"):
            DataStore(tmp_path).load_manifest()

    def test_invalid_entry(self, tmp_path):
        bad = dict(MANIFEST_ENTRIES[0], demand="Unlimited")
        write_json(tmp_path / "scenarios.json", {"scenarios": [bad]})
        with pytest.raises(ManifestUnavailableError, match="invalid"):
            DataStore(tmp_path).load_manifest()


# ===========================================================================
# Topology
# ===========================================================================


class TestTopology:

    def test_load_and_filter(self, store):
        topology = filter_topology(store.load_topology())
        names = [f["properties"]["ADMIN"] for f in topology["features"]]
        assert names == ["Chile", "Argentina", "Peru", "Bolivia"]
        assert topology["type"] == "FeatureCollection"

    def test_missing(self, tmp_path):
        with pytest.raises(TopologyUnavailableError):
            DataStore(tmp_path).load_topology()

    def test_not_a_feature_collection(self, tmp_path):
        write_json(tmp_path / "ne_110m_admin_0_map_units-1.json", {"type": "Feature"})
        with pytest.raises(TopologyUnavailableError):
            DataStore(tmp_path).load_topology()

    def test_override_file_name(self, tmp_path):
        write_json(tmp_path / "map.json", {"type": "FeatureCollection", "features": []})
        assert DataStore(tmp_path, "map.json").load_topology()["features"] == []


# ===========================================================================
# Scenario documents
# ===========================================================================


class TestDocuments:

    def test_document_path(self, store, data_dir):
        assert store.document_path(KEY_ISOLATED, "kpi") == data_dir / f"{KEY_ISOLATED}_kpi.json"

    def test_unknown_kind(self, store):
        with pytest.raises(ValueError):
            store.document_path(KEY_ISOLATED, "weather")

    def test_path_traversal_rejected(self, store):
        with pytest.raises(ValueError, match="traversal"):
            store.document_path("../../etc/passwd", "scenario")

    def test_files_present(self, store):
        assert store.scenario_files_present(KEY_ISOLATED) == {
            "scenario": True, "kpi": True, "investment": True,
        }
        assert not any(store.scenario_files_present(KEY_MISSING).values())

    def test_fetch_all_three(self, store):
        documents = asyncio.run(store.fetch_scenario_documents(KEY_ISOLATED))
        assert set(documents) == {"scenario", "kpi", "investment"}
        assert documents["kpi"]["regional"]["totalInvestment"] == 12000

    def test_fetch_missing_reports_every_document(self, store):
        with pytest.raises(DataUnavailableError) as exc_info:
            asyncio.run(store.fetch_scenario_documents(KEY_MISSING))
        assert exc_info.value.failures == [
            "scenario: not found", "kpi: not found", "investment: not found",
        ]

    def test_fetch_single_broken_document_fails_whole(self, store):
        with pytest.raises(DataUnavailableError) as exc_info:
            asyncio.run(store.fetch_scenario_documents(KEY_BROKEN))
        assert len(exc_info.value.failures) == 1
        assert exc_info.value.failures[0].startswith("kpi: invalid JSON")

    def test_fetch_partial_deletion(self, store, data_dir):
        (data_dir / f"{KEY_ISOLATED}_investment.json").unlink()
        with pytest.raises(DataUnavailableError) as exc_info:
            asyncio.run(store.fetch_scenario_documents(KEY_ISOLATED))
        assert exc_info.value.failures == ["investment: not found"]

    def test_documents_are_plain_json(self, store, data_dir):
        raw = json.loads((data_dir / f"{KEY_ISOLATED}_scenario.json").read_text(encoding="utf-8"))
        assert store.read_document(KEY_ISOLATED, "scenario") == raw
