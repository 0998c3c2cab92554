"""
tests/test_session.py — Exploration session and snapshot cache.

Covers:
    - Initial configuration, single-field edits, rejected edits
    - Refresh: snapshot applied, DataUnavailable clears the snapshot
    - Last-write-wins: stale in-flight results are discarded
    - Country / metric selection and heatmap derivation
    - SnapshotCache: LRU bound, eviction, invalidation, concurrency
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any

import pytest

from conftest import KEY_INTEGRATED, KEY_ISOLATED, KEY_MISSING
from latam_energy.constants import NO_DATA_COLOR
from latam_energy.data_store import DataStore
from latam_energy.errors import ExplorerError, UnknownMetricError
from latam_energy.session import ExplorerSession
from latam_energy.snapshot_cache import SnapshotCache


class _GatedStore:
    """Wraps a DataStore; fetches for gated keys wait for an event."""

    def __init__(self, store: DataStore) -> None:
        self.store = store
        self.gates: dict[str, asyncio.Event] = {}
        self.fetched: list[str] = []

    async def fetch_scenario_documents(self, key: str) -> dict[str, Any]:
        self.fetched.append(key)
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()
        return await self.store.fetch_scenario_documents(key)


@pytest.fixture()
def store(data_dir) -> DataStore:
    return DataStore(data_dir)


@pytest.fixture()
def session(manifest, store) -> ExplorerSession:
    return ExplorerSession(manifest, store)


# ===========================================================================
# Edits
# ===========================================================================


class TestEdits:

    def test_starts_from_first_manifest_entry(self, session, isolated):
        assert session.config == isolated
        assert session.snapshot is None
        assert session.error is None

    def test_select_applies_resolution(self, session, integrated):
        assert session.select("transmission", "Integrated") is True
        assert session.config == integrated

    def test_rejected_edit_keeps_config(self, session, isolated, caplog):
        with caplog.at_level("INFO", logger="latam.session"):
            assert session.select("demand", "ElecRenLimit") is False
        assert session.config == isolated
        assert "edit_rejected" in caplog.text

    def test_no_op_edit(self, session):
        assert session.select("year", 2025) is False

    def test_options_follow_config(self, session):
        assert session.options()["transmission"] == ["Isolated", "Integrated"]


# ===========================================================================
# Refresh
# ===========================================================================


class TestRefresh:

    def test_refresh_loads_snapshot(self, session):
        snapshot = asyncio.run(session.refresh())
        assert snapshot is not None
        assert session.snapshot is snapshot
        assert snapshot.key == KEY_ISOLATED

    def test_apply_edit_refreshes(self, session):
        snapshot = asyncio.run(session.apply_edit("transmission", "Integrated"))
        assert snapshot.key == KEY_INTEGRATED

    def test_data_unavailable_clears_snapshot(self, session):
        asyncio.run(session.refresh())
        assert session.snapshot is not None

        asyncio.run(session.apply_edit("transmission", "Integrated"))
        asyncio.run(session.apply_edit("sovereignty", "WithoutSovereignty"))
        assert session.snapshot is None
        assert KEY_MISSING in session.error
        assert "Data not available" in session.error

    def test_recovers_after_data_unavailable(self, session):
        session.select("transmission", "Integrated")
        asyncio.run(session.apply_edit("sovereignty", "WithoutSovereignty"))
        assert session.error is not None
        snapshot = asyncio.run(session.apply_edit("sovereignty", "WithSovereignty"))
        assert snapshot is not None
        assert session.error is None

    def test_snapshot_cache_reused(self, manifest, store):
        gated = _GatedStore(store)
        session = ExplorerSession(manifest, gated)
        asyncio.run(session.refresh())
        asyncio.run(session.apply_edit("transmission", "Integrated"))
        asyncio.run(session.apply_edit("transmission", "Isolated"))
        assert gated.fetched == [KEY_ISOLATED, KEY_INTEGRATED]

    def test_stale_result_discarded(self, manifest, store, caplog):
        gated = _GatedStore(store)
        session = ExplorerSession(manifest, gated)

        async def scenario() -> tuple[Any, Any]:
            gate = asyncio.Event()
            gated.gates[KEY_ISOLATED] = gate
            slow = asyncio.create_task(session.refresh())
            await asyncio.sleep(0)
            session.select("transmission", "Integrated")
            fast = await session.refresh()
            gate.set()
            return await slow, fast

        with caplog.at_level("INFO", logger="latam.session"):
            slow_result, fast_result = asyncio.run(scenario())

        assert slow_result is None
        assert fast_result is not None
        assert session.snapshot.key == KEY_INTEGRATED
        assert "stale_result_discarded" in caplog.text

    def test_stale_failure_does_not_clear_current(self, manifest, store):
        gated = _GatedStore(store)
        session = ExplorerSession(manifest, gated)

        async def scenario() -> None:
            gate = asyncio.Event()
            gated.gates[KEY_MISSING] = gate
            session.select("transmission", "Integrated")
            session.select("sovereignty", "WithoutSovereignty")
            doomed = asyncio.create_task(session.refresh())
            await asyncio.sleep(0)
            session.select("sovereignty", "WithSovereignty")
            await session.refresh()
            gate.set()
            await doomed

        asyncio.run(scenario())
        assert session.error is None
        assert session.snapshot is not None

    def test_refresh_clears_selected_country(self, session):
        asyncio.run(session.refresh())
        session.select_country("Chile")
        asyncio.run(session.apply_edit("transmission", "Integrated"))
        assert session.selected_country is None


# ===========================================================================
# Derived views
# ===========================================================================


class TestDerivedViews:

    def test_heatmap_without_snapshot(self, session):
        scale, values = session.heatmap()
        assert values == {}
        assert scale.color_of(10) == NO_DATA_COLOR

    def test_heatmap_default_metric(self, session):
        asyncio.run(session.refresh())
        scale, values = session.heatmap()
        assert scale.metric_id == "Total"
        assert values["Chile"] == 2000

    def test_select_metric(self, session):
        asyncio.run(session.refresh())
        session.select_metric("operationCost")
        scale, values = session.heatmap()
        assert scale.unit == "MMUSD"
        assert values["Argentina"] == 1500

    def test_unknown_metric_keeps_previous(self, session):
        with pytest.raises(UnknownMetricError):
            session.select_metric("Hydro")
        assert session.metric.id == "Total"

    def test_heatmap_scale_cached(self, manifest, store):
        scales = SnapshotCache("scales", 4)
        session = ExplorerSession(manifest, store, scales=scales)
        asyncio.run(session.refresh())
        first, _ = session.heatmap()
        second, _ = session.heatmap()
        assert first is second
        assert scales.entry_count == 1

    def test_select_country(self, session):
        assert session.select_country("Peru").code == "PE"
        assert session.select_country("Atlantis") is None
        assert session.select_country(None) is None

    def test_report_requires_country_and_snapshot(self, session):
        with pytest.raises(ExplorerError):
            session.report()
        asyncio.run(session.refresh())
        with pytest.raises(ExplorerError):
            session.report()
        session.select_country("Chile")
        assert session.report().country == "Chile"


# ===========================================================================
# SnapshotCache
# ===========================================================================


class TestSnapshotCache:

    def test_get_or_build(self):
        cache: SnapshotCache[int] = SnapshotCache("t", 2)
        calls = []
        assert cache.get_or_build("a", lambda: calls.append(1) or 1) == 1
        assert cache.get_or_build("a", lambda: calls.append(1) or 1) == 1
        assert calls == [1]

    def test_lru_eviction(self, caplog):
        cache: SnapshotCache[str] = SnapshotCache("t", 2)
        cache.put("a", "A")
        cache.put("b", "B")
        cache.get("a")
        with caplog.at_level("INFO", logger="latam.cache"):
            cache.put("c", "C")
        assert "a" in cache
        assert "b" not in cache
        assert cache.entry_count == 2
        assert "cache_eviction" in caplog.text

    def test_builder_error_not_cached(self):
        cache: SnapshotCache[int] = SnapshotCache("t", 2)

        def boom() -> int:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            cache.get_or_build("a", boom)
        assert cache.entry_count == 0

    def test_invalidate(self):
        cache: SnapshotCache[int] = SnapshotCache("t", 4)
        for k in "abc":
            cache.put(k, 1)
        assert cache.invalidate("a") == 1
        assert cache.invalidate("zz") == 0
        assert cache.invalidate() == 2
        assert cache.entry_count == 0

    def test_stats(self):
        cache: SnapshotCache[int] = SnapshotCache("t", 4)
        cache.put("a", 1)
        cache.get("a")
        cache.get("b")
        stats = cache.stats
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["keys"] == ["a"]

    def test_invalid_bound_and_key(self):
        with pytest.raises(ValueError):
            SnapshotCache("t", 0)
        with pytest.raises(ValueError):
            SnapshotCache("t", 1).put("", 1)

    def test_concurrent_access_stays_bounded(self):
        cache: SnapshotCache[int] = SnapshotCache("t", 5)
        errors: list[Exception] = []

        def worker(offset: int) -> None:
            try:
                for i in range(200):
                    cache.get_or_build(f"k{(i + offset) % 17}", lambda: i)
            except Exception as exc:  # noqa: BLE001
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert cache.entry_count <= 5
