"""
latam_energy.session — One user's exploration state.

ExplorerSession owns the current configuration, the snapshot assembled
for it, the selected country and the selected heatmap metric.

Design contract:
    - The configuration is replaced wholesale, only through the
      resolver. Rejected edits leave it untouched.
    - Every assembly is tagged with the configuration it was issued
      for. A result whose configuration is no longer current is
      discarded (last-write-wins by configuration identity, not by
      arrival order).
    - Either a complete snapshot or an error is exposed, never both.
      DataUnavailableError clears the previous snapshot.
    - The selected country is cleared whenever a new assembly starts.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from latam_energy.assembler import DocumentSource, assemble, scenario_key
from latam_energy.errors import DataUnavailableError, ExplorerError
from latam_energy.hashing import scale_cache_key
from latam_energy.heatmap import (
    DEFAULT_METRIC,
    HeatmapMetric,
    HeatmapScale,
    build_scale,
    get_metric,
)
from latam_energy.models import ScenarioSnapshot
from latam_energy.registry import Country, get_country_by_name
from latam_energy.resolver import field_name, resolve, valid_options
from latam_energy.schemas import ScenarioConfig, ScenarioManifest
from latam_energy.snapshot_cache import MAX_CACHED_SCALES, SnapshotCache
from latam_energy.summary import CountrySummary, country_summary

logger = logging.getLogger("latam.session")

REPORT_UNAVAILABLE: str = (
    "Cannot generate report. Please ensure a country is selected "
    "and all data is loaded."
)


class ExplorerSession:
    """Current configuration plus the state derived from it.

    Usage::

        session = ExplorerSession(manifest, DataStore())
        await session.refresh()
        if session.select("transmission", "Integrated"):
            await session.refresh()
        scale, values = session.heatmap()
    """

    def __init__(
        self,
        manifest: ScenarioManifest,
        source: DocumentSource,
        snapshots: SnapshotCache[ScenarioSnapshot] | None = None,
        scales: SnapshotCache[HeatmapScale] | None = None,
        initial: ScenarioConfig | None = None,
    ) -> None:
        self._manifest = manifest
        self._source = source
        self._snapshots = snapshots if snapshots is not None else SnapshotCache("snapshots")
        self._scales = scales if scales is not None else SnapshotCache("scales", MAX_CACHED_SCALES)
        self._config: ScenarioConfig = initial if initial is not None else manifest.default
        self._snapshot: ScenarioSnapshot | None = None
        self._error: str | None = None
        self._country: Country | None = None
        self._metric: HeatmapMetric = get_metric(DEFAULT_METRIC)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def config(self) -> ScenarioConfig:
        return self._config

    @property
    def manifest(self) -> ScenarioManifest:
        return self._manifest

    @property
    def snapshot(self) -> ScenarioSnapshot | None:
        """Snapshot of the current configuration, or None while unavailable."""
        if self._snapshot is not None and self._snapshot.config != self._config:
            return None
        return self._snapshot

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def selected_country(self) -> Country | None:
        return self._country

    @property
    def metric(self) -> HeatmapMetric:
        return self._metric

    def options(self) -> dict[str, list[Any]]:
        return valid_options(self._config, self._manifest)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def select(self, field: str, value: Any) -> bool:
        """Apply a single-field edit through the resolver.

        Returns:
            True if the configuration changed, False if the edit was
            rejected or resolved to the current configuration.
        """
        resolved = resolve(self._config, self._manifest, field, value)
        if resolved is None:
            logger.info(json.dumps({
                "event": "edit_rejected",
                "field": field_name(field),
                "value": value,
                "current": scenario_key(self._config),
            }, default=str))
            return False
        if resolved == self._config:
            return False
        self._config = resolved
        return True

    async def apply_edit(self, field: str, value: Any) -> ScenarioSnapshot | None:
        """select() followed by refresh() when the configuration changed."""
        if self.select(field, value):
            return await self.refresh()
        return self.snapshot

    def select_country(self, name: str | None) -> Country | None:
        """Select a country by canonical name. Unknown names clear the selection."""
        self._country = get_country_by_name(name) if name else None
        return self._country

    def select_metric(self, metric_id: str) -> HeatmapMetric:
        """Raises UnknownMetricError for ids outside the closed metric set."""
        self._metric = get_metric(metric_id)
        return self._metric

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    async def refresh(self) -> ScenarioSnapshot | None:
        """Assemble the snapshot for the current configuration.

        Returns the snapshot when it was applied, None when the assembly
        failed or its result was discarded as stale.
        """
        requested = self._config
        key = scenario_key(requested)
        self._error = None
        self._country = None

        try:
            snapshot = self._snapshots.get(key)
            if snapshot is None:
                snapshot = await assemble(requested, self._source)
                self._snapshots.put(key, snapshot)
        except DataUnavailableError as exc:
            if requested != self._config:
                self._discard(requested)
                return None
            self._snapshot = None
            self._error = exc.detail
            return None

        if requested != self._config:
            self._discard(requested)
            return None

        self._snapshot = snapshot
        return snapshot

    def _discard(self, requested: ScenarioConfig) -> None:
        logger.info(json.dumps({
            "event": "stale_result_discarded",
            "requested": scenario_key(requested),
            "current": scenario_key(self._config),
        }))

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def heatmap(self) -> tuple[HeatmapScale, dict[str, float]]:
        """Scale and per-country values for the selected metric.

        Without a snapshot the value map is empty and the scale is the
        single-bucket "no data" scale.
        """
        snapshot = self.snapshot
        values = self._metric.values(snapshot) if snapshot is not None else {}
        key = scale_cache_key(self._metric.id, values)
        scale = self._scales.get_or_build(key, lambda: build_scale(values, self._metric))
        return scale, values

    def report(self) -> CountrySummary:
        """Report facts for the selected country.

        Raises:
            ExplorerError: no country selected or no snapshot loaded.
        """
        snapshot = self.snapshot
        if self._country is None or snapshot is None:
            raise ExplorerError(REPORT_UNAVAILABLE)
        return country_summary(snapshot, self._country.name)
