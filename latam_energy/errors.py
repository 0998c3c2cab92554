"""
latam_energy.errors — Error taxonomy for the explorer core.

Every error carries a single human-readable ``detail`` string that is
safe to show at the point of use. No partial snapshots are ever paired
with an error: either a complete model triple exists or an error does.
"""

from __future__ import annotations


class ExplorerError(Exception):
    """Base class for all explorer errors."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class ManifestUnavailableError(ExplorerError):
    """Startup scenario manifest is missing, unparsable or empty. Fatal
    to the initial render; no automatic retry."""


class TopologyUnavailableError(ExplorerError):
    """Base geographic topology document is missing or unparsable. Fatal
    to the map render only."""


class DataUnavailableError(ExplorerError):
    """One or more of the three per-scenario documents is missing or
    unparsable. Recoverable: another configuration may be chosen."""

    def __init__(
        self,
        scenario_key: str,
        failures: list[str] | None = None,
        detail: str | None = None,
    ) -> None:
        self.scenario_key = scenario_key
        self.failures = list(failures or [])
        super().__init__(
            detail
            or (
                f"Data not available for the selected scenario ({scenario_key}). "
                f"Please check if data files exist for this configuration."
            )
        )


class NoResolutionError(ExplorerError):
    """An edit has no satisfying manifest entry. The edit is rejected and
    the previous configuration is kept."""

    def __init__(self, field: str, value: object) -> None:
        self.field = field
        self.value = value
        super().__init__(
            f"No available scenario matches {field}={value!r} "
            f"with the current earlier selections."
        )


class UnknownMetricError(ExplorerError, KeyError):
    """Requested heatmap metric is not part of the closed metric set."""

    def __init__(self, metric_id: str) -> None:
        self.metric_id = metric_id
        super().__init__(f"Unknown heatmap metric '{metric_id}'.")

    def __str__(self) -> str:
        return self.detail
