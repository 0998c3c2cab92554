"""
latam_energy.hashing — Deterministic cache keys for derived state.

Derived state (heatmap scales, manifest fingerprints) is cached under an
explicit key computed from every input that affects it. All hash inputs
are human-readable text, inspectable for debugging.

Design contract:
    - canonical_float() is locale-independent fixed-point formatting.
    - Keys are SHA-256 over newline-terminated "name=value" lines in
      canonical (sorted) order.
    - No hidden parameters. No implicit state.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping

from latam_energy.constants import DEPENDENCY_ORDER, ROUND_PRECISION
from latam_energy.schemas import ScenarioManifest


def canonical_float(value: float) -> str:
    """Fixed-point representation with exactly ROUND_PRECISION decimals.

    Examples (ROUND_PRECISION=8):
        canonical_float(0.5)  → "0.50000000"
        canonical_float(1200) → "1200.00000000"
    """
    return f"{round(float(value), ROUND_PRECISION):.{ROUND_PRECISION}f}"


def _digest(parts: list[str]) -> str:
    hash_input = "\n".join(parts) + "\n"
    return hashlib.sha256(hash_input.encode("utf-8")).hexdigest()


def scale_cache_key(metric_id: str, values: Mapping[str, float | None]) -> str:
    """Key of one heatmap scale: the metric plus the full value map.

    None values are written as "none" so they stay distinct from 0.
    """
    parts = [f"metric={metric_id}"]
    for country in sorted(values):
        v = values[country]
        parts.append(f"value.{country}={'none' if v is None else canonical_float(v)}")
    return _digest(parts)


def manifest_hash(manifest: ScenarioManifest) -> str:
    """Fingerprint of the manifest content, order-sensitive."""
    parts = [
        "|".join(str(entry.get(f)) for f in DEPENDENCY_ORDER)
        for entry in manifest.scenarios
    ]
    return _digest(parts)
