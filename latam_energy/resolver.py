"""
latam_energy.resolver — Scenario resolution under a fixed dependency order.

Editing one configuration field yields the first manifest entry that
agrees with the edited candidate on every field up to and including the
edited one. Fields after it are unconstrained and take whatever value
that manifest entry carries.

Design contract:
    - Pure functions over (config, manifest). No caching, no state.
    - resolve() never returns a configuration absent from the manifest.
    - An edit with no satisfying entry returns None; the caller keeps
      its previous configuration.
    - Field names are accepted in snake_case or as camelCase wire names.
"""

from __future__ import annotations

from typing import Any

from latam_energy.constants import DEPENDENCY_ORDER, WIRE_NAME_TO_FIELD
from latam_energy.errors import NoResolutionError
from latam_energy.schemas import ScenarioConfig, ScenarioManifest


def field_name(field: str) -> str:
    """Normalize a field name to its snake_case form.

    Raises:
        KeyError: if the name is not one of the six configuration fields.
    """
    name = WIRE_NAME_TO_FIELD.get(field, field)
    if name not in DEPENDENCY_ORDER:
        raise KeyError(f"Unknown configuration field '{field}'. Valid: {list(DEPENDENCY_ORDER)}")
    return name


def _coerce_value(field: str, value: Any) -> Any:
    if field == "year" and isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


def _matches_prefix(entry: ScenarioConfig, target: dict[str, Any], fields: tuple[str, ...]) -> bool:
    return all(entry.get(f) == target[f] for f in fields)


def resolve(
    current: ScenarioConfig,
    manifest: ScenarioManifest,
    field: str,
    value: Any,
) -> ScenarioConfig | None:
    """Most-specific-prefix resolution of a single-field edit.

    Returns the first manifest entry (in manifest order) matching the
    candidate on DEPENDENCY_ORDER[:position(field) + 1], or None.
    """
    name = field_name(field)
    candidate = {f: current.get(f) for f in DEPENDENCY_ORDER}
    candidate[name] = _coerce_value(name, value)

    prefix = DEPENDENCY_ORDER[: DEPENDENCY_ORDER.index(name) + 1]
    for entry in manifest.scenarios:
        if _matches_prefix(entry, candidate, prefix):
            return entry
    return None


def resolve_or_raise(
    current: ScenarioConfig,
    manifest: ScenarioManifest,
    field: str,
    value: Any,
) -> ScenarioConfig:
    """Like resolve(), but raises NoResolutionError instead of returning None."""
    resolved = resolve(current, manifest, field, value)
    if resolved is None:
        raise NoResolutionError(field_name(field), value)
    return resolved


def valid_options_for(
    field: str,
    config: ScenarioConfig,
    manifest: ScenarioManifest,
) -> list[Any]:
    """Distinct values of ``field`` among entries matching ``config`` on
    every earlier field. Values keep their first-seen manifest order.
    """
    name = field_name(field)
    earlier = DEPENDENCY_ORDER[: DEPENDENCY_ORDER.index(name)]
    target = {f: config.get(f) for f in earlier}

    seen: dict[Any, None] = {}
    for entry in manifest.scenarios:
        if _matches_prefix(entry, target, earlier):
            seen.setdefault(entry.get(name), None)
    return list(seen)


def valid_options(config: ScenarioConfig, manifest: ScenarioManifest) -> dict[str, list[Any]]:
    """valid_options_for() for all six fields, in dependency order."""
    return {f: valid_options_for(f, config, manifest) for f in DEPENDENCY_ORDER}
