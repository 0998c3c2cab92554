"""
latam_energy.normalizer — Country-key reconciliation for raw documents.

Each raw source document keys its country map with its own vocabulary:
standard two-letter codes, legacy data-file codes (GU, HO, ES, FG, SU)
or full country names. normalize_country_keys() maps every key into the
canonical name space of the registry.

Design contract:
    - Legacy codes are first replaced with their standard code, then
      looked up in the registry's code → name index.
    - Keys that resolve to no country pass through unchanged. Nothing
      is dropped: len(output) == len(input).
    - Idempotent: normalizing an already-normalized map is a no-op.
    - Pure. Returns a new dict, never mutates the input.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, TypeVar

from latam_energy.registry import COUNTRY_NAMES, resolve_code

logger = logging.getLogger("latam.normalizer")

V = TypeVar("V")


def canonical_key(key: str) -> str:
    """Canonical name for a single key, or the key itself if unresolvable."""
    return resolve_code(key) or key


def normalize_country_keys(countries: Mapping[str, V] | None) -> dict[str, V]:
    """Re-key a country map by canonical country name.

    Keys that are already canonical (or unrecognized) are placed first.
    A code-derived key whose canonical name is already taken stays
    under its raw key, so colliding entries are preserved rather than
    overwritten.
    """
    normalized: dict[str, V] = {}
    if not countries:
        return normalized

    mapped: list[tuple[str, str]] = []
    for key in countries:
        target = canonical_key(key)
        if target == key:
            normalized[key] = countries[key]
        else:
            mapped.append((key, target))

    for key, target in mapped:
        if target in normalized:
            logger.warning(json.dumps({
                "event": "normalizer_key_collision",
                "key": key,
                "canonical": target,
            }))
            normalized[key] = countries[key]
        else:
            normalized[target] = countries[key]

    return normalized


def unrecognized_keys(countries: Mapping[str, Any] | None) -> list[str]:
    """Keys of a normalized map that match no registry country.

    Lenient passthrough keeps these entries, so callers that care about
    data quality (the integrity validator) use this to surface them.
    """
    if not countries:
        return []
    return sorted(k for k in countries if k not in COUNTRY_NAMES)
