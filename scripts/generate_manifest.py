#!/usr/bin/env python3
"""
generate_manifest.py — Rebuild scenarios.json from a data directory.

Scans the data directory for per-scenario documents and writes the
scenario manifest the explorer loads at startup. A scenario is listed
only when all three of its documents are present.

Entries are ordered by the configuration domains (year first, then
transmission, sovereignty, demand and the two hydrology levels), so the
first entry, which becomes the default scenario, is stable.

Usage:
    python scripts/generate_manifest.py
    python scripts/generate_manifest.py --data-dir data --dry-run
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from latam_energy.assembler import parse_scenario_key, scenario_key
from latam_energy.constants import (
    DEMAND_OPTIONS,
    HYDRO_OPTIONS,
    SOVEREIGNTY_OPTIONS,
    TRANSMISSION_OPTIONS,
    YEARS,
)
from latam_energy.data_store import DATA_DIR, DOCUMENT_SUFFIXES, MANIFEST_FILE
from latam_energy.schemas import ScenarioConfig

SCENARIO_SUFFIX = DOCUMENT_SUFFIXES["scenario"]


def _sort_key(config: ScenarioConfig) -> tuple[int, ...]:
    return (
        YEARS.index(config.year),
        TRANSMISSION_OPTIONS.index(config.transmission),
        SOVEREIGNTY_OPTIONS.index(config.sovereignty),
        DEMAND_OPTIONS.index(config.demand),
        HYDRO_OPTIONS.index(config.hydro_andean),
        HYDRO_OPTIONS.index(config.hydro_cono_sur),
    )


def discover_scenarios(data_dir: Path) -> tuple[list[ScenarioConfig], list[str]]:
    """Complete scenarios found in ``data_dir`` plus human-readable skips."""
    found: list[ScenarioConfig] = []
    skipped: list[str] = []

    for path in sorted(data_dir.glob(f"*{SCENARIO_SUFFIX}")):
        key = path.name[: -len(SCENARIO_SUFFIX)]
        try:
            config = parse_scenario_key(key)
        except ValueError as exc:
            skipped.append(f"{path.name}: {exc}")
            continue

        missing = [
            f"{key}{suffix}" for suffix in DOCUMENT_SUFFIXES.values()
            if not (data_dir / f"{key}{suffix}").is_file()
        ]
        if missing:
            skipped.append(f"{key}: missing {', '.join(missing)}")
            continue
        found.append(config)

    found.sort(key=_sort_key)
    return found, skipped


def build_manifest(configs: list[ScenarioConfig]) -> dict:
    return {"scenarios": [c.to_wire() for c in configs]}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="generate_manifest",
        description="Rebuild scenarios.json from the scenario documents in a data directory.",
    )
    parser.add_argument("--data-dir", type=str, default=None,
                        help="Data directory (default: SCENARIO_DATA_DIR or <repo>/data).")
    parser.add_argument("--dry-run", action="store_true",
                        help="Print what would be written without touching the manifest.")
    args = parser.parse_args(argv)

    data_dir = Path(args.data_dir) if args.data_dir else DATA_DIR
    if not data_dir.is_dir():
        print(f"FATAL: data directory not found: {data_dir}", file=sys.stderr)
        return 1

    configs, skipped = discover_scenarios(data_dir)
    for line in skipped:
        print(f"  skipped {line}")

    if not configs:
        print(f"FATAL: no complete scenarios found in {data_dir}.", file=sys.stderr)
        return 1

    for config in configs:
        print(f"  {scenario_key(config)}")

    manifest = build_manifest(configs)
    if args.dry_run:
        print(f"\nDry run: {len(configs)} scenarios, nothing written.")
        return 0

    manifest_path = data_dir / MANIFEST_FILE
    with open(manifest_path, "w", encoding="utf-8") as fh:
        json.dump(manifest, fh, indent=2)
        fh.write("\n")

    print(f"\nWrote: {manifest_path}")
    print(f"Scenarios: {len(configs)} ({len(skipped)} skipped)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
