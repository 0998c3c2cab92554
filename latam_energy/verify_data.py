"""
latam_energy.verify_data — CLI for scenario data directory verification.

Usage:
    python -m latam_energy.verify_data
    python -m latam_energy.verify_data --data-dir data --json
    python -m latam_energy.verify_data --quiet --lenient

Exit codes:
    0: Valid — all checks passed.
    1: Missing files — data directory or scenario documents not found.
    2: Manifest invalid — scenarios.json missing, unparsable, empty or duplicated.
    3: Topology invalid — base map GeoJSON missing or unparsable.
    4: Schema invalid — a scenario document does not match its schema.
    5: Structural invariant violation — line capacity or endpoint pair.
    6: Unrecognized country keys (suppressed by --lenient).

Output:
    Default: human-readable summary to stdout.
    --json: structured JSON report to stdout.
    --quiet: no output, only exit code.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from latam_energy.data_integrity import (
    EXIT_MANIFEST_INVALID,
    EXIT_MISSING_FILES,
    EXIT_OK,
    EXIT_SCHEMA_INVALID,
    EXIT_STRUCTURAL_INVARIANT,
    EXIT_TOPOLOGY_INVALID,
    EXIT_UNRECOGNIZED_KEYS,
    validate_data_dir,
)
from latam_energy.data_store import DATA_DIR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="verify_data",
        description="Verify a scenario data directory: manifest, topology, documents, invariants.",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Data directory (default: SCENARIO_DATA_DIR or <repo>/data).",
    )
    parser.add_argument(
        "--topology-file",
        type=str,
        default=None,
        help="Topology file name inside the data directory.",
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Report unrecognized country keys without failing.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output structured JSON report.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress all output. Exit code only.",
    )
    return parser


EXIT_CODE_LABELS: dict[int, str] = {
    EXIT_OK: "VALID",
    EXIT_MISSING_FILES: "MISSING_FILES",
    EXIT_MANIFEST_INVALID: "MANIFEST_INVALID",
    EXIT_TOPOLOGY_INVALID: "TOPOLOGY_INVALID",
    EXIT_SCHEMA_INVALID: "SCHEMA_INVALID",
    EXIT_STRUCTURAL_INVARIANT: "STRUCTURAL_INVARIANT_VIOLATION",
    EXIT_UNRECOGNIZED_KEYS: "UNRECOGNIZED_KEYS",
}


def main(argv: list[str] | None = None) -> int:
    """Run data directory verification. Returns exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    data_dir = Path(args.data_dir) if args.data_dir else DATA_DIR
    report = validate_data_dir(
        data_dir,
        topology_file=args.topology_file,
        lenient=args.lenient,
    )

    if args.quiet:
        return report.exit_code

    if args.json_output:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
        return report.exit_code

    status = "VALID" if report.valid else EXIT_CODE_LABELS.get(report.exit_code, "FAILED")
    print(f"Data dir:  {data_dir}")
    print(f"Scenarios: {report.scenarios}")
    print(f"Status:    {status}")
    print(f"Checks:    {len(report.checks)}")

    for check in report.checks:
        marker = "✓" if check["passed"] else "✗"
        detail = f": {check['detail']}" if check.get("detail") else ""
        print(f"  {marker} {check['check']}{detail}")

    if report.errors:
        print(f"\nErrors ({len(report.errors)}):")
        for err in report.errors:
            print(f"  • {err}")

    print(f"\nExit code: {report.exit_code}")
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
