"""
latam_energy.data_integrity — Offline validation of a scenario data directory.

Validates a data directory for:
    1. Scenario manifest (present, parsable, non-empty, no duplicates)
    2. Base map topology (GeoJSON, coverage of registry countries)
    3. File inventory (three documents per manifest entry)
    4. Document schemas (every scenario assembles)
    5. Line invariants (capacity >= 0, one line per endpoint pair)
    6. Country keys (every key resolves to a registry country)

Design contract:
    - validate_data_dir() is the ONLY validation entry point.
    - Returns a structured IntegrityReport; never raises on validation
      failure.
    - Runtime normalization keeps unrecognized country keys. This check
      is where they surface; ``lenient=True`` records them without
      failing.
    - No disk I/O during the request path. Validation is CLI or
      startup-only.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from latam_energy.assembler import assemble_documents, scenario_key
from latam_energy.data_store import DOCUMENT_SUFFIXES, DataStore, feature_name
from latam_energy.errors import (
    DataUnavailableError,
    ManifestUnavailableError,
    TopologyUnavailableError,
)
from latam_energy.hashing import manifest_hash
from latam_energy.models import ScenarioSnapshot
from latam_energy.normalizer import normalize_country_keys, unrecognized_keys
from latam_energy.registry import COUNTRY_NAMES

# ---------------------------------------------------------------------------
# Exit codes — used by CLI, exposed for programmatic use
# ---------------------------------------------------------------------------

EXIT_OK: int = 0
EXIT_MISSING_FILES: int = 1
EXIT_MANIFEST_INVALID: int = 2
EXIT_TOPOLOGY_INVALID: int = 3
EXIT_SCHEMA_INVALID: int = 4
EXIT_STRUCTURAL_INVARIANT: int = 5
EXIT_UNRECOGNIZED_KEYS: int = 6


@dataclass
class IntegrityReport:
    """Structured report from data directory validation.

    Fields:
        valid: True only if ALL checks pass.
        data_dir: The directory being validated.
        manifest_hash: Fingerprint of the manifest, "" if unreadable.
        scenarios: Number of manifest entries.
        checks: List of {check, passed, detail?} dicts.
        errors: Flat list of human-readable error strings.
        exit_code: Numeric exit code (0 = ok, non-zero = first failure).
    """
    valid: bool = True
    data_dir: str = ""
    manifest_hash: str = ""
    scenarios: int = 0
    checks: list[dict[str, Any]] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    exit_code: int = EXIT_OK

    def fail(self, check: str, detail: str, code: int) -> None:
        self.valid = False
        self.checks.append({"check": check, "passed": False, "detail": detail})
        self.errors.append(f"[{check}] {detail}")
        if self.exit_code == EXIT_OK:
            self.exit_code = code

    def ok(self, check: str, detail: str = "") -> None:
        self.checks.append({"check": check, "passed": True, "detail": detail})

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "data_dir": self.data_dir,
            "manifest_hash": self.manifest_hash,
            "scenarios": self.scenarios,
            "exit_code": self.exit_code,
            "checks": self.checks,
            "errors": self.errors,
        }


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------

def _check_topology(store: DataStore, report: IntegrityReport) -> None:
    try:
        topology = store.load_topology()
    except TopologyUnavailableError as exc:
        report.fail("topology", exc.detail, EXIT_TOPOLOGY_INVALID)
        return

    names = {feature_name(f) for f in topology["features"] if isinstance(f, dict)}
    missing = sorted(COUNTRY_NAMES - names)
    detail = f"{len(topology['features'])} features"
    if missing:
        detail += f"; no shape for: {', '.join(missing)}"
    report.ok("topology", detail)


def _check_line_invariants(snapshot: ScenarioSnapshot) -> list[str]:
    problems = []
    pairs = Counter(line.endpoints for line in snapshot.kpi.lines)
    for pair, count in pairs.items():
        if count > 1:
            problems.append(f"{snapshot.key}: {count} lines between {' / '.join(sorted(pair))}")
    for line in snapshot.kpi.lines:
        if line.capacity < 0:
            problems.append(f"{snapshot.key}: line {line.id} has negative capacity")
    return problems


def _raw_unrecognized(kind: str, countries: Any) -> list[str]:
    if not isinstance(countries, dict):
        return []
    return [f"{kind}:{k}" for k in unrecognized_keys(normalize_country_keys(countries))]


def validate_data_dir(
    data_dir: Path,
    topology_file: str | None = None,
    lenient: bool = False,
) -> IntegrityReport:
    """Validate a data directory for full structural integrity.

    Args:
        data_dir: Directory holding scenarios.json and the scenario files.
        topology_file: Override the topology file name.
        lenient: Record unrecognized country keys without failing.

    Returns:
        IntegrityReport with all checks recorded.
    """
    report = IntegrityReport(data_dir=str(data_dir))

    if not data_dir.is_dir():
        report.fail(
            "directory_exists",
            f"Data directory does not exist: {data_dir}",
            EXIT_MISSING_FILES,
        )
        return report
    report.ok("directory_exists", str(data_dir))

    store = DataStore(data_dir, topology_file)

    try:
        manifest = store.load_manifest()
    except ManifestUnavailableError as exc:
        report.fail("manifest", exc.detail, EXIT_MANIFEST_INVALID)
        _check_topology(store, report)
        return report

    report.manifest_hash = manifest_hash(manifest)
    report.scenarios = len(manifest.scenarios)
    duplicates = [
        scenario_key(c) for c, n in Counter(manifest.scenarios).items() if n > 1
    ]
    if duplicates:
        report.fail(
            "manifest",
            f"Duplicate entries: {', '.join(sorted(duplicates))}",
            EXIT_MANIFEST_INVALID,
        )
    else:
        report.ok("manifest", f"{report.scenarios} scenarios")

    _check_topology(store, report)

    missing_files: list[str] = []
    schema_errors: list[str] = []
    invariant_errors: list[str] = []
    unknown_keys: list[str] = []

    for config in dict.fromkeys(manifest.scenarios):
        key = scenario_key(config)
        absent = [k for k, present in store.scenario_files_present(key).items() if not present]
        if absent:
            missing_files.extend(f"{key}{DOCUMENT_SUFFIXES[k]}" for k in absent)
            continue

        try:
            raw = {kind: store.read_document(key, kind) for kind in DOCUMENT_SUFFIXES}
        except (OSError, ValueError) as exc:
            schema_errors.append(f"{key}: {exc}")
            continue

        try:
            snapshot = assemble_documents(config, raw["scenario"], raw["kpi"], raw["investment"])
        except DataUnavailableError as exc:
            schema_errors.extend(f"{key}: {failure}" for failure in exc.failures)
            continue

        invariant_errors.extend(_check_line_invariants(snapshot))
        unknown = (
            _raw_unrecognized("scenario", raw["scenario"].get("countries"))
            + _raw_unrecognized("kpi", raw["kpi"].get("countries"))
            + _raw_unrecognized(
                "investment", (raw["investment"].get("generation") or {}).get("countries"),
            )
        )
        unknown_keys.extend(f"{key}: {u}" for u in unknown)

    if missing_files:
        report.fail(
            "scenario_files",
            f"{len(missing_files)} missing: {', '.join(missing_files[:10])}"
            + (" ..." if len(missing_files) > 10 else ""),
            EXIT_MISSING_FILES,
        )
    else:
        report.ok("scenario_files", f"{3 * len(set(manifest.scenarios))} files")

    if schema_errors:
        for err in schema_errors:
            report.fail("document_schema", err, EXIT_SCHEMA_INVALID)
    else:
        report.ok("document_schema")

    if invariant_errors:
        for err in invariant_errors:
            report.fail("line_invariants", err, EXIT_STRUCTURAL_INVARIANT)
    else:
        report.ok("line_invariants")

    if unknown_keys and not lenient:
        for err in unknown_keys:
            report.fail("country_keys", f"unrecognized key {err}", EXIT_UNRECOGNIZED_KEYS)
    else:
        detail = f"{len(unknown_keys)} unrecognized (lenient)" if unknown_keys else ""
        report.ok("country_keys", detail)

    return report
