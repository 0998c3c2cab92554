#!/usr/bin/env python3
"""
latam_energy.api — LATAM Energy Scenario Explorer API

Serves the scenario manifest, the country registry and the base map,
and exposes the explorer core over HTTP: scenario resolution, scenario
assembly, heatmap scales and per-country report facts.

Endpoints:
    GET  /health              → Liveness probe
    GET  /ready               → Readiness probe (manifest / topology status)
    GET  /scenarios           → Scenario manifest
    GET  /countries           → Country registry
    GET  /metrics             → Heatmap metric set
    GET  /topology            → Base map GeoJSON, registry countries only
    POST /scenario/options    → Valid options per field for a configuration
    POST /scenario/resolve    → Resolve a single-field edit
    POST /scenario            → Assembled scenario snapshot
    POST /heatmap             → Heatmap scale and per-country colours
    POST /country/summary     → Country models and report facts

Stateless per request. Derived state lives in bounded LRU caches keyed
by scenario key or scale hash.

Environment variables:
    ENV                   — "dev" or "prod" (default: "prod")
    SCENARIO_DATA_DIR     — data directory (default: <repo>/data)
    TOPOLOGY_FILE         — topology file name inside the data directory
    MAX_CACHED_SNAPSHOTS  — assembled scenarios kept in memory (default: 8)
    MAX_CACHED_SCALES     — heatmap scales kept in memory (default: 32)
    ALLOWED_ORIGINS       — Comma-separated CORS origins (default: none)
    ENABLE_DOCS           — "1" to force-enable /docs in prod
    REQUIRE_DATA          — "1" to hard-fail startup if the manifest is unusable
    REDIS_URL             — Optional Redis URL for distributed rate limiting
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.gzip import GZipMiddleware

from latam_energy.assembler import assemble, scenario_key
from latam_energy.constants import FIELD_WIRE_NAMES
from latam_energy.data_store import DataStore, filter_topology
from latam_energy.errors import (
    DataUnavailableError,
    ExplorerError,
    ManifestUnavailableError,
    NoResolutionError,
    TopologyUnavailableError,
    UnknownMetricError,
)
from latam_energy.hashing import manifest_hash, scale_cache_key
from latam_energy.heatmap import DEFAULT_METRIC, METRICS, HeatmapScale, build_scale, get_metric
from latam_energy.models import ScenarioSnapshot
from latam_energy.registry import COUNTRIES, Country, get_country_by_name, resolve_code
from latam_energy.resolver import field_name, resolve_or_raise, valid_options
from latam_energy.schemas import ScenarioConfig, ScenarioManifest
from latam_energy.security import (
    ETagMiddleware,
    RequestIdMiddleware,
    RequestSizeLimitMiddleware,
    SecurityHeadersMiddleware,
)
from latam_energy.snapshot_cache import MAX_CACHED_SCALES, SnapshotCache
from latam_energy.summary import country_summary

API_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# Logging configuration — structured JSON to stdout
# ---------------------------------------------------------------------------

_log_level = logging.DEBUG if os.getenv("ENV", "prod") == "dev" else logging.INFO
logging.basicConfig(
    level=_log_level,
    format="%(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("latam.api")


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

ENV = os.getenv("ENV", "prod").lower().strip()
ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS", "").strip()
ENABLE_DOCS = os.getenv("ENABLE_DOCS", "").strip() == "1"
REQUIRE_DATA = os.getenv("REQUIRE_DATA", "").strip() == "1"
REDIS_URL = os.getenv("REDIS_URL", "").strip() or None


# ---------------------------------------------------------------------------
# Explorer state — one data directory per process
# ---------------------------------------------------------------------------

class _ExplorerState:
    """Lazily loaded startup documents plus the derived-state caches.

    A manifest load failure is remembered and re-raised; the data
    directory is not re-read until configure() installs a new state.
    """

    def __init__(self, store: DataStore) -> None:
        self.store = store
        self.snapshots: SnapshotCache[ScenarioSnapshot] = SnapshotCache("snapshots")
        self.scales: SnapshotCache[HeatmapScale] = SnapshotCache("scales", MAX_CACHED_SCALES)
        self._manifest: ScenarioManifest | None = None
        self._manifest_error: ManifestUnavailableError | None = None
        self._topology: dict[str, Any] | None = None

    def manifest(self) -> ScenarioManifest:
        if self._manifest_error is not None:
            raise self._manifest_error
        if self._manifest is None:
            try:
                self._manifest = self.store.load_manifest()
            except ManifestUnavailableError as exc:
                self._manifest_error = exc
                raise
        return self._manifest

    def topology(self) -> dict[str, Any]:
        if self._topology is None:
            self._topology = filter_topology(self.store.load_topology())
        return self._topology


_state = _ExplorerState(DataStore())


def configure(store: DataStore) -> None:
    """Point the API at another data directory and drop all cached state."""
    global _state
    _state = _ExplorerState(store)


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["120/minute"],
    storage_uri=REDIS_URL or "memory://",
    strategy="fixed-window",
)


def _build_docs_kwargs() -> dict[str, Any]:
    if ENV == "prod" and not ENABLE_DOCS:
        return {"docs_url": None, "redoc_url": None, "openapi_url": None}
    return {"docs_url": "/docs", "redoc_url": "/redoc"}


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load the manifest and topology once before serving.

    If REQUIRE_DATA=1 and the manifest is unusable, exit immediately.
    A missing topology only degrades /topology.
    """
    logger.info(json.dumps({
        "event": "startup",
        "env": ENV,
        "data_dir": str(_state.store.data_dir),
        "require_data": REQUIRE_DATA,
        "cors_origins": len(_CORS_ORIGINS),
        "docs_enabled": ENABLE_DOCS or ENV == "dev",
        "rate_limit_backend": "redis" if REDIS_URL else "memory",
    }))

    try:
        _state.manifest()
    except ManifestUnavailableError as exc:
        if REQUIRE_DATA:
            logger.error(json.dumps({"event": "startup_abort", "reason": exc.detail}))
            sys.exit(1)
        logger.warning(json.dumps({"event": "startup_degraded", "reason": exc.detail}))

    try:
        _state.topology()
    except TopologyUnavailableError as exc:
        logger.warning(json.dumps({"event": "startup_degraded", "reason": exc.detail}))

    yield

    logger.info(json.dumps({"event": "shutdown"}))


app = FastAPI(
    title="LATAM Energy Explorer API",
    description="Scenario explorer for Latin American energy integration",
    version=API_VERSION,
    lifespan=_lifespan,
    **_build_docs_kwargs(),
)

app.state.limiter = limiter


# ---------------------------------------------------------------------------
# CORS — strict allow-list, extended by ALLOWED_ORIGINS at deploy time
# ---------------------------------------------------------------------------

DEV_ORIGINS: list[str] = [
    "http://localhost:3000",
    "http://localhost:5173",
]

_CORS_ORIGINS: list[str] = list(DEV_ORIGINS) if ENV == "dev" else []
for _o in ALLOWED_ORIGINS_RAW.split(","):
    _o = _o.strip()
    if _o and _o not in _CORS_ORIGINS:
        _CORS_ORIGINS.append(_o)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
    max_age=3600,
)

# Starlette runs middleware in reverse registration order:
# GZip → RequestId → RequestSizeLimit → ETag → SecurityHeaders → CORS
app.add_middleware(SecurityHeadersMiddleware, enable_hsts=(ENV == "prod"))
app.add_middleware(ETagMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------

class InvalidRequestError(ExplorerError):
    """Malformed or out-of-domain request body."""

    def __init__(self, detail: str, details: Any = None) -> None:
        self.details = details if details is not None else {}
        super().__init__(detail)


_ERROR_STATUS: tuple[tuple[type[ExplorerError], int, str], ...] = (
    (InvalidRequestError, 400, "INVALID_REQUEST"),
    (UnknownMetricError, 400, "INVALID_REQUEST"),
    (DataUnavailableError, 404, "DATA_UNAVAILABLE"),
    (NoResolutionError, 409, "NO_RESOLUTION"),
    (ManifestUnavailableError, 503, "MANIFEST_UNAVAILABLE"),
    (TopologyUnavailableError, 503, "TOPOLOGY_UNAVAILABLE"),
)


def _error_details(exc: ExplorerError) -> Any:
    if isinstance(exc, InvalidRequestError):
        return exc.details
    if isinstance(exc, DataUnavailableError):
        return {"key": exc.scenario_key, "failures": exc.failures}
    if isinstance(exc, NoResolutionError):
        return {"field": exc.field, "value": exc.value}
    if isinstance(exc, UnknownMetricError):
        return {"metric": exc.metric_id, "valid": [m.id for m in METRICS]}
    return {}


@app.exception_handler(ExplorerError)
async def _explorer_error_handler(request: Request, exc: ExplorerError) -> JSONResponse:
    for error_type, status_code, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            break
    else:
        status_code, code = 500, "EXPLORER_ERROR"

    logger.log(
        logging.WARNING if status_code < 500 else logging.ERROR,
        json.dumps({
            "event": "request_failed",
            "error": code,
            "request_id": getattr(request.state, "request_id", "unknown"),
            "path": request.url.path,
        }),
    )
    return JSONResponse(
        status_code=status_code,
        content={"error": code, "message": exc.detail, "details": _error_details(exc)},
    )


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Try again later."},
        headers={"Retry-After": "60"},
    )


@app.exception_handler(Exception)
async def _global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(json.dumps({
        "event": "unhandled_exception",
        "exception_type": type(exc).__name__,
        "request_id": getattr(request.state, "request_id", "unknown"),
        "path": request.url.path,
    }))
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error."},
    )


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class ResolveRequest(BaseModel):
    model_config = {"extra": "forbid"}

    current: ScenarioConfig
    field: str
    value: Any


class HeatmapRequest(BaseModel):
    model_config = {"extra": "forbid"}

    config: ScenarioConfig
    metric: str = DEFAULT_METRIC


class SummaryRequest(BaseModel):
    model_config = {"extra": "forbid"}

    config: ScenarioConfig
    country: str = Field(..., min_length=1, max_length=64)


async def _parse_body(request: Request, model: type[BaseModel]) -> Any:
    """Decode and validate a JSON body. Raises InvalidRequestError."""
    try:
        raw_body = await request.json()
    except ValueError:
        raise InvalidRequestError(
            "Request body is not valid JSON.",
            {"parse_error": "Could not decode JSON."},
        ) from None

    try:
        return model.model_validate(raw_body)
    except ValidationError as exc:
        items = [
            {
                "field": ".".join(str(p) for p in e.get("loc", [])),
                "message": e.get("msg", "Validation failed"),
            }
            for e in exc.errors()
        ]
        raise InvalidRequestError(
            "Request validation failed.",
            items[0] if len(items) == 1 else items,
        ) from None


def _require_in_manifest(config: ScenarioConfig) -> ScenarioConfig:
    if not _state.manifest().contains(config):
        raise InvalidRequestError(
            "Configuration is not in the scenario manifest.",
            {"key": scenario_key(config)},
        )
    return config


def _require_country(name: str) -> Country:
    country = get_country_by_name(name) or get_country_by_name(resolve_code(name) or "")
    if country is None:
        raise InvalidRequestError(
            f"Unknown country '{name}'.",
            {"country": name, "valid": [c.name for c in COUNTRIES]},
        )
    return country


def _wire_options(config: ScenarioConfig, manifest: ScenarioManifest) -> dict[str, list[Any]]:
    return {
        FIELD_WIRE_NAMES[field]: values
        for field, values in valid_options(config, manifest).items()
    }


async def _snapshot_for(config: ScenarioConfig) -> ScenarioSnapshot:
    key = scenario_key(config)
    snapshot = _state.snapshots.get(key)
    if snapshot is None:
        snapshot = await assemble(config, _state.store)
        _state.snapshots.put(key, snapshot)
    return snapshot


# ---------------------------------------------------------------------------
# Probes
# ---------------------------------------------------------------------------

@app.get("/health", include_in_schema=False)
async def health(request: Request) -> JSONResponse:
    """Liveness probe. Always 200, no I/O."""
    return JSONResponse(status_code=200, content={"status": "ok", "version": API_VERSION})


@app.get("/ready")
@limiter.limit("60/minute")
async def ready(request: Request) -> JSONResponse:
    """Readiness probe, always 200. Business readiness is the 'ready' field."""
    body: dict[str, Any] = {
        "version": API_VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "cache": {"snapshots": _state.snapshots.entry_count, "scales": _state.scales.entry_count},
    }

    try:
        manifest = _state.manifest()
        body["manifest"] = {
            "loaded": True,
            "scenarios": len(manifest.scenarios),
            "hash": manifest_hash(manifest),
        }
    except ManifestUnavailableError as exc:
        body["manifest"] = {"loaded": False, "error": exc.detail}

    try:
        body["topology"] = {"loaded": True, "features": len(_state.topology()["features"])}
    except TopologyUnavailableError as exc:
        body["topology"] = {"loaded": False, "error": exc.detail}

    body["ready"] = body["manifest"]["loaded"] and body["topology"]["loaded"]
    body["status"] = "healthy" if body["ready"] else "degraded"
    return JSONResponse(status_code=200, content=body)


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------

@app.get("/scenarios")
@limiter.limit("60/minute")
async def list_scenarios(request: Request) -> Any:
    """All valid scenario configurations, in manifest order."""
    manifest = _state.manifest()
    return {
        "default": manifest.default.to_wire(),
        "scenarios": [c.to_wire() for c in manifest.scenarios],
    }


@app.get("/countries")
@limiter.limit("60/minute")
async def list_countries(request: Request) -> Any:
    return {"countries": [c.to_dict() for c in COUNTRIES]}


@app.get("/metrics")
@limiter.limit("60/minute")
async def list_metrics(request: Request) -> Any:
    return {
        "default": DEFAULT_METRIC,
        "metrics": [
            {"id": m.id, "kind": m.kind, "unit": m.unit, "title": m.title} for m in METRICS
        ],
    }


@app.get("/topology")
@limiter.limit("30/minute")
async def get_topology(request: Request) -> Any:
    """Base map polygons of registry countries."""
    return _state.topology()


# ---------------------------------------------------------------------------
# Scenario resolution and assembly
# ---------------------------------------------------------------------------

@app.post("/scenario/options")
@limiter.limit("120/minute")
async def scenario_options(request: Request) -> JSONResponse:
    """Valid values per field given the earlier fields of a configuration."""
    config: ScenarioConfig = await _parse_body(request, ScenarioConfig)
    return JSONResponse(status_code=200, content={
        "config": config.to_wire(),
        "options": _wire_options(config, _state.manifest()),
    })


@app.post("/scenario/resolve")
@limiter.limit("120/minute")
async def scenario_resolve(request: Request) -> JSONResponse:
    """Apply a single-field edit. 409 when no manifest entry satisfies it."""
    req: ResolveRequest = await _parse_body(request, ResolveRequest)
    try:
        name = field_name(req.field)
    except KeyError as exc:
        raise InvalidRequestError(str(exc.args[0]), {"field": req.field}) from None

    manifest = _state.manifest()
    resolved = resolve_or_raise(req.current, manifest, name, req.value)
    return JSONResponse(status_code=200, content={
        "config": resolved.to_wire(),
        "key": scenario_key(resolved),
        "changed": resolved != req.current,
        "options": _wire_options(resolved, manifest),
    })


@app.post("/scenario")
@limiter.limit("60/minute")
async def scenario(request: Request) -> JSONResponse:
    """Assembled generation, KPI and investment models for one configuration."""
    config = _require_in_manifest(await _parse_body(request, ScenarioConfig))
    snapshot = await _snapshot_for(config)
    return JSONResponse(status_code=200, content=snapshot.to_dict())


@app.post("/heatmap")
@limiter.limit("120/minute")
async def heatmap(request: Request) -> JSONResponse:
    """Colour scale of one metric plus the colour of every country."""
    req: HeatmapRequest = await _parse_body(request, HeatmapRequest)
    metric = get_metric(req.metric)
    snapshot = await _snapshot_for(_require_in_manifest(req.config))

    values = metric.values(snapshot)
    scale = _state.scales.get_or_build(
        scale_cache_key(metric.id, values),
        lambda: build_scale(values, metric),
    )
    return JSONResponse(status_code=200, content={
        "key": snapshot.key,
        **scale.to_dict(),
        "countries": {
            name: {
                "value": value,
                "band": scale.band_index(value),
                "color": scale.color_of(value),
                "label": scale.format_value(value),
            }
            for name, value in values.items()
        },
    })


@app.post("/country/summary")
@limiter.limit("60/minute")
async def country_summary_endpoint(request: Request) -> JSONResponse:
    """Resolved models and report facts for one country."""
    req: SummaryRequest = await _parse_body(request, SummaryRequest)
    country = _require_country(req.country)
    snapshot = await _snapshot_for(_require_in_manifest(req.config))

    try:
        summary = country_summary(snapshot, country.name)
    except KeyError:
        raise DataUnavailableError(
            snapshot.key,
            detail=f"No data for {country.name} in scenario {snapshot.key}.",
        ) from None

    return JSONResponse(status_code=200, content={
        "key": snapshot.key,
        "country": country.to_dict(),
        "generationMix": snapshot.generation.countries[country.name].to_dict(),
        "kpi": snapshot.kpi.countries[country.name].to_dict(),
        "investment": snapshot.investment.countries[country.name].to_dict(),
        "regionalInvestment": snapshot.investment.regional.to_dict(),
        "regionalKpi": snapshot.kpi.regional.to_dict(),
        "summary": summary.to_dict(),
    })


# ---------------------------------------------------------------------------
# Entry point (development only)
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    os.environ.setdefault("ENV", "dev")
    print(f"LATAM Energy Explorer API — serving from {_state.store.data_dir}")
    uvicorn.run(app, host="0.0.0.0", port=8000)  # noqa: S104
