"""
latam_energy.security — HTTP middleware for the explorer API.

Provides:
    - RequestIdMiddleware: X-Request-ID on every response, one JSON log
      line per request
    - SecurityHeadersMiddleware: OWASP response headers and per-path
      Cache-Control
    - RequestSizeLimitMiddleware: 413 on oversized bodies, 431 on
      oversized headers
    - ETagMiddleware: weak ETag on static GET payloads, 304 on match
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("latam.security")

# Liveness and readiness must never be cached or tagged.
UNCACHED_PATHS = frozenset(("/health", "/ready"))

# Reference data that only changes with a redeploy of the data directory.
STATIC_PATHS = frozenset(("/scenarios", "/countries", "/metrics", "/topology"))

MAX_BODY_BYTES = 4096       # largest body is {config, field, value}, well under 1 KB
MAX_HEADER_BYTES = 16_384


# ---------------------------------------------------------------------------
# Request-ID middleware
# ---------------------------------------------------------------------------

class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id (caller-supplied or generated) and log it."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id
        started = time.monotonic()
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        _log_request(
            request,
            response.status_code,
            round((time.monotonic() - started) * 1000, 1),
            request_id,
        )
        return response


# ---------------------------------------------------------------------------
# Security headers middleware
# ---------------------------------------------------------------------------

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """OWASP headers on every response. HSTS only in prod, behind TLS.

    Cache-Control:
      - /health, /ready, every POST  → no-store
      - reference data (STATIC_PATHS) → public, one hour
      - anything else                 → public, short TTL
    """

    def __init__(self, app: Any, *, enable_hsts: bool = False) -> None:
        super().__init__(app)
        self.enable_hsts = enable_hsts

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        response = await call_next(request)
        headers = response.headers

        headers["X-Content-Type-Options"] = "nosniff"
        headers["X-Frame-Options"] = "DENY"
        headers["Referrer-Policy"] = "no-referrer"
        headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        headers["Cross-Origin-Resource-Policy"] = "same-site"
        if self.enable_hsts:
            headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        path = request.url.path
        if path in UNCACHED_PATHS or request.method != "GET":
            headers["Cache-Control"] = "no-store"
        elif path in STATIC_PATHS:
            headers["Cache-Control"] = "public, max-age=3600"
        else:
            headers["Cache-Control"] = "public, max-age=60"
        return response


# ---------------------------------------------------------------------------
# Request size limit middleware
# ---------------------------------------------------------------------------

def _json_error(status_code: int, detail: str) -> Response:
    return Response(
        content=json.dumps({"detail": detail}),
        status_code=status_code,
        media_type="application/json",
    )


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject oversized headers (431) and declared bodies (413)."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        if sum(len(k) + len(v) for k, v in request.headers.raw) > MAX_HEADER_BYTES:
            return _json_error(431, "Request headers too large")

        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > MAX_BODY_BYTES:
            return _json_error(413, "Request body too large")

        return await call_next(request)


# ---------------------------------------------------------------------------
# ETag / conditional-GET middleware
# ---------------------------------------------------------------------------

class ETagMiddleware(BaseHTTPMiddleware):
    """Weak ETag for 200 responses on STATIC_PATHS; 304 on If-None-Match."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        if request.method != "GET" or request.url.path not in STATIC_PATHS:
            return await call_next(request)

        response = await call_next(request)
        if response.status_code != 200:
            return response

        body = b"".join([
            chunk if isinstance(chunk, bytes) else chunk.encode()
            async for chunk in response.body_iterator  # type: ignore[attr-defined]
        ])
        etag = f'W/"{hashlib.md5(body, usedforsecurity=False).hexdigest()}"'  # noqa: S324

        candidates = {t.strip() for t in request.headers.get("if-none-match", "").split(",")}
        if etag in candidates:
            return Response(status_code=304, headers={"ETag": etag})

        return Response(
            content=body,
            status_code=200,
            headers={**dict(response.headers), "ETag": etag},
            media_type=response.media_type,
        )


# ---------------------------------------------------------------------------
# Structured request logging
# ---------------------------------------------------------------------------

def _mask_ip(ip: str | None) -> str:
    """Keep the /16 of an IPv4 address or the first four IPv6 groups."""
    if not ip:
        return "unknown"
    if ":" in ip:
        return ":".join(ip.split(":")[:4]) + "::*"
    octets = ip.split(".")
    return f"{octets[0]}.{octets[1]}.*.*" if len(octets) == 4 else "unknown"


def _log_request(request: Request, status_code: int, latency_ms: float, request_id: str) -> None:
    line = json.dumps({
        "event": "http_request",
        "method": request.method,
        "path": request.url.path,
        "status": status_code,
        "latency_ms": latency_ms,
        "client_ip": _mask_ip(request.client.host if request.client else None),
        "request_id": request_id,
    })
    if status_code >= 500:
        logger.error(line)
    elif status_code >= 400:
        logger.warning(line)
    else:
        logger.info(line)
