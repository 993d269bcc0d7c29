"""
Offline cache gateway for the PWA shell.

Server-side version of the service worker's fetch strategy: allow-list the
request, serve a valid cached copy when there is one, otherwise go to the
network and keep 200 responses for static asset paths. When the network is
down, fall back to the cache, then to an offline page (navigations) or a
JSON 503 (API paths). Caches are versioned; nothing is size bounded.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlparse
import logging
import os
import re

import httpx

from .environment import app_domain

logger = logging.getLogger(__name__)

DEFAULT_CACHE_VERSION = "voicemailai-minimal-v1"

NEVER_CACHE_ROUTES = [
    "/api/",
    "/login",
    "/register",
    "/auth/",
    "/_next/static/chunks/src_",
]

SAFE_CACHE_ROUTES = [
    "/manifest.json",
    "/icon-192x192.png",
    "/icon-512x512.png",
    "/_next/static/css/",
    "/_next/static/media/",
]

ALLOWED_METHODS = {"GET", "HEAD"}
ALLOWED_SCHEMES = {"http", "https"}

_DANGEROUS = [
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"on\w+=", re.IGNORECASE),
]

OFFLINE_PAGE = (
    "<!DOCTYPE html><html lang=\"nl\"><head><meta charset=\"utf-8\">"
    "<title>Offline - VoicemailAI</title></head><body>"
    "<h1>Je bent offline</h1><p>Controleer je internetverbinding en probeer het opnieuw.</p>"
    "</body></html>"
)


@dataclass
class CachedResponse:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    source: str = "network"

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


def allowed_origins() -> List[str]:
    raw = os.getenv("PWA_ALLOWED_ORIGINS")
    if raw:
        return [o.strip().rstrip("/") for o in raw.split(",") if o.strip()]
    return [app_domain()]


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def is_request_secure(url: str, method: str = "GET", origins: Optional[List[str]] = None) -> bool:
    if not url:
        return False
    for candidate in (url, unquote(url)):
        if any(p.search(candidate) for p in _DANGEROUS):
            return False
    if method.upper() not in ALLOWED_METHODS:
        return False
    parsed = urlparse(url)
    if parsed.scheme not in ALLOWED_SCHEMES or not parsed.netloc:
        return False
    return _origin(url) in (origins if origins is not None else allowed_origins())


def should_never_cache(path: str) -> bool:
    return any(route in path for route in NEVER_CACHE_ROUTES)


def is_cacheable(path: str) -> bool:
    return not should_never_cache(path) and any(route in path for route in SAFE_CACHE_ROUTES)


def is_valid_cached(entry: Optional[CachedResponse]) -> bool:
    return entry is not None and bool(entry.content_type) and len(entry.body) > 0


class OfflineCache:
    def __init__(self, version: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.version = version or os.getenv("PWA_CACHE_VERSION", DEFAULT_CACHE_VERSION)
        self.caches: Dict[str, Dict[str, CachedResponse]] = {}
        self.active_version: Optional[str] = None
        self.waiting = False
        self._transport = transport

    # Lifecycle
    def install(self) -> None:
        self.caches.setdefault(self.version, {})
        self.waiting = self.active_version is not None and self.active_version != self.version
        logger.info(f"Offline cache installed: {self.version}")
        if not self.waiting:
            self.activate()

    def activate(self) -> List[str]:
        removed = [name for name in self.caches if name != self.version]
        for name in removed:
            logger.info(f"Deleting old cache: {name}")
            del self.caches[name]
        self.caches.setdefault(self.version, {})
        self.active_version = self.version
        self.waiting = False
        return removed

    @property
    def store(self) -> Dict[str, CachedResponse]:
        return self.caches.setdefault(self.version, {})

    # Fetch strategy
    async def fetch(self, url: str, method: str = "GET", accept: str = "") -> CachedResponse:
        if not is_request_secure(url, method):
            logger.warning(f"Rejected insecure request: {method} {url[:200]}")
            return CachedResponse(
                status=403,
                headers={"content-type": "application/json"},
                body=b'{"error": "Request blocked"}',
                source="blocked",
            )

        path = urlparse(url).path or "/"
        cacheable = is_cacheable(path)
        cached = self.store.get(url) if cacheable else None
        if is_valid_cached(cached):
            return CachedResponse(cached.status, dict(cached.headers), cached.body, source="cache")

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
                response = await client.request(method.upper(), url)
            result = CachedResponse(
                status=response.status_code,
                headers={k.lower(): v for k, v in response.headers.items()},
                body=response.content,
            )
            if cacheable and result.status == 200:
                self.store[url] = result
            return result
        except httpx.HTTPError as e:
            logger.warning(f"Network unavailable for {url}: {e}")
            if cached is not None:
                return CachedResponse(cached.status, dict(cached.headers), cached.body, source="cache")
            return self._offline_fallback(path, accept)

    def _offline_fallback(self, path: str, accept: str) -> CachedResponse:
        if path.startswith("/api/") or "application/json" in accept:
            return CachedResponse(
                status=503,
                headers={"content-type": "application/json"},
                body=b'{"error": "offline"}',
                source="offline",
            )
        return CachedResponse(
            status=503,
            headers={"content-type": "text/html; charset=utf-8"},
            body=OFFLINE_PAGE.encode("utf-8"),
            source="offline",
        )

    # Message protocol
    def clear(self) -> bool:
        return self.caches.pop(self.version, None) is not None

    def stats(self) -> Dict[str, Any]:
        entries = sum(len(c) for c in self.caches.values())
        size = sum(len(r.body) for c in self.caches.values() for r in c.values())
        return {"version": self.version, "caches": sorted(self.caches), "entries": entries, "bytes": size}

    def handle_message(self, message_type: Optional[str]) -> Dict[str, Any]:
        if message_type == "SKIP_WAITING":
            self.activate()
            return {"success": True}
        if message_type == "GET_VERSION":
            return {"version": self.version}
        if message_type == "CLEAR_CACHE":
            self.clear()
            return {"success": True}
        if message_type == "CACHE_STATS":
            return self.stats()
        raise ValueError(f"Unknown message type: {message_type}")


_cache: Optional[OfflineCache] = None


def get_offline_cache() -> OfflineCache:
    global _cache
    if _cache is None:
        _cache = OfflineCache()
        _cache.install()
    return _cache


def reset_offline_cache() -> None:
    global _cache
    _cache = None
