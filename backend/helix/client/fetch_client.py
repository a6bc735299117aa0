"""
Fetch client for the Helix API

Async httpx wrapper used by dashboard-side code:

  - JSON in, JSON out, standard headers and a fresh X-Correlation-ID on
    every call
  - non-2xx responses and network failures raise ``UpstreamFetchError``
  - GET is retried on 408/429/5xx and transport errors with capped
    exponential backoff; writes are retried only when the caller opts in,
    in which case an Idempotency-Key is attached
  - GET responses are cached for ``ttl`` seconds in a ``ResponseCache`` the
    client owns; completed writes invalidate the affected entries

Cancelling the task awaiting a call stops delivery of its result. The cache
is written only after a complete, successful response.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, Tuple

import httpx
from cachetools import TTLCache

from helix.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
    "User-Agent": "helix-dashboard-client/1.0",
}


class UpstreamFetchError(Exception):
    """Non-2xx response or network failure talking to the API"""

    def __init__(self, status_code: Optional[int], message: str, method: str = "", url: str = ""):
        label = status_code if status_code is not None else "network"
        super().__init__(f"{label}: {message}")
        self.status_code = status_code
        self.message = message
        self.method = method
        self.url = url


RETRY_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 5.0
    retry_statuses: frozenset = field(default_factory=lambda: RETRY_STATUSES)

    def delay(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (0-based)."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_retries=settings.FETCH_MAX_RETRIES,
            base_delay=settings.FETCH_BACKOFF_BASE_SECONDS,
            max_delay=settings.FETCH_BACKOFF_CAP_SECONDS,
        )


CacheKey = Tuple[str, str, Tuple[Tuple[str, str], ...]]


class ResponseCache:
    """Decoded GET responses keyed by request signature, fresh for ``ttl`` seconds.

    Backed by a bounded ``cachetools.TTLCache``; expired entries are evicted
    on every write and the least recently used entry goes once ``maxsize``
    is reached.
    """

    def __init__(
        self,
        ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
        maxsize: int = 512,
    ):
        self.ttl = ttl
        self._entries: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=clock)

    @staticmethod
    def key(method: str, path: str, params: Optional[Mapping[str, Any]] = None) -> CacheKey:
        items = tuple(sorted((str(k), str(v)) for k, v in (params or {}).items() if v is not None))
        return (method.upper(), path, items)

    def get(self, key: CacheKey) -> Tuple[bool, Any]:
        try:
            return True, self._entries[key]
        except KeyError:
            return False, None

    def set(self, key: CacheKey, value: Any) -> None:
        self._entries[key] = value

    def invalidate(self, prefix: Optional[str] = None) -> int:
        """Drop entries whose path starts with ``prefix`` (all when None)."""
        self._entries.expire()
        if prefix is None:
            dropped = len(self._entries)
            self._entries.clear()
            return dropped
        stale = [k for k in list(self._entries) if k[1].startswith(prefix)]
        for k in stale:
            self._entries.pop(k, None)
        return len(stale)

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)


def resource_prefix(path: str) -> str:
    """``/api/legal-cases/us-case-001`` -> ``/api/legal-cases``"""
    parts = [p for p in path.split("?")[0].split("/") if p]
    return "/" + "/".join(parts[:2]) if parts else "/"


class FetchClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        retry: Optional[RetryPolicy] = None,
        cache: Optional[ResponseCache] = None,
        timeout: Optional[float] = None,
        headers: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.retry = retry or RetryPolicy.from_settings()
        self.cache = cache if cache is not None else ResponseCache(
            ttl=settings.FETCH_CACHE_TTL_SECONDS, maxsize=settings.FETCH_CACHE_MAX_ENTRIES
        )
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout or settings.FETCH_TIMEOUT_SECONDS,
            headers={**DEFAULT_HEADERS, **dict(headers or {})},
            transport=transport,
        )

    async def __aenter__(self) -> "FetchClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def invalidate(self, prefix: Optional[str] = None) -> int:
        dropped = self.cache.invalidate(prefix)
        logger.debug("Cache invalidated prefix=%s dropped=%s", prefix, dropped)
        return dropped

    # ----------------------------------------------------------------- verbs

    async def get(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        use_cache: bool = True,
    ) -> Any:
        key = ResponseCache.key("GET", path, params)
        if use_cache:
            hit, value = self.cache.get(key)
            if hit:
                return value
        clean = {k: v for k, v in (params or {}).items() if v is not None}
        value = await self._request("GET", path, params=clean, retries=self.retry.max_retries)
        if use_cache:
            self.cache.set(key, value)
        return value

    async def post(
        self,
        path: str,
        json: Any = None,
        *,
        retry: bool = False,
        idempotency_key: Optional[str] = None,
        invalidates: Optional[Iterable[str]] = None,
    ) -> Any:
        return await self._write("POST", path, json, retry, idempotency_key, invalidates)

    async def patch(
        self,
        path: str,
        json: Any = None,
        *,
        retry: bool = False,
        idempotency_key: Optional[str] = None,
        invalidates: Optional[Iterable[str]] = None,
    ) -> Any:
        return await self._write("PATCH", path, json, retry, idempotency_key, invalidates)

    async def _write(
        self,
        method: str,
        path: str,
        json: Any,
        retry: bool,
        idempotency_key: Optional[str],
        invalidates: Optional[Iterable[str]],
    ) -> Any:
        headers: Dict[str, str] = {}
        if retry and not idempotency_key:
            idempotency_key = str(uuid.uuid4())
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        value = await self._request(
            method, path, json=json, headers=headers,
            retries=self.retry.max_retries if retry else 0,
        )
        if invalidates is not None:
            for prefix in invalidates:
                self.invalidate(prefix)
        elif resource_prefix(path).startswith("/api/sync"):
            # a sync run can touch every collection
            self.invalidate()
        else:
            self.invalidate(resource_prefix(path))
        return value

    # ------------------------------------------------------------- transport

    async def _request(self, method: str, path: str, *, retries: int, **kwargs: Any) -> Any:
        attempt = 0
        while True:
            try:
                return await self._send_once(method, path, **kwargs)
            except UpstreamFetchError as exc:
                retryable = exc.status_code is None or exc.status_code in self.retry.retry_statuses
                if attempt >= retries or not retryable:
                    raise
                delay = self.retry.delay(attempt)
                attempt += 1
                logger.warning(
                    "%s %s failed (%s); retry %s/%s in %.1fs",
                    method, path, exc.status_code or "network", attempt, retries, delay,
                )
                await self._sleep(delay)

    async def _send_once(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = dict(kwargs.pop("headers", None) or {})
        headers.setdefault("X-Correlation-ID", str(uuid.uuid4()))
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            raise UpstreamFetchError(None, str(exc) or exc.__class__.__name__, method, path) from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise UpstreamFetchError(response.status_code, _error_message(response), method, path)

        if not response.content:
            return {}
        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamFetchError(response.status_code, f"Invalid JSON: {exc}", method, path) from exc


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            if body.get(key):
                return str(body[key])
    return response.text.strip() or response.reason_phrase
