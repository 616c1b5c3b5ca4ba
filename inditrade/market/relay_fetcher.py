"""Relay failover fetcher for the Yahoo Finance JSON endpoints.

The upstream is only reachable through third-party relays, any of which
may be slow, down, or returning junk at a given moment.  The fetcher keeps
a sticky index on the relay that last worked, fails over in order on
error, bounds every attempt with the relay's own timeout, and holds a
short-lived response cache so several callers polling the same path do
not multiply upstream load.
"""

import asyncio
import json
import logging
import random
import threading
import time
from typing import Any, Callable, Optional, Sequence
from urllib.parse import quote

import httpx

from inditrade.errors import NetworkTimeout, QuoteUnavailable, SymbolNotFound
from inditrade.models.relay_config import DEFAULT_RELAYS, RelayEndpoint

logger = logging.getLogger("inditrade.fetcher")

_DEFAULT_UPSTREAM_HOSTS = ("query1.finance.yahoo.com", "query2.finance.yahoo.com")
_UPSTREAM_ERROR_KEYS = ("chart", "quoteResponse", "finance")
_GENERIC_FAILURE = "Unable to fetch price data."
_TIMEOUT_FAILURE = "Network slow. Request timed out, please retry."

_MISS = object()


class RelayRejected(Exception):
    """A relay answered, but not with usable upstream data.  Retryable."""


class RelayFetcher:
    """Fetch upstream JSON through a rotating list of relays.

    Args:
        relays: Ordered relay endpoints.  Index 0 is tried first until a
            different relay succeeds.
        upstream_hosts: Upstream hostnames; one is picked per attempt.
        origin: Value of the ``Origin`` header some relays insist on.
        cache_ttl: Seconds a successful response is served from cache.
        client: Optional shared ``httpx.AsyncClient``.  When omitted a
            short-lived client is opened per attempt.
        clock: Monotonic clock used for cache ageing.
        wall_clock: Epoch-seconds clock used for the cache-busting param.
        rng: Random source for upstream host selection.
    """

    def __init__(
        self,
        relays: Sequence[RelayEndpoint] = DEFAULT_RELAYS,
        upstream_hosts: Sequence[str] = _DEFAULT_UPSTREAM_HOSTS,
        origin: str = "http://localhost",
        cache_ttl: float = 2.0,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ) -> None:
        if not relays:
            raise ValueError("RelayFetcher needs at least one relay")
        if not upstream_hosts:
            raise ValueError("RelayFetcher needs at least one upstream host")
        self._relays = tuple(relays)
        self._hosts = tuple(upstream_hosts)
        self._headers = {"Origin": origin, "Accept": "application/json"}
        self._cache_ttl = cache_ttl
        self._client = client
        self._clock = clock
        self._wall_clock = wall_clock
        self._rng = rng or random.Random()

        self._lock = threading.Lock()
        self._sticky_index = 0
        self._cache: dict[str, tuple[float, Any]] = {}
        self._inflight: dict[str, asyncio.Task] = {}

    @classmethod
    def from_config(cls, config, client: Optional[httpx.AsyncClient] = None) -> "RelayFetcher":
        """Build a fetcher from a :class:`~inditrade.config.Config`."""
        return cls(
            relays=config.relays,
            upstream_hosts=config.upstream_hosts,
            origin=config.relay_origin,
            cache_ttl=config.cache_ttl_seconds,
            client=client,
        )

    @property
    def sticky_index(self) -> int:
        """Index of the relay the next cache miss will try first."""
        with self._lock:
            return self._sticky_index

    @property
    def relays(self) -> tuple[RelayEndpoint, ...]:
        return self._relays

    # ── Public API ───────────────────────────────────────────────────────

    async def fetch(self, path: str, allow_cache: bool = True) -> Any:
        """Return the parsed upstream JSON for *path*.

        Args:
            path: Upstream path and query, without leading host,
                e.g. ``"v8/finance/chart/TCS.NS?interval=1m&range=1d"``.
                Also the cache key.
            allow_cache: Serve a fresh cached response (and join an
                identical in-flight request) when ``True``.

        Raises:
            SymbolNotFound: Upstream reported the symbol does not exist.
            NetworkTimeout: Every relay failed and the last one timed out.
            QuoteUnavailable: Every relay failed for any other reason.
        """
        if not allow_cache:
            return await self._fetch_from_relays(path)

        cached = self._cache_lookup(path)
        if cached is not _MISS:
            return cached

        loop = asyncio.get_running_loop()
        task = self._inflight.get(path)
        if task is None or task.done() or task.get_loop() is not loop:
            task = loop.create_task(self._fetch_from_relays(path))
            self._inflight[path] = task
            task.add_done_callback(lambda t, p=path: self._forget_inflight(p, t))
        return await asyncio.shield(task)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    # ── Failover loop ────────────────────────────────────────────────────

    async def _fetch_from_relays(self, path: str) -> Any:
        start = self.sticky_index
        last_error: Optional[Exception] = None

        for offset in range(len(self._relays)):
            index = (start + offset) % len(self._relays)
            relay = self._relays[index]
            try:
                data = await self._attempt(relay, path)
            except SymbolNotFound:
                raise
            except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
                logger.warning(
                    "Relay %d (%s) timed out after %.1fs for %s",
                    index, relay.url, relay.timeout_seconds, path,
                )
                last_error = exc
                continue
            except (httpx.HTTPError, RelayRejected) as exc:
                logger.warning(
                    "Relay %d (%s) failed for %s: %s", index, relay.url, path, exc,
                )
                last_error = exc
                continue

            self._record_success(index, path, data)
            return data

        if isinstance(last_error, (httpx.TimeoutException, asyncio.TimeoutError)):
            raise NetworkTimeout(_TIMEOUT_FAILURE)
        # Relay rejections stay in the log; only transport errors reach the caller.
        message = "" if isinstance(last_error, RelayRejected) else str(last_error or "")
        raise QuoteUnavailable(message or _GENERIC_FAILURE)

    async def _attempt(self, relay: RelayEndpoint, path: str) -> Any:
        """One bounded GET through *relay*; returns the upstream JSON object."""
        url = self._relay_url(relay, path)
        if self._client is not None:
            resp = await asyncio.wait_for(
                self._client.get(url, headers=self._headers, timeout=relay.timeout_seconds),
                relay.timeout_seconds,
            )
        else:
            async with httpx.AsyncClient() as client:
                resp = await asyncio.wait_for(
                    client.get(url, headers=self._headers, timeout=relay.timeout_seconds),
                    relay.timeout_seconds,
                )

        if resp.status_code != 200:
            raise RelayRejected(f"HTTP {resp.status_code} from relay")

        data = self._decode(relay, resp.text)
        self._check_upstream_error(data)
        return data

    def _relay_url(self, relay: RelayEndpoint, path: str) -> str:
        host = self._rng.choice(self._hosts)
        sep = "&" if "?" in path else "?"
        target = f"https://{host}/{path}{sep}_t={int(self._wall_clock() * 1000)}"
        return f"{relay.url}{quote(target, safe='')}"

    # ── Response classification ──────────────────────────────────────────

    @staticmethod
    def _decode(relay: RelayEndpoint, text: str) -> dict:
        if not text or not text.strip():
            raise RelayRejected("Empty response from relay")
        try:
            data = json.loads(text)
        except ValueError:
            raise RelayRejected("Malformed JSON from relay") from None

        if relay.kind == "wrapper":
            contents = data.get("contents") if isinstance(data, dict) else None
            if not contents:
                raise RelayRejected("Relay wrapper carried no contents")
            if isinstance(contents, str):
                try:
                    data = json.loads(contents)
                except ValueError:
                    raise RelayRejected("Malformed JSON inside relay wrapper") from None
            else:
                data = contents

        if not isinstance(data, dict):
            raise RelayRejected("Relay returned a non-object JSON body")
        return data

    @staticmethod
    def _check_upstream_error(data: dict) -> None:
        """Raise on an upstream error block; ``Not Found`` is terminal."""
        for key in _UPSTREAM_ERROR_KEYS:
            block = data.get(key)
            if not isinstance(block, dict) or not block.get("error"):
                continue
            error = block["error"]
            code = error.get("code") if isinstance(error, dict) else str(error)
            if code == "Not Found":
                raise SymbolNotFound("Symbol not found")
            raise RelayRejected(f"Upstream error: {code}")

    # ── Shared state ─────────────────────────────────────────────────────

    def _cache_lookup(self, path: str) -> Any:
        with self._lock:
            entry = self._cache.get(path)
            if entry is not None and self._clock() - entry[0] < self._cache_ttl:
                return entry[1]
        return _MISS

    def _record_success(self, index: int, path: str, data: Any) -> None:
        now = self._clock()
        with self._lock:
            if index != self._sticky_index:
                logger.info(
                    "Sticky relay %d → %d (%s)",
                    self._sticky_index, index, self._relays[index].url,
                )
                self._sticky_index = index
            expired = [
                k for k, (ts, _) in self._cache.items()
                if now - ts >= self._cache_ttl
            ]
            for k in expired:
                del self._cache[k]
            self._cache[path] = (now, data)

    def _forget_inflight(self, path: str, task: asyncio.Task) -> None:
        if self._inflight.get(path) is task:
            del self._inflight[path]
