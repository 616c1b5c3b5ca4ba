"""QuotePoller — periodic refresh of a symbol set.

Each tick launches a fetch without waiting for the previous one, so a slow
relay never stretches the refresh cadence.  A result is applied only if no
newer tick has already been applied; late arrivals are dropped.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Optional

from inditrade.market.models import Quote

logger = logging.getLogger("inditrade.poller")

FetchQuotes = Callable[[list[str]], Awaitable[dict[str, Quote]]]


class QuotePoller:
    """Cancellable background refresher.

    Args:
        fetch_quotes: Coroutine function returning ``{symbol: Quote}``.
        symbols: Callable returning the symbols to refresh this tick, so
            the set can follow a changing watchlist.
        interval: Seconds between ticks.
        on_update: Optional callback receiving each applied result.
    """

    def __init__(
        self,
        fetch_quotes: FetchQuotes,
        symbols: Callable[[], Iterable[str]],
        interval: float = 5.0,
        on_update: Optional[Callable[[dict[str, Quote]], None]] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._fetch_quotes = fetch_quotes
        self._symbols = symbols
        self._interval = interval
        self._on_update = on_update

        self._latest: dict[str, Quote] = {}
        self._issued = 0
        self._applied = 0
        self._task: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def latest(self) -> dict[str, Quote]:
        """Most recently applied quotes."""
        return dict(self._latest)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── Lifecycle ────────────────────────────────────────────────────────

    def start(self) -> None:
        """Begin polling on the running event loop.  Idempotent."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        """Stop polling and cancel any fetch still in flight."""
        pending = list(self._inflight)
        if self._task is not None:
            pending.append(self._task)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._task = None
        self._inflight.clear()

    async def poll_once(self) -> bool:
        """Run one tick to completion.  Returns ``True`` if it was applied."""
        seq = self._next_seq()
        return await self._run_tick(seq)

    # ── Internals ────────────────────────────────────────────────────────

    async def _loop(self) -> None:
        while True:
            seq = self._next_seq()
            task = asyncio.get_running_loop().create_task(self._run_tick(seq))
            self._inflight.add(task)
            task.add_done_callback(self._reap)
            await asyncio.sleep(self._interval)

    def _reap(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Quote refresh crashed: %s", task.exception())

    def _next_seq(self) -> int:
        self._issued += 1
        return self._issued

    async def _run_tick(self, seq: int) -> bool:
        symbols = list(dict.fromkeys(self._symbols()))
        if not symbols:
            return False
        try:
            quotes = await self._fetch_quotes(symbols)
        except Exception as exc:
            logger.warning("Quote refresh %d failed: %s", seq, exc)
            return False

        if seq < self._applied:
            logger.debug("Dropping stale refresh %d (applied %d)", seq, self._applied)
            return False
        self._applied = seq
        self._latest.update(quotes)
        if self._on_update is not None:
            try:
                self._on_update(quotes)
            except Exception:
                logger.exception("on_update callback failed for refresh %d", seq)
        return True
