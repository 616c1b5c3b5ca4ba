"""Yahoo Finance chart/search adapter.

Turns upstream chart and search JSON into ``Quote``, ``Candle`` and
``SearchResult`` records.  All network access goes through a
``RelayFetcher``.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from urllib.parse import quote as urlquote

from inditrade.errors import MarketDataError, QuoteUnavailable
from inditrade.market.calendar import (
    NSE_CLOSE_MINUTE,
    NSE_OPEN_MINUTE,
    NSE_UTC_OFFSET_MINUTES,
    market_state,
)
from inditrade.market.models import (
    RANGE_INTERVALS,
    Candle,
    Quote,
    SearchResult,
    normalize_symbol,
)
from inditrade.market.relay_fetcher import RelayFetcher

logger = logging.getLogger("inditrade.market")

_MIN_SEARCH_LENGTH = 2
_SEARCH_QUOTES_COUNT = 6


class YahooChartClient:
    """Quote, candle and search access for one exchange.

    Args:
        fetcher: The relay fetcher every request goes through.
        exchange_suffix: Suffix that qualifies a ticker on the exchange.
        now: Clock used to stamp ``market_state`` on quotes.
        market_window: Keyword overrides for the market calendar
            (``utc_offset_minutes``, ``open_minute``, ``close_minute``).
    """

    def __init__(
        self,
        fetcher: RelayFetcher,
        exchange_suffix: str = ".NS",
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        market_window: Optional[dict] = None,
    ) -> None:
        self._fetcher = fetcher
        self._suffix = exchange_suffix
        self._now = now
        self._window = market_window or {
            "utc_offset_minutes": NSE_UTC_OFFSET_MINUTES,
            "open_minute": NSE_OPEN_MINUTE,
            "close_minute": NSE_CLOSE_MINUTE,
        }

    @classmethod
    def from_config(cls, config, fetcher: RelayFetcher) -> "YahooChartClient":
        return cls(
            fetcher,
            exchange_suffix=config.exchange_suffix,
            market_window={
                "utc_offset_minutes": config.market_utc_offset_minutes,
                "open_minute": config.market_open_minute,
                "close_minute": config.market_close_minute,
            },
        )

    def normalize(self, symbol: str) -> str:
        return normalize_symbol(symbol, self._suffix)

    def market_state(self) -> str:
        """Current ``"OPEN"``/``"CLOSED"`` state of the exchange."""
        return market_state(self._now(), **self._window)

    # ── Quotes ───────────────────────────────────────────────────────────

    async def get_quote(self, symbol: str, allow_cache: bool = True) -> Quote:
        """Fetch a live quote from the 1-minute intraday series.

        Raises:
            QuoteUnavailable: The response has no meta block or no price.
            SymbolNotFound / NetworkTimeout: Propagated from the fetcher.
        """
        sym = self.normalize(symbol)
        path = f"v8/finance/chart/{sym}?interval=1m&range=1d&useYfid=true"
        data = await self._fetcher.fetch(path, allow_cache=allow_cache)

        result = _first_result(data)
        meta = result.get("meta") if result else None
        if not isinstance(meta, dict) or meta.get("regularMarketPrice") is None:
            raise QuoteUnavailable(f"No quote data for {sym}")

        price = float(meta["regularMarketPrice"])
        prev = meta.get("chartPreviousClose") or meta.get("previousClose")
        prev = float(prev) if prev is not None else 0.0
        change = price - prev if prev else 0.0

        return Quote(
            symbol=meta.get("symbol") or sym,
            price=price,
            change=change,
            change_percent=(change / prev) * 100 if prev else 0.0,
            timestamp=int(meta.get("regularMarketTime") or 0) * 1000,
            currency=meta.get("currency") or "INR",
            volume=int(meta.get("regularMarketVolume") or 0),
            market_state=self.market_state(),
        )

    async def get_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        """Fetch quotes for many symbols concurrently.

        Symbols that fail are left out of the result instead of failing
        the batch.
        """
        if not symbols:
            return {}
        unique = list(dict.fromkeys(self.normalize(s) for s in symbols))
        outcomes = await asyncio.gather(
            *(self.get_quote(s) for s in unique), return_exceptions=True,
        )

        quotes: dict[str, Quote] = {}
        for sym, outcome in zip(unique, outcomes):
            if isinstance(outcome, MarketDataError):
                logger.warning("Failed to fetch %s: %s", sym, outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                quotes[sym] = outcome
        return quotes

    # ── Candles ──────────────────────────────────────────────────────────

    async def get_candles(
        self, symbol: str, range_: str = "1d",
    ) -> tuple[dict, list[Candle]]:
        """Fetch an OHLCV series for a chart range.

        Args:
            symbol: Ticker, bare or exchange-qualified.
            range_: One of ``1d``, ``5d``, ``1mo``, ``3mo``, ``1y``.

        Returns:
            ``(meta, candles)`` with candles oldest-first.  Bars without a
            close are dropped; missing open/high/low fall back to close.
        """
        interval = RANGE_INTERVALS.get(range_)
        if interval is None:
            raise ValueError(
                f"Unknown range {range_!r}; expected one of {', '.join(RANGE_INTERVALS)}"
            )
        sym = self.normalize(symbol)
        path = f"v8/finance/chart/{sym}?interval={interval}&range={range_}"
        data = await self._fetcher.fetch(path)

        result = _first_result(data)
        if not result:
            raise QuoteUnavailable(f"No chart data for {sym}")

        timestamps = result.get("timestamp") or []
        indicators = (result.get("indicators") or {}).get("quote") or [{}]
        series = indicators[0] or {}
        opens = series.get("open") or []
        highs = series.get("high") or []
        lows = series.get("low") or []
        closes = series.get("close") or []
        volumes = series.get("volume") or []

        candles: list[Candle] = []
        for i, ts in enumerate(timestamps):
            close = _at(closes, i)
            if close is None:
                continue
            candles.append(
                Candle(
                    timestamp=int(ts) * 1000,
                    open=float(_at(opens, i, close)),
                    high=float(_at(highs, i, close)),
                    low=float(_at(lows, i, close)),
                    close=float(close),
                    volume=int(_at(volumes, i, 0)),
                )
            )
        return result.get("meta") or {}, candles

    # ── Search ───────────────────────────────────────────────────────────

    async def search_symbols(self, query: str) -> list[SearchResult]:
        """Best-effort symbol search; never raises for upstream trouble."""
        query = query.strip()
        if len(query) < _MIN_SEARCH_LENGTH:
            return []
        path = (
            f"v1/finance/search?q={urlquote(query)}"
            f"&quotesCount={_SEARCH_QUOTES_COUNT}&newsCount=0"
        )
        try:
            data = await self._fetcher.fetch(path)
            raw_quotes = data.get("quotes") or []
        except Exception as exc:
            logger.debug("Search for %r failed: %s", query, exc)
            return []

        suffix = self._suffix.upper()
        results: list[SearchResult] = []
        for q in raw_quotes:
            if not isinstance(q, dict):
                continue
            sym = q.get("symbol") or ""
            if not sym.upper().endswith(suffix) or q.get("quoteType") != "EQUITY":
                continue
            results.append(
                SearchResult(
                    symbol=sym,
                    shortname=q.get("shortname") or q.get("longname") or sym,
                    exchange=q.get("exchDisp") or "NSE",
                )
            )
        return results


# ── Helpers ──────────────────────────────────────────────────────────────


def _first_result(data: Any) -> Optional[dict]:
    chart = data.get("chart") if isinstance(data, dict) else None
    results = chart.get("result") if isinstance(chart, dict) else None
    if not results or not isinstance(results[0], dict):
        return None
    return results[0]


def _at(values: list, i: int, default: Any = None) -> Any:
    """``values[i]`` or *default* when out of range or null."""
    if i < len(values) and values[i] is not None:
        return values[i]
    return default
