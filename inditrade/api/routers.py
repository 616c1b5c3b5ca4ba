"""Internal API routers — quotes, charts, search, account and order endpoints.

No business logic, no DB access.  Delegates to the market client, the
ledger engine and the quote poller injected at startup.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from inditrade.errors import (
    MarketDataError,
    NetworkTimeout,
    QuoteUnavailable,
    SymbolNotFound,
    TradingError,
)
from inditrade.ledger.projections import portfolio_summary, win_rate

logger = logging.getLogger("inditrade.api")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_ledger = None  # Set via configure_routers()
_market = None  # Set via configure_routers()
_poller = None  # Set via configure_routers()

_STATUS_BY_ERROR = (
    (SymbolNotFound, 404),
    (NetworkTimeout, 504),
    (QuoteUnavailable, 503),
    (MarketDataError, 503),
    (TradingError, 400),
    (ValueError, 400),
)


def configure_routers(ledger=None, market=None, poller=None) -> None:
    """Inject dependencies from the application startup.

    Args:
        ledger: A ``LedgerEngine`` (or duck-type for tests).
        market: A ``YahooChartClient`` (or duck-type for tests).
        poller: A ``QuotePoller`` refreshing the watchlist.
    """
    global _ledger, _market, _poller  # noqa: PLW0603
    _ledger = ledger
    _market = market
    _poller = poller


def _error(exc: Exception) -> JSONResponse:
    for exc_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, exc_type):
            return JSONResponse(status_code=status, content={"error": str(exc)})
    raise exc


def _unavailable(what: str) -> JSONResponse:
    return JSONResponse(status_code=503, content={"error": f"{what} not configured"})


# ── Market data ──────────────────────────────────────────────────────────


@router.get("/market/status")
async def get_market_status():
    """Return whether the exchange is currently open."""
    if _market is None:
        return _unavailable("Market data")
    state = _market.market_state()
    return {"market_state": state, "is_open": state == "OPEN"}


@router.get("/quotes/{symbol}")
async def get_quote(symbol: str):
    """Return a live quote for one symbol."""
    if _market is None:
        return _unavailable("Market data")
    try:
        quote = await _market.get_quote(symbol)
    except (MarketDataError, ValueError) as exc:
        return _error(exc)
    return {"quote": quote.to_dict()}


@router.get("/quotes")
async def get_quotes(symbols: str = Query(default="")):
    """Return quotes for a comma-separated symbol list; failures are omitted."""
    if _market is None:
        return _unavailable("Market data")
    wanted = [s for s in (p.strip() for p in symbols.split(",")) if s]
    try:
        quotes = await _market.get_quotes(wanted)
    except ValueError as exc:
        return _error(exc)
    return {"quotes": {sym: q.to_dict() for sym, q in quotes.items()}}


@router.get("/chart/{symbol}")
async def get_chart(symbol: str, range_: str = Query(default="1d", alias="range")):
    """Return OHLCV candles for a chart range."""
    if _market is None:
        return _unavailable("Market data")
    try:
        meta, candles = await _market.get_candles(symbol, range_)
    except (MarketDataError, ValueError) as exc:
        return _error(exc)
    return {
        "symbol": _market.normalize(symbol),
        "range": range_,
        "meta": meta,
        "candles": [c.to_dict() for c in candles],
    }


@router.get("/search")
async def search(q: str = Query(default="")):
    """Return equity matches for a search query (best effort)."""
    if _market is None:
        return {"results": []}
    results = await _market.search_symbols(q)
    return {"results": [r.to_dict() for r in results]}


# ── Account ──────────────────────────────────────────────────────────────


@router.get("/account")
async def get_account():
    """Return the full account snapshot with its win rate."""
    if _ledger is None:
        return _unavailable("Ledger")
    account = _ledger.account
    return {"account": account.to_dict(), "win_rate": win_rate(account.stats)}


@router.get("/portfolio")
async def get_portfolio():
    """Return open positions marked to the latest available prices."""
    if _ledger is None:
        return _unavailable("Ledger")
    account = _ledger.account
    prices: dict = {}
    if _market is not None and account.positions:
        prices = await _market.get_quotes([p.symbol for p in account.positions])
    return portfolio_summary(account, prices)


@router.post("/orders")
async def post_order(body: dict):
    """Execute a market order.

    Expects ``{"symbol": "TCS", "side": "BUY", "quantity": 10,
    "price": 3850.5}`` with an optional caller-supplied ``"id"``.
    """
    if _ledger is None:
        return _unavailable("Ledger")
    try:
        account = _ledger.place_order(
            symbol=body.get("symbol", ""),
            side=body.get("side", ""),
            quantity=body.get("quantity"),
            price=body.get("price"),
            order_id=body.get("id"),
        )
    except TradingError as exc:
        return _error(exc)
    return {"status": "filled", "trade": account.trades[0].to_dict(), "account": account.to_dict()}


@router.post("/watchlist/{symbol}")
async def post_toggle_watchlist(symbol: str):
    """Add *symbol* to the watchlist, or remove it if already present."""
    if _ledger is None:
        return _unavailable("Ledger")
    try:
        account = _ledger.toggle_watchlist(symbol)
    except TradingError as exc:
        return _error(exc)
    return {"watchlist": list(account.watchlist)}


@router.get("/watchlist")
async def get_watchlist(refresh: Optional[bool] = Query(default=False)):
    """Return the watchlist with the latest polled quotes.

    ``refresh=true`` forces one poll before answering.
    """
    if _ledger is None:
        return _unavailable("Ledger")
    symbols = list(_ledger.account.watchlist)
    latest: dict = {}
    if _poller is not None:
        if refresh:
            await _poller.poll_once()
        latest = _poller.latest
    return {
        "symbols": symbols,
        "quotes": {s: latest[s].to_dict() for s in symbols if s in latest},
    }


@router.post("/account/reset")
async def post_reset_account():
    """Reset balance, positions, history and stats to the defaults."""
    if _ledger is None:
        return _unavailable("Ledger")
    account = _ledger.reset_account()
    return {"status": "reset", "account": account.to_dict()}
