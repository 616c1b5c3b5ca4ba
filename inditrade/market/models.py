"""Market data models — typed representations of Yahoo Finance chart objects."""

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class Quote:
    """A live price snapshot.  Never persisted."""

    symbol: str
    price: float
    change: float
    change_percent: float
    timestamp: int  # epoch milliseconds
    currency: str
    volume: int
    market_state: str  # "OPEN" or "CLOSED"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Candle:
    """A single OHLCV bar."""

    timestamp: int  # epoch milliseconds
    open: float
    high: float
    low: float
    close: float
    volume: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SearchResult:
    """A symbol search hit."""

    symbol: str
    shortname: str
    exchange: str
    type_display: str = "Equity"

    def to_dict(self) -> dict:
        return asdict(self)


# ── Chart ranges ─────────────────────────────────────────────────────────

RANGE_INTERVALS: dict[str, str] = {
    "1d": "2m",
    "5d": "15m",
    "1mo": "1h",
    "3mo": "1d",
    "1y": "1d",
}


def normalize_symbol(symbol: str, suffix: str = ".NS") -> str:
    """Canonicalise a bare ticker to its exchange-qualified form.

    ``"tcs"`` → ``"TCS.NS"``; ``"TCS.NS"`` is returned unchanged.
    """
    sym = symbol.strip().upper()
    if not sym:
        raise ValueError("Symbol must not be empty")
    suffix = suffix.upper()
    return sym if sym.endswith(suffix) else f"{sym}{suffix}"
