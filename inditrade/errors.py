"""Error taxonomy shared by the ledger and the market-data layer.

Ledger errors are raised before any state changes and are safe to show to
the user verbatim.  Market-data errors describe why no quote could be
served.
"""

from decimal import Decimal


class TradingError(Exception):
    """Base class for order rejections."""


class ValidationError(TradingError):
    """The order itself is malformed (fatal to the order, never retried)."""


class InvalidPrice(ValidationError):
    def __init__(self, price: object) -> None:
        self.price = price
        super().__init__("Invalid price data. Please try again.")


class InvalidQuantity(ValidationError):
    def __init__(self, quantity: object) -> None:
        self.quantity = quantity
        super().__init__("Invalid quantity.")


class InsufficientBalance(TradingError):
    """A BUY costs more than the available cash."""

    def __init__(self, required: Decimal, available: Decimal) -> None:
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient Balance. Required: ₹{required:,.2f}, "
            f"Available: ₹{available:,.2f}"
        )


class NoPosition(TradingError):
    """A SELL for a symbol that is not held."""

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(f"You do not own {symbol}.")


class InsufficientShares(TradingError):
    """A SELL for more shares than are held."""

    def __init__(self, symbol: str, owned: int, requested: int) -> None:
        self.symbol = symbol
        self.owned = owned
        self.requested = requested
        super().__init__(
            f"Insufficient shares. Owned: {owned}, Trying to Sell: {requested}"
        )


# ── Market data ──────────────────────────────────────────────────────────


class MarketDataError(Exception):
    """Base class for quote/chart retrieval failures."""


class QuoteUnavailable(MarketDataError):
    """Upstream returned no usable data, or every relay failed."""


class SymbolNotFound(MarketDataError):
    """Upstream says the symbol does not exist.  Never retried."""


class NetworkTimeout(MarketDataError):
    """Every relay was exhausted and the last attempt timed out."""
