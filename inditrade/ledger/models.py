"""Ledger data models — immutable account snapshots.

Every ledger mutation builds a new ``Account`` from the previous one, so a
snapshot handed to a caller never changes underneath it.  Money is held as
``Decimal``; snapshots serialise Decimals as strings so a save/load round
trip is lossless.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional


BUY = "BUY"
SELL = "SELL"
SIDES = (BUY, SELL)


@dataclass(frozen=True)
class Position:
    """A held quantity of one symbol at its weighted-average cost."""

    symbol: str
    quantity: int
    avg_price: Decimal

    @property
    def cost_basis(self) -> Decimal:
        return self.avg_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "quantity": self.quantity,
            "avgPrice": str(self.avg_price),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Position":
        return cls(
            symbol=str(d["symbol"]),
            quantity=int(d["quantity"]),
            avg_price=Decimal(str(d["avgPrice"])),
        )


@dataclass(frozen=True)
class Order:
    """A market order as submitted by the caller.

    ``price`` is the latest quote price the caller saw; ``quantity`` and
    ``price`` are validated by the ledger, not here.
    """

    id: str
    symbol: str
    side: str  # "BUY" or "SELL"
    quantity: object
    price: object
    timestamp: int  # epoch milliseconds


@dataclass(frozen=True)
class Trade:
    """A completed order.  Never mutated once recorded."""

    id: str
    symbol: str
    side: str
    quantity: int
    price: Decimal
    timestamp: int

    @property
    def total(self) -> Decimal:
        return self.price * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "type": self.side,
            "quantity": self.quantity,
            "price": str(self.price),
            "timestamp": self.timestamp,
            "total": str(self.total),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Trade":
        side = str(d["type"])
        if side not in SIDES:
            raise ValueError(f"Unknown trade side {side!r}")
        return cls(
            id=str(d["id"]),
            symbol=str(d["symbol"]),
            side=side,
            quantity=int(d["quantity"]),
            price=Decimal(str(d["price"])),
            timestamp=int(d["timestamp"]),
        )


@dataclass(frozen=True)
class Stats:
    """Aggregates over realized SELL outcomes."""

    wins: int = 0
    losses: int = 0
    total_trades: int = 0
    best_trade: Decimal = Decimal("0")
    worst_trade: Decimal = Decimal("0")
    total_profit_loss: Decimal = Decimal("0")

    def to_dict(self) -> dict:
        return {
            "wins": self.wins,
            "losses": self.losses,
            "totalTrades": self.total_trades,
            "bestTrade": str(self.best_trade),
            "worstTrade": str(self.worst_trade),
            "totalProfitLoss": str(self.total_profit_loss),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Stats":
        return cls(
            wins=int(d["wins"]),
            losses=int(d["losses"]),
            total_trades=int(d["totalTrades"]),
            best_trade=Decimal(str(d["bestTrade"])),
            worst_trade=Decimal(str(d["worstTrade"])),
            total_profit_loss=Decimal(str(d["totalProfitLoss"])),
        )


@dataclass(frozen=True)
class Account:
    """The single local user's ledger state."""

    id: str
    display_name: str
    email: str
    balance: Decimal
    positions: tuple[Position, ...] = ()
    watchlist: tuple[str, ...] = ()
    trades: tuple[Trade, ...] = ()  # most recent first
    stats: Stats = field(default_factory=Stats)

    def position(self, symbol: str) -> Optional[Position]:
        for p in self.positions:
            if p.symbol == symbol:
                return p
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.display_name,
            "email": self.email,
            "balance": str(self.balance),
            "portfolio": [p.to_dict() for p in self.positions],
            "watchlist": list(self.watchlist),
            "trades": [t.to_dict() for t in self.trades],
            "stats": self.stats.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Account":
        return cls(
            id=str(d["id"]),
            display_name=str(d["name"]),
            email=str(d.get("email", "")),
            balance=Decimal(str(d["balance"])),
            positions=tuple(Position.from_dict(p) for p in d["portfolio"]),
            watchlist=tuple(str(s) for s in d["watchlist"]),
            trades=tuple(Trade.from_dict(t) for t in d["trades"]),
            stats=Stats.from_dict(d["stats"]),
        )


def default_account(
    starting_balance: Decimal = Decimal("1000000"),
    seed_watchlist: tuple[str, ...] = ("RELIANCE.NS", "TCS.NS", "INFY.NS", "HDFCBANK.NS"),
) -> Account:
    """The account every new user (and every reset) starts from."""
    return Account(
        id="user_1",
        display_name="Pro Trader",
        email="trader@example.com",
        balance=Decimal(starting_balance),
        watchlist=tuple(seed_watchlist),
    )
