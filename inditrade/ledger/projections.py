"""Portfolio projections — pure functions over an account snapshot.

Read-only views for display: nothing here mutates the ledger.
"""

from decimal import Decimal
from typing import Mapping, Union

from inditrade.ledger.models import Account, Stats
from inditrade.market.models import Quote

PriceLike = Union[Quote, Decimal, float, int]


def invested_value(account: Account) -> Decimal:
    """Total cost basis of all open positions."""
    return sum((p.cost_basis for p in account.positions), Decimal("0"))


def win_rate(stats: Stats) -> float:
    """Percentage of realized SELLs that made money (0.0 with no SELLs)."""
    if stats.total_trades == 0:
        return 0.0
    return round(stats.wins / stats.total_trades * 100, 2)


def portfolio_summary(account: Account, prices: Mapping[str, PriceLike]) -> dict:
    """Mark every position to market.

    Positions without a known price are valued at their average cost, so
    they contribute zero unrealized P&L.

    Returns:
        ``{"holdings": [...], "cash", "invested", "current_value",
        "unrealized_pnl", "net_worth"}``.
    """
    holdings = []
    invested = Decimal("0")
    current = Decimal("0")

    for p in account.positions:
        price = _price(prices.get(p.symbol), p.avg_price)
        market_value = price * p.quantity
        pnl = market_value - p.cost_basis
        holdings.append({
            "symbol": p.symbol,
            "quantity": p.quantity,
            "avg_price": p.avg_price,
            "current_price": price,
            "invested": p.cost_basis,
            "market_value": market_value,
            "unrealized_pnl": pnl,
            "unrealized_pnl_pct": (
                float(pnl / p.cost_basis * 100) if p.cost_basis else 0.0
            ),
        })
        invested += p.cost_basis
        current += market_value

    return {
        "holdings": holdings,
        "cash": account.balance,
        "invested": invested,
        "current_value": current,
        "unrealized_pnl": current - invested,
        "net_worth": account.balance + current,
    }


def _price(value: PriceLike | None, fallback: Decimal) -> Decimal:
    if value is None:
        return fallback
    if isinstance(value, Quote):
        value = value.price
    price = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    if not price.is_finite() or price <= 0:
        return fallback
    return price
