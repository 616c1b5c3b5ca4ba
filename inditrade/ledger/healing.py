"""Self-healing for stored account snapshots.

Each field is checked and repaired on its own, so one corrupted field never
costs the user unrelated valid data.  Pure functions, no I/O.
"""

import math
from decimal import Decimal, InvalidOperation

from inditrade.ledger.models import Account, Position, Trade

_STAT_AMOUNTS = ("bestTrade", "worstTrade", "totalProfitLoss")
_STAT_COUNTS = ("wins", "losses", "totalTrades")


def heal_snapshot(raw: object, defaults: Account) -> tuple[dict, list[str]]:
    """Return a repaired copy of *raw* and the names of repaired fields.

    The returned dict always parses with ``Account.from_dict``.
    """
    base = defaults.to_dict()
    if not isinstance(raw, dict):
        return base, ["snapshot"]

    healed = dict(raw)
    repaired: list[str] = []

    for key in ("id", "name", "email"):
        if not isinstance(healed.get(key), str):
            healed[key] = base[key]
            repaired.append(key)

    if not _finite_amount(healed.get("balance")) or Decimal(str(healed["balance"])) < 0:
        healed["balance"] = base["balance"]
        repaired.append("balance")

    portfolio = healed.get("portfolio")
    if not isinstance(portfolio, list):
        healed["portfolio"] = []
        repaired.append("portfolio")
    else:
        kept = _valid_positions(portfolio)
        if len(kept) != len(portfolio):
            healed["portfolio"] = kept
            repaired.append("portfolio")

    watchlist = healed.get("watchlist")
    if not isinstance(watchlist, list):
        healed["watchlist"] = base["watchlist"]
        repaired.append("watchlist")
    else:
        kept = list(dict.fromkeys(s for s in watchlist if isinstance(s, str) and s))
        if kept != watchlist:
            healed["watchlist"] = kept
            repaired.append("watchlist")

    trades = healed.get("trades")
    if not isinstance(trades, list):
        healed["trades"] = []
        repaired.append("trades")
    else:
        kept = [t for t in trades if _valid_trade(t)]
        if len(kept) != len(trades):
            healed["trades"] = kept
            repaired.append("trades")

    if not _valid_stats(healed.get("stats")):
        healed["stats"] = base["stats"]
        repaired.append("stats")

    return healed, repaired


# ── Field checks ─────────────────────────────────────────────────────────


def _finite_amount(value: object) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, str):
        try:
            return Decimal(value).is_finite()
        except InvalidOperation:
            return False
    return False


def _count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _share_count(value: object) -> bool:
    return _count(value) and value > 0


def _valid_stats(stats: object) -> bool:
    if not isinstance(stats, dict):
        return False
    return all(_finite_amount(stats.get(k)) for k in _STAT_AMOUNTS) and all(
        _count(stats.get(k)) for k in _STAT_COUNTS
    )


def _valid_trade(entry: object) -> bool:
    if not isinstance(entry, dict) or not _share_count(entry.get("quantity")):
        return False
    try:
        trade = Trade.from_dict(entry)
    except (KeyError, TypeError, ValueError, OverflowError, InvalidOperation):
        return False
    return trade.price.is_finite() and trade.price > 0


def _valid_positions(portfolio: list) -> list:
    """Drop malformed, non-positive or duplicate-symbol positions."""
    kept: list = []
    seen: set[str] = set()
    for entry in portfolio:
        if not isinstance(entry, dict) or not _share_count(entry.get("quantity")):
            continue
        try:
            position = Position.from_dict(entry)
        except (KeyError, TypeError, ValueError, OverflowError, InvalidOperation):
            continue
        if (
            not position.avg_price.is_finite()
            or position.avg_price <= 0
            or position.symbol in seen
        ):
            continue
        seen.add(position.symbol)
        kept.append(entry)
    return kept
